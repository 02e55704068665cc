from enum import Enum
from typing import Any, Mapping, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator


REMOTE_PREFIX = "remote:"
LOCAL_PREFIX = "local:"

# Placeholders left behind when an absent value was printed as text.
NULL_TEXT = {"", "null"}


class Origin(Enum):
    remote = "remote"
    local = "local"


class SortKey(Enum):
    popularity = "popularity"
    time = "time"


def local_id(doc_id: str) -> str:
    return doc_id if doc_id.startswith(LOCAL_PREFIX) else f"{LOCAL_PREFIX}{doc_id}"


def bare_id(id: str) -> str:
    """Strip the origin namespace from a canonical id."""
    for prefix in (LOCAL_PREFIX, REMOTE_PREFIX):
        if id.startswith(prefix):
            return id[len(prefix) :]
    return id


def split_lines(value: Any) -> tuple[str, ...]:
    """Coerce a list, a delimited string, or nothing into a tuple of strings.

    Strings split on newlines when they have any, else on commas. A
    stringified list such as ``"[a, b]"`` loses its brackets first.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("[") and text.endswith("]"):
            text = text[1:-1]
        parts = text.split("\n") if "\n" in text else text.split(",")
    elif isinstance(value, (list, tuple)):
        parts = [str(v) for v in value if v is not None]
    else:
        raise ValueError(f"Expected a list or a string, got {type(value).__name__}.")
    stripped = (p.strip() for p in parts)
    return tuple(p for p in stripped if p.lower() not in NULL_TEXT)


class Recipe(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str
    title: str = Field(min_length=1)
    image_url: str = ""
    summary: str | None = None
    description: str = ""
    ingredients: tuple[str, ...] = ()
    instructions: tuple[str, ...] = ()
    origin: Origin

    @field_validator("image_url", "description", mode="before")
    @classmethod
    def _empty_if_null(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str) and value.strip().lower() in NULL_TEXT:
            return ""
        return value

    @field_validator("summary", mode="before")
    @classmethod
    def _none_if_blank(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() in NULL_TEXT:
            return None
        return value

    @field_validator("ingredients", "instructions", mode="before")
    @classmethod
    def _as_sequence(cls, value: Any) -> tuple[str, ...]:
        return split_lines(value)

    @property
    def key(self) -> str:
        """Id without its origin namespace, used to spot duplicates."""
        return bare_id(self.id)

    @classmethod
    def from_search_result(cls, data: Mapping[str, Any]) -> Self:
        provider_id = data.get("id")
        if provider_id is None or provider_id == "":
            raise ValueError("Search result without an id.")
        return cls.model_validate(
            {
                "id": f"{REMOTE_PREFIX}{provider_id}",
                "title": data.get("title"),
                "image_url": data.get("image"),
                "summary": data.get("summary"),
                "description": data.get("description"),
                "ingredients": data.get("ingredients"),
                "instructions": data.get("instructions"),
                "origin": Origin.remote,
            }
        )

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> Self:
        image = data.get("imageUri") or data.get("imageUrl") or data.get("image")
        return cls.model_validate(
            {
                "id": local_id(doc_id),
                "title": data.get("name"),
                "image_url": image,
                "description": data.get("description"),
                "ingredients": data.get("ingredients"),
                "instructions": data.get("instructions"),
                "origin": Origin.local,
            }
        )


class RecipeDraft(BaseModel):
    """A user-submitted recipe before it is written to the store."""

    name: str = ""
    description: str = ""
    ingredients: str | list[str] = ""
    instructions: str | list[str] = ""
    image_uri: str | None = None

    def blank_fields(self) -> list[str]:
        blank: list[str] = []
        if not self.name.strip():
            blank.append("name")
        if not self.description.strip():
            blank.append("description")
        if not split_lines(self.ingredients):
            blank.append("ingredients")
        if not split_lines(self.instructions):
            blank.append("instructions")
        return blank

    def to_document(self) -> dict[str, Any]:
        return {
            "name": self.name.strip(),
            "description": self.description.strip(),
            "ingredients": list(split_lines(self.ingredients)),
            "instructions": list(split_lines(self.instructions)),
            "imageUri": self.image_uri or None,
        }
