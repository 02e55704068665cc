"""User-submitted recipes kept in a document collection.

Every backend failure leaves this module as a `StorageError`. Documents are
normalised into `Recipe` once, here, so nothing downstream handles raw maps.
"""
import logging
from typing import Any, Protocol

from recipes.errors import RecipeNotFound, StorageError, ValidationError
from recipes.models import LOCAL_PREFIX, Recipe, RecipeDraft, local_id


logger = logging.getLogger(__name__)


type Document = dict[str, Any]


class DocumentCollection(Protocol):
    async def add(self, data: Document) -> str:
        ...

    async def get(self, doc_id: str) -> Document | None:
        ...

    async def list(self) -> list[tuple[str, Document]]:
        ...


class RecipeStore:
    def __init__(self, collection: DocumentCollection) -> None:
        self.collection = collection

    async def create(self, draft: RecipeDraft) -> str:
        blank = draft.blank_fields()
        if blank:
            raise ValidationError(blank)

        try:
            doc_id = await self.collection.add(draft.to_document())
        except Exception as e:
            raise StorageError(f"Could not save recipe {draft.name!r}.") from e

        logger.info("Saved recipe %s", doc_id)
        return local_id(doc_id)

    async def get_by_id(self, id: str) -> Recipe:
        doc_id = id.removeprefix(LOCAL_PREFIX)
        try:
            data = await self.collection.get(doc_id)
        except Exception as e:
            raise StorageError(f"Could not fetch recipe {doc_id}.") from e

        if data is None:
            raise RecipeNotFound(doc_id)

        try:
            return Recipe.from_document(doc_id, data)
        except ValueError as e:
            raise StorageError(f"Recipe {doc_id} is malformed: {e}") from e

    async def list_all(self) -> tuple[Recipe, ...]:
        try:
            documents = await self.collection.list()
        except Exception as e:
            raise StorageError("Could not list recipes.") from e

        recipes: list[Recipe] = []
        for doc_id, data in documents:
            try:
                recipes.append(Recipe.from_document(doc_id, data))
            except ValueError as e:
                logger.warning("Skipping malformed recipe %s: %s", doc_id, e)
        return tuple(recipes)
