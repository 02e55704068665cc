import json
import logging
from typing import Any
from uuid import uuid4

from databases import Database


logger = logging.getLogger(__name__)


CREATE_DOCUMENTS_TABLE = """
CREATE TABLE IF NOT EXISTS Documents (
    id VARCHAR(64) PRIMARY KEY,
    collection VARCHAR(256) NOT NULL,
    data TEXT NOT NULL
)
"""


CREATE_DOCUMENT = """
INSERT INTO Documents(id, collection, data) VALUES (:id, :collection, :data)
"""


GET_DOCUMENT = "SELECT data FROM Documents WHERE collection = :collection AND id = :id"


LIST_DOCUMENTS = (
    "SELECT id, data FROM Documents WHERE collection = :collection ORDER BY rowid"
)


class SQLiteCollection:
    """JSON documents in an SQL table, one row per document."""

    def __init__(self, db: Database, name: str = "recipes") -> None:
        self.db = db
        self.name = name

    async def create_table(self) -> None:
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            query=CREATE_DOCUMENTS_TABLE
        )

    async def add(self, data: dict[str, Any]) -> str:
        id = uuid4().hex
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            CREATE_DOCUMENT,
            values={"id": id, "collection": self.name, "data": json.dumps(data)},
        )
        return id

    async def get(self, doc_id: str) -> dict[str, Any] | None:
        result = await self.db.fetch_one(  # pyright: ignore[reportUnknownMemberType]
            GET_DOCUMENT, values={"collection": self.name, "id": doc_id}
        )
        if result is None:
            return None
        return json.loads(result["data"])

    async def list(self) -> list[tuple[str, dict[str, Any]]]:
        result = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
            LIST_DOCUMENTS, values={"collection": self.name}
        )
        documents: list[tuple[str, dict[str, Any]]] = []
        for r in result:
            try:
                data = json.loads(r["data"])
            except json.JSONDecodeError as e:
                logger.warning("Skipping unreadable document %s: %s", r["id"], e)
                continue
            if not isinstance(data, dict):
                logger.warning("Skipping document %s: not an object", r["id"])
                continue
            documents.append((r["id"], data))
        return documents
