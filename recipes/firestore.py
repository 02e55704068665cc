from typing import Any

import firebase_admin  # pyright: ignore[reportMissingTypeStubs]
from firebase_admin import credentials, firestore  # pyright: ignore[reportMissingTypeStubs]

from ajolt import in_thread


def firestore_client_factory(
    credentials_path: str | None = None,
    project_id: str | None = None,
) -> Any:
    """Initialise the default Firebase app once and return its Firestore client."""
    try:
        app = firebase_admin.get_app()
    except ValueError:
        cred = (
            credentials.Certificate(credentials_path)
            if credentials_path
            else credentials.ApplicationDefault()
        )
        options = {"projectId": project_id} if project_id else None
        app = firebase_admin.initialize_app(cred, options)
    return firestore.client(app)


class FirestoreCollection:
    """A Firestore collection behind the async document interface.

    The Admin SDK is blocking, so each call runs in a worker thread.
    """

    def __init__(self, *, client: Any = None, name: str = "recipes") -> None:
        self.client = firestore_client_factory() if client is None else client
        self.ref = self.client.collection(name)

    async def add(self, data: dict[str, Any]) -> str:
        _, doc_ref = await in_thread(self.ref.add, data)
        return doc_ref.id

    async def get(self, doc_id: str) -> dict[str, Any] | None:
        snapshot = await in_thread(self.ref.document(doc_id).get)
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    async def list(self) -> list[tuple[str, dict[str, Any]]]:
        snapshots = await in_thread(lambda: list(self.ref.stream()))
        return [(s.id, s.to_dict() or {}) for s in snapshots]
