from typing import Any

import httpx
import pytest

from recipes.catalog import RecipeCatalog
from recipes.search import RemoteSearchClient, search_client_factory
from recipes.store import RecipeStore


API_KEY = "test-key"
BASE_URL = "https://api.recipes.test/"


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MemoryCollection:
    def __init__(self, documents: dict[str, dict[str, Any]] | None = None) -> None:
        self.documents = {} if documents is None else dict(documents)
        self.error: Exception | None = None
        self.writes = 0

    async def add(self, data: dict[str, Any]) -> str:
        if self.error is not None:
            raise self.error
        self.writes += 1
        id = f"doc{self.writes}"
        self.documents[id] = data
        return id

    async def get(self, doc_id: str) -> dict[str, Any] | None:
        if self.error is not None:
            raise self.error
        return self.documents.get(doc_id)

    async def list(self) -> list[tuple[str, dict[str, Any]]]:
        if self.error is not None:
            raise self.error
        return list(self.documents.items())


class Provider:
    """Stands in for the search API and records what it was asked."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status = 200
        self.body: Any = {"results": []}
        self.headers: dict[str, str] = {}
        self.error: Exception | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if isinstance(self.body, httpx.ByteStream):
            return httpx.Response(self.status, stream=self.body, headers=self.headers)
        if isinstance(self.body, (bytes, str)):
            return httpx.Response(self.status, content=self.body, headers=self.headers)
        return httpx.Response(self.status, json=self.body, headers=self.headers)

    def returns(self, *results: dict[str, Any]) -> None:
        self.status = 200
        self.body = {"results": list(results)}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> Provider:
    return Provider()


@pytest.fixture
def search_client(provider: Provider) -> RemoteSearchClient:
    client = search_client_factory(
        base_url=BASE_URL,
        api_key=API_KEY,
        transport=httpx.MockTransport(provider),
    )
    return RemoteSearchClient(client)


@pytest.fixture
def collection() -> MemoryCollection:
    return MemoryCollection()


@pytest.fixture
def store(collection: MemoryCollection) -> RecipeStore:
    return RecipeStore(collection)


@pytest.fixture
def catalog(
    search_client: RemoteSearchClient,
    store: RecipeStore,
    clock: FakeClock,
) -> RecipeCatalog:
    return RecipeCatalog(search_client=search_client, store=store, clock=clock)
