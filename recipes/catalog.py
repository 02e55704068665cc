"""The single entry point the app's screens use to read and save recipes.

Aggregate queries (trending, latest, search) never raise for provider or
storage trouble. They return a `RecipeList` whose `status` says whether the
list is genuinely what exists or what was left after a failure.
"""
import asyncio
from enum import Enum
import logging
import time
from typing import Any, Awaitable, Callable, Iterable

from recipes.cache import MISS, CacheLayer
from recipes.errors import (
    CatalogError,
    DecodeError,
    InvalidQuery,
    NetworkError,
    RateLimited,
    RecipeNotFound,
    RemoteError,
    RequestRejected,
    StorageError,
)
from recipes.models import LOCAL_PREFIX, Recipe, RecipeDraft, SortKey
from recipes.search import RemoteSearchClient, clamp_limit
from recipes.store import RecipeStore


logger = logging.getLogger(__name__)


class FetchStatus(Enum):
    ok = "ok"
    network_error = "network_error"
    rate_limited = "rate_limited"
    decode_error = "decode_error"
    request_rejected = "request_rejected"
    storage_error = "storage_error"


def status_of(error: CatalogError | None) -> FetchStatus:
    match error:
        case None:
            return FetchStatus.ok
        case RateLimited():
            return FetchStatus.rate_limited
        case NetworkError():
            return FetchStatus.network_error
        case RequestRejected():
            return FetchStatus.request_rejected
        case DecodeError():
            return FetchStatus.decode_error
        case StorageError():
            return FetchStatus.storage_error
        case _:
            raise TypeError(f"No fetch status for {error!r}")


class RecipeList(list[Recipe]):
    def __init__(
        self,
        recipes: Iterable[Recipe] = (),
        *,
        error: CatalogError | None = None,
    ) -> None:
        super().__init__(recipes)
        self.error = error
        self.status = status_of(error)

    @property
    def ok(self) -> bool:
        return self.status is FetchStatus.ok

    def __repr__(self) -> str:
        return f"<RecipeList(n={len(self)}, status={self.status.value})>"


def normalize_query(query: str) -> str:
    normalized = query.strip().casefold()
    if not normalized:
        raise InvalidQuery("Search query is blank.")
    return normalized


def matches(recipe: Recipe, normalized_query: str) -> bool:
    texts = [recipe.title, recipe.description, *recipe.ingredients]
    return any(normalized_query in text.casefold() for text in texts)


def merge_recipes(local: Iterable[Recipe], remote: Iterable[Recipe]) -> list[Recipe]:
    """Local recipes first, then remote ones whose bare id is not taken."""
    merged: dict[str, Recipe] = {}
    for recipe in (*local, *remote):
        merged.setdefault(recipe.key, recipe)
    return list(merged.values())


class RecipeCatalog:
    def __init__(
        self,
        *,
        search_client: RemoteSearchClient,
        store: RecipeStore,
        cache: CacheLayer | None = None,
        trending_limit: int = 5,
        latest_limit: int = 5,
        search_limit: int = 10,
        category_limit: int = 5,
        list_ttl: float = 60.0,
        detail_ttl: float = 300.0,
        rate_limit_backoff: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.search_client = search_client
        self.store = store
        self.cache = CacheLayer(ttl=list_ttl, clock=clock) if cache is None else cache
        self.clock = self.cache.clock
        self.trending_limit = trending_limit
        self.latest_limit = latest_limit
        self.search_limit = search_limit
        self.category_limit = category_limit
        self.list_ttl = list_ttl
        self.detail_ttl = detail_ttl
        self.rate_limit_backoff = rate_limit_backoff
        self._status: dict[str, FetchStatus] = {}
        self._inflight: dict[str, asyncio.Future[RecipeList]] = {}
        self._backoff_until: float | None = None
        self._backoff_error: RateLimited | None = None

    def last_status(self, key: str) -> FetchStatus | None:
        return self._status.get(key)

    def sweep_cache(self) -> int:
        return self.cache.sweep()

    async def trending(self, limit: int | None = None) -> RecipeList:
        limit = clamp_limit(self.trending_limit if limit is None else limit)
        key = f"trending:{limit}"
        return await self._cached(
            key, lambda: self._remote(key, "", limit, SortKey.popularity)
        )

    async def latest(self, limit: int | None = None) -> RecipeList:
        limit = clamp_limit(self.latest_limit if limit is None else limit)
        key = f"latest:{limit}"
        return await self._cached(
            key, lambda: self._remote(key, "", limit, SortKey.time)
        )

    async def search_by_keyword(
        self, query: str, limit: int | None = None
    ) -> RecipeList:
        normalized = normalize_query(query)
        limit = clamp_limit(self.search_limit if limit is None else limit)
        key = f"search:{normalized}:{limit}"
        return await self._cached(
            key, lambda: self._search(key, query.strip(), normalized, limit)
        )

    async def category(self, name: str, limit: int | None = None) -> RecipeList:
        """Provider-only feed for a meal category such as "breakfast"."""
        normalized = normalize_query(name)
        limit = clamp_limit(self.category_limit if limit is None else limit)
        key = f"category:{normalized}:{limit}"
        return await self._cached(
            key, lambda: self._remote(key, normalized, limit, SortKey.popularity)
        )

    async def my_recipes(self) -> RecipeList:
        # Not cached: users expect to see a recipe right after saving it.
        return RecipeList(await self.store.list_all())

    async def get_detail(self, id: str) -> Recipe:
        if not id.startswith(LOCAL_PREFIX):
            raise RecipeNotFound(id)

        key = f"detail:{id}"
        hit = self.cache.get(key)
        if hit is not MISS:
            return hit

        started = self.clock()
        recipe = await self.store.get_by_id(id)
        self.cache.put(key, recipe, ttl=self.detail_ttl, fetched_at=started)
        return recipe

    async def add_recipe(self, draft: RecipeDraft) -> str:
        id = await self.store.create(draft)
        self.cache.invalidate(f"detail:{id}")
        self.cache.invalidate_prefix("search:")
        return id

    async def _cached(
        self, key: str, fetch: Callable[[], Awaitable[RecipeList]]
    ) -> RecipeList:
        while True:
            hit: Any = self.cache.get(key)
            if hit is not MISS:
                logger.debug("Cache hit for %s", key)
                return RecipeList(hit)

            pending = self._inflight.get(key)
            if pending is None:
                break
            try:
                shared = await asyncio.shield(pending)
            except asyncio.CancelledError:
                if not pending.cancelled():
                    raise
                # The caller running the fetch went away; run our own.
                continue
            return RecipeList(shared, error=shared.error)

        future: asyncio.Future[RecipeList] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        started = self.clock()
        try:
            result = await fetch()
        except BaseException:
            future.cancel()
            raise
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

        self._status[key] = result.status
        if result.ok:
            self.cache.put(key, tuple(result), ttl=self.list_ttl, fetched_at=started)
        future.set_result(result)
        return result

    def _backing_off(self) -> bool:
        return self._backoff_until is not None and self.clock() < self._backoff_until

    async def _remote(
        self, key: str, query: str, limit: int, sort: SortKey
    ) -> RecipeList:
        if self._backing_off():
            logger.info("Provider backoff active, skipping %s", key)
            return RecipeList(error=self._backoff_error)

        try:
            recipes = await self.search_client.search(query, limit, sort)
        except RateLimited as e:
            delay = self.rate_limit_backoff if e.retry_after is None else e.retry_after
            self._backoff_until = self.clock() + delay
            self._backoff_error = e
            logger.warning("Rate limited fetching %s, backing off %.0fs", key, delay)
            return RecipeList(error=e)
        except RemoteError as e:
            logger.warning("Fetching %s failed: %s", key, e)
            return RecipeList(error=e)

        logger.debug("Fetched %d recipes for %s", len(recipes), key)
        return RecipeList(recipes)

    async def _local_matches(self, normalized_query: str) -> RecipeList:
        try:
            recipes = await self.store.list_all()
        except StorageError as e:
            logger.warning("Could not search stored recipes: %s", e)
            return RecipeList(error=e)
        return RecipeList(r for r in recipes if matches(r, normalized_query))

    async def _search(
        self, key: str, query: str, normalized: str, limit: int
    ) -> RecipeList:
        remote, local = await asyncio.gather(
            self._remote(key, query, limit, SortKey.popularity),
            self._local_matches(normalized),
        )
        merged = merge_recipes(local, remote)[:limit]
        return RecipeList(merged, error=remote.error or local.error)
