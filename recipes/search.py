import logging
from typing import Any

import httpx
import pydantic

from recipes.errors import DecodeError, NetworkError, RateLimited, RequestRejected
from recipes.models import Recipe, SortKey


logger = logging.getLogger(__name__)

SEARCH_PATH = "recipes/complexSearch"
MIN_LIMIT = 1
MAX_LIMIT = 100
TIMEOUT = 20


def search_client_factory(
    *,
    base_url: str,
    api_key: str,
    timeout: float = TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """HTTP client that sends the API key with every request."""
    return httpx.AsyncClient(
        base_url=base_url,
        params={"apiKey": api_key},
        timeout=timeout,
        transport=transport,
    )


def clamp_limit(limit: int) -> int:
    return max(MIN_LIMIT, min(MAX_LIMIT, limit))


def _retry_after(resp: httpx.Response) -> float | None:
    value = resp.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class _SearchResponse(pydantic.BaseModel):
    results: list[dict[str, Any]]


class RemoteSearchClient:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def search(
        self,
        query: str,
        limit: int,
        sort: SortKey = SortKey.popularity,
    ) -> list[Recipe]:
        params = {"query": query, "number": clamp_limit(limit), "sort": sort.value}
        try:
            resp = await self.client.get(SEARCH_PATH, params=params)
        except httpx.DecodingError as e:
            raise DecodeError(f"Undecodable search response: {e}") from e
        except httpx.RequestError as e:
            # Transport failures, redirect loops and the like.
            raise NetworkError(f"Could not reach the recipe provider: {e!r}") from e

        code = resp.status_code
        if code == 429:
            raise RateLimited("Rate limited by provider.", retry_after=_retry_after(resp))
        if code >= 500:
            raise NetworkError(f"Provider error {code}.")
        if 400 <= code < 500:
            raise RequestRejected(f"Request rejected with {code}.", status_code=code)
        if not 200 <= code < 300:
            raise DecodeError(f"Unexpected status {code}.")

        return self._decode(resp)

    def _decode(self, resp: httpx.Response) -> list[Recipe]:
        try:
            body = _SearchResponse.model_validate(resp.json())
        except (ValueError, pydantic.ValidationError) as e:
            raise DecodeError(f"Malformed search response: {e}") from e

        recipes: list[Recipe] = []
        for result in body.results:
            try:
                recipes.append(Recipe.from_search_result(result))
            except ValueError as e:
                logger.warning("Skipping search result %r: %s", result.get("id"), e)
        return recipes

    async def close(self) -> None:
        await self.client.aclose()
