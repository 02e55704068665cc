import httpx
import pytest

from recipes.errors import DecodeError, NetworkError, RateLimited, RequestRejected
from recipes.models import Origin, SortKey
from recipes.search import RemoteSearchClient, clamp_limit

from conftest import API_KEY, Provider


@pytest.mark.asyncio
async def test_search_builds_query_with_api_key(
    search_client: RemoteSearchClient, provider: Provider
) -> None:
    await search_client.search("pasta", 10, SortKey.time)

    (request,) = provider.requests
    assert request.method == "GET"
    assert request.url.path == "/recipes/complexSearch"
    assert request.url.params["apiKey"] == API_KEY
    assert request.url.params["query"] == "pasta"
    assert request.url.params["number"] == "10"
    assert request.url.params["sort"] == "time"


@pytest.mark.asyncio
async def test_api_key_sent_once_per_request(
    search_client: RemoteSearchClient, provider: Provider
) -> None:
    await search_client.search("", 5)
    await search_client.search("soup", 5)
    for request in provider.requests:
        assert request.url.params.get_list("apiKey") == [API_KEY]


@pytest.mark.parametrize(
    "limit,expected",
    ((0, 1), (-3, 1), (1, 1), (50, 50), (100, 100), (500, 100)),
)
def test_clamp_limit(limit: int, expected: int) -> None:
    assert clamp_limit(limit) == expected


@pytest.mark.asyncio
async def test_limit_is_clamped_not_rejected(
    search_client: RemoteSearchClient, provider: Provider
) -> None:
    await search_client.search("", 1000)
    assert provider.requests[0].url.params["number"] == "100"


@pytest.mark.asyncio
async def test_results_decoded_in_provider_order(
    search_client: RemoteSearchClient, provider: Provider
) -> None:
    provider.returns(
        {"id": 3, "title": "Risotto", "image": "https://img/3.jpg"},
        {"id": 1, "title": "Lasagne", "image": "https://img/1.jpg", "summary": "Layers."},
        {"id": 2, "title": "Gnocchi"},
    )
    got = await search_client.search("italian", 3)
    assert [r.id for r in got] == ["remote:3", "remote:1", "remote:2"]
    assert all(r.origin is Origin.remote for r in got)
    assert got[1].summary == "Layers."
    assert got[2].image_url == ""


@pytest.mark.asyncio
async def test_malformed_entries_are_skipped(
    search_client: RemoteSearchClient, provider: Provider
) -> None:
    provider.returns(
        {"id": 1, "title": "Lasagne"},
        {"id": 2},
        {"title": "No id"},
    )
    got = await search_client.search("", 5)
    assert [r.title for r in got] == ["Lasagne"]


@pytest.mark.asyncio
async def test_rate_limited(search_client: RemoteSearchClient, provider: Provider) -> None:
    provider.status = 429
    provider.headers = {"Retry-After": "12"}
    with pytest.raises(RateLimited) as exc_info:
        await search_client.search("", 5)
    assert exc_info.value.retryable
    assert exc_info.value.retry_after == 12.0
    assert not isinstance(exc_info.value, NetworkError)


@pytest.mark.asyncio
@pytest.mark.parametrize("status", (500, 502, 503))
async def test_server_errors_are_network_errors(
    search_client: RemoteSearchClient, provider: Provider, status: int
) -> None:
    provider.status = status
    with pytest.raises(NetworkError) as exc_info:
        await search_client.search("", 5)
    assert exc_info.value.retryable


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    (
        httpx.ConnectError("refused"),
        httpx.ReadTimeout("slow"),
        httpx.TooManyRedirects("redirect loop"),
    ),
)
async def test_connection_failures_are_network_errors(
    search_client: RemoteSearchClient, provider: Provider, error: Exception
) -> None:
    provider.error = error
    with pytest.raises(NetworkError):
        await search_client.search("", 5)


@pytest.mark.asyncio
@pytest.mark.parametrize("status", (400, 401, 402, 404))
async def test_client_errors_are_rejected(
    search_client: RemoteSearchClient, provider: Provider, status: int
) -> None:
    provider.status = status
    with pytest.raises(RequestRejected) as exc_info:
        await search_client.search("", 5)
    assert exc_info.value.status_code == status
    assert not exc_info.value.retryable
    assert isinstance(exc_info.value, DecodeError)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    (b"<html>oops</html>", {"recipes": []}, {"results": "none"}, {"results": [1, 2]}),
)
async def test_malformed_body(
    search_client: RemoteSearchClient, provider: Provider, body: object
) -> None:
    provider.body = body
    with pytest.raises(DecodeError):
        await search_client.search("", 5)


@pytest.mark.asyncio
async def test_undecodable_body_is_decode_error(
    search_client: RemoteSearchClient, provider: Provider
) -> None:
    provider.headers = {"Content-Encoding": "gzip"}
    provider.body = httpx.ByteStream(b"not gzip at all")
    with pytest.raises(DecodeError) as exc_info:
        await search_client.search("", 5)
    assert isinstance(exc_info.value.__cause__, httpx.DecodingError)
    assert not exc_info.value.retryable
