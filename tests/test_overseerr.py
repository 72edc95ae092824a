import pytest

from mediahub.api.base import ServiceClient
from mediahub.api.overseerr import OverseerrClient
from mediahub.exceptions import (
    AuthRejectedError,
    BackendError,
    DecodeMismatchError,
    InvalidURLError,
    RequestRejectedError,
)
from mediahub.models.overseerr import MediaType, RequestStatus

SEARCH_PAYLOAD = {
    "page": 1,
    "totalPages": 1,
    "totalResults": 1,
    "results": [
        {"id": 603, "mediaType": "movie", "title": "The Matrix", "releaseDate": "1999-03-30"}
    ],
}


@pytest.fixture
def client(backend, http_session, cache):
    return OverseerrClient(
        backend.url,
        "secret-key",
        session=http_session,
        cache=cache,
        cache_namespace="overseerr-1",
    )


@pytest.mark.asyncio
async def test_connection_success(backend, client):
    backend.add("GET", "/api/v1/status", json={"version": "1.33.2"})
    backend.add("GET", "/api/v1/auth/me", json={"id": 1, "username": "admin"})

    result = await client.test_connection()

    assert result.success
    assert result.message == "Connected - Overseerr v1.33.2"
    assert result.http_status_code == 200
    assert result.response_time is not None
    assert backend.calls_to("/api/v1/auth/me")[0].headers["X-Api-Key"] == "secret-key"


@pytest.mark.asyncio
async def test_connection_with_rejected_key(backend, client):
    backend.add("GET", "/api/v1/status", json={"version": "1.33.2"})
    backend.add("GET", "/api/v1/auth/me", json={"message": "Unauthorized"}, status=401)

    result = await client.test_connection()

    assert not result.success
    assert result.http_status_code == 401
    assert "API key" in result.recovery_suggestion


@pytest.mark.asyncio
async def test_connection_to_unreachable_host(http_session):
    client = OverseerrClient("http://127.0.0.1:1", "key", session=http_session)

    result = await client.test_connection()

    assert not result.success
    assert result.http_status_code is None
    assert "VPN" in result.recovery_suggestion


@pytest.mark.asyncio
async def test_connection_with_html_response(backend, client):
    backend.add("GET", "/api/v1/status", text="<html>proxy login</html>")

    result = await client.test_connection()

    assert not result.success
    assert "Unexpected response" in result.message


@pytest.mark.parametrize("url", ["not a url", "ftp://nas:5055", "http://"])
def test_invalid_base_url_fails_fast(url):
    with pytest.raises(InvalidURLError):
        OverseerrClient(url, "key")


@pytest.mark.asyncio
async def test_search_encodes_query_and_caches(backend, client):
    backend.add("GET", "/api/v1/search", json=SEARCH_PAYLOAD)

    first = await client.search("the matrix")
    second = await client.search("The Matrix ")

    assert first.results[0].display_title == "The Matrix"
    assert second is first
    calls = backend.calls_to("/api/v1/search")
    assert len(calls) == 1
    assert calls[0].query == {"query": "the matrix", "page": "1"}


@pytest.mark.asyncio
async def test_search_cache_is_per_instance(backend, http_session, cache, client):
    backend.add("GET", "/api/v1/search", json=SEARCH_PAYLOAD)
    other = OverseerrClient(
        backend.url,
        "secret-key",
        session=http_session,
        cache=cache,
        cache_namespace="overseerr-2",
    )

    await client.search("matrix")
    await other.search("matrix")

    assert len(backend.calls_to("/api/v1/search")) == 2


@pytest.mark.asyncio
async def test_discover_uses_page_parameter(backend, client):
    backend.add("GET", "/api/v1/discover/trending", json=SEARCH_PAYLOAD)

    await client.trending(page=2)

    assert backend.calls_to("/api/v1/discover/trending")[0].query == {"page": "2"}


@pytest.mark.asyncio
async def test_create_movie_request(backend, client):
    backend.add(
        "POST",
        "/api/v1/request",
        json={"id": 11, "status": 1, "type": "movie", "is4k": False},
        status=201,
    )

    request = await client.create_request(MediaType.MOVIE, 597)

    assert request.id == 11
    assert request.status is RequestStatus.PENDING_APPROVAL
    body = backend.calls_to("/api/v1/request", "POST")[0].json()
    assert body == {"mediaType": "movie", "mediaId": 597, "is4k": False}


@pytest.mark.asyncio
async def test_create_tv_request_defaults_to_all_seasons(backend, client):
    backend.add("POST", "/api/v1/request", json={"id": 12, "type": "tv"})

    await client.create_request(MediaType.TV, 1399)
    await client.create_request(MediaType.TV, 1399, seasons=[1, 2], is_4k=True)

    first, second = (c.json() for c in backend.calls_to("/api/v1/request", "POST"))
    assert first["seasons"] == "all"
    assert second["seasons"] == [1, 2]
    assert second["is4k"] is True


@pytest.mark.asyncio
async def test_create_request_rejects_person(client):
    with pytest.raises(ValueError):
        await client.create_request(MediaType.PERSON, 1)


@pytest.mark.asyncio
async def test_duplicate_request_surfaces_backend_rejection(backend, client):
    backend.add(
        "POST",
        "/api/v1/request",
        json={"message": "Request for this media already exists."},
        status=409,
    )

    with pytest.raises(RequestRejectedError) as exc_info:
        await client.create_request(MediaType.MOVIE, 597)

    assert exc_info.value.status == 409
    assert "already exists" in str(exc_info.value)


@pytest.mark.asyncio
async def test_server_error_maps_to_backend_error(backend, client):
    backend.add("GET", "/api/v1/request", json={"message": "boom"}, status=500)

    with pytest.raises(BackendError):
        await client.list_requests()


@pytest.mark.asyncio
async def test_wrong_shape_raises_decode_mismatch(backend, client):
    backend.add("GET", "/api/v1/auth/me", json=[1, 2, 3])

    with pytest.raises(DecodeMismatchError):
        await client.current_user()


@pytest.mark.asyncio
async def test_forbidden_maps_to_auth_rejected(backend, client):
    backend.add("GET", "/api/v1/movie/597", status=403)

    with pytest.raises(AuthRejectedError):
        await client.movie_details(597)


def test_service_client_requires_a_probe():
    with pytest.raises(TypeError):
        ServiceClient("http://nas:5055")
