"""
Shared async HTTP client for every backend service.

Concrete clients set ``API_PREFIX`` and ``SERVICE_NAME``, provide their
authentication headers, and implement ``_probe`` for connection tests. Transport
and HTTP failures are mapped onto the ``mediahub.exceptions`` taxonomy here, so
every domain operation raises typed errors.
"""

import json as jsonlib
import logging
import ssl
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, TypeVar
from uuid import UUID

import aiohttp
from pydantic import TypeAdapter, ValidationError
from yarl import URL

from mediahub.exceptions import (
    AuthRejectedError,
    BackendError,
    DecodeMismatchError,
    HTTPStatusError,
    InvalidURLError,
    MediaHubError,
    NetworkError,
    NetworkUnreachableError,
    NotFoundError,
    RequestRejectedError,
    RequestTimeoutError,
    TLSError,
)
from mediahub.models.base import decode_items, list_item_type
from mediahub.models.config import AppConfig
from mediahub.models.instance import ConnectionTestResult
from mediahub.storage.cache import ResponseCache
from mediahub.utils.structured_logger import APILogger

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30.0
USER_AGENT = "mediahub/1.0"


@dataclass(frozen=True)
class CacheTTLs:
    """Lifetimes in seconds of the responses a client caches."""

    search: float = 120.0
    discover: float = 300.0
    library: float = 60.0

    @classmethod
    def from_config(cls, config: AppConfig) -> "CacheTTLs":
        return cls(
            search=config.search_cache_ttl,
            discover=config.discover_cache_ttl,
            library=config.library_cache_ttl,
        )


def validate_base_url(base_url: str) -> URL:
    """Parses an instance base URL, failing fast on anything unusable."""
    try:
        url = URL(base_url.strip())
    except (ValueError, TypeError) as e:
        raise InvalidURLError(f"Invalid URL '{base_url}': {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidURLError(
            f"Invalid URL '{base_url}'. It must start with http:// or https:// "
            "and contain a host."
        )
    return url


class ServiceClient(ABC):
    """
    Base async client for one backend instance.

    A client owns a lazily created ``aiohttp.ClientSession`` unless one is injected,
    in which case the caller remains responsible for closing it.
    """

    SERVICE_NAME = "Service"
    API_PREFIX = ""
    AUTH_SUGGESTION = "Check that your API key is correct and valid."

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
        cache: ResponseCache | None = None,
        cache_namespace: UUID | str | None = None,
        cache_ttls: CacheTTLs | None = None,
        api_logger: APILogger | None = None,
    ):
        """
        Initializes the client.

        Args:
            base_url: Root URL of the instance, e.g. ``http://nas:7878``.
            timeout: Default no-response timeout in seconds for every request.
            session: Optional shared session; not closed by this client.
            cache: Optional shared response cache.
            cache_namespace: Disambiguates cache keys between instances.
            cache_ttls: Lifetimes of cached responses.
            api_logger: Optional structured logger for request events.

        Raises:
            InvalidURLError: If ``base_url`` is malformed.
        """
        self.base_url = str(validate_base_url(base_url)).rstrip("/")
        self.timeout = timeout
        self.cache = cache
        self.cache_namespace = cache_namespace or self.base_url
        self.cache_ttls = cache_ttls or CacheTTLs()
        self._api_logger = api_logger
        self._session = session
        self._owns_session = session is None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.base_url!r})"

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=16, ttl_dns_cache=300, enable_cleanup_closed=True
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": USER_AGENT},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _auth_headers(self) -> dict[str, str]:
        return {}

    def _on_response(self, response: aiohttp.ClientResponse) -> None:
        """Hook called with every successful response before its body is read."""

    def _url(self, path: str) -> str:
        return f"{self.base_url}{self.API_PREFIX}{path}"

    def _status_error(self, status: int, body: str) -> HTTPStatusError:
        """Maps a non-success HTTP status onto the error taxonomy."""
        message = self._extract_error_message(body)
        if status in (401, 403):
            return AuthRejectedError(
                status,
                f"Authentication failed ({status})"
                + (f": {message}" if message else ""),
                self.AUTH_SUGGESTION,
            )
        if status == 404:
            return NotFoundError(status, f"Not found (404){self._suffix(message)}")
        if 400 <= status < 500:
            return RequestRejectedError(
                status, f"Request rejected ({status}){self._suffix(message)}"
            )
        return BackendError(status, f"Server error ({status}){self._suffix(message)}")

    @staticmethod
    def _suffix(message: str) -> str:
        return f": {message}" if message else ""

    @staticmethod
    def _extract_error_message(body: str) -> str:
        if not body:
            return ""
        try:
            data = jsonlib.loads(body)
        except ValueError:
            return body.strip()[:200]
        if isinstance(data, dict):
            return str(data.get("message") or data.get("error") or "")[:200]
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return str(data[0].get("errorMessage") or "")[:200]
        return ""

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        data: Any = None,
        headers: dict[str, str] | None = None,
        expect: Literal["json", "text", "none"] = "json",
    ) -> Any:
        """
        Issues one HTTP request and returns the decoded body.

        Raises:
            NetworkError: On transport failures (unreachable, TLS, timeout).
            HTTPStatusError: On any status >= 400.
            DecodeMismatchError: If a JSON body cannot be parsed.
        """
        session = await self._initialize_session()
        url = self._url(path)
        request_headers = {**self._auth_headers(), **(headers or {})}
        if self._api_logger:
            self._api_logger.request_started(method, url, params)

        start_time = time.monotonic()
        try:
            async with session.request(
                method,
                url,
                params=params,
                json=json,
                data=data,
                headers=request_headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as r:
                if r.status >= 400:
                    raise self._status_error(r.status, await r.text())
                self._on_response(r)
                if expect == "none":
                    body: Any = None
                elif expect == "text":
                    body = await r.text()
                else:
                    body = await r.json(content_type=None)
                status = r.status
        except MediaHubError as e:
            self._log_failure(method, url, e, start_time)
            raise
        except (aiohttp.ClientConnectorCertificateError, aiohttp.ClientSSLError) as e:
            raise self._log_failure(
                method, url, TLSError(f"TLS error: {e}"), start_time
            ) from e
        except ssl.SSLError as e:
            raise self._log_failure(
                method, url, TLSError(f"TLS error: {e}"), start_time
            ) from e
        # TimeoutError subclasses OSError, so it must be matched first.
        except TimeoutError as e:
            raise self._log_failure(
                method,
                url,
                RequestTimeoutError(f"Request timed out after {self.timeout:g}s"),
                start_time,
            ) from e
        except (aiohttp.ClientConnectionError, OSError) as e:
            raise self._log_failure(
                method,
                url,
                NetworkUnreachableError(f"Cannot connect to {self.base_url}: {e}"),
                start_time,
            ) from e
        except ValueError as e:
            raise self._log_failure(
                method,
                url,
                DecodeMismatchError(f"Unexpected response from {path}: {e}"),
                start_time,
            ) from e
        except aiohttp.ClientError as e:
            raise self._log_failure(
                method, url, NetworkError(f"Network error: {e}"), start_time
            ) from e

        if self._api_logger:
            self._api_logger.request_completed(
                method, url, status, (time.monotonic() - start_time) * 1000
            )
        return body

    def _log_failure(
        self, method: str, url: str, error: MediaHubError, start_time: float
    ) -> MediaHubError:
        log.debug(f"{method} {url} failed: {error}")
        if self._api_logger:
            self._api_logger.request_failed(
                method,
                url,
                str(error),
                (time.monotonic() - start_time) * 1000,
                getattr(error, "status", None),
            )
        return error

    @staticmethod
    def _decode(payload: Any, model: type[T] | Any) -> T:
        """
        Validates a JSON payload into ``model``.

        For ``list[X]`` models each item is decoded on its own and undecodable
        items are dropped, like list fields inside a payload.
        """
        item_type = list_item_type(model)
        if item_type is not None and isinstance(payload, list):
            return decode_items(payload, item_type, str(model))
        try:
            return TypeAdapter(model).validate_python(payload)
        except ValidationError as e:
            raise DecodeMismatchError(
                f"Unexpected response shape for {getattr(model, '__name__', model)}: "
                f"{e.error_count()} error(s)"
            ) from e

    async def _get(
        self, path: str, model: type[T] | Any, params: dict[str, Any] | None = None
    ) -> T:
        return self._decode(await self._request("GET", path, params=params), model)

    async def _cached(
        self,
        key: str,
        expected_type: Any,
        fetch: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        if self.cache is None:
            return await fetch()
        return await self.cache.get_or_fetch(key, expected_type, fetch, ttl)

    @abstractmethod
    async def _probe(self) -> str:
        """Performs a minimal authenticated call and returns the backend version."""

    async def test_connection(self) -> ConnectionTestResult:
        """
        Checks that the instance is reachable and accepts our credentials.

        Never raises: every failure is rendered into the returned result.
        """
        start_time = time.monotonic()
        try:
            version = await self._probe()
        except MediaHubError as e:
            result = ConnectionTestResult.from_error(e)
        except Exception as e:
            log.exception(f"Unexpected failure testing {self.base_url}")
            result = ConnectionTestResult.from_error(e)
        else:
            result = ConnectionTestResult(
                success=True,
                message=f"Connected - {self.SERVICE_NAME} v{version}",
                http_status_code=200,
            )
        result.response_time = time.monotonic() - start_time
        return result
