"""
Resolves configured instances into bound service clients and fans work out
across them.

The orchestrator is the only place that knows which client class serves which
service type. Callers ask it for a client (or for a batch operation over every
instance) and receive typed clients or results keyed by instance id.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID

import aiohttp

from mediahub.api.base import USER_AGENT, CacheTTLs, ServiceClient
from mediahub.api.overseerr import OverseerrClient
from mediahub.api.qbittorrent import QBittorrentClient
from mediahub.api.radarr import RadarrClient
from mediahub.api.sonarr import SonarrClient
from mediahub.api.tmdb import TMDBClient
from mediahub.exceptions import (
    CredentialMissingError,
    LocalMisconfigurationError,
    RequestTimeoutError,
)
from mediahub.models.config import AppConfig
from mediahub.models.instance import ConnectionTestResult, ServiceInstance, ServiceType
from mediahub.models.overseerr import MediaRequest, MediaType, SearchResult, SearchResults
from mediahub.models.qbittorrent import Torrent
from mediahub.storage.cache import ResponseCache
from mediahub.storage.credentials import CredentialStore
from mediahub.storage.registry import InstanceRegistry
from mediahub.utils.fan_out import FanOutFetcher
from mediahub.utils.structured_logger import APILogger, ConnectionLogger

from .task_slot import LatestTaskSlot

log = logging.getLogger(__name__)

MISSING_CREDENTIALS = "Missing credentials"
STORAGE_TYPES = (ServiceType.RADARR, ServiceType.SONARR, ServiceType.QBITTORRENT)


@dataclass(frozen=True)
class DiskSpace:
    path: str | None
    free_space: int | None
    total_space: int | None = None


@dataclass
class StorageInfo:
    """Free disk space reported by one instance, in bytes."""

    instance: ServiceInstance
    disks: list[DiskSpace] = field(default_factory=list)
    error: str | None = None

    @property
    def free_space(self) -> int | None:
        known = [d.free_space for d in self.disks if d.free_space is not None]
        return min(known) if known else None


class OutcomeStatus(str, Enum):
    NOT_CONFIGURED = "not_configured"
    NOT_FOUND = "not_found"
    ALREADY_AVAILABLE = "already_available"
    ALREADY_REQUESTED = "already_requested"
    CREATED = "created"


@dataclass
class RequestOutcome:
    """Result of the search-then-request flow."""

    status: OutcomeStatus
    query: str
    result: SearchResult | None = None
    request: MediaRequest | None = None

    @property
    def message(self) -> str:
        if self.status is OutcomeStatus.NOT_CONFIGURED:
            return "No Overseerr instance is configured."
        if self.status is OutcomeStatus.NOT_FOUND:
            return f'Nothing found for "{self.query}".'
        title = self.result.display_title
        year = self.result.display_year
        label = f"{title} ({year})" if year else title
        if self.status is OutcomeStatus.ALREADY_AVAILABLE:
            return f"{label} is already available in your library."
        if self.status is OutcomeStatus.ALREADY_REQUESTED:
            return f"{label} has already been requested."
        state = "approved" if self.request.is_approved else "pending approval"
        return f"{label} was requested. Status: {state}."


class InstanceOrchestrator:
    """
    Binds instances to clients and runs batch operations over them.

    Clients share one HTTP session and are pooled per instance. A pooled client is
    replaced as soon as the instance URL or its credentials change.
    """

    CLIENT_CLASSES: dict[ServiceType, type[ServiceClient]] = {
        ServiceType.OVERSEERR: OverseerrClient,
        ServiceType.RADARR: RadarrClient,
        ServiceType.SONARR: SonarrClient,
        ServiceType.QBITTORRENT: QBittorrentClient,
    }

    def __init__(
        self,
        registry: InstanceRegistry,
        credentials: CredentialStore,
        cache: ResponseCache,
        config: AppConfig,
        api_logger: APILogger | None = None,
        connection_logger: ConnectionLogger | None = None,
    ):
        self.registry = registry
        self.credentials = credentials
        self.cache = cache
        self.config = config
        self._api_logger = api_logger
        self._connection_logger = connection_logger
        self._session: aiohttp.ClientSession | None = None
        self._clients: dict[UUID, tuple[tuple, ServiceClient]] = {}
        self._slots = LatestTaskSlot()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.config.max_concurrent_requests * 2,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            # qBittorrent session ids are sent explicitly per client, so the shared
            # session must not mix cookies between instances.
            self._session = aiohttp.ClientSession(
                connector=connector,
                cookie_jar=aiohttp.DummyCookieJar(),
                headers={"User-Agent": USER_AGENT},
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout),
            )
        return self._session

    async def close(self) -> None:
        """Cancels pending searches and closes the shared HTTP session."""
        await self._slots.cancel_all()
        for _, client in self._clients.values():
            await client.close()
        self._clients.clear()
        if self._session and not self._session.closed:
            await self._session.close()

    # Client resolution

    async def _resolve_credentials(self, instance: ServiceInstance) -> tuple | None:
        if instance.service_type.uses_api_key:
            api_key = await self.credentials.get_api_key(instance.id)
            if not api_key or not api_key.strip():
                return None
            return (api_key.strip(),)
        credentials = await self.credentials.get_credentials(instance.id)
        if credentials is None or not credentials[0]:
            return None
        return credentials

    def _client_kwargs(self) -> dict[str, Any]:
        return {
            "timeout": self.config.request_timeout,
            "cache": self.cache,
            "cache_ttls": CacheTTLs.from_config(self.config),
            "api_logger": self._api_logger,
        }

    async def client_for(self, instance: ServiceInstance) -> ServiceClient | None:
        """
        Returns a client bound to ``instance``, or None when its credentials are
        missing.

        Raises:
            InvalidURLError: If the instance base URL is malformed.
        """
        credentials = await self._resolve_credentials(instance)
        if credentials is None:
            return None

        fingerprint = (instance.service_type, instance.base_url, credentials)
        pooled = self._clients.get(instance.id)
        if pooled is not None and pooled[0] == fingerprint:
            return pooled[1]

        client_class = self.CLIENT_CLASSES[instance.service_type]
        client = client_class(
            instance.base_url,
            *credentials,
            session=await self._get_session(),
            cache_namespace=instance.id,
            **self._client_kwargs(),
        )
        if pooled is not None:
            await pooled[1].close()
        self._clients[instance.id] = (fingerprint, client)
        return client

    async def _typed_client(
        self, instance: ServiceInstance, service_type: ServiceType
    ) -> Any:
        if instance.service_type is not service_type:
            return None
        return await self.client_for(instance)

    async def overseerr_client(self, instance: ServiceInstance) -> OverseerrClient | None:
        return await self._typed_client(instance, ServiceType.OVERSEERR)

    async def radarr_client(self, instance: ServiceInstance) -> RadarrClient | None:
        return await self._typed_client(instance, ServiceType.RADARR)

    async def sonarr_client(self, instance: ServiceInstance) -> SonarrClient | None:
        return await self._typed_client(instance, ServiceType.SONARR)

    async def qbittorrent_client(
        self, instance: ServiceInstance
    ) -> QBittorrentClient | None:
        return await self._typed_client(instance, ServiceType.QBITTORRENT)

    async def require_client(self, instance: ServiceInstance) -> ServiceClient:
        """Like ``client_for`` but raises ``CredentialMissingError`` on absence."""
        client = await self.client_for(instance)
        if client is None:
            raise CredentialMissingError(
                f"No credentials stored for '{instance.name}'."
            )
        return client

    def _forget_client(self, instance_id: UUID) -> ServiceClient | None:
        pooled = self._clients.pop(instance_id, None)
        return pooled[1] if pooled else None

    # Instance management

    @staticmethod
    def _check_credentials(
        instance: ServiceInstance,
        api_key: str | None,
        username: str | None,
        password: str | None,
    ) -> None:
        """
        Rejects secrets that do not match the instance's service type.

        ``None`` means "not given". Anything given must be the complete, non-blank
        set of secrets the service type authenticates with.

        Raises:
            LocalMisconfigurationError: On a mismatched, partial or blank secret.
        """
        kind = instance.service_type.display_name
        if instance.service_type.uses_api_key:
            if username is not None or password is not None:
                raise LocalMisconfigurationError(
                    f"{kind} authenticates with an API key, not a username and password."
                )
            if api_key is not None and not api_key.strip():
                raise LocalMisconfigurationError(f"The {kind} API key cannot be empty.")
            return
        if api_key is not None:
            raise LocalMisconfigurationError(
                f"{kind} authenticates with a username and password, not an API key."
            )
        if (username is None) != (password is None):
            raise LocalMisconfigurationError(
                f"{kind} needs both a username and a password."
            )
        if username is not None and not username.strip():
            raise LocalMisconfigurationError(f"The {kind} username cannot be empty.")

    async def _store_credentials(
        self,
        instance: ServiceInstance,
        api_key: str | None,
        username: str | None,
        password: str | None,
    ) -> None:
        if api_key is not None:
            await self.credentials.save_api_key(api_key.strip(), instance.id)
        if username is not None and password is not None:
            await self.credentials.save_credentials(username, password, instance.id)

    async def add_instance(
        self,
        instance: ServiceInstance,
        api_key: str | None = None,
        username: str | None = None,
        password: str | None = None,
    ) -> ServiceInstance:
        """Registers an instance and stores the secrets its service type needs."""
        self._check_credentials(instance, api_key, username, password)
        await self._store_credentials(instance, api_key, username, password)
        return await self.registry.add_instance(instance)

    async def update_instance(
        self,
        instance: ServiceInstance,
        api_key: str | None = None,
        username: str | None = None,
        password: str | None = None,
    ) -> None:
        self._check_credentials(instance, api_key, username, password)
        await self._store_credentials(instance, api_key, username, password)
        await self.registry.update_instance(instance)
        client = self._forget_client(instance.id)
        if client is not None:
            await client.close()

    async def delete_instance(self, instance: ServiceInstance) -> None:
        """Removes the instance, its credentials and its pooled client."""
        await self.registry.delete_instance(instance)
        client = self._forget_client(instance.id)
        if client is not None:
            await client.close()

    # Connection tests

    async def test_connection(self, instance: ServiceInstance) -> ConnectionTestResult:
        """
        Tests one instance. Never raises.

        Missing credentials are reported without any network I/O.
        """
        try:
            client = await self.client_for(instance)
        except LocalMisconfigurationError as e:
            result = ConnectionTestResult.from_error(e)
        else:
            if client is None:
                result = ConnectionTestResult(
                    success=False,
                    message=MISSING_CREDENTIALS,
                    recovery_suggestion=CredentialMissingError.recovery_suggestion,
                )
            else:
                result = await client.test_connection()

        if self._connection_logger:
            self._connection_logger.test_completed(
                instance.name,
                instance.service_type.value,
                result.success,
                result.message,
                result.response_time,
            )
        return result

    def _test_failure_handler(self, timeout: float):
        """Renders a failed or timed-out branch of a batch test into a result."""

        def on_error(_key: Any, error: Exception) -> ConnectionTestResult:
            if isinstance(error, asyncio.TimeoutError):
                return ConnectionTestResult(
                    success=False,
                    message=f"Connection test timed out after {timeout:g}s",
                    recovery_suggestion=RequestTimeoutError.recovery_suggestion,
                )
            return ConnectionTestResult.from_error(error)

        return on_error

    def _batch_fetcher(self, timeout: float | None = None) -> FanOutFetcher:
        return FanOutFetcher(
            max_concurrent=self.config.max_concurrent_requests,
            timeout=timeout if timeout is not None else self.config.connection_test_timeout,
        )

    def _default_test_targets(self) -> list[ServiceInstance]:
        return [i for i in self.registry.instances if i.is_enabled]

    async def test_connections(
        self,
        instances: list[ServiceInstance] | None = None,
        timeout: float | None = None,
    ) -> dict[UUID, ConnectionTestResult]:
        """
        Tests every instance concurrently and returns the results keyed by id.

        Each test is bounded by ``connection_test_timeout``, so one hung backend
        only costs its own slot.
        """
        targets = instances if instances is not None else self._default_test_targets()
        by_id = {i.id: i for i in targets}
        start_time = time.monotonic()

        async def run(instance_id: UUID) -> ConnectionTestResult:
            return await self.test_connection(by_id[instance_id])

        fetcher = self._batch_fetcher(timeout)
        results = await fetcher.gather(
            by_id, run, self._test_failure_handler(fetcher.timeout)
        )
        if self._connection_logger:
            self._connection_logger.batch_completed(
                len(results),
                sum(1 for r in results.values() if r.success),
                time.monotonic() - start_time,
            )
        return results

    async def iter_connection_tests(
        self,
        instances: list[ServiceInstance] | None = None,
        timeout: float | None = None,
    ) -> AsyncIterator[tuple[ServiceInstance, ConnectionTestResult]]:
        """Like ``test_connections`` but yields each result as soon as it arrives."""
        targets = instances if instances is not None else self._default_test_targets()
        by_id = {i.id: i for i in targets}

        async def run(instance_id: UUID) -> ConnectionTestResult:
            return await self.test_connection(by_id[instance_id])

        fetcher = self._batch_fetcher(timeout)
        async for instance_id, result in fetcher.iter_completed(
            by_id, run, self._test_failure_handler(fetcher.timeout)
        ):
            yield by_id[instance_id], result

    # Fan-out queries

    async def _storage_for(self, instance: ServiceInstance) -> StorageInfo:
        client = await self.require_client(instance)
        if isinstance(client, QBittorrentClient):
            state = (await client.main_data()).server_state
            free = state.free_space_on_disk if state else None
            return StorageInfo(instance, [DiskSpace(None, free)])
        folders = await client.list_root_folders()
        return StorageInfo(
            instance,
            [DiskSpace(f.path, f.free_space, f.total_space) for f in folders],
        )

    async def storage_info_all(self) -> dict[UUID, StorageInfo]:
        """Queries free space on every library manager and torrent client at once."""
        targets = {
            i.id: i
            for service_type in STORAGE_TYPES
            for i in self.registry.instances_of_type(service_type)
        }

        async def run(instance_id: UUID) -> StorageInfo:
            return await self._storage_for(targets[instance_id])

        def on_error(instance_id: UUID, error: Exception) -> StorageInfo:
            message = "timed out" if isinstance(error, asyncio.TimeoutError) else str(error)
            return StorageInfo(targets[instance_id], error=message)

        fetcher = FanOutFetcher(
            self.config.max_concurrent_requests, self.config.request_timeout
        )
        return await fetcher.gather(targets, run, on_error)

    async def all_torrents(self) -> dict[UUID, list[Torrent]]:
        """Lists torrents of every qBittorrent instance. Failed instances map to []."""
        targets = {
            i.id: i for i in self.registry.instances_of_type(ServiceType.QBITTORRENT)
        }

        async def run(instance_id: UUID) -> list[Torrent]:
            client = await self.require_client(targets[instance_id])
            return await client.list_torrents()

        fetcher = FanOutFetcher(
            self.config.max_concurrent_requests, self.config.request_timeout
        )
        return await fetcher.gather(targets, run, lambda _id, _e: [])

    async def all_library_items(self, service_type: ServiceType) -> dict[UUID, list]:
        """Lists the library of every Radarr or Sonarr instance."""
        if service_type not in (ServiceType.RADARR, ServiceType.SONARR):
            raise ValueError(f"{service_type.display_name} has no library.")
        targets = {i.id: i for i in self.registry.instances_of_type(service_type)}

        async def run(instance_id: UUID) -> list:
            client = await self.require_client(targets[instance_id])
            return await client.list_library()

        fetcher = FanOutFetcher(
            self.config.max_concurrent_requests, self.config.request_timeout
        )
        return await fetcher.gather(targets, run, lambda _id, _e: [])

    # TMDB

    async def save_tmdb_api_key(self, api_key: str) -> None:
        await self.credentials.save_tmdb_api_key(api_key)

    async def tmdb_client(self) -> TMDBClient | None:
        api_key = await self.credentials.get_tmdb_api_key()
        if not api_key:
            return None
        return TMDBClient(
            api_key,
            language=self.config.tmdb_language,
            session=await self._get_session(),
            **self._client_kwargs(),
        )

    async def test_tmdb_connection(self) -> ConnectionTestResult:
        client = await self.tmdb_client()
        if client is None:
            return ConnectionTestResult(
                success=False,
                message="Missing TMDB API key",
                recovery_suggestion="Set a TMDB API key with 'mediahub tmdb-key'.",
            )
        return await client.test_connection()

    # Search & request

    async def primary_overseerr_client(self) -> OverseerrClient | None:
        instance = self.registry.primary_overseerr
        if instance is None:
            return None
        return await self.overseerr_client(instance)

    async def search(self, query: str, page: int = 1) -> SearchResults:
        """
        Searches through the primary Overseerr instance.

        A newer search cancels one still in flight; its caller receives
        ``FetchSupersededError``.
        """
        client = await self.primary_overseerr_client()
        if client is None:
            raise CredentialMissingError("No Overseerr instance is configured.")
        return await self._slots.run("search", client.search(query, page))

    async def search_and_request(
        self, title: str, media_type: MediaType | None = None
    ) -> RequestOutcome:
        """
        Searches ``title`` and requests the best match unless it is already
        available or requested. Duplicate detection beyond that is left to Overseerr.
        """
        client = await self.primary_overseerr_client()
        if client is None:
            return RequestOutcome(OutcomeStatus.NOT_CONFIGURED, title)

        results = await client.search(title)
        candidates = [
            r
            for r in results.results
            if r.resolved_media_type in (MediaType.MOVIE, MediaType.TV)
            and r.media_type is not MediaType.PERSON
        ]
        if media_type is not None:
            candidates = [r for r in candidates if r.resolved_media_type is media_type]
        if not candidates:
            return RequestOutcome(OutcomeStatus.NOT_FOUND, title)

        best = candidates[0]
        if best.media_info is not None:
            if best.media_info.is_available:
                return RequestOutcome(OutcomeStatus.ALREADY_AVAILABLE, title, best)
            if best.media_info.is_requested:
                return RequestOutcome(OutcomeStatus.ALREADY_REQUESTED, title, best)

        request = await client.create_request(best.resolved_media_type, best.id)
        log.info(f"Requested '{best.display_title}' (status {request.status.name}).")
        return RequestOutcome(OutcomeStatus.CREATED, title, best, request)
