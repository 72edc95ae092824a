"""
An in-memory, time-expiring response cache shared by the service clients.

All reads and writes of the internal map go through a single asyncio lock, so
callers never observe a torn entry. Expired entries are purged on access and by a
periodic background sweep. Concurrent ``get_or_fetch`` calls for the same key share
a single in-flight fetch.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, TypeVar
from uuid import UUID

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL = 60.0
SWEEP_INTERVAL = 60.0


@dataclass(frozen=True)
class CacheEntry:
    """An immutable cached payload. Replaced wholesale on re-set."""

    payload: Any
    value_type: Any
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


@dataclass
class _Flight:
    task: asyncio.Task
    waiters: int = field(default=0)


def _type_matches(entry: CacheEntry, expected_type: Any) -> bool:
    # Exact token match, so True never comes back as an int.
    return expected_type is object or entry.value_type == expected_type


class CacheKeys:
    """Deterministic cache keys, one namespace per operation kind."""

    @staticmethod
    def search(namespace: UUID | str, query: str, page: int = 1) -> str:
        return f"search:{namespace}:{page}:{query.strip().lower()}"

    @staticmethod
    def discover(namespace: UUID | str, kind: str, page: int = 1) -> str:
        return f"discover-{kind}:{namespace}:{page}"

    @staticmethod
    def library(namespace: UUID | str, resource: str) -> str:
        return f"library-{resource}:{namespace}"

    @staticmethod
    def quality_profiles(namespace: UUID | str) -> str:
        return f"qualityprofiles:{namespace}"

    @staticmethod
    def root_folders(namespace: UUID | str) -> str:
        return f"rootfolders:{namespace}"


class ResponseCache:
    """
    Key-value memoization with per-entry TTL, type-checked reads and a periodic sweep.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        sweep_interval: float = SWEEP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initializes the cache.

        Args:
            default_ttl: Lifetime in seconds of entries set without an explicit ttl.
            sweep_interval: Seconds between two background sweeps.
            clock: Monotonic time source, injectable for tests.
        """
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, _Flight] = {}
        self._lock = asyncio.Lock()
        self._cleanup_task: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    async def get(self, key: str, expected_type: Any = object) -> Any | None:
        """
        Returns the cached value for ``key``, or None when it is absent, expired,
        or was stored with a type other than ``expected_type``.
        """
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            if not _type_matches(entry, expected_type):
                log.debug(f"Cache type mismatch for key '{key}'.")
                return None
            return entry.payload

    async def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        value_type: Any = None,
    ) -> None:
        """Stores ``value`` under ``key``, replacing any previous entry."""
        entry = CacheEntry(
            payload=value,
            value_type=value_type if value_type is not None else type(value),
            created_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )
        async with self._lock:
            self._entries[key] = entry

    async def remove(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def remove_all(self) -> None:
        async with self._lock:
            self._entries.clear()

    async def remove_expired(self) -> int:
        """Purges every expired entry and returns how many were removed."""
        async with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            log.debug(f"Cache cleanup: removed {len(expired)} expired entries.")
        return len(expired)

    async def get_or_fetch(
        self,
        key: str,
        expected_type: Any,
        fetch: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        """
        Returns the cached value or runs ``fetch`` once for all concurrent callers.

        The fetch result is committed in one step after it completes, so a
        cancelled fetch leaves nothing behind. The shared fetch is cancelled only
        when every caller waiting on it has gone away.
        """
        cached = await self.get(key, expected_type)
        if cached is not None:
            return cached

        async with self._lock:
            flight = self._in_flight.get(key)
            if flight is None or flight.task.done():
                flight = _Flight(
                    asyncio.create_task(
                        self._fetch_and_store(key, expected_type, fetch, ttl)
                    )
                )
                self._in_flight[key] = flight
            flight.waiters += 1

        try:
            return await asyncio.shield(flight.task)
        finally:
            flight.waiters -= 1
            if flight.waiters == 0 and not flight.task.done():
                flight.task.cancel()

    async def _fetch_and_store(
        self,
        key: str,
        expected_type: Any,
        fetch: Callable[[], Awaitable[T]],
        ttl: float | None,
    ) -> T:
        try:
            value = await fetch()
            await self.set(key, value, ttl=ttl, value_type=expected_type)
            return value
        finally:
            flight = self._in_flight.get(key)
            if flight is not None and flight.task is asyncio.current_task():
                del self._in_flight[key]

    async def start_background_cleanup(self) -> None:
        """Starts the periodic background cleanup task."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            log.debug("Started cache background cleanup task.")

    async def _cleanup_loop(self) -> None:
        """Runs the cleanup logic periodically in the background."""
        while True:
            try:
                await asyncio.sleep(self.sweep_interval)
                await self.remove_expired()
            except asyncio.CancelledError:
                log.debug("Cache cleanup task cancelled.")
                break
            except Exception as e:
                log.warning(f"Error in cache cleanup loop: {e}")

    async def stop_background_cleanup(self) -> None:
        """Stops the background cleanup task gracefully."""
        if self._cleanup_task and not self._cleanup_task.done():
            self._cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._cleanup_task
            log.debug("Stopped cache background cleanup task.")
