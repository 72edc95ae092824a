"""
Concurrent fan-out/fan-in helpers used to query many instances at once.

Every branch runs under a shared semaphore and its own timeout, so a single hung
backend can never hold up the collection of the others.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from typing import Hashable, TypeVar

log = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


class FanOutFetcher:
    """
    Runs one coroutine per key concurrently and collects the results keyed by it.
    """

    def __init__(self, max_concurrent: int = 8, timeout: float | None = None):
        """
        Args:
            max_concurrent: Maximum number of branches running at the same time.
            timeout: Per-branch timeout in seconds (None = unbounded).
        """
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self.timeout = timeout

    async def _run_one(
        self,
        key: K,
        fetch: Callable[[K], Awaitable[T]],
        on_error: Callable[[K, Exception], T],
    ) -> tuple[K, T]:
        async with self.semaphore:
            try:
                result = await asyncio.wait_for(fetch(key), timeout=self.timeout)
                return key, result
            except asyncio.TimeoutError as e:
                log.warning(f"Fan-out branch for {key} timed out after {self.timeout}s.")
                return key, on_error(key, e)
            except Exception as e:
                log.warning(f"Fan-out branch for {key} failed: {e}")
                return key, on_error(key, e)

    async def gather(
        self,
        keys: Iterable[K],
        fetch: Callable[[K], Awaitable[T]],
        on_error: Callable[[K, Exception], T],
    ) -> dict[K, T]:
        """
        Fetches every key in parallel.

        Args:
            keys: The keys to fan out over.
            fetch: Coroutine function producing the value for a key.
            on_error: Converts a failure or timeout of one branch into a value.

        Returns:
            Dictionary mapping key -> result, in the order of ``keys``.
        """
        keys = list(keys)
        if not keys:
            return {}

        log.debug(f"Fanning out over {len(keys)} keys...")
        tasks = [self._run_one(key, fetch, on_error) for key in keys]
        results = await asyncio.gather(*tasks)
        return dict(results)

    async def iter_completed(
        self,
        keys: Iterable[K],
        fetch: Callable[[K], Awaitable[T]],
        on_error: Callable[[K, Exception], T],
    ) -> AsyncIterator[tuple[K, T]]:
        """Yields ``(key, result)`` pairs as soon as each branch finishes."""
        tasks = [
            asyncio.ensure_future(self._run_one(key, fetch, on_error)) for key in keys
        ]
        try:
            for next_done in asyncio.as_completed(tasks):
                yield await next_done
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
