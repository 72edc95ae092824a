"""
Keeps at most one in-flight task per logical slot (e.g. "search").

Submitting new work to a slot cancels the task currently running there, so a
result computed for a stale input can never be delivered after a newer one.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

from mediahub.exceptions import FetchSupersededError

log = logging.getLogger(__name__)

T = TypeVar("T")


class LatestTaskSlot:
    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}

    def is_running(self, slot: str) -> bool:
        task = self._tasks.get(slot)
        return task is not None and not task.done()

    async def run(self, slot: str, coro: Coroutine[Any, Any, T]) -> T:
        """
        Runs ``coro`` as the current task of ``slot`` and returns its result.

        Raises:
            FetchSupersededError: If a newer submission to the same slot cancelled
                this one before it completed.
        """
        previous = self._tasks.get(slot)
        if previous is not None and not previous.done():
            log.debug(f"Cancelling superseded task in slot '{slot}'.")
            previous.cancel()

        task = asyncio.create_task(coro)
        self._tasks[slot] = task
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            # Only translate cancellations of the inner task, not of the caller.
            if task.cancelled() and (current is None or current.cancelling() == 0):
                raise FetchSupersededError(
                    f"A newer '{slot}' request replaced this one."
                ) from None
            task.cancel()
            raise
        finally:
            if self._tasks.get(slot) is task:
                del self._tasks[slot]

    async def cancel_all(self) -> None:
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
