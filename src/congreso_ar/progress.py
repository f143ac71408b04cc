"""Progress reporting: callback dispatch and a queue-backed event channel.

Scrapers report lifecycle events through a plain callback.  A transport that
wants to *pull* events instead (the server-sent-events endpoint, the CLI) wraps
the scrape in a :class:`ProgressChannel` and iterates it::

    channel = ProgressChannel()
    async for event in channel.run(scraper.scrape(on_progress=channel.publish)):
        ...
    records = channel.result
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine
from typing import Any, Union

from .models import ProgressEvent

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], Union[Awaitable[None], None]]

_DONE = object()


async def emit(callback: ProgressCallback | None, event: ProgressEvent) -> None:
    """Deliver *event* to a sync or async callback (no-op when None)."""
    if callback is None:
        return
    result = callback(event)
    if inspect.isawaitable(result):
        await result


class ProgressChannel:
    """Bounded queue between a running scrape and an event consumer."""

    def __init__(self, maxsize: int = 256) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self.result: Any = None
        self.error: BaseException | None = None

    async def publish(self, event: ProgressEvent) -> None:
        await self._queue.put(event)

    async def run(self, work: Coroutine[Any, Any, Any]) -> AsyncIterator[ProgressEvent]:
        """Run *work* in the background and yield every published event.

        When *work* finishes its return value is stored in :attr:`result`; if
        it raised, the exception is re-raised here after the queued events
        have been drained.
        """

        async def _runner() -> None:
            try:
                self.result = await work
            except Exception as exc:
                self.error = exc
            # Not reached on cancellation: the consumer is already gone.
            await self._queue.put(_DONE)

        task = asyncio.create_task(_runner())
        try:
            while True:
                item = await self._queue.get()
                if item is _DONE:
                    break
                yield item
        finally:
            if not task.done():
                LOGGER.info("Progress consumer went away; cancelling scrape")
                task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if self.error is not None:
            raise self.error
