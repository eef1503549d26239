"""
In-process Broadcaster

Used in development mode: change events are fanned out to listeners living
in the same process through asyncio queues. Nothing crosses process
boundaries, so multi-worker setups rely on the polling fallback.
"""

import asyncio
import logging
from typing import AsyncIterator

from app.services.realtime.base import BaseBroadcaster, SettingsChange

logger = logging.getLogger(__name__)


class LocalBroadcaster(BaseBroadcaster):
    """Queue-based fan-out broadcaster."""

    def __init__(self):
        self._queues: set[asyncio.Queue] = set()
        logger.info("LocalBroadcaster initialized")

    @property
    def provider_name(self) -> str:
        return "local"

    @property
    def listener_count(self) -> int:
        return len(self._queues)

    async def publish(self, change: SettingsChange) -> None:
        for queue in list(self._queues):
            queue.put_nowait(change)
        logger.debug(f"Local: published change for {change.key} to {len(self._queues)} listener(s)")

    def listen(self) -> AsyncIterator[SettingsChange]:
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.add(queue)
        return self._drain(queue)

    async def _drain(self, queue: asyncio.Queue) -> AsyncIterator[SettingsChange]:
        try:
            while True:
                yield await queue.get()
        finally:
            self._queues.discard(queue)

    async def health_check(self) -> bool:
        return True
