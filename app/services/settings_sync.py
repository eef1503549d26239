"""
Settings Sync

Keeps a process's SettingsStore in step with writes made by other processes.

Two mechanisms run side by side:
    - listen(): consumes the broadcaster's push channel and refreshes each
      key announced by another store instance
    - run_polling(): periodically compares every row's ``updated_at`` with
      the last seen value; this is the fallback when the push channel is
      down or events are lost

Neither mechanism retries individual refreshes; the next event or poll
picks up whatever was missed.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from app.services.realtime.base import BaseBroadcaster, SettingsChange
from app.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)


class SettingsSync:
    """
    Background synchronization of a SettingsStore.

    Example:
        >>> sync = SettingsSync(store, broadcaster, poll_interval=30)
        >>> sync.start()
        >>> ...
        >>> await sync.stop()
    """

    def __init__(
        self,
        store: SettingsStore,
        broadcaster: Optional[BaseBroadcaster],
        poll_interval: float = 30.0,
        reconnect_delay: float = 5.0,
    ):
        self._store = store
        self._broadcaster = broadcaster
        self._poll_interval = poll_interval
        self._reconnect_delay = reconnect_delay
        self._last_seen: Optional[dict[str, datetime]] = None
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    # =========================================================================
    # PUSH CHANNEL
    # =========================================================================

    async def handle_change(self, change: SettingsChange) -> bool:
        """
        Apply one change event.

        Returns:
            bool: False for events emitted by our own store
        """
        if change.origin == self._store.instance_id:
            return False

        logger.debug(f"Realtime update for {change.key} from {change.origin}")
        await self._store.refresh(change.key)
        return True

    async def listen(self) -> None:
        """Consume change events until cancelled, reconnecting on failure."""
        if self._broadcaster is None:
            return

        while True:
            try:
                async for change in self._broadcaster.listen():
                    await self.handle_change(change)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    f"Realtime listener failed ({e}); "
                    f"retrying in {self._reconnect_delay}s, polling continues"
                )
            await asyncio.sleep(self._reconnect_delay)

    # =========================================================================
    # POLLING FALLBACK
    # =========================================================================

    async def poll_once(self) -> list[str]:
        """
        Refresh keys whose ``updated_at`` changed since the previous poll.

        The first poll only records the current state.

        Returns:
            Keys that were refreshed (including deleted ones)
        """
        snapshot = await self._store.snapshot()

        if self._last_seen is None:
            self._last_seen = snapshot
            return []

        changed = [key for key, updated_at in snapshot.items() if self._last_seen.get(key) != updated_at]
        changed.extend(key for key in self._last_seen if key not in snapshot)
        self._last_seen = snapshot

        for key in changed:
            await self._store.refresh(key)

        if changed:
            logger.info(f"Polling picked up {len(changed)} changed setting(s): {changed}")
        return changed

    async def run_polling(self) -> None:
        """Poll forever; database errors are logged and the loop goes on."""
        while True:
            try:
                await self.poll_once()
            except SQLAlchemyError as e:
                logger.error(f"Settings poll failed: {e}")
            await asyncio.sleep(self._poll_interval)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """Start the listener and poller as background tasks."""
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self.listen(), name="settings-listen"),
            asyncio.create_task(self.run_polling(), name="settings-poll"),
        ]
        logger.info(
            f"Settings sync started (push={getattr(self._broadcaster, 'provider_name', 'none')}, "
            f"poll every {self._poll_interval}s)"
        )

    async def stop(self) -> None:
        """Cancel the background tasks and wait for them to finish."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Settings sync stopped")
