"""
Settings Store

Key -> JSON store over the ``settings`` table with:
    - write-through upserts (the database is written before the cache)
    - an in-memory cache refreshed per key on write, no TTL, no eviction
    - local subscribers notified on every change
    - change events published on the broadcaster for other processes

Concurrent writers are not coordinated: the last write wins.

Usage:
    store = SettingsStore(async_session_maker, broadcaster=get_broadcaster())
    await store.initialize()

    hero = await store.get("heroContent", {})
    unsubscribe = store.subscribe("heroContent", on_hero_change)
    await store.set("heroContent", {...})
"""

import asyncio
import copy
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import Setting, utcnow
from app.services.realtime.base import BaseBroadcaster, SettingsChange
from app.services.settings_defaults import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

SettingsListener = Callable[[Any], None]


class SettingsWriteError(RuntimeError):
    """A setting could not be persisted."""

    def __init__(self, key: str):
        super().__init__(f"Could not save setting '{key}'")
        self.key = key


class SettingsStore:
    """
    Cached, observable access to the settings table.

    One instance per process; inject it where settings are needed
    (FastAPI keeps it on ``app.state``).
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        broadcaster: Optional[BaseBroadcaster] = None,
        defaults: Optional[dict[str, Any]] = None,
    ):
        self._session_maker = session_maker
        self._broadcaster = broadcaster
        self._defaults = DEFAULT_SETTINGS if defaults is None else defaults
        self._cache: dict[str, Any] = {}
        self._subscribers: dict[str, list[SettingsListener]] = {}
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self.instance_id = uuid.uuid4().hex

    @property
    def initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # INITIALIZATION
    # =========================================================================

    async def initialize(self) -> bool:
        """
        Seed default settings for keys that do not exist yet.

        Safe to call repeatedly and concurrently; only the first call
        touches the database.

        Returns:
            bool: True once the store is initialized
        """
        async with self._init_lock:
            if self._initialized:
                return True

            try:
                async with self._session_maker() as session:
                    existing = set(await session.scalars(select(Setting.key)))
                    missing = [key for key in self._defaults if key not in existing]
                    now = utcnow()
                    for key in missing:
                        session.add(Setting(
                            key=key,
                            value=_to_json(self._defaults[key]),
                            created_at=now,
                            updated_at=now,
                        ))
                    await session.commit()
            except SQLAlchemyError:
                logger.exception("Settings initialization failed")
                return False

            if missing:
                logger.info(f"Seeded {len(missing)} default setting(s): {', '.join(missing)}")
            self._initialized = True
            return True

    # =========================================================================
    # READS
    # =========================================================================

    async def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.

        Returns ``default`` when the key does not exist or the database
        cannot be reached.
        """
        if key in self._cache:
            logger.debug(f"Cache hit for setting: {key}")
            return copy.deepcopy(self._cache[key])

        try:
            async with self._session_maker() as session:
                row = await session.scalar(select(Setting).where(Setting.key == key))
        except SQLAlchemyError:
            logger.exception(f"Error fetching setting '{key}'")
            return default

        if row is None:
            logger.debug(f"Setting '{key}' not found, using default value")
            return default

        self._cache[key] = row.value
        return copy.deepcopy(row.value)

    async def get_many(self, keys: Iterable[str]) -> dict[str, Any]:
        """
        Get several settings, fetching every uncached key in one query.

        Missing keys are absent from the result.
        """
        result: dict[str, Any] = {}
        uncached: list[str] = []

        for key in keys:
            if key in self._cache:
                result[key] = copy.deepcopy(self._cache[key])
            else:
                uncached.append(key)

        if not uncached:
            return result

        logger.debug(f"Fetching {len(uncached)} uncached settings: {uncached}")
        try:
            async with self._session_maker() as session:
                rows = await session.scalars(select(Setting).where(Setting.key.in_(uncached)))
                for row in rows:
                    self._cache[row.key] = row.value
                    result[row.key] = copy.deepcopy(row.value)
        except SQLAlchemyError:
            logger.exception("Error fetching multiple settings")

        return result

    async def snapshot(self) -> dict[str, datetime]:
        """
        Map every key to its ``updated_at``.

        Raises:
            SQLAlchemyError: callers (the poller) decide how to recover
        """
        async with self._session_maker() as session:
            rows = await session.execute(select(Setting.key, Setting.updated_at))
            return {key: updated_at for key, updated_at in rows}

    # =========================================================================
    # WRITES
    # =========================================================================

    async def set(self, key: str, value: Any) -> bool:
        """
        Upsert a setting, refresh its cache entry and notify listeners.

        Returns:
            bool: False if the value is not JSON serializable or the
            database write failed (the cache entry is dropped then)
        """
        try:
            json_value = _to_json(value)
        except (TypeError, ValueError):
            logger.error(f"Setting '{key}' is not JSON serializable")
            return False

        now = utcnow()
        try:
            async with self._session_maker() as session:
                row = await session.scalar(select(Setting).where(Setting.key == key))
                if row is None:
                    session.add(Setting(key=key, value=json_value, created_at=now, updated_at=now))
                else:
                    row.value = json_value
                    row.updated_at = now
                await session.commit()
        except SQLAlchemyError:
            logger.exception(f"Error updating setting '{key}'")
            self._cache.pop(key, None)
            return False

        self._cache[key] = json_value
        logger.info(f"Updated setting '{key}' and refreshed cache")

        self._notify(key, json_value)
        await self._publish(key)
        return True

    async def delete(self, key: str) -> bool:
        """Delete a setting. Returns False if it did not exist or on error."""
        try:
            async with self._session_maker() as session:
                result = await session.execute(delete(Setting).where(Setting.key == key))
                await session.commit()
        except SQLAlchemyError:
            logger.exception(f"Error deleting setting '{key}'")
            return False

        self._cache.pop(key, None)
        if not result.rowcount:
            return False

        self._notify(key, None)
        await self._publish(key)
        return True

    async def refresh(self, key: str) -> Any:
        """
        Re-read a key changed elsewhere and notify listeners if it moved.
        """
        had_entry = key in self._cache
        previous = self._cache.pop(key, None)
        value = await self.get(key)

        if not had_entry or previous != value:
            logger.debug(f"Setting '{key}' changed remotely")
            self._notify(key, value)
        return value

    # =========================================================================
    # CACHE
    # =========================================================================

    def clear_cache(self, key: Optional[str] = None) -> None:
        """Clear cache for a specific key or all keys."""
        if key:
            self._cache.pop(key, None)
            logger.debug(f"Cleared cache for setting: {key}")
        else:
            self._cache.clear()
            logger.debug("Cleared all settings cache")

    def cache_stats(self) -> dict[str, Any]:
        return {"size": len(self._cache), "keys": sorted(self._cache)}

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def subscribe(self, key: str, callback: SettingsListener) -> Callable[[], None]:
        """
        Call ``callback(value)`` whenever ``key`` changes.

        Returns:
            A function removing the subscription
        """
        self._subscribers.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(key)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._subscribers[key]

        return unsubscribe

    def subscriber_count(self, key: str) -> int:
        return len(self._subscribers.get(key, ()))

    def _notify(self, key: str, value: Any) -> None:
        for callback in list(self._subscribers.get(key, ())):
            try:
                callback(copy.deepcopy(value))
            except Exception:
                logger.exception(f"Settings subscriber for '{key}' failed")

    async def _publish(self, key: str) -> None:
        if self._broadcaster is None:
            return
        try:
            await self._broadcaster.publish(SettingsChange(key=key, origin=self.instance_id))
        except Exception as e:
            # Other processes still catch up through polling
            logger.warning(f"Could not broadcast change of '{key}': {e}")


def _to_json(value: Any) -> Any:
    """Normalize a value to plain JSON types (pydantic models included)."""
    if hasattr(value, "model_dump"):
        value = value.model_dump(by_alias=True)
    return json.loads(json.dumps(value))
