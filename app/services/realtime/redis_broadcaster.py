"""
Redis Broadcaster

Production implementation publishing settings change events on a Redis
pub/sub channel. Every API worker subscribes to the same channel.

Requirements:
    - REDIS_URL must point to a reachable Redis server
"""

import json
import logging
from typing import AsyncIterator

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.services.realtime.base import BaseBroadcaster, SettingsChange

logger = logging.getLogger(__name__)


class RedisBroadcaster(BaseBroadcaster):
    """
    Pub/sub broadcaster backed by Redis.

    Example:
        >>> broadcaster = RedisBroadcaster("redis://localhost:6379/0")
        >>> await broadcaster.publish(SettingsChange(key="heroContent", origin="a1"))
    """

    def __init__(self, redis_url: str, channel: str = "settings:changes"):
        self._redis = aioredis.from_url(redis_url, decode_responses=True)
        self.channel = channel
        logger.info(f"RedisBroadcaster initialized (channel={channel})")

    @property
    def provider_name(self) -> str:
        return "redis"

    async def publish(self, change: SettingsChange) -> None:
        receivers = await self._redis.publish(self.channel, json.dumps(change.to_dict()))
        logger.debug(f"Redis: published change for {change.key} ({receivers} receiver(s))")

    def listen(self) -> AsyncIterator[SettingsChange]:
        """Subscribes to the channel on the first iteration."""
        return self._listen()

    async def _listen(self) -> AsyncIterator[SettingsChange]:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self.channel)
        logger.info(f"Redis: subscribed to {self.channel}")

        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    payload = json.loads(message["data"])
                    yield SettingsChange(key=payload["key"], origin=payload.get("origin", ""))
                except (ValueError, KeyError, TypeError):
                    logger.warning(f"Redis: ignoring malformed event {message.get('data')!r}")
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()

    async def health_check(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            logger.error(f"Redis: Health check failed - {e}")
            return False

    async def close(self) -> None:
        await self._redis.aclose()
