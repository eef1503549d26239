"""
Broadcaster Factory

Returns the in-process or Redis broadcaster based on ENV_MODE.
"""

import logging
from functools import lru_cache

from app.core.config import get_settings
from app.services.realtime.base import BaseBroadcaster, SettingsChange
from app.services.realtime.local import LocalBroadcaster
from app.services.realtime.redis_broadcaster import RedisBroadcaster

logger = logging.getLogger(__name__)


@lru_cache()
def get_broadcaster() -> BaseBroadcaster:
    """Get the configured broadcaster."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Broadcaster: Using LocalBroadcaster (development mode)")
        return LocalBroadcaster()

    logger.info(f"Broadcaster: Using RedisBroadcaster ({settings.env_mode.value} mode)")
    return RedisBroadcaster(settings.redis_url, channel=settings.settings_channel)


def reset_broadcaster() -> None:
    """Clear the cached broadcaster instance."""
    get_broadcaster.cache_clear()


__all__ = [
    "get_broadcaster",
    "reset_broadcaster",
    "BaseBroadcaster",
    "SettingsChange",
    "LocalBroadcaster",
    "RedisBroadcaster",
]
