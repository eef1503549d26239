"""
Customer and staff messaging.

``get_notification_service()`` hands out the process-wide sender: the
recording mock in development, Twilio/SendGrid in staging and production.
"""

import logging
from functools import lru_cache

from app.core.config import get_settings
from app.services.notifications.base import BaseNotificationService, NotificationResult, OrderSummary
from app.services.notifications.mock import MockNotificationService
from app.services.notifications.real import RealNotificationService

logger = logging.getLogger(__name__)


@lru_cache()
def get_notification_service() -> BaseNotificationService:
    settings = get_settings()

    if settings.is_development:
        service: BaseNotificationService = MockNotificationService(
            failure_rate=0.05, min_latency=0.1, max_latency=0.3
        )
    else:
        service = RealNotificationService(settings)

    logger.info(f"Order messages sent through '{service.provider_name}' ({settings.env_mode.value})")
    return service


def reset_notification_service() -> None:
    get_notification_service.cache_clear()


__all__ = [
    "BaseNotificationService",
    "MockNotificationService",
    "NotificationResult",
    "OrderSummary",
    "RealNotificationService",
    "get_notification_service",
    "reset_notification_service",
]
