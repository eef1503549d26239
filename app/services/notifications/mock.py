"""
Recording Notification Service

Development stand-in for Twilio/SendGrid. Nothing leaves the process:
each message is logged and appended to ``sent`` so tests and the
development console can see what customers and staff would receive.
"""

import asyncio
import logging
import random
import uuid
from typing import Optional

from app.services.notifications.base import BaseNotificationService, NotificationResult

logger = logging.getLogger(__name__)


class MockNotificationService(BaseNotificationService):
    """
    Records messages instead of sending them.

    ``failure_rate`` makes a share of sends fail; the latency bounds add a
    random delay to each send.
    """

    def __init__(self, failure_rate: float = 0.0, min_latency: float = 0.0, max_latency: float = 0.0):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.sent: list[dict] = []

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _deliver(self, channel: str, to: str, record: dict) -> NotificationResult:
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

        if random.random() < self.failure_rate:
            logger.warning(f"Mock {channel} to {to} failed (simulated)")
            return NotificationResult(
                success=False,
                error_message=f"Simulated {'SMS' if channel == 'sms' else channel} failure",
                provider="mock",
            )

        message_id = f"{channel}_mock_{uuid.uuid4().hex[:12]}"
        self.sent.append({"channel": channel, "to": to, "id": message_id, **record})
        logger.info(f"Mock {channel} {message_id} to {to}")
        return NotificationResult(success=True, message_id=message_id, provider="mock")

    async def send_sms(self, to_phone: str, message: str) -> NotificationResult:
        return await self._deliver("sms", to_phone, {"body": message})

    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        return await self._deliver("email", to_email, {"subject": subject, "body": body_text or body_html})

    async def health_check(self) -> bool:
        return True
