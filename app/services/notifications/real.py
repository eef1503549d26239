"""
Twilio / SendGrid Notifications

Order confirmations and staff alerts go out as Twilio SMS and SendGrid
email. A channel without credentials is skipped with a failed result, so a
deployment can run with only one of them.

Both SDKs block; every call is made from a worker thread.
"""

import asyncio
import logging
from typing import Optional

from python_http_client.exceptions import HTTPError as SendGridHTTPError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail
from twilio.base.exceptions import TwilioException
from twilio.rest import Client as TwilioClient

from app.core.config import Settings, get_settings
from app.services.notifications.base import BaseNotificationService, NotificationResult

logger = logging.getLogger(__name__)

SENDGRID_ACCEPTED = (200, 201, 202)


class RealNotificationService(BaseNotificationService):
    """SMS through Twilio, email through SendGrid."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()

        self.twilio_client: Optional[TwilioClient] = None
        self.sms_sender = settings.twilio_phone_number
        if settings.twilio_account_sid and settings.twilio_auth_token:
            self.twilio_client = TwilioClient(settings.twilio_account_sid, settings.twilio_auth_token)
        else:
            logger.warning("Twilio credentials missing: order SMS disabled")

        self.sendgrid_client: Optional[SendGridAPIClient] = None
        self.email_sender = settings.sendgrid_from_email
        if settings.sendgrid_api_key:
            self.sendgrid_client = SendGridAPIClient(settings.sendgrid_api_key)
        else:
            logger.warning("SendGrid API key missing: order emails disabled")

    @property
    def provider_name(self) -> str:
        return "twilio+sendgrid"

    async def send_sms(self, to_phone: str, message: str) -> NotificationResult:
        if self.twilio_client is None:
            return NotificationResult(success=False, error_message="Twilio not configured", provider="twilio")

        try:
            sms = await asyncio.to_thread(
                self.twilio_client.messages.create,
                body=message,
                from_=self.sms_sender,
                to=to_phone,
            )
        except TwilioException as e:
            logger.error(f"SMS to {to_phone} refused by Twilio: {e}")
            return NotificationResult(success=False, error_message=str(e), provider="twilio")

        logger.info(f"SMS {sms.sid} queued for {to_phone}")
        return NotificationResult(success=True, message_id=sms.sid, provider="twilio")

    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        if self.sendgrid_client is None:
            return NotificationResult(success=False, error_message="SendGrid not configured", provider="sendgrid")

        mail = Mail(
            from_email=self.email_sender,
            to_emails=to_email,
            subject=subject,
            html_content=body_html,
            plain_text_content=body_text,
        )
        try:
            response = await asyncio.to_thread(self.sendgrid_client.send, mail)
        except SendGridHTTPError as e:
            logger.error(f"Email '{subject}' to {to_email} refused by SendGrid: {e}")
            return NotificationResult(success=False, error_message=str(e), provider="sendgrid")

        accepted = response.status_code in SENDGRID_ACCEPTED
        logger.info(f"Email '{subject}' to {to_email}: HTTP {response.status_code}")
        return NotificationResult(
            success=accepted,
            message_id=response.headers.get("X-Message-Id"),
            error_message=None if accepted else f"SendGrid answered {response.status_code}",
            provider="sendgrid",
        )

    async def health_check(self) -> bool:
        """At least one channel has credentials."""
        return self.twilio_client is not None or self.sendgrid_client is not None
