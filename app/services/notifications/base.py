"""
Notification Service Abstract Base Class

Defines the interface for outbound SMS and email: order confirmations to
customers and new-order alerts to staff. Mock (development) and real
(Twilio / SendGrid) implementations share the message texts below.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class NotificationResult:
    """Result from sending a notification."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


@dataclass
class OrderSummary:
    """What the outbound messages need to know about an order."""
    order_id: int
    customer_name: str
    customer_phone: str
    order_type: str
    total_amount: float
    items_summary: str
    customer_email: Optional[str] = None
    delivery_address: Optional[str] = None
    estimated_time: Optional[str] = None


def confirmation_text(order: OrderSummary, restaurant_name: str) -> str:
    if order.order_type == "pickup":
        details = "Pickup at the restaurant"
    else:
        details = f"Delivery to: {order.delivery_address}"
    if order.estimated_time:
        details += f" ({order.estimated_time})"

    return (
        f"Hi {order.customer_name}! Your order #{order.order_id} has been received.\n"
        f"{details}\n"
        f"Total: €{order.total_amount:.2f}\n"
        f"Thank you for ordering from {restaurant_name}!"
    )


def staff_alert_text(order: OrderSummary) -> str:
    where = order.delivery_address if order.order_type == "delivery" else "pickup"
    return (
        f"New order #{order.order_id} from {order.customer_name} ({order.customer_phone})\n"
        f"{order.items_summary}\n"
        f"{where} - €{order.total_amount:.2f}"
    )


class BaseNotificationService(ABC):
    """Abstract base class for notification services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def send_sms(self, to_phone: str, message: str) -> NotificationResult:
        """Send an SMS message."""
        pass

    @abstractmethod
    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        """Send an email."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass

    async def send_order_confirmation(
        self,
        order: OrderSummary,
        restaurant_name: str,
    ) -> NotificationResult:
        """Confirm an order to the customer by SMS, plus email when known."""
        message = confirmation_text(order, restaurant_name)

        sms_result = await self.send_sms(order.customer_phone, message)

        email_result = None
        if order.customer_email:
            email_result = await self.send_email(
                to_email=order.customer_email,
                subject=f"Order #{order.order_id} - {restaurant_name}",
                body_html=f"<h1>Order received</h1><p>{message.replace(chr(10), '<br>')}</p>",
                body_text=message,
            )

        return NotificationResult(
            success=sms_result.success or bool(email_result and email_result.success),
            message_id=sms_result.message_id,
            error_message=sms_result.error_message,
            provider=self.provider_name,
        )

    async def send_new_order_alert(
        self,
        order: OrderSummary,
        staff_phone: Optional[str],
        staff_email: Optional[str],
    ) -> NotificationResult:
        """Alert staff about a new order on every configured channel."""
        if not staff_phone and not staff_email:
            return NotificationResult(
                success=False,
                error_message="No staff contact configured",
                provider=self.provider_name,
            )

        message = staff_alert_text(order)
        results = []
        if staff_phone:
            results.append(await self.send_sms(staff_phone, message))
        if staff_email:
            results.append(await self.send_email(
                to_email=staff_email,
                subject=f"New order #{order.order_id}",
                body_html=f"<p>{message.replace(chr(10), '<br>')}</p>",
                body_text=message,
            ))

        failed = [r.error_message for r in results if not r.success]
        return NotificationResult(
            success=len(failed) < len(results),
            message_id=next((r.message_id for r in results if r.success), None),
            error_message="; ".join(e for e in failed if e) or None,
            provider=self.provider_name,
        )
