"""
Order Notifications

In-app notifications shown to staff in the orders panel, plus the outbound
new-order alert sent through the notification service.
"""

import logging
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.models import Order, OrderNotification, OrderType
from app.services.notifications import BaseNotificationService, NotificationResult, OrderSummary

logger = logging.getLogger(__name__)


def build_order_summary(order: Order) -> OrderSummary:
    items = ", ".join(f"{item.quantity}x {item.product_name}" for item in order.items)
    return OrderSummary(
        order_id=order.id,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        customer_email=order.customer_email,
        order_type=order.order_type.value,
        total_amount=order.total_amount,
        items_summary=items,
        delivery_address=order.delivery_address,
        estimated_time=order.estimated_time,
    )


async def create_for_order(db: AsyncSession, order: Order, commit: bool = True) -> OrderNotification:
    """Add the "new order" notification for ``order``."""
    kind = "Delivery" if order.order_type == OrderType.DELIVERY else "Pickup"
    notification = OrderNotification(
        order_id=order.id,
        title=f"New order #{order.id}",
        message=f"{kind} order from {order.customer_name} - €{order.total_amount:.2f}",
    )
    db.add(notification)
    if commit:
        await db.commit()
        await db.refresh(notification)
    return notification


async def list_notifications(
    db: AsyncSession,
    unread_only: bool = False,
    limit: int = 50,
) -> list[OrderNotification]:
    query = select(OrderNotification).order_by(OrderNotification.id.desc()).limit(limit)
    if unread_only:
        query = query.where(OrderNotification.is_read.is_(False))
    return list(await db.scalars(query))


async def unread_count(db: AsyncSession) -> int:
    count = await db.scalar(
        select(func.count(OrderNotification.id)).where(OrderNotification.is_read.is_(False))
    )
    return count or 0


async def mark_read(db: AsyncSession, notification_id: int) -> Optional[OrderNotification]:
    notification = await db.get(OrderNotification, notification_id)
    if notification is None:
        return None
    notification.is_read = True
    await db.commit()
    await db.refresh(notification)
    return notification


async def mark_all_read(db: AsyncSession) -> int:
    """Returns the number of notifications that changed."""
    result = await db.execute(
        update(OrderNotification)
        .where(OrderNotification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.commit()
    return result.rowcount or 0


async def delete_notification(db: AsyncSession, notification_id: int) -> bool:
    result = await db.execute(delete(OrderNotification).where(OrderNotification.id == notification_id))
    await db.commit()
    return bool(result.rowcount)


async def send_new_order_alert(order: Order, notifier: BaseNotificationService) -> NotificationResult:
    """
    Alert staff and confirm to the customer.

    Delivery problems are logged only; the order is already placed.
    """
    settings = get_settings()
    summary = build_order_summary(order)

    result = await notifier.send_new_order_alert(
        summary,
        staff_phone=settings.staff_alert_phone,
        staff_email=settings.staff_alert_email,
    )
    if not result.success:
        logger.warning(f"Staff alert for order #{order.id} not delivered: {result.error_message}")

    confirmation = await notifier.send_order_confirmation(summary, settings.restaurant_name)
    if not confirmation.success:
        logger.warning(f"Confirmation for order #{order.id} not delivered: {confirmation.error_message}")

    return result
