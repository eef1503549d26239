"""
Tests for outbound notifications and in-app order notifications.
"""

import pytest

from app.core.config import get_settings
from app.models import Order, OrderItem, OrderType
from app.services import order_notifications
from app.services.notifications import (
    MockNotificationService,
    OrderSummary,
    get_notification_service,
    reset_notification_service,
)
from app.services.notifications.base import confirmation_text, staff_alert_text


def summary(**overrides) -> OrderSummary:
    fields = dict(
        order_id=42,
        customer_name="Mario Rossi",
        customer_phone="+393479190907",
        order_type="delivery",
        total_amount=25.5,
        items_summary="2x Margherita, 1x Diavola",
        delivery_address="Via Roma 1, Torino",
        estimated_time="20-30 minutes",
    )
    fields.update(overrides)
    return OrderSummary(**fields)


async def make_order(db, total: float = 12.0, order_type: OrderType = OrderType.DELIVERY) -> Order:
    order = Order(
        order_type=order_type,
        customer_name="Giulia",
        customer_phone="+393331112222",
        subtotal=total,
        delivery_fee=0.0,
        total_amount=total,
        items=[OrderItem(product_name="Margherita", quantity=1, unit_price=total, total_price=total)],
    )
    db.add(order)
    await db.commit()
    return order


class TestFactory:

    def test_development_uses_mock(self):
        reset_notification_service()
        assert get_notification_service().provider_name == "mock"
        reset_notification_service()


class TestTexts:

    def test_delivery_confirmation(self):
        text = confirmation_text(summary(), "Pizzeria Regina 2000")
        assert "order #42" in text
        assert "Delivery to: Via Roma 1, Torino (20-30 minutes)" in text
        assert "Total: €25.50" in text

    def test_pickup_confirmation(self):
        text = confirmation_text(summary(order_type="pickup", estimated_time=None), "Regina")
        assert "Pickup at the restaurant\n" in text

    def test_staff_alert(self):
        text = staff_alert_text(summary())
        assert text.splitlines() == [
            "New order #42 from Mario Rossi (+393479190907)",
            "2x Margherita, 1x Diavola",
            "Via Roma 1, Torino - €25.50",
        ]


@pytest.mark.asyncio
class TestMockService:

    async def test_records_messages(self):
        notifier = MockNotificationService()
        sms = await notifier.send_sms("+39111", "hello")
        email = await notifier.send_email("a@b.it", "Subject", "<p>x</p>")

        assert sms.success and sms.message_id.startswith("sms_mock_")
        assert email.success and email.provider == "mock"
        assert [m["channel"] for m in notifier.sent] == ["sms", "email"]

    async def test_simulated_failure(self):
        notifier = MockNotificationService(failure_rate=1.0)
        result = await notifier.send_sms("+39111", "hello")

        assert not result.success
        assert notifier.sent == []

    async def test_confirmation_without_email_is_sms_only(self):
        notifier = MockNotificationService()
        result = await notifier.send_order_confirmation(summary(), "Regina")

        assert result.success
        assert [m["channel"] for m in notifier.sent] == ["sms"]

    async def test_staff_alert_needs_a_contact(self):
        result = await MockNotificationService().send_new_order_alert(summary(), None, None)

        assert not result.success
        assert result.error_message == "No staff contact configured"

    async def test_staff_alert_on_every_channel(self):
        notifier = MockNotificationService()
        result = await notifier.send_new_order_alert(summary(), "+39000", "staff@regina.it")

        assert result.success
        assert [(m["channel"], m["to"]) for m in notifier.sent] == [("sms", "+39000"), ("email", "staff@regina.it")]

    async def test_staff_alert_fails_only_when_every_channel_fails(self):
        result = await MockNotificationService(failure_rate=1.0).send_new_order_alert(summary(), "+39000", "s@r.it")

        assert not result.success
        assert result.error_message == "Simulated SMS failure; Simulated email failure"


@pytest.mark.asyncio
class TestNewOrderAlert:

    async def test_alerts_staff_and_customer(self, db, monkeypatch):
        monkeypatch.setattr(get_settings(), "staff_alert_phone", "+39000")
        order = await make_order(db)
        notifier = MockNotificationService()

        result = await order_notifications.send_new_order_alert(order, notifier)

        assert result.success
        assert [m["to"] for m in notifier.sent] == ["+39000", "+393331112222"]
        assert "1x Margherita" in notifier.sent[0]["body"]

    async def test_missing_staff_contact_still_confirms_customer(self, db):
        order = await make_order(db)
        notifier = MockNotificationService()

        result = await order_notifications.send_new_order_alert(order, notifier)

        assert not result.success
        assert [m["to"] for m in notifier.sent] == ["+393331112222"]


@pytest.mark.asyncio
class TestInAppNotifications:

    async def test_create_for_order(self, db):
        order = await make_order(db, total=12.0, order_type=OrderType.PICKUP)
        notification = await order_notifications.create_for_order(db, order)

        assert notification.id is not None
        assert notification.title == f"New order #{order.id}"
        assert notification.message == "Pickup order from Giulia - €12.00"

    async def test_list_newest_first_and_unread_filter(self, db):
        first = await order_notifications.create_for_order(db, await make_order(db))
        second = await order_notifications.create_for_order(db, await make_order(db))
        await order_notifications.mark_read(db, first.id)

        assert [n.id for n in await order_notifications.list_notifications(db)] == [second.id, first.id]
        assert [n.id for n in await order_notifications.list_notifications(db, unread_only=True)] == [second.id]
        assert await order_notifications.unread_count(db) == 1

    async def test_mark_all_read(self, db):
        for _ in range(3):
            await order_notifications.create_for_order(db, await make_order(db))

        assert await order_notifications.mark_all_read(db) == 3
        assert await order_notifications.mark_all_read(db) == 0
        assert await order_notifications.unread_count(db) == 0

    async def test_mark_missing(self, db):
        assert await order_notifications.mark_read(db, 999) is None

    async def test_delete(self, db):
        notification = await order_notifications.create_for_order(db, await make_order(db))

        assert await order_notifications.delete_notification(db, notification.id)
        assert not await order_notifications.delete_notification(db, notification.id)
