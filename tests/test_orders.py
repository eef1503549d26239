"""
Tests for order placement and management.
"""

import pytest
from sqlalchemy import func, select

from app.models import OrderItem, OrderNotification, OrderStatus, OrderType
from app.schemas import DayHours, OrderCreate, WeeklyHours
from app.services import catalog, orders
from app.services.orders import OrderService

pytestmark = pytest.mark.asyncio


@pytest.fixture
def service(resolver, business_hours, notifier) -> OrderService:
    return OrderService(resolver, business_hours, notifier, enforce_business_hours=False)


def order_data(*items, order_type: str = "delivery", address: str = "Near Street 1", **kwargs) -> OrderCreate:
    return OrderCreate(
        order_type=order_type,
        customer_name=kwargs.pop("customer_name", "Mario Rossi"),
        customer_phone=kwargs.pop("customer_phone", "+39 347 919 0907"),
        delivery_address=address if order_type == "delivery" else None,
        items=[{"product_id": product_id, "quantity": quantity} for product_id, quantity in items],
        **kwargs,
    )


class TestPlaceOrder:

    async def test_delivery_order(self, service, db, margherita, diavola):
        result = await service.place_order(db, order_data((margherita.id, 2), (diavola.id, 1)))

        assert result.success, result.error_message
        order = result.order
        assert order.id is not None
        assert order.status == OrderStatus.PENDING
        assert order.order_type == OrderType.DELIVERY
        assert order.subtotal == 22.5
        assert order.delivery_fee == 3.0
        assert order.total_amount == 25.5
        assert order.delivery_address == "Near Street 1, Torino"
        assert order.delivery_distance_km == 3.0
        assert order.estimated_time == "20-30 minutes"
        assert [(i.product_name, i.quantity, i.unit_price, i.total_price) for i in order.items] == [
            ("Margherita", 2, 7.0, 14.0),
            ("Diavola", 1, 8.5, 8.5),
        ]

    async def test_pickup_skips_address_checks(self, service, db, margherita, geocoder):
        result = await service.place_order(db, order_data((margherita.id, 1), order_type="pickup"))

        assert result.success
        assert result.order.delivery_fee == 0
        assert result.order.total_amount == 7.0
        assert result.order.delivery_address is None
        assert geocoder.calls == []

    async def test_free_delivery_over_threshold(self, service, db, margherita):
        result = await service.place_order(db, order_data((margherita.id, 8), address="Far Street 3"))

        assert result.success
        assert result.order.delivery_fee == 0
        assert result.order.total_amount == 56.0

    async def test_catalog_price_is_used(self, service, db, margherita):
        await catalog.update_stock(db, margherita.id, None)
        margherita.price = 9.0
        await db.commit()

        result = await service.place_order(db, order_data((margherita.id, 1), order_type="pickup"))
        assert result.order.total_amount == 9.0

    async def test_stock_is_decremented(self, service, db, margherita, diavola):
        await service.place_order(
            db, order_data((margherita.id, 3), (margherita.id, 2), (diavola.id, 5), order_type="pickup")
        )

        assert (await catalog.get_product(db, margherita.id)).stock_quantity == 5
        assert (await catalog.get_product(db, diavola.id)).stock_quantity is None

    async def test_in_app_notification_is_created(self, service, db, margherita):
        result = await service.place_order(db, order_data((margherita.id, 1), order_type="pickup"))

        notification = await db.scalar(select(OrderNotification))
        assert notification.order_id == result.order.id
        assert notification.title == f"New order #{result.order.id}"
        assert notification.message == "Pickup order from Mario Rossi - €7.00"
        assert not notification.is_read

    async def test_customer_is_confirmed(self, service, db, margherita, notifier):
        await service.place_order(
            db, order_data((margherita.id, 1), order_type="pickup", customer_email="mario@example.com")
        )

        channels = [(m["channel"], m["to"]) for m in notifier.sent]
        assert channels == [("sms", "+39 347 919 0907"), ("email", "mario@example.com")]
        assert "Pickup at the restaurant" in notifier.sent[0]["body"]

    async def test_notifier_failure_does_not_fail_order(self, resolver, business_hours, db, margherita):
        class BrokenNotifier:
            async def send_new_order_alert(self, *args, **kwargs):
                raise RuntimeError("provider down")

        service = OrderService(resolver, business_hours, BrokenNotifier(), enforce_business_hours=False)
        result = await service.place_order(db, order_data((margherita.id, 1), order_type="pickup"))

        assert result.success


class TestRejections:

    async def test_unknown_product(self, service, db):
        result = await service.place_order(db, order_data((999, 1)))

        assert not result.success
        assert result.error_code == "product_unavailable"
        assert result.error_message == "Product #999 is not available"

    async def test_inactive_product(self, service, db, margherita):
        margherita.is_active = False
        await db.commit()

        result = await service.place_order(db, order_data((margherita.id, 1)))
        assert result.error_code == "product_unavailable"

    async def test_insufficient_stock_counts_repeated_lines(self, service, db, margherita):
        result = await service.place_order(db, order_data((margherita.id, 6), (margherita.id, 6)))

        assert result.error_code == "insufficient_stock"
        assert result.error_message == "Only 10 left of Margherita"
        assert (await catalog.get_product(db, margherita.id)).stock_quantity == 10

    async def test_out_of_range(self, service, db, margherita):
        result = await service.place_order(db, order_data((margherita.id, 1), address="Remote Street 4"))

        assert result.error_code == "out_of_range"
        assert "Maximum delivery distance is 15km" in result.error_message

    async def test_address_not_found(self, service, db, margherita):
        result = await service.place_order(db, order_data((margherita.id, 1), address="Unknown Road 5"))
        assert result.error_code == "address_not_found"

    async def test_closed(self, resolver, business_hours, db, margherita):
        closed = DayHours(is_open=False)
        await business_hours.update_hours(WeeklyHours(**{day: closed for day in WeeklyHours.model_fields}))
        service = OrderService(resolver, business_hours, enforce_business_hours=True)

        result = await service.place_order(db, order_data((margherita.id, 1)))

        assert result.error_code == "closed"
        assert result.error_message == (
            "We are closed today. You can order during our opening hours. "
            "Next opening: Check our opening hours."
        )

    async def test_rejected_order_leaves_no_trace(self, service, db, margherita, notifier):
        await service.place_order(db, order_data((margherita.id, 1), address="Remote Street 4"))

        total, _ = await orders.list_orders(db)
        assert total == 0
        assert await db.scalar(select(func.count(OrderNotification.id))) == 0
        assert (await catalog.get_product(db, margherita.id)).stock_quantity == 10
        assert notifier.sent == []


class TestManagement:

    async def place(self, service, db, product, count: int = 1) -> list[int]:
        ids = []
        for _ in range(count):
            result = await service.place_order(db, order_data((product.id, 1), order_type="pickup"))
            ids.append(result.order.id)
        return ids

    async def test_list_newest_first_with_paging(self, service, db, diavola):
        ids = await self.place(service, db, diavola, 3)

        total, page = await orders.list_orders(db, skip=0, limit=2)
        assert total == 3
        assert [o.id for o in page] == [ids[2], ids[1]]

        _, rest = await orders.list_orders(db, skip=2, limit=2)
        assert [o.id for o in rest] == [ids[0]]

    async def test_filter_by_status(self, service, db, diavola):
        first, second = await self.place(service, db, diavola, 2)
        await orders.update_status(db, first, OrderStatus.CONFIRMED)

        total, page = await orders.list_orders(db, status=OrderStatus.CONFIRMED)
        assert total == 1
        assert page[0].id == first

    async def test_any_status_transition_is_allowed(self, service, db, diavola):
        (order_id,) = await self.place(service, db, diavola)

        await orders.update_status(db, order_id, OrderStatus.DELIVERED)
        order = await orders.update_status(db, order_id, OrderStatus.PENDING)
        assert order.status == OrderStatus.PENDING

    async def test_update_missing(self, db):
        assert await orders.update_status(db, 999, OrderStatus.CANCELLED) is None

    async def test_delete_removes_items_and_notifications(self, service, db, diavola):
        (order_id,) = await self.place(service, db, diavola)

        assert await orders.delete_order(db, order_id)

        assert await orders.get_order(db, order_id) is None
        assert await db.scalar(select(func.count(OrderItem.id))) == 0
        assert await db.scalar(select(func.count(OrderNotification.id))) == 0

    async def test_delete_missing(self, db):
        assert not await orders.delete_order(db, 999)
