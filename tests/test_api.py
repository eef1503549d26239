"""
HTTP tests for the storefront API.
"""

import pytest

pytestmark = pytest.mark.asyncio

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


async def create_product(client, name: str = "Margherita", price: float = 7.0, **kwargs) -> dict:
    response = await client.post("/api/products", json={"name": name, "price": price, **kwargs})
    assert response.status_code == 201, response.text
    return response.json()


def order_payload(product_id: int, quantity: int = 1, **kwargs) -> dict:
    payload = {
        "order_type": "delivery",
        "customer_name": "Mario Rossi",
        "customer_phone": "+39 347 919 0907",
        "delivery_address": "Near Street 1",
        "items": [{"product_id": product_id, "quantity": quantity}],
    }
    payload.update(kwargs)
    return payload


class TestRoot:

    async def test_root(self, client):
        response = await client.get("/")
        assert response.status_code == 200
        assert response.json()["health"] == "/health"

    async def test_health(self, client):
        response = await client.get("/health")
        data = response.json()

        assert response.status_code == 200
        assert data["status"] == "operational"
        assert data["database"] == "healthy"
        assert data["realtime"] == "disabled"
        assert data["geocoder"] == "healthy"


class TestSettingsEndpoints:

    async def test_read_seeded_setting(self, client):
        response = await client.get("/api/settings/heroContent")
        assert response.status_code == 200
        assert response.json()["value"]["heading"] == "Pizzeria Regina 2000"

    async def test_write_then_read(self, client):
        response = await client.put("/api/settings/popups", json={"value": [{"title": "Promo"}]})
        assert response.status_code == 200

        assert (await client.get("/api/settings/popups")).json()["value"] == [{"title": "Promo"}]

    async def test_null_value_is_not_missing(self, client):
        assert (await client.put("/api/settings/announcement", json={"value": None})).status_code == 200

        response = await client.get("/api/settings/announcement")
        assert response.status_code == 200
        assert response.json() == {"key": "announcement", "value": None}

    async def test_missing_key(self, client):
        assert (await client.get("/api/settings/nothing")).status_code == 404
        assert (await client.delete("/api/settings/nothing")).status_code == 404

    async def test_batch(self, client):
        response = await client.post("/api/settings/batch", json={"keys": ["heroContent", "missing"]})
        assert list(response.json()) == ["heroContent"]

    async def test_cache_stats_and_clear(self, client):
        await client.get("/api/settings/heroContent")
        assert "heroContent" in (await client.get("/api/settings/cache")).json()["keys"]

        response = await client.delete("/api/settings/cache", params={"key": "heroContent"})
        assert "heroContent" not in response.json()["keys"]


class TestDeliveryEndpoints:

    async def test_validate(self, client):
        response = await client.post("/api/delivery/validate", json={"address": "Middle Street 2", "order_amount": 20})
        data = response.json()

        assert response.status_code == 200
        assert data["is_within_zone"]
        assert data["zone_id"] == "2"
        assert data["delivery_fee"] == 5.0

    async def test_validate_out_of_range(self, client):
        response = await client.post("/api/delivery/validate", json={"address": "Remote Street 4"})
        assert response.json()["error_code"] == "out_of_range"

    async def test_settings_round_trip(self, client):
        response = await client.put("/api/delivery/settings", json={"freeDeliveryThreshold": 30})
        assert response.json()["freeDeliveryThreshold"] == 30
        assert (await client.get("/api/delivery/settings")).json()["maxDeliveryDistance"] == 15

    async def test_zones(self, client):
        zones = (await client.get("/api/delivery/zones")).json()
        assert [z["id"] for z in zones] == ["1", "2", "3"]

        zones[0]["deliveryFee"] = 2.5
        response = await client.put("/api/delivery/zones", json=zones)
        assert response.json()[0]["deliveryFee"] == 2.5

    async def test_duplicate_zone_ids(self, client):
        zones = (await client.get("/api/delivery/zones")).json()
        response = await client.put("/api/delivery/zones", json=[zones[0], zones[0]])
        assert response.status_code == 400

    async def test_reset_defaults(self, client):
        await client.put("/api/delivery/zones", json=[])
        response = await client.post("/api/delivery/zones/defaults")
        assert len(response.json()) == 3

    async def test_restaurant_location(self, client, geocoder):
        geocoder.locations["Piazza Nuova 1"] = (45.1, 7.7)

        response = await client.post("/api/delivery/location", json={"address": "Piazza Nuova 1"})
        assert response.json()["restaurantLat"] == 45.1

        response = await client.post("/api/delivery/location", json={"address": "Unknown Road 5"})
        assert response.status_code == 400

    async def test_reload(self, client):
        assert (await client.post("/api/delivery/reload")).json() == {"success": True, "zones": 3}


class TestBusinessHoursEndpoints:

    async def test_status(self, client):
        data = (await client.get("/api/business-hours")).json()
        assert isinstance(data["is_open"], bool)
        assert data["message"]

    async def test_schedule_round_trip(self, client):
        schedule = (await client.get("/api/business-hours/schedule")).json()
        schedule["monday"] = {"isOpen": False, "openTime": "18:30", "closeTime": "22:30"}

        assert (await client.put("/api/business-hours/schedule", json=schedule)).status_code == 200
        assert (await client.get("/api/business-hours/schedule")).json()["monday"]["isOpen"] is False

    async def test_invalid_time(self, client):
        schedule = (await client.get("/api/business-hours/schedule")).json()
        schedule["monday"]["openTime"] = "25:00"
        assert (await client.put("/api/business-hours/schedule", json=schedule)).status_code == 422


class TestCatalogEndpoints:

    async def test_category_lifecycle(self, client):
        created = (await client.post("/api/categories", json={"name": "Pizze"})).json()
        await create_product(client, category_id=created["id"])

        response = await client.put(f"/api/categories/{created['id']}", json={"sort_order": 3})
        assert response.json()["sort_order"] == 3

        response = await client.delete(f"/api/categories/{created['id']}")
        assert response.json() == {"success": True, "undeleted_products": []}
        assert (await client.get(f"/api/categories/{created['id']}")).status_code == 404
        assert (await client.get("/api/products")).json() == []

    async def test_product_with_unknown_category(self, client):
        response = await client.post("/api/products", json={"name": "X", "price": 1, "category_id": 99})
        assert response.status_code == 400

    async def test_invalid_price(self, client):
        assert (await client.post("/api/products", json={"name": "X", "price": 0})).status_code == 422

    async def test_product_crud(self, client):
        product = await create_product(client)

        response = await client.put(f"/api/products/{product['id']}", json={"price": 7.5})
        assert response.json()["price"] == 7.5
        assert (await client.get(f"/api/products/{product['id']}")).json()["name"] == "Margherita"

        assert (await client.delete(f"/api/products/{product['id']}")).json() == {"success": True}
        assert (await client.get(f"/api/products/{product['id']}")).status_code == 404

    async def test_search(self, client):
        await create_product(client, "Margherita", description="Pomodoro e mozzarella")
        await create_product(client, "Bianca")

        response = await client.get("/api/products/search", params={"q": "pomodoro"})
        assert [p["name"] for p in response.json()] == ["Margherita"]

    async def test_stock(self, client):
        first = await create_product(client, "Margherita")
        second = await create_product(client, "Diavola")

        response = await client.put(f"/api/products/{first['id']}/stock", json={"stock_quantity": 4})
        assert response.json()["stock_quantity"] == 4

        response = await client.put(
            "/api/products/stock", json={"stock": {str(first["id"]): None, str(second["id"]): 2, "999": 1}}
        )
        assert response.json() == {"updated": sorted([first["id"], second["id"]]), "missing": [999]}

    async def test_negative_stock_is_refused(self, client):
        product = await create_product(client)
        response = await client.put(f"/api/products/{product['id']}/stock", json={"stock_quantity": -1})
        assert response.status_code == 422


class TestOrderEndpoints:

    async def test_place_delivery_order(self, client):
        product = await create_product(client, stock_quantity=5)

        response = await client.post("/api/orders", json=order_payload(product["id"], 2))
        data = response.json()

        assert response.status_code == 201
        assert data["success"]
        assert data["order"]["subtotal"] == 14.0
        assert data["order"]["delivery_fee"] == 3.0
        assert data["order"]["total_amount"] == 17.0
        assert data["order"]["status"] == "pending"
        assert data["order"]["items"][0]["product_name"] == "Margherita"
        assert (await client.get(f"/api/products/{product['id']}")).json()["stock_quantity"] == 3

    async def test_rejection_carries_error_code(self, client):
        product = await create_product(client)

        response = await client.post(
            "/api/orders", json=order_payload(product["id"], delivery_address="Remote Street 4")
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "out_of_range"

    async def test_delivery_requires_address(self, client):
        product = await create_product(client)
        response = await client.post("/api/orders", json=order_payload(product["id"], delivery_address=None))
        assert response.status_code == 422

    async def test_short_phone_is_refused(self, client):
        product = await create_product(client)
        response = await client.post("/api/orders", json=order_payload(product["id"], customer_phone="123-456"))
        assert response.status_code == 422

    async def test_manage_orders(self, client):
        product = await create_product(client)
        order_id = (await client.post("/api/orders", json=order_payload(product["id"], order_type="pickup"))).json()["order"]["id"]

        listing = (await client.get("/api/orders")).json()
        assert listing["total"] == 1

        response = await client.patch(f"/api/orders/{order_id}/status", json={"status": "ready"})
        assert response.json()["status"] == "ready"
        assert (await client.get("/api/orders", params={"status": "pending"})).json()["total"] == 0

        assert (await client.delete(f"/api/orders/{order_id}")).json() == {"success": True}
        assert (await client.get(f"/api/orders/{order_id}")).status_code == 404

    async def test_unknown_status(self, client):
        response = await client.patch("/api/orders/1/status", json={"status": "teleported"})
        assert response.status_code == 422


class TestNotificationEndpoints:

    async def test_order_creates_notification(self, client):
        product = await create_product(client)
        await client.post("/api/orders", json=order_payload(product["id"], order_type="pickup"))

        data = (await client.get("/api/notifications")).json()
        assert data["unread"] == 1
        notification = data["notifications"][0]
        assert notification["message"] == "Pickup order from Mario Rossi - €7.00"

        response = await client.post(f"/api/notifications/{notification['id']}/read")
        assert response.json()["is_read"]
        assert (await client.get("/api/notifications", params={"unread_only": True})).json()["notifications"] == []

        assert (await client.delete(f"/api/notifications/{notification['id']}")).status_code == 200
        assert (await client.post(f"/api/notifications/{notification['id']}/read")).status_code == 404

    async def test_read_all(self, client):
        assert (await client.post("/api/notifications/read-all")).json() == {"success": True, "updated": 0}


class TestStorageEndpoints:

    async def test_upload_list_delete(self, client):
        response = await client.post("/api/uploads/products", files={"file": ("pizza.png", PNG, "image/png")})
        assert response.status_code == 201
        stored = response.json()
        assert stored["url"] == f"/uploads/products/{stored['path']}"

        listing = (await client.get("/api/uploads/products")).json()
        assert [o["path"] for o in listing] == [stored["path"]]

        assert (await client.delete(f"/api/uploads/products/{stored['path']}")).status_code == 200
        assert (await client.delete(f"/api/uploads/products/{stored['path']}")).status_code == 404

    async def test_upload_refusals(self, client):
        response = await client.post("/api/uploads/products", files={"file": ("a.txt", b"text", "text/plain")})
        assert response.status_code == 400

        response = await client.post("/api/uploads/products", files={"file": ("a.png", b"x" * 2048, "image/png")})
        assert response.status_code == 400

        response = await client.post("/api/uploads/secrets", files={"file": ("a.png", PNG, "image/png")})
        assert response.status_code == 400

    async def test_unknown_bucket_listing(self, client):
        assert (await client.get("/api/uploads/secrets")).status_code == 404

    async def test_gallery(self, client):
        response = await client.post(
            "/api/gallery",
            files={"file": ("sala.png", PNG, "image/png")},
            data={"title": "Sala", "sort_order": "1"},
        )
        assert response.status_code == 201
        image = response.json()
        assert image["title"] == "Sala"

        assert [i["id"] for i in (await client.get("/api/gallery")).json()] == [image["id"]]
        assert (await client.delete(f"/api/gallery/{image['id']}")).status_code == 200
        assert (await client.get("/api/gallery")).json() == []
