import pytest
from fastapi.testclient import TestClient
from uuid import uuid4

from cafepos.main import app
from cafepos.services.catalog_store import DEFAULT_FLAVORS
from cafepos.services.engine import CafeEngine
from cafepos.storage.fallback import FallbackBackend
from cafepos.storage.kv_store import MemoryStore


@pytest.fixture
def client():
    app.state.engine = CafeEngine(FallbackBackend(MemoryStore()))
    with TestClient(app) as test_client:
        yield test_client
    app.state.engine = None


@pytest.fixture
def menu(client):
    cup = client.post("/api/v1/catalog/materials", json={"name": "12oz Cup", "price_per_piece": "5", "stock_quantity": 300}).json()["data"]
    beans = client.post("/api/v1/catalog/ingredients", json={
        "name": "Coffee Beans", "measurement_unit": "g", "price_per_purchase": "800", "units_per_purchase": 1000,
        "stock_quantity": 1000,
    }).json()["data"]
    shot = client.post("/api/v1/catalog/addons", json={"name": "Extra Shot", "price": "15", "stock_quantity": 100}).json()["data"]
    product = client.post("/api/v1/catalog/products", json={
        "name": "Iced Coffee",
        "flavors": ["Creamy Vanilla"],
        "sizes": [{
            "name": "Large", "price": "120",
            "materials": [{"material_id": cup["id"], "quantity": 1}],
            "ingredients": [{"ingredient_id": beans["id"], "quantity": 10}],
        }],
    }).json()["data"]
    return {"cup": cup, "beans": beans, "shot": shot, "product": product}


def _order_body(menu, paid="150"):
    return {
        "lines": [{
            "product_id": menu["product"]["id"],
            "size_id": menu["product"]["sizes"][0]["id"],
            "addons": [{"addon_id": menu["shot"]["id"], "quantity": 1}],
        }],
        "paid": paid,
    }


class TestCatalogRoutes:
    def test_create_is_deduplicated(self, client):
        first = client.post("/api/v1/catalog/flavors", json={"name": "Mocha"})
        second = client.post("/api/v1/catalog/flavors", json={"name": "mocha"})

        assert first.status_code == 201
        assert second.json()["data"]["id"] == first.json()["data"]["id"]
        listing = client.get("/api/v1/catalog/flavors").json()
        assert listing["success"] is True
        assert len(listing["data"]) == 1

    def test_invalid_payload_is_rejected(self, client):
        response = client.post("/api/v1/catalog/addons", json={"name": "Pearls", "price": -1})
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["error"]["code"] == "rejected"

    def test_unknown_entity_type(self, client):
        assert client.get("/api/v1/catalog/menu_items").status_code == 422

    def test_get_update_delete(self, client, menu):
        shot_id = menu["shot"]["id"]
        assert client.get(f"/api/v1/catalog/addons/{shot_id}").json()["data"]["stock_quantity"] == "100.000"

        updated = client.put(f"/api/v1/catalog/addons/{shot_id}", json={"name": "Extra Shot", "price": "18"})
        assert updated.json()["data"]["price"] == "18.00"

        assert client.delete(f"/api/v1/catalog/addons/{shot_id}").status_code == 200
        assert client.get(f"/api/v1/catalog/addons/{shot_id}").status_code == 404
        assert client.delete(f"/api/v1/catalog/addons/{shot_id}").status_code == 404

    def test_default_flavors(self, client):
        response = client.post("/api/v1/catalog/flavors/defaults")
        assert response.status_code == 200
        assert response.json()["data"]["created"] == len(DEFAULT_FLAVORS)


class TestOrderRoutes:
    def test_create_order(self, client, menu):
        response = client.post("/api/v1/orders/", json=_order_body(menu))

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["total"] == "135.00"
        assert data["change"] == "15.00"
        assert data["order_status"] == "QUEUING"

        balance = client.get("/api/v1/cash-flow/balance").json()["data"]
        assert balance["current_balance"] == "150.00"

    def test_rejected_orders(self, client, menu):
        assert client.post("/api/v1/orders/", json={"lines": [], "paid": "10"}).status_code == 400
        response = client.post("/api/v1/orders/", json=_order_body(menu, paid="100"))
        assert response.status_code == 400
        assert "Insufficient payment" in response.json()["error"]["message"]

    def test_storage_failure_is_500(self, client, menu):
        engine = app.state.engine

        async def broken(cart):
            from cafepos.core.exceptions import StorageError
            raise StorageError("disk full")

        engine.orders.create_order = broken
        response = client.post("/api/v1/orders/", json=_order_body(menu))
        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Order could not be processed."

    def test_status_flow(self, client, menu):
        order_id = client.post("/api/v1/orders/", json=_order_body(menu)).json()["data"]["id"]

        served = client.patch(f"/api/v1/orders/{order_id}/status", json={"order_status": "SERVED"})
        assert served.json()["data"]["order_status"] == "SERVED"

        client.patch(f"/api/v1/orders/{order_id}/status", json={"order_status": "CANCELLED"})
        blocked = client.patch(f"/api/v1/orders/{order_id}/status", json={"order_status": "SERVED"})
        assert blocked.status_code == 400

        missing = client.patch(f"/api/v1/orders/{uuid4()}/status", json={"order_status": "SERVED"})
        assert missing.status_code == 404

    def test_list_and_get(self, client, menu):
        order_id = client.post("/api/v1/orders/", json=_order_body(menu)).json()["data"]["id"]

        assert [o["id"] for o in client.get("/api/v1/orders/?filter=today").json()["data"]] == [order_id]
        assert client.get(f"/api/v1/orders/{order_id}").json()["data"]["items"][0]["product_name"] == "Iced Coffee"
        assert client.get(f"/api/v1/orders/{uuid4()}").status_code == 404


class TestStockRoutes:
    def test_list_and_override(self, client, menu):
        cup_id = menu["cup"]["id"]
        client.post("/api/v1/orders/", json=_order_body(menu))

        stock = {s["item_id"]: s["quantity"] for s in client.get("/api/v1/stock/").json()["data"]}
        assert stock[cup_id] == "299.000"

        response = client.put(f"/api/v1/stock/material/{cup_id}", json={"quantity": 500})
        assert response.json()["data"]["quantity"] == "500.000"

        assert client.put(f"/api/v1/stock/material/{uuid4()}", json={"quantity": 1}).status_code == 404
        assert client.put(f"/api/v1/stock/material/{cup_id}", json={"quantity": -1}).status_code == 422


class TestCashFlowRoutes:
    def test_drawer_operations(self, client):
        assert client.post("/api/v1/cash-flow/inflows", json={"amount": "200", "description": "Float"}).status_code == 201
        expense = client.post("/api/v1/cash-flow/expenses", json={"amount": "30", "description": "Ice", "items_purchased": "ice"})
        assert expense.json()["data"]["category"] == "STOCK_PURCHASE"

        reconciled = client.put("/api/v1/cash-flow/balance", json={"target": "500", "reason": "Count"}).json()["data"]
        assert reconciled["adjustment"]["amount"] == "330.00"
        assert reconciled["current_balance"] == "500.00"

        again = client.put("/api/v1/cash-flow/balance", json={"target": "500"}).json()["data"]
        assert again["adjustment"] is None

        summary = client.get("/api/v1/cash-flow/summary?period=week").json()["data"]
        assert summary["transaction_count"] == 3
        assert summary["net_flow"] == "500.00"

        assert len(client.get("/api/v1/cash-flow/transactions?limit=2").json()["data"]) == 2


class TestMigrationRoutes:
    def test_unavailable_on_fallback_storage(self, client):
        assert client.get("/api/v1/migration/status").status_code == 409
        assert client.post("/api/v1/migration/run").status_code == 409
