"""HTTP surface, driven through the ASGI app without a network."""

import httpx
import pytest

from storefront.main import app
from storefront.infrastructure.security import PBKDF2PasswordHasher
from storefront.presentation.api import get_unit_of_work, get_password_hasher


@pytest.fixture
async def client(uow, read_cache):
    app.dependency_overrides[get_unit_of_work] = lambda: uow
    app.dependency_overrides[get_password_hasher] = lambda: PBKDF2PasswordHasher(iterations=1000)
    app.state.read_cache = read_cache
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def _register(client, name="Erin", email="erin@example.com"):
    response = await client.post(
        "/api/v1/auth/register",
        json={"name": name, "email": email, "password": "secret123"},
    )
    assert response.status_code == 201
    return response.json()


async def _product(client, name="Teapot", price="10.00", stock=5, category="kitchen"):
    response = await client.post(
        "/api/v1/products",
        json={"name": name, "price": price, "stock": stock, "category": category},
    )
    assert response.status_code == 201
    return response.json()


async def _order(client, user_id, *lines):
    return await client.post(
        "/api/v1/orders",
        json={
            "user_id": user_id,
            "shipping_address": "1 Main St",
            "items": [{"product_id": pid, "quantity": qty} for pid, qty in lines],
        },
    )


class TestOrdersApi:
    async def test_order_lifecycle(self, client):
        user = await _register(client)
        product = await _product(client)

        created = await _order(client, user["id"], (product["id"], 3))
        assert created.status_code == 201
        order = created.json()
        assert order["status"] == "PENDING"
        assert float(order["total_amount"]) == 30.0
        assert order["user_email"] == "erin@example.com"
        assert order["items"][0]["product_name"] == "Teapot"

        fetched = await client.get(f"/api/v1/orders/{order['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["order_number"] == order["order_number"]

        by_number = await client.get(f"/api/v1/orders/order-number/{order['order_number']}")
        assert by_number.json()["id"] == order["id"]

        mine = await client.get(f"/api/v1/orders/user/{user['id']}")
        assert [o["id"] for o in mine.json()] == [order["id"]]

        stock = (await client.get(f"/api/v1/products/{product['id']}")).json()["stock"]
        assert stock == 2

        updated = await client.put(f"/api/v1/orders/{order['id']}/status", json={"status": "confirmed"})
        assert updated.status_code == 200
        assert updated.json()["status"] == "CONFIRMED"

        cancelled = await client.delete(f"/api/v1/orders/{order['id']}")
        assert cancelled.status_code == 200
        assert cancelled.json() == {"message": "Order cancelled successfully"}

        stock = (await client.get(f"/api/v1/products/{product['id']}")).json()["stock"]
        assert stock == 5

        frozen = await client.put(f"/api/v1/orders/{order['id']}/status", json={"status": "SHIPPED"})
        assert frozen.status_code == 409

        again = await client.delete(f"/api/v1/orders/{order['id']}")
        assert again.status_code == 409

    async def test_insufficient_stock_is_a_conflict(self, client):
        user = await _register(client)
        product = await _product(client, stock=2)

        response = await _order(client, user["id"], (product["id"], 3))

        assert response.status_code == 409
        assert "Requested: 3, Available: 2" in response.json()["detail"]

    async def test_not_found(self, client):
        user = await _register(client)

        assert (await client.get("/api/v1/orders/missing")).status_code == 404
        assert (await client.get("/api/v1/orders/order-number/ORD-1-X")).status_code == 404
        assert (await client.get("/api/v1/orders/user/missing")).status_code == 404
        assert (await client.get("/api/v1/products/missing")).status_code == 404
        assert (await client.get("/api/v1/users/missing")).status_code == 404
        assert (await client.delete("/api/v1/orders/missing")).status_code == 404
        assert (await _order(client, user["id"], ("missing", 1))).status_code == 404
        assert (await _order(client, "missing", ("missing", 1))).status_code == 404

    async def test_request_validation(self, client):
        user = await _register(client)
        product = await _product(client)

        assert (await _order(client, user["id"])).status_code == 422
        assert (await _order(client, user["id"], (product["id"], 0))).status_code == 422
        bad_status = await client.put("/api/v1/orders/x/status", json={"status": "LOST"})
        assert bad_status.status_code == 422

    async def test_list_all_orders(self, client):
        alice = await _register(client, "Alice", "alice@example.com")
        bob = await _register(client, "Bobby", "bob@example.com")
        product = await _product(client, stock=10)
        await _order(client, alice["id"], (product["id"], 1))
        await _order(client, bob["id"], (product["id"], 1))

        response = await client.get("/api/v1/orders")

        assert {o["user_name"] for o in response.json()} == {"Alice", "Bobby"}


class TestCatalogApi:
    async def test_product_listings(self, client):
        await _product(client, name="Teapot", category="kitchen")
        lamp = await _product(client, name="Lamp", category="home")
        await client.put(f"/api/v1/products/{lamp['id']}", json={"active": False})

        names = [p["name"] for p in (await client.get("/api/v1/products")).json()]
        available = [p["name"] for p in (await client.get("/api/v1/products/available")).json()]
        home = [p["name"] for p in (await client.get("/api/v1/products/category/home")).json()]

        assert names == ["Lamp", "Teapot"]
        assert available == ["Teapot"]
        assert home == ["Lamp"]

    async def test_duplicate_product(self, client):
        await _product(client, name="Teapot")

        response = await client.post(
            "/api/v1/products",
            json={"name": "Teapot", "price": "1.00", "stock": 1, "category": "kitchen"},
        )

        assert response.status_code == 409


class TestAuthApi:
    @pytest.mark.parametrize("email", ["erin@example..com", "erin.example.com", "erin@"])
    async def test_register_rejects_malformed_email(self, client, email):
        response = await client.post(
            "/api/v1/auth/register",
            json={"name": "Erin", "email": email, "password": "secret123"},
        )

        assert response.status_code == 422

    async def test_register_login(self, client):
        user = await _register(client)

        ok = await client.post("/api/v1/auth/login", json={"email": "erin@example.com", "password": "secret123"})
        bad = await client.post("/api/v1/auth/login", json={"email": "erin@example.com", "password": "nope"})
        dup = await client.post(
            "/api/v1/auth/register",
            json={"name": "Erin", "email": "erin@example.com", "password": "secret123"},
        )

        assert ok.status_code == 200
        assert ok.json()["id"] == user["id"]
        assert "password_hash" not in ok.json()
        assert bad.status_code == 401
        assert dup.status_code == 409

    async def test_users(self, client):
        user = await _register(client)

        listed = (await client.get("/api/v1/users")).json()
        single = (await client.get(f"/api/v1/users/{user['id']}")).json()

        assert [u["id"] for u in listed] == [user["id"]]
        assert single["email"] == "erin@example.com"


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class BrokenStore:
    def __call__(self):
        raise RuntimeError("connection refused by db-internal-7:5432")


async def test_unexpected_errors_do_not_leak_details(client):
    app.dependency_overrides[get_unit_of_work] = BrokenStore

    response = await client.get("/api/v1/orders/some-id")

    assert response.status_code == 503
    assert response.json() == {"detail": "Service unavailable"}
