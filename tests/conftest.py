"""
Pytest configuration and shared fixtures.
"""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from analytics import AnalyticsAggregator
from config import Settings
from database import KeyValueStore, MemoryBackend
from main import create_app
from storage import init_storage


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 10, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend) -> KeyValueStore:
    return KeyValueStore(backend)


@pytest.fixture
def storage(backend, clock):
    return init_storage(backend, clock=clock)


@pytest.fixture
def analytics(storage) -> AnalyticsAggregator:
    return AnalyticsAggregator(storage.transactions, storage.products, storage.customers)


@pytest.fixture
def widget(storage):
    return storage.products.save({"name": "Widget", "price": 1000, "stock": 5, "category": "Tools"})


@pytest.fixture
def gadget(storage):
    return storage.products.save({"name": "Gadget", "price": 500, "stock": 20, "category": "Tools", "barcode": "899100"})


def sale_draft(*lines, payment_method="cash", cashier_id="kasir-1", customer_id=None):
    """Transaction draft for (product, quantity) lines with 10% tax."""
    items = [
        {
            "productId": product.id,
            "productName": product.name,
            "quantity": quantity,
            "price": product.price,
            "total": product.price * quantity,
        }
        for product, quantity in lines
    ]
    subtotal = sum(item["total"] for item in items)
    draft = {
        "items": items,
        "subtotal": subtotal,
        "tax": subtotal * 0.1,
        "total": subtotal + subtotal * 0.1,
        "paymentMethod": payment_method,
        "cashierId": cashier_id,
    }
    if customer_id:
        draft["customerId"] = customer_id
    return draft


@pytest.fixture
def app_settings() -> Settings:
    return Settings(database_url=None, database_name=None, secret_key="test-secret", seed_sample_data=True)


@pytest.fixture
def app(app_settings, backend, clock):
    return create_app(app_settings, backend=backend, clock=clock)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def login(client: TestClient, username: str, password: str) -> dict:
    resp = client.post("/auth/token", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def admin_headers(client) -> dict:
    return login(client, "admin", "admin123")


@pytest.fixture
def kasir_headers(client) -> dict:
    return login(client, "kasir", "kasir123")
