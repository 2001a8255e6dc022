import os

import pytest

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.pop("DATABASE_URL", None)
os.environ.pop("STRIPE_SECRET_KEY", None)

from fastapi.testclient import TestClient  # noqa: E402

from database import MemoryStore, ensure_indexes  # noqa: E402
from gateway import FakeGateway  # noqa: E402
from orders import OrderManager  # noqa: E402
from payments import PaymentBridge  # noqa: E402
from settings import Settings  # noqa: E402

SITE = "https://shop.example"


@pytest.fixture()
def store():
    store = MemoryStore()
    ensure_indexes(store)
    return store


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def settings():
    return Settings(site_domain=SITE, currency="usd", environment="test")


@pytest.fixture()
def orders(store):
    return OrderManager(store)


@pytest.fixture()
def bridge(gateway, orders):
    return PaymentBridge(gateway, orders, SITE, "usd")


@pytest.fixture()
def app(settings, store, gateway):
    from main import create_app

    return create_app(settings=settings, store=store, gateway=gateway)


@pytest.fixture()
def client(app):
    with TestClient(app) as client:
        yield client
