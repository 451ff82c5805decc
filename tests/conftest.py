import asyncio

import mongomock
import pytest
from fastapi.testclient import TestClient
from solders.keypair import Keypair

import config
import main
from database import OrderStore
from errors import UpstreamError
from payment_registry import PaymentRegistry

STORE_WALLET = str(Keypair().pubkey())


class FakeLedger:
    """Chain stand-in: references are 'paid' by calling pay()"""

    def __init__(self):
        self.signatures = {}
        self.valid = {}
        self.find_calls = 0
        self.fail = False

    def pay(self, reference, signature="sig-1", valid=True):
        self.signatures[reference] = signature
        self.valid[signature] = valid

    async def find_reference(self, reference):
        self.find_calls += 1
        await asyncio.sleep(0)
        if self.fail:
            raise UpstreamError("Ledger signature lookup failed")
        return self.signatures.get(reference)

    async def validate_transfer(self, signature, recipient, amount, reference):
        await asyncio.sleep(0)
        return self.valid.get(signature, False) and recipient == STORE_WALLET


class FakeMailer:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, to, subject, html):
        if self.fail:
            raise UpstreamError("Failed to send email")
        self.sent.append((to, subject, html))


@pytest.fixture
def order_store():
    store = OrderStore(mongomock.MongoClient().zule_store.orders)
    store.ensure_indexes()
    return store


@pytest.fixture
def registry():
    return PaymentRegistry()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(monkeypatch, order_store, registry, ledger, mailer):
    monkeypatch.setattr(config, "STORE_WALLET", STORE_WALLET)
    main.app.dependency_overrides[main.get_order_store] = lambda: order_store
    main.app.dependency_overrides[main.get_registry] = lambda: registry
    main.app.dependency_overrides[main.get_ledger] = lambda: ledger
    main.app.dependency_overrides[main.get_mailer] = lambda: mailer
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


@pytest.fixture
def checkout_payload():
    return {
        "fullName": "A",
        "email": "a@b.com",
        "address": "X",
        "total": 0.01,
        "items": [{"name": "Shirt", "quantity": 1, "price": 0.01}],
    }
