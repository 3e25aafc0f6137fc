"""
Pytest fixtures for retailpos backend tests.

Provides a bare in-memory ledger with a deterministic clock, the Flask app
on in-memory SQLite, users and auth headers.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from retailpos import create_app
from retailpos.entities import Product, UserRef, Variant
from retailpos.extensions import db
from retailpos.services import identity_service
from retailpos.services.ledger import Ledger, get_ledger


PASSWORD = "Password123!"

TEST_CONFIG = {
    "TESTING": True,
    "SECRET_KEY": "test",
    "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    "STORAGE_BACKEND": "none",
    "LEDGER_AUTOLOAD": False,
    "LOG_LEVEL": "DEBUG",
}


class FakeClock:
    """Strictly increasing clock: every call is one second after the last."""

    def __init__(self, start: datetime = datetime(2026, 3, 2, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setattr(identity_service, "BCRYPT_ROUNDS", 4)


# =============================================================================
# LEDGER (no Flask)
# =============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(clock):
    ledger = Ledger(clock=clock)
    yield ledger
    ledger.close()


@pytest.fixture
def alice():
    return UserRef(id="u-alice", name="Alice")


@pytest.fixture
def bob():
    return UserRef(id="u-bob", name="Bob")


def add_variant(ledger, *, stock=5, price="10.00", sku="SKU-1", product_name="Shirt") -> Variant:
    """Create a product with one variant and return the variant."""
    product = Product(id=f"p-{sku}", name=product_name, base_price=Decimal(price))
    variant = Variant(
        id=f"v-{sku}",
        product_id=product.id,
        sku=sku,
        barcode=f"BC-{sku}",
        price=Decimal(price),
        stock=stock,
        attribute_summary="Size: M",
    )
    ledger.catalog.add_product(product, [variant])
    return variant


@pytest.fixture
def variant(ledger):
    return add_variant(ledger)


# =============================================================================
# FLASK APP
# =============================================================================


@pytest.fixture
def app():
    app = create_app(dict(TEST_CONFIG))

    with app.app_context():
        yield app
        get_ledger().close()
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(app):
    """One user per role."""
    return {
        "admin": identity_service.create_user("admin", PASSWORD, "Ada Admin", role="ADMIN"),
        "manager": identity_service.create_user("manager", PASSWORD, "Max Manager", role="MANAGER"),
        "seller": identity_service.create_user("seller", PASSWORD, "Sam Seller", role="SELLER"),
    }


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(client, users):
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture
def seller_headers(client, users):
    return auth_headers(get_auth_token(client, "seller"))
