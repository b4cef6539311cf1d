import hashlib
import hmac
import os
import tempfile
import time
from datetime import datetime, timezone
from decimal import Decimal

# konfiguracja musi byc ustawiona przed importem storefront.*
_DB_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"

import pytest
from fastapi.testclient import TestClient

from storefront.main import app
from storefront.data.database import Base, SessionLocal, engine
from storefront.data.models import (
    CartItemModel,
    CartModel,
    CategoryModel,
    ProductModel,
    UserModel,
)
from storefront.services.lock_service import get_lock_service
from storefront.services.payment_client import PaymentClient, get_payment_client
from storefront.utils.errors import ExternalServiceError

WEBHOOK_SECRET = "whsec_test_secret"


class FakeLockService:
    """Ta sama semantyka co SET NX + compare-and-delete, tylko w pamieci."""

    def __init__(self):
        self.locks = {}

    def acquire_checkout_lock(self, cart_id, token, ttl):
        if cart_id in self.locks:
            return False
        self.locks[cart_id] = token
        return True

    def release_checkout_lock(self, cart_id, token):
        if self.locks.get(cart_id) == token:
            del self.locks[cart_id]
            return True
        return False

    def is_checkout_pending(self, cart_id):
        return cart_id in self.locks


class FakePaymentClient(PaymentClient):
    """Prawdziwa weryfikacja podpisu webhooka, sesje checkout bez sieci."""

    def __init__(self):
        super().__init__(api_key="sk_test_dummy", webhook_secret=WEBHOOK_SECRET)
        self.sessions = []
        self.fail = False

    def create_checkout_session(self, **params):
        if self.fail:
            raise ExternalServiceError("Blad dostawcy platnosci: connection error")
        self.sessions.append(params)
        session_id = f"cs_test_{len(self.sessions)}"
        return {"id": session_id, "url": f"https://checkout.stripe.test/pay/{session_id}"}


@pytest.fixture(autouse=True)
def clean_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def lock_service():
    return FakeLockService()


@pytest.fixture
def payment_client():
    return FakePaymentClient()


@pytest.fixture
def client(monkeypatch, lock_service, payment_client):
    app.dependency_overrides[get_lock_service] = lambda: lock_service
    # task celery buduje serwisy sam, poza DI FastAPI
    monkeypatch.setattr("storefront.tasks.payments.get_lock_service", lambda: lock_service)
    app.dependency_overrides[get_payment_client] = lambda: payment_client
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class Factory:
    def __init__(self, session):
        self.db = session

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def user(self, email="jan@example.com", role="user", first_name="Jan", last_name="Kowalski"):
        return self._save(
            UserModel(first_name=first_name, last_name=last_name, email=email, role=role)
        )

    def category(self, name, created_at=None):
        return self._save(
            CategoryModel(
                name=name,
                slug=name.lower().replace(" ", "-"),
                created_at=created_at or datetime.now(timezone.utc),
            )
        )

    def product(
        self,
        title,
        price,
        quantity=10,
        sold=0,
        description="",
        price_after_discount=None,
        image_cover_url=None,
        created_at=None,
    ):
        return self._save(
            ProductModel(
                title=title,
                slug=title.lower().replace(" ", "-"),
                description=description,
                quantity=quantity,
                sold=sold,
                price=Decimal(str(price)),
                price_after_discount=(
                    Decimal(str(price_after_discount)) if price_after_discount is not None else None
                ),
                image_cover_url=image_cover_url,
                created_at=created_at or datetime.now(timezone.utc),
            )
        )

    def cart(self, user, lines, discount=None):
        """lines: [(product, quantity, price)]"""
        cart = CartModel(
            user_id=user.id,
            total_cart_price=sum(
                (Decimal(str(price)) * qty for _, qty, price in lines), Decimal("0.00")
            ),
            total_price_after_discount=Decimal(str(discount)) if discount is not None else None,
            version=1,
        )
        for product, qty, price in lines:
            cart.items.append(
                CartItemModel(product_id=product.id, quantity=qty, price=Decimal(str(price)))
            )
        return self._save(cart)


@pytest.fixture
def factory(db):
    return Factory(db)


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def sign():
    return sign_payload
