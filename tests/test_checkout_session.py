import json
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from storefront.data.models import CartModel, OrderModel, ProductModel
from storefront.services.payment_service import unit_amount


@pytest.fixture
def shop(factory):
    user = factory.user(email="kupujacy@example.com")
    p1 = factory.product("Kubek", "10.50", quantity=5, image_cover_url="https://cdn.test/kubek.png")
    p2 = factory.product("Talerz", 8, quantity=3, price_after_discount="7.99")
    cart = factory.cart(user, [(p1, 2, "10.50"), (p2, 1, "7.99")])
    return user, p1, p2, cart


@pytest.mark.parametrize(
    "price, expected",
    [("10", 1000), ("10.50", 1050), ("7.99", 799), ("0.005", 1), ("19.994", 1999)],
)
def test_unit_amount_is_in_minor_units(price, expected):
    assert unit_amount(Decimal(price)) == expected


def test_checkout_session_is_created_and_cart_is_locked(client, db, payment_client, lock_service, shop):
    user, p1, p2, cart = shop

    resp = client.post(
        f"/orders/checkout-session/{cart.id}",
        params={"user_id": user.id},
        json={"shipping_address": {"city": "Giza", "details": "ul. Prosta 1"}},
    )

    assert resp.status_code == 200
    assert resp.json() == {
        "status": "success",
        "url": "https://checkout.stripe.test/pay/cs_test_1",
        "session_id": "cs_test_1",
    }

    [params] = payment_client.sessions
    assert params["mode"] == "payment"
    assert params["customer_email"] == "kupujacy@example.com"
    assert params["client_reference_id"] == str(cart.id)
    assert params["success_url"] == "http://testserver/orders"
    assert params["cancel_url"] == "http://testserver/cart"
    assert params["line_items"] == [
        {
            "price_data": {
                "currency": "egp",
                "unit_amount": 1050,
                "product_data": {"name": "Kubek", "images": ["https://cdn.test/kubek.png"]},
            },
            "quantity": 2,
        },
        {
            "price_data": {
                "currency": "egp",
                "unit_amount": 799,
                "product_data": {"name": "Talerz"},
            },
            "quantity": 1,
        },
    ]

    metadata = params["metadata"]
    assert metadata["totalPrice"] == "28.99"
    assert json.loads(metadata["shippingAddress"])["city"] == "Giza"
    assert lock_service.locks[cart.id] == metadata["lockToken"]

    # koszyk i stany bez zmian do czasu webhooka
    db.expire_all()
    assert db.get(CartModel, cart.id) is not None
    assert db.get(ProductModel, p1.id).quantity == 5
    assert db.execute(select(func.count()).select_from(OrderModel)).scalar_one() == 0


def test_pending_checkout_blocks_second_session(client, payment_client, lock_service, shop):
    user, _, _, cart = shop
    lock_service.locks[cart.id] = "earlier-session"

    resp = client.post(f"/orders/checkout-session/{cart.id}", params={"user_id": user.id})

    assert resp.status_code == 409
    assert payment_client.sessions == []
    assert lock_service.locks[cart.id] == "earlier-session"


def test_provider_failure_releases_lock(client, payment_client, lock_service, shop):
    user, _, _, cart = shop
    payment_client.fail = True

    resp = client.post(f"/orders/checkout-session/{cart.id}", params={"user_id": user.id})

    assert resp.status_code == 502
    assert lock_service.locks == {}


def test_missing_cart_is_404(client, shop):
    user, _, _, _ = shop

    resp = client.post("/orders/checkout-session/9999", params={"user_id": user.id})

    assert resp.status_code == 404


def test_foreign_cart_is_forbidden(client, factory, lock_service, shop):
    _, _, _, cart = shop
    intruder = factory.user(email="obcy@example.com")

    resp = client.post(f"/orders/checkout-session/{cart.id}", params={"user_id": intruder.id})

    assert resp.status_code == 403
    assert lock_service.locks == {}


def test_locked_cart_cannot_be_modified(client, factory, shop):
    user, p1, _, cart = shop
    extra = factory.product("Miska", 3)

    assert client.post(f"/orders/checkout-session/{cart.id}", params={"user_id": user.id}).status_code == 200

    added = client.post(
        f"/carts/{cart.id}/items",
        params={"user_id": user.id},
        json={"product_id": extra.id, "quantity": 1},
    )
    removed = client.delete(f"/carts/{cart.id}/items/{p1.id}", params={"user_id": user.id})

    assert added.status_code == 409
    assert removed.status_code == 409
