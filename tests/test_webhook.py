import json
from decimal import Decimal

import pytest
from sqlalchemy import select

from storefront.data.models import CartModel, OrderModel, ProcessedWebhookEventModel, ProductModel


def checkout_event(event_id, event_type="checkout.session.completed", **session):
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": "cs_test_1", "object": "checkout.session", **session}},
    }


def post_event(client, sign, event, signature=None):
    body = json.dumps(event)
    headers = {"Content-Type": "application/json"}
    headers["stripe-signature"] = signature if signature is not None else sign(body)
    return client.post("/webhook-checkout", content=body, headers=headers)


def orders(db):
    db.expire_all()
    return db.execute(select(OrderModel)).scalars().all()


@pytest.fixture
def shop(factory):
    user = factory.user(email="karta@example.com")
    p1 = factory.product("Kubek", 10, quantity=5)
    p2 = factory.product("Talerz", 5, quantity=3)
    cart = factory.cart(user, [(p1, 2, 10), (p2, 1, 5)])
    return user, p1, p2, cart


@pytest.fixture
def completed(shop):
    user, _, _, cart = shop
    return checkout_event(
        "evt_1",
        client_reference_id=str(cart.id),
        customer_email=user.email,
        amount_total=2500,
        metadata={"shippingAddress": json.dumps({"city": "Alexandria"}), "totalPrice": "25.00"},
    )


def test_bad_signature_is_rejected_without_side_effects(client, db, sign, completed):
    resp = post_event(client, sign, completed, signature="t=1,v1=deadbeef")

    assert resp.status_code == 400
    assert resp.text.startswith("Webhook Error:")
    assert orders(db) == []


def test_missing_signature_is_rejected(client, db, completed):
    resp = client.post("/webhook-checkout", content=json.dumps(completed))

    assert resp.status_code == 400
    assert orders(db) == []


def test_signature_from_other_secret_is_rejected(client, db, sign, completed):
    body = json.dumps(completed)
    resp = client.post(
        "/webhook-checkout",
        content=body,
        headers={"stripe-signature": sign(body, secret="whsec_other")},
    )

    assert resp.status_code == 400
    assert orders(db) == []


def test_other_event_types_are_acknowledged(client, db, sign, shop):
    _, _, _, cart = shop
    event = checkout_event("evt_2", event_type="payment_intent.created", client_reference_id=str(cart.id))

    resp = post_event(client, sign, event)

    assert resp.status_code == 200
    assert resp.json() == {"received": True}
    assert orders(db) == []
    assert db.get(CartModel, cart.id) is not None


def test_completed_session_creates_paid_card_order(client, db, sign, shop, completed):
    user, p1, p2, cart = shop
    cart_id = cart.id

    resp = post_event(client, sign, completed)

    assert resp.status_code == 200
    assert resp.json() == {"received": True}

    [order] = orders(db)
    assert order.user_id == user.id
    assert order.payment_method_type == "card"
    assert order.payment_session_id == "cs_test_1"
    assert order.is_paid is True
    assert order.paid_at is not None
    assert order.total_order_price == Decimal("25.00")
    assert order.shipping_address == {"city": "Alexandria"}
    assert sorted((i.product_id, i.quantity) for i in order.items) == sorted([(p1.id, 2), (p2.id, 1)])

    assert (db.get(ProductModel, p1.id).quantity, db.get(ProductModel, p1.id).sold) == (3, 2)
    assert (db.get(ProductModel, p2.id).quantity, db.get(ProductModel, p2.id).sold) == (2, 1)
    assert db.get(CartModel, cart_id) is None

    event = db.get(ProcessedWebhookEventModel, "evt_1")
    assert event.order_id == order.id
    assert event.cart_id == cart_id


def test_paid_amount_comes_from_provider(client, db, sign, shop):
    user, _, _, cart = shop
    event = checkout_event(
        "evt_3",
        client_reference_id=str(cart.id),
        customer_email=user.email,
        amount_total=1999,
    )

    assert post_event(client, sign, event).status_code == 200

    [order] = orders(db)
    assert order.total_order_price == Decimal("19.99")


def test_customer_details_email_is_used_as_fallback(client, db, sign, shop):
    user, _, _, cart = shop
    event = checkout_event(
        "evt_4",
        client_reference_id=str(cart.id),
        customer_details={"email": user.email},
        amount_total=2500,
    )

    assert post_event(client, sign, event).status_code == 200
    assert len(orders(db)) == 1


def test_redelivered_event_creates_one_order(client, db, sign, shop, completed):
    _, p1, _, _ = shop

    assert post_event(client, sign, completed).status_code == 200
    assert post_event(client, sign, completed).status_code == 200

    assert len(orders(db)) == 1
    assert db.get(ProductModel, p1.id).quantity == 3


def test_new_event_for_same_session_creates_one_order(client, db, sign, shop, completed):
    _, p1, _, _ = shop

    assert post_event(client, sign, completed).status_code == 200
    again = dict(completed, id="evt_1_retry")
    assert post_event(client, sign, again).status_code == 200

    assert len(orders(db)) == 1
    assert db.get(ProductModel, p1.id).sold == 2
    assert db.get(ProcessedWebhookEventModel, "evt_1_retry") is not None


def test_unknown_cart_is_acknowledged_without_order(client, db, sign, shop):
    user, _, _, _ = shop
    event = checkout_event(
        "evt_5", client_reference_id="9999", customer_email=user.email, amount_total=2500
    )

    assert post_event(client, sign, event).status_code == 200
    assert orders(db) == []


def test_unknown_email_is_acknowledged_without_order(client, db, sign, shop):
    _, p1, _, cart = shop
    event = checkout_event(
        "evt_6",
        client_reference_id=str(cart.id),
        customer_email="nikt@example.com",
        amount_total=2500,
    )

    assert post_event(client, sign, event).status_code == 200
    assert orders(db) == []
    assert db.get(CartModel, cart.id) is not None
    assert db.get(ProductModel, p1.id).quantity == 5


def test_expired_session_releases_checkout_lock(client, sign, lock_service, shop):
    _, _, _, cart = shop
    lock_service.locks[cart.id] = "tok-1"
    event = checkout_event(
        "evt_7",
        event_type="checkout.session.expired",
        client_reference_id=str(cart.id),
        metadata={"lockToken": "tok-1"},
    )

    assert post_event(client, sign, event).status_code == 200
    assert lock_service.locks == {}


def test_expired_session_with_stale_token_keeps_newer_lock(client, sign, lock_service, shop):
    _, _, _, cart = shop
    lock_service.locks[cart.id] = "tok-2"
    event = checkout_event(
        "evt_8",
        event_type="checkout.session.expired",
        client_reference_id=str(cart.id),
        metadata={"lockToken": "tok-1"},
    )

    assert post_event(client, sign, event).status_code == 200
    assert lock_service.locks == {cart.id: "tok-2"}


def test_full_card_flow(client, db, sign, lock_service, shop):
    user, p1, _, cart = shop

    session = client.post(f"/orders/checkout-session/{cart.id}", params={"user_id": user.id}).json()
    token = lock_service.locks[cart.id]

    event = checkout_event(
        "evt_9",
        client_reference_id=str(cart.id),
        customer_email=user.email,
        amount_total=2500,
        metadata={"lockToken": token, "shippingAddress": "{}", "totalPrice": "25.00"},
    )
    event["data"]["object"]["id"] = session["session_id"]

    assert post_event(client, sign, event).status_code == 200

    [order] = orders(db)
    assert order.payment_session_id == session["session_id"]
    assert order.shipping_address is None
    assert db.get(ProductModel, p1.id).sold == 2
    # po zapisanym zamowieniu koszyk nie czeka juz na platnosc
    assert lock_service.locks == {}


def test_paid_order_does_not_release_a_newer_lock(client, db, sign, lock_service, shop):
    user, _, _, cart = shop
    cart_id = cart.id
    lock_service.locks[cart_id] = "tok-new"
    event = checkout_event(
        "evt_10",
        client_reference_id=str(cart_id),
        customer_email=user.email,
        amount_total=2500,
        metadata={"lockToken": "tok-old"},
    )

    assert post_event(client, sign, event).status_code == 200

    assert len(orders(db)) == 1
    assert lock_service.locks == {cart_id: "tok-new"}
