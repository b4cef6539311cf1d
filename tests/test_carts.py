from decimal import Decimal

import pytest


@pytest.fixture
def user(factory):
    return factory.user()


@pytest.fixture
def cart_id(client, user):
    resp = client.post("/carts/", json={"user_id": user.id})
    assert resp.status_code == 200
    return resp.json()["cart_id"]


def test_create_cart_returns_existing_one(client, user, cart_id):
    again = client.post("/carts/", json={"user_id": user.id})

    assert again.json()["cart_id"] == cart_id
    assert again.json()["items"] == []
    assert again.json()["version"] == 1


def test_add_product_sets_price_and_total(client, factory, user, cart_id):
    product = factory.product("Kubek", "12.50", quantity=5)

    resp = client.post(
        f"/carts/{cart_id}/items",
        params={"user_id": user.id},
        json={"product_id": product.id, "quantity": 2, "color": "red"},
    )

    assert resp.status_code == 200
    body = resp.json()
    [item] = body["items"]
    assert (item["product_id"], item["quantity"], item["color"]) == (product.id, 2, "red")
    assert Decimal(item["price"]) == Decimal("12.50")
    assert Decimal(body["total_cart_price"]) == Decimal("25.00")
    assert body["version"] == 2


def test_adding_same_product_increments_quantity(client, factory, user, cart_id):
    product = factory.product("Kubek", 10, quantity=5)
    item = {"product_id": product.id, "quantity": 2}

    client.post(f"/carts/{cart_id}/items", params={"user_id": user.id}, json=item)
    resp = client.post(f"/carts/{cart_id}/items", params={"user_id": user.id}, json=item)

    body = resp.json()
    assert [(i["product_id"], i["quantity"]) for i in body["items"]] == [(product.id, 4)]
    assert Decimal(body["total_cart_price"]) == Decimal("40")
    assert body["version"] == 3


def test_cannot_add_more_than_in_stock(client, factory, user, cart_id):
    product = factory.product("Kubek", 10, quantity=1)

    resp = client.post(
        f"/carts/{cart_id}/items",
        params={"user_id": user.id},
        json={"product_id": product.id, "quantity": 2},
    )

    assert resp.status_code == 400


def test_unknown_product_is_404(client, user, cart_id):
    resp = client.post(
        f"/carts/{cart_id}/items",
        params={"user_id": user.id},
        json={"product_id": 9999, "quantity": 1},
    )

    assert resp.status_code == 404


def test_remove_product(client, factory, user, cart_id):
    kubek = factory.product("Kubek", 10)
    talerz = factory.product("Talerz", 5)
    for product in (kubek, talerz):
        client.post(
            f"/carts/{cart_id}/items",
            params={"user_id": user.id},
            json={"product_id": product.id, "quantity": 1},
        )

    resp = client.delete(f"/carts/{cart_id}/items/{kubek.id}", params={"user_id": user.id})

    assert resp.status_code == 200
    assert [i["product_id"] for i in resp.json()["items"]] == [talerz.id]
    assert Decimal(resp.json()["total_cart_price"]) == Decimal("5")

    missing = client.delete(f"/carts/{cart_id}/items/{kubek.id}", params={"user_id": user.id})
    assert missing.status_code == 404


def test_foreign_cart_is_forbidden(client, factory, cart_id):
    intruder = factory.user(email="obcy@example.com")
    product = factory.product("Kubek", 10)

    assert client.get(f"/carts/{cart_id}", params={"user_id": intruder.id}).status_code == 403
    resp = client.post(
        f"/carts/{cart_id}/items",
        params={"user_id": intruder.id},
        json={"product_id": product.id, "quantity": 1},
    )
    assert resp.status_code == 403


def test_missing_cart_is_404(client, user):
    assert client.get("/carts/9999", params={"user_id": user.id}).status_code == 404


def test_change_clears_discount(client, factory, user):
    product = factory.product("Kubek", 10)
    cart = factory.cart(user, [(product, 1, 10)], discount=8)

    resp = client.post(
        f"/carts/{cart.id}/items",
        params={"user_id": user.id},
        json={"product_id": product.id, "quantity": 1},
    )

    body = resp.json()
    assert body["total_price_after_discount"] is None
    assert Decimal(body["total_cart_price"]) == Decimal("20")


def test_invalid_quantity_is_rejected_by_schema(client, factory, user, cart_id):
    product = factory.product("Kubek", 10)

    resp = client.post(
        f"/carts/{cart_id}/items",
        params={"user_id": user.id},
        json={"product_id": product.id, "quantity": 0},
    )

    assert resp.status_code == 422


def test_update_item_quantity(client, factory, user, cart_id):
    product = factory.product("Kubek", 10, quantity=5)
    client.post(
        f"/carts/{cart_id}/items",
        params={"user_id": user.id},
        json={"product_id": product.id, "quantity": 1},
    )

    resp = client.put(
        f"/carts/{cart_id}/items/{product.id}",
        params={"user_id": user.id},
        json={"quantity": 3},
    )

    assert resp.status_code == 200
    assert resp.json()["items"][0]["quantity"] == 3
    assert Decimal(resp.json()["total_cart_price"]) == Decimal("30")

    too_many = client.put(
        f"/carts/{cart_id}/items/{product.id}",
        params={"user_id": user.id},
        json={"quantity": 6},
    )
    assert too_many.status_code == 400

    missing = client.put(
        f"/carts/{cart_id}/items/9999",
        params={"user_id": user.id},
        json={"quantity": 1},
    )
    assert missing.status_code == 404


def test_clear_cart(client, factory, user):
    product = factory.product("Kubek", 10)
    cart = factory.cart(user, [(product, 2, 10)], discount=15)

    resp = client.delete(f"/carts/{cart.id}/items", params={"user_id": user.id})

    assert resp.status_code == 200
    body = resp.json()
    assert body["items"] == []
    assert Decimal(body["total_cart_price"]) == Decimal("0")
    assert body["total_price_after_discount"] is None
    assert body["version"] == 2
