from decimal import Decimal

import pytest

from models.cart import Cart, CartItem
from utils.errors import BadRequestException, ConflictException, NotFoundException


def test_adding_same_item_twice_merges_quantity(cart_service, restaurant, make_menu_item, customer, db_session):
    pizza = make_menu_item(restaurant, price="10.00")
    cart = cart_service.create_cart(restaurant.id, customer)

    cart_service.add_item(cart.id, pizza.id, 2, customer)
    cart = cart_service.add_item(cart.id, pizza.id, 3, customer)

    assert len(cart.items) == 1
    assert cart.items[0].quantity == 5
    assert db_session.query(CartItem).filter(CartItem.cart_id == cart.id).count() == 1


def test_price_is_captured_when_first_added(cart_service, restaurant, make_menu_item, customer, db_session):
    pizza = make_menu_item(restaurant, price="10.00")
    cart = cart_service.create_cart(restaurant.id, customer)
    cart_service.add_item(cart.id, pizza.id, 1, customer)

    pizza.price = Decimal("12.00")
    db_session.commit()
    cart = cart_service.add_item(cart.id, pizza.id, 1, customer)

    assert cart.items[0].price_at_add == Decimal("10.00")
    assert cart.items[0].line_total == Decimal("20.00")


def test_item_from_another_restaurant_is_rejected(cart_service, restaurant, make_restaurant, make_menu_item, customer):
    elsewhere = make_menu_item(make_restaurant("Sakura"), name="Maki")
    cart = cart_service.create_cart(restaurant.id, customer)
    with pytest.raises(BadRequestException):
        cart_service.add_item(cart.id, elsewhere.id, 1, customer)


def test_unavailable_item_is_rejected(cart_service, restaurant, make_menu_item, customer):
    sold_out = make_menu_item(restaurant, is_available=False)
    cart = cart_service.create_cart(restaurant.id, customer)
    with pytest.raises(BadRequestException):
        cart_service.add_item(cart.id, sold_out.id, 1, customer)


def test_zero_quantity_is_rejected(cart_service, restaurant, make_menu_item, customer):
    pizza = make_menu_item(restaurant)
    cart = cart_service.create_cart(restaurant.id, customer)
    with pytest.raises(BadRequestException):
        cart_service.add_item(cart.id, pizza.id, 0, customer)


def test_one_cart_per_user_and_restaurant(cart_service, restaurant, customer):
    cart = cart_service.create_cart(restaurant.id, customer)
    with pytest.raises(ConflictException) as exc:
        cart_service.create_cart(restaurant.id, customer)
    assert exc.value.data == {"cart_id": cart.id}


def test_anonymous_carts_do_not_collide(cart_service, restaurant):
    first = cart_service.create_cart(restaurant.id)
    second = cart_service.create_cart(restaurant.id)
    assert first.id != second.id
    assert first.user_id is None


def test_inactive_restaurant_has_no_carts(cart_service, make_restaurant, customer):
    closed = make_restaurant("Closed", is_active=False)
    with pytest.raises(NotFoundException):
        cart_service.create_cart(closed.id, customer)


def test_cart_of_another_user_is_hidden(cart_service, restaurant, make_menu_item, customer, make_user):
    pizza = make_menu_item(restaurant)
    cart = cart_service.create_cart(restaurant.id, customer)
    cart = cart_service.add_item(cart.id, pizza.id, 1, customer)
    stranger = make_user()

    with pytest.raises(NotFoundException):
        cart_service.get_cart(cart.id, stranger)
    with pytest.raises(NotFoundException):
        cart_service.update_item(cart.items[0].id, 4, stranger)


def test_update_and_remove_item(cart_service, restaurant, make_menu_item, customer):
    pizza = make_menu_item(restaurant, price="9.00")
    soda = make_menu_item(restaurant, name="Soda", price="2.50")
    cart = cart_service.create_cart(restaurant.id, customer)
    cart_service.add_item(cart.id, pizza.id, 1, customer)
    cart = cart_service.add_item(cart.id, soda.id, 2, customer)

    pizza_line = next(i for i in cart.items if i.menu_item_id == pizza.id)
    cart = cart_service.update_item(pizza_line.id, 3, customer)
    assert next(i for i in cart.items if i.menu_item_id == pizza.id).quantity == 3

    cart = cart_service.remove_item(pizza_line.id, customer)
    assert [i.menu_item_id for i in cart.items] == [soda.id]


# --- HTTP ---

def test_cart_api(client, auth_headers, customer, restaurant, make_menu_item):
    pizza = make_menu_item(restaurant, price="10.00")
    soda = make_menu_item(restaurant, name="Soda", price="5.00")
    headers = auth_headers(customer)

    r = client.post(f"/carts/{restaurant.id}", headers=headers)
    assert r.status_code == 201
    cart_id = r.json()["id"]
    assert r.json()["user_id"] == customer.id

    client.post(f"/carts/{cart_id}/items", json={"menu_item_id": pizza.id, "quantity": 2}, headers=headers)
    r = client.post(f"/carts/{cart_id}/items", json={"menu_item_id": soda.id}, headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["subtotal"] == 25.0
    assert {i["name"]: i["quantity"] for i in body["items"]} == {"Margherita": 2, "Soda": 1}

    soda_line = next(i for i in body["items"] if i["name"] == "Soda")
    r = client.patch(f"/cart-items/{soda_line['id']}", json={"quantity": 4}, headers=headers)
    assert r.json()["subtotal"] == 40.0

    r = client.delete(f"/cart-items/{soda_line['id']}", headers=headers)
    assert r.json()["subtotal"] == 20.0

    assert [c["id"] for c in client.get("/carts", headers=headers).json()] == [cart_id]

    assert client.delete(f"/carts/{cart_id}", headers=headers).status_code == 204
    assert client.get(f"/carts/{cart_id}", headers=headers).status_code == 404


def test_duplicate_cart_returns_conflict_with_existing_id(client, auth_headers, customer, restaurant):
    headers = auth_headers(customer)
    first = client.post(f"/carts/{restaurant.id}", headers=headers).json()

    r = client.post(f"/carts/{restaurant.id}", headers=headers)
    assert r.status_code == 409
    assert r.json()["data"]["cart_id"] == first["id"]


def test_anonymous_cart_over_http(client, restaurant, make_menu_item):
    pizza = make_menu_item(restaurant)
    r = client.post(f"/carts/{restaurant.id}")
    assert r.status_code == 201
    assert r.json()["user_id"] is None

    r = client.post(f"/carts/{r.json()['id']}/items", json={"menu_item_id": pizza.id, "quantity": 1})
    assert r.status_code == 200
    assert len(r.json()["items"]) == 1


def test_zero_quantity_fails_validation(client, auth_headers, customer, restaurant, make_menu_item):
    pizza = make_menu_item(restaurant)
    headers = auth_headers(customer)
    cart_id = client.post(f"/carts/{restaurant.id}", headers=headers).json()["id"]

    r = client.post(f"/carts/{cart_id}/items", json={"menu_item_id": pizza.id, "quantity": 0}, headers=headers)
    assert r.status_code == 400
    assert r.json()["message"] == "Validation failed"


def test_carts_are_removed_with_their_owner(client, auth_headers, admin, cart_service, restaurant, make_menu_item, customer, db_session):
    pizza = make_menu_item(restaurant)
    cart = cart_service.create_cart(restaurant.id, customer)
    cart_service.add_item(cart.id, pizza.id, 1, customer)
    cart_id = cart.id

    assert client.delete(f"/users/{customer.id}", headers=auth_headers(admin)).status_code == 200

    assert db_session.query(Cart).filter(Cart.id == cart_id).count() == 0
    assert db_session.query(CartItem).filter(CartItem.cart_id == cart_id).count() == 0
    with pytest.raises(NotFoundException):
        cart_service.get_cart(cart_id)
