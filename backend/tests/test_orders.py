from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from models.cart import Cart, CartItem
from models.order import Order, OrderItem, OrderStatus, OrderStatusHistory, PaymentStatus
from services.order_service import generate_order_number, is_valid_transition, order_number_prefix
from utils.errors import BadRequestException, ConflictException, NotFoundException


# --- Order numbers ---

def test_order_number_prefix_is_yymmdd():
    assert order_number_prefix(date(2024, 1, 1)) == 240101
    assert order_number_prefix(date(2031, 12, 9)) == 311209


def test_first_order_number_of_the_day(db_session):
    assert generate_order_number(db_session, date(2024, 1, 1)) == 2401010001


def test_order_numbers_increase_within_a_day_and_reset_next_day(place_order, clock, restaurant, make_menu_item):
    pizza = make_menu_item(restaurant)

    first = place_order([(pizza, 1)])
    second = place_order([(pizza, 1)])
    assert first.order_number == 2401010001
    assert second.order_number == 2401010002

    clock.now = datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc)
    third = place_order([(pizza, 1)])
    assert third.order_number == 2401020001


# --- Creation ---

def test_create_order_snapshots_cart_and_totals(place_order, restaurant, make_menu_item, db_session):
    pizza = make_menu_item(restaurant, "Pizza", "10.00")
    soda = make_menu_item(restaurant, "Soda", "5.00")

    order = place_order(
        [(pizza, 2), (soda, 1)],
        tax=Decimal("2.50"),
        delivery_fee=Decimal("3.00"),
        discount=Decimal("0"),
        total_amount=Decimal("30.50"),
    )

    assert order.status == OrderStatus.PLACED
    assert order.payment_status == PaymentStatus.PENDING
    assert order.subtotal == Decimal("25.00")
    assert order.total_amount == Decimal("30.50")

    items = db_session.query(OrderItem).filter(OrderItem.order_id == order.id).all()
    assert len(items) == 2
    assert sum(i.price_at_order * i.quantity for i in items) == order.subtotal
    assert {i.item_name_snapshot for i in items} == {"Pizza", "Soda"}


def test_total_is_derived_when_not_supplied(place_order, restaurant, make_menu_item):
    pizza = make_menu_item(restaurant, price="12.40")
    order = place_order([(pizza, 1)], tax=Decimal("1.00"), delivery_fee=Decimal("2.00"), discount=Decimal("0.40"))
    assert order.total_amount == Decimal("15.00")


def test_inconsistent_total_is_rejected(place_order, restaurant, make_menu_item):
    pizza = make_menu_item(restaurant, price="10.00")
    with pytest.raises(BadRequestException):
        place_order([(pizza, 1)], total_amount=Decimal("99.00"))


def test_create_order_deletes_the_cart(place_order, restaurant, make_menu_item, db_session):
    pizza = make_menu_item(restaurant)
    order = place_order([(pizza, 3)])

    assert db_session.query(Cart).count() == 0
    assert db_session.query(CartItem).count() == 0
    assert order.items[0].quantity == 3


def test_create_order_writes_one_placed_history_entry(place_order, restaurant, make_menu_item, db_session, customer):
    pizza = make_menu_item(restaurant)
    order = place_order([(pizza, 1)])

    entries = db_session.query(OrderStatusHistory).filter(OrderStatusHistory.order_id == order.id).all()
    assert len(entries) == 1
    assert entries[0].previous_status is None
    assert entries[0].new_status == OrderStatus.PLACED
    assert entries[0].changed_by_user_id == customer.id
    assert entries[0].actor_type == "customer"


def test_empty_cart_cannot_be_ordered(cart_service, order_service, restaurant, customer, address):
    cart = cart_service.create_cart(restaurant.id, customer)
    with pytest.raises(BadRequestException):
        order_service.create_order_from_cart(cart.id, address.id, "cash", None, customer)


def test_other_users_address_is_not_found(place_order, restaurant, make_menu_item, make_user, make_address):
    pizza = make_menu_item(restaurant)
    stranger = make_user()
    their_address = make_address(stranger)
    with pytest.raises(NotFoundException):
        place_order([(pizza, 1)], address_id=their_address.id)


def test_later_price_change_does_not_touch_the_order(place_order, restaurant, make_menu_item, db_session):
    pizza = make_menu_item(restaurant, price="10.00")
    order = place_order([(pizza, 1)])

    pizza.price = Decimal("14.00")
    db_session.commit()

    db_session.refresh(order)
    assert order.items[0].price_at_order == Decimal("10.00")
    assert order.total_amount == Decimal("10.00")


# --- State machine ---

@pytest.mark.parametrize("current,new,allowed", [
    ("placed", "preparing", True),
    ("placed", "cancelled", True),
    ("placed", "ready", False),
    ("preparing", "ready", True),
    ("ready", "on_the_way", True),
    ("on_the_way", "delivered", True),
    ("on_the_way", "cancelled", False),
    ("delivered", "preparing", False),
    ("cancelled", "placed", False),
])
def test_transition_table(current, new, allowed):
    assert is_valid_transition(current, new) is allowed


def test_update_status_appends_history(place_order, order_service, history_service, restaurant, make_menu_item, owner):
    pizza = make_menu_item(restaurant)
    order = place_order([(pizza, 1)])

    updated = order_service.update_order_status(order.id, OrderStatus.PREPARING, changed_by=owner)

    assert updated.status == OrderStatus.PREPARING
    latest = history_service.get_latest_status(order.id)
    assert latest.new_status == updated.status
    assert latest.previous_status == OrderStatus.PLACED
    assert latest.note == "Status changed from placed to preparing"
    assert latest.actor_type == "owner"


def test_invalid_transition_leaves_order_untouched(place_order, order_service, history_service, restaurant, make_menu_item, owner):
    pizza = make_menu_item(restaurant)
    order = place_order([(pizza, 1)])
    for step in (OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.ON_THE_WAY, OrderStatus.DELIVERED):
        order_service.update_order_status(order.id, step, changed_by=owner)

    with pytest.raises(BadRequestException):
        order_service.update_order_status(order.id, OrderStatus.PREPARING, changed_by=owner)

    assert order_service.get_order(order.id).status == OrderStatus.DELIVERED
    assert len(history_service.get_order_status_history(order.id)) == 5


def test_system_change_is_recorded_without_actor(place_order, order_service, history_service, restaurant, make_menu_item):
    pizza = make_menu_item(restaurant)
    order = place_order([(pizza, 1)])

    order_service.update_order_status(order.id, OrderStatus.CANCELLED, note="Payment timed out")

    latest = history_service.get_latest_status(order.id)
    assert latest.changed_by_user_id is None
    assert latest.actor_type == "system"
    assert latest.note == "Payment timed out"


def test_payment_completion_sets_paid_at(place_order, order_service, restaurant, make_menu_item, clock):
    pizza = make_menu_item(restaurant)
    order = place_order([(pizza, 1)])

    updated = order_service.update_payment_status(order.id, PaymentStatus.COMPLETED)
    assert updated.payment_status == PaymentStatus.COMPLETED
    assert updated.paid_at is not None
    # Fulfilment status is independent of payment
    assert updated.status == OrderStatus.PLACED


def test_assign_delivery_requires_a_driver_and_a_ready_kitchen(place_order, order_service, restaurant, make_menu_item, driver, customer, owner):
    pizza = make_menu_item(restaurant)
    order = place_order([(pizza, 1)])

    with pytest.raises(BadRequestException):
        order_service.assign_delivery(order.id, driver.id)

    order_service.update_order_status(order.id, OrderStatus.PREPARING, changed_by=owner)
    with pytest.raises(BadRequestException):
        order_service.assign_delivery(order.id, customer.id)

    delivery = order_service.assign_delivery(order.id, driver.id)
    assert delivery.delivery_user_id == driver.id
    assert delivery.assigned_at is not None

    for step in (OrderStatus.READY, OrderStatus.ON_THE_WAY, OrderStatus.DELIVERED):
        order_service.update_order_status(order.id, step, changed_by=owner)
    assert order_service.get_order_detail(order.id).delivery.completed_at is not None


def test_calculate_order_total_uses_snapshots(place_order, order_service, restaurant, make_menu_item):
    pizza = make_menu_item(restaurant, price="7.25")
    order = place_order([(pizza, 4)], delivery_fee=Decimal("3.00"))
    assert order_service.calculate_order_total(order.id) == Decimal("29.00")


def test_user_orders_are_paginated_newest_first(place_order, order_service, restaurant, make_menu_item, customer, clock):
    pizza = make_menu_item(restaurant)
    placed = []
    for hour in (9, 10, 11):
        clock.now = datetime(2024, 3, 5, hour, tzinfo=timezone.utc)
        placed.append(place_order([(pizza, 1)]))

    rows, total = order_service.get_user_orders(customer, page=1, page_size=2)
    assert total == 3
    assert [o.id for o in rows] == [placed[2].id, placed[1].id]


# --- HTTP ---

def _cart_with(client, headers, restaurant, item, quantity=1):
    cart = client.post(f"/carts/{restaurant.id}", headers=headers).json()
    client.post(f"/carts/{cart['id']}/items", json={"menu_item_id": item.id, "quantity": quantity}, headers=headers)
    return cart["id"]


def test_order_api_flow(client, auth_headers, customer, owner, restaurant, make_menu_item, address):
    pizza = make_menu_item(restaurant, price="10.00")
    headers = auth_headers(customer)
    cart_id = _cart_with(client, headers, restaurant, pizza, quantity=2)

    r = client.post("/orders", json={
        "cart_id": cart_id, "address_id": address.id, "payment_method": "card",
        "tax": "2.00", "delivery_fee": "3.00",
    }, headers=headers)
    assert r.status_code == 201, r.text
    order = r.json()
    assert order["total_amount"] == 25.0
    assert order["customer"]["id"] == customer.id
    assert order["restaurant"]["name"] == "Trattoria Roma"
    assert [h["new_status"] for h in order["status_history"]] == ["placed"]

    assert client.get(f"/orders/number/{order['order_number']}", headers=headers).json()["id"] == order["id"]
    assert client.get(f"/orders/{order['id']}/total", headers=headers).json()["total"] == 20.0
    assert len(client.get(f"/orders/{order['id']}/items", headers=headers).json()) == 1

    my = client.get("/orders/my-orders", headers=headers).json()
    assert my["total"] == 1 and my["items"][0]["item_count"] == 2

    # Customers cannot move their own orders through the kitchen
    r = client.patch(f"/orders/{order['id']}/status", json={"status": "preparing"}, headers=headers)
    assert r.status_code == 403

    r = client.patch(f"/orders/{order['id']}/status", json={"status": "preparing"}, headers=auth_headers(owner))
    assert r.status_code == 200
    assert r.json()["status"] == "preparing"

    latest = client.get(f"/orders/{order['id']}/latest-status", headers=headers).json()
    assert latest["new_status"] == "preparing"
    assert latest["changed_by"]["id"] == owner.id

    history = client.get(f"/orders/{order['id']}/status-history", headers=headers).json()
    assert [h["new_status"] for h in history] == ["preparing", "placed"]


def test_invalid_transition_over_http(client, auth_headers, customer, owner, restaurant, make_menu_item, address):
    pizza = make_menu_item(restaurant)
    cart_id = _cart_with(client, auth_headers(customer), restaurant, pizza)
    order = client.post("/orders", json={"cart_id": cart_id, "address_id": address.id, "payment_method": "cash"},
                        headers=auth_headers(customer)).json()

    r = client.patch(f"/orders/{order['id']}/status", json={"status": "delivered"}, headers=auth_headers(owner))
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert r.json()["message"] == "Invalid status transition"


def test_staff_of_another_restaurant_is_forbidden(client, auth_headers, customer, make_user, make_restaurant, restaurant, make_menu_item, address):
    pizza = make_menu_item(restaurant)
    cart_id = _cart_with(client, auth_headers(customer), restaurant, pizza)
    order = client.post("/orders", json={"cart_id": cart_id, "address_id": address.id, "payment_method": "cash"},
                        headers=auth_headers(customer)).json()

    rival = make_user("owner")
    make_restaurant("Rival Diner", admin_user=rival)

    r = client.patch(f"/orders/{order['id']}/status", json={"status": "preparing"}, headers=auth_headers(rival))
    assert r.status_code == 403
    # Nor can they read it
    assert client.get(f"/orders/{order['id']}", headers=auth_headers(rival)).status_code == 404


def test_restaurant_dashboard(client, auth_headers, place_order, order_service, restaurant, make_menu_item, owner, clock):
    pizza = make_menu_item(restaurant, price="10.00")
    clock.now = datetime.now(timezone.utc)
    first = place_order([(pizza, 1)])
    place_order([(pizza, 2)])
    order_service.update_order_status(first.id, OrderStatus.PREPARING, changed_by=owner)

    r = client.get(f"/admin/restaurants/{restaurant.id}/dashboard", headers=auth_headers(owner))
    assert r.status_code == 200, r.text
    stats = r.json()
    assert stats["today_orders"] == 2
    assert stats["active_orders"] == 1
    assert stats["pending_orders"] == 1
    assert stats["today_revenue"] == 30.0
    assert len(stats["recent_orders"]) == 2

    listing = client.get(f"/admin/restaurants/{restaurant.id}/orders?status=placed", headers=auth_headers(owner)).json()
    assert listing["total"] == 1


# --- Atomic conversion ---

def _assert_cart_untouched(db_session, quantity):
    cart = db_session.query(Cart).one()
    assert [ci.quantity for ci in cart.items] == [quantity]


def test_number_collision_rolls_back_the_whole_order(place_order, restaurant, make_menu_item, db_session, monkeypatch):
    pizza = make_menu_item(restaurant)
    taken = place_order([(pizza, 1)]).order_number

    monkeypatch.setattr("services.order_service.generate_order_number", lambda db, on_date: taken)
    with pytest.raises(ConflictException):
        place_order([(pizza, 2)])

    assert db_session.query(Order).count() == 1
    assert db_session.query(OrderItem).count() == 1
    assert db_session.query(OrderStatusHistory).count() == 1
    _assert_cart_untouched(db_session, 2)


def test_exhausted_day_is_a_conflict(place_order, restaurant, make_menu_item, db_session):
    pizza = make_menu_item(restaurant)
    first = place_order([(pizza, 1)])
    first.order_number = 2401019999
    db_session.commit()

    with pytest.raises(ConflictException):
        generate_order_number(db_session, date(2024, 1, 1))
    with pytest.raises(ConflictException):
        place_order([(pizza, 3)])

    assert db_session.query(Order).count() == 1
    assert db_session.query(OrderStatusHistory).count() == 1
    _assert_cart_untouched(db_session, 3)

    # The next day starts a fresh range
    assert generate_order_number(db_session, date(2024, 1, 2)) == 2401020001


# --- Concurrent requests ---

def test_cart_is_consumed_by_a_single_checkout(cart_service, order_service, other_order_service, restaurant, make_menu_item,
                                               customer, address, db_session):
    pizza = make_menu_item(restaurant)
    cart = cart_service.create_cart(restaurant.id, customer)
    cart_service.add_item(cart.id, pizza.id, 2, customer)
    # This session keeps the cart and its lines loaded while the other request checks out
    assert len(cart_service.get_cart(cart.id, customer).items) == 1

    other_order_service.create_order_from_cart(
        cart_id=cart.id, address_id=address.id, payment_method="cash", notes=None, user=customer,
    )
    with pytest.raises(NotFoundException):
        order_service.create_order_from_cart(
            cart_id=cart.id, address_id=address.id, payment_method="cash", notes=None, user=customer,
        )

    assert db_session.query(Order).count() == 1
    assert db_session.query(Cart).count() == 0


def test_state_changes_read_the_committed_status(place_order, order_service, other_order_service, history_service,
                                                 restaurant, make_menu_item, owner, driver):
    pizza = make_menu_item(restaurant)
    order = place_order([(pizza, 1)])
    order_service.update_order_status(order.id, OrderStatus.PREPARING, changed_by=owner)

    # Loaded here while the kitchen was still preparing
    held = order_service.get_order(order.id)
    assert held.status == OrderStatus.PREPARING

    other_order_service.update_order_status(order.id, OrderStatus.READY)
    other_order_service.update_order_status(order.id, OrderStatus.ON_THE_WAY)

    with pytest.raises(BadRequestException):
        order_service.assign_delivery(order.id, driver.id)
    with pytest.raises(BadRequestException) as exc:
        order_service.update_order_status(order.id, OrderStatus.CANCELLED, changed_by=owner)
    assert exc.value.data == {"from": "on_the_way", "to": "cancelled"}

    delivered = order_service.update_order_status(order.id, OrderStatus.DELIVERED, changed_by=owner)
    assert delivered.status == OrderStatus.DELIVERED

    history = history_service.get_order_status_history(order.id)
    assert [(h.previous_status, h.new_status) for h in history] == [
        (OrderStatus.ON_THE_WAY, OrderStatus.DELIVERED),
        (OrderStatus.READY, OrderStatus.ON_THE_WAY),
        (OrderStatus.PREPARING, OrderStatus.READY),
        (OrderStatus.PLACED, OrderStatus.PREPARING),
        (None, OrderStatus.PLACED),
    ]
