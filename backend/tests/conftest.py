import os

# Settings are read at import time, so the test database must be chosen first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["ENVIRONMENT"] = "test"

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
from models.restaurant import Restaurant, RestaurantAdmin, RestaurantAdminRole, Category, MenuItem
from models.users import User, Address, UserRole
from services.cart_service import CartService
from services.order_service import OrderService
from services.status_history import StatusHistoryService
from utils.hashing import get_password_hash
from utils.tokenJWT import create_access_token

PASSWORD = "secret123"


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def other_session(db_session):
    """A second session on the same database, standing in for a concurrent request."""
    session = Session(bind=db_session.get_bind(), autoflush=False)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(role=UserRole.CUSTOMER.value, email=None, first_name="Test", last_name="User"):
        counter["n"] += 1
        user = User(
            email=email or f"{role}{counter['n']}@example.com",
            password_hash=get_password_hash(PASSWORD),
            role=role,
            first_name=first_name,
            last_name=last_name,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def customer(make_user):
    return make_user(UserRole.CUSTOMER.value, first_name="Carla", last_name="Customer")


@pytest.fixture
def owner(make_user):
    return make_user(UserRole.OWNER.value, first_name="Oscar", last_name="Owner")


@pytest.fixture
def driver(make_user):
    return make_user(UserRole.DELIVERY.value, first_name="Dina", last_name="Driver")


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN.value, first_name="Ada", last_name="Admin")


@pytest.fixture
def make_restaurant(db_session):
    def _make(name="Trattoria", admin_user=None, is_active=True):
        restaurant = Restaurant(name=name, is_active=is_active)
        db_session.add(restaurant)
        db_session.flush()
        if admin_user is not None:
            db_session.add(RestaurantAdmin(
                user_id=admin_user.id, restaurant_id=restaurant.id, role=RestaurantAdminRole.OWNER.value,
            ))
        db_session.commit()
        db_session.refresh(restaurant)
        return restaurant

    return _make


@pytest.fixture
def restaurant(make_restaurant, owner):
    return make_restaurant("Trattoria Roma", admin_user=owner)


@pytest.fixture
def make_menu_item(db_session):
    def _make(restaurant, name="Margherita", price="10.00", is_available=True, category=None):
        item = MenuItem(
            restaurant_id=restaurant.id,
            category_id=category.id if category else None,
            name=name,
            price=Decimal(price),
            is_available=is_available,
        )
        db_session.add(item)
        db_session.commit()
        db_session.refresh(item)
        return item

    return _make


@pytest.fixture
def make_category(db_session):
    def _make(restaurant, name="Pizza"):
        category = Category(restaurant_id=restaurant.id, name=name)
        db_session.add(category)
        db_session.commit()
        db_session.refresh(category)
        return category

    return _make


@pytest.fixture
def make_address(db_session):
    def _make(user, street="1 Main St", is_primary=False):
        address = Address(
            user_id=user.id, street=street, city="Springfield", postal_code="12345",
            country="US", is_primary=is_primary,
        )
        db_session.add(address)
        db_session.commit()
        db_session.refresh(address)
        return address

    return _make


@pytest.fixture
def address(make_address, customer):
    return make_address(customer, is_primary=True)


@pytest.fixture
def auth_headers():
    def _headers(user):
        token = create_access_token({"sub": user.email, "role": user.role})
        return {"Authorization": f"Bearer {token}"}

    return _headers


class FixedClock:
    """Callable clock the tests can move forward."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def cart_service(db_session):
    return CartService(db_session)


@pytest.fixture
def history_service(db_session):
    return StatusHistoryService(db_session)


@pytest.fixture
def order_service(db_session, history_service, clock):
    return OrderService(db_session, history_service, clock=clock)


@pytest.fixture
def place_order(cart_service, order_service, address, customer):
    """Builds a cart from (menu_item, quantity) pairs and turns it into an order."""

    def _place(lines, user=None, address_id=None, **kwargs):
        user = user or customer
        restaurant_id = lines[0][0].restaurant_id
        cart = cart_service.create_cart(restaurant_id, user)
        for menu_item, quantity in lines:
            cart_service.add_item(cart.id, menu_item.id, quantity, user)
        kwargs.setdefault("payment_method", "cash")
        kwargs.setdefault("notes", None)
        return order_service.create_order_from_cart(
            cart_id=cart.id,
            address_id=address_id or address.id,
            user=user,
            **kwargs,
        )

    return _place


@pytest.fixture
def other_order_service(other_session, clock):
    return OrderService(other_session, StatusHistoryService(other_session), clock=clock)
