import os
import random
import sys
from decimal import Decimal

# Add 'backend' folder to Python path
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

from database import SessionLocal, init_db
from models.users import User, Address, UserRole
from models.restaurant import Restaurant, RestaurantAdmin, RestaurantAdminRole, Category, MenuItem
from models.order import OrderStatus, PaymentMethod
from services.cart_service import CartService
from services.order_service import OrderService
from services.status_history import StatusHistoryService
from utils.hashing import get_password_hash

# Configuration
DEMO_PASSWORD = "demo1234"
ORDERS_PER_CUSTOMER = 5
MENUS = {
    "Trattoria Roma": {
        "Pizza": [("Margherita", "9.50"), ("Diavola", "11.00"), ("Quattro Formaggi", "12.00")],
        "Pasta": [("Carbonara", "10.50"), ("Arrabbiata", "9.00")],
        "Drinks": [("Lemonade", "3.00"), ("Espresso", "2.20")],
    },
    "Sakura Sushi": {
        "Rolls": [("California Roll", "8.00"), ("Spicy Tuna Roll", "9.50")],
        "Nigiri": [("Salmon Nigiri", "6.00"), ("Eel Nigiri", "7.20")],
        "Soups": [("Miso Soup", "3.50")],
    },
}
# Status paths a demo order is walked through
DEMO_PATHS = [
    [],
    [OrderStatus.PREPARING],
    [OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.ON_THE_WAY, OrderStatus.DELIVERED],
    [OrderStatus.CANCELLED],
]
# End Configuration


def _user(session, email, role, first_name, last_name):
    user = session.query(User).filter(User.email == email).first()
    if not user:
        user = User(
            email=email, password_hash=get_password_hash(DEMO_PASSWORD), role=role,
            first_name=first_name, last_name=last_name,
        )
        session.add(user)
        session.flush()
    return user


def seed():
    """Creates demo users, two restaurants with menus and a handful of orders."""
    init_db()
    session = SessionLocal()
    try:
        if session.query(Restaurant).count():
            print("Database already contains restaurants, skipping seed.")
            return

        admin = _user(session, "admin@example.com", UserRole.ADMIN.value, "Ada", "Admin")
        owner = _user(session, "owner@example.com", UserRole.OWNER.value, "Oscar", "Owner")
        driver = _user(session, "driver@example.com", UserRole.DELIVERY.value, "Dina", "Driver")
        customers = [
            _user(session, f"customer{i}@example.com", UserRole.CUSTOMER.value, f"Customer{i}", "Demo")
            for i in range(1, 4)
        ]
        for c in customers:
            session.add(Address(user_id=c.id, street=f"{random.randint(1, 200)} Main St",
                                city="Springfield", postal_code="12345", country="US", is_primary=True))

        restaurants = []
        for name, menu in MENUS.items():
            restaurant = Restaurant(name=name, phone="555-0100", address="1 Food Court", currency="USD")
            session.add(restaurant)
            session.flush()
            session.add(RestaurantAdmin(user_id=owner.id, restaurant_id=restaurant.id,
                                        role=RestaurantAdminRole.OWNER.value))
            for category_name, items in menu.items():
                category = Category(restaurant_id=restaurant.id, name=category_name)
                session.add(category)
                session.flush()
                for item_name, price in items:
                    session.add(MenuItem(restaurant_id=restaurant.id, category_id=category.id,
                                         name=item_name, price=Decimal(price)))
            restaurants.append(restaurant)
        session.commit()
        print(f"Inserted {len(restaurants)} restaurants.")

        carts = CartService(session)
        orders = OrderService(session, StatusHistoryService(session))
        placed = 0
        for customer in customers:
            address = customer.addresses[0]
            for _ in range(ORDERS_PER_CUSTOMER):
                restaurant = random.choice(restaurants)
                cart = carts.create_cart(restaurant.id, customer)
                for item in random.sample(restaurant.menu_items, k=random.randint(1, 3)):
                    carts.add_item(cart.id, item.id, random.randint(1, 3), customer)

                order = orders.create_order_from_cart(
                    cart_id=cart.id, address_id=address.id,
                    payment_method=random.choice(list(PaymentMethod)), notes=None, user=customer,
                    delivery_fee=Decimal("2.50"),
                )
                for step in random.choice(DEMO_PATHS):
                    if step == OrderStatus.ON_THE_WAY:
                        orders.assign_delivery(order.id, driver.id)
                    orders.update_order_status(order.id, step, changed_by=owner)
                placed += 1

        print(f"Placed {placed} demo orders. Log in as {admin.email} / {DEMO_PASSWORD}.")
    finally:
        session.close()


if __name__ == "__main__":
    seed()
