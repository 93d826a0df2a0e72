# backend/models/restaurant.py
import enum
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Numeric, DateTime, ForeignKey,
    UniqueConstraint, CheckConstraint, func,
)
from sqlalchemy.orm import relationship
from database import Base


# Membership level of a user inside one restaurant
class RestaurantAdminRole(str, enum.Enum):
    OWNER = "owner"
    MANAGER = "manager"
    STAFF = "staff"


# Restaurant
# Top of the catalog tree: categories and menu items hang off it,
# carts and orders always point at exactly one restaurant.
class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    phone = Column(String(30), nullable=True)
    address = Column(String(255), nullable=True)
    currency = Column(String(10), default="USD", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    categories = relationship("Category", back_populates="restaurant", cascade="all, delete-orphan", passive_deletes=True)
    menu_items = relationship("MenuItem", back_populates="restaurant", cascade="all, delete-orphan", passive_deletes=True)
    admins = relationship("RestaurantAdmin", back_populates="restaurant", cascade="all, delete-orphan", passive_deletes=True)


# Links a user to a restaurant they are allowed to manage
class RestaurantAdmin(Base):
    __tablename__ = "restaurant_admins"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), index=True, nullable=False)
    role = Column(String(20), default=RestaurantAdminRole.OWNER.value, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="admin_roles")
    restaurant = relationship("Restaurant", back_populates="admins")

    __table_args__ = (
        UniqueConstraint("user_id", "restaurant_id", name="uq_restaurant_admin_user_restaurant"),
    )


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), index=True, nullable=False)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)

    restaurant = relationship("Restaurant", back_populates="categories")
    menu_items = relationship("MenuItem", back_populates="category")


# A dish on the menu. The price here is the live catalog price;
# carts and orders keep their own snapshots of it.
class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), index=True, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), index=True, nullable=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), CheckConstraint("price >= 0"), nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    restaurant = relationship("Restaurant", back_populates="menu_items")
    category = relationship("Category", back_populates="menu_items")
    images = relationship("MenuItemImage", back_populates="menu_item", cascade="all, delete-orphan", passive_deletes=True)


class MenuItemImage(Base):
    __tablename__ = "menu_item_images"

    id = Column(Integer, primary_key=True, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id", ondelete="CASCADE"), index=True, nullable=False)
    url = Column(String(1000), nullable=False)
    alt_text = Column(String(255), nullable=True)
    is_primary = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    menu_item = relationship("MenuItem", back_populates="images")
