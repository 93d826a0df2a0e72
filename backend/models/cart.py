# backend/models/cart.py
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, ForeignKey, DateTime, Numeric, UniqueConstraint, CheckConstraint, func
from sqlalchemy.orm import relationship
from database import Base


def _utcnow():
    return datetime.now(timezone.utc)


# A basket of items for one restaurant, optionally owned by a user
class Cart(Base):
    __tablename__ = "carts" # Table name

    id = Column(Integer, primary_key=True, index=True) # Primary key
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=True) # Anonymous carts have no user
    restaurant_id = Column(Integer, ForeignKey("restaurants.id", ondelete="CASCADE"), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now()) # Creation timestamp
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_utcnow)

    # One-to-many relationship with cart items
    items = relationship(
        "CartItem", back_populates="cart", cascade="all, delete-orphan",
        passive_deletes=True, order_by="CartItem.id",
    )
    restaurant = relationship("Restaurant")
    user = relationship("User")

    __table_args__ = (
        # One cart per user and restaurant; NULL users (anonymous carts) never collide
        UniqueConstraint("user_id", "restaurant_id", name="uq_cart_user_restaurant"),
    )


# Represents a single menu item (with quantity) within a cart
class CartItem(Base):
    __tablename__ = "cart_items" # Table name

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), index=True, nullable=False) # Foreign key to parent cart
    menu_item_id = Column(Integer, ForeignKey("menu_items.id", ondelete="CASCADE"), index=True, nullable=False)
    quantity = Column(Integer, CheckConstraint("quantity >= 1"), nullable=False, default=1)
    price_at_add = Column(Numeric(10, 2), nullable=False) # Unit price at the moment of addition
    added_at = Column(DateTime(timezone=True), default=_utcnow)

    cart = relationship("Cart", back_populates="items") # Relationship back to Cart
    menu_item = relationship("MenuItem") # Relationship to MenuItem

    __table_args__ = (
        # Unique constraint to prevent duplicate menu item entries in the same cart
        UniqueConstraint("cart_id", "menu_item_id", name="uq_cartitem_cart_menu_item"),
    )

    @property
    def line_total(self):
        return self.price_at_add * self.quantity
