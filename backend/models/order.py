# backend/models/order.py
import enum
from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, BigInteger, String, Text, Boolean, Numeric, ForeignKey,
    DateTime, Enum, CheckConstraint,
)
from sqlalchemy.orm import relationship
from database import Base


def _utcnow():
    return datetime.now(timezone.utc)


# Fulfilment states of an order
class OrderStatus(str, enum.Enum):
    PLACED = "placed"
    PREPARING = "preparing"
    READY = "ready"
    ON_THE_WAY = "on_the_way"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Payment progress, tracked independently of fulfilment
class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    CARD = "card"
    CASH = "cash"
    WALLET = "wallet"
    THIRD_PARTY = "third_party"


def _enum_column(enum_cls, **kwargs):
    # Persist the lower-case values rather than the member names
    return Enum(enum_cls, values_callable=lambda e: [m.value for m in e], native_enum=False, **kwargs)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(BigInteger, unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), index=True, nullable=False)
    address_id = Column(Integer, ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True)
    status = Column(_enum_column(OrderStatus, length=20), default=OrderStatus.PLACED, nullable=False, index=True)

    # Monetary breakdown; total_amount = subtotal + tax + delivery_fee - discount
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), default=0, nullable=False)
    discount = Column(Numeric(10, 2), default=0, nullable=False)
    delivery_fee = Column(Numeric(10, 2), default=0, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)

    # Payment metadata
    payment_status = Column(_enum_column(PaymentStatus, length=20), default=PaymentStatus.PENDING, nullable=False)
    payment_method = Column(_enum_column(PaymentMethod, length=20), default=PaymentMethod.CASH, nullable=False)
    is_prepaid = Column(Boolean, default=False, nullable=False)

    placed_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")
    status_history = relationship(
        "OrderStatusHistory", back_populates="order", cascade="all, delete-orphan",
        order_by=lambda: [OrderStatusHistory.created_at.desc(), OrderStatusHistory.id.desc()],
    )
    delivery = relationship("Delivery", back_populates="order", uselist=False, cascade="all, delete-orphan")
    user = relationship("User")
    restaurant = relationship("Restaurant")
    address = relationship("Address")


# Snapshot of one cart line at the moment the order was placed
class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Integer, CheckConstraint("quantity >= 1"), nullable=False, default=1)
    price_at_order = Column(Numeric(10, 2), nullable=False)
    item_name_snapshot = Column(String(200), nullable=False)

    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem")

    @property
    def line_total(self):
        return self.price_at_order * self.quantity


# Append-only ledger of status transitions; the newest row mirrors Order.status
class OrderStatusHistory(Base):
    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    previous_status = Column(_enum_column(OrderStatus, length=20), nullable=True)
    new_status = Column(_enum_column(OrderStatus, length=20), nullable=False)
    changed_by_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_type = Column(String(30), nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)

    order = relationship("Order", back_populates="status_history")
    changed_by = relationship("User")


# Driver assignment; one row per order
class Delivery(Base):
    __tablename__ = "deliveries"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), unique=True, nullable=False)
    delivery_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    order = relationship("Order", back_populates="delivery")
    delivery_user = relationship("User")
