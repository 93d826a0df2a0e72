from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from models.order import OrderStatus, PaymentStatus, PaymentMethod
from schemas.user import UserSummary
from schemas.address import AddressOut


# Output schema for an individual order line item
class OrderItemOut(BaseModel):
    id: int
    menu_item_id: Optional[int] = None
    item_name: str
    quantity: int
    price_at_order: float
    line_total: float


# Input schema for turning a cart into an order
class OrderCreatePayload(BaseModel):
    cart_id: int
    address_id: int
    payment_method: PaymentMethod
    notes: Optional[str] = Field(None, max_length=500)
    tax: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    delivery_fee: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    discount: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    # When supplied it is stored as-is and must agree with the breakdown
    total_amount: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    is_prepaid: bool = False


class RestaurantSummary(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class StatusHistoryOut(BaseModel):
    id: int
    previous_status: Optional[OrderStatus] = None
    new_status: OrderStatus
    actor_type: Optional[str] = None
    note: Optional[str] = None
    changed_at: datetime
    changed_by: Optional[UserSummary] = None


class DeliveryOut(BaseModel):
    id: int
    order_id: int
    driver_id: Optional[int] = None
    driver_name: Optional[str] = None
    assigned_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


# Short form used in listings
class OrderSummary(BaseModel):
    id: int
    order_number: int
    status: OrderStatus
    payment_status: PaymentStatus
    total_amount: float
    placed_at: datetime
    restaurant_id: int
    item_count: int


# Output schema representing the full order details
class OrderDetail(BaseModel):
    id: int
    order_number: int
    status: OrderStatus
    subtotal: float
    tax: float
    discount: float
    delivery_fee: float
    total_amount: float
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    is_prepaid: bool
    placed_at: datetime
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    customer: UserSummary
    restaurant: RestaurantSummary
    address: Optional[AddressOut] = None
    items: List[OrderItemOut]
    status_history: List[StatusHistoryOut]
    delivery: Optional[DeliveryOut] = None


# Schema for paginated order lists
class OrdersPage(BaseModel):
    items: List[OrderSummary]
    total: int
    page: int
    page_size: int


# Schema for updating order status
class OrderStatusPatch(BaseModel):
    status: OrderStatus
    note: Optional[str] = Field(None, max_length=500)


class PaymentStatusPatch(BaseModel):
    payment_status: PaymentStatus


class AssignDeliveryPayload(BaseModel):
    driver_id: int


class OrderTotalOut(BaseModel):
    order_id: int
    total: float


class DashboardStats(BaseModel):
    active_orders: int
    pending_orders: int
    today_orders: int
    today_revenue: float
    today_delivered: int
    today_cancelled: int
    recent_orders: List[OrderSummary]
