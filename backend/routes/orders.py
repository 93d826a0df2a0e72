# backend/routes/orders.py
from typing import List, Optional
from fastapi import APIRouter, Depends, Request, Query, status

from config import settings
from utils.tokenJWT import get_current_user, role_required
from utils.audit import write_log, client_ip
from models.users import User, ADMIN_ROLES
from models.order import Order, OrderItem, OrderStatus, OrderStatusHistory, Delivery
from schemas.user import UserSummary
from schemas.address import AddressOut
from schemas.order import (
    OrderDetail, OrderSummary, OrdersPage, OrderItemOut, OrderCreatePayload, OrderStatusPatch,
    PaymentStatusPatch, AssignDeliveryPayload, OrderTotalOut, RestaurantSummary,
    StatusHistoryOut, DeliveryOut,
)
from services.access import ensure_restaurant_access
from services.deps import get_order_service, get_status_history_service
from services.order_service import OrderService
from services.status_history import StatusHistoryService

router = APIRouter(prefix="/orders", tags=["Orders"])


# --- Mapping helpers (shared with the restaurant admin routes) ---

def item_to_out(it: OrderItem) -> OrderItemOut:
    return OrderItemOut(
        id=it.id,
        menu_item_id=it.menu_item_id,
        item_name=it.item_name_snapshot,
        quantity=it.quantity,
        price_at_order=float(it.price_at_order),
        line_total=float(it.line_total),
    )


def history_to_out(entry: OrderStatusHistory) -> StatusHistoryOut:
    return StatusHistoryOut(
        id=entry.id,
        previous_status=entry.previous_status,
        new_status=entry.new_status,
        actor_type=entry.actor_type,
        note=entry.note,
        changed_at=entry.created_at,
        changed_by=UserSummary.model_validate(entry.changed_by) if entry.changed_by else None,
    )


def delivery_to_out(delivery: Delivery) -> DeliveryOut:
    driver = delivery.delivery_user
    return DeliveryOut(
        id=delivery.id,
        order_id=delivery.order_id,
        driver_id=delivery.delivery_user_id,
        driver_name=driver.full_name if driver else None,
        assigned_at=delivery.assigned_at,
        accepted_at=delivery.accepted_at,
        completed_at=delivery.completed_at,
    )


def order_to_summary(order: Order) -> OrderSummary:
    return OrderSummary(
        id=order.id,
        order_number=order.order_number,
        status=order.status,
        payment_status=order.payment_status,
        total_amount=float(order.total_amount),
        placed_at=order.placed_at,
        restaurant_id=order.restaurant_id,
        item_count=sum(it.quantity for it in order.items),
    )


def order_to_detail(order: Order) -> OrderDetail:
    return OrderDetail(
        id=order.id,
        order_number=order.order_number,
        status=order.status,
        subtotal=float(order.subtotal),
        tax=float(order.tax),
        discount=float(order.discount),
        delivery_fee=float(order.delivery_fee),
        total_amount=float(order.total_amount),
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        is_prepaid=order.is_prepaid,
        placed_at=order.placed_at,
        paid_at=order.paid_at,
        notes=order.notes,
        customer=UserSummary.model_validate(order.user),
        restaurant=RestaurantSummary.model_validate(order.restaurant),
        address=AddressOut.model_validate(order.address) if order.address else None,
        items=[item_to_out(it) for it in order.items],
        status_history=[history_to_out(h) for h in order.status_history],
        delivery=delivery_to_out(order.delivery) if order.delivery else None,
    )


# --- Customer endpoints ---

# Turn a cart into an order
@router.post("", response_model=OrderDetail, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreatePayload,
    request: Request,
    current_user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    order = orders.create_order_from_cart(
        cart_id=payload.cart_id,
        address_id=payload.address_id,
        payment_method=payload.payment_method,
        notes=payload.notes,
        user=current_user,
        tax=payload.tax,
        delivery_fee=payload.delivery_fee,
        discount=payload.discount,
        total_amount=payload.total_amount,
        is_prepaid=payload.is_prepaid,
    )
    out = order_to_detail(order)

    write_log(
        orders.db, user_id=current_user.id, action="ORDER_CREATE", resource="orders",
        resource_id=out.id, ip=client_ip(request),
        meta={"order_number": out.order_number, "cart_id": payload.cart_id, "total": out.total_amount},
    )
    return out


# List the caller's own orders
@router.get("/my-orders", response_model=OrdersPage)
def my_orders(
    status: Optional[OrderStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    rows, total = orders.get_user_orders(current_user, status=status, page=page, page_size=page_size)
    return OrdersPage(
        items=[order_to_summary(o) for o in rows],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/number/{order_number}", response_model=OrderDetail)
def get_order_by_number(
    order_number: int,
    current_user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    order = orders.get_order_by_number(order_number)
    return order_to_detail(orders.get_order_for_viewer(order.id, current_user))


@router.get("/{order_id}", response_model=OrderDetail)
def get_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    return order_to_detail(orders.get_order_for_viewer(order_id, current_user))


@router.get("/{order_id}/items", response_model=List[OrderItemOut])
def get_order_items(
    order_id: int,
    current_user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    orders.get_order_for_viewer(order_id, current_user)
    return [item_to_out(it) for it in orders.get_order_items(order_id)]


@router.get("/{order_id}/total", response_model=OrderTotalOut)
def get_order_total(
    order_id: int,
    current_user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
):
    orders.get_order_for_viewer(order_id, current_user)
    return OrderTotalOut(order_id=order_id, total=float(orders.calculate_order_total(order_id)))


# --- Status ledger ---

@router.get("/{order_id}/status-history", response_model=List[StatusHistoryOut])
def get_status_history(
    order_id: int,
    current_user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
    history: StatusHistoryService = Depends(get_status_history_service),
):
    orders.get_order_for_viewer(order_id, current_user)
    return [history_to_out(h) for h in history.get_order_status_history(order_id)]


@router.get("/{order_id}/latest-status", response_model=StatusHistoryOut)
def get_latest_status(
    order_id: int,
    current_user: User = Depends(get_current_user),
    orders: OrderService = Depends(get_order_service),
    history: StatusHistoryService = Depends(get_status_history_service),
):
    orders.get_order_for_viewer(order_id, current_user)
    return history_to_out(history.get_latest_status(order_id))


# --- Restaurant back-office ---

@router.patch("/{order_id}/status", response_model=OrderDetail)
def update_order_status(
    order_id: int,
    payload: OrderStatusPatch,
    request: Request,
    current_user: User = Depends(role_required(*ADMIN_ROLES)),
    orders: OrderService = Depends(get_order_service),
):
    order = orders.get_order(order_id)
    ensure_restaurant_access(orders.db, order.restaurant_id, current_user)
    previous = order.status

    order = orders.update_order_status(order_id, payload.status, changed_by=current_user, note=payload.note)
    out = order_to_detail(order)

    write_log(
        orders.db, user_id=current_user.id, action="ORDER_STATUS_UPDATE", resource="orders",
        resource_id=order_id, ip=client_ip(request),
        meta={"from": previous.value, "to": payload.status.value},
    )
    return out


@router.patch("/{order_id}/payment", response_model=OrderDetail)
def update_payment_status(
    order_id: int,
    payload: PaymentStatusPatch,
    request: Request,
    current_user: User = Depends(role_required(*ADMIN_ROLES)),
    orders: OrderService = Depends(get_order_service),
):
    order = orders.get_order(order_id)
    ensure_restaurant_access(orders.db, order.restaurant_id, current_user)

    out = order_to_detail(orders.update_payment_status(order_id, payload.payment_status))

    write_log(
        orders.db, user_id=current_user.id, action="ORDER_PAYMENT_UPDATE", resource="orders",
        resource_id=order_id, ip=client_ip(request),
        meta={"payment_status": payload.payment_status.value},
    )
    return out


@router.post("/{order_id}/assign-delivery", response_model=DeliveryOut)
def assign_delivery(
    order_id: int,
    payload: AssignDeliveryPayload,
    request: Request,
    current_user: User = Depends(role_required(*ADMIN_ROLES)),
    orders: OrderService = Depends(get_order_service),
):
    order = orders.get_order(order_id)
    ensure_restaurant_access(orders.db, order.restaurant_id, current_user)

    out = delivery_to_out(orders.assign_delivery(order_id, payload.driver_id))

    write_log(
        orders.db, user_id=current_user.id, action="ORDER_ASSIGN_DELIVERY", resource="orders",
        resource_id=order_id, ip=client_ip(request), meta={"driver_id": payload.driver_id},
    )
    return out
