# backend/services/order_service.py
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from database import transaction
from models.cart import Cart, CartItem
from models.order import (
    Order, OrderItem, OrderStatus, OrderStatusHistory, PaymentStatus, PaymentMethod, Delivery,
)
from models.users import User, Address, UserRole
from services.access import has_restaurant_access
from services.status_history import StatusHistoryService
from utils.errors import BadRequestException, ConflictException, NotFoundException

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# Allowed fulfilment transitions; delivered and cancelled are terminal
ORDER_TRANSITIONS = {
    OrderStatus.PLACED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.ON_THE_WAY, OrderStatus.CANCELLED}),
    OrderStatus.ON_THE_WAY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Orders a driver can be attached to
ASSIGNABLE_STATUSES = frozenset({OrderStatus.PREPARING, OrderStatus.READY})
ACTIVE_STATUSES = (OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.ON_THE_WAY)

# Order numbers are YYMMDD followed by a four digit daily sequence
ORDER_SEQUENCE_SPAN = 10000


def is_valid_transition(current, new) -> bool:
    return OrderStatus(new) in ORDER_TRANSITIONS[OrderStatus(current)]


def _money(value) -> Decimal:
    return Decimal(str(value if value is not None else 0)).quantize(CENTS)


def order_number_prefix(on_date: date) -> int:
    return int(on_date.strftime("%y%m%d"))


def generate_order_number(db: Session, on_date: date) -> int:
    """Next order number for ``on_date``: YYMMDD * 10000 + daily sequence.

    The sequence continues from the highest number already issued that day
    and restarts at 1 on a new day. Call it inside the transaction that
    inserts the order: the scanned row is locked where the database supports
    ``FOR UPDATE`` and ``orders.order_number`` is unique, so two writers can
    never both commit the same number.
    """
    base = order_number_prefix(on_date) * ORDER_SEQUENCE_SPAN
    last = (
        db.query(Order.order_number)
        .filter(Order.order_number > base, Order.order_number < base + ORDER_SEQUENCE_SPAN)
        .order_by(Order.order_number.desc())
        .limit(1)
        .with_for_update()
        .scalar()
    )
    sequence = (last - base + 1) if last else 1
    if sequence >= ORDER_SEQUENCE_SPAN:
        raise ConflictException("Daily order number range exhausted")
    return base + sequence


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderService:
    """Cart-to-order conversion and the order status state machine.

    Every write that touches more than one row runs inside a single
    ``transaction`` so an order, its items, its first ledger entry and the
    removal of the source cart either all land or none do.
    """

    def __init__(self, db: Session, history: StatusHistoryService, clock: Callable[[], datetime] = _utcnow):
        self.db = db
        self.history = history
        self.clock = clock

    # ---------------------------------------------------------------
    # Creation
    # ---------------------------------------------------------------
    def create_order_from_cart(
        self,
        cart_id: int,
        address_id: int,
        payment_method: PaymentMethod,
        notes: Optional[str],
        user: User,
        tax=0,
        delivery_fee=0,
        discount=0,
        total_amount=None,
        is_prepaid: bool = False,
    ) -> Order:
        placed_at = self.clock()
        try:
            with transaction(self.db):
                # Held until commit: a concurrent checkout of this cart waits, then finds it gone
                cart = (
                    self.db.query(Cart)
                    .filter(Cart.id == cart_id, Cart.user_id == user.id)
                    .with_for_update()
                    .populate_existing()
                    .first()
                )
                if not cart:
                    raise NotFoundException("Cart not found")
                lines = (
                    self.db.query(CartItem)
                    .options(joinedload(CartItem.menu_item))
                    .filter(CartItem.cart_id == cart.id)
                    .order_by(CartItem.id)
                    .populate_existing()
                    .all()
                )
                if not lines:
                    raise BadRequestException("Cart is empty")

                address = self.db.query(Address).filter(Address.id == address_id, Address.user_id == user.id).first()
                if not address:
                    raise NotFoundException("Address not found")

                subtotal = _money(sum((ci.price_at_add * ci.quantity for ci in lines), Decimal("0")))
                tax, delivery_fee, discount = _money(tax), _money(delivery_fee), _money(discount)
                expected_total = subtotal + tax + delivery_fee - discount
                if expected_total < 0:
                    raise BadRequestException("Discount exceeds the order value")
                if total_amount is None:
                    total_amount = expected_total
                elif _money(total_amount) != expected_total:
                    raise BadRequestException(
                        "Order total does not match subtotal + tax + delivery_fee - discount",
                        data={"expected_total": float(expected_total)},
                    )

                order = Order(
                    order_number=generate_order_number(self.db, placed_at.date()),
                    user_id=user.id,
                    restaurant_id=cart.restaurant_id,
                    address_id=address.id,
                    status=OrderStatus.PLACED,
                    subtotal=subtotal,
                    tax=tax,
                    discount=discount,
                    delivery_fee=delivery_fee,
                    total_amount=_money(total_amount),
                    payment_status=PaymentStatus.PENDING,
                    payment_method=PaymentMethod(payment_method),
                    is_prepaid=is_prepaid,
                    placed_at=placed_at,
                    notes=notes,
                )
                self.db.add(order)

                # Snapshot every cart line; later catalog edits never reach the order
                for ci in lines:
                    order.items.append(OrderItem(
                        menu_item_id=ci.menu_item_id,
                        quantity=ci.quantity,
                        price_at_order=ci.price_at_add,
                        item_name_snapshot=ci.menu_item.name,
                    ))

                self.history.record(
                    order, None, OrderStatus.PLACED, changed_by=user, note="Order placed", created_at=placed_at,
                )

                # The cart is consumed by exactly one order
                consumed = self.db.query(Cart).filter(Cart.id == cart.id).delete()
                if consumed != 1:
                    raise ConflictException("Cart has already been checked out")
        except IntegrityError as e:
            logger.warning("Order creation from cart %s hit a constraint: %s", cart_id, e.orig)
            raise ConflictException("Order could not be placed, please retry", cause=e)

        logger.info("Order %s (#%s) placed from cart %s by user %s", order.id, order.order_number, cart_id, user.id)
        return self.get_order_detail(order.id)

    # ---------------------------------------------------------------
    # Queries
    # ---------------------------------------------------------------
    def get_order(self, order_id: int) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundException("Order not found")
        return order

    def get_order_detail(self, order_id: int) -> Order:
        order = (
            self.db.query(Order)
            .options(
                joinedload(Order.items),
                joinedload(Order.status_history).joinedload(OrderStatusHistory.changed_by),
                joinedload(Order.user),
                joinedload(Order.restaurant),
                joinedload(Order.address),
                joinedload(Order.delivery).joinedload(Delivery.delivery_user),
            )
            .filter(Order.id == order_id)
            .first()
        )
        if not order:
            raise NotFoundException("Order not found")
        return order

    def get_order_for_viewer(self, order_id: int, viewer: User) -> Order:
        # Customers see their own orders, restaurant staff see their restaurant's
        order = self.get_order_detail(order_id)
        if order.user_id != viewer.id and not has_restaurant_access(self.db, order.restaurant_id, viewer):
            raise NotFoundException("Order not found")
        return order

    def get_order_by_number(self, order_number: int) -> Order:
        order = self.db.query(Order).filter(Order.order_number == order_number).first()
        if not order:
            raise NotFoundException("Order not found")
        return self.get_order_detail(order.id)

    def _paginate(self, query, page: int, page_size: int) -> Tuple[List[Order], int]:
        total = query.count()
        rows = (
            query.options(joinedload(Order.items))
            .order_by(Order.placed_at.desc(), Order.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return rows, total

    def get_user_orders(self, user: User, status: Optional[OrderStatus] = None, page: int = 1, page_size: int = 10):
        query = self.db.query(Order).filter(Order.user_id == user.id)
        if status:
            query = query.filter(Order.status == status)
        return self._paginate(query, page, page_size)

    def get_restaurant_orders(self, restaurant_id: int, status: Optional[OrderStatus] = None, page: int = 1, page_size: int = 20):
        query = self.db.query(Order).filter(Order.restaurant_id == restaurant_id)
        if status:
            query = query.filter(Order.status == status)
        return self._paginate(query, page, page_size)

    def get_order_items(self, order_id: int) -> List[OrderItem]:
        self.get_order(order_id)
        return self.db.query(OrderItem).filter(OrderItem.order_id == order_id).order_by(OrderItem.id).all()

    def calculate_order_total(self, order_id: int) -> Decimal:
        items = self.get_order_items(order_id)
        return _money(sum((i.price_at_order * i.quantity for i in items), Decimal("0")))

    def get_dashboard_stats(self, restaurant_id: int) -> dict:
        start = datetime.combine(self.clock().date(), datetime.min.time(), tzinfo=timezone.utc)
        end = start + timedelta(days=1)
        base = self.db.query(Order).filter(Order.restaurant_id == restaurant_id)

        today = base.filter(Order.placed_at >= start, Order.placed_at < end).all()
        recent, _ = self.get_restaurant_orders(restaurant_id, page=1, page_size=10)
        return {
            "active_orders": base.filter(Order.status.in_(ACTIVE_STATUSES)).count(),
            "pending_orders": base.filter(Order.status == OrderStatus.PLACED).count(),
            "today_orders": len(today),
            "today_revenue": sum((o.total_amount for o in today), Decimal("0")),
            "today_delivered": sum(1 for o in today if o.status == OrderStatus.DELIVERED),
            "today_cancelled": sum(1 for o in today if o.status == OrderStatus.CANCELLED),
            "recent_orders": recent,
        }

    # ---------------------------------------------------------------
    # State changes
    # ---------------------------------------------------------------
    def update_order_status(
        self,
        order_id: int,
        new_status: OrderStatus,
        changed_by: Optional[User] = None,
        note: Optional[str] = None,
    ) -> Order:
        new_status = OrderStatus(new_status)
        with transaction(self.db):
            order = (
                self.db.query(Order)
                .filter(Order.id == order_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if not order:
                raise NotFoundException("Order not found")

            previous = order.status
            if not is_valid_transition(previous, new_status):
                raise BadRequestException(
                    "Invalid status transition",
                    cause=f"{previous.value} -> {new_status.value}",
                    data={"from": previous.value, "to": new_status.value},
                )

            changed_at = self.clock()
            order.status = new_status
            self.history.record(
                order, previous, new_status, changed_by=changed_by,
                note=note or f"Status changed from {previous.value} to {new_status.value}",
                created_at=changed_at,
            )
            if new_status == OrderStatus.DELIVERED and order.delivery is not None:
                order.delivery.completed_at = changed_at

        logger.info("Order %s status %s -> %s", order_id, previous.value, new_status.value)
        return self.get_order_detail(order_id)

    def update_payment_status(self, order_id: int, payment_status: PaymentStatus) -> Order:
        payment_status = PaymentStatus(payment_status)
        with transaction(self.db):
            order = (
                self.db.query(Order)
                .filter(Order.id == order_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if not order:
                raise NotFoundException("Order not found")
            order.payment_status = payment_status
            if payment_status == PaymentStatus.COMPLETED and order.paid_at is None:
                order.paid_at = self.clock()
        return self.get_order_detail(order_id)

    def assign_delivery(self, order_id: int, driver_id: int) -> Delivery:
        try:
            with transaction(self.db):
                order = (
                    self.db.query(Order)
                    .filter(Order.id == order_id)
                    .with_for_update()
                    .populate_existing()
                    .first()
                )
                if not order:
                    raise NotFoundException("Order not found")

                driver = self.db.query(User).filter(User.id == driver_id).first()
                if not driver:
                    raise NotFoundException("Driver not found")
                if driver.role != UserRole.DELIVERY.value:
                    raise BadRequestException("User is not a delivery driver")
                if order.status not in ASSIGNABLE_STATUSES:
                    raise BadRequestException("Driver can only be assigned to preparing or ready orders")

                # One delivery row per order: re-assignment swaps the driver
                delivery = order.delivery
                if delivery is None:
                    delivery = Delivery(order_id=order.id)
                    self.db.add(delivery)
                delivery.delivery_user_id = driver.id
                delivery.assigned_at = self.clock()
                delivery.accepted_at = None
        except IntegrityError as e:
            raise ConflictException("Delivery was assigned concurrently, please retry", cause=e)

        logger.info("Order %s assigned to driver %s", order_id, driver_id)
        self.db.refresh(delivery)
        return delivery
