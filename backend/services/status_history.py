# backend/services/status_history.py
import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session, joinedload

from models.order import Order, OrderStatus, OrderStatusHistory
from models.users import User
from utils.errors import NotFoundException

logger = logging.getLogger(__name__)

# actor_type recorded when no user triggered the change
SYSTEM_ACTOR = "system"


class StatusHistoryService:
    """Append-only ledger of order status transitions.

    Entries are never updated or deleted. ``record`` only stages a row on the
    session, so the caller decides which transaction it belongs to; the order
    status change and its ledger entry must commit together.
    """

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        order: Order,
        previous_status: Optional[OrderStatus],
        new_status: OrderStatus,
        changed_by: Optional[User] = None,
        note: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> OrderStatusHistory:
        entry = OrderStatusHistory(
            order=order,
            previous_status=previous_status,
            new_status=new_status,
            changed_by_user_id=changed_by.id if changed_by else None,
            actor_type=changed_by.role if changed_by else SYSTEM_ACTOR,
            note=note,
        )
        # Without an explicit time the column default stamps the row
        if created_at is not None:
            entry.created_at = created_at
        self.db.add(entry)
        return entry

    def _history_query(self, order_id: int):
        return (
            self.db.query(OrderStatusHistory)
            .options(joinedload(OrderStatusHistory.changed_by))
            .filter(OrderStatusHistory.order_id == order_id)
            .order_by(OrderStatusHistory.created_at.desc(), OrderStatusHistory.id.desc())
        )

    def get_order_status_history(self, order_id: int) -> List[OrderStatusHistory]:
        """Newest first."""
        return self._history_query(order_id).all()

    def get_latest_status(self, order_id: int) -> OrderStatusHistory:
        latest = self._history_query(order_id).first()
        if latest is None:
            # Order creation always writes the first entry, so this is a broken invariant
            logger.error("Order %s has no status history entries", order_id)
            raise NotFoundException("No status history found")
        return latest
