# backend/services/deps.py
from fastapi import Depends
from sqlalchemy.orm import Session

from database import get_db
from services.cart_service import CartService
from services.order_service import OrderService
from services.rating_service import RatingService
from services.status_history import StatusHistoryService


# Services are built per request around that request's session

def get_status_history_service(db: Session = Depends(get_db)) -> StatusHistoryService:
    return StatusHistoryService(db)


def get_cart_service(db: Session = Depends(get_db)) -> CartService:
    return CartService(db)


def get_order_service(
    db: Session = Depends(get_db),
    history: StatusHistoryService = Depends(get_status_history_service),
) -> OrderService:
    return OrderService(db, history)


def get_rating_service(db: Session = Depends(get_db)) -> RatingService:
    return RatingService(db)
