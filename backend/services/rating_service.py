# backend/services/rating_service.py
import logging
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from database import transaction
from models.order import Order, OrderItem, OrderStatus
from models.rating import RatingReview, ReviewResponse
from models.restaurant import MenuItem
from models.users import User
from services.access import ensure_restaurant_access
from utils.errors import BadRequestException, ConflictException, NotFoundException

logger = logging.getLogger(__name__)


class RatingService:
    def __init__(self, db: Session):
        self.db = db

    def submit_rating(
        self,
        order_id: int,
        menu_item_id: int,
        rating: int,
        user: User,
        review_text: Optional[str] = None,
        is_visible: bool = True,
    ) -> RatingReview:
        order = self.db.query(Order).filter(Order.id == order_id, Order.user_id == user.id).first()
        if not order:
            raise NotFoundException("Order not found")
        if order.status != OrderStatus.DELIVERED:
            raise BadRequestException("Only delivered orders can be rated")

        in_order = self.db.query(OrderItem.id).filter(
            OrderItem.order_id == order.id, OrderItem.menu_item_id == menu_item_id
        ).first()
        if not in_order:
            raise BadRequestException("Menu item is not part of this order")

        existing = self.db.query(RatingReview.id).filter(
            RatingReview.user_id == user.id,
            RatingReview.menu_item_id == menu_item_id,
            RatingReview.order_id == order.id,
        ).first()
        if existing:
            raise ConflictException("You have already rated this item for this order")

        review = RatingReview(
            user_id=user.id,
            menu_item_id=menu_item_id,
            order_id=order.id,
            rating=rating,
            review_text=review_text,
            is_visible=is_visible,
        )
        try:
            with transaction(self.db):
                self.db.add(review)
        except IntegrityError as e:
            raise ConflictException("You have already rated this item for this order", cause=e)

        self.db.refresh(review)
        logger.info("User %s rated menu item %s (order %s): %s", user.id, menu_item_id, order.id, rating)
        return review

    def update_rating(self, rating_id: int, user: User, rating: Optional[int] = None, review_text: Optional[str] = None) -> RatingReview:
        review = self.db.query(RatingReview).filter(
            RatingReview.id == rating_id, RatingReview.user_id == user.id
        ).first()
        if not review:
            raise NotFoundException("Review not found")

        with transaction(self.db):
            if rating is not None:
                review.rating = rating
            if review_text is not None:
                review.review_text = review_text
        self.db.refresh(review)
        return review

    def get_user_reviews(self, user: User) -> List[RatingReview]:
        return (
            self.db.query(RatingReview)
            .options(joinedload(RatingReview.response))
            .filter(RatingReview.user_id == user.id)
            .order_by(RatingReview.created_at.desc(), RatingReview.id.desc())
            .all()
        )

    def get_restaurant_reviews(self, restaurant_id: int, page: int = 1, page_size: int = 10):
        query = (
            self.db.query(RatingReview)
            .join(MenuItem, MenuItem.id == RatingReview.menu_item_id)
            .filter(MenuItem.restaurant_id == restaurant_id, RatingReview.is_visible.is_(True))
        )
        total = query.count()
        rows = (
            query.options(joinedload(RatingReview.response))
            .order_by(RatingReview.created_at.desc(), RatingReview.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return rows, total

    def get_average_rating(self, menu_item_id: int) -> dict:
        if not self.db.query(MenuItem.id).filter(MenuItem.id == menu_item_id).first():
            raise NotFoundException("Menu item not found")
        average, count = (
            self.db.query(func.avg(RatingReview.rating), func.count(RatingReview.id))
            .filter(RatingReview.menu_item_id == menu_item_id)
            .one()
        )
        return {
            "menu_item_id": menu_item_id,
            "average": round(float(average), 2) if average is not None else 0.0,
            "count": count,
        }

    def respond_to_review(self, rating_id: int, responder: User, response_text: str) -> ReviewResponse:
        review = (
            self.db.query(RatingReview)
            .options(joinedload(RatingReview.menu_item))
            .filter(RatingReview.id == rating_id)
            .first()
        )
        if not review:
            raise NotFoundException("Review not found")
        ensure_restaurant_access(self.db, review.menu_item.restaurant_id, responder)

        already = self.db.query(ReviewResponse.id).filter(ReviewResponse.rating_id == review.id).first()
        if already:
            raise BadRequestException("Response already exists for this review")

        response = ReviewResponse(rating_id=review.id, responder_id=responder.id, response_text=response_text)
        try:
            with transaction(self.db):
                self.db.add(response)
        except IntegrityError as e:
            raise BadRequestException("Response already exists for this review", cause=e)

        self.db.refresh(response)
        return response
