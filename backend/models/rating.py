# backend/models/rating.py
from sqlalchemy import (
    Column, Integer, Text, Boolean, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, func,
)
from sqlalchemy.orm import relationship
from database import Base


# Customer feedback for one menu item of one order
class RatingReview(Base):
    __tablename__ = "ratings_reviews"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id", ondelete="CASCADE"), index=True, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    rating = Column(Integer, CheckConstraint("rating >= 1 AND rating <= 5"), nullable=False)
    review_text = Column(Text, nullable=True)
    is_visible = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User")
    menu_item = relationship("MenuItem")
    order = relationship("Order")
    response = relationship("ReviewResponse", back_populates="rating", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        # A user rates a given menu item at most once per order
        UniqueConstraint("user_id", "menu_item_id", "order_id", name="uq_rating_user_item_order"),
    )


# Restaurant reply to a review; at most one per review
class ReviewResponse(Base):
    __tablename__ = "review_responses"

    id = Column(Integer, primary_key=True, index=True)
    rating_id = Column(Integer, ForeignKey("ratings_reviews.id", ondelete="CASCADE"), unique=True, nullable=False)
    responder_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    response_text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    rating = relationship("RatingReview", back_populates="response")
    responder = relationship("User")
