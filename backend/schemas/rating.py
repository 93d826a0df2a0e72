from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class RatingCreate(BaseModel):
    menu_item_id: int
    rating: int = Field(ge=1, le=5)
    review_text: Optional[str] = None
    is_visible: bool = True


class RatingUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    review_text: Optional[str] = None


class ReviewResponseCreate(BaseModel):
    response_text: str = Field(min_length=1)


class ReviewResponseOut(BaseModel):
    id: int
    rating_id: int
    responder_id: int
    response_text: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RatingOut(BaseModel):
    id: int
    user_id: int
    menu_item_id: int
    order_id: int
    rating: int
    review_text: Optional[str] = None
    is_visible: bool
    created_at: Optional[datetime] = None
    response: Optional[ReviewResponseOut] = None

    class Config:
        from_attributes = True


class RatingPage(BaseModel):
    items: List[RatingOut]
    total: int
    page: int
    page_size: int


class AverageRatingOut(BaseModel):
    menu_item_id: int
    average: float
    count: int
