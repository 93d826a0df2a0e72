# backend/routes/ratings.py
from typing import List
from fastapi import APIRouter, Depends, Query, Request, status

from config import settings
from models.users import User, ADMIN_ROLES
from schemas.rating import (
    RatingCreate, RatingUpdate, RatingOut, RatingPage, AverageRatingOut,
    ReviewResponseCreate, ReviewResponseOut,
)
from services.deps import get_rating_service
from services.rating_service import RatingService
from utils.audit import write_log, client_ip
from utils.errors import NotFoundException
from utils.tokenJWT import get_current_user, role_required
from models.restaurant import Restaurant

router = APIRouter(tags=["Ratings"])


# Rate one menu item of a delivered order
@router.post("/orders/{order_id}/ratings", response_model=RatingOut, status_code=status.HTTP_201_CREATED)
def submit_rating(
    order_id: int,
    payload: RatingCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
    ratings: RatingService = Depends(get_rating_service),
):
    review = ratings.submit_rating(
        order_id=order_id,
        menu_item_id=payload.menu_item_id,
        rating=payload.rating,
        user=current_user,
        review_text=payload.review_text,
        is_visible=payload.is_visible,
    )
    out = RatingOut.model_validate(review)

    write_log(ratings.db, user_id=current_user.id, action="RATING_CREATE", resource="ratings",
              resource_id=out.id, ip=client_ip(request),
              meta={"order_id": order_id, "menu_item_id": payload.menu_item_id, "rating": payload.rating})
    return out


@router.put("/ratings/{rating_id}", response_model=RatingOut)
def update_rating(
    rating_id: int,
    payload: RatingUpdate,
    current_user: User = Depends(get_current_user),
    ratings: RatingService = Depends(get_rating_service),
):
    return ratings.update_rating(rating_id, current_user, rating=payload.rating, review_text=payload.review_text)


@router.get("/ratings/me", response_model=List[RatingOut])
def my_ratings(
    current_user: User = Depends(get_current_user),
    ratings: RatingService = Depends(get_rating_service),
):
    return ratings.get_user_reviews(current_user)


@router.get("/restaurants/{restaurant_id}/ratings", response_model=RatingPage)
def restaurant_ratings(
    restaurant_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    ratings: RatingService = Depends(get_rating_service),
):
    if not ratings.db.query(Restaurant.id).filter(Restaurant.id == restaurant_id).first():
        raise NotFoundException("Restaurant not found")
    rows, total = ratings.get_restaurant_reviews(restaurant_id, page=page, page_size=page_size)
    return {"items": rows, "total": total, "page": page, "page_size": page_size}


@router.get("/menu-items/{menu_item_id}/rating", response_model=AverageRatingOut)
def menu_item_rating(menu_item_id: int, ratings: RatingService = Depends(get_rating_service)):
    return ratings.get_average_rating(menu_item_id)


# Restaurant reply to a customer review
@router.post("/ratings/{rating_id}/response", response_model=ReviewResponseOut, status_code=status.HTTP_201_CREATED)
def respond_to_review(
    rating_id: int,
    payload: ReviewResponseCreate,
    request: Request,
    current_user: User = Depends(role_required(*ADMIN_ROLES)),
    ratings: RatingService = Depends(get_rating_service),
):
    out = ReviewResponseOut.model_validate(ratings.respond_to_review(rating_id, current_user, payload.response_text))

    write_log(ratings.db, user_id=current_user.id, action="REVIEW_RESPONSE", resource="ratings",
              resource_id=rating_id, ip=client_ip(request))
    return out
