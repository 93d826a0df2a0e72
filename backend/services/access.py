# backend/services/access.py
from sqlalchemy.orm import Session

from models.users import User, UserRole
from models.restaurant import RestaurantAdmin
from utils.errors import ForbiddenException


def has_restaurant_access(db: Session, restaurant_id: int, user: User) -> bool:
    # Platform admins manage every restaurant; everyone else needs a membership row
    if user is None:
        return False
    if user.role == UserRole.ADMIN.value:
        return True
    membership = db.query(RestaurantAdmin.id).filter(
        RestaurantAdmin.user_id == user.id,
        RestaurantAdmin.restaurant_id == restaurant_id,
    ).first()
    return membership is not None


def ensure_restaurant_access(db: Session, restaurant_id: int, user: User):
    if not has_restaurant_access(db, restaurant_id, user):
        raise ForbiddenException("You don't have access to this restaurant")
