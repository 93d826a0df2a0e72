# backend/routes/restaurants.py
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import settings
from database import get_db, transaction
from models.restaurant import Restaurant, RestaurantAdmin, RestaurantAdminRole, Category, MenuItem, MenuItemImage
from models.users import User, UserRole, ADMIN_ROLES
from schemas.restaurant import (
    RestaurantCreate, RestaurantUpdate, RestaurantOut, RestaurantPage,
    RestaurantRoleAssign, RestaurantAdminOut,
    CategoryCreate, CategoryUpdate, CategoryOut,
    MenuItemCreate, MenuItemUpdate, MenuItemOut, MenuItemDetail,
    MenuItemImageCreate, MenuItemImageOut,
)
from services.access import ensure_restaurant_access
from utils.audit import write_log, client_ip
from utils.errors import BadRequestException, ConflictException, NotFoundException
from utils.tokenJWT import role_required

router = APIRouter(tags=["Restaurants"])
logger = logging.getLogger(__name__)

# Customers may open a restaurant (and become its owner); couriers may not
can_create_restaurant = role_required(UserRole.CUSTOMER.value, *ADMIN_ROLES)
manager_required = role_required(*ADMIN_ROLES)


def _get_restaurant(db: Session, restaurant_id: int) -> Restaurant:
    restaurant = db.query(Restaurant).filter(Restaurant.id == restaurant_id).first()
    if not restaurant:
        raise NotFoundException("Restaurant not found")
    return restaurant


def _get_category(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise NotFoundException("Category not found")
    return category


def _get_menu_item(db: Session, menu_item_id: int) -> MenuItem:
    item = db.query(MenuItem).filter(MenuItem.id == menu_item_id).first()
    if not item:
        raise NotFoundException("Menu item not found")
    return item


def _check_category(db: Session, category_id: Optional[int], restaurant_id: int):
    if category_id is None:
        return
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category or category.restaurant_id != restaurant_id:
        raise BadRequestException("Category does not belong to this restaurant")


# --- Restaurants ---

@router.post("/restaurants", response_model=RestaurantOut, status_code=status.HTTP_201_CREATED)
def create_restaurant(
    payload: RestaurantCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_create_restaurant),
):
    restaurant = Restaurant(**payload.model_dump())
    with transaction(db):
        db.add(restaurant)
        db.flush()
        db.add(RestaurantAdmin(
            user_id=current_user.id, restaurant_id=restaurant.id, role=RestaurantAdminRole.OWNER.value,
        ))
        if current_user.role == UserRole.CUSTOMER.value:
            current_user.role = UserRole.OWNER.value
    db.refresh(restaurant)
    out = RestaurantOut.model_validate(restaurant)

    write_log(db, user_id=current_user.id, action="RESTAURANT_CREATE", resource="restaurants",
              resource_id=out.id, ip=client_ip(request), meta={"name": out.name})
    return out


@router.get("/restaurants", response_model=RestaurantPage)
def list_restaurants(
    search: Optional[str] = Query(None, description="Search by name"),
    active_only: bool = Query(True),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(Restaurant)
    if search:
        query = query.filter(Restaurant.name.ilike(f"%{search}%"))
    if active_only:
        query = query.filter(Restaurant.is_active.is_(True))

    total = query.count()
    rows = query.order_by(Restaurant.name, Restaurant.id).offset((page - 1) * page_size).limit(page_size).all()
    return {"items": rows, "total": total, "page": page, "page_size": page_size}


@router.get("/restaurants/{restaurant_id}", response_model=RestaurantOut)
def get_restaurant(restaurant_id: int, db: Session = Depends(get_db)):
    return _get_restaurant(db, restaurant_id)


@router.put("/restaurants/{restaurant_id}", response_model=RestaurantOut)
def update_restaurant(
    restaurant_id: int,
    payload: RestaurantUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_required),
):
    restaurant = _get_restaurant(db, restaurant_id)
    ensure_restaurant_access(db, restaurant.id, current_user)

    with transaction(db):
        for field, value in payload.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(restaurant, field, value)
    db.refresh(restaurant)
    return restaurant


@router.delete("/restaurants/{restaurant_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_restaurant(
    restaurant_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_required),
):
    restaurant = _get_restaurant(db, restaurant_id)
    ensure_restaurant_access(db, restaurant.id, current_user)

    try:
        with transaction(db):
            db.delete(restaurant)
    except IntegrityError as e:
        # Orders keep pointing at their restaurant
        raise ConflictException("Restaurant has orders and cannot be deleted; deactivate it instead", cause=e)

    write_log(db, user_id=current_user.id, action="RESTAURANT_DELETE", resource="restaurants",
              resource_id=restaurant_id, ip=client_ip(request))


@router.post("/restaurants/{restaurant_id}/admins", response_model=RestaurantAdminOut, status_code=status.HTTP_201_CREATED)
def assign_restaurant_role(
    restaurant_id: int,
    payload: RestaurantRoleAssign,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_required),
):
    restaurant = _get_restaurant(db, restaurant_id)
    ensure_restaurant_access(db, restaurant.id, current_user)

    user = db.query(User).filter(User.id == payload.user_id).first()
    if not user:
        raise NotFoundException("User not found")

    exists = db.query(RestaurantAdmin.id).filter(
        RestaurantAdmin.user_id == user.id, RestaurantAdmin.restaurant_id == restaurant.id
    ).first()
    if exists:
        raise ConflictException("User already has a role in this restaurant")

    membership = RestaurantAdmin(user_id=user.id, restaurant_id=restaurant.id, role=payload.role.value)
    try:
        with transaction(db):
            db.add(membership)
            if user.role == UserRole.CUSTOMER.value:
                user.role = UserRole.RESTAURANT_ADMIN.value
    except IntegrityError as e:
        raise ConflictException("User already has a role in this restaurant", cause=e)
    db.refresh(membership)
    out = RestaurantAdminOut.model_validate(membership)

    write_log(db, user_id=current_user.id, action="RESTAURANT_ROLE_ASSIGN", resource="restaurants",
              resource_id=restaurant.id, ip=client_ip(request),
              meta={"user_id": user.id, "role": payload.role.value})
    return out


# --- Categories ---

@router.post("/restaurants/{restaurant_id}/categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(
    restaurant_id: int,
    payload: CategoryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_required),
):
    restaurant = _get_restaurant(db, restaurant_id)
    ensure_restaurant_access(db, restaurant.id, current_user)

    category = Category(restaurant_id=restaurant.id, **payload.model_dump())
    with transaction(db):
        db.add(category)
    db.refresh(category)
    return category


@router.get("/restaurants/{restaurant_id}/categories", response_model=List[CategoryOut])
def list_categories(restaurant_id: int, db: Session = Depends(get_db)):
    _get_restaurant(db, restaurant_id)
    return db.query(Category).filter(Category.restaurant_id == restaurant_id).order_by(Category.name).all()


@router.put("/categories/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_required),
):
    category = _get_category(db, category_id)
    ensure_restaurant_access(db, category.restaurant_id, current_user)

    with transaction(db):
        for field, value in payload.model_dump(exclude_unset=True).items():
            if field == "name" and value is None:
                continue
            setattr(category, field, value)
    db.refresh(category)
    return category


@router.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_required),
):
    category = _get_category(db, category_id)
    ensure_restaurant_access(db, category.restaurant_id, current_user)
    # Menu items survive without a category
    with transaction(db):
        for item in category.menu_items:
            item.category_id = None
        db.delete(category)


# --- Menu items ---

@router.post("/restaurants/{restaurant_id}/menu-items", response_model=MenuItemOut, status_code=status.HTTP_201_CREATED)
def create_menu_item(
    restaurant_id: int,
    payload: MenuItemCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_required),
):
    restaurant = _get_restaurant(db, restaurant_id)
    ensure_restaurant_access(db, restaurant.id, current_user)
    _check_category(db, payload.category_id, restaurant.id)

    item = MenuItem(restaurant_id=restaurant.id, **payload.model_dump())
    with transaction(db):
        db.add(item)
    db.refresh(item)
    logger.info("Menu item %s added to restaurant %s", item.id, restaurant.id)
    return item


@router.get("/restaurants/{restaurant_id}/menu-items", response_model=List[MenuItemOut])
def list_menu_items(
    restaurant_id: int,
    available_only: bool = Query(False),
    category_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    _get_restaurant(db, restaurant_id)
    query = db.query(MenuItem).filter(MenuItem.restaurant_id == restaurant_id)
    if available_only:
        query = query.filter(MenuItem.is_available.is_(True))
    if category_id is not None:
        query = query.filter(MenuItem.category_id == category_id)
    return query.order_by(MenuItem.name, MenuItem.id).all()


@router.get("/menu-items/{menu_item_id}", response_model=MenuItemDetail)
def get_menu_item(menu_item_id: int, db: Session = Depends(get_db)):
    item = _get_menu_item(db, menu_item_id)
    out = MenuItemDetail.model_validate(item)
    out.images = sorted(out.images, key=lambda img: (not img.is_primary, img.id))
    return out


@router.put("/menu-items/{menu_item_id}", response_model=MenuItemOut)
def update_menu_item(
    menu_item_id: int,
    payload: MenuItemUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_required),
):
    item = _get_menu_item(db, menu_item_id)
    ensure_restaurant_access(db, item.restaurant_id, current_user)

    changes = payload.model_dump(exclude_unset=True)
    if "category_id" in changes:
        _check_category(db, changes["category_id"], item.restaurant_id)

    with transaction(db):
        for field, value in changes.items():
            # Only category_id and description may be cleared
            if value is None and field not in ("category_id", "description"):
                continue
            setattr(item, field, value)
    db.refresh(item)
    return item


@router.delete("/menu-items/{menu_item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_menu_item(
    menu_item_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_required),
):
    item = _get_menu_item(db, menu_item_id)
    ensure_restaurant_access(db, item.restaurant_id, current_user)
    with transaction(db):
        db.delete(item)


# --- Images ---

@router.post("/menu-items/{menu_item_id}/images", response_model=MenuItemImageOut, status_code=status.HTTP_201_CREATED)
def add_menu_item_image(
    menu_item_id: int,
    payload: MenuItemImageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_required),
):
    item = _get_menu_item(db, menu_item_id)
    ensure_restaurant_access(db, item.restaurant_id, current_user)

    image = MenuItemImage(menu_item_id=item.id, **payload.model_dump())
    with transaction(db):
        if image.is_primary:
            db.query(MenuItemImage).filter(MenuItemImage.menu_item_id == item.id).update(
                {MenuItemImage.is_primary: False}, synchronize_session="fetch"
            )
        db.add(image)
    db.refresh(image)
    return image


@router.get("/menu-items/{menu_item_id}/images", response_model=List[MenuItemImageOut])
def list_menu_item_images(menu_item_id: int, db: Session = Depends(get_db)):
    _get_menu_item(db, menu_item_id)
    return (
        db.query(MenuItemImage)
        .filter(MenuItemImage.menu_item_id == menu_item_id)
        .order_by(MenuItemImage.is_primary.desc(), MenuItemImage.id)
        .all()
    )


@router.delete("/menu-images/{image_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_menu_item_image(
    image_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(manager_required),
):
    image = db.query(MenuItemImage).filter(MenuItemImage.id == image_id).first()
    if not image:
        raise NotFoundException("Image not found")
    ensure_restaurant_access(db, image.menu_item.restaurant_id, current_user)

    menu_item_id = image.menu_item_id
    with transaction(db):
        db.delete(image)

    write_log(db, user_id=current_user.id, action="MENU_IMAGE_DELETE", resource="menu_item_images",
              resource_id=image_id, ip=client_ip(request), meta={"menu_item_id": menu_item_id})
