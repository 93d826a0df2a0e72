# backend/routes/admin.py
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from typing import List, Optional, Literal
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from pydantic import BaseModel

from config import settings
from database import get_db
from models.order import OrderStatus
from models.users import User, UserRole, ADMIN_ROLES
from routes.orders import order_to_summary
from schemas.order import OrdersPage, DashboardStats
from schemas.user import RoleUpdate, UserResponse
from services.access import ensure_restaurant_access
from services.deps import get_order_service
from services.order_service import OrderService
from utils.audit import write_log, client_ip
from utils.errors import ConflictException
from utils.tokenJWT import role_required

router = APIRouter(tags=["Admin"])

admin_only = role_required(UserRole.ADMIN.value)


# Schema for paginated user list response
class PaginatedUsersResponse(BaseModel):
    items: List[UserResponse]
    total: int
    page: int
    page_size: int


# Retrieve a list of users with filtering, sorting, and pagination (Admin only)
@router.get("/users", response_model=PaginatedUsersResponse)
def get_all_users(
    q: Optional[str] = Query(None, description="Search by e-mail"),
    last_name: Optional[str] = Query(None, description="Search by last name"),
    role: Optional[str] = Query(None, description="Filter by role"),
    is_active: Optional[bool] = Query(None, description="Filter by account status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=100),
    sort_by: Literal["id", "email", "role", "first_name", "last_name"] = "id",
    order: Literal["asc", "desc"] = "asc",
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    query = db.query(User)

    if q:
        query = query.filter(User.email.ilike(f"%{q.lower()}%"))
    if role:
        query = query.filter(User.role.ilike(role))
    if last_name:
        query = query.filter(User.last_name.ilike(f"%{last_name}%"))
    if is_active is not None:
        query = query.filter(User.is_active == is_active)

    sort_map = {
        "id": User.id,
        "email": User.email,
        "role": User.role,
        "first_name": User.first_name,
        "last_name": User.last_name,
    }
    col = sort_map.get(sort_by, User.id)
    query = query.order_by(col.asc() if order == "asc" else col.desc())

    total = query.count()
    users = query.offset((page - 1) * page_size).limit(page_size).all()

    return {
        "items": users,
        "total": total,
        "page": page,
        "page_size": page_size,
    }


# Update user role (Admin only)
@router.put("/users/{user_id}/role")
def update_user_role(
    user_id: int,
    new_role: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    previous = user.role
    user.role = new_role.role.value
    db.commit()
    db.refresh(user)

    write_log(db, user_id=current_user.id, action="USER_ROLE_UPDATE", resource="users",
              resource_id=user.id, ip=client_ip(request), meta={"from": previous, "to": user.role})

    return {"message": f"User {user.email} role updated to {user.role}", "id": user.id, "role": user.role}


# Restore a deactivated account (Admin only)
@router.put("/users/{user_id}/reactivate", response_model=UserResponse)
def reactivate_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Account is already active")

    user.is_active = True
    db.commit()
    db.refresh(user)
    out = UserResponse.model_validate(user)

    write_log(db, user_id=current_user.id, action="USER_REACTIVATE", resource="users",
              resource_id=user.id, ip=client_ip(request))
    return out


# Delete a user account (Admin only)
@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    # Prevent self-deletion
    if user.id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")

    email = user.email
    try:
        db.delete(user)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        # Order history keeps its customer
        raise ConflictException("User has orders and cannot be deleted", cause=e)

    write_log(db, user_id=current_user.id, action="USER_DELETE", resource="users",
              resource_id=user_id, ip=client_ip(request), meta={"email": email})

    return {"message": f"User {email} has been deleted"}


# --- Restaurant back-office views ---

@router.get("/admin/restaurants/{restaurant_id}/orders", response_model=OrdersPage)
def restaurant_orders(
    restaurant_id: int,
    status: Optional[OrderStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(role_required(*ADMIN_ROLES)),
    orders: OrderService = Depends(get_order_service),
):
    ensure_restaurant_access(orders.db, restaurant_id, current_user)
    rows, total = orders.get_restaurant_orders(restaurant_id, status=status, page=page, page_size=page_size)
    return OrdersPage(items=[order_to_summary(o) for o in rows], total=total, page=page, page_size=page_size)


@router.get("/admin/restaurants/{restaurant_id}/dashboard", response_model=DashboardStats)
def restaurant_dashboard(
    restaurant_id: int,
    current_user: User = Depends(role_required(*ADMIN_ROLES)),
    orders: OrderService = Depends(get_order_service),
):
    ensure_restaurant_access(orders.db, restaurant_id, current_user)
    stats = orders.get_dashboard_stats(restaurant_id)
    stats["today_revenue"] = float(stats["today_revenue"])
    stats["recent_orders"] = [order_to_summary(o) for o in stats["recent_orders"]]
    return DashboardStats(**stats)
