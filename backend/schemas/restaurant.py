from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from models.restaurant import RestaurantAdminRole


# --- Restaurants ---
class RestaurantCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=255)
    currency: str = Field("USD", max_length=10)
    is_active: bool = True


class RestaurantUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=255)
    currency: Optional[str] = Field(None, max_length=10)
    is_active: Optional[bool] = None


class RestaurantOut(BaseModel):
    id: int
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    currency: str
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RestaurantPage(BaseModel):
    items: List[RestaurantOut]
    total: int
    page: int
    page_size: int


class RestaurantRoleAssign(BaseModel):
    user_id: int
    role: RestaurantAdminRole = RestaurantAdminRole.MANAGER


class RestaurantAdminOut(BaseModel):
    id: int
    user_id: int
    restaurant_id: int
    role: str

    class Config:
        from_attributes = True


# --- Categories ---
class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    description: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None


class CategoryOut(BaseModel):
    id: int
    restaurant_id: int
    name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


# --- Menu items ---
class MenuItemCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    is_available: bool = True
    category_id: Optional[int] = None


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    is_available: Optional[bool] = None
    category_id: Optional[int] = None


class MenuItemOut(BaseModel):
    id: int
    restaurant_id: int
    category_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    price: float
    is_available: bool

    class Config:
        from_attributes = True


# --- Images ---
class MenuItemImageCreate(BaseModel):
    url: str = Field(min_length=1, max_length=1000)
    alt_text: Optional[str] = Field(None, max_length=255)
    is_primary: bool = False


class MenuItemImageOut(BaseModel):
    id: int
    menu_item_id: int
    url: str
    alt_text: Optional[str] = None
    is_primary: bool

    class Config:
        from_attributes = True


# Single menu item with its gallery, primary image first
class MenuItemDetail(MenuItemOut):
    images: List[MenuItemImageOut] = []
