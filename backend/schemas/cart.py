from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

# Request schema for adding an item to the cart
class CartAddItem(BaseModel):
    menu_item_id: int
    quantity: int = Field(1, ge=1)

# Request schema for updating cart item quantity
class CartUpdateItem(BaseModel):
    quantity: int = Field(ge=1)

# Response schema for a single cart line item
class CartItemOut(BaseModel):
    id: int
    menu_item_id: int
    name: str
    quantity: int
    price_at_add: float
    line_total: float
    added_at: Optional[datetime] = None

# Response schema for the entire cart summary
class CartOut(BaseModel):
    id: int
    restaurant_id: int
    user_id: Optional[int] = None
    items: List[CartItemOut]
    subtotal: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
