from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


# Input schema for a new delivery address
class AddressCreate(BaseModel):
    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: str = Field(min_length=1, max_length=100)
    is_primary: bool = False


# Partial update; only the fields sent are applied
class AddressUpdate(BaseModel):
    street: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, min_length=1, max_length=100)
    is_primary: Optional[bool] = None


class AddressOut(BaseModel):
    id: int
    street: str
    city: str
    postal_code: Optional[str] = None
    country: str
    is_primary: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
