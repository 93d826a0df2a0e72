from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Literal

from models.users import UserRole

# Shared properties for user models
class UserBase(BaseModel):
    email: EmailStr

# Schema for user authentication credentials
class UserLogin(UserBase):
    password: str

# Schema for user registration requests
class UserCreate(UserBase):
    password: str = Field(min_length=6)
    first_name: str
    last_name: str
    phone: Optional[str] = None
    # Self-registration may only create customers and couriers
    role: Literal["customer", "delivery"] = "customer"

# Output schema for user profile details
class UserResponse(UserBase):
    id: int
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = True

    class Config:
        from_attributes = True

# Compact user reference embedded in orders, reviews and history entries
class UserSummary(BaseModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    class Config:
        from_attributes = True

# Schema for JWT authentication token response
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

# Schema for administrative role updates
class RoleUpdate(BaseModel):
    role: UserRole

# Self-service profile edits; e-mail and role are not editable here
class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)

class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)

# Deactivation is confirmed with the account password
class AccountDeactivate(BaseModel):
    password: str
