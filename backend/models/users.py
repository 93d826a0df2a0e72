# backend/models/users.py
import enum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, func, true
from sqlalchemy.orm import relationship
from database import Base


# System-wide roles carried in the JWT and checked at the routes
class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    DELIVERY = "delivery"
    OWNER = "owner"
    MANAGER = "manager"
    RESTAURANT_ADMIN = "restaurant_admin"
    ADMIN = "admin"


# Roles allowed to run restaurant back-office operations
ADMIN_ROLES = (
    UserRole.OWNER.value,
    UserRole.MANAGER.value,
    UserRole.RESTAURANT_ADMIN.value,
    UserRole.ADMIN.value,
)


# Represents a user account with authentication details and system role
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default=UserRole.CUSTOMER.value)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    # Deactivated accounts keep their history but can no longer sign in
    is_active = Column(Boolean, default=True, server_default=true(), nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    addresses = relationship("Address", back_populates="user", cascade="all, delete-orphan")
    admin_roles = relationship("RestaurantAdmin", back_populates="user", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


# Delivery address owned by a user; at most one is flagged primary
class Address(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    street = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    postal_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="addresses")
