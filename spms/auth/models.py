# auth/models.py
"""
User identity records and the snapshot kept in the session.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base, TimestampMixin


class Role(str, Enum):
    """User roles."""
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


class AuthUser(TimestampMixin, Base):
    """Durable user record."""
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(100), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    role: Mapped[str] = mapped_column(String(20), default=Role.USER.value, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    remember_token: Mapped[Optional[str]] = mapped_column(String(64), index=True, nullable=True)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class UserIdentity(BaseModel):
    """What the identity store hands to the authenticator."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    password_hash: str
    full_name: Optional[str] = None
    role: Role = Role.USER
    is_active: bool = True
    remember_token: Optional[str] = None
    last_login: Optional[datetime] = None


class UserSnapshot(BaseModel):
    """Sanitized user data stored in the session. Never holds the password hash."""
    id: int
    username: str
    email: str
    full_name: Optional[str] = None
    role: Role = Role.USER

    @classmethod
    def from_identity(cls, user: UserIdentity) -> "UserSnapshot":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
        )


class UserCreate(BaseModel):
    """User creation model."""
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: Optional[str] = None
    role: Role = Role.USER
    is_active: bool = True
