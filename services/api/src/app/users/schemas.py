"""Pydantic schemas for user management endpoints."""

from datetime import datetime
from typing import Self

from pydantic import BaseModel, Field

from shared.db.enums import UserStatus
from shared.db.models.user import User

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class CreateUserRequest(BaseModel):
    """Request to create a user account."""

    email: str = Field(..., max_length=255, pattern=_EMAIL_PATTERN)
    username: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    roles: list[str] | None = Field(default=None, description="Role names; defaults to the standard user role")


class UpdateUserStatusRequest(BaseModel):
    """Request to move a user to another status."""

    status: UserStatus
    reason: str | None = None


class ReasonRequest(BaseModel):
    """Optional free-text reason for disable/ban actions."""

    reason: str | None = None


class UserResponse(BaseModel):
    """A user account with the names of its active roles."""

    id: int
    email: str
    username: str
    status: UserStatus
    is_verified: bool
    last_login_at: datetime | None
    banned_at: datetime | None
    banned_reason: str | None
    banned_by: int | None
    roles: list[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> Self:
        """Convert a user whose ``user_roles -> role`` graph is loaded."""
        return cls(
            id=user.id,
            email=user.email,
            username=user.username,
            status=user.status,
            is_verified=user.is_verified,
            last_login_at=user.last_login_at,
            banned_at=user.banned_at,
            banned_reason=user.banned_reason,
            banned_by=user.banned_by,
            roles=[ur.role.name for ur in user.user_roles if ur.is_active],
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UserStats(BaseModel):
    """Account counts by status."""

    total: int
    active: int
    inactive: int
    banned: int
    suspended: int
    verified: int
