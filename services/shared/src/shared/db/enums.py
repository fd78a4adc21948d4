"""Database enums for account and access-control models."""

import enum


class UserStatus(enum.StrEnum):
    """Lifecycle status of a user account."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    BANNED = "banned"
    SUSPENDED = "suspended"
