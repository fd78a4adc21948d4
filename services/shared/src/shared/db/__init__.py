"""Shared database package -- convenience re-exports.

Importing this module registers all models with Base.metadata.
"""

from shared.db.base import Base
from shared.db.enums import UserStatus
from shared.db.exceptions import ConstraintViolationError, StoreError
from shared.db.models import Permission, Role, RolePermission, User, UserRole
from shared.db.operations import RBACRepository, UserRepository
from shared.db.session import DatabaseManager

__all__ = [
    # Base
    "Base",
    # Enums
    "UserStatus",
    # Errors
    "ConstraintViolationError",
    "StoreError",
    # Models
    "Permission",
    "Role",
    "RolePermission",
    "User",
    "UserRole",
    # Session
    "DatabaseManager",
    # Operations
    "RBACRepository",
    "UserRepository",
]
