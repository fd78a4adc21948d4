"""Re-export all model classes."""

from shared.db.models.rbac import Permission, Role, RolePermission, UserRole
from shared.db.models.user import User

__all__ = [
    "Permission",
    "Role",
    "RolePermission",
    "User",
    "UserRole",
]
