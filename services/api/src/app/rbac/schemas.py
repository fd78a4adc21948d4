"""Pydantic schemas for role and permission endpoints."""

from datetime import datetime
from typing import Self

from pydantic import BaseModel, Field

from shared.db.models.rbac import Permission, Role, UserRole

# --- Permissions ---


class PermissionResponse(BaseModel):
    """A single permission."""

    id: int
    name: str
    resource: str
    action: str
    description: str | None

    @classmethod
    def from_permission(cls, permission: Permission) -> Self:
        return cls(
            id=permission.id,
            name=permission.name,
            resource=permission.resource,
            action=permission.action,
            description=permission.description,
        )


class CreatePermissionRequest(BaseModel):
    """Request to create a permission; its name is derived as ``resource:action``."""

    resource: str = Field(..., min_length=1, max_length=100)
    action: str = Field(..., min_length=1, max_length=100)
    description: str | None = None


class UpdatePermissionRequest(BaseModel):
    """Request to update a permission's resource, action and/or description."""

    resource: str | None = Field(default=None, min_length=1, max_length=100)
    action: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None


# --- Roles ---


class RoleSummary(BaseModel):
    """Role with its permissions."""

    id: int
    name: str
    description: str | None
    is_protected: bool
    permissions: list[PermissionResponse]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_role(cls, role: Role) -> Self:
        """Convert a role whose ``role_permissions`` are loaded."""
        return cls(
            id=role.id,
            name=role.name,
            description=role.description,
            is_protected=role.is_protected,
            permissions=[PermissionResponse.from_permission(p) for p in role.permissions],
            created_at=role.created_at,
            updated_at=role.updated_at,
        )


class CreateRoleRequest(BaseModel):
    """Request to create a new role."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    permission_ids: list[int] = Field(default_factory=list)


class UpdateRoleRequest(BaseModel):
    """Request to update a role's name, description, and/or permissions.

    ``permission_ids`` replaces the whole permission set when present.
    """

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    permission_ids: list[int] | None = None


class RolePermissionsRequest(BaseModel):
    """Permission ids to add to or remove from a role."""

    permission_ids: list[int] = Field(..., min_length=1)


# --- Assignments ---


class AssignRoleRequest(BaseModel):
    """Request to bind a user to a role."""

    user_id: int
    role_id: int


class SetBindingActiveRequest(BaseModel):
    """Soft toggle for an existing user-role binding."""

    is_active: bool


class UserRoleResponse(BaseModel):
    """A user-role binding."""

    id: int
    user_id: int
    role_id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_binding(cls, binding: UserRole) -> Self:
        return cls(
            id=binding.id,
            user_id=binding.user_id,
            role_id=binding.role_id,
            is_active=binding.is_active,
            created_at=binding.created_at,
            updated_at=binding.updated_at,
        )


class UserRolesResponse(BaseModel):
    """Response showing a user's active roles."""

    user_id: int
    roles: list[RoleSummary]


class UserPermissionsResponse(BaseModel):
    """Response showing a user's effective permissions."""

    user_id: int
    permissions: list[str]


class AccessCheckResponse(BaseModel):
    """Result of a has-role / has-permission probe."""

    user_id: int
    subject: str
    granted: bool
