"""Role and permission HTTP endpoints, class-based routers delegating to RBACService."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.guard import admin_only, can_read
from app.auth.policy import AccessPolicy, access_policy
from app.dependencies import db_manager
from app.rbac.schemas import (
    AssignRoleRequest,
    CreatePermissionRequest,
    CreateRoleRequest,
    PermissionResponse,
    RolePermissionsRequest,
    RoleSummary,
    UpdatePermissionRequest,
    UpdateRoleRequest,
    UserRoleResponse,
)
from app.rbac.service import RBACService
from app.schemas import ActionResponse

Session = Annotated[AsyncSession, Depends(db_manager.dependency)]


class RolesRouter:
    """Class-based router for role CRUD, role assignment and role permissions."""

    def __init__(self, policy: AccessPolicy, service: RBACService | None = None) -> None:
        self._svc = service or RBACService()
        self.router = APIRouter()
        add = policy.add_route
        add(self.router, "", self.list_roles, ["GET"], operation="roles.list", requirement=can_read("roles"))
        add(
            self.router,
            "",
            self.create_role,
            ["POST"],
            operation="roles.create",
            requirement=admin_only(),
            status_code=201,
        )
        add(
            self.router,
            "/assign",
            self.assign_role,
            ["POST"],
            operation="roles.assign",
            requirement=admin_only(),
            status_code=201,
        )
        add(self.router, "/{role_id}", self.get_role, ["GET"], operation="roles.get", requirement=can_read("roles"))
        add(self.router, "/{role_id}", self.update_role, ["PATCH"], operation="roles.update", requirement=admin_only())
        add(self.router, "/{role_id}", self.delete_role, ["DELETE"], operation="roles.delete", requirement=admin_only())
        add(
            self.router,
            "/{role_id}/users/{user_id}",
            self.unassign_role,
            ["DELETE"],
            operation="roles.unassign",
            requirement=admin_only(),
        )
        add(
            self.router,
            "/{role_id}/permissions",
            self.add_permissions,
            ["POST"],
            operation="roles.permissions.add",
            requirement=admin_only(),
        )
        add(
            self.router,
            "/{role_id}/permissions",
            self.remove_permissions,
            ["DELETE"],
            operation="roles.permissions.remove",
            requirement=admin_only(),
        )

    async def list_roles(self, session: Session) -> list[RoleSummary]:
        """List all roles with their permissions, newest first."""
        return [RoleSummary.from_role(r) for r in await self._svc.list_roles(session)]

    async def get_role(self, role_id: int, session: Session) -> RoleSummary:
        return RoleSummary.from_role(await self._svc.get_role(role_id, session))

    async def create_role(self, body: CreateRoleRequest, session: Session) -> RoleSummary:
        """Create a role; unknown permission ids are ignored."""
        role = await self._svc.create_role(body.name, body.description, body.permission_ids, session)
        return RoleSummary.from_role(role)

    async def update_role(self, role_id: int, body: UpdateRoleRequest, session: Session) -> RoleSummary:
        role = await self._svc.update_role(role_id, body.name, body.description, body.permission_ids, session)
        return RoleSummary.from_role(role)

    async def delete_role(self, role_id: int, session: Session) -> ActionResponse:
        """Delete a role that is not assigned to any user."""
        await self._svc.delete_role(role_id, session)
        return ActionResponse(success=True, message=f"Role {role_id} deleted")

    async def assign_role(self, body: AssignRoleRequest, session: Session) -> UserRoleResponse:
        binding = await self._svc.assign_role_to_user(body.user_id, body.role_id, session)
        return UserRoleResponse.from_binding(binding)

    async def unassign_role(self, role_id: int, user_id: int, session: Session) -> ActionResponse:
        await self._svc.remove_role_from_user(user_id, role_id, session)
        return ActionResponse(success=True, message=f"Role {role_id} removed from user {user_id}")

    async def add_permissions(self, role_id: int, body: RolePermissionsRequest, session: Session) -> RoleSummary:
        role = await self._svc.add_permissions_to_role(role_id, body.permission_ids, session)
        return RoleSummary.from_role(role)

    async def remove_permissions(self, role_id: int, body: RolePermissionsRequest, session: Session) -> RoleSummary:
        role = await self._svc.remove_permissions_from_role(role_id, body.permission_ids, session)
        return RoleSummary.from_role(role)


class PermissionsRouter:
    """Class-based router for permission CRUD."""

    def __init__(self, policy: AccessPolicy, service: RBACService | None = None) -> None:
        self._svc = service or RBACService()
        self.router = APIRouter()
        add = policy.add_route
        add(
            self.router,
            "",
            self.list_permissions,
            ["GET"],
            operation="permissions.list",
            requirement=can_read("permissions"),
        )
        add(
            self.router,
            "",
            self.create_permission,
            ["POST"],
            operation="permissions.create",
            requirement=admin_only(),
            status_code=201,
        )
        add(
            self.router,
            "/{permission_id}",
            self.get_permission,
            ["GET"],
            operation="permissions.get",
            requirement=can_read("permissions"),
        )
        add(
            self.router,
            "/{permission_id}",
            self.update_permission,
            ["PATCH"],
            operation="permissions.update",
            requirement=admin_only(),
        )
        add(
            self.router,
            "/{permission_id}",
            self.delete_permission,
            ["DELETE"],
            operation="permissions.delete",
            requirement=admin_only(),
        )

    async def list_permissions(self, session: Session) -> list[PermissionResponse]:
        """List all permissions ordered by resource and action."""
        return [PermissionResponse.from_permission(p) for p in await self._svc.list_permissions(session)]

    async def get_permission(self, permission_id: int, session: Session) -> PermissionResponse:
        return PermissionResponse.from_permission(await self._svc.get_permission(permission_id, session))

    async def create_permission(self, body: CreatePermissionRequest, session: Session) -> PermissionResponse:
        permission = await self._svc.create_permission(body.resource, body.action, body.description, session)
        return PermissionResponse.from_permission(permission)

    async def update_permission(
        self,
        permission_id: int,
        body: UpdatePermissionRequest,
        session: Session,
    ) -> PermissionResponse:
        permission = await self._svc.update_permission(
            permission_id, body.resource, body.action, body.description, session
        )
        return PermissionResponse.from_permission(permission)

    async def delete_permission(self, permission_id: int, session: Session) -> ActionResponse:
        """Delete a permission and detach it from all roles."""
        await self._svc.delete_permission(permission_id, session)
        return ActionResponse(success=True, message=f"Permission {permission_id} deleted")


roles_router = RolesRouter(access_policy).router
permissions_router = PermissionsRouter(access_policy).router
