"""User management HTTP endpoints, a class-based router delegating to UserService."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import CurrentIdentity
from app.auth.guard import admin_only, can_create, can_read, can_update, owner_or_admin
from app.auth.policy import AccessPolicy, access_policy
from app.constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from app.dependencies import db_manager
from app.rbac.schemas import (
    AccessCheckResponse,
    RoleSummary,
    SetBindingActiveRequest,
    UserPermissionsResponse,
    UserRoleResponse,
    UserRolesResponse,
)
from app.rbac.service import RBACService
from app.schemas import ActionResponse, PaginatedResponse
from app.settings import AppSettings, get_settings
from app.users.schemas import (
    CreateUserRequest,
    ReasonRequest,
    UpdateUserStatusRequest,
    UserResponse,
    UserStats,
)
from app.users.service import UserService
from shared.crypto import PasswordHasher
from shared.db.enums import UserStatus
from shared.db.models.rbac import permission_name

Session = Annotated[AsyncSession, Depends(db_manager.dependency)]


def get_user_service(settings: Annotated[AppSettings, Depends(get_settings)]) -> UserService:
    """FastAPI dependency that provides a UserService instance."""
    return UserService(PasswordHasher(rounds=settings.BCRYPT_ROUNDS))


UserServiceDep = Annotated[UserService, Depends(get_user_service)]


class UsersRouter:
    """Class-based router for user accounts and their role bindings."""

    def __init__(self, policy: AccessPolicy, rbac: RBACService | None = None) -> None:
        self._rbac = rbac or RBACService()
        self.router = APIRouter()
        add = policy.add_route
        add(
            self.router,
            "",
            self.create_user,
            ["POST"],
            operation="users.create",
            requirement=can_create("users"),
            status_code=201,
        )
        add(self.router, "", self.list_users, ["GET"], operation="users.list", requirement=can_read("users"))
        add(self.router, "/stats", self.get_stats, ["GET"], operation="users.stats", requirement=can_read("users"))
        add(self.router, "/{user_id}", self.get_user, ["GET"], operation="users.get", requirement=owner_or_admin())
        add(
            self.router,
            "/{user_id}",
            self.delete_user,
            ["DELETE"],
            operation="users.delete",
            requirement=admin_only(),
        )
        add(
            self.router,
            "/{user_id}/status",
            self.update_status,
            ["PATCH"],
            operation="users.status.update",
            requirement=can_update("users"),
        )
        add(
            self.router,
            "/{user_id}/disable",
            self.disable_user,
            ["POST"],
            operation="users.disable",
            requirement=can_update("users"),
        )
        add(
            self.router,
            "/{user_id}/enable",
            self.enable_user,
            ["POST"],
            operation="users.enable",
            requirement=can_update("users"),
        )
        add(
            self.router,
            "/{user_id}/ban",
            self.ban_user,
            ["POST"],
            operation="users.ban",
            requirement=can_update("users"),
        )
        add(
            self.router,
            "/{user_id}/unban",
            self.unban_user,
            ["POST"],
            operation="users.unban",
            requirement=can_update("users"),
        )
        add(
            self.router,
            "/{user_id}/roles",
            self.get_user_roles,
            ["GET"],
            operation="users.roles.list",
            requirement=can_read("users"),
        )
        add(
            self.router,
            "/{user_id}/roles/{role_id}",
            self.set_binding_active,
            ["PATCH"],
            operation="users.roles.toggle",
            requirement=admin_only(),
        )
        add(
            self.router,
            "/{user_id}/permissions",
            self.get_user_permissions,
            ["GET"],
            operation="users.permissions.list",
            requirement=can_read("users"),
        )
        add(
            self.router,
            "/{user_id}/check-permission/{resource}/{action}",
            self.check_permission,
            ["POST"],
            operation="users.permissions.check",
            requirement=can_read("users"),
        )
        add(
            self.router,
            "/{user_id}/check-role/{role_name}",
            self.check_role,
            ["POST"],
            operation="users.roles.check",
            requirement=can_read("users"),
        )

    # --- Accounts ---

    async def create_user(
        self,
        body: CreateUserRequest,
        session: Session,
        service: UserServiceDep,
        settings: Annotated[AppSettings, Depends(get_settings)],
    ) -> UserResponse:
        """Create an active account; without explicit roles the default role is bound."""
        user = await service.create_user(
            body.email,
            body.username,
            body.password,
            body.roles,
            session,
            default_role=settings.DEFAULT_USER_ROLE,
        )
        return UserResponse.from_user(user)

    async def list_users(
        self,
        session: Session,
        service: UserServiceDep,
        search: str | None = Query(default=None, description="Substring of email or username"),
        status: UserStatus | None = Query(default=None),
        role: str | None = Query(default=None, description="Role name"),
        limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
        offset: int = Query(default=0, ge=0),
    ) -> PaginatedResponse[UserResponse]:
        """List users, newest first."""
        items, total = await service.list_users(
            session, search=search, status=status, role=role, limit=limit, offset=offset
        )
        return PaginatedResponse(
            items=[UserResponse.from_user(u) for u in items],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def get_stats(
        self,
        session: Session,
        service: UserServiceDep,
    ) -> UserStats:
        return await service.get_user_stats(session)

    async def get_user(
        self,
        user_id: int,
        session: Session,
        service: UserServiceDep,
    ) -> UserResponse:
        return UserResponse.from_user(await service.get_user(user_id, session))

    async def delete_user(
        self,
        user_id: int,
        session: Session,
        service: UserServiceDep,
    ) -> ActionResponse:
        await service.delete_user(user_id, session)
        return ActionResponse(success=True, message=f"User {user_id} deleted")

    # --- Status ---

    async def update_status(
        self,
        user_id: int,
        body: UpdateUserStatusRequest,
        identity: CurrentIdentity,
        session: Session,
        service: UserServiceDep,
    ) -> UserResponse:
        user = await service.update_user_status(user_id, body.status, body.reason, identity.id, session)
        return UserResponse.from_user(user)

    async def disable_user(
        self,
        user_id: int,
        identity: CurrentIdentity,
        session: Session,
        service: UserServiceDep,
        body: ReasonRequest | None = None,
    ) -> UserResponse:
        reason = body.reason if body else None
        return UserResponse.from_user(await service.disable_user(user_id, reason, identity.id, session))

    async def enable_user(
        self,
        user_id: int,
        session: Session,
        service: UserServiceDep,
    ) -> UserResponse:
        return UserResponse.from_user(await service.enable_user(user_id, session))

    async def ban_user(
        self,
        user_id: int,
        identity: CurrentIdentity,
        session: Session,
        service: UserServiceDep,
        body: ReasonRequest | None = None,
    ) -> UserResponse:
        reason = body.reason if body else None
        return UserResponse.from_user(await service.ban_user(user_id, reason, identity.id, session))

    async def unban_user(
        self,
        user_id: int,
        session: Session,
        service: UserServiceDep,
    ) -> UserResponse:
        return UserResponse.from_user(await service.unban_user(user_id, session))

    # --- Roles and permissions ---

    async def get_user_roles(
        self,
        user_id: int,
        session: Session,
        service: UserServiceDep,
    ) -> UserRolesResponse:
        """Active roles of the user with their permissions."""
        await service.get_user(user_id, session)
        bindings = await self._rbac.get_user_roles(user_id, session)
        return UserRolesResponse(user_id=user_id, roles=[RoleSummary.from_role(b.role) for b in bindings])

    async def set_binding_active(
        self,
        user_id: int,
        role_id: int,
        body: SetBindingActiveRequest,
        session: Session,
    ) -> UserRoleResponse:
        """Soft-enable or soft-disable one of the user's role bindings."""
        binding = await self._rbac.set_binding_active(user_id, role_id, body.is_active, session)
        return UserRoleResponse.from_binding(binding)

    async def get_user_permissions(
        self,
        user_id: int,
        session: Session,
        service: UserServiceDep,
    ) -> UserPermissionsResponse:
        await service.get_user(user_id, session)
        permissions = await self._rbac.get_user_permissions(user_id, session)
        return UserPermissionsResponse(user_id=user_id, permissions=sorted(permissions))

    async def check_permission(
        self,
        user_id: int,
        resource: str,
        action: str,
        session: Session,
    ) -> AccessCheckResponse:
        granted = await self._rbac.has_permission(user_id, resource, action, session)
        return AccessCheckResponse(user_id=user_id, subject=permission_name(resource, action), granted=granted)

    async def check_role(self, user_id: int, role_name: str, session: Session) -> AccessCheckResponse:
        granted = await self._rbac.has_role(user_id, role_name, session)
        return AccessCheckResponse(user_id=user_id, subject=role_name, granted=granted)


users_router = UsersRouter(access_policy).router
