"""RBAC engine: role and permission CRUD, role assignment and access queries."""

import logging
from collections.abc import Iterable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from shared.db.exceptions import ConstraintViolationError
from shared.db.models.rbac import PROTECTED_ROLE_NAME, Permission, Role, UserRole, permission_name
from shared.db.operations import RBACRepository, UserRepository

logger = logging.getLogger(__name__)


class RBACService:
    """Stateless service for role-based access control.

    Mutations only flush; the caller's session commits them as one unit.
    Permission ids that do not resolve to an existing permission are
    dropped silently wherever a list of ids is accepted.
    """

    def __init__(self, rbac: RBACRepository | None = None, users: UserRepository | None = None) -> None:
        self._rbac = rbac or RBACRepository()
        self._users = users or UserRepository()

    # --- Roles ---

    async def list_roles(self, session: AsyncSession) -> Sequence[Role]:
        """All roles with their permissions, newest first."""
        return await self._rbac.list_roles(session)

    async def get_role(self, role_id: int, session: AsyncSession) -> Role:
        return await self._get_role_or_raise(role_id, session, with_permissions=True)

    async def create_role(
        self,
        name: str,
        description: str | None,
        permission_ids: Iterable[int] | None,
        session: AsyncSession,
    ) -> Role:
        """Create a non-protected role, optionally linked to existing permissions."""
        self._ensure_name_available(name)
        if await self._rbac.get_role_by_name(name, session) is not None:
            raise ConflictError("Role with this name already exists")

        role = Role(name=name, description=description, is_protected=False)
        try:
            await self._rbac.add_role(role, session)
        except ConstraintViolationError as exc:
            raise ConflictError("Role with this name already exists") from exc

        if permission_ids:
            permissions = await self._rbac.find_permissions(permission_ids, session)
            await self._rbac.link_permissions(role.id, [p.id for p in permissions], session)

        logger.info("Created role '%s'", name, extra={"role_id": role.id})
        return await self._get_role_or_raise(role.id, session, with_permissions=True)

    async def update_role(
        self,
        role_id: int,
        name: str | None,
        description: str | None,
        permission_ids: Iterable[int] | None,
        session: AsyncSession,
    ) -> Role:
        """Merge the given fields into a role.

        ``permission_ids``, when given, replaces the role's permission set.
        """
        role = await self._get_role_or_raise(role_id, session)
        self._ensure_mutable(role, "modify")

        if name is not None and name != role.name:
            self._ensure_name_available(name)
            if await self._rbac.get_role_by_name(name, session) is not None:
                raise ConflictError("Role with this name already exists")
            role.name = name
        if description is not None:
            role.description = description

        try:
            await self._rbac.save_role(session)
        except ConstraintViolationError as exc:
            raise ConflictError("Role with this name already exists") from exc

        if permission_ids is not None:
            permissions = await self._rbac.find_permissions(permission_ids, session)
            await self._rbac.replace_role_permissions(role_id, [p.id for p in permissions], session)

        logger.info("Updated role '%s'", role.name, extra={"role_id": role_id})
        return await self._get_role_or_raise(role_id, session, with_permissions=True)

    async def delete_role(self, role_id: int, session: AsyncSession) -> None:
        """Delete a role that no user is bound to."""
        role = await self._get_role_or_raise(role_id, session)
        self._ensure_mutable(role, "delete")

        bindings = await self._rbac.count_role_bindings(role_id, session)
        if bindings:
            raise ConflictError(f"Cannot delete role '{role.name}': it is assigned to {bindings} user(s)")

        await self._rbac.delete_role(role_id, session)
        logger.info("Deleted role '%s'", role.name, extra={"role_id": role_id})

    async def add_permissions_to_role(
        self,
        role_id: int,
        permission_ids: Iterable[int],
        session: AsyncSession,
    ) -> Role:
        role = await self._get_role_or_raise(role_id, session)
        self._ensure_mutable(role, "modify")

        permissions = await self._rbac.find_permissions(permission_ids, session)
        await self._rbac.link_permissions(role_id, [p.id for p in permissions], session)
        logger.info(
            "Added permissions %s to role '%s'",
            sorted(p.name for p in permissions),
            role.name,
            extra={"role_id": role_id},
        )
        return await self._get_role_or_raise(role_id, session, with_permissions=True)

    async def remove_permissions_from_role(
        self,
        role_id: int,
        permission_ids: Iterable[int],
        session: AsyncSession,
    ) -> Role:
        role = await self._get_role_or_raise(role_id, session)
        self._ensure_mutable(role, "modify")

        ids = list(permission_ids)
        await self._rbac.unlink_permissions(role_id, ids, session)
        logger.info("Removed permission ids %s from role '%s'", ids, role.name, extra={"role_id": role_id})
        return await self._get_role_or_raise(role_id, session, with_permissions=True)

    # --- Permissions ---

    async def list_permissions(self, session: AsyncSession) -> Sequence[Permission]:
        return await self._rbac.list_permissions(session)

    async def get_permission(self, permission_id: int, session: AsyncSession) -> Permission:
        return await self._get_permission_or_raise(permission_id, session)

    async def create_permission(
        self,
        resource: str,
        action: str,
        description: str | None,
        session: AsyncSession,
    ) -> Permission:
        self._validate_scope(resource, action)
        name = permission_name(resource, action)
        if await self._rbac.get_permission_by_name(name, session) is not None:
            raise ConflictError(f"Permission '{name}' already exists")

        permission = Permission(description=description)
        permission.set_scope(resource, action)
        try:
            await self._rbac.add_permission(permission, session)
        except ConstraintViolationError as exc:
            raise ConflictError(f"Permission '{name}' already exists") from exc

        logger.info("Created permission '%s'", name, extra={"permission": name})
        return permission

    async def update_permission(
        self,
        permission_id: int,
        resource: str | None,
        action: str | None,
        description: str | None,
        session: AsyncSession,
    ) -> Permission:
        """Merge the given fields; ``name`` is recomputed from resource and action."""
        permission = await self._get_permission_or_raise(permission_id, session)
        new_resource = resource if resource is not None else permission.resource
        new_action = action if action is not None else permission.action
        self._validate_scope(new_resource, new_action)

        name = permission_name(new_resource, new_action)
        if name != permission.name:
            clash = await self._rbac.get_permission_by_name(name, session)
            if clash is not None and clash.id != permission_id:
                raise ConflictError(f"Permission '{name}' already exists")
        permission.set_scope(new_resource, new_action)
        if description is not None:
            permission.description = description

        try:
            await self._rbac.save_permission(session)
        except ConstraintViolationError as exc:
            raise ConflictError(f"Permission '{name}' already exists") from exc

        logger.info("Updated permission '%s'", name, extra={"permission": name})
        return permission

    async def delete_permission(self, permission_id: int, session: AsyncSession) -> None:
        """Delete a permission, detaching it from every role that holds it."""
        permission = await self._get_permission_or_raise(permission_id, session)
        name = permission.name
        await self._rbac.delete_permission(permission_id, session)
        logger.info("Deleted permission '%s'", name, extra={"permission": name})

    # --- Role assignment ---

    async def assign_role_to_user(self, user_id: int, role_id: int, session: AsyncSession) -> UserRole:
        role = await self._get_role_or_raise(role_id, session)
        if await self._users.get_by_id(user_id, session) is None:
            raise NotFoundError("User not found")
        if await self._rbac.get_binding(user_id, role_id, session) is not None:
            raise ConflictError("User already has this role")

        try:
            binding = await self._rbac.add_binding(UserRole(user_id=user_id, role_id=role_id), session)
        except ConstraintViolationError as exc:
            raise ConflictError("User already has this role") from exc

        logger.info("Assigned role '%s'", role.name, extra={"user_id": user_id, "role_id": role_id})
        return binding

    async def remove_role_from_user(self, user_id: int, role_id: int, session: AsyncSession) -> None:
        binding = await self._rbac.get_binding(user_id, role_id, session)
        if binding is None:
            raise NotFoundError("User role assignment not found")
        await self._rbac.delete_binding(binding, session)
        logger.info("Removed role binding", extra={"user_id": user_id, "role_id": role_id})

    async def set_binding_active(
        self,
        user_id: int,
        role_id: int,
        is_active: bool,
        session: AsyncSession,
    ) -> UserRole:
        """Soft-enable or soft-disable an existing binding without deleting it."""
        binding = await self._rbac.get_binding(user_id, role_id, session)
        if binding is None:
            raise NotFoundError("User role assignment not found")
        binding.is_active = is_active
        await session.flush()
        logger.info(
            "%s role binding",
            "Enabled" if is_active else "Disabled",
            extra={"user_id": user_id, "role_id": role_id},
        )
        return binding

    # --- Queries ---

    async def get_user_roles(self, user_id: int, session: AsyncSession) -> Sequence[UserRole]:
        """Active bindings of the user, each with its role and permissions loaded."""
        return await self._rbac.list_bindings(user_id, session, active_only=True, with_permissions=True)

    async def get_user_role_names(self, user_id: int, session: AsyncSession) -> set[str]:
        return await self._rbac.active_role_names(user_id, session)

    async def get_user_permissions(self, user_id: int, session: AsyncSession) -> set[str]:
        """Union of ``resource:action`` over the user's active bindings."""
        return await self._rbac.effective_permissions(user_id, session)

    async def has_permission(self, user_id: int, resource: str, action: str, session: AsyncSession) -> bool:
        return permission_name(resource, action) in await self.get_user_permissions(user_id, session)

    async def has_role(self, user_id: int, role_name: str, session: AsyncSession) -> bool:
        return role_name in await self.get_user_role_names(user_id, session)

    # --- Helpers ---

    @staticmethod
    def _ensure_mutable(role: Role, verb: str) -> None:
        if role.is_locked:
            raise ForbiddenError(f"Cannot {verb} the protected '{role.name}' role")

    @staticmethod
    def _ensure_name_available(name: str) -> None:
        if name == PROTECTED_ROLE_NAME:
            raise ForbiddenError(f"Role name '{name}' is reserved")

    @staticmethod
    def _validate_scope(resource: str, action: str) -> None:
        for label, value in (("resource", resource), ("action", action)):
            if not value or not value.strip():
                raise ValidationFailedError(f"Permission {label} must not be empty")
            if ":" in value:
                raise ValidationFailedError(f"Permission {label} must not contain ':'")

    async def _get_role_or_raise(
        self,
        role_id: int,
        session: AsyncSession,
        *,
        with_permissions: bool = False,
    ) -> Role:
        role = await self._rbac.get_role(role_id, session, with_permissions=with_permissions)
        if role is None:
            raise NotFoundError("Role not found")
        return role

    async def _get_permission_or_raise(self, permission_id: int, session: AsyncSession) -> Permission:
        permission = await self._rbac.get_permission(permission_id, session)
        if permission is None:
            raise NotFoundError("Permission not found")
        return permission
