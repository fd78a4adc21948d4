"""Request-time enforcement of declared access requirements."""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.identity import AuthenticatedIdentity
from app.exceptions import ForbiddenError, UnauthenticatedError
from app.rbac.service import RBACService
from shared.db.models.rbac import PROTECTED_ROLE_NAME, permission_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AccessRequirement:
    """What an operation demands of its caller.

    ``roles`` are alternatives (any one suffices); ``permissions`` are all
    required. When both are declared both must hold. ``owner_param`` names
    a path parameter holding a user id: the caller must be that user or an
    admin.
    """

    permissions: tuple[str, ...] = ()
    roles: tuple[str, ...] = ()
    owner_param: str | None = None

    @property
    def is_public(self) -> bool:
        return not self.permissions and not self.roles and self.owner_param is None


PUBLIC = AccessRequirement()


def require_permissions(*permissions: str) -> AccessRequirement:
    return AccessRequirement(permissions=permissions)


def require_roles(*roles: str) -> AccessRequirement:
    return AccessRequirement(roles=roles)


def owner_or_admin(param: str = "user_id") -> AccessRequirement:
    return AccessRequirement(owner_param=param)


def can_create(resource: str) -> AccessRequirement:
    return require_permissions(permission_name(resource, "create"))


def can_read(resource: str) -> AccessRequirement:
    return require_permissions(permission_name(resource, "read"))


def can_update(resource: str) -> AccessRequirement:
    return require_permissions(permission_name(resource, "update"))


def can_delete(resource: str) -> AccessRequirement:
    return require_permissions(permission_name(resource, "delete"))


def can_manage(resource: str) -> AccessRequirement:
    return require_permissions(permission_name(resource, "manage"))


def admin_only() -> AccessRequirement:
    return require_roles(PROTECTED_ROLE_NAME)


def manager_or_admin() -> AccessRequirement:
    return require_roles(PROTECTED_ROLE_NAME, "manager")


def editor_and_above() -> AccessRequirement:
    return require_roles(PROTECTED_ROLE_NAME, "manager", "editor")


class AccessGuard:
    """Evaluates an :class:`AccessRequirement` against the caller's live grants.

    Role names and permissions are read from the RBAC engine on every check,
    so a binding disabled after the token was issued stops granting access
    immediately.
    """

    def __init__(self, rbac: RBACService | None = None) -> None:
        self._rbac = rbac or RBACService()

    async def check(
        self,
        identity: AuthenticatedIdentity | None,
        requirement: AccessRequirement,
        session: AsyncSession,
    ) -> None:
        """Return when access is allowed; raise otherwise.

        Raises:
            UnauthenticatedError: The requirement is not public and there is no caller.
            ForbiddenError: The caller holds none of the roles or misses a permission.
        """
        if requirement.is_public:
            return
        if identity is None or identity.id is None:
            raise UnauthenticatedError("Authentication required")

        if requirement.roles:
            held = await self._rbac.get_user_role_names(identity.id, session)
            if not held.intersection(requirement.roles):
                logger.warning(
                    "Role check failed: requires one of %s", list(requirement.roles), extra={"user_id": identity.id}
                )
                raise ForbiddenError(f"Required roles: {', '.join(requirement.roles)}")

        if requirement.permissions:
            granted = await self._rbac.get_user_permissions(identity.id, session)
            for permission in requirement.permissions:
                if permission not in granted:
                    logger.warning(
                        "Permission check failed", extra={"user_id": identity.id, "permission": permission}
                    )
                    raise ForbiddenError(f"Missing permission: {permission}")

    async def check_owner_or_admin(
        self,
        identity: AuthenticatedIdentity | None,
        owner_id: int,
        session: AsyncSession,
    ) -> None:
        """Allow admins and the owner of the addressed resource."""
        if identity is None or identity.id is None:
            raise UnauthenticatedError("Authentication required")
        if await self._rbac.has_role(identity.id, PROTECTED_ROLE_NAME, session):
            return
        if owner_id == identity.id:
            return
        logger.warning("Ownership check failed for owner %d", owner_id, extra={"user_id": identity.id})
        raise ForbiddenError("You can only access your own resources")
