"""Bearer token to request identity resolution."""

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import JWTError, JWTService
from app.constants import INVALID_TOKEN_MESSAGE
from app.exceptions import UnauthenticatedError
from shared.db.models.user import User
from shared.db.operations import UserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuthenticatedIdentity:
    """The caller behind a request, with roles and permissions from active bindings."""

    id: int
    email: str
    username: str
    roles: tuple[str, ...] = field(default_factory=tuple)
    permissions: tuple[str, ...] = field(default_factory=tuple)

    def has_role(self, role_name: str) -> bool:
        return role_name in self.roles

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions

    @classmethod
    def from_user(cls, user: User) -> "AuthenticatedIdentity":
        """Build an identity from a user whose ``user_roles`` graph is loaded.

        Only the bindings present on the user are considered, so callers
        load it with active bindings only.
        """
        roles: dict[str, None] = {}
        permissions: dict[str, None] = {}
        for binding in user.user_roles:
            if not binding.is_active:
                continue
            roles[binding.role.name] = None
            for permission in binding.role.permissions:
                permissions[permission.scope] = None
        return cls(
            id=user.id,
            email=user.email,
            username=user.username,
            roles=tuple(roles),
            permissions=tuple(permissions),
        )


class IdentityResolver:
    """Turns a bearer token into an :class:`AuthenticatedIdentity`.

    Every failure (bad signature, expired token, refresh token presented as
    access token, unknown or non-active user) raises
    :class:`UnauthenticatedError` with the same message so the response does
    not reveal which check failed.
    """

    def __init__(self, jwt_service: JWTService, users: UserRepository | None = None) -> None:
        self._jwt = jwt_service
        self._users = users or UserRepository()

    async def resolve(self, token: str, session: AsyncSession) -> AuthenticatedIdentity:
        try:
            user_id = self._jwt.decode_access_token(token)
        except JWTError as exc:
            logger.info("Rejected bearer token: %s", exc.detail)
            raise UnauthenticatedError(INVALID_TOKEN_MESSAGE) from exc

        user = await self._users.get_by_id(user_id, session, with_roles=True, active_only=True)
        if user is None:
            logger.info("Rejected bearer token for unknown user", extra={"user_id": user_id})
            raise UnauthenticatedError(INVALID_TOKEN_MESSAGE)
        if not user.is_active:
            logger.info("Rejected bearer token for %s user", user.status.value, extra={"user_id": user_id})
            raise UnauthenticatedError(INVALID_TOKEN_MESSAGE)

        return AuthenticatedIdentity.from_user(user)
