"""User management business logic: accounts, status transitions and stats."""

import logging

from anyio import to_thread
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants import DEFAULT_BAN_REASON, DEFAULT_PAGE_LIMIT, DEFAULT_USER_ROLE
from app.exceptions import ConflictError, ForbiddenError, NotFoundError
from app.schemas import PaginatedResult
from app.users.schemas import UserStats
from shared.crypto import PasswordHasher
from shared.db.base import utc_now
from shared.db.enums import UserStatus
from shared.db.exceptions import ConstraintViolationError
from shared.db.models.rbac import PROTECTED_ROLE_NAME, UserRole
from shared.db.models.user import User
from shared.db.operations import RBACRepository, UserRepository

logger = logging.getLogger(__name__)


class UserService:
    """Stateless service for user accounts.

    Accounts bound to the admin role can be neither deleted nor moved off
    the active status.
    """

    def __init__(
        self,
        hasher: PasswordHasher,
        users: UserRepository | None = None,
        rbac: RBACRepository | None = None,
    ) -> None:
        self._hasher = hasher
        self._users = users or UserRepository()
        self._rbac = rbac or RBACRepository()

    async def create_user(
        self,
        email: str,
        username: str,
        password: str,
        role_names: list[str] | None,
        session: AsyncSession,
        *,
        default_role: str = DEFAULT_USER_ROLE,
    ) -> User:
        """Create an active account bound to *role_names* (or the default role)."""
        if await self._users.find_conflicting(email, username, session) is not None:
            raise ConflictError("User with this email or username already exists")

        wanted = list(dict.fromkeys(role_names or [default_role]))
        roles = await self._rbac.find_roles_by_names(wanted, session)
        if len(roles) != len(wanted):
            missing = sorted(set(wanted) - {r.name for r in roles})
            raise NotFoundError(f"Roles not found: {', '.join(missing)}")

        user = User(
            email=email,
            username=username,
            password_hash=await to_thread.run_sync(self._hasher.hash, password),
            status=UserStatus.ACTIVE,
        )
        try:
            await self._users.add(user, session)
        except ConstraintViolationError as exc:
            raise ConflictError("User with this email or username already exists") from exc

        for role in roles:
            await self._rbac.add_binding(UserRole(user_id=user.id, role_id=role.id), session)

        logger.info("Created user '%s' with roles %s", username, wanted, extra={"user_id": user.id})
        return await self.get_user(user.id, session)

    async def get_user(self, user_id: int, session: AsyncSession) -> User:
        """Load a user with its active roles and their permissions."""
        user = await self._users.get_by_id(user_id, session, with_roles=True, active_only=True)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def list_users(
        self,
        session: AsyncSession,
        *,
        search: str | None = None,
        status: UserStatus | None = None,
        role: str | None = None,
        limit: int = DEFAULT_PAGE_LIMIT,
        offset: int = 0,
    ) -> PaginatedResult[User]:
        users, total = await self._users.list_users(
            session, search=search, status=status, role=role, limit=limit, offset=offset
        )
        return PaginatedResult(items=list(users), total=total)

    async def update_user_status(
        self,
        user_id: int,
        status: UserStatus,
        reason: str | None,
        actor_id: int | None,
        session: AsyncSession,
    ) -> User:
        """Change a user's status, recording or clearing the ban audit fields."""
        user = await self.get_user(user_id, session)
        if status != UserStatus.ACTIVE and await self._is_admin(user_id, session):
            raise ForbiddenError("Cannot disable or ban admin users")

        user.status = status
        if status == UserStatus.BANNED:
            user.banned_at = utc_now()
            user.banned_reason = reason or DEFAULT_BAN_REASON
            user.banned_by = actor_id
        else:
            user.banned_at = None
            user.banned_reason = None
            user.banned_by = None

        await self._users.save(session)
        logger.info("User status set to %s", status.value, extra={"user_id": user_id})
        return user

    async def disable_user(
        self,
        user_id: int,
        reason: str | None,
        actor_id: int | None,
        session: AsyncSession,
    ) -> User:
        return await self.update_user_status(user_id, UserStatus.INACTIVE, reason, actor_id, session)

    async def enable_user(self, user_id: int, session: AsyncSession) -> User:
        return await self.update_user_status(user_id, UserStatus.ACTIVE, None, None, session)

    async def ban_user(
        self,
        user_id: int,
        reason: str | None,
        actor_id: int | None,
        session: AsyncSession,
    ) -> User:
        return await self.update_user_status(user_id, UserStatus.BANNED, reason, actor_id, session)

    async def unban_user(self, user_id: int, session: AsyncSession) -> User:
        return await self.update_user_status(user_id, UserStatus.ACTIVE, None, None, session)

    async def delete_user(self, user_id: int, session: AsyncSession) -> None:
        """Delete a non-admin user and its role bindings."""
        if await self._users.get_by_id(user_id, session) is None:
            raise NotFoundError("User not found")
        if await self._is_admin(user_id, session):
            raise ForbiddenError("Cannot delete admin users")

        await self._users.delete(user_id, session)
        logger.info("Deleted user", extra={"user_id": user_id})

    async def get_user_stats(self, session: AsyncSession) -> UserStats:
        counts = await self._users.count_by_status(session)
        return UserStats(
            total=sum(counts.values()),
            active=counts[UserStatus.ACTIVE],
            inactive=counts[UserStatus.INACTIVE],
            banned=counts[UserStatus.BANNED],
            suspended=counts[UserStatus.SUSPENDED],
            verified=await self._users.count_verified(session),
        )

    async def _is_admin(self, user_id: int, session: AsyncSession) -> bool:
        # Any binding counts, so soft-disabling the admin binding does not unlock the account.
        return await self._users.holds_role(user_id, PROTECTED_ROLE_NAME, session, active_only=False)
