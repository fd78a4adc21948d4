"""Repositories for users and RBAC entities.

Read methods take explicit relation-expansion flags (``with_roles``,
``with_permissions``, ``active_only``) so callers state which part of the
User -> UserRole -> Role -> Permission graph they need. Missing rows are
reported as ``None``; writes that a database constraint rejects raise
:class:`ConstraintViolationError`.

Repositories never commit. The caller's session commits once per unit of
work.
"""

import logging
from collections.abc import Iterable, Sequence

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.strategy_options import _AbstractLoad

from shared.db.enums import UserStatus
from shared.db.exceptions import ConstraintViolationError
from shared.db.models.rbac import Permission, Role, RolePermission, UserRole, permission_name
from shared.db.models.user import User

logger = logging.getLogger(__name__)


async def flush_or_conflict(session: AsyncSession, detail: str) -> None:
    """Flush pending changes, translating integrity failures."""
    try:
        await session.flush()
    except IntegrityError as exc:
        logger.info("Constraint violation: %s", detail)
        raise ConstraintViolationError(detail) from exc


def _role_permissions_option() -> _AbstractLoad:
    return selectinload(Role.role_permissions).selectinload(RolePermission.permission)


def _user_roles_option(active_only: bool) -> _AbstractLoad:
    relation = User.user_roles.and_(UserRole.is_active.is_(True)) if active_only else User.user_roles
    return (
        selectinload(relation)
        .selectinload(UserRole.role)
        .selectinload(Role.role_permissions)
        .selectinload(RolePermission.permission)
    )


class UserRepository:
    """Persistence operations for :class:`User` rows."""

    async def get_by_id(
        self,
        user_id: int,
        session: AsyncSession,
        *,
        with_roles: bool = False,
        active_only: bool = True,
    ) -> User | None:
        """Load a user, optionally with its UserRole -> Role -> Permission graph.

        With ``active_only`` the loaded ``user_roles`` collection holds only
        active bindings.
        """
        stmt = select(User).where(User.id == user_id)
        if with_roles:
            stmt = stmt.options(_user_roles_option(active_only)).execution_options(populate_existing=True)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_login(self, login: str, session: AsyncSession) -> User | None:
        """Find a user whose email or username equals *login*."""
        result = await session.execute(select(User).where(or_(User.email == login, User.username == login)))
        return result.scalars().first()

    async def find_conflicting(self, email: str, username: str, session: AsyncSession) -> User | None:
        """Return an existing user holding *email* or *username*, if any."""
        result = await session.execute(select(User).where(or_(User.email == email, User.username == username)))
        return result.scalars().first()

    async def add(self, user: User, session: AsyncSession) -> User:
        session.add(user)
        await flush_or_conflict(session, "User with this email or username already exists")
        return user

    async def save(self, session: AsyncSession) -> None:
        """Flush pending attribute changes on loaded users."""
        await flush_or_conflict(session, "User update violates a uniqueness constraint")

    async def list_users(
        self,
        session: AsyncSession,
        *,
        search: str | None = None,
        status: UserStatus | None = None,
        role: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[User], int]:
        """Return one page of users (with all bindings loaded) and the total count."""
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(User.email.ilike(pattern), User.username.ilike(pattern)))
        if status is not None:
            conditions.append(User.status == status)
        if role:
            holders = select(UserRole.user_id).join(Role, Role.id == UserRole.role_id).where(Role.name == role)
            conditions.append(User.id.in_(holders))

        total = (await session.execute(select(func.count(User.id)).where(*conditions))).scalar() or 0
        stmt = (
            select(User)
            .where(*conditions)
            .options(_user_roles_option(active_only=False))
            .order_by(User.created_at.desc(), User.id.desc())
            .limit(limit)
            .offset(offset)
            .execution_options(populate_existing=True)
        )
        users = (await session.execute(stmt)).scalars().unique().all()
        return users, total

    async def count_by_status(self, session: AsyncSession) -> dict[UserStatus, int]:
        rows = (await session.execute(select(User.status, func.count(User.id)).group_by(User.status))).all()
        counts = {status: 0 for status in UserStatus}
        for status, count in rows:
            counts[UserStatus(status)] = count
        return counts

    async def count_verified(self, session: AsyncSession) -> int:
        result = await session.execute(select(func.count(User.id)).where(User.is_verified.is_(True)))
        return result.scalar() or 0

    async def holds_role(
        self,
        user_id: int,
        role_name: str,
        session: AsyncSession,
        *,
        active_only: bool = True,
    ) -> bool:
        """Return whether *user_id* is bound to the role named *role_name*."""
        stmt = (
            select(UserRole.id)
            .join(Role, Role.id == UserRole.role_id)
            .where(UserRole.user_id == user_id, Role.name == role_name)
        )
        if active_only:
            stmt = stmt.where(UserRole.is_active.is_(True))
        result = await session.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    async def delete(self, user_id: int, session: AsyncSession) -> None:
        """Delete a user together with all of its role bindings."""
        await session.execute(delete(UserRole).where(UserRole.user_id == user_id))
        await session.execute(delete(User).where(User.id == user_id))
        await session.flush()


class RBACRepository:
    """Persistence operations for roles, permissions and role bindings."""

    # --- Roles ---

    async def get_role(
        self,
        role_id: int,
        session: AsyncSession,
        *,
        with_permissions: bool = False,
    ) -> Role | None:
        stmt = select(Role).where(Role.id == role_id)
        if with_permissions:
            stmt = stmt.options(_role_permissions_option()).execution_options(populate_existing=True)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_role_by_name(
        self,
        name: str,
        session: AsyncSession,
        *,
        with_permissions: bool = False,
    ) -> Role | None:
        stmt = select(Role).where(Role.name == name)
        if with_permissions:
            stmt = stmt.options(_role_permissions_option()).execution_options(populate_existing=True)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_roles_by_names(self, names: Iterable[str], session: AsyncSession) -> list[Role]:
        wanted = list(dict.fromkeys(names))
        if not wanted:
            return []
        result = await session.execute(select(Role).where(Role.name.in_(wanted)))
        return list(result.scalars().all())

    async def list_roles(self, session: AsyncSession) -> Sequence[Role]:
        """All roles with permissions, newest first."""
        stmt = (
            select(Role)
            .options(_role_permissions_option())
            .order_by(Role.created_at.desc(), Role.id.desc())
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalars().unique().all()

    async def add_role(self, role: Role, session: AsyncSession) -> Role:
        session.add(role)
        await flush_or_conflict(session, "Role with this name already exists")
        return role

    async def save_role(self, session: AsyncSession) -> None:
        await flush_or_conflict(session, "Role with this name already exists")

    async def delete_role(self, role_id: int, session: AsyncSession) -> None:
        """Delete a role and its permission links."""
        await session.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
        await session.execute(delete(Role).where(Role.id == role_id))
        await session.flush()

    async def role_permission_ids(self, role_id: int, session: AsyncSession) -> set[int]:
        result = await session.execute(
            select(RolePermission.permission_id).where(RolePermission.role_id == role_id)
        )
        return set(result.scalars().all())

    async def replace_role_permissions(
        self,
        role_id: int,
        permission_ids: Iterable[int],
        session: AsyncSession,
    ) -> None:
        """Make *permission_ids* the complete permission set of the role."""
        await session.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
        for permission_id in dict.fromkeys(permission_ids):
            session.add(RolePermission(role_id=role_id, permission_id=permission_id))
        await session.flush()

    async def link_permissions(
        self,
        role_id: int,
        permission_ids: Iterable[int],
        session: AsyncSession,
    ) -> None:
        """Attach permissions the role does not hold yet."""
        existing = await self.role_permission_ids(role_id, session)
        for permission_id in dict.fromkeys(permission_ids):
            if permission_id not in existing:
                session.add(RolePermission(role_id=role_id, permission_id=permission_id))
        await session.flush()

    async def unlink_permissions(
        self,
        role_id: int,
        permission_ids: Iterable[int],
        session: AsyncSession,
    ) -> None:
        ids = list(permission_ids)
        if not ids:
            return
        await session.execute(
            delete(RolePermission).where(RolePermission.role_id == role_id, RolePermission.permission_id.in_(ids))
        )
        await session.flush()

    # --- Permissions ---

    async def get_permission(self, permission_id: int, session: AsyncSession) -> Permission | None:
        result = await session.execute(select(Permission).where(Permission.id == permission_id))
        return result.scalar_one_or_none()

    async def get_permission_by_name(self, name: str, session: AsyncSession) -> Permission | None:
        result = await session.execute(select(Permission).where(Permission.name == name))
        return result.scalar_one_or_none()

    async def find_permissions(self, permission_ids: Iterable[int], session: AsyncSession) -> list[Permission]:
        """Return the permissions among *permission_ids* that exist; unknown ids are skipped."""
        ids = list(dict.fromkeys(permission_ids))
        if not ids:
            return []
        result = await session.execute(select(Permission).where(Permission.id.in_(ids)))
        return list(result.scalars().all())

    async def list_permissions(self, session: AsyncSession) -> Sequence[Permission]:
        result = await session.execute(select(Permission).order_by(Permission.resource, Permission.action))
        return result.scalars().all()

    async def add_permission(self, permission: Permission, session: AsyncSession) -> Permission:
        session.add(permission)
        await flush_or_conflict(session, "Permission with this name already exists")
        return permission

    async def save_permission(self, session: AsyncSession) -> None:
        await flush_or_conflict(session, "Permission with this name already exists")

    async def delete_permission(self, permission_id: int, session: AsyncSession) -> None:
        """Delete a permission and detach it from every role."""
        await session.execute(delete(RolePermission).where(RolePermission.permission_id == permission_id))
        await session.execute(delete(Permission).where(Permission.id == permission_id))
        await session.flush()

    # --- Bindings ---

    async def get_binding(self, user_id: int, role_id: int, session: AsyncSession) -> UserRole | None:
        """Find the binding for the pair regardless of its ``is_active`` flag."""
        result = await session.execute(
            select(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        )
        return result.scalar_one_or_none()

    async def add_binding(self, binding: UserRole, session: AsyncSession) -> UserRole:
        session.add(binding)
        await flush_or_conflict(session, "User already has this role")
        return binding

    async def delete_binding(self, binding: UserRole, session: AsyncSession) -> None:
        await session.delete(binding)
        await session.flush()

    async def count_role_bindings(self, role_id: int, session: AsyncSession) -> int:
        """Count bindings to a role, active or not."""
        result = await session.execute(select(func.count(UserRole.id)).where(UserRole.role_id == role_id))
        return result.scalar() or 0

    async def list_bindings(
        self,
        user_id: int,
        session: AsyncSession,
        *,
        active_only: bool = True,
        with_permissions: bool = True,
    ) -> Sequence[UserRole]:
        stmt = select(UserRole).where(UserRole.user_id == user_id).order_by(UserRole.id)
        if active_only:
            stmt = stmt.where(UserRole.is_active.is_(True))
        role_option = selectinload(UserRole.role)
        if with_permissions:
            role_option = role_option.selectinload(Role.role_permissions).selectinload(RolePermission.permission)
        stmt = stmt.options(role_option).execution_options(populate_existing=True)
        result = await session.execute(stmt)
        return result.scalars().all()

    # --- Effective authorization ---

    async def effective_permissions(self, user_id: int, session: AsyncSession) -> set[str]:
        """``resource:action`` strings granted through the user's active bindings."""
        stmt = (
            select(Permission.resource, Permission.action)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(UserRole, UserRole.role_id == RolePermission.role_id)
            .where(UserRole.user_id == user_id, UserRole.is_active.is_(True))
            .distinct()
        )
        result = await session.execute(stmt)
        return {permission_name(resource, action) for resource, action in result.all()}

    async def active_role_names(self, user_id: int, session: AsyncSession) -> set[str]:
        stmt = (
            select(Role.name)
            .join(UserRole, UserRole.role_id == Role.id)
            .where(UserRole.user_id == user_id, UserRole.is_active.is_(True))
        )
        result = await session.execute(stmt)
        return set(result.scalars().all())
