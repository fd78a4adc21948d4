"""Idempotent bootstrap of permissions, roles and the admin account."""

import logging
from dataclasses import dataclass, field

from anyio import to_thread
from sqlalchemy.ext.asyncio import AsyncSession

from app.rbac.seed_data import ALL_PERMISSIONS, SeedDataset, SeedRole
from shared.crypto import PasswordHasher
from shared.db.enums import UserStatus
from shared.db.models.rbac import PROTECTED_ROLE_NAME, Permission, Role, UserRole
from shared.db.models.user import User
from shared.db.operations import RBACRepository, UserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AdminAccount:
    """Credentials of the bootstrap administrator."""

    email: str
    username: str
    password: str


@dataclass(slots=True)
class SeedReport:
    """What a seeding run changed. An idempotent re-run reports no changes."""

    version: str
    permissions_created: list[str] = field(default_factory=list)
    roles_created: list[str] = field(default_factory=list)
    roles_synced: list[str] = field(default_factory=list)
    roles_skipped: list[str] = field(default_factory=list)
    admin_created: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.permissions_created or self.roles_created or self.roles_synced or self.admin_created)


class RBACSeeder:
    """Applies a :class:`SeedDataset` to the database.

    - Missing permissions and roles are created.
    - Existing non-protected roles have their permission set re-synced to
      the dataset.
    - The protected admin role is left untouched once it exists.
    - An admin account is created and bound to the admin role when
      credentials are supplied and no account with that email or username
      exists.
    """

    def __init__(
        self,
        hasher: PasswordHasher | None = None,
        rbac: RBACRepository | None = None,
        users: UserRepository | None = None,
    ) -> None:
        self._hasher = hasher or PasswordHasher()
        self._rbac = rbac or RBACRepository()
        self._users = users or UserRepository()

    async def seed(
        self,
        dataset: SeedDataset,
        session: AsyncSession,
        *,
        admin: AdminAccount | None = None,
    ) -> SeedReport:
        logger.info("Seeding RBAC dataset version %s", dataset.version)
        report = SeedReport(version=dataset.version)

        await self._seed_permissions(dataset, session, report)
        permission_ids = {p.name: p.id for p in await self._rbac.list_permissions(session)}
        dataset_ids = [permission_ids[name] for name in dataset.permission_names()]
        for seed_role in dataset.roles:
            await self._seed_role(seed_role, dataset_ids, permission_ids, session, report)

        if admin is not None and admin.password:
            report.admin_created = await self._seed_admin(admin, session)

        logger.info(
            "Seeding finished: %d permissions created, %d roles created, %d roles synced",
            len(report.permissions_created),
            len(report.roles_created),
            len(report.roles_synced),
        )
        return report

    async def _seed_permissions(self, dataset: SeedDataset, session: AsyncSession, report: SeedReport) -> None:
        for seed_permission in dataset.permissions:
            if await self._rbac.get_permission_by_name(seed_permission.name, session) is not None:
                continue
            permission = Permission(description=seed_permission.description)
            permission.set_scope(seed_permission.resource, seed_permission.action)
            await self._rbac.add_permission(permission, session)
            report.permissions_created.append(seed_permission.name)
            logger.info("Created permission '%s'", seed_permission.name)

    async def _seed_role(
        self,
        seed_role: SeedRole,
        dataset_ids: list[int],
        permission_ids: dict[str, int],
        session: AsyncSession,
        report: SeedReport,
    ) -> None:
        wanted = self._resolve_permissions(seed_role, dataset_ids, permission_ids)
        role = await self._rbac.get_role_by_name(seed_role.name, session)

        if role is None:
            role = Role(name=seed_role.name, description=seed_role.description, is_protected=seed_role.is_protected)
            await self._rbac.add_role(role, session)
            await self._rbac.replace_role_permissions(role.id, wanted, session)
            report.roles_created.append(seed_role.name)
            logger.info("Created role '%s' with %d permissions", seed_role.name, len(wanted))
            return

        if seed_role.is_protected and not role.is_protected:
            role.is_protected = True
            await self._rbac.save_role(session)
            await self._rbac.replace_role_permissions(role.id, wanted, session)
            report.roles_synced.append(seed_role.name)
            logger.warning("Marked existing role '%s' as protected and re-synced its permissions", seed_role.name)
            return

        if role.is_locked:
            report.roles_skipped.append(seed_role.name)
            return

        if await self._rbac.role_permission_ids(role.id, session) != set(wanted):
            await self._rbac.replace_role_permissions(role.id, wanted, session)
            report.roles_synced.append(seed_role.name)
            logger.info("Re-synced permissions of role '%s'", seed_role.name)

    @staticmethod
    def _resolve_permissions(
        seed_role: SeedRole,
        dataset_ids: list[int],
        permission_ids: dict[str, int],
    ) -> list[int]:
        if ALL_PERMISSIONS in seed_role.permissions:
            return list(dataset_ids)
        resolved = []
        for name in seed_role.permissions:
            if name not in permission_ids:
                logger.warning("Role '%s' references unknown permission '%s'", seed_role.name, name)
                continue
            resolved.append(permission_ids[name])
        return resolved

    async def _seed_admin(self, admin: AdminAccount, session: AsyncSession) -> bool:
        if await self._users.find_conflicting(admin.email, admin.username, session) is not None:
            logger.info("Admin account '%s' already exists", admin.username)
            return False

        role = await self._rbac.get_role_by_name(PROTECTED_ROLE_NAME, session)
        if role is None:
            raise RuntimeError(f"Role '{PROTECTED_ROLE_NAME}' not found; seed roles before the admin account")

        user = User(
            email=admin.email,
            username=admin.username,
            password_hash=await to_thread.run_sync(self._hasher.hash, admin.password),
            status=UserStatus.ACTIVE,
            is_verified=True,
        )
        await self._users.add(user, session)
        await self._rbac.add_binding(UserRole(user_id=user.id, role_id=role.id), session)
        logger.info("Created admin account '%s'", admin.username, extra={"user_id": user.id})
        return True
