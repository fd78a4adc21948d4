"""Declarative, versioned RBAC seed data."""

from dataclasses import dataclass, field

from shared.db.models.rbac import PROTECTED_ROLE_NAME, permission_name

# Role permission entry that expands to every permission in the dataset.
ALL_PERMISSIONS = "*"


@dataclass(frozen=True, slots=True)
class SeedPermission:
    resource: str
    action: str
    description: str | None = None

    @property
    def name(self) -> str:
        return permission_name(self.resource, self.action)


@dataclass(frozen=True, slots=True)
class SeedRole:
    name: str
    description: str | None
    permissions: tuple[str, ...]
    is_protected: bool = False


@dataclass(frozen=True, slots=True)
class SeedDataset:
    """A complete, versioned set of permissions and roles to bootstrap."""

    version: str
    permissions: tuple[SeedPermission, ...]
    roles: tuple[SeedRole, ...] = field(default_factory=tuple)

    def permission_names(self) -> list[str]:
        return [p.name for p in self.permissions]


def _crud(resource: str, label: str) -> tuple[SeedPermission, ...]:
    return tuple(
        SeedPermission(resource, action, f"{action.capitalize()} {label}")
        for action in ("create", "read", "update", "delete")
    )


DEFAULT_DATASET = SeedDataset(
    version="2024.1",
    permissions=(
        *_crud("users", "users"),
        *_crud("roles", "roles"),
        *_crud("permissions", "permissions"),
        *_crud("settings", "settings"),
        *_crud("posts", "posts"),
        SeedPermission("reports", "read", "Read reports"),
        SeedPermission("analytics", "read", "Read analytics"),
        SeedPermission("system", "backup", "Create system backups"),
        SeedPermission("system", "restore", "Restore system backups"),
        SeedPermission("system", "maintenance", "Run system maintenance"),
    ),
    roles=(
        SeedRole(
            PROTECTED_ROLE_NAME,
            "Super administrator with all permissions",
            (ALL_PERMISSIONS,),
            is_protected=True,
        ),
        SeedRole(
            "manager",
            "Manager with user and content management permissions",
            (
                "users:read",
                "users:update",
                "posts:create",
                "posts:read",
                "posts:update",
                "posts:delete",
                "reports:read",
            ),
        ),
        SeedRole("editor", "Content editor", ("posts:create", "posts:read", "posts:update", "users:read")),
        SeedRole("user", "Basic user role", ("posts:read", "users:read")),
        SeedRole("viewer", "Read-only access", ("posts:read", "users:read")),
    ),
)
