"""RBAC models: Role, Permission, RolePermission, UserRole."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.db.base import Base, BigIntPK, utc_now

if TYPE_CHECKING:
    from shared.db.models.user import User

PROTECTED_ROLE_NAME = "admin"


def permission_name(resource: str, action: str) -> str:
    """Build the canonical ``<resource>:<action>`` permission string."""
    return f"{resource}:{action}"


class Permission(Base):
    """Atomic capability identified by its ``(resource, action)`` pair.

    ``name`` is a denormalized ``<resource>:<action>`` copy of the pair kept
    unique at the database level; always assign it through
    :meth:`set_scope` so the two cannot drift apart.
    """

    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    resource: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    # Relationships
    role_permissions: Mapped[list[RolePermission]] = relationship("RolePermission", back_populates="permission")

    def set_scope(self, resource: str, action: str) -> None:
        self.resource = resource
        self.action = action
        self.name = permission_name(resource, action)

    @property
    def scope(self) -> str:
        return permission_name(self.resource, self.action)


class Role(Base):
    """Named bundle of permissions assignable to users.

    The built-in ``admin`` role is seeded with ``is_protected=True``; the RBAC
    service refuses to modify or delete it.
    """

    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    is_protected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    # Relationships
    role_permissions: Mapped[list[RolePermission]] = relationship("RolePermission", back_populates="role")
    user_roles: Mapped[list[UserRole]] = relationship("UserRole", back_populates="role")

    @property
    def is_locked(self) -> bool:
        """True for the protected admin role."""
        return self.is_protected and self.name == PROTECTED_ROLE_NAME

    @property
    def permissions(self) -> list[Permission]:
        """Linked permissions; requires ``role_permissions`` to be loaded."""
        return [rp.permission for rp in self.role_permissions]


class RolePermission(Base):
    """Junction table linking roles to permissions."""

    __tablename__ = "role_permissions"

    role_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
    )

    # Relationships
    role: Mapped[Role] = relationship("Role", back_populates="role_permissions")
    permission: Mapped[Permission] = relationship("Permission", back_populates="role_permissions")


class UserRole(Base):
    """Binding of one user to one role.

    ``is_active`` is a soft toggle: inactive bindings stay in the table for
    history but grant nothing.
    """

    __tablename__ = "user_roles"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    # Relationships
    user: Mapped[User] = relationship("User", back_populates="user_roles")
    role: Mapped[Role] = relationship("Role", back_populates="user_roles")

    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uq_user_role"),)
