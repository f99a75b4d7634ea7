"""
Module, Role and permission matrix models for team access control.

- Module: a protected feature area ("payroll", "contracts", ...), seeded
  externally and read-only for the engine.
- Role: a named privilege tier with one permission level per module.
- RolePermission: one matrix cell, unique per (role, module).
- AuditLog: trail of role and member mutations.
"""
import enum
from typing import Any, Dict, List
from sqlalchemy import String, ForeignKey, JSON, Text, Integer, Boolean, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_id


class PermissionLevel(str, enum.Enum):
    """
    Capability within one module, totally ordered:
    none < view < manage < approve < admin.

    Comparisons use that order, not string order.
    """
    NONE = "none"
    VIEW = "view"
    MANAGE = "manage"
    APPROVE = "approve"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]

    def __lt__(self, other):
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank >= other.rank


_LEVEL_RANK = {level: rank for rank, level in enumerate(PermissionLevel)}


class Module(Base, TimestampMixin):
    """
    Protected resource area.

    ``available_permissions`` lists the levels the product offers for the
    module; it is informational and not enforced on matrices.
    """
    __tablename__ = "modules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    available_permissions: Mapped[List[str] | None] = mapped_column(JSON, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Module(id={self.id}, key={self.key!r}, order={self.display_order})>"


class Role(Base, TimestampMixin):
    """
    Role with an integer privilege level (higher is more powerful).

    System roles are seeded and never edited or deleted. A custom role's
    privilege level is computed from its creator and fixed afterwards.
    """
    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_system_role: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    privilege_level: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    created_by: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    permissions: Mapped[list["RolePermission"]] = relationship(
        "RolePermission",
        back_populates="role",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def permission_matrix(self) -> Dict[str, PermissionLevel]:
        """Module key -> level; modules without an entry are implicitly none."""
        return {entry.module.key: entry.permission_level for entry in self.permissions}

    def level_for(self, module_key: str) -> PermissionLevel:
        return self.permission_matrix.get(module_key, PermissionLevel.NONE)

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, privilege={self.privilege_level})>"


class RolePermission(Base):
    """One cell of a role's permission matrix."""
    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "module_id", name="uq_role_permissions_role_module"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    role_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    module_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("modules.id", ondelete="CASCADE"),
        nullable=False,
    )
    permission_level: Mapped[PermissionLevel] = mapped_column(
        SQLEnum(PermissionLevel, name="permission_level", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PermissionLevel.NONE,
    )

    role: Mapped["Role"] = relationship("Role", back_populates="permissions")
    module: Mapped["Module"] = relationship("Module", lazy="selectin")

    def __repr__(self) -> str:
        return f"<RolePermission(role_id={self.role_id}, module_id={self.module_id}, level={self.permission_level.value})>"


class AuditLog(Base, TimestampMixin):
    """
    Audit entry for a role or member mutation.

    Written in the same transaction as the mutation it describes.
    """
    __tablename__ = "team_audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # e.g. "create", "update", "delete", "invite", "assign_role"
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, resource={self.resource_type})>"
