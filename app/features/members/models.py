"""
Team member model.

Members are created ``pending`` by an invite and become ``active`` once
the invitee accepts. Removal deletes the row; there is no way back from
active to pending.
"""
from datetime import datetime
import enum
from sqlalchemy import String, ForeignKey, DateTime, Index, Enum as SQLEnum, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_id
from app.features.permissions.models import Role


class MemberStatus(str, enum.Enum):
    """Lifecycle state of a team member."""
    PENDING = "pending"
    ACTIVE = "active"


class Member(Base, TimestampMixin):
    """
    A person on the team, holding exactly one role.

    Email is unique regardless of case or status; the functional index
    below backs the engine's own pre-check.
    """
    __tablename__ = "team_members"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # RESTRICT: a role can only go once nobody holds it
    role_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("roles.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    status: Mapped[MemberStatus] = mapped_column(
        SQLEnum(MemberStatus, name="member_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=MemberStatus.PENDING,
        index=True,
    )

    invited_by: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    invited_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Bound when the invite is accepted
    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
        index=True,
    )
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_active_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    role: Mapped["Role"] = relationship("Role", lazy="selectin")

    @property
    def display_name(self) -> str:
        return self.name or self.email

    def __repr__(self) -> str:
        return f"<Member(id={self.id}, email={self.email!r}, status={self.status.value})>"


Index("uq_team_members_email_lower", func.lower(Member.email), unique=True)
