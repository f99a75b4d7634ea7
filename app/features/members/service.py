"""
Membership manager: invitations, role reassignment, removal and acceptance.

Privilege decisions come from app.features.permissions.guard; this module
only enforces the membership invariants (unique email, no self-removal)
and the member lifecycle pending -> active -> removed.
"""
from typing import List, Optional
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import utcnow
from app.core.database.transaction import atomic
from app.core.exceptions import (
    DuplicateEmailError,
    NotAuthorizedError,
    NotFoundError,
    PrivilegeEscalationError,
    SelfRemovalError,
    ValidationError,
)
from app.features.members.models import Member, MemberStatus
from app.features.permissions.dependencies import CallerContext, add_audit_log, is_bootstrap
from app.features.permissions.guard import can_assign_role
from app.features.permissions.models import Role
from app.features.permissions.service import get_role
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


def _duplicate_email(error: IntegrityError) -> Optional[DuplicateEmailError]:
    """Map a violation of the case-insensitive email index."""
    if "email" in str(error.orig).lower():
        return DuplicateEmailError("A team member with this email already exists")
    return None


def _require_assignable(actor: CallerContext, role: Role) -> None:
    if not can_assign_role(actor.privilege_level, role.privilege_level, actor.mode):
        log.info(
            "User %s (privilege %s) refused role %s (privilege %s)",
            actor.user_id, actor.privilege_level, role.id, role.privilege_level,
        )
        raise PrivilegeEscalationError("Cannot assign a role with higher privileges than your own")


# ============================================================================
# Reads
# ============================================================================

async def list_members(db: AsyncSession) -> List[Member]:
    """Members with their roles, newest first."""
    result = await db.execute(
        select(Member)
        .order_by(Member.created_at.desc(), Member.id.desc())
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_member(db: AsyncSession, member_id: str) -> Member:
    result = await db.execute(
        select(Member).where(Member.id == member_id).execution_options(populate_existing=True)
    )
    member = result.scalars().first()
    if member is None:
        raise NotFoundError("Member not found")
    return member


async def find_member_by_email(db: AsyncSession, email: str) -> Optional[Member]:
    """Case-insensitive lookup across pending and active members."""
    result = await db.execute(
        select(Member).where(func.lower(Member.email) == email.strip().lower())
    )
    return result.scalars().first()


# ============================================================================
# Mutations
# ============================================================================

async def invite_member(
    db: AsyncSession,
    actor: CallerContext,
    email: str,
    role_id: str,
    name: Optional[str] = None,
) -> Member:
    """
    Create a pending member holding ``role_id``.

    The escalation check is skipped only while the team has no members,
    so the very first invite may hand out the top role.
    """
    async with atomic(db, on_integrity_error=_duplicate_email):
        if not email or not email.strip():
            raise ValidationError("Email is required")
        email = email.strip()

        role = await get_role(db, role_id, for_update=True)
        if not await is_bootstrap(db):
            _require_assignable(actor, role)

        if await find_member_by_email(db, email) is not None:
            raise DuplicateEmailError("A team member with this email already exists")

        member = Member(
            email=email,
            name=name or None,
            role_id=role.id,
            status=MemberStatus.PENDING,
            invited_by=actor.user_id,
            invited_at=utcnow(),
        )
        db.add(member)
        await db.flush()
        add_audit_log(
            db, actor, "invite", "member", member.id,
            details={"email": email, "role_id": role.id},
        )
        member_id = member.id

    log.info("Invitation recorded for %s with role %s", email, role_id)
    return await get_member(db, member_id)


async def update_member_role(
    db: AsyncSession,
    actor: CallerContext,
    member_id: str,
    role_id: str,
) -> Member:
    """Move a member onto another role; there is no bootstrap bypass here."""
    async with atomic(db):
        member = await get_member(db, member_id)
        role = await get_role(db, role_id, for_update=True)
        _require_assignable(actor, role)

        previous_role_id = member.role_id
        member.role_id = role.id
        add_audit_log(
            db, actor, "assign_role", "member", member_id,
            details={"from_role_id": previous_role_id, "to_role_id": role.id},
        )

    log.info("Member %s moved to role %s by %s", member_id, role_id, actor.user_id)
    return await get_member(db, member_id)


async def remove_member(db: AsyncSession, actor: CallerContext, member_id: str) -> None:
    """Delete a member. Callers can never remove their own membership."""
    async with atomic(db):
        member = await get_member(db, member_id)
        if member.user_id is not None and member.user_id == actor.user_id:
            raise SelfRemovalError("You cannot remove yourself")

        email = member.email
        await db.delete(member)
        add_audit_log(db, actor, "remove", "member", member_id, details={"email": email})

    log.info("%s removed from team by %s", email, actor.user_id)


async def resend_invite(db: AsyncSession, actor: CallerContext, member_id: str) -> Member:
    """
    Refresh ``invited_at`` on a pending invitation.

    Safe to repeat; mail delivery is the notification channel's job.
    """
    async with atomic(db):
        member = await get_member(db, member_id)
        if member.status != MemberStatus.PENDING:
            raise ValidationError("Only pending invitations can be resent")

        member.invited_at = utcnow()
        add_audit_log(db, actor, "resend_invite", "member", member_id, details={"email": member.email})

    log.info("Invitation resent to %s", member.email)
    return await get_member(db, member_id)


async def accept_invite(db: AsyncSession, user: User) -> Member:
    """
    Bind the pending invitation for ``user``'s email to the user and
    activate it.
    """
    async with atomic(db):
        existing = await db.execute(select(Member).where(Member.user_id == user.id))
        if existing.scalars().first() is not None:
            raise ValidationError("You already belong to this team")

        member = await find_member_by_email(db, user.email)
        if member is None or member.status != MemberStatus.PENDING:
            raise NotFoundError(f"No pending invitation for {user.email}")

        now = utcnow()
        member.user_id = user.id
        member.status = MemberStatus.ACTIVE
        member.activated_at = now
        member.last_active_at = now
        if not member.name:
            member.name = user.name
        actor = CallerContext(user_id=user.id, role=member.role, is_bootstrap=False)
        add_audit_log(db, actor, "accept_invite", "member", member.id, details={"email": member.email})
        member_id = member.id

    log.info("%s accepted their invitation", user.email)
    return await get_member(db, member_id)


async def bootstrap_owner(db: AsyncSession, user: User) -> Member:
    """
    Make ``user`` the first, active member holding the top system role.

    Once anyone is on the team this only returns the caller's own
    membership (NotAuthorized if they have none).
    """
    async with atomic(db, on_integrity_error=_duplicate_email):
        if not await is_bootstrap(db):
            result = await db.execute(select(Member).where(Member.user_id == user.id))
            member = result.scalars().first()
            if member is None:
                raise NotAuthorizedError("The team already has members; ask an admin for an invitation")
            return member

        result = await db.execute(
            select(Role)
            .where(Role.is_system_role.is_(True))
            .order_by(Role.privilege_level.desc())
            .limit(1)
        )
        owner_role = result.scalars().first()
        if owner_role is None:
            raise NotFoundError("No system role is available to bootstrap the team")

        now = utcnow()
        member = Member(
            email=user.email,
            name=user.name,
            role_id=owner_role.id,
            status=MemberStatus.ACTIVE,
            invited_by=user.id,
            invited_at=now,
            user_id=user.id,
            activated_at=now,
            last_active_at=now,
        )
        db.add(member)
        await db.flush()
        actor = CallerContext(user_id=user.id, role=owner_role, is_bootstrap=True)
        add_audit_log(db, actor, "bootstrap_owner", "member", member.id, details={"role_id": owner_role.id})
        member_id = member.id

    log.info("%s bootstrapped the team as %s", user.email, owner_role.name)
    return await get_member(db, member_id)
