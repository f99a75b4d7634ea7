"""
Caller resolution, bootstrap policy and route gates for team access.

Implements:
- Resolved caller context (who is calling, with which role)
- Bootstrap detection, re-evaluated on every call
- FastAPI dependencies gating role management and invitations
- Audit logging helper
"""
from dataclasses import dataclass
from typing import Annotated, Any, Dict, Optional
from fastapi import Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.config import AuthorizationMode
from app.core.database.engine import get_db
from app.core.exceptions import NotAuthorizedError
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.members.models import Member, MemberStatus
from app.features.permissions.models import AuditLog, Role
from app.features.permissions import guard
from app.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class CallerContext:
    """
    The acting identity for one operation.

    ``role`` comes from the caller's active membership and is None when
    they have none. Never cached across operations.
    """
    user_id: Optional[str]
    role: Optional[Role]
    is_bootstrap: bool
    mode: AuthorizationMode = AuthorizationMode.ENFORCED

    @property
    def privilege_level(self) -> int:
        return self.role.privilege_level if self.role is not None else 0

    @property
    def can_manage_roles(self) -> bool:
        return guard.can_manage_roles(self.role, self.is_bootstrap, self.mode)

    @property
    def can_invite_users(self) -> bool:
        return guard.can_invite_users(self.role, self.is_bootstrap, self.mode)


# ============================================================================
# Bootstrap Policy
# ============================================================================

async def count_members(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(Member))
    return result.scalar() or 0


async def is_bootstrap(db: AsyncSession) -> bool:
    """True while the team has no members at all, pending or active."""
    return await count_members(db) == 0


# ============================================================================
# Caller Resolution
# ============================================================================

async def resolve_caller(
    db: AsyncSession,
    user_id: Optional[str],
    mode: Optional[AuthorizationMode] = None,
) -> CallerContext:
    """
    Build the caller context for ``user_id`` from a fresh read of the team.

    Only an active membership grants a role; pending invites do not.
    """
    role: Optional[Role] = None
    if user_id is not None:
        result = await db.execute(
            select(Member).where(
                Member.user_id == user_id,
                Member.status == MemberStatus.ACTIVE,
            )
        )
        member = result.scalars().first()
        if member is not None:
            role = member.role

    return CallerContext(
        user_id=user_id,
        role=role,
        is_bootstrap=await is_bootstrap(db),
        mode=mode or config.AUTHORIZATION_MODE,
    )


# ============================================================================
# FastAPI Dependencies
# ============================================================================

async def get_caller(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
) -> CallerContext:
    """Resolve the authenticated user into a caller context."""
    return await resolve_caller(db, user.id)


async def require_role_manager(
    caller: Annotated[CallerContext, Depends(get_caller)]
) -> CallerContext:
    """
    Require permission to manage roles and members.

    Usage:
        @router.delete("/roles/{role_id}")
        async def remove(role_id: str, caller: CallerContext = Depends(require_role_manager)):
            ...
    """
    if not caller.can_manage_roles:
        log.info("User %s denied role management", caller.user_id)
        raise NotAuthorizedError("You do not have permission to manage roles")
    return caller


async def require_inviter(
    caller: Annotated[CallerContext, Depends(get_caller)]
) -> CallerContext:
    """Require permission to invite team members."""
    if not caller.can_invite_users:
        log.info("User %s denied invitations", caller.user_id)
        raise NotAuthorizedError("You do not have permission to invite team members")
    return caller


# ============================================================================
# Audit Logging
# ============================================================================

def add_audit_log(
    db: AsyncSession,
    actor: CallerContext,
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Stage an audit entry in the current transaction.

    It is committed (or rolled back) together with the mutation it describes.
    """
    audit_log = AuditLog(
        user_id=actor.user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
    )
    db.add(audit_log)

    log.info(
        "Audit: user=%s action=%s resource=%s:%s", actor.user_id, action, resource_type, resource_id
    )
    return audit_log
