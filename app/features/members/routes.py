"""
Team member API routes: invitations, role changes, removal and acceptance.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.limiter import limiter
from app.features.members.schemas import MemberInvite, MemberResponse, MemberRoleUpdate
from app.features.members import service
from app.features.permissions.dependencies import (
    CallerContext,
    get_caller,
    require_inviter,
    require_role_manager,
)
from app.features.users.dependencies import get_current_user
from app.features.users.models import User


router = APIRouter()


@router.get("/", response_model=List[MemberResponse])
async def list_members(
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[CallerContext, Depends(get_caller)],
):
    """List team members with their roles, newest first."""
    return await service.list_members(db)


@router.post("/", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(config.INVITE_RATE_LIMIT)
async def invite_member(
    request: Request,
    body: MemberInvite,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[CallerContext, Depends(require_inviter)],
):
    """Invite someone onto the team with a role no stronger than the caller's."""
    return await service.invite_member(db, caller, body.email, body.role_id, body.name)


@router.post("/accept", response_model=MemberResponse)
async def accept_invite(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
):
    """Accept the pending invitation addressed to the caller's email."""
    return await service.accept_invite(db, user)


@router.post("/bootstrap", response_model=MemberResponse)
async def bootstrap_owner(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
):
    """Make the first caller on an empty team its owner."""
    return await service.bootstrap_owner(db, user)


@router.patch("/{member_id}/role", response_model=MemberResponse)
async def update_member_role(
    member_id: str,
    body: MemberRoleUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[CallerContext, Depends(require_role_manager)],
):
    return await service.update_member_role(db, caller, member_id, body.role_id)


@router.delete("/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    member_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[CallerContext, Depends(require_role_manager)],
):
    """Remove a member (never yourself)."""
    await service.remove_member(db, caller, member_id)
    return None


@router.post("/{member_id}/resend", response_model=MemberResponse)
@limiter.limit(config.INVITE_RATE_LIMIT)
async def resend_invite(
    request: Request,
    member_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[CallerContext, Depends(require_inviter)],
):
    """Resend a pending invitation."""
    return await service.resend_invite(db, caller, member_id)
