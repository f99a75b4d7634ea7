"""Tests for the membership manager and bootstrap policy."""
import pytest
from sqlalchemy import select

from app.core.config import AuthorizationMode
from app.core.exceptions import (
    DuplicateEmailError,
    NotAuthorizedError,
    NotFoundError,
    PrivilegeEscalationError,
    SelfRemovalError,
    ValidationError,
)
from app.features.members import service
from app.features.members.models import Member, MemberStatus
from app.features.permissions.dependencies import is_bootstrap

from conftest import caller_for, make_member, make_user


# ============================================================================
# Invitations
# ============================================================================

@pytest.mark.asyncio
async def test_first_invite_may_hand_out_top_role(db, roles):
    founder = await make_user(db, "founder@co.com")
    actor = await caller_for(db, founder)
    assert actor.is_bootstrap
    assert actor.role is None

    member = await service.invite_member(db, actor, "owner@co.com", roles["Owner"].id)
    assert member.status == MemberStatus.PENDING
    assert member.role.name == "Owner"
    assert member.invited_by == founder.id
    assert member.invited_at is not None


@pytest.mark.asyncio
async def test_bootstrap_closes_after_first_invite(db, roles):
    founder = await make_user(db, "founder@co.com")
    actor = await caller_for(db, founder)
    await service.invite_member(db, actor, "owner@co.com", roles["Owner"].id)

    assert await is_bootstrap(db) is False
    actor = await caller_for(db, founder)
    assert actor.is_bootstrap is False
    with pytest.raises(PrivilegeEscalationError):
        await service.invite_member(db, actor, "second@co.com", roles["Owner"].id)


@pytest.mark.asyncio
async def test_admin_cannot_invite_into_owner(db, roles, admin):
    actor = await caller_for(db, admin)
    with pytest.raises(PrivilegeEscalationError):
        await service.invite_member(db, actor, "boss@co.com", roles["Owner"].id)

    member = await service.invite_member(db, actor, "peer@co.com", roles["Admin"].id, name="Peer")
    assert member.role.privilege_level <= actor.privilege_level
    assert member.name == "Peer"


@pytest.mark.asyncio
async def test_allow_all_skips_escalation_check(db, roles, owner):
    stranger = await make_user(db, "stranger@co.com")
    actor = await caller_for(db, stranger, AuthorizationMode.ALLOW_ALL)
    member = await service.invite_member(db, actor, "boss@co.com", roles["Owner"].id)
    assert member.role.name == "Owner"

    with pytest.raises(DuplicateEmailError):
        await service.invite_member(db, actor, "BOSS@co.com", roles["Viewer"].id)


@pytest.mark.asyncio
async def test_duplicate_email_ignores_case(db, roles, owner):
    actor = await caller_for(db, owner)
    await service.invite_member(db, actor, "jane@co.com", roles["Viewer"].id)
    with pytest.raises(DuplicateEmailError):
        await service.invite_member(db, actor, "Jane@Co.com", roles["Viewer"].id)

    result = await db.execute(select(Member).where(Member.email.ilike("jane@co.com")))
    assert len(result.scalars().all()) == 1


@pytest.mark.asyncio
async def test_invite_unknown_role(db, roles, owner):
    actor = await caller_for(db, owner)
    with pytest.raises(NotFoundError):
        await service.invite_member(db, actor, "x@co.com", "missing")


@pytest.mark.asyncio
async def test_invite_requires_email(db, roles, owner):
    actor = await caller_for(db, owner)
    with pytest.raises(ValidationError):
        await service.invite_member(db, actor, "  ", roles["Viewer"].id)


# ============================================================================
# Role changes and removal
# ============================================================================

@pytest.mark.asyncio
async def test_update_member_role_checks_privilege(db, roles, admin):
    actor = await caller_for(db, admin)
    target = await make_member(db, "worker@co.com", roles["Viewer"])

    with pytest.raises(PrivilegeEscalationError):
        await service.update_member_role(db, actor, target.id, roles["Owner"].id)

    moved = await service.update_member_role(db, actor, target.id, roles["Payroll Specialist"].id)
    assert moved.role.name == "Payroll Specialist"


@pytest.mark.asyncio
async def test_update_member_role_unknown_member(db, roles, owner):
    actor = await caller_for(db, owner)
    with pytest.raises(NotFoundError):
        await service.update_member_role(db, actor, "missing", roles["Viewer"].id)


@pytest.mark.asyncio
async def test_owner_cannot_remove_self(db, roles, owner):
    actor = await caller_for(db, owner)
    own = await db.execute(select(Member).where(Member.user_id == owner.id))
    with pytest.raises(SelfRemovalError):
        await service.remove_member(db, actor, own.scalars().one().id)


@pytest.mark.asyncio
async def test_remove_other_member(db, roles, owner):
    actor = await caller_for(db, owner)
    pending = await make_member(db, "gone@co.com", roles["Viewer"], status=MemberStatus.PENDING)
    await service.remove_member(db, actor, pending.id)
    with pytest.raises(NotFoundError):
        await service.get_member(db, pending.id)
    with pytest.raises(NotFoundError):
        await service.remove_member(db, actor, pending.id)


# ============================================================================
# Invitation lifecycle
# ============================================================================

@pytest.mark.asyncio
async def test_resend_invite_is_repeatable(db, roles, owner):
    actor = await caller_for(db, owner)
    invited = await service.invite_member(db, actor, "later@co.com", roles["Viewer"].id)
    originally = invited.invited_at

    first = (await service.resend_invite(db, actor, invited.id)).invited_at
    second = await service.resend_invite(db, actor, invited.id)
    assert second.status == MemberStatus.PENDING
    assert second.invited_at >= first >= originally


@pytest.mark.asyncio
async def test_resend_invite_rejects_active_member(db, roles, owner, admin):
    actor = await caller_for(db, owner)
    result = await db.execute(select(Member).where(Member.user_id == admin.id))
    with pytest.raises(ValidationError):
        await service.resend_invite(db, actor, result.scalars().one().id)
    with pytest.raises(NotFoundError):
        await service.resend_invite(db, actor, "missing")


@pytest.mark.asyncio
async def test_accept_invite_activates_membership(db, roles, owner):
    actor = await caller_for(db, owner)
    await service.invite_member(db, actor, "Newbie@Co.com", roles["Contract Specialist"].id)
    newbie = await make_user(db, "newbie@co.com", name="New Bie")

    assert (await caller_for(db, newbie)).role is None
    member = await service.accept_invite(db, newbie)
    assert member.status == MemberStatus.ACTIVE
    assert member.user_id == newbie.id
    assert member.activated_at is not None
    assert member.name == "New Bie"

    resolved = await caller_for(db, newbie)
    assert resolved.role.name == "Contract Specialist"

    with pytest.raises(ValidationError):
        await service.accept_invite(db, newbie)


@pytest.mark.asyncio
async def test_accept_without_invite(db, roles, owner):
    nobody = await make_user(db, "nobody@co.com")
    with pytest.raises(NotFoundError):
        await service.accept_invite(db, nobody)


@pytest.mark.asyncio
async def test_bootstrap_owner(db, roles):
    founder = await make_user(db, "founder@co.com")
    member = await service.bootstrap_owner(db, founder)
    assert member.status == MemberStatus.ACTIVE
    assert member.role.name == "Owner"
    assert member.user_id == founder.id

    again = await service.bootstrap_owner(db, founder)
    assert again.id == member.id

    latecomer = await make_user(db, "late@co.com")
    with pytest.raises(NotAuthorizedError):
        await service.bootstrap_owner(db, latecomer)

    actor = await caller_for(db, founder)
    assert actor.can_manage_roles and actor.can_invite_users


@pytest.mark.asyncio
async def test_list_members_embeds_roles(db, roles, owner, admin):
    listed = await service.list_members(db)
    assert {m.email for m in listed} == {"owner@co.com", "admin@co.com"}
    assert {m.role.name for m in listed} == {"Owner", "Admin"}


@pytest.mark.asyncio
async def test_rejected_invite_leaves_entities_readable(db, roles, admin):
    actor = await caller_for(db, admin)
    with pytest.raises(PrivilegeEscalationError):
        await service.invite_member(db, actor, "boss@co.com", roles["Owner"].id)
    assert roles["Owner"].name == "Owner"
    assert admin.email == "admin@co.com"


@pytest.mark.asyncio
async def test_list_members_newest_first(db, roles, owner):
    actor = await caller_for(db, owner)
    for email in ("a@co.com", "b@co.com", "c@co.com"):
        await service.invite_member(db, actor, email, roles["Viewer"].id)

    listed = await service.list_members(db)
    assert [m.email for m in listed] == ["c@co.com", "b@co.com", "a@co.com", "owner@co.com"]
