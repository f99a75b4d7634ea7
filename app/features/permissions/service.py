"""
Module registry and role store.

Every function takes the request's AsyncSession. Mutations check their
invariants and write inside one transaction, then return a fresh read of
the entity they changed.
"""
from typing import Dict, List, Mapping, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.base import utcnow
from app.core.database.transaction import atomic
from app.core.exceptions import (
    NotAuthorizedError,
    NotFoundError,
    RoleInUseError,
    SystemRoleImmutableError,
    ValidationError,
)
from app.core.config import AuthorizationMode
from app.features.members.models import Member
from app.features.permissions.dependencies import CallerContext, add_audit_log
from app.features.permissions.guard import created_role_privilege
from app.features.permissions.models import Module, PermissionLevel, Role, RolePermission
from app.features.permissions.summary import summarize
from app.utils import get_logger


log = get_logger(__name__)

PermissionInput = Mapping[str, PermissionLevel | str]


# ============================================================================
# Module Registry
# ============================================================================

async def list_modules(db: AsyncSession) -> List[Module]:
    """All modules in display order."""
    result = await db.execute(select(Module).order_by(Module.display_order, Module.key))
    return list(result.scalars().all())


async def get_module_by_key(db: AsyncSession, key: str) -> Module:
    result = await db.execute(select(Module).where(Module.key == key))
    module = result.scalars().first()
    if module is None:
        raise NotFoundError(f"Module '{key}' not found")
    return module


# ============================================================================
# Role Reads
# ============================================================================

async def list_roles(db: AsyncSession) -> List[Role]:
    """Roles with their matrices, most privileged first."""
    result = await db.execute(
        select(Role)
        .order_by(Role.privilege_level.desc(), Role.name)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_role(db: AsyncSession, role_id: str, for_update: bool = False) -> Role:
    """Fetch a role or raise NotFoundError; ``for_update`` locks the row until commit."""
    stmt = select(Role).where(Role.id == role_id).execution_options(populate_existing=True)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    role = result.scalars().first()
    if role is None:
        raise NotFoundError("Role not found")
    return role


async def get_member_count_for_role(db: AsyncSession, role_id: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(Member).where(Member.role_id == role_id)
    )
    return result.scalar() or 0


async def get_permission_summary(db: AsyncSession, permissions: PermissionInput) -> str:
    """Summary of ``permissions`` using the current module catalog."""
    return summarize(_coerce_levels(permissions), await list_modules(db))


# ============================================================================
# Helpers
# ============================================================================

def _require_name(name: Optional[str]) -> str:
    if name is None or not name.strip():
        raise ValidationError("Role name is required")
    return name.strip()


def _coerce_levels(permissions: PermissionInput) -> Dict[str, PermissionLevel]:
    levels = {}
    for key, level in permissions.items():
        try:
            levels[key] = PermissionLevel(level)
        except ValueError:
            raise ValidationError(f"Unknown permission level {level!r} for module '{key}'")
    return levels


async def _build_matrix(db: AsyncSession, permissions: PermissionInput) -> List[RolePermission]:
    """Matrix rows for ``permissions``; keys missing from the catalog are dropped."""
    levels = _coerce_levels(permissions)
    modules_by_key = {module.key: module for module in await list_modules(db)}

    entries = []
    for key, level in levels.items():
        module = modules_by_key.get(key)
        if module is None:
            log.debug("Ignoring unknown module key %r in permission matrix", key)
            continue
        entries.append(RolePermission(module=module, module_id=module.id, permission_level=level))
    return entries


def _require_resolved_role(actor: CallerContext) -> None:
    if actor.mode is AuthorizationMode.ALLOW_ALL or actor.is_bootstrap:
        return
    if actor.role is None:
        raise NotAuthorizedError("Your team membership has no role; you cannot create roles")


# ============================================================================
# Role Mutations
# ============================================================================

async def create_role(
    db: AsyncSession,
    actor: CallerContext,
    name: str,
    description: Optional[str],
    permissions: PermissionInput,
) -> Role:
    """
    Create a custom role.

    The privilege level is derived from the actor (never supplied), so the
    new role is always weaker than its creator and at most the custom cap.
    """
    async with atomic(db):
        _require_resolved_role(actor)
        name = _require_name(name)

        role = Role(
            name=name,
            description=description,
            is_system_role=False,
            privilege_level=created_role_privilege(actor.privilege_level),
            created_by=actor.user_id,
            permissions=await _build_matrix(db, permissions),
        )
        db.add(role)
        await db.flush()

        add_audit_log(
            db, actor, "create", "role", role.id,
            details={"name": name, "privilege_level": role.privilege_level},
        )
        role_id = role.id

    log.info("Role %r created with privilege %s by %s", name, role.privilege_level, actor.user_id)
    return await get_role(db, role_id)


async def update_role(
    db: AsyncSession,
    actor: CallerContext,
    role_id: str,
    name: str,
    description: Optional[str],
    permissions: PermissionInput,
) -> Role:
    """
    Rename a custom role and replace its whole permission matrix.

    Modules left out of ``permissions`` end up with no entry (none).
    The privilege level is not editable.
    """
    async with atomic(db):
        role = await get_role(db, role_id, for_update=True)
        if role.is_system_role:
            raise SystemRoleImmutableError(f"System role '{role.name}' cannot be modified")

        role.name = _require_name(name)
        role.description = description

        entries = await _build_matrix(db, permissions)
        role.permissions.clear()
        # old rows must be gone before re-inserting the same (role, module) pairs
        await db.flush()
        role.permissions.extend(entries)
        # the matrix lives in role_permissions; touch the role row as well
        role.updated_at = utcnow()

        add_audit_log(
            db, actor, "update", "role", role_id,
            details={"name": role.name, "modules": sorted(e.module.key for e in entries)},
        )

    log.info("Role %s updated by %s", role_id, actor.user_id)
    return await get_role(db, role_id)


async def delete_role(db: AsyncSession, actor: CallerContext, role_id: str) -> None:
    """Delete a custom role nobody holds."""
    async with atomic(db):
        role = await get_role(db, role_id, for_update=True)
        if role.is_system_role:
            raise SystemRoleImmutableError(f"System role '{role.name}' cannot be deleted")

        assigned = await get_member_count_for_role(db, role_id)
        if assigned > 0:
            log.info("Refusing to delete role %s held by %d member(s)", role_id, assigned)
            raise RoleInUseError(assigned)

        role_name = role.name
        await db.delete(role)
        add_audit_log(db, actor, "delete", "role", role_id, details={"name": role_name})

    log.info("Role %r deleted by %s", role_name, actor.user_id)


async def duplicate_role(
    db: AsyncSession,
    actor: CallerContext,
    role_id: str,
    new_name: str,
) -> Role:
    """
    Create a new custom role with the source role's matrix.

    The privilege level is recomputed from the actor, not copied.
    """
    source = await get_role(db, role_id)
    return await create_role(
        db,
        actor,
        name=new_name,
        description=f"Copy of {source.name}",
        permissions=source.permission_matrix,
    )
