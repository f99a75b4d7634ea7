"""
Team access API routes: module catalog, roles, summaries and audit trail.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.models import AuditLog
from app.features.permissions.schemas import (
    AccessContextResponse,
    AuditLogListResponse,
    AuditLogResponse,
    ModuleResponse,
    PermissionSummaryRequest,
    PermissionSummaryResponse,
    RoleCreate,
    RoleDetail,
    RoleDuplicate,
    RoleResponse,
    RoleUpdate,
)
from app.features.permissions.dependencies import (
    CallerContext,
    get_caller,
    require_role_manager,
)
from app.features.permissions import service
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Module Routes
# ============================================================================

@router.get("/modules", response_model=List[ModuleResponse])
async def list_modules(
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[CallerContext, Depends(get_caller)],
):
    """List protected modules in display order."""
    return await service.list_modules(db)


@router.get("/modules/{key}", response_model=ModuleResponse)
async def get_module(
    key: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[CallerContext, Depends(get_caller)],
):
    return await service.get_module_by_key(db, key)


# ============================================================================
# Role Routes
# ============================================================================

@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[CallerContext, Depends(get_caller)],
):
    """List roles with their permission matrices, most privileged first."""
    return await service.list_roles(db)


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[CallerContext, Depends(require_role_manager)],
):
    """Create a custom role below the caller's own privilege."""
    return await service.create_role(db, caller, role.name, role.description, role.permissions)


@router.get("/roles/{role_id}", response_model=RoleDetail)
async def get_role(
    role_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[CallerContext, Depends(get_caller)],
):
    """Get a role with its member count and capability summary."""
    role = await service.get_role(db, role_id)
    detail = RoleDetail.model_validate(role)
    detail.member_count = await service.get_member_count_for_role(db, role_id)
    detail.summary = await service.get_permission_summary(db, detail.permissions)
    return detail


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    role_update: RoleUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[CallerContext, Depends(require_role_manager)],
):
    """Update name, description and the full permission matrix of a custom role."""
    return await service.update_role(
        db, caller, role_id, role_update.name, role_update.description, role_update.permissions
    )


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[CallerContext, Depends(require_role_manager)],
):
    """Delete a custom role that no member holds."""
    await service.delete_role(db, caller, role_id)
    return None


@router.post("/roles/{role_id}/duplicate", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def duplicate_role(
    role_id: str,
    body: RoleDuplicate,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[CallerContext, Depends(require_role_manager)],
):
    """Copy a role's permission matrix into a new custom role."""
    return await service.duplicate_role(db, caller, role_id, body.name)


# ============================================================================
# Summary & Caller Routes
# ============================================================================

@router.post("/summary", response_model=PermissionSummaryResponse)
async def summarize_permissions(
    body: PermissionSummaryRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[CallerContext, Depends(get_caller)],
):
    """Describe a permission matrix in one line."""
    return PermissionSummaryResponse(summary=await service.get_permission_summary(db, body.permissions))


@router.get("/me", response_model=AccessContextResponse)
async def get_access_context(
    caller: Annotated[CallerContext, Depends(get_caller)],
):
    """What the current caller may do on this team."""
    return AccessContextResponse(
        user_id=caller.user_id,
        role=RoleResponse.model_validate(caller.role) if caller.role is not None else None,
        is_bootstrap=caller.is_bootstrap,
        can_manage_roles=caller.can_manage_roles,
        can_invite_users=caller.can_invite_users,
        authorization_mode=caller.mode,
    )


# ============================================================================
# Audit Log Routes
# ============================================================================

@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    db: Annotated[AsyncSession, Depends(get_db)],
    caller: Annotated[CallerContext, Depends(require_role_manager)],
    skip: int = 0,
    limit: int = 50,
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
):
    """List role and member audit entries, newest first."""
    stmt = select(AuditLog)

    if user_id:
        stmt = stmt.where(AuditLog.user_id == user_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if resource_type:
        stmt = stmt.where(AuditLog.resource_type == resource_type)

    count_stmt = select(func.count()).select_from(stmt.subquery())
    total = (await db.execute(count_stmt)).scalar() or 0

    stmt = stmt.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    logs = result.scalars().all()

    pages = (total + limit - 1) // limit if limit > 0 else 0
    page = (skip // limit) + 1 if limit > 0 else 1

    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(entry) for entry in logs],
        total=total,
        page=page,
        page_size=limit,
        pages=pages
    )
