"""
Pydantic schemas for modules, roles, permission summaries and audit logs.
"""
from datetime import datetime
from typing import Dict, Any, List, Optional
from pydantic import AliasChoices, BaseModel, Field, ConfigDict, field_validator

from app.core.config import AuthorizationMode
from app.features.permissions.models import PermissionLevel


# ============================================================================
# Module Schemas
# ============================================================================

class ModuleResponse(BaseModel):
    """Schema for module response."""
    id: str
    key: str
    name: str
    description: Optional[str] = None
    available_permissions: Optional[List[PermissionLevel]] = None
    display_order: int

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Role Schemas
# ============================================================================

class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=100, description="Role name")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        """Strip the name and reject whitespace-only values."""
        v = v.strip()
        if not v:
            raise ValueError('Role name is required')
        return v


class RoleCreate(RoleBase):
    """
    Schema for creating a role.

    The privilege level is not accepted; it is derived from the creator.
    """
    permissions: Dict[str, PermissionLevel] = Field(
        default_factory=dict,
        description="Module key -> permission level; unknown module keys are ignored",
    )


class RoleUpdate(RoleBase):
    """Schema for updating a role. ``permissions`` replaces the whole matrix."""
    permissions: Dict[str, PermissionLevel] = Field(default_factory=dict)


class RoleDuplicate(BaseModel):
    """Schema for duplicating a role under a new name."""
    name: str = Field(..., min_length=1, max_length=100)


class RoleResponse(BaseModel):
    """Schema for role response, with its permission matrix."""
    id: str
    name: str
    description: Optional[str]
    is_system_role: bool
    privilege_level: int
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime
    permissions: Dict[str, PermissionLevel] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("permission_matrix", "permissions"),
    )

    model_config = ConfigDict(from_attributes=True)


class RoleDetail(RoleResponse):
    """Role with how many members hold it and its capability summary."""
    member_count: int = 0
    summary: str = ""


# ============================================================================
# Summary Schemas
# ============================================================================

class PermissionSummaryRequest(BaseModel):
    permissions: Dict[str, PermissionLevel] = Field(default_factory=dict)


class PermissionSummaryResponse(BaseModel):
    summary: str


# ============================================================================
# Caller Context
# ============================================================================

class AccessContextResponse(BaseModel):
    """What the current caller may do."""
    user_id: Optional[str]
    role: Optional[RoleResponse] = None
    is_bootstrap: bool
    can_manage_roles: bool
    can_invite_users: bool
    authorization_mode: AuthorizationMode


# ============================================================================
# Audit Log Schemas
# ============================================================================

class AuditLogResponse(BaseModel):
    """Schema for audit log response."""
    id: str
    user_id: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[str]
    details: Optional[Dict[str, Any]]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    """Schema for paginated audit log list."""
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    pages: int
