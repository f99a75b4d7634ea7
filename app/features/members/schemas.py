"""
Pydantic schemas for team member requests and responses.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.features.members.models import MemberStatus
from app.features.permissions.schemas import RoleResponse


class MemberInvite(BaseModel):
    """Schema for inviting a new team member."""
    email: EmailStr
    name: Optional[str] = Field(None, max_length=255)
    role_id: str = Field(..., description="Role to hold once the invite is accepted")


class MemberRoleUpdate(BaseModel):
    role_id: str = Field(..., description="New role ID")


class MemberResponse(BaseModel):
    """Schema for team member response, with the embedded role."""
    id: str
    email: str
    name: Optional[str] = None
    role_id: str
    status: MemberStatus
    invited_by: Optional[str] = None
    invited_at: datetime
    user_id: Optional[str] = None
    activated_at: Optional[datetime] = None
    last_active_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    role: Optional[RoleResponse] = None

    model_config = ConfigDict(from_attributes=True)
