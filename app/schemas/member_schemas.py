from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional

from app.models.member import MemberStatus
from app.models.permission import PermissionCategory
from app.schemas.role_schemas import RoleResponse


class CustomPermissionsResponse(BaseModel):
    model_config = {"from_attributes": True}

    granted: list[str]
    revoked: list[str]


class MemberResponse(BaseModel):
    """Member with roles and permission overrides"""

    model_config = {"from_attributes": True}

    id: int
    user_id: int
    association_id: int
    section_id: Optional[int]
    is_admin: bool
    assigned_roles: list[str]
    custom_permissions: CustomPermissionsResponse
    member_type: str
    status: MemberStatus
    joined_at: datetime
    created_at: datetime
    updated_at: datetime


class AssignRolesRequest(BaseModel):
    """Full replacement of a member's roles; omitted roles are removed"""

    role_ids: list[str] = Field(default_factory=list)


class PermissionOverrideRequest(BaseModel):
    permission: str = Field(..., min_length=1)


class RoleAssignmentResponse(BaseModel):
    member: MemberResponse
    added: list[str]
    removed: list[str]
    warnings: list[str]


class MemberRolesResponse(BaseModel):
    member: MemberResponse
    assigned_roles: list[RoleResponse]
    custom_permissions: CustomPermissionsResponse
    effective_permissions: list[str]


class EffectivePermissionsResponse(BaseModel):
    member_id: int
    is_admin: bool
    permissions: list[str]
    by_category: dict[PermissionCategory, list[str]]


class HasPermissionResponse(BaseModel):
    member_id: int
    permission: str
    granted: bool


class TransferAdminRequest(BaseModel):
    new_admin_member_id: int = Field(..., gt=0)
    reason: Optional[str] = Field(None, max_length=500)


class TransferAdminResponse(BaseModel):
    message: str
    previous_admin_member_id: int
    new_admin_member_id: int


class MandatoryRoleStatusResponse(BaseModel):
    role_id: str
    role_name: str
    holders_count: int


class BureauCompletenessResponse(BaseModel):
    is_complete: bool
    filled: int
    total: int
    roles: list[MandatoryRoleStatusResponse]


class MemberCreate(BaseModel):
    """Add a user to the association, without roles"""

    user_id: int = Field(..., gt=0)
    member_type: str = Field("membre_actif", min_length=1, max_length=50)
    status: MemberStatus = MemberStatus.ACTIVE
    section_id: Optional[int] = None


class MemberStatusUpdate(BaseModel):
    status: MemberStatus


class MemberStatusChangeResponse(BaseModel):
    member: MemberResponse
    warnings: list[str]
