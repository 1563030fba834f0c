from pydantic import BaseModel, Field
from typing import Optional

from app.models.permission import PermissionCategory
from app.models.role import RoleTemplateCategory


class RoleCreate(BaseModel):
    """
    Schema for creating a role.

    Name, color and permission ids are checked by the role validator rather
    than by field constraints, so that every problem is reported at once.
    """

    name: str
    description: str = ""
    permissions: list[str] = Field(default_factory=list)
    is_unique: bool = False
    is_mandatory: bool = False
    can_be_renamed: bool = True
    color: str = "#6B7280"
    icon: Optional[str] = None


class RoleUpdate(BaseModel):
    """Schema for updating a role; only fields that are set are changed"""

    name: Optional[str] = None
    description: Optional[str] = None
    permissions: Optional[list[str]] = None
    is_unique: Optional[bool] = None
    is_mandatory: Optional[bool] = None
    can_be_renamed: Optional[bool] = None
    color: Optional[str] = None
    icon: Optional[str] = None


class RoleFromTemplate(BaseModel):
    """Create a role from a suggested template, optionally renamed"""

    template_id: str = Field(..., min_length=1)
    name: Optional[str] = None


class RoleResponse(BaseModel):
    """Schema for role response"""

    model_config = {"from_attributes": True}

    id: str
    name: str
    description: str
    permissions: list[str]
    is_unique: bool
    is_mandatory: bool
    can_be_renamed: bool
    color: str
    icon: Optional[str]


class RoleWithUsageResponse(RoleResponse):
    members_count: int


class RoleListResponse(BaseModel):
    roles: list[RoleWithUsageResponse]
    version: int
    total: int


class RoleHolderResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    user_id: int
    member_type: str


class RoleDetailsResponse(BaseModel):
    role: RoleWithUsageResponse
    assigned_members: list[RoleHolderResponse]


class RoleDeleteResponse(BaseModel):
    message: str
    role_id: str
    detached_member_ids: list[int]
    version: int


class PermissionResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    name: str
    category: PermissionCategory
    description: str


class PermissionCatalogResponse(BaseModel):
    permissions: list[PermissionResponse]
    grouped: dict[PermissionCategory, list[PermissionResponse]]
    total: int


class RoleTemplateResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    name: str
    description: str
    suggested_permissions: list[str]
    category: RoleTemplateCategory
    icon: str
    color: str
