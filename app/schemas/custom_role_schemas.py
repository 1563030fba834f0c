from datetime import datetime
from pydantic import BaseModel
from typing import Optional


class CustomRoleCreate(BaseModel):
    """Schema for creating an org-chart title"""

    name: str
    description: str = ""
    assigned_to: Optional[int] = None


class CustomRoleUpdate(BaseModel):
    """Schema for updating an org-chart title; unset fields are kept"""

    name: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[int] = None


class CustomRoleAssign(BaseModel):
    """Assign the title to a member, or clear it with null"""

    member_id: Optional[int] = None


class CustomRoleResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    name: str
    description: str
    assigned_to: Optional[int]
    created_at: datetime
    updated_at: datetime
