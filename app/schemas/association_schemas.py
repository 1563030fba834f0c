from pydantic import BaseModel, Field


class AssociationCreate(BaseModel):
    """
    Schema for creating an association.

    The caller becomes the admin. `role_template_ids` seeds the role
    registry from the suggested templates.
    """

    name: str = Field(..., min_length=1, max_length=200)
    role_template_ids: list[str] = Field(default_factory=list)


class AssociationResponse(BaseModel):
    id: int
    name: str
    admin_member_id: int
    roles_version: int
    members_count: int
