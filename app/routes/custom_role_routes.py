from fastapi import APIRouter, Depends, status

from app.dependencies import get_custom_role_service, get_member_context, require_permission
from app.models.permission import PermissionId
from app.services.custom_role_service import CustomRoleService
from app.services.member_context import MemberContext
from app.schemas.custom_role_schemas import (
    CustomRoleAssign,
    CustomRoleCreate,
    CustomRoleResponse,
    CustomRoleUpdate,
)

router = APIRouter()

modify_settings = require_permission(PermissionId.ADMINISTRATION_MODIFY_SETTINGS)


@router.get("", response_model=list[CustomRoleResponse])
async def list_custom_roles(
    association_id: int,
    context: MemberContext = Depends(get_member_context),
    service: CustomRoleService = Depends(get_custom_role_service),
):
    """Org-chart titles of the association. Available to all members."""
    return service.list_custom_roles(association_id)


@router.post("", response_model=CustomRoleResponse, status_code=status.HTTP_201_CREATED)
async def create_custom_role(
    association_id: int,
    data: CustomRoleCreate,
    context: MemberContext = Depends(modify_settings),
    service: CustomRoleService = Depends(get_custom_role_service),
):
    """
    Create an org-chart title.

    - **Requires administration.modify_settings**
    - Titles carry no permissions
    """
    return service.create_custom_role(association_id, data)


@router.get("/{custom_role_id}", response_model=CustomRoleResponse)
async def get_custom_role(
    association_id: int,
    custom_role_id: int,
    context: MemberContext = Depends(get_member_context),
    service: CustomRoleService = Depends(get_custom_role_service),
):
    return service.get_custom_role(association_id, custom_role_id)


@router.patch("/{custom_role_id}", response_model=CustomRoleResponse)
async def update_custom_role(
    association_id: int,
    custom_role_id: int,
    data: CustomRoleUpdate,
    context: MemberContext = Depends(modify_settings),
    service: CustomRoleService = Depends(get_custom_role_service),
):
    """
    Update an org-chart title.

    - **Requires administration.modify_settings**
    """
    return service.update_custom_role(association_id, custom_role_id, data)


@router.put("/{custom_role_id}/assign", response_model=CustomRoleResponse)
async def assign_custom_role(
    association_id: int,
    custom_role_id: int,
    data: CustomRoleAssign,
    context: MemberContext = Depends(modify_settings),
    service: CustomRoleService = Depends(get_custom_role_service),
):
    """
    Assign the title to a member, or unassign it with `member_id: null`.

    - **Requires administration.modify_settings**
    """
    return service.assign_custom_role(association_id, custom_role_id, data.member_id)


@router.delete("/{custom_role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_custom_role(
    association_id: int,
    custom_role_id: int,
    context: MemberContext = Depends(modify_settings),
    service: CustomRoleService = Depends(get_custom_role_service),
):
    """
    Delete an org-chart title.

    - **Requires administration.modify_settings**
    """
    service.delete_custom_role(association_id, custom_role_id)
