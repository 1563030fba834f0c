from typing import Optional

from fastapi import APIRouter, Depends, status

from app.dependencies import get_member_context, get_role_service, require_permission
from app.models.permission import PermissionId
from app.models.role import RoleUsage
from app.services.member_context import MemberContext
from app.services.role_service import RoleService
from app.schemas.role_schemas import (
    PermissionCatalogResponse,
    PermissionResponse,
    RoleCreate,
    RoleDeleteResponse,
    RoleDetailsResponse,
    RoleFromTemplate,
    RoleHolderResponse,
    RoleListResponse,
    RoleResponse,
    RoleTemplateResponse,
    RoleUpdate,
    RoleWithUsageResponse,
)

router = APIRouter()

manage_roles = require_permission(PermissionId.ADMINISTRATION_MANAGE_ROLES)


def _with_usage(usage: RoleUsage) -> RoleWithUsageResponse:
    role = RoleResponse.model_validate(usage.role)
    return RoleWithUsageResponse(**role.model_dump(), members_count=usage.members_count)


@router.get("/permissions", response_model=PermissionCatalogResponse)
async def list_permissions(
    association_id: int,
    context: MemberContext = Depends(get_member_context),
    service: RoleService = Depends(get_role_service),
):
    """
    Permission catalog of the association, flat and grouped by category.
    """
    grouped = service.list_permissions(association_id)
    permissions = [PermissionResponse.model_validate(p) for group in grouped.values() for p in group]
    return {
        "permissions": permissions,
        "grouped": {
            category: [PermissionResponse.model_validate(p) for p in group]
            for category, group in grouped.items()
        },
        "total": len(permissions),
    }


@router.get("/role-templates", response_model=list[RoleTemplateResponse])
async def list_role_templates(
    context: MemberContext = Depends(get_member_context),
    service: RoleService = Depends(get_role_service),
):
    """Suggested roles for quick creation."""
    return service.list_templates()


@router.get("/roles", response_model=RoleListResponse)
async def list_roles(
    association_id: int,
    context: MemberContext = Depends(get_member_context),
    service: RoleService = Depends(get_role_service),
):
    """
    List roles with the number of active members holding each.

    Available to all members. `version` is the token to send back as
    `expected_version` when editing roles.
    """
    roles = [_with_usage(usage) for usage in service.list_roles(association_id)]
    return {
        "roles": roles,
        "version": context.roles_configuration.version,
        "total": len(roles),
    }


@router.get("/roles/{role_id}", response_model=RoleDetailsResponse)
async def get_role_details(
    association_id: int,
    role_id: str,
    context: MemberContext = Depends(get_member_context),
    service: RoleService = Depends(get_role_service),
):
    """Role with the members holding it."""
    details = service.get_role_details(association_id, role_id)
    return {
        "role": _with_usage(details.usage),
        "assigned_members": [RoleHolderResponse.model_validate(m) for m in details.assigned_members],
    }


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    association_id: int,
    role_data: RoleCreate,
    expected_version: Optional[int] = None,
    context: MemberContext = Depends(manage_roles),
    service: RoleService = Depends(get_role_service),
):
    """
    Create a role.

    - **Requires administration.manage_roles**
    - Every validation problem is returned at once in `violations`
    """
    return service.create_role(association_id, role_data, expected_version=expected_version)


@router.post(
    "/roles/from-template", response_model=RoleResponse, status_code=status.HTTP_201_CREATED
)
async def create_role_from_template(
    association_id: int,
    template: RoleFromTemplate,
    context: MemberContext = Depends(manage_roles),
    service: RoleService = Depends(get_role_service),
):
    """
    Create a role from a suggested template.

    - **Requires administration.manage_roles**
    """
    return service.create_role_from_template(association_id, template.template_id, name=template.name)


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    association_id: int,
    role_id: str,
    role_data: RoleUpdate,
    expected_version: Optional[int] = None,
    context: MemberContext = Depends(manage_roles),
    service: RoleService = Depends(get_role_service),
):
    """
    Update a role.

    - **Requires administration.manage_roles**
    - Renaming is refused for roles that cannot be renamed
    """
    return service.update_role(association_id, role_id, role_data, expected_version=expected_version)


@router.delete("/roles/{role_id}", response_model=RoleDeleteResponse)
async def delete_role(
    association_id: int,
    role_id: str,
    expected_version: Optional[int] = None,
    context: MemberContext = Depends(manage_roles),
    service: RoleService = Depends(get_role_service),
):
    """
    Delete a role and detach it from every member holding it.

    - **Requires administration.manage_roles**
    - Mandatory roles with active holders cannot be deleted
    """
    deletion = service.delete_role(association_id, role_id, expected_version=expected_version)
    return {
        "message": "Role deleted successfully",
        "role_id": deletion.role_id,
        "detached_member_ids": deletion.detached_member_ids,
        "version": deletion.version,
    }
