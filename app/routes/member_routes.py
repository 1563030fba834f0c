from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.core.exceptions import ForbiddenException
from app.dependencies import (
    get_admin_service,
    get_association_service,
    get_authorization_service,
    get_member_context,
    get_member_role_service,
    require_admin,
    require_permission,
)
from app.models.member import MemberStatus
from app.models.permission import PermissionId
from app.services.admin_service import AdminService
from app.services.association_service import AssociationService
from app.services.authorization_service import AuthorizationService
from app.services.member_context import MemberContext
from app.services.member_role_service import MemberRoleService, RoleAssignment
from app.schemas.member_schemas import (
    AssignRolesRequest,
    CustomPermissionsResponse,
    BureauCompletenessResponse,
    EffectivePermissionsResponse,
    HasPermissionResponse,
    MemberCreate,
    MemberResponse,
    MemberRolesResponse,
    MemberStatusChangeResponse,
    MemberStatusUpdate,
    PermissionOverrideRequest,
    RoleAssignmentResponse,
    TransferAdminRequest,
    TransferAdminResponse,
)
from app.schemas.role_schemas import RoleResponse

router = APIRouter()

manage_roles = require_permission(PermissionId.ADMINISTRATION_MANAGE_ROLES)
view_members = require_permission(PermissionId.MEMBRES_VIEW_LIST)
manage_members = require_permission(PermissionId.MEMBRES_MANAGE_MEMBERS)


def _ensure_self_or_manager(context: MemberContext, member_id: int) -> None:
    if context.member.id != member_id and not context.can_manage_roles():
        raise ForbiddenException("You can only view your own permissions")


def _assignment_response(assignment: RoleAssignment) -> dict:
    return {
        "member": MemberResponse.model_validate(assignment.member),
        "added": assignment.added,
        "removed": assignment.removed,
        "warnings": [warning.message for warning in assignment.warnings],
    }


@router.get("/members", response_model=list[MemberResponse])
async def list_members(
    association_id: int,
    member_status: Optional[MemberStatus] = Query(None, alias="status"),
    context: MemberContext = Depends(view_members),
    service: AssociationService = Depends(get_association_service),
):
    """
    List members of the association.

    - **Requires membres.view_list**
    - Optional `status` filter
    """
    return service.list_members(association_id, status=member_status)


@router.post("/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    association_id: int,
    request: MemberCreate,
    context: MemberContext = Depends(manage_members),
    service: AssociationService = Depends(get_association_service),
):
    """
    Add a user to the association.

    - **Requires membres.manage_members**
    - The new member has no roles and is never admin
    """
    return service.add_member(
        association_id,
        user_id=request.user_id,
        member_type=request.member_type,
        status=request.status,
        section_id=request.section_id,
    )


@router.get("/members/{member_id}", response_model=MemberResponse)
async def get_member(
    association_id: int,
    member_id: int,
    context: MemberContext = Depends(get_member_context),
    service: AssociationService = Depends(get_association_service),
):
    """
    Get one member.

    Members can view themselves; viewing others requires membres.view_list.
    """
    if context.member.id != member_id and not context.can_view_members():
        raise ForbiddenException("You can only view your own membership")
    return service.get_member(association_id, member_id)


@router.patch("/members/{member_id}/status", response_model=MemberStatusChangeResponse)
async def change_member_status(
    association_id: int,
    member_id: int,
    request: MemberStatusUpdate,
    context: MemberContext = Depends(manage_members),
    service: AssociationService = Depends(get_association_service),
):
    """
    Change a member's status, keeping its roles.

    - **Requires membres.manage_members**
    - The admin must stay active
    - Mandatory roles left without an active holder are reported in `warnings`
    """
    change = service.change_member_status(association_id, member_id, request.status)
    return {
        "member": MemberResponse.model_validate(change.member),
        "warnings": [warning.message for warning in change.warnings],
    }


@router.get("/members/{member_id}/roles", response_model=MemberRolesResponse)
async def get_member_roles(
    association_id: int,
    member_id: int,
    context: MemberContext = Depends(get_member_context),
    service: MemberRoleService = Depends(get_member_role_service),
):
    """
    Roles, overrides and effective permissions of a member.

    Members can view their own; viewing others requires administration.manage_roles.
    """
    _ensure_self_or_manager(context, member_id)
    details = service.get_member_roles(association_id, member_id)
    return {
        "member": MemberResponse.model_validate(details.member),
        "assigned_roles": [RoleResponse.model_validate(role) for role in details.assigned_roles],
        "custom_permissions": CustomPermissionsResponse.model_validate(details.custom_permissions),
        "effective_permissions": sorted(details.effective_permissions),
    }


@router.post("/members/{member_id}/roles", response_model=RoleAssignmentResponse)
async def assign_roles(
    association_id: int,
    member_id: int,
    request: AssignRolesRequest,
    context: MemberContext = Depends(manage_roles),
    service: MemberRoleService = Depends(get_member_role_service),
):
    """
    Replace the member's roles with `role_ids`.

    - **Requires administration.manage_roles**
    - Full replacement: roles not listed are removed
    - A unique role held by another active member is refused with 409
    """
    assignment = service.assign_roles(association_id, member_id, request.role_ids)
    return _assignment_response(assignment)


@router.delete("/members/{member_id}/roles/{role_id}", response_model=RoleAssignmentResponse)
async def remove_role(
    association_id: int,
    member_id: int,
    role_id: str,
    context: MemberContext = Depends(manage_roles),
    service: MemberRoleService = Depends(get_member_role_service),
):
    """
    Remove one role from a member.

    - **Requires administration.manage_roles**
    - Leaving a mandatory role without holder is allowed and reported in `warnings`
    """
    assignment = service.remove_role(association_id, member_id, role_id)
    return _assignment_response(assignment)


@router.post("/members/{member_id}/permissions/grant", response_model=MemberResponse)
async def grant_permission(
    association_id: int,
    member_id: int,
    request: PermissionOverrideRequest,
    context: MemberContext = Depends(manage_roles),
    service: MemberRoleService = Depends(get_member_role_service),
):
    """
    Grant a permission on top of the member's roles.

    - **Requires administration.manage_roles**
    """
    return service.grant_permission(association_id, member_id, request.permission)


@router.post("/members/{member_id}/permissions/revoke", response_model=MemberResponse)
async def revoke_permission(
    association_id: int,
    member_id: int,
    request: PermissionOverrideRequest,
    context: MemberContext = Depends(manage_roles),
    service: MemberRoleService = Depends(get_member_role_service),
):
    """
    Revoke a permission, whatever role provides it.

    - **Requires administration.manage_roles**
    """
    return service.revoke_permission(association_id, member_id, request.permission)


@router.delete("/members/{member_id}/permissions/{permission_id}", response_model=MemberResponse)
async def clear_permission_override(
    association_id: int,
    member_id: int,
    permission_id: str,
    context: MemberContext = Depends(manage_roles),
    service: MemberRoleService = Depends(get_member_role_service),
):
    """
    Drop any grant or revoke of a permission so the member's roles decide again.

    - **Requires administration.manage_roles**
    """
    return service.clear_permission_override(association_id, member_id, permission_id)


@router.get("/members/{member_id}/permissions", response_model=EffectivePermissionsResponse)
async def get_effective_permissions(
    association_id: int,
    member_id: int,
    context: MemberContext = Depends(get_member_context),
    authorization: AuthorizationService = Depends(get_authorization_service),
):
    """Effective permissions of a member, flat and grouped by category."""
    _ensure_self_or_manager(context, member_id)
    target = authorization.get_member_context(association_id, member_id)
    return {
        "member_id": member_id,
        "is_admin": target.is_admin,
        "permissions": sorted(target.effective_permissions),
        "by_category": target.permissions_by_category(),
    }


@router.get(
    "/members/{member_id}/permissions/{permission_id}", response_model=HasPermissionResponse
)
async def has_permission(
    association_id: int,
    member_id: int,
    permission_id: str,
    context: MemberContext = Depends(get_member_context),
    authorization: AuthorizationService = Depends(get_authorization_service),
):
    """Whether a member holds one permission."""
    _ensure_self_or_manager(context, member_id)
    return {
        "member_id": member_id,
        "permission": permission_id,
        "granted": authorization.has_permission(association_id, member_id, permission_id),
    }


@router.get("/bureau", response_model=BureauCompletenessResponse)
async def get_bureau_completeness(
    association_id: int,
    context: MemberContext = Depends(get_member_context),
    service: MemberRoleService = Depends(get_member_role_service),
):
    """Mandatory roles and whether each currently has an active holder."""
    bureau = service.bureau_completeness(association_id)
    return {
        "is_complete": bureau.is_complete,
        "filled": bureau.filled,
        "total": bureau.total,
        "roles": [
            {"role_id": s.role.id, "role_name": s.role.name, "holders_count": s.holders_count}
            for s in bureau.roles
        ],
    }


@router.post("/transfer-admin", response_model=TransferAdminResponse)
async def transfer_admin(
    association_id: int,
    request: TransferAdminRequest,
    context: MemberContext = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    """
    Hand the admin designation to another active member.

    - **Requires being the current admin**
    - Both members change in a single atomic step
    """
    transfer = service.transfer_admin(
        association_id,
        context.member.id,
        request.new_admin_member_id,
        reason=request.reason,
    )
    return {
        "message": "Admin transferred successfully",
        "previous_admin_member_id": transfer.previous_admin.id,
        "new_admin_member_id": transfer.new_admin.id,
    }
