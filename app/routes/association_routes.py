from fastapi import APIRouter, Depends, status

from app.dependencies import get_association_service, get_member_context, get_user_id
from app.models.association import Association
from app.schemas.association_schemas import AssociationCreate, AssociationResponse
from app.services.association_service import AssociationService
from app.services.member_context import MemberContext
from app.services.role_service import get_role_template

router = APIRouter()


def _association_response(association: Association) -> dict:
    return {
        "id": association.id,
        "name": association.name,
        "admin_member_id": association.admin_member_id,
        "roles_version": association.roles_configuration.version,
        "members_count": len(association.members),
    }


@router.post("", response_model=AssociationResponse, status_code=status.HTTP_201_CREATED)
async def create_association(
    request: AssociationCreate,
    user_id: int = Depends(get_user_id),
    service: AssociationService = Depends(get_association_service),
):
    """
    Create an association.

    - **Requires X-User-Id**; the caller becomes the association admin
    - Roles are seeded from `role_template_ids`, if any
    """
    roles = [get_role_template(template_id).to_role() for template_id in dict.fromkeys(request.role_template_ids)]
    association = service.bootstrap(request.name, admin_user_id=user_id, roles=roles)
    return _association_response(association)


@router.get("/{association_id}", response_model=AssociationResponse)
async def get_association(
    association_id: int,
    context: MemberContext = Depends(get_member_context),
    service: AssociationService = Depends(get_association_service),
):
    """Get an association; members only."""
    return _association_response(service.get_association(association_id))
