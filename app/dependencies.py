from typing import Callable

from fastapi import Depends, Header

from app.core.events import EventBus
from app.core.exceptions import ForbiddenException, NotFoundException, UnauthorizedException
from app.models.permission import PermissionId
from app.repositories.association_repository import AssociationRepository
from app.services.admin_service import AdminService
from app.services.association_service import AssociationService
from app.services.authorization_service import AuthorizationService
from app.services.custom_role_service import CustomRoleService
from app.services.member_context import MemberContext
from app.services.member_role_service import MemberRoleService
from app.services.role_service import RoleService

# Process-wide state; tests replace it through app.dependency_overrides
_repository = AssociationRepository()
_event_bus = EventBus()


def get_repository() -> AssociationRepository:
    return _repository


def get_event_bus() -> EventBus:
    return _event_bus


def get_role_service(
    repository: AssociationRepository = Depends(get_repository),
    events: EventBus = Depends(get_event_bus),
) -> RoleService:
    return RoleService(repository, events)


def get_member_role_service(
    repository: AssociationRepository = Depends(get_repository),
    events: EventBus = Depends(get_event_bus),
) -> MemberRoleService:
    return MemberRoleService(repository, events)


def get_admin_service(
    repository: AssociationRepository = Depends(get_repository),
    events: EventBus = Depends(get_event_bus),
) -> AdminService:
    return AdminService(repository, events)


def get_custom_role_service(
    repository: AssociationRepository = Depends(get_repository),
    events: EventBus = Depends(get_event_bus),
) -> CustomRoleService:
    return CustomRoleService(repository, events)


def get_association_service(
    repository: AssociationRepository = Depends(get_repository),
    events: EventBus = Depends(get_event_bus),
) -> AssociationService:
    return AssociationService(repository, events)


def get_authorization_service(
    repository: AssociationRepository = Depends(get_repository),
) -> AuthorizationService:
    return AuthorizationService(repository)


async def get_user_id(x_user_id: int | None = Header(default=None)) -> int:
    """
    Verified user id of the caller, set by the gateway.

    Used where the caller is not yet a member, such as when creating an
    association.

    Raises:
        UnauthorizedException: If the header is missing
    """
    if x_user_id is None:
        raise UnauthorizedException("Missing X-User-Id header")
    return x_user_id


async def get_member_context(
    association_id: int,
    x_member_id: int | None = Header(default=None),
    authorization: AuthorizationService = Depends(get_authorization_service),
) -> MemberContext:
    """
    FastAPI dependency resolving the acting member.

    Flow:
    1. Read the member id from the X-Member-Id header, set by the gateway
       once the user's identity has been verified
    2. Load the member from the association in the path
    3. Return a MemberContext built on the current association snapshot

    Raises:
        UnauthorizedException: If the header is missing
        ForbiddenException: If the member doesn't belong to the association
        NotFoundException: If the association doesn't exist
    """
    if x_member_id is None:
        raise UnauthorizedException("Missing X-Member-Id header")

    try:
        return authorization.get_member_context(association_id, x_member_id)
    except NotFoundException:
        # Unknown association stays a 404; unknown member is a denial
        if authorization.repository.get_by_id(association_id) is None:
            raise
        raise ForbiddenException("You are not a member of this association")


def require_permission(permission: PermissionId) -> Callable:
    """Dependency factory gating a route on one permission."""

    async def dependency(context: MemberContext = Depends(get_member_context)) -> MemberContext:
        if not context.has_permission(permission):
            raise ForbiddenException(f"Missing permission: {permission.value}")
        return context

    return dependency


async def require_admin(context: MemberContext = Depends(get_member_context)) -> MemberContext:
    if not context.is_admin:
        raise ForbiddenException("Only the association admin can do this")
    return context
