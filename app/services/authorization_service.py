from app.core.exceptions import NotFoundException
from app.models.permission import PermissionCategory
from app.repositories.association_repository import AssociationRepository
from app.services.member_context import MemberContext
from app.services.member_role_service import get_member
from app.services.mutation import load_association


class AuthorizationService:
    """
    Read-side entry point for authorization decisions.

    Every call resolves against the association snapshot current at call
    time; nothing is cached between calls.
    """

    def __init__(self, repository: AssociationRepository):
        self.repository = repository

    def get_member_context(self, association_id: int, member_id: int) -> MemberContext:
        """
        Build the authorization context of a member.

        Raises:
            NotFoundException: If association or member doesn't exist
        """
        association = load_association(self.repository, association_id)
        member = get_member(association, member_id)
        return MemberContext(member=member, roles_configuration=association.roles_configuration)

    def get_effective_permissions(self, association_id: int, member_id: int) -> frozenset[str]:
        return self.get_member_context(association_id, member_id).effective_permissions

    def permissions_by_category(
        self, association_id: int, member_id: int
    ) -> dict[PermissionCategory, list[str]]:
        return self.get_member_context(association_id, member_id).permissions_by_category()

    def has_permission(self, association_id: int, member_id: int, permission_id: str) -> bool:
        """
        Gate check. Unknown associations or members are denied, never raised.
        """
        try:
            context = self.get_member_context(association_id, member_id)
        except NotFoundException:
            return False
        return context.has_permission(permission_id)
