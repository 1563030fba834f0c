import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable

from app.core.events import EventBus
from app.core.exceptions import InvalidStateException, MandatoryRoleViolation, ValidationException
from app.models.association import Association
from app.models.member import Member, MemberStatus
from app.models.permission import PermissionCatalog, default_catalog
from app.models.role import Role, RolesConfiguration
from app.repositories.association_repository import AssociationRepository
from app.services.member_role_service import get_member, mandatory_role_warnings, unique_role_conflict
from app.services.mutation import Mutation, apply_mutation, load_association
from app.services.role_validator import RoleValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemberStatusChange:
    """Member after a status change, with mandatory roles it left without holder."""

    member: Member
    warnings: list[MandatoryRoleViolation] = field(default_factory=list)


class AssociationService:
    """Service layer for tenant bootstrap and membership lifecycle"""

    def __init__(self, repository: AssociationRepository, events: EventBus):
        self.repository = repository
        self.events = events

    def bootstrap(
        self,
        name: str,
        admin_user_id: int,
        catalog: PermissionCatalog | None = None,
        roles: Iterable[Role] = (),
        admin_member_type: str = "membre_actif",
    ) -> Association:
        """
        Create an association with its creator as admin.

        Args:
            name: Association name
            admin_user_id: User creating the association; becomes the only admin
            catalog: Permission catalog of the tenant, default catalog if None
            roles: Initial role definitions, validated against the catalog
            admin_member_type: Member type of the creator

        Returns:
            Stored association (revision 1, roles configuration version 1)

        Raises:
            ValidationException: If the name is empty or any initial role is invalid
        """
        if not name.strip():
            raise ValidationException("Association name is required")

        configuration = RolesConfiguration(catalog=catalog or default_catalog())
        errors: list[str] = []
        for role in roles:
            role_errors = RoleValidator(configuration).violations(role)
            if configuration.get_role(role.id) is not None:
                role_errors.append(f"Duplicate role id '{role.id}'")
            errors.extend(f"{role.id}: {error}" for error in role_errors)
            configuration = RolesConfiguration(
                catalog=configuration.catalog, roles=configuration.roles + (role,)
            )
        if errors:
            raise ValidationException(errors)

        association_id = self.repository.next_association_id()
        admin = Member(
            id=self.repository.next_member_id(),
            user_id=admin_user_id,
            association_id=association_id,
            is_admin=True,
            member_type=admin_member_type,
        )
        association = Association(
            id=association_id,
            name=name.strip(),
            admin_member_id=admin.id,
            roles_configuration=configuration,
            members=MappingProxyType({admin.id: admin}),
        )
        return self.repository.create(association)

    def get_association(self, association_id: int) -> Association:
        return load_association(self.repository, association_id)

    def get_member(self, association_id: int, member_id: int) -> Member:
        return get_member(load_association(self.repository, association_id), member_id)

    def list_members(
        self, association_id: int, status: MemberStatus | None = None
    ) -> list[Member]:
        association = load_association(self.repository, association_id)
        members = sorted(association.members.values(), key=lambda m: m.id)
        if status is not None:
            members = [m for m in members if m.status == status]
        return members

    def add_member(
        self,
        association_id: int,
        user_id: int,
        member_type: str = "membre_actif",
        status: MemberStatus = MemberStatus.ACTIVE,
        section_id: int | None = None,
    ) -> Member:
        """
        Add a user to the association, without roles.

        New members are never admin; the designation only moves through
        admin transfer.

        Raises:
            ValidationException: If the user is already a member
        """
        member_id = self.repository.next_member_id()

        def mutate(association: Association) -> Mutation[Member]:
            if any(m.user_id == user_id for m in association.members.values()):
                raise ValidationException(f"User {user_id} is already a member")
            member = Member(
                id=member_id,
                user_id=user_id,
                association_id=association.id,
                section_id=section_id,
                member_type=member_type,
                status=status,
            )
            return Mutation(association.with_members([member]), member)

        member = apply_mutation(self.repository, self.events, association_id, mutate)
        logger.info("Association %s: member %s added for user %s", association_id, member.id, user_id)
        return member

    def change_member_status(
        self, association_id: int, member_id: int, status: MemberStatus
    ) -> MemberStatusChange:
        """
        Move a member to another status, keeping its roles.

        A member who stops being active no longer counts as holder of its
        roles; mandatory roles left without an active holder follow
        MANDATORY_ROLE_POLICY, as when the roles are removed.

        Raises:
            NotFoundException: If member doesn't exist
            InvalidStateException: If the member is the admin and would stop being active
            UniqueRoleConflictException: If reactivating a member whose unique
                role is now held by another active member
            MandatoryRoleViolationException: If the policy is 'block' and a
                mandatory role would lose its last active holder
        """

        def mutate(association: Association) -> Mutation[MemberStatusChange]:
            member = get_member(association, member_id)
            if member.is_admin and status != MemberStatus.ACTIVE:
                raise InvalidStateException("Transfer the admin designation before deactivating the admin")
            if status == MemberStatus.ACTIVE and not member.is_active:
                unique_role_conflict(association, member_id, member.assigned_roles)
            updated_member = member.touch(status=status)
            updated = association.with_members([updated_member])
            warnings = []
            if member.is_active and status != MemberStatus.ACTIVE:
                warnings = mandatory_role_warnings(updated, member.assigned_roles)
            return Mutation(updated, MemberStatusChange(updated_member, warnings))

        change = apply_mutation(self.repository, self.events, association_id, mutate)
        logger.info("Association %s: member %s is now %s", association_id, member_id, status.value)
        for warning in change.warnings:
            logger.warning("Association %s: %s", association_id, warning.message)
        return change
