import logging
from dataclasses import dataclass, field

from app.config import settings
from app.core.events import EventBus, RoleEvent, RoleEventType
from app.core.exceptions import (
    MandatoryRoleViolation,
    MandatoryRoleViolationException,
    NotFoundException,
    UniqueRoleConflictException,
    ValidationException,
)
from app.models.association import Association
from app.models.member import CustomPermissions, Member
from app.models.permission import as_permission_id
from app.models.role import Role
from app.repositories.association_repository import AssociationRepository
from app.services import permission_resolver
from app.services.mutation import Mutation, apply_mutation, load_association

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleAssignment:
    """
    Result of changing a member's roles.

    `warnings` lists mandatory roles left without any active holder. They do
    not block the change; they feed the bureau completeness indicator.
    """

    member: Member
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    warnings: list[MandatoryRoleViolation] = field(default_factory=list)


@dataclass(frozen=True)
class MemberRolesDetails:
    member: Member
    assigned_roles: list[Role]
    custom_permissions: CustomPermissions
    effective_permissions: frozenset[str]


@dataclass(frozen=True)
class MandatoryRoleStatus:
    role: Role
    holders_count: int


@dataclass(frozen=True)
class BureauCompleteness:
    """Which mandatory roles currently have an active holder."""

    roles: list[MandatoryRoleStatus]

    @property
    def filled(self) -> int:
        return sum(1 for status in self.roles if status.holders_count > 0)

    @property
    def total(self) -> int:
        return len(self.roles)

    @property
    def is_complete(self) -> bool:
        return self.filled == self.total


def get_member(association: Association, member_id: int) -> Member:
    member = association.get_member(member_id)
    if member is None:
        raise NotFoundException(f"Member {member_id} not found in this association")
    return member


def unique_role_conflict(association: Association, member_id: int, role_ids) -> None:
    """
    Raise if another active member holds one of the unique `role_ids`.

    Raises:
        UniqueRoleConflictException: Naming the current holder
    """
    configuration = association.roles_configuration
    for role_id in role_ids:
        role = configuration.get_role(role_id)
        if role is None or not role.is_unique:
            continue
        for holder in association.active_holders(role_id):
            if holder.id != member_id:
                raise UniqueRoleConflictException(role_id, holder.id)


def orphaned_mandatory_roles(
    association: Association, role_ids
) -> list[MandatoryRoleViolation]:
    """Mandatory roles among `role_ids` that have no active holder in `association`."""
    warnings = []
    for role_id in role_ids:
        role = association.roles_configuration.get_role(role_id)
        if role is not None and role.is_mandatory and not association.active_holders(role_id):
            warnings.append(MandatoryRoleViolation(role_id=role.id, role_name=role.name))
    return warnings


def mandatory_role_warnings(association: Association, role_ids) -> list[MandatoryRoleViolation]:
    """
    Apply MANDATORY_ROLE_POLICY to the mandatory roles `role_ids` left without holder.

    Returns:
        The violations, under the 'warn' policy

    Raises:
        MandatoryRoleViolationException: Under the 'block' policy
    """
    warnings = orphaned_mandatory_roles(association, role_ids)
    if warnings and settings.MANDATORY_ROLE_POLICY == "block":
        raise MandatoryRoleViolationException(warnings[0])
    return warnings


class MemberRoleService:
    """Service layer for role assignment and permission overrides of members"""

    def __init__(self, repository: AssociationRepository, events: EventBus):
        self.repository = repository
        self.events = events

    def assign_roles(self, association_id: int, member_id: int, role_ids: list[str]) -> RoleAssignment:
        """
        Replace the member's roles with exactly `role_ids`.

        This is a full replacement, not a merge: roles the member holds that
        are missing from `role_ids` are removed. Pass the complete desired
        list. Duplicates in `role_ids` are collapsed, first occurrence wins.

        Args:
            association_id: Association ID
            member_id: Member whose roles are replaced
            role_ids: Complete list of roles the member should hold

        Returns:
            RoleAssignment with the added and removed ids

        Raises:
            NotFoundException: If the member or any role id is unknown
            UniqueRoleConflictException: If a unique role is held by another
                active member; nothing is changed
        """
        requested = tuple(dict.fromkeys(role_ids))

        def mutate(association: Association) -> Mutation[RoleAssignment]:
            member = get_member(association, member_id)
            known = association.roles_configuration.role_ids()
            unknown = [role_id for role_id in requested if role_id not in known]
            if unknown:
                raise NotFoundException(f"Unknown role ids: {', '.join(unknown)}")

            unique_role_conflict(association, member_id, requested)

            added = [r for r in requested if r not in member.assigned_roles]
            removed = [r for r in member.assigned_roles if r not in requested]
            updated_member = member.touch(assigned_roles=requested)
            updated = association.with_members([updated_member])
            warnings = mandatory_role_warnings(updated, removed)

            events = [
                RoleEvent(
                    type=RoleEventType.ROLE_ASSIGNED,
                    association_id=association.id,
                    member_id=member_id,
                    role_id=role_id,
                )
                for role_id in added
            ] + [
                RoleEvent(
                    type=RoleEventType.ROLE_REMOVED,
                    association_id=association.id,
                    member_id=member_id,
                    role_id=role_id,
                )
                for role_id in removed
            ]
            result = RoleAssignment(updated_member, added=added, removed=removed, warnings=warnings)
            return Mutation(updated, result, events)

        assignment = apply_mutation(self.repository, self.events, association_id, mutate)
        self._log_warnings(association_id, assignment)
        return assignment

    def remove_role(self, association_id: int, member_id: int, role_id: str) -> RoleAssignment:
        """
        Remove a single role from a member.

        Removing the last holder of a mandatory role succeeds; the result
        carries a warning instead (unless MANDATORY_ROLE_POLICY is 'block').

        Raises:
            NotFoundException: If the member doesn't exist or doesn't hold the role
        """

        def mutate(association: Association) -> Mutation[RoleAssignment]:
            member = get_member(association, member_id)
            if not member.holds(role_id):
                raise NotFoundException(f"Member {member_id} does not hold role '{role_id}'")

            updated_member = member.touch(
                assigned_roles=tuple(r for r in member.assigned_roles if r != role_id)
            )
            updated = association.with_members([updated_member])
            warnings = mandatory_role_warnings(updated, [role_id])
            event = RoleEvent(
                type=RoleEventType.ROLE_REMOVED,
                association_id=association.id,
                member_id=member_id,
                role_id=role_id,
            )
            result = RoleAssignment(updated_member, removed=[role_id], warnings=warnings)
            return Mutation(updated, result, [event])

        assignment = apply_mutation(self.repository, self.events, association_id, mutate)
        self._log_warnings(association_id, assignment)
        return assignment

    def grant_permission(self, association_id: int, member_id: int, permission_id: str) -> Member:
        """Grant a permission on top of the member's roles, clearing any revoke of it."""
        return self._override(
            association_id, member_id, permission_id, RoleEventType.PERMISSION_GRANTED,
            CustomPermissions.grant,
        )

    def revoke_permission(self, association_id: int, member_id: int, permission_id: str) -> Member:
        """Revoke a permission whatever its source, clearing any grant of it."""
        return self._override(
            association_id, member_id, permission_id, RoleEventType.PERMISSION_REVOKED,
            CustomPermissions.revoke,
        )

    def clear_permission_override(self, association_id: int, member_id: int, permission_id: str) -> Member:
        """Drop any grant or revoke of the permission; roles decide again."""
        return self._override(
            association_id, member_id, permission_id, RoleEventType.PERMISSION_OVERRIDE_CLEARED,
            CustomPermissions.clear,
        )

    def get_member_roles(self, association_id: int, member_id: int) -> MemberRolesDetails:
        association = load_association(self.repository, association_id)
        member = get_member(association, member_id)
        configuration = association.roles_configuration
        return MemberRolesDetails(
            member=member,
            assigned_roles=permission_resolver.assigned_role_details(member, configuration),
            custom_permissions=member.custom_permissions,
            effective_permissions=permission_resolver.effective_permissions(member, configuration),
        )

    def bureau_completeness(self, association_id: int) -> BureauCompleteness:
        association = load_association(self.repository, association_id)
        return BureauCompleteness(
            roles=[
                MandatoryRoleStatus(role=role, holders_count=len(association.active_holders(role.id)))
                for role in association.roles_configuration.roles
                if role.is_mandatory
            ]
        )

    def _override(self, association_id, member_id, permission_id, event_type, apply) -> Member:
        permission_id = as_permission_id(permission_id)

        def mutate(association: Association) -> Mutation[Member]:
            member = get_member(association, member_id)
            if permission_id not in association.roles_configuration.catalog:
                raise ValidationException(f"Unknown permission id: {permission_id}")

            updated_member = member.touch(
                custom_permissions=apply(member.custom_permissions, permission_id)
            )
            event = RoleEvent(
                type=event_type,
                association_id=association.id,
                member_id=member_id,
                permission_id=permission_id,
            )
            return Mutation(association.with_members([updated_member]), updated_member, [event])

        return apply_mutation(self.repository, self.events, association_id, mutate)

    def _log_warnings(self, association_id: int, assignment: RoleAssignment) -> None:
        for warning in assignment.warnings:
            logger.warning("Association %s: %s", association_id, warning.message)
