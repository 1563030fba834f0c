import logging
import re
import unicodedata
from dataclasses import dataclass, replace

from app.core.events import EventBus, RoleEvent, RoleEventType
from app.core.exceptions import (
    ConcurrencyConflictException,
    NotFoundException,
    RoleInUseException,
)
from app.models.association import Association
from app.models.member import Member
from app.models.permission import Permission, PermissionCategory, as_permission_id
from app.models.role import DEFAULT_ROLE_TEMPLATES, Role, RoleTemplate, RoleUsage
from app.repositories.association_repository import AssociationRepository
from app.schemas.role_schemas import RoleCreate, RoleUpdate
from app.services.mutation import Mutation, apply_mutation, load_association
from app.services.role_validator import RoleValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleDetails:
    usage: RoleUsage
    assigned_members: list[Member]


@dataclass(frozen=True)
class RoleDeletion:
    role_id: str
    detached_member_ids: list[int]
    version: int


def slugify(name: str) -> str:
    """Role id derived from its name: 'Trésorier adjoint' -> 'tresorier_adjoint'"""
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "_", ascii_name.lower()).strip("_")
    return slug or "role"


def get_role_template(template_id: str) -> RoleTemplate:
    template = next((t for t in DEFAULT_ROLE_TEMPLATES if t.id == template_id), None)
    if template is None:
        raise NotFoundException(f"Role template '{template_id}' not found")
    return template


def _check_version(association: Association, expected_version: int | None) -> None:
    current = association.roles_configuration.version
    if expected_version is not None and expected_version != current:
        raise ConcurrencyConflictException(expected_version, current)


class RoleService:
    """Service layer for the role registry of an association"""

    def __init__(self, repository: AssociationRepository, events: EventBus):
        self.repository = repository
        self.events = events

    def list_roles(self, association_id: int) -> list[RoleUsage]:
        """
        List roles with their number of active holders.

        Args:
            association_id: Association ID

        Returns:
            Roles in creation order, each with members_count
        """
        association = load_association(self.repository, association_id)
        return [self._usage(association, role) for role in association.roles_configuration.roles]

    def get_role(self, association_id: int, role_id: str) -> Role:
        association = load_association(self.repository, association_id)
        return self._get_role(association, role_id)

    def get_role_details(self, association_id: int, role_id: str) -> RoleDetails:
        """Role with usage and the members holding it (active or not)."""
        association = load_association(self.repository, association_id)
        role = self._get_role(association, role_id)
        holders = [m for m in association.members.values() if m.holds(role_id)]
        return RoleDetails(usage=self._usage(association, role), assigned_members=holders)

    def list_permissions(self, association_id: int) -> dict[PermissionCategory, list[Permission]]:
        association = load_association(self.repository, association_id)
        return association.roles_configuration.catalog.grouped()

    def list_templates(self) -> list[RoleTemplate]:
        return list(DEFAULT_ROLE_TEMPLATES)

    def create_role(
        self,
        association_id: int,
        role_data: RoleCreate,
        expected_version: int | None = None,
    ) -> Role:
        """
        Create a role with a generated id.

        Args:
            association_id: Association ID
            role_data: Role definition
            expected_version: Roles configuration version the caller edited, if known

        Returns:
            Created role

        Raises:
            ValidationException: Listing every invalid field
            ConcurrencyConflictException: If expected_version is stale
        """

        def mutate(association: Association) -> Mutation[Role]:
            _check_version(association, expected_version)
            configuration = association.roles_configuration
            role = Role(
                id=self._generate_id(association, role_data.name),
                name=role_data.name.strip(),
                description=role_data.description.strip(),
                permissions=tuple(dict.fromkeys(map(as_permission_id, role_data.permissions))),
                is_unique=role_data.is_unique,
                is_mandatory=role_data.is_mandatory,
                can_be_renamed=role_data.can_be_renamed,
                color=role_data.color,
                icon=role_data.icon,
            )
            RoleValidator(configuration).validate(role)

            updated = replace(
                association, roles_configuration=configuration.with_roles(configuration.roles + (role,))
            )
            event = RoleEvent(
                type=RoleEventType.ROLE_CREATED, association_id=association.id, role_id=role.id
            )
            return Mutation(updated, role, [event])

        role = apply_mutation(self.repository, self.events, association_id, mutate)
        logger.info("Association %s: role '%s' created", association_id, role.id)
        return role

    def create_role_from_template(
        self,
        association_id: int,
        template_id: str,
        name: str | None = None,
    ) -> Role:
        """Create a role from one of the suggested templates."""
        template = get_role_template(template_id)
        association = load_association(self.repository, association_id)
        catalog = association.roles_configuration.catalog
        # Tenants may ship a reduced catalog; keep only what it offers
        permissions = [p for p in template.suggested_permissions if p in catalog]

        return self.create_role(
            association_id,
            RoleCreate(
                name=name or template.name,
                description=template.description,
                permissions=permissions,
                is_unique=template.is_unique,
                is_mandatory=template.is_mandatory,
                color=template.color,
                icon=template.icon,
            ),
        )

    def update_role(
        self,
        association_id: int,
        role_id: str,
        role_data: RoleUpdate,
        expected_version: int | None = None,
    ) -> Role:
        """
        Update a role; unset fields keep their value.

        Raises:
            NotFoundException: If role doesn't exist
            ValidationException: Listing every invalid field, including a
                rename of a role that cannot be renamed
            ConcurrencyConflictException: If expected_version is stale
        """
        changes = role_data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes:
            changes["name"] = changes["name"].strip()
        if "description" in changes:
            changes["description"] = changes["description"].strip()
        if "permissions" in changes:
            changes["permissions"] = tuple(dict.fromkeys(map(as_permission_id, changes["permissions"])))

        def mutate(association: Association) -> Mutation[Role]:
            _check_version(association, expected_version)
            configuration = association.roles_configuration
            existing = self._get_role(association, role_id)
            role = replace(existing, **changes)

            RoleValidator(configuration).validate(
                role,
                existing=existing,
                active_holders=len(association.active_holders(role_id)),
            )

            roles = tuple(role if r.id == role_id else r for r in configuration.roles)
            updated = replace(association, roles_configuration=configuration.with_roles(roles))
            event = RoleEvent(
                type=RoleEventType.ROLE_UPDATED,
                association_id=association.id,
                role_id=role_id,
                data={"fields": sorted(changes)},
            )
            return Mutation(updated, role, [event])

        return apply_mutation(self.repository, self.events, association_id, mutate)

    def delete_role(
        self,
        association_id: int,
        role_id: str,
        expected_version: int | None = None,
    ) -> RoleDeletion:
        """
        Delete a role and detach it from every member holding it.

        Args:
            association_id: Association ID
            role_id: Role to delete
            expected_version: Roles configuration version the caller edited, if known

        Returns:
            The ids of members the role was detached from

        Raises:
            NotFoundException: If role doesn't exist
            RoleInUseException: If the role is mandatory and still has active holders
            ConcurrencyConflictException: If expected_version is stale
        """

        def mutate(association: Association) -> Mutation[RoleDeletion]:
            _check_version(association, expected_version)
            configuration = association.roles_configuration
            role = self._get_role(association, role_id)

            active_holders = association.active_holders(role_id)
            if role.is_mandatory and active_holders:
                raise RoleInUseException(role_id, [m.id for m in active_holders])

            detached = [
                member.touch(assigned_roles=tuple(r for r in member.assigned_roles if r != role_id))
                for member in association.members.values()
                if member.holds(role_id)
            ]
            roles = tuple(r for r in configuration.roles if r.id != role_id)
            new_configuration = configuration.with_roles(roles)
            updated = replace(
                association.with_members(detached), roles_configuration=new_configuration
            )

            events = [
                RoleEvent(
                    type=RoleEventType.ROLE_DETACHED,
                    association_id=association.id,
                    member_id=member.id,
                    role_id=role_id,
                )
                for member in detached
            ]
            events.append(
                RoleEvent(type=RoleEventType.ROLE_DELETED, association_id=association.id, role_id=role_id)
            )
            result = RoleDeletion(
                role_id=role_id,
                detached_member_ids=[m.id for m in detached],
                version=new_configuration.version,
            )
            return Mutation(updated, result, events)

        deletion = apply_mutation(self.repository, self.events, association_id, mutate)
        if deletion.detached_member_ids:
            logger.info(
                "Association %s: role '%s' deleted, detached from members %s",
                association_id,
                role_id,
                deletion.detached_member_ids,
            )
        else:
            logger.info("Association %s: role '%s' deleted", association_id, role_id)
        return deletion

    def _get_role(self, association: Association, role_id: str) -> Role:
        role = association.roles_configuration.get_role(role_id)
        if role is None:
            raise NotFoundException(f"Role '{role_id}' not found")
        return role

    def _usage(self, association: Association, role: Role) -> RoleUsage:
        holders = association.active_holders(role.id)
        return RoleUsage(role=role, members_count=len(holders), holder_ids=tuple(m.id for m in holders))

    def _generate_id(self, association: Association, name: str) -> str:
        base = slugify(name)
        taken = association.roles_configuration.role_ids()
        candidate = base
        suffix = 2
        while candidate in taken:
            candidate = f"{base}_{suffix}"
            suffix += 1
        return candidate
