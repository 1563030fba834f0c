from dataclasses import replace

from app.core.events import EventBus
from app.core.exceptions import NotFoundException, ValidationException
from app.models.association import Association
from app.models.custom_role import CustomRole
from app.models.member import utcnow
from app.repositories.association_repository import AssociationRepository
from app.schemas.custom_role_schemas import CustomRoleCreate, CustomRoleUpdate
from app.services.mutation import Mutation, apply_mutation, load_association


class CustomRoleService:
    """
    Service layer for org-chart titles.

    Custom roles only describe who does what; they never take part in
    permission resolution.
    """

    def __init__(self, repository: AssociationRepository, events: EventBus):
        self.repository = repository
        self.events = events

    def list_custom_roles(self, association_id: int) -> list[CustomRole]:
        association = load_association(self.repository, association_id)
        return sorted(association.custom_roles.values(), key=lambda c: c.id)

    def get_custom_role(self, association_id: int, custom_role_id: int) -> CustomRole:
        association = load_association(self.repository, association_id)
        return self._get(association, custom_role_id)

    def create_custom_role(self, association_id: int, data: CustomRoleCreate) -> CustomRole:
        """
        Create an org-chart title.

        Raises:
            ValidationException: If the name is empty or assigned_to is not a
                member of this association
        """
        custom_role_id = self.repository.next_custom_role_id()

        def mutate(association: Association) -> Mutation[CustomRole]:
            self._validate(association, data.name, data.assigned_to)
            custom_role = CustomRole(
                id=custom_role_id,
                name=data.name.strip(),
                description=data.description.strip(),
                assigned_to=data.assigned_to,
            )
            custom_roles = {**association.custom_roles, custom_role.id: custom_role}
            return Mutation(association.with_custom_roles(custom_roles), custom_role)

        return apply_mutation(self.repository, self.events, association_id, mutate)

    def update_custom_role(
        self, association_id: int, custom_role_id: int, data: CustomRoleUpdate
    ) -> CustomRole:
        """Update an org-chart title; explicitly sending assigned_to=None unassigns it."""
        changes = data.model_dump(exclude_unset=True)
        if changes.get("name") is None:
            changes.pop("name", None)
        if changes.get("description") is None:
            changes.pop("description", None)

        def mutate(association: Association) -> Mutation[CustomRole]:
            existing = self._get(association, custom_role_id)
            name = changes.get("name", existing.name)
            assigned_to = changes.get("assigned_to", existing.assigned_to)
            self._validate(association, name, assigned_to)

            custom_role = replace(
                existing,
                name=name.strip(),
                description=changes.get("description", existing.description).strip(),
                assigned_to=assigned_to,
                updated_at=utcnow(),
            )
            custom_roles = {**association.custom_roles, custom_role.id: custom_role}
            return Mutation(association.with_custom_roles(custom_roles), custom_role)

        return apply_mutation(self.repository, self.events, association_id, mutate)

    def assign_custom_role(
        self, association_id: int, custom_role_id: int, member_id: int | None
    ) -> CustomRole:
        """Assign the title to a member, or clear it when member_id is None."""
        return self.update_custom_role(
            association_id, custom_role_id, CustomRoleUpdate(assigned_to=member_id)
        )

    def delete_custom_role(self, association_id: int, custom_role_id: int) -> None:
        def mutate(association: Association) -> Mutation[None]:
            self._get(association, custom_role_id)
            custom_roles = {
                key: value
                for key, value in association.custom_roles.items()
                if key != custom_role_id
            }
            return Mutation(association.with_custom_roles(custom_roles), None)

        apply_mutation(self.repository, self.events, association_id, mutate)

    def _get(self, association: Association, custom_role_id: int) -> CustomRole:
        custom_role = association.custom_roles.get(custom_role_id)
        if custom_role is None:
            raise NotFoundException(f"Custom role {custom_role_id} not found")
        return custom_role

    def _validate(self, association: Association, name: str, assigned_to: int | None) -> None:
        errors = []
        if not name or not name.strip():
            errors.append("Custom role name is required")
        if assigned_to is not None and association.get_member(assigned_to) is None:
            errors.append(f"Member {assigned_to} is not a member of this association")
        if errors:
            raise ValidationException(errors)
