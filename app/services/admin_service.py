import logging
from dataclasses import dataclass, replace

from app.core.events import EventBus, RoleEvent, RoleEventType
from app.core.exceptions import InvalidStateException
from app.models.association import Association
from app.models.member import Member
from app.repositories.association_repository import AssociationRepository
from app.services.member_role_service import get_member
from app.services.mutation import Mutation, apply_mutation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdminTransfer:
    previous_admin: Member
    new_admin: Member


class AdminService:
    """Service layer for the association's administrator designation"""

    def __init__(self, repository: AssociationRepository, events: EventBus):
        self.repository = repository
        self.events = events

    def transfer_admin(
        self,
        association_id: int,
        from_member_id: int,
        to_member_id: int,
        reason: str | None = None,
    ) -> AdminTransfer:
        """
        Hand the admin designation from one member to another.

        Both member records and the association's admin_member_id change in
        one commit. A reader sees either the old admin or the new one, never
        both and never neither. If any check fails nothing is changed.

        Args:
            association_id: Association ID
            from_member_id: Current admin
            to_member_id: Member receiving the designation, must be active
            reason: Optional free text kept on the emitted event

        Returns:
            Both members as committed

        Raises:
            NotFoundException: If either member doesn't exist
            InvalidStateException: If from is not the admin, to already is,
                both are the same member, or to is not active
        """

        def mutate(association: Association) -> Mutation[AdminTransfer]:
            current = get_member(association, from_member_id)
            target = get_member(association, to_member_id)

            if from_member_id == to_member_id:
                raise InvalidStateException("Cannot transfer admin to the same member")
            if not current.is_admin or association.admin_member_id != from_member_id:
                raise InvalidStateException(f"Member {from_member_id} is not the admin")
            if target.is_admin:
                raise InvalidStateException(f"Member {to_member_id} is already admin")
            if not target.is_active:
                raise InvalidStateException(
                    f"Member {to_member_id} is {target.status.value}; only active members can become admin"
                )

            previous_admin = current.touch(is_admin=False)
            new_admin = target.touch(is_admin=True)
            updated = replace(
                association.with_members([previous_admin, new_admin]),
                admin_member_id=to_member_id,
            )
            event = RoleEvent(
                type=RoleEventType.ADMIN_TRANSFERRED,
                association_id=association.id,
                member_id=to_member_id,
                data={"previous_admin_member_id": from_member_id, "reason": reason},
            )
            return Mutation(updated, AdminTransfer(previous_admin, new_admin), [event])

        transfer = apply_mutation(self.repository, self.events, association_id, mutate)
        logger.info(
            "Association %s: admin transferred from member %s to member %s",
            association_id,
            from_member_id,
            to_member_id,
        )
        return transfer
