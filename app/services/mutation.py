"""Serializable read-validate-commit cycle shared by every mutating service."""

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Generic, TypeVar

from app.config import settings
from app.core.events import EventBus, RoleEvent
from app.core.exceptions import ConcurrencyConflictException, NotFoundException
from app.models.association import Association
from app.repositories.association_repository import AssociationRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Mutation(Generic[T]):
    """Outcome of a mutation computed on a snapshot, not yet committed."""

    association: Association
    result: T
    events: list[RoleEvent] = field(default_factory=list)


def load_association(repository: AssociationRepository, association_id: int) -> Association:
    association = repository.get_by_id(association_id)
    if association is None:
        raise NotFoundException(f"Association {association_id} not found")
    return association


def apply_mutation(
    repository: AssociationRepository,
    events: EventBus,
    association_id: int,
    mutate: Callable[[Association], Mutation[T]],
    retries: int | None = None,
) -> T:
    """
    Run `mutate` against the latest snapshot and commit its outcome.

    `mutate` must be a pure function of the snapshot: it validates, raises
    a typed exception on failure, and otherwise returns the new snapshot.
    When another write commits first, the whole cycle is replayed against
    the fresh snapshot, so validations such as the unique-role check always
    see every committed write. After `retries` replays the conflict is
    raised to the caller.

    Events are published only once the commit succeeded, stamped with the
    committed revision.
    """
    if retries is None:
        retries = settings.CONCURRENCY_RETRY_ATTEMPTS

    attempt = 0
    while True:
        snapshot = load_association(repository, association_id)
        mutation = mutate(snapshot)
        try:
            stored = repository.commit(mutation.association, expected_revision=snapshot.revision)
        except ConcurrencyConflictException:
            if attempt >= retries:
                logger.warning(
                    "Association %s: concurrent write, giving up after %s retries",
                    association_id,
                    retries,
                )
                raise
            attempt += 1
            logger.info("Association %s: concurrent write, retrying (%s)", association_id, attempt)
            continue
        events.publish([replace(event, revision=stored.revision) for event in mutation.events])
        return mutation.result
