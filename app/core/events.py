"""Role-change events delivered to audit and notification listeners."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Callable

from app.models.member import utcnow

logger = logging.getLogger(__name__)


class RoleEventType(str, PyEnum):
    ROLE_CREATED = "role_created"
    ROLE_UPDATED = "role_updated"
    ROLE_DELETED = "role_deleted"
    ROLE_DETACHED = "role_detached"
    ROLE_ASSIGNED = "role_assigned"
    ROLE_REMOVED = "role_removed"
    PERMISSION_GRANTED = "permission_granted"
    PERMISSION_REVOKED = "permission_revoked"
    PERMISSION_OVERRIDE_CLEARED = "permission_override_cleared"
    ADMIN_TRANSFERRED = "admin_transferred"


@dataclass(frozen=True)
class RoleEvent:
    """
    A committed change to roles, assignments or admin designation.

    Attributes:
        type: What happened
        association_id: Tenant the change belongs to
        member_id: Member affected, when the change targets one member
        role_id: Role involved, if any
        permission_id: Permission involved, if any
        data: Extra details (e.g. previous admin, transfer reason)
        revision: Association revision the change was committed at; listeners
            order events of one association by it
    """

    type: RoleEventType
    association_id: int
    member_id: int | None = None
    role_id: str | None = None
    permission_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    revision: int | None = None
    occurred_at: datetime = field(default_factory=utcnow)


Listener = Callable[[RoleEvent], None]


class EventBus:
    """
    In-process publisher of RoleEvents.

    Events are published only after the change they describe has been
    committed. A listener that raises is logged and skipped; it never undoes
    or blocks the mutation nor the remaining listeners.
    """

    def __init__(self):
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            Callable removing the listener again
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, events: list[RoleEvent]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for event in events:
            logger.debug("Publishing %s for association %s", event.type.value, event.association_id)
            for listener in listeners:
                try:
                    listener(event)
                except Exception:
                    logger.exception(
                        "Role event listener %r failed on %s", listener, event.type.value
                    )

