"""Repository for Association aggregates."""

import itertools
import logging
import threading
from dataclasses import replace

from app.core.exceptions import ConcurrencyConflictException, ValidationException
from app.models.association import Association

logger = logging.getLogger(__name__)


class AssociationRepository:
    """
    In-memory store of Association snapshots with optimistic-lock commits.

    Reads return the current snapshot without locking. Writes go through
    `commit`, which holds the association's own lock only long enough to
    compare revisions and swap the snapshot reference. Associations never
    share a lock.
    """

    def __init__(self):
        self._associations: dict[int, Association] = {}
        self._locks: dict[int, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._association_ids = itertools.count(1)
        self._member_ids = itertools.count(1)
        self._custom_role_ids = itertools.count(1)

    def next_association_id(self) -> int:
        with self._registry_lock:
            return next(self._association_ids)

    def next_member_id(self) -> int:
        with self._registry_lock:
            return next(self._member_ids)

    def next_custom_role_id(self) -> int:
        with self._registry_lock:
            return next(self._custom_role_ids)

    def get_by_id(self, association_id: int) -> Association | None:
        """
        Get the current snapshot of an association.

        Args:
            association_id: Association ID

        Returns:
            Association snapshot or None if not found
        """
        return self._associations.get(association_id)

    def create(self, association: Association) -> Association:
        """
        Register a new association.

        Args:
            association: Fully built association (revision is reset to 1)

        Returns:
            Stored association snapshot

        Raises:
            ValidationException: If the association ID is already taken
        """
        with self._registry_lock:
            if association.id in self._associations:
                raise ValidationException(f"Association {association.id} already exists")
            stored = replace(association, revision=1)
            self._locks[association.id] = threading.Lock()
            self._associations[association.id] = stored
        logger.info("Association %s created", association.id)
        return stored

    def commit(self, association: Association, expected_revision: int) -> Association:
        """
        Atomically replace an association snapshot.

        Args:
            association: New snapshot computed from the revision the caller read
            expected_revision: Revision of the snapshot the change was computed on

        Returns:
            Stored snapshot with its revision bumped

        Raises:
            ConcurrencyConflictException: If another write committed in between
        """
        lock = self._locks[association.id]
        with lock:
            current = self._associations[association.id]
            if current.revision != expected_revision:
                raise ConcurrencyConflictException(expected_revision, current.revision)
            stored = replace(association, revision=expected_revision + 1)
            self._associations[association.id] = stored
        logger.debug("Association %s committed at revision %s", stored.id, stored.revision)
        return stored
