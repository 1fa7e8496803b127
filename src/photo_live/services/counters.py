"""Keeps session photo counters in step with photo rows."""

import logging
import threading
import weakref
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Protocol, TypeVar
from uuid import UUID

from photo_live.domain.errors import (
    ConflictError,
    CounterConsistencyError,
    NotFoundError,
)
from photo_live.domain.photos import PhotoRecord, PhotoStatus, StatusChange
from photo_live.domain.sessions import CounterDelta, SessionCounters

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PhotoLedger(Protocol):
    """Transactional persistence for photo rows and their session counters.

    Every mutating method applies the photo change and the counter delta in a
    single transaction that locks the owning session row. When the session is
    gone the whole transaction is rolled back and ``CounterConsistencyError``
    is raised.
    """

    def insert_photo(self, photo: PhotoRecord, delta: CounterDelta) -> PhotoRecord:
        """Insert a photo row and apply ``delta`` to its session."""

    def change_status(
        self,
        photo_id: UUID,
        expected: PhotoStatus,
        change: StatusChange,
        delta: CounterDelta,
    ) -> PhotoRecord | None:
        """Apply ``change`` only if the photo is still in ``expected``.

        Returns the updated photo, or None when the stored status differs.
        """

    def remove_photo(
        self, photo_id: UUID, expected: PhotoStatus, delta: CounterDelta
    ) -> bool:
        """Delete a photo row if it is still in ``expected``."""

    def get_photo(self, photo_id: UUID) -> PhotoRecord | None:
        """Return a photo by id, if present."""

    def list_photos(self, session_id: UUID) -> list[PhotoRecord]:
        """Return all photos of a session."""

    def list_session_ids(self) -> list[UUID]:
        """Return ids of every session."""

    def reconcile_counters(self, session_id: UUID) -> SessionCounters:
        """Recompute a session's counters from its photo rows and store them."""


class SessionLocks:
    """In-process mutual exclusion scoped to a single session."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[UUID, threading.Lock] = (
            weakref.WeakValueDictionary()
        )

    @contextmanager
    def hold(self, session_id: UUID) -> Iterator[None]:
        with self._guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[session_id] = lock
        with lock:
            yield


@dataclass
class SessionCounterService:
    """Applies photo mutations together with their counter adjustments."""

    ledger: PhotoLedger
    locks: SessionLocks = field(default_factory=SessionLocks)

    def record_create(self, photo: PhotoRecord) -> PhotoRecord:
        """Persist a new photo and count it."""
        delta = CounterDelta.for_create(photo.status)
        with self.locks.hold(photo.session_id):
            return self._guarded(
                lambda: self.ledger.insert_photo(photo, delta), photo.session_id
            )

    def record_transition(
        self, photo: PhotoRecord, change: StatusChange
    ) -> PhotoRecord:
        """Move ``photo`` to ``change.target`` and shift one count between statuses.

        Replaying a transition that already happened returns the stored photo
        without touching the counters.
        """
        delta = CounterDelta.for_transition(photo.status, change.target)
        with self.locks.hold(photo.session_id):
            if delta.is_empty:
                return photo
            updated = self._guarded(
                lambda: self.ledger.change_status(
                    photo.id, photo.status, change, delta
                ),
                photo.session_id,
            )
            if updated is not None:
                return updated
            current = self.ledger.get_photo(photo.id)
        if current is None:
            raise NotFoundError(f"Photo {photo.id} not found")
        if current.status == change.target:
            logger.info(
                "Photo %s already %s, skipping counter update",
                photo.id,
                change.target,
            )
            return current
        raise ConflictError(
            f"Photo {photo.id} is {current.status}, expected {photo.status}"
        )

    def record_delete(self, photo: PhotoRecord) -> bool:
        """Delete a photo row and uncount it. Returns False if already gone."""
        delta = CounterDelta.for_delete(photo.status)
        with self.locks.hold(photo.session_id):
            removed = self._guarded(
                lambda: self.ledger.remove_photo(photo.id, photo.status, delta),
                photo.session_id,
            )
        if not removed and self.ledger.get_photo(photo.id) is not None:
            raise ConflictError(f"Photo {photo.id} changed while being deleted")
        return removed

    def reconcile(self, session_id: UUID) -> SessionCounters:
        """Recompute counters for one session from its photo rows."""
        with self.locks.hold(session_id):
            counters = self._guarded(
                lambda: self.ledger.reconcile_counters(session_id), session_id
            )
        if not counters.is_consistent:
            raise CounterConsistencyError(
                f"Reconciled counters for session {session_id} do not add up"
            )
        return counters

    def reconcile_all(self) -> dict[UUID, SessionCounters]:
        """Recompute counters for every session.

        A session that cannot be reconciled (for example one deleted while the
        pass runs) is logged and left out of the result.
        """
        results: dict[UUID, SessionCounters] = {}
        skipped = 0
        for session_id in self.ledger.list_session_ids():
            try:
                results[session_id] = self.reconcile(session_id)
            except (CounterConsistencyError, NotFoundError):
                skipped += 1
                logger.warning(
                    "Skipping counter reconciliation for session %s", session_id
                )
        logger.info(
            "Reconciled counters for %s sessions (%s skipped)", len(results), skipped
        )
        return results

    @staticmethod
    def _guarded(operation: Callable[[], T], session_id: UUID) -> T:
        try:
            return operation()
        except (CounterConsistencyError, ConflictError, NotFoundError):
            raise
        except Exception as exc:
            logger.exception("Counter update failed for session %s", session_id)
            raise CounterConsistencyError(
                f"Could not update counters for session {session_id}"
            ) from exc
