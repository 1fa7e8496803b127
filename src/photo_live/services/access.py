"""Access checks with access-log side effects, and ownership checks."""

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Protocol
from uuid import UUID

from photo_live.domain.access import (
    AccessAttempt,
    AccessDecision,
    client_type,
    decide,
)
from photo_live.domain.errors import AuthorizationError, NotFoundError
from photo_live.domain.events import AuditRecord
from photo_live.domain.models import Requester, RequestOrigin
from photo_live.domain.photos import PhotoRecord
from photo_live.domain.sessions import SessionRecord
from photo_live.services.notifications import NotificationService

logger = logging.getLogger(__name__)


class AccessLogRepository(Protocol):
    """Persistence interface for session access attempts."""

    def create_attempt(self, attempt: AccessAttempt) -> None:
        """Append an access attempt row."""

    def list_attempts(self, session_id: UUID, limit: int) -> list[AccessAttempt]:
        """Return the most recent attempts for a session."""


@dataclass
class AccessService:
    """Runs access decisions and records code-gated attempts.

    Log writes are deferred onto background tasks; a failed write is logged
    and never changes the decision already returned.
    """

    repository: AccessLogRepository
    notifications: NotificationService
    _pending: set[asyncio.Task[None]] = field(default_factory=set, init=False)

    async def check(
        self,
        requester: Requester | None,
        session: SessionRecord,
        supplied_code: str | None,
        origin: RequestOrigin,
    ) -> AccessDecision:
        """Decide access and schedule the access-log side effects."""
        decision = decide(requester, session, supplied_code)
        if decision.should_log or not decision.granted:
            attempt = AccessAttempt(
                session_id=session.id,
                ip_address=origin.ip_address,
                user_agent=origin.user_agent,
                supplied_code=supplied_code,
                granted=decision.granted,
                reason=decision.reason,
                client_type=client_type(requester),
                created_at=datetime.now(tz=UTC),
            )
            self._defer(attempt, persist=decision.should_log)
        return decision

    async def require(
        self,
        requester: Requester | None,
        session: SessionRecord,
        supplied_code: str | None,
        origin: RequestOrigin,
    ) -> AccessDecision:
        """Like ``check`` but raise ``NotFoundError`` on denial.

        Denied sessions are reported exactly like missing ones so callers
        cannot discover which session ids exist.
        """
        decision = await self.check(requester, session, supplied_code, origin)
        if not decision.granted:
            raise NotFoundError("Session not found")
        return decision

    def recent_attempts(self, session_id: UUID, limit: int = 50) -> list[AccessAttempt]:
        """Return recent access attempts for a session."""
        return self.repository.list_attempts(session_id, limit)

    async def drain(self) -> None:
        """Wait for all deferred log writes to finish."""
        while self._pending:
            pending = list(self._pending)
            await asyncio.gather(*pending, return_exceptions=True)
            self._pending.difference_update(pending)

    def _defer(self, attempt: AccessAttempt, persist: bool) -> None:
        task = asyncio.create_task(self._record(attempt, persist))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _record(self, attempt: AccessAttempt, persist: bool) -> None:
        if persist:
            try:
                await asyncio.to_thread(self.repository.create_attempt, attempt)
            except Exception:
                logger.exception(
                    "Failed to record access attempt for session %s",
                    attempt.session_id,
                )
        if not attempt.granted:
            logger.info(
                "Access denied to session %s from %s (%s)",
                attempt.session_id,
                attempt.ip_address,
                attempt.reason,
            )
            await self.notifications.access_denied(AuditRecord(attempt))


class ResourceType(StrEnum):
    """Resources that carry an owner."""

    SESSION = "session"
    PHOTO = "photo"


OwnerLookup = Callable[[UUID], UUID | None]


def build_owner_lookups(
    get_session: Callable[[UUID], SessionRecord | None],
    get_photo: Callable[[UUID], PhotoRecord | None],
) -> dict[ResourceType, OwnerLookup]:
    """Map each resource type to the query that returns its owner id.

    A photo is owned by the owner of the session it belongs to.
    """

    def session_owner(session_id: UUID) -> UUID | None:
        session = get_session(session_id)
        return session.owner_id if session else None

    def photo_owner(photo_id: UUID) -> UUID | None:
        photo = get_photo(photo_id)
        return session_owner(photo.session_id) if photo else None

    return {ResourceType.SESSION: session_owner, ResourceType.PHOTO: photo_owner}


@dataclass
class OwnershipService:
    """Checks that a requester owns (or administers) a resource."""

    lookups: Mapping[ResourceType, OwnerLookup]

    def __post_init__(self) -> None:
        missing = set(ResourceType) - set(self.lookups)
        if missing:
            names = ", ".join(sorted(missing))
            raise ValueError(f"No owner lookup for resource types: {names}")

    def require_owner(
        self,
        requester: Requester | None,
        resource_type: ResourceType,
        resource_id: UUID,
    ) -> None:
        """Raise unless ``requester`` owns the resource or is an admin.

        Resources the requester may not touch are reported as missing.
        """
        if requester is None:
            raise AuthorizationError("Authentication required")
        owner_id = self.lookups[resource_type](resource_id)
        if owner_id is None:
            raise NotFoundError(f"{resource_type.value.capitalize()} not found")
        if owner_id != requester.id and not requester.is_admin:
            logger.warning(
                "User %s tried to modify %s %s they do not own",
                requester.id,
                resource_type.value,
                resource_id,
            )
            raise NotFoundError(f"{resource_type.value.capitalize()} not found")
