"""Access decisions for sessions.

The decision is a pure function of the requester, the session record and the
supplied access code. Writing the access log is left to the caller, guided by
``AccessDecision.should_log``.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from photo_live.domain.errors import MalformedRecordError
from photo_live.domain.models import Requester
from photo_live.domain.sessions import SessionRecord, SessionStatus


class AccessReason(StrEnum):
    """Why access was granted or denied."""

    OWNER = "owner"
    ADMIN = "admin"
    ENDED = "ended"
    PUBLIC = "public"
    ACCESS_CODE = "access_code"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of an access check."""

    granted: bool
    reason: AccessReason
    should_log: bool = False


@dataclass(frozen=True)
class AccessAttempt:
    """Append-only record of a code-gated access attempt."""

    session_id: UUID
    ip_address: str
    user_agent: str
    supplied_code: str | None
    granted: bool
    reason: AccessReason
    client_type: str
    created_at: datetime


def decide(
    requester: Requester | None,
    session: SessionRecord,
    supplied_code: str | None,
) -> AccessDecision:
    """Decide whether ``requester`` may enter ``session``.

    Rules are evaluated in order and the first match wins. Only code-gated
    outcomes ask for an access-log entry; owner, admin and public traffic is
    trusted and not logged.
    """
    if session.owner_id is None:
        raise MalformedRecordError(f"Session {session.id} has no owner")

    if requester is not None and requester.id == session.owner_id:
        return AccessDecision(granted=True, reason=AccessReason.OWNER)
    if requester is not None and requester.is_admin:
        return AccessDecision(granted=True, reason=AccessReason.ADMIN)
    if not session.is_public and session.status == SessionStatus.ENDED:
        return AccessDecision(granted=False, reason=AccessReason.ENDED)
    if session.is_public:
        return AccessDecision(granted=True, reason=AccessReason.PUBLIC)
    if session.access_code and supplied_code == session.access_code:
        return AccessDecision(
            granted=True, reason=AccessReason.ACCESS_CODE, should_log=True
        )
    return AccessDecision(granted=False, reason=AccessReason.NO_MATCH, should_log=True)


def client_type(requester: Requester | None) -> str:
    """Classify the requester for the access log."""
    if requester is None:
        return "viewer"
    if requester.is_admin:
        return "admin"
    return "photographer"
