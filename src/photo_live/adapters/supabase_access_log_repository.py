"""Supabase repository for session access attempts."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from photo_live.adapters.supabase_session_repository import parse_timestamp
from photo_live.domain.access import AccessAttempt, AccessReason
from photo_live.services.access import AccessLogRepository


@dataclass
class SupabaseAccessLogRepository(AccessLogRepository):
    """Supabase-backed access log. Rows are only ever appended."""

    client: Client

    def create_attempt(self, attempt: AccessAttempt) -> None:
        """Create an access log row."""
        self.client.table("session_access_logs").insert(
            {
                "session_id": str(attempt.session_id),
                "ip_address": attempt.ip_address,
                "user_agent": attempt.user_agent,
                "access_code_used": attempt.supplied_code,
                "access_granted": attempt.granted,
                "reason": attempt.reason.value,
                "client_type": attempt.client_type,
                "created_at": attempt.created_at.isoformat(),
            }
        ).execute()

    def list_attempts(self, session_id: UUID, limit: int) -> list[AccessAttempt]:
        """Return the most recent attempts for a session."""
        response = (
            self.client.table("session_access_logs")
            .select(
                "session_id, ip_address, user_agent, access_code_used, "
                "access_granted, reason, client_type, created_at"
            )
            .eq("session_id", str(session_id))
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [
            AccessAttempt(
                session_id=UUID(row["session_id"]),
                ip_address=row.get("ip_address") or "",
                user_agent=row.get("user_agent") or "",
                supplied_code=row.get("access_code_used"),
                granted=bool(row.get("access_granted")),
                reason=AccessReason(row.get("reason") or AccessReason.NO_MATCH),
                client_type=row.get("client_type") or "viewer",
                created_at=parse_timestamp(row.get("created_at")) or datetime.min,
            )
            for row in response.data or []
        ]
