"""Supabase-backed session repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from photo_live.domain.sessions import (
    SessionCounters,
    SessionRecord,
    SessionStatus,
    WatermarkConfig,
)
from photo_live.services.sessions import SessionDraft, SessionRepository

_COLUMNS = (
    "id, user_id, title, is_public, access_code, status, review_mode, "
    "watermark_enabled, watermark_text, watermark_opacity, total_photos, "
    "pending_photos, published_photos, rejected_photos, archived_photos, "
    "total_views, unique_viewers, created_at, ended_at"
)


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for shoot sessions."""

    client: Client

    def create_session(self, draft: SessionDraft) -> SessionRecord:
        """Create a session row and return it."""
        response = (
            self.client.table("sessions")
            .insert(
                {
                    "user_id": str(draft.owner_id),
                    "title": draft.title,
                    "is_public": draft.is_public,
                    "access_code": draft.access_code,
                    "review_mode": draft.review_mode,
                    "watermark_enabled": draft.watermark_enabled,
                    "watermark_text": draft.watermark_text,
                    "watermark_opacity": draft.watermark_opacity,
                    "status": SessionStatus.ACTIVE.value,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create session")
        return session_from_row(response.data[0])

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""
        response = (
            self.client.table("sessions")
            .select(_COLUMNS)
            .eq("id", str(session_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return session_from_row(response.data[0])

    def update_session(
        self, session_id: UUID, changes: dict[str, object]
    ) -> SessionRecord | None:
        """Update columns and return the session, if present."""
        payload = {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in changes.items()
        }
        payload["updated_at"] = datetime.now(tz=UTC).isoformat()
        response = (
            self.client.table("sessions")
            .update(payload)
            .eq("id", str(session_id))
            .execute()
        )
        if not response.data:
            return None
        return session_from_row(response.data[0])

    def delete_session(self, session_id: UUID) -> None:
        """Delete a session row."""
        self.client.table("sessions").delete().eq("id", str(session_id)).execute()

    def access_code_in_use(self, access_code: str) -> bool:
        response = (
            self.client.table("sessions")
            .select("id")
            .eq("access_code", access_code)
            .limit(1)
            .execute()
        )
        return bool(response.data)


def session_from_row(row: dict[str, object]) -> SessionRecord:
    """Build a session record from a ``sessions`` row."""
    owner = row.get("user_id")
    return SessionRecord(
        id=UUID(str(row["id"])),
        owner_id=UUID(str(owner)) if owner else None,
        title=str(row.get("title") or ""),
        is_public=bool(row.get("is_public")),
        access_code=row.get("access_code") or None,
        status=SessionStatus(row.get("status") or SessionStatus.ACTIVE.value),
        review_mode=bool(row.get("review_mode")),
        watermark=WatermarkConfig(
            enabled=bool(row.get("watermark_enabled")),
            text=row.get("watermark_text") or None,
            opacity=_opacity(row.get("watermark_opacity")),
        ),
        counters=SessionCounters(
            total_photos=int(row.get("total_photos") or 0),
            pending_photos=int(row.get("pending_photos") or 0),
            published_photos=int(row.get("published_photos") or 0),
            rejected_photos=int(row.get("rejected_photos") or 0),
            archived_photos=int(row.get("archived_photos") or 0),
            total_views=int(row.get("total_views") or 0),
            unique_viewers=int(row.get("unique_viewers") or 0),
        ),
        created_at=parse_timestamp(row.get("created_at")),
        ended_at=parse_timestamp(row.get("ended_at")),
    )


def _opacity(raw: object) -> float:
    return 0.3 if raw is None else float(raw)


def parse_timestamp(raw: object) -> datetime | None:
    """Parse an ISO timestamp column; empty values become None."""
    if isinstance(raw, str) and raw:
        return datetime.fromisoformat(raw)
    return None
