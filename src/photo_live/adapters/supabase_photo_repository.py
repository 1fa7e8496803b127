"""Supabase-backed photo ledger.

Every mutation goes through a Postgres function (see ``supabase/migrations``)
that locks the session row, changes the photo and adjusts the counters in
one transaction.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from photo_live.adapters.supabase_session_repository import parse_timestamp
from photo_live.domain.errors import CounterConsistencyError
from photo_live.domain.ingestion import ORIGINAL
from photo_live.domain.photos import (
    ImageMetadata,
    PhotoRecord,
    PhotoStatus,
    StatusChange,
)
from photo_live.domain.sessions import CounterDelta, SessionCounters
from photo_live.services.counters import PhotoLedger

_COLUMNS = (
    "id, session_id, user_id, filename, original_filename, file_size, "
    "mime_type, image_format, width, height, versions, camera_info, "
    "captured_at, status, review_notes, reviewed_by, reviewed_at, "
    "watermark_applied, watermark_text, uploaded_at, published_at"
)
_SESSION_MISSING = "session_not_found"


@dataclass
class SupabasePhotoRepository(PhotoLedger):
    """Supabase implementation for photos and their session counters."""

    client: Client

    def insert_photo(self, photo: PhotoRecord, delta: CounterDelta) -> PhotoRecord:
        """Insert a photo row and apply ``delta`` to its session."""
        row = self._call(
            "ingest_photo",
            {"p_photo": photo_to_row(photo), "p_delta": delta.as_payload()},
            photo.session_id,
        )
        if not row:
            raise RuntimeError("Failed to insert photo")
        return photo_from_row(row)

    def change_status(
        self,
        photo_id: UUID,
        expected: PhotoStatus,
        change: StatusChange,
        delta: CounterDelta,
    ) -> PhotoRecord | None:
        """Apply ``change`` if the stored status is still ``expected``."""
        row = self._call(
            "transition_photo_status",
            {
                "p_photo_id": str(photo_id),
                "p_expected": expected.value,
                "p_change": {
                    "status": change.target.value,
                    "reviewed_by": (
                        str(change.reviewed_by) if change.reviewed_by else None
                    ),
                    "review_notes": change.review_notes,
                    "reviewed_at": _iso(change.reviewed_at),
                    "published_at": _iso(change.published_at),
                },
                "p_delta": delta.as_payload(),
            },
            photo_id,
        )
        return photo_from_row(row) if row else None

    def remove_photo(
        self, photo_id: UUID, expected: PhotoStatus, delta: CounterDelta
    ) -> bool:
        """Delete a photo row if it is still in ``expected``."""
        result = self._call(
            "delete_photo",
            {
                "p_photo_id": str(photo_id),
                "p_expected": expected.value,
                "p_delta": delta.as_payload(),
            },
            photo_id,
        )
        return bool(result and result.get("deleted"))

    def get_photo(self, photo_id: UUID) -> PhotoRecord | None:
        """Return a photo by id, if present."""
        response = (
            self.client.table("photos")
            .select(_COLUMNS)
            .eq("id", str(photo_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return photo_from_row(response.data[0])

    def list_photos(self, session_id: UUID) -> list[PhotoRecord]:
        """Return all photos of a session, newest first."""
        response = (
            self.client.table("photos")
            .select(_COLUMNS)
            .eq("session_id", str(session_id))
            .order("uploaded_at", desc=True)
            .execute()
        )
        return [photo_from_row(row) for row in response.data or []]

    def list_session_ids(self) -> list[UUID]:
        response = self.client.table("sessions").select("id").execute()
        return [UUID(row["id"]) for row in response.data or []]

    def reconcile_counters(self, session_id: UUID) -> SessionCounters:
        """Recompute a session's counters from its photo rows and store them."""
        row = self._call(
            "reconcile_session_counters",
            {"p_session_id": str(session_id)},
            session_id,
        )
        if not row:
            raise RuntimeError(f"Failed to reconcile session {session_id}")
        return SessionCounters(
            total_photos=int(row.get("total_photos", 0)),
            pending_photos=int(row.get("pending_photos", 0)),
            published_photos=int(row.get("published_photos", 0)),
            rejected_photos=int(row.get("rejected_photos", 0)),
            archived_photos=int(row.get("archived_photos", 0)),
            total_views=int(row.get("total_views", 0)),
            unique_viewers=int(row.get("unique_viewers", 0)),
        )

    def _call(
        self, function: str, params: dict[str, object], subject: UUID
    ) -> dict[str, object] | None:
        response = self.client.rpc(function, params).execute()
        data = response.data
        if isinstance(data, list):
            data = data[0] if data else None
        if isinstance(data, dict) and data.get("error") == _SESSION_MISSING:
            raise CounterConsistencyError(
                f"Session for {subject} no longer exists; {function} rolled back"
            )
        return data


def photo_to_row(photo: PhotoRecord) -> dict[str, object]:
    """Serialize a photo for the ``photos`` table."""
    metadata = photo.metadata
    return {
        "id": str(photo.id),
        "session_id": str(photo.session_id),
        "user_id": str(photo.uploader_id),
        "filename": photo.filename,
        "original_filename": photo.original_filename,
        "file_path": photo.versions.get(ORIGINAL),
        "file_size": metadata.size_bytes,
        "mime_type": metadata.mime_type,
        "image_format": metadata.format,
        "width": metadata.width,
        "height": metadata.height,
        "aspect_ratio": round(metadata.aspect_ratio, 4),
        "versions": photo.versions,
        "camera_info": metadata.camera,
        "captured_at": _iso(metadata.captured_at),
        "status": photo.status.value,
        "review_notes": photo.review_notes,
        "reviewed_by": str(photo.reviewed_by) if photo.reviewed_by else None,
        "reviewed_at": _iso(photo.reviewed_at),
        "watermark_applied": photo.watermark_applied,
        "watermark_text": photo.watermark_text,
        "uploaded_at": photo.uploaded_at.isoformat(),
        "published_at": _iso(photo.published_at),
    }


def photo_from_row(row: dict[str, object]) -> PhotoRecord:
    """Build a photo record from a ``photos`` row."""
    reviewed_by = row.get("reviewed_by")
    uploaded_at = parse_timestamp(row.get("uploaded_at"))
    if uploaded_at is None:
        raise RuntimeError(f"Photo {row.get('id')} has no upload time")
    return PhotoRecord(
        id=UUID(str(row["id"])),
        session_id=UUID(str(row["session_id"])),
        uploader_id=UUID(str(row["user_id"])),
        filename=str(row["filename"]),
        original_filename=str(row.get("original_filename") or row["filename"]),
        versions=dict(row.get("versions") or {}),
        metadata=ImageMetadata(
            width=int(row.get("width") or 0),
            height=int(row.get("height") or 0),
            format=str(row.get("image_format") or "JPEG"),
            size_bytes=int(row.get("file_size") or 0),
            mime_type=str(row.get("mime_type") or "image/jpeg"),
            camera=dict(row.get("camera_info") or {}),
            captured_at=parse_timestamp(row.get("captured_at")),
        ),
        status=PhotoStatus(row["status"]),
        uploaded_at=uploaded_at,
        published_at=parse_timestamp(row.get("published_at")),
        reviewed_by=UUID(str(reviewed_by)) if reviewed_by else None,
        review_notes=row.get("review_notes") or None,
        reviewed_at=parse_timestamp(row.get("reviewed_at")),
        watermark_applied=bool(row.get("watermark_applied")),
        watermark_text=row.get("watermark_text") or None,
    )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
