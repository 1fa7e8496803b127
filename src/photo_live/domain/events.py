"""Events handed to the real-time notification layer."""

from dataclasses import dataclass, replace
from uuid import UUID

from photo_live.domain.access import AccessAttempt
from photo_live.domain.ingestion import ORIGINAL
from photo_live.domain.photos import PhotoRecord, PhotoStatus


@dataclass(frozen=True)
class PhotoEvent:
    """Live update fanned out to a session's viewers."""

    session_id: UUID
    photo_id: UUID
    status: PhotoStatus | None
    variant_paths: dict[str, str]
    event_type: str = "photo_updated"

    @classmethod
    def from_photo(cls, photo: PhotoRecord, event_type: str) -> "PhotoEvent":
        return cls(
            session_id=photo.session_id,
            photo_id=photo.id,
            status=photo.status,
            variant_paths=dict(photo.versions),
            event_type=event_type,
        )

    @property
    def viewer_visible(self) -> bool:
        """Only published photos and deletions reach the viewer channel."""
        return self.status is None or self.status == PhotoStatus.PUBLISHED

    def for_viewers(self) -> "PhotoEvent":
        """Copy of the event without the full-size original."""
        paths = {
            name: path
            for name, path in self.variant_paths.items()
            if name != ORIGINAL
        }
        return replace(self, variant_paths=paths)

    def as_payload(self) -> dict[str, object]:
        return {
            "sessionId": str(self.session_id),
            "photoId": str(self.photo_id),
            "status": self.status.value if self.status else None,
            "variantPaths": self.variant_paths,
        }


@dataclass(frozen=True)
class AuditRecord:
    """Audit entry emitted after a denied access attempt."""

    attempt: AccessAttempt

    def as_payload(self) -> dict[str, object]:
        attempt = self.attempt
        return {
            "sessionId": str(attempt.session_id),
            "ipAddress": attempt.ip_address,
            "granted": attempt.granted,
            "reason": attempt.reason.value,
            "clientType": attempt.client_type,
            "createdAt": attempt.created_at.isoformat(),
        }
