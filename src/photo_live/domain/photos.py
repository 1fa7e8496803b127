"""Domain models and status state machine for photos."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from photo_live.domain.errors import ConflictError, ValidationError


class PhotoStatus(StrEnum):
    """Review/publish status of a photo."""

    PENDING = "pending"
    PUBLISHED = "published"
    REJECTED = "rejected"
    ARCHIVED = "archived"


_ALLOWED_TRANSITIONS: dict[PhotoStatus, frozenset[PhotoStatus]] = {
    PhotoStatus.PENDING: frozenset({PhotoStatus.PUBLISHED, PhotoStatus.REJECTED}),
    PhotoStatus.PUBLISHED: frozenset({PhotoStatus.ARCHIVED}),
    PhotoStatus.REJECTED: frozenset({PhotoStatus.ARCHIVED}),
    PhotoStatus.ARCHIVED: frozenset(),
}


def initial_status(review_mode: bool) -> PhotoStatus:
    """Return the status a freshly ingested photo starts in."""
    return PhotoStatus.PENDING if review_mode else PhotoStatus.PUBLISHED


def validate_transition(current: PhotoStatus, target: PhotoStatus) -> bool:
    """Check a status change before it is written.

    Returns False when the photo is already in ``target`` (nothing to do) and
    True when the change is legal. Archiving a photo that was never reviewed is
    a validation error; every other illegal change is a conflict.
    """
    if current == target:
        return False
    if current == PhotoStatus.PENDING and target == PhotoStatus.ARCHIVED:
        raise ValidationError("Pending photos must be reviewed before archiving")
    if target not in _ALLOWED_TRANSITIONS[current]:
        raise ConflictError(f"Cannot move photo from {current} to {target}")
    return True


@dataclass(frozen=True)
class ImageMetadata:
    """Intrinsic properties of an uploaded image."""

    width: int
    height: int
    format: str
    size_bytes: int
    mime_type: str
    camera: dict[str, str] = field(default_factory=dict)
    captured_at: datetime | None = None

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height else 0.0


@dataclass(frozen=True)
class PhotoRecord:
    """Represents a persisted photo."""

    id: UUID
    session_id: UUID
    uploader_id: UUID
    filename: str
    original_filename: str
    versions: dict[str, str]
    metadata: ImageMetadata
    status: PhotoStatus
    uploaded_at: datetime
    published_at: datetime | None = None
    reviewed_by: UUID | None = None
    review_notes: str | None = None
    reviewed_at: datetime | None = None
    watermark_applied: bool = False
    watermark_text: str | None = None


@dataclass(frozen=True)
class StatusChange:
    """Fields written together with a status transition."""

    target: PhotoStatus
    reviewed_by: UUID | None = None
    review_notes: str | None = None
    reviewed_at: datetime | None = None
    published_at: datetime | None = None
