"""Models for the photo ingestion pipeline."""

from dataclasses import dataclass, field

from photo_live.domain.errors import PhotoLiveError
from photo_live.domain.photos import PhotoRecord

THUMBNAIL = "thumbnail"
ORIGINAL = "original"


@dataclass(frozen=True)
class ResolutionPreset:
    """Bounding box and JPEG quality for one derived variant."""

    name: str
    width: int
    height: int
    quality: int


@dataclass(frozen=True)
class UploadedFile:
    """Raw file payload handed over by the transport layer."""

    content: bytes
    original_name: str
    size_bytes: int
    content_type: str | None = None


@dataclass(frozen=True)
class IngestOptions:
    """Per-upload switches on top of the session settings."""

    review_required: bool = False
    watermark_text: str | None = None


@dataclass(frozen=True)
class IngestionResult:
    """A stored photo plus any non-fatal warnings raised along the way."""

    photo: PhotoRecord
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class IngestionFailure:
    """A single file that failed inside a batch."""

    index: int
    original_name: str
    error: PhotoLiveError


@dataclass(frozen=True)
class BatchIngestionResult:
    """Partition of a batch into successes and typed failures."""

    succeeded: list[IngestionResult]
    failed: list[IngestionFailure]
