"""Pydantic models for request and response payloads."""

from dataclasses import asdict
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from photo_live.domain.ingestion import BatchIngestionResult
from photo_live.domain.models import Requester
from photo_live.domain.photos import PhotoRecord, PhotoStatus
from photo_live.domain.sessions import SessionRecord, SessionStatus


class SessionCreateRequest(BaseModel):
    """Payload for creating a session."""

    title: str
    is_public: bool = False
    access_code: str | None = None
    review_mode: bool | None = None
    watermark_enabled: bool = False
    watermark_text: str | None = None
    watermark_opacity: float | None = None
    generate_code: bool = True


class SessionUpdateRequest(BaseModel):
    """Partial settings update; unknown fields are passed on and rejected."""

    model_config = ConfigDict(extra="allow")

    title: str | None = None
    is_public: bool | None = None
    access_code: str | None = None
    review_mode: bool | None = None
    watermark_enabled: bool | None = None
    watermark_text: str | None = None
    watermark_opacity: float | None = None


class SessionStatusRequest(BaseModel):
    status: SessionStatus


class JoinRequest(BaseModel):
    access_code: str | None = None


class ReviewRequest(BaseModel):
    notes: str | None = None


class WatermarkPayload(BaseModel):
    enabled: bool
    text: str | None
    opacity: float


class SessionResponse(BaseModel):
    """Session as returned to clients.

    The access code is only included for the owner and admins.
    """

    id: UUID
    owner_id: UUID | None
    title: str
    is_public: bool
    status: SessionStatus
    review_mode: bool
    access_code: str | None = None
    watermark: WatermarkPayload
    counters: dict[str, int]
    created_at: datetime | None = None
    ended_at: datetime | None = None

    @classmethod
    def from_record(
        cls, session: SessionRecord, requester: Requester | None
    ) -> "SessionResponse":
        privileged = requester is not None and (
            requester.is_admin or requester.id == session.owner_id
        )
        return cls(
            id=session.id,
            owner_id=session.owner_id,
            title=session.title,
            is_public=session.is_public,
            status=session.status,
            review_mode=session.review_mode,
            access_code=session.access_code if privileged else None,
            watermark=WatermarkPayload(
                enabled=session.watermark.enabled,
                text=session.watermark.text,
                opacity=session.watermark.opacity,
            ),
            counters=asdict(session.counters),
            created_at=session.created_at,
            ended_at=session.ended_at,
        )


class PhotoResponse(BaseModel):
    """Photo as returned to clients."""

    id: UUID
    session_id: UUID
    filename: str
    original_filename: str
    status: PhotoStatus
    versions: dict[str, str]
    width: int
    height: int
    format: str
    size_bytes: int
    mime_type: str
    aspect_ratio: float
    camera: dict[str, str]
    captured_at: datetime | None = None
    uploaded_at: datetime
    published_at: datetime | None = None
    reviewed_by: UUID | None = None
    review_notes: str | None = None
    reviewed_at: datetime | None = None
    watermark_applied: bool = False

    @classmethod
    def from_record(cls, photo: PhotoRecord) -> "PhotoResponse":
        metadata = photo.metadata
        return cls(
            id=photo.id,
            session_id=photo.session_id,
            filename=photo.filename,
            original_filename=photo.original_filename,
            status=photo.status,
            versions=photo.versions,
            width=metadata.width,
            height=metadata.height,
            format=metadata.format,
            size_bytes=metadata.size_bytes,
            mime_type=metadata.mime_type,
            aspect_ratio=round(metadata.aspect_ratio, 4),
            camera=metadata.camera,
            captured_at=metadata.captured_at,
            uploaded_at=photo.uploaded_at,
            published_at=photo.published_at,
            reviewed_by=photo.reviewed_by,
            review_notes=photo.review_notes,
            reviewed_at=photo.reviewed_at,
            watermark_applied=photo.watermark_applied,
        )


class UploadSuccess(BaseModel):
    photo: PhotoResponse
    warnings: list[str]


class UploadFailure(BaseModel):
    index: int
    filename: str
    error: str
    detail: str


class UploadResponse(BaseModel):
    succeeded: list[UploadSuccess]
    failed: list[UploadFailure]

    @classmethod
    def from_result(cls, result: BatchIngestionResult) -> "UploadResponse":
        return cls(
            succeeded=[
                UploadSuccess(
                    photo=PhotoResponse.from_record(item.photo),
                    warnings=item.warnings,
                )
                for item in result.succeeded
            ],
            failed=[
                UploadFailure(
                    index=item.index,
                    filename=item.original_name,
                    error=item.error.code,
                    detail=str(item.error),
                )
                for item in result.failed
            ],
        )


class PhotoListResponse(BaseModel):
    photos: list[PhotoResponse]

    @classmethod
    def from_records(cls, photos: list[PhotoRecord]) -> "PhotoListResponse":
        return cls(photos=[PhotoResponse.from_record(photo) for photo in photos])
