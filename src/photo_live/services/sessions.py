"""Session management: creation, settings, lifecycle, uploads and photo reads."""

import asyncio
import logging
import re
import secrets
import string
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from photo_live.domain.access import AccessDecision, AccessReason
from photo_live.domain.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from photo_live.domain.ingestion import (
    BatchIngestionResult,
    IngestOptions,
    UploadedFile,
)
from photo_live.domain.models import Requester, RequestOrigin
from photo_live.domain.photos import PhotoRecord, PhotoStatus
from photo_live.domain.sessions import SessionRecord, SessionStatus
from photo_live.services.access import AccessService, OwnershipService, ResourceType
from photo_live.services.ingestion import PhotoIngestionService
from photo_live.services.photos import PhotoReviewService, viewer_copy

logger = logging.getLogger(__name__)

_ACCESS_CODE_PATTERN = re.compile(r"^[A-Z0-9]{4,20}$")
_ACCESS_CODE_ALPHABET = string.ascii_uppercase + string.digits
_GENERATED_CODE_LENGTH = 8
_CODE_GENERATION_ATTEMPTS = 10
_EDITABLE_FIELDS = frozenset(
    {
        "title",
        "is_public",
        "access_code",
        "review_mode",
        "watermark_enabled",
        "watermark_text",
        "watermark_opacity",
    }
)


@dataclass(frozen=True)
class SessionDraft:
    """Values for a new session row."""

    owner_id: UUID
    title: str
    is_public: bool
    access_code: str | None
    review_mode: bool
    watermark_enabled: bool
    watermark_text: str | None
    watermark_opacity: float


class SessionRepository(Protocol):
    """Persistence interface for sessions."""

    def create_session(self, draft: SessionDraft) -> SessionRecord:
        """Create a session and return it."""

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""

    def update_session(
        self, session_id: UUID, changes: dict[str, object]
    ) -> SessionRecord | None:
        """Update columns and return the session, if present."""

    def delete_session(self, session_id: UUID) -> None:
        """Delete a session row."""

    def access_code_in_use(self, access_code: str) -> bool:
        """Return whether any session already uses ``access_code``."""


@dataclass
class SessionService:
    """Application service for sessions."""

    repository: SessionRepository
    access_service: AccessService
    ownership: OwnershipService
    ingestion_service: PhotoIngestionService
    photo_service: PhotoReviewService
    default_review_mode: bool = False
    default_watermark_opacity: float = 0.3

    def create_session(  # noqa: PLR0913
        self,
        requester: Requester | None,
        title: str,
        is_public: bool = False,
        access_code: str | None = None,
        review_mode: bool | None = None,
        watermark_enabled: bool = False,
        watermark_text: str | None = None,
        watermark_opacity: float | None = None,
        generate_code: bool = True,
    ) -> SessionRecord:
        """Create a session owned by the requester.

        Private sessions get a random access code unless one is supplied or
        ``generate_code`` is False (owner/admin-only session).
        """
        if requester is None:
            raise AuthorizationError("Authentication required")
        title = title.strip()
        if not 1 <= len(title) <= 255:
            raise ValidationError("Title must be between 1 and 255 characters")
        if access_code is not None:
            _validate_access_code(access_code)
        elif not is_public and generate_code:
            access_code = self._generate_access_code()

        draft = SessionDraft(
            owner_id=requester.id,
            title=title,
            is_public=is_public,
            access_code=access_code,
            review_mode=(
                self.default_review_mode if review_mode is None else review_mode
            ),
            watermark_enabled=watermark_enabled,
            watermark_text=watermark_text,
            watermark_opacity=_validate_opacity(
                self.default_watermark_opacity
                if watermark_opacity is None
                else watermark_opacity
            ),
        )
        session = self.repository.create_session(draft)
        logger.info("Session %s created by %s", session.id, requester.id)
        return session

    def get_session(self, session_id: UUID) -> SessionRecord:
        session = self.repository.get_session(session_id)
        if session is None:
            raise NotFoundError("Session not found")
        return session

    async def open_session(
        self,
        requester: Requester | None,
        session_id: UUID,
        access_code: str | None,
        origin: RequestOrigin,
    ) -> SessionRecord:
        """Return the session if the requester may view it.

        Missing and denied sessions raise the same ``NotFoundError``.
        """
        session, _ = await self.join(requester, session_id, access_code, origin)
        return session

    async def join(
        self,
        requester: Requester | None,
        session_id: UUID,
        access_code: str | None,
        origin: RequestOrigin,
    ) -> tuple[SessionRecord, AccessDecision]:
        """Verify an access code and return the session with the decision."""
        session = self.get_session(session_id)
        decision = await self.access_service.require(
            requester, session, access_code, origin
        )
        return session, decision

    def update_settings(
        self,
        requester: Requester | None,
        session_id: UUID,
        changes: dict[str, object],
    ) -> SessionRecord:
        """Update owner-editable settings. Counters are never accepted."""
        self.ownership.require_owner(requester, ResourceType.SESSION, session_id)
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be changed: {', '.join(sorted(unknown))}"
            )
        if changes.get("access_code") is not None:
            _validate_access_code(str(changes["access_code"]))
        changes = dict(changes)
        if "watermark_opacity" in changes:
            changes["watermark_opacity"] = _validate_opacity(
                changes["watermark_opacity"]
            )
        if "title" in changes:
            title = str(changes["title"]).strip()
            if not 1 <= len(title) <= 255:
                raise ValidationError("Title must be between 1 and 255 characters")
            changes["title"] = title
        updated = self.repository.update_session(session_id, changes)
        if updated is None:
            raise NotFoundError("Session not found")
        return updated

    def set_status(
        self,
        requester: Requester | None,
        session_id: UUID,
        status: SessionStatus,
    ) -> SessionRecord:
        """Move a session through active/paused/ended/archived."""
        self.ownership.require_owner(requester, ResourceType.SESSION, session_id)
        session = self.get_session(session_id)
        reopening = status != SessionStatus.ARCHIVED
        if session.status == SessionStatus.ARCHIVED and reopening:
            raise ConflictError("Archived sessions cannot be reopened")
        changes: dict[str, object] = {"status": status.value}
        if status == SessionStatus.ENDED and session.ended_at is None:
            changes["ended_at"] = datetime.now(tz=UTC)
        updated = self.repository.update_session(session_id, changes)
        if updated is None:
            raise NotFoundError("Session not found")
        return updated

    async def delete_session(
        self, requester: Requester | None, session_id: UUID, cascade: bool = False
    ) -> int:
        """Delete a session; photos are only removed when ``cascade`` is set.

        Returns the number of photos removed.
        """
        self.ownership.require_owner(requester, ResourceType.SESSION, session_id)
        photos = await asyncio.to_thread(
            self.photo_service.counters.ledger.list_photos, session_id
        )
        if photos and not cascade:
            raise ConflictError(
                f"Session has {len(photos)} photos; pass cascade to delete them"
            )
        for photo in photos:
            await self.photo_service.purge(photo)
        await asyncio.to_thread(self.repository.delete_session, session_id)
        logger.info("Session %s deleted with %s photos", session_id, len(photos))
        return len(photos)

    async def upload_photos(  # noqa: PLR0913
        self,
        requester: Requester | None,
        session_id: UUID,
        uploads: list[UploadedFile],
        access_code: str | None,
        origin: RequestOrigin,
        options: IngestOptions | None = None,
    ) -> BatchIngestionResult:
        """Check access, then ingest every file independently."""
        if requester is None:
            raise AuthorizationError("Authentication required")
        if not uploads:
            raise ValidationError("No files uploaded")
        session = await self.open_session(requester, session_id, access_code, origin)
        if session.status != SessionStatus.ACTIVE:
            raise ConflictError(f"Session is {session.status}, uploads are closed")
        return await self.ingestion_service.ingest_batch(
            uploads, session, requester, options
        )

    async def list_photos(  # noqa: PLR0913
        self,
        requester: Requester | None,
        session_id: UUID,
        access_code: str | None,
        origin: RequestOrigin,
        status: PhotoStatus | None = None,
    ) -> list[PhotoRecord]:
        """Return the photos of a session the requester may enter."""
        _, decision = await self.join(requester, session_id, access_code, origin)
        return await self.photo_service.visible_photos(
            session_id, _is_reviewer(decision), status
        )

    async def view_photo(
        self,
        requester: Requester | None,
        photo_id: UUID,
        access_code: str | None,
        origin: RequestOrigin,
    ) -> PhotoRecord:
        """Return one photo; unpublished photos look missing to viewers."""
        photo = self.photo_service.get_photo(photo_id)
        try:
            _, decision = await self.join(
                requester, photo.session_id, access_code, origin
            )
        except NotFoundError as exc:
            raise NotFoundError("Photo not found") from exc
        if _is_reviewer(decision):
            return photo
        if photo.status != PhotoStatus.PUBLISHED:
            raise NotFoundError("Photo not found")
        return viewer_copy(photo)

    def _generate_access_code(self) -> str:
        for _ in range(_CODE_GENERATION_ATTEMPTS):
            code = "".join(
                secrets.choice(_ACCESS_CODE_ALPHABET)
                for _ in range(_GENERATED_CODE_LENGTH)
            )
            if not self.repository.access_code_in_use(code):
                return code
        raise ConflictError("Could not generate a unique access code")


def _is_reviewer(decision: AccessDecision) -> bool:
    return decision.reason in (AccessReason.OWNER, AccessReason.ADMIN)


def _validate_access_code(code: str) -> None:
    if not _ACCESS_CODE_PATTERN.match(code):
        raise ValidationError(
            "Access code must be 4-20 characters of uppercase letters and digits"
        )


def _validate_opacity(value: object) -> float:
    try:
        opacity = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError("Watermark opacity must be a number") from exc
    if not 0.0 <= opacity <= 1.0:
        raise ValidationError("Watermark opacity must be between 0 and 1")
    return opacity
