"""Review, archive and delete actions on photos."""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import UUID

from photo_live.domain.errors import NotFoundError
from photo_live.domain.events import PhotoEvent
from photo_live.domain.ingestion import ORIGINAL
from photo_live.domain.models import Requester
from photo_live.domain.photos import (
    PhotoRecord,
    PhotoStatus,
    StatusChange,
    validate_transition,
)
from photo_live.services.access import OwnershipService, ResourceType
from photo_live.services.counters import SessionCounterService
from photo_live.services.notifications import NotificationService
from photo_live.services.storage import ObjectStorage, RetryPolicy, delete_paths

logger = logging.getLogger(__name__)

_REVIEW_OUTCOMES = {PhotoStatus.PUBLISHED, PhotoStatus.REJECTED}


def viewer_copy(photo: PhotoRecord) -> PhotoRecord:
    """Return ``photo`` without the path of its full-size original."""
    versions = {
        name: path for name, path in photo.versions.items() if name != ORIGINAL
    }
    return replace(photo, versions=versions)


@dataclass
class PhotoReviewService:
    """Drives photos through the status state machine."""

    counters: SessionCounterService
    ownership: OwnershipService
    storage: ObjectStorage
    notifications: NotificationService
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def get_photo(self, photo_id: UUID) -> PhotoRecord:
        photo = self.counters.ledger.get_photo(photo_id)
        if photo is None:
            raise NotFoundError("Photo not found")
        return photo

    async def visible_photos(
        self,
        session_id: UUID,
        reviewer: bool,
        status: PhotoStatus | None = None,
    ) -> list[PhotoRecord]:
        """List a session's photos, newest first.

        Reviewers (the owner or an admin) see every status and may filter by
        one. Everyone else only ever sees published photos, and never the
        original's path.
        """
        photos = await asyncio.to_thread(self.counters.ledger.list_photos, session_id)
        if reviewer:
            selected = [p for p in photos if status is None or p.status == status]
        elif status in (None, PhotoStatus.PUBLISHED):
            selected = [
                viewer_copy(p) for p in photos if p.status == PhotoStatus.PUBLISHED
            ]
        else:
            selected = []
        return sorted(selected, key=lambda photo: photo.uploaded_at, reverse=True)

    async def approve(
        self, requester: Requester | None, photo_id: UUID, notes: str | None = None
    ) -> PhotoRecord:
        return await self.transition(requester, photo_id, PhotoStatus.PUBLISHED, notes)

    async def reject(
        self, requester: Requester | None, photo_id: UUID, notes: str | None = None
    ) -> PhotoRecord:
        return await self.transition(requester, photo_id, PhotoStatus.REJECTED, notes)

    async def archive(
        self, requester: Requester | None, photo_id: UUID
    ) -> PhotoRecord:
        return await self.transition(requester, photo_id, PhotoStatus.ARCHIVED)

    async def transition(
        self,
        requester: Requester | None,
        photo_id: UUID,
        target: PhotoStatus,
        notes: str | None = None,
    ) -> PhotoRecord:
        """Validate and commit a status change, then notify viewers."""
        self.ownership.require_owner(requester, ResourceType.PHOTO, photo_id)
        photo = self.get_photo(photo_id)
        if not validate_transition(photo.status, target):
            return photo

        now = datetime.now(tz=UTC)
        is_review = photo.status == PhotoStatus.PENDING and target in _REVIEW_OUTCOMES
        change = StatusChange(
            target=target,
            reviewed_by=requester.id if is_review and requester else None,
            review_notes=notes if is_review else None,
            reviewed_at=now if is_review else None,
            published_at=now if target == PhotoStatus.PUBLISHED else None,
        )
        updated = await asyncio.to_thread(
            self.counters.record_transition, photo, change
        )
        logger.info(
            "Photo %s moved %s -> %s by %s",
            photo_id,
            photo.status,
            updated.status,
            requester.id if requester else None,
        )
        await self.notifications.photo_changed(
            PhotoEvent.from_photo(updated, "photo_status_changed")
        )
        return updated

    async def delete_photo(self, requester: Requester | None, photo_id: UUID) -> None:
        """Delete the photo row (uncounting it) and then its stored variants."""
        self.ownership.require_owner(requester, ResourceType.PHOTO, photo_id)
        photo = self.get_photo(photo_id)
        await self.purge(photo)

    async def purge(self, photo: PhotoRecord) -> None:
        """Remove a photo without an ownership check (caller already did it)."""
        removed = await asyncio.to_thread(self.counters.record_delete, photo)
        if not removed:
            return
        leftovers = await delete_paths(
            self.storage, photo.versions.values(), self.retry
        )
        if leftovers:
            logger.error("Photo %s deleted but objects remain: %s", photo.id, leftovers)
        await self.notifications.photo_changed(
            PhotoEvent(
                session_id=photo.session_id,
                photo_id=photo.id,
                status=None,
                variant_paths={},
                event_type="photo_deleted",
            )
        )
