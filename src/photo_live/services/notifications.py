"""Fan-out of photo events and audit records."""

import logging
from dataclasses import dataclass
from typing import Protocol

from photo_live.domain.events import AuditRecord, PhotoEvent

logger = logging.getLogger(__name__)


class EventPublisher(Protocol):
    """Interface to the real-time notification layer."""

    async def publish_photo_event(self, event: PhotoEvent) -> None:
        """Send a live update to a session's viewers."""

    async def publish_audit(self, record: AuditRecord) -> None:
        """Send an audit record for a denied access attempt."""


@dataclass
class NotificationService:
    """Publishes events without letting transport errors reach the caller."""

    publisher: EventPublisher

    async def photo_changed(self, event: PhotoEvent) -> None:
        try:
            await self.publisher.publish_photo_event(event)
        except Exception:
            logger.exception(
                "Failed to publish %s for photo %s", event.event_type, event.photo_id
            )

    async def access_denied(self, record: AuditRecord) -> None:
        try:
            await self.publisher.publish_audit(record)
        except Exception:
            logger.exception(
                "Failed to publish audit record for session %s",
                record.attempt.session_id,
            )


@dataclass
class LoggingEventPublisher(EventPublisher):
    """Publisher used when real-time fan-out is disabled."""

    async def publish_photo_event(self, event: PhotoEvent) -> None:
        logger.info(
            "Photo event %s: session=%s photo=%s status=%s",
            event.event_type,
            event.session_id,
            event.photo_id,
            event.status,
        )

    async def publish_audit(self, record: AuditRecord) -> None:
        logger.info("Access audit: %s", record.as_payload())
