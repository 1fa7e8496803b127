"""Shared test fixtures."""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from io import BytesIO
from uuid import UUID, uuid4

import pytest
from PIL import Image

from photo_live.config import Settings, parse_allowed_extensions
from photo_live.containers import AppContainer
from photo_live.domain.access import AccessAttempt
from photo_live.domain.errors import CounterConsistencyError, TransientStorageError
from photo_live.domain.events import AuditRecord, PhotoEvent
from photo_live.domain.models import Requester
from photo_live.domain.photos import (
    ImageMetadata,
    PhotoRecord,
    PhotoStatus,
    StatusChange,
)
from photo_live.domain.sessions import (
    CounterDelta,
    SessionCounters,
    SessionRecord,
    SessionStatus,
    WatermarkConfig,
)
from photo_live.services.access import (
    AccessLogRepository,
    AccessService,
    OwnershipService,
    build_owner_lookups,
)
from photo_live.services.counters import PhotoLedger, SessionCounterService
from photo_live.services.ingestion import IngestionConfig, PhotoIngestionService
from photo_live.services.notifications import EventPublisher, NotificationService
from photo_live.services.photos import PhotoReviewService
from photo_live.services.sessions import (
    SessionDraft,
    SessionRepository,
    SessionService,
)
from photo_live.services.storage import ObjectStorage, RetryPolicy

_WATERMARK_COLUMNS = {
    "watermark_enabled": "enabled",
    "watermark_text": "text",
    "watermark_opacity": "opacity",
}


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session repository for tests."""

    sessions: dict[UUID, SessionRecord] = field(default_factory=dict)
    deleted: list[UUID] = field(default_factory=list)

    def create_session(self, draft: SessionDraft) -> SessionRecord:
        session = SessionRecord(
            id=uuid4(),
            owner_id=draft.owner_id,
            title=draft.title,
            is_public=draft.is_public,
            access_code=draft.access_code,
            status=SessionStatus.ACTIVE,
            review_mode=draft.review_mode,
            watermark=WatermarkConfig(
                enabled=draft.watermark_enabled,
                text=draft.watermark_text,
                opacity=draft.watermark_opacity,
            ),
            created_at=datetime.now(tz=UTC),
        )
        self.sessions[session.id] = session
        return session

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        return self.sessions.get(session_id)

    def update_session(
        self, session_id: UUID, changes: dict[str, object]
    ) -> SessionRecord | None:
        session = self.sessions.get(session_id)
        if session is None:
            return None
        watermark_changes = {
            _WATERMARK_COLUMNS[key]: value
            for key, value in changes.items()
            if key in _WATERMARK_COLUMNS
        }
        record_changes = {
            key: value
            for key, value in changes.items()
            if key not in _WATERMARK_COLUMNS
        }
        if "status" in record_changes:
            record_changes["status"] = SessionStatus(record_changes["status"])
        updated = replace(
            session,
            watermark=replace(session.watermark, **watermark_changes),
            **record_changes,
        )
        self.sessions[session_id] = updated
        return updated

    def delete_session(self, session_id: UUID) -> None:
        self.sessions.pop(session_id, None)
        self.deleted.append(session_id)

    def access_code_in_use(self, access_code: str) -> bool:
        return any(
            session.access_code == access_code for session in self.sessions.values()
        )

    def add(self, session: SessionRecord) -> SessionRecord:
        self.sessions[session.id] = session
        return session


@dataclass
class InMemoryPhotoLedger(PhotoLedger):
    """In-memory photo ledger sharing session rows with the session repository.

    Counter updates are a plain read-modify-write with a pause in between, so
    only the caller's per-session lock keeps concurrent updates from racing.
    ``fail_operations`` makes the named methods raise before changing anything.
    """

    session_repository: InMemorySessionRepository
    photos: dict[UUID, PhotoRecord] = field(default_factory=dict)
    fail_operations: set[str] = field(default_factory=set)
    pause_seconds: float = 0.0

    def insert_photo(self, photo: PhotoRecord, delta: CounterDelta) -> PhotoRecord:
        self._maybe_fail("insert_photo")
        self._apply(photo.session_id, delta, lambda: self._store(photo))
        return photo

    def change_status(
        self,
        photo_id: UUID,
        expected: PhotoStatus,
        change: StatusChange,
        delta: CounterDelta,
    ) -> PhotoRecord | None:
        self._maybe_fail("change_status")
        photo = self.photos.get(photo_id)
        if photo is None or photo.status != expected:
            return None
        updated = replace(
            photo,
            status=change.target,
            reviewed_by=change.reviewed_by or photo.reviewed_by,
            review_notes=change.review_notes or photo.review_notes,
            reviewed_at=change.reviewed_at or photo.reviewed_at,
            published_at=change.published_at or photo.published_at,
        )
        self._apply(photo.session_id, delta, lambda: self._store(updated))
        return updated

    def remove_photo(
        self, photo_id: UUID, expected: PhotoStatus, delta: CounterDelta
    ) -> bool:
        self._maybe_fail("remove_photo")
        photo = self.photos.get(photo_id)
        if photo is None or photo.status != expected:
            return False
        self._apply(photo.session_id, delta, lambda: self.photos.pop(photo_id))
        return True

    def get_photo(self, photo_id: UUID) -> PhotoRecord | None:
        return self.photos.get(photo_id)

    def list_photos(self, session_id: UUID) -> list[PhotoRecord]:
        return [
            photo for photo in self.photos.values() if photo.session_id == session_id
        ]

    def list_session_ids(self) -> list[UUID]:
        return list(self.session_repository.sessions)

    def reconcile_counters(self, session_id: UUID) -> SessionCounters:
        self._maybe_fail("reconcile_counters")
        session = self._session(session_id)
        counters = SessionCounters.from_statuses(
            (photo.status for photo in self.list_photos(session_id)),
            total_views=session.counters.total_views,
            unique_viewers=session.counters.unique_viewers,
        )
        self.session_repository.sessions[session_id] = replace(
            session, counters=counters
        )
        return counters

    def _apply(
        self, session_id: UUID, delta: CounterDelta, mutate: Callable[[], object]
    ) -> None:
        session = self._session(session_id)
        counters = session.counters.apply(delta)
        if not counters.is_consistent:
            raise CounterConsistencyError(f"Counters for {session_id} would break")
        if self.pause_seconds:
            time.sleep(self.pause_seconds)
        mutate()
        current = self._session(session_id)
        self.session_repository.sessions[session_id] = replace(
            current, counters=counters
        )

    def _session(self, session_id: UUID) -> SessionRecord:
        session = self.session_repository.sessions.get(session_id)
        if session is None:
            raise CounterConsistencyError(f"Session {session_id} not found")
        return session

    def _store(self, photo: PhotoRecord) -> None:
        self.photos[photo.id] = photo

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_operations:
            raise RuntimeError(f"{operation} failed: database unavailable")


@dataclass
class InMemoryAccessLogRepository(AccessLogRepository):
    """In-memory access log for tests."""

    attempts: list[AccessAttempt] = field(default_factory=list)
    fail: bool = False

    def create_attempt(self, attempt: AccessAttempt) -> None:
        if self.fail:
            raise RuntimeError("access log unavailable")
        self.attempts.append(attempt)

    def list_attempts(self, session_id: UUID, limit: int) -> list[AccessAttempt]:
        matching = [item for item in self.attempts if item.session_id == session_id]
        return list(reversed(matching))[:limit]


@dataclass
class FakeStorage(ObjectStorage):
    """Dictionary-backed object storage.

    ``transient_failures`` makes that many upcoming writes fail with a
    retryable error; paths containing ``broken_marker`` always fail that way.
    """

    objects: dict[str, bytes] = field(default_factory=dict)
    content_types: dict[str, str] = field(default_factory=dict)
    transient_failures: int = 0
    broken_marker: str | None = None
    write_delay: float = 0.0
    write_attempts: int = 0
    deleted: list[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def write(self, path: str, data: bytes, content_type: str = "image/jpeg") -> None:
        with self._lock:
            self.write_attempts += 1
            if self.transient_failures > 0:
                self.transient_failures -= 1
                raise TransientStorageError(f"Temporary failure writing {path}")
        if self.broken_marker and self.broken_marker in path:
            raise TransientStorageError(f"Storage rejected {path}")
        if self.write_delay:
            time.sleep(self.write_delay)
        with self._lock:
            self.objects[path] = data
            self.content_types[path] = content_type

    def read(self, path: str) -> bytes:
        return self.objects[path]

    def delete(self, path: str) -> None:
        with self._lock:
            self.objects.pop(path, None)
            self.deleted.append(path)

    def exists(self, path: str) -> bool:
        return path in self.objects


@dataclass
class FakeEventPublisher(EventPublisher):
    """Publisher that records events."""

    events: list[PhotoEvent] = field(default_factory=list)
    audits: list[AuditRecord] = field(default_factory=list)
    fail: bool = False

    async def publish_photo_event(self, event: PhotoEvent) -> None:
        if self.fail:
            raise RuntimeError("realtime unavailable")
        self.events.append(event)

    async def publish_audit(self, record: AuditRecord) -> None:
        if self.fail:
            raise RuntimeError("realtime unavailable")
        self.audits.append(record)


def make_image_bytes(
    width: int = 640,
    height: int = 480,
    image_format: str = "JPEG",
    mode: str = "RGB",
    color: tuple[int, ...] = (200, 120, 40),
    exif: Image.Exif | None = None,
) -> bytes:
    """Encode a solid-color image in memory."""
    image = Image.new(mode, (width, height), color)
    buffer = BytesIO()
    if exif is not None:
        image.save(buffer, format=image_format, exif=exif)
    else:
        image.save(buffer, format=image_format)
    return buffer.getvalue()


def make_session(  # noqa: PLR0913
    owner_id: UUID,
    is_public: bool = False,
    access_code: str | None = None,
    status: SessionStatus = SessionStatus.ACTIVE,
    review_mode: bool = False,
    watermark: WatermarkConfig | None = None,
) -> SessionRecord:
    return SessionRecord(
        id=uuid4(),
        owner_id=owner_id,
        title="Wedding",
        is_public=is_public,
        access_code=access_code,
        status=status,
        review_mode=review_mode,
        watermark=watermark or WatermarkConfig(),
    )


def make_photo(
    session_id: UUID, status: PhotoStatus = PhotoStatus.PUBLISHED
) -> PhotoRecord:
    name = f"{uuid4().hex}.jpg"
    return PhotoRecord(
        id=uuid4(),
        session_id=session_id,
        uploader_id=uuid4(),
        filename=name,
        original_filename="IMG_0001.jpg",
        versions={
            "original": f"photos/{session_id}/original/{name}",
            "thumbnail": f"photos/{session_id}/thumbnail/{name}",
        },
        metadata=ImageMetadata(
            width=640,
            height=480,
            format="jpeg",
            size_bytes=1024,
            mime_type="image/jpeg",
        ),
        status=status,
        uploaded_at=datetime.now(tz=UTC),
    )


@dataclass
class ServiceBundle:
    """Services wired over in-memory fakes, plus handles to the fakes."""

    session_repository: InMemorySessionRepository
    ledger: InMemoryPhotoLedger
    access_log: InMemoryAccessLogRepository
    storage: FakeStorage
    publisher: FakeEventPublisher
    access_service: AccessService
    counter_service: SessionCounterService
    ingestion_service: PhotoIngestionService
    photo_service: PhotoReviewService
    session_service: SessionService


def build_services(settings: Settings) -> ServiceBundle:
    session_repository = InMemorySessionRepository()
    ledger = InMemoryPhotoLedger(session_repository)
    access_log = InMemoryAccessLogRepository()
    storage = FakeStorage()
    publisher = FakeEventPublisher()
    notifications = NotificationService(publisher)
    retry = RetryPolicy(
        attempts=settings.storage_retry_attempts,
        backoff_seconds=settings.storage_retry_backoff_seconds,
    )
    counter_service = SessionCounterService(ledger)
    ownership = OwnershipService(
        build_owner_lookups(session_repository.get_session, ledger.get_photo)
    )
    access_service = AccessService(access_log, notifications)
    ingestion_service = PhotoIngestionService(
        storage=storage,
        counters=counter_service,
        notifications=notifications,
        config=IngestionConfig(
            allowed_extensions=parse_allowed_extensions(settings.allowed_file_types),
            max_file_size=settings.max_file_size,
            presets=tuple(settings.presets()),
            original_quality=settings.original_quality,
            default_watermark_text=settings.default_watermark_text,
            timeout_seconds=settings.ingestion_timeout_seconds,
            batch_concurrency=settings.batch_concurrency,
        ),
        retry=retry,
    )
    photo_service = PhotoReviewService(
        counters=counter_service,
        ownership=ownership,
        storage=storage,
        notifications=notifications,
        retry=retry,
    )
    session_service = SessionService(
        repository=session_repository,
        access_service=access_service,
        ownership=ownership,
        ingestion_service=ingestion_service,
        photo_service=photo_service,
        default_review_mode=settings.default_review_mode,
        default_watermark_opacity=settings.default_watermark_opacity,
    )
    return ServiceBundle(
        session_repository=session_repository,
        ledger=ledger,
        access_log=access_log,
        storage=storage,
        publisher=publisher,
        access_service=access_service,
        counter_service=counter_service,
        ingestion_service=ingestion_service,
        photo_service=photo_service,
        session_service=session_service,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        admin_token="admin-token",
        storage_retry_backoff_seconds=0.0,
        realtime_enabled=False,
    )


@pytest.fixture
def owner() -> Requester:
    return Requester(id=uuid4())


@pytest.fixture
def admin() -> Requester:
    return Requester(id=uuid4(), role="admin")


@pytest.fixture
def services(settings: Settings) -> ServiceBundle:
    return build_services(settings)


@pytest.fixture
def container(settings: Settings, services: ServiceBundle) -> AppContainer:
    async def close_resources() -> None:
        await services.access_service.drain()

    return AppContainer(
        settings=settings,
        storage=services.storage,
        publisher=services.publisher,
        access_service=services.access_service,
        counter_service=services.counter_service,
        ingestion_service=services.ingestion_service,
        photo_service=services.photo_service,
        session_service=services.session_service,
        close_resources=close_resources,
    )
