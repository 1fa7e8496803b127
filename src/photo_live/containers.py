"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from supabase import Client, create_client

from photo_live.adapters.local_storage import LocalObjectStorage
from photo_live.adapters.realtime_publisher import HttpxRealtimePublisher
from photo_live.adapters.supabase_access_log_repository import (
    SupabaseAccessLogRepository,
)
from photo_live.adapters.supabase_photo_repository import SupabasePhotoRepository
from photo_live.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from photo_live.adapters.supabase_storage import SupabaseObjectStorage
from photo_live.config import Settings, parse_allowed_extensions
from photo_live.services.access import (
    AccessService,
    OwnershipService,
    build_owner_lookups,
)
from photo_live.services.counters import SessionCounterService
from photo_live.services.ingestion import IngestionConfig, PhotoIngestionService
from photo_live.services.notifications import (
    EventPublisher,
    LoggingEventPublisher,
    NotificationService,
)
from photo_live.services.photos import PhotoReviewService
from photo_live.services.sessions import SessionService
from photo_live.services.storage import ObjectStorage, RetryPolicy


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    storage: ObjectStorage
    publisher: EventPublisher
    access_service: AccessService
    counter_service: SessionCounterService
    ingestion_service: PhotoIngestionService
    photo_service: PhotoReviewService
    session_service: SessionService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseSessionRepository(supabase_client)
    photo_repository = SupabasePhotoRepository(supabase_client)
    access_log_repository = SupabaseAccessLogRepository(supabase_client)
    storage = _build_storage(resolved_settings, supabase_client)

    realtime_publisher: HttpxRealtimePublisher | None = None
    publisher: EventPublisher
    if resolved_settings.realtime_enabled:
        realtime_publisher = HttpxRealtimePublisher.create(
            resolved_settings.supabase_url, resolved_settings.supabase_service_key
        )
        publisher = realtime_publisher
    else:
        publisher = LoggingEventPublisher()
    notifications = NotificationService(publisher)

    retry = RetryPolicy(
        attempts=resolved_settings.storage_retry_attempts,
        backoff_seconds=resolved_settings.storage_retry_backoff_seconds,
    )
    counter_service = SessionCounterService(photo_repository)
    ownership = OwnershipService(
        build_owner_lookups(session_repository.get_session, photo_repository.get_photo)
    )
    access_service = AccessService(access_log_repository, notifications)
    ingestion_service = PhotoIngestionService(
        storage=storage,
        counters=counter_service,
        notifications=notifications,
        config=IngestionConfig(
            allowed_extensions=parse_allowed_extensions(
                resolved_settings.allowed_file_types
            ),
            max_file_size=resolved_settings.max_file_size,
            presets=tuple(resolved_settings.presets()),
            original_quality=resolved_settings.original_quality,
            default_watermark_text=resolved_settings.default_watermark_text,
            timeout_seconds=resolved_settings.ingestion_timeout_seconds,
            batch_concurrency=resolved_settings.batch_concurrency,
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
        default_review_mode=resolved_settings.default_review_mode,
        default_watermark_opacity=resolved_settings.default_watermark_opacity,
    )

    async def close_resources() -> None:
        await access_service.drain()
        if realtime_publisher is not None:
            await realtime_publisher.close()

    return AppContainer(
        settings=resolved_settings,
        storage=storage,
        publisher=publisher,
        access_service=access_service,
        counter_service=counter_service,
        ingestion_service=ingestion_service,
        photo_service=photo_service,
        session_service=session_service,
        close_resources=close_resources,
    )


def _build_storage(settings: Settings, client: Client) -> ObjectStorage:
    backend = settings.storage_backend.lower()
    if backend == "local":
        return LocalObjectStorage(Path(settings.local_storage_root))
    if backend == "supabase":
        return SupabaseObjectStorage(client, settings.storage_bucket)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
