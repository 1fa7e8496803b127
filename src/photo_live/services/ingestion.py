"""Photo ingestion pipeline.

validate -> unique name -> decode/metadata -> store original ->
derive variants (concurrently, optionally watermarked) -> insert the photo
row together with its counter adjustment.

Every object written during an attempt is tracked so that a failure, a
timeout or a cancellation leaves nothing behind in storage.
"""

import asyncio
import logging
import secrets
import threading
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import PurePosixPath
from uuid import uuid4

from PIL import Image

from photo_live.domain.errors import (
    IngestionFailedError,
    IngestionTimeoutError,
    PhotoLiveError,
    TooLargeError,
    UnsupportedTypeError,
)
from photo_live.domain.events import PhotoEvent
from photo_live.domain.ingestion import (
    ORIGINAL,
    BatchIngestionResult,
    IngestionFailure,
    IngestionResult,
    IngestOptions,
    ResolutionPreset,
    UploadedFile,
)
from photo_live.domain.models import Requester
from photo_live.domain.photos import PhotoRecord, PhotoStatus, initial_status
from photo_live.domain.sessions import SessionRecord
from photo_live.services.counters import SessionCounterService
from photo_live.services.metadata import DecodedImage, decode_image
from photo_live.services.notifications import NotificationService
from photo_live.services.resolutions import derive_variant, encode_jpeg
from photo_live.services.storage import (
    ObjectStorage,
    RetryPolicy,
    delete_paths,
    original_path,
    variant_path,
)
from photo_live.services.watermark import apply_text_watermark, should_watermark

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestionConfig:
    """Limits and presets applied to every upload."""

    allowed_extensions: frozenset[str]
    max_file_size: int
    presets: tuple[ResolutionPreset, ...]
    original_quality: int = 95
    default_watermark_text: str | None = None
    timeout_seconds: float = 60.0
    batch_concurrency: int = 4


@dataclass(frozen=True)
class _Variant:
    name: str
    path: str
    watermarked: bool
    warning: str | None = None


class _ArtifactTracker:
    """Records storage writes of one ingestion attempt.

    Once closed, new writes are refused and a write that was already in
    flight deletes its own object when it completes.
    """

    def __init__(self, storage: ObjectStorage) -> None:
        self._storage = storage
        self._lock = threading.Lock()
        self._paths: list[str] = []
        self._closed = False

    def write(self, path: str, data: bytes) -> None:
        with self._lock:
            if self._closed:
                raise IngestionTimeoutError("Ingestion was aborted")
            if path not in self._paths:
                self._paths.append(path)
        self._storage.write(path, data, "image/jpeg")
        with self._lock:
            aborted = self._closed
        if aborted:
            self._storage.delete(path)

    def close(self) -> list[str]:
        with self._lock:
            self._closed = True
            return list(self._paths)


async def _settles_ok(future: asyncio.Future[PhotoRecord]) -> bool:
    try:
        await future
    except Exception:
        return False
    return True


def unique_filename(extension: str) -> str:
    """Millisecond timestamp plus 64 random bits, keeping the extension."""
    return f"{int(time.time() * 1000)}_{secrets.token_hex(8)}.{extension}"


@dataclass
class PhotoIngestionService:
    """Turns uploaded files into stored variants and photo rows."""

    storage: ObjectStorage
    counters: SessionCounterService
    notifications: NotificationService
    config: IngestionConfig
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def validate(self, upload: UploadedFile) -> str:
        """Check type and size; return the normalized extension."""
        extension = PurePosixPath(upload.original_name).suffix.lower().lstrip(".")
        if extension not in self.config.allowed_extensions:
            raise UnsupportedTypeError(
                f"Unsupported file type: {extension or upload.original_name}"
            )
        size = max(upload.size_bytes, len(upload.content))
        if size > self.config.max_file_size:
            raise TooLargeError(
                f"{upload.original_name} is {size} bytes, "
                f"limit is {self.config.max_file_size}"
            )
        return extension

    async def ingest(
        self,
        upload: UploadedFile,
        session: SessionRecord,
        uploader: Requester,
        options: IngestOptions | None = None,
    ) -> IngestionResult:
        """Run the full pipeline for one file."""
        options = options or IngestOptions()
        extension = self.validate(upload)
        tracker = _ArtifactTracker(self.storage)
        insert: asyncio.Future[PhotoRecord] | None = None
        try:
            photo, warnings = await asyncio.wait_for(
                self._process(upload, extension, session, uploader, options, tracker),
                timeout=self.config.timeout_seconds,
            )
            insert = asyncio.ensure_future(
                asyncio.to_thread(self.counters.record_create, photo)
            )
            stored = await asyncio.shield(insert)
        except TimeoutError as exc:
            await self._discard(tracker)
            raise IngestionTimeoutError(
                f"Processing {upload.original_name} exceeded "
                f"{self.config.timeout_seconds}s"
            ) from exc
        except asyncio.CancelledError:
            # A row that still commits must keep its variants.
            if insert is None or not await _settles_ok(insert):
                await self._discard(tracker)
            raise
        except BaseException:
            await self._discard(tracker)
            raise

        logger.info(
            "Ingested %s into session %s as %s (%sx%s, %s)",
            upload.original_name,
            session.id,
            stored.filename,
            stored.metadata.width,
            stored.metadata.height,
            stored.status,
        )
        await self.notifications.photo_changed(
            PhotoEvent.from_photo(stored, "photo_uploaded")
        )
        return IngestionResult(photo=stored, warnings=warnings)

    async def ingest_batch(
        self,
        uploads: list[UploadedFile],
        session: SessionRecord,
        uploader: Requester,
        options: IngestOptions | None = None,
    ) -> BatchIngestionResult:
        """Ingest files independently with bounded concurrency."""
        semaphore = asyncio.Semaphore(self.config.batch_concurrency)

        async def run_one(
            index: int, upload: UploadedFile
        ) -> IngestionResult | IngestionFailure:
            async with semaphore:
                try:
                    return await self.ingest(upload, session, uploader, options)
                except PhotoLiveError as exc:
                    logger.warning(
                        "Failed to ingest %s into session %s: %s",
                        upload.original_name,
                        session.id,
                        exc,
                    )
                    error: PhotoLiveError = exc
                except Exception as exc:
                    logger.exception(
                        "Unexpected error ingesting %s into session %s",
                        upload.original_name,
                        session.id,
                    )
                    error = IngestionFailedError(
                        f"Could not ingest {upload.original_name}: {exc}"
                    )
                return IngestionFailure(
                    index=index, original_name=upload.original_name, error=error
                )

        outcomes = await asyncio.gather(
            *(run_one(index, upload) for index, upload in enumerate(uploads))
        )
        succeeded = [item for item in outcomes if isinstance(item, IngestionResult)]
        failed = [item for item in outcomes if isinstance(item, IngestionFailure)]
        return BatchIngestionResult(succeeded=succeeded, failed=failed)

    async def _process(  # noqa: PLR0913
        self,
        upload: UploadedFile,
        extension: str,
        session: SessionRecord,
        uploader: Requester,
        options: IngestOptions,
        tracker: _ArtifactTracker,
    ) -> tuple[PhotoRecord, list[str]]:
        filename = unique_filename(extension)
        decoded: DecodedImage = await asyncio.to_thread(
            decode_image, upload.content, upload.original_name
        )

        original = original_path(session.id, filename)
        original_bytes = await asyncio.to_thread(
            encode_jpeg, decoded.image, self.config.original_quality
        )
        await self._write(tracker, original, original_bytes)

        watermark_text = self._watermark_text(session, options)
        variants = await asyncio.gather(
            *(
                self._derive(
                    tracker, session, decoded.image, preset, filename, watermark_text
                )
                for preset in self.config.presets
            )
        )

        now = datetime.now(tz=UTC)
        status = initial_status(session.review_mode or options.review_required)
        versions = {ORIGINAL: original}
        versions.update({variant.name: variant.path for variant in variants})
        watermark_applied = any(variant.watermarked for variant in variants)
        photo = PhotoRecord(
            id=uuid4(),
            session_id=session.id,
            uploader_id=uploader.id,
            filename=filename,
            original_filename=upload.original_name,
            versions=versions,
            metadata=decoded.metadata,
            status=status,
            uploaded_at=now,
            published_at=now if status == PhotoStatus.PUBLISHED else None,
            watermark_applied=watermark_applied,
            watermark_text=watermark_text if watermark_applied else None,
        )
        warnings = [variant.warning for variant in variants if variant.warning]
        return photo, warnings

    async def _derive(  # noqa: PLR0913
        self,
        tracker: _ArtifactTracker,
        session: SessionRecord,
        source: Image.Image,
        preset: ResolutionPreset,
        filename: str,
        watermark_text: str | None,
    ) -> _Variant:
        image = await asyncio.to_thread(derive_variant, source, preset)
        watermarked = False
        warning = None
        if watermark_text and should_watermark(preset.name):
            try:
                image = await asyncio.to_thread(
                    apply_text_watermark,
                    image,
                    watermark_text,
                    session.watermark.opacity,
                    preset.name,
                )
                watermarked = True
            except Exception as exc:
                warning = f"Watermark skipped for {preset.name}: {exc}"
                logger.warning(
                    "Watermark failed for %s variant in session %s: %s",
                    preset.name,
                    session.id,
                    exc,
                )
        data = await asyncio.to_thread(encode_jpeg, image, preset.quality)
        path = variant_path(session.id, preset.name, filename)
        await self._write(tracker, path, data)
        return _Variant(
            name=preset.name, path=path, watermarked=watermarked, warning=warning
        )

    async def _write(self, tracker: _ArtifactTracker, path: str, data: bytes) -> None:
        await self.retry.run(lambda: tracker.write(path, data), f"Storing {path}")

    def _watermark_text(
        self, session: SessionRecord, options: IngestOptions
    ) -> str | None:
        if not session.watermark.enabled:
            return None
        text = (
            options.watermark_text
            or session.watermark.text
            or self.config.default_watermark_text
        )
        return text.strip() if text and text.strip() else None

    async def _discard(self, tracker: _ArtifactTracker) -> None:
        paths = tracker.close()
        if not paths:
            return
        leftovers = await delete_paths(self.storage, paths, self.retry)
        if leftovers:
            logger.error("Orphaned objects after failed ingestion: %s", leftovers)
        else:
            logger.info("Removed %s objects from failed ingestion", len(paths))
