"""Object storage interface, path layout and retry policy."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Protocol, TypeVar
from uuid import UUID

from photo_live.domain.errors import StorageFailureError, TransientStorageError
from photo_live.domain.ingestion import ORIGINAL

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ObjectStorage(Protocol):
    """Byte-addressable store keyed by hierarchical path."""

    def write(self, path: str, data: bytes, content_type: str = "image/jpeg") -> None:
        """Store bytes at path, replacing any existing object."""

    def read(self, path: str) -> bytes:
        """Return the bytes stored at path."""

    def delete(self, path: str) -> None:
        """Delete the object at path; missing objects are ignored."""

    def exists(self, path: str) -> bool:
        """Return whether an object exists at path."""


def original_path(session_id: UUID, filename: str) -> str:
    """Path of the full-resolution original."""
    return f"photos/{session_id}/{ORIGINAL}/{filename}"


def variant_path(session_id: UUID, preset: str, filename: str) -> str:
    """Path of a derived variant; variants are always JPEG."""
    stem = PurePosixPath(filename).stem
    return f"photos/{session_id}/{preset}/{stem}.jpg"


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff for transient storage faults."""

    attempts: int = 3
    backoff_seconds: float = 0.2

    async def run(self, operation: Callable[[], T], description: str) -> T:
        """Run a blocking storage call in a worker thread with retries."""
        for attempt in range(1, self.attempts + 1):
            try:
                return await asyncio.to_thread(operation)
            except TransientStorageError as exc:
                if attempt == self.attempts:
                    raise StorageFailureError(
                        f"{description} failed after {attempt} attempts: {exc}"
                    ) from exc
                delay = self.backoff_seconds * 2 ** (attempt - 1)
                logger.warning(
                    "%s failed (attempt %s/%s), retrying in %.2fs: %s",
                    description,
                    attempt,
                    self.attempts,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)
        raise StorageFailureError(f"{description} was never attempted")


async def delete_paths(
    storage: ObjectStorage, paths: Iterable[str], retry: RetryPolicy
) -> list[str]:
    """Delete every path, returning the ones that could not be removed."""
    leftovers: list[str] = []
    for path in paths:
        try:
            await retry.run(
                lambda path=path: storage.delete(path), f"Deleting {path}"
            )
        except StorageFailureError:
            logger.exception("Could not delete %s", path)
            leftovers.append(path)
    return leftovers
