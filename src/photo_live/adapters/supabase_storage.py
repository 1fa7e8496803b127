"""Supabase Storage backend for photo objects."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import TypeVar

import httpx
from supabase import Client

from photo_live.domain.errors import StorageFailureError, TransientStorageError
from photo_live.services.storage import ObjectStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SupabaseObjectStorage(ObjectStorage):
    """Stores objects in a Supabase Storage bucket.

    Network-level failures are reported as transient so the caller's retry
    policy can take over; every other failure is final.
    """

    client: Client
    bucket: str

    def write(self, path: str, data: bytes, content_type: str = "image/jpeg") -> None:
        self._run(
            lambda: self._bucket().upload(
                path,
                data,
                file_options={"content-type": content_type, "upsert": "true"},
            ),
            f"upload {path}",
        )

    def read(self, path: str) -> bytes:
        return self._run(lambda: self._bucket().download(path), f"download {path}")

    def delete(self, path: str) -> None:
        self._run(lambda: self._bucket().remove([path]), f"remove {path}")

    def exists(self, path: str) -> bool:
        target = PurePosixPath(path)
        entries = self._run(
            lambda: self._bucket().list(
                str(target.parent), {"search": target.name}
            ),
            f"list {target.parent}",
        )
        return any(entry.get("name") == target.name for entry in entries or [])

    def _bucket(self):  # type: ignore[no-untyped-def]
        return self.client.storage.from_(self.bucket)

    def _run(self, operation: Callable[[], T], description: str) -> T:
        try:
            return operation()
        except httpx.TransportError as exc:
            logger.warning("Storage %s hit a network error: %s", description, exc)
            raise TransientStorageError(f"Storage {description} failed: {exc}") from exc
        except Exception as exc:
            raise StorageFailureError(f"Storage {description} failed: {exc}") from exc
