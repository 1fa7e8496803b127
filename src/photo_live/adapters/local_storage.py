"""Filesystem storage backend for local development."""

import errno
import os
from dataclasses import dataclass
from pathlib import Path

from photo_live.domain.errors import (
    NotFoundError,
    StorageFailureError,
    TransientStorageError,
    ValidationError,
)
from photo_live.services.storage import ObjectStorage

_TRANSIENT_ERRNOS = {errno.EAGAIN, errno.EBUSY, errno.EINTR, errno.ETIMEDOUT}


@dataclass
class LocalObjectStorage(ObjectStorage):
    """Stores objects as files below ``root``."""

    root: Path

    def write(self, path: str, data: bytes, content_type: str = "image/jpeg") -> None:
        target = self._resolve(path)
        partial = target.with_name(f".{target.name}.partial")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            partial.write_bytes(data)
            os.replace(partial, target)
        except OSError as exc:
            partial.unlink(missing_ok=True)
            raise _storage_error(f"write {path}", exc) from exc

    def read(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as exc:
            raise NotFoundError(f"No object at {path}") from exc
        except OSError as exc:
            raise _storage_error(f"read {path}", exc) from exc

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise _storage_error(f"delete {path}", exc) from exc

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def _resolve(self, path: str) -> Path:
        root = self.root.resolve()
        target = (root / path).resolve()
        if not target.is_relative_to(root):
            raise ValidationError(f"Path escapes storage root: {path}")
        return target


def _storage_error(description: str, exc: OSError) -> Exception:
    if exc.errno in _TRANSIENT_ERRNOS:
        return TransientStorageError(f"Storage {description} failed: {exc}")
    return StorageFailureError(f"Storage {description} failed: {exc}")
