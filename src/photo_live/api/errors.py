"""Mapping from application errors to HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from photo_live.domain.errors import (
    AuthorizationError,
    ConflictError,
    CorruptInputError,
    CounterConsistencyError,
    IngestionTimeoutError,
    MalformedRecordError,
    NotFoundError,
    PhotoLiveError,
    StorageFailureError,
    TooLargeError,
    TransientStorageError,
    UnsupportedTypeError,
    ValidationError,
)

# Subclasses come before their parents; the first match wins.
_STATUS_CODES: tuple[tuple[type[PhotoLiveError], int], ...] = (
    (UnsupportedTypeError, 415),
    (TooLargeError, 413),
    (ValidationError, 400),
    (AuthorizationError, 401),
    (NotFoundError, 404),
    (ConflictError, 409),
    (CorruptInputError, 422),
    (TransientStorageError, 503),
    (StorageFailureError, 503),
    (IngestionTimeoutError, 504),
    (CounterConsistencyError, 500),
    (MalformedRecordError, 500),
)


def status_code_for(error: PhotoLiveError) -> int:
    """Return the HTTP status used for ``error``."""
    for error_type, status_code in _STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


def error_body(error: PhotoLiveError) -> dict[str, str]:
    return {"error": error.code, "detail": str(error)}


def register_error_handlers(app: FastAPI) -> None:
    """Render every ``PhotoLiveError`` as ``{"error", "detail"}`` JSON."""

    @app.exception_handler(PhotoLiveError)
    async def handle_photo_live_error(
        _request: Request, exc: PhotoLiveError
    ) -> JSONResponse:
        return JSONResponse(status_code=status_code_for(exc), content=error_body(exc))
