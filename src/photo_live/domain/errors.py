"""Error taxonomy shared by services and the API layer."""


class PhotoLiveError(Exception):
    """Base class for all application errors."""

    code = "error"


class ValidationError(PhotoLiveError):
    """Input failed validation."""

    code = "validation_error"


class UnsupportedTypeError(ValidationError):
    """Uploaded file extension is not on the allow-list."""

    code = "unsupported_type"


class TooLargeError(ValidationError):
    """Uploaded file exceeds the configured size limit."""

    code = "too_large"


class AuthorizationError(PhotoLiveError):
    """Requester is not allowed to perform the action."""

    code = "unauthorized"


class NotFoundError(PhotoLiveError):
    """Session or photo does not exist (or is not visible to the requester)."""

    code = "not_found"


class ConflictError(PhotoLiveError):
    """Requested change conflicts with the current state."""

    code = "conflict"


class TransientStorageError(PhotoLiveError):
    """Retryable object storage failure."""

    code = "storage_unavailable"


class StorageFailureError(PhotoLiveError):
    """Object storage failed after all retries."""

    code = "storage_failure"


class CorruptInputError(PhotoLiveError):
    """Input bytes cannot be decoded; retrying will not help."""

    code = "corrupt_input"


class CorruptImageError(CorruptInputError):
    """Uploaded image cannot be decoded."""

    code = "corrupt_image"


class IngestionTimeoutError(PhotoLiveError):
    """Ingestion exceeded its processing time budget."""

    code = "ingestion_timeout"


class CounterConsistencyError(PhotoLiveError):
    """Session counters could not be adjusted; the photo change was rolled back."""

    code = "counter_consistency"


class MalformedRecordError(PhotoLiveError):
    """A persisted record is missing required fields."""

    code = "malformed_record"


class IngestionFailedError(PhotoLiveError):
    """Ingestion of one file broke on an unexpected internal error."""

    code = "ingestion_failed"
