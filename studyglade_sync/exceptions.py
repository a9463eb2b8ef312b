"""
Custom exceptions for the sync layer.

Remote failures (TransportError, AuthRequiredError) are absorbed by the
store and turned into a fallback. Everything else is surfaced to callers.
"""


class StudyGladeError(Exception):
    """Base exception for all sync layer errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TransportError(StudyGladeError):
    """Raised when a remote API call fails (network, timeout, non-2xx, bad body)."""

    def __init__(
        self,
        endpoint: str,
        status: int | None = None,
        reason: str | None = None,
        cause: Exception | None = None,
    ):
        details: dict = {"endpoint": endpoint}
        if status is not None:
            details["status"] = status
        if reason:
            details["reason"] = reason
        if cause:
            details["cause"] = str(cause)
        message = f"Remote call failed: {endpoint}"
        if status is not None:
            message += f" (HTTP {status})"
        if reason:
            message += f": {reason}"
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status = status
        self.reason = reason
        self.cause = cause


class AuthRequiredError(TransportError):
    """Raised when the remote API answers 401."""

    def __init__(self, endpoint: str, reason: str | None = None):
        super().__init__(endpoint, status=401, reason=reason or "authentication required")


class ValidationError(StudyGladeError):
    """Raised when a record or request is malformed."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value


class InvalidTransitionError(ValidationError):
    """Raised when a status change breaks the record lifecycle."""

    def __init__(self, current: str, target: str):
        super().__init__("status", f"cannot move from {current} to {target}", target)
        self.current = current
        self.target = target


class RecordNotFoundError(StudyGladeError):
    """Raised when an operation targets an id the collection does not hold."""

    def __init__(self, record_id: str, collection: str | None = None):
        details = {"record_id": record_id}
        if collection:
            details["collection"] = collection
        super().__init__(f"Record not found: {record_id}", details)
        self.record_id = record_id
        self.collection = collection


class StorageIOError(StudyGladeError):
    """Raised when a local storage I/O operation fails."""

    def __init__(
        self,
        operation: str,
        path: str | None = None,
        cause: Exception | None = None,
        reason: str | None = None,
    ):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Storage I/O error during {operation}"
        if path:
            message += f": {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause


class StorageQuotaExceededError(StorageIOError):
    """Raised when a blob would not fit in the local storage quota."""

    def __init__(self, key: str, size_bytes: int, quota_bytes: int):
        super().__init__("write", key, reason=f"quota exceeded: {size_bytes} > {quota_bytes} bytes")
        self.details.update({"size_bytes": size_bytes, "quota_bytes": quota_bytes})
        self.key = key
        self.size_bytes = size_bytes
        self.quota_bytes = quota_bytes


class PersistenceError(StudyGladeError):
    """Raised when the local write (or read) failed after any fallback.

    The in-memory view is left untouched when this is raised.
    """

    def __init__(self, operation: str, collection: str, cause: Exception | None = None):
        details = {"operation": operation, "collection": collection}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Could not persist {operation} on {collection}", details)
        self.operation = operation
        self.collection = collection
        self.cause = cause
