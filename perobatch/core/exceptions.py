"""Custom exception hierarchy for pero-batch.

Every failure the batch can hit is raised as a subclass of BatchError and
carries an error code from the central registry. Only the entry point turns
an error into a process exit code; nothing below it terminates the process.
"""

from typing import Any, Optional

from perobatch.errors.codes import ErrorCode, ErrorSpec


class BatchError(Exception):
    """Base exception for all pero-batch errors.

    Attributes:
        message: Human-readable error message
        error_code: Registry code (see ErrorCode)
        details: Additional context (dict)
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    @property
    def spec(self) -> ErrorSpec:
        return ErrorCode.get_spec(self.error_code)

    @property
    def exit_code(self) -> int:
        return self.spec.exit_code

    @property
    def category(self) -> str:
        return self.spec.category

    @property
    def retryable(self) -> bool:
        return self.spec.retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to a flat dict suitable for structured logging."""
        return {
            "code": self.error_code,
            "message": self.message,
            "exit_code": self.exit_code,
            "category": self.category,
            "retryable": self.retryable,
            "details": self.details,
        }


# =============================================================================
# Remote service errors
# =============================================================================


class ServiceError(BatchError):
    """Base for errors reported by, or while talking to, the OCR service.

    Args:
        operation: Remote operation name (e.g. "post_processing_request")
    """

    def __init__(self, message: str, error_code: str, operation: str, **kwargs):
        details = kwargs.pop("details", {})
        details["operation"] = operation
        super().__init__(message=message, error_code=error_code, details=details)
        self.operation = operation


class TransportError(ServiceError):
    """Service unreachable or the call timed out.

    Args:
        operation: Remote operation name
        reason: Underlying transport error text
        timeout: True when the failure was a timeout
    """

    def __init__(self, operation: str, reason: str, timeout: bool = False):
        kind = "connection timeout" if timeout else "connection error"
        super().__init__(
            message=f"{kind} for {operation}: {reason}",
            error_code="TRANSPORT_FAILED",
            operation=operation,
            details={"reason": reason, "timeout": timeout},
        )
        self.timeout = timeout


class ServiceRejectedError(ServiceError):
    """Service answered 200 but without "status": "success"."""

    def __init__(self, operation: str, status: Any):
        super().__init__(
            message=f"{operation} returned status {status!r}",
            error_code="SERVICE_REJECTED",
            operation=operation,
            details={"status": status},
        )
        self.status = status


class ResponseDecodeError(ServiceError):
    """Response body is not valid JSON or lacks an expected field."""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            message=f"cannot decode {operation} response: {reason}",
            error_code="RESPONSE_DECODE_FAILED",
            operation=operation,
            details={"reason": reason},
        )


class HTTPStatusError(ServiceError):
    """Base for non-success HTTP status codes.

    Args:
        operation: Remote operation name
        status_code: Raw HTTP status code
        body: Truncated response body
    """

    error_code = "UNEXPECTED_STATUS"

    def __init__(self, operation: str, status_code: int, body: str = "", message: Optional[str] = None):
        super().__init__(
            message=message or f"{operation} server responded {status_code}",
            error_code=self.error_code,
            operation=operation,
            details={"http_status": status_code, "body": body},
        )
        self.status_code = status_code
        self.body = body


class UnexpectedStatusError(HTTPStatusError):
    """Status code with no dedicated handling; the raw code is kept."""

    def __init__(self, operation: str, status_code: int, body: str = ""):
        super().__init__(
            operation,
            status_code,
            body,
            message=f"{operation} server responded {status_code} (this error is not handled)",
        )


class EngineNotFoundError(HTTPStatusError):
    error_code = "ENGINE_NOT_FOUND"

    def __init__(self, operation: str, status_code: int, body: str = ""):
        super().__init__(operation, status_code, body, message=f"{operation} server responded {status_code} - ocr engine not found")


class MalformedRequestError(HTTPStatusError):
    error_code = "MALFORMED_REQUEST"

    def __init__(self, operation: str, status_code: int, body: str = ""):
        super().__init__(operation, status_code, body, message=f"{operation} server responded {status_code} - bad json data")


class RequestNotFoundError(HTTPStatusError):
    error_code = "REQUEST_NOT_FOUND"

    def __init__(self, operation: str, status_code: int, body: str = ""):
        super().__init__(operation, status_code, body, message=f"{operation} server responded {status_code} - request doesn't exist")


class RequestForbiddenError(HTTPStatusError):
    error_code = "REQUEST_FORBIDDEN"

    def __init__(self, operation: str, status_code: int, body: str = ""):
        super().__init__(
            operation,
            status_code,
            body,
            message=f"{operation} server responded {status_code} - request doesn't belong to this API key",
        )


class UploadRejectedError(HTTPStatusError):
    """Per-file upload answered with a non-success status."""

    error_code = "UPLOAD_REJECTED"

    def __init__(self, key: str, status_code: int, server_message: Optional[str] = None, body: str = ""):
        super().__init__(
            "upload_image",
            status_code,
            body,
            message=f"upload of {key} failed with status {status_code}: {server_message or 'no message'}",
        )
        self.key = key
        self.server_message = server_message


class ArtifactUnavailableError(HTTPStatusError):
    """Result artifact for one key could not be fetched."""

    error_code = "ARTIFACT_UNAVAILABLE"

    def __init__(self, key: str, artifact: str, status_code: int, body: str = ""):
        super().__init__(
            "download_results",
            status_code,
            body,
            message=f"{artifact} for {key} not available (status {status_code})",
        )
        self.key = key
        self.artifact = artifact


# =============================================================================
# Local errors
# =============================================================================


class ConfigError(BatchError):
    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message=message, error_code="CONFIG_INVALID", details={"path": path})
        self.path = path


class InvalidDirectoryError(BatchError):
    def __init__(self, path: str):
        super().__init__(
            message=f"{path} is not a directory or does not exist",
            error_code="INVALID_DIRECTORY",
            details={"path": path},
        )


class DirectoryScanError(BatchError):
    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"error while examining {path}: {reason}",
            error_code="DIRECTORY_SCAN_FAILED",
            details={"path": path, "reason": reason},
        )


class NoImagesError(BatchError):
    def __init__(self, path: str):
        super().__init__(message=f"no images found in {path}", error_code="NO_IMAGES", details={"path": path})


class InvalidKeyError(BatchError):
    """File name normalizes to an empty key."""

    def __init__(self, path: str):
        super().__init__(
            message=f"file name of {path!r} produces an empty key",
            error_code="INVALID_KEY",
            details={"path": path},
        )


class KeyCollisionError(BatchError):
    """Two distinct paths normalize to the same key."""

    def __init__(self, key: str, paths: list[str]):
        super().__init__(
            message=f"files {', '.join(paths)} all map to key {key!r}",
            error_code="KEY_COLLISION",
            details={"key": key, "paths": paths},
        )
        self.key = key
        self.paths = paths


class TranscodeError(BatchError):
    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"cannot convert {path} to JPEG: {reason}",
            error_code="TRANSCODE_FAILED",
            details={"path": path, "reason": reason},
        )
        self.path = path


class ArtifactWriteError(BatchError):
    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"error creating file {path}: {reason}",
            error_code="ARTIFACT_WRITE_FAILED",
            details={"path": path, "reason": reason},
        )


class NothingUploadedError(BatchError):
    def __init__(self, request_id: str, attempted: int):
        super().__init__(
            message=f"none of {attempted} images were uploaded for request {request_id}",
            error_code="NOTHING_UPLOADED",
            details={"request_id": request_id, "attempted": attempted},
        )


class PollLimitExceededError(BatchError):
    def __init__(self, request_id: str, polls: int, elapsed_seconds: float):
        super().__init__(
            message=f"request {request_id} not finished after {polls} polls ({elapsed_seconds:.0f}s)",
            error_code="POLL_LIMIT_REACHED",
            details={"request_id": request_id, "polls": polls, "elapsed_seconds": elapsed_seconds},
        )


class CancelledError(BatchError):
    def __init__(self, stage: str):
        super().__init__(message=f"batch cancelled during {stage}", error_code="CANCELLED", details={"stage": stage})
        self.stage = stage
