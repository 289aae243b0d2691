"""
Centralized error code registry with specifications.

Provides single source of truth for error codes, including operator
messages, error categories, process exit codes and retryability flags.
"""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class ErrorSpec:
    """Specification for a single error type."""

    code: str
    exit_code: int
    message: str  # Operator-facing message
    category: str  # transport, client_error, auth, not_found, ...
    retryable: bool  # True if re-running the tool may succeed


class ErrorCode(Enum):
    """Centralized error code registry.

    Single source of truth for all error specifications.
    Usage:
        error_spec = ErrorCode.get_spec("REQUEST_NOT_FOUND")
        print(error_spec.exit_code, error_spec.category, error_spec.retryable)
    """

    # ========================================
    # FATAL: service and transport
    # ========================================
    TRANSPORT_FAILED = ErrorSpec(
        "TRANSPORT_FAILED",
        1,
        "OCR service is unreachable or timed out",
        "transport",
        True,
    )
    SERVICE_REJECTED = ErrorSpec(
        "SERVICE_REJECTED",
        5,
        "OCR service did not report success",
        "server_error",
        False,
    )
    ENGINE_NOT_FOUND = ErrorSpec(
        "ENGINE_NOT_FOUND",
        6,
        "OCR engine not found",
        "client_error",
        False,
    )
    RESPONSE_DECODE_FAILED = ErrorSpec(
        "RESPONSE_DECODE_FAILED",
        7,
        "OCR service response could not be decoded",
        "decode",
        False,
    )
    MALFORMED_REQUEST = ErrorSpec(
        "MALFORMED_REQUEST",
        8,
        "OCR service rejected the request body",
        "client_error",
        False,
    )
    REQUEST_NOT_FOUND = ErrorSpec(
        "REQUEST_NOT_FOUND",
        9,
        "Request doesn't exist",
        "not_found",
        False,
    )
    REQUEST_FORBIDDEN = ErrorSpec(
        "REQUEST_FORBIDDEN",
        10,
        "Request doesn't belong to this API key",
        "auth",
        False,
    )
    UNEXPECTED_STATUS = ErrorSpec(
        "UNEXPECTED_STATUS",
        11,
        "OCR service responded with an unhandled status code",
        "server_error",
        False,
    )

    # ========================================
    # FATAL: local
    # ========================================
    USAGE = ErrorSpec(
        "USAGE",
        64,
        "Invalid command-line arguments",
        "local",
        False,
    )
    INVALID_DIRECTORY = ErrorSpec(
        "INVALID_DIRECTORY",
        2,
        "Path is not a directory or does not exist",
        "local",
        False,
    )
    DIRECTORY_SCAN_FAILED = ErrorSpec(
        "DIRECTORY_SCAN_FAILED",
        3,
        "Error while examining directory",
        "local",
        False,
    )
    CONFIG_INVALID = ErrorSpec(
        "CONFIG_INVALID",
        4,
        "Configuration file is invalid",
        "local",
        False,
    )
    KEY_COLLISION = ErrorSpec(
        "KEY_COLLISION",
        12,
        "Two files map to the same remote key",
        "local",
        False,
    )
    INVALID_KEY = ErrorSpec(
        "INVALID_KEY",
        13,
        "File name produces an empty remote key",
        "local",
        False,
    )
    NO_IMAGES = ErrorSpec(
        "NO_IMAGES",
        14,
        "No images found in directory",
        "local",
        False,
    )
    NOTHING_UPLOADED = ErrorSpec(
        "NOTHING_UPLOADED",
        15,
        "No image was uploaded successfully",
        "per_item",
        True,
    )
    POLL_LIMIT_REACHED = ErrorSpec(
        "POLL_LIMIT_REACHED",
        16,
        "OCR did not finish within the polling limit",
        "transport",
        True,
    )
    CANCELLED = ErrorSpec(
        "CANCELLED",
        17,
        "Batch cancelled",
        "local",
        True,
    )

    # ========================================
    # PER ITEM (never abort the batch)
    # ========================================
    TRANSCODE_FAILED = ErrorSpec(
        "TRANSCODE_FAILED",
        20,
        "Image could not be converted for upload",
        "per_item",
        False,
    )
    UPLOAD_REJECTED = ErrorSpec(
        "UPLOAD_REJECTED",
        20,
        "Image upload was rejected",
        "per_item",
        True,
    )
    IMAGE_FAILED = ErrorSpec(
        "IMAGE_FAILED",
        20,
        "OCR service reported a failure for the image",
        "per_item",
        False,
    )
    ARTIFACT_UNAVAILABLE = ErrorSpec(
        "ARTIFACT_UNAVAILABLE",
        20,
        "Result artifact could not be downloaded",
        "per_item",
        True,
    )
    ARTIFACT_WRITE_FAILED = ErrorSpec(
        "ARTIFACT_WRITE_FAILED",
        20,
        "Result artifact could not be written",
        "per_item",
        True,
    )
    COMPLETED_WITH_FAILURES = ErrorSpec(
        "COMPLETED_WITH_FAILURES",
        20,
        "Batch finished but some images failed",
        "per_item",
        True,
    )

    # ========================================
    # FALLBACK
    # ========================================
    INTERRUPTED = ErrorSpec(
        "INTERRUPTED",
        130,
        "Interrupted by operator",
        "local",
        True,
    )
    UNKNOWN_ERROR = ErrorSpec(
        "UNKNOWN_ERROR",
        70,
        "Unknown error",
        "server_error",
        False,
    )

    @classmethod
    def get_spec(cls, code: str) -> ErrorSpec:
        """Get error specification by code string.

        Returns:
            ErrorSpec with exit code, category and retryability.
            Returns the UNKNOWN_ERROR exit code for unknown codes.
        """
        for error in cls:
            if error.value.code == code:
                return error.value
        fallback = cls.UNKNOWN_ERROR.value
        return ErrorSpec(code, fallback.exit_code, f"Error: {code}", "server_error", False)


def exit_code_for(code: str) -> int:
    """Process exit code registered for the error code string."""
    return ErrorCode.get_spec(code).exit_code
