"""Unit tests for the exception hierarchy and exit code registry."""

import pytest

from perobatch.core.exceptions import (
    ArtifactUnavailableError,
    BatchError,
    CancelledError,
    ConfigError,
    DirectoryScanError,
    EngineNotFoundError,
    HTTPStatusError,
    InvalidDirectoryError,
    InvalidKeyError,
    KeyCollisionError,
    MalformedRequestError,
    NoImagesError,
    NothingUploadedError,
    PollLimitExceededError,
    RequestForbiddenError,
    RequestNotFoundError,
    ResponseDecodeError,
    ServiceError,
    ServiceRejectedError,
    TranscodeError,
    TransportError,
    UnexpectedStatusError,
    UploadRejectedError,
)
from perobatch.errors.codes import ErrorCode, exit_code_for


FATAL_ERRORS = [
    TransportError("request_status", "connection refused"),
    ServiceRejectedError("post_processing_request", "failure"),
    EngineNotFoundError("post_processing_request", 404),
    ResponseDecodeError("request_status", "not json"),
    MalformedRequestError("post_processing_request", 422),
    RequestNotFoundError("request_status", 404),
    RequestForbiddenError("request_status", 401),
    UnexpectedStatusError("request_status", 503),
    InvalidDirectoryError("/nope"),
    DirectoryScanError("/nope", "permission denied"),
    ConfigError("bad yaml"),
    KeyCollisionError("a.jpg", ["x/a.jpg", "y/a.jpg"]),
    InvalidKeyError(" "),
    NoImagesError("/empty"),
    NothingUploadedError("r1", 3),
    PollLimitExceededError("r1", 5, 300.0),
    CancelledError("polling"),
]


def test_fatal_errors_have_distinct_exit_codes():
    codes = [e.exit_code for e in FATAL_ERRORS]
    assert len(set(codes)) == len(codes)
    assert 0 not in codes


def test_not_found_and_forbidden_are_distinguished():
    not_found = RequestNotFoundError("request_status", 404)
    forbidden = RequestForbiddenError("request_status", 401)
    assert not_found.category == "not_found"
    assert forbidden.category == "auth"
    assert not_found.exit_code != forbidden.exit_code


def test_unexpected_status_keeps_raw_code():
    error = UnexpectedStatusError("post_processing_request", 418, body="teapot")
    assert isinstance(error, HTTPStatusError)
    assert isinstance(error, ServiceError)
    assert error.status_code == 418
    assert error.details["http_status"] == 418
    assert "418" in str(error)
    assert error.exit_code == 11


def test_transport_error_flags_timeout():
    error = TransportError("request_status", "read timed out", timeout=True)
    assert error.timeout is True
    assert "timeout" in error.message
    assert error.retryable is True
    assert error.exit_code == 1


def test_per_item_errors_share_partial_failure_exit_code():
    per_item = [
        TranscodeError("a.tif", "bad"),
        UploadRejectedError("a.tif", 413, "too large"),
        ArtifactUnavailableError("a.tif", "alto", 404),
    ]
    for error in per_item:
        assert error.category == "per_item"
        assert error.exit_code == exit_code_for("COMPLETED_WITH_FAILURES")


def test_to_dict():
    error = KeyCollisionError("a.jpg", ["x/a.jpg", "y/a.jpg"])
    data = error.to_dict()
    assert data["code"] == "KEY_COLLISION"
    assert data["exit_code"] == 12
    assert data["details"]["paths"] == ["x/a.jpg", "y/a.jpg"]
    assert data["retryable"] is False


def test_base_error_with_custom_code():
    error = BatchError("boom", "SOMETHING_NEW", details={"x": 1})
    assert str(error) == "boom"
    assert error.exit_code == ErrorCode.UNKNOWN_ERROR.value.exit_code


class TestErrorCodeRegistry:
    def test_get_spec_known(self):
        spec = ErrorCode.get_spec("REQUEST_NOT_FOUND")
        assert spec.exit_code == 9
        assert spec.category == "not_found"

    def test_get_spec_unknown(self):
        spec = ErrorCode.get_spec("NOPE")
        assert spec.code == "NOPE"
        assert spec.exit_code == 70

    @pytest.mark.parametrize("code", ["INTERRUPTED", "CANCELLED", "TRANSPORT_FAILED"])
    def test_exit_code_for(self, code):
        assert exit_code_for(code) == ErrorCode[code].value.exit_code
