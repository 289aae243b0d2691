"""HTTP client for the PERO OCR service.

One ``PeroClient`` (one ``httpx.Client``) is used for every call of a run.
Calls are issued one at a time. Every method either returns a decoded,
typed result or raises a ``ServiceError`` subclass describing exactly what
went wrong; status code classification lives here and nowhere else.

Endpoints (relative to the configured base URL):
- POST post_processing_request            -> {"status": "success", "request_id": "..."}
- POST upload_image/{request_id}/{key}    multipart field "file"
- GET  request_status/{request_id}        -> {"request_status": {key: {"state": "..."}}}
- GET  download_results/{request_id}/{key}/{txt|alto}
- POST cancel_request/{request_id}
- GET  get_engines                        -> {"status": "success", "engines": {...}}
"""

from __future__ import annotations

import logging
import mimetypes
from pathlib import Path
from typing import Any, Iterable, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from perobatch.core.config import (
    API_KEY_HEADER,
    ARTIFACT_EXTENSIONS,
    ERROR_BODY_MAX_CHARS,
    SUCCESS_STATUS,
    UPLOAD_FIELD_NAME,
)
from perobatch.core.exceptions import (
    ArtifactUnavailableError,
    EngineNotFoundError,
    MalformedRequestError,
    RequestForbiddenError,
    RequestNotFoundError,
    ResponseDecodeError,
    ServiceRejectedError,
    TransportError,
    UnexpectedStatusError,
    UploadRejectedError,
)
from perobatch.core.settings import PeroSettings
from perobatch.models.dto import (
    CreateRequestResponse,
    Engine,
    EnginesResponse,
    RequestStatusResponse,
    UploadErrorResponse,
)

logger = logging.getLogger(__name__)


def _segment(value: str) -> str:
    return quote(value, safe="")


def _body_excerpt(resp: httpx.Response) -> str:
    try:
        return resp.text[:ERROR_BODY_MAX_CHARS]
    except UnicodeDecodeError:
        return ""


def _decode(resp: httpx.Response, model: type[BaseModel], operation: str) -> Any:
    try:
        payload = resp.json()
    except ValueError as e:
        raise ResponseDecodeError(operation, "server did not respond with JSON") from e
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise ResponseDecodeError(operation, str(e)) from e


def _raise_for_request_status(resp: httpx.Response, operation: str) -> None:
    """Shared mapping for calls addressed to an existing request id."""
    if resp.status_code == httpx.codes.OK:
        return
    body = _body_excerpt(resp)
    if resp.status_code == httpx.codes.NOT_FOUND:
        raise RequestNotFoundError(operation, resp.status_code, body)
    if resp.status_code in (httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN):
        raise RequestForbiddenError(operation, resp.status_code, body)
    raise UnexpectedStatusError(operation, resp.status_code, body)


class PeroClient:
    """Synchronous PERO OCR API client.

    Args:
        settings: Endpoint and API key
        timeout: Default per-call timeout in seconds
        status_timeout: Timeout for ``request_status``, which may block while
            the service works
        transport: Optional httpx transport (``httpx.MockTransport`` in tests)
    """

    def __init__(
        self,
        settings: PeroSettings,
        timeout: float = 120.0,
        status_timeout: float = 1800.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._status_timeout = status_timeout
        self._client = httpx.Client(
            base_url=settings.endpoint,
            headers={API_KEY_HEADER: settings.api_key.get_secret_value()},
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> "PeroClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _send(self, operation: str, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(operation, str(e) or type(e).__name__, timeout=True) from e
        except httpx.TransportError as e:
            raise TransportError(operation, str(e) or type(e).__name__) from e
        except httpx.DecodingError as e:
            raise ResponseDecodeError(operation, str(e) or type(e).__name__) from e
        except httpx.RequestError as e:
            # redirect loops and other request-level failures
            raise TransportError(operation, str(e) or type(e).__name__) from e

    # ------------------------------------------------------------------
    # Batch lifecycle
    # ------------------------------------------------------------------

    def create_request(self, engine_id: int, keys: Iterable[str]) -> str:
        """Create a processing request for ``keys`` and return its id.

        Raises:
            EngineNotFoundError: 404
            MalformedRequestError: 422
            UnexpectedStatusError: any other non-200 status
            ServiceRejectedError: body status is not "success"
            ResponseDecodeError: body is not the expected JSON
            TransportError: the service cannot be reached
        """
        operation = "post_processing_request"
        body = {"engine": engine_id, "images": {key: None for key in keys}}
        resp = self._send(operation, "POST", operation, json=body)

        if resp.status_code == httpx.codes.NOT_FOUND:
            raise EngineNotFoundError(operation, resp.status_code, _body_excerpt(resp))
        if resp.status_code == httpx.codes.UNPROCESSABLE_ENTITY:
            raise MalformedRequestError(operation, resp.status_code, _body_excerpt(resp))
        if resp.status_code != httpx.codes.OK:
            raise UnexpectedStatusError(operation, resp.status_code, _body_excerpt(resp))

        data: CreateRequestResponse = _decode(resp, CreateRequestResponse, operation)
        if data.status != SUCCESS_STATUS:
            raise ServiceRejectedError(operation, data.status)
        if not data.request_id:
            raise ResponseDecodeError(operation, "request_id missing from success response")
        return data.request_id

    def upload_image(self, request_id: str, key: str, file_path: str | Path) -> None:
        """Upload one file under ``key``.

        Raises:
            UploadRejectedError: non-200 status
            TransportError: the service cannot be reached
            OSError: the local file cannot be read
        """
        operation = "upload_image"
        file_path = Path(file_path)
        url = f"upload_image/{_segment(request_id)}/{_segment(key)}"
        content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"

        with open(file_path, "rb") as f:
            files = {UPLOAD_FIELD_NAME: (file_path.name, f, content_type)}
            resp = self._send(operation, "POST", url, files=files)

        if resp.status_code != httpx.codes.OK:
            try:
                message = UploadErrorResponse.model_validate(resp.json()).message
            except (ValueError, ValidationError):
                message = None
            raise UploadRejectedError(key, resp.status_code, message, _body_excerpt(resp))

    def request_status(self, request_id: str) -> RequestStatusResponse:
        """Aggregate per-key state of a request.

        Raises:
            RequestNotFoundError: 404
            RequestForbiddenError: 401/403
            UnexpectedStatusError: any other non-200 status
            ResponseDecodeError: body is not the expected JSON
            TransportError: the service cannot be reached or timed out
        """
        operation = "request_status"
        resp = self._send(
            operation,
            "GET",
            f"request_status/{_segment(request_id)}",
            timeout=self._status_timeout,
        )
        _raise_for_request_status(resp, operation)
        return _decode(resp, RequestStatusResponse, operation)

    def download_result(self, request_id: str, key: str, artifact: str) -> bytes:
        """Fetch one result artifact ("txt" or "alto") for ``key``.

        Raises:
            ArtifactUnavailableError: non-200 status
            TransportError: the service cannot be reached
        """
        if artifact not in ARTIFACT_EXTENSIONS:
            raise ValueError(f"unknown artifact {artifact!r}")
        operation = "download_results"
        url = f"download_results/{_segment(request_id)}/{_segment(key)}/{artifact}"
        resp = self._send(operation, "GET", url)
        if resp.status_code != httpx.codes.OK:
            raise ArtifactUnavailableError(key, artifact, resp.status_code, _body_excerpt(resp))
        return resp.content

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def cancel_request(self, request_id: str) -> None:
        """Cancel a request.

        Raises:
            RequestNotFoundError, RequestForbiddenError, UnexpectedStatusError,
            TransportError
        """
        operation = "cancel_request"
        resp = self._send(operation, "POST", f"cancel_request/{_segment(request_id)}")
        _raise_for_request_status(resp, operation)

    def get_engines(self) -> list[Engine]:
        """Available engines sorted by id.

        Raises:
            UnexpectedStatusError, ServiceRejectedError, ResponseDecodeError,
            TransportError
        """
        operation = "get_engines"
        resp = self._send(operation, "GET", operation)
        if resp.status_code != httpx.codes.OK:
            raise UnexpectedStatusError(operation, resp.status_code, _body_excerpt(resp))

        data: EnginesResponse = _decode(resp, EnginesResponse, operation)
        if data.status != SUCCESS_STATUS:
            raise ServiceRejectedError(operation, data.status)
        engines = [
            Engine(id=info.id, name=name, description=info.description)
            for name, info in data.engines.items()
        ]
        return sorted(engines, key=lambda e: (e.id, e.name))
