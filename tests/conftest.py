from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Optional, Union

import httpx
import pytest
from PIL import Image
from pydantic import SecretStr

from perobatch.clients.pero_client import PeroClient
from perobatch.core.settings import PeroSettings

BASE_URL = "https://ocr.test/api/"
API_KEY = "test-key"

StatusStep = Union[dict[str, str], httpx.Response]


class FakePeroService:
    """In-memory stand-in for the PERO OCR API behind httpx.MockTransport.

    ``status_steps`` is consumed one entry per ``request_status`` call (the
    last entry repeats). An entry is either ``{key: state}`` or a ready
    ``httpx.Response``.
    """

    def __init__(
        self,
        request_id: str = "r1",
        status_steps: Optional[list[StatusStep]] = None,
        engines: Optional[dict[str, Any]] = None,
    ) -> None:
        self.request_id = request_id
        self.status_steps = list(status_steps or [])
        self.engines = engines or {}
        self.calls: list[tuple[str, str]] = []
        self.created: Optional[dict[str, Any]] = None
        self.uploads: dict[str, dict[str, Any]] = {}
        self.upload_failures: dict[str, httpx.Response] = {}
        self.artifacts: dict[tuple[str, str], bytes] = {}
        self.create_response: Optional[httpx.Response] = None
        self.cancelled: list[str] = []
        self.headers: list[httpx.Headers] = []

    @property
    def status_calls(self) -> int:
        return sum(1 for _, path in self.calls if path.startswith("request_status/"))

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api/")
        self.calls.append((request.method, path))
        self.headers.append(request.headers)
        parts = path.split("/")

        if request.method == "POST" and path == "post_processing_request":
            self.created = json.loads(request.content)
            if self.create_response is not None:
                return self.create_response
            return httpx.Response(200, json={"status": "success", "request_id": self.request_id})

        if request.method == "POST" and parts[0] == "upload_image":
            key = parts[2]
            if key in self.upload_failures:
                return self.upload_failures[key]
            body = request.read()
            match = re.search(rb'filename="([^"]+)"', body)
            self.uploads[key] = {
                "filename": match.group(1).decode() if match else None,
                "is_jpeg": b"\xff\xd8\xff" in body,
                "size": len(body),
            }
            return httpx.Response(200, json={"status": "success"})

        if request.method == "GET" and parts[0] == "request_status":
            step = self.status_steps.pop(0) if len(self.status_steps) > 1 else self.status_steps[0]
            if isinstance(step, httpx.Response):
                return step
            payload = {"request_status": {key: {"state": state} for key, state in step.items()}}
            return httpx.Response(200, json=payload)

        if request.method == "GET" and parts[0] == "download_results":
            key, artifact = parts[2], parts[3]
            content = self.artifacts.get((key, artifact))
            if content is None:
                return httpx.Response(404, json={"message": "not found"})
            return httpx.Response(200, content=content)

        if request.method == "POST" and parts[0] == "cancel_request":
            if parts[1] != self.request_id:
                return httpx.Response(404, json={"message": "Request doesn't exist."})
            self.cancelled.append(parts[1])
            return httpx.Response(200, json={"status": "success"})

        if request.method == "GET" and path == "get_engines":
            return httpx.Response(200, json={"status": "success", "engines": self.engines})

        return httpx.Response(404, json={"detail": "not found"})


@pytest.fixture
def pero_settings() -> PeroSettings:
    return PeroSettings(api_key=SecretStr(API_KEY), endpoint=BASE_URL, default_engine=1)


@pytest.fixture
def service() -> FakePeroService:
    return FakePeroService()


@pytest.fixture
def client(service: FakePeroService, pero_settings: PeroSettings):
    with PeroClient(pero_settings, timeout=5, status_timeout=5, transport=service.transport()) as c:
        yield c


def make_tiff(path: Path, size: tuple[int, int] = (16, 12)) -> Path:
    Image.new("RGB", size, color=(200, 30, 30)).save(path, format="TIFF")
    return path


def make_jpeg(path: Path, size: tuple[int, int] = (16, 12)) -> Path:
    Image.new("RGB", size, color=(30, 30, 200)).save(path, format="JPEG")
    return path
