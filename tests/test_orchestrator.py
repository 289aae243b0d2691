from __future__ import annotations

import httpx
import pytest

from perobatch.core.exceptions import (
    KeyCollisionError,
    NoImagesError,
    NothingUploadedError,
    ServiceRejectedError,
)
from perobatch.core.settings import BatchSettings
from perobatch.orchestrator import BatchRunner
from tests.conftest import make_jpeg, make_tiff


@pytest.fixture
def batch_settings() -> BatchSettings:
    return BatchSettings(poll_interval_seconds=0, upload_settle_seconds=0)


def test_end_to_end(client, service, batch_settings, tmp_path):
    make_tiff(tmp_path / "a.tif")
    make_jpeg(tmp_path / "b.jpg")
    service.status_steps = [
        {"a.tif": "PROCESSING", "b.jpg": "PROCESSING"},
        {"a.tif": "PROCESSED", "b.jpg": "PROCESSED"},
    ]
    for key in ("a.tif", "b.jpg"):
        service.artifacts[(key, "txt")] = f"text of {key}".encode()
        service.artifacts[(key, "alto")] = f"<alto>{key}</alto>".encode()

    result = BatchRunner(client, batch_settings, engine_id=1).run(tmp_path)

    assert result.request.request_id == "r1"
    assert result.request.keys == ("a.tif", "b.jpg")
    assert result.poll.polls == 2
    assert not result.has_failures
    assert service.uploads["a.tif"]["is_jpeg"] is True
    assert sorted(p.name for p in tmp_path.iterdir()) == ["a.tif", "a.txt", "a.xml", "b.jpg", "b.txt", "b.xml"]
    assert (tmp_path / "a.txt").read_text() == "text of a.tif"
    assert (tmp_path / "b.xml").read_text() == "<alto>b.jpg</alto>"
    assert [call[1].split("/")[0] for call in service.calls] == [
        "post_processing_request",
        "upload_image",
        "upload_image",
        "request_status",
        "request_status",
        "download_results",
        "download_results",
        "download_results",
        "download_results",
    ]


def test_failed_upload_excluded_from_polling_and_download(client, service, batch_settings, tmp_path):
    make_jpeg(tmp_path / "a.jpg")
    make_jpeg(tmp_path / "b.jpg")
    service.upload_failures["a.jpg"] = httpx.Response(500, json={"message": "disk full"})
    # the service only knows about b.jpg; a.jpg must not be looked up
    service.status_steps = [{"b.jpg": "PROCESSED"}]
    service.artifacts[("b.jpg", "txt")] = b"b"
    service.artifacts[("b.jpg", "alto")] = b"<b/>"

    result = BatchRunner(client, batch_settings, engine_id=1).run(tmp_path)

    assert result.has_failures
    assert [a.key for a in result.poll.processed] == ["b.jpg"]
    assert not (tmp_path / "a.txt").exists()
    assert (tmp_path / "b.txt").exists()


def test_remote_failure_state_surfaces(client, service, batch_settings, tmp_path):
    make_jpeg(tmp_path / "a.jpg")
    make_jpeg(tmp_path / "b.jpg")
    service.status_steps = [{"a.jpg": "FAILED", "b.jpg": "PROCESSED"}]
    service.artifacts[("b.jpg", "txt")] = b"b"
    service.artifacts[("b.jpg", "alto")] = b"<b/>"

    result = BatchRunner(client, batch_settings, engine_id=1).run(tmp_path)

    assert result.poll.failed == {"a.jpg": "FAILED"}
    assert result.has_failures
    assert ("GET", "download_results/r1/a.jpg/txt") not in service.calls


def test_collision_fails_before_any_request(client, service, batch_settings, tmp_path):
    (tmp_path / "x").mkdir()
    (tmp_path / "y").mkdir()
    make_jpeg(tmp_path / "x" / "page 1.jpg")
    make_jpeg(tmp_path / "y" / "page1.jpg")

    with pytest.raises(KeyCollisionError):
        BatchRunner(client, batch_settings, engine_id=1).run(tmp_path)
    assert service.calls == []


def test_empty_directory(client, service, batch_settings, tmp_path):
    with pytest.raises(NoImagesError):
        BatchRunner(client, batch_settings, engine_id=1).run(tmp_path)
    assert service.calls == []


def test_submission_failure_aborts(client, service, batch_settings, tmp_path):
    make_jpeg(tmp_path / "a.jpg")
    service.create_response = httpx.Response(200, json={"status": "failure"})

    with pytest.raises(ServiceRejectedError):
        BatchRunner(client, batch_settings, engine_id=1).run(tmp_path)
    assert service.calls == [("POST", "post_processing_request")]


def test_nothing_uploaded(client, service, batch_settings, tmp_path):
    make_jpeg(tmp_path / "a.jpg")
    service.upload_failures["a.jpg"] = httpx.Response(500, json={})

    with pytest.raises(NothingUploadedError):
        BatchRunner(client, batch_settings, engine_id=1).run(tmp_path)
    assert service.status_calls == 0


def test_engine_id_sent(client, service, batch_settings, tmp_path):
    make_jpeg(tmp_path / "a.jpg")
    service.status_steps = [{"a.jpg": "PROCESSED"}]

    BatchRunner(client, batch_settings, engine_id=7).run(tmp_path)

    assert service.created["engine"] == 7


def test_download_only(client, service, batch_settings, tmp_path):
    make_tiff(tmp_path / "a.tif")
    service.request_id = "old"
    service.artifacts[("a.tif", "txt")] = b"a"
    service.artifacts[("a.tif", "alto")] = b"<a/>"

    report = BatchRunner(client, batch_settings, engine_id=1).download_only(tmp_path, "old")

    assert report.written == [tmp_path / "a.txt", tmp_path / "a.xml"]
    assert [call[0] for call in service.calls] == ["GET", "GET"]
