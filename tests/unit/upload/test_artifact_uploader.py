from pathlib import Path

import aiohttp
import pytest

from omnireporter.exceptions import UploadTransportError
from omnireporter.models import ArtifactKind, UploadTarget
from omnireporter.upload.artifact_uploader import ArtifactUploader

UPLOAD_URL = "https://storage.test/upload/home.png?sig=abc"


@pytest.fixture
def target() -> UploadTarget:
    return UploadTarget(name="home.png", upload_url=UPLOAD_URL)


@pytest.fixture
def screenshot(tmp_path: Path) -> Path:
    path = tmp_path / "home.png"
    path.write_bytes(b"\x89PNG fake image")
    return path


@pytest.mark.asyncio
async def test_upload_puts_file_with_content_type(fake_session, target, screenshot):
    fake_session.route("PUT", "storage.test", status=200)
    uploader = ArtifactUploader(fake_session, timeout=5)

    uploaded = await uploader.upload(screenshot, target, "image/png")

    assert uploaded == len(b"\x89PNG fake image")
    (request,) = fake_session.requests
    assert request.method == "PUT"
    assert request.url == UPLOAD_URL
    assert request.data == b"\x89PNG fake image"
    assert request.headers == {"Content-Type": "image/png"}


@pytest.mark.asyncio
async def test_repeated_upload_overwrites(fake_session, target, screenshot):
    fake_session.route("PUT", "storage.test", status=201)
    uploader = ArtifactUploader(fake_session)

    await uploader.upload(screenshot, target, "image/png")
    screenshot.write_bytes(b"second version")
    await uploader.upload(screenshot, target, "image/png")

    puts = fake_session.requests_to("PUT", "storage.test")
    assert len(puts) == 2
    assert puts[-1].data == b"second version"


@pytest.mark.asyncio
async def test_missing_file_raises_before_any_request(fake_session, target, tmp_path):
    uploader = ArtifactUploader(fake_session)

    with pytest.raises(FileNotFoundError):
        await uploader.upload(tmp_path / "missing.png", target, "image/png")

    assert fake_session.requests == []


@pytest.mark.asyncio
async def test_non_2xx_raises_transport_error(fake_session, target, screenshot):
    fake_session.route(
        "PUT", "storage.test", status=403, text="<Error>SignatureExpired</Error>"
    )
    uploader = ArtifactUploader(fake_session)

    with pytest.raises(UploadTransportError) as exc_info:
        await uploader.upload(screenshot, target, "image/png")

    assert exc_info.value.status == 403
    assert "SignatureExpired" in exc_info.value.body


@pytest.mark.asyncio
async def test_client_error_raises_transport_error(fake_session, target, screenshot):
    fake_session.route(
        "PUT", "storage.test", error=aiohttp.ClientConnectionError("reset by peer")
    )
    uploader = ArtifactUploader(fake_session)

    with pytest.raises(UploadTransportError) as exc_info:
        await uploader.upload(screenshot, target, "application/zip")

    assert exc_info.value.status is None
    assert isinstance(exc_info.value.__cause__, aiohttp.ClientConnectionError)


@pytest.mark.asyncio
async def test_trace_content_type_is_sent(fake_session, tmp_path):
    trace = tmp_path / "trace.zip"
    trace.write_bytes(b"PK\x03\x04")
    fake_session.route("PUT", "storage.test", status=200)
    target = UploadTarget(
        name="trace.zip",
        upload_url="https://storage.test/upload/trace.zip",
        kind=ArtifactKind.TRACE,
    )

    await ArtifactUploader(fake_session).upload(
        trace, target, ArtifactKind.TRACE.content_type
    )

    assert fake_session.requests[0].headers["Content-Type"] == "application/zip"
