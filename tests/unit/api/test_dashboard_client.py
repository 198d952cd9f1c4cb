import asyncio

import aiohttp
import pytest

from omnireporter.api.dashboard_client import DashboardClient
from omnireporter.api.http_errors import extract_error_detail
from omnireporter.exceptions import BuildCompleteError, BuildStartError, SubmissionError
from omnireporter.payload import build_test_case_record


@pytest.fixture
def client(reporter_config, fake_session) -> DashboardClient:
    return DashboardClient(reporter_config, fake_session)


@pytest.mark.asyncio
async def test_start_build_request_shape(client, fake_session):
    fake_session.route("POST", "/builds", json_body={"build": {"build_id": "b-42"}})

    build_id = await client.start_build("staging")

    assert build_id == "b-42"
    (request,) = fake_session.requests
    assert request.url == "https://omni.test/api/v1/projects/proj-1/builds"
    assert request.params == {"days": "7", "environment": "staging"}
    assert request.json == {
        "duration": 0,
        "environment": "staging",
        "status": "in_progress",
    }
    assert request.headers == {
        "x-api-key": "secret-key",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


@pytest.mark.asyncio
async def test_start_build_without_id_raises(client, fake_session):
    fake_session.route("POST", "/builds", json_body={"build": {}})

    with pytest.raises(BuildStartError, match="build id"):
        await client.start_build("staging")


@pytest.mark.asyncio
async def test_start_build_http_error_carries_status_and_detail(client, fake_session):
    fake_session.route(
        "POST", "/builds", status=401, json_body={"detail": {"error": "bad key"}}
    )

    with pytest.raises(BuildStartError) as exc_info:
        await client.start_build("staging")

    assert exc_info.value.status == 401
    assert exc_info.value.body == "bad key"


@pytest.mark.asyncio
async def test_start_build_invalid_json_raises(client, fake_session):
    fake_session.route("POST", "/builds", text="<html>oops</html>")

    with pytest.raises(BuildStartError, match="not valid JSON"):
        await client.start_build("staging")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error", [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()]
)
async def test_start_build_transport_error(client, fake_session, error):
    fake_session.route("POST", "/builds", error=error)

    with pytest.raises(BuildStartError) as exc_info:
        await client.start_build("staging")

    assert exc_info.value.__cause__ is error


@pytest.mark.asyncio
async def test_complete_build_request_shape(client, fake_session):
    fake_session.route("PATCH", "/builds", json_body={"build": {"build_id": "b-42"}})

    build = await client.complete_build("b-42", "failed", 1234, "staging")

    assert build == {"build_id": "b-42"}
    (request,) = fake_session.requests
    assert request.method == "PATCH"
    assert request.params == {"build_id": "b-42"}
    assert request.json == {
        "progress_status": "completed",
        "status": "failed",
        "duration": 1234,
        "environment": "staging",
    }


@pytest.mark.asyncio
async def test_complete_build_error(client, fake_session):
    fake_session.route("PATCH", "/builds", status=500, text="boom")

    with pytest.raises(BuildCompleteError) as exc_info:
        await client.complete_build("b-42", "passed", 1, "staging")

    assert exc_info.value.status == 500
    assert exc_info.value.body == "boom"


@pytest.mark.asyncio
async def test_create_test_case_posts_record(client, fake_session):
    response = {"test_cases": [{"screenshots": [], "traces": []}]}
    fake_session.route("POST", "/test-cases", json_body=response)
    record = build_test_case_record("login", "passed", tags=["@P2"])

    data = await client.create_test_case("b-42", record)

    assert data == response
    (request,) = fake_session.requests
    assert request.url == "https://omni.test/api/v1/projects/proj-1/test-cases"
    assert request.json["build_id"] == "b-42"
    assert request.json["test_cases"] == [record.to_payload()]


@pytest.mark.asyncio
async def test_create_test_case_rejects_non_object_body(client, fake_session):
    fake_session.route("POST", "/test-cases", json_body=["unexpected"])
    record = build_test_case_record("login", "passed")

    with pytest.raises(SubmissionError, match="unexpected response body"):
        await client.create_test_case("b-42", record)


@pytest.mark.parametrize(
    "body, expected",
    [
        ('{"detail": {"error": "no access"}}', "no access"),
        ('{"detail": {"message": "gone"}}', "gone"),
        ('{"error": "flat"}', "flat"),
        ('{"detail": "plain detail"}', "plain detail"),
        ("not json", "not json"),
        ("[1, 2]", "[1, 2]"),
    ],
)
def test_extract_error_detail(body, expected):
    assert extract_error_detail(body) == expected
