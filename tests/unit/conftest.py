from __future__ import annotations

import inspect
import json
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from omnireporter.config.reporter_config import ReporterConfig

TEST_BASE_URL = "https://omni.test/api/v1"
TEST_PROJECT_ID = "proj-1"
TEST_API_KEY = "secret-key"

_CONFIG_ENV_VARS = (
    "OMNI_BASE_URL",
    "OMNI_PROJECT_ID",
    "PROJECT_ID",
    "OMNI_API_KEY",
    "API_KEY",
    "OMNI_ENVIRONMENT",
    "OMNI_REQUEST_TIMEOUT",
    "OMNI_UPLOAD_TIMEOUT",
    "OMNI_FINISH_TIMEOUT",
    "OMNI_REPORT",
)


@dataclass
class RecordedRequest:
    method: str
    url: str
    params: dict[str, str] | None
    json: Any
    data: bytes | None
    headers: dict[str, str]


class FakeResponse:
    def __init__(
        self, status: int = 200, json_body: Any = None, text: str | None = None
    ) -> None:
        self.status = status
        self._json_body = json_body
        if text is None:
            text = json.dumps(json_body) if json_body is not None else ""
        self._text = text

    async def text(self) -> str:
        return self._text

    async def json(self, content_type: str | None = None) -> Any:
        if self._json_body is not None:
            return self._json_body
        return json.loads(self._text)


class _RequestContext:
    def __init__(self, session: FakeClientSession, request: RecordedRequest) -> None:
        self._session = session
        self._request = request

    async def __aenter__(self) -> FakeResponse:
        return await self._session._respond(self._request)

    async def __aexit__(self, *exc_info: object) -> bool:
        return False


class FakeClientSession:
    """Stand-in for ``aiohttp.ClientSession`` that records every request.

    Routes are matched by method and URL substring, the most recently added
    route first. A route answers with a status and body, raises ``error`` or
    delegates to ``handler``, which may be a coroutine function returning a
    ``FakeResponse`` or a JSON body to answer with status 200. Unrouted
    requests get a 404.
    """

    def __init__(self) -> None:
        self.requests: list[RecordedRequest] = []
        self.closed = False
        self._routes: list[tuple[str, str, Callable[[RecordedRequest], Any]]] = []

    def route(
        self,
        method: str,
        url_part: str,
        status: int = 200,
        json_body: Any = None,
        text: str | None = None,
        error: BaseException | None = None,
        handler: Callable[[RecordedRequest], Any] | None = None,
    ) -> None:
        if handler is None:

            def handler(_request: RecordedRequest) -> FakeResponse:
                if error is not None:
                    raise error
                return FakeResponse(status, json_body, text)

        self._routes.insert(0, (method.upper(), url_part, handler))

    async def _respond(self, request: RecordedRequest) -> FakeResponse:
        for method, url_part, handler in self._routes:
            if method == request.method and url_part in request.url:
                result = handler(request)
                if inspect.isawaitable(result):
                    result = await result
                if not isinstance(result, FakeResponse):
                    result = FakeResponse(200, result)
                return result
        return FakeResponse(404, text="not found")

    def _request(self, method: str, url: str, **kwargs: Any) -> _RequestContext:
        request = RecordedRequest(
            method=method,
            url=url,
            params=kwargs.get("params"),
            json=kwargs.get("json"),
            data=kwargs.get("data"),
            headers=dict(kwargs.get("headers") or {}),
        )
        self.requests.append(request)
        return _RequestContext(self, request)

    def post(self, url: str, **kwargs: Any) -> _RequestContext:
        return self._request("POST", url, **kwargs)

    def patch(self, url: str, **kwargs: Any) -> _RequestContext:
        return self._request("PATCH", url, **kwargs)

    def put(self, url: str, **kwargs: Any) -> _RequestContext:
        return self._request("PUT", url, **kwargs)

    def requests_to(self, method: str, url_part: str = "") -> list[RecordedRequest]:
        return [
            r
            for r in self.requests
            if r.method == method.upper() and url_part in r.url
        ]

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path: Path) -> Path:
    """Keep real profiles and reporter environment variables out of tests."""
    for name in _CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: home))
    return home


@pytest.fixture
def reporter_config() -> ReporterConfig:
    return ReporterConfig(
        base_url=TEST_BASE_URL,
        project_id=TEST_PROJECT_ID,
        api_key=TEST_API_KEY,
        environment="staging",
        request_timeout=5,
        upload_timeout=5,
        finish_timeout=5,
    )


@pytest.fixture
def fake_session() -> FakeClientSession:
    return FakeClientSession()


@pytest.fixture
def dashboard(fake_session: FakeClientSession) -> FakeClientSession:
    """Fake session answering build start and completion like the dashboard."""
    fake_session.route("POST", "/builds", json_body={"build": {"build_id": "b-1"}})
    fake_session.route("PATCH", "/builds", json_body={"build": {"build_id": "b-1"}})
    return fake_session
