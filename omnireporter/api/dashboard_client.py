"""Client for the Omni dashboard HTTP API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from omnireporter.api.http_errors import read_error_detail
from omnireporter.config.reporter_config import ReporterConfig
from omnireporter.const import API_KEY_HEADER, BUILD_HISTORY_DAYS
from omnireporter.exceptions import (
    BuildCompleteError,
    BuildStartError,
    DashboardRequestError,
    SubmissionError,
)
from omnireporter.models import BuildState, TestCaseRecord

logger = logging.getLogger(__name__)


class DashboardClient:
    """Issue build and test case requests against the dashboard API."""

    def __init__(self, config: ReporterConfig, client_session: aiohttp.ClientSession):
        """Initialize the dashboard client.

        Args:
            config: Reporter configuration with endpoint, project and key.
            client_session: Shared aiohttp session for HTTP requests.
        """
        self._config = config
        self.client_session = client_session

    def _headers(self) -> dict[str, str]:
        return {
            API_KEY_HEADER: self._config.api_key or "",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _project_url(self, path: str) -> str:
        return f"{self._config.api_root}/projects/{self._config.project_id}/{path}"

    async def _send(
        self,
        method: str,
        url: str,
        payload: dict[str, Any],
        error_cls: type[DashboardRequestError],
        action: str,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Send a JSON request and return the decoded JSON response.

        Raises:
            DashboardRequestError: ``error_cls`` on transport errors, non-2xx
                responses and bodies that are not a JSON object.
        """
        request = getattr(self.client_session, method)
        try:
            async with request(
                url,
                params=params,
                json=payload,
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout),
            ) as response:
                if response.status >= 400:
                    detail = await read_error_detail(response)
                    raise error_cls(
                        f"Failed to {action}: HTTP {response.status}: {detail}",
                        status=response.status,
                        body=detail,
                    )
                try:
                    data = await response.json(content_type=None)
                except ValueError as exc:
                    raise error_cls(
                        f"Failed to {action}: response is not valid JSON",
                        status=response.status,
                    ) from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise error_cls(f"Failed to {action}: {exc!r}") from exc

        if not isinstance(data, dict):
            raise error_cls(
                f"Failed to {action}: unexpected response body {data!r}",
                status=response.status,
                body=str(data),
            )
        return data

    async def start_build(self, environment: str) -> str:
        """Create a build in progress and return its identifier.

        Raises:
            BuildStartError: If the request fails or no build id is returned.
        """
        data = await self._send(
            "post",
            self._project_url("builds"),
            {
                "duration": 0,
                "environment": environment,
                "status": BuildState.IN_PROGRESS.value,
            },
            BuildStartError,
            "start build",
            params={"days": str(BUILD_HISTORY_DAYS), "environment": environment},
        )
        build_id = (data.get("build") or {}).get("build_id")
        if not build_id:
            raise BuildStartError(
                "Failed to start build: response did not include a build id",
                body=str(data),
            )
        return str(build_id)

    async def complete_build(
        self, build_id: str, status: str, duration: int, environment: str
    ) -> dict[str, Any]:
        """Mark a build as completed.

        Raises:
            BuildCompleteError: If the request fails.
        """
        data = await self._send(
            "patch",
            self._project_url("builds"),
            {
                "progress_status": BuildState.COMPLETED.value,
                "status": status,
                "duration": duration,
                "environment": environment,
            },
            BuildCompleteError,
            f"complete build {build_id}",
            params={"build_id": build_id},
        )
        return data.get("build") or {}

    async def create_test_case(
        self, build_id: str, record: TestCaseRecord
    ) -> dict[str, Any]:
        """Post a test case record to a build.

        Returns:
            The raw response, which declares the artifact upload targets.

        Raises:
            SubmissionError: If the request fails.
        """
        logger.debug("Test case payload for %s: %s", record.name, record.to_payload())
        return await self._send(
            "post",
            self._project_url("test-cases"),
            {"build_id": build_id, "test_cases": [record.to_payload()]},
            SubmissionError,
            f"upload test case {record.name!r}",
        )
