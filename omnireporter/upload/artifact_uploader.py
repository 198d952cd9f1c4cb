"""Upload a single artifact file to a signed URL."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import aiohttp

from omnireporter.api.http_errors import read_error_detail
from omnireporter.const import DEFAULT_UPLOAD_TIMEOUT_SECONDS
from omnireporter.exceptions import UploadTransportError
from omnireporter.models import UploadTarget

logger = logging.getLogger(__name__)


class ArtifactUploader:
    """Upload one local file to one signed URL.

    This is a pure utility class with no knowledge of test cases. A PUT
    overwrites whatever the URL held before, so calling ``upload`` again
    with the same URL and file is safe.
    """

    SUCCESS_STATUS_RANGE = range(200, 300)

    def __init__(
        self,
        client_session: aiohttp.ClientSession,
        timeout: float = DEFAULT_UPLOAD_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the artifact uploader.

        Args:
            client_session: aiohttp ClientSession for HTTP requests
            timeout: Total timeout in seconds for one upload
        """
        self._session = client_session
        self._timeout = timeout

    async def _read_file(self, local_path: Path) -> bytes:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, local_path.read_bytes)
        except FileNotFoundError:
            raise
        except OSError as e:
            raise FileNotFoundError(
                f"Artifact file is not readable: {local_path}: {e}"
            ) from e

    async def upload(
        self, local_path: str | Path, target: UploadTarget, content_type: str
    ) -> int:
        """Upload the whole file with a single PUT.

        Args:
            local_path: Path of the file to upload.
            target: Signed URL the dashboard issued for this artifact.
            content_type: MIME type sent with the upload.

        Returns:
            Number of bytes uploaded.

        Raises:
            FileNotFoundError: If the local file is missing or unreadable.
            UploadTransportError: On network errors or a non-2xx response.
        """
        data = await self._read_file(Path(local_path))

        try:
            async with self._session.put(
                target.upload_url,
                data=data,
                headers={"Content-Type": content_type},
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as response:
                if response.status not in self.SUCCESS_STATUS_RANGE:
                    detail = await read_error_detail(response)
                    raise UploadTransportError(
                        f"Upload of {target.name} failed with HTTP "
                        f"{response.status}: {detail}",
                        status=response.status,
                        body=detail,
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UploadTransportError(f"Upload of {target.name} failed: {e!r}") from e

        logger.debug(f"Uploaded {len(data)} bytes for {target.name}")
        return len(data)
