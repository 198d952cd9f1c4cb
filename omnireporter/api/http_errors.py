"""HTTP error helpers for extracting dashboard error details."""

from __future__ import annotations

import json
from typing import Any

import aiohttp


def extract_error_detail(body: str) -> str:
    """Extract an error detail from a raw error response body."""
    try:
        payload: Any = json.loads(body)
    except ValueError:
        return body

    if not isinstance(payload, dict):
        return str(payload)

    detail_payload = payload.get("detail", payload)
    if not isinstance(detail_payload, dict):
        return str(detail_payload)

    detail = (
        detail_payload.get("error")
        or detail_payload.get("message")
        or detail_payload.get("exception")
    )
    return str(detail) if detail else body


async def read_error_detail(response: aiohttp.ClientResponse) -> str:
    """Read an error response body and extract its detail."""
    try:
        body = await response.text()
    except (aiohttp.ClientError, UnicodeDecodeError):
        return ""
    return extract_error_detail(body)
