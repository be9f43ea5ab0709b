"""Shared HTTP plumbing for upstream sources.

Every call opens a fresh ``httpx.AsyncClient`` and asks for uncached data,
so nothing is reused between polls.  Failures are translated into the
``SourceError`` taxonomy; callers never see raw httpx exceptions.
"""

import json
import logging
from typing import Any

import httpx

from aimo_dashboard.config import get_settings
from aimo_dashboard.errors import MAX_BODY_EXCERPT, HttpStatusError, NetworkError, ParseError

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


def _timeout() -> float:
    return get_settings().http_timeout_seconds


async def _request(
    source: str,
    url: str,
    *,
    method: str = "GET",
    json_body: Any = None,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
) -> httpx.Response:
    request_headers = {**NO_CACHE_HEADERS, **(headers or {})}
    try:
        async with httpx.AsyncClient(timeout=_timeout()) as client:
            resp = await client.request(method, url, json=json_body, headers=request_headers, params=params)
    except httpx.TimeoutException as exc:
        raise NetworkError(source, f"request to {url} timed out") from exc
    except httpx.HTTPError as exc:
        raise NetworkError(source, f"cannot reach {url}: {exc}") from exc

    if not resp.is_success:
        logger.warning("%s returned HTTP %d", source, resp.status_code)
        raise HttpStatusError(source, resp.status_code, resp.text)
    return resp


def parse_json_body(source: str, text: str) -> Any:
    """Decode a response body; an empty or whitespace-only body means "no data" (``[]``).

    Raises:
        ParseError: If the body is not valid JSON.
    """
    if not text.strip():
        return []
    try:
        return json.loads(text)
    except ValueError as exc:
        logger.error("%s returned invalid JSON: %r", source, text[:MAX_BODY_EXCERPT])
        raise ParseError(source, text) from exc


async def fetch_json(
    source: str,
    url: str,
    *,
    method: str = "GET",
    json_body: Any = None,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
) -> Any:
    """Fetch and decode a JSON document.

    Raises:
        NetworkError: Transport failure or timeout.
        HttpStatusError: Non-2xx response.
        ParseError: 2xx response whose body is not JSON.
    """
    resp = await _request(source, url, method=method, json_body=json_body, headers=headers, params=params)
    return parse_json_body(source, resp.text)


async def fetch_bytes(source: str, url: str, *, headers: dict[str, str] | None = None) -> tuple[bytes, str]:
    """Fetch a binary payload, returning ``(content, content_type)``."""
    resp = await _request(source, url, headers=headers)
    return resp.content, resp.headers.get("content-type", "application/octet-stream")


async def post_json(source: str, url: str, json_body: Any, *, headers: dict[str, str] | None = None) -> int:
    """POST a JSON document where only the status matters; the response body is not decoded.

    Returns:
        The 2xx status code.

    Raises:
        NetworkError: Transport failure or timeout.
        HttpStatusError: Non-2xx response.
    """
    resp = await _request(source, url, method="POST", json_body=json_body, headers=headers)
    return resp.status_code
