"""ElevenLabs Conversational AI client: conversation list, detail and audio."""

import logging

from aimo_dashboard.config import get_settings
from aimo_dashboard.errors import HttpStatusError, SourceError
from aimo_dashboard.models import CallRecord
from aimo_dashboard.normalize.calls import ConversationDetail, map_detail, map_list_item, parse_conversation_list
from aimo_dashboard.normalize.shapes import as_mapping
from aimo_dashboard.reconcile.engine import sort_calls
from aimo_dashboard.sources.http import fetch_bytes, fetch_json

logger = logging.getLogger(__name__)

SOURCE = "elevenlabs"
PAGE_SIZE = 100


def is_configured() -> bool:
    return bool(get_settings().elevenlabs_api_key)


def _headers() -> dict[str, str]:
    return {"xi-api-key": get_settings().elevenlabs_api_key}


async def fetch_conversations() -> list[CallRecord]:
    """List recent conversations, newest first.

    Follows ``next_cursor`` while ``has_more`` is set, up to
    ``elevenlabs_max_pages`` pages. Without an API key this returns an
    empty list instead of failing.
    """
    settings = get_settings()
    if not settings.elevenlabs_api_key:
        logger.warning("ElevenLabs API key not set, returning no conversations")
        return []

    base = settings.elevenlabs_api_base_url.rstrip("/")
    calls: list[CallRecord] = []
    cursor: str | None = None

    for _ in range(max(settings.elevenlabs_max_pages, 1)):
        params: dict[str, str | int] = {"page_size": PAGE_SIZE}
        if cursor:
            params["cursor"] = cursor
        raw = await fetch_json(SOURCE, f"{base}/convai/conversations", headers=_headers(), params=params)
        calls.extend(map_list_item(item, base) for item in parse_conversation_list(raw))

        page = as_mapping(raw)
        cursor = page.get("next_cursor")
        if not page.get("has_more") or not cursor:
            break

    return sort_calls(calls)


async def fetch_conversation(conversation_id: str) -> CallRecord:
    """Fetch one conversation with transcript and phone metadata.

    Raises:
        SourceError: If no API key is configured, or the request fails.
    """
    settings = get_settings()
    if not settings.elevenlabs_api_key:
        raise SourceError(SOURCE, "API key not configured")

    base = settings.elevenlabs_api_base_url.rstrip("/")
    raw = await fetch_json(SOURCE, f"{base}/convai/conversations/{conversation_id}", headers=_headers())
    detail: ConversationDetail = dict(as_mapping(raw))  # pyright: ignore[reportAssignmentType]
    if not detail.get("conversation_id"):
        detail["conversation_id"] = conversation_id
    return map_detail(detail, base)


async def fetch_conversation_audio(conversation_id: str) -> tuple[bytes, str] | None:
    """Recording bytes and content type, or None when no key is set or no audio exists."""
    settings = get_settings()
    if not settings.elevenlabs_api_key:
        logger.warning("ElevenLabs API key not set, cannot fetch audio")
        return None

    base = settings.elevenlabs_api_base_url.rstrip("/")
    try:
        return await fetch_bytes(SOURCE, f"{base}/convai/conversations/{conversation_id}/audio", headers=_headers())
    except HttpStatusError as exc:
        if exc.status_code == 404:
            logger.info("Audio not available for conversation %s", conversation_id)
            return None
        raise
