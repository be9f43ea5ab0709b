"""Call sources combined: ElevenLabs first, a static calls JSON as fallback."""

import logging

from aimo_dashboard.config import get_settings
from aimo_dashboard.errors import SourceError
from aimo_dashboard.models import CallRecord
from aimo_dashboard.normalize.calls import normalize_call_records
from aimo_dashboard.reconcile.engine import sort_calls
from aimo_dashboard.sources import elevenlabs
from aimo_dashboard.sources.http import fetch_json

logger = logging.getLogger(__name__)

SOURCE = "calls_fallback"


async def fetch_static_calls() -> list[CallRecord]:
    url = get_settings().calls_fallback_url
    if not url:
        return []
    return sort_calls(normalize_call_records(await fetch_json(SOURCE, url)))


async def fetch_call_records() -> list[CallRecord]:
    """ElevenLabs conversations, or the static fallback when ElevenLabs is empty or failing.

    Raises:
        SourceError: The ElevenLabs error, when the fallback cannot stand in for it.
    """
    primary_error: SourceError | None = None
    try:
        calls = await elevenlabs.fetch_conversations()
    except SourceError as exc:
        logger.warning("ElevenLabs unavailable, trying static calls: %s", exc)
        primary_error = exc
        calls = []

    if calls:
        return calls

    try:
        fallback = await fetch_static_calls()
    except SourceError as exc:
        logger.warning("Static calls fallback failed: %s", exc)
        if primary_error is not None:
            raise primary_error from exc
        raise

    if not fallback and primary_error is not None:
        raise primary_error
    return fallback
