"""Normalize ElevenLabs conversations and static call payloads into CallRecords.

ElevenLabs exposes two shapes for the same conversation: a lightweight list
item (no transcript, no phone metadata) and a full detail object.  Both map to
the same ``CallRecord`` identity (``conversation_id``) so a detail fetch can
enrich a record first seen in a list poll.
"""

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, TypedDict

from pydantic import ValidationError

from aimo_dashboard.errors import ShapeMismatchError
from aimo_dashboard.models import CallDirection, CallOutcome, CallRecord, CallStatus, TranscriptTurn
from aimo_dashboard.normalize.shapes import (
    ShapeMatcher,
    as_mapping,
    first_present,
    is_number,
    list_at,
    match_shape,
    single_object_with,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_CUSTOMER = "Customer"
DEFAULT_LANGUAGE = "fi"
DEFAULT_SUMMARY = "Call conversation"
MAX_GENERATED_SUMMARY = 100

ACTIVE_STATUSES = frozenset({"processing", "initiated"})

CREDIT_KEYWORDS = ("krediitti", "credit", "raha", "refund")
ACCEPT_KEYWORDS = ("sopii", "käy", "hyväksyn", "ok", "yes", "accept")


# --- ElevenLabs API response types ---


class ConversationListItem(TypedDict, total=False):
    agent_id: str
    conversation_id: str
    status: str  # processing | done | failed | initiated
    start_time_unix_secs: int
    call_duration_secs: int
    message_count: int
    call_successful: str
    transcript_summary: str | None
    call_summary_title: str | None
    direction: str | None
    agent_name: str


class ConversationTurn(TypedDict, total=False):
    role: str  # user | agent
    message: str | None
    time_in_call_secs: float


class ConversationDetail(TypedDict, total=False):
    agent_id: str
    conversation_id: str
    status: str
    transcript: list[ConversationTurn]
    metadata: dict[str, Any]
    analysis: dict[str, Any]
    has_audio: bool
    has_user_audio: bool
    has_response_audio: bool


CONVERSATION_LIST_SHAPES: tuple[ShapeMatcher, ...] = (
    ShapeMatcher("list", lambda raw: raw if isinstance(raw, list) else None),  # pyright: ignore[reportUnknownLambdaType]
    ShapeMatcher("conversations", list_at("conversations")),
)

CALL_RECORD_SHAPES: tuple[ShapeMatcher, ...] = (
    ShapeMatcher("list", lambda raw: raw if isinstance(raw, list) else None),  # pyright: ignore[reportUnknownLambdaType]
    ShapeMatcher("calls", list_at("calls")),
    ShapeMatcher("data", list_at("data")),
    ShapeMatcher("single", single_object_with("id")),
)


# --- Shared helpers ---


def _iso_from_unix(seconds: object) -> str:
    if is_number(seconds) and seconds:
        moment = datetime.fromtimestamp(float(seconds), tz=UTC)  # pyright: ignore[reportArgumentType]
    else:
        moment = datetime.now(tz=UTC)
    return moment.isoformat().replace("+00:00", "Z")


def _duration(value: object) -> int:
    return max(int(value), 0) if is_number(value) else 0  # pyright: ignore[reportArgumentType]


def _direction(value: object) -> CallDirection:
    return "inbound" if value == "inbound" else "outbound"


def map_status(upstream_status: str | None, has_transcript: bool) -> CallStatus:
    """Active calls are always in progress; ``done`` or any transcript evidence means completed."""
    if upstream_status in ACTIVE_STATUSES:
        return "in_progress"
    if upstream_status == "done" or has_transcript:
        return "completed"
    if upstream_status == "failed":
        return "failed"
    return "completed"


def audio_url(api_base: str, conversation_id: str) -> str:
    return f"{api_base}/convai/conversations/{conversation_id}/audio"


# --- List endpoint ---


def parse_conversation_list(raw: object) -> list[ConversationListItem]:
    try:
        _, items = match_shape(raw, CONVERSATION_LIST_SHAPES, source="elevenlabs")
    except ShapeMismatchError as exc:
        logger.warning("Unrecognized ElevenLabs conversation list: %s", exc.message)
        return []
    return [item for item in items if isinstance(item, Mapping) and item.get("conversation_id")]  # pyright: ignore[reportReturnType, reportUnknownMemberType]


def map_list_item(conv: ConversationListItem, api_base: str) -> CallRecord:
    """Map a list-endpoint conversation. Transcript and phone metadata arrive later via detail."""
    upstream_status = conv.get("status")
    summary_text = conv.get("transcript_summary") or ""
    has_transcript = bool(summary_text) or (conv.get("message_count") or 0) > 0
    succeeded = upstream_status == "done" and conv.get("call_successful") == "success"

    outcome: CallOutcome = "incomplete"
    if succeeded:
        haystack = (conv.get("transcript_summary") or conv.get("call_summary_title") or "").lower()
        outcome = "credits_only" if "refund" in haystack or "credit" in haystack else "replacement_accepted"

    conversation_id = conv.get("conversation_id", "")
    return CallRecord(
        id=conversation_id,
        time=_iso_from_unix(conv.get("start_time_unix_secs")),
        customer_name=PLACEHOLDER_CUSTOMER,
        direction=_direction(conv.get("direction")),
        language=DEFAULT_LANGUAGE,
        status=map_status(upstream_status, has_transcript),
        outcome=outcome,
        summary=conv.get("call_summary_title") or conv.get("transcript_summary") or DEFAULT_SUMMARY,
        transcript=[],
        duration_seconds=_duration(conv.get("call_duration_secs")),
        audio_url=audio_url(api_base, conversation_id) if succeeded else None,
    )


# --- Detail endpoint ---


def determine_outcome(transcript: list[TranscriptTurn], upstream_status: str | None) -> CallOutcome:
    """Keyword classifier over the transcript (Finnish and English)."""
    if upstream_status == "failed" or upstream_status in ACTIVE_STATUSES:
        return "incomplete"

    text = " ".join(turn.text.lower() for turn in transcript)
    if any(keyword in text for keyword in CREDIT_KEYWORDS):
        return "credits_only"
    if any(keyword in text for keyword in ACCEPT_KEYWORDS):
        return "replacement_accepted"
    if len(transcript) <= 1:
        return "incomplete"
    return "replacement_accepted"


def generate_summary(transcript: list[TranscriptTurn], metadata: Mapping[str, Any]) -> str:
    summary = metadata.get("summary")
    if isinstance(summary, str) and summary:
        return summary

    for turn in transcript:
        if turn.speaker == "agent":
            if len(turn.text) > MAX_GENERATED_SUMMARY:
                return turn.text[:MAX_GENERATED_SUMMARY] + "..."
            return turn.text
    return DEFAULT_SUMMARY


def map_detail(conv: ConversationDetail, api_base: str) -> CallRecord:
    """Map a full conversation (transcript, phone metadata, analysis)."""
    turns = conv.get("transcript") or []
    transcript = [
        TranscriptTurn(speaker="customer" if turn.get("role") == "user" else "agent", text=turn.get("message") or "")
        for turn in turns
    ]
    metadata = as_mapping(conv.get("metadata"))
    analysis = as_mapping(conv.get("analysis"))
    phone_call = as_mapping(metadata.get("phone_call"))
    upstream_status = conv.get("status")

    has_transcript = bool(transcript) or bool(analysis.get("transcript_summary"))

    outcome: CallOutcome = "incomplete"
    if analysis.get("call_successful") == "success":
        outcome = determine_outcome(transcript, upstream_status)

    summary = (
        analysis.get("call_summary_title")
        or analysis.get("transcript_summary")
        or generate_summary(transcript, metadata)
    )
    related_order = first_present(metadata, "order_id", "orderId")
    related_sku = first_present(metadata, "sku", "product_sku")
    has_audio = bool(conv.get("has_audio") or conv.get("has_user_audio") or conv.get("has_response_audio"))
    conversation_id = conv.get("conversation_id", "")

    return CallRecord(
        id=conversation_id,
        time=_iso_from_unix(metadata.get("start_time_unix_secs")),
        customer_name=str(phone_call.get("external_number") or PLACEHOLDER_CUSTOMER),
        direction=_direction(first_present(phone_call, "direction") or metadata.get("direction")),
        language=str(metadata.get("main_language") or DEFAULT_LANGUAGE),
        status=map_status(upstream_status, has_transcript),
        outcome=outcome,
        related_order_id=None if related_order is None else str(related_order),
        related_sku=None if related_sku is None else str(related_sku),
        summary=str(summary),
        transcript=transcript,
        duration_seconds=_duration(metadata.get("call_duration_secs")),
        audio_url=audio_url(api_base, conversation_id) if has_audio else None,
    )


# --- Static / webhook call payloads ---


def normalize_call_records(raw: object) -> list[CallRecord]:
    """Validate canonical call payloads from any known shape; invalid entries are skipped."""
    try:
        _, items = match_shape(raw, CALL_RECORD_SHAPES, source="calls")
    except ShapeMismatchError as exc:
        logger.warning("Unrecognized calls payload: %s", exc.message)
        return []

    records: list[CallRecord] = []
    for item in items:
        try:
            records.append(CallRecord.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping invalid call record %r: %s", as_mapping(item).get("id"), exc)
    return records
