"""Canonical record types shared by normalizers, the reconciliation engine and the API.

Attributes are snake_case in Python and camelCase on the wire; either spelling
is accepted on input.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ShortageStatus = Literal["pending", "resolved"]
ShortageKind = Literal["predicted", "observed"]
CallDirection = Literal["inbound", "outbound"]
CallStatus = Literal["completed", "failed", "in_progress"]
CallOutcome = Literal[
    "replacement_accepted",
    "replacement_declined",
    "credits_only",
    "incomplete",
    "no_answer",
    "unknown",
]
Speaker = Literal["agent", "customer"]

# Historically observed upstream outcome values -> canonical outcome
OUTCOME_ALIASES: dict[str, CallOutcome] = {
    "accepted": "replacement_accepted",
    "replacement_accepted": "replacement_accepted",
    "declined": "replacement_declined",
    "rejected": "replacement_declined",
    "replacement_declined": "replacement_declined",
    "credits": "credits_only",
    "credit": "credits_only",
    "refund": "credits_only",
    "credits_only": "credits_only",
    "incomplete": "incomplete",
    "no_answer": "no_answer",
    "no-answer": "no_answer",
    "noanswer": "no_answer",
    "not_answered": "no_answer",
}


def canonical_outcome(value: object) -> CallOutcome:
    """Translate an upstream outcome value into the canonical enum; unrecognized -> ``unknown``."""
    if not isinstance(value, str):
        return "unknown"
    return OUTCOME_ALIASES.get(value.strip().lower(), "unknown")


class WireModel(BaseModel):
    """Base for records serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ReplacementSuggestion(WireModel):
    sku: str
    product_name: str
    reason: str = ""
    tags: list[str] = Field(default_factory=list)


class ShortageRecord(WireModel):
    """A predicted or observed shortage for a product/customer/order combination."""

    id: str
    sku: str
    product_name: str
    customer_name: str
    risk_score: float = Field(ge=0.0, le=1.0)
    status: ShortageStatus = "pending"
    order_id: str
    suggested_replacements: list[ReplacementSuggestion] = Field(default_factory=list)
    kind: ShortageKind | None = Field(default=None, alias="type")
    replacement_product: str | None = None


class TranscriptTurn(WireModel):
    speaker: Speaker
    text: str = ""


class CallRecord(WireModel):
    """One AI-agent phone conversation, inbound or outbound."""

    id: str
    time: str  # ISO 8601
    customer_name: str
    direction: CallDirection = "outbound"
    language: str = "fi"
    status: CallStatus
    outcome: CallOutcome = "unknown"
    related_order_id: str | None = None
    related_sku: str | None = None
    summary: str = ""
    transcript: list[TranscriptTurn] = Field(default_factory=list)
    duration_seconds: int = Field(default=0, ge=0)
    audio_url: str | None = None
    photo_url: str | None = None

    @field_validator("outcome", mode="before")
    @classmethod
    def _translate_outcome(cls, value: object) -> CallOutcome:
        return canonical_outcome(value)

    @field_validator("duration_seconds", mode="before")
    @classmethod
    def _whole_seconds(cls, value: object) -> object:
        if isinstance(value, float):
            return int(value)
        return value
