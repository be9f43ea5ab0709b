"""Reconciliation of freshly fetched record batches into held collections.

``reconcile`` is synchronous and pure: it never awaits and never mutates its
inputs, so a caller can compute the next collection and swap it in as one
step on the event loop.

Sources are treated as incremental views: records missing from a batch are
kept.  Sources whose contract is full replacement bypass ``reconcile`` (see
``DashboardState.replace_*``).
"""

from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime
from typing import Generic, NamedTuple, Protocol, TypeVar

from aimo_dashboard.models import CallRecord, ShortageRecord
from aimo_dashboard.normalize.calls import PLACEHOLDER_CUSTOMER


T = TypeVar("T")


class Identified(Protocol):
    @property
    def id(self) -> str: ...


class ReconcileResult(NamedTuple, Generic[T]):
    records: list[T]
    changed: bool
    newly_arrived: list[T]


def replace_merge[R](existing: R, incoming: R) -> R:  # noqa: ARG001
    """Default merge: the incoming record wins outright."""
    return incoming


def dedupe_by_id[R: Identified](records: Iterable[R]) -> list[R]:
    """Keep the first record seen for each identity, preserving order."""
    seen: set[str] = set()
    unique: list[R] = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return unique


def reconcile[R: Identified](
    existing: Sequence[R],
    incoming: Iterable[R],
    merge: Callable[[R, R], R] = replace_merge,
    sort_key: Callable[[R], object] | None = None,
    reverse: bool = False,
) -> ReconcileResult[R]:
    """Merge ``incoming`` into ``existing`` by identity.

    Returns:
        The next collection, whether it differs structurally from ``existing``,
        and the records whose identity was not present before.
    """
    records = list(existing)
    index = {record.id: position for position, record in enumerate(records)}
    newly_arrived: list[R] = []

    for record in dedupe_by_id(incoming):
        position = index.get(record.id)
        if position is None:
            index[record.id] = len(records)
            records.append(record)
            newly_arrived.append(record)
        else:
            records[position] = merge(records[position], record)

    if sort_key is not None:
        records.sort(key=sort_key, reverse=reverse)  # pyright: ignore[reportArgumentType, reportCallIssue]

    changed = records != list(existing)
    return ReconcileResult(records, changed, newly_arrived)


# --- Shortages ---


def merge_shortage(existing: ShortageRecord, incoming: ShortageRecord, allow_reopen: bool = False) -> ShortageRecord:
    """Incoming wins, but a resolved shortage is never regressed to pending unless re-opening is explicit."""
    if existing.status == "resolved" and incoming.status != "resolved" and not allow_reopen:
        return incoming.model_copy(update={"status": "resolved"})
    return incoming


def reconcile_shortages(
    existing: Sequence[ShortageRecord],
    incoming: Iterable[ShortageRecord],
    allow_reopen: bool = False,
) -> ReconcileResult[ShortageRecord]:
    return reconcile(existing, incoming, merge=lambda old, new: merge_shortage(old, new, allow_reopen))


def resolve_matching(
    shortages: Sequence[ShortageRecord],
    is_resolved: Callable[[ShortageRecord], bool],
) -> ReconcileResult[ShortageRecord]:
    """Flip pending shortages matched by ``is_resolved`` to resolved. Already-resolved ones are untouched."""
    records: list[ShortageRecord] = []
    resolved: list[ShortageRecord] = []
    for shortage in shortages:
        if shortage.status != "resolved" and is_resolved(shortage):
            shortage = shortage.model_copy(update={"status": "resolved"})
            resolved.append(shortage)
        records.append(shortage)
    return ReconcileResult(records, bool(resolved), resolved)


# --- Calls ---

# Filled by a detail fetch; a later list poll must not blank them out
ENRICHED_CALL_FIELDS = ("transcript", "related_order_id", "related_sku", "audio_url", "photo_url")

# Detail values the list endpoint only approximates; held once a transcript is present
DETAIL_CALL_FIELDS = ("language", "direction", "outcome", "summary")


def merge_call(existing: CallRecord, incoming: CallRecord) -> CallRecord:
    """Incoming wins, except enrichment fields and known customer names are not clobbered by blanks.

    A record that already has a transcript came from a detail fetch, so a
    transcript-less incoming record cannot overwrite its detail-derived fields.
    """
    keep: dict[str, object] = {
        field: getattr(existing, field)
        for field in ENRICHED_CALL_FIELDS
        if not getattr(incoming, field) and getattr(existing, field)
    }
    if existing.transcript and not incoming.transcript:
        keep.update({field: getattr(existing, field) for field in DETAIL_CALL_FIELDS})
    if incoming.customer_name == PLACEHOLDER_CUSTOMER and existing.customer_name != PLACEHOLDER_CUSTOMER:
        keep["customer_name"] = existing.customer_name
    return incoming.model_copy(update=keep) if keep else incoming


def call_time_key(call: CallRecord) -> datetime:
    """Sort key for newest-first ordering; unparseable timestamps sort last."""
    try:
        moment = datetime.fromisoformat(call.time.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=UTC)
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=UTC)


def reconcile_calls(existing: Sequence[CallRecord], incoming: Iterable[CallRecord]) -> ReconcileResult[CallRecord]:
    return reconcile(existing, incoming, merge=merge_call, sort_key=call_time_key, reverse=True)


def sort_calls(calls: Iterable[CallRecord]) -> list[CallRecord]:
    return sorted(dedupe_by_id(calls), key=call_time_key, reverse=True)
