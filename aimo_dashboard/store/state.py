"""In-memory reconciliation state held by the API process.

``DashboardState`` owns the shortages, observed-shortages and calls
collections plus a bounded notification feed.  Every mutation is synchronous:
the next collection is computed by the reconciliation engine and swapped in
without an ``await`` in between, so concurrent poll ticks on the event loop
never interleave a read-modify-write.
"""

import logging
from collections import deque
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import Field

from aimo_dashboard.models import CallRecord, ShortageRecord, WireModel
from aimo_dashboard.normalize.outbound import OutboundWebhookRow, derive_observed_shortages, resolves
from aimo_dashboard.observability.metrics import COLLECTION_SIZE, RECONCILE_CHANGES_TOTAL
from aimo_dashboard.reconcile.engine import (
    Identified,
    ReconcileResult,
    dedupe_by_id,
    reconcile_calls,
    reconcile_shortages,
    resolve_matching,
    sort_calls,
)

logger = logging.getLogger(__name__)

DEFAULT_NOTIFICATION_LIMIT = 50

NotificationKind = Literal["new_call", "resolved", "initial_load_error", "info"]
NotificationLevel = Literal["info", "success", "warning", "error"]


class Notification(WireModel):
    seq: int
    kind: NotificationKind
    level: NotificationLevel = "info"
    message: str
    record_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class RecordCollection[R: Identified]:
    """A versioned list of records. ``version`` only moves when the content actually changes."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.records: list[R] = []
        self.version = 0
        self.updated_at: datetime | None = None

    def __len__(self) -> int:
        return len(self.records)

    def get(self, record_id: str) -> R | None:
        return next((record for record in self.records if record.id == record_id), None)

    def apply(self, result: ReconcileResult[R]) -> ReconcileResult[R]:
        if result.changed:
            self.records = result.records
            self.version += 1
            self.updated_at = datetime.now(UTC)
            RECONCILE_CHANGES_TOTAL.labels(collection=self.name).inc()
            COLLECTION_SIZE.labels(collection=self.name).set(len(self.records))
        return result

    def replace(self, records: Sequence[R]) -> ReconcileResult[R]:
        """Swap the whole collection; records missing from ``records`` are dropped."""
        known = {record.id for record in self.records}
        next_records = list(records)
        newly_arrived = [record for record in next_records if record.id not in known]
        return self.apply(ReconcileResult(next_records, next_records != self.records, newly_arrived))


class DashboardState:
    def __init__(self, notification_limit: int = DEFAULT_NOTIFICATION_LIMIT) -> None:
        self.shortages: RecordCollection[ShortageRecord] = RecordCollection("shortages")
        self.observed: RecordCollection[ShortageRecord] = RecordCollection("observed")
        self.calls: RecordCollection[CallRecord] = RecordCollection("calls")
        self.notifications: deque[Notification] = deque(maxlen=max(notification_limit, 1))
        self._seq = 0

    # --- Shortages ---

    def merge_predictions(self, incoming: Iterable[ShortageRecord]) -> ReconcileResult[ShortageRecord]:
        return self.shortages.apply(reconcile_shortages(self.shortages.records, incoming))

    def replace_predictions(self, incoming: Iterable[ShortageRecord]) -> ReconcileResult[ShortageRecord]:
        """A new prediction cycle: the array becomes the collection, and stated statuses win."""
        return self.shortages.replace(dedupe_by_id(incoming))

    def upsert_prediction(self, record: ShortageRecord) -> ShortageRecord:
        self.shortages.apply(reconcile_shortages(self.shortages.records, [record]))
        return self.shortages.get(record.id) or record

    def apply_outbound_rows(self, rows: Sequence[OutboundWebhookRow]) -> list[ShortageRecord]:
        """Auto-resolve matching shortages and rebuild the observed view. Returns newly resolved shortages."""
        result = self.shortages.apply(
            resolve_matching(self.shortages.records, lambda shortage: any(resolves(row, shortage) for row in rows))
        )
        self.observed.replace(derive_observed_shortages(list(rows)))
        if result.newly_arrived:
            logger.info("Auto-resolved %d shortages from outbound rows", len(result.newly_arrived))
        return result.newly_arrived

    # --- Calls ---

    def merge_calls(self, incoming: Iterable[CallRecord]) -> ReconcileResult[CallRecord]:
        return self.calls.apply(reconcile_calls(self.calls.records, incoming))

    def replace_calls(self, incoming: Iterable[CallRecord]) -> ReconcileResult[CallRecord]:
        return self.calls.replace(sort_calls(incoming))

    def upsert_call(self, record: CallRecord) -> CallRecord:
        self.calls.apply(reconcile_calls(self.calls.records, [record]))
        return self.calls.get(record.id) or record

    def enrich_call(self, detail: CallRecord) -> CallRecord:
        """Merge a detail fetch into the held call, keeping anything the detail lacks."""
        return self.upsert_call(detail)

    # --- Seeding ---

    def seed_empty(self, predictions: Sequence[ShortageRecord], calls: Sequence[CallRecord]) -> list[str]:
        """Fill collections that are still empty. Returns the names of the seeded collections."""
        seeded: list[str] = []
        if not self.shortages.records and predictions:
            self.shortages.replace(dedupe_by_id(predictions))
            seeded.append(self.shortages.name)
        if not self.calls.records and calls:
            self.calls.replace(sort_calls(calls))
            seeded.append(self.calls.name)
        if seeded:
            logger.info("Seeded demo data into: %s", ", ".join(seeded))
        return seeded

    # --- Notifications ---

    def notify(
        self,
        kind: NotificationKind,
        message: str,
        level: NotificationLevel = "info",
        record_id: str | None = None,
    ) -> Notification:
        self._seq += 1
        notification = Notification(seq=self._seq, kind=kind, level=level, message=message, record_id=record_id)
        self.notifications.append(notification)
        return notification

    def notifications_since(self, seq: int = 0) -> list[Notification]:
        return [notification for notification in self.notifications if notification.seq > seq]

    # --- Read side ---

    def snapshot(self) -> dict[str, Any]:
        return {
            "predictions": [record.to_wire() for record in self.shortages.records],
            "observedShortages": [record.to_wire() for record in self.observed.records],
            "calls": [record.to_wire() for record in self.calls.records],
            "versions": {c.name: c.version for c in (self.shortages, self.observed, self.calls)},
            "updatedAt": {
                c.name: c.updated_at.isoformat() if c.updated_at else None
                for c in (self.shortages, self.observed, self.calls)
            },
            "notifications": [n.to_wire() for n in self.notifications],
        }
