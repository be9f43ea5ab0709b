"""Default poll tasks wiring sources to ``DashboardState``."""

from collections.abc import Sequence

from aimo_dashboard.config import get_settings
from aimo_dashboard.models import CallRecord, ShortageRecord
from aimo_dashboard.normalize.outbound import OutboundWebhookRow
from aimo_dashboard.polling.scheduler import PollingScheduler, PollTask
from aimo_dashboard.sources.fallback import fetch_call_records
from aimo_dashboard.sources.outbound import fetch_outbound_rows
from aimo_dashboard.sources.predictions import fetch_shortage_predictions
from aimo_dashboard.store.state import DashboardState

SOURCE_NAMES = ("predictions", "outbound", "calls")

# Outbound rows resolve shortages, so they are applied only once shortages are held
RECORD_SOURCES = ("predictions", "calls")
RESOLUTION_SOURCES = ("outbound",)


def build_poll_tasks(state: DashboardState) -> list[PollTask]:
    settings = get_settings()

    def apply_predictions(records: list[ShortageRecord]) -> list[ShortageRecord]:
        return state.merge_predictions(records).newly_arrived

    def apply_outbound(rows: list[OutboundWebhookRow]) -> list[ShortageRecord]:
        return state.apply_outbound_rows(rows)

    def notify_resolved(resolved: Sequence[ShortageRecord]) -> None:
        for shortage in resolved:
            state.notify(
                "resolved",
                f"{shortage.product_name} resolved for {shortage.customer_name}",
                level="success",
                record_id=shortage.id,
            )

    def apply_calls(calls: list[CallRecord]) -> list[CallRecord]:
        return state.merge_calls(calls).newly_arrived

    def notify_new_calls(calls: Sequence[CallRecord]) -> None:
        for call in calls:
            state.notify("new_call", f"New {call.direction} call: {call.customer_name}", record_id=call.id)

    return [
        PollTask("predictions", settings.poll_predictions_seconds, fetch_shortage_predictions, apply_predictions),
        PollTask(
            "outbound",
            settings.poll_outbound_seconds,
            fetch_outbound_rows,
            apply_outbound,
            notify_resolved,
            stage=1,
        ),
        PollTask("calls", settings.poll_calls_seconds, fetch_call_records, apply_calls, notify_new_calls),
    ]


def build_scheduler(state: DashboardState) -> PollingScheduler:
    return PollingScheduler(build_poll_tasks(state))


def report_initial_errors(state: DashboardState, errors: dict[str, str]) -> None:
    """Surface initial-load failures once, as a single error notification."""
    if not errors:
        return
    detail = "; ".join(f"{name}: {message}" for name, message in sorted(errors.items()))
    state.notify("initial_load_error", f"Some data could not be loaded: {detail}", level="error")
