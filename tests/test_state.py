"""Unit tests for DashboardState collections, notifications and snapshots."""

from typing import Any

from aimo_dashboard.models import CallRecord, ShortageRecord, TranscriptTurn
from aimo_dashboard.store.state import DashboardState


def _shortage(record_id: str = "s1", **fields: Any) -> ShortageRecord:
    data: dict[str, Any] = {
        "id": record_id,
        "sku": "6409",
        "product_name": "Valio Kevytmaito 1L (ESL)",
        "customer_name": "C-42",
        "risk_score": 0.8,
        "order_id": "ORD-1",
    }
    data.update(fields)
    return ShortageRecord(**data)


def _call(call_id: str = "c1", **fields: Any) -> CallRecord:
    data: dict[str, Any] = {
        "id": call_id,
        "time": "2025-01-01T10:00:00Z",
        "customer_name": "Customer",
        "status": "completed",
    }
    data.update(fields)
    return CallRecord(**data)


class TestVersions:
    def test_version_bumps_only_on_change(self) -> None:
        state = DashboardState()
        state.merge_predictions([_shortage()])
        assert state.shortages.version == 1
        assert state.shortages.updated_at is not None

        state.merge_predictions([_shortage()])
        assert state.shortages.version == 1

    def test_replace_drops_missing(self) -> None:
        state = DashboardState()
        state.merge_predictions([_shortage("a"), _shortage("b")])
        state.replace_predictions([_shortage("b")])
        assert [s.id for s in state.shortages.records] == ["b"]


class TestPredictions:
    def test_upsert_does_not_reopen_resolved(self) -> None:
        state = DashboardState()
        state.merge_predictions([_shortage(status="resolved")])
        stored = state.upsert_prediction(_shortage(status="pending"))
        assert stored.status == "resolved"

    def test_new_cycle_may_reopen(self) -> None:
        state = DashboardState()
        state.merge_predictions([_shortage(status="resolved")])
        state.replace_predictions([_shortage(status="pending")])
        assert state.shortages.records[0].status == "pending"

    def test_replace_dedupes_first_wins(self) -> None:
        state = DashboardState()
        state.replace_predictions([_shortage("a", risk_score=0.1), _shortage("a", risk_score=0.9)])
        assert [s.risk_score for s in state.shortages.records] == [0.1]


class TestOutboundRows:
    def test_auto_resolution_and_observed_view(self) -> None:
        state = DashboardState()
        state.merge_predictions([_shortage("a"), _shortage("b", sku="7001", product_name="Valio Voi 500G")])
        rows: list[Any] = [
            {"product_id": 6409, "product_name": "Valio kevytmaito 1 | ESL", "replaced": True, "called": True},
            {"product_id": 8000, "product_name": "kerma 2", "customer_number": "C-9", "replaced": False, "called": True},
        ]

        resolved = state.apply_outbound_rows(rows)

        assert [s.id for s in resolved] == ["a"]
        statuses = {s.id: s.status for s in state.shortages.records}
        assert statuses == {"a": "resolved", "b": "pending"}
        assert [o.id for o in state.observed.records] == ["observed-8000-C-9"]

    def test_reapplying_same_rows_changes_nothing(self) -> None:
        state = DashboardState()
        state.merge_predictions([_shortage("a")])
        rows: list[Any] = [{"product_id": 6409, "replaced": True, "called": None}]
        state.apply_outbound_rows(rows)
        versions = (state.shortages.version, state.observed.version)

        assert state.apply_outbound_rows(rows) == []
        assert (state.shortages.version, state.observed.version) == versions

    def test_observed_view_replaced_wholesale(self) -> None:
        state = DashboardState()
        state.apply_outbound_rows([{"product_id": 1, "customer_number": "A", "called": True}])
        state.apply_outbound_rows([{"product_id": 2, "customer_number": "B", "called": True}])
        assert [o.id for o in state.observed.records] == ["observed-2-B"]


class TestCalls:
    def test_enrich_keeps_list_fields_and_adds_transcript(self) -> None:
        state = DashboardState()
        state.merge_calls([_call(summary="From list")])
        detail = _call(customer_name="+358401234567", transcript=[TranscriptTurn(speaker="agent", text="Hei")])
        enriched = state.enrich_call(detail)
        assert enriched.customer_name == "+358401234567"
        assert len(enriched.transcript) == 1

        state.merge_calls([_call(summary="From list")])
        held = state.calls.get("c1")
        assert held is not None
        assert held.customer_name == "+358401234567"
        assert len(held.transcript) == 1

    def test_replace_calls_sorted(self) -> None:
        state = DashboardState()
        state.replace_calls([_call("a", time="2025-01-01T08:00:00Z"), _call("b", time="2025-01-02T08:00:00Z")])
        assert [c.id for c in state.calls.records] == ["b", "a"]

    def test_merge_reports_new_calls(self) -> None:
        state = DashboardState()
        state.merge_calls([_call("a")])
        result = state.merge_calls([_call("a"), _call("b")])
        assert [c.id for c in result.newly_arrived] == ["b"]


class TestSeedEmpty:
    def test_only_empty_collections_seeded(self) -> None:
        state = DashboardState()
        state.merge_calls([_call("live")])
        seeded = state.seed_empty([_shortage("demo")], [_call("demo-call")])
        assert seeded == ["shortages"]
        assert [c.id for c in state.calls.records] == ["live"]
        assert [s.id for s in state.shortages.records] == ["demo"]


class TestNotifications:
    def test_bounded_feed(self) -> None:
        state = DashboardState(notification_limit=2)
        for index in range(3):
            state.notify("info", f"message {index}")
        assert [n.seq for n in state.notifications] == [2, 3]

    def test_since(self) -> None:
        state = DashboardState()
        state.notify("new_call", "first")
        state.notify("new_call", "second")
        assert [n.message for n in state.notifications_since(1)] == ["second"]


class TestSnapshot:
    def test_wire_format(self) -> None:
        state = DashboardState()
        state.merge_predictions([_shortage(kind="predicted")])
        state.merge_calls([_call()])
        state.notify("new_call", "hello", record_id="c1")

        snapshot = state.snapshot()

        assert snapshot["predictions"][0]["productName"] == "Valio Kevytmaito 1L (ESL)"
        assert snapshot["predictions"][0]["type"] == "predicted"
        assert snapshot["calls"][0]["durationSeconds"] == 0
        assert snapshot["versions"] == {"shortages": 1, "observed": 0, "calls": 1}
        assert snapshot["updatedAt"]["observed"] is None
        assert snapshot["notifications"][0]["recordId"] == "c1"
