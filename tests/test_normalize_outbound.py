"""Unit tests for outbound webhook rows: parsing, observed view, resolution matching."""

from typing import Any

import pytest

from aimo_dashboard.models import ShortageRecord
from aimo_dashboard.normalize.outbound import (
    derive_observed_shortages,
    is_observed,
    parse_outbound_rows,
    resolves,
)


def _row(**fields: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "product_name": "Valio kevytmaito 1 | ESL",
        "product_id": 6409,
        "customer_number": "C-42",
        "replaced": False,
        "called": True,
    }
    row.update(fields)
    return row


def _shortage(**fields: Any) -> ShortageRecord:
    data: dict[str, Any] = {
        "id": "ORD-1-6409",
        "sku": "6409",
        "product_name": "Valio Kevytmaito 1L (ESL)",
        "customer_name": "C-42",
        "risk_score": 0.8,
        "order_id": "ORD-1",
    }
    data.update(fields)
    return ShortageRecord(**data)


class TestParseOutboundRows:
    @pytest.mark.parametrize(
        "payload",
        [
            [_row()],
            {"data": [_row()]},
            {"rows": [_row()]},
            _row(),
        ],
    )
    def test_known_shapes(self, payload: object) -> None:
        rows = parse_outbound_rows(payload)
        assert len(rows) == 1
        assert rows[0]["product_id"] == 6409

    def test_non_object_entries_skipped(self) -> None:
        assert len(parse_outbound_rows([_row(), "junk", 3, None])) == 1

    def test_unknown_shape_is_empty(self) -> None:
        assert parse_outbound_rows({"status": "ok"}) == []

    def test_legacy_tuote_single_row(self) -> None:
        assert parse_outbound_rows({"Tuote": "maito"}) == [{"Tuote": "maito"}]


class TestIsObserved:
    @pytest.mark.parametrize(
        ("fields", "expected"),
        [
            ({"called": True, "replaced": False}, True),
            ({"called": None, "replaced": None}, True),
            ({"called": True, "replaced": True}, False),
            ({"called": False, "replaced": False}, False),
        ],
    )
    def test_flags(self, fields: dict[str, Any], expected: bool) -> None:
        assert is_observed(_row(**fields)) is expected

    def test_missing_called_key_not_observed(self) -> None:
        row = _row()
        del row["called"]
        assert is_observed(row) is False


class TestDeriveObservedShortages:
    def test_maps_row(self) -> None:
        [record] = derive_observed_shortages([_row(replacedWith="valio rasvaton maito 1")])  # type: ignore[list-item]
        assert record.id == "observed-6409-C-42"
        assert record.sku == "6409"
        assert record.order_id == "OBS-6409"
        assert record.risk_score == 1.0
        assert record.kind == "observed"
        assert record.product_name == "Valio Kevytmaito 1L (ESL)"
        assert record.replacement_product == "Valio Rasvaton Maito 1L"
        assert record.to_wire()["type"] == "observed"

    def test_deduplicated_by_sku_and_customer(self) -> None:
        rows = [_row(), _row(product_name="other name"), _row(customer_number="C-7")]
        records = derive_observed_shortages(rows)  # type: ignore[arg-type]
        assert [r.id for r in records] == ["observed-6409-C-42", "observed-6409-C-7"]
        assert records[0].product_name == "Valio Kevytmaito 1L (ESL)"

    def test_replaced_rows_excluded(self) -> None:
        assert derive_observed_shortages([_row(replaced=True)]) == []  # type: ignore[list-item]

    def test_missing_fields_defaulted(self) -> None:
        [record] = derive_observed_shortages([{"called": True}])
        assert record.customer_name == "Unknown Customer"
        assert record.product_name == "Unknown Product"
        assert record.replacement_product is None


class TestResolves:
    def test_matches_by_product_id(self) -> None:
        assert resolves(_row(replaced=True, product_name="something else"), _shortage())

    def test_matches_by_raw_name_ignoring_case_and_whitespace(self) -> None:
        row = _row(replaced=True, product_id=None, product_name="  valio kevytmaito 1L (esl) ")
        assert resolves(row, _shortage())

    def test_matches_by_formatted_name(self) -> None:
        row = _row(replaced=True, product_id=None, product_name="Valio kevytmaito 1 | ESL")
        assert resolves(row, _shortage())

    def test_legacy_tuote_name(self) -> None:
        row = {"replaced": True, "Tuote": "Valio kevytmaito 1 | ESL"}
        assert resolves(row, _shortage())

    def test_not_replaced_never_resolves(self) -> None:
        assert not resolves(_row(replaced=False), _shortage())

    def test_unrelated_product(self) -> None:
        assert not resolves(_row(replaced=True, product_id=1, product_name="voi"), _shortage())
