"""Unit tests for prediction-batch and example-orders normalization."""

from typing import Any

import pytest

from aimo_dashboard.normalize.predictions import (
    PREDICTION_SHAPES,
    extract_example_orders,
    is_low_risk,
    normalize_predictions,
)
from aimo_dashboard.normalize.shapes import match_shape

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _order(**overrides: Any) -> dict[str, Any]:
    order: dict[str, Any] = {
        "order_number": "ORD-100",
        "customer_number": "C-42",
        "items": [
            {
                "product_code": "6409",
                "stockout_probability": 0.82,
                "risk_level": "HIGH",
                "product_info": {"Tuote": "Valio kevytmaito 1 | ESL"},
            },
            {
                "product_code": "7001",
                "stockout_probability": 0.05,
                "risk_level": "low",
                "product_info": {"Tuote": "Valio voi 500g"},
            },
        ],
    }
    order.update(overrides)
    return order


# ---------------------------------------------------------------------------
# Shape precedence
# ---------------------------------------------------------------------------


class TestPredictionShapes:
    @pytest.mark.parametrize(
        ("payload", "shape"),
        [
            ({"orders": [_order()]}, "orders"),
            ({"data": {"orders": [_order()]}}, "data.orders"),
            ([{"orders": [_order()]}], "list.orders"),
            ([{"data": {"orders": [_order()]}}], "list.data.orders"),
            ([], "empty"),
        ],
    )
    def test_each_shape_recognized(self, payload: object, shape: str) -> None:
        name, _ = match_shape(payload, PREDICTION_SHAPES, source="test")
        assert name == shape

    def test_canonical_records_take_precedence(self) -> None:
        payload = [{"id": "x", "sku": "s", "riskScore": 0.5, "orders": []}]
        name, _ = match_shape(payload, PREDICTION_SHAPES, source="test")
        assert name == "records"

    def test_identity_stable_across_shapes(self) -> None:
        shapes: list[object] = [
            {"orders": [_order()]},
            {"data": {"orders": [_order()]}},
            [{"orders": [_order()]}],
            [{"data": {"orders": [_order()]}}],
        ]
        ids = [[record.id for record in normalize_predictions(payload)] for payload in shapes]
        assert all(found == ["ORD-100-6409"] for found in ids)


# ---------------------------------------------------------------------------
# Item mapping
# ---------------------------------------------------------------------------


class TestNormalizePredictions:
    def test_maps_order_item(self) -> None:
        [record] = normalize_predictions({"orders": [_order()]})
        assert record.id == "ORD-100-6409"
        assert record.sku == "6409"
        assert record.order_id == "ORD-100"
        assert record.customer_name == "C-42"
        assert record.product_name == "Valio Kevytmaito 1L (ESL)"
        assert record.risk_score == pytest.approx(0.82)
        assert record.status == "pending"
        assert record.kind == "predicted"
        assert record.suggested_replacements == []

    def test_low_risk_items_dropped_case_insensitively(self) -> None:
        records = normalize_predictions({"orders": [_order()]})
        assert "ORD-100-7001" not in {record.id for record in records}

    def test_defaults_for_missing_fields(self) -> None:
        [record] = normalize_predictions({"orders": [{"items": [{}]}]})
        assert record.id == "UNKNOWN_ORDER-UNKNOWN_PRODUCT"
        assert record.customer_name == "Unknown customer"
        assert record.sku == "UNKNOWN_PRODUCT"
        assert record.risk_score == 0.0

    def test_non_numeric_probability_becomes_zero(self) -> None:
        order = _order(items=[{"product_code": "1", "stockout_probability": "high"}])
        [record] = normalize_predictions({"orders": [order]})
        assert record.risk_score == 0.0

    def test_probability_clamped(self) -> None:
        order = _order(items=[{"product_code": "1", "stockout_probability": 1.7}])
        [record] = normalize_predictions({"orders": [order]})
        assert record.risk_score == 1.0

    def test_customer_name_alias(self) -> None:
        order = _order(customer_number=None, customer_name="Ravintola Savoy")
        records = normalize_predictions({"orders": [order]})
        assert records[0].customer_name == "Ravintola Savoy"

    def test_product_name_aliases(self) -> None:
        order = _order(items=[{"product_code": "1", "product_info": {"product_name": "valio maito 2"}}])
        [record] = normalize_predictions({"orders": [order]})
        assert record.product_name == "Valio Maito 2L"

    def test_replacements_mapped_with_aliases(self) -> None:
        item = {
            "product_code": "1",
            "replacements": [
                {"product_code": "2", "product_name": "valio rasvaton maito 1", "tags": ["fat-free"]},
                {"reason": "no sku, skipped"},
            ],
        }
        [record] = normalize_predictions({"orders": [_order(items=[item])]})
        [suggestion] = record.suggested_replacements
        assert suggestion.sku == "2"
        assert suggestion.product_name == "Valio Rasvaton Maito 1L"
        assert suggestion.tags == ["fat-free"]

    def test_canonical_records_validated(self) -> None:
        payload = [
            {"id": "a", "sku": "s1", "productName": "P", "customerName": "C", "riskScore": 0.4, "orderId": "O"},
            {"id": "b", "sku": "s2", "riskScore": 0.4},
        ]
        records = normalize_predictions(payload)
        assert [record.id for record in records] == ["a"]

    @pytest.mark.parametrize("payload", [None, "nope", {"unexpected": True}, 42])
    def test_unknown_shape_yields_empty(self, payload: object) -> None:
        assert normalize_predictions(payload) == []

    def test_non_list_items_ignored(self) -> None:
        assert normalize_predictions({"orders": [{"items": "oops"}, "not an order"]}) == []


class TestIsLowRisk:
    @pytest.mark.parametrize(("level", "expected"), [("LOW", True), (" low ", True), ("HIGH", False), (None, False)])
    def test_levels(self, level: object, expected: bool) -> None:
        assert is_low_risk({"risk_level": level}) is expected


# ---------------------------------------------------------------------------
# Example orders
# ---------------------------------------------------------------------------


class TestExtractExampleOrders:
    def test_multi_customer_orders_first(self) -> None:
        payload = {
            "multi_customer_orders": {"data": {"orders": [{"order_number": "A"}]}},
            "orders": [{"order_number": "B"}],
        }
        assert extract_example_orders(payload) == [{"order_number": "A"}]

    def test_empty_preferred_shape_falls_through(self) -> None:
        payload = {
            "multi_customer_orders": {"data": {"orders": []}},
            "cake_bakery_order": {"data": {"orders": [{"order_number": "C"}]}},
        }
        assert extract_example_orders(payload) == [{"order_number": "C"}]

    def test_plain_orders(self) -> None:
        assert extract_example_orders({"orders": [{"order_number": "B"}]}) == [{"order_number": "B"}]

    def test_no_orders(self) -> None:
        assert extract_example_orders({"something": "else"}) == []
