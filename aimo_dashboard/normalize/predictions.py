"""Normalize prediction-batch and example-orders payloads into ShortageRecords."""

import logging
from collections.abc import Mapping
from typing import Any, NotRequired, TypedDict

from pydantic import ValidationError

from aimo_dashboard.errors import ShapeMismatchError
from aimo_dashboard.models import ReplacementSuggestion, ShortageRecord
from aimo_dashboard.normalize.product_names import format_product_name
from aimo_dashboard.normalize.shapes import (
    ShapeMatcher,
    as_mapping,
    first_present,
    is_number,
    list_at,
    match_shape,
    non_empty_list_at,
)

logger = logging.getLogger(__name__)

UNKNOWN_ORDER = "UNKNOWN_ORDER"
UNKNOWN_PRODUCT = "UNKNOWN_PRODUCT"
UNKNOWN_CUSTOMER = "Unknown customer"
LOW_RISK_LEVEL = "LOW"

PRODUCT_NAME_KEYS = ("Tuote", "product_name", "name")


# --- Prediction API request type ---


class PredictionBatchRequest(TypedDict):
    orders: list[dict[str, Any]]
    options: NotRequired[dict[str, Any]]


# --- Shapes ---


def _canonical_records(raw: Any) -> list[Any] | None:
    if isinstance(raw, list) and raw and isinstance(raw[0], Mapping):
        first: Mapping[str, Any] = raw[0]  # pyright: ignore[reportUnknownVariableType]
        if "id" in first and "sku" in first and ("riskScore" in first or "risk_score" in first):
            return raw  # pyright: ignore[reportUnknownVariableType]
    return None


CANONICAL_SHAPE = "records"

# Order of precedence matters: the first matcher that applies wins
PREDICTION_SHAPES: tuple[ShapeMatcher, ...] = (
    ShapeMatcher(CANONICAL_SHAPE, _canonical_records),
    ShapeMatcher("orders", list_at("orders")),
    ShapeMatcher("data.orders", list_at("data", "orders")),
    ShapeMatcher("list.orders", list_at(0, "orders")),
    ShapeMatcher("list.data.orders", list_at(0, "data", "orders")),
    ShapeMatcher("empty", lambda raw: [] if raw == [] else None),
)

EXAMPLE_ORDER_SHAPES: tuple[ShapeMatcher, ...] = (
    ShapeMatcher("multi_customer_orders", non_empty_list_at("multi_customer_orders", "data", "orders")),
    ShapeMatcher("batch_orders_example", non_empty_list_at("batch_orders_example", "data", "orders")),
    ShapeMatcher("cake_bakery_order", non_empty_list_at("cake_bakery_order", "data", "orders")),
    ShapeMatcher("data.orders", non_empty_list_at("data", "orders")),
    ShapeMatcher("orders", non_empty_list_at("orders")),
)


# --- Example orders ---


def extract_example_orders(raw: object) -> list[dict[str, Any]]:
    """Pull the orders list out of the example-data payload; empty list if none is found."""
    try:
        shape, orders = match_shape(raw, EXAMPLE_ORDER_SHAPES, source="example_orders")
    except ShapeMismatchError as exc:
        logger.warning("Example data payload has no orders: %s", exc.message)
        return []
    logger.debug("Example orders matched shape '%s' (%d orders)", shape, len(orders))
    return [order for order in orders if isinstance(order, Mapping)]


# --- Prediction batch ---


def normalize_predictions(raw: object) -> list[ShortageRecord]:
    """Map a prediction-batch response to ShortageRecords. Never raises on unknown shapes."""
    try:
        shape, items = match_shape(raw, PREDICTION_SHAPES, source="prediction_batch")
    except ShapeMismatchError as exc:
        logger.warning("Unrecognized prediction response: %s", exc.message)
        return []

    logger.debug("Prediction response matched shape '%s'", shape)
    if shape == CANONICAL_SHAPE:
        return _validate_canonical(items)
    predictions: list[ShortageRecord] = []
    for order in items:
        if isinstance(order, Mapping):
            predictions.extend(_order_to_shortages(order))  # pyright: ignore[reportUnknownArgumentType]
    return predictions


def _validate_canonical(items: list[Any]) -> list[ShortageRecord]:
    records: list[ShortageRecord] = []
    for item in items:
        try:
            records.append(ShortageRecord.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping invalid shortage record %r: %s", as_mapping(item).get("id"), exc)
    return records


def _order_to_shortages(order: Mapping[str, Any]) -> list[ShortageRecord]:
    order_number = str(first_present(order, "order_number", default=UNKNOWN_ORDER))
    customer = str(first_present(order, "customer_number", "customer_name", default=UNKNOWN_CUSTOMER))
    items = order.get("items")
    if not isinstance(items, list):
        return []

    shortages: list[ShortageRecord] = []
    for item in items:  # pyright: ignore[reportUnknownVariableType]
        if not isinstance(item, Mapping):
            continue
        if is_low_risk(item):  # pyright: ignore[reportUnknownArgumentType]
            continue
        shortages.append(_item_to_shortage(item, order_number, customer))  # pyright: ignore[reportUnknownArgumentType]
    return shortages


def is_low_risk(item: Mapping[str, Any]) -> bool:
    risk_level = item.get("risk_level")
    return isinstance(risk_level, str) and risk_level.strip().upper() == LOW_RISK_LEVEL


def _item_to_shortage(item: Mapping[str, Any], order_number: str, customer: str) -> ShortageRecord:
    product_code = str(first_present(item, "product_code", "sku", default=UNKNOWN_PRODUCT))
    product_info = as_mapping(item.get("product_info"))
    raw_name = first_present(product_info, *PRODUCT_NAME_KEYS) or product_code

    probability = item.get("stockout_probability")
    risk_score = min(max(float(probability), 0.0), 1.0) if is_number(probability) else 0.0

    return ShortageRecord(
        id=f"{order_number}-{product_code}",
        sku=product_code,
        product_name=format_product_name(str(raw_name)),
        customer_name=customer,
        risk_score=risk_score,
        status="pending",
        order_id=order_number,
        suggested_replacements=_replacements(item),
        kind="predicted",
    )


def _replacements(item: Mapping[str, Any]) -> list[ReplacementSuggestion]:
    raw = first_present(item, "suggested_replacements", "replacements", default=[])
    if not isinstance(raw, list):
        return []

    suggestions: list[ReplacementSuggestion] = []
    for entry in raw:  # pyright: ignore[reportUnknownVariableType]
        if not isinstance(entry, Mapping):
            continue
        sku = first_present(entry, "sku", "product_code")  # pyright: ignore[reportUnknownArgumentType]
        if sku is None:
            continue
        name = first_present(entry, "productName", "product_name", "Tuote", default=str(sku))  # pyright: ignore[reportUnknownArgumentType]
        tags = entry.get("tags")  # pyright: ignore[reportUnknownMemberType, reportUnknownVariableType]
        suggestions.append(
            ReplacementSuggestion(
                sku=str(sku),
                product_name=format_product_name(str(name)),
                reason=str(entry.get("reason") or ""),  # pyright: ignore[reportUnknownMemberType, reportUnknownArgumentType]
                tags=[str(tag) for tag in tags] if isinstance(tags, list) else [],  # pyright: ignore[reportUnknownVariableType]
            )
        )
    return suggestions
