"""Normalize rows from the n8n outbound-resolution webhook.

One row describes one product a customer was called about.  ``replaced``
says whether a replacement was confirmed, ``called`` whether the customer was
reached.  The same rows feed two things:

* the Observed Shortages view: items called about but not yet replaced, and
* resolution signals: ``replaced == true`` rows that resolve pending predictions.
"""

import logging
from collections.abc import Mapping
from typing import Any, TypedDict

from aimo_dashboard.errors import ShapeMismatchError
from aimo_dashboard.models import ShortageRecord
from aimo_dashboard.normalize.product_names import format_product_name
from aimo_dashboard.normalize.shapes import (
    ShapeMatcher,
    first_present,
    list_at,
    match_shape,
    normalize_key,
    single_object_with,
)

logger = logging.getLogger(__name__)

UNKNOWN_PRODUCT_NAME = "Unknown Product"
UNKNOWN_CUSTOMER = "Unknown Customer"
OBSERVED_RISK_SCORE = 1.0

# Newer n8n flows send `product_name`; older ones used the Finnish `Tuote`
PRODUCT_NAME_KEYS = ("product_name", "Tuote")


class OutboundWebhookRow(TypedDict, total=False):
    product_name: str
    Tuote: str
    product_qty: str
    product_id: int | str
    id: int | str
    customer_number: int | str
    replaced: bool | None
    called: bool | None
    replacedWith: str | None
    replacedWith_qty: float | None
    replacedWith_id: int | None
    createdAt: str
    updatedAt: str


OUTBOUND_ROW_SHAPES: tuple[ShapeMatcher, ...] = (
    ShapeMatcher("list", lambda raw: raw if isinstance(raw, list) else None),  # pyright: ignore[reportUnknownLambdaType]
    ShapeMatcher("data", list_at("data")),
    ShapeMatcher("rows", list_at("rows")),
    ShapeMatcher("single", single_object_with("product_id", "product_name", "Tuote")),
)


def parse_outbound_rows(raw: object) -> list[OutboundWebhookRow]:
    """Extract webhook rows from any known payload shape; non-object entries are skipped."""
    try:
        _, items = match_shape(raw, OUTBOUND_ROW_SHAPES, source="outbound_webhook")
    except ShapeMismatchError as exc:
        logger.warning("Unrecognized outbound webhook payload: %s", exc.message)
        return []
    return [item for item in items if isinstance(item, Mapping)]  # pyright: ignore[reportReturnType]


def row_product_name(row: Mapping[str, Any]) -> str | None:
    name = first_present(row, *PRODUCT_NAME_KEYS)
    return None if name is None else str(name)


def is_observed(row: Mapping[str, Any]) -> bool:
    """Called about (or call state explicitly unknown) and not yet replaced.

    A row missing the ``called`` key entirely is not observed; only an explicit
    null counts as "unknown".
    """
    if row.get("replaced") is True:
        return False
    called = row.get("called")
    return called is True or ("called" in row and called is None)


def is_resolution_signal(row: Mapping[str, Any]) -> bool:
    return row.get("replaced") is True


def observed_shortage_id(sku: str, customer_name: str) -> str:
    return f"observed-{sku}-{customer_name}"


def derive_observed_shortages(rows: list[OutboundWebhookRow]) -> list[ShortageRecord]:
    """Project webhook rows into the Observed Shortages view, deduplicated by (sku, customer)."""
    observed: list[ShortageRecord] = []
    seen: set[tuple[str, str]] = set()

    for index, row in enumerate(rows):
        if not is_observed(row):
            continue

        product_id = str(first_present(row, "product_id", "id", default=f"observed-{index}"))
        customer_name = str(first_present(row, "customer_number", default=UNKNOWN_CUSTOMER))
        key = (product_id, customer_name)
        if key in seen:
            continue
        seen.add(key)

        replacement = row.get("replacedWith")
        observed.append(
            ShortageRecord(
                id=observed_shortage_id(product_id, customer_name),
                sku=product_id,
                product_name=format_product_name(row_product_name(row) or UNKNOWN_PRODUCT_NAME),
                customer_name=customer_name,
                risk_score=OBSERVED_RISK_SCORE,
                status="pending",
                order_id=f"OBS-{product_id}",
                suggested_replacements=[],
                kind="observed",
                replacement_product=format_product_name(replacement) if replacement else None,
            )
        )

    return observed


def resolves(row: Mapping[str, Any], shortage: ShortageRecord) -> bool:
    """True when a ``replaced`` row refers to the shortage's product by id or by name."""
    if not is_resolution_signal(row):
        return False

    product_id = normalize_key(row.get("product_id"))
    if product_id and product_id == normalize_key(shortage.sku):
        return True

    raw_name = row_product_name(row)
    if not raw_name:
        return False
    target = normalize_key(shortage.product_name)
    return target in (normalize_key(raw_name), normalize_key(format_product_name(raw_name)))
