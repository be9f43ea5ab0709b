"""Validation of records pushed to the webhook endpoints.

Required fields are checked up front so callers get a message naming the
offending field; pydantic then does the full type validation.
"""

from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from aimo_dashboard.errors import RecordValidationError
from aimo_dashboard.models import CallRecord, ShortageRecord
from aimo_dashboard.normalize.shapes import is_number

# field -> expected kind; "truthy" means present and non-empty
SHORTAGE_REQUIRED: dict[str, str] = {
    "id": "truthy",
    "sku": "truthy",
    "productName": "truthy",
    "customerName": "truthy",
    "riskScore": "number",
    "status": "truthy",
    "orderId": "truthy",
    "suggestedReplacements": "array",
}

CALL_REQUIRED: dict[str, str] = {
    "id": "truthy",
    "time": "truthy",
    "customerName": "truthy",
    "direction": "truthy",
    "language": "truthy",
    "status": "truthy",
    "outcome": "truthy",
    "summary": "truthy",
    "durationSeconds": "number",
    "transcript": "array",
}


def _check_required(item: object, required: dict[str, str], kind: str) -> Mapping[str, Any]:
    if not isinstance(item, Mapping):
        msg = f"Invalid {kind}: expected an object, got {type(item).__name__}"
        raise RecordValidationError(msg)

    for field, expected in required.items():
        value = item.get(field)  # pyright: ignore[reportUnknownMemberType]
        if expected == "number" and not is_number(value):
            msg = f"Invalid {kind}: '{field}' must be a number"
            raise RecordValidationError(msg)
        if expected == "array" and not isinstance(value, list):
            msg = f"Invalid {kind}: '{field}' must be an array"
            raise RecordValidationError(msg)
        if expected == "truthy" and not value:
            msg = f"Invalid {kind}: missing required field '{field}'"
            raise RecordValidationError(msg)
    return item  # pyright: ignore[reportUnknownVariableType]


def _validate[M: BaseModel](model: type[M], item: Mapping[str, Any], kind: str) -> M:
    try:
        return model.model_validate(item)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(part) for part in error["loc"]) for error in exc.errors())
        msg = f"Invalid {kind}: bad value for {fields}"
        raise RecordValidationError(msg) from exc


def parse_shortage(item: object) -> ShortageRecord:
    """Validate one prediction pushed by a webhook.

    Raises:
        RecordValidationError: Missing required field or wrong type.
    """
    return _validate(ShortageRecord, _check_required(item, SHORTAGE_REQUIRED, "prediction"), "prediction")


def parse_call(item: object) -> CallRecord:
    """Validate one call pushed by a webhook.

    Raises:
        RecordValidationError: Missing required field or wrong type.
    """
    return _validate(CallRecord, _check_required(item, CALL_REQUIRED, "call"), "call")


def parse_many[M](items: list[Any], parse: Callable[[object], M]) -> list[M]:
    """Validate every item of an array write; the first failure rejects the whole array."""
    records: list[M] = []
    for index, item in enumerate(items):
        try:
            records.append(parse(item))
        except RecordValidationError as exc:
            msg = f"Item {index}: {exc}"
            raise RecordValidationError(msg) from exc
    return records
