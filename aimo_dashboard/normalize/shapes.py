"""Ordered response-shape matching and field aliasing helpers.

Each upstream source declares an explicit, ordered list of ``ShapeMatcher``
objects.  ``match_shape`` tries them in sequence and returns the first list
of items that matches, so the precedence between historical response shapes
lives in one place and every shape can be tested on its own.
"""

from collections.abc import Callable, Mapping, Sequence
from typing import Any

from aimo_dashboard.errors import ShapeMismatchError

Extractor = Callable[[Any], list[Any] | None]


class ShapeMatcher:
    """A named predicate+extractor pair: ``extract`` returns the items, or None if the shape does not apply."""

    def __init__(self, name: str, extract: Extractor) -> None:
        self.name = name
        self.extract = extract

    def __repr__(self) -> str:
        return f"ShapeMatcher({self.name!r})"


def match_shape(raw: object, matchers: Sequence[ShapeMatcher], *, source: str) -> tuple[str, list[Any]]:
    """Return ``(matcher name, items)`` for the first matcher that applies.

    Raises:
        ShapeMismatchError: If no matcher recognizes the payload.
    """
    for matcher in matchers:
        items = matcher.extract(raw)
        if items is not None:
            return matcher.name, items
    msg = f"payload of type {type(raw).__name__} matched none of: {', '.join(m.name for m in matchers)}"
    raise ShapeMismatchError(source, msg)


# --- Path helpers used to build extractors ---


def dig(raw: object, *path: str | int) -> object:
    """Follow a path of dict keys / list indexes, returning None as soon as a step is missing."""
    current = raw
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
            current = current[step]
        else:
            if not isinstance(current, Mapping):
                return None
            current = current.get(step)  # pyright: ignore[reportUnknownMemberType]
    return current


def list_at(*path: str | int) -> Extractor:
    """Build an extractor returning the list found at ``path``, or None if there is no list there."""

    def _extract(raw: Any) -> list[Any] | None:
        found = dig(raw, *path)
        return found if isinstance(found, list) else None  # pyright: ignore[reportUnknownVariableType]

    return _extract


def non_empty_list_at(*path: str | int) -> Extractor:
    """Like ``list_at`` but an empty list does not count as a match (lets later shapes win)."""

    def _extract(raw: Any) -> list[Any] | None:
        found = dig(raw, *path)
        return found if isinstance(found, list) and found else None  # pyright: ignore[reportUnknownVariableType]

    return _extract


def single_object_with(*keys: str) -> Extractor:
    """Match a lone object carrying at least one of ``keys``; wraps it in a one-item list."""

    def _extract(raw: Any) -> list[Any] | None:
        if isinstance(raw, Mapping) and any(key in raw for key in keys):
            return [raw]
        return None

    return _extract


# --- Field aliasing ---


def first_present(mapping: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the value of the first key that is present and not None."""
    for key in keys:
        value = mapping.get(key)
        if value is not None:
            return value
    return default


def normalize_key(value: object) -> str:
    """Case- and whitespace-insensitive comparison key; None becomes the empty string."""
    return "" if value is None else str(value).strip().lower()


def as_mapping(value: object) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}  # pyright: ignore[reportUnknownVariableType]


def is_number(value: object) -> bool:
    """True for ints and floats, False for bools (JSON ``true`` is not a probability)."""
    return isinstance(value, int | float) and not isinstance(value, bool)
