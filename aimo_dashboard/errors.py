"""Error taxonomy for upstream sources and inbound writes.

Adapters raise ``SourceError`` subclasses; the poll tick catches them and keeps
the last known good state.  ``ShapeMismatchError`` never leaves a normalizer.
``RecordValidationError`` is surfaced to webhook callers as HTTP 400.
"""

MAX_BODY_EXCERPT = 500


class SourceError(Exception):
    """Base class for failures talking to an upstream source."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"[{source}] {message}")
        self.source = source
        self.message = message


class NetworkError(SourceError):
    """The request never produced a response (connect error, timeout, reset)."""


class HttpStatusError(SourceError):
    """The upstream answered with a non-2xx status."""

    def __init__(self, source: str, status_code: int, body: str = "") -> None:
        super().__init__(source, f"HTTP {status_code} - {body[:MAX_BODY_EXCERPT]}")
        self.status_code = status_code
        self.body = body[:MAX_BODY_EXCERPT]


class ParseError(SourceError):
    """The upstream answered 2xx but the body is not valid JSON."""

    def __init__(self, source: str, body: str) -> None:
        super().__init__(source, f"invalid JSON body: {body[:MAX_BODY_EXCERPT]!r}")
        self.body = body[:MAX_BODY_EXCERPT]


class ShapeMismatchError(SourceError):
    """A payload matched none of the known response shapes for its source."""


class RecordValidationError(ValueError):
    """An inbound record is missing a required field or has the wrong type."""
