"""Load the bundled demo predictions and calls from YAML."""

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError

from aimo_dashboard.models import CallRecord, ShortageRecord

SEED_DIR = Path(__file__).parent / "seed_data"


class SeedCall(CallRecord):
    """A demo call whose timestamp is relative to load time."""

    time: str = ""
    minutes_ago: int = Field(default=0, ge=0)

    def to_call(self, now: datetime) -> CallRecord:
        moment = now - timedelta(minutes=self.minutes_ago)
        data = self.model_dump(exclude={"minutes_ago"})
        data["time"] = moment.isoformat().replace("+00:00", "Z")
        return CallRecord.model_validate(data)


def _load_list(name: str) -> list[Any]:
    path = SEED_DIR / name
    raw: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    if raw is None:
        return []
    if not isinstance(raw, list):
        msg = f"Seed file {path.name} must contain a list, got {type(raw).__name__}"
        raise ValueError(msg)
    return raw


def load_seed_predictions() -> list[ShortageRecord]:
    """Validated demo shortages.

    Raises:
        ValueError: If the seed file is malformed.
    """
    try:
        return [ShortageRecord.model_validate(item) for item in _load_list("predictions.yaml")]
    except (yaml.YAMLError, ValidationError, OSError) as exc:
        msg = f"Failed to parse predictions.yaml: {exc}"
        raise ValueError(msg) from exc


def load_seed_calls(now: datetime | None = None) -> list[CallRecord]:
    now = now or datetime.now(UTC)
    try:
        return [SeedCall.model_validate(item).to_call(now) for item in _load_list("calls.yaml")]
    except (yaml.YAMLError, ValidationError, OSError) as exc:
        msg = f"Failed to parse calls.yaml: {exc}"
        raise ValueError(msg) from exc
