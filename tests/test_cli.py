"""Tests for the one-shot polling CLI."""

import json
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from aimo_dashboard.cli import main
from aimo_dashboard.errors import HttpStatusError
from aimo_dashboard.models import CallRecord


@pytest.fixture(autouse=True)
def _use_mock_settings(mock_settings: Any) -> None:
    """Automatically use mock settings for all tests in this module."""


def _call() -> CallRecord:
    return CallRecord(id="c1", time="2025-01-01T10:00:00Z", customer_name="Customer", status="completed")


class TestCli:
    def test_selected_source_as_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        other = AsyncMock(return_value=[])
        with (
            patch("aimo_dashboard.polling.tasks.fetch_call_records", AsyncMock(return_value=[_call()])),
            patch("aimo_dashboard.polling.tasks.fetch_outbound_rows", other),
            pytest.raises(SystemExit) as excinfo,
        ):
            main(["--source", "calls", "--source", "calls", "--json"])

        assert excinfo.value.code == 0
        other.assert_not_awaited()
        output = json.loads(capsys.readouterr().out)
        assert [c["id"] for c in output["calls"]] == ["c1"]
        assert [s["name"] for s in output["sources"]] == ["calls"]

    def test_failure_exit_code(self, capsys: pytest.CaptureFixture[str]) -> None:
        with (
            patch(
                "aimo_dashboard.polling.tasks.fetch_outbound_rows",
                AsyncMock(side_effect=HttpStatusError("outbound", 503, "maintenance")),
            ),
            pytest.raises(SystemExit) as excinfo,
        ):
            main(["--source", "outbound"])

        assert excinfo.value.code == 1
        out = capsys.readouterr().out
        assert "outbound" in out
        assert "HTTP 503" in out
