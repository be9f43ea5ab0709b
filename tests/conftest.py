"""Shared pytest configuration and fixtures."""

from collections.abc import Generator
from unittest.mock import patch

import pytest

from aimo_dashboard.config import Settings, get_settings


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="Run e2e tests that hit real upstream services (requires .env with valid credentials)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-e2e"):
        return
    skip_e2e = pytest.mark.skip(reason="Need --run-e2e flag to run")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


@pytest.fixture(autouse=True)
def _no_dotenv(request: pytest.FixtureRequest) -> Generator[None]:
    """Block .env loading so a developer's local .env never leaks into tests (except e2e)."""
    if "e2e" in request.keywords:
        yield
        return

    get_settings.cache_clear()
    original = Settings.model_config.get("env_file")
    Settings.model_config["env_file"] = None

    try:
        yield
    finally:
        Settings.model_config["env_file"] = original
        get_settings.cache_clear()


@pytest.fixture
def mock_settings() -> Generator[Settings]:
    """Provide test settings pointing at fake hosts.

    Patches get_settings at every import site so cached references are overridden.
    """
    fake_settings = Settings(
        _env_file=None,  # pyright: ignore[reportCallIssue]
        example_data_url="http://predict.test/get-example-data",
        prediction_batch_url="http://predict.test/prediction-batch",
        outbound_webhook_url="http://n8n.test/webhook/outbound",
        observed_webhook_url="http://n8n.test/webhook/observed",
        trigger_call_webhook_url="",
        elevenlabs_api_base_url="http://elevenlabs.test/v1",
        elevenlabs_api_key="xi-test-fake",
        elevenlabs_max_pages=3,
        calls_fallback_url="",
        http_timeout_seconds=5.0,
        poll_calls_seconds=10.0,
        poll_outbound_seconds=60.0,
        poll_predictions_seconds=0.0,
        polling_enabled=False,
        seed_demo_data=False,
        notification_limit=50,
    )
    with (
        patch("aimo_dashboard.config.get_settings", return_value=fake_settings),
        patch("aimo_dashboard.sources.http.get_settings", return_value=fake_settings),
        patch("aimo_dashboard.sources.predictions.get_settings", return_value=fake_settings),
        patch("aimo_dashboard.sources.outbound.get_settings", return_value=fake_settings),
        patch("aimo_dashboard.sources.elevenlabs.get_settings", return_value=fake_settings),
        patch("aimo_dashboard.sources.fallback.get_settings", return_value=fake_settings),
        patch("aimo_dashboard.polling.tasks.get_settings", return_value=fake_settings),
        patch("aimo_dashboard.api.main.get_settings", return_value=fake_settings),
    ):
        yield fake_settings
