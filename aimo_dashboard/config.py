from functools import lru_cache
from typing import ClassVar

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # Prediction sources
    example_data_url: str = "https://otso.veistera.com/get-example-data"
    prediction_batch_url: str = "https://otso.veistera.com/prediction-batch"

    # n8n webhooks
    outbound_webhook_url: str = "https://n8n.veistera.com/webhook/fa5d1493-d0fa-4483-bf10-f04187e5c963"
    observed_webhook_url: str = "https://n8n.veistera.com/webhook/24415505-ba0d-46d7-956d-f07be4e28124"
    trigger_call_webhook_url: str = ""  # Empty means trigger-call is simulated

    # ElevenLabs conversational AI (optional, empty key means not configured)
    elevenlabs_api_base_url: str = "https://api.elevenlabs.io/v1"
    elevenlabs_api_key: str = ""
    elevenlabs_max_pages: int = 3

    # Static calls JSON used when ElevenLabs is empty or failing (optional)
    calls_fallback_url: str = ""

    http_timeout_seconds: float = 15.0

    # Poll cadence per source; 0 disables the periodic job (initial load still runs)
    poll_calls_seconds: float = 10.0
    poll_outbound_seconds: float = 60.0
    poll_predictions_seconds: float = 0.0
    polling_enabled: bool = True

    # Fill collections left empty after the initial load with bundled demo data
    seed_demo_data: bool = True

    notification_limit: int = 50

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Lazily load and cache settings. Fails at first call, not at import time."""
    return Settings()
