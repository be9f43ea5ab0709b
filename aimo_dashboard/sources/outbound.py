"""n8n webhooks: outbound-resolution rows, the observed-shortages feed and the call trigger."""

import logging
from typing import Any

from aimo_dashboard.config import get_settings
from aimo_dashboard.models import ShortageRecord
from aimo_dashboard.normalize.outbound import OutboundWebhookRow, parse_outbound_rows
from aimo_dashboard.sources.http import fetch_json, post_json

logger = logging.getLogger(__name__)

OUTBOUND_SOURCE = "outbound_webhook"
OBSERVED_SOURCE = "observed_webhook"
TRIGGER_SOURCE = "trigger_call"


async def fetch_outbound_payload() -> Any:
    """Raw outbound-resolution payload, passed through by the proxy endpoint."""
    return await fetch_json(OUTBOUND_SOURCE, get_settings().outbound_webhook_url)


async def fetch_observed_payload() -> Any:
    """Raw observed-shortages payload, passed through by the proxy endpoint."""
    return await fetch_json(OBSERVED_SOURCE, get_settings().observed_webhook_url)


async def fetch_outbound_rows() -> list[OutboundWebhookRow]:
    return parse_outbound_rows(await fetch_outbound_payload())


async def trigger_outbound_call(shortage_id: str, shortage: ShortageRecord | None = None) -> bool:
    """Ask the n8n flow to start an AI call for a shortage.

    Returns:
        False when no trigger webhook is configured (the call is only simulated).

    Raises:
        SourceError: If the webhook request fails.
    """
    url = get_settings().trigger_call_webhook_url
    if not url:
        logger.info("Trigger-call webhook not configured, simulating call for shortage %s", shortage_id)
        return False

    body: dict[str, Any] = {"shortageId": shortage_id, "action": "trigger_call"}
    if shortage is not None:
        body["shortage"] = shortage.to_wire()
    await post_json(TRIGGER_SOURCE, url, body)
    logger.info("Triggered outbound call for shortage %s", shortage_id)
    return True
