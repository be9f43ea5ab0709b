"""Prediction sources: the example-orders feed and the batch scoring API."""

import logging
from typing import Any

from aimo_dashboard.config import get_settings
from aimo_dashboard.models import ShortageRecord
from aimo_dashboard.normalize.predictions import PredictionBatchRequest, extract_example_orders, normalize_predictions
from aimo_dashboard.sources.http import fetch_json

logger = logging.getLogger(__name__)


async def fetch_example_orders() -> list[dict[str, Any]]:
    settings = get_settings()
    raw = await fetch_json("example_orders", settings.example_data_url)
    return extract_example_orders(raw)


async def fetch_prediction_batch(orders: list[dict[str, Any]]) -> Any:
    settings = get_settings()
    body: PredictionBatchRequest = {"orders": orders}
    return await fetch_json("prediction_batch", settings.prediction_batch_url, method="POST", json_body=body)


async def fetch_shortage_predictions() -> list[ShortageRecord]:
    """Example orders -> prediction batch -> normalized shortages.

    No orders means no batch call and zero predictions.
    """
    orders = await fetch_example_orders()
    if not orders:
        logger.info("No example orders found, skipping prediction batch")
        return []

    raw = await fetch_prediction_batch(orders)
    predictions = normalize_predictions(raw)
    logger.info("Prediction batch scored %d orders into %d shortages", len(orders), len(predictions))
    return predictions
