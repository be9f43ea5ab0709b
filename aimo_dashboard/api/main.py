"""FastAPI backend for the AIMO shortage dashboard.

Serves the reconciled predictions and calls held in memory, accepts webhook
writes, proxies the n8n feeds, and runs the polling scheduler for the
lifetime of the process.
"""

import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from aimo_dashboard.api.validation import parse_call, parse_many, parse_shortage
from aimo_dashboard.config import get_settings
from aimo_dashboard.errors import HttpStatusError, NetworkError, ParseError, RecordValidationError, SourceError
from aimo_dashboard.models import CallRecord, ShortageRecord, WireModel
from aimo_dashboard.observability.metrics import (
    APP_INFO,
    REQUEST_DURATION,
    REQUESTS_TOTAL,
    WEBHOOK_WRITES_TOTAL,
)
from aimo_dashboard.polling.scheduler import PollingScheduler, SourceStatus
from aimo_dashboard.polling.tasks import (
    RECORD_SOURCES,
    RESOLUTION_SOURCES,
    build_scheduler,
    report_initial_errors,
)
from aimo_dashboard.sources import elevenlabs
from aimo_dashboard.sources.outbound import fetch_observed_payload, fetch_outbound_payload, trigger_outbound_call
from aimo_dashboard.store.seed import load_seed_calls, load_seed_predictions
from aimo_dashboard.store.state import DashboardState

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class WriteResponse(WireModel):
    """Response body for webhook writes."""

    success: bool = True
    message: str
    count: int | None = None
    record_id: str | None = None


class TriggerCallResponse(WireModel):
    success: bool
    message: str
    simulated: bool = False


class HealthResponse(WireModel):
    """Response body for GET /health."""

    status: str
    polling: bool
    sources: list[SourceStatus]
    collections: dict[str, int]


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


def _seed_demo_data(state: DashboardState) -> None:
    try:
        state.seed_empty(load_seed_predictions(), load_seed_calls())
    except ValueError:
        logger.exception("Failed to load bundled demo data")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build state and scheduler, run the initial load, then poll until shutdown."""
    settings = get_settings()
    APP_INFO.info({"version": APP_VERSION})

    state = DashboardState(settings.notification_limit)
    scheduler = build_scheduler(state)
    app.state.dashboard = state
    app.state.scheduler = scheduler

    if settings.polling_enabled:
        logger.info("Running initial load...")
        await scheduler.initial_load(RECORD_SOURCES)
        if settings.seed_demo_data:
            _seed_demo_data(state)
        # Resolution runs against loaded (or seeded) shortages
        errors = await scheduler.initial_load(RESOLUTION_SOURCES)
        report_initial_errors(state, errors)
        scheduler.start()
    else:
        logger.info("Polling disabled; serving webhook-fed data only")

    yield
    scheduler.stop()
    logger.info("Shutting down AIMO dashboard")


app = FastAPI(title="AIMO Shortage Dashboard", lifespan=lifespan)


def _state() -> DashboardState:
    return app.state.dashboard


def _scheduler() -> PollingScheduler:
    return app.state.scheduler


@app.middleware("http")
async def record_request_metrics(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    start = time.monotonic()
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", "unmatched")
    REQUEST_DURATION.labels(endpoint=endpoint).observe(time.monotonic() - start)
    REQUESTS_TOTAL.labels(endpoint=endpoint, status="success" if response.status_code < 400 else "error").inc()
    return response


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON") from exc


def _reject_write(kind: str, mode: str, exc: RecordValidationError) -> HTTPException:
    WEBHOOK_WRITES_TOTAL.labels(kind=kind, mode=mode, status="rejected").inc()
    logger.warning("Rejected %s %s webhook: %s", kind, mode, exc)
    return HTTPException(status_code=400, detail=str(exc))


# ---------------------------------------------------------------------------
# Calls
# ---------------------------------------------------------------------------


@app.get("/api/calls")
async def list_calls() -> list[dict[str, Any]]:
    """All known calls, newest first."""
    return [call.to_wire() for call in _state().calls.records]


@app.get("/api/calls/{call_id}")
async def get_call(call_id: str) -> dict[str, Any]:
    """One call; a call without a transcript is enriched from ElevenLabs on first view."""
    state = _state()
    call = state.calls.get(call_id)
    if call is None:
        raise HTTPException(status_code=404, detail=f"Call {call_id} not found")

    if not call.transcript and elevenlabs.is_configured():
        try:
            detail = await elevenlabs.fetch_conversation(call_id)
        except SourceError as exc:
            logger.warning("Could not enrich call %s: %s", call_id, exc)
        else:
            call = state.enrich_call(detail)
    return call.to_wire()


@app.get("/api/calls/{call_id}/audio")
async def get_call_audio(call_id: str) -> Response:
    try:
        audio = await elevenlabs.fetch_conversation_audio(call_id)
    except SourceError as exc:
        logger.warning("Audio fetch for %s failed: %s", call_id, exc)
        raise HTTPException(status_code=502, detail="Failed to fetch call audio") from exc
    if audio is None:
        raise HTTPException(status_code=404, detail=f"No audio for call {call_id}")
    content, content_type = audio
    return Response(content=content, media_type=content_type)


@app.post("/api/webhooks/calls", response_model=WriteResponse)
async def calls_webhook(request: Request) -> WriteResponse:
    """Array body replaces all calls; a single object is added or updated."""
    body = await _json_body(request)
    state = _state()

    if isinstance(body, list):
        try:
            calls: list[CallRecord] = parse_many(body, parse_call)
        except RecordValidationError as exc:
            raise _reject_write("calls", "replace", exc) from exc
        state.replace_calls(calls)
        WEBHOOK_WRITES_TOTAL.labels(kind="calls", mode="replace", status="accepted").inc()
        return WriteResponse(message=f"Updated {len(calls)} calls (full replacement)", count=len(calls))

    try:
        call = parse_call(body)
    except RecordValidationError as exc:
        raise _reject_write("calls", "upsert", exc) from exc
    state.upsert_call(call)
    WEBHOOK_WRITES_TOTAL.labels(kind="calls", mode="upsert", status="accepted").inc()
    return WriteResponse(message="Call added/updated successfully", record_id=call.id)


# ---------------------------------------------------------------------------
# Predictions
# ---------------------------------------------------------------------------


@app.get("/api/predictions")
async def list_predictions() -> list[dict[str, Any]]:
    return [shortage.to_wire() for shortage in _state().shortages.records]


@app.post("/api/webhooks/prediction", response_model=WriteResponse)
async def prediction_webhook(request: Request) -> WriteResponse:
    """Add or update one prediction. A resolved prediction is never re-opened by this endpoint."""
    body = await _json_body(request)
    try:
        prediction = parse_shortage(body)
    except RecordValidationError as exc:
        raise _reject_write("predictions", "upsert", exc) from exc

    stored = _state().upsert_prediction(prediction)
    WEBHOOK_WRITES_TOTAL.labels(kind="predictions", mode="upsert", status="accepted").inc()
    return WriteResponse(message=f"Prediction {stored.id} added/updated successfully", record_id=stored.id)


@app.post("/api/webhooks/predictions", response_model=WriteResponse)
async def predictions_webhook(request: Request) -> WriteResponse:
    """Replace all predictions with a new prediction cycle."""
    body = await _json_body(request)
    if not isinstance(body, list):
        raise _reject_write("predictions", "replace", RecordValidationError("Expected an array of predictions"))
    try:
        predictions: list[ShortageRecord] = parse_many(body, parse_shortage)
    except RecordValidationError as exc:
        raise _reject_write("predictions", "replace", exc) from exc

    _state().replace_predictions(predictions)
    WEBHOOK_WRITES_TOTAL.labels(kind="predictions", mode="replace", status="accepted").inc()
    return WriteResponse(message=f"Updated {len(predictions)} predictions", count=len(predictions))


# ---------------------------------------------------------------------------
# n8n proxies
# ---------------------------------------------------------------------------


async def _proxy(fetch: Callable[[], Awaitable[Any]], label: str) -> JSONResponse:
    try:
        data = await fetch()
    except ParseError:
        return JSONResponse({"error": f"Invalid JSON from {label} webhook"}, status_code=502)
    except HttpStatusError as exc:
        # Only upstream error statuses pass through; redirects and the like become 502
        status_code = exc.status_code if 400 <= exc.status_code < 600 else 502
        return JSONResponse({"error": f"Failed to fetch {label}"}, status_code=status_code)
    except NetworkError as exc:
        logger.error("Error calling %s webhook: %s", label, exc)
        return JSONResponse({"error": f"Failed to fetch {label}"}, status_code=500)
    return JSONResponse(data)


@app.get("/api/observed-shortages")
async def observed_shortages() -> JSONResponse:
    return await _proxy(fetch_observed_payload, "observed shortages")


@app.get("/api/outbound-shortages")
async def outbound_shortages() -> JSONResponse:
    return await _proxy(fetch_outbound_payload, "outbound shortages")


# ---------------------------------------------------------------------------
# Trigger call
# ---------------------------------------------------------------------------


@app.post("/api/trigger-call", response_model=TriggerCallResponse)
async def trigger_call(request: Request) -> TriggerCallResponse:
    body = await _json_body(request)
    shortage_id = body.get("shortageId") if isinstance(body, dict) else None
    if not shortage_id:
        raise HTTPException(status_code=400, detail="shortageId is required")

    shortage_id = str(shortage_id)
    state = _state()
    shortage = state.shortages.get(shortage_id) or state.observed.get(shortage_id)
    try:
        triggered = await trigger_outbound_call(shortage_id, shortage)
    except SourceError as exc:
        logger.error("Trigger-call webhook failed for %s: %s", shortage_id, exc)
        raise HTTPException(status_code=502, detail="Failed to trigger call") from exc

    return TriggerCallResponse(
        success=True,
        message=f"AI call triggered for shortage {shortage_id}",
        simulated=not triggered,
    )


# ---------------------------------------------------------------------------
# Dashboard, health, metrics
# ---------------------------------------------------------------------------


@app.get("/api/dashboard")
async def dashboard() -> dict[str, Any]:
    """Everything the UI renders in one response."""
    scheduler = _scheduler()
    snapshot = _state().snapshot()
    snapshot["sources"] = [status.to_wire() for status in scheduler.statuses()]
    snapshot["initialErrors"] = scheduler.initial_errors
    return snapshot


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Per-source polling health."""
    scheduler = _scheduler()
    state = _state()
    sources = scheduler.statuses()

    failing = sum(1 for source in sources if source.state == "error")
    if failing == 0:
        overall = "healthy"
    elif failing == len(sources):
        overall = "unhealthy"
    else:
        overall = "degraded"

    return HealthResponse(
        status=overall,
        polling=scheduler.running,
        sources=sources,
        collections={c.name: len(c) for c in (state.shortages, state.observed, state.calls)},
    )


@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics in exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
