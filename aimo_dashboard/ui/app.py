"""Streamlit dashboard for AIMO shortages and AI calls.

Reads GET /api/dashboard from the FastAPI backend every few seconds.
Run with: streamlit run aimo_dashboard/ui/app.py
"""

import os
from datetime import timedelta
from typing import Any

import httpx
import streamlit as st

API_URL = os.environ.get("API_URL", "http://localhost:8000")
REFRESH_SECONDS = float(os.environ.get("UI_REFRESH_SECONDS", "5"))

OUTCOME_LABELS = {
    "replacement_accepted": "Replacement accepted",
    "replacement_declined": "Replacement declined",
    "credits_only": "Credits only",
    "incomplete": "Incomplete",
    "no_answer": "No answer",
    "unknown": "Unknown",
}

st.set_page_config(page_title="AIMO Shortage Dashboard", layout="wide")

# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

if "dashboard" not in st.session_state:
    st.session_state.dashboard = None

if "last_seq" not in st.session_state:
    st.session_state.last_seq = 0

if "initial_error_dismissed" not in st.session_state:
    st.session_state.initial_error_dismissed = False

# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------

with st.sidebar:
    st.title("AIMO Dashboard")
    st.caption(f"API: `{API_URL}`")
    if st.button("Refresh now"):
        st.rerun()


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _shortage_rows(shortages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "Product": s.get("productName"),
            "SKU": s.get("sku"),
            "Customer": s.get("customerName"),
            "Order": s.get("orderId"),
            "Risk": round(float(s.get("riskScore") or 0) * 100),
            "Status": s.get("status"),
        }
        for s in shortages
    ]


def _render_overview(data: dict[str, Any]) -> None:
    predictions: list[dict[str, Any]] = data.get("predictions", [])
    calls: list[dict[str, Any]] = data.get("calls", [])
    pending = [p for p in predictions if p.get("status") == "pending"]
    resolved = [p for p in predictions if p.get("status") == "resolved"]
    handled = [c for c in calls if c.get("outcome") in ("replacement_accepted", "credits_only")]

    cols = st.columns(4)
    cols[0].metric("Pending shortages", len(pending))
    cols[1].metric("Resolved", len(resolved))
    cols[2].metric("Observed", len(data.get("observedShortages", [])))
    cols[3].metric("AI calls", len(calls), help=f"{len(handled)} handled without a human")

    st.subheader("Sources")
    for source in data.get("sources", []):
        state = source.get("state", "idle")
        icon = {"ready": ":white_check_mark:", "error": ":x:", "loading": ":hourglass:"}.get(state, ":zzz:")
        label = f"{icon} **{source.get('name')}**: {state}"
        if source.get("lastError"):
            label += f" ({source['lastError']})"
        st.markdown(label)


def _trigger_call_form(pending: list[dict[str, Any]]) -> None:
    if not pending:
        return
    labels = {f"{p.get('productName')} · {p.get('customerName')}": p.get("id") for p in pending}
    col_select, col_button = st.columns([3, 1])
    choice = col_select.selectbox("Pending shortage", list(labels), key="trigger_choice")
    if col_button.button("Trigger AI call", key="trigger_call"):
        try:
            resp = httpx.post(f"{API_URL}/api/trigger-call", json={"shortageId": labels[choice]}, timeout=30.0)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            st.error(f"Could not trigger call: {exc}")
        else:
            body = resp.json()
            suffix = " (simulated)" if body.get("simulated") else ""
            st.success(f"{body.get('message')}{suffix}")


def _render_shortages(data: dict[str, Any]) -> None:
    st.subheader("Predicted shortages")
    predictions = data.get("predictions", [])
    if predictions:
        st.dataframe(_shortage_rows(predictions), use_container_width=True, hide_index=True)
        _trigger_call_form([p for p in predictions if p.get("status") == "pending"])
    else:
        st.info("No predicted shortages.")

    st.subheader("Observed shortages")
    observed = data.get("observedShortages", [])
    if observed:
        rows = _shortage_rows(observed)
        for row, shortage in zip(rows, observed, strict=True):
            row["Replacement"] = shortage.get("replacementProduct")
        st.dataframe(rows, use_container_width=True, hide_index=True)
    else:
        st.info("No observed shortages.")


def _render_calls(data: dict[str, Any]) -> None:
    calls: list[dict[str, Any]] = data.get("calls", [])
    if not calls:
        st.info("No calls yet.")
        return

    for call in calls:
        outcome = OUTCOME_LABELS.get(call.get("outcome", "unknown"), "Unknown")
        title = f"{call.get('customerName')} · {call.get('direction')} · {outcome}"
        with st.expander(title):
            st.caption(f"{call.get('time')} · {call.get('durationSeconds', 0)}s · {call.get('language')}")
            st.markdown(call.get("summary") or "")
            transcript = call.get("transcript") or []
            if not transcript and st.button("Load transcript", key=f"transcript_{call.get('id')}"):
                try:
                    resp = httpx.get(f"{API_URL}/api/calls/{call.get('id')}", timeout=30.0)
                    resp.raise_for_status()
                    transcript = resp.json().get("transcript") or []
                except httpx.HTTPError as exc:
                    st.warning(f"Could not load transcript: {exc}")
                if not transcript:
                    st.caption("No transcript available for this call.")
            for turn in transcript:
                speaker = "assistant" if turn.get("speaker") == "agent" else "user"
                with st.chat_message(speaker):
                    st.markdown(turn.get("text", ""))


def _show_notifications(data: dict[str, Any]) -> None:
    """Toast every notification not shown yet; initial-load errors become one banner instead."""
    for notification in data.get("notifications", []):
        seq = notification.get("seq", 0)
        if seq <= st.session_state.last_seq:
            continue
        st.session_state.last_seq = seq
        if notification.get("kind") != "initial_load_error":
            st.toast(notification.get("message", ""))


# ---------------------------------------------------------------------------
# Auto-refreshing body
# ---------------------------------------------------------------------------


@st.fragment(run_every=timedelta(seconds=REFRESH_SECONDS))
def dashboard_body() -> None:
    try:
        resp = httpx.get(f"{API_URL}/api/dashboard", timeout=10.0)
        resp.raise_for_status()
        st.session_state.dashboard = resp.json()
    except httpx.ConnectError:
        st.warning("Cannot reach the API server. Showing the last data received.")
    except httpx.HTTPStatusError as exc:
        st.warning(f"API error (HTTP {exc.response.status_code}). Showing the last data received.")
    except Exception as exc:
        st.warning(f"Refresh failed: {exc}")

    data: dict[str, Any] | None = st.session_state.dashboard
    if data is None:
        st.info("Waiting for the first dashboard snapshot...")
        return

    initial_errors: dict[str, str] = data.get("initialErrors") or {}
    if initial_errors and not st.session_state.initial_error_dismissed:
        details = ", ".join(f"{name}: {message}" for name, message in initial_errors.items())
        st.error(f"Some data could not be loaded at startup. {details}")
        if st.button("Dismiss", key="dismiss_initial_error"):
            st.session_state.initial_error_dismissed = True
            st.rerun(scope="fragment")

    _show_notifications(data)

    overview, shortages, calls = st.tabs(["Overview", "Shortages", "Calls"])
    with overview:
        _render_overview(data)
    with shortages:
        _render_shortages(data)
    with calls:
        _render_calls(data)


dashboard_body()
