# Pending-books generation page: start/stop generation and follow its progress through the control API.
import os
import time

import requests
import streamlit as st

CONTROL_API_BASE = os.getenv("CONTROL_API_BASE", "http://localhost:8000")
REFRESH_SECONDS = 2


def _status_badge(label: str, color: str) -> None:
    """Render a colored status badge (blue = running, green = done, red = error)."""
    st.markdown(
        f'<div style="background:{color};color:white;padding:6px 14px;border-radius:6px;'
        'display:inline-block;font-weight:500;">{}</div>'.format(label),
        unsafe_allow_html=True,
    )


def api_get(path: str):
    """GET a control API path; returns the parsed JSON or None (with an error shown) on failure."""
    try:
        r = requests.get(f"{CONTROL_API_BASE}{path}", timeout=10)
        r.raise_for_status()
        return r.json()
    except requests.exceptions.RequestException as e:
        st.error(f"Control API unavailable: {e}")
        return None


def api_post(path: str, token: str = ""):
    """POST to a control API path, forwarding the bearer token when given."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return requests.post(f"{CONTROL_API_BASE}{path}", headers=headers, timeout=30)


def render_view(view: dict) -> None:
    """Render progress bar, counters, current step, ETA, result or error, and backend logs."""
    if view.get("error"):
        _status_badge("Error", "#dc3545")
        st.error(view["error"])
    elif view.get("is_generating"):
        _status_badge("Generating", "#0d6efd")
    elif view.get("result"):
        _status_badge("✓ Generation complete", "#28a745")

    progress = int(view.get("progress") or 0)
    st.progress(min(max(progress, 0), 100) / 100.0, text=view.get("message") or f"{progress}%")

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Processed", f"{view.get('processed_books', 0)}/{view.get('total_books', 0)}")
    c2.metric("Successful", view.get("successful_books", 0))
    c3.metric("Failed", view.get("failed_books", 0))
    c4.metric("Time remaining", view.get("estimated_time_remaining") or "—")

    if view.get("current_step"):
        st.caption(f"Step: {view['current_step']}")
    if view.get("job_id"):
        st.caption(f"Job: {view['job_id']}")

    logs = view.get("logs") or []
    if logs:
        with st.expander(f"Backend logs ({len(logs)})"):
            for entry in logs[-50:]:
                st.text(f"{entry.get('timestamp', '')} [{entry.get('type', 'info')}] {entry.get('message', '')}")


def run_main() -> None:
    st.set_page_config(page_title="Pending Books Generation", layout="wide", initial_sidebar_state="collapsed")
    st.title("📚 Pending Books Generation")
    st.caption("Generates every pending book on the backend and tracks the job until it finishes.")

    token = st.text_input("Access token (optional)", value="", type="password", key="gen_token")

    b1, b2, b3 = st.columns(3)
    if b1.button("▶ Start generation"):
        r = api_post("/generation/start", token)
        if r.status_code == 409:
            st.warning("Generation already in progress")
        elif r.status_code != 200:
            st.error("Something went wrong.")
    if b2.button("⏹ Stop"):
        api_post("/generation/stop")
    if b3.button("🔄 Reconnect"):
        r = api_post("/generation/recover", token)
        if r.status_code == 200 and not r.json().get("recovered"):
            st.info("No running job found on the backend.")

    payload = api_get("/generation/status")
    if payload is None:
        return
    view = payload.get("view") or {}
    render_view(view)

    # keep refreshing while the worker is tracking a job
    if (payload.get("status") or {}).get("isRunning"):
        time.sleep(REFRESH_SECONDS)
        st.rerun()



if __name__ == "__main__":
    run_main()
