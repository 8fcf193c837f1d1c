import logging
import threading
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, Header, HTTPException

from bookgen.core.config import settings
from bookgen.generation.dispatch import handle_message
from bookgen.generation.state import GenerationState
from bookgen.generation.worker import GeneratePendingBooksWorker
from bookgen.guardrails.errors import as_http_500
from bookgen.models.schemas import (
    GenerationStatusResponse,
    LimitsResponse,
    WorkerMessage,
)
from bookgen.observability.middleware import RequestTimingMiddleware

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)


# -------------------------
# App setup
# -------------------------

app = FastAPI(title="Pending Books Generation")
app.add_middleware(RequestTimingMiddleware)

_worker: Optional[GeneratePendingBooksWorker] = None
_state: Optional[GenerationState] = None

# guards the running check and begin(); a start counts as pending until its background task returns
_start_lock = threading.Lock()
_start_pending = False


def get_state() -> GenerationState:
    global _state
    if _state is None:
        _state = GenerationState()
    return _state


def get_worker() -> GeneratePendingBooksWorker:
    """Return the process-wide generation worker, wired to the shared view state.
    Why available: One worker per process so concurrent API calls see the same job (a second start is refused)."""
    global _worker
    if _worker is None:
        _worker = GeneratePendingBooksWorker(listener=get_state().apply)
    return _worker


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an 'Authorization: Bearer <token>' header; None when absent or malformed."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _status_response() -> GenerationStatusResponse:
    return GenerationStatusResponse(status=get_worker().snapshot(), view=get_state().view)


def _claim_start() -> bool:
    """Reset the view for a new start unless one is running or already queued. Returns False when the start must be refused."""
    global _start_pending
    with _start_lock:
        if _start_pending or get_worker().is_running:
            return False
        _start_pending = True
        get_state().begin()
        return True


def _run_start(worker: GeneratePendingBooksWorker, message: WorkerMessage) -> None:
    global _start_pending
    try:
        handle_message(worker, message)
    finally:
        with _start_lock:
            _start_pending = False


# -------------------------
# Generation control
# -------------------------

@app.post("/generation/start", response_model=GenerationStatusResponse)
def start_generation(background_tasks: BackgroundTasks, authorization: Optional[str] = Header(None)):
    """Starts the pending-books generation in the background (connectivity probe, start request, polling). The Authorization header, if any, is forwarded to the backend.
    Why available: Lets the UI kick off generation without blocking on the probe or start request; progress is read from /generation/status."""
    if not _claim_start():
        raise HTTPException(status_code=409, detail="Generation already in progress")

    message = WorkerMessage(type="START_GENERATION", token=_bearer_token(authorization))
    background_tasks.add_task(_run_start, get_worker(), message)
    return _status_response()


@app.get("/generation/status", response_model=GenerationStatusResponse)
def generation_status():
    """Returns the worker snapshot (isRunning, progress, jobId) and the folded view (counts, current step, ETA, result or error).
    Why available: Single polling endpoint for the UI."""
    try:
        return _status_response()
    except Exception as e:
        raise as_http_500(e)


@app.post("/generation/stop", response_model=GenerationStatusResponse)
def stop_generation():
    """Stops tracking the current job. The backend job itself is not cancelled."""
    handle_message(get_worker(), WorkerMessage(type="STOP_GENERATION"))
    return _status_response()


@app.post("/generation/recover")
def recover_generation(authorization: Optional[str] = Header(None)):
    """Asks the backend whether the tracked job is still running; polling continues if so.
    Why available: Manual retry after connection warnings instead of waiting for the automatic recovery probe."""
    try:
        recovered = get_worker().recover_connection(_bearer_token(authorization))
    except Exception as e:
        raise as_http_500(e)
    return {"recovered": recovered}


@app.post("/generation/messages", response_model=GenerationStatusResponse)
def send_message(message: WorkerMessage, background_tasks: BackgroundTasks):
    """Delivers a raw worker message (START_GENERATION, CHECK_STATUS, STOP_GENERATION, RECOVER_CONNECTION). Unknown types surface as an error in the view.
    Why available: Generic command channel mirroring the worker's message protocol."""
    if message.type == "START_GENERATION":
        if _claim_start():
            background_tasks.add_task(_run_start, get_worker(), message)
        else:
            # the worker answers with its own "already in progress" error
            background_tasks.add_task(handle_message, get_worker(), message)
    else:
        handle_message(get_worker(), message)
    return _status_response()


@app.get("/limits", response_model=LimitsResponse)
def limits():
    """Returns the polling cadence and ceilings the worker uses. Why available: Lets the UI explain how long generation is tracked."""
    return LimitsResponse(
        api_base=settings.api_base,
        poll_interval_seconds=settings.poll_interval_seconds,
        max_polling_attempts=settings.max_polling_attempts,
        max_consecutive_errors=settings.max_consecutive_errors,
        recent_success_window_seconds=settings.recent_success_window_seconds,
        probe_endpoints=list(settings.probe_endpoints),
    )
