"""
Background worker for the pending-books generation job.

Starts the job with POST /generate-pending-books, then polls GET /generation-progress/{job_id}
on a fixed interval until the job reaches a terminal status, reporting PROGRESS / COMPLETE /
ERROR / STATUS_UPDATE events to its listeners.
"""
import logging
import threading
import time
from typing import Callable, List, Optional

import requests
from pydantic import ValidationError

from bookgen.core.backend_client import get_backend_client
from bookgen.core.config import Settings, settings
from bookgen.generation.errors import (
    ALREADY_RUNNING_MESSAGE,
    CONNECTION_LOST_MESSAGE,
    CONNECTIVITY_ERROR_MESSAGE,
    TIMEOUT_MESSAGE,
    classify_poll_error,
    classify_start_error,
)
from bookgen.generation.progress import (
    current_step,
    estimated_time_remaining,
    progress_percentage,
    tally_books,
)
from bookgen.generation.store import JobStateStore
from bookgen.generation.timer import IntervalTimer
from bookgen.models.schemas import (
    GenerationProgress,
    StartGenerationResponse,
    StatusSnapshot,
    WorkerEvent,
)

logger = logging.getLogger(__name__)

START_PATH = "/generate-pending-books"
PROGRESS_PATH = "/generation-progress/{job_id}"

# Failures reported to listeners instead of raised
_POLL_ERRORS = (requests.RequestException, ValidationError, ValueError)

Listener = Callable[[WorkerEvent], None]

RECOVERED = "recovered"
TERMINAL = "terminal"
FAILED = "failed"


class GeneratePendingBooksWorker:
    """Start the pending-books job and track it by polling until completion, failure, stop, timeout, or lost connection.

    Only one job is tracked at a time. Transient poll failures are retried on the fixed cadence;
    only every `warning_every`-th consecutive failure is surfaced, and after `max_consecutive_errors`
    with no success inside the recent-success window a single recovery probe decides whether to keep going.
    """

    def __init__(
        self,
        client=None,
        listener: Optional[Listener] = None,
        *,
        config: Optional[Settings] = None,
        store: Optional[JobStateStore] = None,
        timer_factory: Callable = IntervalTimer,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or settings
        self.client = client or get_backend_client()
        if store is None and self.config.job_state_file:
            store = JobStateStore(self.config.job_state_file)
        self.store = store
        self.timer_factory = timer_factory
        self.clock = clock

        self._listeners: List[Listener] = [listener] if listener else []
        self._lock = threading.RLock()
        self._finished = threading.Event()
        self._finished.set()

        self.is_running = False
        self.progress = 0
        self.job_id: Optional[str] = None
        self._token: Optional[str] = None
        self._timer = None
        self._polling_attempts = 0
        self._consecutive_errors = 0
        self._last_success = 0.0
        # bumped by start() and stop(); a start request only applies while its value is current
        self._start_generation = 0

    # -------------------------
    # Listeners
    # -------------------------

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def report_error(self, message: str) -> None:
        """Emit an ERROR event without touching job state."""
        self._emit("ERROR", message=message)

    def _emit(self, type_: str, progress: Optional[int] = None, message: Optional[str] = None, data: Optional[dict] = None) -> None:
        event = WorkerEvent(type=type_, progress=progress, message=message, data=data)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("worker_listener_failed", extra={"event_type": type_})

    # -------------------------
    # Start
    # -------------------------

    def test_connection(self) -> bool:
        """Probe the backend: True as soon as one probe endpoint answers 2xx within the probe timeout."""
        for endpoint in self.config.probe_endpoints:
            try:
                self.client.ping(endpoint, timeout=self.config.probe_timeout_seconds)
                logger.info("backend_probe_ok", extra={"endpoint": endpoint})
                return True
            except requests.RequestException as e:
                logger.info("backend_probe_failed", extra={"endpoint": endpoint, "error": str(e)})
        logger.error("backend_unreachable", extra={"endpoints": list(self.config.probe_endpoints)})
        return False

    def start(self, token: Optional[str] = None) -> Optional[str]:
        """Start the generation job and begin polling. Returns the job id, or None when the start was refused or failed (an ERROR event says why)."""
        with self._lock:
            if self.is_running:
                self._emit("ERROR", message=ALREADY_RUNNING_MESSAGE)
                return None
            self.is_running = True
            self.progress = 0
            self.job_id = None
            self._token = token
            self._finished.clear()
            self._start_generation += 1
            generation = self._start_generation

        try:
            return self._start_job(token, generation)
        except Exception:
            with self._lock:
                if self._start_generation == generation:
                    self._finish_polling()
            raise

    def _abandon_start(self, generation: int) -> bool:
        """Reset after a failed start unless a stop or a newer start has taken over. Returns True if the failure is still ours to report."""
        with self._lock:
            if self._start_generation != generation:
                return False
            self._reset()
            return True

    def _start_job(self, token: Optional[str], generation: int) -> Optional[str]:
        resumed = self._resume_stored_job()
        if resumed:
            return resumed

        self._emit("PROGRESS", progress=0, message="Testing connection to backend...")
        if not self.test_connection():
            if self._abandon_start(generation):
                self._emit("ERROR", message=CONNECTIVITY_ERROR_MESSAGE)
            return None

        if self._start_generation != generation:
            logger.info("generation_start_cancelled")
            return None

        self._emit("PROGRESS", progress=5, message="Connection successful. Starting pending books generation...")

        logger.info("generation_start_requested", extra={"has_token": bool(token)})
        try:
            body = self.client.post(START_PATH, {}, token=token)
            started = StartGenerationResponse.model_validate(body)
        except _POLL_ERRORS as e:
            err = classify_start_error(e)
            logger.warning("generation_start_failed", extra={"kind": err.kind, "status_code": err.status_code})
            if self._abandon_start(generation):
                self._emit("ERROR", message=f"API Error: {err.message}")
            return None

        with self._lock:
            if self._start_generation != generation:
                # stopped (or restarted) while the start request was in flight; the backend job runs untracked
                logger.warning("generation_start_orphaned", extra={"job_id": started.job_id})
                return None
            self.job_id = started.job_id
            self._emit(
                "PROGRESS",
                progress=0,
                message=started.message or "Generation started successfully",
                data={"job_id": started.job_id, "total_books": started.total_books, "status": started.status},
            )
            self._start_polling()
        logger.info("generation_started", extra={"job_id": started.job_id, "total_books": started.total_books})
        return started.job_id

    def _resume_stored_job(self) -> Optional[str]:
        if self.store is None:
            return None
        record = self.store.load()
        if not record:
            return None
        with self._lock:
            self.job_id = record["job_id"]
            self.progress = int(record.get("progress") or 0)
            logger.info("generation_resumed", extra={"job_id": self.job_id})
            self._emit(
                "PROGRESS",
                progress=self.progress,
                message="Resuming tracking of a generation job that is still running on the backend.",
                data={"job_id": self.job_id},
            )
            self._start_polling()
            return self.job_id

    def _start_polling(self) -> None:
        self._polling_attempts = 0
        self._consecutive_errors = 0
        self._last_success = self.clock()
        self._save_state()
        self._cancel_timer()
        self._timer = self.timer_factory(self.config.poll_interval_seconds, self.tick)
        self._timer.start()

    # -------------------------
    # Poll tick
    # -------------------------

    def tick(self) -> None:
        """One poll of the job status. Called by the interval timer; does nothing once the job is no longer tracked."""
        with self._lock:
            job_id = self.job_id
            if not job_id or not self.is_running:
                return
            self._polling_attempts += 1
            if self._polling_attempts > self.config.max_polling_attempts:
                logger.warning("generation_poll_timeout", extra={"job_id": job_id, "attempts": self._polling_attempts - 1})
                self._finish_polling()
                self._emit("ERROR", message=TIMEOUT_MESSAGE)
                return
            token = self._token

        try:
            progress = self._fetch_progress(job_id, token)
        except _POLL_ERRORS as e:
            self._on_poll_failure(job_id, e)
            return
        self._on_poll_success(job_id, progress)

    def _fetch_progress(self, job_id: str, token: Optional[str]) -> GenerationProgress:
        body = self.client.get(PROGRESS_PATH.format(job_id=job_id), token=token)
        return GenerationProgress.model_validate(body)

    def _on_poll_success(self, job_id: str, progress: GenerationProgress) -> None:
        with self._lock:
            if self.job_id != job_id:
                return
            self._consecutive_errors = 0
            self._last_success = self.clock()
            pct = progress_percentage(progress)
            self.progress = pct
            self._save_state()

            payload = progress.model_dump()
            self._emit(
                "PROGRESS",
                progress=pct,
                message=progress.message,
                data={
                    **payload,
                    "estimated_time_remaining": estimated_time_remaining(progress),
                    "current_step": current_step(progress),
                },
            )

            if progress.status == "completed":
                successful, failed = tally_books(progress)
                self._finish_polling()
                logger.info("generation_completed", extra={"job_id": job_id, "successful": successful, "failed": failed})
                self._emit(
                    "COMPLETE",
                    progress=100,
                    message=f"Generation completed! {successful} books generated successfully, {failed} failed.",
                    data={**payload, "successful_books": successful, "failed_books": failed},
                )
            elif progress.status in ("failed", "error"):
                self._finish_polling()
                logger.warning("generation_failed", extra={"job_id": job_id, "status": progress.status})
                self._emit("ERROR", message=progress.message or "Generation failed on the backend", data=payload)

    def _on_poll_failure(self, job_id: str, exc: BaseException) -> None:
        err = classify_poll_error(exc)
        with self._lock:
            if self.job_id != job_id:
                return
            self._consecutive_errors += 1
            count = self._consecutive_errors
            ceiling = self.config.max_consecutive_errors
            logger.warning(
                "generation_poll_failed",
                extra={"job_id": job_id, "attempt": self._polling_attempts, "consecutive": count, "kind": err.kind},
            )

            if err.is_fatal_on_poll:
                self._finish_polling()
                self._emit("ERROR", message=err.message, data={"job_id": job_id, "reason": err.kind})
                return

            if count % self.config.warning_every == 0:
                self._emit("PROGRESS", progress=self.progress, message=f"Connection issue: {err.message} (attempt {count}/{ceiling})")

            recent_success = self.clock() - self._last_success < self.config.recent_success_window_seconds
            if count < ceiling or recent_success:
                return
            token = self._token

        logger.info("generation_recovery_attempt", extra={"job_id": job_id, "consecutive": count})
        if self._recover(job_id, token) == FAILED:
            with self._lock:
                if self.job_id != job_id:
                    return
                self._finish_polling()
                self._emit("ERROR", message=CONNECTION_LOST_MESSAGE)

    # -------------------------
    # Recovery
    # -------------------------

    def _recover(self, job_id: str, token: Optional[str]) -> str:
        """Single extra status GET. Non-terminal -> keep polling with a fresh error count; terminal -> handled like a normal tick."""
        try:
            progress = self._fetch_progress(job_id, token)
        except _POLL_ERRORS as e:
            logger.info("generation_recovery_failed", extra={"job_id": job_id, "error": str(e)})
            return FAILED

        if progress.is_terminal:
            self._on_poll_success(job_id, progress)
            return TERMINAL

        with self._lock:
            if self.job_id != job_id:
                return FAILED
            self.is_running = True
            self._consecutive_errors = 0
            self._last_success = self.clock()
            self._emit(
                "PROGRESS",
                progress=self.progress,
                message="Connection recovered. Generation is still running on the backend.",
                data=progress.model_dump(),
            )
        logger.info("generation_recovered", extra={"job_id": job_id})
        return RECOVERED

    def recover_connection(self, token: Optional[str] = None) -> bool:
        """Check whether the tracked job is still running on the backend. True if it is and polling continues."""
        with self._lock:
            job_id = self.job_id
            if not job_id:
                return False
            token = token or self._token
        return self._recover(job_id, token) == RECOVERED

    # -------------------------
    # Status / stop
    # -------------------------

    def snapshot(self) -> StatusSnapshot:
        with self._lock:
            return StatusSnapshot(is_running=self.is_running, progress=self.progress, job_id=self.job_id)

    def check_status(self) -> StatusSnapshot:
        """Current {isRunning, progress, jobId} without any I/O; also emitted as STATUS_UPDATE."""
        with self._lock:
            snapshot = self.snapshot()
            self._emit(
                "STATUS_UPDATE",
                data={
                    "isRunning": snapshot.is_running,
                    "progress": snapshot.progress,
                    "message": "Generation in progress..." if snapshot.is_running else "Ready",
                    "jobId": snapshot.job_id,
                },
            )
            return snapshot

    def stop(self) -> None:
        """Cancel polling and forget the job. Safe to call when idle."""
        with self._lock:
            was_tracking = self.job_id
            self._start_generation += 1
            self._cancel_timer()
            self._reset()
            self.progress = 0
            if self.store is not None:
                self.store.clear()
        if was_tracking:
            logger.info("generation_stopped", extra={"job_id": was_tracking})
        self._emit("COMPLETE", progress=0, message="Generation stopped by user", data=None)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until no job is tracked. Returns False on timeout."""
        return self._finished.wait(timeout)

    # -------------------------
    # State helpers
    # -------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _reset(self) -> None:
        with self._lock:
            self.is_running = False
            self.job_id = None
            self._token = None
            self._finished.set()

    def _finish_polling(self) -> None:
        self._cancel_timer()
        self._reset()
        if self.store is not None:
            self.store.clear()

    def _save_state(self) -> None:
        if self.store is None or not self.job_id:
            return
        try:
            self.store.save(self.job_id, self.progress)
        except OSError:
            # tracking continues in memory; only resume-after-restart is lost
            logger.warning("job_state_save_failed", exc_info=True, extra={"job_id": self.job_id})
