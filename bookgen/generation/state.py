"""Fold generation worker events into the view a UI renders."""
import threading
from typing import Any, Dict

from bookgen.generation.errors import ALREADY_RUNNING_MESSAGE
from bookgen.models.schemas import GenerationView, WorkerEvent

# data key -> view field, copied whenever present on an event
_PROGRESS_FIELDS = {
    "job_id": "job_id",
    "total_books": "total_books",
    "processed_books": "processed_books",
    "current_book": "current_book",
    "estimated_time_remaining": "estimated_time_remaining",
    "current_step": "current_step",
    "successful_books": "successful_books",
    "failed_books": "failed_books",
    "remaining_books": "remaining_books",
    "duration_seconds": "duration",
}
_COMPLETE_FIELDS = {k: v for k, v in _PROGRESS_FIELDS.items() if k not in ("job_id", "estimated_time_remaining", "current_step")}
_ERROR_FIELDS = {
    k: v
    for k, v in _PROGRESS_FIELDS.items()
    if k in ("job_id", "total_books", "processed_books", "current_book", "successful_books", "failed_books")
}
# fields that are only copied when truthy (0 / "" would wipe a known total)
_TRUTHY_ONLY = ("job_id", "total_books")


class GenerationState:
    """Thread-safe holder of a GenerationView, updated by apply(event). Register apply as a worker listener.
    Why available: The control API and the Streamlit page read one consistent view instead of replaying events."""

    def __init__(self):
        self._lock = threading.Lock()
        self._view = GenerationView()

    @property
    def view(self) -> GenerationView:
        with self._lock:
            return self._view.model_copy(deep=True)

    def begin(self) -> None:
        """Reset the view for a new start request."""
        with self._lock:
            self._view = GenerationView(is_generating=True, message="Starting generation...")

    def apply(self, event: WorkerEvent) -> None:
        with self._lock:
            v = self._view
            data = event.data or {}
            if event.type == "PROGRESS":
                v.is_generating = True
                v.progress = event.progress or 0
                v.message = event.message or ""
                v.error = None
                _copy_fields(v, data, _PROGRESS_FIELDS)
            elif event.type == "COMPLETE":
                v.is_generating = False
                v.progress = 100
                v.message = event.message or "Generation completed!"
                if data:
                    v.result = dict(data)
                    _copy_fields(v, data, _COMPLETE_FIELDS)
                v.error = None
            elif event.type == "ERROR":
                if v.is_generating and event.message == ALREADY_RUNNING_MESSAGE:
                    # a refused duplicate start; the running job's view stays
                    return
                v.is_generating = False
                v.error = event.message or "Unknown error occurred"
                v.message = ""
                if data:
                    _copy_fields(v, data, _ERROR_FIELDS)
                else:
                    self._view = GenerationView(error=v.error, logs=v.logs)
            elif event.type == "STATUS_UPDATE":
                v.is_generating = bool(data.get("isRunning"))
                v.progress = int(data.get("progress") or 0)
                v.job_id = data.get("jobId")


def _copy_fields(view: GenerationView, data: Dict[str, Any], fields: Dict[str, str]) -> None:
    for key, attr in fields.items():
        if key not in data:
            continue
        value = data[key]
        if key in _TRUTHY_ONLY and not value:
            continue
        if attr in ("total_books", "processed_books", "successful_books", "failed_books", "remaining_books"):
            if value is None:
                continue
            value = int(value)
        setattr(view, attr, value)
    logs = data.get("logs")
    if isinstance(logs, list):
        view.logs = [entry for entry in logs if isinstance(entry, dict)]
