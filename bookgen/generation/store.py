"""
Job state store: persists the tracked generation job id to a small JSON file.
Lets a restarted worker resume polling a job the backend is still running instead of losing track of it.
"""
import json
import os
from typing import Optional


class JobStateStore:
    """JSON file holding {"job_id", "progress"} for the job currently being tracked."""

    def __init__(self, path: str):
        self.path = path

    def save(self, job_id: str, progress: int = 0) -> None:
        """Record the tracked job. Written on every state transition so the file never lags the worker."""
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"job_id": job_id, "progress": int(progress)}, f, indent=2)

    def load(self) -> Optional[dict]:
        """Return the stored record, or None if missing, unreadable, or without a job_id."""
        if not os.path.isfile(self.path):
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            return None
        if not isinstance(data, dict) or not data.get("job_id"):
            return None
        return data

    def clear(self) -> None:
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass
