"""Fixed-interval timer running a callback on a daemon thread until cancelled."""
import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class IntervalTimer:
    """Call fn() every interval_seconds on a background thread. Ticks run serially; the next wait starts after fn returns, so calls never overlap.
    Why available: Drives the worker's poll tick the way a browser setInterval would, with cancel() as the only cancellation handle."""

    def __init__(self, interval_seconds: float, fn: Callable[[], None], name: str = "interval-timer"):
        self.interval_seconds = interval_seconds
        self.fn = fn
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._name = name

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._cancelled.wait(self.interval_seconds):
            try:
                self.fn()
            except Exception:
                # keep ticking; the callback owns its own error reporting
                logger.exception("interval_tick_failed", extra={"timer": self._name})

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()
