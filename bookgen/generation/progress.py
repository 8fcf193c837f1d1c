"""Derived progress fields for a generation job: percentage, estimated time remaining, current step label, completion tallies."""
import math
from datetime import datetime, timezone
from typing import Optional, Tuple

from bookgen.models.schemas import GenerationProgress

REVIEW_STATUS = "Review"
FAILED_STATUS = "Failed"


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def progress_percentage(progress: GenerationProgress) -> int:
    """Server-supplied percentage when present and non-zero, else processed/total, else 0. Clamped to 0..100."""
    if progress.progress_percentage:
        pct = _round_half_up(progress.progress_percentage)
    elif progress.total_books > 0:
        pct = _round_half_up(progress.processed_books / progress.total_books * 100)
    else:
        pct = 0
    return max(0, min(100, pct))


def _parse_start_time(value: str) -> Optional[datetime]:
    try:
        # fromisoformat rejects a trailing Z before 3.11
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_duration(seconds: float) -> str:
    """Format seconds as Ns (< 1 min), Nm (< 1 h) or Nh."""
    if seconds < 60:
        return f"{_round_half_up(seconds)}s"
    if seconds < 3600:
        return f"{_round_half_up(seconds / 60)}m"
    return f"{_round_half_up(seconds / 3600)}h"


def estimated_time_remaining(progress: GenerationProgress, now: Optional[datetime] = None) -> Optional[str]:
    """Estimate remaining time from average seconds per processed book since start_time. None until at least one book is processed."""
    if not progress.start_time or progress.total_books == 0 or progress.processed_books == 0:
        return None
    started = _parse_start_time(progress.start_time)
    if started is None:
        return None
    if now is None:
        now = datetime.now(timezone.utc) if started.tzinfo else datetime.now()
    elif (now.tzinfo is None) != (started.tzinfo is None):
        # mixed naive/aware: compare in UTC
        now = now.replace(tzinfo=None) if started.tzinfo is None else now.replace(tzinfo=timezone.utc)

    elapsed = max(0.0, (now - started).total_seconds())
    avg_per_book = elapsed / progress.processed_books
    remaining = max(0, progress.total_books - progress.processed_books)
    return format_duration(avg_per_book * remaining)


def current_step(progress: GenerationProgress) -> str:
    if progress.status == "completed":
        return "Completed"
    if progress.status == "failed":
        return "Failed"
    if progress.current_book:
        return f"Processing: {progress.current_book}"
    if progress.processed_books > 0:
        return "In Progress"
    return "Starting..."


def tally_books(progress: GenerationProgress) -> Tuple[int, int]:
    """Return (successful, failed) counts from the per-book outcomes."""
    successful = sum(1 for b in progress.books if b.status == REVIEW_STATUS)
    failed = sum(1 for b in progress.books if b.status == FAILED_STATUS)
    return successful, failed
