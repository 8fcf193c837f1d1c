"""Unit tests for derived progress fields."""
from datetime import datetime, timedelta, timezone

import pytest

from bookgen.generation.progress import (
    current_step,
    estimated_time_remaining,
    format_duration,
    progress_percentage,
    tally_books,
)
from bookgen.models.schemas import GenerationProgress


def gp(**kw):
    kw.setdefault("status", "running")
    return GenerationProgress(**kw)


def test_percentage_from_counts():
    assert progress_percentage(gp(total_books=10, processed_books=2)) == 20
    assert progress_percentage(gp(total_books=3, processed_books=1)) == 33
    assert progress_percentage(gp(total_books=8, processed_books=1)) == 13  # 12.5 rounds up


def test_percentage_prefers_server_value():
    assert progress_percentage(gp(total_books=10, processed_books=2, progress_percentage=55)) == 55


def test_percentage_zero_server_value_falls_back_to_counts():
    assert progress_percentage(gp(total_books=4, processed_books=1, progress_percentage=0)) == 25


def test_percentage_without_total():
    assert progress_percentage(gp()) == 0


@pytest.mark.parametrize(
    "seconds,expected",
    [(0, "0s"), (42.4, "42s"), (59.4, "59s"), (60, "1m"), (150, "3m"), (3599, "60m"), (3600, "1h"), (9000, "3h")],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


def test_eta_from_average_per_book():
    start = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    now = start + timedelta(seconds=100)
    p = gp(total_books=10, processed_books=2, start_time=start.isoformat())
    # 50s per book, 8 books left
    assert estimated_time_remaining(p, now=now) == "7m"


def test_eta_accepts_z_suffix_and_naive_now():
    p = gp(total_books=4, processed_books=2, start_time="2026-01-01T12:00:00Z")
    assert estimated_time_remaining(p, now=datetime(2026, 1, 1, 12, 0, 20)) == "20s"


def test_eta_unknown_until_progress():
    assert estimated_time_remaining(gp(total_books=5, processed_books=0, start_time="2026-01-01T12:00:00")) is None
    assert estimated_time_remaining(gp(total_books=5, processed_books=1)) is None
    assert estimated_time_remaining(gp(total_books=0, processed_books=0, start_time="2026-01-01T12:00:00")) is None
    assert estimated_time_remaining(gp(total_books=5, processed_books=1, start_time="yesterday")) is None


def test_current_step_labels():
    assert current_step(gp(status="completed")) == "Completed"
    assert current_step(gp(status="failed")) == "Failed"
    assert current_step(gp(current_book="Moon Tales", processed_books=1)) == "Processing: Moon Tales"
    assert current_step(gp(processed_books=2)) == "In Progress"
    assert current_step(gp()) == "Starting..."


def test_tally_books():
    p = gp(
        status="completed",
        books=[
            {"title": "A", "status": "Review"},
            {"title": "B", "status": "Failed", "error": "timeout"},
            {"title": "C", "status": "Review", "id": "c-1"},
            {"title": "D", "status": "Pending"},
        ],
    )
    assert tally_books(p) == (2, 1)
