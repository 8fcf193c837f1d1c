#!/usr/bin/env python3
"""Start pending-books generation and follow it until it finishes. Run from repo root: uv run python scripts/generate_pending_books.py [--token TOKEN]"""
import argparse
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from bookgen.core.config import settings
from bookgen.generation.state import GenerationState
from bookgen.generation.worker import GeneratePendingBooksWorker
from bookgen.models.schemas import WorkerEvent


def print_event(event: WorkerEvent) -> None:
    """Print one worker event as a single line: type, progress, message, and current step/ETA when known."""
    data = event.data or {}
    parts = [f"[{event.type}]"]
    if event.progress is not None:
        parts.append(f"{event.progress:3d}%")
    if event.message:
        parts.append(event.message)
    if data.get("current_step"):
        parts.append(f"({data['current_step']})")
    if data.get("estimated_time_remaining"):
        parts.append(f"ETA {data['estimated_time_remaining']}")
    print(" ".join(parts), flush=True)


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--token", default=None, help="Bearer token forwarded to the backend")
    parser.add_argument("--verbose", action="store_true", help="Log worker internals")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    state = GenerationState()
    worker = GeneratePendingBooksWorker(listener=state.apply)
    worker.add_listener(print_event)

    print(f"Backend: {settings.api_base}")
    if worker.start(args.token) is None:
        return 1
    try:
        worker.wait()
    except KeyboardInterrupt:
        worker.stop()
        return 130

    view = state.view
    if view.error:
        return 1
    print(f"Done: {view.successful_books} generated, {view.failed_books} failed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
