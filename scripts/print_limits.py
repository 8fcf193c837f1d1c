#!/usr/bin/env python3
"""Print the generation worker's polling limits (from config). Run from repo root: uv run python scripts/print_limits.py"""
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from bookgen.core.config import settings


def main():
    """Print backend URL, probe endpoints, poll interval and the timeout/error ceilings."""
    total_minutes = settings.poll_interval_seconds * settings.max_polling_attempts / 60
    print("Generation polling limits")
    print("-------------------------")
    print(f"  API_BASE                       = {settings.api_base}")
    print(f"  PROBE_ENDPOINTS                = {', '.join(settings.probe_endpoints)} ({settings.probe_timeout_seconds}s each)")
    print(f"  POLL_INTERVAL_SECONDS          = {settings.poll_interval_seconds}")
    print(f"  MAX_POLLING_ATTEMPTS           = {settings.max_polling_attempts} (~{total_minutes:.0f} min before timeout)")
    print(f"  MAX_CONSECUTIVE_ERRORS         = {settings.max_consecutive_errors} (warning every {settings.warning_every})")
    print(f"  RECENT_SUCCESS_WINDOW_SECONDS  = {settings.recent_success_window_seconds}")
    print(f"  JOB_STATE_FILE                 = {settings.job_state_file or '(disabled)'}")
    print("")
    print("Env: API_BASE, POLL_INTERVAL_SECONDS, MAX_POLLING_ATTEMPTS, MAX_CONSECUTIVE_ERRORS (see .env.example)")


if __name__ == "__main__":
    main()
