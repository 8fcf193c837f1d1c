import sys
from pathlib import Path
import json
import pytest

# Ensure repo root is on sys.path so `import bookgen...` works in tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

from bookgen.core.config import Settings
from bookgen.generation.worker import GeneratePendingBooksWorker
from fakes import FakeClock, FakeTimer, ScriptedBackend


def pretty_json(obj) -> str:
    return json.dumps(obj, indent=2, ensure_ascii=False, sort_keys=True)


@pytest.fixture
def config():
    return Settings(
        api_base="http://backend.test",
        probe_endpoints=["/env-status", "/books", "/health", "/"],
        poll_interval_seconds=5,
        max_polling_attempts=360,
        max_consecutive_errors=20,
        warning_every=5,
        recent_success_window_seconds=300,
        job_state_file="",
    )


@pytest.fixture
def events():
    return []


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_worker(config, events, clock):
    """Build a worker over a ScriptedBackend with a FakeTimer; returns (worker, backend)."""
    FakeTimer.instances.clear()

    def _make(backend=None, store=None, **overrides):
        backend = backend or ScriptedBackend()
        cfg = config.model_copy(update=overrides) if overrides else config
        worker = GeneratePendingBooksWorker(
            backend,
            events.append,
            config=cfg,
            store=store,
            timer_factory=FakeTimer,
            clock=clock,
        )
        return worker, backend

    return _make


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """
    Attach request/response payloads into pytest-html report.

    In tests, store payloads like:
      item._api_logs = [{"title": "...", "request": ..., "response": ...}, ...]
    """
    outcome = yield
    rep = outcome.get_result()

    if rep.when != "call":
        return

    api_logs = getattr(item, "_api_logs", None)
    if not api_logs:
        return

    extras = getattr(rep, "extras", [])

    try:
        from pytest_html import extras as html_extras
    except ImportError:
        return

    for entry in api_logs:
        title = entry.get("title", "API Call")
        html = f"""
        <div style="font-family: ui-monospace, SFMono-Regular, Menlo, Monaco, Consolas, monospace;">
          <h4 style="margin:8px 0;">{title}</h4>
          <details style="margin:6px 0;"><summary><b>Request</b></summary><pre>{pretty_json(entry.get("request", {}))}</pre></details>
          <details style="margin:6px 0;"><summary><b>Response</b></summary><pre>{pretty_json(entry.get("response", {}))}</pre></details>
        </div>
        """
        extras.append(html_extras.html(html))

    rep.extras = extras
