"""Unit tests for the job state store and resuming a stored job."""
import json

from bookgen.generation.store import JobStateStore
from fakes import FakeTimer, ScriptedBackend


def test_save_load_clear(tmp_path):
    store = JobStateStore(str(tmp_path / "state" / "job.json"))
    assert store.load() is None
    store.save("job-7", 40)
    assert store.load() == {"job_id": "job-7", "progress": 40}
    store.clear()
    assert store.load() is None
    store.clear()


def test_malformed_file_reads_as_none(tmp_path):
    path = tmp_path / "job.json"
    path.write_text("{not json", encoding="utf-8")
    assert JobStateStore(str(path)).load() is None
    path.write_text(json.dumps({"progress": 3}), encoding="utf-8")
    assert JobStateStore(str(path)).load() is None


def test_worker_records_job_and_clears_on_completion(tmp_path, make_worker):
    store = JobStateStore(str(tmp_path / "job.json"))
    backend = ScriptedBackend(progress=[
        {"job_id": "job-1", "status": "running", "processed_books": 1, "total_books": 4},
        {"job_id": "job-1", "status": "completed", "processed_books": 4, "total_books": 4},
    ])
    worker, _ = make_worker(backend, store=store)
    worker.start()
    assert store.load() == {"job_id": "job-1", "progress": 0}

    timer = FakeTimer.instances[-1]
    timer.fire()
    assert store.load() == {"job_id": "job-1", "progress": 25}

    timer.fire()
    assert store.load() is None


def test_worker_resumes_stored_job_without_probe_or_post(tmp_path, make_worker, events):
    store = JobStateStore(str(tmp_path / "job.json"))
    store.save("job-42", 60)
    backend = ScriptedBackend(progress=[{"job_id": "job-42", "status": "running", "processed_books": 7, "total_books": 10}])
    worker, _ = make_worker(backend, store=store)

    assert worker.start() == "job-42"
    assert backend.count("PING") == 0 and backend.count("POST") == 0
    assert events[-1].progress == 60 and events[-1].data == {"job_id": "job-42"}

    FakeTimer.instances[-1].fire()
    assert ("GET", "/generation-progress/job-42", None) in backend.calls
    assert worker.progress == 70


def test_stop_clears_store(tmp_path, make_worker):
    store = JobStateStore(str(tmp_path / "job.json"))
    worker, _ = make_worker(store=store)
    worker.start()
    worker.stop()
    assert store.load() is None


class ReadOnlyStore(JobStateStore):
    def save(self, job_id, progress):
        raise OSError(30, "Read-only file system")


def test_unwritable_store_does_not_stop_completion(tmp_path, make_worker, events, caplog):
    backend = ScriptedBackend(progress=[
        {"job_id": "job-1", "status": "running", "processed_books": 2, "total_books": 4},
        {"job_id": "job-1", "status": "completed", "processed_books": 4, "total_books": 4},
    ])
    worker, _ = make_worker(backend, store=ReadOnlyStore(str(tmp_path / "job.json")))
    assert worker.start() == "job-1"

    timer = FakeTimer.instances[-1]
    timer.fire()
    assert worker.progress == 50 and events[-1].type == "PROGRESS"

    timer.fire()
    assert events[-1].type == "COMPLETE" and events[-1].progress == 100
    assert timer.cancel_calls == 1
    assert not worker.is_running
    assert any(r.message == "job_state_save_failed" for r in caplog.records)
