# tests/test_concurrency.py

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from imon.errors import UnprocessableEntity
from imon.records.clock import TaskClock
from imon.records.models import Role, TaskState, UserRecord
from imon.storage.document_store import DocumentStore
from imon.storage.record_store import RecordStore

from .fakes import FakeClock, step

SCRIPT = ["begin", "pause", "resume", "finish", "begin", "finish"]


def _make_store(path: Path) -> RecordStore:
    documents = DocumentStore(path, pool_size=4, acquire_timeout=5.0, call_timeout=5.0)
    return RecordStore(documents, TaskClock(FakeClock()))


def _run_script(store: RecordStore, key: str, name: str, barrier: threading.Barrier | None) -> None:
    for event in SCRIPT:
        if barrier is not None:
            barrier.wait()
        store.mutate(key, step(store.clock, event, name))


def test_distinct_keys_do_not_interfere(tmp_path: Path) -> None:
    serial = _make_store(tmp_path / "serial.sqlite3")
    s_alice = serial.register(Role.USER, "alice")
    s_bob = serial.register(Role.USER, "bob")
    _run_script(serial, s_alice, "alice-task", None)
    _run_script(serial, s_bob, "bob-task", None)

    parallel = _make_store(tmp_path / "parallel.sqlite3")
    p_alice = parallel.register(Role.USER, "alice")
    p_bob = parallel.register(Role.USER, "bob")
    barrier = threading.Barrier(2)
    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [
            pool.submit(_run_script, parallel, p_alice, "alice-task", barrier),
            pool.submit(_run_script, parallel, p_bob, "bob-task", barrier),
        ]
        for f in futures:
            f.result(timeout=30)

    assert (s_alice, s_bob) == (p_alice, p_bob)
    for key in (s_alice, s_bob):
        assert parallel.get_one(key).to_dict() == serial.get_one(key).to_dict()


def test_same_key_mutations_are_serialised(record_store: RecordStore) -> None:
    key = record_store.register(Role.USER, "alice")
    workers = 8
    barrier = threading.Barrier(workers)

    def attempt(i: int) -> bool:
        barrier.wait()
        try:
            record_store.mutate(key, step(record_store.clock, "begin", f"task-{i}"))
            return True
        except UnprocessableEntity:
            return False

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(attempt, range(workers)))

    assert results.count(True) == 1
    record = record_store.get_one(key)
    assert isinstance(record, UserRecord)
    assert len(record.task_history) == 1
    assert record.current_task.state is TaskState.BEGIN


def test_concurrent_registrations_get_unique_ids(record_store: RecordStore) -> None:
    with ThreadPoolExecutor(max_workers=6) as pool:
        keys = list(pool.map(lambda i: record_store.register(Role.USER, f"u{i}"), range(12)))

    ids = sorted(int(k.rsplit(":", 1)[1]) for k in keys)
    assert ids == list(range(12))
    assert len(record_store.get_all(Role.USER)) == 12
