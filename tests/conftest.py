# tests/conftest.py

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from imon.config import Settings
from imon.records.clock import TaskClock
from imon.rpc.dispatcher import RequestDispatcher
from imon.service.app import create_app
from imon.storage.document_store import DocumentStore
from imon.storage.record_store import RecordStore

from .fakes import FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Real Settings pointed at per-test temporary paths."""
    return Settings(
        app_name="imon-test",
        log_level="DEBUG",
        host="127.0.0.1",
        port=0,
        data_dir=tmp_path / "data",
        store_path=tmp_path / "data" / "records.sqlite3",
        store_pool_size=4,
        store_acquire_timeout=5.0,
        store_call_timeout=5.0,
        service_url="http://imon.test",
        client_dir=tmp_path / "client",
        client_timeout=1.0,
    )


@pytest.fixture()
def fake_now() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def clock(fake_now: FakeClock) -> TaskClock:
    return TaskClock(fake_now)


@pytest.fixture()
def documents(settings: Settings) -> Iterator[DocumentStore]:
    """
    NOTE: a real SQLite file per test; the storage protocol is part of what
    we want to test.
    """
    store = DocumentStore(
        settings.store_path,
        pool_size=settings.store_pool_size,
        acquire_timeout=settings.store_acquire_timeout,
        call_timeout=settings.store_call_timeout,
    )
    yield store
    store.close()


@pytest.fixture()
def record_store(documents: DocumentStore, clock: TaskClock) -> RecordStore:
    return RecordStore(documents, clock)


@pytest.fixture()
def dispatcher(record_store: RecordStore) -> RequestDispatcher:
    return RequestDispatcher(record_store)


@pytest.fixture()
def app(record_store: RecordStore):
    app = create_app(store=record_store)
    app.config["TESTING"] = True
    return app


@pytest.fixture()
def client(app):
    return app.test_client()
