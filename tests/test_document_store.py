# tests/test_document_store.py

from __future__ import annotations

import sqlite3
import time
from pathlib import Path

import pytest

from imon.errors import StoreUnavailable
from imon.storage.document_store import DocumentStore

from .fakes import document_version


def test_put_get_and_versioning(documents: DocumentStore) -> None:
    assert documents.get("k") is None
    assert document_version(documents, "k") is None

    documents.put("k", {"a": 1})
    assert documents.get("k") == {"a": 1}
    assert document_version(documents, "k") == 1

    documents.put("k", {"a": 2, "b": ["x"]})
    assert documents.get("k") == {"a": 2, "b": ["x"]}
    assert document_version(documents, "k") == 2
    assert documents.count() == 1


def test_transaction_commits(documents: DocumentStore) -> None:
    with documents.transaction() as tx:
        tx.put("k", {"n": 1})
        assert tx.get("k") == {"n": 1}
        assert tx.exists("k")
    assert documents.get("k") == {"n": 1}


def test_transaction_rolls_back_on_error(documents: DocumentStore) -> None:
    documents.put("k", {"n": 1})

    with pytest.raises(RuntimeError):
        with documents.transaction() as tx:
            tx.put("k", {"n": 2})
            tx.put("other", {})
            raise RuntimeError("boom")

    assert documents.get("k") == {"n": 1}
    assert documents.get("other") is None


def test_pool_exhaustion_raises_store_unavailable(tmp_path: Path) -> None:
    store = DocumentStore(tmp_path / "db.sqlite3", pool_size=1, acquire_timeout=0.1)
    try:
        with store.transaction():
            started = time.monotonic()
            with pytest.raises(StoreUnavailable):
                store.get("k")
            assert time.monotonic() - started < 2.0
        # The slot is released again afterwards.
        assert store.get("k") is None
    finally:
        store.close()


def test_locked_database_hits_the_call_deadline(tmp_path: Path) -> None:
    path = tmp_path / "db.sqlite3"
    holder = DocumentStore(path)
    waiter = DocumentStore(path, call_timeout=0.1)
    try:
        with holder.transaction() as tx:
            tx.put("k", {"n": 1})
            with pytest.raises(StoreUnavailable):
                with waiter.transaction() as other:
                    other.put("k", {"n": 2})
        assert waiter.get("k") == {"n": 1}
    finally:
        holder.close()
        waiter.close()


def test_unreadable_document_is_reported(documents: DocumentStore) -> None:
    conn = sqlite3.connect(str(documents.db_path))
    try:
        conn.execute(
            "INSERT INTO documents(key, body, version, updated_at) VALUES (?, ?, 1, 0)",
            ("broken", "{not json"),
        )
        conn.commit()
    finally:
        conn.close()

    with pytest.raises(StoreUnavailable):
        documents.get("broken")


def test_closed_store_refuses_calls(tmp_path: Path) -> None:
    store = DocumentStore(tmp_path / "db.sqlite3")
    store.close()
    with pytest.raises(StoreUnavailable):
        store.get("k")
