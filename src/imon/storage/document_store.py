# src/imon/storage/document_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import threading
import time
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from ..errors import StoreUnavailable

logger = logging.getLogger(__name__)

# SQLite VM instructions between deadline checks.
_PROGRESS_STEPS = 1000


def _row_to_doc(key: str, row: sqlite3.Row | None) -> dict[str, Any] | None:
    if row is None:
        return None
    try:
        val = json.loads(row["body"])
    except ValueError as e:
        raise StoreUnavailable(f"Document {key!r} is not valid JSON") from e
    if not isinstance(val, dict):
        raise StoreUnavailable(f"Document {key!r} is not a JSON object")
    return val


def _get(conn: sqlite3.Connection, key: str) -> dict[str, Any] | None:
    row = conn.execute("SELECT body FROM documents WHERE key = ?", (key,)).fetchone()
    return _row_to_doc(key, row)


def _put(conn: sqlite3.Connection, key: str, doc: dict[str, Any]) -> None:
    conn.execute(
        """
        INSERT INTO documents(key, body, version, updated_at)
        VALUES (?, ?, 1, ?)
        ON CONFLICT(key) DO UPDATE SET
            body = excluded.body,
            version = documents.version + 1,
            updated_at = excluded.updated_at
        """,
        (key, json.dumps(doc, ensure_ascii=False), time.time()),
    )


class DocumentTransaction:
    """Handle passed to code running inside DocumentStore.transaction()."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def get(self, key: str) -> dict[str, Any] | None:
        return _get(self._conn, key)

    def put(self, key: str, doc: dict[str, Any]) -> None:
        _put(self._conn, key, doc)

    def exists(self, key: str) -> bool:
        row = self._conn.execute("SELECT 1 FROM documents WHERE key = ?", (key,)).fetchone()
        return row is not None


class DocumentStore:
    """
    JSON document store on SQLite: one JSON object per key.

    Resource model:
    - bounded pool of connections; waiting for one is capped by acquire_timeout
    - every call runs under a deadline (busy timeout + progress handler)
    - any sqlite3 error surfaces as StoreUnavailable, nothing is retried
    """

    def __init__(
        self,
        db_path: str | Path = "records.sqlite3",
        *,
        pool_size: int = 8,
        acquire_timeout: float = 5.0,
        call_timeout: float = 5.0,
    ) -> None:
        if pool_size < 1:
            raise ValueError("pool_size must be >= 1")

        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._pool_size = pool_size
        self.acquire_timeout = float(acquire_timeout)
        self.call_timeout = float(call_timeout)

        self._slots = threading.BoundedSemaphore(pool_size)
        self._idle: list[sqlite3.Connection] = []
        self._idle_lock = threading.Lock()
        self._closed = False

        self._ensure_schema()
        logger.info(
            "DocumentStore ready db=%s pool_size=%s documents=%s",
            self._db_path,
            pool_size,
            self.count(),
        )

    @property
    def db_path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        with self._idle_lock:
            self._closed = True
            idle, self._idle = self._idle, []
        for conn in idle:
            with contextlib.suppress(sqlite3.Error):
                conn.close()

    # ---- pool ----

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self._db_path),
            timeout=self.call_timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _acquire(self) -> sqlite3.Connection:
        if self._closed:
            raise StoreUnavailable("Store is closed")
        if not self._slots.acquire(timeout=self.acquire_timeout):
            logger.warning("Connection pool exhausted after %.2fs", self.acquire_timeout)
            raise StoreUnavailable("Timed out waiting for a store connection")
        try:
            with self._idle_lock:
                if self._idle:
                    return self._idle.pop()
            return self._open()
        except sqlite3.Error as e:
            self._slots.release()
            raise StoreUnavailable(f"Cannot open store: {e}") from e

    def _release(self, conn: sqlite3.Connection) -> None:
        try:
            if conn.in_transaction:
                conn.rollback()
            with self._idle_lock:
                if not self._closed:
                    self._idle.append(conn)
                    return
            conn.close()
        except sqlite3.Error:
            logger.debug("Dropping broken store connection.", exc_info=True)
            with contextlib.suppress(sqlite3.Error):
                conn.close()
        finally:
            self._slots.release()

    @contextlib.contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._acquire()
        expires = time.monotonic() + self.call_timeout
        conn.set_progress_handler(lambda: int(time.monotonic() > expires), _PROGRESS_STEPS)
        try:
            yield conn
        except sqlite3.Error as e:
            logger.warning("Store call failed: %s", e)
            raise StoreUnavailable(f"Store call failed: {e}") from e
        finally:
            conn.set_progress_handler(None, _PROGRESS_STEPS)
            self._release(conn)

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    key TEXT PRIMARY KEY,
                    body TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1,
                    updated_at REAL NOT NULL
                )
                """
            )

    # ---- public API ----

    def count(self) -> int:
        with self._connection() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM documents").fetchone()
            return int(n)

    def get(self, key: str) -> dict[str, Any] | None:
        with self._connection() as conn:
            return _get(conn, key)

    def put(self, key: str, doc: dict[str, Any]) -> None:
        with self._connection() as conn:
            _put(conn, key, doc)
        logger.debug("Document written key=%s", key)

    @contextlib.contextmanager
    def transaction(self) -> Iterator[DocumentTransaction]:
        """
        Run a read-modify-write under BEGIN IMMEDIATE.

        Commits when the block exits normally, rolls back on any exception.
        """
        with self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield DocumentTransaction(conn)
            except BaseException:
                with contextlib.suppress(sqlite3.Error):
                    conn.rollback()
                raise
            conn.commit()
