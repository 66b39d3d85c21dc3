# src/imon/storage/record_store.py

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Callable, Iterator
from typing import Any, TypeVar

from ..errors import CorruptIndex, RecordNotFound, StoreUnavailable
from ..records.clock import TaskClock
from ..records.history import replace_open_tail
from ..records.keys import OPERATING_INFO_KEY, ParsedKey, derive_key, parse_key
from ..records.models import (
    OperatingInfo,
    PublishedTask,
    Record,
    Role,
    SudoUserRecord,
    Task,
    UserRecord,
)
from .document_store import DocumentStore, DocumentTransaction

logger = logging.getLogger(__name__)

NextTask = Callable[[Task], Task]
R = TypeVar("R", UserRecord, SudoUserRecord)

PLACEHOLDER_REGISTERED = "initialised"
PLACEHOLDER_RESET = "reset"


def _from_doc(
    key: str,
    role: Role,
    doc: dict[str, Any] | None,
    load: Callable[[dict[str, Any]], R],
) -> R:
    if doc is None:
        logger.debug("non-existent record key=%s", key)
        raise RecordNotFound(key)
    try:
        return load(doc)
    except (KeyError, TypeError, ValueError) as e:
        logger.error("Stored document is not a valid %s record key=%s: %s", role, key, e)
        raise StoreUnavailable(f"Stored record {key!r} is unreadable") from e


class KeyLocks:
    """
    In-process mutex per record key.

    Together with BEGIN IMMEDIATE this keeps at most one read-modify-write in
    flight per key; different keys never contend on the same lock.
    An entry lives only while some thread holds or waits for it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        # key -> (lock, number of holders and waiters)
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            lock, users = entry if entry is not None else (threading.Lock(), 0)
            self._locks[key] = (lock, users + 1)
            return lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            lock, users = self._locks[key]
            if users <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)

    @contextlib.contextmanager
    def hold(self, key: str, timeout: float) -> Iterator[None]:
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout=timeout):
                logger.warning("Timed out waiting for record lock key=%s", key)
                raise StoreUnavailable("Timed out waiting for concurrent update of this record")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)


class RecordStore:
    """
    Read-modify-write protocol for user and sudo records.

    Every mutating operation runs under the key's lock and inside one store
    transaction; reads go straight to the document store.
    Keys are bound to a role: a key of the other role behaves like an unknown key.
    """

    def __init__(self, documents: DocumentStore, clock: TaskClock | None = None) -> None:
        self._documents = documents
        self._clock = clock or TaskClock()
        self._locks = KeyLocks()

    @property
    def clock(self) -> TaskClock:
        return self._clock

    @contextlib.contextmanager
    def _exclusive(self, key: str) -> Iterator[DocumentTransaction]:
        with self._locks.hold(key, self._documents.acquire_timeout):
            with self._documents.transaction() as tx:
                yield tx

    # ---- helpers ----

    @staticmethod
    def _resolve(key: str, role: Role) -> ParsedKey:
        parsed = parse_key(key)
        key_role = parsed.role or Role.USER
        if key_role is not role:
            logger.debug("Key role mismatch key=%s expected=%s", key, role)
            raise RecordNotFound(key)
        return parsed

    @staticmethod
    def _decode(key: str, role: Role, doc: dict[str, Any] | None) -> Record:
        if role is Role.USER:
            return RecordStore._decode_user(key, doc)
        return RecordStore._decode_sudo(key, doc)

    @staticmethod
    def _decode_user(key: str, doc: dict[str, Any] | None) -> UserRecord:
        return _from_doc(key, Role.USER, doc, UserRecord.from_dict)

    @staticmethod
    def _decode_sudo(key: str, doc: dict[str, Any] | None) -> SudoUserRecord:
        return _from_doc(key, Role.SUDO, doc, SudoUserRecord.from_dict)

    def _fresh_record(self, role: Role, record_id: int, name: str, placeholder: str) -> Record:
        if role is Role.USER:
            return UserRecord(
                id=record_id,
                user_name=name,
                task_history=[],
                current_task=self._clock.placeholder(placeholder),
            )
        return SudoUserRecord(id=record_id, user_name=name, published_tasks=[])

    # ---- public API ----

    def register(self, role: Role, name: str) -> str:
        """Allocate the next id for `role`, write a fresh record and index its key."""
        with self._exclusive(OPERATING_INFO_KEY) as tx:
            info = OperatingInfo.from_dict(tx.get(OPERATING_INFO_KEY))
            new_id = info.allocate_id(role)
            key = derive_key(role, name, new_id)

            record = self._fresh_record(role, new_id, name, PLACEHOLDER_REGISTERED)
            tx.put(key, record.to_dict())

            info.append_key(role, key)
            tx.put(OPERATING_INFO_KEY, info.to_dict())

        logger.info("Record registered role=%s key=%s", role, key)
        return key

    def mutate(self, key: str, next_task: NextTask) -> UserRecord:
        """
        Replace current_task with next_task(current_task) and fold it into the history.

        next_task runs against the snapshot read under the lock; if it raises,
        nothing is written.
        """
        self._resolve(key, Role.USER)
        with self._exclusive(key) as tx:
            record = self._decode_user(key, tx.get(key))

            previous = record.current_task
            snapshot = next_task(previous)

            record.task_history = replace_open_tail(
                record.task_history, snapshot, previous.state.is_open
            )
            record.current_task = snapshot
            tx.put(key, record.to_dict())

        logger.debug(
            "Record mutated key=%s %s -> %s history=%d",
            key,
            previous.state.value,
            snapshot.state.value,
            len(record.task_history),
        )
        return record

    def reset(self, key: str, *, role: Role = Role.USER) -> Record:
        """Clear the record's data; id and name are recovered from the key itself."""
        parsed = self._resolve(key, role)
        with self._exclusive(key) as tx:
            if not tx.exists(key):
                logger.debug("non-existent record key=%s", key)
                raise RecordNotFound(key)
            record = self._fresh_record(role, parsed.id, parsed.name, PLACEHOLDER_RESET)
            tx.put(key, record.to_dict())

        logger.info("Record reset role=%s key=%s", role, key)
        return record

    def get_one(self, key: str, *, role: Role = Role.USER) -> Record:
        """Fetch a record for presentation: newest entries first."""
        self._resolve(key, role)
        record = self._decode(key, role, self._documents.get(key))
        if isinstance(record, UserRecord):
            record.task_history.sort(key=lambda t: t.begin_time, reverse=True)
        else:
            record.published_tasks.sort(key=lambda t: t.created_at, reverse=True)
        return record

    def get_all(self, role: Role) -> list[Record]:
        info = OperatingInfo.from_dict(self._documents.get(OPERATING_INFO_KEY))
        records: list[Record] = []
        for key in info.keys_for(role):
            doc = self._documents.get(key)
            if doc is None:
                raise CorruptIndex(key)
            records.append(self._decode(key, role, doc))
        logger.debug("Retrieved %d %s records", len(records), role)
        return records

    def publish_task(self, key: str, name: str, description: str) -> SudoUserRecord:
        self._resolve(key, Role.SUDO)
        with self._exclusive(key) as tx:
            record = self._decode_sudo(key, tx.get(key))
            record.published_tasks.append(
                PublishedTask(name=name, description=description, created_at=self._clock.now())
            )
            tx.put(key, record.to_dict())

        logger.debug("Task published key=%s total=%d", key, len(record.published_tasks))
        return record
