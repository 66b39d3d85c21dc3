# src/imon/rpc/dispatcher.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..errors import CorruptIndex, ImonError, UnprocessableEntity
from ..records.clock import TaskClock
from ..records.models import Record, Role, Task, TaskState
from ..storage.record_store import NextTask, RecordStore
from .envelope import Envelope, parse_envelope
from .payloads import (
    GetAllRecordPayload,
    GetSingleRecordPayload,
    RegisterRecordPayload,
    ResetRecordPayload,
    StoreSTaskPayload,
    StoreTaskPayload,
    UpdateTaskPayload,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Reply:
    status_code: int
    body: dict[str, Any]

    @property
    def ok(self) -> bool:
        return self.body.get("status") == "ok"


def _ok(data: Any = None) -> Reply:
    body: dict[str, Any] = {"status": "ok"}
    if data is not None:
        body["data"] = data
    return Reply(200, body)


def _records(records: list[Record]) -> list[dict[str, Any]]:
    return [r.to_dict() for r in records]


# ---- guards ----
# Checked against the snapshot read under the record lock, so a concurrent
# transition cannot slip in between the check and the write.


def check_begin(current: Task) -> None:
    if current.state.is_open:
        raise UnprocessableEntity(
            "task", f"Already working on {current.name!r}. Please finish it first."
        )


def check_pause(current: Task) -> None:
    if current.state is not TaskState.BEGIN:
        if current.state is TaskState.BREAK:
            raise UnprocessableEntity("state", "Already on a break.")
        raise UnprocessableEntity("state", "Not working on anything that can be paused.")


def check_resume(current: Task) -> None:
    if current.state is not TaskState.BREAK:
        if current.state in (TaskState.BEGIN, TaskState.BACK):
            raise UnprocessableEntity("state", "Nothing to resume, the session is running.")
        raise UnprocessableEntity("state", "No open session to resume.")


def check_finish(current: Task) -> None:
    if not current.state.is_open:
        raise UnprocessableEntity("state", "Not working on anything.")


class RequestDispatcher:
    """
    Entry point for every client operation.

    Parses the envelope, routes the typed payload to the record store and turns
    domain errors into the uniform response body. CorruptIndex is logged and
    re-raised: it signals broken storage invariants, not a bad request.
    """

    def __init__(self, store: RecordStore, clock: TaskClock | None = None) -> None:
        self._store = store
        self._clock = clock or store.clock

    def dispatch(self, raw: Any, expected_role: Role | None = None) -> Reply:
        try:
            envelope = parse_envelope(raw, expected_role)
            logger.debug("request role=%s event=%s", envelope.role, envelope.event_type)
            return self.execute(envelope)
        except ImonError as e:
            logger.info("Request rejected status=%s: %s", e.status_code, e.message)
            return Reply(e.status_code, e.to_body())
        except CorruptIndex:
            logger.exception("Operating key list references a missing record.")
            raise

    def execute(self, envelope: Envelope) -> Reply:
        store = self._store
        clock = self._clock

        match (envelope.role, envelope.operation):
            case (role, RegisterRecordPayload(user_name=name)):
                return _ok({"user_key": store.register(role, name)})

            case (Role.USER, StoreTaskPayload(key=key, task=name)):

                def begin(current: Task) -> Task:
                    check_begin(current)
                    return clock.begin(name)

                record = store.mutate(key, begin)
                return _ok({"current_task": record.current_task.to_dict()})

            case (Role.USER, UpdateTaskPayload(key=key, state=state)):
                record = store.mutate(key, self._update_transition(state))
                return _ok({"current_task": record.current_task.to_dict()})

            case (role, ResetRecordPayload(key=key)):
                return _ok({"user_data": store.reset(key, role=role).to_dict()})

            case (Role.USER, GetSingleRecordPayload(key=key)):
                return _ok({"task_log": store.get_one(key, role=Role.USER).to_dict()})

            case (Role.SUDO, GetSingleRecordPayload(key=key)):
                return _ok(store.get_one(key, role=Role.SUDO).to_dict())

            case (role, GetAllRecordPayload()):
                return _ok({"user_records": _records(store.get_all(role))})

            case (Role.SUDO, StoreSTaskPayload(key=key, task=task)):
                record = store.publish_task(key, task.name, task.description)
                return _ok({"user_data": record.to_dict()})

            case _:
                raise UnprocessableEntity("payload", "Payload does not match the declared operation")

    def _update_transition(self, state: TaskState) -> NextTask:
        clock = self._clock

        if state is TaskState.BREAK:

            def pause(current: Task) -> Task:
                check_pause(current)
                return clock.pause(current)

            return pause

        if state is TaskState.BACK:

            def resume(current: Task) -> Task:
                check_resume(current)
                return clock.resume(current)

            return resume

        if state is TaskState.END:

            def finish(current: Task) -> Task:
                check_finish(current)
                return clock.finish(current)

            return finish

        raise UnprocessableEntity("payload.state", f"Cannot update a task to {state.value}")
