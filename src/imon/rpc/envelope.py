# src/imon/rpc/envelope.py

"""
RPC envelope parsing.

Wire format:

    {"metadata": {"of": "user" | "sudo", "event_type": "<event>"}, "payload": {...}}

parse_envelope turns that into an Envelope carrying exactly one typed payload
model. Each role offers a fixed table of events; an event outside the declared
role's table, or a role different from what the endpoint serves, is a role
mismatch. A payload that does not validate against its event's model fails
closed with the offending field.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from ..errors import RoleMismatch, UnprocessableEntity
from ..records.models import Role
from .payloads import (
    EventType,
    GetAllRecordPayload,
    GetSingleRecordPayload,
    Operation,
    RegisterRecordPayload,
    ResetRecordPayload,
    StoreSTaskPayload,
    StoreTaskPayload,
    UpdateTaskPayload,
)

OPERATIONS: dict[Role, dict[EventType, type[BaseModel]]] = {
    Role.USER: {
        EventType.REGISTER_RECORD: RegisterRecordPayload,
        EventType.ADD_TASK: StoreTaskPayload,
        EventType.UPDATE_TASK: UpdateTaskPayload,
        EventType.RESET_RECORD: ResetRecordPayload,
        EventType.GET_SINGLE_RECORD: GetSingleRecordPayload,
        EventType.GET_ALL_RECORD: GetAllRecordPayload,
    },
    Role.SUDO: {
        EventType.REGISTER_RECORD: RegisterRecordPayload,
        EventType.ADD_TASK: StoreSTaskPayload,
        EventType.RESET_RECORD: ResetRecordPayload,
        EventType.GET_SINGLE_RECORD: GetSingleRecordPayload,
        EventType.GET_ALL_RECORD: GetAllRecordPayload,
    },
}

_ENVELOPE_FIELDS = frozenset({"metadata", "payload"})


class RpcMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    of: Role
    event_type: EventType


@dataclass(frozen=True, slots=True)
class Envelope:
    role: Role
    event_type: EventType
    operation: Operation


def _error_field(prefix: str, err: ValidationError) -> str:
    errors = err.errors()
    if not errors:
        return prefix
    loc = [str(p) for p in errors[0].get("loc", ())]
    return ".".join([prefix, *loc])


def build_envelope(role: Role, event_type: EventType, payload: Any) -> dict[str, Any]:
    """Wrap a plain route body into the envelope shape."""
    return {"metadata": {"of": role.value, "event_type": event_type.value}, "payload": payload}


def parse_envelope(raw: Any, expected_role: Role | None = None) -> Envelope:
    if not isinstance(raw, dict):
        raise UnprocessableEntity("body", "Request body must be a JSON object")

    extra = set(raw) - _ENVELOPE_FIELDS
    if extra:
        raise UnprocessableEntity(sorted(extra)[0], "Unexpected envelope field")

    try:
        meta = RpcMetadata.model_validate(raw.get("metadata"))
    except ValidationError as e:
        raise UnprocessableEntity(_error_field("metadata", e)) from None

    if expected_role is not None and meta.of is not expected_role:
        raise RoleMismatch(f"This endpoint serves {expected_role.value} operations")

    schema = OPERATIONS[meta.of].get(meta.event_type)
    if schema is None:
        raise RoleMismatch(f"{meta.event_type.value} is not available for {meta.of.value}")

    try:
        operation = schema.model_validate(raw.get("payload", {}))
    except ValidationError as e:
        raise UnprocessableEntity(_error_field("payload", e)) from None

    return Envelope(role=meta.of, event_type=meta.event_type, operation=operation)  # type: ignore[arg-type]
