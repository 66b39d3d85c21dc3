# src/imon/rpc/payloads.py

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from ..records.keys import name_problem
from ..records.models import TaskState


class EventType(StrEnum):
    REGISTER_RECORD = "register_record"
    ADD_TASK = "add_task"
    UPDATE_TASK = "update_task"
    RESET_RECORD = "reset_record"
    GET_SINGLE_RECORD = "get_single_record"
    GET_ALL_RECORD = "get_all_record"


class _Payload(BaseModel):
    # Unknown fields are rejected and strings are never coerced from other types:
    # a payload that does not match its event's schema fails instead of being reinterpreted.
    model_config = ConfigDict(extra="forbid", frozen=True)


class RegisterRecordPayload(_Payload):
    user_name: StrictStr = Field(min_length=1)

    @field_validator("user_name")
    @classmethod
    def _usable_in_key(cls, v: str) -> str:
        problem = name_problem(v)
        if problem is not None:
            raise ValueError(problem)
        return v


class StoreTaskPayload(_Payload):
    key: StrictStr = Field(min_length=1)
    task: StrictStr = Field(min_length=1)


class UpdateTaskPayload(_Payload):
    key: StrictStr = Field(min_length=1)
    state: TaskState


class ResetRecordPayload(_Payload):
    key: StrictStr = Field(min_length=1)


class GetSingleRecordPayload(_Payload):
    key: StrictStr = Field(min_length=1)


class GetAllRecordPayload(_Payload):
    pass


class STaskIn(_Payload):
    name: StrictStr = Field(min_length=1)
    description: StrictStr = ""


class StoreSTaskPayload(_Payload):
    key: StrictStr = Field(min_length=1)
    task: STaskIn


Operation = (
    RegisterRecordPayload
    | StoreTaskPayload
    | UpdateTaskPayload
    | ResetRecordPayload
    | GetSingleRecordPayload
    | GetAllRecordPayload
    | StoreSTaskPayload
)
