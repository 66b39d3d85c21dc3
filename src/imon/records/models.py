# src/imon/records/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class Role(StrEnum):
    """Record kind. Also the first segment of every derived key."""

    USER = "user"
    SUDO = "sudo"


class TaskState(StrEnum):
    """
    Task lifecycle state.

    Notes:
    - IDLE is both "nothing recorded yet" and the reset placeholder.
    - BEGIN/BREAK/BACK mean a session is still open.
    """

    IDLE = "Idle"
    BEGIN = "Begin"
    BREAK = "Break"
    BACK = "Back"
    END = "End"

    @property
    def is_open(self) -> bool:
        return self in (TaskState.BEGIN, TaskState.BREAK, TaskState.BACK)


def _ts_to_str(ts: datetime) -> str:
    return ts.isoformat()


def _str_to_ts(raw: str) -> datetime:
    return datetime.fromisoformat(raw)


@dataclass(frozen=True, slots=True)
class Task:
    name: str
    state: TaskState
    begin_time: datetime
    end_time: datetime
    duration: int  # seconds of productive time

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "begin_time": _ts_to_str(self.begin_time),
            "end_time": _ts_to_str(self.end_time),
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        return cls(
            name=str(data["name"]),
            state=TaskState(data["state"]),
            begin_time=_str_to_ts(data["begin_time"]),
            end_time=_str_to_ts(data["end_time"]),
            duration=int(data["duration"]),
        )


@dataclass(slots=True)
class UserRecord:
    id: int
    user_name: str
    task_history: list[Task]
    current_task: Task

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_name": self.user_name,
            "task_history": [t.to_dict() for t in self.task_history],
            "current_task": self.current_task.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserRecord:
        return cls(
            id=int(data["id"]),
            user_name=str(data["user_name"]),
            task_history=[Task.from_dict(t) for t in data.get("task_history") or []],
            current_task=Task.from_dict(data["current_task"]),
        )


@dataclass(frozen=True, slots=True)
class PublishedTask:
    name: str
    description: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "created_at": _ts_to_str(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PublishedTask:
        return cls(
            name=str(data["name"]),
            description=str(data.get("description", "")),
            created_at=_str_to_ts(data["created_at"]),
        )


@dataclass(slots=True)
class SudoUserRecord:
    id: int
    user_name: str
    published_tasks: list[PublishedTask] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_name": self.user_name,
            "published_tasks": [t.to_dict() for t in self.published_tasks],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SudoUserRecord:
        return cls(
            id=int(data["id"]),
            user_name=str(data["user_name"]),
            published_tasks=[PublishedTask.from_dict(t) for t in data.get("published_tasks") or []],
        )


Record = UserRecord | SudoUserRecord


@dataclass(slots=True)
class OperatingInfo:
    """
    Process-wide persisted counters and key lists.

    latest_*_id stays None until the first registration of that role, so the
    first id handed out is 0.
    """

    latest_record_id: int | None = None
    latest_sudo_record_id: int | None = None
    user_list: list[str] = field(default_factory=list)
    sudo_user_list: list[str] = field(default_factory=list)

    def allocate_id(self, role: Role) -> int:
        if role is Role.USER:
            new_id = 0 if self.latest_record_id is None else self.latest_record_id + 1
            self.latest_record_id = new_id
        else:
            new_id = 0 if self.latest_sudo_record_id is None else self.latest_sudo_record_id + 1
            self.latest_sudo_record_id = new_id
        return new_id

    def append_key(self, role: Role, key: str) -> None:
        self.keys_for(role).append(key)

    def keys_for(self, role: Role) -> list[str]:
        return self.user_list if role is Role.USER else self.sudo_user_list

    def to_dict(self) -> dict[str, Any]:
        return {
            "latest_record_id": self.latest_record_id,
            "latest_sudo_record_id": self.latest_sudo_record_id,
            "user_list": list(self.user_list),
            "sudo_user_list": list(self.sudo_user_list),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> OperatingInfo:
        if not data:
            return cls()
        latest = data.get("latest_record_id")
        latest_sudo = data.get("latest_sudo_record_id")
        return cls(
            latest_record_id=int(latest) if latest is not None else None,
            latest_sudo_record_id=int(latest_sudo) if latest_sudo is not None else None,
            user_list=[str(k) for k in data.get("user_list") or []],
            sudo_user_list=[str(k) for k in data.get("sudo_user_list") or []],
        )
