# src/imon/records/clock.py

"""
Task lifecycle transitions.

TaskClock never mutates a Task: each transition returns a new snapshot.
Guards (which transitions are allowed from which state) live in the dispatcher;
here an unexpected source state is a programming error and raises ValueError.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from datetime import datetime

from .models import Task, TaskState

Now = Callable[[], datetime]


def local_now() -> datetime:
    return datetime.now()


def elapsed_seconds(start: datetime, stop: datetime) -> int:
    """Whole seconds between two instants, truncated toward zero."""
    return int((stop - start).total_seconds())


class TaskClock:
    def __init__(self, now: Now = local_now) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now()

    def placeholder(self, name: str) -> Task:
        ts = self._now()
        return Task(name=name, state=TaskState.IDLE, begin_time=ts, end_time=ts, duration=0)

    def begin(self, name: str) -> Task:
        ts = self._now()
        return Task(name=name, state=TaskState.BEGIN, begin_time=ts, end_time=ts, duration=0)

    def pause(self, current: Task) -> Task:
        _expect(current, TaskState.BEGIN)
        ts = self._now()
        return dataclasses.replace(
            current,
            state=TaskState.BREAK,
            duration=elapsed_seconds(current.begin_time, ts),
            end_time=ts,
        )

    def resume(self, current: Task) -> Task:
        # The clock restarts for the resumed interval; duration so far is carried.
        _expect(current, TaskState.BREAK)
        return dataclasses.replace(current, state=TaskState.BACK, begin_time=self._now())

    def finish(self, current: Task) -> Task:
        _expect(current, TaskState.BEGIN, TaskState.BREAK, TaskState.BACK)
        ts = self._now()

        if current.state is TaskState.BREAK:
            duration = current.duration
        elif current.state is TaskState.BACK:
            duration = elapsed_seconds(current.begin_time, ts) + current.duration
        else:
            duration = elapsed_seconds(current.begin_time, ts)

        return dataclasses.replace(current, state=TaskState.END, duration=duration, end_time=ts)


def _expect(task: Task, *states: TaskState) -> None:
    if task.state not in states:
        allowed = ", ".join(s.value for s in states)
        raise ValueError(f"cannot transition from {task.state.value} (expected {allowed})")
