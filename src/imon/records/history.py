# src/imon/records/history.py

from __future__ import annotations

from collections.abc import Sequence

from .models import Task


def replace_open_tail(history: Sequence[Task], snapshot: Task, was_open: bool) -> list[Task]:
    """
    Return a new history with `snapshot` appended.

    If the previous current task was still open (Begin/Break/Back), the last entry
    is that same session's older snapshot and is dropped first, so an open session
    occupies exactly one slot until it reaches End.
    """
    out = list(history)
    if was_open and out:
        out.pop()
    out.append(snapshot)
    return out
