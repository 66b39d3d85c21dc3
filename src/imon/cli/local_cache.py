# src/imon/cli/local_cache.py

"""
Client-side flat-file cache.

- user_key: the bearer key returned by registration (single line)
- tasks.jsonl: last-known task snapshots, one JSON object per line

The service stays the source of truth; the cache only lets `imon check` answer
offline and lets the client greet the user by name.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path

from ..errors import MalformedKey
from ..records.keys import parse_key
from ..records.models import Task

logger = logging.getLogger(__name__)


class LocalCache:
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.key_path = self.root / "user_key"
        self.tasks_path = self.root / "tasks.jsonl"

    def load_key(self) -> str | None:
        if not self.key_path.exists():
            return None
        key = self.key_path.read_text("utf-8").strip()
        return key or None

    def save_key(self, key: str) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        tmp = self.key_path.with_suffix(".tmp")
        tmp.write_text(key + "\n", "utf-8")
        os.replace(tmp, self.key_path)
        with contextlib.suppress(OSError):
            # The key is a bearer credential; keep it private on disk.
            os.chmod(self.key_path, 0o600)
        logger.debug("Saved user key to %s", self.key_path)

    def user_name(self) -> str | None:
        key = self.load_key()
        if key is None:
            return None
        try:
            return parse_key(key).name
        except MalformedKey:
            return None

    def last_task(self) -> Task | None:
        if not self.tasks_path.exists():
            return None
        last = None
        with self.tasks_path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line:
                    last = line
        if last is None:
            return None
        try:
            return Task.from_dict(json.loads(last))
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring unreadable task cache line in %s", self.tasks_path)
            return None

    def append_task(self, task: Task) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        with self.tasks_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(task.to_dict(), ensure_ascii=False) + "\n")

    def clear_tasks(self) -> None:
        with contextlib.suppress(FileNotFoundError):
            self.tasks_path.unlink()
