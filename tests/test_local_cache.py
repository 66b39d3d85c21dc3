# tests/test_local_cache.py

from __future__ import annotations

from pathlib import Path

from imon.cli.local_cache import LocalCache
from imon.records.clock import TaskClock

from .fakes import FakeClock


def test_key_round_trip(tmp_path: Path) -> None:
    cache = LocalCache(tmp_path / "c")
    assert cache.load_key() is None

    cache.save_key("user:alice:0003")

    assert cache.load_key() == "user:alice:0003"
    assert cache.user_name() == "alice"
    assert (cache.key_path.stat().st_mode & 0o777) == 0o600


def test_malformed_key_has_no_name(tmp_path: Path) -> None:
    cache = LocalCache(tmp_path)
    cache.key_path.write_text("garbage\n", "utf-8")
    assert cache.user_name() is None


def test_last_task_wins(tmp_path: Path) -> None:
    cache = LocalCache(tmp_path)
    fake = FakeClock()
    clock = TaskClock(fake)

    started = clock.begin("a")
    cache.append_task(started)
    fake.advance(30)
    cache.append_task(clock.pause(started))

    last = cache.last_task()
    assert last is not None
    assert last.duration == 30


def test_unreadable_cache_line(tmp_path: Path) -> None:
    cache = LocalCache(tmp_path)
    cache.tasks_path.write_text('{"name": "a"}\n', "utf-8")
    assert cache.last_task() is None

    cache.clear_tasks()
    assert not cache.tasks_path.exists()
