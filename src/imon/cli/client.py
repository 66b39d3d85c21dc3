# src/imon/cli/client.py

"""
`imon` client CLI.

    imon auth NAME     register and remember the returned key
    imon on NAME       start working on NAME
    imon break         take a break
    imon back          go back to work
    imon done          finish the current session
    imon check         show the last-known task (local cache)
    imon log           show the task history stored by the service
    imon reset         clear the history stored by the service
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable, Sequence
from typing import Any

import httpx

from .. import __version__
from ..config import Settings, get_settings
from ..logging_setup import setup_logging
from ..records.models import Task, TaskState
from .local_cache import LocalCache

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ServiceClient:
    """Thin JSON client for the record service routes."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._http = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def _call(self, method: str, path: str, body: dict[str, Any] | None = None) -> Any:
        try:
            resp = self._http.request(method, path, json=body)
        except httpx.HTTPError as e:
            logger.debug("Request %s %s failed", method, path, exc_info=True)
            raise ServiceError(f"Cannot reach the service: {e}") from e

        try:
            payload = resp.json()
        except ValueError:
            raise ServiceError(
                f"Unexpected response from the service (HTTP {resp.status_code})",
                resp.status_code,
            ) from None

        if not isinstance(payload, dict) or payload.get("status") != "ok":
            message = payload.get("message") if isinstance(payload, dict) else None
            raise ServiceError(message or "Something went wrong.", resp.status_code)
        return payload.get("data")

    def register(self, user_name: str) -> str:
        data = self._call("POST", "/record/new", {"user_name": user_name})
        return str(data["user_key"])

    def begin(self, key: str, name: str) -> Task:
        data = self._call("POST", "/task/new", {"key": key, "task": name})
        return Task.from_dict(data["current_task"])

    def update(self, key: str, state: TaskState) -> Task:
        data = self._call("POST", "/task/update", {"key": key, "state": state.value})
        return Task.from_dict(data["current_task"])

    def task_log(self, key: str) -> dict[str, Any]:
        data = self._call("POST", "/record", {"key": key})
        return data["task_log"]

    def reset(self, key: str) -> dict[str, Any]:
        data = self._call("POST", "/task/reset", {"key": key})
        return data["user_data"]


def format_duration(seconds: int) -> str:
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


# ---- commands ----

Command = Callable[[argparse.Namespace, ServiceClient, LocalCache], int]


def _require_key(cache: LocalCache) -> str | None:
    key = cache.load_key()
    if key is None:
        print("Please register yourself first: imon auth NAME")
    return key


def cmd_auth(args: argparse.Namespace, client: ServiceClient, cache: LocalCache) -> int:
    current = cache.user_name()
    if current and not args.force:
        print(f"You are already registered as `{current}`.")
        print("Use --force to register again.")
        return 1

    key = client.register(args.user_name)
    cache.save_key(key)
    cache.clear_tasks()
    print(f"Drink water, {args.user_name}.")
    return 0


def cmd_on(args: argparse.Namespace, client: ServiceClient, cache: LocalCache) -> int:
    key = _require_key(cache)
    if key is None:
        return 1
    task = client.begin(key, args.name)
    cache.append_task(task)
    print(f"Sure, you are working on `{task.name}`.")
    return 0


def _update(cache: LocalCache, client: ServiceClient, state: TaskState) -> Task | None:
    key = _require_key(cache)
    if key is None:
        return None
    task = client.update(key, state)
    cache.append_task(task)
    return task


def cmd_break(args: argparse.Namespace, client: ServiceClient, cache: LocalCache) -> int:
    task = _update(cache, client, TaskState.BREAK)
    if task is None:
        return 1
    print(f"Really? {format_duration(task.duration)} on `{task.name}` so far.")
    return 0


def cmd_back(args: argparse.Namespace, client: ServiceClient, cache: LocalCache) -> int:
    task = _update(cache, client, TaskState.BACK)
    if task is None:
        return 1
    print(f"Ah, finally. Back to `{task.name}`.")
    return 0


def cmd_done(args: argparse.Namespace, client: ServiceClient, cache: LocalCache) -> int:
    task = _update(cache, client, TaskState.END)
    if task is None:
        return 1
    print(f"You have worked on `{task.name}` for {format_duration(task.duration)}.")
    return 0


def cmd_check(args: argparse.Namespace, client: ServiceClient, cache: LocalCache) -> int:
    task = cache.last_task()
    if task is None or not task.state.is_open:
        print("You are not working on anything.")
        return 0
    if task.state is TaskState.BREAK:
        print(f"You are on a break from `{task.name}`.")
    else:
        print(f"You are working on `{task.name}`.")
    return 0


def cmd_log(args: argparse.Namespace, client: ServiceClient, cache: LocalCache) -> int:
    key = _require_key(cache)
    if key is None:
        return 1
    record = client.task_log(key)
    history = record.get("task_history") or []
    if not history:
        print("No tasks recorded yet.")
        return 0
    for raw in history[: args.limit]:
        task = Task.from_dict(raw)
        started = task.begin_time.strftime("%Y-%m-%d %H:%M")
        print(f"{started}  {task.state.value:<5}  {format_duration(task.duration):>12}  {task.name}")
    return 0


def cmd_reset(args: argparse.Namespace, client: ServiceClient, cache: LocalCache) -> int:
    key = _require_key(cache)
    if key is None:
        return 1
    client.reset(key)
    cache.clear_tasks()
    print("History cleared.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="imon", description="Track what you are working on.")
    parser.add_argument("--version", action="version", version=f"imon {__version__}")
    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("auth", help="Register yourself.")
    p.add_argument("user_name")
    p.add_argument("--force", action="store_true", help="Replace the stored key.")
    p.set_defaults(handler=cmd_auth)

    p = sub.add_parser("on", help="What are you working on?")
    p.add_argument("name")
    p.set_defaults(handler=cmd_on)

    sub.add_parser("break", help="Take a break.").set_defaults(handler=cmd_break)
    sub.add_parser("back", help="Go back to work.").set_defaults(handler=cmd_back)
    sub.add_parser("done", help="Finish the current task.").set_defaults(handler=cmd_done)
    sub.add_parser("check", help="Show the current task.").set_defaults(handler=cmd_check)

    p = sub.add_parser("log", help="Show your task history.")
    p.add_argument("--limit", type=int, default=20)
    p.set_defaults(handler=cmd_log)

    sub.add_parser("reset", help="Clear your task history.").set_defaults(handler=cmd_reset)
    return parser


def main(
    argv: Sequence[str] | None = None,
    *,
    settings: Settings | None = None,
    transport: httpx.BaseTransport | None = None,
) -> int:
    settings = settings or get_settings()
    args = build_parser().parse_args(argv)

    setup_logging(log_dir=settings.client_dir, log_name="client.log", console_level=logging.WARNING)
    cache = LocalCache(settings.client_dir)

    handler: Command | None = getattr(args, "handler", None)
    if handler is None:
        name = cache.user_name()
        if name is None:
            print("Please register yourself: imon auth NAME")
        else:
            print(f"{name.upper()}. You are {name}.")
        return 0

    client = ServiceClient(settings.service_url, timeout=settings.client_timeout, transport=transport)
    try:
        return handler(args, client, cache)
    except ServiceError as e:
        logger.debug("Command %s failed status=%s", args.command, e.status_code)
        print(e.message)
        return 1
    finally:
        client.close()


if __name__ == "__main__":
    sys.exit(main())
