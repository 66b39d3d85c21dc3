# src/imon/logging_setup.py

"""
Process-wide logging for the service and the client CLI.

The console shows imon's own records at the requested level and only
problems from libraries. The log file under the data directory gets
everything, including the werkzeug access log.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Library loggers allowed on the console below ERROR, with their floor.
_CONSOLE_FLOORS = {
    "werkzeug": logging.WARNING,
}


def _is_ours(name: str) -> bool:
    return name == "imon" or name.startswith("imon.")


class _ConsoleNoiseFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if _is_ours(record.name):
            return True
        root_name = record.name.split(".", 1)[0]
        # py.warnings and unknown libraries fall through to ERROR.
        return record.levelno >= _CONSOLE_FLOORS.get(root_name, logging.ERROR)


def _handler(handler: logging.Handler, level: int, fmt: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(fmt)
    return handler


def setup_logging(
    *,
    log_dir: str | Path = ".local/imon",
    log_name: str = "imon.log",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """Install the stderr and file handlers on the root logger; returns the log file path."""
    log_file = Path(log_dir) / log_name
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = _handler(logging.StreamHandler(sys.stderr), console_level, fmt)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)
    root.addHandler(_handler(logging.FileHandler(log_file, encoding="utf-8"), file_level, fmt))

    logging.captureWarnings(True)
    return log_file
