# src/imon/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object shared by the service and the client CLI.
- Nothing is required at import time; every value has a local default.
- Bad numeric values fall back to defaults instead of failing startup.
"""

from __future__ import annotations

import functools
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "IMON"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Service ----
    host: str
    port: int

    # ---- Document store ----
    data_dir: Path
    store_path: Path
    store_pool_size: int
    store_acquire_timeout: float
    store_call_timeout: float

    # ---- Client CLI ----
    service_url: str
    client_dir: Path
    client_timeout: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "imon") or "imon"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        host = _env(_k("HOST"), "127.0.0.1")
        port = _env_int(_k("PORT"), 8000)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/imon"))
        store_path = _env_path(_k("STORE_PATH"), data_dir / "records.sqlite3")
        store_pool_size = max(1, _env_int(_k("STORE_POOL_SIZE"), 8))
        store_acquire_timeout = _env_float(_k("STORE_ACQUIRE_TIMEOUT"), 5.0)
        store_call_timeout = _env_float(_k("STORE_CALL_TIMEOUT"), 5.0)

        service_url = _env(_k("SERVICE_URL"), "http://localhost:8000").rstrip("/")
        client_dir = _env_path(_k("CLIENT_DIR"), Path("~/.imon").expanduser())
        client_timeout = _env_float(_k("CLIENT_TIMEOUT"), 10.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            host=host,
            port=port,
            data_dir=data_dir,
            store_path=store_path,
            store_pool_size=store_pool_size,
            store_acquire_timeout=store_acquire_timeout,
            store_call_timeout=store_call_timeout,
            service_url=service_url,
            client_dir=client_dir,
            client_timeout=client_timeout,
        )


@functools.cache
def get_settings() -> Settings:
    load_dotenv(override=False)
    return Settings.from_env()
