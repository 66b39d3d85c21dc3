# src/imon/service/app.py

"""
Flask application factory.

Plain routes wrap their body into the RPC envelope so every request goes
through the same parsing, guards and error translation as /rpc/*.
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from ..config import Settings, get_settings
from ..errors import CorruptIndex
from ..records.clock import TaskClock
from ..records.models import Role
from ..rpc.dispatcher import Reply, RequestDispatcher
from ..rpc.envelope import build_envelope
from ..rpc.payloads import EventType
from ..storage.document_store import DocumentStore
from ..storage.record_store import RecordStore

logger = logging.getLogger(__name__)

_EXTENSION = "imon"


def _dispatcher() -> RequestDispatcher:
    return current_app.extensions[_EXTENSION]


def _respond(reply: Reply):
    return jsonify(reply.body), reply.status_code


def _error(message: str, status_code: int):
    return jsonify({"status": "error", "message": message}), status_code


def _dispatch_body(role: Role, event_type: EventType | None = None):
    """Dispatch the JSON body; wrap it into an envelope unless it already is one."""
    body: Any = request.get_json(silent=True)
    if body is None:
        return _error("Request body must be valid JSON", 400)
    if event_type is not None:
        body = build_envelope(role, event_type, body)
    return _respond(_dispatcher().dispatch(body, role))


def create_app(
    settings: Settings | None = None,
    *,
    store: RecordStore | None = None,
    clock: TaskClock | None = None,
) -> Flask:
    if store is None:
        if settings is None:
            settings = get_settings()
        documents = DocumentStore(
            settings.store_path,
            pool_size=settings.store_pool_size,
            acquire_timeout=settings.store_acquire_timeout,
            call_timeout=settings.store_call_timeout,
        )
        store = RecordStore(documents, clock or TaskClock())

    app = Flask(__name__)
    app.json.sort_keys = False
    app.extensions[_EXTENSION] = RequestDispatcher(store, clock)

    @app.errorhandler(CorruptIndex)
    def _corrupt_index(err: CorruptIndex):
        # Already logged with traceback by the dispatcher.
        return _error("Internal server error", 500)

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        return _error(err.description or err.name, err.code or 500)

    @app.errorhandler(Exception)
    def _unexpected(err: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return _error("Internal server error", 500)

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.post("/record/new")
    def register_record():
        return _dispatch_body(Role.USER, EventType.REGISTER_RECORD)

    @app.post("/task/new")
    def create_task():
        return _dispatch_body(Role.USER, EventType.ADD_TASK)

    @app.post("/task/update")
    def update_task():
        return _dispatch_body(Role.USER, EventType.UPDATE_TASK)

    @app.post("/task/reset")
    def reset_task():
        return _dispatch_body(Role.USER, EventType.RESET_RECORD)

    @app.post("/record")
    def get_user_record():
        return _dispatch_body(Role.USER, EventType.GET_SINGLE_RECORD)

    @app.get("/record/all")
    def get_all_user_records():
        envelope = build_envelope(Role.USER, EventType.GET_ALL_RECORD, {})
        return _respond(_dispatcher().dispatch(envelope, Role.USER))

    @app.post("/rpc/user")
    def user_rpc():
        return _dispatch_body(Role.USER)

    @app.post("/rpc/sudo")
    def sudo_user_rpc():
        return _dispatch_body(Role.SUDO)

    logger.info("App ready (store=%s)", type(store).__name__)
    return app
