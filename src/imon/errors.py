# src/imon/errors.py

"""
Domain error taxonomy.

Every ImonError knows how to render itself as the uniform error body
({"status": "error", "message": ..., "field": ...}) and which HTTP status it maps to.
CorruptIndex is intentionally outside that hierarchy: it is an invariant violation
and must not be converted into a regular error response.
"""

from __future__ import annotations

from typing import Any


class ImonError(Exception):
    status_code: int = 400
    default_message: str = "Bad request"

    def __init__(self, message: str | None = None, *, field: str | None = None) -> None:
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"status": "error", "message": self.message}
        if self.field is not None:
            body["field"] = self.field
        return body


class RecordNotFound(ImonError):
    """Unknown key. Rendered as generic invalid credentials so key existence is not confirmed."""

    status_code = 404
    default_message = "Invalid credentials"

    def __init__(self, key: str | None = None) -> None:
        self.key = key
        super().__init__()


class MalformedKey(ImonError):
    status_code = 400
    default_message = "Malformed key"

    def __init__(self, key: str, reason: str = "") -> None:
        self.key = key
        msg = "Malformed key"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg, field="key")


class UnprocessableEntity(ImonError):
    status_code = 422
    default_message = "Unprocessable entity"

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"Unprocessable entity: {field}", field=field)


class RoleMismatch(UnprocessableEntity):
    def __init__(self, message: str | None = None) -> None:
        super().__init__("metadata.of", message or "Operation is not available for this role")


class StoreUnavailable(ImonError):
    """Connection, pool or deadline failure. Retryable by the caller, never by the service."""

    status_code = 500
    default_message = "Store unavailable"


class CorruptIndex(RuntimeError):
    """A key listed in the operating info has no document behind it."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"invalid record found in key list: {key!r}")
