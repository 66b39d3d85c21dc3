# src/imon/records/keys.py

"""
Storage key codec.

A record key looks like "user:alice:0007": role, user name and the numeric id
zero-padded to at least four digits. The key doubles as the bearer credential
handed back to clients, so derive_key and parse_key must round-trip exactly.
Legacy two-segment keys ("alice:0007") parse with role=None.
"""

from __future__ import annotations

from typing import NamedTuple

from ..errors import MalformedKey
from .models import Role

OPERATING_INFO_KEY = "operating_info"

KEY_SEPARATOR = ":"
ID_MIN_WIDTH = 4


class ParsedKey(NamedTuple):
    role: Role | None
    name: str
    id: int


def name_problem(name: str) -> str | None:
    """Why `name` cannot be embedded in a key, or None if it can."""
    if not name or not name.strip():
        return "empty name"
    if KEY_SEPARATOR in name:
        return f"name must not contain {KEY_SEPARATOR!r}"
    if name != name.strip():
        return "name must not start or end with whitespace"
    if not name.isprintable():
        return "name must not contain control characters"
    return None


def validate_name(name: str) -> str:
    problem = name_problem(name)
    if problem is not None:
        raise MalformedKey(name, problem)
    return name


def derive_key(role: Role | str, name: str, record_id: int) -> str:
    role = Role(role)
    validate_name(name)
    if record_id < 0:
        raise MalformedKey(f"{role}:{name}:{record_id}", "negative id")
    return f"{role.value}{KEY_SEPARATOR}{name}{KEY_SEPARATOR}{record_id:0{ID_MIN_WIDTH}d}"


def parse_key(key: str) -> ParsedKey:
    parts = key.split(KEY_SEPARATOR)

    role: Role | None
    if len(parts) == 3:
        raw_role, name, raw_id = parts
        try:
            role = Role(raw_role)
        except ValueError:
            raise MalformedKey(key, f"unknown role {raw_role!r}") from None
    elif len(parts) == 2:
        role = None
        name, raw_id = parts
    else:
        raise MalformedKey(key, "unexpected number of segments")

    if not name:
        raise MalformedKey(key, "empty name")

    # int() would also accept "+7", " 7" and "1_0"; keys only ever carry plain digits.
    if not (raw_id.isascii() and raw_id.isdigit()):
        raise MalformedKey(key, f"id segment {raw_id!r} is not an integer")

    return ParsedKey(role=role, name=name, id=int(raw_id))
