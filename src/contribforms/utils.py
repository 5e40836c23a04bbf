from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any, Iterable

import orjson
import ulid

from contribforms.config import FIELD_ID_PATTERN


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return now_utc()
    return now_utc()


def dumps_json(value: Any) -> str:
    return orjson.dumps(value).decode("utf-8")


def loads_json(value: str | None) -> Any:
    if not value:
        return None
    return orjson.loads(value)


def new_ulid() -> str:
    value = ulid.new()
    return getattr(value, "str", str(value))


def new_field_id(existing: Iterable[str]) -> str:
    taken = set(existing)
    while True:
        candidate = f"field_{secrets.token_hex(6)}"
        if candidate not in taken and FIELD_ID_PATTERN.match(candidate):
            return candidate
