"""Snapshot identifiers and wall-clock strings in the fixed UTC+8 offset."""

from __future__ import annotations

import re
from datetime import UTC, datetime

from .const import SNAPSHOT_TZ

TIMESTAMP_RE = re.compile(r"^\d{17}$")


def generate_timestamp(now: datetime | None = None) -> str:
    """Return ``yyyyMMddHHmmssSSS`` for *now* (default: current time) in UTC+8.

    The string is both the snapshot id and its sort key: fixed width and
    zero padded, so lexicographic order is chronological order.
    """
    moment = (now or datetime.now(UTC)).astimezone(SNAPSHOT_TZ)
    return moment.strftime("%Y%m%d%H%M%S") + f"{moment.microsecond // 1000:03d}"


def to_utc8_iso(now: datetime | None = None) -> str:
    """Return an ISO-8601 string with millisecond precision and ``+08:00`` offset."""
    moment = (now or datetime.now(UTC)).astimezone(SNAPSHOT_TZ)
    return moment.isoformat(timespec="milliseconds")


def is_valid_timestamp(value: str) -> bool:
    return bool(TIMESTAMP_RE.match(value))
