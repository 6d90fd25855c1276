"""Timestamps stored alongside registry and blob store rows."""

from __future__ import annotations

from datetime import UTC, datetime


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(UTC)


def now_iso() -> str:
    """Current UTC time as ISO 8601, the format of every ``*_at`` column."""
    return now_utc().isoformat()
