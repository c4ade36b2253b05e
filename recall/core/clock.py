"""Timestamp helpers shared by the scheduler, store and streak ledger."""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_aware(ts: datetime | None) -> datetime:
    """
    Normalize a timestamp for comparison.

    Naive timestamps are taken to be UTC so that cards written by older
    callers still sort against timezone-aware ones.
    """
    if ts is None:
        return utcnow()
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts
