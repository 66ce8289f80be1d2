from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, field_validator


class SnapshotClock(BaseModel, frozen=True):
    """The instant a rebuild treats as "now" (snapshot and backfill timestamps)."""

    now: datetime

    @field_validator("now")
    @classmethod
    def now_must_be_timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("SnapshotClock value must be timezone-aware")
        return value

    @classmethod
    def utcnow(cls) -> SnapshotClock:
        return cls(now=datetime.now(timezone.utc))
