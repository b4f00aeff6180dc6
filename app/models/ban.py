"""
Ban record model.

Timestamps are integer milliseconds since the epoch. Field aliases are the
names used in the persisted JSON document, so a BanEntry round-trips with an
existing store instance through model_validate / model_dump(by_alias=True).
"""

import math
import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_REASON = "Unknown"


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def _lenient_number(value: Any) -> int | float | None:
    """Numeric value of a stored field, or None when it has none."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return int(value) if value.is_integer() else value
    if isinstance(value, int):
        return value
    return None


class BanEntry(BaseModel):
    identifier: str = Field(alias="ip")
    reason: str | None = DEFAULT_REASON
    banned_at: int | None = Field(default=None, alias="bannedAt")
    ban_duration_seconds: int | float | None = Field(default=None, alias="banDuration")
    ban_expiry: int | None = Field(default=None, alias="banExpiry")

    # Stored documents may hold whatever older writers copied from client
    # input; only `ip` has to be usable for an entry to load.
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    @field_validator("reason", mode="before")
    @classmethod
    def _reason_as_text(cls, value: Any) -> str | None:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (int, float)):
            return str(value)
        return None

    @field_validator("ban_duration_seconds", mode="before")
    @classmethod
    def _duration_or_none(cls, value: Any) -> int | float | None:
        return _lenient_number(value)

    @field_validator("banned_at", "ban_expiry", mode="before")
    @classmethod
    def _timestamp_or_none(cls, value: Any) -> int | None:
        number = _lenient_number(value)
        return None if number is None else int(number)

    def is_active(self, now: int) -> bool:
        """Check if the ban is still in force at `now` (ms)."""
        return self.ban_expiry is not None and self.ban_expiry > now


def is_active(entry: BanEntry, now: int) -> bool:
    return entry.is_active(now)


class BanRequest(BaseModel):
    identifier: str
    reason: str | None = None
    ban_duration_seconds: int | None = None


class VersionedDocument(BaseModel):
    """A ban list paired with the store's version token for it."""

    entries: list[BanEntry] = []
    version_token: str | None = None
    exists: bool = False


class BanStatus(BaseModel):
    identifier: str
    banned: bool
    reason: str | None = None
    ban_expiry: int | None = None
    time_left_seconds: int | None = None


class BanOutcome(BaseModel):
    identifier: str
    banned: bool = True
    created: bool
    ban_expiry: int
    attempts: int = 1
