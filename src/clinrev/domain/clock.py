"""Epoch-millisecond helpers. Every instant in clinrev is an int of UTC milliseconds."""

import time
from datetime import date, datetime, timezone


def now_ms() -> int:
    return int(time.time() * 1000)


def to_utc_date(epoch_ms: int) -> date:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc).date()


def to_utc_datetime(epoch_ms: int) -> datetime:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
