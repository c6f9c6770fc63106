from __future__ import annotations
import logging
from datetime import datetime, time, timedelta, tzinfo
from typing import Optional

from .clock import localize, to_local, to_ms
from .models import (
    RefKind, RelativeDays, RelativeHours, RelativeMinutes, SpecificDay, TimeReference,
)
from .parser import WEEKDAY_NAMES

logger = logging.getLogger(__name__)

DEFAULT_HOUR = 8

# keyword -> days from today
RELATIVE_DAY_OFFSETS = {
    "aujourd'hui": 0,
    "aujourd’hui": 0,
    "auj": 0,
    "demain": 1,
    "dem": 1,
    "après-demain": 2,
    "apres-demain": 2,
}


def _sunday_index(dt: datetime) -> int:
    # 0=Sunday ... 6=Saturday
    return (dt.weekday() + 1) % 7


def days_until(keyword: str, now_local: datetime) -> Optional[int]:
    """
    Days from `now_local` to the date named by `keyword`.

    A weekday name always points to the future: naming today's weekday
    means the same day next week.
    """
    key = keyword.lower()
    if key in RELATIVE_DAY_OFFSETS:
        return RELATIVE_DAY_OFFSETS[key]
    if key in WEEKDAY_NAMES:
        delta = (WEEKDAY_NAMES.index(key) - _sunday_index(now_local) + 7) % 7
        return delta or 7
    return None


# Errors raised by datetime for instants it cannot represent.
OUT_OF_RANGE = (OverflowError, ValueError, OSError)


def _add_days(ms: int, days: int, tz: Optional[tzinfo]) -> int:
    # Wall-clock arithmetic so the time of day survives DST changes.
    wall = to_local(ms, tz).replace(tzinfo=None) + timedelta(days=days)
    return to_ms(localize(wall, tz))


def _representable(ms: int, tz: Optional[tzinfo]) -> bool:
    try:
        to_local(ms, tz)
    except OUT_OF_RANGE:
        return False
    return True


def _resolve(ref: TimeReference, now: int, default_hour: int, tz: Optional[tzinfo]) -> Optional[int]:
    if isinstance(ref, RelativeMinutes):
        return now + ref.minutes * 60_000 + (ref.seconds or 0) * 1000

    if isinstance(ref, RelativeHours):
        return now + ref.hours * 3_600_000 + (ref.minutes or 0) * 60_000

    if isinstance(ref, RelativeDays):
        return _add_days(now, ref.days, tz)

    if isinstance(ref, SpecificDay):
        now_local = to_local(now, tz)
        delta = days_until(ref.keyword, now_local)
        if delta is None:
            logger.warning("Unrecognized day keyword %r", ref.keyword)
            return None
        wall = datetime.combine(
            now_local.date() + timedelta(days=delta),
            time(ref.hours if ref.hours is not None else default_hour, ref.minutes or 0),
        )
        return to_ms(localize(wall, tz))

    logger.warning("Unsupported time reference %r", ref)
    return None


def resolve(
    ref: Optional[TimeReference],
    now: int,
    default_hour: int = DEFAULT_HOUR,
    tz: Optional[tzinfo] = None,
) -> Optional[int]:
    """
    Absolute due time (epoch ms) for `ref` as seen from `now` (epoch ms).

    Returns None when there is no reference, the day keyword is unknown,
    or the result falls outside the dates the calendar can show.
    """
    if ref is None:
        return None
    try:
        ms = _resolve(ref, now, default_hour, tz)
    except OUT_OF_RANGE:
        ms = None
        logger.warning("Time reference %r is out of range", ref)
    else:
        if ms is not None and not _representable(ms, tz):
            logger.warning("Time reference %r is out of range", ref)
            ms = None
    return ms


# Unit used to read a bare "+N" / "-N" typed into an edited task.
ADJUSTMENT_UNITS = {
    RefKind.RELATIVE_MINUTES: "minutes",
    RefKind.RELATIVE_HOURS: "hours",
    RefKind.RELATIVE_DAYS: "days",
}


def adjustment_unit(ref: Optional[TimeReference]) -> Optional[str]:
    if ref is None:
        return None
    return ADJUSTMENT_UNITS.get(ref.kind)


def shift(ms: int, amount: int, unit: str, tz: Optional[tzinfo] = None) -> Optional[int]:
    """Move `ms` by `amount` units. None when the result is out of range."""
    if unit not in ("minutes", "hours", "days"):
        raise ValueError(f"unknown unit: {unit}")
    try:
        if unit == "minutes":
            out = ms + amount * 60_000
        elif unit == "hours":
            out = ms + amount * 3_600_000
        else:
            out = _add_days(ms, amount, tz)
    except OUT_OF_RANGE:
        return None
    return out if _representable(out, tz) else None
