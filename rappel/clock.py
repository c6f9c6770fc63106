from __future__ import annotations
import logging
from datetime import datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def local_tz() -> Optional[tzinfo]:
    """Zone used when none is configured. None means the system calendar."""
    return None


def zone(name: Optional[str]) -> Optional[tzinfo]:
    """IANA zone by name, None for the system calendar (or an unknown name)."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using system local time", name)
        return None


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def to_local(ms: int, tz: Optional[tzinfo] = None) -> datetime:
    tz = tz or local_tz()
    if tz is None:
        # offset of that instant under the system rules
        return datetime.fromtimestamp(ms / 1000).astimezone()
    return datetime.fromtimestamp(ms / 1000, tz)


def localize(naive: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Attach a zone to a wall-clock time, using the rules in force on that date."""
    tz = tz or local_tz()
    if tz is None:
        return naive.astimezone()
    return naive.replace(tzinfo=tz)


def to_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        raise ValueError("dt must be timezone-aware")
    return int(round(dt.timestamp() * 1000))


class SystemClock:
    def now(self) -> int:
        return now_ms()
