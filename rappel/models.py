from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class RefKind(str, Enum):
    RELATIVE_MINUTES = "relative_minutes"
    RELATIVE_HOURS = "relative_hours"
    RELATIVE_DAYS = "relative_days"
    SPECIFIC_DAY = "specific_day"


@dataclass(frozen=True)
class RelativeMinutes:
    minutes: int
    seconds: Optional[int] = None

    kind = RefKind.RELATIVE_MINUTES


@dataclass(frozen=True)
class RelativeHours:
    hours: int
    minutes: Optional[int] = None

    kind = RefKind.RELATIVE_HOURS


@dataclass(frozen=True)
class RelativeDays:
    days: int

    kind = RefKind.RELATIVE_DAYS


@dataclass(frozen=True)
class SpecificDay:
    # "aujourd'hui", "auj", "demain", "dem", "après-demain" or a weekday name
    keyword: str
    hours: Optional[int] = None
    minutes: Optional[int] = None

    kind = RefKind.SPECIFIC_DAY


TimeReference = Union[RelativeMinutes, RelativeHours, RelativeDays, SpecificDay]


@dataclass(frozen=True)
class ParsedTime:
    reference: TimeReference
    match: str  # substring of the content that matched, for highlighting


@dataclass(frozen=True)
class Task:
    id: str
    content: str
    time: Optional[ParsedTime]
    timestamp: Optional[int]  # epoch ms
    created_at: int           # epoch ms
    completed: bool = False
    notified: bool = False

    @property
    def reference(self) -> Optional[TimeReference]:
        return self.time.reference if self.time else None


class TimeEdit(Enum):
    KEEP = "keep"    # reference unchanged: manual +N/-N adjustment path
    CLEAR = "clear"  # drop the schedule


@dataclass(frozen=True)
class AppSettings:
    default_hour: int = 8
    poll_interval_ms: int = 1000
    notification_title: str = "Rappel"
    timezone: Optional[str] = None  # IANA name, None = system local offset
