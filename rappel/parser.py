from __future__ import annotations
import re
from typing import List, Optional

from .models import (
    ParsedTime, RelativeDays, RelativeHours, RelativeMinutes, SpecificDay, TimeReference,
)

_FLAGS = re.IGNORECASE | re.UNICODE

# "dans" / "après" (accent optional)
_LEAD = r"\b(?:dans|apr[eè]s)\s+"


def _opt_int(raw: Optional[str]) -> Optional[int]:
    return int(raw) if raw else None


class PatternRule:
    """
    One entry of the ordered rule list.

    Subclasses provide the compiled pattern and build the reference from
    the match groups. `attempt` returns None when the text does not match.
    """

    pattern: "re.Pattern[str]"

    def attempt(self, text: str) -> Optional[ParsedTime]:
        m = self.pattern.search(text)
        if not m:
            return None
        ref = self.build(m)
        if ref is None:
            return None
        return ParsedTime(reference=ref, match=m.group(0).strip())

    def build(self, m: "re.Match[str]") -> Optional[TimeReference]:
        raise NotImplementedError


class RelativeMinutesRule(PatternRule):
    # "dans 10 minutes", "après 5 min 30", "dans 3m"
    pattern = re.compile(
        _LEAD
        + r"(?P<minutes>[1-9]\d*)\s*(?:m(?:in(?:s)?)?|minutes?)"
        r"(?:\s*(?P<seconds>[1-5]?\d))?(?!\w)",
        _FLAGS,
    )

    def build(self, m: "re.Match[str]") -> TimeReference:
        return RelativeMinutes(minutes=int(m.group("minutes")), seconds=_opt_int(m.group("seconds")))


class RelativeHoursRule(PatternRule):
    # "dans 2 heures", "après 1h30", "dans 3 hrs"
    pattern = re.compile(
        _LEAD
        + r"(?P<hours>[1-9]\d*)\s*(?:h(?:r?s?)?|heures?)"
        r"(?:\s*(?P<minutes>[1-5]?\d))?(?!\w)",
        _FLAGS,
    )

    def build(self, m: "re.Match[str]") -> TimeReference:
        return RelativeHours(hours=int(m.group("hours")), minutes=_opt_int(m.group("minutes")))


class RelativeDaysRule(PatternRule):
    pattern = re.compile(_LEAD + r"(?P<days>[1-9]\d*)\s+jours?(?!\w)", _FLAGS)

    def build(self, m: "re.Match[str]") -> TimeReference:
        return RelativeDays(days=int(m.group("days")))


WEEKDAY_NAMES = ["dimanche", "lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi"]

# Longer spellings first so "demain" is not read as "dem".
DAY_KEYWORDS = [
    "aujourd'hui", "aujourd’hui", "auj",
    "après-demain", "apres-demain",
    "demain", "dem",
] + WEEKDAY_NAMES


class SpecificDayRule(PatternRule):
    # "vendredi", "demain à 14h", "auj à 9h 30"
    pattern = re.compile(
        r"(?<!\w)(?P<keyword>" + "|".join(re.escape(k) for k in DAY_KEYWORDS) + r")(?!\w)"
        r"(?:\s+[àa]\s+(?P<hours>[01]?\d|2[0-3])h(?:\s*(?P<minutes>[0-5]\d))?)?",
        _FLAGS,
    )

    def build(self, m: "re.Match[str]") -> TimeReference:
        return SpecificDay(
            keyword=m.group("keyword").lower(),
            hours=_opt_int(m.group("hours")),
            minutes=_opt_int(m.group("minutes")),
        )


# Order is precedence: the first rule that matches wins.
RULES: List[PatternRule] = [
    RelativeMinutesRule(),
    RelativeHoursRule(),
    RelativeDaysRule(),
    SpecificDayRule(),
]


def parse(text: str, rules: Optional[List[PatternRule]] = None) -> Optional[ParsedTime]:
    """Return the first time expression found in `text`, or None."""
    if not text:
        return None
    lowered = text.lower()
    for rule in rules if rules is not None else RULES:
        found = rule.attempt(lowered)
        if found is not None:
            return found
    return None
