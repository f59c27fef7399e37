# core/scheduler.py
from __future__ import annotations
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import IntEnum
from typing import Dict, Iterable, List, Optional, Set

from .logs import get_logger

log = get_logger(__name__)

# ------------------------------------------------------------
# Weekdays
# ------------------------------------------------------------

class Weekday(IntEnum):
    """Same ordinals as date.weekday()."""
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


WEEKDAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

# Every accepted token, full name and 3-letter form. Nothing else matches.
WEEKDAY_TOKENS: Dict[str, Weekday] = {}
for _wd in Weekday:
    WEEKDAY_TOKENS[_wd.name.lower()] = _wd
    WEEKDAY_TOKENS[_wd.name.lower()[:3]] = _wd


def weekday_name(d: date) -> str:
    """Return short weekday name (Mon..Sun) for a date object."""
    return WEEKDAY_NAMES[d.weekday()]


def parse_day_filter(text: Optional[str]) -> Optional[Set[Weekday]]:
    """
    'Monday, wed' -> {MONDAY, WEDNESDAY}.
    Unknown tokens are ignored. Returns None (= every day) when nothing is recognized.
    """
    if not text:
        return None
    found: Set[Weekday] = set()
    for raw in str(text).split(","):
        tok = raw.strip().lower()
        if not tok:
            continue
        wd = WEEKDAY_TOKENS.get(tok)
        if wd is None:
            log.debug("ignoring unknown weekday token %r", raw)
            continue
        found.add(wd)
    return found or None


# ------------------------------------------------------------
# Plain Y-M-D parsing (no time, no timezone)
# ------------------------------------------------------------

_YMD = re.compile(r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})\s*$")

def parse_ymd(value) -> Optional[date]:
    """date, datetime or 'YYYY-MM-DD' -> date; anything else -> None."""
    if isinstance(value, datetime):
        # pandas NaT is a datetime that compares unequal to itself
        return None if value != value else value.date()
    if isinstance(value, date):
        return value
    if value is None:
        return None
    m = _YMD.match(str(value))
    if not m:
        return None
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None


def to_ymd(d: date) -> str:
    return d.isoformat()


# ------------------------------------------------------------
# Pattern generator
# ------------------------------------------------------------

def generate_simple_pattern(
    start: date,
    end: date,
    weekday_indices: Iterable[int] | None,
) -> List[date]:
    """
    Generate a list of dates from start..end (inclusive) that fall on the given
    weekday indices (0=Mon..6=Sun).
    weekday_indices=None keeps every day.
    """
    if start > end:
        return []

    wd_set = None if weekday_indices is None else {int(i) for i in weekday_indices}
    days = []
    d = start
    one = timedelta(days=1)
    while d <= end:
        if wd_set is None or d.weekday() in wd_set:
            days.append(d)
        d += one
    return days


# ------------------------------------------------------------
# Session window
# ------------------------------------------------------------

def expand_window(start, end, day_filter: Optional[str] = None) -> List[str]:
    """
    All session dates in [start, end] as 'YYYY-MM-DD', ascending.
    Restricted to the weekdays named in day_filter when it names any.
    Unparseable bounds or start > end give [].
    """
    return CalendarWindow.from_session(start, end, day_filter).dates()


@dataclass(frozen=True)
class CalendarWindow:
    start: Optional[date]
    end: Optional[date]
    allowed_weekdays: Optional[frozenset] = None

    @classmethod
    def from_session(cls, start, end, day_filter: Optional[str] = None) -> "CalendarWindow":
        allowed = parse_day_filter(day_filter)
        return cls(parse_ymd(start), parse_ymd(end),
                   frozenset(allowed) if allowed else None)

    def dates(self) -> List[str]:
        if self.start is None or self.end is None:
            return []
        return [to_ymd(d) for d in generate_simple_pattern(self.start, self.end, self.allowed_weekdays)]

    def __contains__(self, value) -> bool:
        d = parse_ymd(value)
        if d is None or self.start is None or self.end is None:
            return False
        if not (self.start <= d <= self.end):
            return False
        return self.allowed_weekdays is None or d.weekday() in self.allowed_weekdays
