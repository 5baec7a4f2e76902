# solar_roi_engine/hours.py

from __future__ import annotations
from datetime import date
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Union


HOURS_PER_DAY = 24

DateLike = Union[str, date]


class Season(str, Enum):
    SUMMER = "Summer"
    AUTUMN = "Autumn"
    WINTER = "Winter"
    SPRING = "Spring"
    MANUAL = "Manual"


# Southern hemisphere seasons
SEASON_MONTHS = {
    Season.SUMMER: (12, 1, 2),
    Season.AUTUMN: (3, 4, 5),
    Season.WINTER: (6, 7, 8),
    Season.SPRING: (9, 10, 11),
}


# ============================================================
# Dates & seasons
# ============================================================

def month_of(day: DateLike) -> int:
    """Month number (1-12) of an ISO 'YYYY-MM-DD' string or a date."""
    if isinstance(day, date):
        return day.month
    return int(str(day).split("-")[1])


def get_season(day: DateLike) -> Season:
    month = month_of(day)
    for season, months in SEASON_MONTHS.items():
        if month in months:
            return season
    raise ValueError(f"Invalid month in date: {day!r}")


def parse_season(value: Union[str, Season, None]) -> Season:
    """
    Accepts 'Summer', 'summer' and the quarter keys 'Q1_Summer' etc.
    Anything unknown falls back to the manual (generic) season.
    """
    if isinstance(value, Season):
        return value
    if not value:
        return Season.MANUAL
    name = str(value).split("_")[-1].strip().lower()
    for season in Season:
        if season.value.lower() == name:
            return season
    return Season.MANUAL


# ============================================================
# Escalation
# ============================================================

def escalate(value: float, rate: float, year: int | float) -> float:
    """Compound growth: value * (1 + rate)^(year - 1)."""
    return value * (1.0 + rate) ** (year - 1)


# ============================================================
# Hour ranges ("7am-10am, 4pm-10pm")
# ============================================================

def _parse_time(text: str) -> Optional[int]:
    text = text.lower().strip()
    digits = ""
    for ch in text:
        if ch.isdigit():
            digits += ch
        else:
            break
    if not digits:
        return None

    hour = int(digits)
    if "am" in text:
        if hour == 12:
            hour = 0
    elif "pm" in text:
        if hour != 12:
            hour += 12

    if 0 <= hour <= 24:
        return hour
    return None


def parse_ranges_to_hours(ranges: Optional[str]) -> List[int]:
    """
    Parses a comma separated list of hour ranges into sorted, unique hours.

    "7am-10am" covers 7, 8 and 9 (end exclusive). When the end is not after
    the start the range wraps past midnight: "10pm-7am" is 22..23 and 0..6,
    and a range that ends where it starts ("12am-12am") is the whole day.
    A single value ("3pm") is one hour. Parts that cannot be parsed are
    skipped.
    """
    if not ranges or not isinstance(ranges, str):
        return []

    hours = set()
    for part in ranges.split(","):
        pieces = [p.strip() for p in part.strip().split("-")]
        start = _parse_time(pieces[0])
        if start is None:
            continue

        if len(pieces) == 1:
            hours.add(start % HOURS_PER_DAY)
            continue

        end = _parse_time(pieces[1])
        if end is None:
            continue

        if start % HOURS_PER_DAY == end % HOURS_PER_DAY:
            hours.update(range(HOURS_PER_DAY))
        else:
            hours.update(hours_in_window(start, end))

    return sorted(hours)


def hours_in_window(start: int, end: int) -> FrozenSet[int]:
    """
    Hours in [start, end), wrapping past midnight when end < start.
    start == end is an empty window.
    """
    start = int(start)
    end = int(end)
    if start == end:
        return frozenset()
    if start < end:
        return frozenset(h % HOURS_PER_DAY for h in range(start, end))
    return frozenset(list(range(start, HOURS_PER_DAY)) + list(range(0, end)))


def _format_time(hour: int) -> str:
    if hour in (0, 24):
        return "12am"
    if hour == 12:
        return "12pm"
    if hour < 12:
        return f"{hour}am"
    return f"{hour - 12}pm"


def format_hours_to_ranges(hours: Iterable[int]) -> str:
    """[7, 8, 9, 15, 16] -> '7am-10am, 3pm-5pm'."""
    ordered = sorted(set(hours))
    if not ordered:
        return "N/A"

    ranges = []
    start = ordered[0]
    for i in range(1, len(ordered) + 1):
        if i == len(ordered) or ordered[i] != ordered[i - 1] + 1:
            ranges.append(f"{_format_time(start)}-{_format_time(ordered[i - 1] + 1)}")
            if i < len(ordered):
                start = ordered[i]

    return ", ".join(ranges)
