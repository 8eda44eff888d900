from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Optional

from prayerline.prayer_times import PrayerInstantSet


DISPLAY_NAMES = {
    "fajr": "Fajr",
    "sunrise": "Sunrise",
    "dhuhr": "Dhuhr",
    "asr": "Asr",
    "maghrib": "Maghrib",
    "isha": "Isha",
}

TOMORROW_FAJR = "Fajr (tomorrow)"


@dataclass(frozen=True)
class NextEvent:
    name: str
    minutes_left: int


def next_event(times: PrayerInstantSet, now_utc: float) -> Optional[NextEvent]:
    """Return the first prayer strictly after ``now_utc`` (fractional UTC hours).

    Falls back to tomorrow's Fajr once every solvable prayer has passed, and
    to None when Fajr itself has no solution.
    """
    now = now_utc % 24
    for name, instant in times.items():
        if instant is None:
            continue
        at = instant % 24
        if at > now:
            return NextEvent(DISPLAY_NAMES[name], _round_minutes(at - now))

    if times.fajr is None:
        return None
    at = times.fajr % 24
    return NextEvent(TOMORROW_FAJR, _round_minutes(at + 24 - now))


def format_minutes(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}m"
    hours, rest = divmod(minutes, 60)
    return f"{hours}h {rest}m" if rest else f"{hours}h"


def _round_minutes(hours: float) -> int:
    # Half-up, not Python's banker's rounding.
    return int(math.floor(hours * 60 + 0.5))
