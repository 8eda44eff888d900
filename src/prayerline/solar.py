from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import math


J2000 = 2451545.0


@dataclass(frozen=True)
class SolarPosition:
    declination: float  # radians
    equation_of_time: float  # hours


def julian_day(day: date) -> int:
    # Integer day number; the series below is always evaluated at the date itself.
    a = (14 - day.month) // 12
    y = day.year + 4800 - a
    m = day.month + 12 * a - 3
    return (
        day.day
        + (153 * m + 2) // 5
        + 365 * y
        + y // 4
        - y // 100
        + y // 400
        - 32045
    )


def solar_position(day: date) -> SolarPosition:
    """Low-precision solar ephemeris for the given calendar date.

    Returns declination in radians and the equation of time in hours,
    wrapped into [-12, 12).
    """
    d = julian_day(day) - J2000
    g = math.radians(357.529 + 0.98560028 * d)
    q = (280.459 + 0.98564736 * d) % 360
    ecliptic = math.radians(q + 1.915 * math.sin(g) + 0.020 * math.sin(2 * g))
    obliquity = math.radians(23.439 - 0.00000036 * d)

    right_ascension = math.degrees(
        math.atan2(math.cos(obliquity) * math.sin(ecliptic), math.cos(ecliptic))
    ) / 15
    right_ascension %= 24
    declination = math.asin(math.sin(obliquity) * math.sin(ecliptic))

    equation_of_time = q / 15 - right_ascension
    # Mean longitude and RA can sit on opposite sides of 0h near the equinox.
    equation_of_time = (equation_of_time + 12) % 24 - 12
    return SolarPosition(declination=declination, equation_of_time=equation_of_time)
