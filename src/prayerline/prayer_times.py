from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import math
from typing import Any, Dict, Iterator, Optional, Tuple

from prayerline.solar import solar_position


# Refraction plus the solar disk radius, used for both sunrise and sunset.
HORIZON_DEPRESSION = 0.833

PRAYER_NAMES: Tuple[str, ...] = ("fajr", "sunrise", "dhuhr", "asr", "maghrib", "isha")


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    city: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "city": self.city,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Location":
        city = payload.get("city")
        if city is not None and not isinstance(city, str):
            raise TypeError("Location 'city' must be a string")
        return cls(
            latitude=_as_float(payload["latitude"], "latitude"),
            longitude=_as_float(payload["longitude"], "longitude"),
            city=city,
        )


@dataclass(frozen=True)
class CalculationConfig:
    fajr_angle: float = 15.0
    isha_angle: float = 15.0
    asr_shadow_factor: float = 1.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "fajr_angle": self.fajr_angle,
            "isha_angle": self.isha_angle,
            "asr_shadow_factor": self.asr_shadow_factor,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "CalculationConfig":
        return cls(
            fajr_angle=_as_float(payload["fajr_angle"], "fajr_angle"),
            isha_angle=_as_float(payload["isha_angle"], "isha_angle"),
            asr_shadow_factor=_as_float(
                payload["asr_shadow_factor"], "asr_shadow_factor"
            ),
        )


@dataclass(frozen=True)
class PrayerInstantSet:
    """Six prayer instants in fractional UTC hours.

    A slot is None when the sun never reaches the required depression on
    that date at that latitude. Values are not reduced into [0, 24); west of
    Greenwich an evening prayer may exceed 24.
    """

    fajr: Optional[float]
    sunrise: Optional[float]
    dhuhr: Optional[float]
    asr: Optional[float]
    maghrib: Optional[float]
    isha: Optional[float]

    def items(self) -> Iterator[Tuple[str, Optional[float]]]:
        for name in PRAYER_NAMES:
            yield name, getattr(self, name)

    def to_dict(self) -> Dict[str, Optional[float]]:
        return dict(self.items())

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "PrayerInstantSet":
        values: Dict[str, Optional[float]] = {}
        for name in PRAYER_NAMES:
            raw = payload[name]
            values[name] = None if raw is None else _as_float(raw, name)
        return cls(**values)


def hour_angle(angle: float, latitude: float, declination: float) -> Optional[float]:
    """Hours between solar noon and the sun sitting ``angle`` degrees below the horizon.

    Negative angles mean above the horizon. Returns None when there is no
    solution for this latitude and declination.
    """
    lat = math.radians(latitude)
    num = -math.sin(math.radians(angle)) - math.sin(lat) * math.sin(declination)
    den = math.cos(lat) * math.cos(declination)
    if abs(den) < 1e-10:
        return None
    ratio = num / den
    if ratio < -1 or ratio > 1:
        return None
    return math.degrees(math.acos(ratio)) / 15


def asr_altitude(shadow_factor: float, latitude: float, declination: float) -> float:
    # Sun altitude (degrees) at which a shadow reaches factor x object length plus the noon shadow.
    return math.degrees(
        math.atan(
            1 / (shadow_factor + math.tan(abs(math.radians(latitude) - declination)))
        )
    )


def calculate_prayer_times(
    day: date, location: Location, calculation: CalculationConfig
) -> PrayerInstantSet:
    position = solar_position(day)
    declination = position.declination
    noon = 12 - position.equation_of_time
    longitude_offset = location.longitude / 15

    def at(angle: float, *, before_noon: bool) -> Optional[float]:
        ha = hour_angle(angle, location.latitude, declination)
        if ha is None:
            return None
        solar_time = noon - ha if before_noon else noon + ha
        return solar_time - longitude_offset

    asr_angle = -asr_altitude(
        calculation.asr_shadow_factor, location.latitude, declination
    )
    return PrayerInstantSet(
        fajr=at(calculation.fajr_angle, before_noon=True),
        sunrise=at(HORIZON_DEPRESSION, before_noon=True),
        dhuhr=noon - longitude_offset,
        asr=at(asr_angle, before_noon=False),
        maghrib=at(HORIZON_DEPRESSION, before_noon=False),
        isha=at(calculation.isha_angle, before_noon=False),
    )


def _as_float(value: Any, field: str) -> float:
    # bool is an int subclass; reject it so corrupt payloads don't pass as 0/1.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"Field '{field}' must be a number")
    return float(value)
