from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
import logging
from typing import Optional, Protocol

from prayerline.cache_store import CACHE_TTL_MS, CACHE_VERSION, CacheEntry, CacheStore
from prayerline.location import LocationError
from prayerline.next_event import NextEvent, next_event
from prayerline.prayer_times import (
    CalculationConfig,
    Location,
    calculate_prayer_times,
)


class Clock:
    def now(self) -> datetime:  # pragma: no cover - interface only
        """Current instant as an aware UTC datetime."""
        raise NotImplementedError

    def today(self) -> date:  # pragma: no cover - interface only
        """Calendar date on the local wall clock."""
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return datetime.now().date()


class Locator(Protocol):
    def lookup(self) -> Location:
        ...


@dataclass(frozen=True)
class Countdown:
    event: NextEvent
    location: Location


def utc_hours(moment: datetime) -> float:
    moment = moment.astimezone(timezone.utc)
    return moment.hour + moment.minute / 60 + moment.second / 3600


def epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


class CountdownService:
    """Cache-aware glue between location lookup, calculation and next-event selection."""

    def __init__(
        self,
        *,
        cache_store: CacheStore,
        locator: Locator,
        calculation: CalculationConfig,
        fixed_location: Optional[Location] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._cache = cache_store
        self._locator = locator
        self._calculation = calculation
        self._fixed_location = fixed_location
        self._clock = clock or SystemClock()
        self._logger = logging.getLogger(self.__class__.__name__)

    def prayer_times(self) -> Optional[CacheEntry]:
        entry = self._cache.get(CACHE_VERSION, CACHE_TTL_MS)
        if entry is not None and self._matches_config(entry):
            return entry

        location = self._fixed_location
        if location is None:
            try:
                location = self._locator.lookup()
            except LocationError as exc:
                # Without a location there is nothing to count down to.
                self._logger.warning("Location lookup failed: %s", exc)
                return None

        entry = CacheEntry(
            version=CACHE_VERSION,
            timestamp=epoch_ms(self._clock.now()),
            location=location,
            prayer_times=calculate_prayer_times(
                self._clock.today(), location, self._calculation
            ),
            calculation=self._calculation,
        )
        self._logger.info("Calculated prayer times for %s", location)
        self._cache.put(entry)
        return entry

    def countdown(self) -> Optional[Countdown]:
        entry = self.prayer_times()
        if entry is None:
            return None
        event = next_event(entry.prayer_times, utc_hours(self._clock.now()))
        if event is None:
            self._logger.info("No upcoming prayer can be determined for %s", entry.location)
            return None
        return Countdown(event=event, location=entry.location)

    def _matches_config(self, entry: CacheEntry) -> bool:
        if entry.calculation != self._calculation:
            self._logger.info("Cached calculation settings changed; recalculating")
            return False
        if self._fixed_location is not None and entry.location != self._fixed_location:
            self._logger.info("Configured location changed; recalculating")
            return False
        return True
