from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from pathlib import Path
import time
from typing import Any, Callable, Dict, Optional, Protocol

from prayerline.prayer_times import CalculationConfig, Location, PrayerInstantSet


# Bump whenever the solar/prayer formulas or the record shape change.
CACHE_VERSION = 3
CACHE_TTL_MS = 60 * 60 * 1000


class ByteStore(Protocol):
    def read_bytes(self) -> bytes:
        ...

    def write_bytes(self, data: bytes) -> None:
        ...

    def delete(self) -> None:
        ...


class FileByteStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def write_bytes(self, data: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        # Write to a temp file and rename so readers never see half a record.
        tmp_path.write_bytes(data)
        tmp_path.replace(self.path)

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)


@dataclass(frozen=True)
class CacheEntry:
    version: int
    timestamp: int  # epoch milliseconds
    location: Location
    prayer_times: PrayerInstantSet
    calculation: CalculationConfig

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "timestamp": self.timestamp,
            "location": self.location.to_dict(),
            "prayerTimes": self.prayer_times.to_dict(),
            "calculation": self.calculation.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "CacheEntry":
        version = payload["version"]
        timestamp = payload["timestamp"]
        if isinstance(version, bool) or not isinstance(version, int):
            raise TypeError("Cache 'version' must be an integer")
        if isinstance(timestamp, bool) or not isinstance(timestamp, int):
            raise TypeError("Cache 'timestamp' must be an integer")
        return cls(
            version=version,
            timestamp=timestamp,
            location=Location.from_dict(payload["location"]),
            prayer_times=PrayerInstantSet.from_dict(payload["prayerTimes"]),
            calculation=CalculationConfig.from_dict(payload["calculation"]),
        )


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class CacheStore:
    """Single-record cache of the last location and its prayer times.

    Every kind of failure on read is reported as a miss; writes are
    best-effort and never raise.
    """

    def __init__(
        self, storage: ByteStore, *, now_ms: Callable[[], int] = _epoch_ms
    ) -> None:
        self._storage = storage
        self._now_ms = now_ms
        self._logger = logging.getLogger(self.__class__.__name__)

    def get(self, expected_version: int, max_age_ms: int) -> Optional[CacheEntry]:
        try:
            raw = self._storage.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            self._logger.warning("Cache read failed: %s", exc)
            return None

        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            # Corrupt cache should not crash the status line; recompute instead.
            self._logger.warning("Cache payload is not valid JSON: %s", exc)
            return None
        if not isinstance(data, dict):
            self._logger.warning("Cache payload is not a JSON object")
            return None

        if data.get("version") != expected_version:
            self._logger.info(
                "Cache version %s does not match %s", data.get("version"), expected_version
            )
            return None

        try:
            entry = CacheEntry.from_dict(data)
        except (KeyError, TypeError, AttributeError) as exc:
            self._logger.warning("Cache payload is malformed: %s", exc)
            return None

        age_ms = self._now_ms() - entry.timestamp
        if age_ms >= max_age_ms:
            self._logger.info("Cache expired (age=%sms)", age_ms)
            return None
        return entry

    def put(self, entry: CacheEntry) -> None:
        data = json.dumps(entry.to_dict(), indent=2, sort_keys=True)
        try:
            self._storage.write_bytes(data.encode("utf-8"))
        except OSError as exc:
            # Only performance depends on the cache, so a failed write is not fatal.
            self._logger.warning("Cache write failed: %s", exc)

    def clear(self) -> None:
        try:
            self._storage.delete()
        except OSError as exc:
            self._logger.warning("Cache clear failed: %s", exc)
