from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from prayerline.location import DEFAULT_GEOCODE_URL, DEFAULT_IP_URL, DEFAULT_USER_AGENT
from prayerline.prayer_times import CalculationConfig, Location


class ConfigError(ValueError):
    """Raised when configuration loading or validation fails."""


DEFAULT_CONFIG_DIR = Path.home() / ".claude" / "prayerline"
LOCATION_OVERRIDE_FILE = "location.yml"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULTS: Dict[str, Any] = {
    "location": {},
    "calculation": {
        "fajr_angle": 15.0,
        "isha_angle": 15.0,
        "asr_shadow_factor": 1.0,
    },
    "lookup": {
        "ip_url": DEFAULT_IP_URL,
        "ip_timeout_seconds": 4,
        "geocode_url": DEFAULT_GEOCODE_URL,
        "geocode_timeout_seconds": 8,
        "user_agent": DEFAULT_USER_AGENT,
    },
    "statusline": {
        "wrapped_timeout_seconds": 5,
        "stdin_timeout_seconds": 3,
        "color": True,
    },
    "cache": {
        "file_path": None,
    },
    "logging": {
        "file_path": None,
        "level": "WARNING",
    },
}


@dataclass(frozen=True)
class LookupConfig:
    ip_url: str
    ip_timeout_seconds: float
    geocode_url: str
    geocode_timeout_seconds: float
    user_agent: str


@dataclass(frozen=True)
class StatusLineConfig:
    wrapped_timeout_seconds: float
    stdin_timeout_seconds: float
    color: bool


@dataclass(frozen=True)
class CacheConfig:
    file_path: Path


@dataclass(frozen=True)
class LoggingConfig:
    file_path: Optional[Path]
    level: str


@dataclass(frozen=True)
class AppConfig:
    config_dir: Path
    location: Optional[Location]
    calculation: CalculationConfig
    lookup: LookupConfig
    statusline: StatusLineConfig
    cache: CacheConfig
    logging: LoggingConfig


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = dict(base)
    for key, value in override.items():
        if (
            key in merged
            and isinstance(merged[key], dict)
            and isinstance(value, dict)
        ):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Failed to read config file: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in config file: {path}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected mapping at root of config file: {path}")
    return data


def resolve_config_dir(config_dir: Optional[Path] = None) -> Path:
    if config_dir is not None:
        return Path(config_dir)
    env_dir = os.getenv("PRAYERLINE_CONFIG_DIR")
    if env_dir:
        return Path(env_dir).expanduser()
    return DEFAULT_CONFIG_DIR


def save_location(config_dir: Path, location: Location) -> Path:
    """Persist a location as a config.d override so config.yml stays untouched."""
    path = Path(config_dir) / "config.d" / LOCATION_OVERRIDE_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "location": {
            "latitude": location.latitude,
            "longitude": location.longitude,
            "city": location.city,
        }
    }
    path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
    return path


class ConfigLoader:
    def __init__(self, config_dir: Path | None = None) -> None:
        self._config_dir = config_dir
        self._logger = logging.getLogger(self.__class__.__name__)

    def load(self) -> AppConfig:
        root_dir = resolve_config_dir(self._config_dir)
        merged: Dict[str, Any] = dict(DEFAULTS)

        config_path = root_dir / "config.yml"
        if config_path.exists():
            merged = _deep_merge(merged, _load_yaml(config_path))
        else:
            # An unconfigured status line still works from IP geolocation.
            self._logger.info("No config file at %s; using defaults", config_path)

        config_d = root_dir / "config.d"
        if config_d.exists():
            for path in sorted(config_d.glob("*.yml")):
                merged = _deep_merge(merged, _load_yaml(path))

        config = self._build_config(root_dir, merged)
        self._validate(config)
        return config

    def _build_config(self, root_dir: Path, data: Dict[str, Any]) -> AppConfig:
        try:
            location_data = data["location"] or {}
            calculation_data = data["calculation"]
            lookup_data = data["lookup"]
            statusline_data = data["statusline"]
            cache_data = data["cache"]
            logging_data = data["logging"]
        except KeyError as exc:
            raise ConfigError(f"Missing config section: {exc.args[0]}") from exc

        try:
            location = self._build_location(location_data)
            calculation = CalculationConfig(
                fajr_angle=float(calculation_data["fajr_angle"]),
                isha_angle=float(calculation_data["isha_angle"]),
                asr_shadow_factor=float(calculation_data["asr_shadow_factor"]),
            )
            lookup = LookupConfig(
                ip_url=str(lookup_data["ip_url"]),
                ip_timeout_seconds=float(lookup_data["ip_timeout_seconds"]),
                geocode_url=str(lookup_data["geocode_url"]),
                geocode_timeout_seconds=float(lookup_data["geocode_timeout_seconds"]),
                user_agent=str(lookup_data["user_agent"]),
            )
            statusline = StatusLineConfig(
                wrapped_timeout_seconds=float(
                    statusline_data["wrapped_timeout_seconds"]
                ),
                stdin_timeout_seconds=float(statusline_data["stdin_timeout_seconds"]),
                color=bool(statusline_data["color"]),
            )
            cache_path = cache_data.get("file_path")
            cache = CacheConfig(
                file_path=(
                    Path(cache_path).expanduser()
                    if cache_path
                    else root_dir / "cache.json"
                ),
            )
            log_path = logging_data.get("file_path")
            logging_config = LoggingConfig(
                file_path=Path(log_path).expanduser() if log_path else None,
                level=str(logging_data["level"]).upper(),
            )
        except ConfigError:
            raise
        except KeyError as exc:
            raise ConfigError(f"Missing config key: {exc.args[0]}") from exc
        except (TypeError, ValueError, AttributeError) as exc:
            raise ConfigError(f"Invalid config value: {exc}") from exc

        return AppConfig(
            config_dir=root_dir,
            location=location,
            calculation=calculation,
            lookup=lookup,
            statusline=statusline,
            cache=cache,
            logging=logging_config,
        )

    def _build_location(self, data: Dict[str, Any]) -> Optional[Location]:
        latitude = data.get("latitude")
        longitude = data.get("longitude")
        if latitude is None and longitude is None:
            return None
        if latitude is None or longitude is None:
            raise ConfigError("Location needs both latitude and longitude")
        city = data.get("city")
        return Location(
            latitude=float(latitude),
            longitude=float(longitude),
            city=str(city) if city else None,
        )

    def _validate(self, config: AppConfig) -> None:
        self._validate_location(config.location)
        self._validate_calculation(config.calculation)
        self._validate_timeouts(config)
        if config.logging.level not in _LOG_LEVELS:
            raise ConfigError(f"Unknown log level: {config.logging.level}")

    def _validate_location(self, location: Optional[Location]) -> None:
        if location is None:
            return
        if not -90 <= location.latitude <= 90:
            raise ConfigError(f"Latitude out of range: {location.latitude}")
        if not -180 <= location.longitude <= 180:
            raise ConfigError(f"Longitude out of range: {location.longitude}")

    def _validate_calculation(self, calculation: CalculationConfig) -> None:
        for name in ("fajr_angle", "isha_angle"):
            value = getattr(calculation, name)
            if not 0 < value < 90:
                raise ConfigError(f"Angle out of range for {name}: {value}")
        if calculation.asr_shadow_factor <= 0:
            raise ConfigError(
                f"asr_shadow_factor must be positive: {calculation.asr_shadow_factor}"
            )

    def _validate_timeouts(self, config: AppConfig) -> None:
        timeouts = {
            "lookup.ip_timeout_seconds": config.lookup.ip_timeout_seconds,
            "lookup.geocode_timeout_seconds": config.lookup.geocode_timeout_seconds,
            "statusline.wrapped_timeout_seconds": config.statusline.wrapped_timeout_seconds,
            "statusline.stdin_timeout_seconds": config.statusline.stdin_timeout_seconds,
        }
        for name, value in timeouts.items():
            if value <= 0:
                raise ConfigError(f"Timeout must be positive for {name}: {value}")
