from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
import sys
from typing import Any, Callable, Dict, Iterable, Optional, Protocol

from prayerline.cache_store import CacheStore, FileByteStore
from prayerline.config import ConfigError, ConfigLoader, save_location
from prayerline.location import GeocodeResult, LocationError, NominatimGeocoder
from prayerline.logging_utils import LoggerFactory
from prayerline.prayer_times import Location


MARKER = "prayerline"
PREVIOUS_KEY = "_prayerlinePreviousStatusLine"

Prompt = Callable[[str], str]
Output = Callable[[str], None]


class Geocoder(Protocol):
    def search(self, query: str) -> Optional[GeocodeResult]:
        ...


def default_settings_path() -> Path:
    env_path = os.getenv("PRAYERLINE_SETTINGS_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".claude" / "settings.json"


def default_command() -> str:
    # Forward slashes and quotes keep the command portable across shells.
    executable = Path(sys.executable).as_posix()
    return f'"{executable}" -m {MARKER}'


class StatusLineInstaller:
    """Wires the countdown into the host settings, wrapping any existing status line."""

    def __init__(self, settings_path: Path, command: str) -> None:
        self._settings_path = Path(settings_path)
        self._command = command
        self._logger = logging.getLogger(self.__class__.__name__)

    def install(self) -> bool:
        """Return False when the countdown is already installed."""
        settings = self._read()
        existing = settings.get("statusLine")
        existing_command = existing.get("command") if isinstance(existing, dict) else None

        if existing_command and MARKER in existing_command:
            return False

        if existing:
            settings[PREVIOUS_KEY] = existing
        command = self._command
        if existing_command:
            command = f"{self._command} -- {existing_command}"
        settings["statusLine"] = {"type": "command", "command": command}
        self._write(settings)
        self._logger.info("Installed status line command: %s", command)
        return True

    def uninstall(self) -> bool:
        """Return False when there is nothing to undo."""
        settings = self._read()
        previous = settings.pop(PREVIOUS_KEY, None)
        if previous is not None:
            settings["statusLine"] = previous
        else:
            current = settings.get("statusLine")
            command = current.get("command") if isinstance(current, dict) else None
            if not command or MARKER not in command:
                return False
            del settings["statusLine"]
        self._write(settings)
        return True

    def _read(self) -> Dict[str, Any]:
        try:
            data = json.loads(self._settings_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as exc:
            self._logger.warning("Settings file %s unreadable: %s", self._settings_path, exc)
            return {}
        if not isinstance(data, dict):
            return {}
        return data

    def _write(self, settings: Dict[str, Any]) -> None:
        self._settings_path.parent.mkdir(parents=True, exist_ok=True)
        self._settings_path.write_text(
            json.dumps(settings, indent=2) + "\n", encoding="utf-8"
        )


class LocationSetup:
    def __init__(
        self,
        *,
        geocoder: Geocoder,
        config_dir: Path,
        cache_store: CacheStore,
        prompt: Prompt = input,
        output: Output = print,
    ) -> None:
        self._geocoder = geocoder
        self._config_dir = Path(config_dir)
        self._cache = cache_store
        self._prompt = prompt
        self._output = output
        self._logger = logging.getLogger(self.__class__.__name__)

    def run(self, current: Optional[Location] = None) -> Optional[Location]:
        if current is not None and current.city:
            answer = self._prompt(
                f'\nLocation already set to "{current.city}". Update it? (y/N): '
            )
            if answer.strip().lower() != "y":
                self._output(f"Using existing location: {current.city}")
                return current

        self._output("\nPrayer times need your location to be accurate.")
        query = self._prompt(
            "Enter your city (e.g. Dallas TX, London UK, Karachi Pakistan): "
        ).strip()
        if not query:
            self._output(
                'No location entered. Run "prayerline-setup --location" to configure later.'
            )
            return None

        try:
            result = self._geocoder.search(query)
        except LocationError as exc:
            self._logger.warning("Geocoding failed for %r: %s", query, exc)
            result = None
        if result is None:
            self._output(
                'Could not find that location. Run "prayerline-setup --location" to try again.'
            )
            return None

        confirm = self._prompt(
            f"Found: {result.display_name}\nUse this location? (Y/n): "
        )
        if confirm.strip().lower() == "n":
            self._output(
                'Location not saved. Run "prayerline-setup --location" to try again.'
            )
            return None

        save_location(self._config_dir, result.location)
        # Cached prayer times belong to the old location.
        self._cache.clear()
        self._output(f"Location saved: {result.location.city}")
        return result.location


def main(
    argv: Optional[Iterable[str]] = None,
    *,
    prompt: Prompt = input,
    output: Output = print,
    geocoder: Optional[Geocoder] = None,
) -> int:
    args = _parse_args(argv)
    LoggerFactory.create("")

    try:
        config = ConfigLoader(config_dir=args.config_dir).load()
    except ConfigError as exc:
        output(f"Config error: {exc}")
        return 2

    settings_path = Path(args.settings) if args.settings else default_settings_path()
    installer = StatusLineInstaller(settings_path, default_command())

    if args.uninstall:
        if not installer.uninstall():
            output("Prayer time countdown is not installed.")
            return 0
        output("Prayer time countdown uninstalled.")
        output(f"Your location config ({config.config_dir}) was kept.")
        output("Restart your session to apply.")
        return 0

    setup = LocationSetup(
        geocoder=geocoder
        or NominatimGeocoder(
            url=config.lookup.geocode_url,
            timeout_seconds=config.lookup.geocode_timeout_seconds,
            user_agent=config.lookup.user_agent,
        ),
        config_dir=config.config_dir,
        cache_store=CacheStore(FileByteStore(config.cache.file_path)),
        prompt=prompt,
        output=output,
    )

    if args.location:
        setup.run(config.location)
        return 0

    if not installer.install():
        output("Prayer time countdown is already installed.")
    setup.run(config.location)
    output("\nPrayer time countdown installed!")
    output("Restart your session to see your prayer times.")
    return 0


def _parse_args(argv: Optional[Iterable[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="prayerline-setup", description="Install the prayer time status line"
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--location", action="store_true", help="Update the saved location only"
    )
    group.add_argument(
        "--uninstall", action="store_true", help="Restore the previous status line"
    )
    parser.add_argument("--config-dir", help="Directory holding config.yml")
    parser.add_argument("--settings", help="Path to the host settings.json")
    return parser.parse_args(argv)


if __name__ == "__main__":
    raise SystemExit(main())
