from __future__ import annotations

from pathlib import Path

import pytest

from prayerline.config import ConfigError, ConfigLoader, save_location
from prayerline.prayer_times import CalculationConfig, Location


def _write_yaml(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


BASE_CONFIG = """
location:
  latitude: 47.6
  longitude: -122.3
  city: "Seattle"

calculation:
  fajr_angle: 18
  isha_angle: 17
  asr_shadow_factor: 2

statusline:
  color: false

logging:
  file_path: "logs/prayerline.log"
  level: "info"
"""


def test_missing_config_uses_defaults(tmp_path: Path) -> None:
    config = ConfigLoader(tmp_path).load()

    assert config.location is None
    assert config.calculation == CalculationConfig(15, 15, 1)
    assert config.cache.file_path == tmp_path / "cache.json"
    assert config.statusline.color is True
    assert config.statusline.wrapped_timeout_seconds == 5
    assert config.lookup.ip_url.startswith("http://ip-api.com/json/")
    assert config.logging.file_path is None
    assert config.logging.level == "WARNING"


def test_loads_values_from_config_yml(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "config.yml", BASE_CONFIG)

    config = ConfigLoader(tmp_path).load()

    assert config.location == Location(latitude=47.6, longitude=-122.3, city="Seattle")
    assert config.calculation == CalculationConfig(18, 17, 2)
    assert config.statusline.color is False
    assert config.logging.file_path == Path("logs/prayerline.log")
    assert config.logging.level == "INFO"
    # Untouched sections keep their defaults.
    assert config.lookup.geocode_timeout_seconds == 8


def test_config_d_overrides_base_in_name_order(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "config.yml", BASE_CONFIG)
    _write_yaml(tmp_path / "config.d" / "10-angles.yml", "calculation:\n  fajr_angle: 12\n")
    _write_yaml(tmp_path / "config.d" / "20-angles.yml", "calculation:\n  fajr_angle: 13\n")

    config = ConfigLoader(tmp_path).load()

    assert config.calculation.fajr_angle == 13
    assert config.calculation.isha_angle == 17


def test_env_var_selects_config_dir(tmp_path: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "config.yml", BASE_CONFIG)
    monkeypatch.setenv("PRAYERLINE_CONFIG_DIR", str(tmp_path))

    config = ConfigLoader().load()

    assert config.config_dir == tmp_path
    assert config.location.city == "Seattle"


def test_saved_location_overrides_config(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "config.yml", BASE_CONFIG)

    save_location(tmp_path, Location(latitude=24.86, longitude=67.0, city="Karachi"))
    config = ConfigLoader(tmp_path).load()

    assert config.location == Location(latitude=24.86, longitude=67.0, city="Karachi")
    assert "Seattle" in (tmp_path / "config.yml").read_text(encoding="utf-8")


def test_empty_location_section_means_auto_detect(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "config.yml", "location:\n")

    assert ConfigLoader(tmp_path).load().location is None


@pytest.mark.parametrize(
    "content",
    [
        "- just\n- a list\n",
        "location: [unclosed\n",
        "location:\n  latitude: 95\n  longitude: 0\n",
        "location:\n  latitude: 10\n  longitude: -181\n",
        "location:\n  latitude: 10\n",
        "calculation:\n  fajr_angle: 0\n",
        "calculation:\n  isha_angle: 95\n",
        "calculation:\n  asr_shadow_factor: -1\n",
        "calculation:\n  fajr_angle: steep\n",
        "statusline:\n  wrapped_timeout_seconds: 0\n",
        "logging:\n  level: LOUD\n",
    ],
)
def test_invalid_config_raises(tmp_path: Path, content: str) -> None:
    _write_yaml(tmp_path / "config.yml", content)

    with pytest.raises(ConfigError):
        ConfigLoader(tmp_path).load()
