from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, Optional

import requests

from prayerline.prayer_times import Location


DEFAULT_IP_URL = "http://ip-api.com/json/?fields=lat,lon,city,timezone"
DEFAULT_GEOCODE_URL = "https://nominatim.openstreetmap.org/search"
DEFAULT_USER_AGENT = "prayerline/1.0"

MAX_DISPLAY_NAME = 80


class LocationError(RuntimeError):
    """Raised when a location lookup fails or returns unusable data."""


@dataclass(frozen=True)
class GeocodeResult:
    location: Location
    display_name: str


def _get_json(
    session: requests.Session,
    url: str,
    *,
    timeout: float,
    params: Optional[Dict[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    try:
        resp = session.get(url, params=params, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise LocationError(f"Request failed for {url}: {exc}") from exc

    if resp.status_code != 200:
        raise LocationError(f"Lookup failed with status {resp.status_code}")

    try:
        return resp.json()
    except ValueError as exc:
        raise LocationError("Lookup returned invalid JSON") from exc


def _coordinate(value: Any, field: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise LocationError(f"Lookup returned invalid {field}: {value!r}") from exc


class IpLocationClient:
    """Approximate location of this machine from its public IP address."""

    def __init__(
        self,
        *,
        url: str = DEFAULT_IP_URL,
        timeout_seconds: float = 4,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._url = url
        self._timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._logger = logging.getLogger(self.__class__.__name__)

    def lookup(self) -> Location:
        data = _get_json(self._session, self._url, timeout=self._timeout_seconds)
        if not isinstance(data, dict):
            raise LocationError("IP lookup response must be a JSON object")
        if data.get("lat") is None or data.get("lon") is None:
            # ip-api reports failures as {"status": "fail", "message": ...}.
            raise LocationError(
                f"IP lookup returned no coordinates: {data.get('message', 'unknown')}"
            )
        city = data.get("city") or None
        location = Location(
            latitude=_coordinate(data["lat"], "latitude"),
            longitude=_coordinate(data["lon"], "longitude"),
            city=city if isinstance(city, str) else None,
        )
        self._logger.info("IP location resolved to %s", location)
        return location


class NominatimGeocoder:
    def __init__(
        self,
        *,
        url: str = DEFAULT_GEOCODE_URL,
        timeout_seconds: float = 8,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._url = url
        self._timeout_seconds = timeout_seconds
        self._user_agent = user_agent
        self._session = session or requests.Session()
        self._logger = logging.getLogger(self.__class__.__name__)

    def search(self, query: str) -> Optional[GeocodeResult]:
        data = _get_json(
            self._session,
            self._url,
            timeout=self._timeout_seconds,
            params={
                "q": query,
                "format": "json",
                "limit": "1",
                "addressdetails": "1",
            },
            # Nominatim's usage policy requires an identifying User-Agent.
            headers={"User-Agent": self._user_agent},
        )
        if not isinstance(data, list):
            raise LocationError("Geocoder response must be a JSON list")
        if not data:
            self._logger.info("No geocoding match for %r", query)
            return None

        match = data[0]
        if not isinstance(match, dict):
            raise LocationError("Geocoder match must be a JSON object")
        display_name = str(match.get("display_name", ""))
        location = Location(
            latitude=_coordinate(match.get("lat"), "latitude"),
            longitude=_coordinate(match.get("lon"), "longitude"),
            city=_city_name(match.get("address") or {}, display_name),
        )
        return GeocodeResult(location=location, display_name=_shorten(display_name))


def _city_name(address: Dict[str, Any], display_name: str) -> str:
    for key in ("city", "town", "village", "county"):
        value = address.get(key)
        if value:
            return str(value)
    return display_name.split(",")[0].strip()


def _shorten(display_name: str) -> str:
    if len(display_name) > MAX_DISPLAY_NAME:
        return display_name[: MAX_DISPLAY_NAME - 3] + "..."
    return display_name
