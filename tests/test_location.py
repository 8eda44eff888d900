from __future__ import annotations

from dataclasses import dataclass

import pytest
import requests

from prayerline.location import IpLocationClient, LocationError, NominatimGeocoder
from prayerline.prayer_times import Location


@dataclass
class FakeResponse:
    status_code: int
    payload: object
    text: str = ""

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, results: list[object]) -> None:
        self._results = list(results)
        self.calls: list[dict] = []

    def get(self, url: str, *, params=None, headers=None, timeout: float):
        self.calls.append(
            {"url": url, "params": params, "headers": headers, "timeout": timeout}
        )
        if not self._results:
            raise AssertionError("No fake result configured")
        result = self._results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def test_ip_lookup_parses_coordinates_and_city() -> None:
    session = FakeSession(
        [FakeResponse(200, {"lat": 47.6, "lon": -122.3, "city": "Seattle", "timezone": "America/Los_Angeles"})]
    )
    client = IpLocationClient(url="http://ip.test/json", timeout_seconds=4, session=session)

    location = client.lookup()

    assert location == Location(latitude=47.6, longitude=-122.3, city="Seattle")
    assert session.calls[0]["url"] == "http://ip.test/json"
    assert session.calls[0]["timeout"] == 4


def test_ip_lookup_without_city_keeps_coordinates() -> None:
    session = FakeSession([FakeResponse(200, {"lat": 10, "lon": 20, "city": ""})])

    location = IpLocationClient(session=session).lookup()

    assert location == Location(latitude=10.0, longitude=20.0, city=None)


@pytest.mark.parametrize(
    "result",
    [
        requests.ConnectionError("offline"),
        FakeResponse(503, {}, text="unavailable"),
        FakeResponse(200, ValueError("not json")),
        FakeResponse(200, ["not", "an", "object"]),
        FakeResponse(200, {"status": "fail", "message": "private range"}),
        FakeResponse(200, {"lat": "north", "lon": 1}),
    ],
)
def test_ip_lookup_failures_raise_location_error(result) -> None:
    client = IpLocationClient(session=FakeSession([result]))

    with pytest.raises(LocationError):
        client.lookup()


def test_geocoder_returns_first_match_with_city() -> None:
    session = FakeSession(
        [
            FakeResponse(
                200,
                [
                    {
                        "lat": "51.5073219",
                        "lon": "-0.1276474",
                        "display_name": "London, Greater London, England, United Kingdom",
                        "address": {"city": "London", "country": "United Kingdom"},
                    }
                ],
            )
        ]
    )
    geocoder = NominatimGeocoder(
        url="https://geo.test/search", user_agent="prayerline-tests", session=session
    )

    result = geocoder.search("London UK")

    assert result is not None
    assert result.location == Location(latitude=51.5073219, longitude=-0.1276474, city="London")
    assert result.display_name.startswith("London, Greater London")
    call = session.calls[0]
    assert call["params"]["q"] == "London UK"
    assert call["params"]["limit"] == "1"
    assert call["headers"] == {"User-Agent": "prayerline-tests"}


def test_geocoder_falls_back_through_address_parts() -> None:
    session = FakeSession(
        [
            FakeResponse(
                200,
                [{"lat": "1", "lon": "2", "display_name": "Hamlet", "address": {"village": "Smallville"}}],
            ),
            FakeResponse(200, [{"lat": "1", "lon": "2", "display_name": "Somewhere Odd, Region"}]),
        ]
    )
    geocoder = NominatimGeocoder(session=session)

    assert geocoder.search("a").location.city == "Smallville"
    assert geocoder.search("b").location.city == "Somewhere Odd"


def test_geocoder_truncates_long_display_names() -> None:
    long_name = ", ".join(["Very Long Place Name"] * 10)
    session = FakeSession(
        [FakeResponse(200, [{"lat": "1", "lon": "2", "display_name": long_name}])]
    )

    result = NominatimGeocoder(session=session).search("long")

    assert len(result.display_name) == 80
    assert result.display_name.endswith("...")


def test_geocoder_no_match_returns_none() -> None:
    geocoder = NominatimGeocoder(session=FakeSession([FakeResponse(200, [])]))

    assert geocoder.search("Atlantis") is None


def test_geocoder_http_error_raises() -> None:
    geocoder = NominatimGeocoder(session=FakeSession([FakeResponse(429, [], text="slow down")]))

    with pytest.raises(LocationError):
        geocoder.search("London")
