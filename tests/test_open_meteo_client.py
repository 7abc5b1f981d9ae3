import unittest

import pytest

from runmate.data_sources import open_meteo_client
from runmate.errors import OpenMeteoError


class DummyResp:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code != 200:
            raise AssertionError("raise_for_status should not be reached for error payloads")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class RecordingSession:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        return DummyResp(self.payload, self.status_code)


def _forecast_payload():
    return {
        "current": {"time": "2024-07-30T09:15", "temperature_2m": 27.0},
        "hourly": {"time": ["2024-07-30T09:00"], "temperature_2m": [27.0]},
        "daily": {"time": ["2024-07-30"], "weather_code": [1]},
    }


class TestOpenMeteoClient(unittest.TestCase):
    def setUp(self):
        self._orig_session = open_meteo_client.session

    def tearDown(self):
        open_meteo_client.session = self._orig_session

    def test_geocode_city_returns_top_match(self):
        payload = {"results": [{"name": "Austin", "latitude": 30.27, "longitude": -97.74,
                                "admin1": "Texas", "country": "United States", "timezone": "America/Chicago"}]}
        fake = RecordingSession(payload)
        open_meteo_client.session = fake

        place = open_meteo_client.geocode_city("Austin")

        self.assertEqual(place.latitude, 30.27)
        self.assertEqual(place.display_name, "Austin, Texas")
        self.assertEqual(place.timezone, "America/Chicago")
        self.assertEqual(fake.calls[0]["params"]["name"], "Austin")
        self.assertEqual(fake.calls[0]["params"]["count"], 1)

    def test_geocode_city_no_results(self):
        open_meteo_client.session = RecordingSession({"generationtime_ms": 0.3})
        self.assertIsNone(open_meteo_client.geocode_city("Atlantis"))

    def test_fetch_forecast_uses_unit_params(self):
        fake = RecordingSession(_forecast_payload())
        open_meteo_client.session = fake

        data = open_meteo_client.fetch_forecast(30.27, -97.74, unit="F", timezone="America/Chicago")

        params = fake.calls[0]["params"]
        self.assertEqual(params["temperature_unit"], "fahrenheit")
        self.assertEqual(params["wind_speed_unit"], "mph")
        self.assertEqual(params["timezone"], "America/Chicago")
        self.assertIn("precipitation_probability", params["hourly"])
        self.assertIn("sunrise", params["daily"])
        self.assertIn("hourly", data)

    def test_error_payload_raises(self):
        open_meteo_client.session = RecordingSession({"error": True, "reason": "Latitude must be in range"}, 400)
        with self.assertRaises(OpenMeteoError) as ctx:
            open_meteo_client.fetch_forecast(999, 0)
        self.assertIn("Latitude must be in range", str(ctx.exception))


def test_fetch_forecast_requires_hourly_and_daily():
    original = open_meteo_client.session
    open_meteo_client.session = RecordingSession({"current": {}})
    try:
        with pytest.raises(OpenMeteoError):
            open_meteo_client.fetch_forecast(0, 0)
    finally:
        open_meteo_client.session = original


def test_non_json_response_raises():
    original = open_meteo_client.session
    open_meteo_client.session = RecordingSession(ValueError("no json"), 502)
    try:
        with pytest.raises(OpenMeteoError):
            open_meteo_client.geocode_city("Austin")
    finally:
        open_meteo_client.session = original


if __name__ == "__main__":
    unittest.main()
