"""
Shared test helpers.
"""
import os

import pytest

os.environ.setdefault("API_KEY", "test-api-key-123")
os.environ.setdefault("LOG_LEVEL", "ERROR")  # Reduce log noise in tests

HOUR_SECONDS = 60 * 60


class FakeClock:
    """Settable replacement for time.time (seconds)."""

    def __init__(self, now: float = 1_760_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_source(name, accuracy, temperature, condition="Clear", **current):
    """Build a normalised WeatherSource dict for tests."""
    current_weather = {
        "temperature": temperature,
        "condition": condition,
        "description": condition,
        "humidity": 50,
        "wind_speed": 5,
        "wind_direction": 180,
        "visibility": 10,
        "feels_like": temperature,
        "uv_index": 3,
        "pressure": 1013,
    }
    current_weather.update(current)
    return {
        "source": name,
        "location": "Test City",
        "latitude": 40.71,
        "longitude": -74.0,
        "accuracy": accuracy,
        "current_weather": current_weather,
        "hourly_forecast": [
            {"time": "01 PM", "temperature": temperature, "condition": condition, "precipitation": 10},
            {"time": "02 PM", "temperature": temperature + 1, "condition": condition, "precipitation": 20},
        ],
        "daily_forecast": [
            {
                "day": "Mon",
                "condition": condition,
                "description": condition,
                "high_temp": temperature + 5,
                "low_temp": temperature - 5,
                "precipitation": 10,
            }
        ],
    }


@pytest.fixture
def fake_clock():
    return FakeClock()
