"""
End-to-end tests for the Rainz FastAPI application.
"""
import os
from unittest.mock import Mock

from fastapi.testclient import TestClient

# Set test environment variables
os.environ["API_KEY"] = "test-api-key-123"
os.environ["LOG_LEVEL"] = "ERROR"  # Reduce log noise in tests

from api.main import app  # noqa: E402
from api.services import RainzServices, get_services  # noqa: E402
from forecast.entitlement import Entitlement, StaticEntitlement  # noqa: E402
from forecast.errors import (  # noqa: E402
    FetchTimeoutError,
    RequestSupersededError,
    WeatherFetchError,
)
from offline_cache.cache import OfflineWeatherCache  # noqa: E402
from tests.conftest import FakeClock  # noqa: E402

LIVE_DATA = {"success": True, "sources": [{"source": "ECMWF"}], "source_count": 1}
CACHED_DATA = {"success": True, "sources": [{"source": "GFS"}], "source_count": 1}


class ApiTestBase:
    def make_entitlement(self):
        return StaticEntitlement(True)

    def setup_method(self):
        """Setup test fixtures."""
        self.clock = FakeClock()
        self.cache = OfflineWeatherCache(":memory:", clock=self.clock)
        self.weather_api = Mock()
        self.weather_api.get_weather_data.return_value = LIVE_DATA
        self.services = RainzServices(
            self.cache, self.weather_api, self.make_entitlement(), fetch_timeout=5.0
        )
        app.dependency_overrides[get_services] = lambda: self.services
        self.client = TestClient(app)
        self.valid_headers = {"x-api-key": "test-api-key-123"}

    def teardown_method(self):
        app.dependency_overrides.clear()
        self.services.shutdown()


class TestHealthAndAuth(ApiTestBase):
    def test_health_check(self):
        response = self.client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_healthz_in_local_env(self):
        response = self.client.get("/healthz")
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_missing_auth(self):
        response = self.client.post("/v1/weather", json={"lat": 40.71, "lon": -74.0})

        assert response.status_code == 401
        assert response.json() == {"error": "unauthorized", "hint": "Missing x-api-key header"}

    def test_invalid_auth(self):
        response = self.client.post(
            "/v1/weather",
            headers={"x-api-key": "invalid-key"},
            json={"lat": 40.71, "lon": -74.0},
        )

        assert response.status_code == 401
        assert response.json()["hint"] == "Invalid API key"

    def test_cache_endpoints_require_auth(self):
        assert self.client.get("/v1/cache/stats").status_code == 401
        assert self.client.delete("/v1/cache").status_code == 401


class TestWeatherEndpoint(ApiTestBase):
    def test_live_load(self):
        response = self.client.post(
            "/v1/weather",
            headers=self.valid_headers,
            json={"lat": 40.71, "lon": -74.0, "location_name": "NYC"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "live"
        assert body["data"] == LIVE_DATA
        assert body["isLoading"] is False
        assert body["isUsingCachedData"] is False
        assert body["location"] == {"lat": 40.71, "lon": -74.0, "name": "NYC"}
        assert body["cachedAt"] is None

    def test_default_location_name(self):
        self.client.post(
            "/v1/weather", headers=self.valid_headers, json={"lat": 40.7128, "lon": -74.006}
        )
        self.weather_api.get_weather_data.assert_called_once_with(
            40.7128, -74.006, "40.71, -74.01"
        )

    def test_cached_fallback(self):
        self.cache.cache_weather_data(40.71, -74.0, "NYC", CACHED_DATA)
        self.weather_api.get_weather_data.side_effect = WeatherFetchError("Network error")

        response = self.client.post(
            "/v1/weather",
            headers=self.valid_headers,
            json={"lat": 40.71, "lon": -74.0, "location_name": "NYC"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "cached-fallback"
        assert body["isUsingCachedData"] is True
        assert body["data"] == CACHED_DATA
        assert body["cachedAt"] == int(self.clock.now * 1000)
        assert body["notice"]["title"] == "Using cached data"

    def test_fetch_failure_without_cache(self):
        self.weather_api.get_weather_data.side_effect = WeatherFetchError(
            "No weather sources available"
        )

        response = self.client.post(
            "/v1/weather", headers=self.valid_headers, json={"lat": 40.71, "lon": -74.0}
        )

        assert response.status_code == 502
        assert response.json() == {
            "error": "fetch_failed",
            "hint": "No weather sources available",
        }

    def test_fetch_timeout(self):
        self.weather_api.get_weather_data.side_effect = FetchTimeoutError("timed out")

        response = self.client.post(
            "/v1/weather", headers=self.valid_headers, json={"lat": 40.71, "lon": -74.0}
        )

        assert response.status_code == 504
        assert response.json()["error"] == "fetch_timeout"

    def test_superseded(self):
        controller = Mock()
        controller.load.side_effect = RequestSupersededError("Load was superseded")
        self.services.controller = Mock(return_value=controller)

        response = self.client.post(
            "/v1/weather", headers=self.valid_headers, json={"lat": 40.71, "lon": -74.0}
        )

        assert response.status_code == 409
        assert response.json()["error"] == "superseded"

    def test_unexpected_error(self):
        controller = Mock()
        controller.load.side_effect = KeyError("boom")
        self.services.controller = Mock(return_value=controller)

        response = self.client.post(
            "/v1/weather", headers=self.valid_headers, json={"lat": 40.71, "lon": -74.0}
        )

        assert response.status_code == 500
        assert response.json()["error"] == "internal_server_error"

    def test_invalid_latitude(self):
        response = self.client.post(
            "/v1/weather", headers=self.valid_headers, json={"lat": 91, "lon": 0}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "invalid_request"
        assert body["hint"].startswith("lat:")
        self.weather_api.get_weather_data.assert_not_called()

    def test_missing_longitude(self):
        response = self.client.post(
            "/v1/weather", headers=self.valid_headers, json={"lat": 40.71}
        )
        assert response.status_code == 400
        assert response.json()["hint"].startswith("lon:")

    def test_location_name_too_long(self):
        response = self.client.post(
            "/v1/weather",
            headers=self.valid_headers,
            json={"lat": 40.71, "lon": -74.0, "location_name": "x" * 201},
        )
        assert response.status_code == 400


class TestSessions(ApiTestBase):
    def test_sessions_are_isolated(self):
        self.client.post(
            "/v1/weather",
            headers={**self.valid_headers, "x-session-id": "a"},
            json={"lat": 40.71, "lon": -74.0, "location_name": "NYC"},
        )

        response = self.client.post(
            "/v1/weather/refresh", headers={**self.valid_headers, "x-session-id": "b"}
        )

        assert response.status_code == 404
        assert response.json()["error"] == "no_location"

    def test_refresh_reloads_session_location(self):
        headers = {**self.valid_headers, "x-session-id": "a"}
        self.client.post(
            "/v1/weather",
            headers=headers,
            json={"lat": 40.71, "lon": -74.0, "location_name": "NYC"},
        )

        response = self.client.post("/v1/weather/refresh", headers=headers)

        assert response.status_code == 200
        assert response.json()["location"]["name"] == "NYC"
        assert self.weather_api.get_weather_data.call_count == 2

    def test_session_eviction(self):
        self.services.max_sessions = 2
        first = self.services.controller("one")
        self.services.controller("two")
        self.services.controller("three")

        assert self.services.controller("one") is not first


class TestOfflineStart(ApiTestBase):
    def test_no_cached_location(self):
        response = self.client.post("/v1/weather/offline-start", headers=self.valid_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "no_cached_location"

    def test_resumes_most_recent(self):
        self.cache.cache_weather_data(51.5, -0.12, "London", CACHED_DATA)

        response = self.client.post("/v1/weather/offline-start", headers=self.valid_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "cached-fallback"
        assert body["notice"]["title"] == "Offline Mode"
        assert body["location"]["name"] == "London"
        self.weather_api.get_weather_data.assert_not_called()


class TestCacheEndpoints(ApiTestBase):
    def test_stats(self):
        self.cache.cache_weather_data(40.71, -74.0, "NYC", CACHED_DATA)

        response = self.client.get("/v1/cache/stats", headers=self.valid_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["oldest_timestamp"] == body["newest_timestamp"]
        assert body["supported"] is True
        assert body["enabled"] is True

    def test_locations(self):
        self.cache.cache_weather_data(51.5, -0.12, "London", CACHED_DATA)
        self.clock.advance(60)
        self.cache.cache_weather_data(40.71, -74.0, "NYC", CACHED_DATA)

        response = self.client.get("/v1/cache/locations", headers=self.valid_headers)

        assert response.status_code == 200
        body = response.json()
        assert [entry["location_name"] for entry in body] == ["NYC", "London"]
        assert body[0]["id"] == "weather_40.71_-74.00"
        assert "data" not in body[0]

    def test_cleanup(self):
        self.cache.cache_weather_data(51.5, -0.12, "London", CACHED_DATA)
        self.clock.advance(7 * 60 * 60)
        self.cache.cache_weather_data(40.71, -74.0, "NYC", CACHED_DATA)

        response = self.client.post("/v1/cache/cleanup", headers=self.valid_headers)

        assert response.status_code == 200
        assert response.json() == {"ok": True, "count": 1}

    def test_clear(self):
        self.cache.cache_weather_data(40.71, -74.0, "NYC", CACHED_DATA)

        response = self.client.delete("/v1/cache", headers=self.valid_headers)

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert self.cache.get_cache_stats()["count"] == 0

    def test_clear_failure(self):
        self.cache.clear_weather_cache = Mock(return_value=False)

        response = self.client.delete("/v1/cache", headers=self.valid_headers)

        assert response.status_code == 500
        assert response.json()["error"] == "cache_clear_failed"


class TestNotEntitled(ApiTestBase):
    def make_entitlement(self):
        self.checker = Mock(return_value=False)
        return Entitlement(self.checker)

    def test_no_fallback_for_unentitled_viewer(self):
        self.cache.cache_weather_data(40.71, -74.0, "NYC", CACHED_DATA)
        self.weather_api.get_weather_data.side_effect = WeatherFetchError("down")

        response = self.client.post(
            "/v1/weather", headers=self.valid_headers, json={"lat": 40.71, "lon": -74.0}
        )

        assert response.status_code == 502

    def test_stats_report_disabled(self):
        response = self.client.get("/v1/cache/stats", headers=self.valid_headers)
        assert response.json()["enabled"] is False

    def test_entitlement_refresh(self):
        self.checker.return_value = True

        response = self.client.post("/v1/entitlement/refresh", headers=self.valid_headers)

        assert response.status_code == 200
        assert response.json() == {"entitled": True}
        assert self.services.cache_enabled() is True
