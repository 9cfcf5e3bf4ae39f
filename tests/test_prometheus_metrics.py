"""
Tests for Prometheus metrics functionality.
"""
import os
from unittest.mock import Mock

from fastapi.testclient import TestClient

# Set test environment variables
os.environ["API_KEY"] = "test-api-key-123"
os.environ["LOG_LEVEL"] = "ERROR"  # Reduce log noise in tests

# Import after environment setup
from api.main import app  # noqa: E402
from api.services import RainzServices, get_services  # noqa: E402
from forecast.entitlement import StaticEntitlement  # noqa: E402
from forecast.errors import WeatherFetchError  # noqa: E402
from offline_cache.cache import OfflineWeatherCache  # noqa: E402
from utils.metrics import (  # noqa: E402
    cache_operation_counter,
    health_check_counter,
    request_counter,
    request_duration,
    weather_load_counter,
    weather_load_duration,
)


class TestPrometheusMetrics:
    """Test suite for Prometheus metrics functionality."""

    def setup_method(self):
        """Setup test fixtures."""
        self.cache = OfflineWeatherCache(":memory:")
        self.weather_api = Mock()
        self.weather_api.get_weather_data.return_value = {"success": True}
        self.services = RainzServices(self.cache, self.weather_api, StaticEntitlement(True))
        app.dependency_overrides[get_services] = lambda: self.services
        self.client = TestClient(app)
        self.valid_headers = {"x-api-key": "test-api-key-123"}

    def teardown_method(self):
        app.dependency_overrides.clear()
        self.services.shutdown()

    def test_metrics_endpoint_exists(self):
        """Test that /metrics endpoint exists and returns Prometheus format."""
        response = self.client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]

        content = response.text
        assert "# HELP" in content
        assert "# TYPE" in content
        assert "rainz_" in content

    def test_metrics_endpoint_contains_app_info(self):
        """Test that metrics include application information."""
        response = self.client.get("/metrics")

        assert response.status_code == 200
        # Info metrics get "_info" suffix automatically
        assert "rainz_app_info_info" in response.text

    def test_health_check_metrics(self):
        """Test that health check increments metrics."""
        initial_count = health_check_counter.labels(status="ok")._value._value

        response = self.client.get("/health")
        assert response.status_code == 200

        final_count = health_check_counter.labels(status="ok")._value._value
        assert final_count > initial_count

    def test_request_metrics_collection(self):
        """Test that HTTP requests generate metrics."""
        initial_count = request_counter.labels(
            method="GET", endpoint="/health", status_code="200"
        )._value._value

        response = self.client.get("/health")
        assert response.status_code == 200

        final_count = request_counter.labels(
            method="GET", endpoint="/health", status_code="200"
        )._value._value
        assert final_count > initial_count

    def test_healthz_counted_as_health(self):
        initial_count = request_counter.labels(
            method="GET", endpoint="/health", status_code="200"
        )._value._value

        self.client.get("/healthz")

        final_count = request_counter.labels(
            method="GET", endpoint="/health", status_code="200"
        )._value._value
        assert final_count == initial_count + 1

    def test_request_duration_metrics(self):
        """Test that request duration is recorded."""
        duration_metric = request_duration.labels(method="GET", endpoint="/health")
        initial_sum = duration_metric._sum._value

        response = self.client.get("/health")
        assert response.status_code == 200

        assert duration_metric._sum._value >= initial_sum

    def test_live_load_metrics(self):
        """Test that a live weather load is counted by outcome."""
        initial_count = weather_load_counter.labels(outcome="live")._value._value
        duration_metric = weather_load_duration.labels(outcome="live")
        initial_sum = duration_metric._sum._value

        response = self.client.post(
            "/v1/weather", headers=self.valid_headers, json={"lat": 40.71, "lon": -74.0}
        )

        assert response.status_code == 200
        assert weather_load_counter.labels(outcome="live")._value._value == initial_count + 1
        assert duration_metric._sum._value >= initial_sum

    def test_cached_fallback_metrics(self):
        """Test that a cache hit after a failed fetch is counted."""
        self.cache.cache_weather_data(40.71, -74.0, "NYC", {"success": True})
        self.weather_api.get_weather_data.side_effect = WeatherFetchError("down")
        initial_loads = weather_load_counter.labels(outcome="cached_fallback")._value._value
        initial_hits = cache_operation_counter.labels(operation="read", result="hit")._value._value

        response = self.client.post(
            "/v1/weather", headers=self.valid_headers, json={"lat": 40.71, "lon": -74.0}
        )

        assert response.status_code == 200
        assert (
            weather_load_counter.labels(outcome="cached_fallback")._value._value
            == initial_loads + 1
        )
        assert (
            cache_operation_counter.labels(operation="read", result="hit")._value._value
            == initial_hits + 1
        )

    def test_error_load_metrics(self):
        self.weather_api.get_weather_data.side_effect = WeatherFetchError("down")
        initial_count = weather_load_counter.labels(outcome="error")._value._value

        response = self.client.post(
            "/v1/weather", headers=self.valid_headers, json={"lat": 40.71, "lon": -74.0}
        )

        assert response.status_code == 502
        assert weather_load_counter.labels(outcome="error")._value._value == initial_count + 1

    def test_metrics_endpoint_no_auth_required(self):
        """Test that metrics endpoint doesn't require authentication."""
        response = self.client.get("/metrics")

        assert response.status_code == 200
        assert "rainz_" in response.text

    def test_metrics_not_collected_for_metrics_endpoint(self):
        """Test that metrics endpoint doesn't collect metrics about itself."""
        initial_count = request_counter.labels(
            method="GET", endpoint="/metrics", status_code="200"
        )._value._value

        response = self.client.get("/metrics")
        assert response.status_code == 200

        final_count = request_counter.labels(
            method="GET", endpoint="/metrics", status_code="200"
        )._value._value
        assert final_count == initial_count
