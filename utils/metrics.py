"""
Prometheus metrics for Rainz API monitoring.
"""
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    Info,
    generate_latest,
)

# Application info metric
app_info = Info(
    "rainz_app_info",
    "Application information for Rainz",
)

# Request metrics
request_counter = Counter(
    "rainz_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"],
)

# Latency metrics
request_duration = Histogram(
    "rainz_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Weather load outcomes: live, cached_fallback, error, superseded
weather_load_counter = Counter(
    "rainz_weather_loads_total",
    "Total number of weather loads by outcome",
    ["outcome"],
)

weather_load_duration = Histogram(
    "rainz_weather_load_duration_seconds",
    "Weather load duration in seconds",
    ["outcome"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)

# Provider metrics
provider_fetch_counter = Counter(
    "rainz_provider_fetches_total",
    "Total number of weather provider fetches",
    ["provider", "status"],
)

provider_fetch_duration = Histogram(
    "rainz_provider_fetch_duration_seconds",
    "Weather provider fetch duration in seconds",
    ["provider"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

# Offline cache metrics
cache_operation_counter = Counter(
    "rainz_cache_operations_total",
    "Total number of offline cache operations",
    ["operation", "result"],
)

# Health metrics
health_check_counter = Counter(
    "rainz_health_checks_total",
    "Total number of health check requests",
    ["status"],
)


def set_app_info(version: str, environment: str = "production"):
    """Set application information."""
    app_info.info(
        {"version": version, "environment": environment, "application": "rainz"}
    )


def get_metrics() -> bytes:
    """Get all metrics in Prometheus format."""
    return generate_latest(REGISTRY)


def get_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
