"""
FastAPI main application with weather and offline cache endpoints.
"""
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import BaseModel, Field

from forecast.errors import FetchTimeoutError, RequestSupersededError, WeatherFetchError
from offline_cache.cache import get_cache_id
from utils.metrics import (
    get_content_type,
    get_metrics,
    health_check_counter,
    request_counter,
    request_duration,
    set_app_info,
)

from .logging_config import log_request, setup_logging
from .security import verify_api_key_header
from .services import RainzServices, get_services, reset_services

APP_VERSION = "1.0.0"

# Setup logging
setup_logging(os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan event handler."""
    logger.info("Rainz API starting up")

    # Validate required environment variables
    required_env_vars = ["API_KEY"]
    missing_vars = [var for var in required_env_vars if not os.getenv(var)]
    if missing_vars:
        logger.error(f"Missing required environment variables: {missing_vars}")
        raise RuntimeError(f"Missing required environment variables: {missing_vars}")

    services = get_services()
    if services.cache.is_offline_cache_supported():
        services.cache.cleanup_expired_cache()
    else:
        logger.warning("Offline cache is not supported in this runtime")

    if os.getenv("WEATHERAPI_KEY") or os.getenv("WEATHER_API_KEY"):
        logger.info("WEATHERAPI_KEY is configured")
    else:
        logger.info("WEATHERAPI_KEY is not set (optional)")
    if os.getenv("OPENAI_API_KEY"):
        logger.info("OPENAI_API_KEY is configured, AI summaries enabled")
    else:
        logger.info("OPENAI_API_KEY is not set, using rule-based summaries")

    environment = os.getenv("DEPLOYMENT_ENV", "local")
    set_app_info(version=APP_VERSION, environment=environment)
    logger.info("Rainz API startup complete")

    yield

    logger.info("Rainz API shutting down")
    reset_services()
    logger.info("Rainz API shutdown complete")


app = FastAPI(
    title="Rainz API",
    description="Multi-source weather with AI summaries and offline cache fallback",
    version=APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# HTTPS enforcement middleware
@app.middleware("http")
async def https_enforcement_middleware(request: Request, call_next):
    """
    Enforce HTTPS for production environments and add security headers.
    Can be disabled by setting HTTPS_ONLY=false for local development.
    """
    https_only = os.getenv("HTTPS_ONLY", "true").lower() == "true"
    host = request.headers.get("host", "")

    if (
        not https_only
        or request.url.path in ["/health", "/healthz"]
        or host.startswith(("localhost", "127.0.0.1", "testserver"))
    ):
        response = await call_next(request)
    elif request.url.scheme != "https":
        https_url = request.url.replace(scheme="https")
        return RedirectResponse(url=str(https_url), status_code=301)
    else:
        response = await call_next(request)

    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# Metrics collection middleware
@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Collect Prometheus metrics for HTTP requests."""
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    endpoint = request.url.path
    if endpoint == "/healthz":
        endpoint = "/health"

    request_counter.labels(
        method=request.method, endpoint=endpoint, status_code=response.status_code
    ).inc()
    request_duration.labels(method=request.method, endpoint=endpoint).observe(duration)
    return response


# Pydantic models
class WeatherRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    location_name: Optional[str] = Field(None, max_length=200)


class HealthResponse(BaseModel):
    ok: bool


class WeatherViewResponse(BaseModel):
    data: Optional[Dict[str, Any]]
    isLoading: bool
    isUsingCachedData: bool
    status: str
    notice: Optional[Dict[str, str]]
    location: Optional[Dict[str, Any]]
    cachedAt: Optional[int]


class CacheStatsResponse(BaseModel):
    count: int
    oldest_timestamp: Optional[int]
    newest_timestamp: Optional[int]
    supported: bool
    enabled: bool


class CachedLocation(BaseModel):
    id: str
    latitude: float
    longitude: float
    location_name: str
    timestamp: int


def _error(status_code: int, error: str, hint: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"error": error, "hint": hint})


def _run_load(load, task: str, location_key: Optional[str] = None):
    """Run a controller load and map pipeline errors to HTTP errors."""
    request_id = str(uuid.uuid4())
    start_time = time.time()

    def finish(outcome: str, message: str) -> None:
        duration_ms = int((time.time() - start_time) * 1000)
        log_request(logger, request_id, task, duration_ms, outcome, message, location_key)

    try:
        state = load()
    except ValueError as e:
        finish("error", f"Invalid request: {e}")
        raise _error(status.HTTP_400_BAD_REQUEST, "invalid_request", str(e))
    except RequestSupersededError as e:
        finish("superseded", str(e))
        raise _error(status.HTTP_409_CONFLICT, "superseded", str(e))
    except FetchTimeoutError as e:
        finish("error", str(e))
        raise _error(status.HTTP_504_GATEWAY_TIMEOUT, "fetch_timeout", str(e))
    except WeatherFetchError as e:
        finish("error", str(e))
        raise _error(status.HTTP_502_BAD_GATEWAY, "fetch_failed", str(e))
    except Exception as e:
        finish("error", f"Unexpected error: {e}")
        logger.exception(
            f"Unexpected error in weather load: {e}", extra={"request_id": request_id}
        )
        raise _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_server_error",
            "An unexpected error occurred",
        )

    finish(state.status.value if state else "empty", "Weather load completed")
    return state


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    health_check_counter.labels(status="ok").inc()
    return HealthResponse(ok=True)


# Register /healthz only in local/debug environment
if (
    os.getenv("ENV", "local") == "local"
    or os.getenv("DEBUG", "false").lower() == "true"
):

    @app.get("/healthz", response_model=HealthResponse)
    async def healthz_check():
        return await health_check()


@app.get("/metrics")
async def metrics_endpoint():
    """Prometheus metrics endpoint."""
    return Response(content=get_metrics(), media_type=get_content_type())


@app.post("/v1/weather", response_model=WeatherViewResponse)
def load_weather(
    request: WeatherRequest,
    x_session_id: Optional[str] = Header(None, alias="x-session-id"),
    api_key: str = Depends(verify_api_key_header),
    services: RainzServices = Depends(get_services),
):
    """Load weather for a location, falling back to the offline cache on failure."""
    controller = services.controller(x_session_id)
    name = request.location_name or f"{request.lat:.2f}, {request.lon:.2f}"
    state = _run_load(
        lambda: controller.load(request.lat, request.lon, name),
        "weather_load",
        get_cache_id(request.lat, request.lon),
    )
    return state.to_dict()


@app.post("/v1/weather/refresh", response_model=WeatherViewResponse)
def refresh_weather(
    x_session_id: Optional[str] = Header(None, alias="x-session-id"),
    api_key: str = Depends(verify_api_key_header),
    services: RainzServices = Depends(get_services),
):
    """Reload the session's current location."""
    controller = services.controller(x_session_id)
    state = _run_load(controller.refresh, "weather_refresh")
    if state is None:
        raise _error(status.HTTP_404_NOT_FOUND, "no_location", "No location has been loaded yet")
    return state.to_dict()


@app.post("/v1/weather/offline-start", response_model=WeatherViewResponse)
def offline_start(
    x_session_id: Optional[str] = Header(None, alias="x-session-id"),
    api_key: str = Depends(verify_api_key_header),
    services: RainzServices = Depends(get_services),
):
    """Show the most recently cached location without a network fetch."""
    controller = services.controller(x_session_id)
    state = _run_load(controller.resume_offline, "offline_start")
    if state is None:
        raise _error(
            status.HTTP_404_NOT_FOUND,
            "no_cached_location",
            "No valid cached weather is available",
        )
    return state.to_dict()


@app.get("/v1/cache/stats", response_model=CacheStatsResponse)
def cache_stats(
    api_key: str = Depends(verify_api_key_header),
    services: RainzServices = Depends(get_services),
):
    """Offline cache statistics for display."""
    stats = services.cache.get_cache_stats()
    return CacheStatsResponse(
        **stats,
        supported=services.cache.is_offline_cache_supported(),
        enabled=services.cache_enabled(),
    )


@app.get("/v1/cache/locations", response_model=List[CachedLocation])
def cached_locations(
    api_key: str = Depends(verify_api_key_header),
    services: RainzServices = Depends(get_services),
):
    """Valid cached locations, newest first, without their payloads."""
    return [
        CachedLocation(
            id=get_cache_id(entry["latitude"], entry["longitude"]),
            latitude=entry["latitude"],
            longitude=entry["longitude"],
            location_name=entry["location_name"],
            timestamp=entry["timestamp"],
        )
        for entry in services.cache.get_all_cached_locations()
    ]


@app.post("/v1/cache/cleanup")
def cleanup_cache(
    api_key: str = Depends(verify_api_key_header),
    services: RainzServices = Depends(get_services),
):
    """Run the expiry sweep."""
    services.cache.cleanup_expired_cache()
    return {"ok": True, "count": services.cache.get_cache_stats()["count"]}


@app.delete("/v1/cache")
def clear_cache(
    api_key: str = Depends(verify_api_key_header),
    services: RainzServices = Depends(get_services),
):
    """Empty the offline cache."""
    if not services.cache.clear_weather_cache():
        raise _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "cache_clear_failed",
            "The offline cache could not be cleared",
        )
    return {"ok": True}


@app.post("/v1/entitlement/refresh")
def refresh_entitlement(
    api_key: str = Depends(verify_api_key_header),
    services: RainzServices = Depends(get_services),
):
    """Re-resolve the viewer's offline cache entitlement."""
    return {"entitled": services.entitlement.refresh()}


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Custom HTTP exception handler for consistent error responses."""
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": exc.detail}

    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    """Report invalid input parameters as a 400 with the first problem."""
    errors = exc.errors()
    hint = errors[0].get("msg", "Invalid input") if errors else "Invalid input"
    if errors and errors[0].get("loc"):
        hint = f"{errors[0]['loc'][-1]}: {hint}"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "invalid_request", "hint": hint},
    )


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run("api.main:app", host="0.0.0.0", port=port, log_level="info", reload=False)
