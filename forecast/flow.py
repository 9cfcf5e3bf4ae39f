"""
Weather page controller - live fetch with offline cache fallback.

One controller per viewer session. Each load moves the view through
loading -> live | cached-fallback | error.
"""
import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from offline_cache.cache import OfflineWeatherCache, get_cache_id
from utils.metrics import weather_load_counter, weather_load_duration

from .entitlement import Entitlement
from .errors import FetchTimeoutError, RequestSupersededError
from .weather_api import WeatherApi, validate_coordinates

logger = logging.getLogger(__name__)


class LoadStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LIVE = "live"
    CACHED_FALLBACK = "cached-fallback"
    ERROR = "error"


@dataclass(frozen=True)
class WeatherViewState:
    status: LoadStatus = LoadStatus.IDLE
    data: Optional[Dict[str, Any]] = None
    is_using_cached_data: bool = False
    notice: Optional[Dict[str, str]] = None
    location: Optional[Dict[str, Any]] = None
    cached_at: Optional[int] = None

    @property
    def is_loading(self) -> bool:
        return self.status == LoadStatus.LOADING

    def to_dict(self) -> Dict[str, Any]:
        """Shape exposed to the rendering layer."""
        return {
            "data": self.data,
            "isLoading": self.is_loading,
            "isUsingCachedData": self.is_using_cached_data,
            "status": self.status.value,
            "notice": self.notice,
            "location": self.location,
            "cachedAt": self.cached_at,
        }


class CancellationToken:
    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class BackgroundCacheWriter:
    """
    Detached queue for cache writes so they never delay a response.

    Writes still queued at shutdown are dropped.
    """

    def __init__(self, cache: OfflineWeatherCache):
        self.cache = cache
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cache-writer")

    def submit(self, lat: float, lon: float, location_name: str, data: Dict[str, Any]) -> Future:
        return self._executor.submit(
            self.cache.cache_weather_data, lat, lon, location_name, data
        )

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)


def format_cache_time(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%H:%M:%S")


class WeatherPageController:
    def __init__(
        self,
        weather_api: WeatherApi,
        cache: OfflineWeatherCache,
        entitlement: Entitlement,
        fetch_timeout: float = 30.0,
        writer: Optional[BackgroundCacheWriter] = None,
    ):
        self.weather_api = weather_api
        self.cache = cache
        self.entitlement = entitlement
        self.fetch_timeout = fetch_timeout
        self.writer = writer or BackgroundCacheWriter(cache)
        self._fetch_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="weather-fetch")
        self._lock = threading.Lock()
        self._state = WeatherViewState()
        self._token: Optional[CancellationToken] = None

    @property
    def state(self) -> WeatherViewState:
        with self._lock:
            return self._state

    def cache_enabled(self) -> bool:
        """The offline cache is used only for entitled viewers on a supported store."""
        return self.entitlement.is_entitled() and self.cache.is_offline_cache_supported()

    def load(self, lat: float, lon: float, location_name: str) -> WeatherViewState:
        """
        Load weather for a location.

        Live data wins; on fetch failure an entitled viewer gets the cached
        snapshot. Otherwise the fetch error is re-raised. A load that is
        overtaken by a newer one raises RequestSupersededError.
        """
        validate_coordinates(lat, lon, location_name)
        request_id = str(uuid.uuid4())
        location = {"lat": lat, "lon": lon, "name": location_name}
        location_key = get_cache_id(lat, lon)
        token = self._begin(location)
        start_time = time.time()

        logger.info(
            f"Weather load started for {location_name}",
            extra={"request_id": request_id, "status": "loading", "location_key": location_key},
        )

        cache_enabled = self.cache_enabled()
        try:
            data = self._fetch_with_deadline(lat, lon, location_name)
        except Exception as fetch_error:
            cached = None
            if cache_enabled:
                cached = self.cache.get_cached_weather_data(lat, lon)

            if token.cancelled:
                self._record("superseded", start_time, request_id)
                raise RequestSupersededError(
                    f"Load for {location_name} was superseded"
                ) from fetch_error

            if cached is not None:
                state = self._finish(
                    token,
                    lambda prev: WeatherViewState(
                        status=LoadStatus.CACHED_FALLBACK,
                        data=cached["data"],
                        is_using_cached_data=True,
                        notice={
                            "title": "Using cached data",
                            "description": f"Showing weather from {format_cache_time(cached['timestamp'])}",
                            "variant": "default",
                        },
                        location=location,
                        cached_at=cached["timestamp"],
                    ),
                )
                logger.warning(
                    f"Live fetch failed, serving cached data: {fetch_error}",
                    extra={"request_id": request_id, "status": "cached-fallback", "location_key": location_key},
                )
                self._record("cached_fallback", start_time, request_id)
                return state

            # Prior data stays in place; only status and notice change
            self._finish(
                token,
                lambda prev: replace(
                    prev,
                    status=LoadStatus.ERROR,
                    notice={
                        "title": "Failed to load weather",
                        "description": str(fetch_error) or fetch_error.__class__.__name__,
                        "variant": "destructive",
                    },
                ),
            )
            logger.error(
                f"Weather load failed: {fetch_error}",
                extra={"request_id": request_id, "status": "error", "location_key": location_key},
            )
            self._record("error", start_time, request_id)
            raise

        if cache_enabled and data:
            self.writer.submit(lat, lon, location_name, data)

        if token.cancelled:
            self._record("superseded", start_time, request_id)
            raise RequestSupersededError(f"Load for {location_name} was superseded")

        state = self._finish(
            token,
            lambda prev: WeatherViewState(
                status=LoadStatus.LIVE,
                data=data,
                is_using_cached_data=False,
                location=location,
            ),
        )
        self._record("live", start_time, request_id)
        return state

    def refresh(self) -> Optional[WeatherViewState]:
        """Reload the current location; None when nothing has been loaded."""
        location = self.state.location
        if location is None:
            return None
        return self.load(location["lat"], location["lon"], location["name"])

    def resume_offline(self) -> Optional[WeatherViewState]:
        """Show the most recently cached location without touching the network."""
        if not self.cache_enabled():
            return None

        cached = self.cache.get_most_recent_cached_location()
        if cached is None:
            return None

        location = {
            "lat": cached["latitude"],
            "lon": cached["longitude"],
            "name": cached["location_name"],
        }
        token = self._begin(location)
        state = self._finish(
            token,
            lambda prev: WeatherViewState(
                status=LoadStatus.CACHED_FALLBACK,
                data=cached["data"],
                is_using_cached_data=True,
                notice={
                    "title": "Offline Mode",
                    "description": f"Showing cached weather for {cached['location_name']}",
                    "variant": "default",
                },
                location=location,
                cached_at=cached["timestamp"],
            ),
        )
        logger.info(f"Resumed offline with cached weather for {cached['location_name']}")
        return state

    def shutdown_fetches(self) -> None:
        """Cancel the in-flight load and stop the fetch workers."""
        with self._lock:
            if self._token is not None:
                self._token.cancel()
        self._fetch_pool.shutdown(wait=False, cancel_futures=True)

    def shutdown(self) -> None:
        self.shutdown_fetches()
        self.writer.shutdown()

    def _begin(self, location: Dict[str, Any]) -> CancellationToken:
        """Cancel the in-flight load, if any, and enter the loading state."""
        token = CancellationToken()
        with self._lock:
            if self._token is not None:
                self._token.cancel()
            self._token = token
            self._state = replace(self._state, status=LoadStatus.LOADING, location=location)
        return token

    def _finish(self, token: CancellationToken, build) -> WeatherViewState:
        with self._lock:
            if token.cancelled or self._token is not token:
                raise RequestSupersededError("Load was superseded")
            self._state = build(self._state)
            self._token = None
            return self._state

    def _fetch_with_deadline(self, lat: float, lon: float, location_name: str) -> Dict[str, Any]:
        future = self._fetch_pool.submit(
            self.weather_api.get_weather_data, lat, lon, location_name
        )
        try:
            return future.result(timeout=self.fetch_timeout)
        except FutureTimeoutError:
            # The worker keeps running; its result is discarded
            future.cancel()
            raise FetchTimeoutError(
                f"Weather fetch timed out after {self.fetch_timeout:g}s"
            ) from None

    def _record(self, outcome: str, start_time: float, request_id: str) -> None:
        duration = time.time() - start_time
        weather_load_counter.labels(outcome=outcome).inc()
        weather_load_duration.labels(outcome=outcome).observe(duration)
        logger.info(
            f"Weather load finished: {outcome}",
            extra={"request_id": request_id, "duration_ms": int(duration * 1000), "status": outcome},
        )
