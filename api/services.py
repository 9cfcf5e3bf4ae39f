"""
Service wiring: one shared cache, weather API and entitlement, plus one page
controller per viewer session.
"""
import logging
import threading
from collections import OrderedDict
from typing import Optional

from forecast.entitlement import Entitlement, StaticEntitlement
from forecast.flow import BackgroundCacheWriter, WeatherPageController
from forecast.llm_enhancer import LLMEnhancer
from forecast.weather_api import WeatherApi
from offline_cache.cache import OfflineWeatherCache
from sources.provider import build_default_providers
from utils.settings import Settings, load_settings

logger = logging.getLogger(__name__)

DEFAULT_SESSION = "default"
MAX_SESSIONS = 1000


class RainzServices:
    def __init__(
        self,
        cache: OfflineWeatherCache,
        weather_api: WeatherApi,
        entitlement: Entitlement,
        fetch_timeout: float = 30.0,
        max_sessions: int = MAX_SESSIONS,
    ):
        self.cache = cache
        self.weather_api = weather_api
        self.entitlement = entitlement
        self.fetch_timeout = fetch_timeout
        self.max_sessions = max_sessions
        self.writer = BackgroundCacheWriter(cache)
        self._controllers: "OrderedDict[str, WeatherPageController]" = OrderedDict()
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RainzServices":
        if settings.all_entitled:
            entitlement: Entitlement = StaticEntitlement(True)
        else:
            # No billing integration is wired in; deny until one is configured
            entitlement = Entitlement(lambda: False, ttl_seconds=settings.entitlement_ttl)

        weather_api = WeatherApi(
            providers=build_default_providers(
                settings.weatherapi_key,
                timeout=settings.provider_timeout,
                openweathermap_key=settings.openweathermap_key,
                tomorrow_io_key=settings.tomorrow_io_key,
            ),
            enhancer=LLMEnhancer(settings.openai_api_key, model=settings.llm_model),
        )
        cache = OfflineWeatherCache(settings.cache_path, ttl_hours=settings.cache_ttl_hours)
        return cls(cache, weather_api, entitlement, fetch_timeout=settings.fetch_timeout)

    def controller(self, session_id: Optional[str] = None) -> WeatherPageController:
        """Get or create the controller for a viewer session."""
        session_id = session_id or DEFAULT_SESSION
        with self._lock:
            controller = self._controllers.get(session_id)
            if controller is not None:
                self._controllers.move_to_end(session_id)
                return controller

            controller = WeatherPageController(
                self.weather_api,
                self.cache,
                self.entitlement,
                fetch_timeout=self.fetch_timeout,
                writer=self.writer,
            )
            self._controllers[session_id] = controller
            if len(self._controllers) > self.max_sessions:
                _, evicted = self._controllers.popitem(last=False)
                evicted.shutdown_fetches()
            return controller

    def cache_enabled(self) -> bool:
        return self.entitlement.is_entitled() and self.cache.is_offline_cache_supported()

    def shutdown(self) -> None:
        with self._lock:
            controllers = list(self._controllers.values())
            self._controllers.clear()
        for controller in controllers:
            controller.shutdown_fetches()
        self.writer.shutdown()
        self.cache.close()


_services: Optional[RainzServices] = None
_services_lock = threading.Lock()


def get_services() -> RainzServices:
    """FastAPI dependency; builds the services from the environment on first use."""
    global _services
    with _services_lock:
        if _services is None:
            _services = RainzServices.from_settings(load_settings())
            logger.info("Rainz services initialised")
        return _services


def reset_services() -> None:
    global _services
    with _services_lock:
        if _services is not None:
            _services.shutdown()
        _services = None
