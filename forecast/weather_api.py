"""
Weather API facade: provider fan-out, aggregation and LLM enhancement.
"""
import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sources.provider import ProviderError, WeatherProvider

from .aggregator import WeatherAggregator
from .errors import WeatherFetchError
from .llm_enhancer import LLMEnhancer

logger = logging.getLogger(__name__)

MAX_LOCATION_NAME_LENGTH = 200
MAX_PROVIDER_WORKERS = 8


def validate_coordinates(lat: float, lon: float, location_name: Optional[str] = None) -> None:
    """Validate request input; raises ValueError on bad coordinates or name."""
    if not -90 <= lat <= 90:
        raise ValueError("Latitude must be between -90 and 90")
    if not -180 <= lon <= 180:
        raise ValueError("Longitude must be between -180 and 180")
    if location_name is not None and len(location_name) > MAX_LOCATION_NAME_LENGTH:
        raise ValueError(
            f"Location name must be at most {MAX_LOCATION_NAME_LENGTH} characters"
        )


class WeatherApi:
    def __init__(
        self,
        providers: List[WeatherProvider],
        enhancer: Optional[LLMEnhancer] = None,
        aggregator: Optional[WeatherAggregator] = None,
    ):
        self.providers = providers
        self.enhancer = enhancer or LLMEnhancer()
        self.aggregator = aggregator or WeatherAggregator()

    def get_weather_data(
        self, lat: float, lon: float, location_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Fetch every provider, then build the multi-source response.

        Raises WeatherFetchError when no provider returned data.
        """
        validate_coordinates(lat, lon, location_name)
        request_id = str(uuid.uuid4())
        start_time = time.time()
        name = location_name or f"{lat}, {lon}"

        sources = self._fetch_sources(lat, lon, location_name, request_id)
        if not sources:
            raise WeatherFetchError("No weather sources available")

        most_accurate = self.aggregator.select_most_accurate(sources)
        aggregated = self.aggregator.aggregate(sources, name)
        ai_enhanced = self.enhancer.enhance(sources, aggregated, name)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Weather data assembled from {len(sources)} sources",
            extra={"request_id": request_id, "duration_ms": duration_ms},
        )

        return {
            "success": True,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "location": {"name": name, "latitude": lat, "longitude": lon},
            "sources": sources,
            "most_accurate": most_accurate,
            "aggregated": aggregated,
            "ai_enhanced": ai_enhanced,
            "source_count": len(sources),
        }

    def _fetch_sources(
        self, lat: float, lon: float, location_name: Optional[str], request_id: str
    ) -> List[Dict[str, Any]]:
        if not self.providers:
            return []

        workers = min(MAX_PROVIDER_WORKERS, len(self.providers))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="provider") as pool:
            futures = [
                pool.submit(provider.fetch, lat, lon, location_name)
                for provider in self.providers
            ]

            sources: List[Dict[str, Any]] = []
            # Results keep provider order so selection ties are deterministic
            for future in futures:
                try:
                    sources.extend(future.result())
                except ProviderError as e:
                    logger.error(str(e), extra={"request_id": request_id})
        return sources
