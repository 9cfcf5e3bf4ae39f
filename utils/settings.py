"""
Environment-driven configuration for the Rainz service.
"""
import os
from dataclasses import dataclass
from typing import Optional


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    cache_path: str = "rainz_offline_cache.db"
    cache_ttl_hours: float = 6.0
    fetch_timeout: float = 30.0
    provider_timeout: float = 10.0
    all_entitled: bool = True
    entitlement_ttl: float = 60.0
    weatherapi_key: Optional[str] = None
    openweathermap_key: Optional[str] = None
    tomorrow_io_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    llm_model: str = "gpt-4o-mini"


def load_settings() -> Settings:
    """Read settings from environment variables."""
    return Settings(
        cache_path=os.getenv("RAINZ_CACHE_PATH", "rainz_offline_cache.db"),
        cache_ttl_hours=float(os.getenv("RAINZ_CACHE_TTL_HOURS", "6")),
        fetch_timeout=float(os.getenv("RAINZ_FETCH_TIMEOUT", "30")),
        provider_timeout=float(os.getenv("RAINZ_PROVIDER_TIMEOUT", "10")),
        all_entitled=_env_bool("RAINZ_ALL_ENTITLED", "true"),
        entitlement_ttl=float(os.getenv("RAINZ_ENTITLEMENT_TTL", "60")),
        # Either name is accepted for the WeatherAPI.com key
        weatherapi_key=os.getenv("WEATHERAPI_KEY") or os.getenv("WEATHER_API_KEY"),
        openweathermap_key=os.getenv("OPENWEATHERMAP_API_KEY"),
        tomorrow_io_key=os.getenv("TOMORROW_IO_API_KEY"),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        llm_model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
    )
