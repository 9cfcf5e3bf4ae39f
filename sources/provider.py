"""
Weather source fetchers.

Every provider turns one upstream API response into normalised WeatherSource
dicts in imperial units (°F, mph, miles) with integer values.
"""
import logging
import math
import time
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from dateutil import parser as date_parser

from utils.metrics import provider_fetch_counter, provider_fetch_duration

logger = logging.getLogger(__name__)

DEFAULT_LOCATION_NAME = "Selected Location"

# WMO weather interpretation codes
WMO_CONDITIONS = {
    0: "Clear",
    1: "Partly Cloudy",
    2: "Partly Cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Foggy",
    51: "Light Drizzle",
    53: "Drizzle",
    55: "Heavy Drizzle",
    61: "Light Rain",
    63: "Rain",
    65: "Heavy Rain",
    71: "Light Snow",
    73: "Snow",
    75: "Heavy Snow",
    80: "Light Showers",
    81: "Showers",
    82: "Heavy Showers",
    95: "Thunderstorm",
    96: "Thunderstorm",
    99: "Heavy Thunderstorm",
}

OPEN_METEO_MODELS = [
    {"name": "ECMWF", "model": "ecmwf_ifs04", "accuracy": 0.95},
    {"name": "GFS", "model": "gfs_seamless", "accuracy": 0.90},
    {"name": "DWD ICON", "model": "icon_seamless", "accuracy": 0.92},
    {"name": "UKMO", "model": "ukmo_seamless", "accuracy": 0.93},
    {"name": "METEOFRANCE", "model": "meteofrance_seamless", "accuracy": 0.91},
    {"name": "JMA", "model": "jma_seamless", "accuracy": 0.89},
    {"name": "GEM", "model": "gem_seamless", "accuracy": 0.88},
]

BRIGHTSKY_CONDITIONS = {
    "clear-day": "Clear",
    "clear-night": "Clear",
    "partly-cloudy-day": "Partly Cloudy",
    "partly-cloudy-night": "Partly Cloudy",
    "cloudy": "Cloudy",
    "fog": "Foggy",
    "wind": "Windy",
    "rain": "Rain",
    "sleet": "Sleet",
    "snow": "Snow",
    "hail": "Hail",
    "thunderstorm": "Thunderstorm",
}

SMHI_CONDITIONS = {
    1: "Clear", 2: "Partly Cloudy", 3: "Partly Cloudy", 4: "Partly Cloudy",
    5: "Cloudy", 6: "Cloudy", 7: "Foggy", 8: "Rain", 9: "Rain", 10: "Rain",
    11: "Thunderstorm", 12: "Sleet", 13: "Sleet", 14: "Sleet",
    15: "Snow", 16: "Snow", 17: "Snow", 18: "Rain", 19: "Rain", 20: "Rain",
    21: "Thunderstorm", 22: "Sleet", 23: "Sleet", 24: "Sleet",
    25: "Snow", 26: "Snow", 27: "Snow",
}


class ProviderError(Exception):
    """Raised when a single weather provider cannot produce data."""


def js_round(value: Optional[float], default: int = 0) -> int:
    """Round half up, matching what the web client displays."""
    if value is None:
        return default
    return int(math.floor(value + 0.5))


def c_to_f(celsius: Optional[float]) -> float:
    return (celsius or 0.0) * 9 / 5 + 32


def hour_label(timestamp: str) -> str:
    """Format an ISO timestamp as a two-digit hour label, e.g. '03 PM'."""
    return date_parser.isoparse(timestamp).strftime("%I %p")


def day_label(day: str) -> str:
    """Format an ISO date as a short weekday, e.g. 'Mon'."""
    return date_parser.isoparse(day).strftime("%a")


def parse_12h_to_minutes(value: str) -> Optional[int]:
    """Parse '07:15 AM' into minutes since midnight."""
    try:
        clock, meridiem = value.split(" ")
        hours_str, minutes_str = clock.split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        return None

    meridiem = meridiem.upper()
    if meridiem == "PM" and hours != 12:
        hours += 12
    if meridiem == "AM" and hours == 12:
        hours = 0
    return hours * 60 + minutes


def minutes_to_duration(start: Optional[int], end: Optional[int]) -> Optional[str]:
    if start is None or end is None:
        return None
    diff = end - start
    if diff < 0:
        diff += 24 * 60
    return f"{diff // 60}h {diff % 60}m"


def _safe_get(data_list: Optional[List], index: int, default: Any = None) -> Any:
    """Safely get item from list at index."""
    if data_list and 0 <= index < len(data_list):
        value = data_list[index]
        return value if value is not None else default
    return default


class WeatherProvider:
    """Base class: one upstream API, normalised into WeatherSource dicts."""

    name = "base"
    accuracy = 0.0

    def __init__(self, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(
        self, lat: float, lon: float, location_name: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Fetch and normalise; raises ProviderError on any upstream failure."""
        start_time = time.time()
        try:
            sources = self._fetch(lat, lon, location_name or DEFAULT_LOCATION_NAME)
        except (
            requests.RequestException,
            AttributeError,
            IndexError,
            KeyError,
            OverflowError,
            TypeError,
            ValueError,
        ) as e:
            provider_fetch_counter.labels(provider=self.name, status="error").inc()
            raise ProviderError(f"{self.name} fetch failed: {e}") from e
        finally:
            provider_fetch_duration.labels(provider=self.name).observe(
                time.time() - start_time
            )

        provider_fetch_counter.labels(provider=self.name, status="ok").inc()
        logger.info(f"Successfully fetched {self.name} data")
        return sources

    def _fetch(self, lat: float, lon: float, location_name: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> Any:
        response = self.session.get(url, params=params, timeout=self.timeout, **kwargs)
        response.raise_for_status()
        return response.json()

    def _source(
        self,
        lat: float,
        lon: float,
        location_name: str,
        current: Dict[str, Any],
        hourly: List[Dict[str, Any]],
        daily: List[Dict[str, Any]],
        **extra: Any,
    ) -> Dict[str, Any]:
        source = {
            "source": self.name,
            "location": location_name,
            "latitude": lat,
            "longitude": lon,
            "accuracy": self.accuracy,
            "current_weather": current,
            "hourly_forecast": hourly,
            "daily_forecast": daily,
        }
        source.update(extra)
        return source


class OpenMeteoProvider(WeatherProvider):
    """One Open-Meteo forecast model from the ensemble."""

    forecast_url = "https://api.open-meteo.com/v1/forecast"

    def __init__(self, name: str, model: str, accuracy: float, **kwargs):
        super().__init__(**kwargs)
        self.name = name
        self.model = model
        self.accuracy = accuracy

    def _fetch(self, lat, lon, location_name):
        params = {
            "latitude": lat,
            "longitude": lon,
            "current_weather": "true",
            "hourly": ",".join(
                [
                    "temperature_2m",
                    "precipitation_probability",
                    "weathercode",
                    "relative_humidity_2m",
                    "apparent_temperature",
                    "visibility",
                    "pressure_msl",
                    "uv_index",
                    "wind_speed_10m",
                    "wind_direction_10m",
                ]
            ),
            "daily": ",".join(
                [
                    "weathercode",
                    "temperature_2m_max",
                    "temperature_2m_min",
                    "precipitation_probability_max",
                    "sunrise",
                    "sunset",
                ]
            ),
            "temperature_unit": "fahrenheit",
            "wind_speed_unit": "mph",
            "timezone": "auto",
            "forecast_days": 10,
            "models": self.model,
        }
        data = self._get_json(self.forecast_url, params)

        current = data["current_weather"]
        hourly = data.get("hourly", {})
        daily = data.get("daily", {})
        condition = self._condition(current.get("weathercode"))

        current_weather = {
            "temperature": js_round(current.get("temperature")),
            "condition": condition,
            "description": condition,
            "humidity": js_round(_safe_get(hourly.get("relative_humidity_2m"), 0)),
            "wind_speed": js_round(current.get("windspeed")),
            "wind_direction": js_round(current.get("winddirection")),
            "visibility": js_round(
                _safe_get(hourly.get("visibility"), 0, 10000) / 1609.34
            ),
            "feels_like": js_round(
                _safe_get(hourly.get("apparent_temperature"), 0, current.get("temperature"))
            ),
            "uv_index": js_round(_safe_get(hourly.get("uv_index"), 0)),
            "pressure": js_round(_safe_get(hourly.get("pressure_msl"), 0, 1013)),
            "sunrise": _safe_get(daily.get("sunrise"), 0),
            "sunset": _safe_get(daily.get("sunset"), 0),
        }

        hourly_forecast = [
            {
                "time": hour_label(ts),
                "temperature": js_round(_safe_get(hourly.get("temperature_2m"), i)),
                "condition": self._condition(_safe_get(hourly.get("weathercode"), i)),
                "precipitation": js_round(
                    _safe_get(hourly.get("precipitation_probability"), i)
                ),
            }
            for i, ts in enumerate(hourly.get("time", [])[:24])
        ]

        daily_forecast = []
        for i, day in enumerate(daily.get("time", [])[:10]):
            day_condition = self._condition(_safe_get(daily.get("weathercode"), i))
            daily_forecast.append(
                {
                    "day": day_label(day),
                    "condition": day_condition,
                    "description": day_condition,
                    "high_temp": js_round(_safe_get(daily.get("temperature_2m_max"), i)),
                    "low_temp": js_round(_safe_get(daily.get("temperature_2m_min"), i)),
                    "precipitation": js_round(
                        _safe_get(daily.get("precipitation_probability_max"), i)
                    ),
                }
            )

        return [
            self._source(
                lat, lon, location_name, current_weather, hourly_forecast, daily_forecast
            )
        ]

    @staticmethod
    def _condition(code: Optional[int]) -> str:
        return WMO_CONDITIONS.get(code or 0, "Unknown")


class WeatherApiProvider(WeatherProvider):
    """WeatherAPI.com forecast, with station info and air quality."""

    name = "WeatherAPI"
    accuracy = 0.88
    forecast_url = "https://api.weatherapi.com/v1/forecast.json"

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    def _fetch(self, lat, lon, location_name):
        data = self._get_json(
            self.forecast_url,
            {
                "key": self.api_key,
                "q": f"{lat},{lon}",
                "days": 10,
                "aqi": "yes",
                "alerts": "no",
            },
        )

        location = data.get("location") or {}
        current = data["current"]
        forecast_days = (data.get("forecast") or {}).get("forecastday") or []
        first_day = forecast_days[0] if forecast_days else {}
        astro = first_day.get("astro") or {}
        sunrise, sunset = astro.get("sunrise"), astro.get("sunset")
        daylight = None
        if sunrise and sunset:
            daylight = minutes_to_duration(
                parse_12h_to_minutes(sunrise), parse_12h_to_minutes(sunset)
            )

        condition = (current.get("condition") or {}).get("text", "Unknown")
        aqi = (current.get("air_quality") or {}).get("us-epa-index")
        current_weather = {
            "temperature": js_round(current.get("temp_f")),
            "condition": condition,
            "description": condition,
            "humidity": js_round(current.get("humidity")),
            "wind_speed": js_round(current.get("wind_mph")),
            "wind_direction": js_round(current.get("wind_degree")),
            "visibility": js_round(current.get("vis_miles")),
            "feels_like": js_round(current.get("feelslike_f")),
            "uv_index": js_round(current.get("uv")),
            "pressure": js_round(current.get("pressure_mb")),
            "sunrise": sunrise,
            "sunset": sunset,
            "daylight": daylight,
            "aqi": aqi if isinstance(aqi, (int, float)) else None,
        }

        hourly_forecast = [
            {
                "time": hour_label(hour["time"].replace(" ", "T")),
                "temperature": js_round(hour.get("temp_f")),
                "condition": (hour.get("condition") or {}).get("text", "Unknown"),
                "precipitation": js_round(hour.get("chance_of_rain")),
            }
            for hour in (first_day.get("hour") or [])[:24]
        ]

        daily_forecast = []
        for forecast_day in forecast_days[:10]:
            day = forecast_day.get("day") or {}
            day_condition = (day.get("condition") or {}).get("text", "Unknown")
            daily_forecast.append(
                {
                    "day": day_label(forecast_day["date"]),
                    "condition": day_condition,
                    "description": day_condition,
                    "high_temp": js_round(day.get("maxtemp_f")),
                    "low_temp": js_round(day.get("mintemp_f")),
                    "precipitation": js_round(day.get("daily_chance_of_rain")),
                }
            )

        station_info = {
            "name": location.get("name") or "Unknown Station",
            "region": location.get("region", ""),
            "country": location.get("country", ""),
            "localtime": location.get("localtime", ""),
        }
        return [
            self._source(
                lat,
                lon,
                location_name,
                current_weather,
                hourly_forecast,
                daily_forecast,
                station_info=station_info,
            )
        ]


class MetNoProvider(WeatherProvider):
    """Norwegian Meteorological Institute compact location forecast."""

    name = "Met.no"
    accuracy = 0.94
    forecast_url = "https://api.met.no/weatherapi/locationforecast/2.0/compact"
    user_agent = "Rainz Weather App (contact@rainz.app)"

    def _fetch(self, lat, lon, location_name):
        data = self._get_json(
            self.forecast_url,
            {"lat": lat, "lon": lon},
            headers={"User-Agent": self.user_agent},
        )
        timeseries = data["properties"]["timeseries"]
        if not timeseries:
            raise ValueError("empty timeseries")

        current = timeseries[0]["data"]
        details = current["instant"]["details"]
        condition = self._condition(current)
        current_weather = {
            "temperature": js_round(c_to_f(details.get("air_temperature"))),
            "condition": condition,
            "description": condition,
            "humidity": js_round(details.get("relative_humidity")),
            "wind_speed": js_round((details.get("wind_speed") or 0) * 2.237),
            "wind_direction": js_round(details.get("wind_from_direction")),
            "visibility": 10,
            "feels_like": js_round(c_to_f(details.get("air_temperature"))),
            "uv_index": 0,
            "pressure": js_round(details.get("air_pressure_at_sea_level"), 1013),
        }

        hourly_forecast = []
        for entry in timeseries[:24]:
            entry_data = entry["data"]
            next_hour = entry_data.get("next_1_hours") or {}
            amount_mm = (next_hour.get("details") or {}).get("precipitation_amount") or 0
            hourly_forecast.append(
                {
                    "time": hour_label(entry["time"]),
                    "temperature": js_round(
                        c_to_f(entry_data["instant"]["details"].get("air_temperature"))
                    ),
                    "condition": self._condition(entry_data),
                    "precipitation": js_round(amount_mm * 0.0393701),
                }
            )

        return [self._source(lat, lon, location_name, current_weather, hourly_forecast, [])]

    @staticmethod
    def _condition(entry_data: Dict[str, Any]) -> str:
        summary = (entry_data.get("next_1_hours") or {}).get("summary") or {}
        code = summary.get("symbol_code")
        if not code:
            return "Unknown"
        for marker, condition in (
            ("clearsky", "Clear"),
            ("fair", "Partly Cloudy"),
            ("cloudy", "Cloudy"),
            ("rain", "Rain"),
            ("snow", "Snow"),
            ("thunder", "Thunderstorm"),
            ("fog", "Foggy"),
        ):
            if marker in code:
                return condition
        return "Partly Cloudy"


class BrightSkyProvider(WeatherProvider):
    """Bright Sky, a free front end for German Weather Service (DWD) data."""

    name = "BrightSky DWD"
    accuracy = 0.91
    forecast_url = "https://api.brightsky.dev/weather"

    def _fetch(self, lat, lon, location_name):
        data = self._get_json(
            self.forecast_url,
            {"lat": lat, "lon": lon, "date": date.today().isoformat()},
        )
        weather = data.get("weather") or []
        if not weather:
            raise ValueError("no observations returned")

        current = weather[0]
        condition = BRIGHTSKY_CONDITIONS.get(current.get("icon"), "Unknown")
        current_weather = {
            "temperature": js_round(c_to_f(current.get("temperature"))),
            "condition": condition,
            "description": condition,
            "humidity": js_round(current.get("relative_humidity")),
            "wind_speed": js_round((current.get("wind_speed") or 0) * 0.621371),
            "wind_direction": js_round(current.get("wind_direction")),
            "visibility": js_round((current.get("visibility") or 10000) / 1609.34),
            "feels_like": js_round(c_to_f(current.get("temperature"))),
            "uv_index": 0,
            "pressure": js_round(current.get("pressure_msl"), 1013),
        }
        hourly_forecast = [
            {
                "time": hour_label(entry["timestamp"]),
                "temperature": js_round(c_to_f(entry.get("temperature"))),
                "condition": BRIGHTSKY_CONDITIONS.get(entry.get("icon"), "Unknown"),
                "precipitation": js_round(entry.get("precipitation")),
            }
            for entry in weather[:24]
        ]
        return [self._source(lat, lon, location_name, current_weather, hourly_forecast, [])]


class SmhiProvider(WeatherProvider):
    """Swedish Meteorological and Hydrological Institute point forecast."""

    name = "SMHI"
    accuracy = 0.90
    base_url = (
        "https://opendata-download-metfcst.smhi.se/api/category/pmp3g/version/2"
        "/geotype/point/lon/{lon:.4f}/lat/{lat:.4f}/data.json"
    )

    def _fetch(self, lat, lon, location_name):
        data = self._get_json(self.base_url.format(lat=lat, lon=lon))
        time_series = data.get("timeSeries") or []
        if not time_series:
            raise ValueError("empty time series")

        params = time_series[0].get("parameters") or []
        condition = self._condition(self._param(params, "Wsymb2", 1))
        current_weather = {
            "temperature": js_round(c_to_f(self._param(params, "t"))),
            "condition": condition,
            "description": condition,
            "humidity": js_round(self._param(params, "r")),
            "wind_speed": js_round((self._param(params, "ws") or 0) * 2.237),
            "wind_direction": js_round(self._param(params, "wd")),
            "visibility": js_round((self._param(params, "vis") or 10) / 1.609),
            "feels_like": js_round(c_to_f(self._param(params, "t"))),
            "uv_index": 0,
            "pressure": js_round(self._param(params, "msl"), 1013),
        }

        hourly_forecast = []
        for entry in time_series[:24]:
            entry_params = entry.get("parameters") or []
            hourly_forecast.append(
                {
                    "time": hour_label(entry["validTime"]),
                    "temperature": js_round(c_to_f(self._param(entry_params, "t"))),
                    "condition": self._condition(self._param(entry_params, "Wsymb2", 1)),
                    "precipitation": js_round((self._param(entry_params, "pmean") or 0) * 100),
                }
            )
        return [self._source(lat, lon, location_name, current_weather, hourly_forecast, [])]

    @staticmethod
    def _param(params: List[Dict[str, Any]], name: str, default: Any = None) -> Any:
        for param in params:
            if param.get("name") == name:
                return _safe_get(param.get("values"), 0, default)
        return default

    @staticmethod
    def _condition(code: Optional[int]) -> str:
        return SMHI_CONDITIONS.get(code, "Unknown")


class OpenWeatherMapProvider(WeatherProvider):
    """OpenWeatherMap current conditions plus the 5 day / 3 hour forecast."""

    name = "OpenWeatherMap"
    accuracy = 0.87
    current_url = "https://api.openweathermap.org/data/2.5/weather"
    forecast_url = "https://api.openweathermap.org/data/2.5/forecast"

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    def _fetch(self, lat, lon, location_name):
        params = {"lat": lat, "lon": lon, "appid": self.api_key, "units": "imperial"}
        current = self._get_json(self.current_url, params)
        forecast = self._get_json(self.forecast_url, params)

        main = current["main"]
        wind = current.get("wind") or {}
        condition = self._condition(current)
        offset = current.get("timezone") or 0
        sys_info = current.get("sys") or {}
        sunrise = self._local_clock(sys_info.get("sunrise"), offset)
        sunset = self._local_clock(sys_info.get("sunset"), offset)

        current_weather = {
            "temperature": js_round(main.get("temp")),
            "condition": condition,
            "description": condition,
            "humidity": js_round(main.get("humidity")),
            "wind_speed": js_round(wind.get("speed")),
            "wind_direction": js_round(wind.get("deg")),
            "visibility": js_round((current.get("visibility") or 10000) / 1609.34),
            "feels_like": js_round(main.get("feels_like", main.get("temp"))),
            "uv_index": 0,
            "pressure": js_round(main.get("pressure"), 1013),
            "sunrise": sunrise,
            "sunset": sunset,
            "daylight": minutes_to_duration(
                parse_12h_to_minutes(sunrise), parse_12h_to_minutes(sunset)
            ),
        }

        entries = forecast.get("list") or []
        # Three-hour steps: eight entries cover the next 24 hours
        hourly_forecast = [
            {
                "time": hour_label(entry["dt_txt"].replace(" ", "T")),
                "temperature": js_round(entry["main"].get("temp")),
                "condition": self._condition(entry),
                "precipitation": js_round((entry.get("pop") or 0) * 100),
            }
            for entry in entries[:8]
        ]

        days: Dict[str, List[Dict[str, Any]]] = {}
        for entry in entries:
            days.setdefault(entry["dt_txt"][:10], []).append(entry)
        daily_forecast = []
        for day, day_entries in list(days.items())[:10]:
            day_condition = self._condition(day_entries[len(day_entries) // 2])
            daily_forecast.append(
                {
                    "day": day_label(day),
                    "condition": day_condition,
                    "description": day_condition,
                    "high_temp": js_round(max(e["main"]["temp_max"] for e in day_entries)),
                    "low_temp": js_round(min(e["main"]["temp_min"] for e in day_entries)),
                    "precipitation": js_round(
                        max((e.get("pop") or 0) for e in day_entries) * 100
                    ),
                }
            )

        return [
            self._source(
                lat, lon, location_name, current_weather, hourly_forecast, daily_forecast
            )
        ]

    @staticmethod
    def _condition(entry: Dict[str, Any]) -> str:
        weather = entry.get("weather") or []
        if not weather:
            return "Unknown"
        return weather[0].get("main") or "Unknown"

    @staticmethod
    def _local_clock(timestamp: Optional[int], offset_seconds: int) -> Optional[str]:
        if timestamp is None:
            return None
        local = datetime.fromtimestamp(timestamp + offset_seconds, tz=timezone.utc)
        return local.strftime("%I:%M %p")


TOMORROW_CONDITIONS = {
    1000: "Clear",
    1100: "Mostly Clear",
    1101: "Partly Cloudy",
    1102: "Mostly Cloudy",
    1001: "Cloudy",
    2000: "Foggy",
    2100: "Light Fog",
    4000: "Drizzle",
    4001: "Rain",
    4200: "Light Rain",
    4201: "Heavy Rain",
    5000: "Snow",
    5001: "Flurries",
    5100: "Light Snow",
    5101: "Heavy Snow",
    6000: "Freezing Drizzle",
    6001: "Freezing Rain",
    6200: "Light Freezing Rain",
    6201: "Heavy Freezing Rain",
    7000: "Ice Pellets",
    7101: "Heavy Ice Pellets",
    7102: "Light Ice Pellets",
    8000: "Thunderstorm",
}

INHG_TO_MB = 33.8639


class TomorrowIoProvider(WeatherProvider):
    """Tomorrow.io hourly and daily timelines in imperial units."""

    name = "Tomorrow.io"
    accuracy = 0.90
    forecast_url = "https://api.tomorrow.io/v4/weather/forecast"

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    def _fetch(self, lat, lon, location_name):
        data = self._get_json(
            self.forecast_url,
            {
                "location": f"{lat},{lon}",
                "apikey": self.api_key,
                "timesteps": "1h,1d",
                "units": "imperial",
            },
        )
        timelines = data["timelines"]
        hourly = timelines.get("hourly") or []
        daily = timelines.get("daily") or []
        if not hourly:
            raise ValueError("empty hourly timeline")

        now = hourly[0]["values"]
        today = daily[0]["values"] if daily else {}
        condition = self._condition(now.get("weatherCode"))
        current_weather = {
            "temperature": js_round(now.get("temperature")),
            "condition": condition,
            "description": condition,
            "humidity": js_round(now.get("humidity")),
            "wind_speed": js_round(now.get("windSpeed")),
            "wind_direction": js_round(now.get("windDirection")),
            "visibility": js_round(now.get("visibility"), 10),
            "feels_like": js_round(now.get("temperatureApparent", now.get("temperature"))),
            "uv_index": js_round(now.get("uvIndex")),
            "pressure": js_round(
                now["pressureSeaLevel"] * INHG_TO_MB
                if now.get("pressureSeaLevel") is not None
                else None,
                1013,
            ),
            "sunrise": today.get("sunriseTime"),
            "sunset": today.get("sunsetTime"),
        }

        hourly_forecast = [
            {
                "time": hour_label(entry["time"]),
                "temperature": js_round(entry["values"].get("temperature")),
                "condition": self._condition(entry["values"].get("weatherCode")),
                "precipitation": js_round(entry["values"].get("precipitationProbability")),
            }
            for entry in hourly[:24]
        ]

        daily_forecast = []
        for entry in daily[:10]:
            values = entry["values"]
            day_condition = self._condition(values.get("weatherCodeMax"))
            daily_forecast.append(
                {
                    "day": day_label(entry["time"]),
                    "condition": day_condition,
                    "description": day_condition,
                    "high_temp": js_round(values.get("temperatureMax")),
                    "low_temp": js_round(values.get("temperatureMin")),
                    "precipitation": js_round(values.get("precipitationProbabilityMax")),
                }
            )

        return [
            self._source(
                lat, lon, location_name, current_weather, hourly_forecast, daily_forecast
            )
        ]

    @staticmethod
    def _condition(code: Optional[int]) -> str:
        return TOMORROW_CONDITIONS.get(code, "Unknown")


def build_default_providers(
    weatherapi_key: Optional[str] = None,
    timeout: float = 10.0,
    openweathermap_key: Optional[str] = None,
    tomorrow_io_key: Optional[str] = None,
) -> List[WeatherProvider]:
    """Build the provider list used for a weather request."""
    session = requests.Session()
    providers: List[WeatherProvider] = [
        OpenMeteoProvider(timeout=timeout, session=session, **model)
        for model in OPEN_METEO_MODELS
    ]
    if weatherapi_key:
        providers.append(
            WeatherApiProvider(weatherapi_key, timeout=timeout, session=session)
        )
    else:
        logger.warning("WEATHERAPI key missing; skipping WeatherAPI provider")
    if openweathermap_key:
        providers.append(
            OpenWeatherMapProvider(openweathermap_key, timeout=timeout, session=session)
        )
    if tomorrow_io_key:
        providers.append(
            TomorrowIoProvider(tomorrow_io_key, timeout=timeout, session=session)
        )
    providers.extend(
        [
            MetNoProvider(timeout=timeout, session=session),
            BrightSkyProvider(timeout=timeout, session=session),
            SmhiProvider(timeout=timeout, session=session),
        ]
    )
    return providers
