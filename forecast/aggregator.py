"""
Multi-source weather aggregation: most-accurate pick, weighted composite and
model agreement.
"""
import logging
import statistics
from collections import defaultdict
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

CURRENT_NUMERIC_FIELDS = [
    "temperature",
    "humidity",
    "wind_speed",
    "wind_direction",
    "visibility",
    "feels_like",
    "uv_index",
    "pressure",
]

# Temperature spread (°F standard deviation) at which agreement reaches zero
TEMPERATURE_SPREAD_LIMIT = 10.0


class WeatherAggregator:
    def select_most_accurate(self, sources: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Pick the source with the highest accuracy rating; first wins on ties."""
        if not sources:
            return None

        best = sources[0]
        for source in sources[1:]:
            if (source.get("accuracy") or 0) > (best.get("accuracy") or 0):
                best = source
        return best

    def aggregate(self, sources: List[Dict[str, Any]], location_name: str) -> Dict[str, Any]:
        """Build an accuracy-weighted composite of all sources."""
        weighted = [s for s in sources if (s.get("accuracy") or 0) > 0]
        if not weighted:
            weighted = sources

        current = self._aggregate_current(weighted)
        hourly = self._aggregate_series(
            [s.get("hourly_forecast", []) for s in weighted],
            [s.get("accuracy") or 1.0 for s in weighted],
            key_field="time",
            numeric_fields=["temperature", "precipitation"],
        )
        daily = self._aggregate_series(
            [s.get("daily_forecast", []) for s in weighted],
            [s.get("accuracy") or 1.0 for s in weighted],
            key_field="day",
            numeric_fields=["high_temp", "low_temp", "precipitation"],
        )
        for entry in daily:
            entry["description"] = entry["condition"]

        station_info = next(
            (s["station_info"] for s in sources if s.get("station_info")), None
        )

        aggregated = {
            "source": "Aggregated",
            "location": location_name,
            "accuracy": round(
                sum(s.get("accuracy") or 0 for s in weighted) / len(weighted), 2
            ),
            "current_weather": current,
            "hourly_forecast": hourly,
            "daily_forecast": daily,
            "model_agreement": self.model_agreement(sources),
        }
        if station_info:
            aggregated["station_info"] = station_info
        return aggregated

    def model_agreement(self, sources: List[Dict[str, Any]]) -> int:
        """
        Score 0-100 for how closely the sources agree on current conditions.

        Mean of a temperature score (falls linearly with standard deviation)
        and the share of sources reporting the consensus condition.
        """
        if not sources:
            return 0
        if len(sources) == 1:
            return 100

        temps = [
            s["current_weather"]["temperature"]
            for s in sources
            if s.get("current_weather", {}).get("temperature") is not None
        ]
        spread = statistics.pstdev(temps) if len(temps) > 1 else 0.0
        temp_score = max(0.0, 1 - spread / TEMPERATURE_SPREAD_LIMIT)

        conditions = [s.get("current_weather", {}).get("condition") for s in sources]
        consensus = self._vote(
            [(c, 1.0) for c in conditions if c and c != "Unknown"]
        )
        condition_score = (
            conditions.count(consensus) / len(conditions) if consensus else 0.0
        )

        return int(round((temp_score + condition_score) / 2 * 100))

    def _aggregate_current(self, sources: List[Dict[str, Any]]) -> Dict[str, Any]:
        current: Dict[str, Any] = {}
        for field in CURRENT_NUMERIC_FIELDS:
            pairs = [
                (s["current_weather"][field], s.get("accuracy") or 1.0)
                for s in sources
                if s.get("current_weather", {}).get(field) is not None
            ]
            current[field] = self._weighted_mean(pairs)

        condition = self._vote(
            [
                (s["current_weather"].get("condition"), s.get("accuracy") or 1.0)
                for s in sources
                if s.get("current_weather", {}).get("condition") not in (None, "Unknown")
            ]
        ) or "Unknown"
        current["condition"] = condition
        current["description"] = condition

        # Astronomy fields come from the first source that reports them
        for field in ("sunrise", "sunset", "daylight", "aqi"):
            current[field] = next(
                (
                    s["current_weather"][field]
                    for s in sources
                    if s.get("current_weather", {}).get(field) is not None
                ),
                None,
            )
        return current

    def _aggregate_series(
        self,
        series_list: List[List[Dict[str, Any]]],
        weights: List[float],
        key_field: str,
        numeric_fields: List[str],
    ) -> List[Dict[str, Any]]:
        length = max((len(series) for series in series_list), default=0)
        result = []
        for index in range(length):
            slot = [
                (series[index], weight)
                for series, weight in zip(series_list, weights)
                if index < len(series)
            ]
            entry: Dict[str, Any] = {key_field: slot[0][0].get(key_field)}
            for field in numeric_fields:
                entry[field] = self._weighted_mean(
                    [(item[field], w) for item, w in slot if item.get(field) is not None]
                )
            entry["condition"] = self._vote(
                [(item.get("condition"), w) for item, w in slot if item.get("condition")]
            ) or "Unknown"
            result.append(entry)
        return result

    @staticmethod
    def _weighted_mean(pairs) -> Optional[int]:
        total_weight = sum(w for _, w in pairs)
        if not pairs or total_weight <= 0:
            return None
        return int(round(sum(v * w for v, w in pairs) / total_weight))

    @staticmethod
    def _vote(pairs) -> Optional[str]:
        """Weighted vote; earliest candidate wins ties."""
        scores: Dict[str, float] = defaultdict(float)
        order: List[str] = []
        for value, weight in pairs:
            if value not in scores:
                order.append(value)
            scores[value] += weight
        if not order:
            return None
        return max(order, key=lambda value: scores[value])
