"""
Offline weather cache with TTL support, backed by SQLite.

Entries are keyed by coordinates rounded to two decimals, so nearby requests
share one slot. The cache is a best-effort optimisation: every public
operation logs and degrades to a safe default instead of raising.
"""
import json
import logging
import math
import sqlite3
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from utils.metrics import cache_operation_counter

logger = logging.getLogger(__name__)

CACHE_EXPIRY_HOURS = 6

_SCHEMA = """
CREATE TABLE IF NOT EXISTS weather_data (
    id TEXT PRIMARY KEY,
    latitude REAL NOT NULL,
    longitude REAL NOT NULL,
    location_name TEXT NOT NULL,
    data TEXT NOT NULL,
    timestamp INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_weather_data_timestamp ON weather_data (timestamp);
"""


def round_coordinate(value: float) -> float:
    """Round to two decimals, exact halves going up (-0.125 -> -0.12)."""
    rounded = math.floor(value * 100 + 0.5) / 100
    if rounded == 0:
        # -0.00 and 0.00 must map to the same slot
        return 0.0
    return rounded


def get_cache_id(lat: float, lon: float) -> str:
    """Generate cache key from coordinates."""
    return f"weather_{round_coordinate(lat):.2f}_{round_coordinate(lon):.2f}"


class OfflineWeatherCache:
    def __init__(
        self,
        db_path: str = ":memory:",
        ttl_hours: float = CACHE_EXPIRY_HOURS,
        clock: Callable[[], float] = time.time,
    ):
        self.db_path = db_path
        self.ttl_hours = ttl_hours
        self._clock = clock
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    @property
    def ttl_ms(self) -> int:
        return int(self.ttl_hours * 60 * 60 * 1000)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _connect(self) -> sqlite3.Connection:
        """Open the database once; later callers reuse the same handle."""
        with self._lock:
            if self._conn is None:
                conn = sqlite3.connect(self.db_path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                conn.executescript(_SCHEMA)
                conn.commit()
                self._conn = conn
                logger.info(f"Offline cache opened at {self.db_path}")
            return self._conn

    def _is_valid(self, timestamp: int) -> bool:
        return self._now_ms() - timestamp < self.ttl_ms

    def cache_weather_data(
        self, lat: float, lon: float, location_name: str, data: Any
    ) -> bool:
        """Save weather data with the current timestamp. Returns False on failure."""
        cache_id = None
        try:
            cache_id = get_cache_id(lat, lon)
            payload = json.dumps(data)
            with self._lock:
                conn = self._connect()
                conn.execute(
                    "INSERT OR REPLACE INTO weather_data "
                    "(id, latitude, longitude, location_name, data, timestamp) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        cache_id,
                        round_coordinate(lat),
                        round_coordinate(lon),
                        location_name,
                        payload,
                        self._now_ms(),
                    ),
                )
                conn.commit()
            cache_operation_counter.labels(operation="write", result="ok").inc()
            return True
        except (sqlite3.Error, ArithmeticError, TypeError, ValueError) as e:
            logger.error(
                f"Failed to cache weather data: {e}", extra={"location_key": cache_id}
            )
            cache_operation_counter.labels(operation="write", result="error").inc()
            return False

    def get_cached_weather_data(
        self, lat: float, lon: float
    ) -> Optional[Dict[str, Any]]:
        """Get cached weather data if present and not expired."""
        cache_id = None
        try:
            cache_id = get_cache_id(lat, lon)
            with self._lock:
                row = (
                    self._connect()
                    .execute("SELECT * FROM weather_data WHERE id = ?", (cache_id,))
                    .fetchone()
                )
            if row is None or not self._is_valid(row["timestamp"]):
                cache_operation_counter.labels(operation="read", result="miss").inc()
                return None

            cache_operation_counter.labels(operation="read", result="hit").inc()
            return {
                "data": json.loads(row["data"]),
                "timestamp": row["timestamp"],
                "location_name": row["location_name"],
            }
        except (sqlite3.Error, ArithmeticError, ValueError) as e:
            logger.error(
                f"Failed to get cached weather data: {e}",
                extra={"location_key": cache_id},
            )
            cache_operation_counter.labels(operation="read", result="error").inc()
            return None

    def clear_weather_cache(self) -> bool:
        """Clear all cached weather data."""
        try:
            with self._lock:
                conn = self._connect()
                conn.execute("DELETE FROM weather_data")
                conn.commit()
            return True
        except sqlite3.Error as e:
            logger.error(f"Error clearing weather cache: {e}")
            return False

    def cleanup_expired_cache(self) -> None:
        """Delete entries older than the validity window."""
        expiry_time = self._now_ms() - self.ttl_ms
        try:
            with self._lock:
                conn = self._connect()
                expired = [
                    row["id"]
                    for row in conn.execute(
                        "SELECT id FROM weather_data WHERE timestamp <= ? "
                        "ORDER BY timestamp",
                        (expiry_time,),
                    )
                ]
                conn.executemany(
                    "DELETE FROM weather_data WHERE id = ?",
                    [(cache_id,) for cache_id in expired],
                )
                conn.commit()
            if expired:
                logger.info(f"Removed {len(expired)} expired cache entries")
        except sqlite3.Error as e:
            logger.error(f"Error cleaning up cache: {e}")

    def get_cache_stats(self) -> Dict[str, Optional[int]]:
        """Get cache statistics."""
        try:
            with self._lock:
                row = (
                    self._connect()
                    .execute(
                        "SELECT COUNT(*) AS count, MIN(timestamp) AS oldest, "
                        "MAX(timestamp) AS newest FROM weather_data"
                    )
                    .fetchone()
                )
            return {
                "count": row["count"],
                "oldest_timestamp": row["oldest"],
                "newest_timestamp": row["newest"],
            }
        except sqlite3.Error as e:
            logger.error(f"Error getting cache stats: {e}")
            return {"count": 0, "oldest_timestamp": None, "newest_timestamp": None}

    def get_all_cached_locations(self) -> List[Dict[str, Any]]:
        """Get all valid cached locations, newest first."""
        try:
            with self._lock:
                rows = (
                    self._connect()
                    .execute("SELECT * FROM weather_data ORDER BY timestamp DESC")
                    .fetchall()
                )
            return [
                {
                    "latitude": row["latitude"],
                    "longitude": row["longitude"],
                    "location_name": row["location_name"],
                    "data": json.loads(row["data"]),
                    "timestamp": row["timestamp"],
                }
                for row in rows
                if self._is_valid(row["timestamp"])
            ]
        except (sqlite3.Error, ValueError) as e:
            logger.error(f"Error listing cached locations: {e}")
            return []

    def get_most_recent_cached_location(self) -> Optional[Dict[str, Any]]:
        """Get the most recently cached valid location, for offline start-up."""
        locations = self.get_all_cached_locations()
        return locations[0] if locations else None

    def is_offline_cache_supported(self) -> bool:
        """Check that the storage engine is available in this runtime."""
        try:
            self._connect()
            return True
        except sqlite3.Error as e:
            logger.warning(f"Offline cache unavailable: {e}")
            return False

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
