"""
Entitlement capability: whether the viewer may use the offline cache.
"""
import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Entitlement:
    """
    Resolves a checker once and holds the answer until invalidated.

    With a ttl_seconds the answer is also re-resolved after it ages out.
    Checker errors resolve to "not entitled".
    """

    def __init__(
        self,
        checker: Callable[[], bool],
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._checker = checker
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: Optional[bool] = None
        self._resolved_at = 0.0
        self._lock = threading.Lock()

    def is_entitled(self) -> bool:
        with self._lock:
            if self._value is None or self._expired():
                self._value = self._resolve()
                self._resolved_at = self._clock()
            return self._value

    def invalidate(self) -> None:
        with self._lock:
            self._value = None

    def refresh(self) -> bool:
        self.invalidate()
        return self.is_entitled()

    def _expired(self) -> bool:
        if self.ttl_seconds is None:
            return False
        return self._clock() - self._resolved_at >= self.ttl_seconds

    def _resolve(self) -> bool:
        try:
            value = bool(self._checker())
        except Exception as e:
            # The checker is an external billing integration; any failure means no access
            logger.error(f"Entitlement check failed: {e}")
            return False
        logger.info(f"Entitlement resolved: {value}")
        return value


class StaticEntitlement(Entitlement):
    """Fixed answer, used when every viewer gets the offline cache."""

    def __init__(self, value: bool = True):
        super().__init__(lambda: value)
