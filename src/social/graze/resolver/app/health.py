import asyncio
import logging
from typing import NoReturn

logger = logging.getLogger(__name__)


class HealthGauge:
    """
    Error-burst health check for readiness probes.

    Unexpected failures (driver crashes, extension errors, unhandled handler
    exceptions) bump the gauge; a background task decays it once per tick. While
    the value stays above the threshold the service reports itself not ready.
    Expected resolution outcomes such as notFound or invalidDid do not count.
    """

    def __init__(self, value: int = 0, health_threshold: int = 100) -> None:
        self._value = value
        self._health_threshold = health_threshold
        self._lock = asyncio.Lock()

    @property
    def value(self) -> int:
        return self._value

    async def womp(self, d=1) -> int:
        async with self._lock:
            self._value += int(d)
            return self._value

    async def tick(self) -> None:
        async with self._lock:
            if self._value > 0:
                self._value -= 1

    async def is_healthy(self) -> bool:
        async with self._lock:
            return self._value <= self._health_threshold


async def tick_health_task(health_gauge: HealthGauge, interval: float = 30) -> NoReturn:
    """Decay the health gauge by one every interval seconds."""
    logger.info("Starting health gauge task")
    while True:
        await health_gauge.tick()
        await asyncio.sleep(interval)
