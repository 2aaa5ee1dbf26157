from abc import ABC, abstractmethod
from functools import lru_cache

import psutil


class SystemMetricsProvider(ABC):
    """Host resource readings used by the pricing monitor."""

    @abstractmethod
    def memory_usage_mb(self) -> float:
        """Resident memory of the pricing process in MB."""

    @abstractmethod
    def cpu_usage_percent(self) -> float:
        """CPU utilisation in percent."""


class PsutilSystemMetricsProvider(SystemMetricsProvider):
    def __init__(self):
        self._process = psutil.Process()
        # First cpu_percent call only primes the counter and returns 0.0
        psutil.cpu_percent(interval=None)

    def memory_usage_mb(self) -> float:
        return self._process.memory_info().rss / (1024 * 1024)

    def cpu_usage_percent(self) -> float:
        return psutil.cpu_percent(interval=None)


class StaticSystemMetricsProvider(SystemMetricsProvider):
    """Fixed readings, for tests and environments without process access."""

    def __init__(self, memory_mb: float = 0.0, cpu_percent: float = 0.0):
        self.memory_mb = memory_mb
        self.cpu_percent = cpu_percent

    def memory_usage_mb(self) -> float:
        return self.memory_mb

    def cpu_usage_percent(self) -> float:
        return self.cpu_percent


@lru_cache
def get_system_metrics_provider() -> SystemMetricsProvider:
    return PsutilSystemMetricsProvider()
