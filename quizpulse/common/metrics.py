"""
Metrics Framework

Lightweight counters and timers for the scoring and monitoring pipeline.
Metrics go to a pluggable backend: the default one writes them to the log,
the in-memory one keeps them for inspection in tests.
"""

import time
import logging
import threading
import contextlib
from typing import Dict, List, Optional
from abc import ABC, abstractmethod
from collections import defaultdict

from quizpulse.common.logger import app_logger

# Module logger
logger = app_logger.getChild("metrics")


class MetricsBackend(ABC):
    """Abstract base class for metrics backends."""

    @abstractmethod
    def increment_counter(self, name: str, value: float = 1.0, labels: Dict[str, str] = None) -> None:
        """Increment a counter."""
        pass

    @abstractmethod
    def observe_timer(self, name: str, value_ms: float, labels: Dict[str, str] = None) -> None:
        """Record a timing observation."""
        pass

    def flush(self) -> None:
        """Flush metrics to the backend."""
        pass


class LoggingMetricsBackend(MetricsBackend):
    """Metrics backend that logs metrics at debug level."""

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or app_logger.getChild("metrics")

    def increment_counter(self, name: str, value: float = 1.0, labels: Dict[str, str] = None) -> None:
        self.logger.debug(f"METRIC_COUNTER {name}{self._format_labels(labels)} {value}")

    def observe_timer(self, name: str, value_ms: float, labels: Dict[str, str] = None) -> None:
        self.logger.debug(f"METRIC_TIMER {name}{self._format_labels(labels)} {value_ms:.2f}ms")

    def _format_labels(self, labels: Dict[str, str] = None) -> str:
        if not labels:
            return ""
        return "{" + ", ".join(f"{k}={v}" for k, v in labels.items()) + "}"


class InMemoryMetricsBackend(MetricsBackend):
    """
    Metrics backend that stores metrics in memory.

    Used by the test suite to assert on counters.
    """

    def __init__(self):
        self.counters = defaultdict(float)
        self.timers = defaultdict(list)
        self.lock = threading.RLock()

    def increment_counter(self, name: str, value: float = 1.0, labels: Dict[str, str] = None) -> None:
        key = self._get_key(name, labels)
        with self.lock:
            self.counters[key] += value

    def observe_timer(self, name: str, value_ms: float, labels: Dict[str, str] = None) -> None:
        key = self._get_key(name, labels)
        with self.lock:
            self.timers[key].append(value_ms)

    def flush(self) -> None:
        """Clear all stored metrics."""
        with self.lock:
            self.counters.clear()
            self.timers.clear()

    def get_counter(self, name: str, labels: Dict[str, str] = None) -> float:
        """Get the current value of a counter."""
        key = self._get_key(name, labels)
        with self.lock:
            return self.counters.get(key, 0.0)

    def get_timer_values(self, name: str, labels: Dict[str, str] = None) -> List[float]:
        """Get all timing observations."""
        key = self._get_key(name, labels)
        with self.lock:
            return self.timers.get(key, [])[:]

    def _get_key(self, name: str, labels: Dict[str, str] = None) -> str:
        if not labels:
            return name
        # Sort labels by key to ensure consistent key generation
        sorted_labels = [f"{k}:{v}" for k, v in sorted(labels.items())]
        return f"{name}:{','.join(sorted_labels)}"


class MetricsService:
    """
    Facade over the configured metrics backend.
    """

    _instance = None  # Singleton instance

    @classmethod
    def get_instance(cls) -> 'MetricsService':
        """Get the singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __init__(self, backend: Optional[MetricsBackend] = None):
        self.backend = backend or LoggingMetricsBackend()

    def set_backend(self, backend: MetricsBackend) -> None:
        """Set the metrics backend."""
        self.backend = backend

    def counter(self, name: str, value: float = 1.0, labels: Dict[str, str] = None) -> None:
        """Increment a counter."""
        self.backend.increment_counter(name, value, labels)

    def timer(self, name: str, value_ms: float, labels: Dict[str, str] = None) -> None:
        """Record a timing in milliseconds."""
        self.backend.observe_timer(name, value_ms, labels)

    @contextlib.contextmanager
    def timer_context(self, name: str, labels: Dict[str, str] = None):
        """
        Context manager for timing a block of code.

        Args:
            name: Metric name
            labels: Optional labels
        """
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self.timer(name, (time.perf_counter() - start_time) * 1000.0, labels)

    def flush(self) -> None:
        """Flush metrics to the backend."""
        self.backend.flush()


def get_metrics_service() -> MetricsService:
    """Get the default metrics service."""
    return MetricsService.get_instance()


def set_metrics_backend(backend: MetricsBackend) -> None:
    """Set the backend for the default metrics service."""
    get_metrics_service().set_backend(backend)
