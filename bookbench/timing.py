"""Named start/stop stopwatch used to instrument pipeline stages."""

import json
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager

from bookbench.errors import TimerError
from bookbench.models.metrics import TimerEntry

logger = logging.getLogger(__name__)


class Timer:
    """Map of labels to start/end timestamps and durations in milliseconds.

    Starting a label that is already running restarts it.
    """

    def __init__(self) -> None:
        self._metrics: dict[str, TimerEntry] = {}
        self._counters: dict[str, float] = {}

    def start(self, label: str) -> "Timer":
        if not label:
            raise ValueError("Timer label is required")
        self._metrics[label] = TimerEntry(start_time=time.time())
        self._counters[label] = time.perf_counter()
        return self

    def end(self, label: str) -> float:
        """Stop a running label and return its duration in milliseconds.

        Raises:
            TimerError: If the label was never started.
        """
        if not label or label not in self._metrics:
            raise TimerError(f'Timer with label "{label}" not found or not started')

        duration_ms = (time.perf_counter() - self._counters[label]) * 1000
        entry = self._metrics[label]
        entry.end_time = time.time()
        entry.duration_ms = duration_ms

        logger.info("[%s] Completed in %.0f ms", label, duration_ms)
        return duration_ms

    @contextmanager
    def measure(self, label: str) -> Iterator[None]:
        """Time the enclosed block, ending the label even if it raises."""
        self.start(label)
        try:
            yield
        finally:
            self.end(label)

    def get_metrics(self) -> dict[str, TimerEntry]:
        return self._metrics

    def get_duration(self, label: str) -> float | None:
        entry = self._metrics.get(label)
        return entry.duration_ms if entry else None

    def reset(self) -> "Timer":
        self._metrics = {}
        self._counters = {}
        return self

    def to_json(self) -> str:
        return json.dumps(
            {label: entry.model_dump() for label, entry in self._metrics.items()},
            indent=2,
        )
