"""Request and storage timing (opt-in only).

Timings are kept in memory and optionally appended to a log file. Nothing
that identifies a user or repeats transcript text is recorded.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional

LOGGER = logging.getLogger("lingovox.metrics")

# A chunk upload slower than the chunk interval makes the queue grow.
CHUNK_UPLOAD_BUDGET_MS = 5000
HISTORY_WRITE_BUDGET_MS = 250

DEFAULT_BUDGETS_MS: Mapping[str, float] = {
    "api.transcribe_chunk": CHUNK_UPLOAD_BUDGET_MS,
    "history.write": HISTORY_WRITE_BUDGET_MS,
}


@dataclass
class MetricEvent:
    """One timed operation."""

    name: str
    duration_ms: float
    timestamp: float = field(default_factory=time.time)
    metadata: Dict[str, str] = field(default_factory=dict)

    def exceeds_budget(self, budget_ms: float) -> bool:
        return self.duration_ms > budget_ms

    def to_log_line(self) -> str:
        details = " ".join(f"{key}={value}" for key, value in sorted(self.metadata.items()))
        line = f"{self.name}: {self.duration_ms:.1f}ms"
        return f"{line} [{details}]" if details else line


@dataclass(frozen=True)
class MetricSummary:
    """Aggregate of every event recorded under one name."""

    name: str
    count: int
    total_ms: float
    max_ms: float
    over_budget: int = 0

    @property
    def mean_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    def to_log_line(self) -> str:
        return (
            f"{self.name}: n={self.count} mean={self.mean_ms:.1f}ms "
            f"max={self.max_ms:.1f}ms over_budget={self.over_budget}"
        )


class PerformanceMetrics:
    """Collects timings when telemetry is enabled and ignores them otherwise."""

    def __init__(
        self,
        enabled: bool = False,
        log_path: Optional[Path] = None,
        budgets: Optional[Mapping[str, float]] = None,
    ) -> None:
        self._enabled = enabled
        self._log_path = log_path
        self._budgets = dict(DEFAULT_BUDGETS_MS if budgets is None else budgets)
        self._events: list[MetricEvent] = []
        self._over_budget: Dict[str, int] = {}
        self._lock = threading.Lock()

        if enabled and log_path:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            LOGGER.info("Timing enabled; appending to %s", log_path)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def budget_for(self, name: str) -> Optional[float]:
        return self._budgets.get(name)

    def record(self, name: str, duration_ms: float, **metadata: str) -> MetricEvent:
        event = MetricEvent(name=name, duration_ms=duration_ms, metadata=metadata)
        if not self._enabled:
            return event

        with self._lock:
            self._events.append(event)
        LOGGER.debug("timing %s", event.to_log_line())
        if self._log_path:
            self._append(event)
        return event

    def check_budget(
        self,
        name: str,
        duration_ms: float,
        budget_ms: Optional[float] = None,
        **metadata: str,
    ) -> bool:
        """Record an event; returns False and warns when it ran over budget.

        Without ``budget_ms`` the budget registered for ``name`` applies.
        Names with no budget are always within it.
        """
        event = self.record(name, duration_ms, **metadata)
        budget = budget_ms if budget_ms is not None else self._budgets.get(name)
        if budget is None or not event.exceeds_budget(budget):
            return True
        if self._enabled:
            with self._lock:
                self._over_budget[name] = self._over_budget.get(name, 0) + 1
            LOGGER.warning(
                "%s took %.1fms, over its %.0fms budget", name, duration_ms, budget
            )
        return False

    @contextmanager
    def timed(self, name: str, **metadata: str) -> Iterator[Dict[str, str]]:
        """Time the ``with`` body against the budget registered for ``name``.

        The yielded dict is the event metadata; the body may add entries.
        Nothing is recorded when the body raises.
        """
        details = dict(metadata)
        start = time.perf_counter()
        yield details
        self.check_budget(name, (time.perf_counter() - start) * 1000, **details)

    def summary(self) -> list[MetricSummary]:
        """Per-name aggregates, sorted by name."""
        with self._lock:
            events = list(self._events)
            over_budget = dict(self._over_budget)

        totals: Dict[str, list[float]] = {}
        for event in events:
            totals.setdefault(event.name, []).append(event.duration_ms)
        return [
            MetricSummary(
                name=name,
                count=len(durations),
                total_ms=sum(durations),
                max_ms=max(durations),
                over_budget=over_budget.get(name, 0),
            )
            for name, durations in sorted(totals.items())
        ]

    def get_events(self) -> list[MetricEvent]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
            self._over_budget.clear()

    def _append(self, event: MetricEvent) -> None:
        assert self._log_path is not None
        try:
            with open(self._log_path, "a", encoding="utf-8") as f:
                f.write(f"{event.timestamp:.3f},{event.to_log_line()}\n")
        except OSError as exc:
            LOGGER.warning("Could not append to %s: %s", self._log_path, exc)


_global_metrics: Optional[PerformanceMetrics] = None


def initialize_metrics(enabled: bool, log_path: Optional[Path] = None) -> None:
    """Replace the process-wide metrics instance."""
    global _global_metrics
    _global_metrics = PerformanceMetrics(enabled=enabled, log_path=log_path)


def get_metrics() -> PerformanceMetrics:
    """Return the process-wide metrics instance (disabled until initialized)."""
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = PerformanceMetrics(enabled=False)
    return _global_metrics
