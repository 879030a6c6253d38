"""Concurrency-safe probe outcome counters."""

from __future__ import annotations

import threading
from typing import Iterable, NamedTuple

import structlog

from ..models import OUTCOME_ORDER, Outcome


logger = structlog.get_logger(__name__)

METRIC_NAME = "check_count"
# Prometheus text format 0.0.4; the response layer appends the charset.
EXPOSITION_CONTENT_TYPE = "text/plain; version=0.0.4"


class CounterSample(NamedTuple):
    endpoint: str
    outcome: Outcome
    count: int


class MetricsRegistry:
    """Monotonic counters keyed by (endpoint, outcome).

    Entries are created on first increment, so outcomes that were never
    observed do not appear in snapshots. All access goes through
    ``increment`` and ``snapshot``; both hold the same lock for a constant
    amount of work, so a snapshot never sees a half-applied increment.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: dict[tuple[str, Outcome], int] = {}

    def increment(self, endpoint: str, outcome: Outcome) -> int:
        """Add one to the counter for ``(endpoint, outcome)`` and return the new value."""
        key = (endpoint, Outcome(outcome))
        with self._lock:
            value = self._counts.get(key, 0) + 1
            self._counts[key] = value
        logger.debug("Counter incremented", endpoint=endpoint, outcome=key[1].value, value=value)
        return value

    def snapshot(self) -> list[CounterSample]:
        """Point-in-time copy of every counter, ordered by endpoint then outcome."""
        with self._lock:
            items = list(self._counts.items())
        samples = [CounterSample(endpoint, outcome, count) for (endpoint, outcome), count in items]
        samples.sort(key=lambda s: (s.endpoint, OUTCOME_ORDER[s.outcome]))
        return samples

    def total(self, endpoint: str) -> int:
        """Number of completed probe cycles recorded for ``endpoint``."""
        with self._lock:
            return sum(count for (ep, _), count in self._counts.items() if ep == endpoint)


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def render_exposition(samples: Iterable[CounterSample], metric_name: str = METRIC_NAME) -> str:
    lines = [
        f'{metric_name}{{endpoint="{_escape_label_value(s.endpoint)}",result="{s.outcome.value}"}} {int(s.count)}'
        for s in samples
    ]
    if not lines:
        return ""
    return "\n".join(lines) + "\n"
