"""Shared value types for probe cycles."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class Outcome(str, Enum):
    """Classification of a single probe cycle.

    Declaration order is the order used when rendering metrics.
    """

    SUCCESS = "SUCCESS"
    TIMEOUT = "TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    REQUEST_ERROR = "REQUEST_ERROR"


OUTCOME_ORDER: dict[Outcome, int] = {outcome: idx for idx, outcome in enumerate(Outcome)}


@dataclass(frozen=True)
class ProbeResult:
    outcome: Outcome
    timestamp: datetime
    elapsed_seconds: float
    block_hash: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "timestamp": self.timestamp.isoformat(),
            "elapsed_seconds": self.elapsed_seconds,
            "block_hash": self.block_hash,
            "error": self.error,
        }
