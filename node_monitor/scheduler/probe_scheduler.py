"""Fixed-interval probe scheduling using APScheduler."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import structlog
from apscheduler.events import EVENT_JOB_MAX_INSTANCES, JobSubmissionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..metrics import MetricsRegistry
from ..models import ProbeResult
from ..probe import ProbeExecutor


logger = structlog.get_logger(__name__)


class ProbeScheduler:
    """Triggers one probe cycle per interval and records each outcome.

    Ticks are anchored to the interval start, not to cycle completion. At most
    one cycle is in flight: a tick that arrives while a cycle is still running
    is skipped and the next aligned tick is used instead.
    """

    JOB_ID = "node_probe"

    def __init__(
        self,
        executor: ProbeExecutor,
        registry: MetricsRegistry,
        *,
        interval_seconds: float,
        scheduler: AsyncIOScheduler | None = None,
    ):
        self.executor = executor
        self.registry = registry
        self.interval_seconds = float(interval_seconds)
        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self.running = False
        self._stopping = False

        self._slot = asyncio.Lock()
        self.cycles_completed = 0
        self.cycles_skipped = 0
        self.last_result: ProbeResult | None = None

    @property
    def endpoint(self) -> str:
        return self.executor.endpoint

    async def start(self):
        """Schedule the probe job and start the scheduler. The first cycle runs immediately."""
        if self.running:
            logger.warning("Probe scheduler already running")
            return

        self.scheduler.add_job(
            func=self.run_cycle,
            trigger=IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc),
            id=self.JOB_ID,
            name=f"Probe {self.endpoint}",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            next_run_time=datetime.now(timezone.utc),
        )
        self.scheduler.add_listener(self._on_tick_skipped, EVENT_JOB_MAX_INSTANCES)
        self._stopping = False
        self.scheduler.start()
        self.running = True
        logger.info("Probe scheduler started", endpoint=self.endpoint, interval_seconds=self.interval_seconds)

    async def stop(self):
        """Stop the scheduler; an in-flight cycle is cancelled."""
        if not self.running:
            return

        self._stopping = True
        self.scheduler.remove_listener(self._on_tick_skipped)
        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Probe scheduler stopped", endpoint=self.endpoint, cycles_completed=self.cycles_completed)

    async def run_cycle(self) -> ProbeResult | None:
        """Run one probe cycle and record its outcome.

        Returns ``None`` when another cycle still holds the slot.
        """
        if self._slot.locked():
            self._record_skip()
            return None

        async with self._slot:
            try:
                result = await self.executor.execute()
            except asyncio.CancelledError:
                if not self._stopping:
                    raise
                logger.debug("Probe cycle cancelled by shutdown", endpoint=self.endpoint)
                return None
            except Exception:
                logger.exception("Probe cycle crashed", endpoint=self.endpoint)
                return None

            self.registry.increment(self.endpoint, result.outcome)
            self.cycles_completed += 1
            self.last_result = result
            logger.info(
                "Probe cycle complete",
                endpoint=self.endpoint,
                outcome=result.outcome.value,
                elapsed_seconds=result.elapsed_seconds,
            )
            return result

    def _on_tick_skipped(self, event: JobSubmissionEvent) -> None:
        if event.job_id == self.JOB_ID:
            self._record_skip()

    def _record_skip(self) -> None:
        self.cycles_skipped += 1
        logger.warning("Previous probe cycle still running, skipping tick", endpoint=self.endpoint)

    def get_status(self) -> dict[str, Any]:
        """Get scheduler status for the health endpoint."""
        job = self.scheduler.get_job(self.JOB_ID) if self.running else None
        next_run = getattr(job, "next_run_time", None) if job is not None else None
        return {
            "running": self.running,
            "interval_seconds": self.interval_seconds,
            "next_run": next_run.isoformat() if next_run else None,
            "cycles_completed": self.cycles_completed,
            "cycles_skipped": self.cycles_skipped,
            "last_result": self.last_result.to_dict() if self.last_result else None,
        }
