"""Scheduler module driving periodic probe cycles."""

from .probe_scheduler import ProbeScheduler

__all__ = ["ProbeScheduler"]
