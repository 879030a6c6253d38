"""Outcome counters and their text exposition."""

from .registry import EXPOSITION_CONTENT_TYPE, CounterSample, MetricsRegistry, render_exposition

__all__ = ["EXPOSITION_CONTENT_TYPE", "CounterSample", "MetricsRegistry", "render_exposition"]
