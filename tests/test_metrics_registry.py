from __future__ import annotations

import random
import threading

from node_monitor.metrics import MetricsRegistry, render_exposition
from node_monitor.models import Outcome


ENDPOINT = "wss://rpc.example.org"


def test_entries_are_created_lazily() -> None:
    registry = MetricsRegistry()
    assert registry.snapshot() == []

    registry.increment(ENDPOINT, Outcome.TIMEOUT)
    snap = registry.snapshot()
    assert [(s.endpoint, s.outcome, s.count) for s in snap] == [(ENDPOINT, Outcome.TIMEOUT, 1)]


def test_snapshot_counts_match_sequence_tally() -> None:
    rng = random.Random(1234)
    outcomes = [rng.choice(list(Outcome)) for _ in range(500)]
    registry = MetricsRegistry()
    for outcome in outcomes:
        registry.increment(ENDPOINT, outcome)

    snap = registry.snapshot()
    assert sum(s.count for s in snap) == len(outcomes)
    assert registry.total(ENDPOINT) == len(outcomes)
    for sample in snap:
        assert sample.count == outcomes.count(sample.outcome)
    assert {s.outcome for s in snap} == set(outcomes)


def test_snapshot_is_ordered_by_outcome_declaration() -> None:
    registry = MetricsRegistry()
    for outcome in (Outcome.REQUEST_ERROR, Outcome.TIMEOUT, Outcome.SUCCESS, Outcome.CONNECTION_ERROR):
        registry.increment(ENDPOINT, outcome)
    assert [s.outcome for s in registry.snapshot()] == list(Outcome)


def test_increment_accepts_outcome_value_strings() -> None:
    registry = MetricsRegistry()
    assert registry.increment(ENDPOINT, "SUCCESS") == 1
    assert registry.increment(ENDPOINT, Outcome.SUCCESS) == 2
    assert registry.snapshot()[0].outcome is Outcome.SUCCESS


def test_concurrent_increments_are_not_lost() -> None:
    registry = MetricsRegistry()
    per_thread = 2000
    threads = [
        threading.Thread(target=lambda: [registry.increment(ENDPOINT, Outcome.SUCCESS) for _ in range(per_thread)])
        for _ in range(8)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert registry.total(ENDPOINT) == 8 * per_thread


def test_snapshots_during_increments_are_monotonic() -> None:
    registry = MetricsRegistry()
    stop = threading.Event()
    observed: list[int] = []

    def reader() -> None:
        while not stop.is_set():
            snap = registry.snapshot()
            observed.append(sum(s.count for s in snap))

    t = threading.Thread(target=reader)
    t.start()
    try:
        for i in range(5000):
            registry.increment(ENDPOINT, Outcome.SUCCESS if i % 2 else Outcome.TIMEOUT)
    finally:
        stop.set()
        t.join(timeout=30)

    assert observed == sorted(observed)
    assert all(0 <= v <= 5000 for v in observed)
    assert registry.total(ENDPOINT) == 5000


def test_render_matches_exposition_lines() -> None:
    registry = MetricsRegistry()
    for outcome in (Outcome.SUCCESS, Outcome.TIMEOUT, Outcome.SUCCESS):
        registry.increment(ENDPOINT, outcome)

    text = render_exposition(registry.snapshot())
    assert text.splitlines() == [
        'check_count{endpoint="wss://rpc.example.org",result="SUCCESS"} 2',
        'check_count{endpoint="wss://rpc.example.org",result="TIMEOUT"} 1',
    ]
    assert text.endswith("\n")


def test_render_is_idempotent() -> None:
    registry = MetricsRegistry()
    registry.increment(ENDPOINT, Outcome.CONNECTION_ERROR)
    registry.increment(ENDPOINT, Outcome.REQUEST_ERROR)
    snap = registry.snapshot()
    assert render_exposition(snap) == render_exposition(snap)


def test_render_empty_snapshot_is_empty() -> None:
    assert render_exposition([]) == ""


def test_render_escapes_label_values() -> None:
    registry = MetricsRegistry()
    registry.increment('ws://host/"odd"\\path', Outcome.SUCCESS)
    text = render_exposition(registry.snapshot())
    assert text == 'check_count{endpoint="ws://host/\\"odd\\"\\\\path",result="SUCCESS"} 1\n'
