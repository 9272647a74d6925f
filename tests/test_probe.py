"""
tests/test_probe.py
───────────────────
Probe composition: fan-out, policy throttling and the logging sink.
"""

from __future__ import annotations

import logging
from typing import List, Tuple

import numpy as np

from aco_engine.models import Solution
from aco_engine.probe import (
    AggregatedProbe,
    ElapsedTimePolicy,
    IterationIntervalPolicy,
    LoggingProbe,
    PolicyDrivenProbe,
    Probe,
)


# ─────────────────────────────────────────────────────────────────────────────
# HELPERS — fixture factories
# ─────────────────────────────────────────────────────────────────────────────

class RecordingProbe(Probe):
    """Appends (event, payload) for every hook."""

    def __init__(self, name: str = "", log: List[Tuple] = None) -> None:
        self.name = name
        self.events: List[Tuple] = log if log is not None else []

    def on_run_start(self, pheromone):
        self.events.append((self.name, "run_start"))

    def on_iteration_start(self, iteration):
        self.events.append((self.name, "iteration_start", iteration))

    def on_current_best(self, best):
        self.events.append((self.name, "current_best"))

    def on_new_overall_best(self, best):
        self.events.append((self.name, "new_overall_best"))

    def on_pheromone_update(self, old, new):
        self.events.append((self.name, "pheromone_update"))

    def on_iteration_end(self, iteration):
        self.events.append((self.name, "iteration_end", iteration))

    def on_end(self, best):
        self.events.append((self.name, "end"))


def _drive(probe: Probe, iterations: int) -> None:
    """Feed a probe the event sequence of a run with a new best every iteration."""
    best = Solution(path=(0, 1, 2), cost=3.0, fitness=1.0 / 3.0)
    tau = np.ones((3, 3))
    probe.on_run_start(tau)
    for i in range(iterations):
        probe.on_iteration_start(i)
        probe.on_current_best(best)
        probe.on_new_overall_best(best)
        probe.on_pheromone_update(tau, tau)
        probe.on_iteration_end(i)
    probe.on_end(best)


class FakeClock:

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 1 — Composition
# ─────────────────────────────────────────────────────────────────────────────

class TestAggregatedProbe:

    def test_fans_out_in_insertion_order(self):
        shared: List[Tuple] = []
        probe = AggregatedProbe(RecordingProbe("a", shared)).add(RecordingProbe("b", shared))
        probe.on_iteration_start(4)
        probe.on_end(None)
        assert shared == [
            ("a", "iteration_start", 4),
            ("b", "iteration_start", 4),
            ("a", "end"),
            ("b", "end"),
        ]

    def test_base_probe_is_noop(self):
        _drive(Probe(), 3)


class TestPolicyDrivenProbe:

    def test_interval_policy_forwards_selected_iterations(self):
        inner = RecordingProbe()
        _drive(PolicyDrivenProbe(IterationIntervalPolicy(interval=2), inner), 5)

        starts = [e[2] for e in inner.events if e[1] == "iteration_start"]
        ends = [e[2] for e in inner.events if e[1] == "iteration_end"]
        assert starts == [0, 2, 4]
        assert ends == [0, 2, 4]
        assert sum(e[1] == "current_best" for e in inner.events) == 3
        assert sum(e[1] == "pheromone_update" for e in inner.events) == 3

    def test_run_boundaries_always_forwarded(self):
        inner = RecordingProbe()
        _drive(PolicyDrivenProbe(IterationIntervalPolicy(interval=10, first=3), inner), 5)
        kinds = [e[1] for e in inner.events]
        assert kinds[0] == "run_start"
        assert kinds[-1] == "end"
        assert [e[2] for e in inner.events if e[1] == "iteration_start"] == [3]

    def test_new_bests_follow_the_policy(self):
        inner = RecordingProbe()
        _drive(PolicyDrivenProbe(IterationIntervalPolicy(interval=10, first=3), inner), 5)
        kinds = [e[1] for e in inner.events]
        # Only iteration 3 is selected; its new best sits inside its bracket
        assert kinds.count("new_overall_best") == 1
        assert kinds[1:6] == [
            "iteration_start", "current_best", "new_overall_best",
            "pheromone_update", "iteration_end",
        ]

    def test_elapsed_time_policy(self):
        clock = FakeClock()
        policy = ElapsedTimePolicy(1.0, clock=clock)
        decisions = []
        for i, now in enumerate([0.0, 0.5, 1.0, 1.2, 2.5]):
            clock.now = now
            decisions.append(policy.should_probe(i))
        assert decisions == [True, False, True, False, True]


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 2 — Logging sink
# ─────────────────────────────────────────────────────────────────────────────

class TestLoggingProbe:

    def test_writes_run_summary_and_new_bests(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="aco_engine.probe"):
            _drive(LoggingProbe(), 2)
        messages = [r.getMessage() for r in caplog.records]
        assert any("Run started" in m for m in messages)
        assert sum("new overall best" in m for m in messages) == 2
        assert any("Run ended: best cost=3" in m for m in messages)

    def test_per_iteration_level_configurable(self, caplog):
        with caplog.at_level(logging.INFO, logger="aco_engine.probe"):
            _drive(LoggingProbe(level=logging.DEBUG), 2)
        assert not any("pheromone min" in r.getMessage() for r in caplog.records)

    def test_iteration_without_tour(self, caplog):
        probe = LoggingProbe()
        with caplog.at_level(logging.DEBUG, logger="aco_engine.probe"):
            probe.on_iteration_start(6)
            probe.on_current_best(None)
        assert caplog.records[-1].getMessage() == "Iteration 6: no tour produced"

    def test_end_without_solution(self, caplog):
        with caplog.at_level(logging.INFO, logger="aco_engine.probe"):
            LoggingProbe().on_end(None)
        assert "without a solution" in caplog.records[-1].getMessage()
