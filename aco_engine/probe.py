"""
aco_engine/probe.py
───────────────────
Probes: output-only observers of a run.

A probe never influences the search. The orchestrator calls it at fixed
points, in this order:

  on_run_start(pheromone)
  per iteration:
    on_iteration_start(i)
    on_current_best(best)            ← every iteration; None if all ants got stuck
    on_new_overall_best(best)        ← only if the overall best improved
    on_pheromone_update(old, new)
    on_iteration_end(i)
  on_end(best)

Every method on the base class is a no-op, so a probe overrides only what
it cares about. Arrays handed to probes are the live ones: a probe that
wants to keep a matrix must copy it.

If a probe raises, the orchestrator logs the exception and carries on.

Composition
───────────
  LoggingProbe       → writes events to stdlib logging.
  AggregatedProbe    → fans every event out to several probes, in order.
  PolicyDrivenProbe  → forwards only the iterations a ProbingPolicy picks.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

import numpy as np

from aco_engine.models import PheromoneArray, Solution

logger = logging.getLogger(__name__)


class Probe:
    """Base probe. Every hook is a no-op."""

    def on_run_start(self, pheromone: PheromoneArray) -> None:
        pass

    def on_iteration_start(self, iteration: int) -> None:
        pass

    def on_current_best(self, best: Optional[Solution]) -> None:
        pass

    def on_new_overall_best(self, best: Solution) -> None:
        pass

    def on_pheromone_update(self, old: PheromoneArray, new: PheromoneArray) -> None:
        pass

    def on_iteration_end(self, iteration: int) -> None:
        pass

    def on_end(self, best: Optional[Solution]) -> None:
        pass


# ─────────────────────────────────────────────────────────────────────────────
# SINKS
# ─────────────────────────────────────────────────────────────────────────────

class LoggingProbe(Probe):
    """
    Writes run events to a stdlib logger.

    Per-iteration events go out at `level` (DEBUG by default); new overall
    bests and the run summary at INFO. The probe never configures handlers.
    """

    def __init__(
        self,
        log: Optional[logging.Logger] = None,
        level: int = logging.DEBUG,
    ) -> None:
        self.log = log if log is not None else logger
        self.level = level
        self._iteration: int = 0

    def on_run_start(self, pheromone: PheromoneArray) -> None:
        self.log.info(
            "Run started: pheromone shape=%s, mean=%.6g",
            pheromone.shape, float(np.mean(pheromone)),
        )

    def on_iteration_start(self, iteration: int) -> None:
        self._iteration = iteration

    def on_current_best(self, best: Optional[Solution]) -> None:
        if best is None:
            self.log.log(self.level, "Iteration %d: no tour produced", self._iteration)
            return
        self.log.log(
            self.level, "Iteration %d: best cost=%.6g", self._iteration, best.cost
        )

    def on_new_overall_best(self, best: Solution) -> None:
        self.log.info(
            "Iteration %d: new overall best cost=%.6g", self._iteration, best.cost
        )

    def on_pheromone_update(self, old: PheromoneArray, new: PheromoneArray) -> None:
        self.log.log(
            self.level,
            "Iteration %d: pheromone min=%.6g max=%.6g (Δmean=%.6g)",
            self._iteration, float(new.min()), float(new.max()),
            float(np.mean(new) - np.mean(old)),
        )

    def on_end(self, best: Optional[Solution]) -> None:
        if best is None:
            self.log.info("Run ended without a solution")
        else:
            self.log.info("Run ended: best cost=%.6g, path=%s", best.cost, best.path)


class AggregatedProbe(Probe):
    """Forwards every event to each child probe, in insertion order."""

    def __init__(self, *probes: Probe) -> None:
        self.probes: List[Probe] = list(probes)

    def add(self, probe: Probe) -> "AggregatedProbe":
        self.probes.append(probe)
        return self

    def on_run_start(self, pheromone: PheromoneArray) -> None:
        for probe in self.probes:
            probe.on_run_start(pheromone)

    def on_iteration_start(self, iteration: int) -> None:
        for probe in self.probes:
            probe.on_iteration_start(iteration)

    def on_current_best(self, best: Optional[Solution]) -> None:
        for probe in self.probes:
            probe.on_current_best(best)

    def on_new_overall_best(self, best: Solution) -> None:
        for probe in self.probes:
            probe.on_new_overall_best(best)

    def on_pheromone_update(self, old: PheromoneArray, new: PheromoneArray) -> None:
        for probe in self.probes:
            probe.on_pheromone_update(old, new)

    def on_iteration_end(self, iteration: int) -> None:
        for probe in self.probes:
            probe.on_iteration_end(iteration)

    def on_end(self, best: Optional[Solution]) -> None:
        for probe in self.probes:
            probe.on_end(best)


# ─────────────────────────────────────────────────────────────────────────────
# PROBING POLICIES
# ─────────────────────────────────────────────────────────────────────────────

class ProbingPolicy:
    """
    Decides which iterations a PolicyDrivenProbe forwards.

    should_probe(iteration) is asked once, at iteration start. The answer
    holds for every per-iteration event up to and including iteration end.
    """

    def should_probe(self, iteration: int) -> bool:
        return True


class IterationIntervalPolicy(ProbingPolicy):
    """
    Forward iteration `first`, then every `interval`-th iteration after it.

    IterationIntervalPolicy(interval=10, first=0) → 0, 10, 20, …
    """

    def __init__(self, interval: int, first: int = 0) -> None:
        if interval < 1:
            raise ValueError(f"interval must be ≥1, got {interval}")
        self.interval = interval
        self._threshold = first

    def should_probe(self, iteration: int) -> bool:
        if iteration >= self._threshold:
            self._threshold += self.interval
            return True
        return False


class ElapsedTimePolicy(ProbingPolicy):
    """
    Forward an iteration only if at least `interval_s` seconds passed since
    the last forwarded one. The first iteration is always forwarded.
    """

    def __init__(
        self,
        interval_s: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_s < 0.0:
            raise ValueError(f"interval_s must be ≥0, got {interval_s}")
        self.interval_s = float(interval_s)
        self._clock = clock
        self._last: Optional[float] = None

    def should_probe(self, iteration: int) -> bool:
        now = self._clock()
        if self._last is None or now - self._last >= self.interval_s:
            self._last = now
            return True
        return False


class PolicyDrivenProbe(Probe):
    """
    Wraps a probe and forwards only the iterations the policy selects.

    Run start and run end are always forwarded. Every per-iteration event,
    new overall bests included, follows the policy's answer for that
    iteration.
    """

    def __init__(self, policy: ProbingPolicy, probe: Probe) -> None:
        self.policy = policy
        self.probe = probe
        self._active: bool = False

    def on_run_start(self, pheromone: PheromoneArray) -> None:
        self.probe.on_run_start(pheromone)

    def on_iteration_start(self, iteration: int) -> None:
        self._active = self.policy.should_probe(iteration)
        if self._active:
            self.probe.on_iteration_start(iteration)

    def on_current_best(self, best: Optional[Solution]) -> None:
        if self._active:
            self.probe.on_current_best(best)

    def on_new_overall_best(self, best: Solution) -> None:
        if self._active:
            self.probe.on_new_overall_best(best)

    def on_pheromone_update(self, old: PheromoneArray, new: PheromoneArray) -> None:
        if self._active:
            self.probe.on_pheromone_update(old, new)

    def on_iteration_end(self, iteration: int) -> None:
        if self._active:
            self.probe.on_iteration_end(iteration)
        self._active = False

    def on_end(self, best: Optional[Solution]) -> None:
        self.probe.on_end(best)
