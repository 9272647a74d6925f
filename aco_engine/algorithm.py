"""
aco_engine/algorithm.py
───────────────────────
The orchestrator: owns the pheromone between iterations and drives the
run loop.

How a run works
────────────────
  run start:
    termination.init(pheromone), probe.on_run_start(pheromone)

  each iteration i:
    1. probe.on_iteration_start(i)
    2. colony.simulate(pheromone)        → ungraded tours
    3. fitness.grade(tours)              → graded tours
    4. iteration-best and overall-best are updated
    5. probe.on_current_best(best)       (best is None if every ant got stuck;
                                          + on_new_overall_best if improved)
    6. update_rule.apply(old, graded)    → new pheromone
    7. probe.on_pheromone_update(old, new); old is then dropped
    8. probe.on_iteration_end(i)
    9. termination.update_and_check(new) → stop?

  run end:
    probe.on_end(best), return the overall best.

The pheromone is passed explicitly down this one call chain. No component
keeps a reference to it between iterations.

Probe isolation
───────────────
Probes are observers. A probe that raises is logged with its traceback
and the run continues; a broken progress printer must not cost a long
optimisation run.
"""

from __future__ import annotations

import logging
import math
import time
from typing import List, Optional, Sequence

import numpy as np

from aco_engine.best_policy import IterationBest, OverallBest
from aco_engine.colony import Colony, ColonyFailedError
from aco_engine.fitness import PathLengthInverse
from aco_engine.models import PheromoneArray, RunState, Solution
from aco_engine.pheromone import PheromoneUpdate
from aco_engine.probe import Probe
from aco_engine.termination import TerminationCondition

logger = logging.getLogger(__name__)


class AntColonyOptimization:
    """
    One configured ACO run.

    Usage:
        aco  = build_algorithm(config)    # or wire the parts by hand
        best = aco.run()                  # Solution with the lowest cost

    An instance runs once: IDLE → RUNNING → TERMINATED. A second run()
    raises RuntimeError; build a new instance instead.

    After run():
        aco.iterations_run     → iterations actually executed.
        aco.last_run_ms        → wall-clock duration of run().
        aco.best_cost_history  → overall-best cost after each iteration
                                 (inf until the first complete tour).
        aco.pheromone          → copy of the final pheromone.
    """

    def __init__(
        self,
        colony: Colony,
        fitness: PathLengthInverse,
        update_rule: PheromoneUpdate,
        termination: TerminationCondition,
        pheromone: PheromoneArray,
        probe: Optional[Probe] = None,
    ) -> None:
        pheromone = np.array(pheromone, dtype=np.float64)
        n = colony.n_nodes
        if pheromone.ndim not in (2, 3) or pheromone.shape[-2:] != (n, n):
            raise ValueError(
                f"Pheromone shape {pheromone.shape} does not match a graph of {n} node(s)"
            )

        self.colony = colony
        self.fitness = fitness
        self.update_rule = update_rule
        self.termination = termination
        self.probe: Probe = probe if probe is not None else Probe()

        self._pheromone: PheromoneArray = pheromone
        self._iteration_best = IterationBest()
        self._overall_best = OverallBest()

        self.state: RunState = RunState.IDLE
        self.iterations_run: int = 0
        self.last_run_ms: float = 0.0
        self.best_cost_history: List[float] = []

    # ── Inspection ─────────────────────────────────────────────────────────────

    @property
    def pheromone(self) -> PheromoneArray:
        """Read-only snapshot; mutating it does not affect the run."""
        return self._pheromone.copy()

    @property
    def best(self) -> Optional[Solution]:
        return self._overall_best.get_best()

    # ── Run loop ───────────────────────────────────────────────────────────────

    def run(self) -> Solution:
        """
        Execute iterations until the termination condition fires.

        Returns:
            The overall best Solution (graded).

        Raises:
            RuntimeError:      if this instance has already run.
            ColonyFailedError: if no ant completed a tour in the whole run.
        """
        if self.state != RunState.IDLE:
            raise RuntimeError(
                f"AntColonyOptimization.run() called in state {self.state.value}; "
                f"an instance runs only once"
            )
        self.state = RunState.RUNNING
        start = time.perf_counter()

        logger.info(
            "ACO run started: nodes=%d, ants=%d, rule=%r, termination=%r",
            self.colony.n_nodes, len(self.colony.ants),
            self.update_rule, self.termination,
        )

        try:
            self.termination.init(self._pheromone)
            self._notify("on_run_start", self._pheromone)

            iteration = 0
            while True:
                self._run_iteration(iteration)
                iteration += 1
                self.iterations_run = iteration
                if self.termination.update_and_check(self._pheromone):
                    break
        finally:
            self.state = RunState.TERMINATED
            self.last_run_ms = (time.perf_counter() - start) * 1000.0

        best = self._overall_best.get_best()
        self._notify("on_end", best)

        if best is None:
            raise ColonyFailedError(self.colony.n_nodes, self.iterations_run)

        logger.info(
            "ACO run finished: iterations=%d, best cost=%.6g, %.1f ms",
            self.iterations_run, best.cost, self.last_run_ms,
        )
        return best

    def _run_iteration(self, iteration: int) -> None:
        self._notify("on_iteration_start", iteration)

        solutions = self.colony.simulate(self._pheromone)
        if not solutions:
            logger.warning(
                "Iteration %d: all %d ants got stuck, no tour produced",
                iteration, len(self.colony.ants),
            )
        graded: Sequence[Solution] = self.fitness.grade(solutions)

        self._iteration_best.update(graded)
        improved = self._overall_best.update(graded)

        current = self._iteration_best.get_best()
        if current is not None:
            logger.debug("Iteration %d: best cost=%.6g", iteration, current.cost)
        # Fired every iteration; None when every ant got stuck
        self._notify("on_current_best", current)
        if improved:
            self._notify("on_new_overall_best", self._overall_best.get_best())

        overall = self._overall_best.get_best()
        self.best_cost_history.append(overall.cost if overall is not None else math.inf)

        old = self._pheromone
        new = self.update_rule.apply(old, graded)
        self._notify("on_pheromone_update", old, new)
        self._pheromone = new

        self._notify("on_iteration_end", iteration)

    def _notify(self, event: str, *args) -> None:
        try:
            getattr(self.probe, event)(*args)
        except Exception:
            logger.exception("Probe %r failed in %s", self.probe, event)

    def __repr__(self) -> str:
        return (
            f"AntColonyOptimization(state={self.state.value}, "
            f"iterations_run={self.iterations_run}, "
            f"last_run_ms={self.last_run_ms:.2f})"
        )
