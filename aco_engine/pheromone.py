"""
aco_engine/pheromone.py
───────────────────────
Global pheromone update rules: how the colony's shared memory changes
between iterations.

What is pheromone?
──────────────────
In nature, ants deposit chemical pheromone on the paths they walk.
Shorter paths get reinforced more, and over time the colony converges on
good paths without any ant having a global view.

Here τ[i][j] is the pheromone on the edge i → j. Two forces balance:

  1. Evaporation  — global forgetting. Every cell is multiplied by (1 − ρ)
                    each iteration, so early mistakes fade.
  2. Deposit      — reinforcement. Solutions add fitness × M, where M is the
                    solution's edge-incidence matrix (1.0 on every edge it
                    walked). Better tours (higher fitness) deposit more.

The four rules
──────────────
  Ant System (AS)          τ' = τ(1−ρ) + Σ_s f_s·M_s
  Elitist AS               τ' = AS + e · f_best · M_best      (best = overall)
  Max-Min AS (MMAS)        τ' = clip(τ(1−ρ) + f_best·M_best, lower, upper)
  Ant Colony System (ACS)  τ' = τ(1−ρ) + ρ · f_best · M_best

MMAS clips the WHOLE matrix, diagonal included, so every cell of the
result lies in [lower, upper].

Contract
────────
  apply(pheromone, solutions) → new array. The input is never mutated.
  The orchestrator passes old and new to probes, then drops the old one.

  Every rule derives from PheromoneUpdate directly (the best-only rules via
  a private plumbing base), never from another rule.

  Solutions must be graded (fitness set). Rules that need "the best" own
  a best-policy tracker and feed it every batch they receive, so an
  overall-best rule remembers across iterations.

Multi-layer pheromone
─────────────────────
For shape (layers, n, n) the (n, n) incidence matrices broadcast over the
leading axis: every layer evaporates and receives the same deposit.

Both steps are linear, so after k iterations each layer is
  τ_l(k) = τ_l(0)·(1−ρ)^k + D(k)
with the same accumulated deposit D(k) for every layer. Layers differ only
through their start_pheromone, and that difference fades at rate (1−ρ).
MMAS clipping is the one non-linear step; it is applied per cell.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np

from aco_engine.best_policy import BestPolicy, OverallBest
from aco_engine.models import PheromoneArray, Solution

# ── Pheromone defaults ─────────────────────────────────────────────────────────

EVAPORATION_RATE: float = 0.1
"""ρ (rho): fraction of pheromone that evaporates each iteration.

τ_new = τ_old × (1 − ρ)

ρ = 0.1 means 10% decay per iteration. After 10 iterations with no
deposit a cell starting at 1.0 holds 0.9^10 ≈ 0.35.

Higher ρ → faster forgetting → more exploration.
Lower ρ  → slower forgetting → more exploitation.
"""

ELITE_WEIGHT: float = 1.0
"""e: multiplier on the extra deposit the elitist rule gives the overall best."""

LOWER_BOUND: float = 0.0
"""τ_min for MMAS. Keeps every edge rediscoverable when > 0."""

UPPER_BOUND: float = 1.0
"""τ_max for MMAS. Stops one early tour from crowding out all others."""


def _check_rate(evaporation_rate: float) -> float:
    if not 0.0 <= evaporation_rate <= 1.0:
        raise ValueError(f"evaporation_rate must be in [0, 1], got {evaporation_rate}")
    return float(evaporation_rate)


class PheromoneUpdate(ABC):
    """
    Base class for the global update rules.

    Attributes:
        evaporation_rate: ρ in [0, 1].
        symmetric:        deposit on (j, i) as well as (i, j).
    """

    def __init__(
        self,
        evaporation_rate: float = EVAPORATION_RATE,
        symmetric: bool = True,
    ) -> None:
        self.evaporation_rate = _check_rate(evaporation_rate)
        self.symmetric = symmetric

    @abstractmethod
    def apply(
        self,
        pheromone: PheromoneArray,
        solutions: Sequence[Solution],
    ) -> PheromoneArray:
        ...

    # ── Shared building blocks ─────────────────────────────────────────────────

    def _evaporated(self, pheromone: PheromoneArray) -> PheromoneArray:
        # Multiplication allocates the new array; the input stays untouched
        return np.asarray(pheromone, dtype=np.float64) * (1.0 - self.evaporation_rate)

    def _deposit(
        self,
        target: PheromoneArray,
        solution: Solution,
        amount: float,
    ) -> None:
        """target += amount × M(solution), in place, broadcast over layers."""
        if amount == 0.0:
            return
        target += amount * solution.incidence_matrix(target.shape[-1], self.symmetric)

    def _deposit_all(self, target: PheromoneArray, solutions: Sequence[Solution]) -> None:
        """Every solution deposits its own fitness: target += Σ f_s·M_s."""
        for solution in solutions:
            self._deposit(target, solution, solution.fitness)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(evaporation_rate={self.evaporation_rate})"


class AntSystemUpdate(PheromoneUpdate):
    """Every solution deposits its own fitness."""

    def apply(
        self,
        pheromone: PheromoneArray,
        solutions: Sequence[Solution],
    ) -> PheromoneArray:
        new = self._evaporated(pheromone)
        self._deposit_all(new, solutions)
        return new


class ElitistAntSystemUpdate(PheromoneUpdate):
    """
    Ant System plus an extra deposit of elite_weight × f_best on the
    overall-best tour. The overall best is tracked by the rule itself.
    """

    def __init__(
        self,
        evaporation_rate: float = EVAPORATION_RATE,
        elite_weight: float = ELITE_WEIGHT,
        symmetric: bool = True,
    ) -> None:
        super().__init__(evaporation_rate, symmetric)
        if elite_weight < 0.0:
            raise ValueError(f"elite_weight must be ≥0, got {elite_weight}")
        self.elite_weight = float(elite_weight)
        self._overall_best = OverallBest()

    def apply(
        self,
        pheromone: PheromoneArray,
        solutions: Sequence[Solution],
    ) -> PheromoneArray:
        new = self._evaporated(pheromone)
        self._deposit_all(new, solutions)
        self._overall_best.update(solutions)
        best = self._overall_best.get_best()
        if best is not None:
            self._deposit(new, best, self.elite_weight * best.fitness)
        return new


class _BestOnlyUpdate(PheromoneUpdate):
    """Shared plumbing for the rules where only the tracked best deposits."""

    def __init__(
        self,
        evaporation_rate: float = EVAPORATION_RATE,
        best_policy: Optional[BestPolicy] = None,
        symmetric: bool = True,
    ) -> None:
        super().__init__(evaporation_rate, symmetric)
        self.best_policy: BestPolicy = best_policy if best_policy is not None else OverallBest()

    def _track(self, solutions: Sequence[Solution]) -> Optional[Solution]:
        self.best_policy.update(solutions)
        return self.best_policy.get_best()


class MaxMinUpdate(_BestOnlyUpdate):
    """
    Max-Min Ant System: only the best deposits, then every cell is clipped
    to [lower_bound, upper_bound].
    """

    def __init__(
        self,
        evaporation_rate: float = EVAPORATION_RATE,
        lower_bound: float = LOWER_BOUND,
        upper_bound: float = UPPER_BOUND,
        best_policy: Optional[BestPolicy] = None,
        symmetric: bool = True,
    ) -> None:
        super().__init__(evaporation_rate, best_policy, symmetric)
        if lower_bound < 0.0:
            raise ValueError(f"lower_bound must be ≥0, got {lower_bound}")
        if upper_bound <= lower_bound:
            raise ValueError(
                f"upper_bound must exceed lower_bound, got "
                f"lower_bound={lower_bound}, upper_bound={upper_bound}"
            )
        self.lower_bound = float(lower_bound)
        self.upper_bound = float(upper_bound)

    def apply(
        self,
        pheromone: PheromoneArray,
        solutions: Sequence[Solution],
    ) -> PheromoneArray:
        new = self._evaporated(pheromone)
        best = self._track(solutions)
        if best is not None:
            self._deposit(new, best, best.fitness)
        np.clip(new, self.lower_bound, self.upper_bound, out=new)
        return new

    def __repr__(self) -> str:
        return (
            f"MaxMinUpdate(evaporation_rate={self.evaporation_rate}, "
            f"bounds=[{self.lower_bound}, {self.upper_bound}])"
        )


class AntColonySystemUpdate(_BestOnlyUpdate):
    """Ant Colony System: only the best deposits, scaled by ρ."""

    def apply(
        self,
        pheromone: PheromoneArray,
        solutions: Sequence[Solution],
    ) -> PheromoneArray:
        new = self._evaporated(pheromone)
        best = self._track(solutions)
        if best is not None:
            self._deposit(new, best, self.evaporation_rate * best.fitness)
        return new
