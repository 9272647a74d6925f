"""
aco_engine/fitness.py
─────────────────────
Grading: turn an ungraded tour into (cost, fitness).

  cost    = Σ W[p_k][p_{k+1}] over the circular path (last → first included)
  fitness = 1 / cost

Lower cost is better; higher fitness is better. Update rules deposit
fitness, so fitness must always be a finite, non-negative number.
"""

from __future__ import annotations

import math
from typing import List, Sequence

import numpy as np
from numpy.typing import NDArray

from aco_engine.models import Solution

# ── Fitness constants ──────────────────────────────────────────────────────────

ZERO_COST_FITNESS: float = 1e9
"""Fitness of a tour whose cost is exactly 0.
1/0 would be inf, which poisons every deposit it touches. A large finite
value still ranks the free tour above every paid one.
"""


class PathLengthInverse:
    """
    Fitness for tour problems: the inverse of the circular path length.

    Attributes:
        weights: the (n, n) cost matrix W.
    """

    def __init__(self, weights: NDArray[np.float64]) -> None:
        self.weights = np.asarray(weights, dtype=np.float64)

    def path_cost(self, path: Sequence[int]) -> float:
        if len(path) < 2:
            return 0.0
        src = np.asarray(path, dtype=np.intp)
        dst = np.roll(src, -1)
        return float(self.weights[src, dst].sum())

    def apply(self, solution: Solution) -> float:
        """Fitness of one solution. Never NaN or inf."""
        return self._fitness_for(self.path_cost(solution.path))

    def grade(self, solutions: Sequence[Solution]) -> List[Solution]:
        """Return graded copies, in input order."""
        graded: List[Solution] = []
        for solution in solutions:
            cost = self.path_cost(solution.path)
            graded.append(solution.graded(cost, self._fitness_for(cost)))
        return graded

    @staticmethod
    def _fitness_for(cost: float) -> float:
        if not math.isfinite(cost):
            return 0.0
        if cost == 0.0:
            return ZERO_COST_FITNESS
        return 1.0 / cost

    def __repr__(self) -> str:
        return f"PathLengthInverse(n={self.weights.shape[0]})"
