"""
aco_engine/best_policy.py
─────────────────────────
Which solution counts as "the best".

  IterationBest → best of the latest batch only; forgotten every iteration.
  OverallBest   → best ever seen; its cost never increases over a run.

Ranking: minimum cost wins. On a tie the incumbent (or, within one batch,
the first seen) is kept, so the choice is stable under reordering of
equal-cost tours that arrive later.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from aco_engine.models import BestPolicyKind, Solution


def _min_cost(solutions: Sequence[Solution]) -> Optional[Solution]:
    # min() returns the first of equal keys
    return min(solutions, key=lambda s: s.cost) if solutions else None


class BestPolicy(ABC):
    """Contract: update(solutions) → changed?, get_best(), reset()."""

    def __init__(self) -> None:
        self._best: Optional[Solution] = None

    @abstractmethod
    def update(self, solutions: Sequence[Solution]) -> bool:
        ...

    def get_best(self) -> Optional[Solution]:
        return self._best

    def reset(self) -> None:
        self._best = None

    def __repr__(self) -> str:
        cost = self._best.cost if self._best is not None else None
        return f"{type(self).__name__}(best_cost={cost})"


class IterationBest(BestPolicy):
    """Tracks the best of the most recent batch. Empty batch clears it."""

    def update(self, solutions: Sequence[Solution]) -> bool:
        previous = self._best
        self._best = _min_cost(solutions)
        return self._best is not previous


class OverallBest(BestPolicy):
    """Tracks the best solution ever seen. Empty batch changes nothing."""

    def update(self, solutions: Sequence[Solution]) -> bool:
        candidate = _min_cost(solutions)
        if candidate is None:
            return False
        if self._best is None or candidate.cost < self._best.cost:
            self._best = candidate
            return True
        return False


def make_best_policy(kind: BestPolicyKind) -> BestPolicy:
    if kind == BestPolicyKind.ITERATION_BEST:
        return IterationBest()
    return OverallBest()
