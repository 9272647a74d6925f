"""
aco_engine/ant.py
─────────────────
One ant: walks the graph one edge at a time and produces one tour.

What does an ant do?
─────────────────────
An ant is one independent exploration of the search space. It starts on a
random node and, at every step, picks the next unvisited node
probabilistically: better edges are more likely, but not certain. That
stochasticity is what lets a colony of ants explore many slightly
different tours and then learn from the best of them.

The ant does not compute attractiveness itself. The colony hands it a
precomputed goodness matrix (see goodness.py) once per iteration, and
the ant only reads the row of its current endpoint.

Roulette wheel
──────────────
  row        = goodness[last]                  # shape (n,)
  candidates = unvisited nodes with row > 0, in ascending index order
  cumsum     = np.cumsum(row[candidates])
  u          = rng.uniform(0, cumsum[-1])
  chosen     = candidates[searchsorted(cumsum, u)]

Zero-goodness candidates are dropped before the wheel is built, so an
edge with zero goodness is never taken, even when u lands exactly on 0.

Large τ or η can push goodness to inf. If any candidate is inf, the
choice is uniform over the inf candidates. If every weight is finite but
the sum overflows, the wheel is built on row / max(row) instead.

Stuck ants
──────────
If there is no unvisited node left, or every unvisited candidate has zero
goodness, the ant is stuck. step() then returns (last, last): a
degenerate edge the colony recognises and skips. A stuck ant stays stuck
until reset().
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from aco_engine.models import Edge


class BaseAnt(ABC):
    """
    Shared per-iteration state and the step protocol.

    Lifecycle (repeated every iteration):
        1. reset()         → forget the previous tour.
        2. choose_start()  → pick a uniformly random start node.
        3. step(goodness)  → n-1 times; each returns the edge just taken.
        4. Read results    → ant.path, ant.is_stuck().

    Subclasses only decide how the next node is chosen (_choose_next).

    Attributes:
        n_nodes : number of nodes in the graph.
        rng     : the ant's own numpy Generator. Ants never share one.
    """

    def __init__(self, n_nodes: int, rng: np.random.Generator) -> None:
        if n_nodes < 1:
            raise ValueError(f"An ant needs at least one node, got n_nodes={n_nodes}")
        self.n_nodes = n_nodes
        self.rng = rng
        self._unvisited: NDArray[np.bool_] = np.ones(n_nodes, dtype=bool)
        self._path: List[int] = []
        self._stuck: bool = False

    # ── Lifecycle ──────────────────────────────────────────────────────────────

    def reset(self) -> None:
        self._unvisited.fill(True)
        self._path = []
        self._stuck = False

    def choose_start(self) -> int:
        start = int(self.rng.integers(self.n_nodes))
        self._unvisited[start] = False
        self._path.append(start)
        return start

    @property
    def path(self) -> Tuple[int, ...]:
        return tuple(self._path)

    def is_stuck(self) -> bool:
        return self._stuck

    def is_complete(self) -> bool:
        return not self._stuck and len(self._path) == self.n_nodes

    # ── Stepping ───────────────────────────────────────────────────────────────

    def step(self, goodness: NDArray[np.float64]) -> Edge:
        """
        Extend the path by one node.

        Args:
            goodness: Full (n, n) goodness matrix for this iteration.
                      Read-only; only the row of the current endpoint is used.

        Returns:
            (last, next) for the edge just traversed, or (last, last) when
            the ant is (or just became) stuck.

        Raises:
            RuntimeError: if called before choose_start().
        """
        if not self._path:
            raise RuntimeError("step() called before choose_start()")

        last = self._path[-1]
        if self._stuck:
            return last, last

        candidates = np.flatnonzero(self._unvisited)
        if candidates.size > 0:
            weights = goodness[last, candidates]
            positive = weights > 0.0
            candidates = candidates[positive]
            weights = weights[positive]

        if candidates.size == 0:
            self._stuck = True
            return last, last

        chosen = self._choose_next(candidates, weights)
        self._unvisited[chosen] = False
        self._path.append(chosen)
        return last, chosen

    @abstractmethod
    def _choose_next(
        self,
        candidates: NDArray[np.intp],
        weights: NDArray[np.float64],
    ) -> int:
        """
        Pick one of the candidates.

        Both arrays are non-empty, aligned, in ascending node order, and
        every weight is strictly positive.
        """

    def _roulette(
        self,
        candidates: NDArray[np.intp],
        weights: NDArray[np.float64],
    ) -> int:
        infinite = np.isinf(weights)
        if infinite.any():
            # inf outweighs every finite edge; draw among the inf ones
            pool = candidates[infinite]
            return int(pool[self.rng.integers(pool.size)])

        with np.errstate(over="ignore"):
            cumsum = np.cumsum(weights)
        if not np.isfinite(cumsum[-1]):
            # Finite weights whose sum overflows: same wheel, rescaled
            cumsum = np.cumsum(weights / weights.max())
        u = self.rng.uniform(0.0, cumsum[-1])
        idx = int(np.searchsorted(cumsum, u))
        # Float rounding can leave u a hair above cumsum[-1]
        idx = min(idx, candidates.size - 1)
        return int(candidates[idx])

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(visited={len(self._path)}/{self.n_nodes}, "
            f"stuck={self._stuck})"
        )


class CanonicalAnt(BaseAnt):
    """Ant System ant: always samples the roulette wheel."""

    def _choose_next(
        self,
        candidates: NDArray[np.intp],
        weights: NDArray[np.float64],
    ) -> int:
        return self._roulette(candidates, weights)


class ExploitingAnt(BaseAnt):
    """
    Ant Colony System ant (pseudo-random proportional rule).

    With probability exploitation_rate (q0) the ant greedily takes the
    unvisited neighbour with maximal goodness, ties going to the lowest
    index. Otherwise it falls back to the roulette wheel.

      q0 = 0.0 → behaves exactly like CanonicalAnt.
      q0 = 1.0 → fully greedy construction.
    """

    def __init__(
        self,
        n_nodes: int,
        rng: np.random.Generator,
        exploitation_rate: float,
    ) -> None:
        if not 0.0 <= exploitation_rate <= 1.0:
            raise ValueError(
                f"exploitation_rate must be in [0, 1], got {exploitation_rate}"
            )
        super().__init__(n_nodes, rng)
        self.exploitation_rate = float(exploitation_rate)

    def _choose_next(
        self,
        candidates: NDArray[np.intp],
        weights: NDArray[np.float64],
    ) -> int:
        if self.rng.random() < self.exploitation_rate:
            # np.argmax returns the first maximum → lowest index on ties
            return int(candidates[int(np.argmax(weights))])
        return self._roulette(candidates, weights)


def make_ants(
    n_ants: int,
    n_nodes: int,
    rngs: List[np.random.Generator],
    exploitation_rate: Optional[float] = None,
) -> List[BaseAnt]:
    """
    Build n_ants ants, one Generator each.

    exploitation_rate=None gives CanonicalAnts, otherwise ExploitingAnts.
    """
    if len(rngs) != n_ants:
        raise ValueError(f"Need one generator per ant: {n_ants} ants, {len(rngs)} rngs")
    if exploitation_rate is None:
        return [CanonicalAnt(n_nodes, rng) for rng in rngs]
    return [ExploitingAnt(n_nodes, rng, exploitation_rate) for rng in rngs]
