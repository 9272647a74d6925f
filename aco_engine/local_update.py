"""
aco_engine/local_update.py
──────────────────────────
Local (per-edge) pheromone update, applied by the colony the moment an ant
traverses an edge.

Local vs global update
───────────────────────
The global rule (pheromone.py) runs once per iteration and rewrites the
whole matrix. A local rule runs after every single step and touches only
the edge just walked (plus its mirror for undirected problems). It is
composed with the global rule, never a replacement for it.

Its purpose is diversification: every traversal makes an edge slightly
less attractive, nudging later ants towards edges not yet taken.

  Decay(d)        τ_ij = τ_ij · d
  DecayTo(d, c)   τ_ij = τ_ij · d + (1 − d) · c

DecayTo drifts a cell towards the stable constant c instead of towards
zero, so repeated traversals cannot kill an edge outright.

Multi-layer pheromone: the write is applied to the (i, j) cell of every
layer at once via pheromone[..., i, j].
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from aco_engine.models import PheromoneArray


def _check_decay_rate(decay_rate: float) -> float:
    if not 0.0 <= decay_rate < 1.0:
        raise ValueError(f"decay_rate must be in [0, 1), got {decay_rate}")
    return float(decay_rate)


class LocalUpdate(ABC):
    """Contract: apply(pheromone, i, j) mutates pheromone in place."""

    def __init__(self, symmetric: bool = True) -> None:
        self.symmetric = symmetric

    def apply(self, pheromone: PheromoneArray, i: int, j: int) -> None:
        self._update_cell(pheromone, i, j)
        if self.symmetric and i != j:
            self._update_cell(pheromone, j, i)

    @abstractmethod
    def _update_cell(self, pheromone: PheromoneArray, i: int, j: int) -> None:
        ...


class Decay(LocalUpdate):
    """τ_ij *= decay_rate."""

    def __init__(self, decay_rate: float, symmetric: bool = True) -> None:
        super().__init__(symmetric)
        self.decay_rate = _check_decay_rate(decay_rate)

    def _update_cell(self, pheromone: PheromoneArray, i: int, j: int) -> None:
        pheromone[..., i, j] *= self.decay_rate

    def __repr__(self) -> str:
        return f"Decay(decay_rate={self.decay_rate})"


class DecayTo(LocalUpdate):
    """τ_ij = τ_ij · decay_rate + (1 − decay_rate) · stable_constant."""

    def __init__(
        self,
        decay_rate: float,
        stable_constant: float,
        symmetric: bool = True,
    ) -> None:
        super().__init__(symmetric)
        self.decay_rate = _check_decay_rate(decay_rate)
        if stable_constant < 0.0:
            raise ValueError(f"stable_constant must be ≥0, got {stable_constant}")
        self.stable_constant = float(stable_constant)

    def _update_cell(self, pheromone: PheromoneArray, i: int, j: int) -> None:
        pheromone[..., i, j] = (
            pheromone[..., i, j] * self.decay_rate
            + (1.0 - self.decay_rate) * self.stable_constant
        )

    def __repr__(self) -> str:
        return (
            f"DecayTo(decay_rate={self.decay_rate}, "
            f"stable_constant={self.stable_constant})"
        )
