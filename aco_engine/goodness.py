"""
aco_engine/goodness.py
──────────────────────
Goodness: the combined attractiveness of every edge, used by ants as the
roulette-wheel weight.

The selection formula
──────────────────────
P(i → j) = (τ[i][j]^α × η[i][j]^β) / Σ_k(τ[i][k]^α × η[i][k]^β)

The numerator does not depend on which ant is asking, so it is computed
once per iteration for the whole matrix and shared by every ant. That
precomputed numerator is what this module calls "goodness".

  α: trust in accumulated pheromone.
  β: trust in the static heuristic. β = 0 switches the heuristic off.

Zero pheromone = dead edge
───────────────────────────
numpy evaluates 0.0 ** 0.0 as 1.0, so with α = 0 an edge whose pheromone
has been driven to zero would come back to life. Goodness is therefore
forced to 0.0 wherever τ == 0, for every α.

Negative pheromone is never clamped here: it means an update rule broke
its contract, and the caller must hear about it.

Multi-layer pheromone
─────────────────────
A pheromone array of shape (layers, n, n) holds several parallel matrices.
They are blended into one (n, n) matrix by a normalised weighted sum
before the formula is applied. Update rules treat the layers uniformly,
so layers only differ through the start_pheromone they were given; only
goodness knows they exist.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from aco_engine.models import PheromoneArray


def blend_layers(
    pheromone: PheromoneArray,
    layer_weights: Optional[NDArray[np.float64]] = None,
) -> NDArray[np.float64]:
    """
    Collapse (layers, n, n) pheromone into (n, n). 2-D input is returned as is.

    Args:
        pheromone:     2-D or 3-D pheromone array.
        layer_weights: Non-negative weights, one per layer. None = equal.
                       Normalised to sum to 1 so blending never rescales τ.
    """
    if pheromone.ndim == 2:
        return pheromone
    if layer_weights is None:
        return pheromone.mean(axis=0)
    weights = np.asarray(layer_weights, dtype=np.float64)
    if weights.shape != (pheromone.shape[0],):
        raise ValueError(
            f"Expected {pheromone.shape[0]} layer weights, got shape {weights.shape}"
        )
    return np.tensordot(weights / weights.sum(), pheromone, axes=1)


class Goodness(ABC):
    """Contract: apply(pheromone) → goodness matrix of shape (n, n)."""

    @abstractmethod
    def apply(self, pheromone: PheromoneArray) -> NDArray[np.float64]:
        ...


def _canonical(
    pheromone: NDArray[np.float64],
    heuristic: NDArray[np.float64],
    alpha: float,
    beta: float,
) -> NDArray[np.float64]:
    if np.any(pheromone < 0.0):
        raise ValueError(
            f"Pheromone must be non-negative, found min={pheromone.min():.6g}"
        )
    # Overflow saturates to inf; ants know how to draw from inf rows
    with np.errstate(over="ignore"):
        goodness = np.power(pheromone, alpha) * np.power(heuristic, beta)
    goodness[pheromone == 0.0] = 0.0
    return goodness


class CanonicalGoodness(Goodness):
    """
    Ant System goodness: τ^α × η^β, elementwise.

    Attributes:
        alpha, beta:    exponents (both ≥ 0).
        heuristic:      static η matrix, shape (n, n).
        layer_weights:  blending weights for multi-layer pheromone.
    """

    def __init__(
        self,
        alpha: float,
        beta: float,
        heuristic: NDArray[np.float64],
        layer_weights: Optional[Sequence[float]] = None,
    ) -> None:
        if alpha < 0.0 or beta < 0.0:
            raise ValueError(f"alpha and beta must be ≥0, got alpha={alpha}, beta={beta}")
        self.alpha = float(alpha)
        self.beta = float(beta)
        self.heuristic = np.asarray(heuristic, dtype=np.float64)
        self.layer_weights = (
            None if layer_weights is None else np.asarray(layer_weights, dtype=np.float64)
        )

    def apply(self, pheromone: PheromoneArray) -> NDArray[np.float64]:
        tau = blend_layers(np.asarray(pheromone, dtype=np.float64), self.layer_weights)
        return _canonical(tau, self.heuristic, self.alpha, self.beta)

    def __repr__(self) -> str:
        return f"CanonicalGoodness(alpha={self.alpha}, beta={self.beta})"


class RandomizedGoodness(Goodness):
    """
    Canonical goodness perturbed multiplicatively on every call.

    Each edge is scaled by an independent Exp(1) factor, redrawn per call.
    The mean factor is 1, so on average the canonical preferences hold,
    but within one iteration the ants see a jittered landscape, which
    spreads them over near-equal alternatives instead of all piling onto
    the single strongest trail.

    The generator is injected so the whole run stays reproducible from
    one seed.
    """

    def __init__(
        self,
        alpha: float,
        beta: float,
        heuristic: NDArray[np.float64],
        rng: np.random.Generator,
        layer_weights: Optional[Sequence[float]] = None,
    ) -> None:
        if alpha < 0.0 or beta < 0.0:
            raise ValueError(f"alpha and beta must be ≥0, got alpha={alpha}, beta={beta}")
        self.alpha = float(alpha)
        self.beta = float(beta)
        self.heuristic = np.asarray(heuristic, dtype=np.float64)
        self.rng = rng
        self.layer_weights = (
            None if layer_weights is None else np.asarray(layer_weights, dtype=np.float64)
        )

    def apply(self, pheromone: PheromoneArray) -> NDArray[np.float64]:
        tau = blend_layers(np.asarray(pheromone, dtype=np.float64), self.layer_weights)
        goodness = _canonical(tau, self.heuristic, self.alpha, self.beta)
        goodness *= self.rng.exponential(1.0, size=goodness.shape)
        return goodness

    def __repr__(self) -> str:
        return f"RandomizedGoodness(alpha={self.alpha}, beta={self.beta})"
