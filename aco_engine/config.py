"""
aco_engine/config.py
────────────────────
AcoConfig: the one validated description of a run.

Validation happens in two passes, both at construction:

  1. Field level — ranges and array sanity (pydantic Field constraints plus
     field validators). pydantic reports every failing field together.
  2. Cross-field — shapes that must agree, bounds that must be ordered, a
     termination that must exist. All problems are collected into one
     ConfigurationError rather than failing on the first.

pydantic runs the second pass only once every field is individually valid.
build_algorithm, given a plain mapping, re-runs it with the failing fields
at their defaults, so its ConfigurationError lists both kinds together.

Arrays
──────
numpy arrays are accepted as is; nested lists are converted with
np.asarray(dtype=float64). The model is frozen, but numpy arrays inside
it are not: build_algorithm copies what it mutates.
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from aco_engine.models import BestPolicyKind, LocalUpdateKind, PheromoneVariant
from aco_engine.pheromone import ELITE_WEIGHT, EVAPORATION_RATE, LOWER_BOUND, UPPER_BOUND


class ConfigurationError(ValueError):
    """
    Raised when a configuration cannot produce a runnable algorithm.

    Attributes:
        problems: every individual problem found, as readable strings.
    """

    def __init__(self, problems: List[str], message: str = "") -> None:
        self.problems = list(problems)
        default_msg = (
            f"Invalid ACO configuration ({len(self.problems)} problem(s)): "
            + "; ".join(self.problems)
        )
        super().__init__(message or default_msg)


def _as_float_array(value):
    if value is None or isinstance(value, np.ndarray) and value.dtype == np.float64:
        return value
    return np.asarray(value, dtype=np.float64)


class AcoConfig(BaseModel):
    """
    Every tunable of one run.

    Only `weights` is required; the defaults give a plain Ant System with
    10 ants for 100 iterations.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    # ── Problem ───────────────────────────────────────────────────────────────
    weights: np.ndarray = Field(
        ..., description="n×n traversal cost matrix, finite and ≥0"
    )
    heuristic: Optional[np.ndarray] = Field(
        None, description="n×n static desirability η; None = all ones"
    )
    symmetric: bool = Field(True, description="Undirected problem: mirror every write")

    # ── Selection ─────────────────────────────────────────────────────────────
    alpha: float = Field(1.0, ge=0.0, description="Pheromone exponent")
    beta: float = Field(1.0, ge=0.0, description="Heuristic exponent")
    n_ants: int = Field(10, ge=1, description="Ants per iteration")
    exploitation_rate: Optional[float] = Field(
        None, ge=0.0, le=1.0,
        description="q0 for ACS ants; None = canonical roulette-only ants",
    )
    randomized_goodness: bool = Field(
        False, description="Perturb goodness with Exp(1) noise every iteration"
    )

    # ── Pheromone ─────────────────────────────────────────────────────────────
    initial_pheromone: float = Field(1.0, ge=0.0, description="Constant start value")
    start_pheromone: Optional[np.ndarray] = Field(
        None, description="Explicit start matrix, (n,n) or (layers,n,n)"
    )
    pheromone_layers: int = Field(1, ge=1, description="Parallel pheromone layers")
    layer_weights: Optional[np.ndarray] = Field(
        None, description="Blend weights per layer; None = equal"
    )
    variant: PheromoneVariant = Field(PheromoneVariant.ANT_SYSTEM)
    evaporation_rate: float = Field(EVAPORATION_RATE, ge=0.0, le=1.0, description="ρ")
    best_policy: BestPolicyKind = Field(
        BestPolicyKind.OVERALL_BEST,
        description="Which best deposits under MAX_MIN and ANT_COLONY_SYSTEM",
    )
    elite_weight: float = Field(ELITE_WEIGHT, ge=0.0, description="Elitist extra-deposit factor")
    lower_bound: float = Field(LOWER_BOUND, ge=0.0, description="MMAS τ_min")
    upper_bound: float = Field(UPPER_BOUND, description="MMAS τ_max")

    # ── Local update ──────────────────────────────────────────────────────────
    local_update: Optional[LocalUpdateKind] = Field(None)
    local_decay_rate: float = Field(0.9, ge=0.0, lt=1.0)
    local_stable_constant: Optional[float] = Field(
        None, ge=0.0, description="DECAY_TO target; None = initial_pheromone"
    )

    # ── Termination ───────────────────────────────────────────────────────────
    iterations: Optional[int] = Field(100, ge=1, description="Iteration limit")
    time_limit_s: Optional[float] = Field(None, gt=0.0, description="Wall-clock limit")

    # ── Reproducibility ───────────────────────────────────────────────────────
    seed: Optional[int] = Field(None, description="Root seed for every generator")

    # ── Field validators ──────────────────────────────────────────────────────

    @field_validator("weights", "heuristic", "start_pheromone", "layer_weights", mode="before")
    @classmethod
    def _to_array(cls, value):
        return _as_float_array(value)

    @field_validator("weights")
    @classmethod
    def _check_weights(cls, value: np.ndarray) -> np.ndarray:
        if value.ndim != 2 or value.shape[0] != value.shape[1]:
            raise ValueError(f"weights must be a square matrix, got shape {value.shape}")
        if value.shape[0] < 2:
            raise ValueError(f"weights must cover at least 2 nodes, got {value.shape[0]}")
        if not np.all(np.isfinite(value)):
            raise ValueError("weights must be finite")
        if np.any(value < 0.0):
            raise ValueError(f"weights must be ≥0, found min={value.min():.6g}")
        return value

    @field_validator("heuristic", "start_pheromone")
    @classmethod
    def _check_non_negative(cls, value: Optional[np.ndarray]) -> Optional[np.ndarray]:
        if value is None:
            return value
        if not np.all(np.isfinite(value)):
            raise ValueError("must be finite")
        if np.any(value < 0.0):
            raise ValueError(f"must be ≥0, found min={value.min():.6g}")
        return value

    @field_validator("layer_weights")
    @classmethod
    def _check_layer_weights(cls, value: Optional[np.ndarray]) -> Optional[np.ndarray]:
        if value is None:
            return value
        if value.ndim != 1:
            raise ValueError(f"layer_weights must be 1-D, got shape {value.shape}")
        if np.any(value < 0.0) or not value.sum() > 0.0:
            raise ValueError("layer_weights must be ≥0 with a positive sum")
        return value

    # ── Cross-field validation ─────────────────────────────────────────────────

    @model_validator(mode="after")
    def _check_consistency(self) -> "AcoConfig":
        problems = self.cross_field_problems()
        if problems:
            raise ConfigurationError(problems)
        return self

    def cross_field_problems(self) -> List[str]:
        """Every inter-field inconsistency, in a stable order."""
        problems: List[str] = []
        n = self.n_nodes

        if self.heuristic is not None and self.heuristic.shape != (n, n):
            problems.append(
                f"heuristic shape {self.heuristic.shape} does not match weights ({n}, {n})"
            )

        if self.start_pheromone is not None:
            shape = self.start_pheromone.shape
            allowed = [(n, n), (self.pheromone_layers, n, n)]
            if shape not in allowed:
                problems.append(
                    f"start_pheromone shape {shape} must be one of {allowed}"
                )

        if self.layer_weights is not None and self.layer_weights.shape[0] != self.pheromone_layers:
            problems.append(
                f"layer_weights has {self.layer_weights.shape[0]} entries, "
                f"expected pheromone_layers={self.pheromone_layers}"
            )

        if self.variant == PheromoneVariant.MAX_MIN and self.upper_bound <= self.lower_bound:
            problems.append(
                f"upper_bound ({self.upper_bound}) must exceed lower_bound ({self.lower_bound})"
            )

        if self.iterations is None and self.time_limit_s is None:
            problems.append("no termination: set iterations, time_limit_s, or both")

        return problems

    # ── Derived values ────────────────────────────────────────────────────────

    @property
    def n_nodes(self) -> int:
        return int(self.weights.shape[0])

    def heuristic_or_default(self) -> np.ndarray:
        if self.heuristic is not None:
            return self.heuristic
        return np.ones_like(self.weights)

    def initial_pheromone_array(self) -> np.ndarray:
        """
        A fresh, writable start matrix.

        2-D start_pheromone with several layers is broadcast to every layer.
        Single-layer runs use shape (n, n); multi-layer runs (layers, n, n).
        """
        n = self.n_nodes
        shape = (n, n) if self.pheromone_layers == 1 else (self.pheromone_layers, n, n)
        if self.start_pheromone is None:
            return np.full(shape, self.initial_pheromone, dtype=np.float64)
        source = self.start_pheromone
        if self.pheromone_layers == 1:
            source = source.reshape(n, n)
        return np.array(np.broadcast_to(source, shape), dtype=np.float64)
