"""
aco_engine/models.py
────────────────────
The data structures every other module in the engine agrees on.

Reading guide
-------------
Read top-to-bottom. The enumerations name the pluggable choices a
configuration can make; Solution is the one object that travels through
the whole iteration (colony → grading → best-policy → pheromone update →
probe).
"""

from __future__ import annotations

import math
from enum import Enum
from typing import List, Tuple

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 1: ENUMERATIONS
# ─────────────────────────────────────────────────────────────────────────────

class PheromoneVariant(str, Enum):
    """
    Which global pheromone update rule a run uses. Exactly one per run.

    ANT_SYSTEM         → every solution deposits.
    ELITIST            → AS plus an extra deposit on the overall-best tour.
    MAX_MIN            → only the best deposits; result clamped to bounds.
    ANT_COLONY_SYSTEM  → only the best deposits, scaled by ρ.
    """
    ANT_SYSTEM = "ant-system"
    ELITIST = "elitist-ant-system"
    MAX_MIN = "max-min-ant-system"
    ANT_COLONY_SYSTEM = "ant-colony-system"


class BestPolicyKind(str, Enum):
    """Which solution counts as "the best" for MAX_MIN and ANT_COLONY_SYSTEM."""
    ITERATION_BEST = "iteration-best"
    OVERALL_BEST = "overall-best"


class LocalUpdateKind(str, Enum):
    """
    Per-edge decay applied during construction (ACS local update).

    DECAY     → τ *= d
    DECAY_TO  → τ = τ·d + (1 − d)·c   (drifts towards a stable constant c)
    """
    DECAY = "decay"
    DECAY_TO = "decay-to"


class RunState(str, Enum):
    """Lifecycle of one AntColonyOptimization instance."""
    IDLE = "idle"
    RUNNING = "running"
    TERMINATED = "terminated"


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 2: SOLUTION
# ─────────────────────────────────────────────────────────────────────────────

class Solution(BaseModel):
    """
    One candidate tour built by one ant in one iteration.

    Lifecycle:
        1. Colony creates it from a complete ant path (cost=inf, fitness=0).
        2. The fitness function returns a graded copy via graded().
        3. Best-policies may retain it; everything else is discarded at
           the end of the iteration.

    The model is frozen: grading never mutates, it copies. That keeps a
    retained overall-best safe from being touched by later iterations.

    Fields:
        path    → node indices in visiting order. The tour is circular:
                  the last node connects back to the first.
        cost    → total traversal cost (lower is better). inf until graded.
        fitness → quality score (higher is better), typically 1/cost.
                  0.0 until graded.
    """
    model_config = ConfigDict(frozen=True)

    path: Tuple[int, ...] = Field(..., description="Visiting order, circular")
    cost: float = Field(math.inf, description="Total path cost; inf until graded")
    fitness: float = Field(0.0, ge=0.0, description="Higher is better; 0 until graded")

    @property
    def is_graded(self) -> bool:
        return math.isfinite(self.cost)

    def edges(self) -> List[Tuple[int, int]]:
        """Directed edges of the circular path: (p0,p1), (p1,p2), …, (pk,p0)."""
        if len(self.path) < 2:
            return []
        return list(zip(self.path, self.path[1:] + self.path[:1]))

    def graded(self, cost: float, fitness: float) -> "Solution":
        """Return a copy carrying the given cost and fitness."""
        return self.model_copy(update={"cost": cost, "fitness": fitness})

    def incidence_matrix(self, n: int, symmetric: bool = True) -> NDArray[np.float64]:
        """
        Edge-incidence matrix of the circular path, shape (n, n).

        M[i][j] = 1.0 if the tour traverses i → j. With symmetric=True the
        mirror (j, i) is set too, which is what undirected problems deposit on.

        Fancy-index assignment (not +=) so a 2-node tour whose two edges
        coincide after mirroring still yields a single 1.0 per cell.
        """
        matrix = np.zeros((n, n), dtype=np.float64)
        edges = self.edges()
        if not edges:
            return matrix
        src = np.fromiter((e[0] for e in edges), dtype=np.intp, count=len(edges))
        dst = np.fromiter((e[1] for e in edges), dtype=np.intp, count=len(edges))
        matrix[src, dst] = 1.0
        if symmetric:
            matrix[dst, src] = 1.0
        return matrix


# ─────────────────────────────────────────────────────────────────────────────
# SECTION 3: CONVENIENCE TYPE ALIASES
# ─────────────────────────────────────────────────────────────────────────────

# (from, to) pair as returned by Ant.step()
Edge = Tuple[int, int]

# Shape (n, n) for single-layer runs, (layers, n, n) for multi-layer runs
PheromoneArray = NDArray[np.float64]
