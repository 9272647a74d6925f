"""
aco_engine/colony.py
────────────────────
The Colony: runs every ant through one iteration of tour construction.

One call to simulate() is one iteration's construction phase:

  1. Compute goodness ONCE from the current pheromone. It depends only on
     τ and η, neither of which the ants change through goodness, so all
     ants share the same matrix. This turns n_ants goodness computations
     per iteration into one.
  2. For each ant, in order:
       reset → choose_start → step × (n − 1)
     After every non-degenerate step the local update rule (if any) is
     applied in place to the edge just traversed.
  3. Collect one Solution per ant that finished a full tour. Stuck ants
     are logged and skipped.

Local updates and the shared goodness
──────────────────────────────────────
Local writes land in the live pheromone immediately, but goodness is not
re-derived mid-iteration. Their effect on construction therefore shows up
from the NEXT iteration on.

The colony does not own the pheromone. It receives the orchestrator's
array, writes into it only through the local update rule, and never
keeps a reference past simulate().
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from aco_engine.ant import BaseAnt
from aco_engine.goodness import Goodness
from aco_engine.local_update import LocalUpdate
from aco_engine.models import PheromoneArray, Solution

logger = logging.getLogger(__name__)


class ColonyFailedError(Exception):
    """
    Raised when a whole run ends without a single complete solution.

    When is this raised?
        • Every ant in every iteration got stuck. With a strictly positive
          heuristic and pheromone this cannot happen; it means the
          goodness landscape has zeros that cut the graph apart.

    Raised by AntColonyOptimization.run(), not by Colony.simulate(): one
    iteration with zero solutions is survivable, a whole run is not.

    Attributes:
        n_nodes:    Number of nodes in the graph.
        iterations: How many iterations ran before giving up.
    """

    def __init__(
        self,
        n_nodes: int,
        iterations: int,
        message: str = "",
    ) -> None:
        self.n_nodes = n_nodes
        self.iterations = iterations
        default_msg = (
            f"Colony failed: no ant completed a tour over {n_nodes} node(s) "
            f"in {iterations} iteration(s)."
        )
        super().__init__(message or default_msg)


class Colony:
    """
    Holds the ants and the construction-phase collaborators.

    Usage:
        colony    = Colony(ants, CanonicalGoodness(1.0, 2.0, eta))
        solutions = colony.simulate(pheromone)   # List[Solution], ungraded

    After simulate():
        colony.last_stuck → number of ants that got stuck last call.

    Attributes:
        ants:          The ant population, reused every iteration.
        goodness:      Goodness function shared by all ants.
        local_update:  Optional per-edge rule, None to disable.
    """

    def __init__(
        self,
        ants: Sequence[BaseAnt],
        goodness: Goodness,
        local_update: Optional[LocalUpdate] = None,
    ) -> None:
        if not ants:
            raise ValueError("Colony requires at least one ant.")
        n_nodes = {ant.n_nodes for ant in ants}
        if len(n_nodes) != 1:
            raise ValueError(f"All ants must share one graph size, got {sorted(n_nodes)}")

        self.ants: List[BaseAnt] = list(ants)
        self.goodness = goodness
        self.local_update = local_update
        self.n_nodes: int = n_nodes.pop()
        self.last_stuck: int = 0

    def simulate(self, pheromone: PheromoneArray) -> List[Solution]:
        """
        Run every ant once over the current pheromone.

        Args:
            pheromone: Live pheromone array. Read through goodness; written
                       only by the local update rule.

        Returns:
            One ungraded Solution per ant that completed a tour, in ant
            order. May be empty.
        """
        goodness = self.goodness.apply(pheromone)

        solutions: List[Solution] = []
        stuck = 0
        for idx, ant in enumerate(self.ants):
            ant.reset()
            ant.choose_start()
            for _ in range(self.n_nodes - 1):
                last, nxt = ant.step(goodness)
                if last == nxt:
                    break
                if self.local_update is not None:
                    self.local_update.apply(pheromone, last, nxt)

            if not ant.is_complete():
                stuck += 1
                logger.debug("Ant %d got stuck after %d node(s)", idx, len(ant.path))
                continue
            solutions.append(Solution(path=ant.path))

        self.last_stuck = stuck
        return solutions

    def __repr__(self) -> str:
        return (
            f"Colony(ants={len(self.ants)}, nodes={self.n_nodes}, "
            f"goodness={self.goodness!r}, local_update={self.local_update!r})"
        )
