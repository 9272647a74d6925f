"""
aco_engine — Ant Colony Optimisation over weighted graphs.

Public API:
    AcoConfig              — validated description of one run
    build_algorithm        — config → ready-to-run AntColonyOptimization
    AntColonyOptimization  — the run loop; run() returns the best Solution
    Solution               — one graded tour
    ColonyFailedError      — no ant completed a tour in the whole run
    ConfigurationError     — the config cannot produce a runnable algorithm

Usage:
    from aco_engine import AcoConfig, build_algorithm
    from aco_engine.util import random_tsp_instance, heuristic_from_weights

    _, weights = random_tsp_instance(30, seed=7)
    config = AcoConfig(
        weights=weights,
        heuristic=heuristic_from_weights(weights),
        beta=2.0,
        iterations=200,
        seed=7,
    )
    best = build_algorithm(config).run()   # best.path, best.cost
"""

from aco_engine.algorithm import AntColonyOptimization
from aco_engine.builder import build_algorithm
from aco_engine.colony import ColonyFailedError
from aco_engine.config import AcoConfig, ConfigurationError
from aco_engine.models import BestPolicyKind, LocalUpdateKind, PheromoneVariant, Solution

__all__ = [
    "AcoConfig",
    "AntColonyOptimization",
    "BestPolicyKind",
    "ColonyFailedError",
    "ConfigurationError",
    "LocalUpdateKind",
    "PheromoneVariant",
    "Solution",
    "build_algorithm",
]
