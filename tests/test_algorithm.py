"""
tests/test_algorithm.py
───────────────────────
End-to-end runs through build_algorithm() and AntColonyOptimization.

Reading guide
─────────────
Group 1 — Run loop
    Iteration count, probe call order, result shape, run-once lifecycle.

Group 2 — Properties of a run
    Seeded determinism, non-increasing best cost, MMAS bounds, every
    variant produces a valid tour, a tiny instance is solved optimally.

Group 3 — Failure handling
    Probe failures are isolated; a run without any tour raises
    ColonyFailedError.
"""

from __future__ import annotations

import itertools
import logging
import math
from typing import List, Tuple

import numpy as np
import pytest

from aco_engine import (
    AcoConfig,
    BestPolicyKind,
    ColonyFailedError,
    LocalUpdateKind,
    PheromoneVariant,
    build_algorithm,
)
from aco_engine.models import RunState
from aco_engine.probe import Probe
from aco_engine.util import heuristic_from_weights, random_tsp_instance


# ─────────────────────────────────────────────────────────────────────────────
# HELPERS — fixture factories
# ─────────────────────────────────────────────────────────────────────────────

def _make_config(n_cities: int = 8, seed: int = 1, **overrides) -> AcoConfig:
    """A small Euclidean instance with sensible defaults."""
    _, weights = random_tsp_instance(n_cities, seed=seed)
    fields = dict(
        weights=weights,
        heuristic=heuristic_from_weights(weights),
        beta=2.0,
        n_ants=6,
        iterations=5,
        seed=seed,
    )
    fields.update(overrides)
    return AcoConfig(**fields)


def _circle_weights(n: int) -> np.ndarray:
    angles = 2.0 * np.pi * np.arange(n) / n
    pts = np.stack([np.cos(angles), np.sin(angles)], axis=1)
    return np.linalg.norm(pts[:, None, :] - pts[None, :, :], axis=-1)


def _brute_force_optimum(weights: np.ndarray) -> float:
    n = weights.shape[0]
    best = math.inf
    for perm in itertools.permutations(range(1, n)):
        path = (0,) + perm
        cost = sum(weights[a, b] for a, b in zip(path, path[1:] + path[:1]))
        best = min(best, cost)
    return best


class EventProbe(Probe):
    """Records the name of every hook in call order."""

    def __init__(self) -> None:
        self.events: List[Tuple] = []

    def on_run_start(self, pheromone):
        self.events.append(("run_start",))

    def on_iteration_start(self, iteration):
        self.events.append(("iteration_start", iteration))

    def on_current_best(self, best):
        self.events.append(("current_best", best.cost if best is not None else None))

    def on_new_overall_best(self, best):
        self.events.append(("new_overall_best", best.cost))

    def on_pheromone_update(self, old, new):
        self.events.append(("pheromone_update", old is not new))

    def on_iteration_end(self, iteration):
        self.events.append(("iteration_end", iteration))

    def on_end(self, best):
        self.events.append(("end", best.cost if best is not None else None))


class ExplodingProbe(Probe):
    def on_iteration_start(self, iteration):
        raise RuntimeError("probe is broken")

    def on_end(self, best):
        raise RuntimeError("probe is broken at the end too")


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 1 — Run loop
# ─────────────────────────────────────────────────────────────────────────────

class TestRunLoop:

    def test_runs_exactly_the_configured_iterations(self):
        aco = build_algorithm(_make_config(iterations=7))
        aco.run()
        assert aco.iterations_run == 7
        assert len(aco.best_cost_history) == 7
        assert aco.state == RunState.TERMINATED

    def test_result_is_a_graded_permutation(self):
        config = _make_config()
        best = build_algorithm(config).run()
        assert sorted(best.path) == list(range(config.n_nodes))
        assert best.is_graded
        assert np.isclose(best.fitness, 1.0 / best.cost)

    def test_probe_call_order(self):
        probe = EventProbe()
        build_algorithm(_make_config(iterations=3), probe=probe).run()
        events = probe.events

        assert events[0] == ("run_start",)
        assert events[-1][0] == "end"

        # Strip optional new-overall-best events, then every iteration has
        # the same fixed shape.
        body = [e for e in events[1:-1] if e[0] != "new_overall_best"]
        assert [e[0] for e in body] == [
            "iteration_start", "current_best", "pheromone_update", "iteration_end",
        ] * 3
        assert [e[1] for e in body if e[0] == "iteration_start"] == [0, 1, 2]
        assert all(e[1] for e in body if e[0] == "pheromone_update")

    def test_new_overall_best_follows_current_best(self):
        probe = EventProbe()
        build_algorithm(_make_config(iterations=4), probe=probe).run()
        events = probe.events
        # The first iteration always improves on "nothing"
        assert events[1:4] == [
            ("iteration_start", 0),
            events[2],
            ("new_overall_best", events[2][1]),
        ]
        for i, event in enumerate(events):
            if event[0] == "new_overall_best":
                assert events[i - 1][0] == "current_best"

    def test_current_best_fires_every_iteration_even_when_all_stuck(self):
        # Zero pheromone strands every ant in iteration 0; MMAS clipping
        # lifts the matrix to lower_bound so later iterations find tours.
        probe = EventProbe()
        config = _make_config(
            variant=PheromoneVariant.MAX_MIN,
            initial_pheromone=0.0,
            lower_bound=0.1,
            upper_bound=1.0,
            iterations=3,
        )
        build_algorithm(config, probe=probe).run()

        current = [e[1] for e in probe.events if e[0] == "current_best"]
        assert len(current) == 3
        assert current[0] is None
        assert all(cost is not None for cost in current[1:])

        body = [e for e in probe.events[1:-1] if e[0] != "new_overall_best"]
        assert [e[0] for e in body] == [
            "iteration_start", "current_best", "pheromone_update", "iteration_end",
        ] * 3

    def test_run_twice_raises(self):
        aco = build_algorithm(_make_config())
        aco.run()
        with pytest.raises(RuntimeError):
            aco.run()

    def test_pheromone_snapshot_is_a_copy(self):
        aco = build_algorithm(_make_config())
        aco.run()
        snap = aco.pheromone
        snap[...] = -1.0
        assert aco.pheromone.min() >= 0.0

    def test_last_run_ms_recorded(self):
        aco = build_algorithm(_make_config())
        aco.run()
        assert aco.last_run_ms > 0.0

    def test_time_limit_only(self):
        aco = build_algorithm(_make_config(iterations=None, time_limit_s=0.05))
        best = aco.run()
        assert aco.iterations_run >= 1
        assert best.is_graded


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 2 — Properties of a run
# ─────────────────────────────────────────────────────────────────────────────

class TestRunProperties:

    def test_same_seed_same_run(self):
        a = build_algorithm(_make_config(seed=5, iterations=10))
        b = build_algorithm(_make_config(seed=5, iterations=10))
        best_a, best_b = a.run(), b.run()
        assert best_a.path == best_b.path
        assert best_a.cost == best_b.cost
        assert a.best_cost_history == b.best_cost_history
        assert np.array_equal(a.pheromone, b.pheromone)

    def test_same_seed_same_run_with_randomized_goodness(self):
        config = _make_config(seed=9, randomized_goodness=True)
        assert build_algorithm(config).run().path == build_algorithm(config).run().path

    def test_best_cost_never_increases(self):
        aco = build_algorithm(_make_config(n_cities=12, iterations=25, seed=3))
        aco.run()
        history = aco.best_cost_history
        assert all(b <= a for a, b in zip(history, history[1:])), history

    def test_max_min_pheromone_within_bounds(self):
        aco = build_algorithm(_make_config(
            variant=PheromoneVariant.MAX_MIN,
            lower_bound=0.05,
            upper_bound=0.5,
            initial_pheromone=0.5,
            iterations=15,
        ))
        aco.run()
        tau = aco.pheromone
        assert tau.min() >= 0.05 - 1e-12
        assert tau.max() <= 0.5 + 1e-12

    @pytest.mark.parametrize("overrides", [
        dict(variant=PheromoneVariant.ANT_SYSTEM),
        dict(variant=PheromoneVariant.ELITIST, elite_weight=2.0),
        dict(variant=PheromoneVariant.MAX_MIN, upper_bound=2.0,
             best_policy=BestPolicyKind.ITERATION_BEST),
        dict(variant=PheromoneVariant.ANT_COLONY_SYSTEM, exploitation_rate=0.9,
             local_update=LocalUpdateKind.DECAY_TO, local_decay_rate=0.9),
        dict(variant=PheromoneVariant.ANT_COLONY_SYSTEM, local_update=LocalUpdateKind.DECAY),
        dict(pheromone_layers=3, layer_weights=[1.0, 2.0, 1.0]),
        dict(symmetric=False),
    ])
    def test_every_configuration_produces_a_tour(self, overrides):
        config = _make_config(**overrides)
        best = build_algorithm(config).run()
        assert sorted(best.path) == list(range(config.n_nodes))

    def test_multi_layer_pheromone_keeps_its_shape(self):
        aco = build_algorithm(_make_config(pheromone_layers=2))
        aco.run()
        assert aco.pheromone.shape == (2, 8, 8)

    def test_finds_optimum_of_small_instance(self):
        """Six cities on a circle: the optimum is the perimeter walk."""
        weights = _circle_weights(6)
        config = AcoConfig(
            weights=weights,
            heuristic=heuristic_from_weights(weights),
            beta=2.0,
            n_ants=10,
            iterations=40,
            seed=0,
        )
        best = build_algorithm(config).run()
        assert np.isclose(best.cost, _brute_force_optimum(weights))


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 3 — Failure handling
# ─────────────────────────────────────────────────────────────────────────────

class TestFailureHandling:

    def test_probe_failure_does_not_stop_the_run(self, caplog):
        aco = build_algorithm(_make_config(iterations=3), probe=ExplodingProbe())
        with caplog.at_level(logging.ERROR, logger="aco_engine.algorithm"):
            best = aco.run()
        assert best.is_graded
        assert aco.iterations_run == 3
        failures = [r for r in caplog.records if r.levelno == logging.ERROR]
        # 3 × on_iteration_start + 1 × on_end
        assert len(failures) == 4
        assert all(r.exc_info is not None for r in failures)

    def test_tiny_weights_do_not_abort_the_run(self):
        # η = 1e160 squared overflows goodness to inf on every edge
        n = 6
        weights = np.full((n, n), 1e-160)
        np.fill_diagonal(weights, 0.0)
        config = AcoConfig(
            weights=weights,
            heuristic=heuristic_from_weights(weights),
            beta=2.0,
            n_ants=4,
            iterations=3,
            seed=0,
        )
        aco = build_algorithm(config)
        best = aco.run()
        assert sorted(best.path) == list(range(n))
        assert aco.iterations_run == 3

    def test_no_tour_in_whole_run_raises(self, caplog):
        config = _make_config(iterations=2, initial_pheromone=0.0)
        aco = build_algorithm(config)
        with caplog.at_level(logging.WARNING, logger="aco_engine.algorithm"):
            with pytest.raises(ColonyFailedError) as exc_info:
                aco.run()
        assert exc_info.value.iterations == 2
        assert exc_info.value.n_nodes == 8
        assert aco.state == RunState.TERMINATED
        assert sum("got stuck" in r.getMessage() for r in caplog.records) == 2
        assert aco.best_cost_history == [math.inf, math.inf]
