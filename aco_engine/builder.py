"""
aco_engine/builder.py
─────────────────────
build_algorithm(config): the single finalize step that turns a validated
AcoConfig into a ready-to-run AntColonyOptimization.

Randomness
──────────
One root SeedSequence(seed) is spawned into n_ants + 1 independent
children: one Generator per ant, plus one for randomized goodness. Each
stream is used by exactly one component, so the same seed reproduces the
same run regardless of how many draws any single ant makes.

Wiring
──────
  variant            → update rule (AS / Elitist / MMAS / ACS)
  best_policy        → tracker owned by MMAS / ACS
  exploitation_rate  → ExploitingAnt instead of CanonicalAnt
  local_update       → Decay / DecayTo handed to the colony
  iterations / time  → IterationCount, ElapsedTime, or AnyOf(both)
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Union

import numpy as np
from pydantic import ValidationError

from aco_engine.algorithm import AntColonyOptimization
from aco_engine.ant import make_ants
from aco_engine.best_policy import make_best_policy
from aco_engine.colony import Colony
from aco_engine.config import AcoConfig, ConfigurationError
from aco_engine.fitness import PathLengthInverse
from aco_engine.goodness import CanonicalGoodness, Goodness, RandomizedGoodness
from aco_engine.local_update import Decay, DecayTo, LocalUpdate
from aco_engine.models import LocalUpdateKind, PheromoneVariant
from aco_engine.pheromone import (
    AntColonySystemUpdate,
    AntSystemUpdate,
    ElitistAntSystemUpdate,
    MaxMinUpdate,
    PheromoneUpdate,
)
from aco_engine.probe import Probe
from aco_engine.termination import AnyOf, ElapsedTime, IterationCount, TerminationCondition

logger = logging.getLogger(__name__)


def build_algorithm(
    config: Union[AcoConfig, Mapping[str, Any]],
    probe: Optional[Probe] = None,
) -> AntColonyOptimization:
    """
    Validate (if needed) and wire every component of one run.

    Args:
        config: an AcoConfig, or a plain mapping of its fields.
        probe:  optional observer; see probe.py.

    Raises:
        ConfigurationError: listing every problem found. Nothing has run.
    """
    if not isinstance(config, AcoConfig):
        config = _validate(config)

    try:
        return _assemble(config, probe)
    except ValueError as exc:
        raise ConfigurationError([str(exc)]) from exc


def _validate(data: Mapping[str, Any]) -> AcoConfig:
    try:
        return AcoConfig(**data)
    except ValidationError as exc:
        problems = _problems_from(exc)
        for problem in _cross_field_problems_of_valid_fields(data, exc):
            if problem not in problems:
                problems.append(problem)
        raise ConfigurationError(problems) from exc


def _cross_field_problems_of_valid_fields(
    data: Mapping[str, Any],
    exc: ValidationError,
) -> List[str]:
    """
    Re-run the cross-field checks with every failing field left at its default.

    pydantic skips the model validator once any field fails, so a bad
    alpha would otherwise hide a missing termination condition. Problems
    that name a failing field are dropped: that field is already reported.
    """
    failed = {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
    if not failed or "weights" in failed:
        return []
    valid = {name: value for name, value in data.items() if name not in failed}
    try:
        AcoConfig(**valid)
    except ValidationError as second:
        return [
            problem for problem in _problems_from(second)
            if not any(name in problem for name in failed)
        ]
    return []


def _problems_from(exc: ValidationError) -> List[str]:
    problems: List[str] = []
    for error in exc.errors():
        cause = error.get("ctx", {}).get("error")
        if isinstance(cause, ConfigurationError):
            problems.extend(cause.problems)
            continue
        loc = ".".join(str(part) for part in error["loc"]) or "config"
        problems.append(f"{loc}: {error['msg']}")
    return problems


def _assemble(config: AcoConfig, probe: Optional[Probe]) -> AntColonyOptimization:
    n = config.n_nodes
    children = np.random.SeedSequence(config.seed).spawn(config.n_ants + 1)
    rngs = [np.random.default_rng(child) for child in children]

    ants = make_ants(config.n_ants, n, rngs[:-1], config.exploitation_rate)
    colony = Colony(ants, _goodness(config, rngs[-1]), _local_update(config))

    algorithm = AntColonyOptimization(
        colony=colony,
        fitness=PathLengthInverse(config.weights),
        update_rule=_update_rule(config),
        termination=_termination(config),
        pheromone=config.initial_pheromone_array(),
        probe=probe,
    )
    logger.debug(
        "Built %r with variant=%s, seed=%s", algorithm, config.variant.value, config.seed
    )
    return algorithm


def _goodness(config: AcoConfig, rng: np.random.Generator) -> Goodness:
    heuristic = config.heuristic_or_default()
    if config.randomized_goodness:
        return RandomizedGoodness(
            config.alpha, config.beta, heuristic, rng, config.layer_weights
        )
    return CanonicalGoodness(config.alpha, config.beta, heuristic, config.layer_weights)


def _local_update(config: AcoConfig) -> Optional[LocalUpdate]:
    if config.local_update is None:
        return None
    if config.local_update == LocalUpdateKind.DECAY:
        return Decay(config.local_decay_rate, symmetric=config.symmetric)
    stable = (
        config.local_stable_constant
        if config.local_stable_constant is not None
        else config.initial_pheromone
    )
    return DecayTo(config.local_decay_rate, stable, symmetric=config.symmetric)


def _update_rule(config: AcoConfig) -> PheromoneUpdate:
    rho = config.evaporation_rate
    if config.variant == PheromoneVariant.ELITIST:
        return ElitistAntSystemUpdate(rho, config.elite_weight, symmetric=config.symmetric)
    if config.variant == PheromoneVariant.MAX_MIN:
        return MaxMinUpdate(
            rho,
            config.lower_bound,
            config.upper_bound,
            best_policy=make_best_policy(config.best_policy),
            symmetric=config.symmetric,
        )
    if config.variant == PheromoneVariant.ANT_COLONY_SYSTEM:
        return AntColonySystemUpdate(
            rho,
            best_policy=make_best_policy(config.best_policy),
            symmetric=config.symmetric,
        )
    return AntSystemUpdate(rho, symmetric=config.symmetric)


def _termination(config: AcoConfig) -> TerminationCondition:
    conditions: List[TerminationCondition] = []
    if config.iterations is not None:
        conditions.append(IterationCount(config.iterations))
    if config.time_limit_s is not None:
        conditions.append(ElapsedTime(config.time_limit_s))
    if len(conditions) == 1:
        return conditions[0]
    return AnyOf(*conditions)
