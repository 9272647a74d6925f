"""
aco_engine/termination.py
─────────────────────────
When to stop.

The orchestrator calls init(pheromone) once at run start, then
update_and_check(pheromone) once after every iteration. True means stop.
Termination is only ever checked between iterations; an iteration that
has started always finishes.

  IterationCount(limit)   → stop after exactly `limit` iterations.
  ElapsedTime(seconds)    → stop once the run has been going longer than
                            `seconds` (checked between iterations, so the
                            last iteration can overshoot).
  AnyOf(*conditions)      → stop as soon as any child says stop.

The pheromone argument is unused by the built-in conditions; it is part
of the contract so that convergence-style conditions can inspect it.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Callable, List

from aco_engine.models import PheromoneArray


class TerminationCondition(ABC):

    @abstractmethod
    def init(self, pheromone: PheromoneArray) -> None:
        ...

    @abstractmethod
    def update_and_check(self, pheromone: PheromoneArray) -> bool:
        ...


class IterationCount(TerminationCondition):
    """
    Counts completed iterations.

    update_and_check() returns True on its limit-th call, so with the check
    placed after each iteration exactly `limit` iterations run.
    """

    def __init__(self, limit: int) -> None:
        if limit < 1:
            raise ValueError(f"IterationCount requires limit≥1, got {limit}")
        self.limit = int(limit)
        self.count: int = 0

    def init(self, pheromone: PheromoneArray) -> None:
        self.count = 0

    def update_and_check(self, pheromone: PheromoneArray) -> bool:
        self.count += 1
        return self.count >= self.limit

    def __repr__(self) -> str:
        return f"IterationCount(limit={self.limit}, count={self.count})"


class ElapsedTime(TerminationCondition):
    """
    Wall-clock budget, measured from init().

    Args:
        duration_s: budget in seconds, > 0.
        clock:      monotonic clock returning seconds. Injected by tests.
    """

    def __init__(
        self,
        duration_s: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if duration_s <= 0.0:
            raise ValueError(f"ElapsedTime requires duration_s>0, got {duration_s}")
        self.duration_s = float(duration_s)
        self._clock = clock
        self._start: float = clock()

    def init(self, pheromone: PheromoneArray) -> None:
        self._start = self._clock()

    def update_and_check(self, pheromone: PheromoneArray) -> bool:
        return self._clock() - self._start > self.duration_s

    def __repr__(self) -> str:
        return f"ElapsedTime(duration_s={self.duration_s})"


class AnyOf(TerminationCondition):
    """
    Stops when any child stops. Every child is updated on every call, so
    counters stay in step even after one of them has fired.
    """

    def __init__(self, *conditions: TerminationCondition) -> None:
        if not conditions:
            raise ValueError("AnyOf requires at least one condition")
        self.conditions: List[TerminationCondition] = list(conditions)

    def init(self, pheromone: PheromoneArray) -> None:
        for condition in self.conditions:
            condition.init(pheromone)

    def update_and_check(self, pheromone: PheromoneArray) -> bool:
        results = [c.update_and_check(pheromone) for c in self.conditions]
        return any(results)

    def __repr__(self) -> str:
        return f"AnyOf({', '.join(repr(c) for c in self.conditions)})"
