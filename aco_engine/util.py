"""
aco_engine/util.py
──────────────────
Helpers for preparing problem inputs. Nothing here is used inside the
iteration loop.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray


def heuristic_from_weights(weights: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Standard distance heuristic: η[i][j] = 1 / W[i][j], and 0 where W[i][j] == 0.

    The zero guard covers the diagonal (and any free edge) without emitting
    a divide-by-zero warning.
    """
    w = np.asarray(weights, dtype=np.float64)
    heuristic = np.zeros_like(w)
    np.divide(1.0, w, out=heuristic, where=w != 0.0)
    return heuristic


def random_tsp_instance(
    n_cities: int,
    seed: Optional[int] = None,
    size: float = 100.0,
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Scatter n_cities uniformly on a size×size square and return
    (cities, weights), where weights is the symmetric Euclidean distance
    matrix with a zero diagonal.

    Raises:
        ValueError: if n_cities < 2.
    """
    if n_cities < 2:
        raise ValueError(f"random_tsp_instance requires n_cities≥2, got {n_cities}")

    rng = np.random.default_rng(seed)
    cities = rng.uniform(0.0, size, size=(n_cities, 2))
    diff = cities[:, np.newaxis, :] - cities[np.newaxis, :, :]
    weights = np.sqrt((diff ** 2).sum(axis=-1))
    return cities, weights
