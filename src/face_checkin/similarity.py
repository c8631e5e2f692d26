from __future__ import annotations

import logging
from typing import List, Sequence

import numpy as np

from .face_types import MatchResult

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.6
# Norm tolerance for treating a vector as already normalized.
UNIT_TOLERANCE = 1e-5


def normalize(vec: np.ndarray) -> np.ndarray:
    arr = np.asarray(vec, dtype=np.float32)
    norm = float(np.linalg.norm(arr))
    # All-zero descriptors pass through unchanged.
    if norm == 0:
        return arr.copy()
    return (arr / norm).astype(np.float32)


def is_normalized(vec: np.ndarray, tol: float = UNIT_TOLERANCE) -> bool:
    norm = float(np.linalg.norm(np.asarray(vec, dtype=np.float64)))
    return abs(norm - 1.0) <= tol


def as_unit(vec: np.ndarray) -> np.ndarray:
    # Re-normalizing a stored unit vector would shift it by rounding error.
    arr = np.asarray(vec, dtype=np.float32)
    return arr.copy() if is_normalized(arr) else normalize(arr)


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Distance over the shared prefix of both vectors."""
    a = np.asarray(a, dtype=np.float32)
    b = np.asarray(b, dtype=np.float32)
    n = min(a.shape[0], b.shape[0])
    diff = a[:n].astype(np.float64) - b[:n].astype(np.float64)
    return float(np.sqrt(np.dot(diff, diff)))


def _distance_to_similarity(distance: float, threshold: float) -> float:
    return float(min(1.0, max(0.0, 1.0 - distance / threshold)))


def similarity(
    a: np.ndarray, b: np.ndarray, threshold: float = DEFAULT_THRESHOLD
) -> float:
    """Map Euclidean distance to a score in [0, 1].

    Identical vectors score 1.0; anything at or beyond ``threshold`` scores 0.
    """
    if threshold <= 0:
        raise ValueError("threshold must be positive")
    return _distance_to_similarity(euclidean_distance(a, b), threshold)


def best_match(
    candidate: np.ndarray,
    templates: Sequence[np.ndarray],
    threshold: float = DEFAULT_THRESHOLD,
) -> MatchResult:
    """Score ``candidate`` against every template and keep the best one.

    Inputs that are already unit length are compared as given.

    Ties keep the earliest template: a later template must score strictly
    higher to replace the current best. Since the running best starts at 0,
    a template set where nothing scores above 0 reports ``best_index == -1``.
    """
    if threshold <= 0:
        raise ValueError("threshold must be positive")
    if len(templates) == 0:
        return MatchResult(best_similarity=0.0, best_index=-1, all_distances=[])

    current = as_unit(candidate)
    best_sim = 0.0
    best_idx = -1
    distances: List[float] = []
    for idx, template in enumerate(templates):
        dist = euclidean_distance(current, as_unit(template))
        distances.append(dist)
        sim = _distance_to_similarity(dist, threshold)
        if sim > best_sim:
            best_sim = sim
            best_idx = idx
    logger.debug(
        "best match index=%d similarity=%.3f over %d templates",
        best_idx,
        best_sim,
        len(distances),
    )
    return MatchResult(
        best_similarity=best_sim, best_index=best_idx, all_distances=distances
    )
