"""
Vector math shared by the fusion engine and the engagement calculator.

Vectors come in as plain float sequences (provider output) and go out as
lists of Python floats so they can be persisted without numpy types leaking
into the records.
"""

from typing import List, Sequence

import numpy as np

from mfuse.exceptions import FusionInputError, InvalidWeightsError

Vector = Sequence[float]


def _as_array(vector: Vector) -> np.ndarray:
    return np.asarray(vector, dtype=np.float64).reshape(-1)


def normalize_l2(vector: Vector) -> List[float]:
    """
    Scale a vector to unit Euclidean length.

    A zero vector has no direction and is returned unchanged.
    """
    arr = _as_array(vector)
    norm = float(np.linalg.norm(arr))
    if norm == 0.0:
        return arr.tolist()
    return (arr / norm).tolist()


def normalize_weights(weights: Sequence[float]) -> List[float]:
    """Divide each weight by the total so the list sums to 1."""
    if len(weights) == 0:
        raise InvalidWeightsError("Weight list is empty")

    arr = np.asarray(weights, dtype=np.float64)
    if np.any(arr < 0):
        raise InvalidWeightsError(
            "Weights must be non-negative", details={"weights": list(map(float, weights))}
        )

    total = float(arr.sum())
    if total <= 0.0:
        raise InvalidWeightsError(
            "Weights must sum to a positive value", details={"weights": list(map(float, weights))}
        )

    return (arr / total).tolist()


def combine_vectors(vectors: Sequence[Vector], weights: Sequence[float]) -> List[float]:
    """
    Weighted concatenation of vectors with unrelated dimensions.

    Each vector is scaled by its renormalized weight and the scaled vectors
    are concatenated in input order, so the output dimension is the sum of
    the input dimensions.

    Raises:
        FusionInputError: if the vector and weight counts differ or no vectors are given.
        InvalidWeightsError: if the weights cannot be renormalized.
    """
    if len(vectors) != len(weights):
        raise FusionInputError(
            f"Got {len(vectors)} vectors but {len(weights)} weights",
            details={"vectors": len(vectors), "weights": len(weights)},
        )
    if len(vectors) == 0:
        raise FusionInputError("No vectors to combine")

    normalized = normalize_weights(weights)
    scaled = [_as_array(vec) * weight for vec, weight in zip(vectors, normalized)]
    return np.concatenate(scaled).tolist()


def average_vectors(vectors: Sequence[Vector]) -> List[float]:
    """Elementwise mean of equally sized vectors."""
    if len(vectors) == 0:
        raise FusionInputError("No vectors to average")

    dimensions = {len(vec) for vec in vectors}
    if len(dimensions) != 1:
        raise FusionInputError(
            "Cannot average vectors of different dimensions",
            details={"dimensions": sorted(dimensions)},
        )
    return np.mean(np.vstack([_as_array(vec) for vec in vectors]), axis=0).tolist()
