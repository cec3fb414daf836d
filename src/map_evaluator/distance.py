"""Distance functions between feature vectors.

Every metric is implemented once in batched form, ``to_all(query, matrix)``,
returning the distance from ``query`` to each row of ``matrix``. The pairwise
form ``compute(a, b)`` evaluates the batched form on a single row, so both
always agree. All arithmetic is done in float64.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List

import numpy as np

from map_evaluator.errors import ConfigurationError, NumericError

BatchDistance = Callable[[np.ndarray, np.ndarray], np.ndarray]


@dataclass(frozen=True)
class DistanceMetric:
    """A named, stateless dissimilarity function.

    Attributes:
        name: Canonical name
        to_all: Batched implementation ``(query [D], matrix [N, D]) -> [N]``
        symmetric: Whether ``compute(a, b) == compute(b, a)`` holds
        description: One-line description shown by the CLI
    """

    name: str
    to_all: BatchDistance
    symmetric: bool = True
    description: str = ""

    def compute(self, a: np.ndarray, b: np.ndarray) -> float:
        """Distance between two feature vectors."""
        a = np.asarray(a).ravel()
        b = np.asarray(b).ravel()
        if a.shape != b.shape:
            raise ValueError(f"Vector shapes differ: {a.shape} != {b.shape}")
        return float(self.to_all(a, b[np.newaxis, :])[0])

    def __call__(self, a: np.ndarray, b: np.ndarray) -> float:
        return self.compute(a, b)


def _difference(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    return np.subtract(matrix, query, dtype=np.float64)


def l1_distance(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    return np.abs(_difference(query, matrix)).sum(axis=1)


def l2_squared_distance(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    diff = _difference(query, matrix)
    return np.einsum("ij,ij->i", diff, diff)


def l2_distance(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    return np.sqrt(l2_squared_distance(query, matrix))


def infinity_distance(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    return np.abs(_difference(query, matrix)).max(axis=1)


def cosine_distance(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """1 - cosine similarity, in [0, 2].

    Evaluated as half the squared L2 distance between the unit vectors,
    which is exactly 0 for identical inputs and never negative.

    Raises:
        NumericError: The query or any row has zero norm
    """
    query = np.asarray(query, dtype=np.float64)
    matrix = np.asarray(matrix, dtype=np.float64)

    # Same reduction as the rows so a row equal to the query normalizes identically
    query_norm = np.linalg.norm(query[np.newaxis, :], axis=1)[0]
    if query_norm == 0:
        raise NumericError("Cosine distance undefined: query vector has zero norm")

    row_norms = np.linalg.norm(matrix, axis=1)
    zero_rows = np.flatnonzero(row_norms == 0)
    if zero_rows.size:
        raise NumericError(
            f"Cosine distance undefined: {zero_rows.size} vector(s) with zero norm "
            f"(first index {int(zero_rows[0])})"
        )

    diff = matrix / row_norms[:, np.newaxis] - query / query_norm
    return np.clip(0.5 * np.einsum("ij,ij->i", diff, diff), 0.0, 2.0)


def hamming_distance(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Fraction of positions whose zero/nonzero state differs.

    Vectors are binarized (nonzero -> 1) and the mismatch count is divided
    by the vector length, giving values in [0, 1].
    """
    query_bits = np.asarray(query) != 0
    matrix_bits = np.asarray(matrix) != 0
    mismatches = np.count_nonzero(matrix_bits != query_bits, axis=1)
    return mismatches.astype(np.float64) / matrix_bits.shape[1]


def max_dimension_difference(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Absolute difference at the index of the query's largest value.

    Meant for probability-layer features: argmax of the query is its most
    likely class. First occurrence wins on ties. Not symmetric.
    """
    k = int(np.argmax(query))
    return np.abs(np.subtract(matrix[:, k], query[k], dtype=np.float64))


_REGISTRY: Dict[str, DistanceMetric] = {}
_ALIASES: Dict[str, str] = {}


def register_distance_metric(metric: DistanceMetric, *aliases: str) -> None:
    """Add a metric to the registry under its name and any aliases."""
    name = metric.name.lower()
    _REGISTRY[name] = metric
    for alias in (name, *aliases):
        _ALIASES[alias.lower()] = name


def get_distance_metric(name: str) -> DistanceMetric:
    """Look up a metric by name or alias (case-insensitive).

    Raises:
        ConfigurationError: Unknown name
    """
    key = _ALIASES.get(str(name).strip().lower())
    if key is None:
        raise ConfigurationError(
            f"Unknown distance function: {name}. "
            f"Choose from: {available_distance_metrics()}"
        )
    return _REGISTRY[key]


def available_distance_metrics() -> List[str]:
    return list(_REGISTRY)


def distance_aliases(name: str) -> List[str]:
    """All accepted spellings of the metric ``name``."""
    canonical = get_distance_metric(name).name
    return [alias for alias, target in _ALIASES.items() if target == canonical]


register_distance_metric(
    DistanceMetric("l2", l2_distance, description="Euclidean distance"),
    "lp2",
)
register_distance_metric(
    DistanceMetric("l2sqr", l2_squared_distance, description="Squared Euclidean distance"),
    "l2squared",
)
register_distance_metric(
    DistanceMetric("l1", l1_distance, description="Manhattan distance"),
    "lp1",
)
register_distance_metric(
    DistanceMetric("linfinity", infinity_distance, description="Chebyshev (max) distance"),
    "infinity",
    "linf",
)
register_distance_metric(
    DistanceMetric("cosine", cosine_distance, description="1 - cosine similarity"),
)
register_distance_metric(
    DistanceMetric(
        "hamming",
        hamming_distance,
        description="Fraction of positions differing after nonzero -> 1 binarization",
    ),
)
register_distance_metric(
    DistanceMetric(
        "maxdim",
        max_dimension_difference,
        symmetric=False,
        description="Difference at the index of the query's highest value",
    ),
    "maximal_dimension_difference",
    "maxdimensiondifference",
)
