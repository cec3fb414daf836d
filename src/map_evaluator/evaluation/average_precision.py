"""Average precision of one ranked result list.

AP is the trapezoidal area under the non-interpolated precision-recall
curve of the ranking, starting from the point (recall=0, precision=1).
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from map_evaluator.data.annotations import CatalogItem
from map_evaluator.errors import NumericError
from map_evaluator.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class QueryResult:
    """Score of a single query.

    Attributes:
        query_id: Catalog id of the query
        class_id: Class of the query
        average_precision: AP in [0, 1] when class_count is accurate
        num_results: Number of consumed (scored) ranking positions
        num_relevant: Relevant items found among the consumed positions
        precision: Precision after each consumed position (optional)
        recall: Recall after each consumed position (optional)
    """

    query_id: int
    class_id: int
    average_precision: float
    num_results: int
    num_relevant: int
    precision: Optional[np.ndarray] = None
    recall: Optional[np.ndarray] = None

    @property
    def precision_recall(self) -> Optional[np.ndarray]:
        """``[num_results, 2]`` array of (precision, recall) samples."""
        if self.precision is None or self.recall is None:
            return None
        return np.column_stack([self.precision, self.recall])


def stable_ranking(distances: np.ndarray) -> np.ndarray:
    """Item ids sorted by ascending distance, ties kept in id order.

    Raises:
        NumericError: A distance is NaN
    """
    distances = np.asarray(distances)
    if np.isnan(distances).any():
        raise NumericError(
            f"{int(np.isnan(distances).sum())} distance(s) are NaN"
        )
    return np.argsort(distances, kind="stable")


def evaluate_average_precision(
    query: CatalogItem,
    ranking: np.ndarray,
    class_ids: np.ndarray,
    exclude_query: bool = False,
    top_k: int = 0,
    with_curve: bool = False,
) -> QueryResult:
    """Score a ranking of catalog ids for ``query``.

    Args:
        query: The query item (its class_count is the number of relevant items)
        ranking: All catalog ids, nearest first
        class_ids: Class id of every catalog item, indexed by id
        exclude_query: Skip the query's own entry instead of scoring it
        top_k: Score only the first ``top_k`` consumed positions (0 = all)
        with_curve: Keep the precision/recall samples

    Returns:
        QueryResult for the query

    Raises:
        NumericError: No relevant item can be counted (zero matches)
    """
    ranking = np.asarray(ranking)
    matches = query.class_count
    result_count = len(ranking)

    if exclude_query:
        matches -= 1
        result_count -= 1

    if top_k > 0:
        if top_k > matches:
            logger.warning(
                f"Top K ({top_k}) is higher than match count ({matches}) "
                f"for query {query.id}"
            )
        result_count = min(top_k, result_count)
        matches = min(matches, result_count)

    if matches <= 0:
        raise NumericError(
            f"Query {query.id} has no matches to retrieve "
            f"(class_count={query.class_count}, exclude_query={exclude_query}, "
            f"top_k={top_k})"
        )

    # Raw ranking index of each consumed entry
    if exclude_query:
        self_position = int(np.flatnonzero(ranking == query.id)[0])
        keep = np.ones(len(ranking), dtype=bool)
        keep[self_position] = False
        positions = np.flatnonzero(keep)[:result_count]
    else:
        self_position = len(ranking)
        positions = np.arange(result_count)

    # Before the skipped self-match the divisor is index + 1, after it the
    # index itself.
    divisors = np.where(positions > self_position, positions, positions + 1)

    relevant = class_ids[ranking[positions]] == query.class_id
    match_count = np.cumsum(relevant, dtype=np.float64)

    recall = match_count / matches
    precision = match_count / divisors

    previous_recall = np.concatenate(([0.0], recall))[:-1]
    previous_precision = np.concatenate(([1.0], precision))[:-1]

    average_precision = float(
        np.sum((recall - previous_recall) * (precision + previous_precision) / 2)
    )

    return QueryResult(
        query_id=query.id,
        class_id=query.class_id,
        average_precision=average_precision,
        num_results=int(len(positions)),
        num_relevant=int(match_count[-1]) if len(match_count) else 0,
        precision=precision if with_curve else None,
        recall=recall if with_curve else None,
    )
