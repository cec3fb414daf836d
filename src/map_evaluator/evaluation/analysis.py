"""Breakdown of per-query average precision."""

from collections import defaultdict
from typing import Dict, List

import numpy as np

from map_evaluator.evaluation.evaluator import EvaluationReport
from map_evaluator.logging_config import get_logger

logger = get_logger(__name__)


def summarize_average_precision(report: EvaluationReport) -> Dict[str, float]:
    """Distribution statistics of the per-query AP values."""
    aps = report.average_precisions
    if aps.size == 0:
        return {"mean": 0.0, "std": 0.0, "min": 0.0, "median": 0.0, "max": 0.0, "count": 0}

    return {
        "mean": float(np.mean(aps)),
        "std": float(np.std(aps)),
        "min": float(np.min(aps)),
        "median": float(np.median(aps)),
        "max": float(np.max(aps)),
        "count": int(aps.size),
    }


def analyze_per_class(report: EvaluationReport) -> Dict[int, Dict[str, float]]:
    """Mean AP of the queries of each class.

    Returns:
        Dict keyed by class id, sorted by ascending mean AP, with
        mean_ap, min_ap, max_ap and num_queries
    """
    per_class = defaultdict(list)
    for result in report.query_results:
        per_class[result.class_id].append(result.average_precision)

    analysis = {
        class_id: {
            "mean_ap": float(np.mean(aps)),
            "min_ap": float(np.min(aps)),
            "max_ap": float(np.max(aps)),
            "num_queries": len(aps),
        }
        for class_id, aps in per_class.items()
    }

    return dict(sorted(analysis.items(), key=lambda kv: (kv[1]["mean_ap"], kv[0])))


def worst_queries(report: EvaluationReport, count: int = 10) -> List[Dict]:
    """Queries with the lowest AP, ties by query id."""
    ranked = sorted(
        report.query_results,
        key=lambda r: (r.average_precision, r.query_id),
    )
    return [
        {
            "query_id": r.query_id,
            "class_id": r.class_id,
            "average_precision": r.average_precision,
            "num_relevant": r.num_relevant,
            "num_results": r.num_results,
        }
        for r in ranked[:count]
    ]


def print_analysis(report: EvaluationReport, num_classes: int = 5) -> None:
    """Log a structured summary of the evaluation."""
    summary = summarize_average_precision(report)

    logger.info("=" * 70)
    logger.info("AVERAGE PRECISION ANALYSIS")
    logger.info("=" * 70)

    logger.info(f"Queries: {summary['count']}")
    logger.info(f"  Mean AP:   {summary['mean']:.4f}")
    logger.info(f"  Std AP:    {summary['std']:.4f}")
    logger.info(f"  Median AP: {summary['median']:.4f}")
    logger.info(f"  Min AP:    {summary['min']:.4f}")
    logger.info(f"  Max AP:    {summary['max']:.4f}")

    logger.info("Hardest classes:")
    for class_id, stats in list(analyze_per_class(report).items())[:num_classes]:
        logger.info(
            f"  class {class_id}: mean AP {stats['mean_ap']:.4f} "
            f"({stats['num_queries']} queries)"
        )

    logger.info("=" * 70)
