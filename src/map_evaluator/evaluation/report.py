"""Serialization of evaluation results."""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

from map_evaluator.errors import ConfigurationError
from map_evaluator.evaluation.analysis import (
    analyze_per_class,
    summarize_average_precision,
    worst_queries,
)
from map_evaluator.evaluation.evaluator import EvaluationReport
from map_evaluator.logging_config import get_logger

logger = get_logger(__name__)


def build_report(
    report: EvaluationReport,
    sources: Optional[Dict[str, str]] = None,
    num_worst: int = 10,
) -> Dict[str, Any]:
    """JSON-serializable summary of an evaluation run."""
    return {
        "sources": sources or {},
        "num_items": report.num_items,
        "num_queries": report.num_queries,
        "feature_dim": report.feature_dim,
        "config": {
            "distance_function": report.distance_function,
            "top_k": report.top_k,
            "exclude_query_from_db": report.exclude_query_from_db,
        },
        "mAP": report.mean_average_precision,
        "ap_summary": summarize_average_precision(report),
        "per_class": {
            str(class_id): stats for class_id, stats in analyze_per_class(report).items()
        },
        "worst_queries": worst_queries(report, num_worst),
        "queries": [
            {
                "query_id": r.query_id,
                "class_id": r.class_id,
                "average_precision": r.average_precision,
                "num_relevant": r.num_relevant,
                "num_results": r.num_results,
            }
            for r in report.query_results
        ],
        "performance": report.stats,
    }


def save_report(
    report: EvaluationReport,
    output_path: Path,
    sources: Optional[Dict[str, str]] = None,
) -> None:
    """Write the JSON report to ``output_path``."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(build_report(report, sources), f, indent=2, ensure_ascii=False)

    logger.info(f"Report saved to: {output_path}")


def save_precision_recall(report: EvaluationReport, output_path: Path) -> None:
    """Write the precision-recall samples of every query to an ``.npz`` archive.

    Curves have different lengths, so they are stored concatenated with
    ``offsets`` marking where each query starts:
    ``precision[offsets[i]:offsets[i + 1]]`` belongs to ``query_ids[i]``.

    Raises:
        ConfigurationError: The report was produced without curves
    """
    if any(r.precision_recall is None for r in report.query_results):
        raise ConfigurationError(
            "Precision-recall samples were not collected (use with_curves=True)"
        )

    lengths = [r.num_results for r in report.query_results]
    offsets = np.concatenate(([0], np.cumsum(lengths))).astype(np.int64)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    np.savez_compressed(
        output_path,
        query_ids=np.array([r.query_id for r in report.query_results], dtype=np.int64),
        class_ids=np.array([r.class_id for r in report.query_results], dtype=np.int64),
        average_precision=report.average_precisions,
        offsets=offsets,
        precision=np.concatenate([r.precision for r in report.query_results]),
        recall=np.concatenate([r.recall for r in report.query_results]),
    )

    logger.info(f"Precision-recall samples saved to: {output_path}")


def load_precision_recall(path: Path) -> Dict[int, np.ndarray]:
    """Read curves written by ``save_precision_recall``.

    Returns:
        Dict mapping query id to a ``[n, 2]`` array of (precision, recall)
    """
    with np.load(path) as data:
        offsets = data["offsets"]
        precision = data["precision"]
        recall = data["recall"]
        return {
            int(query_id): np.column_stack(
                [precision[offsets[i]:offsets[i + 1]], recall[offsets[i]:offsets[i + 1]]]
            )
            for i, query_id in enumerate(data["query_ids"])
        }
