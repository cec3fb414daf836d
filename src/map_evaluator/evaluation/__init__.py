"""Retrieval evaluation: ranking, average precision and mAP."""

from map_evaluator.evaluation.analysis import (
    analyze_per_class,
    print_analysis,
    summarize_average_precision,
    worst_queries,
)
from map_evaluator.evaluation.average_precision import (
    QueryResult,
    evaluate_average_precision,
    stable_ranking,
)
from map_evaluator.evaluation.evaluator import EvaluationReport, RetrievalEvaluator
from map_evaluator.evaluation.report import (
    build_report,
    load_precision_recall,
    save_precision_recall,
    save_report,
)

__all__ = [
    "EvaluationReport",
    "QueryResult",
    "RetrievalEvaluator",
    "analyze_per_class",
    "build_report",
    "evaluate_average_precision",
    "load_precision_recall",
    "print_analysis",
    "save_precision_recall",
    "save_report",
    "stable_ranking",
    "summarize_average_precision",
    "worst_queries",
]
