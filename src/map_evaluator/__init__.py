"""Mean average precision evaluator for pre-computed image features.

Ranks a catalog of feature vectors for every query item and scores the
rankings against ground-truth class annotations.
"""

__version__ = "0.1.0"

from map_evaluator.config import Config, load_config
from map_evaluator.data import Catalog, CatalogItem, FeatureStore, parse_annotations
from map_evaluator.distance import DistanceMetric, get_distance_metric
from map_evaluator.errors import (
    ConfigurationError,
    ConsistencyError,
    EvaluationError,
    LoadError,
    MapEvaluatorError,
    NumericError,
    ParseError,
)
from map_evaluator.evaluation import EvaluationReport, QueryResult, RetrievalEvaluator

__all__ = [
    "Catalog",
    "CatalogItem",
    "Config",
    "ConfigurationError",
    "ConsistencyError",
    "DistanceMetric",
    "EvaluationError",
    "EvaluationReport",
    "FeatureStore",
    "LoadError",
    "MapEvaluatorError",
    "NumericError",
    "ParseError",
    "QueryResult",
    "RetrievalEvaluator",
    "get_distance_metric",
    "load_config",
    "parse_annotations",
]
