"""Input data: feature matrices and annotation catalogs."""

from map_evaluator.data.annotations import (
    Catalog,
    CatalogItem,
    parse_annotations,
    parse_line,
)
from map_evaluator.data.features import DEFAULT_FEATURES_KEY, FeatureStore

__all__ = [
    "Catalog",
    "CatalogItem",
    "DEFAULT_FEATURES_KEY",
    "FeatureStore",
    "parse_annotations",
    "parse_line",
]
