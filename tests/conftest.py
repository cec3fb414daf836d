"""Pytest configuration and fixtures."""

from pathlib import Path
from typing import Callable, Sequence, Tuple

import numpy as np
import pytest

from map_evaluator.config import Config
from map_evaluator.data import Catalog, CatalogItem, FeatureStore

AnnotationRow = Tuple[int, int, int, int]


@pytest.fixture
def default_config() -> Config:
    """Provide a default config for tests."""
    return Config()


@pytest.fixture
def temp_config_file(tmp_path: Path) -> Path:
    """Create a temporary config file for testing."""
    config_content = """
distance_function: cosine
top_k: 10
exclude_query_from_db: true
num_workers: 2
"""
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content)
    return config_file


@pytest.fixture
def write_annotations(tmp_path: Path) -> Callable[[Sequence[AnnotationRow]], Path]:
    """Factory writing ``id;class;is_query;class_count`` rows to a file."""

    def _write(rows: Sequence[AnnotationRow], name: str = "annotations.csv") -> Path:
        path = tmp_path / name
        lines = [";".join(str(v) for v in row) for row in rows]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def worked_example() -> Tuple[FeatureStore, Catalog]:
    """Four items of classes [0, 0, 1, 1]; item 0 is the only query.

    1-D features put the items at distances [0, 1, 3, 2] from item 0,
    so the ranking is [0, 1, 3, 2].
    """
    features = FeatureStore(np.array([[0.0], [1.0], [3.0], [2.0]], dtype=np.float32))
    catalog = Catalog(
        [
            CatalogItem(id=0, class_id=0, is_query=True, class_count=2),
            CatalogItem(id=1, class_id=0, is_query=False, class_count=2),
            CatalogItem(id=2, class_id=1, is_query=False, class_count=2),
            CatalogItem(id=3, class_id=1, is_query=False, class_count=2),
        ]
    )
    return features, catalog


@pytest.fixture
def clustered_dataset() -> Tuple[FeatureStore, Catalog]:
    """Three well separated classes of five items each, every item a query."""
    rng = np.random.default_rng(0)
    centers = np.array([[10.0, 0.0, 0.0], [0.0, 10.0, 0.0], [0.0, 0.0, 10.0]])

    rows = []
    items = []
    for item_id in range(15):
        class_id = item_id % 3
        rows.append(centers[class_id] + rng.normal(scale=0.1, size=3))
        items.append(
            CatalogItem(id=item_id, class_id=class_id, is_query=True, class_count=5)
        )

    return FeatureStore(np.array(rows, dtype=np.float32)), Catalog(items)


@pytest.fixture
def features_file(tmp_path: Path) -> Path:
    """The worked example features saved as ``.npz`` under the default key."""
    path = tmp_path / "features.npz"
    np.savez(path, caffe_features=np.array([[0.0], [1.0], [3.0], [2.0]], dtype=np.float32))
    return path
