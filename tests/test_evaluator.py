"""Tests for RetrievalEvaluator."""

import numpy as np
import pytest

from map_evaluator.data import Catalog, CatalogItem, FeatureStore
from map_evaluator.distance import get_distance_metric
from map_evaluator.errors import (
    ConfigurationError,
    ConsistencyError,
    EvaluationError,
    NumericError,
)
from map_evaluator.evaluation import RetrievalEvaluator


class TestConstruction:
    """Fatal configuration errors are raised before any query runs."""

    def test_row_count_mismatch(self, worked_example):
        features, _ = worked_example
        catalog = Catalog([CatalogItem(id=0, class_id=0, is_query=True, class_count=1)])

        with pytest.raises(ConsistencyError, match="not equal"):
            RetrievalEvaluator(features, catalog)

    def test_unknown_distance_function(self, worked_example):
        with pytest.raises(ConfigurationError, match="Unknown distance function"):
            RetrievalEvaluator(*worked_example, distance_function="earth_mover")

    def test_negative_top_k(self, worked_example):
        with pytest.raises(ConfigurationError, match="top_k"):
            RetrievalEvaluator(*worked_example, top_k=-1)

    def test_metric_instance_accepted(self, worked_example):
        metric = get_distance_metric("l1")
        evaluator = RetrievalEvaluator(*worked_example, distance_function=metric)

        assert evaluator.metric is metric


class TestEvaluate:
    """End-to-end mAP computation."""

    def test_worked_example(self, worked_example):
        evaluator = RetrievalEvaluator(
            *worked_example, distance_function="l2", exclude_query_from_db=True
        )

        assert evaluator.evaluate() == 1.0

    def test_worked_example_ranking(self, worked_example):
        features, catalog = worked_example
        evaluator = RetrievalEvaluator(features, catalog, distance_function="l2")

        distances = evaluator.compute_distances(catalog[0])

        np.testing.assert_allclose(distances, [0.0, 1.0, 3.0, 2.0])

    def test_clustered_data_is_perfect(self, clustered_dataset):
        for name in ("l1", "l2", "l2sqr", "linfinity", "cosine"):
            evaluator = RetrievalEvaluator(
                *clustered_dataset, distance_function=name, exclude_query_from_db=True
            )
            assert evaluator.evaluate() == pytest.approx(1.0), name

    def test_map_is_mean_of_query_ap(self, clustered_dataset):
        features, catalog = clustered_dataset
        # Shuffle the class labels so the APs differ between queries
        rng = np.random.default_rng(1)
        labels = rng.permutation([item.class_id for item in catalog])
        shuffled = Catalog(
            [
                CatalogItem(id=i, class_id=int(c), is_query=i % 2 == 0, class_count=5)
                for i, c in enumerate(labels)
            ]
        )

        report = RetrievalEvaluator(features, shuffled, top_k=6).evaluate_queries()

        assert report.num_queries == 8
        assert [r.query_id for r in report.query_results] == [0, 2, 4, 6, 8, 10, 12, 14]
        assert report.mean_average_precision == pytest.approx(
            float(np.mean(report.average_precisions))
        )
        assert all(r.num_results == 6 for r in report.query_results)

    def test_exclusion_consumes_all_but_self(self, clustered_dataset):
        report = RetrievalEvaluator(
            *clustered_dataset, exclude_query_from_db=True
        ).evaluate_queries()

        assert all(r.num_results == 14 for r in report.query_results)
        assert all(r.num_relevant == 4 for r in report.query_results)

    def test_parallel_run_is_identical(self, clustered_dataset):
        features, catalog = clustered_dataset
        sequential = RetrievalEvaluator(features, catalog, "l2", True, top_k=7)
        parallel = RetrievalEvaluator(features, catalog, "l2", True, top_k=7, num_workers=4)

        assert parallel.evaluate() == sequential.evaluate()

    def test_repeated_runs_are_identical(self, clustered_dataset):
        evaluator = RetrievalEvaluator(*clustered_dataset, distance_function="cosine")

        assert evaluator.evaluate() == evaluator.evaluate()

    def test_curves_collected(self, worked_example):
        report = RetrievalEvaluator(
            *worked_example, exclude_query_from_db=True
        ).evaluate_queries(with_curves=True)

        curve = report.query_results[0].precision_recall
        assert curve.shape == (3, 2)
        np.testing.assert_allclose(curve[0], [1.0, 1.0])

    def test_report_fields(self, worked_example):
        report = RetrievalEvaluator(
            *worked_example, distance_function="L1", top_k=2
        ).evaluate_queries()

        assert report.distance_function == "l1"
        assert report.top_k == 2
        assert report.num_items == 4
        assert report.feature_dim == 1
        assert report.stats["total_time"] >= 0.0

    def test_distances_are_private_per_query(self, clustered_dataset):
        features, catalog = clustered_dataset
        evaluator = RetrievalEvaluator(features, catalog)

        first = evaluator.compute_distances(catalog[0])
        second = evaluator.compute_distances(catalog[0])
        first[:] = -1.0

        assert second[0] == 0.0
        assert first is not second


class TestEvaluationErrors:
    """Divisions by zero are reported instead of producing NaN."""

    def test_no_queries(self, worked_example):
        features, _ = worked_example
        catalog = Catalog(
            [CatalogItem(id=i, class_id=0, is_query=False, class_count=4) for i in range(4)]
        )

        with pytest.raises(EvaluationError, match="No query items"):
            RetrievalEvaluator(features, catalog).evaluate()

    def test_empty_query_set_is_numeric_error(self):
        assert issubclass(EvaluationError, NumericError)

    def test_cosine_zero_vector(self):
        features = FeatureStore(np.array([[1.0, 0.0], [0.0, 0.0], [1.0, 1.0]]))
        catalog = Catalog(
            [CatalogItem(id=i, class_id=0, is_query=i == 0, class_count=3) for i in range(3)]
        )

        with pytest.raises(NumericError, match="zero norm"):
            RetrievalEvaluator(features, catalog, distance_function="cosine").evaluate()

    def test_singleton_class_with_exclusion(self, worked_example):
        features, _ = worked_example
        catalog = Catalog(
            [CatalogItem(id=i, class_id=i, is_query=True, class_count=1) for i in range(4)]
        )

        with pytest.raises(NumericError, match="no matches"):
            RetrievalEvaluator(features, catalog, exclude_query_from_db=True).evaluate()
