"""Tests for the command-line interface."""

import json
import logging
from pathlib import Path

import numpy as np
import pytest
from typer.testing import CliRunner

from map_evaluator import __version__
from map_evaluator.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers bound to the runner's streams."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)


@pytest.fixture
def annotations_file(write_annotations) -> Path:
    return write_annotations([(0, 0, 1, 2), (1, 0, 0, 2), (2, 1, 0, 2), (3, 1, 0, 2)])


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_evaluate_worked_example(features_file: Path, annotations_file: Path) -> None:
    result = runner.invoke(
        app,
        ["evaluate", str(features_file), str(annotations_file), "-d", "L2", "-e"],
    )

    assert result.exit_code == 0, result.output
    assert "Mean average precision" in result.output
    assert "1.000000" in result.output


def test_evaluate_writes_report_and_curves(
    tmp_path: Path, features_file: Path, annotations_file: Path
) -> None:
    report_path = tmp_path / "report.json"
    curves_path = tmp_path / "curves.npz"

    result = runner.invoke(
        app,
        [
            "evaluate", str(features_file), str(annotations_file),
            "--exclude-query-from-results",
            "--top-k", "2",
            "--output", str(report_path),
            "--curves", str(curves_path),
        ],
    )

    assert result.exit_code == 0, result.output
    with open(report_path, encoding="utf-8") as f:
        report = json.load(f)
    assert report["mAP"] == pytest.approx(1.0)
    assert report["config"]["top_k"] == 2
    assert report["sources"]["features"] == str(features_file)

    with np.load(curves_path) as curves:
        np.testing.assert_array_equal(curves["query_ids"], [0])
        assert len(curves["precision"]) == 2


def test_evaluate_with_config_file(
    tmp_path: Path, features_file: Path, annotations_file: Path
) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("distance_function: l1\nexclude_query_from_db: true\n")

    result = runner.invoke(
        app,
        ["evaluate", str(features_file), str(annotations_file), "-c", str(config_file)],
    )

    assert result.exit_code == 0, result.output
    assert "Distance function: l1" in result.output


def test_include_query_overrides_config(
    tmp_path: Path, features_file: Path, annotations_file: Path
) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("exclude_query_from_db: true\n")
    report_path = tmp_path / "report.json"

    result = runner.invoke(
        app,
        [
            "evaluate", str(features_file), str(annotations_file),
            "-c", str(config_file),
            "--include-query",
            "-o", str(report_path),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Exclude query from results: False" in result.output
    with open(report_path, encoding="utf-8") as f:
        assert json.load(f)["config"]["exclude_query_from_db"] is False


def test_exclusion_comes_from_config_by_default(
    tmp_path: Path, features_file: Path, annotations_file: Path
) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text("exclude_query_from_db: true\n")

    result = runner.invoke(
        app,
        ["evaluate", str(features_file), str(annotations_file), "-c", str(config_file)],
    )

    assert result.exit_code == 0, result.output
    assert "Exclude query from results: True" in result.output


def test_evaluate_unknown_distance(features_file: Path, annotations_file: Path) -> None:
    result = runner.invoke(
        app,
        ["evaluate", str(features_file), str(annotations_file), "-d", "bogus"],
    )

    assert result.exit_code == 1
    assert "Unknown distance function" in result.output


def test_evaluate_parse_error(tmp_path: Path, features_file: Path) -> None:
    annotations = tmp_path / "bad.csv"
    annotations.write_text("0;0;1;2\n1;0;7;2\n2;1;0;2\n3;1;0;2\n", encoding="utf-8")

    result = runner.invoke(app, ["evaluate", str(features_file), str(annotations)])

    assert result.exit_code == 1
    assert "is_query" in result.output
    assert "Mean average precision" not in result.output


def test_evaluate_row_mismatch(features_file: Path, write_annotations) -> None:
    annotations = write_annotations([(0, 0, 1, 1), (1, 0, 0, 1)])

    result = runner.invoke(app, ["evaluate", str(features_file), str(annotations)])

    assert result.exit_code == 1
    assert "equal" in result.output


def test_distances_command() -> None:
    result = runner.invoke(app, ["distances"])

    assert result.exit_code == 0
    for name in ("l1", "l2", "l2sqr", "linfinity", "cosine", "hamming", "maxdim"):
        assert name in result.output


def test_convert_text_output(tmp_path: Path) -> None:
    source = tmp_path / "features.txt"
    source.write_text("a.jpg:1;2;\nb.jpg:3;4;\n", encoding="utf-8")
    output = tmp_path / "features.npz"

    result = runner.invoke(app, ["convert", str(source), str(output)])

    assert result.exit_code == 0, result.output
    with np.load(output) as data:
        np.testing.assert_array_equal(data["caffe_features"], [[1, 2], [3, 4]])
