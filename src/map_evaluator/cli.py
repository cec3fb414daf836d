"""Main CLI module using Typer for command-line interface."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from map_evaluator import __version__
from map_evaluator.config import Config, load_config
from map_evaluator.data import FeatureStore, parse_annotations
from map_evaluator.distance import (
    available_distance_metrics,
    distance_aliases,
    get_distance_metric,
)
from map_evaluator.evaluation import (
    RetrievalEvaluator,
    analyze_per_class,
    print_analysis,
    save_precision_recall,
    save_report,
    summarize_average_precision,
    worst_queries,
)
from map_evaluator.logging_config import setup_logging

app = typer.Typer(
    name="map-evaluator",
    help="Mean average precision evaluation of pre-computed image features",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Display version and exit."""
    if value:
        console.print(f"[bold green]mAP Evaluator[/bold green] v{__version__}")
        raise typer.Exit()


def common_setup(
    config_path: Optional[Path],
    verbose: bool,
    **overrides,
) -> Config:
    """Load and validate the config, then configure logging.

    Args:
        config_path: Path to config file
        verbose: Enable verbose logging
        **overrides: Values given on the command line (None = not given)
    """
    if verbose:
        overrides["log_level"] = "DEBUG"

    config = load_config(config_path, **overrides)
    config.validate()

    setup_logging(
        level=config.log_level,
        log_to_file=config.log_to_file,
        log_file=config.log_file,
    )

    return config


def _color(value: float) -> str:
    return "green" if value > 0.8 else "yellow" if value > 0.5 else "red"


@app.command()
def evaluate(
    features: Path = typer.Argument(
        ...,
        help="Feature matrix (.npz, OpenCV .xml/.yml, or extractor .txt output)",
        exists=True,
        dir_okay=False,
    ),
    annotations: Path = typer.Argument(
        ...,
        help="Annotation file: <id>;<class id>;<is query>;<class count>",
        exists=True,
        dir_okay=False,
    ),
    distance_function: Optional[str] = typer.Option(
        None,
        "--distance-function",
        "-d",
        help="Distance function (see the 'distances' command), default l2sqr",
    ),
    top_k: Optional[int] = typer.Option(
        None,
        "--top-k",
        "-k",
        help="Evaluate top K query results only (0 = all)",
    ),
    exclude_query: Optional[bool] = typer.Option(
        None,
        "--exclude-query-from-results/--include-query",
        "-e",
        help="Exclude the query feature from the retrieved result set (overrides the config)",
    ),
    features_key: Optional[str] = typer.Option(
        None,
        "--features-key",
        help="Identifier of the matrix inside the feature file",
    ),
    num_workers: Optional[int] = typer.Option(
        None,
        "--num-workers",
        "-w",
        help="Number of threads scoring queries (0=sequential)",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML config file",
        exists=True,
        dir_okay=False,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output path for evaluation report (JSON)",
    ),
    curves: Optional[Path] = typer.Option(
        None,
        "--curves",
        help="Output path for per-query precision-recall samples (.npz)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging (DEBUG level) and progress bar",
    ),
) -> None:
    """Evaluate mean average precision of a feature set.

    Every query item is compared with the whole catalog, the catalog is
    ranked by distance and the ranking is scored against the annotations.
    """
    try:
        config = common_setup(
            config_path,
            verbose,
            distance_function=distance_function,
            top_k=top_k,
            exclude_query_from_db=exclude_query,
            features_key=features_key,
            num_workers=num_workers,
        )

        console.print("[bold blue]Evaluate Mean Average Precision[/bold blue]")
        console.print(f"Features: {features}")
        console.print(f"Annotations: {annotations}")
        console.print(f"Distance function: {config.distance_function}")
        console.print(f"Top-K: {config.top_k if config.top_k > 0 else 'all'}")
        console.print(f"Exclude query from results: {config.exclude_query_from_db}")

        console.print("\n[1/3] Loading features...")
        store = FeatureStore.load(features, key=config.features_key)
        console.print(f"  {store.row_count()} x {store.dimension}")

        console.print("\n[2/3] Loading annotations...")
        catalog = parse_annotations(annotations)
        console.print(f"  Items: {len(catalog)}, queries: {len(catalog.queries)}")

        console.print(f"\n[3/3] Evaluating {len(catalog.queries)} queries...")
        evaluator = RetrievalEvaluator(
            store,
            catalog,
            distance_function=config.distance_function,
            exclude_query_from_db=config.exclude_query_from_db,
            top_k=config.top_k,
            num_workers=config.num_workers,
            verbose=verbose,
        )
        report = evaluator.evaluate_queries(with_curves=curves is not None)
        print_analysis(report)

        summary = summarize_average_precision(report)
        map_val = report.mean_average_precision

        console.print("\n" + "=" * 70)
        console.print("[bold green]EVALUATION RESULTS[/bold green]")
        console.print("=" * 70)
        console.print(f"  Queries:     {report.num_queries:,}")
        console.print(f"  AP min/max:  {summary['min']:.4f} / {summary['max']:.4f}")
        console.print(f"  AP std:      {summary['std']:.4f}")

        per_class = analyze_per_class(report)
        if len(per_class) > 1:
            table = Table(title="Hardest classes")
            table.add_column("Class", justify="right")
            table.add_column("Queries", justify="right")
            table.add_column("Mean AP", justify="right")
            for class_id, stats in list(per_class.items())[:5]:
                table.add_row(
                    str(class_id), str(stats["num_queries"]), f"{stats['mean_ap']:.4f}"
                )
            console.print(table)

        worst = worst_queries(report, count=3)
        console.print("\n[bold]Worst queries:[/bold]")
        for i, entry in enumerate(worst, 1):
            console.print(
                f"  {i}. item {entry['query_id']} (class {entry['class_id']}): "
                f"AP {entry['average_precision']:.4f}"
            )

        if output:
            save_report(
                report,
                output,
                sources={"features": str(features), "annotations": str(annotations)},
            )
            console.print(f"\nReport saved to: {output}")

        if curves:
            save_precision_recall(report, curves)
            console.print(f"Precision-recall samples saved to: {curves}")

        color = _color(map_val)
        console.print(f"\nMean average precision: [{color}]{map_val:.6f}[/{color}]")

    except Exception as e:
        console.print(f"\n[red]ERROR:[/red] {str(e)}")
        if verbose:
            import traceback
            traceback.print_exc()
        raise typer.Exit(code=1)


@app.command()
def distances() -> None:
    """List the implemented distance functions."""
    table = Table(title="Distance functions")
    table.add_column("Name", no_wrap=True)
    table.add_column("Aliases")
    table.add_column("Symmetric")
    table.add_column("Description")

    for name in available_distance_metrics():
        metric = get_distance_metric(name)
        aliases = [a for a in distance_aliases(name) if a != name]
        table.add_row(
            name,
            ", ".join(aliases),
            "yes" if metric.symmetric else "no",
            metric.description,
        )

    console.print(table)


@app.command()
def convert(
    source: Path = typer.Argument(
        ...,
        help="Feature source (.npz, OpenCV .xml/.yml, or extractor .txt output)",
        exists=True,
        dir_okay=False,
    ),
    output: Path = typer.Argument(..., help="Output .npz path"),
    features_key: str = typer.Option(
        "caffe_features",
        "--features-key",
        help="Identifier of the matrix in the source and output files",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging (DEBUG level)",
    ),
) -> None:
    """Convert a feature source into a compressed numpy archive."""
    setup_logging(level="DEBUG" if verbose else "INFO")

    try:
        store = FeatureStore.load(source, key=features_key)
        store.save(output, key=features_key)
        console.print(
            f"[green]SUCCESS:[/green] {store.row_count()} x {store.dimension} "
            f"features written to {output}"
        )
    except Exception as e:
        console.print(f"\n[red]ERROR:[/red] {str(e)}")
        raise typer.Exit(code=1)


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """mAP Evaluator - Main CLI."""
    pass


if __name__ == "__main__":
    app()
