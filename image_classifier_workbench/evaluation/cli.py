import json
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError

from image_classifier_workbench.dataset_builder.config import WorkbenchConfig
from image_classifier_workbench.lib import Strategy, pandas, setup_logger

from .confusion_matrix import (
    BinaryConfusionMatrix,
    MultiClassConfusionMatrix,
    MultiLabelConfusionMatrix,
)

app = typer.Typer(help="Confusion Matrix Evaluation Component")

logger = setup_logger(__name__)


def _load_config(config_file: str) -> WorkbenchConfig:
    try:
        return WorkbenchConfig.from_file(config_file)
    except ValidationError as e:
        logger.critical(e, exc_info=True)
        raise typer.Exit(code=1)


@app.command()
def table(
    table_file: str = typer.Argument(
        ..., help="Path to the prediction table (CSV/JSON/JSONL)"
    ),
    config_file: str = typer.Argument(
        ..., help="Path to the configuration file (YAML/JSON)"
    ),
):
    """
    Build a binary or multi-class confusion matrix from a prediction table and report its metrics.
    """
    config = _load_config(config_file)
    columns = config.prediction_table

    try:
        frame = pandas.read_table(table_file)
    except (OSError, ValueError) as e:
        logger.critical(e, exc_info=True)
        raise typer.Exit(code=1)

    if config.strategy == Strategy.MULTI_CLASS:
        matrix = MultiClassConfusionMatrix.build(
            frame,
            columns.predicted_column,
            columns.actual_column,
            columns.count_column,
        )
    elif config.strategy == Strategy.MULTI_LABEL:
        typer.echo("Use the 'multilabel' command for multi-label predictions")
        raise typer.Exit(code=1)
    else:
        matrix = BinaryConfusionMatrix.build(
            frame,
            columns.predicted_column,
            columns.actual_column,
            columns.count_column,
            positive_class=config.positive_class,
        )

    if matrix is None:
        typer.echo("Could not build a confusion matrix from the prediction table")
        raise typer.Exit(code=1)

    typer.echo(matrix.matrix_graph())
    results = matrix.summary(config.macro_average_policy).model_dump(mode="json")
    if isinstance(matrix, BinaryConfusionMatrix):
        results["positive_class"] = matrix.positive_class
        results["accuracy"] = matrix.accuracy
    logger.info("Evaluation results:")
    logger.info(json.dumps(results, indent=4))


@app.command()
def multilabel(
    predictions_file: str = typer.Argument(
        ...,
        help='JSONL file with one {"true_labels": [...], "predicted_labels": [...]} object per example',
    ),
    label: List[str] = typer.Option(..., help="Label to evaluate (repeatable)"),
    config_file: Optional[str] = typer.Option(
        None, help="Configuration file providing the macro-average policy"
    ),
):
    """
    Build a multi-label confusion matrix from per-example label sets and report its metrics.
    """
    policy = _load_config(config_file).macro_average_policy if config_file else None

    predictions = []
    with open(Path(predictions_file), "r") as f:
        for line_number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                item = json.loads(line)
                predictions.append((item["true_labels"], item["predicted_labels"]))
            except (json.JSONDecodeError, KeyError, TypeError) as e:
                logger.critical(f"Invalid prediction on line {line_number}: {e}")
                raise typer.Exit(code=1)

    matrix = MultiLabelConfusionMatrix.build(predictions, label)
    if matrix is None:
        typer.echo("Could not build a confusion matrix from the predictions")
        raise typer.Exit(code=1)

    typer.echo(matrix.matrix_graph())
    summary = matrix.summary(policy) if policy else matrix.summary()
    logger.info("Evaluation results:")
    logger.info(json.dumps(summary.model_dump(mode="json"), indent=4))


if __name__ == "__main__":
    app()
