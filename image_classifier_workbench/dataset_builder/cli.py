import json
from pathlib import Path
from typing import Dict, Optional

import typer
from pydantic import ValidationError

from image_classifier_workbench.lib import (
    Strategy,
    WorkbenchError,
    setup_logger,
)

from .balancer import DatasetBalancer
from .catalog import ClassCatalog
from .config import WorkbenchConfig
from .decomposer import decomposer_for

app = typer.Typer(help="Dataset Decomposition Component")

logger = setup_logger(__name__)


def summarize_decomposition(
    resources_dir: str, config: WorkbenchConfig
) -> Dict[str, Dict[str, int]]:
    """Discover, balance and decompose a resource directory into task -> class counts."""
    catalog = ClassCatalog(image_formats=config.image_formats)
    labels = catalog.discover(resources_dir, config.strategy)
    balancer = DatasetBalancer(random_state=config.seed)

    if config.strategy.is_decomposed:
        decomposer = decomposer_for(config.strategy, balancer, config.equalize)
        return {task.name: task.class_counts() for task in decomposer.decompose(labels)}

    balanced = balancer.balance(ClassCatalog.sample_set(labels), config.equalize)
    return {
        config.strategy.value: {label: len(samples) for label, samples in balanced.items()}
    }


@app.command()
def decompose(
    resources_dir: str = typer.Argument(
        ..., help="Path to the directory holding one subdirectory per class"
    ),
    config_file: str = typer.Argument(
        ..., help="Path to the configuration file (YAML/JSON)"
    ),
    output: Optional[str] = typer.Option(
        None, help="Write the task summary to this JSON file"
    ),
):
    """
    Discover class directories and show the training tasks the configured strategy produces.
    """
    try:
        try:
            config = WorkbenchConfig.from_file(config_file)
        except ValidationError as e:
            typer.echo(f"Configuration validation error: {e}")
            raise typer.Exit(code=1)

        try:
            summary = summarize_decomposition(resources_dir, config)
        except WorkbenchError as e:
            typer.echo(f"Error decomposing dataset: {e}")
            raise typer.Exit(code=1)

        if output:
            output_path = Path(output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, "w") as f:
                json.dump(summary, f, indent=2)

        typer.echo(
            f"{len(summary)} task(s) for strategy '{config.strategy.value}' in {resources_dir}"
        )
        for task_name, class_counts in summary.items():
            typer.echo(f"\nTask: {task_name}")
            for label, count in class_counts.items():
                typer.echo(f"  - {label}: {count} samples")

        if config.strategy == Strategy.BINARY and len(summary[config.strategy.value]) != 2:
            typer.echo("Warning: binary classification expects exactly 2 classes")

    except typer.Exit:
        raise
    except Exception as e:
        logger.critical(e, exc_info=True)
        typer.echo(f"Error: {e}")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
