import importlib
import json
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from image_classifier_workbench.dataset_builder.config import WorkbenchConfig
from image_classifier_workbench.lib.logger import setup_logger

from .runner import DecompositionRunner
from .trainer import ClassifierTrainer

app = typer.Typer(help="Image Classifier Training Component")

logger = setup_logger(__name__)


def load_trainer(reference: str) -> ClassifierTrainer:
    """
    Load a trainer from a "package.module:factory" reference.

    The factory is called without arguments and must return an object with a
    `train(sample_set)` method.
    """
    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise ValueError(
            f"Trainer reference must look like 'package.module:factory', got '{reference}'"
        )
    factory = getattr(importlib.import_module(module_name), attribute)
    trainer = factory()
    if not isinstance(trainer, ClassifierTrainer):
        raise TypeError(f"{reference} did not return a trainer with a train() method")
    return trainer


@app.command()
def run(
    resources_dir: str = typer.Argument(
        ..., help="Path to the directory holding one subdirectory per class"
    ),
    config_file: str = typer.Argument(
        ..., help="Path to the configuration file (YAML/JSON)"
    ),
    trainer: str = typer.Option(
        ..., help="Trainer factory as 'package.module:factory'"
    ),
    output: Optional[str] = typer.Option(
        None, help="Write the run report to this JSON file"
    ),
):
    """
    Train every task of the configured strategy and evaluate the results.
    """
    try:
        # Parse and validate the configuration
        try:
            config = WorkbenchConfig.from_file(config_file)
        except ValidationError as e:
            logger.critical(e, exc_info=True)
            raise typer.Exit(code=1)

        runner = DecompositionRunner(config, load_trainer(trainer))
        typer.echo("Training models...")
        report = runner.run(resources_dir)
        if report is None:
            typer.echo("The class directories do not fit the configured strategy")
            raise typer.Exit(code=1)

        logger.info("Training completed successfully.")
        report_json = report.model_dump_json(indent=4)
        if output:
            output_path = Path(output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(report_json)
            logger.info(f"Run report saved to {output_path}")
        else:
            logger.info(report_json)

        if report.failed_tasks:
            logger.warning(f"Failed tasks: {json.dumps(report.failed_tasks)}")
    except typer.Exit:
        raise
    except Exception as e:
        logger.critical(e, exc_info=True)

        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
