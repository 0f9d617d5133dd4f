from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
from pydantic import BaseModel, Field
from tqdm import tqdm

from image_classifier_workbench.dataset_builder import (
    ClassCatalog,
    DatasetBalancer,
    WorkbenchConfig,
    decomposer_for,
    staged_samples,
)
from image_classifier_workbench.evaluation import (
    BinaryConfusionMatrix,
    LabelMetric,
    MetricsSummary,
    MultiClassConfusionMatrix,
    MultiLabelConfusionMatrix,
    summarize,
)
from image_classifier_workbench.lib import (
    CatalogError,
    ClassLabel,
    InsufficientSamplesError,
    StagedSample,
    Strategy,
    TrainingOutcome,
    setup_logger,
)

from .trainer import ClassifierTrainer

logger = setup_logger(__name__)


class TrainingUnit(BaseModel):
    """One call to the trainer: a PairTask or the whole balanced catalog."""

    name: str
    samples: Dict[str, List[StagedSample]]
    positive_class: Optional[str] = None
    negative_class: Optional[str] = None


class TaskReport(BaseModel):
    """Training and evaluation results of one training unit."""

    task_name: str
    strategy: Strategy
    positive_class: Optional[str]
    negative_class: Optional[str]
    class_counts: Dict[str, int]
    training_accuracy: float
    validation_accuracy: float
    training_error_rate: float
    validation_error_rate: float
    metrics: Optional[MetricsSummary] = Field(
        None, description="None when the validation output could not be evaluated"
    )
    positive_metric: Optional[LabelMetric] = None
    accuracy: Optional[float] = Field(None, description="Binary matrix accuracy")
    total: Optional[int] = Field(None, description="Examples in the confusion matrix")


class RunReport(BaseModel):
    """Results of a complete run over a resource directory."""

    strategy: Strategy
    class_labels: List[str]
    task_reports: List[TaskReport]
    failed_tasks: List[str]
    summary: Optional[MetricsSummary] = Field(
        None, description="Macro averages across labels"
    )


class DecompositionRunner:
    """
    Discovers a catalog, prepares its training units and trains each of them.

    Units are independent: a unit that fails is logged and recorded in
    `failed_tasks` while the others carry on. The run only fails when no unit
    could be trained.
    """

    def __init__(
        self,
        config: WorkbenchConfig,
        trainer: ClassifierTrainer,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config
        self.trainer = trainer
        self.rng = rng if rng is not None else np.random.default_rng(config.seed)
        self.balancer = DatasetBalancer(rng=self.rng)
        self.catalog = ClassCatalog(image_formats=config.image_formats)

    def prepare_units(self, labels: List[ClassLabel]) -> List[TrainingUnit]:
        """
        Turn the discovered catalog into the units handed to the trainer.

        Raises:
            CatalogError: a binary catalog without exactly 2 classes, or a
                positive class that is not in the catalog
        """
        strategy = self.config.strategy

        if strategy.is_decomposed:
            decomposer = decomposer_for(strategy, self.balancer, self.config.equalize)
            return [
                TrainingUnit(
                    name=task.name,
                    samples=task.samples,
                    positive_class=task.positive_class,
                    negative_class=task.negative_class,
                )
                for task in decomposer.decompose(labels)
            ]

        positive: Optional[str] = None
        negative: Optional[str] = None
        if strategy == Strategy.BINARY:
            names = sorted(label.name for label in labels)
            if len(names) != 2:
                raise CatalogError(
                    f"Binary classification requires exactly 2 class label directories, found {len(names)}"
                )
            positive = self.config.positive_class or names[1]
            if positive not in names:
                raise CatalogError(
                    f"Positive class '{positive}' is not one of {', '.join(names)}"
                )
            negative = next(name for name in names if name != positive)

        balanced = self.balancer.balance(
            ClassCatalog.sample_set(labels), self.config.equalize
        )

        return [
            TrainingUnit(
                name=f"{strategy.value}_{'_'.join(sorted(balanced))}",
                samples={
                    label: [StagedSample.keep_name(sample) for sample in samples]
                    for label, samples in balanced.items()
                },
                positive_class=positive,
                negative_class=negative,
            )
        ]

    def evaluate(
        self, unit: TrainingUnit, outcome: TrainingOutcome, class_labels: List[str]
    ) -> TaskReport:
        """Build the confusion matrix of a training outcome and derive its metrics."""
        strategy = self.config.strategy
        columns = self.config.prediction_table
        policy = self.config.macro_average_policy

        report = TaskReport(
            task_name=unit.name,
            strategy=strategy,
            positive_class=unit.positive_class,
            negative_class=unit.negative_class,
            class_counts={label: len(s) for label, s in unit.samples.items()},
            training_accuracy=outcome.training_accuracy,
            validation_accuracy=outcome.validation_accuracy,
            training_error_rate=outcome.training_error_rate,
            validation_error_rate=outcome.validation_error_rate,
        )

        if strategy == Strategy.MULTI_LABEL:
            multi_label = MultiLabelConfusionMatrix.build(
                outcome.label_set_predictions, class_labels
            )
            if multi_label is not None:
                report.metrics = multi_label.summary(policy)
        elif strategy == Strategy.MULTI_CLASS:
            multi_class = MultiClassConfusionMatrix.build(
                outcome.raw_prediction_table,
                columns.predicted_column,
                columns.actual_column,
                columns.count_column,
            )
            if multi_class is not None:
                report.metrics = multi_class.summary(policy)
                report.total = multi_class.total
        else:
            binary = BinaryConfusionMatrix.build(
                outcome.raw_prediction_table,
                columns.predicted_column,
                columns.actual_column,
                columns.count_column,
                positive_class=unit.positive_class,
            )
            if binary is not None:
                report.metrics = binary.summary(policy)
                report.positive_metric = binary.positive_metric()
                report.accuracy = binary.accuracy
                report.total = binary.total

        if report.metrics is None:
            logger.warning(
                f"Skipping confusion matrix for {unit.name}: validation output could not be evaluated"
            )
        return report

    def _train_unit(self, unit: TrainingUnit, class_labels: List[str]) -> TaskReport:
        logger.info(f"Training {unit.name} ({len(unit.samples)} labels)")
        with staged_samples(unit.samples, unit.name, self.config.staging_dir) as staged:
            outcome = self.trainer.train(staged)
        logger.info(
            f"{unit.name}: training accuracy {outcome.training_accuracy:.1%}, "
            f"validation accuracy {outcome.validation_accuracy:.1%}"
        )
        return self.evaluate(unit, outcome, class_labels)

    def train_units(
        self, units: List[TrainingUnit], class_labels: List[str]
    ) -> Tuple[List[TaskReport], List[str]]:
        """Train every unit; return the successful reports and the failed unit names."""
        results: Dict[int, TaskReport] = {}
        failed: Dict[int, str] = {}

        if self.config.max_workers > 1:
            with ThreadPoolExecutor(self.config.max_workers) as executor:
                futures = {
                    executor.submit(self._train_unit, unit, class_labels): index
                    for index, unit in enumerate(units)
                }
                for future in tqdm(
                    as_completed(futures), total=len(futures), desc="Training tasks"
                ):
                    index = futures[future]
                    try:
                        results[index] = future.result()
                    except Exception as e:
                        logger.error(f"Task {units[index].name} failed: {e}", exc_info=True)
                        failed[index] = units[index].name
        else:
            for index, unit in enumerate(tqdm(units, desc="Training tasks")):
                try:
                    results[index] = self._train_unit(unit, class_labels)
                except Exception as e:
                    logger.error(f"Task {unit.name} failed: {e}", exc_info=True)
                    failed[index] = unit.name

        return (
            [results[i] for i in sorted(results)],
            [failed[i] for i in sorted(failed)],
        )

    def _run_summary(self, reports: List[TaskReport]) -> Optional[MetricsSummary]:
        strategy = self.config.strategy
        if strategy == Strategy.ONE_VS_REST:
            positive_metrics = [
                r.positive_metric for r in reports if r.positive_metric is not None
            ]
            if not positive_metrics:
                return None
            return summarize(
                sorted(positive_metrics, key=lambda m: m.label),
                self.config.macro_average_policy,
            )
        if strategy == Strategy.ONE_VS_ONE:
            # Pair metrics are not per class, so there is nothing to average
            return None
        return reports[0].metrics

    def run(self, resources_dir: Union[str, Path]) -> Optional[RunReport]:
        """
        Run the configured strategy over a resource directory.

        Returns:
            The run report, or None when the catalog cannot support the strategy
            (the CatalogError is logged)

        Raises:
            InsufficientSamplesError: no training unit could be prepared or trained
        """
        strategy = self.config.strategy
        logger.info(f"Resource directory: {resources_dir}")
        logger.info(f"Starting {strategy.value} run")

        try:
            labels = self.catalog.discover(resources_dir, strategy)
            units = self.prepare_units(labels)
        except CatalogError as e:
            logger.error(f"Could not run {strategy.value} classification: {e}")
            return None

        class_labels = [label.name for label in labels]
        if not units:
            raise InsufficientSamplesError(
                f"No {strategy.value} training task could be prepared"
            )

        reports, failed = self.train_units(units, class_labels)
        if not reports:
            raise InsufficientSamplesError(
                f"All {len(units)} {strategy.value} training tasks failed"
            )
        if failed:
            logger.warning(
                f"{len(failed)} of {len(units)} tasks failed: {', '.join(failed)}"
            )

        logger.info(f"{strategy.value} run finished with {len(reports)} trained tasks")
        return RunReport(
            strategy=strategy,
            class_labels=class_labels,
            task_reports=reports,
            failed_tasks=failed,
            summary=self._run_summary(reports),
        )
