"""
Decomposition of an N-class catalog into independent binary sub-problems.

- One-vs-One: one PairTask per unordered pair of classes, each balanced on its own.
- One-vs-Rest: one PairTask per class, pitting it against a rest group sampled
  proportionally from every other class.
"""

from abc import ABC, abstractmethod
import math
from typing import Dict, List, Optional, Sequence

import numpy as np

from image_classifier_workbench.lib import (
    REST_LABEL,
    ClassLabel,
    InsufficientClassesError,
    InsufficientSamplesError,
    PairTask,
    StagedSample,
    Strategy,
    setup_logger,
)

from .balancer import DatasetBalancer, sample_without_replacement

logger = setup_logger(__name__)


class PairDecomposer(ABC):
    """Turns a class catalog into a list of independent PairTasks."""

    strategy: Strategy

    def decompose(self, catalog: Sequence[ClassLabel]) -> List[PairTask]:
        """
        Build every PairTask of the catalog.

        Tasks that cannot be prepared (a class or the rest group without
        samples) are logged and skipped; the remaining tasks are returned.
        """
        if len(catalog) < self.strategy.min_classes:
            raise InsufficientClassesError(
                found=len(catalog),
                required=self.strategy.min_classes,
                strategy=self.strategy.value,
            )

        labels = sorted(catalog, key=lambda label: label.name)
        tasks: List[PairTask] = []
        for task_labels in self._task_units(labels):
            try:
                tasks.append(self._build_task(task_labels, labels))
            except InsufficientSamplesError as e:
                task_name = "_vs_".join(label.name for label in task_labels)
                logger.warning(f"Skipping task {task_name}: {e}")

        logger.info(
            f"{self.strategy.value} decomposition produced {len(tasks)} tasks "
            f"from {len(labels)} classes"
        )
        return tasks

    @abstractmethod
    def _task_units(self, labels: List[ClassLabel]) -> List[Sequence[ClassLabel]]:
        """The labels each task is built around, in task order."""

    @abstractmethod
    def _build_task(
        self, task_labels: Sequence[ClassLabel], all_labels: List[ClassLabel]
    ) -> PairTask:
        """Assemble the samples of a single task."""


class OneVsOneDecomposer(PairDecomposer):
    strategy = Strategy.ONE_VS_ONE

    def __init__(self, balancer: DatasetBalancer, should_equalize: bool = True):
        self.balancer = balancer
        self.should_equalize = should_equalize

    def _task_units(self, labels: List[ClassLabel]) -> List[Sequence[ClassLabel]]:
        # (0, 1), (0, 2), ..., (1, 2), ...
        return [
            (labels[i], labels[j])
            for i in range(len(labels))
            for j in range(i + 1, len(labels))
        ]

    def _build_task(
        self, task_labels: Sequence[ClassLabel], all_labels: List[ClassLabel]
    ) -> PairTask:
        first, second = task_labels
        for label in (first, second):
            if label.sample_count == 0:
                raise InsufficientSamplesError(f"Class '{label.name}' has no samples")

        balanced = self.balancer.balance(
            {first.name: list(first.samples), second.name: list(second.samples)},
            self.should_equalize,
        )
        logger.debug(
            f"Pair {first.name}/{second.name}: {len(balanced[first.name])} samples per class"
        )

        return PairTask(
            strategy=self.strategy,
            positive_class=first.name,
            negative_class=second.name,
            samples={
                label: [StagedSample.keep_name(sample) for sample in samples]
                for label, samples in balanced.items()
            },
        )


class OneVsRestDecomposer(PairDecomposer):
    strategy = Strategy.ONE_VS_REST

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        random_state: Optional[int] = None,
    ):
        self.rng = rng if rng is not None else np.random.default_rng(random_state)

    def _task_units(self, labels: List[ClassLabel]) -> List[Sequence[ClassLabel]]:
        return [(label,) for label in labels]

    @staticmethod
    def samples_per_other_class(positive_count: int, other_count: int) -> int:
        return math.ceil(positive_count / other_count)

    def _build_task(
        self, task_labels: Sequence[ClassLabel], all_labels: List[ClassLabel]
    ) -> PairTask:
        (positive,) = task_labels
        if positive.name == REST_LABEL:
            raise InsufficientSamplesError(
                f"Class name '{REST_LABEL}' is reserved for the rest group"
            )
        if positive.sample_count == 0:
            raise InsufficientSamplesError(f"Class '{positive.name}' has no samples")

        others = [label for label in all_labels if label.name != positive.name]
        per_class = self.samples_per_other_class(positive.sample_count, len(others))

        rest: List[StagedSample] = []
        drawn: Dict[str, int] = {}
        for other in others:
            sampled = sample_without_replacement(other.samples, per_class, self.rng)
            # Running index across the whole rest group keeps staged names unique
            offset = len(rest)
            rest.extend(
                StagedSample.numbered(sample, offset + i, other.name)
                for i, sample in enumerate(sampled)
            )
            drawn[other.name] = len(sampled)

        if not rest:
            raise InsufficientSamplesError(
                f"Rest group for '{positive.name}' has no samples"
            )

        logger.info(
            f"Class '{positive.name}': {positive.sample_count} samples, "
            f"{len(others)} rest classes, up to {per_class} per rest class, "
            f"{len(rest)} rest samples in total"
        )
        logger.debug(f"Rest samples drawn per class: {drawn}")

        return PairTask(
            strategy=self.strategy,
            positive_class=positive.name,
            negative_class=REST_LABEL,
            samples={
                positive.name: [
                    StagedSample.keep_name(sample) for sample in positive.samples
                ],
                REST_LABEL: rest,
            },
        )


def decomposer_for(
    strategy: Strategy,
    balancer: DatasetBalancer,
    should_equalize: bool = True,
) -> PairDecomposer:
    """Return the decomposer of a one-vs-one or one-vs-rest strategy."""
    if strategy == Strategy.ONE_VS_ONE:
        return OneVsOneDecomposer(balancer, should_equalize=should_equalize)
    if strategy == Strategy.ONE_VS_REST:
        return OneVsRestDecomposer(rng=balancer.rng)
    raise ValueError(f"Strategy '{strategy.value}' is not decomposed into pair tasks")
