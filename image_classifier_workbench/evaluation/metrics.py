"""
Per-label metrics derived from confusion-matrix counts.

Undefined metrics are represented by None and never by 0.0 or NaN:

- recall is 0.0 when a label has no true instances,
- precision is None when a label was never predicted,
- F1 is None unless precision is defined and precision + recall > 0.
"""

from typing import Iterable, List, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from image_classifier_workbench.dataset_builder.config import MacroAveragePolicy
from image_classifier_workbench.lib import defined_values


class LabelCounts(BaseModel):
    """Confusion counts of a single label."""

    label: str
    true_positives: int = Field(..., ge=0)
    false_positives: int = Field(..., ge=0)
    false_negatives: int = Field(..., ge=0)
    true_negatives: Optional[int] = Field(None, ge=0)

    @property
    def support(self) -> int:
        return self.true_positives + self.false_negatives

    @property
    def predicted(self) -> int:
        return self.true_positives + self.false_positives


class LabelMetric(BaseModel):
    """Recall, precision and F1 of a single label."""

    label: str
    recall: float
    precision: Optional[float]
    f1: Optional[float]
    support: int
    true_positives: int
    false_positives: int
    false_negatives: int


class MetricsSummary(BaseModel):
    """Per-label metrics plus their macro averages."""

    labels: List[LabelMetric]
    macro_average_recall: Optional[float]
    macro_average_precision: Optional[float]
    macro_average_f1: Optional[float]
    policy: MacroAveragePolicy


class ConfusionMatrixProtocol(Protocol):
    """Shared surface of binary, multi-class and multi-label matrices."""

    labels: List[str]

    def label_counts(self) -> List[LabelCounts]: ...

    def calculate_metrics(self) -> List[LabelMetric]: ...


def recall(counts: LabelCounts) -> float:
    denominator = counts.true_positives + counts.false_negatives
    if denominator == 0:
        return 0.0
    return counts.true_positives / denominator


def precision(counts: LabelCounts) -> Optional[float]:
    denominator = counts.true_positives + counts.false_positives
    if denominator == 0:
        return None
    return counts.true_positives / denominator


def f1_score(precision_value: Optional[float], recall_value: float) -> Optional[float]:
    if precision_value is None:
        return None
    denominator = precision_value + recall_value
    if denominator == 0:
        return None
    return 2 * precision_value * recall_value / denominator


def label_metric(counts: LabelCounts) -> LabelMetric:
    recall_value = recall(counts)
    precision_value = precision(counts)
    return LabelMetric(
        label=counts.label,
        recall=recall_value,
        precision=precision_value,
        f1=f1_score(precision_value, recall_value),
        support=counts.support,
        true_positives=counts.true_positives,
        false_positives=counts.false_positives,
        false_negatives=counts.false_negatives,
    )


def calculate_metrics(counts: Iterable[LabelCounts]) -> List[LabelMetric]:
    """Metrics of every label, in ascending label order."""
    return [label_metric(c) for c in sorted(counts, key=lambda c: c.label)]


def macro_average(
    values: Sequence[Optional[float]],
    policy: MacroAveragePolicy = MacroAveragePolicy.EXCLUDE_UNDEFINED,
) -> Optional[float]:
    """
    Unweighted mean of a per-label metric.

    Returns None when no value takes part in the average.
    """
    if policy == MacroAveragePolicy.UNDEFINED_AS_ZERO:
        included = [0.0 if value is None else value for value in values]
    else:
        included = defined_values(values)

    if not included:
        return None
    return sum(included) / len(included)


def summarize(
    metrics: Sequence[LabelMetric],
    policy: MacroAveragePolicy = MacroAveragePolicy.EXCLUDE_UNDEFINED,
) -> MetricsSummary:
    return MetricsSummary(
        labels=list(metrics),
        macro_average_recall=macro_average([m.recall for m in metrics], policy),
        macro_average_precision=macro_average([m.precision for m in metrics], policy),
        macro_average_f1=macro_average([m.f1 for m in metrics], policy),
        policy=policy,
    )
