"""
Evaluation Component for Image Classification Workbench.

This module provides functionality for:
- Building binary, multi-class and multi-label confusion matrices from
  validation output
- Deriving recall, precision, F1 and macro averages per label
"""

from .confusion_matrix import (
    BinaryConfusionMatrix,
    MultiClassConfusionMatrix,
    MultiLabelConfusionMatrix,
    validate_table,
)
from .metrics import (
    ConfusionMatrixProtocol,
    LabelCounts,
    LabelMetric,
    MetricsSummary,
    calculate_metrics,
    macro_average,
    summarize,
)

__all__ = [
    "BinaryConfusionMatrix",
    "MultiClassConfusionMatrix",
    "MultiLabelConfusionMatrix",
    "validate_table",
    "ConfusionMatrixProtocol",
    "LabelCounts",
    "LabelMetric",
    "MetricsSummary",
    "calculate_metrics",
    "macro_average",
    "summarize",
]
