"""
Confusion matrices built from a trainer's validation output.

Binary and multi-class matrices are built from a prediction table with an
actual-label column, a predicted-label column and, optionally, a column of
pre-aggregated counts. The multi-label matrix is built from per-example
(true labels, predicted labels) pairs.

`build` never raises for malformed input: it logs the problem and returns
None so callers can skip the evaluation.
"""

from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np
import pandas as pd

from image_classifier_workbench.dataset_builder.config import MacroAveragePolicy
from image_classifier_workbench.lib import SchemaValidationError, setup_logger

from .metrics import (
    LabelCounts,
    LabelMetric,
    MetricsSummary,
    calculate_metrics,
    label_metric,
    summarize,
)

logger = setup_logger(__name__)

# Column names used by `cells()`
ACTUAL = "actual"
PREDICTED = "predicted"
COUNT = "count"

Cells = Dict[Tuple[str, str], int]


def validate_table(
    table: Optional[pd.DataFrame],
    predicted_column: str,
    actual_column: str,
    count_column: Optional[str] = None,
) -> None:
    """
    Check that a prediction table can be turned into confusion cells.

    Raises:
        SchemaValidationError: the table is empty, a required column is
            missing, or the count column holds negative or non-integer values
    """
    if table is None or len(table) == 0:
        raise SchemaValidationError("Prediction table is empty")

    available = ", ".join(str(c) for c in table.columns)
    for role, column in (
        ("predicted", predicted_column),
        ("actual", actual_column),
        ("count", count_column),
    ):
        if column is not None and column not in table.columns:
            raise SchemaValidationError(
                f"{role.capitalize()} column '{column}' does not exist. "
                f"Available columns: {available}"
            )

    labelled = table.dropna(subset=[actual_column, predicted_column])
    if len(labelled) == 0:
        raise SchemaValidationError("Prediction table has no labelled rows")

    if count_column is not None:
        counts = pd.to_numeric(labelled[count_column], errors="coerce")
        if counts.isna().any() or (counts < 0).any() or (counts % 1 != 0).any():
            raise SchemaValidationError(
                f"Count column '{count_column}' must hold non-negative integers"
            )


def count_cells(
    table: pd.DataFrame,
    predicted_column: str,
    actual_column: str,
    count_column: Optional[str] = None,
) -> Cells:
    """Aggregate a validated prediction table into (actual, predicted) -> count."""
    columns = [actual_column, predicted_column]
    frame = table.dropna(subset=columns).copy()
    frame[actual_column] = frame[actual_column].astype(str)
    frame[predicted_column] = frame[predicted_column].astype(str)

    if count_column is not None:
        frame[count_column] = pd.to_numeric(frame[count_column]).astype(int)
        grouped = frame.groupby(columns)[count_column].sum()
    else:
        grouped = frame.groupby(columns).size()

    return {(str(a), str(p)): int(n) for (a, p), n in grouped.items()}


def _distinct_labels(cells: Cells) -> Tuple[Set[str], Set[str]]:
    actual = {a for a, _ in cells}
    predicted = {p for _, p in cells}
    return actual, predicted


def _cells_frame(labels: Sequence[str], matrix: np.ndarray) -> pd.DataFrame:
    rows = [
        {ACTUAL: actual, PREDICTED: predicted, COUNT: int(matrix[i, j])}
        for i, actual in enumerate(labels)
        for j, predicted in enumerate(labels)
    ]
    return pd.DataFrame(rows, columns=[ACTUAL, PREDICTED, COUNT])


def _matrix_graph(labels: Sequence[str], matrix: np.ndarray) -> str:
    lines = ["Actual\\Predicted" + "".join(f" | {label}" for label in labels)]
    for i, label in enumerate(labels):
        lines.append(label + "".join(f" | {value}" for value in matrix[i]))
    return "\n".join(lines) + "\n"


def _label_counts(labels: Sequence[str], matrix: np.ndarray) -> List[LabelCounts]:
    total = int(matrix.sum())
    counts: List[LabelCounts] = []
    for i, label in enumerate(labels):
        tp = int(matrix[i, i])
        fp = int(matrix[:, i].sum()) - tp
        fn = int(matrix[i, :].sum()) - tp
        counts.append(
            LabelCounts(
                label=label,
                true_positives=tp,
                false_positives=fp,
                false_negatives=fn,
                true_negatives=total - tp - fp - fn,
            )
        )
    return counts


def _to_matrix(labels: Sequence[str], cells: Cells) -> np.ndarray:
    index = {label: i for i, label in enumerate(labels)}
    matrix = np.zeros((len(labels), len(labels)), dtype=np.int64)
    for (actual, predicted), count in cells.items():
        matrix[index[actual], index[predicted]] += count
    return matrix


class MultiClassConfusionMatrix:
    """Single-label confusion matrix over two or more classes."""

    def __init__(self, labels: Sequence[str], matrix: np.ndarray):
        self.labels: List[str] = list(labels)
        # matrix[i][j]: examples of labels[i] predicted as labels[j]
        self.matrix = matrix

    @staticmethod
    def validate_table(
        table: Optional[pd.DataFrame],
        predicted_column: str,
        actual_column: str,
        count_column: Optional[str] = None,
    ) -> Cells:
        validate_table(table, predicted_column, actual_column, count_column)
        assert table is not None
        cells = count_cells(table, predicted_column, actual_column, count_column)

        actual, predicted = _distinct_labels(cells)
        if len(actual | predicted) < 2:
            raise SchemaValidationError(
                f"Multi-class evaluation needs at least 2 labels, found {sorted(actual | predicted)}"
            )
        if actual != predicted:
            raise SchemaValidationError(
                "Predicted labels and actual labels do not match. "
                f"Predicted: {', '.join(sorted(predicted))}; "
                f"actual: {', '.join(sorted(actual))}"
            )
        return cells

    @classmethod
    def build(
        cls,
        table: Optional[pd.DataFrame],
        predicted_column: str,
        actual_column: str,
        count_column: Optional[str] = None,
    ) -> Optional["MultiClassConfusionMatrix"]:
        """Build the matrix, or return None if the table cannot be evaluated."""
        try:
            cells = cls.validate_table(
                table, predicted_column, actual_column, count_column
            )
        except SchemaValidationError as e:
            logger.error(f"Could not build multi-class confusion matrix: {e}")
            return None

        labels = sorted({a for a, _ in cells})
        return cls(labels, _to_matrix(labels, cells))

    @property
    def total(self) -> int:
        return int(self.matrix.sum())

    def support(self) -> Dict[str, int]:
        return {label: int(self.matrix[i].sum()) for i, label in enumerate(self.labels)}

    def label_counts(self) -> List[LabelCounts]:
        return _label_counts(self.labels, self.matrix)

    def calculate_metrics(self) -> List[LabelMetric]:
        return calculate_metrics(self.label_counts())

    def summary(
        self, policy: MacroAveragePolicy = MacroAveragePolicy.EXCLUDE_UNDEFINED
    ) -> MetricsSummary:
        return summarize(self.calculate_metrics(), policy)

    def cells(self) -> pd.DataFrame:
        return _cells_frame(self.labels, self.matrix)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.matrix, index=self.labels, columns=self.labels)

    def matrix_graph(self) -> str:
        return _matrix_graph(self.labels, self.matrix)


class BinaryConfusionMatrix:
    """Two-class confusion matrix with a designated positive class."""

    def __init__(self, labels: Sequence[str], cells: Cells, positive_class: str):
        self.labels: List[str] = sorted(labels)
        self.positive_class = positive_class
        self.negative_class = next(
            label for label in self.labels if label != positive_class
        )
        self.matrix = _to_matrix(self.labels, cells)

    @staticmethod
    def validate_table(
        table: Optional[pd.DataFrame],
        predicted_column: str,
        actual_column: str,
        count_column: Optional[str] = None,
        positive_class: Optional[str] = None,
    ) -> Cells:
        validate_table(table, predicted_column, actual_column, count_column)
        assert table is not None
        cells = count_cells(table, predicted_column, actual_column, count_column)

        actual, predicted = _distinct_labels(cells)
        labels = actual | predicted
        if len(labels) != 2:
            raise SchemaValidationError(
                f"Binary evaluation needs exactly 2 labels, found {len(labels)}: "
                f"{', '.join(sorted(labels))}"
            )
        if positive_class is not None and positive_class not in labels:
            raise SchemaValidationError(
                f"Positive class '{positive_class}' is not one of {', '.join(sorted(labels))}"
            )
        return cells

    @classmethod
    def build(
        cls,
        table: Optional[pd.DataFrame],
        predicted_column: str,
        actual_column: str,
        count_column: Optional[str] = None,
        positive_class: Optional[str] = None,
    ) -> Optional["BinaryConfusionMatrix"]:
        """
        Build the matrix, or return None if the table cannot be evaluated.

        The positive class defaults to the second label in sorted order.
        """
        try:
            cells = cls.validate_table(
                table, predicted_column, actual_column, count_column, positive_class
            )
        except SchemaValidationError as e:
            logger.error(f"Could not build binary confusion matrix: {e}")
            return None

        actual, predicted = _distinct_labels(cells)
        labels = sorted(actual | predicted)
        return cls(labels, cells, positive_class or labels[1])

    def _cell(self, actual: str, predicted: str) -> int:
        return int(
            self.matrix[self.labels.index(actual), self.labels.index(predicted)]
        )

    @property
    def true_positives(self) -> int:
        return self._cell(self.positive_class, self.positive_class)

    @property
    def false_positives(self) -> int:
        return self._cell(self.negative_class, self.positive_class)

    @property
    def false_negatives(self) -> int:
        return self._cell(self.positive_class, self.negative_class)

    @property
    def true_negatives(self) -> int:
        return self._cell(self.negative_class, self.negative_class)

    @property
    def total(self) -> int:
        return int(self.matrix.sum())

    @property
    def accuracy(self) -> Optional[float]:
        if self.total == 0:
            return None
        return (self.true_positives + self.true_negatives) / self.total

    def positive_counts(self) -> LabelCounts:
        return LabelCounts(
            label=self.positive_class,
            true_positives=self.true_positives,
            false_positives=self.false_positives,
            false_negatives=self.false_negatives,
            true_negatives=self.true_negatives,
        )

    def positive_metric(self) -> LabelMetric:
        return label_metric(self.positive_counts())

    def label_counts(self) -> List[LabelCounts]:
        return _label_counts(self.labels, self.matrix)

    def calculate_metrics(self) -> List[LabelMetric]:
        return calculate_metrics(self.label_counts())

    def summary(
        self, policy: MacroAveragePolicy = MacroAveragePolicy.EXCLUDE_UNDEFINED
    ) -> MetricsSummary:
        return summarize(self.calculate_metrics(), policy)

    def cells(self) -> pd.DataFrame:
        return _cells_frame(self.labels, self.matrix)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.matrix, index=self.labels, columns=self.labels)

    def matrix_graph(self) -> str:
        return _matrix_graph(self.labels, self.matrix)


LabelSetPrediction = Tuple[Iterable[str], Iterable[str]]


class MultiLabelConfusionMatrix:
    """
    Per-label counts for examples that may carry several labels at once.

    Each example contributes to the counts of every label independently:
    TP when the label is both true and predicted, FP when it is only
    predicted, FN when it is only true.
    """

    def __init__(self, labels: Sequence[str], counts: Dict[str, LabelCounts]):
        self.labels: List[str] = list(labels)
        self.counts = counts

    @staticmethod
    def validate_predictions(
        predictions: Optional[Sequence[LabelSetPrediction]], labels: Sequence[str]
    ) -> List[Tuple[Set[str], Set[str]]]:
        if not labels:
            raise SchemaValidationError("Multi-label evaluation needs a label list")
        if len(set(labels)) != len(labels):
            raise SchemaValidationError(f"Label list contains duplicates: {list(labels)}")
        if not predictions:
            raise SchemaValidationError("No predictions to evaluate")

        normalized: List[Tuple[Set[str], Set[str]]] = []
        for index, prediction in enumerate(predictions):
            try:
                true_labels, predicted_labels = prediction
            except (TypeError, ValueError) as e:
                raise SchemaValidationError(
                    f"Prediction {index} is not a (true labels, predicted labels) pair"
                ) from e
            if isinstance(true_labels, str) or isinstance(predicted_labels, str):
                raise SchemaValidationError(
                    f"Prediction {index} holds a string instead of a label set"
                )
            try:
                normalized.append((set(true_labels), set(predicted_labels)))
            except TypeError as e:
                raise SchemaValidationError(
                    f"Prediction {index} holds label sets that are not iterable"
                ) from e
        return normalized

    @classmethod
    def build(
        cls,
        predictions: Optional[Sequence[LabelSetPrediction]],
        labels: Sequence[str],
    ) -> Optional["MultiLabelConfusionMatrix"]:
        """Build the matrix, or return None if the predictions are malformed."""
        try:
            normalized = cls.validate_predictions(predictions, labels)
        except SchemaValidationError as e:
            logger.error(f"Could not build multi-label confusion matrix: {e}")
            return None

        tp = dict.fromkeys(labels, 0)
        fp = dict.fromkeys(labels, 0)
        fn = dict.fromkeys(labels, 0)
        for true_labels, predicted_labels in normalized:
            unknown = (true_labels | predicted_labels) - set(labels)
            if unknown:
                logger.debug(f"Ignoring labels outside the label list: {sorted(unknown)}")
            for label in labels:
                in_true = label in true_labels
                in_predicted = label in predicted_labels
                if in_true and in_predicted:
                    tp[label] += 1
                elif in_predicted:
                    fp[label] += 1
                elif in_true:
                    fn[label] += 1

        examples = len(normalized)
        counts = {
            label: LabelCounts(
                label=label,
                true_positives=tp[label],
                false_positives=fp[label],
                false_negatives=fn[label],
                true_negatives=examples - tp[label] - fp[label] - fn[label],
            )
            for label in labels
        }
        return cls(labels, counts)

    def label_counts(self) -> List[LabelCounts]:
        return [self.counts[label] for label in sorted(self.labels)]

    def calculate_metrics(self) -> List[LabelMetric]:
        return calculate_metrics(self.label_counts())

    def summary(
        self, policy: MacroAveragePolicy = MacroAveragePolicy.EXCLUDE_UNDEFINED
    ) -> MetricsSummary:
        return summarize(self.calculate_metrics(), policy)

    def matrix_graph(self) -> str:
        lines = ["Label\tTrue Positives\tTotal Actual"]
        for counts in self.label_counts():
            lines.append(f"{counts.label}\t{counts.true_positives}\t{counts.support}")
        return "\n".join(lines) + "\n"
