import pandas as pd
import pytest

from image_classifier_workbench.evaluation import (
    BinaryConfusionMatrix,
    MultiClassConfusionMatrix,
    validate_table,
)
from image_classifier_workbench.evaluation.confusion_matrix import (
    ACTUAL,
    COUNT,
    PREDICTED,
)
from image_classifier_workbench.lib import SchemaValidationError

from conftest import binary_table


def _multi_class_table(labels, matrix):
    rows = [
        {"Predicted": predicted, "True Label": actual, "Count": matrix[i][j]}
        for i, actual in enumerate(labels)
        for j, predicted in enumerate(labels)
    ]
    return pd.DataFrame(rows)


def _build_binary(table, **kwargs):
    return BinaryConfusionMatrix.build(table, "Predicted", "True Label", "Count", **kwargs)


class TestBinaryConfusionMatrix:
    def test_eighty_percent_everywhere(self):
        matrix = _build_binary(binary_table(tp=80, fp=20, fn=20, tn=80), positive_class="cat")

        assert matrix is not None
        assert (matrix.true_positives, matrix.false_positives) == (80, 20)
        assert (matrix.false_negatives, matrix.true_negatives) == (20, 80)
        metric = matrix.positive_metric()
        assert metric.recall == pytest.approx(0.8, abs=0.001)
        assert metric.precision == pytest.approx(0.8, abs=0.001)
        assert metric.f1 == pytest.approx(0.8, abs=0.001)
        assert matrix.accuracy == pytest.approx(0.8, abs=0.001)

    def test_positive_class_defaults_to_second_sorted_label(self):
        matrix = _build_binary(binary_table(tp=5, fp=1, fn=2, tn=7))

        assert matrix is not None
        assert matrix.labels == ["cat", "dog"]
        assert matrix.positive_class == "dog"
        assert matrix.true_positives == 7
        assert matrix.false_negatives == 1

    def test_perfect_matrix(self):
        matrix = _build_binary(binary_table(tp=50, fp=0, fn=0, tn=50))

        for metric in matrix.calculate_metrics():
            assert metric.recall == 1.0
            assert metric.precision == 1.0
            assert metric.f1 == 1.0
        assert matrix.accuracy == 1.0

    def test_one_row_per_example(self):
        table = pd.DataFrame(
            {
                "actualLabel": ["cat", "cat", "dog", "dog", "dog"],
                "predictedLabel": ["cat", "dog", "dog", "dog", "cat"],
            }
        )

        matrix = BinaryConfusionMatrix.build(
            table, "predictedLabel", "actualLabel", positive_class="cat"
        )

        assert matrix is not None
        assert matrix.true_positives == 1
        assert matrix.false_negatives == 1
        assert matrix.false_positives == 1
        assert matrix.true_negatives == 2
        assert matrix.total == 5

    def test_empty_table_is_not_built(self):
        empty = pd.DataFrame({"Predicted": [], "True Label": [], "Count": []})

        assert _build_binary(empty) is None

    def test_missing_columns_are_not_built(self):
        wrong = pd.DataFrame({"wrong_column": ["cat", "dog"]})

        assert _build_binary(wrong) is None

    def test_single_label_is_not_built(self):
        table = pd.DataFrame({"Predicted": ["cat"], "True Label": ["cat"], "Count": [3]})

        assert _build_binary(table) is None

    def test_three_labels_are_not_built(self):
        table = pd.DataFrame(
            {
                "Predicted": ["cat", "dog", "bird"],
                "True Label": ["cat", "dog", "bird"],
                "Count": [1, 1, 1],
            }
        )

        assert _build_binary(table) is None

    def test_unknown_positive_class_is_not_built(self):
        assert _build_binary(binary_table(1, 1, 1, 1), positive_class="horse") is None

    def test_validate_table_raises_schema_error(self):
        with pytest.raises(SchemaValidationError):
            BinaryConfusionMatrix.validate_table(
                pd.DataFrame({"wrong_column": ["cat"]}), "Predicted", "True Label"
            )

    def test_negative_counts_are_rejected(self):
        with pytest.raises(SchemaValidationError):
            validate_table(binary_table(1, -1, 1, 1), "Predicted", "True Label", "Count")


class TestMultiClassConfusionMatrix:
    labels = ["cat", "dog", "bird"]

    def test_eighty_percent_for_every_label(self):
        table = _multi_class_table(
            self.labels, [[80, 10, 10], [10, 80, 10], [10, 10, 80]]
        )

        matrix = MultiClassConfusionMatrix.build(table, "Predicted", "True Label", "Count")

        assert matrix is not None
        metrics = matrix.calculate_metrics()
        assert [m.label for m in metrics] == ["bird", "cat", "dog"]
        for metric in metrics:
            assert metric.recall == pytest.approx(0.8, abs=0.001)
            assert metric.precision == pytest.approx(0.8, abs=0.001)
            assert metric.f1 == pytest.approx(0.8, abs=0.001)
            assert metric.support == 100
        assert matrix.total == 300

    def test_perfect_matrix(self):
        table = _multi_class_table(self.labels, [[20, 0, 0], [0, 30, 0], [0, 0, 40]])

        matrix = MultiClassConfusionMatrix.build(table, "Predicted", "True Label", "Count")

        for metric in matrix.calculate_metrics():
            assert (metric.recall, metric.precision, metric.f1) == (1.0, 1.0, 1.0)
        summary = matrix.summary()
        assert summary.macro_average_recall == 1.0
        assert summary.macro_average_precision == 1.0

    def test_matrix_layout_follows_sorted_labels(self):
        table = _multi_class_table(self.labels, [[5, 1, 0], [2, 6, 0], [0, 3, 7]])

        matrix = MultiClassConfusionMatrix.build(table, "Predicted", "True Label", "Count")

        assert matrix.labels == ["bird", "cat", "dog"]
        frame = matrix.to_dataframe()
        assert frame.loc["cat", "dog"] == 1
        assert frame.loc["dog", "cat"] == 2
        assert frame.loc["bird", "dog"] == 3
        assert matrix.support() == {"bird": 10, "cat": 6, "dog": 8}

    def test_label_only_predicted_is_not_built(self):
        table = pd.DataFrame(
            {
                "Predicted": ["cat", "dog", "bird"],
                "True Label": ["cat", "dog", "dog"],
                "Count": [1, 1, 1],
            }
        )

        assert MultiClassConfusionMatrix.build(table, "Predicted", "True Label", "Count") is None

    def test_single_label_is_not_built(self):
        table = pd.DataFrame({"Predicted": ["cat"], "True Label": ["cat"]})

        assert MultiClassConfusionMatrix.build(table, "Predicted", "True Label") is None

    def test_empty_table_is_not_built(self):
        assert MultiClassConfusionMatrix.build(pd.DataFrame(), "Predicted", "True Label") is None
        assert MultiClassConfusionMatrix.build(None, "Predicted", "True Label") is None

    def test_rebuilding_from_cells_reproduces_metrics(self):
        table = _multi_class_table(self.labels, [[5, 1, 0], [2, 6, 0], [0, 3, 7]])
        matrix = MultiClassConfusionMatrix.build(table, "Predicted", "True Label", "Count")

        rebuilt = MultiClassConfusionMatrix.build(matrix.cells(), PREDICTED, ACTUAL, COUNT)

        assert rebuilt is not None
        assert rebuilt.labels == matrix.labels
        assert rebuilt.calculate_metrics() == matrix.calculate_metrics()

    def test_binary_round_trip(self):
        matrix = _build_binary(binary_table(tp=9, fp=3, fn=4, tn=12), positive_class="cat")

        rebuilt = BinaryConfusionMatrix.build(
            matrix.cells(), PREDICTED, ACTUAL, COUNT, positive_class="cat"
        )

        assert rebuilt.positive_metric() == matrix.positive_metric()
        assert rebuilt.accuracy == matrix.accuracy

    def test_matrix_graph(self):
        table = _multi_class_table(["cat", "dog"], [[3, 1], [0, 4]])
        matrix = MultiClassConfusionMatrix.build(table, "Predicted", "True Label", "Count")

        assert matrix.matrix_graph() == (
            "Actual\\Predicted | cat | dog\n" "cat | 3 | 1\n" "dog | 0 | 4\n"
        )
