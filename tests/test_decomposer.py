import logging
import math
from itertools import combinations
from pathlib import Path

import numpy as np
import pytest

from image_classifier_workbench.dataset_builder import (
    DatasetBalancer,
    OneVsOneDecomposer,
    OneVsRestDecomposer,
    decomposer_for,
)
from image_classifier_workbench.lib import (
    REST_LABEL,
    ClassLabel,
    InsufficientClassesError,
    Strategy,
)

from conftest import make_labels


class TestOneVsOne:
    @pytest.mark.parametrize("n_classes", [2, 3, 4, 6])
    def test_yields_every_unordered_pair_once(self, rng, n_classes):
        labels = make_labels({f"class_{i}": 3 + i for i in range(n_classes)})

        tasks = OneVsOneDecomposer(DatasetBalancer(rng=rng)).decompose(labels)

        assert len(tasks) == n_classes * (n_classes - 1) // 2
        pairs = [task.labels for task in tasks]
        assert len({frozenset(pair) for pair in pairs}) == len(pairs)
        assert all(a != b for a, b in pairs)

    def test_pair_order_is_deterministic(self, rng):
        labels = make_labels({"dog": 2, "bird": 2, "cat": 2})

        tasks = OneVsOneDecomposer(DatasetBalancer(rng=rng)).decompose(labels)

        assert [task.labels for task in tasks] == list(
            combinations(["bird", "cat", "dog"], 2)
        )
        assert [task.name for task in tasks] == ["bird_vs_cat", "bird_vs_dog", "cat_vs_dog"]

    def test_each_pair_is_balanced_independently(self, rng):
        labels = make_labels({"a": 10, "b": 4, "c": 7})

        tasks = OneVsOneDecomposer(DatasetBalancer(rng=rng)).decompose(labels)

        counts = {task.name: task.class_counts() for task in tasks}
        assert counts == {
            "a_vs_b": {"a": 4, "b": 4},
            "a_vs_c": {"a": 7, "c": 7},
            "b_vs_c": {"b": 4, "c": 4},
        }

    def test_without_equalize_keeps_all_samples(self, rng):
        labels = make_labels({"a": 10, "b": 4})

        (task,) = OneVsOneDecomposer(
            DatasetBalancer(rng=rng), should_equalize=False
        ).decompose(labels)

        assert task.class_counts() == {"a": 10, "b": 4}
        assert task.samples["a"][0].staged_name == "img_000.jpg"

    def test_pairs_with_an_empty_class_are_skipped(self, rng):
        labels = make_labels({"a": 3, "b": 0, "c": 3})

        tasks = OneVsOneDecomposer(DatasetBalancer(rng=rng)).decompose(labels)

        assert [task.name for task in tasks] == ["a_vs_c"]

    def test_skipped_pair_is_logged_by_task_name(self, rng, caplog):
        labels = make_labels({"a": 3, "b": 0})

        with caplog.at_level(logging.WARNING):
            OneVsOneDecomposer(DatasetBalancer(rng=rng)).decompose(labels)

        assert "Skipping task a_vs_b" in caplog.text


class TestOneVsRest:
    @pytest.mark.parametrize(
        "counts",
        [
            {"a": 10, "b": 10},
            {"a": 7, "b": 2, "c": 30},
            {"a": 1, "b": 5, "c": 5, "d": 5},
            {"a": 50, "b": 3, "c": 40, "d": 9, "e": 12},
        ],
    )
    def test_rest_group_size(self, rng, counts):
        labels = make_labels(counts)

        tasks = OneVsRestDecomposer(rng=rng).decompose(labels)

        assert len(tasks) == len(counts)
        for task in tasks:
            positive = task.positive_class
            others = [label for label in counts if label != positive]
            per_class = math.ceil(counts[positive] / len(others))
            expected_rest = sum(min(per_class, counts[o]) for o in others)
            assert task.negative_class == REST_LABEL
            assert len(task.samples[positive]) == counts[positive]
            assert len(task.samples[REST_LABEL]) == expected_rest

    def test_rest_samples_are_numbered_and_unique(self, rng):
        # Every class uses the same file names
        labels = make_labels({"cat": 4, "dog": 4, "bird": 4})

        tasks = OneVsRestDecomposer(rng=rng).decompose(labels)

        for task in tasks:
            rest = task.samples[REST_LABEL]
            staged_names = [sample.staged_name for sample in rest]
            assert len(set(staged_names)) == len(staged_names)
            for index, sample in enumerate(rest):
                source_label = sample.source.parent.name
                assert source_label != task.positive_class
                assert sample.staged_name == f"{index:05d}_{source_label}.jpg"

    def test_rest_names_do_not_clash_across_underscored_labels(self, rng):
        # "a" + "b_x.jpg" and "a_b" + "x.jpg" would both read "a_b_x.jpg"
        labels = [
            ClassLabel(name="a", samples=(Path("/data/a/b_x.jpg"),)),
            ClassLabel(name="a_b", samples=(Path("/data/a_b/x.jpg"),)),
            ClassLabel(
                name="c", samples=(Path("/data/c/1.jpg"), Path("/data/c/2.jpg"))
            ),
        ]

        tasks = OneVsRestDecomposer(rng=rng).decompose(labels)

        (task,) = [task for task in tasks if task.positive_class == "c"]
        rest = task.samples[REST_LABEL]
        assert len(rest) == 2
        assert len({sample.staged_name for sample in rest}) == 2
        assert {sample.source.name for sample in rest} == {"b_x.jpg", "x.jpg"}

    def test_rest_samples_are_drawn_without_replacement(self):
        labels = make_labels({"a": 20, "b": 30, "c": 30})

        tasks = OneVsRestDecomposer(rng=np.random.default_rng(3)).decompose(labels)

        rest = tasks[0].samples[REST_LABEL]
        sources = [sample.source for sample in rest]
        assert len(sources) == len(set(sources)) == 20

    def test_empty_positive_class_is_skipped(self, rng):
        labels = make_labels({"a": 0, "b": 3, "c": 3})

        tasks = OneVsRestDecomposer(rng=rng).decompose(labels)

        assert [task.positive_class for task in tasks] == ["b", "c"]

    def test_empty_rest_group_is_skipped(self, rng):
        labels = make_labels({"a": 3, "b": 0})

        tasks = OneVsRestDecomposer(rng=rng).decompose(labels)

        assert tasks == []

    def test_reserved_rest_class_name_is_skipped(self, rng):
        labels = make_labels({"rest": 3, "cat": 3, "dog": 3})

        tasks = OneVsRestDecomposer(rng=rng).decompose(labels)

        assert [task.positive_class for task in tasks] == ["cat", "dog"]


class TestDecomposerFactory:
    def test_factory_returns_matching_decomposer(self, rng):
        balancer = DatasetBalancer(rng=rng)

        assert isinstance(decomposer_for(Strategy.ONE_VS_ONE, balancer), OneVsOneDecomposer)
        assert isinstance(decomposer_for(Strategy.ONE_VS_REST, balancer), OneVsRestDecomposer)

    def test_factory_rejects_undecomposed_strategies(self, rng):
        with pytest.raises(ValueError):
            decomposer_for(Strategy.MULTI_CLASS, DatasetBalancer(rng=rng))

    def test_too_few_classes(self, rng):
        with pytest.raises(InsufficientClassesError):
            OneVsRestDecomposer(rng=rng).decompose(make_labels({"a": 3}))
