"""Shared pytest fixtures for the workbench tests."""

from pathlib import Path
from typing import Callable, Dict, List

import numpy as np
import pandas as pd
import pytest

from image_classifier_workbench.lib import ClassLabel, SampleSet, TrainingOutcome


def write_class_dirs(root: Path, counts: Dict[str, int], suffix: str = ".jpg") -> Path:
    """Create one directory per class holding `count` small files."""
    root.mkdir(parents=True, exist_ok=True)
    for label, count in counts.items():
        class_dir = root / label
        class_dir.mkdir()
        for i in range(count):
            (class_dir / f"img_{i:03d}{suffix}").write_bytes(f"{label}-{i}".encode())
    return root


@pytest.fixture()
def make_resources(tmp_path: Path) -> Callable[..., Path]:
    """Factory fixture building a resource directory from label -> sample count."""

    def _make(counts: Dict[str, int], name: str = "resources", suffix: str = ".jpg") -> Path:
        return write_class_dirs(tmp_path / name, counts, suffix)

    return _make


@pytest.fixture()
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


def make_labels(counts: Dict[str, int]) -> List[ClassLabel]:
    """In-memory class labels with fake sample paths."""
    return [
        ClassLabel(
            name=label,
            samples=tuple(Path(f"/data/{label}/img_{i:03d}.jpg") for i in range(count)),
        )
        for label, count in counts.items()
    ]


def binary_table(tp: int, fp: int, fn: int, tn: int, positive: str = "cat", negative: str = "dog") -> pd.DataFrame:
    """A pre-aggregated binary prediction table."""
    return pd.DataFrame(
        {
            "Predicted": [positive, positive, negative, negative],
            "True Label": [positive, negative, positive, negative],
            "Count": [tp, fp, fn, tn],
        }
    )


class PerfectTrainer:
    """Trainer double that predicts every staged sample correctly."""

    def __init__(self):
        self.calls: List[SampleSet] = []
        self.seen_paths: List[Path] = []

    def train(self, sample_set: SampleSet) -> TrainingOutcome:
        self.calls.append(sample_set)
        rows = []
        for label, samples in sample_set.items():
            for sample in samples:
                assert Path(sample).exists()
                self.seen_paths.append(Path(sample))
                rows.append({"Predicted": label, "True Label": label})
        return TrainingOutcome(
            training_accuracy=1.0,
            validation_accuracy=1.0,
            training_error_rate=0.0,
            validation_error_rate=0.0,
            raw_prediction_table=pd.DataFrame(rows),
        )


@pytest.fixture()
def perfect_trainer() -> PerfectTrainer:
    return PerfectTrainer()
