from enum import Enum
from fnmatch import fnmatch
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

# Label name -> sample references (file paths)
SampleSet = Dict[str, List[Path]]

REST_LABEL = "rest"


class ImageFormat(str, Enum):
    PNG = "*.png"
    JPG = "*.jpg"
    JPEG = "*.jpeg"
    GIF = "*.gif"
    BMP = "*.bmp"
    WEBP = "*.webp"

    def matches(self, path: Path) -> bool:
        return fnmatch(path.name.lower(), self.value)


class Strategy(str, Enum):
    """How an N-class catalog is turned into training problems."""

    BINARY = "binary"
    ONE_VS_ONE = "ovo"
    ONE_VS_REST = "ovr"
    MULTI_CLASS = "multi_class"
    MULTI_LABEL = "multi_label"

    @property
    def min_classes(self) -> int:
        return 2

    @property
    def is_decomposed(self) -> bool:
        """Whether the strategy trains one model per PairTask."""
        return self in (Strategy.ONE_VS_ONE, Strategy.ONE_VS_REST)


class ClassLabel(BaseModel):
    """A class label discovered on disk together with its samples."""

    model_config = ConfigDict(frozen=True)

    name: str
    samples: Tuple[Path, ...]

    @property
    def sample_count(self) -> int:
        return len(self.samples)


class StagedSample(BaseModel):
    """A sample and the file name it receives when a task is staged."""

    model_config = ConfigDict(frozen=True)

    source: Path
    staged_name: str

    @classmethod
    def keep_name(cls, source: Path) -> "StagedSample":
        return cls(source=source, staged_name=source.name)

    @classmethod
    def numbered(cls, source: Path, index: int, label: str) -> "StagedSample":
        """Name a rest-group member `<index>_<source label><suffix>`."""
        return cls(source=source, staged_name=f"{index:05d}_{label}{source.suffix}")


class PairTask(BaseModel):
    """
    One binary sub-problem produced by decomposing an N-class catalog.

    For one-vs-one tasks the two labels are both real classes; for one-vs-rest
    tasks the negative label is the synthesized rest group. The task owns its
    own sample assembly and is consumed once by the trainer.
    """

    strategy: Strategy
    positive_class: str
    negative_class: str
    samples: Dict[str, List[StagedSample]]

    @property
    def name(self) -> str:
        return f"{self.positive_class}_vs_{self.negative_class}"

    @property
    def labels(self) -> Tuple[str, str]:
        return (self.positive_class, self.negative_class)

    @property
    def sample_set(self) -> SampleSet:
        return {
            label: [sample.source for sample in staged]
            for label, staged in self.samples.items()
        }

    def class_counts(self) -> Dict[str, int]:
        return {label: len(staged) for label, staged in self.samples.items()}


class TrainingOutcome(BaseModel):
    """What an external trainer reports back for one training run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    training_accuracy: float = Field(..., ge=0, le=1)
    validation_accuracy: float = Field(..., ge=0, le=1)
    training_error_rate: float = Field(..., ge=0, le=1)
    validation_error_rate: float = Field(..., ge=0, le=1)
    raw_prediction_table: Optional[pd.DataFrame] = Field(
        None, description="Validation predictions, one row per example or per cell"
    )
    label_set_predictions: Optional[List[Tuple[Set[str], Set[str]]]] = Field(
        None, description="Per-example (true labels, predicted labels) for multi-label"
    )
