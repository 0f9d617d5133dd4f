from typing import Protocol, runtime_checkable

from image_classifier_workbench.lib.models import SampleSet, TrainingOutcome


@runtime_checkable
class ClassifierTrainer(Protocol):
    """
    The model-fitting boundary.

    A trainer receives a staged, labeled sample set (label -> file paths inside
    a private staging directory) and reports its accuracy, error rates and the
    raw validation prediction table. The runner never looks at the model
    itself; it only reads the prediction table (or, for multi-label trainers,
    the per-example label-set predictions).

    The staging directory is deleted as soon as `train` returns, so a trainer
    must not keep references to the staged files.
    """

    def train(self, sample_set: SampleSet) -> TrainingOutcome: ...
