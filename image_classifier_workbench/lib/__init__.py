"""
Utility library for the image classifier workbench.

This module provides common utilities used across the workbench components.
"""

from .guards import defined_values
from .logger import setup_logger
from .pandas import pandas
from .errors import (
    WorkbenchError,
    CatalogError,
    InsufficientClassesError,
    InsufficientSamplesError,
    SchemaValidationError,
    DirectoryAccessError,
)
from .models import (
    REST_LABEL,
    ClassLabel,
    ImageFormat,
    PairTask,
    SampleSet,
    StagedSample,
    Strategy,
    TrainingOutcome,
)

__all__ = [
    "defined_values",
    "pandas",
    "setup_logger",
    "WorkbenchError",
    "CatalogError",
    "InsufficientClassesError",
    "InsufficientSamplesError",
    "SchemaValidationError",
    "DirectoryAccessError",
    "REST_LABEL",
    "ClassLabel",
    "ImageFormat",
    "PairTask",
    "SampleSet",
    "StagedSample",
    "Strategy",
    "TrainingOutcome",
]
