"""
Dataset Construction Component for Image Classification Workbench.

This module provides functionality for:
- Discovering class labels and their samples from a directory structure
- Balancing class sizes by unbiased random truncation
- Decomposing an N-class catalog into one-vs-one or one-vs-rest pair tasks
- Staging task samples into scoped, per-task directories for training
"""

from .balancer import DatasetBalancer
from .catalog import ClassCatalog
from .config import MacroAveragePolicy, PredictionTableConfig, WorkbenchConfig
from .decomposer import (
    OneVsOneDecomposer,
    OneVsRestDecomposer,
    PairDecomposer,
    decomposer_for,
)
from .staging import staged_sample_set, staged_samples, staged_task

__all__ = [
    "DatasetBalancer",
    "ClassCatalog",
    "MacroAveragePolicy",
    "PredictionTableConfig",
    "WorkbenchConfig",
    "OneVsOneDecomposer",
    "OneVsRestDecomposer",
    "PairDecomposer",
    "decomposer_for",
    "staged_sample_set",
    "staged_samples",
    "staged_task",
]
