"""
Training Orchestration Component for Image Classification Workbench.

This module provides functionality for:
- Declaring the boundary to an external, opaque classifier trainer
- Training every task of a decomposition with per-task failure isolation
- Evaluating each training outcome into per-label metric reports
"""

from .runner import DecompositionRunner, RunReport, TaskReport, TrainingUnit
from .trainer import ClassifierTrainer

__all__ = [
    "ClassifierTrainer",
    "DecompositionRunner",
    "RunReport",
    "TaskReport",
    "TrainingUnit",
]
