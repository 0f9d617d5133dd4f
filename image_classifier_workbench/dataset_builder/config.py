from enum import Enum
import json
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationInfo, field_validator

from image_classifier_workbench.lib.models import ImageFormat, Strategy


class MacroAveragePolicy(str, Enum):
    """How labels with an undefined metric enter a macro average."""

    EXCLUDE_UNDEFINED = "exclude_undefined"  # Average only the defined values
    UNDEFINED_AS_ZERO = "undefined_as_zero"  # Count undefined values as 0.0


class PredictionTableConfig(BaseModel):
    """Column names of the raw prediction table produced by the trainer."""

    predicted_column: str = Field(
        "Predicted", description="Column holding the predicted label"
    )
    actual_column: str = Field(
        "True Label", description="Column holding the actual label"
    )
    count_column: Optional[str] = Field(
        "Count",
        description="Column holding pre-aggregated counts. Leave empty when each row is one example",
    )

    @field_validator("actual_column")
    @classmethod
    def validate_distinct_columns(cls, v: str, info: ValidationInfo) -> str:
        """Validate that the actual and predicted columns are not the same column."""
        if v == info.data.get("predicted_column"):
            raise ValueError("actual_column must differ from predicted_column")
        return v

    @field_validator("count_column")
    @classmethod
    def validate_count_column(
        cls, v: Optional[str], info: ValidationInfo
    ) -> Optional[str]:
        """Treat an empty count column as "one row per example"."""
        if v is not None and not v.strip():
            return None
        if v is not None and v in (
            info.data.get("predicted_column"),
            info.data.get("actual_column"),
        ):
            raise ValueError("count_column must differ from the label columns")
        return v


class WorkbenchConfig(BaseModel):
    """Main configuration for dataset decomposition and evaluation."""

    strategy: Strategy = Field(..., description="Classification strategy")
    equalize: bool = Field(
        True, description="Truncate every class to the smallest class size"
    )
    seed: Optional[int] = Field(
        42, description="Random seed for reproducible sampling. None for unseeded"
    )
    image_formats: Optional[List[ImageFormat]] = Field(
        None, description="Only treat files matching these formats as samples"
    )
    staging_dir: Optional[str] = Field(
        None,
        description="Directory under which per-task staging folders are created. Defaults to the system temp dir",
    )
    max_workers: int = Field(
        1, description="Number of PairTasks trained concurrently", ge=1
    )
    positive_class: Optional[str] = Field(
        None, description="Positive class for binary evaluation"
    )
    prediction_table: PredictionTableConfig = Field(
        default_factory=PredictionTableConfig,
        description="Column names of the trainer's prediction table",
    )
    macro_average_policy: MacroAveragePolicy = Field(
        MacroAveragePolicy.EXCLUDE_UNDEFINED,
        description="Treatment of undefined per-label metrics in macro averages",
    )

    @field_validator("positive_class")
    @classmethod
    def validate_positive_class(
        cls, v: Optional[str], info: ValidationInfo
    ) -> Optional[str]:
        """Validate that a positive class is only configured for binary runs."""
        if v is not None and info.data.get("strategy") != Strategy.BINARY:
            raise ValueError("positive_class can only be set for the binary strategy")
        return v

    @classmethod
    def from_file(cls, config_file: Union[str, Path]) -> "WorkbenchConfig":
        """Load and validate a configuration file (YAML/JSON)."""
        config_path = Path(config_file)
        if config_path.suffix.lower() in [".yaml", ".yml"]:
            with open(config_path, "r") as f:
                config_data = yaml.safe_load(f)
        elif config_path.suffix.lower() == ".json":
            with open(config_path, "r") as f:
                config_data = json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {config_path.suffix}")

        return cls.model_validate(config_data or {})
