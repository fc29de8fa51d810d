"""
Typed configuration models using Pydantic.

All configuration is defined here with explicit typing and validation.
No hardcoded column lists, seeds or grid values in processing code.
"""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ImputationStrategy(str, Enum):
    """Imputation strategy for numeric measurements."""

    MEDIAN = "median"
    MEAN = "mean"
    KNN = "knn"  # KNNImputer on the numeric block


class ResamplingMethod(str, Enum):
    """Resampling scheme used for comparison and tuning."""

    BOOTSTRAP = "bootstrap"
    KFOLD = "kfold"


class DataConfig(BaseModel):
    """Data source configuration.

    When ``path`` is not set, the dataset bundled with the
    ``palmerpenguins`` package is used.
    """

    model_config = ConfigDict(frozen=True)

    path: Path | None = Field(
        default=None, description="Path to penguins CSV (None = palmerpenguins)"
    )
    new_observations: Path | None = Field(
        default=None, description="Path to new observations for scoring"
    )

    def resolve(self, path_attr: str) -> Path:
        """Return a configured path or raise if it is missing."""
        path = getattr(self, path_attr)
        if path is None:
            msg = f"Path 'data.{path_attr}' is not configured"
            raise ValueError(msg)
        return path


class FeatureConfig(BaseModel):
    """Feature and label columns."""

    model_config = ConfigDict(frozen=True)

    target: str = Field(default="species", description="Label column")
    numeric: list[str] = Field(
        default_factory=lambda: [
            "bill_length_mm",
            "bill_depth_mm",
            "flipper_length_mm",
            "body_mass_g",
        ],
        description="Numeric morphological measurements",
    )
    categorical: list[str] = Field(
        default_factory=lambda: ["island", "sex"],
        description="Categorical attributes",
    )
    drop: list[str] = Field(
        default_factory=lambda: ["year"],
        description="Columns removed before modeling",
    )

    @model_validator(mode="after")
    def validate_disjoint(self) -> "FeatureConfig":
        """Ensure the target is not also used as a feature."""
        overlap = set(self.numeric) & set(self.categorical)
        if overlap:
            msg = f"Columns listed as both numeric and categorical: {sorted(overlap)}"
            raise ValueError(msg)
        if self.target in self.numeric or self.target in self.categorical:
            msg = f"Target column '{self.target}' cannot be a feature"
            raise ValueError(msg)
        return self

    @property
    def features(self) -> list[str]:
        """All model input columns in a stable order."""
        return [*self.numeric, *self.categorical]


class PreprocessingConfig(BaseModel):
    """Recipe configuration (imputation + normalization)."""

    model_config = ConfigDict(frozen=True)

    numeric_imputation: ImputationStrategy = Field(default=ImputationStrategy.MEDIAN)
    knn_neighbors: int = Field(default=5, ge=1, le=50)
    normalize: bool = Field(default=True, description="Center and scale numerics")
    one_hot: bool = Field(default=True, description="Dummy-encode categoricals")


class SplitConfig(BaseModel):
    """Train/test split configuration."""

    model_config = ConfigDict(frozen=True)

    test_size: float = Field(default=0.25, gt=0.0, lt=1.0)
    stratify: bool = Field(default=True)
    random_state: int = Field(default=2023)


class ResamplingConfig(BaseModel):
    """Resampling configuration for model comparison and tuning."""

    model_config = ConfigDict(frozen=True)

    method: ResamplingMethod = Field(default=ResamplingMethod.BOOTSTRAP)
    n_resamples: int = Field(
        default=25, ge=2, le=1000, description="Bootstrap resamples or CV folds"
    )
    repeats: int = Field(default=1, ge=1, le=20, description="Repeats for kfold")
    stratify: bool = Field(default=True)
    random_state: int = Field(default=2023)


class TuningConfig(BaseModel):
    """Grid search configuration."""

    model_config = ConfigDict(frozen=True)

    model: str = Field(default="Boosted Trees", description="Model to tune")
    metric: str = Field(default="roc_auc", description="Selection metric")

    @field_validator("metric")
    @classmethod
    def validate_metric(cls, v: str) -> str:
        """Ensure the selection metric is a known resample metric."""
        allowed = {"accuracy", "roc_auc", "log_loss", "kappa"}
        if v not in allowed:
            msg = f"Unknown tuning metric {v!r}. Allowed: {sorted(allowed)}"
            raise ValueError(msg)
        return v


class TrainingConfig(BaseModel):
    """Fitting configuration shared by comparison, tuning and final fit."""

    model_config = ConfigDict(frozen=True)

    n_jobs: int = Field(default=-1, description="joblib workers for resampling")
    random_state: int = Field(default=2023)
    metrics: list[str] = Field(
        default_factory=lambda: ["accuracy", "roc_auc", "log_loss", "kappa"]
    )


class ModelConfig(BaseModel):
    """Model selection and hyperparameter grid configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: list[str] = Field(
        default_factory=lambda: ["Multinomial Regression", "Boosted Trees"],
        description="List of enabled model names",
    )
    hyperparameters: dict[str, dict[str, list[Any]]] = Field(
        default_factory=dict,
        description="Grid overrides per model (plain estimator parameter names)",
    )


class MLflowConfig(BaseModel):
    """MLflow experiment tracking configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False)
    tracking_uri: str = Field(default="sqlite:///mlflow.db")
    artifact_location: str | None = Field(
        default=None,
        description="Artifact root for a newly created experiment (server default if None)",
    )
    experiment_name: str | None = Field(
        default=None, description="MLflow experiment name (defaults to project name)"
    )


class OutputConfig(BaseModel):
    """Output paths configuration.

    Structure: ./output/{project}/models, ./output/{project}/reports, etc.
    """

    model_config = ConfigDict(frozen=True)

    output_root: Path = Field(
        default=Path("./output"), description="Root directory for all outputs"
    )


class PipelineConfig(BaseModel):
    """Complete workflow configuration.

    The project name drives:
    - MLflow experiment name (if not explicitly set)
    - Output directory structure: ./output/{project}/
    """

    model_config = ConfigDict(frozen=True)

    project: str = Field(description="Project identifier (e.g., 'penguins')")

    data: DataConfig = Field(default_factory=DataConfig)
    features: FeatureConfig = Field(default_factory=FeatureConfig)
    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    split: SplitConfig = Field(default_factory=SplitConfig)
    resampling: ResamplingConfig = Field(default_factory=ResamplingConfig)
    tuning: TuningConfig = Field(default_factory=TuningConfig)
    training: TrainingConfig = Field(default_factory=TrainingConfig)
    models: ModelConfig = Field(default_factory=ModelConfig)
    mlflow: MLflowConfig = Field(default_factory=MLflowConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @field_validator("project")
    @classmethod
    def validate_project(cls, v: str) -> str:
        """Project names become directory names."""
        if not v or "/" in v or v.strip() != v:
            msg = f"Invalid project name: {v!r}"
            raise ValueError(msg)
        return v

    @property
    def experiment_name(self) -> str:
        """MLflow experiment name (derived from project if not set)."""
        return self.mlflow.experiment_name or self.project

    @property
    def models_dir(self) -> Path:
        """Path to persisted models."""
        return self.output.output_root / self.project / "models"

    @property
    def reports_dir(self) -> Path:
        """Path to HTML reports."""
        return self.output.output_root / self.project / "reports"

    @property
    def predictions_dir(self) -> Path:
        """Path to prediction tables."""
        return self.output.output_root / self.project / "predictions"
