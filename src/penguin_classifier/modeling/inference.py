"""
Model persistence and scoring of new observations.

Persists fitted workflows with joblib plus a JSON metadata sidecar,
reloads them (from disk or an MLflow URI) and scores new penguins.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import joblib
import numpy as np
import pandas as pd

from penguin_classifier.modeling.data import normalize_frame, read_table
from penguin_classifier.modeling.training import build_prediction_frame
from penguin_classifier.schemas.registry import SchemaRegistry
from penguin_classifier.utils.logging import get_logger

if TYPE_CHECKING:
    from penguin_classifier.modeling.training import TrainedModel

log = get_logger(__name__)

MODEL_SUFFIX = ".joblib"
METADATA_SUFFIX = ".meta.json"


@dataclass
class LoadedModel:
    """
    A reloaded workflow with its metadata.

    Attributes:
        model: Fitted workflow.
        feature_names: Input columns expected by the workflow.
        classes: Class labels in probability column order.
        metadata: Full sidecar metadata (None if no sidecar was found).
    """

    model: Any
    feature_names: list[str] | None
    classes: list[str]
    metadata: dict[str, Any] | None = None

    @property
    def name(self) -> str:
        """Model name from metadata, or the estimator class name."""
        if self.metadata and self.metadata.get("model_name"):
            return str(self.metadata["model_name"])
        return _get_model_name(self.model)


@dataclass
class PredictionResult:
    """
    Container for prediction results.

    Attributes:
        predictions: DataFrame with predicted_species and prob_<species> columns.
        model_name: Name of model used.
        feature_names: Features used for prediction.
        n_predictions: Number of scored observations.
        n_imputed: Missing feature values filled in by the recipe.
    """

    predictions: pd.DataFrame
    model_name: str
    feature_names: list[str]
    n_predictions: int
    n_imputed: int


def _get_model_name(model: Any) -> str:
    """Get the model step's class name from a workflow."""
    inner = getattr(model, "classifier_", model)
    if hasattr(inner, "named_steps") and "model" in inner.named_steps:
        return type(inner.named_steps["model"]).__name__
    return type(inner).__name__


def _to_builtin(value: Any) -> Any:
    """Make numpy scalars and NaN JSON-serializable."""
    if isinstance(value, dict):
        return {str(k): _to_builtin(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_builtin(v) for v in value]
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and np.isnan(value):
        return None
    return value


def save_model(
    trained: "TrainedModel",
    path: Path,
    *,
    extra_metadata: dict[str, Any] | None = None,
) -> Path:
    """
    Persist a fitted workflow with a metadata sidecar.

    Args:
        trained: Trained model from the final fit.
        path: Target path; ``.joblib`` is appended when missing.
        extra_metadata: Additional sidecar entries.

    Returns:
        Path of the written model file.
    """
    from penguin_classifier import __version__

    if path.suffix != MODEL_SUFFIX:
        path = path.with_name(path.name + MODEL_SUFFIX)
    path.parent.mkdir(parents=True, exist_ok=True)

    joblib.dump(trained.workflow, path)

    metadata = {
        "model_name": trained.name,
        "feature_names": trained.feature_names,
        "classes": trained.classes,
        "best_params": trained.best_params,
        "test_metrics": trained.test_metrics.to_dict() if trained.test_metrics else None,
        "package_version": __version__,
        "saved_at": datetime.now(timezone.utc).isoformat(),
        **(extra_metadata or {}),
    }
    metadata_path = metadata_path_for(path)
    with metadata_path.open("w", encoding="utf-8") as f:
        json.dump(_to_builtin(metadata), f, indent=2)

    log.info("Saved model", path=str(path), metadata=str(metadata_path))
    return path


def metadata_path_for(model_path: Path) -> Path:
    """Sidecar path for a model file (``x.joblib`` -> ``x.meta.json``)."""
    return model_path.with_suffix(METADATA_SUFFIX)


def load_model(model_path: Path | str) -> LoadedModel:
    """
    Load a saved model with its metadata.

    Args:
        model_path: Path to a .joblib file or an MLflow URI
            (``runs:/...`` or ``models:/...``).

    Returns:
        LoadedModel with model and feature metadata.

    Raises:
        FileNotFoundError: If a model file does not exist.
    """
    model_path_str = str(model_path)
    feature_names: list[str] | None = None
    metadata: dict[str, Any] | None = None

    if model_path_str.startswith(("runs:/", "models:/")):
        import mlflow

        model = mlflow.sklearn.load_model(model_path_str)
    else:
        path = Path(model_path)
        if not path.exists():
            msg = f"Model file not found: {path}"
            raise FileNotFoundError(msg)

        model = joblib.load(path)

        metadata_path = metadata_path_for(path)
        if metadata_path.exists():
            with metadata_path.open(encoding="utf-8") as f:
                metadata = json.load(f)
            feature_names = metadata.get("feature_names")
            log.info(
                "Loaded model metadata",
                model=metadata.get("model_name"),
                features=feature_names,
            )

    if feature_names is None and hasattr(model, "feature_names_in_"):
        feature_names = [str(f) for f in model.feature_names_in_]

    classes = [str(c) for c in getattr(model, "classes_", [])]
    return LoadedModel(
        model=model,
        feature_names=feature_names,
        classes=classes,
        metadata=metadata,
    )


def load_new_observations(path: Path) -> pd.DataFrame:
    """
    Read new observations for scoring from CSV or Parquet.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    if not path.exists():
        msg = f"New observations file not found: {path}"
        raise FileNotFoundError(msg)

    df = normalize_frame(read_table(path))
    log.info("Loaded new observations", path=str(path), rows=len(df))
    return df


def predict_species(
    model: Any,
    new_data: pd.DataFrame,
    feature_names: list[str] | None = None,
    *,
    validate: bool = True,
) -> PredictionResult:
    """
    Score new observations with a fitted workflow.

    Missing measurements are imputed by the workflow's recipe with the
    statistics learned at training time.

    Args:
        model: Fitted workflow.
        new_data: New observations (extra columns are ignored).
        feature_names: Columns the workflow expects (default: from model).
        validate: Validate input and output against their schemas.

    Returns:
        PredictionResult with predicted species and class probabilities.

    Raises:
        ValueError: If required feature columns are missing.
    """
    if feature_names is None:
        feature_names = [str(f) for f in getattr(model, "feature_names_in_", [])]
    if not feature_names:
        msg = "Feature names unknown: pass feature_names or use a fitted workflow"
        raise ValueError(msg)

    missing = [col for col in feature_names if col not in new_data.columns]
    if missing:
        msg = f"Missing feature columns: {missing}"
        raise ValueError(msg)

    if validate:
        new_data = SchemaRegistry.validate(new_data, "new_observations", lazy=True)

    features = new_data[feature_names].copy()
    n_imputed = int(features.isna().sum().sum())
    if n_imputed > 0:
        log.info("Missing values will be imputed by the recipe", n_imputed=n_imputed)

    log.info("Generating predictions", n_samples=len(features))
    y_pred = model.predict(features)
    y_proba = model.predict_proba(features)
    classes = [str(c) for c in model.classes_]

    predictions = build_prediction_frame(y_pred, y_proba, classes, index=features.index)
    predictions = predictions.rename(columns={"predicted": "predicted_species"})

    if validate:
        predictions = SchemaRegistry.validate(predictions, "predictions")

    return PredictionResult(
        predictions=predictions,
        model_name=_get_model_name(model),
        feature_names=list(feature_names),
        n_predictions=len(predictions),
        n_imputed=n_imputed,
    )


def save_predictions(
    result: PredictionResult,
    new_data: pd.DataFrame,
    output_path: Path,
) -> Path:
    """
    Write the observations joined with their predictions to CSV.

    Returns:
        Path of the written file.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    joined = new_data.join(result.predictions)
    joined.to_csv(output_path, index=False)
    log.info("Saved predictions", path=str(output_path), rows=len(joined))
    return output_path
