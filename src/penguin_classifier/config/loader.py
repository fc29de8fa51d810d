"""
Read workflow configuration from YAML.

Project files may reference environment variables (``${VAR}`` or
``${VAR:default}``) and inherit from a ``base.yaml`` in the same
directory. A minimal config only needs a ``project`` name; everything
else falls back to the defaults in ``settings.py``.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from penguin_classifier.config.settings import (
    DataConfig,
    FeatureConfig,
    MLflowConfig,
    ModelConfig,
    OutputConfig,
    PipelineConfig,
    PreprocessingConfig,
    ResamplingConfig,
    SplitConfig,
    TrainingConfig,
    TuningConfig,
)

# ${NAME} or ${NAME:fallback}
ENV_VAR_PATTERN = re.compile(r"\$\{(?P<name>[^}:]+)(?::(?P<default>[^}]*))?\}")


def _expand_env(value: Any) -> Any:
    """Substitute environment variables in every string of a parsed YAML tree."""
    if isinstance(value, dict):
        return {key: _expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    if not isinstance(value, str):
        return value
    return ENV_VAR_PATTERN.sub(
        lambda m: os.environ.get(m.group("name"), m.group("default") or ""),
        value,
    )


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursive dict merge; ``override`` wins on conflicts."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _merge(current, value)
        else:
            merged[key] = value
    return merged


def _optional_path(value: Any) -> Path | None:
    """Empty or missing values mean "not configured"."""
    if value in (None, ""):
        return None
    return Path(value)


def load_yaml(path: Path) -> dict[str, Any]:
    """Parse a YAML file with environment variables expanded."""
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return _expand_env(data) if data else {}


def config_from_dict(merged: dict[str, Any]) -> PipelineConfig:
    """
    Build a validated PipelineConfig from an already merged mapping.

    Args:
        merged: Raw configuration mapping (YAML layout).

    Returns:
        Fully validated PipelineConfig instance.

    Raises:
        ValueError: If required keys are missing or values are invalid.
    """
    project = merged.get("project")
    if not project:
        msg = "Config must specify 'project' name"
        raise ValueError(msg)

    data_data = merged.get("data", {})
    data = DataConfig(
        path=_optional_path(data_data.get("path")),
        new_observations=_optional_path(data_data.get("new_observations")),
    )

    features = FeatureConfig(**merged.get("features", {}))

    preprocessing_data = merged.get("preprocessing", {})
    preprocessing = PreprocessingConfig(
        numeric_imputation=preprocessing_data.get("numeric_imputation", "median"),
        knn_neighbors=preprocessing_data.get("knn_neighbors", 5),
        normalize=preprocessing_data.get("normalize", True),
        one_hot=preprocessing_data.get("one_hot", True),
    )

    # A single top-level seed, when given, is the default for every section
    seed = merged.get("seed", 2023)

    split_data = merged.get("split", {})
    split = SplitConfig(
        test_size=split_data.get("test_size", 0.25),
        stratify=split_data.get("stratify", True),
        random_state=split_data.get("random_state", seed),
    )

    resampling_data = merged.get("resampling", {})
    resampling = ResamplingConfig(
        method=resampling_data.get("method", "bootstrap"),
        n_resamples=resampling_data.get("n_resamples", 25),
        repeats=resampling_data.get("repeats", 1),
        stratify=resampling_data.get("stratify", True),
        random_state=resampling_data.get("random_state", seed),
    )

    tuning_data = merged.get("tuning", {})
    tuning = TuningConfig(
        model=tuning_data.get("model", "Boosted Trees"),
        metric=tuning_data.get("metric", "roc_auc"),
    )

    training_data = merged.get("training", {})
    training = TrainingConfig(
        n_jobs=training_data.get("n_jobs", -1),
        random_state=training_data.get("random_state", seed),
        metrics=training_data.get(
            "metrics", ["accuracy", "roc_auc", "log_loss", "kappa"]
        ),
    )

    models_data = merged.get("models", {})
    models = ModelConfig(
        enabled=models_data.get("enabled", ["Multinomial Regression", "Boosted Trees"]),
        hyperparameters=models_data.get("hyperparameters") or {},
    )

    mlflow_data = merged.get("mlflow", {})
    mlflow = MLflowConfig(
        enabled=mlflow_data.get("enabled", False),
        tracking_uri=mlflow_data.get("tracking_uri") or "sqlite:///mlflow.db",
        artifact_location=mlflow_data.get("artifact_location") or None,
        experiment_name=mlflow_data.get("experiment_name"),  # None = use project
    )

    output_data = merged.get("output", {})
    output = OutputConfig(
        output_root=Path(output_data.get("root", "./output")),
    )

    return PipelineConfig(
        project=project,
        data=data,
        features=features,
        preprocessing=preprocessing,
        split=split,
        resampling=resampling,
        tuning=tuning,
        training=training,
        models=models,
        mlflow=mlflow,
        output=output,
    )


def load_config(
    config_path: Path,
    base_path: Path | None = None,
) -> PipelineConfig:
    """
    Load a project configuration.

    Args:
        config_path: Project YAML file.
        base_path: File to inherit from. Defaults to a ``base.yaml`` next to
            ``config_path`` when one exists.

    Returns:
        Validated PipelineConfig.

    Raises:
        FileNotFoundError: If the config file does not exist.
    """
    if not config_path.exists():
        msg = f"Config file not found: {config_path}"
        raise FileNotFoundError(msg)

    if base_path is None:
        sibling = config_path.parent / "base.yaml"
        if sibling.exists() and sibling.resolve() != config_path.resolve():
            base_path = sibling

    base = load_yaml(base_path) if base_path is not None else {}
    return config_from_dict(_merge(base, load_yaml(config_path)))
