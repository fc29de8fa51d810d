"""
Model registry and factory.

Provides the registry of supported model specifications with their default
configurations and hyperparameter grids, and assembles fit-able workflows
(recipe + model + label encoding).
"""

from typing import Any

from sklearn.base import BaseEstimator
from sklearn.compose import ColumnTransformer
from sklearn.ensemble import GradientBoostingClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline
from xgboost import XGBClassifier

from penguin_classifier.config.settings import PipelineConfig
from penguin_classifier.modeling.preprocessing import EncodedTargetClassifier
from penguin_classifier.utils.logging import get_logger

log = get_logger(__name__)

# Prefix for model hyperparameters inside an EncodedTargetClassifier workflow
PARAM_PREFIX = "classifier__model__"

# Model configurations: name -> (class, default_kwargs)
MODEL_REGISTRY: dict[str, tuple[type[BaseEstimator], dict[str, Any]]] = {
    # lbfgs fits a multinomial (softmax) model for 3+ classes
    "Multinomial Regression": (
        LogisticRegression,
        {"C": 1.0, "solver": "lbfgs", "max_iter": 1000},
    ),
    "Boosted Trees": (
        XGBClassifier,
        {
            "objective": "multi:softprob",
            "tree_method": "hist",
            "n_estimators": 100,
            "max_depth": 4,
            "learning_rate": 0.1,
            "eval_metric": "mlogloss",
            # Parallelism happens across resamples, not inside a fit
            "n_jobs": 1,
        },
    ),
    "Gradient Boosting": (
        GradientBoostingClassifier,
        {"n_estimators": 100, "max_depth": 3, "learning_rate": 0.1},
    ),
}

# Models whose constructor accepts a random_state / seed
SEEDED_MODELS = {"Boosted Trees", "Gradient Boosting"}

# Default tuning grids (plain estimator parameter names)
PARAM_GRIDS: dict[str, dict[str, list[Any]]] = {
    "Multinomial Regression": {
        "C": [0.001, 0.01, 0.1, 1.0, 10.0, 100.0],
    },
    "Boosted Trees": {
        "n_estimators": [50, 100, 200],
        "max_depth": [2, 4, 6],
        "learning_rate": [0.01, 0.1, 0.3],
    },
    "Gradient Boosting": {
        "n_estimators": [50, 100],
        "max_depth": [2, 3],
        "learning_rate": [0.05, 0.1],
    },
}


def get_model(name: str, **kwargs: Any) -> BaseEstimator:
    """
    Get a model instance by name.

    Args:
        name: Model name from registry.
        **kwargs: Override default parameters.

    Returns:
        Model instance.

    Raises:
        KeyError: If model not found.
    """
    if name not in MODEL_REGISTRY:
        available = ", ".join(MODEL_REGISTRY.keys())
        msg = f"Unknown model '{name}'. Available: {available}"
        raise KeyError(msg)

    model_class, default_kwargs = MODEL_REGISTRY[name]
    params = {**default_kwargs, **kwargs}

    log.debug("Creating model", name=name, params=params)
    return model_class(**params)


def get_param_grid(
    name: str,
    config: PipelineConfig | None = None,
) -> dict[str, list[Any]]:
    """
    Get the tuning grid for a model, addressed for use on a workflow.

    A grid in ``config.models.hyperparameters`` replaces the default grid.

    Args:
        name: Model name.
        config: Optional workflow configuration with grid overrides.

    Returns:
        Grid keyed by ``classifier__model__<param>`` (empty if none defined).

    Raises:
        KeyError: If model not found.
    """
    if name not in MODEL_REGISTRY:
        available = ", ".join(MODEL_REGISTRY.keys())
        msg = f"Unknown model '{name}'. Available: {available}"
        raise KeyError(msg)

    grid = PARAM_GRIDS.get(name, {})
    if config is not None and name in config.models.hyperparameters:
        grid = config.models.hyperparameters[name]
        log.debug("Using configured grid", name=name, grid=grid)

    return {f"{PARAM_PREFIX}{param}": list(values) for param, values in grid.items()}


def strip_param_prefix(params: dict[str, Any]) -> dict[str, Any]:
    """Turn workflow parameter names back into plain estimator names."""
    return {key.removeprefix(PARAM_PREFIX): value for key, value in params.items()}


def list_models() -> list[str]:
    """List all available model names."""
    return list(MODEL_REGISTRY.keys())


def build_workflow(
    name: str,
    recipe: ColumnTransformer,
    *,
    random_state: int | None = None,
    **model_kwargs: Any,
) -> EncodedTargetClassifier:
    """
    Bundle a recipe and a model specification into one fit-able workflow.

    Args:
        name: Model name from registry.
        recipe: Unfitted preprocessing recipe.
        random_state: Seed for stochastic models.
        **model_kwargs: Override default model parameters.

    Returns:
        Unfitted EncodedTargetClassifier wrapping Pipeline(preprocessor, model).
    """
    if random_state is not None and name in SEEDED_MODELS:
        model_kwargs.setdefault("random_state", random_state)

    model = get_model(name, **model_kwargs)
    pipeline = Pipeline(
        steps=[
            ("preprocessor", recipe),
            ("model", model),
        ]
    )
    return EncodedTargetClassifier(pipeline)
