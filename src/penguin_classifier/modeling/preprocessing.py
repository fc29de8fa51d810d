"""
Preprocessing recipe construction.

Builds the sklearn ColumnTransformer (imputation + normalization + dummy
encoding) from configuration, and the label-encoding wrapper that turns a
preprocessor + model pipeline into a single fit-able workflow.
"""

from typing import Any

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, ClassifierMixin, clone
from sklearn.compose import ColumnTransformer
from sklearn.impute import KNNImputer, SimpleImputer
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import (
    FunctionTransformer,
    LabelEncoder,
    OneHotEncoder,
    OrdinalEncoder,
    StandardScaler,
)
from sklearn.utils.validation import check_is_fitted

from penguin_classifier.config.settings import ImputationStrategy, PipelineConfig
from penguin_classifier.utils.logging import get_logger

log = get_logger(__name__)


def as_object_with_nan(X: Any) -> np.ndarray:
    """
    Cast categorical input to object dtype with NaN as the only missing marker.

    SimpleImputer does not treat None or pd.NA as missing in object arrays.
    """
    frame = pd.DataFrame(X).astype("object")
    return frame.where(frame.notna(), np.nan).to_numpy()


def _numeric_imputer(config: PipelineConfig) -> Any:
    strategy = config.preprocessing.numeric_imputation
    if strategy == ImputationStrategy.KNN:
        return KNNImputer(n_neighbors=config.preprocessing.knn_neighbors)
    return SimpleImputer(strategy=strategy.value)


def build_recipe(
    config: PipelineConfig,
    *,
    numeric_features: list[str] | None = None,
    categorical_features: list[str] | None = None,
) -> ColumnTransformer:
    """
    Build the preprocessing recipe.

    Numeric measurements are imputed (median, mean or KNN) and then
    centered and scaled. Categorical attributes are imputed with the most
    frequent level and dummy-encoded. Unknown levels at prediction time
    encode to all zeros.

    Args:
        config: Workflow configuration.
        numeric_features: Numeric columns (default: from config).
        categorical_features: Categorical columns (default: from config).

    Returns:
        Unfitted ColumnTransformer.
    """
    if numeric_features is None:
        numeric_features = list(config.features.numeric)
    if categorical_features is None:
        categorical_features = list(config.features.categorical)

    transformers: list[tuple[str, Any, list[str]]] = []

    if numeric_features:
        numeric_steps: list[tuple[str, Any]] = [("impute", _numeric_imputer(config))]
        if config.preprocessing.normalize:
            numeric_steps.append(("normalize", StandardScaler()))
        transformers.append(("numeric", Pipeline(numeric_steps), numeric_features))

    if categorical_features:
        if config.preprocessing.one_hot:
            encoder: Any = OneHotEncoder(handle_unknown="ignore", sparse_output=False)
        else:
            encoder = OrdinalEncoder(
                handle_unknown="use_encoded_value",
                unknown_value=-1,
            )
        categorical_steps = [
            (
                "to_object",
                FunctionTransformer(as_object_with_nan, feature_names_out="one-to-one"),
            ),
            ("impute", SimpleImputer(strategy="most_frequent")),
            ("dummy", encoder),
        ]
        transformers.append(
            ("categorical", Pipeline(categorical_steps), categorical_features)
        )

    if not transformers:
        msg = "Recipe needs at least one numeric or categorical feature"
        raise ValueError(msg)

    recipe = ColumnTransformer(
        transformers=transformers,
        remainder="drop",  # Drop columns not explicitly handled
        verbose_feature_names_out=False,
    )

    log.info(
        "Built preprocessing recipe",
        numeric_imputation=config.preprocessing.numeric_imputation.value,
        normalize=config.preprocessing.normalize,
        transformers={name: cols for name, _, cols in transformers},
    )

    return recipe


class EncodedTargetClassifier(ClassifierMixin, BaseEstimator):
    """
    Classifier wrapper that label-encodes the target.

    Fits ``classifier`` on integer-encoded labels (required by xgboost)
    and decodes predictions back to the original species names. Nested
    parameters are addressed as ``classifier__<step>__<param>``, so the
    wrapper can be tuned with GridSearchCV.

    Attributes:
        classifier: Unfitted classifier or pipeline.
        classifier_: Fitted clone of ``classifier``.
        label_encoder_: Fitted LabelEncoder.
        classes_: Class labels in encoded order.
    """

    def __init__(self, classifier: Any) -> None:
        self.classifier = classifier

    def fit(self, X: pd.DataFrame, y: Any, **fit_params: Any) -> "EncodedTargetClassifier":
        """Fit the wrapped classifier on encoded labels."""
        self.label_encoder_ = LabelEncoder().fit(np.asarray(y))
        self.classes_ = self.label_encoder_.classes_
        self.classifier_ = clone(self.classifier)
        self.classifier_.fit(X, self.label_encoder_.transform(np.asarray(y)), **fit_params)
        if hasattr(X, "columns"):
            self.feature_names_in_ = np.asarray(X.columns, dtype=object)
        return self

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Predict species labels."""
        check_is_fitted(self, "classifier_")
        encoded = np.asarray(self.classifier_.predict(X)).astype(int).ravel()
        return self.label_encoder_.inverse_transform(encoded)

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        """Class probabilities, columns ordered as ``classes_``."""
        check_is_fitted(self, "classifier_")
        return self.classifier_.predict_proba(X)

    @property
    def n_classes_(self) -> int:
        """Number of classes seen during fit."""
        return len(self.classes_)


def get_feature_names_from_recipe(
    recipe: ColumnTransformer,
    input_features: list[str] | None = None,
) -> list[str]:
    """
    Get output feature names from a fitted recipe.

    Args:
        recipe: Fitted ColumnTransformer.
        input_features: Original input feature names.

    Returns:
        List of output feature names (dummy columns expanded).
    """
    return list(recipe.get_feature_names_out(input_features))


def unwrap_workflow(workflow: Any) -> tuple[Any, Any]:
    """
    Return the fitted (recipe, model) pair inside a workflow.

    Navigates EncodedTargetClassifier -> Pipeline -> named steps. Either
    element is None when the workflow has a different shape.
    """
    inner = getattr(workflow, "classifier_", workflow)
    if hasattr(inner, "named_steps"):
        return inner.named_steps.get("preprocessor"), inner.named_steps.get("model")
    return None, inner
