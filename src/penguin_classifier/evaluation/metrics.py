"""
Evaluation metrics for multiclass classification.

Provides standardized metrics for held-out evaluation and the scorer
mapping used for resampled estimates.
"""

import math
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
from sklearn.metrics import (
    accuracy_score,
    balanced_accuracy_score,
    cohen_kappa_score,
    confusion_matrix,
    f1_score,
    log_loss,
    make_scorer,
    precision_recall_fscore_support,
    precision_score,
    recall_score,
    roc_auc_score,
)

from penguin_classifier.utils.logging import get_logger

log = get_logger(__name__)

# Resampled metrics: name -> sklearn scorer. Losses are negated by sklearn.
RESAMPLE_SCORING: dict[str, Any] = {
    "accuracy": "accuracy",
    "roc_auc": "roc_auc_ovr",
    "log_loss": "neg_log_loss",
    "kappa": make_scorer(cohen_kappa_score),
}

# Metrics where a lower value is better
LOWER_IS_BETTER = {"log_loss"}


def resample_scoring(metrics: list[str]) -> dict[str, Any]:
    """
    Select resample scorers by metric name.

    Raises:
        ValueError: If a metric name is unknown.
    """
    unknown = [m for m in metrics if m not in RESAMPLE_SCORING]
    if unknown:
        msg = f"Unknown metrics: {unknown}. Available: {list(RESAMPLE_SCORING)}"
        raise ValueError(msg)
    return {m: RESAMPLE_SCORING[m] for m in metrics}


def sklearn_sign(metric: str) -> float:
    """Sign that turns an sklearn score back into the metric value."""
    return -1.0 if metric in LOWER_IS_BETTER else 1.0


@dataclass(frozen=True)
class ClassificationMetrics:
    """
    Standard multiclass classification metrics.

    Attributes:
        accuracy: Share of correct predictions
        balanced_accuracy: Mean per-class recall
        kappa: Cohen's kappa (agreement beyond chance)
        f1_macro: Unweighted mean F1 across classes
        precision_macro: Unweighted mean precision
        recall_macro: Unweighted mean recall
        roc_auc: One-vs-rest macro ROC AUC (NaN without probabilities)
        log_loss: Multinomial log loss (NaN without probabilities)
        n_samples: Number of samples
    """

    accuracy: float
    balanced_accuracy: float
    kappa: float
    f1_macro: float
    precision_macro: float
    recall_macro: float
    roc_auc: float
    log_loss: float
    n_samples: int

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary."""
        return {
            "accuracy": self.accuracy,
            "balanced_accuracy": self.balanced_accuracy,
            "kappa": self.kappa,
            "f1_macro": self.f1_macro,
            "precision_macro": self.precision_macro,
            "recall_macro": self.recall_macro,
            "roc_auc": self.roc_auc,
            "log_loss": self.log_loss,
            "n_samples": self.n_samples,
        }

    def __str__(self) -> str:
        """String representation."""
        return (
            f"Accuracy={self.accuracy:.4f}, Kappa={self.kappa:.4f}, "
            f"F1={self.f1_macro:.4f}, ROC AUC={self.roc_auc:.4f}, "
            f"LogLoss={self.log_loss:.4f}"
        )


def compute_metrics(
    y_true: Any,
    y_pred: Any,
    y_proba: np.ndarray | None = None,
    classes: list[str] | np.ndarray | None = None,
) -> ClassificationMetrics:
    """
    Compute classification metrics.

    Args:
        y_true: True labels.
        y_pred: Predicted labels.
        y_proba: Class probabilities, columns ordered as ``classes``.
        classes: Class labels for the probability columns.

    Returns:
        ClassificationMetrics object.
    """
    y_true = np.asarray(y_true).ravel()
    y_pred = np.asarray(y_pred).ravel()

    if len(y_true) == 0 or len(y_pred) == 0:
        log.warning("Empty arrays provided for metrics")
        nan = float("nan")
        return ClassificationMetrics(
            accuracy=nan,
            balanced_accuracy=nan,
            kappa=nan,
            f1_macro=nan,
            precision_macro=nan,
            recall_macro=nan,
            roc_auc=nan,
            log_loss=nan,
            n_samples=0,
        )

    roc_auc = float("nan")
    loss = float("nan")
    if y_proba is not None:
        labels = list(classes) if classes is not None else sorted(np.unique(y_true))
        present = set(np.unique(y_true))
        if present == set(labels):
            roc_auc = float(
                roc_auc_score(
                    y_true, y_proba, multi_class="ovr", average="macro", labels=labels
                )
            )
        else:
            log.warning(
                "ROC AUC undefined: not every class present",
                present=sorted(present),
                classes=labels,
            )
        loss = float(log_loss(y_true, y_proba, labels=labels))

    metrics = ClassificationMetrics(
        accuracy=float(accuracy_score(y_true, y_pred)),
        balanced_accuracy=float(balanced_accuracy_score(y_true, y_pred)),
        kappa=float(cohen_kappa_score(y_true, y_pred)),
        f1_macro=float(f1_score(y_true, y_pred, average="macro", zero_division=0)),
        precision_macro=float(
            precision_score(y_true, y_pred, average="macro", zero_division=0)
        ),
        recall_macro=float(
            recall_score(y_true, y_pred, average="macro", zero_division=0)
        ),
        roc_auc=roc_auc,
        log_loss=loss,
        n_samples=len(y_true),
    )

    log.debug("Computed metrics", **metrics.to_dict())
    return metrics


def compute_confusion_matrix(
    y_true: Any,
    y_pred: Any,
    classes: list[str] | None = None,
) -> pd.DataFrame:
    """
    Compute a labelled confusion matrix.

    Rows are true species (``truth``), columns predicted species
    (``prediction``).
    """
    y_true = np.asarray(y_true).ravel()
    y_pred = np.asarray(y_pred).ravel()
    labels = classes or sorted(set(y_true) | set(y_pred))

    matrix = confusion_matrix(y_true, y_pred, labels=labels)
    return pd.DataFrame(
        matrix,
        index=pd.Index(labels, name="truth"),
        columns=pd.Index(labels, name="prediction"),
    )


def per_class_report(
    y_true: Any,
    y_pred: Any,
    classes: list[str] | None = None,
) -> pd.DataFrame:
    """
    Compute precision, recall, F1 and support per class.

    Returns:
        DataFrame indexed by class.
    """
    y_true = np.asarray(y_true).ravel()
    y_pred = np.asarray(y_pred).ravel()
    labels = classes or sorted(set(y_true) | set(y_pred))

    precision, recall, f1, support = precision_recall_fscore_support(
        y_true, y_pred, labels=labels, zero_division=0
    )
    return pd.DataFrame(
        {
            "precision": precision,
            "recall": recall,
            "f1": f1,
            "support": support,
        },
        index=pd.Index(labels, name="species"),
    )


def standard_error(values: Any) -> float:
    """Standard error of the mean (sample std / sqrt(n)); NaN for n < 2."""
    arr = np.asarray(values, dtype=float)
    arr = arr[~np.isnan(arr)]
    if len(arr) < 2:
        return float("nan")
    return float(np.std(arr, ddof=1) / math.sqrt(len(arr)))
