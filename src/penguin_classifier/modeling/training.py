"""
Model comparison and final fitting.

Compares workflows with resampled performance estimates on the training
set, then fits the chosen workflow once on the full training set and
evaluates it on the held-out test set.
"""

import time
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
from sklearn.base import clone
from sklearn.model_selection import cross_validate

from penguin_classifier.config.settings import PipelineConfig
from penguin_classifier.evaluation.metrics import (
    LOWER_IS_BETTER,
    ClassificationMetrics,
    compute_confusion_matrix,
    compute_metrics,
    resample_scoring,
    sklearn_sign,
    standard_error,
)
from penguin_classifier.modeling.models import MODEL_REGISTRY, build_workflow
from penguin_classifier.modeling.preprocessing import build_recipe
from penguin_classifier.modeling.resampling import build_resamples, describe_resamples
from penguin_classifier.utils.logging import get_logger, log_context

log = get_logger(__name__)


@dataclass
class ResampleResult:
    """
    Resampled performance of one workflow.

    Attributes:
        name: Model name.
        resample_metrics: One row per resample, one column per metric.
        fit_time_s: Wall time for fitting all resamples.
    """

    name: str
    resample_metrics: pd.DataFrame
    fit_time_s: float = 0.0

    def summary(self) -> pd.DataFrame:
        """Mean, standard error and count per metric (collect_metrics)."""
        rows = []
        for metric in self.resample_metrics.columns:
            values = self.resample_metrics[metric]
            rows.append(
                {
                    "model": self.name,
                    "metric": metric,
                    "mean": float(values.mean()),
                    "std_err": standard_error(values),
                    "n": int(values.notna().sum()),
                }
            )
        return pd.DataFrame(rows)

    def mean(self, metric: str) -> float:
        """Mean resampled value of a metric."""
        return float(self.resample_metrics[metric].mean())


@dataclass
class ComparisonResult:
    """
    Resampled comparison across workflows.

    Attributes:
        results: Per-model resample results.
        metric: Metric used for ranking.
        resamples: Row counts per resample (see ``describe_resamples``).
    """

    results: dict[str, ResampleResult]
    metric: str
    resamples: pd.DataFrame = field(default_factory=pd.DataFrame)

    @property
    def table(self) -> pd.DataFrame:
        """Long table of model x metric summaries."""
        if not self.results:
            return pd.DataFrame(columns=["model", "metric", "mean", "std_err", "n"])
        return pd.concat(
            [result.summary() for result in self.results.values()],
            ignore_index=True,
        )

    def ranking(self) -> pd.DataFrame:
        """Models ranked by the selection metric (best first)."""
        table = self.table
        ranked = table[table["metric"] == self.metric].sort_values(
            "mean", ascending=self.metric in LOWER_IS_BETTER
        )
        return ranked.reset_index(drop=True)

    @property
    def best_model(self) -> str:
        """Name of the best-ranked model."""
        ranking = self.ranking()
        if ranking.empty:
            msg = "No models were compared"
            raise ValueError(msg)
        return str(ranking.iloc[0]["model"])


@dataclass
class TrainedModel:
    """
    Container for a finally fitted workflow with its test evaluation.

    Attributes:
        name: Model name.
        workflow: Fitted workflow (recipe + model + label encoding).
        test_metrics: Metrics on the held-out test set.
        predictions: Test predictions (actual, predicted, prob_<species>).
        confusion: Confusion matrix on the test set.
        best_params: Tuned hyperparameters (plain names), if any.
        feature_names: Input feature names.
        classes: Class labels in probability column order.
        training_time_s: Final fit time in seconds.
    """

    name: str
    workflow: Any
    test_metrics: ClassificationMetrics | None = None
    predictions: pd.DataFrame = field(default_factory=pd.DataFrame)
    confusion: pd.DataFrame = field(default_factory=pd.DataFrame)
    best_params: dict[str, Any] | None = None
    feature_names: list[str] = field(default_factory=list)
    classes: list[str] = field(default_factory=list)
    training_time_s: float = 0.0


class ModelTrainer:
    """
    Trainer for penguin species classifiers.

    Handles resampled comparison of workflows and the final fit.
    """

    def __init__(self, config: PipelineConfig) -> None:
        """
        Initialize trainer.

        Args:
            config: Workflow configuration.
        """
        self.config = config

    def workflow(self, name: str, **model_kwargs: Any) -> Any:
        """Build an unfitted workflow for a registered model."""
        recipe = build_recipe(self.config)
        return build_workflow(
            name,
            recipe,
            random_state=self.config.training.random_state,
            **model_kwargs,
        )

    def compare(
        self,
        X: pd.DataFrame,
        y: pd.Series,
        model_names: list[str] | None = None,
    ) -> ComparisonResult:
        """
        Estimate performance of each workflow on the configured resamples.

        All models see the same resamples, so their estimates are paired.

        Args:
            X: Training features.
            y: Training labels.
            model_names: Models to compare (default: from config).

        Returns:
            ComparisonResult with per-resample metrics per model.
        """
        if model_names is None:
            model_names = self.config.models.enabled

        # Ranking needs the selection metric even when not listed for reporting
        metrics = list(dict.fromkeys([self.config.tuning.metric, *self.config.training.metrics]))
        scoring = resample_scoring(metrics)

        log.info(
            "Starting resampled comparison",
            n_samples=len(X),
            n_features=X.shape[1],
            models=model_names,
        )

        results: dict[str, ResampleResult] = {}
        for name in model_names:
            if name not in MODEL_REGISTRY:
                log.warning("Unknown model, skipping", name=name)
                continue

            with log_context(model=name, step="compare"):
                results[name] = self.fit_resamples(name, X, y, scoring=scoring)

        comparison = ComparisonResult(
            results=results,
            metric=self.config.tuning.metric,
            resamples=pd.DataFrame(describe_resamples(build_resamples(self.config), X, y)),
        )
        if results:
            log.info(
                "Comparison complete",
                best_model=comparison.best_model,
                metric=comparison.metric,
            )
        return comparison

    def fit_resamples(
        self,
        name: str,
        X: pd.DataFrame,
        y: pd.Series,
        *,
        scoring: dict[str, Any] | None = None,
        workflow: Any | None = None,
    ) -> ResampleResult:
        """
        Fit one workflow on every resample and score the assessment sets.

        Args:
            name: Model name (used for labelling and default workflow).
            X: Training features.
            y: Training labels.
            scoring: Scorer mapping (default: from config metrics).
            workflow: Workflow to resample (default: registry defaults).

        Returns:
            ResampleResult for the workflow.
        """
        if scoring is None:
            scoring = resample_scoring(self.config.training.metrics)
        if workflow is None:
            workflow = self.workflow(name)

        cv = build_resamples(self.config)

        start = time.perf_counter()
        scores = cross_validate(
            workflow,
            X,
            y,
            cv=cv,
            scoring=scoring,
            n_jobs=self.config.training.n_jobs,
            error_score="raise",
        )
        fit_time_s = time.perf_counter() - start

        resample_metrics = pd.DataFrame(
            {
                metric: sklearn_sign(metric) * np.asarray(scores[f"test_{metric}"])
                for metric in scoring
            }
        )
        resample_metrics.index = pd.RangeIndex(1, len(resample_metrics) + 1, name="resample")

        result = ResampleResult(
            name=name,
            resample_metrics=resample_metrics,
            fit_time_s=fit_time_s,
        )

        log.info(
            "Resampled metrics calculated",
            n_resamples=len(resample_metrics),
            fit_time_s=f"{fit_time_s:.1f}",
            **{m: f"{result.mean(m):.4f}" for m in scoring},
        )
        return result

    def last_fit(
        self,
        workflow: Any,
        X_train: pd.DataFrame,
        y_train: pd.Series,
        X_test: pd.DataFrame,
        y_test: pd.Series,
        *,
        name: str,
        best_params: dict[str, Any] | None = None,
    ) -> TrainedModel:
        """
        Fit on the full training set and evaluate once on the test set.

        Args:
            workflow: Unfitted (possibly finalized) workflow.
            X_train: Training features.
            y_train: Training labels.
            X_test: Test features.
            y_test: Test labels.
            name: Model name.
            best_params: Tuned hyperparameters to record.

        Returns:
            TrainedModel with test metrics and predictions.
        """
        workflow = clone(workflow)

        start = time.perf_counter()
        workflow.fit(X_train, y_train)
        training_time_s = time.perf_counter() - start

        classes = [str(c) for c in workflow.classes_]
        trained = TrainedModel(
            name=name,
            workflow=workflow,
            best_params=best_params,
            feature_names=list(X_train.columns),
            classes=classes,
            training_time_s=training_time_s,
        )

        if len(X_test) == 0:
            log.warning("Empty test set, skipping evaluation", name=name)
            return trained

        y_pred = workflow.predict(X_test)
        y_proba = workflow.predict_proba(X_test)

        trained.test_metrics = compute_metrics(y_test, y_pred, y_proba, classes)
        trained.confusion = compute_confusion_matrix(y_test, y_pred, classes)
        trained.predictions = build_prediction_frame(
            y_pred, y_proba, classes, index=X_test.index, actual=y_test
        )

        log.info(
            "Final fit evaluated on test set",
            name=name,
            accuracy=f"{trained.test_metrics.accuracy:.4f}",
            roc_auc=f"{trained.test_metrics.roc_auc:.4f}",
            log_loss=f"{trained.test_metrics.log_loss:.4f}",
        )
        return trained


def build_prediction_frame(
    y_pred: Any,
    y_proba: np.ndarray,
    classes: list[str],
    *,
    index: pd.Index | None = None,
    actual: pd.Series | None = None,
) -> pd.DataFrame:
    """
    Assemble predicted class and per-class probabilities into one frame.

    Columns: ``actual`` (when given), ``predicted``, ``prob_<species>``.
    """
    frame = pd.DataFrame(index=index)
    if actual is not None:
        frame["actual"] = np.asarray(actual)
    frame["predicted"] = np.asarray(y_pred)
    for i, cls in enumerate(classes):
        frame[f"prob_{cls}"] = y_proba[:, i]
    return frame


def train_model(
    X_train: pd.DataFrame,
    y_train: pd.Series,
    X_test: pd.DataFrame,
    y_test: pd.Series,
    config: PipelineConfig,
    model_name: str | None = None,
) -> TrainedModel:
    """
    Convenience function to fit and evaluate a single untuned model.

    Args:
        X_train: Training features.
        y_train: Training labels.
        X_test: Test features.
        y_test: Test labels.
        config: Workflow configuration.
        model_name: Model to fit (default: first enabled in config).

    Returns:
        Trained model.
    """
    trainer = ModelTrainer(config)

    if model_name is None:
        model_name = (
            config.models.enabled[0] if config.models.enabled else "Multinomial Regression"
        )

    return trainer.last_fit(
        trainer.workflow(model_name),
        X_train,
        y_train,
        X_test,
        y_test,
        name=model_name,
    )
