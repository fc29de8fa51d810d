"""
Hyperparameter tuning via grid search over resamples.

Wraps GridSearchCV with the configured resamples and multi-metric scoring,
and exposes tidy views of the results (collect_metrics, show_best,
select_best) plus the finalized workflow.
"""

import math
import time
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd
from sklearn.base import clone
from sklearn.model_selection import GridSearchCV, ParameterGrid

from penguin_classifier.config.settings import PipelineConfig
from penguin_classifier.evaluation.metrics import (
    LOWER_IS_BETTER,
    resample_scoring,
    sklearn_sign,
)
from penguin_classifier.modeling.models import (
    PARAM_PREFIX,
    get_param_grid,
    strip_param_prefix,
)
from penguin_classifier.modeling.resampling import build_resamples
from penguin_classifier.modeling.training import ModelTrainer
from penguin_classifier.utils.logging import get_logger, log_context

log = get_logger(__name__)


@dataclass
class TuningResult:
    """
    Result of a grid search.

    Attributes:
        model_name: Tuned model.
        metric: Selection metric.
        cv_results: Raw GridSearchCV ``cv_results_`` as a DataFrame.
        best_params: Best hyperparameters (plain estimator names).
        best_score: Mean resampled value of the selection metric for the best candidate.
        workflow: Finalized, unfitted workflow with the best parameters.
        n_resamples: Resamples per candidate.
        tuning_time_s: Wall time of the search.
    """

    model_name: str
    metric: str
    cv_results: pd.DataFrame
    best_params: dict[str, Any]
    best_score: float
    workflow: Any
    n_resamples: int
    tuning_time_s: float = 0.0

    @property
    def param_names(self) -> list[str]:
        """Tuned parameter names (plain)."""
        return [
            col.removeprefix(f"param_{PARAM_PREFIX}")
            for col in self.cv_results.columns
            if col.startswith(f"param_{PARAM_PREFIX}")
        ]

    @property
    def metrics(self) -> list[str]:
        """Metrics recorded during the search."""
        return [
            col.removeprefix("mean_test_")
            for col in self.cv_results.columns
            if col.startswith("mean_test_")
        ]

    def collect_metrics(self) -> pd.DataFrame:
        """
        Long table of candidate x metric with mean and standard error.

        Columns: tuned parameters, ``.config`` (candidate id), ``metric``,
        ``mean``, ``std_err``, ``n``.
        """
        rows = []
        for i, candidate in self.cv_results.iterrows():
            params = strip_param_prefix(candidate["params"])
            for metric in self.metrics:
                sign = sklearn_sign(metric)
                std = float(candidate[f"std_test_{metric}"])
                rows.append(
                    {
                        **params,
                        ".config": f"Candidate{int(i) + 1:03d}",
                        "metric": metric,
                        "mean": sign * float(candidate[f"mean_test_{metric}"]),
                        # cv_results_ std is the population std across resamples
                        "std_err": std / math.sqrt(max(self.n_resamples - 1, 1)),
                        "n": self.n_resamples,
                    }
                )
        return pd.DataFrame(rows)

    def show_best(self, n: int = 5, metric: str | None = None) -> pd.DataFrame:
        """Top ``n`` candidates for a metric (default: selection metric)."""
        metric = metric or self.metric
        table = self.collect_metrics()
        table = table[table["metric"] == metric]
        table = table.sort_values("mean", ascending=metric in LOWER_IS_BETTER)
        return table.head(n).reset_index(drop=True)

    def select_best(self) -> dict[str, Any]:
        """Best hyperparameters (plain estimator names)."""
        return dict(self.best_params)


def finalize_workflow(workflow: Any, params: dict[str, Any]) -> Any:
    """
    Return an unfitted copy of ``workflow`` with model hyperparameters set.

    Args:
        workflow: Unfitted workflow.
        params: Plain estimator parameter names (e.g. ``{"max_depth": 4}``).
    """
    prefixed = {f"{PARAM_PREFIX}{key}": value for key, value in params.items()}
    return clone(workflow).set_params(**prefixed)


class GridTuner:
    """
    Grid search over a model's hyperparameter grid.

    Every candidate is evaluated on the same resamples used for the
    comparison step.
    """

    def __init__(self, config: PipelineConfig) -> None:
        """
        Initialize tuner.

        Args:
            config: Workflow configuration.
        """
        self.config = config
        self.trainer = ModelTrainer(config)

    def tune(
        self,
        model_name: str,
        X: pd.DataFrame,
        y: pd.Series,
        *,
        param_grid: dict[str, list[Any]] | None = None,
    ) -> TuningResult:
        """
        Tune one model by grid search.

        Args:
            model_name: Model name from registry.
            X: Training features.
            y: Training labels.
            param_grid: Plain-name grid (default: configured/registry grid).

        Returns:
            TuningResult with metrics per candidate and the finalized workflow.

        Raises:
            ValueError: If the model has no tunable parameters.
        """
        if param_grid is not None:
            grid = {f"{PARAM_PREFIX}{k}": list(v) for k, v in param_grid.items()}
        else:
            grid = get_param_grid(model_name, self.config)

        if not grid or not all(grid.values()):
            msg = f"No hyperparameter grid defined for '{model_name}'"
            raise ValueError(msg)

        metric = self.config.tuning.metric
        metrics = list(dict.fromkeys([metric, *self.config.training.metrics]))
        scoring = resample_scoring(metrics)
        cv = build_resamples(self.config)
        workflow = self.trainer.workflow(model_name)

        n_candidates = len(ParameterGrid(grid))
        log.info(
            "Starting grid search",
            model=model_name,
            n_candidates=n_candidates,
            metric=metric,
            grid={k.removeprefix(PARAM_PREFIX): v for k, v in grid.items()},
        )

        search = GridSearchCV(
            workflow,
            param_grid=grid,
            cv=cv,
            scoring=scoring,
            refit=False,
            n_jobs=self.config.training.n_jobs,
            error_score="raise",
        )

        start = time.perf_counter()
        with log_context(model=model_name, step="tune"):
            search.fit(X, y)
        tuning_time_s = time.perf_counter() - start

        cv_results = pd.DataFrame(search.cv_results_)
        best_idx = int(np.argmin(cv_results[f"rank_test_{metric}"].to_numpy()))
        best_params = strip_param_prefix(cv_results.loc[best_idx, "params"])
        best_score = sklearn_sign(metric) * float(
            cv_results.loc[best_idx, f"mean_test_{metric}"]
        )

        result = TuningResult(
            model_name=model_name,
            metric=metric,
            cv_results=cv_results,
            best_params=best_params,
            best_score=best_score,
            workflow=finalize_workflow(workflow, best_params),
            n_resamples=cv.get_n_splits(X, y),
            tuning_time_s=tuning_time_s,
        )

        log.info(
            "Hyperparameter tuning complete",
            best_params=best_params,
            best_score=f"{best_score:.4f}",
            tuning_time_s=f"{tuning_time_s:.1f}",
        )
        return result
