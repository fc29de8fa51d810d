"""
MLflow tracking for walkthrough runs.

Every run is tagged with the project, the question it answers and the
package version so runs stay comparable in the MLflow UI.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import mlflow

from penguin_classifier.config.settings import PipelineConfig
from penguin_classifier.evaluation.metrics import ClassificationMetrics
from penguin_classifier.utils.logging import get_logger

if TYPE_CHECKING:
    from penguin_classifier.modeling.training import ComparisonResult, TrainedModel
    from penguin_classifier.modeling.tuning import TuningResult

log = get_logger(__name__)


@dataclass
class ExperimentConfig:
    """
    Identity of an MLflow experiment.

    Attributes:
        name: MLflow experiment name.
        question: What the runs in this experiment are meant to answer.
        experiment_type: Kind of run, recorded as a tag.
        project: Project the runs belong to.
        tags: Extra tags added to every run.
    """

    name: str
    question: str
    experiment_type: str  # model_comparison, hyperparameter, model_training
    project: str
    tags: dict[str, str] = field(default_factory=dict)


class Experiment:
    """Thin wrapper over the mlflow fluent API bound to one experiment."""

    def __init__(
        self,
        config: PipelineConfig,
        experiment_config: ExperimentConfig,
    ) -> None:
        self.config = config
        self.experiment_config = experiment_config
        self._run_id: str | None = None

    @property
    def run_id(self) -> str | None:
        """ID of the current (or last) run."""
        return self._run_id

    def setup(self) -> None:
        """Point mlflow at the configured store and experiment."""
        settings = self.config.mlflow
        mlflow.set_tracking_uri(settings.tracking_uri)

        name = self.experiment_config.name
        if settings.artifact_location and mlflow.get_experiment_by_name(name) is None:
            mlflow.create_experiment(name, artifact_location=settings.artifact_location)
        mlflow.set_experiment(name)

        log.info(
            "MLflow experiment selected",
            name=name,
            tracking_uri=settings.tracking_uri,
        )

    def start_run(self, run_name: str | None = None) -> str:
        """Open a tagged run and return its ID."""
        from penguin_classifier import __version__

        self.setup()

        tags = {
            "experiment_type": self.experiment_config.experiment_type,
            "project": self.experiment_config.project,
            "question": self.experiment_config.question,
            "package_version": __version__,
            **self.experiment_config.tags,
        }

        run = mlflow.start_run(run_name=run_name, tags=tags)
        self._run_id = run.info.run_id

        log.info("Started MLflow run", run_id=self._run_id)
        return self._run_id

    def end_run(self) -> None:
        """End the current MLflow run."""
        mlflow.end_run()
        log.info("Ended MLflow run", run_id=self._run_id)

    def log_params(self, params: dict[str, Any]) -> None:
        mlflow.log_params(params)

    def log_metrics(
        self,
        metrics: ClassificationMetrics | dict[str, float],
        prefix: str = "",
    ) -> None:
        """Log metrics; NaN values such as an undefined AUC are dropped."""
        if isinstance(metrics, ClassificationMetrics):
            metrics = metrics.to_dict()
        finite = {
            f"{prefix}{name}": float(value)
            for name, value in metrics.items()
            if not math.isnan(float(value))
        }
        mlflow.log_metrics(finite)

    def log_artifact(self, path: Path, artifact_path: str | None = None) -> None:
        mlflow.log_artifact(str(path), artifact_path)

    def log_model(
        self,
        model: Any,
        name: str = "model",
        registered_name: str | None = None,
    ) -> None:
        """
        Log a fitted workflow as an sklearn model.

        Stored with cloudpickle: skops refuses the package's own wrapper and
        transformer types on reload.
        """
        mlflow.sklearn.log_model(
            model,
            name=name,
            registered_model_name=registered_name,
            serialization_format=mlflow.sklearn.SERIALIZATION_FORMAT_CLOUDPICKLE,
        )


class TrainingExperiment(Experiment):
    """
    Experiment recording one full walkthrough.

    Question: Which tuned model classifies penguin species best on held-out data?
    """

    def __init__(self, config: PipelineConfig) -> None:
        exp_config = ExperimentConfig(
            name=config.experiment_name,
            question="Which tuned model classifies penguin species best on the test set?",
            experiment_type="model_training",
            project=config.project,
        )
        super().__init__(config, exp_config)

    def run(
        self,
        trained: "TrainedModel",
        *,
        comparison: "ComparisonResult | None" = None,
        tuning: "TuningResult | None" = None,
        artifacts: list[Path] | None = None,
    ) -> str:
        """
        Log a finished walkthrough as one run.

        Resampled means are logged as ``cv_<model>_<metric>``, test metrics
        as ``test_<metric>``.

        Returns:
            Run ID.
        """
        run_id = self.start_run(f"train-{datetime.now():%Y%m%d-%H%M}")
        try:
            self.log_params(
                {
                    "model": trained.name,
                    "n_features": len(trained.feature_names),
                    "resampling": self.config.resampling.method.value,
                    "n_resamples": self.config.resampling.n_resamples,
                    "test_size": self.config.split.test_size,
                    "imputation": self.config.preprocessing.numeric_imputation.value,
                }
            )

            if comparison is not None:
                for name, result in comparison.results.items():
                    safe_name = name.lower().replace(" ", "_")
                    self.log_metrics(
                        {m: result.mean(m) for m in result.resample_metrics.columns},
                        prefix=f"cv_{safe_name}_",
                    )

            if tuning is not None:
                self.log_params({f"best_{k}": v for k, v in tuning.best_params.items()})
                self.log_metrics({f"tuning_{tuning.metric}": tuning.best_score})

            if trained.test_metrics is not None:
                self.log_metrics(trained.test_metrics, prefix="test_")

            for path in artifacts or []:
                self.log_artifact(path)

            self.log_model(trained.workflow, name="model")
        finally:
            self.end_run()

        return run_id
