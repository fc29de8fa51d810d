"""Tests for MLflow experiment tracking."""

from pathlib import Path

import mlflow
import numpy as np
import pytest

from penguin_classifier.config import config_from_dict
from penguin_classifier.config.settings import PipelineConfig
from penguin_classifier.evaluation.experiment import TrainingExperiment
from penguin_classifier.modeling.data import TrainingData
from penguin_classifier.modeling.inference import load_model
from penguin_classifier.modeling.training import ModelTrainer, TrainedModel


@pytest.fixture
def tracked_config(tmp_path: Path, base_config: dict) -> PipelineConfig:
    """Config tracking to a sqlite store with artifacts under tmp_path."""
    return config_from_dict(
        {
            **base_config,
            "mlflow": {
                "enabled": True,
                "tracking_uri": f"sqlite:///{tmp_path / 'mlflow.db'}",
                "artifact_location": (tmp_path / "artifacts").as_uri(),
            },
        }
    )


class TestTrainingExperiment:
    """Tests for TrainingExperiment."""

    def test_run_logs_metrics_and_model(
        self,
        tmp_path: Path,
        tracked_config: PipelineConfig,
        trained_model: TrainedModel,
        training_data: TrainingData,
    ) -> None:
        """Test one run with params, test metrics, an artifact and the model."""
        artifact = tmp_path / "notes.txt"
        artifact.write_text("walkthrough", encoding="utf-8")

        experiment = TrainingExperiment(tracked_config)
        run_id = experiment.run(trained_model, artifacts=[artifact])

        assert experiment.run_id == run_id
        run = mlflow.get_run(run_id)
        assert run.data.params["model"] == "Multinomial Regression"
        assert run.data.params["resampling"] == "bootstrap"
        assert run.data.tags["project"] == "test-penguins"
        assert run.data.metrics["test_accuracy"] == pytest.approx(
            trained_model.test_metrics.accuracy
        )

        loaded = load_model(f"runs:/{run_id}/model")
        np.testing.assert_array_equal(
            loaded.model.predict(training_data.X_test),
            trained_model.workflow.predict(training_data.X_test),
        )
        assert loaded.classes == trained_model.classes

    def test_nan_metrics_skipped(
        self,
        tracked_config: PipelineConfig,
    ) -> None:
        """Test that undefined metrics are not sent to MLflow."""
        experiment = TrainingExperiment(tracked_config)
        run_id = experiment.start_run("nan-metrics")
        try:
            experiment.log_metrics({"roc_auc": float("nan"), "accuracy": 0.9})
        finally:
            experiment.end_run()

        metrics = mlflow.get_run(run_id).data.metrics
        assert metrics == {"accuracy": 0.9}

    def test_boosted_trees_reload_from_run(
        self,
        tmp_path: Path,
        tracked_config: PipelineConfig,
        training_data: TrainingData,
    ) -> None:
        """Test that an xgboost workflow logged to a run reloads with probabilities."""
        trainer = ModelTrainer(tracked_config)
        trained = trainer.last_fit(
            trainer.workflow("Boosted Trees", n_estimators=10),
            training_data.X_train,
            training_data.y_train,
            training_data.X_test,
            training_data.y_test,
            name="Boosted Trees",
        )

        run_id = TrainingExperiment(tracked_config).run(trained)

        artifact_uri = mlflow.get_run(run_id).info.artifact_uri
        assert artifact_uri.startswith((tmp_path / "artifacts").as_uri())

        loaded = load_model(f"runs:/{run_id}/model")
        np.testing.assert_allclose(
            loaded.model.predict_proba(training_data.X_test),
            trained.workflow.predict_proba(training_data.X_test),
        )
        assert loaded.classes == ["Adelie", "Chinstrap", "Gentoo"]
