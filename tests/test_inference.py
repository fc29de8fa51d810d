"""Tests for model persistence and scoring of new observations."""

import json
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from penguin_classifier.modeling.data import TrainingData
from penguin_classifier.modeling.inference import (
    load_model,
    load_new_observations,
    metadata_path_for,
    predict_species,
    save_model,
    save_predictions,
)
from penguin_classifier.modeling.training import TrainedModel


@pytest.fixture
def saved_model_path(tmp_path: Path, trained_model: TrainedModel) -> Path:
    """Trained model written to a temporary directory."""
    return save_model(trained_model, tmp_path / "models" / "penguins_mr")


class TestSaveAndLoad:
    """Tests for save_model and load_model."""

    def test_suffix_and_sidecar(self, saved_model_path: Path) -> None:
        """Test that the model file and its metadata sidecar are written."""
        assert saved_model_path.name == "penguins_mr.joblib"
        assert saved_model_path.exists()
        assert metadata_path_for(saved_model_path).name == "penguins_mr.meta.json"
        assert metadata_path_for(saved_model_path).exists()

    def test_metadata_contents(
        self,
        saved_model_path: Path,
        trained_model: TrainedModel,
    ) -> None:
        """Test the sidecar records features, classes and test metrics."""
        metadata = json.loads(metadata_path_for(saved_model_path).read_text(encoding="utf-8"))

        assert metadata["model_name"] == "Multinomial Regression"
        assert metadata["feature_names"] == trained_model.feature_names
        assert metadata["classes"] == ["Adelie", "Chinstrap", "Gentoo"]
        assert metadata["test_metrics"]["n_samples"] == 45
        assert "saved_at" in metadata
        assert "package_version" in metadata

    def test_extra_metadata(self, tmp_path: Path, trained_model: TrainedModel) -> None:
        """Test that extra entries end up in the sidecar."""
        path = save_model(
            trained_model, tmp_path / "m.joblib", extra_metadata={"seed": np.int64(7)}
        )
        metadata = json.loads(metadata_path_for(path).read_text(encoding="utf-8"))
        assert metadata["seed"] == 7

    def test_reloaded_model_predicts_identically(
        self,
        saved_model_path: Path,
        trained_model: TrainedModel,
        training_data: TrainingData,
    ) -> None:
        """Test that a reloaded workflow reproduces the original predictions."""
        loaded = load_model(saved_model_path)

        assert loaded.name == "Multinomial Regression"
        assert loaded.feature_names == trained_model.feature_names
        assert loaded.classes == trained_model.classes

        np.testing.assert_array_equal(
            loaded.model.predict(training_data.X_test),
            trained_model.workflow.predict(training_data.X_test),
        )
        np.testing.assert_allclose(
            loaded.model.predict_proba(training_data.X_test),
            trained_model.workflow.predict_proba(training_data.X_test),
        )

    def test_load_without_sidecar(self, saved_model_path: Path) -> None:
        """Test that features fall back to the fitted workflow."""
        metadata_path_for(saved_model_path).unlink()
        loaded = load_model(saved_model_path)

        assert loaded.metadata is None
        assert loaded.feature_names is not None
        assert "bill_length_mm" in loaded.feature_names
        assert loaded.name == "LogisticRegression"

    def test_missing_model_file(self, tmp_path: Path) -> None:
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Model file not found"):
            load_model(tmp_path / "absent.joblib")


class TestPredictSpecies:
    """Tests for scoring new observations."""

    def test_shipped_new_observations(
        self,
        project_root: Path,
        trained_model: TrainedModel,
    ) -> None:
        """Test scoring the example file, including an incomplete row."""
        new_data = load_new_observations(project_root / "data" / "new_penguins.csv")
        result = predict_species(trained_model.workflow, new_data)

        assert result.n_predictions == 5
        assert result.n_imputed == 1
        assert result.predictions["predicted_species"].tolist() == [
            "Adelie",
            "Chinstrap",
            "Gentoo",
            "Gentoo",
            "Adelie",
        ]
        proba = result.predictions[["prob_Adelie", "prob_Chinstrap", "prob_Gentoo"]]
        np.testing.assert_allclose(proba.sum(axis=1), 1.0, rtol=1e-6)

    def test_extra_columns_ignored(
        self,
        trained_model: TrainedModel,
        training_data: TrainingData,
    ) -> None:
        """Test that id columns do not reach the workflow."""
        new_data = training_data.X_test.head(3).assign(tag=["a", "b", "c"])
        result = predict_species(trained_model.workflow, new_data)
        assert result.feature_names == trained_model.feature_names
        assert result.predictions.index.equals(new_data.index)

    def test_missing_feature_column(
        self,
        trained_model: TrainedModel,
        training_data: TrainingData,
    ) -> None:
        """Test that a missing column raises ValueError."""
        new_data = training_data.X_test.drop(columns=["flipper_length_mm"])
        with pytest.raises(ValueError, match="Missing feature columns"):
            predict_species(trained_model.workflow, new_data)

    def test_unknown_features(self, training_data: TrainingData) -> None:
        """Test that an object without feature names is rejected."""
        with pytest.raises(ValueError, match="Feature names unknown"):
            predict_species(object(), training_data.X_test)

    def test_save_predictions(
        self,
        tmp_path: Path,
        trained_model: TrainedModel,
        training_data: TrainingData,
    ) -> None:
        """Test that predictions are written next to the observations."""
        new_data = training_data.X_test.head(4)
        result = predict_species(trained_model.workflow, new_data)
        path = save_predictions(result, new_data, tmp_path / "out" / "predictions.csv")

        written = pd.read_csv(path)
        assert len(written) == 4
        assert "island" in written.columns
        assert "predicted_species" in written.columns


def test_missing_new_observations_file(tmp_path: Path) -> None:
    """Test that a missing input file raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError):
        load_new_observations(tmp_path / "absent.csv")
