"""Tests for the command-line interface."""

from pathlib import Path
from typing import Any

import pandas as pd
import pytest
import yaml
from typer.testing import CliRunner

from penguin_classifier import __version__
from penguin_classifier.cli import app

runner = CliRunner()


def _stdout(result: Any) -> str:
    """Command output with rich line wrapping collapsed."""
    return " ".join(result.stdout.split())


@pytest.fixture
def data_path(tmp_path: Path, penguins_df: pd.DataFrame) -> Path:
    """Synthetic penguins written to CSV."""
    path = tmp_path / "penguins.csv"
    penguins_df.to_csv(path, index=False)
    return path


@pytest.fixture
def config_path(
    tmp_path: Path,
    base_config: dict[str, Any],
    data_path: Path,
    project_root: Path,
) -> Path:
    """Small, fast configuration file using the CSV data."""
    config = {
        **base_config,
        "data": {
            "path": str(data_path),
            "new_observations": str(project_root / "data" / "new_penguins.csv"),
        },
        "resampling": {"method": "bootstrap", "n_resamples": 2},
        "tuning": {"model": "Multinomial Regression", "metric": "roc_auc"},
        "models": {**base_config["models"], "enabled": ["Multinomial Regression"]},
    }
    path = tmp_path / "cli.yaml"
    path.write_text(yaml.safe_dump(config), encoding="utf-8")
    return path


def test_version() -> None:
    """Test the version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in _stdout(result)


class TestValidate:
    """Tests for the validate command."""

    def test_valid_data(self, config_path: Path) -> None:
        """Test that the configured data passes validation."""
        result = runner.invoke(app, ["validate", "--config", str(config_path)])
        assert result.exit_code == 0, result.output
        assert "180 rows valid" in _stdout(result)

    def test_new_observations(self, config_path: Path) -> None:
        """Test validating the configured new observations."""
        result = runner.invoke(
            app,
            ["validate", "--config", str(config_path), "--schema", "new_observations"],
        )
        assert result.exit_code == 0, result.output
        assert "5 rows valid" in _stdout(result)

    def test_invalid_data(
        self,
        tmp_path: Path,
        config_path: Path,
        penguins_df: pd.DataFrame,
    ) -> None:
        """Test that schema failures exit with code 1."""
        penguins_df.loc[0, "species"] = "Emperor"
        bad_path = tmp_path / "bad.csv"
        penguins_df.to_csv(bad_path, index=False)

        result = runner.invoke(
            app, ["validate", "--config", str(config_path), "--data", str(bad_path)]
        )
        assert result.exit_code == 1
        assert "failure" in _stdout(result)

    def test_output_schema_rejected(self, config_path: Path) -> None:
        """Test that only source and input schemas can be validated from the CLI."""
        result = runner.invoke(
            app, ["validate", "--config", str(config_path), "--schema", "predictions"]
        )
        assert result.exit_code == 1
        assert "Use one of: penguins, new_observations" in _stdout(result)


class TestWorkflowCommands:
    """Tests for explore, train and predict."""

    def test_explore(self, config_path: Path) -> None:
        """Test the exploration summary."""
        result = runner.invoke(app, ["explore", "--config", str(config_path)])
        assert result.exit_code == 0, result.output
        assert "Class Balance" in _stdout(result)

    def test_train_unknown_model(self, config_path: Path) -> None:
        """Test that an unknown model exits before loading data."""
        result = runner.invoke(
            app, ["train", "--config", str(config_path), "--model", "Random Forest"]
        )
        assert result.exit_code == 1
        assert "Unknown model" in _stdout(result)

    def test_train_then_predict(self, tmp_path: Path, config_path: Path) -> None:
        """Test the full walkthrough followed by scoring new penguins."""
        models_dir = tmp_path / "models"
        report_path = tmp_path / "report.html"

        result = runner.invoke(
            app,
            [
                "train",
                "--config",
                str(config_path),
                "--no-mlflow",
                "--output",
                str(models_dir),
                "--report",
                str(report_path),
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Training complete" in _stdout(result)
        assert "Multinomial Regression: Feature Importance" in _stdout(result)
        assert report_path.exists()

        model_files = list(models_dir.glob("*.joblib"))
        assert len(model_files) == 1
        assert model_files[0].name.startswith("test-penguins_multinomial_regression_")
        assert model_files[0].with_suffix(".meta.json").exists()

        assert len(list(models_dir.glob("*_test_predictions_*.csv"))) == 1

        output_path = tmp_path / "scored.csv"
        result = runner.invoke(
            app,
            [
                "predict",
                "--config",
                str(config_path),
                "--model",
                str(model_files[0]),
                "--output",
                str(output_path),
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Gentoo" in _stdout(result)

        scored = pd.read_csv(output_path)
        assert len(scored) == 5
        assert "predicted_species" in scored.columns

    def test_predict_missing_model(self, tmp_path: Path, config_path: Path) -> None:
        """Test that a missing model file exits with code 1."""
        result = runner.invoke(
            app,
            [
                "predict",
                "--config",
                str(config_path),
                "--model",
                str(tmp_path / "absent.joblib"),
            ],
        )
        assert result.exit_code == 1
        assert "Model not found" in _stdout(result)
