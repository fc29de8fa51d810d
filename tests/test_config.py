"""Tests for configuration system."""

import os
from pathlib import Path

import pytest

from penguin_classifier.config import (
    FeatureConfig,
    ImputationStrategy,
    PipelineConfig,
    ResamplingConfig,
    ResamplingMethod,
    SplitConfig,
    TuningConfig,
    config_from_dict,
    load_config,
)


def _write(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


class TestFeatureConfig:
    """Tests for FeatureConfig."""

    def test_defaults(self) -> None:
        """Test default penguin feature layout."""
        config = FeatureConfig()
        assert config.target == "species"
        assert config.features == [
            "bill_length_mm",
            "bill_depth_mm",
            "flipper_length_mm",
            "body_mass_g",
            "island",
            "sex",
        ]
        assert config.drop == ["year"]

    def test_overlapping_columns_rejected(self) -> None:
        """Test that a column cannot be numeric and categorical."""
        with pytest.raises(ValueError, match="both numeric and categorical"):
            FeatureConfig(numeric=["body_mass_g"], categorical=["body_mass_g"])

    def test_target_as_feature_rejected(self) -> None:
        """Test that the label cannot be a feature."""
        with pytest.raises(ValueError, match="cannot be a feature"):
            FeatureConfig(categorical=["island", "species"])


class TestSectionValidation:
    """Tests for field validation of config sections."""

    @pytest.mark.parametrize("test_size", [0.0, 1.0, -0.1, 1.5])
    def test_invalid_test_size(self, test_size: float) -> None:
        """Test that test_size must be a proper fraction."""
        with pytest.raises(ValueError):
            SplitConfig(test_size=test_size)

    def test_too_few_resamples(self) -> None:
        """Test that at least two resamples are required."""
        with pytest.raises(ValueError):
            ResamplingConfig(n_resamples=1)

    def test_unknown_tuning_metric(self) -> None:
        """Test that the selection metric must be a resample metric."""
        with pytest.raises(ValueError, match="Unknown tuning metric"):
            TuningConfig(metric="rmse")

    def test_unknown_imputation(self) -> None:
        """Test that imputation strategy is validated."""
        with pytest.raises(ValueError):
            config_from_dict(
                {"project": "p", "preprocessing": {"numeric_imputation": "zero"}}
            )

    @pytest.mark.parametrize("project", ["", " padded", "a/b"])
    def test_invalid_project_name(self, project: str) -> None:
        """Test that project names must be usable as directory names."""
        with pytest.raises(ValueError):
            PipelineConfig(project=project)

    def test_config_is_frozen(self) -> None:
        """Test that configs are immutable."""
        config = PipelineConfig(project="penguins")
        with pytest.raises(ValueError):
            config.project = "other"  # type: ignore[misc]


class TestConfigFromDict:
    """Tests for building configs from mappings."""

    def test_minimal_config(self) -> None:
        """Test that only a project name is required."""
        config = config_from_dict({"project": "penguins"})
        assert config.data.path is None
        assert config.split.test_size == 0.25
        assert config.split.random_state == 2023
        assert config.resampling.method == ResamplingMethod.BOOTSTRAP
        assert config.resampling.n_resamples == 25
        assert config.preprocessing.numeric_imputation == ImputationStrategy.MEDIAN
        assert config.models.enabled == ["Multinomial Regression", "Boosted Trees"]

    def test_seed_applies_to_all_sections(self) -> None:
        """Test that a top-level seed is the default seed everywhere."""
        config = config_from_dict({"project": "p", "seed": 7})
        assert config.split.random_state == 7
        assert config.resampling.random_state == 7
        assert config.training.random_state == 7

    def test_section_seed_overrides_top_level(self) -> None:
        """Test that a section seed wins over the top-level seed."""
        config = config_from_dict(
            {"project": "p", "seed": 7, "split": {"random_state": 99}}
        )
        assert config.split.random_state == 99
        assert config.resampling.random_state == 7

    def test_missing_project(self) -> None:
        """Test that missing project raises error."""
        with pytest.raises(ValueError, match="project"):
            config_from_dict({"split": {"test_size": 0.3}})

    def test_empty_data_path_means_bundled(self) -> None:
        """Test that an empty data path falls back to the bundled dataset."""
        config = config_from_dict({"project": "p", "data": {"path": ""}})
        assert config.data.path is None
        with pytest.raises(ValueError, match="not configured"):
            config.data.resolve("path")

    def test_output_paths_derived_from_project(self) -> None:
        """Test that output paths are derived from project name."""
        config = config_from_dict({"project": "my-project"})
        assert config.models_dir == Path("./output/my-project/models")
        assert config.reports_dir == Path("./output/my-project/reports")
        assert config.predictions_dir == Path("./output/my-project/predictions")
        assert config.experiment_name == "my-project"

    def test_mlflow_defaults_to_sqlite_store(self) -> None:
        """Test that tracking defaults to a local sqlite store."""
        config = config_from_dict({"project": "p", "mlflow": {"artifact_location": ""}})
        assert config.mlflow.enabled is False
        assert config.mlflow.tracking_uri == "sqlite:///mlflow.db"
        assert config.mlflow.artifact_location is None


class TestLoadConfig:
    """Tests for YAML config loading."""

    def test_load_minimal_config(self, tmp_path: Path) -> None:
        """Test loading a minimal config file."""
        path = _write(tmp_path / "penguins.yaml", "project: test-project\n")

        config = load_config(path)
        assert config.project == "test-project"
        assert config.experiment_name == "test-project"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing config file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_base_inheritance(self, tmp_path: Path) -> None:
        """Test that a sibling base.yaml is deep-merged under the main file."""
        _write(
            tmp_path / "base.yaml",
            """
seed: 11
split:
  test_size: 0.3
  stratify: false
resampling:
  n_resamples: 10
""",
        )
        path = _write(
            tmp_path / "penguins.yaml",
            """
project: inherited
split:
  test_size: 0.2
""",
        )

        config = load_config(path)
        assert config.split.test_size == 0.2  # main file wins
        assert config.split.stratify is False  # inherited from base
        assert config.resampling.n_resamples == 10
        assert config.split.random_state == 11

    def test_explicit_base_path(self, tmp_path: Path) -> None:
        """Test inheritance from an explicitly given base file."""
        base = _write(tmp_path / "defaults.yaml", "resampling:\n  method: kfold\n")
        path = _write(tmp_path / "p.yaml", "project: p\n")

        config = load_config(path, base_path=base)
        assert config.resampling.method == ResamplingMethod.KFOLD

    def test_env_var_interpolation(self, tmp_path: Path) -> None:
        """Test environment variable interpolation."""
        os.environ["TEST_MLFLOW_URI"] = "http://test:5000"
        path = _write(
            tmp_path / "p.yaml",
            """
project: test
mlflow:
  tracking_uri: "${TEST_MLFLOW_URI:http://default:5000}"
""",
        )
        try:
            config = load_config(path)
            assert config.mlflow.tracking_uri == "http://test:5000"
        finally:
            del os.environ["TEST_MLFLOW_URI"]

    def test_env_var_default(self, tmp_path: Path) -> None:
        """Test that the default is used when the variable is unset."""
        os.environ.pop("PENGUINS_TEST_UNSET", None)
        path = _write(
            tmp_path / "p.yaml",
            """
project: test
mlflow:
  tracking_uri: "${PENGUINS_TEST_UNSET:sqlite:///mlflow.db}"
data:
  path: "${PENGUINS_TEST_UNSET:}"
""",
        )
        config = load_config(path)
        assert config.mlflow.tracking_uri == "sqlite:///mlflow.db"
        assert config.data.path is None

    def test_shipped_configs_load(self, project_root: Path) -> None:
        """Test that the configs in the repository are valid."""
        config = load_config(project_root / "configs" / "penguins.yaml")
        assert config.project == "penguins"
        assert config.features.target == "species"
        assert config.resampling.n_resamples == 25
        assert config.models.hyperparameters["Boosted Trees"]["max_depth"] == [2, 4, 6]
