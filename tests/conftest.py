"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Any

import matplotlib
import numpy as np
import pandas as pd
import pytest

from penguin_classifier.config import config_from_dict
from penguin_classifier.config.settings import PipelineConfig
from penguin_classifier.modeling.data import TrainingData, prepare_training_data
from penguin_classifier.modeling.training import ModelTrainer, TrainedModel

matplotlib.use("Agg")

# Species means/std per measurement, loosely following the Palmer data
SPECIES_PROFILES: dict[str, dict[str, Any]] = {
    "Adelie": {
        "bill_length_mm": (38.8, 2.7),
        "bill_depth_mm": (18.3, 1.2),
        "flipper_length_mm": (190.0, 6.5),
        "body_mass_g": (3700.0, 450.0),
        "islands": ["Biscoe", "Dream", "Torgersen"],
    },
    "Chinstrap": {
        "bill_length_mm": (48.8, 3.3),
        "bill_depth_mm": (18.4, 1.1),
        "flipper_length_mm": (196.0, 7.0),
        "body_mass_g": (3730.0, 380.0),
        "islands": ["Dream"],
    },
    "Gentoo": {
        "bill_length_mm": (47.5, 3.1),
        "bill_depth_mm": (15.0, 1.0),
        "flipper_length_mm": (217.0, 6.5),
        "body_mass_g": (5080.0, 500.0),
        "islands": ["Biscoe"],
    },
}

MEASUREMENTS = ["bill_length_mm", "bill_depth_mm", "flipper_length_mm", "body_mass_g"]

# Schema bounds, so generated values always validate
MEASUREMENT_BOUNDS = {
    "bill_length_mm": (20.0, 80.0),
    "bill_depth_mm": (8.0, 30.0),
    "flipper_length_mm": (150.0, 250.0),
    "body_mass_g": (2000.0, 7000.0),
}


def make_penguins(
    n_per_class: int = 60,
    seed: int = 2023,
    *,
    with_missing: bool = True,
) -> pd.DataFrame:
    """
    Generate a penguin-like frame with well separated species.

    With ``with_missing`` a few measurements and sexes are blanked, and
    the last row has no measurements at all.
    """
    rng = np.random.default_rng(seed)
    frames = []
    for species, profile in SPECIES_PROFILES.items():
        data: dict[str, Any] = {"species": [species] * n_per_class}
        data["island"] = rng.choice(profile["islands"], size=n_per_class)
        for col in MEASUREMENTS:
            mean, std = profile[col]
            low, high = MEASUREMENT_BOUNDS[col]
            data[col] = np.clip(rng.normal(mean, std, size=n_per_class), low, high).round(1)
        data["sex"] = rng.choice(["female", "male"], size=n_per_class)
        data["year"] = rng.choice([2007, 2008, 2009], size=n_per_class)
        frames.append(pd.DataFrame(data))

    df = pd.concat(frames, ignore_index=True)
    df = df.sample(frac=1.0, random_state=seed).reset_index(drop=True)
    df["sex"] = df["sex"].astype(object)

    if with_missing:
        df.loc[[3, 17], "bill_length_mm"] = np.nan
        df.loc[[5, 29, 41], "body_mass_g"] = np.nan
        df.loc[[7, 11, 50], "sex"] = np.nan
        df.loc[len(df) - 1, MEASUREMENTS] = np.nan

    return df[["species", "island", *MEASUREMENTS, "sex", "year"]]


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def penguins_df() -> pd.DataFrame:
    """Synthetic penguin data with a few missing values."""
    return make_penguins()


@pytest.fixture
def complete_penguins_df() -> pd.DataFrame:
    """Synthetic penguin data without missing values."""
    return make_penguins(with_missing=False)


@pytest.fixture
def base_config(tmp_path: Path) -> dict[str, Any]:
    """Create a minimal, fast configuration dictionary for testing."""
    return {
        "project": "test-penguins",
        "seed": 42,
        "resampling": {"method": "bootstrap", "n_resamples": 5},
        "training": {"n_jobs": 1},
        "models": {
            "enabled": ["Multinomial Regression", "Boosted Trees"],
            "hyperparameters": {
                "Multinomial Regression": {"C": [0.1, 1.0]},
                "Boosted Trees": {"n_estimators": [10, 30], "max_depth": [2, 3]},
            },
        },
        "output": {"root": str(tmp_path / "output")},
    }


@pytest.fixture
def pipeline_config(base_config: dict[str, Any]) -> PipelineConfig:
    """Validated configuration built from base_config."""
    return config_from_dict(base_config)


@pytest.fixture
def training_data(
    pipeline_config: PipelineConfig,
    penguins_df: pd.DataFrame,
) -> TrainingData:
    """Cleaned and split synthetic data."""
    return prepare_training_data(pipeline_config, penguins_df)


@pytest.fixture
def trained_model(
    pipeline_config: PipelineConfig,
    training_data: TrainingData,
) -> TrainedModel:
    """Multinomial regression fitted on the training split and evaluated on test."""
    trainer = ModelTrainer(pipeline_config)
    return trainer.last_fit(
        trainer.workflow("Multinomial Regression"),
        training_data.X_train,
        training_data.y_train,
        training_data.X_test,
        training_data.y_test,
        name="Multinomial Regression",
    )
