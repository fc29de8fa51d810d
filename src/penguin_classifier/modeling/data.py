"""
Dataset loading and preparation.

Loads the penguin measurements, normalizes column names and missing-value
markers, applies the row-level missing-value policy and prepares a
stratified train/test split.

Cell-level gaps are left in place here; the preprocessing recipe imputes
them using statistics learned on the training split only.
"""

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split

from penguin_classifier.config.settings import PipelineConfig
from penguin_classifier.schemas.registry import SchemaRegistry
from penguin_classifier.utils.logging import get_logger

log = get_logger(__name__)

# Markers that mean "missing" in exported penguin tables
NA_VALUES = ["", "NA", "N/A", "na", "NaN", ".", "?"]

# Column name variants seen in published copies of the dataset
COLUMN_ALIASES: dict[str, str] = {
    "culmen_length_mm": "bill_length_mm",
    "culmen_depth_mm": "bill_depth_mm",
    "species_short": "species",
}


@dataclass
class TrainingData:
    """
    Container for split data with metadata.

    Attributes:
        X_train: Training features.
        X_test: Test features.
        y_train: Training labels.
        y_test: Test labels.
        feature_names: Model input columns.
        numeric_features: Numeric input columns.
        categorical_features: Categorical input columns.
        n_samples: Rows kept after the missing-value policy.
        n_dropped: Rows removed by the missing-value policy.
        class_counts: Label counts over all kept rows.
    """

    X_train: pd.DataFrame
    X_test: pd.DataFrame
    y_train: pd.Series
    y_test: pd.Series
    feature_names: list[str]
    numeric_features: list[str]
    categorical_features: list[str]
    n_samples: int
    n_dropped: int
    class_counts: dict[str, int]

    @property
    def classes(self) -> list[str]:
        """Sorted class labels."""
        return sorted(self.class_counts)


def load_penguins(config: PipelineConfig, *, validate: bool = True) -> pd.DataFrame:
    """
    Load the raw penguin dataset.

    Reads ``data.path`` when configured, otherwise the copy bundled with
    the ``palmerpenguins`` package.

    Args:
        config: Workflow configuration.
        validate: Validate against PenguinSchema after normalization.

    Returns:
        Normalized raw DataFrame (missing values still present).

    Raises:
        FileNotFoundError: If a configured data file does not exist.
    """
    if config.data.path is not None:
        path = config.data.path
        if not path.exists():
            msg = f"Penguin data file not found: {path}"
            raise FileNotFoundError(msg)
        log.info("Loading penguins", source=str(path))
        df = read_table(path)
    else:
        from palmerpenguins import load_penguins as load_bundled

        log.info("Loading penguins", source="palmerpenguins")
        df = load_bundled()

    df = normalize_frame(df)
    log.info("Loaded raw data", rows=len(df), columns=list(df.columns))

    if validate:
        df = SchemaRegistry.validate(df, "penguins", lazy=True)
    return df


def read_table(path: Path) -> pd.DataFrame:
    """
    Read a CSV or Parquet file, treating the usual NA markers as missing.

    Raises:
        ValueError: For unsupported file extensions.
    """
    suffix = path.suffix.lower()
    if suffix in {".csv", ".txt"}:
        return pd.read_csv(path, na_values=NA_VALUES, keep_default_na=True)
    if suffix in {".parquet", ".pq"}:
        return pd.read_parquet(path)
    msg = f"Unsupported file format '{suffix}'. Use .csv or .parquet"
    raise ValueError(msg)


def normalize_frame(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize column names and string values.

    Lower-cases and strips column names, applies known aliases,
    strips string cells and turns NA markers into real missing values.
    """
    df = df.copy()
    df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]
    rename_dict = {k: v for k, v in COLUMN_ALIASES.items() if k in df.columns}
    if rename_dict:
        log.debug("Renaming columns", mapping=rename_dict)
        df = df.rename(columns=rename_dict)

    for col in df.columns:
        if pd.api.types.is_string_dtype(df[col].dtype) or isinstance(
            df[col].dtype, pd.CategoricalDtype
        ):
            values = df[col].astype("object")
            values = values.map(lambda v: v.strip() if isinstance(v, str) else v)
            df[col] = values.replace(NA_VALUES, np.nan)

    # Some exports carry the full species name ("Adelie Penguin (Pygoscelis adeliae)")
    if "species" in df.columns:
        df["species"] = df["species"].map(
            lambda v: v.split()[0] if isinstance(v, str) else v
        )
    # Sex is sometimes upper case or '.'
    if "sex" in df.columns:
        df["sex"] = df["sex"].map(lambda v: v.lower() if isinstance(v, str) else v)

    return df


def apply_missing_policy(
    df: pd.DataFrame,
    config: PipelineConfig,
) -> tuple[pd.DataFrame, int]:
    """
    Drop rows that cannot be used for supervised learning.

    Rows without a label are dropped, as are rows where every numeric
    measurement is missing. Remaining gaps are left for the recipe.

    Args:
        df: Normalized raw DataFrame.
        config: Workflow configuration.

    Returns:
        Tuple of (filtered DataFrame, number of dropped rows).
    """
    target = config.features.target
    numeric = [c for c in config.features.numeric if c in df.columns]

    original_len = len(df)
    keep = df[target].notna()
    if numeric:
        keep &= df[numeric].notna().any(axis=1)
    df = df.loc[keep].copy()

    n_dropped = original_len - len(df)
    if n_dropped:
        log.info(
            "Dropped unusable rows",
            dropped=n_dropped,
            remaining=len(df),
        )
    remaining_na = {
        col: int(n) for col, n in df.isna().sum().items() if n > 0 and col != target
    }
    if remaining_na:
        log.info("Missing values left for imputation", **remaining_na)

    return df, n_dropped


def split_data(
    df: pd.DataFrame,
    config: PipelineConfig,
    *,
    n_dropped: int = 0,
) -> TrainingData:
    """
    Split a cleaned frame into training and test sets.

    With the same ``split.random_state`` the partition is deterministic.

    Args:
        df: Cleaned DataFrame (after apply_missing_policy).
        config: Workflow configuration.
        n_dropped: Rows dropped earlier, recorded for reporting.

    Returns:
        TrainingData with train/test splits and metadata.

    Raises:
        ValueError: If required columns are missing.
    """
    features = config.features
    target = features.target
    feature_cols = features.features
    _validate_columns(df, feature_cols, target)

    X = df[feature_cols].copy()
    y = df[target].astype(str).copy()

    X_train, X_test, y_train, y_test = train_test_split(
        X,
        y,
        test_size=config.split.test_size,
        random_state=config.split.random_state,
        stratify=y if config.split.stratify else None,
    )

    class_counts = {str(k): int(v) for k, v in y.value_counts().sort_index().items()}

    log.info(
        "Prepared training data",
        n_train=len(X_train),
        n_test=len(X_test),
        n_features=len(feature_cols),
        classes=class_counts,
    )

    return TrainingData(
        X_train=X_train,
        X_test=X_test,
        y_train=y_train,
        y_test=y_test,
        feature_names=feature_cols,
        numeric_features=list(features.numeric),
        categorical_features=list(features.categorical),
        n_samples=len(df),
        n_dropped=n_dropped,
        class_counts=class_counts,
    )


def prepare_training_data(
    config: PipelineConfig,
    df: pd.DataFrame | None = None,
) -> TrainingData:
    """
    Load (unless given), clean and split the penguin dataset.

    Args:
        config: Workflow configuration.
        df: Optional raw frame; loaded via load_penguins when None.

    Returns:
        TrainingData ready for resampling and fitting.
    """
    if df is None:
        df = load_penguins(config)
    else:
        df = normalize_frame(df)

    drop_cols = [c for c in config.features.drop if c in df.columns]
    if drop_cols:
        df = df.drop(columns=drop_cols)

    df, n_dropped = apply_missing_policy(df, config)
    return split_data(df, config, n_dropped=n_dropped)


def _validate_columns(
    df: pd.DataFrame,
    feature_cols: list[str],
    target_col: str,
) -> None:
    """Validate that required columns exist."""
    missing_features = [col for col in feature_cols if col not in df.columns]
    if missing_features:
        msg = f"Missing feature columns: {missing_features}"
        raise ValueError(msg)

    if target_col not in df.columns:
        msg = f"Missing target column: {target_col}"
        raise ValueError(msg)
