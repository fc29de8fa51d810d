"""Tests for resampling schemes."""

import numpy as np
import pandas as pd
import pytest
from sklearn.model_selection import RepeatedStratifiedKFold, StratifiedKFold

from penguin_classifier.config import config_from_dict
from penguin_classifier.modeling.resampling import (
    BootstrapSplit,
    build_resamples,
    describe_resamples,
)


@pytest.fixture
def labels() -> pd.Series:
    """Imbalanced three-class labels."""
    return pd.Series(["Adelie"] * 50 + ["Chinstrap"] * 20 + ["Gentoo"] * 40)


class TestBootstrapSplit:
    """Tests for BootstrapSplit."""

    def test_number_of_resamples(self, labels: pd.Series) -> None:
        """Test that n_resamples splits are produced."""
        cv = BootstrapSplit(7, random_state=1)
        assert cv.get_n_splits() == 7
        assert len(list(cv.split(labels, labels))) == 7

    def test_analysis_and_assessment_disjoint(self, labels: pd.Series) -> None:
        """Test that out-of-bag rows are never in the analysis set."""
        cv = BootstrapSplit(10, random_state=1)
        for analysis, assessment in cv.split(labels, labels):
            assert len(assessment) > 0
            assert not set(analysis) & set(assessment)
            # Every row is either drawn or out-of-bag
            assert set(analysis) | set(assessment) == set(range(len(labels)))

    def test_analysis_size_and_replacement(self, labels: pd.Series) -> None:
        """Test that analysis sets are full-size draws with replacement."""
        cv = BootstrapSplit(5, random_state=2)
        for analysis, _ in cv.split(labels, labels):
            assert len(analysis) == len(labels)
            assert len(np.unique(analysis)) < len(labels)

    def test_stratified_draw_keeps_class_counts(self, labels: pd.Series) -> None:
        """Test that each class keeps its size in the analysis set."""
        cv = BootstrapSplit(5, random_state=3, stratify=True)
        expected = labels.value_counts().sort_index()
        for analysis, _ in cv.split(labels, labels):
            counts = labels.iloc[analysis].value_counts().sort_index()
            pd.testing.assert_series_equal(counts, expected)

    def test_same_seed_same_resamples(self, labels: pd.Series) -> None:
        """Test that resamples are reproducible (paired across models)."""
        first = list(BootstrapSplit(3, random_state=9).split(labels, labels))
        second = list(BootstrapSplit(3, random_state=9).split(labels, labels))
        for (a1, b1), (a2, b2) in zip(first, second):
            np.testing.assert_array_equal(a1, a2)
            np.testing.assert_array_equal(b1, b2)

    def test_unstratified_without_labels(self, labels: pd.Series) -> None:
        """Test that plain bootstrap works without y."""
        cv = BootstrapSplit(2, random_state=1, stratify=False)
        splits = list(cv.split(labels))
        assert len(splits) == 2

    def test_stratified_requires_labels(self, labels: pd.Series) -> None:
        """Test that stratified bootstrap needs y."""
        cv = BootstrapSplit(2, random_state=1)
        with pytest.raises(ValueError, match="requires y"):
            list(cv.split(labels))

    def test_too_few_rows(self) -> None:
        """Test that a single row cannot be bootstrapped."""
        with pytest.raises(ValueError, match="at least 2 rows"):
            list(BootstrapSplit(2, stratify=False).split([1]))

    def test_invalid_resample_count(self) -> None:
        """Test that n_resamples must be positive."""
        with pytest.raises(ValueError):
            BootstrapSplit(0)


class TestBuildResamples:
    """Tests for build_resamples."""

    def test_bootstrap_from_config(self, base_config: dict) -> None:
        """Test the default bootstrap scheme."""
        cv = build_resamples(config_from_dict(base_config))
        assert isinstance(cv, BootstrapSplit)
        assert cv.get_n_splits() == 5
        assert cv.random_state == 42

    def test_kfold_from_config(self, base_config: dict) -> None:
        """Test V-fold cross-validation."""
        config = config_from_dict(
            {**base_config, "resampling": {"method": "kfold", "n_resamples": 5}}
        )
        cv = build_resamples(config)
        assert isinstance(cv, StratifiedKFold)
        assert cv.get_n_splits() == 5

    def test_repeated_kfold_from_config(self, base_config: dict) -> None:
        """Test repeated V-fold cross-validation."""
        config = config_from_dict(
            {
                **base_config,
                "resampling": {"method": "kfold", "n_resamples": 5, "repeats": 3},
            }
        )
        cv = build_resamples(config)
        assert isinstance(cv, RepeatedStratifiedKFold)
        assert cv.get_n_splits() == 15


def test_describe_resamples(labels: pd.Series) -> None:
    """Test the per-resample size summary."""
    rows = describe_resamples(BootstrapSplit(3, random_state=1), labels, labels)
    assert [r["resample"] for r in rows] == [1, 2, 3]
    for row in rows:
        assert row["n_analysis"] == len(labels)
        assert row["n_unique_analysis"] + row["n_assessment"] == len(labels)
