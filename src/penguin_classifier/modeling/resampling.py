"""
Resampling schemes for model comparison and tuning.

Provides a scikit-learn compatible bootstrap splitter (analysis set drawn
with replacement, assessment set = out-of-bag rows) and a factory that
picks bootstrap or V-fold CV from configuration.
"""

from collections.abc import Iterator
from typing import Any

import numpy as np
from sklearn.model_selection import (
    BaseCrossValidator,
    KFold,
    RepeatedKFold,
    RepeatedStratifiedKFold,
    StratifiedKFold,
)

from penguin_classifier.config.settings import PipelineConfig, ResamplingMethod
from penguin_classifier.utils.logging import get_logger

log = get_logger(__name__)

# Redraws allowed before giving up on a non-empty out-of-bag set
MAX_REDRAWS = 100


class BootstrapSplit(BaseCrossValidator):
    """
    Bootstrap resampling as a CV splitter.

    Each resample draws ``n`` row indices with replacement as the analysis
    set; rows never drawn form the assessment (out-of-bag) set. With
    ``stratify=True`` the draw happens within each class so every class
    keeps its share of the analysis set.

    Analysis indices contain duplicates by design of the bootstrap;
    scikit-learn estimators fit on them as-is.
    """

    def __init__(
        self,
        n_resamples: int = 25,
        *,
        random_state: int | None = None,
        stratify: bool = True,
    ) -> None:
        if n_resamples < 1:
            msg = f"n_resamples must be >= 1, got {n_resamples}"
            raise ValueError(msg)
        self.n_resamples = n_resamples
        self.random_state = random_state
        self.stratify = stratify

    def get_n_splits(self, X: Any = None, y: Any = None, groups: Any = None) -> int:
        """Number of resamples."""
        return self.n_resamples

    def split(
        self,
        X: Any,
        y: Any = None,
        groups: Any = None,
    ) -> Iterator[tuple[np.ndarray, np.ndarray]]:
        """
        Generate (analysis, assessment) index pairs.

        Args:
            X: Data to resample (only its length is used).
            y: Labels, required when stratify=True.
            groups: Ignored.

        Yields:
            Tuple of (analysis indices, out-of-bag indices).

        Raises:
            ValueError: If stratified resampling is requested without labels,
                or an out-of-bag set stays empty after repeated draws.
        """
        n_samples = len(X)
        if n_samples < 2:
            msg = f"Bootstrap needs at least 2 rows, got {n_samples}"
            raise ValueError(msg)

        rng = np.random.default_rng(self.random_state)

        if self.stratify:
            if y is None:
                msg = "Stratified bootstrap requires y"
                raise ValueError(msg)
            labels = np.asarray(y)
            strata = [np.flatnonzero(labels == value) for value in np.unique(labels)]
        else:
            strata = [np.arange(n_samples)]

        for _ in range(self.n_resamples):
            for _attempt in range(MAX_REDRAWS):
                analysis = np.concatenate(
                    [rng.choice(idx, size=len(idx), replace=True) for idx in strata]
                )
                assessment = np.setdiff1d(np.arange(n_samples), analysis)
                if len(assessment) > 0:
                    break
            else:
                msg = "Could not draw a bootstrap resample with out-of-bag rows"
                raise ValueError(msg)
            yield np.sort(analysis), assessment


def build_resamples(config: PipelineConfig) -> Any:
    """
    Build the resampling scheme from configuration.

    Args:
        config: Workflow configuration.

    Returns:
        BootstrapSplit, (Stratified)KFold or Repeated(Stratified)KFold.
    """
    rs = config.resampling

    if rs.method == ResamplingMethod.BOOTSTRAP:
        cv: Any = BootstrapSplit(
            rs.n_resamples,
            random_state=rs.random_state,
            stratify=rs.stratify,
        )
    elif rs.repeats > 1:
        repeated = RepeatedStratifiedKFold if rs.stratify else RepeatedKFold
        cv = repeated(
            n_splits=rs.n_resamples,
            n_repeats=rs.repeats,
            random_state=rs.random_state,
        )
    else:
        folds = StratifiedKFold if rs.stratify else KFold
        cv = folds(n_splits=rs.n_resamples, shuffle=True, random_state=rs.random_state)

    log.info(
        "Built resamples",
        method=rs.method.value,
        n_resamples=rs.n_resamples,
        repeats=rs.repeats,
        stratify=rs.stratify,
    )
    return cv


def describe_resamples(cv: Any, X: Any, y: Any) -> list[dict[str, int]]:
    """
    Summarize resample sizes (analysis rows, unique analysis rows, assessment rows).

    Useful for reporting what each resample looked like.
    """
    rows = []
    for i, (analysis, assessment) in enumerate(cv.split(X, y)):
        rows.append(
            {
                "resample": i + 1,
                "n_analysis": len(analysis),
                "n_unique_analysis": len(np.unique(analysis)),
                "n_assessment": len(assessment),
            }
        )
    return rows
