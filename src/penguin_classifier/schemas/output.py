"""
Pandera schemas for model output data.
"""

import pandera.pandas as pa
from pandera.typing import Series

from penguin_classifier.schemas.penguins import SPECIES


class PredictionOutputSchema(pa.DataFrameModel):
    """
    Schema for species predictions on new observations.

    One ``prob_<species>`` column per class, each a probability.
    """

    predicted_species: Series[str] = pa.Field(
        isin=SPECIES,
        description="Most probable species",
    )
    probabilities: Series[float] = pa.Field(
        alias=r"^prob_.+$",
        regex=True,
        ge=0.0,
        le=1.0,
        description="Class probability per species",
    )

    class Config:
        """Schema configuration."""

        name = "PredictionOutputSchema"
        strict = False
        coerce = True


class HoldoutPredictionSchema(pa.DataFrameModel):
    """
    Schema for held-out test predictions written after the final fit.
    """

    actual: Series[str] = pa.Field(isin=SPECIES, description="True species")
    predicted: Series[str] = pa.Field(isin=SPECIES, description="Predicted species")
    probabilities: Series[float] = pa.Field(
        alias=r"^prob_.+$",
        regex=True,
        ge=0.0,
        le=1.0,
    )

    class Config:
        """Schema configuration."""

        name = "HoldoutPredictionSchema"
        strict = False
        coerce = True
