"""
Pandera schemas for penguin measurement data.

Ranges are loose plausibility bounds around the Palmer Station
observations, wide enough for unseen individuals.
"""

import pandera.pandas as pa
from pandera.typing import Series

SPECIES = ["Adelie", "Chinstrap", "Gentoo"]
ISLANDS = ["Biscoe", "Dream", "Torgersen"]
SEXES = ["female", "male"]


class NewObservationSchema(pa.DataFrameModel):
    """
    Schema for unlabeled observations submitted for scoring.

    Measurements may be missing; the recipe imputes them.
    """

    island: Series[str] = pa.Field(
        isin=ISLANDS,
        nullable=True,
        description="Island where the penguin was observed",
    )
    bill_length_mm: Series[float] = pa.Field(
        ge=20.0,
        le=80.0,
        nullable=True,
        description="Culmen length in millimetres",
    )
    bill_depth_mm: Series[float] = pa.Field(
        ge=8.0,
        le=30.0,
        nullable=True,
        description="Culmen depth in millimetres",
    )
    flipper_length_mm: Series[float] = pa.Field(
        ge=150.0,
        le=250.0,
        nullable=True,
        description="Flipper length in millimetres",
    )
    body_mass_g: Series[float] = pa.Field(
        ge=2000.0,
        le=7000.0,
        nullable=True,
        description="Body mass in grams",
    )
    sex: Series[str] = pa.Field(
        isin=SEXES,
        nullable=True,
        description="Sex of the penguin",
    )

    class Config:
        """Schema configuration."""

        name = "NewObservationSchema"
        strict = False  # Allow extra columns (ids, notes)
        coerce = True


class PenguinSchema(NewObservationSchema):
    """
    Schema for the labeled penguin dataset.

    Extends the observation schema with the species label and study year.
    """

    species: Series[str] = pa.Field(
        isin=SPECIES,
        description="Penguin species (label)",
    )
    year: Series[int] | None = pa.Field(
        ge=2000,
        le=2100,
        description="Study year",
        default=None,
    )

    class Config:
        """Schema configuration."""

        name = "PenguinSchema"
        strict = False
        coerce = True
