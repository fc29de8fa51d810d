"""
Schema definitions using Pandera for data validation.

All data contracts are defined here to ensure explicit,
validated data structures throughout the workflow.
"""

from penguin_classifier.schemas.output import (
    HoldoutPredictionSchema,
    PredictionOutputSchema,
)
from penguin_classifier.schemas.penguins import (
    ISLANDS,
    SEXES,
    SPECIES,
    NewObservationSchema,
    PenguinSchema,
)
from penguin_classifier.schemas.registry import DataRole, SchemaInfo, SchemaRegistry

__all__ = [
    "ISLANDS",
    "SEXES",
    "SPECIES",
    "DataRole",
    "HoldoutPredictionSchema",
    "NewObservationSchema",
    "PenguinSchema",
    "PredictionOutputSchema",
    "SchemaInfo",
    "SchemaRegistry",
]
