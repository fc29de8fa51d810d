"""
Lookup of the penguin data contracts by name.

The CLI and the data layer refer to schemas by name ("penguins",
"new_observations", ...) and validate through this registry.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, ClassVar

import pandera.pandas as pa

from penguin_classifier.schemas.output import (
    HoldoutPredictionSchema,
    PredictionOutputSchema,
)
from penguin_classifier.schemas.penguins import NewObservationSchema, PenguinSchema

if TYPE_CHECKING:
    import pandas as pd


class DataRole(Enum):
    """Where a table sits in the workflow."""

    SOURCE = "source"  # Labeled training data
    INPUT = "input"  # Unlabeled observations for scoring
    OUTPUT = "output"  # Model outputs


@dataclass(frozen=True)
class SchemaInfo:
    """A registered schema with its version, role and description."""

    name: str
    schema: type[pa.DataFrameModel]
    version: str
    role: DataRole
    description: str


class SchemaRegistry:
    """Named access to the penguin table schemas."""

    _schemas: ClassVar[dict[str, SchemaInfo]] = {
        "penguins": SchemaInfo(
            name="penguins",
            schema=PenguinSchema,
            version="1.0.0",
            role=DataRole.SOURCE,
            description="Labeled Palmer penguins measurements",
        ),
        "new_observations": SchemaInfo(
            name="new_observations",
            schema=NewObservationSchema,
            version="1.0.0",
            role=DataRole.INPUT,
            description="Unlabeled measurements to score",
        ),
        "predictions": SchemaInfo(
            name="predictions",
            schema=PredictionOutputSchema,
            version="1.0.0",
            role=DataRole.OUTPUT,
            description="Predicted species with class probabilities",
        ),
        "test_predictions": SchemaInfo(
            name="test_predictions",
            schema=HoldoutPredictionSchema,
            version="1.0.0",
            role=DataRole.OUTPUT,
            description="Held-out test set predictions from the final fit",
        ),
    }

    @classmethod
    def get_info(cls, name: str) -> SchemaInfo:
        """
        Look up a registered schema.

        Raises:
            KeyError: For names that are not registered.
        """
        try:
            return cls._schemas[name]
        except KeyError:
            msg = f"Unknown schema '{name}'. Registered: {', '.join(cls._schemas)}"
            raise KeyError(msg) from None

    @classmethod
    def get(cls, name: str) -> type[pa.DataFrameModel]:
        """Schema class registered under ``name``."""
        return cls.get_info(name).schema

    @classmethod
    def list_schemas(cls) -> list[str]:
        return list(cls._schemas)

    @classmethod
    def list_by_role(cls, role: DataRole) -> list[str]:
        """Names of the schemas with the given role."""
        return [name for name, info in cls._schemas.items() if info.role == role]

    @classmethod
    def validate(
        cls,
        df: "pd.DataFrame",
        schema_name: str,
        *,
        lazy: bool = False,
    ) -> "pd.DataFrame":
        """
        Check a table against a named schema.

        Args:
            df: Table to check.
            schema_name: Registered schema name.
            lazy: Collect every failure instead of stopping at the first.

        Returns:
            The coerced table.

        Raises:
            pandera.errors.SchemaError: On the first failure (lazy=False).
            pandera.errors.SchemaErrors: With all failures (lazy=True).
        """
        return cls.get(schema_name).validate(df, lazy=lazy)
