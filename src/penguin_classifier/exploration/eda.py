"""
Exploratory summaries and plots of the penguin data.

Computes the tables used to get a first look at the data (missing
values, class balance, per-species means, correlations) and renders
them as rich tables or base64-encoded matplotlib figures.
"""

from dataclasses import dataclass

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from rich.console import Console
from rich.table import Table

from penguin_classifier.utils.logging import get_logger
from penguin_classifier.utils.plotting import fig_to_base64, species_color

log = get_logger(__name__)

# Numeric columns that are identifiers rather than measurements
NON_MEASUREMENT_COLUMNS = {"year"}


@dataclass
class ExplorationSummary:
    """
    Tables describing a penguin dataset.

    Attributes:
        target: Label column name.
        n_rows: Number of rows.
        n_columns: Number of columns.
        numeric_columns: Measurement columns summarized below.
        missing: Missing count and share per column.
        class_balance: Count and share per class.
        species_means: Mean of each measurement per class.
        numeric_summary: ``describe()`` of the measurements.
        island_species: Island x class crosstab (None without an island column).
        correlations: Pearson correlations of the measurements.
    """

    target: str
    n_rows: int
    n_columns: int
    numeric_columns: list[str]
    missing: pd.DataFrame
    class_balance: pd.DataFrame
    species_means: pd.DataFrame
    numeric_summary: pd.DataFrame
    island_species: pd.DataFrame | None
    correlations: pd.DataFrame

    @property
    def n_missing(self) -> int:
        """Total number of missing cells."""
        return int(self.missing["n_missing"].sum())

    @property
    def incomplete_columns(self) -> list[str]:
        """Columns with at least one missing value."""
        return list(self.missing.index[self.missing["n_missing"] > 0])


def _measurement_columns(df: pd.DataFrame, target: str) -> list[str]:
    numeric = df.select_dtypes(include="number").columns
    return [c for c in numeric if c != target and c not in NON_MEASUREMENT_COLUMNS]


def explore(
    df: pd.DataFrame,
    target: str = "species",
    numeric_columns: list[str] | None = None,
) -> ExplorationSummary:
    """
    Summarize a penguin dataset.

    Args:
        df: Raw or cleaned penguin data.
        target: Label column.
        numeric_columns: Measurements to summarize (default: numeric columns).

    Returns:
        ExplorationSummary with all tables.

    Raises:
        ValueError: If the target column is missing.
    """
    if target not in df.columns:
        msg = f"Target column '{target}' not found"
        raise ValueError(msg)

    if numeric_columns is None:
        numeric_columns = _measurement_columns(df, target)

    n_missing = df.isna().sum()
    missing = pd.DataFrame(
        {
            "n_missing": n_missing.astype(int),
            "pct_missing": (n_missing / max(len(df), 1) * 100).round(2),
        }
    )
    missing.index.name = "column"

    counts = df[target].value_counts(dropna=False).sort_index()
    class_balance = pd.DataFrame(
        {"count": counts.astype(int), "share": (counts / counts.sum()).round(4)}
    )
    class_balance.index.name = target

    measurements = df[numeric_columns]
    species_means = df.groupby(target, observed=True)[numeric_columns].mean()
    numeric_summary = measurements.describe().T
    correlations = measurements.corr(method="pearson")

    island_species = None
    if "island" in df.columns:
        island_species = pd.crosstab(df["island"], df[target])

    summary = ExplorationSummary(
        target=target,
        n_rows=len(df),
        n_columns=df.shape[1],
        numeric_columns=list(numeric_columns),
        missing=missing,
        class_balance=class_balance,
        species_means=species_means,
        numeric_summary=numeric_summary,
        island_species=island_species,
        correlations=correlations,
    )

    log.info(
        "Explored data",
        rows=summary.n_rows,
        columns=summary.n_columns,
        n_missing=summary.n_missing,
        classes=class_balance["count"].to_dict(),
    )
    return summary


def _frame_table(df: pd.DataFrame, title: str, *, float_format: str = "{:.2f}") -> Table:
    """Render a DataFrame (with its index) as a rich table."""
    table = Table(title=title)
    table.add_column(str(df.index.name or ""), style="cyan")
    for col in df.columns:
        table.add_column(str(col), justify="right")

    # itertuples keeps per-column dtypes (iterrows upcasts ints to float)
    for idx, *row in df.itertuples(name=None):
        cells = []
        for value in row:
            if isinstance(value, (float, np.floating)):
                cells.append(float_format.format(value))
            else:
                cells.append(str(value))
        table.add_row(str(idx), *cells)
    return table


def print_exploration(summary: ExplorationSummary, console: Console) -> None:
    """
    Print the exploration tables to a rich console.

    Args:
        summary: Result of ``explore``.
        console: Rich console for output.
    """
    console.print(
        f"[bold]{summary.n_rows}[/bold] rows, [bold]{summary.n_columns}[/bold] columns, "
        f"[bold]{summary.n_missing}[/bold] missing values"
    )
    console.print(_frame_table(summary.class_balance, "Class Balance", float_format="{:.3f}"))

    missing = summary.missing[summary.missing["n_missing"] > 0]
    if missing.empty:
        console.print("[green]No missing values[/green]")
    else:
        console.print(_frame_table(missing, "Missing Values"))

    console.print(_frame_table(summary.species_means, "Mean Measurements by Species"))
    if summary.island_species is not None:
        console.print(_frame_table(summary.island_species, "Island x Species"))
    console.print(_frame_table(summary.correlations, "Correlations", float_format="{:.3f}"))


def _scatter_by_species(
    df: pd.DataFrame,
    x: str,
    y: str,
    target: str,
    title: str,
) -> str:
    fig, ax = plt.subplots(figsize=(8, 6))

    for species, group in df.groupby(target, observed=True):
        ax.scatter(
            group[x],
            group[y],
            alpha=0.7,
            s=30,
            c=species_color(species),
            edgecolors="none",
            label=str(species),
        )

    ax.set_xlabel(x, fontsize=11)
    ax.set_ylabel(y, fontsize=11)
    ax.set_title(title, fontsize=12)
    ax.legend(title=target)
    ax.grid(True, alpha=0.3)
    return fig_to_base64(fig)


def plot_bill_dimensions(df: pd.DataFrame, target: str = "species") -> str:
    """Bill length vs. bill depth by species. Returns base64 PNG."""
    return _scatter_by_species(
        df, "bill_length_mm", "bill_depth_mm", target, "Bill Length vs Bill Depth"
    )


def plot_flipper_vs_mass(df: pd.DataFrame, target: str = "species") -> str:
    """Flipper length vs. body mass by species. Returns base64 PNG."""
    return _scatter_by_species(
        df, "flipper_length_mm", "body_mass_g", target, "Flipper Length vs Body Mass"
    )


def plot_measurement_boxplots(
    df: pd.DataFrame,
    numeric_columns: list[str],
    target: str = "species",
) -> str:
    """Per-species box plots, one panel per measurement. Returns base64 PNG."""
    n_cols = 2
    n_rows = max(1, int(np.ceil(len(numeric_columns) / n_cols)))
    fig, axes = plt.subplots(n_rows, n_cols, figsize=(12, 4 * n_rows), squeeze=False)

    classes = sorted(df[target].dropna().unique())
    for ax, column in zip(axes.flat, numeric_columns):
        data = [df.loc[df[target] == cls, column].dropna().to_numpy() for cls in classes]
        box = ax.boxplot(data, patch_artist=True)
        ax.set_xticks(range(1, len(classes) + 1))
        ax.set_xticklabels(classes)
        for patch, cls in zip(box["boxes"], classes):
            patch.set_facecolor(species_color(cls))
            patch.set_alpha(0.6)
        ax.set_title(column, fontsize=11)
        ax.grid(axis="y", alpha=0.3)

    for ax in list(axes.flat)[len(numeric_columns) :]:
        ax.set_visible(False)

    plt.tight_layout()
    return fig_to_base64(fig)


def plot_missingness(summary: ExplorationSummary) -> str:
    """Bar chart of missing values per column. Returns base64 PNG."""
    missing = summary.missing.sort_values("n_missing")
    fig, ax = plt.subplots(figsize=(8, max(3, len(missing) * 0.4)))

    bars = ax.barh(missing.index.astype(str), missing["n_missing"], color="steelblue")
    for bar, pct in zip(bars, missing["pct_missing"]):
        ax.text(
            bar.get_width() + 0.2,
            bar.get_y() + bar.get_height() / 2,
            f"{pct:.1f}%",
            va="center",
            fontsize=9,
        )

    ax.set_xlabel("Missing values", fontsize=11)
    ax.set_title("Missing Values per Column", fontsize=12)
    ax.grid(axis="x", alpha=0.3)
    plt.tight_layout()
    return fig_to_base64(fig)
