"""Exploratory data analysis of the penguin measurements."""

from penguin_classifier.exploration.eda import (
    ExplorationSummary,
    explore,
    plot_bill_dimensions,
    plot_flipper_vs_mass,
    plot_measurement_boxplots,
    plot_missingness,
    print_exploration,
)

__all__ = [
    "ExplorationSummary",
    "explore",
    "plot_bill_dimensions",
    "plot_flipper_vs_mass",
    "plot_measurement_boxplots",
    "plot_missingness",
    "print_exploration",
]
