"""
Penguin Classifier: species classification walkthrough.

This package provides data loading, exploration, a preprocessing recipe,
resampled model comparison, grid-search tuning and scoring of new
observations for the Palmer penguins dataset.
"""

from importlib.metadata import version

__version__ = version("penguin-classifier")

__all__ = ["__version__"]
