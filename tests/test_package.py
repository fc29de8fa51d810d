"""Tests for the installed distribution and the public import surface."""

import importlib
from importlib.metadata import distribution

import pytest

import penguin_classifier
from penguin_classifier.cli import app

DIST = distribution("penguin-classifier")


def test_version_from_metadata() -> None:
    """Test that __version__ is the installed distribution version."""
    assert penguin_classifier.__version__ == DIST.version


def test_penguins_script_entry_point() -> None:
    """Test that the ``penguins`` script resolves to the typer app."""
    (entry_point,) = [
        ep for ep in DIST.entry_points if ep.group == "console_scripts" and ep.name == "penguins"
    ]
    assert entry_point.value == "penguin_classifier.cli:app"
    assert entry_point.load() is app


@pytest.mark.parametrize(
    "module_name",
    [
        "penguin_classifier.config",
        "penguin_classifier.exploration",
        "penguin_classifier.schemas",
    ],
)
def test_public_names_resolve(module_name: str) -> None:
    """Test that every name a subpackage exports is importable from it."""
    module = importlib.import_module(module_name)
    exported = module.__all__
    assert exported
    missing = [name for name in exported if not hasattr(module, name)]
    assert not missing
