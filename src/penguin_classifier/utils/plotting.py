"""Helpers for embedding matplotlib figures in HTML."""

import base64
from io import BytesIO

import matplotlib.pyplot as plt
from matplotlib.figure import Figure

# Stable colors per species across all plots
SPECIES_COLORS = {
    "Adelie": "darkorange",
    "Chinstrap": "purple",
    "Gentoo": "cyan",
}


def fig_to_base64(fig: Figure, *, close: bool = True) -> str:
    """Convert matplotlib figure to base64 PNG string."""
    buf = BytesIO()
    fig.savefig(buf, format="png", dpi=150, bbox_inches="tight")
    buf.seek(0)
    encoded = base64.b64encode(buf.read()).decode("utf-8")
    if close:
        plt.close(fig)
    return encoded


def species_color(species: str) -> str:
    """Plot color for a species (gray for unknown labels)."""
    return SPECIES_COLORS.get(str(species), "gray")
