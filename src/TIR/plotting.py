"""
Density figure for bootstrap percent distributions (one panel per label).
"""

from __future__ import annotations

import logging
import pathlib
from typing import Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt  # noqa: E402

from .bootstrap import BootstrapSample  # noqa: E402
from .summary import percent_densities, summarize  # noqa: E402

LOGGER = logging.getLogger(__name__)

LABEL_COLORS = {
    "above": "tab:red",
    "target": "tab:green",
    "below": "tab:blue",
    "missing": "tab:gray",
}


def plot_percent_densities(
    samples: Sequence[BootstrapSample],
    output_path: str | pathlib.Path,
    *,
    bins: int = 30,
) -> pathlib.Path:
    """
    Save a histogram density of percent per label, with the bootstrap mean
    marked. Returns the path written.
    """
    densities = percent_densities(samples, bins=bins)
    if not densities:
        raise ValueError("No defined percent values to plot")
    means = summarize(samples).set_index("label")["mean"]

    fig, axes = plt.subplots(1, len(densities), figsize=(4 * len(densities), 3.5), squeeze=False)
    for ax, (label, (density, edges)) in zip(axes[0], densities.items()):
        color = LABEL_COLORS[label.value]
        ax.stairs(density, edges, fill=True, alpha=0.5, color=color)
        ax.axvline(means[label.value], color=color, linestyle="--", linewidth=1)
        ax.set_title(f"{label.value} (mean {means[label.value]:.3f})")
        ax.set_xlabel("fraction of time")
        ax.set_xlim(0.0, 1.0)
    axes[0][0].set_ylabel("density")
    fig.suptitle(f"Bootstrap distribution ({len(samples)} iterations)")

    out = pathlib.Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out, dpi=150, bbox_inches="tight")
    plt.close(fig)
    LOGGER.info("Saved density plot to %s", out)
    return out
