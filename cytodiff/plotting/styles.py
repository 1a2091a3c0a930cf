"""Shared plotting style settings for deterministic figure outputs."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

import matplotlib
import matplotlib.pyplot as plt
import numpy as np


@dataclass(frozen=True)
class PlotStyle:
    """Centralized plotting defaults for differential heatmaps."""

    dpi: int = 200
    cell_width: float = 0.28
    cell_height: float = 0.18
    min_figsize: tuple[float, float] = (5.0, 4.0)
    annotation_strip_width: float = 0.22
    marker_row_height: float = 0.16
    key_size: float = 1.8
    marker_on_color: str = "#1a1a1a"
    marker_off_color: str = "#f0f0f0"
    missing_annotation_color: str = "#d9d9d9"
    grid_color: str = "white"
    grid_linewidth: float = 0.4
    categorical_cmap: str = "tab20"
    continuous_cmap: str = "viridis"
    legend_fontsize: int = 7
    tick_fontsize: int = 7
    row_label_fontsize: int = 7
    col_label_fontsize: int = 7
    axis_label_fontsize: int = 8
    title_fontsize: int = 10
    key_samples: int = 64


DEFAULT_PLOT_STYLE = PlotStyle()


def apply_plot_style(style: PlotStyle = DEFAULT_PLOT_STYLE) -> None:
    """Apply deterministic matplotlib rcParams for heatmap figures."""
    plt.rcParams.update(
        {
            "figure.dpi": style.dpi,
            "savefig.dpi": style.dpi,
            "savefig.facecolor": "white",
            "font.family": "DejaVu Sans",
            "axes.titlesize": style.title_fontsize,
            "axes.labelsize": style.axis_label_fontsize,
            "legend.fontsize": style.legend_fontsize,
            "axes.grid": False,
        }
    )


def plot_style_dict(style: PlotStyle = DEFAULT_PLOT_STYLE) -> dict[str, Any]:
    """Return style + dependency versions for metadata manifests."""
    d = asdict(style)
    d["matplotlib_version"] = str(matplotlib.__version__)
    d["numpy_version"] = str(np.__version__)
    return d
