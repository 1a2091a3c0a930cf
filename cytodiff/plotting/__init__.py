"""Plotting API for differential heatmaps."""

from cytodiff.plotting.diff import HeatmapRenderer, plot_diff, render_diff
from cytodiff.plotting.heatmap import draw_heatmap, save_figure
from cytodiff.plotting.styles import (
    DEFAULT_PLOT_STYLE,
    PlotStyle,
    apply_plot_style,
    plot_style_dict,
)

__all__ = [
    "PlotStyle",
    "DEFAULT_PLOT_STYLE",
    "HeatmapRenderer",
    "apply_plot_style",
    "plot_style_dict",
    "draw_heatmap",
    "plot_diff",
    "render_diff",
    "save_figure",
]
