"""Default matplotlib renderer for literal-colour heatmaps.

The renderer never reorders rows or columns; callers hand it a finished
colour grid in display order.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any

import matplotlib.figure
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.cm import ScalarMappable
from matplotlib.colors import LinearSegmentedColormap, Normalize, to_rgba, to_rgba_array
from matplotlib.gridspec import GridSpec
from matplotlib.patches import Patch

from cytodiff.core.colors import ColorMatrix, ramp_rgb
from cytodiff.core.types import DEFAULT_RAMP, ColorRamp
from cytodiff.plotting.styles import DEFAULT_PLOT_STYLE, PlotStyle


def _rgba_grid(colors: ColorMatrix | pd.DataFrame) -> tuple[np.ndarray, list[str], list[str]]:
    if isinstance(colors, ColorMatrix):
        return colors.rgba(), list(colors.rows), list(colors.columns)
    frame = pd.DataFrame(colors)
    flat = to_rgba_array(frame.to_numpy().ravel().tolist())
    rgba = flat.reshape(frame.shape[0], frame.shape[1], 4)
    return rgba, [str(r) for r in frame.index], [str(c) for c in frame.columns]


def _palette_for_values(
    values: list[str],
    style: PlotStyle,
) -> dict[str, tuple[float, float, float, float]]:
    cmap = plt.get_cmap(style.categorical_cmap)
    return {val: cmap(i % cmap.N) for i, val in enumerate(values)}


def _annotation_rgba(
    row_annotation: pd.DataFrame,
    style: PlotStyle,
) -> tuple[np.ndarray, list[Patch]]:
    """Colour each annotation column; categorical columns also get legend patches."""
    n_rows, n_cols = row_annotation.shape
    out = np.zeros((n_rows, n_cols, 4), dtype=float)
    handles: list[Patch] = []
    missing = to_rgba(style.missing_annotation_color)
    for j, col in enumerate(row_annotation.columns):
        series = row_annotation[col]
        if pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series):
            vals = series.to_numpy(dtype=float)
            finite = np.isfinite(vals)
            lo = float(np.min(vals[finite])) if finite.any() else 0.0
            hi = float(np.max(vals[finite])) if finite.any() else 1.0
            cmap = plt.get_cmap(style.continuous_cmap)
            norm = Normalize(vmin=lo, vmax=hi if hi > lo else lo + 1.0)
            for i in range(n_rows):
                out[i, j] = cmap(norm(vals[i])) if finite[i] else missing
            continue
        labels = series.astype("string")
        levels = sorted(labels.dropna().unique().tolist())
        palette = _palette_for_values(levels, style)
        for i, lab in enumerate(labels):
            out[i, j] = missing if pd.isna(lab) else palette[str(lab)]
        handles.extend(Patch(facecolor=palette[lev], label=f"{col}: {lev}") for lev in levels)
    return out, handles


# pheatmap option name -> PlotStyle field
_STYLE_OPTIONS = (
    ("fontsize_row", "row_label_fontsize"),
    ("fontsize_col", "col_label_fontsize"),
    ("border_color", "grid_color"),
    ("cellwidth", "cell_width"),
    ("cellheight", "cell_height"),
)


def _apply_options(
    style: PlotStyle,
    title: str | None,
    options: dict[str, Any],
) -> tuple[PlotStyle, str | None, dict[str, Any]]:
    """Fold renderer options into the style; what is left goes to the figure."""
    figure_kw = dict(options)
    changes: dict[str, Any] = {}
    fontsize = figure_kw.pop("fontsize", None)
    if fontsize is not None:
        for name in (
            "tick_fontsize",
            "row_label_fontsize",
            "col_label_fontsize",
            "legend_fontsize",
            "axis_label_fontsize",
        ):
            changes[name] = fontsize
    for option, name in _STYLE_OPTIONS:
        if option in figure_kw:
            changes[name] = figure_kw.pop(option)
    main = figure_kw.pop("main", None)
    if title is None:
        title = main
    if changes:
        style = replace(style, **changes)
    return style, title, figure_kw


def _draw_polar_key(ax: plt.Axes, legend: ColorRamp, style: PlotStyle) -> None:
    # Angle encodes the normalised signal, radius the opacity.
    n_theta = int(style.key_samples)
    n_r = 8
    s = (np.arange(n_theta) + 0.5) / n_theta
    theta = s * np.pi
    width = np.pi / n_theta
    rgb = ramp_rgb(s, legend)
    for k in range(n_r):
        r0 = k / n_r
        alpha = (k + 0.5) / n_r
        rgba = np.column_stack([rgb, np.full(n_theta, alpha)])
        ax.bar(theta, 1.0 / n_r, width=width, bottom=r0, color=rgba, linewidth=0)
    ax.set_thetamin(0)
    ax.set_thetamax(180)
    ax.set_theta_zero_location("E")
    ax.set_theta_direction(1)
    ax.set_thetagrids([0, 90, 180], labels=["left", "", "right"])
    ax.set_rticks([0.5, 1.0])
    ax.yaxis.set_tick_params(labelsize=style.tick_fontsize)
    ax.xaxis.set_tick_params(labelsize=style.tick_fontsize)
    ax.set_title("key", fontsize=style.axis_label_fontsize)


def _draw_linear_key(ax: plt.Axes, legend: ColorRamp, style: PlotStyle) -> None:
    cmap = LinearSegmentedColormap.from_list(legend.name, list(legend.colors))
    cbar = ax.figure.colorbar(
        ScalarMappable(norm=Normalize(0.0, 1.0), cmap=cmap),
        cax=ax,
        orientation="vertical",
    )
    cbar.set_label("normalised log-ratio", fontsize=style.axis_label_fontsize)
    cbar.ax.tick_params(labelsize=style.tick_fontsize)


def draw_heatmap(
    colors: ColorMatrix | pd.DataFrame,
    legend: ColorRamp = DEFAULT_RAMP,
    *,
    show_rownames: bool = False,
    show_colnames: bool = False,
    row_annotation: pd.DataFrame | None = None,
    cytokine_annotation: pd.DataFrame | None = None,
    cluster_rows: bool = False,
    cluster_cols: bool = False,
    polar: bool = False,
    title: str | None = None,
    figsize: tuple[float, float] | None = None,
    style: PlotStyle = DEFAULT_PLOT_STYLE,
    **options: Any,
) -> matplotlib.figure.Figure:
    """Draw a grid of literal colours with optional row and column annotations.

    `cytokine_annotation` is a categories x markers 0/1 table drawn beneath
    the columns. With `polar=True` the key is a half-disc (signal by angle,
    opacity by radius); otherwise a plain colour bar of the ramp.

    Extra `options` follow pheatmap names where one exists: `fontsize`,
    `fontsize_row`, `fontsize_col`, `main` (title), `border_color`,
    `cellwidth` and `cellheight` (inches). Anything else is passed to
    `matplotlib.pyplot.figure` (e.g. `dpi`, `facecolor`).
    """
    if cluster_rows or cluster_cols:
        raise ValueError("Clustering is not supported; pass rows and columns in display order.")
    style, title, figure_kw = _apply_options(style, title, options)

    rgba, row_labels, col_labels = _rgba_grid(colors)
    n_rows, n_cols = rgba.shape[:2]
    if n_rows == 0 or n_cols == 0:
        raise ValueError(f"Cannot draw an empty heatmap (shape {n_rows}x{n_cols}).")
    if row_annotation is not None and row_annotation.shape[0] != n_rows:
        raise ValueError("row_annotation must have one row per heatmap row.")
    if cytokine_annotation is not None and cytokine_annotation.shape[0] != n_cols:
        raise ValueError("cytokine_annotation must have one row per heatmap column.")

    n_ann = 0 if row_annotation is None else row_annotation.shape[1]
    n_markers = 0 if cytokine_annotation is None else cytokine_annotation.shape[1]

    main_w = max(n_cols * style.cell_width, 2.0)
    main_h = max(n_rows * style.cell_height, 1.5)
    ann_w = n_ann * style.annotation_strip_width
    markers_h = n_markers * style.marker_row_height
    if figsize is None:
        figsize = (
            max(style.min_figsize[0], main_w + ann_w + style.key_size + 1.5),
            max(style.min_figsize[1], main_h + markers_h + 1.2),
        )

    fig = plt.figure(figsize=figsize, **figure_kw)
    width_ratios = ([ann_w] if n_ann else []) + [main_w, style.key_size]
    height_ratios = [main_h] + ([markers_h] if n_markers else [])
    gs = GridSpec(
        len(height_ratios),
        len(width_ratios),
        figure=fig,
        width_ratios=width_ratios,
        height_ratios=height_ratios,
        wspace=0.05,
        hspace=0.05,
    )
    main_col = 1 if n_ann else 0

    ax = fig.add_subplot(gs[0, main_col])
    ax.imshow(rgba, aspect="auto", interpolation="nearest")
    ax.set_xticks(np.arange(n_cols) - 0.5, minor=True)
    ax.set_yticks(np.arange(n_rows) - 0.5, minor=True)
    ax.grid(which="minor", color=style.grid_color, linewidth=style.grid_linewidth)
    ax.tick_params(which="minor", length=0)
    if show_rownames:
        ax.set_yticks(np.arange(n_rows))
        ax.set_yticklabels(row_labels, fontsize=style.row_label_fontsize)
        ax.yaxis.tick_right()
    else:
        ax.set_yticks([])
    if show_colnames and n_markers == 0:
        ax.set_xticks(np.arange(n_cols))
        ax.set_xticklabels(col_labels, rotation=90, fontsize=style.col_label_fontsize)
    else:
        ax.set_xticks([])
    if title:
        ax.set_title(title, fontsize=style.title_fontsize)

    handles: list[Patch] = []
    if n_ann:
        ax_ann = fig.add_subplot(gs[0, 0])
        ann_rgba, handles = _annotation_rgba(row_annotation, style)
        ax_ann.imshow(ann_rgba, aspect="auto", interpolation="nearest")
        ax_ann.set_xticks(np.arange(n_ann))
        ax_ann.set_xticklabels(
            [str(c) for c in row_annotation.columns], rotation=90, fontsize=style.tick_fontsize
        )
        ax_ann.tick_params(axis="y", left=False, labelleft=False)

    if n_markers:
        ax_mk = fig.add_subplot(gs[1, main_col])
        on = np.asarray(cytokine_annotation.to_numpy(dtype=float).T > 0)
        mk_rgba = np.where(
            on[..., None], to_rgba(style.marker_on_color), to_rgba(style.marker_off_color)
        )
        ax_mk.imshow(mk_rgba, aspect="auto", interpolation="nearest")
        ax_mk.set_yticks(np.arange(n_markers))
        ax_mk.set_yticklabels(
            [str(c) for c in cytokine_annotation.columns], fontsize=style.tick_fontsize
        )
        ax_mk.yaxis.tick_right()
        ax_mk.set_yticks(np.arange(n_markers) - 0.5, minor=True)
        ax_mk.grid(which="minor", axis="y", color=style.grid_color, linewidth=style.grid_linewidth)
        ax_mk.tick_params(which="minor", length=0)
        if show_colnames:
            ax_mk.set_xticks(np.arange(n_cols))
            ax_mk.set_xticklabels(col_labels, rotation=90, fontsize=style.col_label_fontsize)
        else:
            ax_mk.tick_params(axis="x", bottom=False, labelbottom=False)

    if polar:
        ax_key = fig.add_subplot(gs[0, main_col + 1], projection="polar")
        _draw_polar_key(ax_key, legend, style)
    else:
        ax_key = fig.add_subplot(gs[0, main_col + 1])
        _draw_linear_key(ax_key, legend, style)

    if handles:
        fig.legend(
            handles=handles,
            loc="lower right",
            fontsize=style.legend_fontsize,
            frameon=False,
        )
    return fig


def save_figure(
    fig: matplotlib.figure.Figure,
    out_path: str | Path,
    *,
    style: PlotStyle = DEFAULT_PLOT_STYLE,
    close: bool = True,
) -> Path:
    """Save figure deterministically and optionally close it."""
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out, dpi=style.dpi, facecolor="white", bbox_inches="tight", pad_inches=0.05)
    if close:
        plt.close(fig)
    return out
