"""Differential heatmap of two fit results."""

from __future__ import annotations

import logging
import math
from typing import Any, Protocol, Sequence

import pandas as pd

from cytodiff.core.colors import ColorMatrix
from cytodiff.core.compute import compute_diff
from cytodiff.core.expressions import Expr
from cytodiff.core.types import DEFAULT_RAMP, ColorRamp, DiffConfig, DiffResult, FitResult, Predicate
from cytodiff.plotting.heatmap import draw_heatmap


class HeatmapRenderer(Protocol):
    def __call__(
        self,
        colors: ColorMatrix,
        legend: ColorRamp,
        *,
        show_rownames: bool,
        show_colnames: bool,
        row_annotation: pd.DataFrame | None,
        cytokine_annotation: pd.DataFrame,
        cluster_rows: bool,
        cluster_cols: bool,
        polar: bool,
        **options: Any,
    ) -> Any: ...


def render_diff(
    result: DiffResult,
    *,
    palette: ColorRamp = DEFAULT_RAMP,
    show_rownames: bool = False,
    show_colnames: bool = False,
    renderer: HeatmapRenderer = draw_heatmap,
    **options: Any,
) -> Any:
    """Hand a computed `DiffResult` to a heatmap renderer (no recomputation).

    Rows and columns are already in display order, so clustering is always
    off; `options` are forwarded untouched.
    """
    return renderer(
        result.colors,
        palette,
        show_rownames=show_rownames,
        show_colnames=show_colnames,
        row_annotation=result.row_annotation,
        cytokine_annotation=result.categories,
        cluster_rows=False,
        cluster_cols=False,
        polar=True,
        **options,
    )


def plot_diff(
    left: FitResult,
    right: FitResult,
    subset: Predicate | None = None,
    *,
    threshold: float = 0.01,
    minimum_dof: int = 1,
    maximum_dof: float = math.inf,
    must_express: Sequence[str | Expr] | None = None,
    row_annotation: Sequence[str] | None = None,
    palette: ColorRamp = DEFAULT_RAMP,
    show_rownames: bool = False,
    show_colnames: bool = False,
    renderer: HeatmapRenderer = draw_heatmap,
    logger: logging.Logger | None = None,
    **options: Any,
) -> Any:
    """Plot the differential mean-gamma heatmap of `left` against `right`.

    Args:
        left, right: Fit results to compare (`left - right`).
        subset: Predicate over `left.metadata` selecting individuals, as an
            expression string (e.g. ``'visit == "V2" & arm %in% c("A", "B")'``),
            a parsed `Expr`, or a callable returning a boolean mask.
        threshold: Categories whose mean difference lies within
            ``[-threshold, threshold]`` are dropped.
        minimum_dof, maximum_dof: Inclusive bounds on the number of positive
            markers in a category.
        must_express: Marker expressions; a category is kept if it satisfies
            any of them (``["TNFa & IFNg"]`` needs both, ``["TNFa", "IFNg"]``
            either).
        row_annotation: Metadata columns shown beside the rows; rows are
            sorted by them, left to right.
        palette: Diverging colour ramp for the log-ratio.
        show_rownames, show_colnames: Label toggles passed to the renderer.
        renderer: Heatmap primitive; defaults to `draw_heatmap`.
        logger: Optional logger for stage counts.
        **options: Forwarded verbatim to `renderer`.

    Returns:
        Whatever `renderer` returns (a matplotlib Figure by default).
    """
    config = DiffConfig(
        threshold=threshold,
        minimum_dof=minimum_dof,
        maximum_dof=maximum_dof,
        must_express=None if must_express is None else tuple(must_express),
        row_annotation=None if not row_annotation else tuple(row_annotation),
        show_rownames=show_rownames,
        show_colnames=show_colnames,
    )
    result = compute_diff(left, right, config, subset=subset, ramp=palette, logger=logger)
    return render_diff(
        result,
        palette=palette,
        show_rownames=show_rownames,
        show_colnames=show_colnames,
        renderer=renderer,
        **options,
    )
