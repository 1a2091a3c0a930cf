"""Differential comparison pipeline (no plotting, no filesystem I/O)."""

from __future__ import annotations

import logging
import math
from typing import Any

from cytodiff.core.align import align_results
from cytodiff.core.colors import encode_colors
from cytodiff.core.filters import dof_mask, filter_categories
from cytodiff.core.rows import matching_individuals, order_rows, restrict_rows
from cytodiff.core.types import (
    DEFAULT_RAMP,
    ColorRamp,
    DiffConfig,
    DiffResult,
    FitResult,
    Predicate,
)


def compute_diff(
    left: FitResult,
    right: FitResult,
    config: DiffConfig = DiffConfig(),
    *,
    subset: Predicate | None = None,
    ramp: ColorRamp = DEFAULT_RAMP,
    logger: logging.Logger | None = None,
) -> DiffResult:
    """Align, filter and colour-encode two fit results.

    `subset` overrides `config.subset` and may also be a callable taking the
    metadata frame.
    """
    aligned = align_results(left, right, config.row_annotation)
    if aligned.left.shape[0] == 0:
        raise ValueError("The two fits share no individuals; nothing to compare.")
    if logger is not None:
        logger.info(
            "Aligned %d individuals x %d categories (%d individuals dropped)",
            aligned.left.shape[0],
            aligned.left.shape[1],
            len(aligned.dropped_individuals),
        )

    kept, counts = filter_categories(
        aligned.difference,
        aligned.categories,
        threshold=config.threshold,
        minimum_dof=config.minimum_dof,
        maximum_dof=config.maximum_dof,
        must_express=config.must_express,
    )
    if logger is not None:
        logger.info(
            "Categories: %d total, %d after must-express, %d after threshold, %d after DOF",
            counts["n_categories"],
            counts["n_after_must_express"],
            counts["n_after_threshold"],
            counts["n_after_dof"],
        )

    m_left = aligned.left
    m_right = aligned.right
    diff = aligned.difference
    rowann = aligned.row_annotation

    predicate = subset if subset is not None else config.subset
    if predicate is not None:
        keep_ids = matching_individuals(left.metadata, left.individual_id, predicate)
        diff = restrict_rows(diff, keep_ids)
        rowann = restrict_rows(rowann, keep_ids)
        m_left = restrict_rows(m_left, keep_ids)
        m_right = restrict_rows(m_right, keep_ids)
        if logger is not None:
            logger.info("Row subset kept %d of %d individuals", diff.shape[0], aligned.left.shape[0])
    if diff.shape[0] == 0:
        raise ValueError("No individuals remain after applying the row subset.")

    order = order_rows(diff.shape[0], rowann, config.row_annotation)

    # Colours are computed on the full aligned grid, then restricted.
    colors = encode_colors(m_left, m_right, ramp).select_columns(kept)
    cats = aligned.categories.loc[kept]

    # Second DOF pass, against the colour matrix's own columns.
    keep = dof_mask(colors.columns, config.minimum_dof, config.maximum_dof)
    labels = [lab for lab, k in zip(colors.columns, keep) if k]
    colors = colors.select_columns(labels)
    cats = cats.loc[labels]
    if len(labels) == 0:
        raise ValueError(
            "No categories passed filtering "
            f"(threshold={config.threshold}, minimum_dof={config.minimum_dof}, "
            f"maximum_dof={config.maximum_dof}, must_express={config.must_express})."
        )

    diff = diff.loc[:, labels].iloc[order]
    if rowann is not None:
        rowann = rowann.iloc[order]
    colors = colors.take_rows(order)

    meta: dict[str, Any] = {
        "threshold": float(config.threshold),
        "minimum_dof": int(config.minimum_dof),
        "maximum_dof": None if math.isinf(config.maximum_dof) else int(config.maximum_dof),
        "must_express": [str(e) for e in config.must_express] if config.must_express else None,
        "row_annotation": list(config.row_annotation) if config.row_annotation else None,
        "palette": ramp.name,
        "n_individuals": int(diff.shape[0]),
        "n_dropped_individuals": len(aligned.dropped_individuals),
        "dropped_individuals": list(aligned.dropped_individuals),
        "n_categories_plotted": len(labels),
        **counts,
    }
    return DiffResult(
        colors=colors,
        difference=diff,
        categories=cats,
        row_annotation=rowann,
        row_order=order,
        metadata=meta,
    )
