"""Row normalisation and category reconciliation for a pair of fit results."""

from __future__ import annotations

import warnings
from typing import Sequence

import numpy as np
import pandas as pd

from cytodiff.core.types import AlignedPair, FitResult
from cytodiff.core.utils import category_label, sorted_str_index


def _mean_response(fit: FitResult) -> pd.DataFrame:
    # Drop the reserved null category (always the last column).
    matrix = fit.mean_gamma.iloc[:, :-1].astype(float)
    matrix.columns = [str(c) for c in matrix.columns]
    return sorted_str_index(matrix)


def _metadata_columns(fit: FitResult, row_annotation: Sequence[str]) -> pd.DataFrame:
    missing = [c for c in row_annotation if c not in fit.metadata.columns]
    if missing:
        raise KeyError(f"Row annotation column(s) not found in metadata: {', '.join(missing)}")
    cols = [fit.individual_id] + [c for c in row_annotation if c != fit.individual_id]
    meta = fit.metadata.loc[:, cols].copy()
    meta[fit.individual_id] = meta[fit.individual_id].astype(str)
    return meta


def normalize_results(
    left: FitResult,
    right: FitResult,
    row_annotation: Sequence[str] | None = None,
) -> tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame, tuple[str, ...]]:
    """Bring both mean-gamma matrices onto one sorted set of individuals.

    Returns `(left_matrix, right_matrix, metadata, dropped_individuals)`.
    Individuals present in only one fit are dropped with a `RuntimeWarning`.
    """
    m_left = _mean_response(left)
    m_right = _mean_response(right)
    meta = _metadata_columns(left, list(row_annotation or ()))

    dropped: tuple[str, ...] = ()
    if list(m_left.index) != list(m_right.index):
        warnings.warn(
            "Not all individuals are shared in common between the two fit objects; "
            "some will be dropped.",
            RuntimeWarning,
            stacklevel=2,
        )
        common = m_left.index.intersection(m_right.index)
        dropped = tuple(sorted(m_left.index.symmetric_difference(m_right.index)))
        m_left = m_left.loc[m_left.index.isin(common)]
        m_right = m_right.loc[m_right.index.isin(common)]
        meta = meta.loc[meta[left.individual_id].isin(common)]

    return m_left, m_right, meta, dropped


def build_row_annotation(
    rows: pd.Index,
    metadata: pd.DataFrame,
    individual_id: str,
    columns: Sequence[str] | None,
) -> pd.DataFrame | None:
    """One annotation row per individual, in exactly the order of `rows`."""
    if not columns:
        return None
    cols = [c for c in columns if c != individual_id]
    ann = metadata.loc[:, [individual_id] + cols].copy()
    ann[individual_id] = ann[individual_id].astype(str)
    ann = ann.drop_duplicates(subset=individual_id, keep="first")
    ann = ann.set_index(individual_id)
    return ann.reindex(pd.Index(rows, dtype=str))


def union_categories(left: FitResult, right: FitResult) -> pd.DataFrame:
    """Union of both category tables without the null category, indexed by label."""
    lc = left.marker_table()
    rc = right.marker_table()
    if set(lc.columns) != set(rc.columns):
        raise ValueError(
            "Marker columns differ between fits: "
            f"{list(lc.columns)} vs {list(rc.columns)}."
        )
    rc = rc.loc[:, list(lc.columns)]
    cats = pd.concat([lc, rc], ignore_index=True)
    values = cats.to_numpy()
    if not np.isin(values, (0, 1)).all():
        raise ValueError("Category tables must hold only 0/1 marker indicators.")
    cats = cats.drop_duplicates()
    cats = cats.loc[cats.sum(axis=1) != 0]
    cats.index = pd.Index([category_label(row) for row in cats.to_numpy()], name="category")
    return cats


def _with_zero_columns(matrix: pd.DataFrame, labels: Sequence[str]) -> pd.DataFrame:
    missing = [lab for lab in labels if lab not in matrix.columns]
    if not missing:
        return matrix.copy()
    zeros = pd.DataFrame(0.0, index=matrix.index, columns=missing)
    return pd.concat([matrix, zeros], axis=1)


def reconcile_categories(
    left_matrix: pd.DataFrame,
    right_matrix: pd.DataFrame,
    categories: pd.DataFrame,
) -> tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """Put both matrices on the union category space, sorted by label.

    Returns `(left, right, difference, categories)`; the difference is
    `left - right`. A column mismatch after sorting is an internal error.
    """
    labels = list(categories.index)
    m_left = _with_zero_columns(left_matrix, labels)
    m_right = _with_zero_columns(right_matrix, labels)

    m_left = m_left.loc[:, sorted(m_left.columns)]
    m_right = m_right.loc[:, sorted(m_right.columns)]
    cats = categories.loc[sorted(labels)]

    if list(m_left.columns) != list(m_right.columns):
        raise RuntimeError(
            "Internal error: could not match categories between the matrices "
            "from 'left' and 'right'."
        )

    return m_left, m_right, m_left - m_right, cats


def align_results(
    left: FitResult,
    right: FitResult,
    row_annotation: Sequence[str] | None = None,
) -> AlignedPair:
    """Normalise rows, reconcile categories and build the row annotation."""
    m_left, m_right, meta, dropped = normalize_results(left, right, row_annotation)
    cats = union_categories(left, right)
    m_left, m_right, diff, cats = reconcile_categories(m_left, m_right, cats)
    rowann = build_row_annotation(m_left.index, meta, left.individual_id, row_annotation)
    return AlignedPair(
        left=m_left,
        right=m_right,
        difference=diff,
        categories=cats,
        metadata=meta,
        row_annotation=rowann,
        dropped_individuals=dropped,
    )
