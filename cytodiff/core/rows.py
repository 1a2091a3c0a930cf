"""Individual-level subsetting and display ordering."""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd

from cytodiff.core.expressions import Expr, evaluate_mask
from cytodiff.core.types import Predicate


def matching_individuals(
    metadata: pd.DataFrame,
    individual_id: str,
    subset: Predicate,
) -> set[str]:
    """Identifiers of the metadata rows satisfying `subset`.

    `subset` may be an expression string, a parsed `Expr`, or a callable
    returning a boolean mask for the metadata frame. Missing values count as
    false.
    """
    frame = metadata.reset_index(drop=True)
    if isinstance(subset, (str, Expr)):
        mask = evaluate_mask(subset, frame)
    elif callable(subset):
        raw = pd.Series(np.asarray(subset(frame)).ravel())
        if raw.size != frame.shape[0]:
            raise ValueError(
                f"subset callable returned {raw.size} values for {frame.shape[0]} metadata rows."
            )
        mask = raw.astype("boolean").fillna(False).to_numpy(dtype=bool)
    else:
        raise TypeError(f"Unsupported subset predicate of type {type(subset).__name__}.")
    ids = frame.loc[mask, individual_id].astype(str)
    return set(ids.unique())


def restrict_rows(frame: pd.DataFrame | None, keep: set[str]) -> pd.DataFrame | None:
    if frame is None:
        return None
    return frame.loc[frame.index.isin(list(keep))]


def order_rows(
    n_rows: int,
    row_annotation: pd.DataFrame | None,
    columns: Sequence[str] | None,
) -> np.ndarray:
    """Positional display order.

    Stable lexicographic sort over the annotation columns, left to right, with
    missing values last; identity order when there is no annotation.
    """
    if row_annotation is None or not columns:
        return np.arange(n_rows)
    if row_annotation.shape[0] != n_rows:
        raise ValueError("row annotation does not match the number of matrix rows.")
    cols = [c for c in columns if c in row_annotation.columns]
    if not cols:
        return np.arange(n_rows)
    ordered = row_annotation.reset_index(drop=True).sort_values(
        by=cols,
        kind="mergesort",
        na_position="last",
    )
    return ordered.index.to_numpy()
