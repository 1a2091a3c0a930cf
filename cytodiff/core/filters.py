"""Category filters applied to the difference matrix."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
import pandas as pd

from cytodiff.core.expressions import Expr, evaluate_mask
from cytodiff.core.utils import degree_of_functionality


def must_express_mask(
    categories: pd.DataFrame,
    must_express: Sequence[str | Expr] | None,
) -> np.ndarray:
    """Categories matching any of the marker expressions (all when `None`)."""
    n = categories.shape[0]
    if must_express is None:
        return np.ones(n, dtype=bool)
    frame = categories.reset_index(drop=True).astype(int)
    keep = np.zeros(n, dtype=bool)
    for expression in must_express:
        keep |= evaluate_mask(expression, frame)
    return keep


def magnitude_mask(difference: pd.DataFrame, threshold: float) -> np.ndarray:
    """Keep categories whose mean difference lies strictly outside `±threshold`."""
    means = difference.mean(axis=0).to_numpy(dtype=float)
    t = float(threshold)
    return (means > t) | (means < -t)


def dof_mask(
    labels: Sequence[str],
    minimum_dof: int = 1,
    maximum_dof: float = math.inf,
) -> np.ndarray:
    dof = degree_of_functionality(labels)
    return (dof >= minimum_dof) & (dof <= maximum_dof)


def filter_categories(
    difference: pd.DataFrame,
    categories: pd.DataFrame,
    *,
    threshold: float = 0.01,
    minimum_dof: int = 1,
    maximum_dof: float = math.inf,
    must_express: Sequence[str | Expr] | None = None,
) -> tuple[list[str], dict[str, int]]:
    """Apply must-express, magnitude and DOF filters in sequence.

    Each step only sees the categories that survived the previous one.
    Returns the kept labels (in column order) and per-step survivor counts.
    """
    if list(difference.columns) != list(categories.index):
        raise ValueError("difference columns and category labels are not aligned.")

    labels = list(difference.columns)
    counts = {"n_categories": len(labels)}

    keep = must_express_mask(categories, must_express)
    labels = [lab for lab, k in zip(labels, keep) if k]
    counts["n_after_must_express"] = len(labels)

    keep = magnitude_mask(difference.loc[:, labels], threshold)
    labels = [lab for lab, k in zip(labels, keep) if k]
    counts["n_after_threshold"] = len(labels)

    keep = dof_mask(labels, minimum_dof, maximum_dof)
    labels = [lab for lab, k in zip(labels, keep) if k]
    counts["n_after_dof"] = len(labels)
    return labels, counts
