"""Small pure helpers for core computations."""

from __future__ import annotations

from typing import Iterable

import numpy as np
import pandas as pd


def category_label(indicators: Iterable[int]) -> str:
    return "".join(str(int(v)) for v in indicators)


def degree_of_functionality(labels: Iterable[str]) -> np.ndarray:
    """Number of positive markers ("1" characters) in each category label."""
    return np.asarray([str(label).count("1") for label in labels], dtype=int)


def sorted_str_index(frame: pd.DataFrame) -> pd.DataFrame:
    out = frame.copy()
    out.index = out.index.astype(str)
    return out.sort_index(kind="mergesort")


def finite_2d(name: str, values: np.ndarray) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.ndim != 2:
        raise ValueError(f"{name} must be 2D, got shape {arr.shape}.")
    if not np.isfinite(arr).all():
        raise ValueError(f"{name} must be finite.")
    return arr
