"""Typed configuration and result containers for cytodiff core operations."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Union

import numpy as np
import pandas as pd

from cytodiff.core.expressions import Expr

if TYPE_CHECKING:
    from cytodiff.core.colors import ColorMatrix

# Bookkeeping column some model fitters append to the category table.
COUNTS_COLUMN = "Counts"

Predicate = Union[str, Expr, Callable[[pd.DataFrame], Any]]


@dataclass(frozen=True)
class FitResult:
    """Read-only view of one fitted response model.

    - `mean_gamma`: individuals x categories; the last column is the null category.
    - `categories`: 0/1 marker indicators, one row per category (including the null row).
    - `metadata`: per-individual table holding the `individual_id` column.
    """

    mean_gamma: pd.DataFrame
    categories: pd.DataFrame
    metadata: pd.DataFrame
    individual_id: str

    def __post_init__(self) -> None:
        if self.individual_id not in self.metadata.columns:
            raise KeyError(
                f"metadata is missing the individual id column '{self.individual_id}'."
            )
        if self.mean_gamma.shape[1] < 2:
            raise ValueError(
                "mean_gamma must hold at least one category column plus the null column."
            )
        if len(self.marker_names) == 0:
            raise ValueError("categories must hold at least one marker column.")

    @property
    def marker_names(self) -> list[str]:
        return [str(c) for c in self.categories.columns if str(c) != COUNTS_COLUMN]

    @property
    def null_column(self) -> str:
        return str(self.mean_gamma.columns[-1])

    def marker_table(self) -> pd.DataFrame:
        """Category indicators as integers, without the counts column."""
        table = self.categories.loc[:, [c for c in self.categories.columns if str(c) != COUNTS_COLUMN]]
        table = table.astype(int).copy()
        table.columns = [str(c) for c in table.columns]
        return table.reset_index(drop=True)


@dataclass(frozen=True)
class ColorRamp:
    """Immutable diverging colour ramp; stops are evenly spaced on [0, 1]."""

    name: str
    colors: tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.colors) < 2:
            raise ValueError("A colour ramp needs at least two stops.")

    @property
    def positions(self) -> np.ndarray:
        return np.linspace(0.0, 1.0, num=len(self.colors))


DEFAULT_RAMP = ColorRamp(
    name="RdYlBu",
    colors=("#D7191C", "#FDAE61", "#FFFFBF", "#ABD9E9", "#2C7BB6"),
)


@dataclass(frozen=True)
class DiffConfig:
    """Filtering and annotation options for one differential comparison."""

    threshold: float = 0.01
    minimum_dof: int = 1
    maximum_dof: float = math.inf
    must_express: tuple[str, ...] | None = None
    row_annotation: tuple[str, ...] | None = None
    subset: str | None = None
    show_rownames: bool = False
    show_colnames: bool = False

    def __post_init__(self) -> None:
        if self.threshold < 0:
            raise ValueError(f"threshold must be non-negative, got {self.threshold}.")
        if self.maximum_dof < self.minimum_dof:
            raise ValueError(
                f"maximum_dof ({self.maximum_dof}) is below minimum_dof ({self.minimum_dof})."
            )


@dataclass(frozen=True)
class AlignedPair:
    """Two mean-gamma matrices on a common row and column space."""

    left: pd.DataFrame
    right: pd.DataFrame
    difference: pd.DataFrame
    categories: pd.DataFrame
    metadata: pd.DataFrame
    row_annotation: pd.DataFrame | None
    dropped_individuals: tuple[str, ...] = ()


@dataclass(frozen=True)
class DiffResult:
    """Output of `compute_diff`, ready to hand to a heatmap renderer.

    All tables share the final (display) row order.
    """

    colors: ColorMatrix
    difference: pd.DataFrame
    categories: pd.DataFrame
    row_annotation: pd.DataFrame | None
    row_order: np.ndarray
    metadata: dict[str, Any] = field(default_factory=dict)
