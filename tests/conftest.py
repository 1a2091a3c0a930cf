from __future__ import annotations

from typing import Sequence

import matplotlib

matplotlib.use("Agg")

import pandas as pd
import pytest

from cytodiff.core.types import FitResult

SCENARIO_ROWS = ["A", "B", "C"]
SCENARIO_LABELS = ["10", "01", "11"]
SCENARIO_LEFT = [[0.5, 0.02, 0.0], [0.3, 0.01, 0.0], [0.0, 0.0, 0.4]]


def _make_fit(
    values: Sequence[Sequence[float]],
    rows: Sequence[str],
    labels: Sequence[str],
    *,
    markers: Sequence[str] | None = None,
    metadata: pd.DataFrame | None = None,
    id_col: str = "ptid",
) -> FitResult:
    """Fit result with the null category appended as the last column/row."""
    n_markers = len(labels[0])
    markers = list(markers) if markers is not None else [f"M{i + 1}" for i in range(n_markers)]
    null_label = "0" * n_markers
    mean_gamma = pd.DataFrame(
        [list(v) + [0.0] for v in values],
        index=list(rows),
        columns=list(labels) + [null_label],
    )
    cat_rows = [[int(ch) for ch in lab] for lab in list(labels) + [null_label]]
    categories = pd.DataFrame(cat_rows, columns=markers)
    categories["Counts"] = categories.sum(axis=1)
    if metadata is None:
        metadata = pd.DataFrame({id_col: list(rows)})
    return FitResult(
        mean_gamma=mean_gamma,
        categories=categories,
        metadata=metadata,
        individual_id=id_col,
    )


@pytest.fixture
def make_fit():
    return _make_fit


@pytest.fixture
def scenario_fits() -> tuple[FitResult, FitResult]:
    metadata = pd.DataFrame(
        {
            "ptid": SCENARIO_ROWS,
            "group": ["treated", "control", "treated"],
            "age": [41, 29, 35],
        }
    )
    left = _make_fit(
        SCENARIO_LEFT,
        SCENARIO_ROWS,
        SCENARIO_LABELS,
        markers=["TNFa", "IFNg"],
        metadata=metadata,
    )
    right = _make_fit(
        [[0.0, 0.0, 0.0] for _ in SCENARIO_ROWS],
        SCENARIO_ROWS,
        SCENARIO_LABELS,
        markers=["TNFa", "IFNg"],
        metadata=metadata,
    )
    return left, right
