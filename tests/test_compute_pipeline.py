from __future__ import annotations

import logging
import math
import warnings

import numpy as np
import pandas as pd
import pytest

from cytodiff.core.compute import compute_diff
from cytodiff.core.types import DiffConfig


def test_end_to_end_scenario(scenario_fits):
    left, right = scenario_fits
    with warnings.catch_warnings():
        warnings.simplefilter("error", RuntimeWarning)
        result = compute_diff(left, right, DiffConfig(threshold=0.01, minimum_dof=1))

    # "01" has mean 0.01, which is not strictly above the threshold.
    assert list(result.categories.index) == ["10", "11"]
    assert result.colors.columns == ("10", "11")
    assert result.colors.rows == ("A", "B", "C")
    assert result.colors.shape == (3, 2)
    assert result.difference.shape == (3, 2)
    assert result.difference.mean(axis=0).to_numpy() == pytest.approx([0.8 / 3, 0.4 / 3])

    rgba = result.colors.rgba()
    assert np.isfinite(rgba).all()

    # Right is all zeros, so opacity tracks the left value cell by cell.
    left_vals = left.mean_gamma.loc[["A", "B", "C"], ["10", "11"]].to_numpy().ravel()
    alpha = result.colors.alpha.ravel()
    for i in range(alpha.size):
        for j in range(alpha.size):
            if left_vals[i] < left_vals[j]:
                assert alpha[i] < alpha[j]

    again = compute_diff(left, right, DiffConfig(threshold=0.01, minimum_dof=1))
    assert np.array_equal(again.colors.hsv, result.colors.hsv)
    assert np.array_equal(again.colors.alpha, result.colors.alpha)


def test_metadata_records_stage_counts(scenario_fits):
    left, right = scenario_fits
    result = compute_diff(left, right)
    meta = result.metadata
    assert meta["n_categories"] == 3
    assert meta["n_after_threshold"] == 2
    assert meta["n_categories_plotted"] == 2
    assert meta["maximum_dof"] is None
    assert meta["palette"] == "RdYlBu"


def test_row_mismatch_warns_and_keeps_intersection(make_fit):
    left = make_fit([[0.4, 0.1], [0.5, 0.2], [0.6, 0.3]], ["A", "B", "X"], ["10", "01"])
    right = make_fit([[0.0, 0.0], [0.1, 0.0]], ["B", "A"], ["10", "01"])
    with pytest.warns(RuntimeWarning, match="Not all individuals"):
        result = compute_diff(left, right)
    assert set(result.colors.rows) <= {"A", "B"}
    assert result.metadata["dropped_individuals"] == ["X"]


def test_no_shared_individuals_fails_clearly(make_fit):
    left = make_fit([[0.4]], ["A"], ["1"])
    right = make_fit([[0.4]], ["B"], ["1"])
    with pytest.warns(RuntimeWarning):
        with pytest.raises(ValueError, match="share no individuals"):
            compute_diff(left, right)


def test_threshold_eliminating_everything_fails_clearly(scenario_fits):
    left, right = scenario_fits
    with pytest.raises(ValueError, match="No categories passed filtering"):
        compute_diff(left, right, DiffConfig(threshold=5.0))


def test_dof_bounds_apply_to_final_columns(scenario_fits):
    left, right = scenario_fits
    result = compute_diff(left, right, DiffConfig(minimum_dof=2))
    assert result.colors.columns == ("11",)
    assert list(result.categories.index) == ["11"]

    result = compute_diff(left, right, DiffConfig(minimum_dof=1, maximum_dof=1))
    assert result.colors.columns == ("10",)


def test_must_express_restricts_categories(scenario_fits):
    left, right = scenario_fits
    result = compute_diff(left, right, DiffConfig(must_express=("IFNg",)))
    assert result.colors.columns == ("11",)
    result = compute_diff(left, right, DiffConfig(must_express=("TNFa & !IFNg", "IFNg")))
    assert result.colors.columns == ("10", "11")


def test_subset_filters_rows_symmetrically(scenario_fits):
    left, right = scenario_fits
    config = DiffConfig(subset='group == "treated"', row_annotation=("group", "age"))
    result = compute_diff(left, right, config)
    assert result.colors.rows == ("C", "A")
    assert list(result.difference.index) == ["C", "A"]
    assert list(result.row_annotation.index) == ["C", "A"]

    by_callable = compute_diff(left, right, subset=lambda meta: meta["age"] > 30)
    assert set(by_callable.colors.rows) == {"A", "C"}


def test_subset_matching_nobody_fails_clearly(scenario_fits):
    left, right = scenario_fits
    with pytest.raises(ValueError, match="row subset"):
        compute_diff(left, right, subset="age > 100")


def test_rows_ordered_by_annotation_stably(make_fit):
    meta = pd.DataFrame(
        {
            "ptid": ["P1", "P2", "P3", "P4"],
            "arm": ["b", "a", "b", None],
        }
    )
    values = [[0.5, 0.1], [0.4, 0.2], [0.3, 0.3], [0.2, 0.4]]
    left = make_fit(values, ["P1", "P2", "P3", "P4"], ["10", "01"], metadata=meta)
    right = make_fit([[0.0, 0.0]] * 4, ["P1", "P2", "P3", "P4"], ["10", "01"], metadata=meta)
    result = compute_diff(left, right, DiffConfig(row_annotation=("arm",)))
    assert result.colors.rows == ("P2", "P1", "P3", "P4")
    assert result.row_order.tolist() == [1, 0, 2, 3]
    assert result.row_annotation["arm"].tolist()[:3] == ["a", "b", "b"]


def test_colour_scale_uses_all_categories(scenario_fits):
    left, right = scenario_fits
    narrow = compute_diff(left, right, DiffConfig(minimum_dof=2))
    wide = compute_diff(left, right, DiffConfig(minimum_dof=1))
    # The "11" column is coloured identically whichever other columns survive.
    assert np.array_equal(narrow.colors.hsv[:, 0, :], wide.colors.hsv[:, 1, :])


def test_logger_receives_stage_counts(scenario_fits, caplog):
    left, right = scenario_fits
    caplog.set_level(logging.INFO)
    compute_diff(left, right, logger=logging.getLogger("test.cytodiff"))
    assert "after threshold" in caplog.text
    assert "Aligned 3 individuals" in caplog.text


def test_config_validation():
    with pytest.raises(ValueError, match="threshold"):
        DiffConfig(threshold=-1.0)
    with pytest.raises(ValueError, match="maximum_dof"):
        DiffConfig(minimum_dof=3, maximum_dof=2)
    assert math.isinf(DiffConfig().maximum_dof)
