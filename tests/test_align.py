from __future__ import annotations

import warnings

import pandas as pd
import pytest

from cytodiff.core.align import (
    align_results,
    build_row_annotation,
    normalize_results,
    reconcile_categories,
    union_categories,
)


def test_rows_sorted_and_identical_sets_do_not_warn(make_fit):
    left = make_fit([[0.1, 0.2], [0.3, 0.4]], ["P2", "P1"], ["10", "01"])
    right = make_fit([[0.0, 0.1], [0.2, 0.0]], ["P1", "P2"], ["10", "01"])
    with warnings.catch_warnings():
        warnings.simplefilter("error", RuntimeWarning)
        m_left, m_right, _, dropped = normalize_results(left, right)
    assert list(m_left.index) == ["P1", "P2"]
    assert list(m_right.index) == ["P1", "P2"]
    assert dropped == ()
    # The null column is gone.
    assert "00" not in m_left.columns
    assert m_left.loc["P2", "10"] == pytest.approx(0.1)


def test_row_mismatch_warns_and_intersects(make_fit):
    left = make_fit([[0.1], [0.2], [0.3]], ["A", "B", "D"], ["1"])
    right = make_fit([[0.1], [0.2], [0.3]], ["B", "C", "D"], ["1"])
    with pytest.warns(RuntimeWarning, match="Not all individuals"):
        m_left, m_right, meta, dropped = normalize_results(left, right)
    assert list(m_left.index) == ["B", "D"]
    assert list(m_right.index) == ["B", "D"]
    assert sorted(meta["ptid"]) == ["B", "D"]
    assert dropped == ("A", "C")


def test_columns_symmetric_and_zero_filled(make_fit):
    left = make_fit([[0.5, 0.2], [0.1, 0.0]], ["A", "B"], ["11", "10"])
    right = make_fit([[0.3, 0.4], [0.2, 0.1]], ["A", "B"], ["01", "10"])
    aligned = align_results(left, right)

    assert list(aligned.left.columns) == ["01", "10", "11"]
    assert list(aligned.left.columns) == list(aligned.right.columns)
    assert list(aligned.categories.index) == ["01", "10", "11"]
    assert list(aligned.categories.columns) == ["M1", "M2"]
    assert (aligned.left["01"] == 0.0).all()
    assert (aligned.right["11"] == 0.0).all()
    expected = aligned.left - aligned.right
    pd.testing.assert_frame_equal(aligned.difference, expected)
    assert aligned.difference.loc["A", "11"] == pytest.approx(0.5)
    assert aligned.difference.loc["A", "01"] == pytest.approx(-0.3)


def test_union_drops_null_and_counts_column(make_fit):
    left = make_fit([[0.1, 0.1]], ["A"], ["100", "011"])
    right = make_fit([[0.1, 0.1]], ["A"], ["011", "111"])
    cats = union_categories(left, right)
    assert sorted(cats.index) == ["011", "100", "111"]
    assert "Counts" not in cats.columns
    assert (cats.sum(axis=1) > 0).all()


def test_marker_mismatch_rejected(make_fit):
    left = make_fit([[0.1]], ["A"], ["10"], markers=["TNFa", "IFNg"])
    right = make_fit([[0.1]], ["A"], ["10"], markers=["TNFa", "IL2"])
    with pytest.raises(ValueError, match="Marker columns differ"):
        union_categories(left, right)


def test_unmatched_columns_are_internal_error():
    cats = pd.DataFrame({"M1": [0], "M2": [1]}, index=pd.Index(["01"], name="category"))
    left = pd.DataFrame({"01": [0.1], "10": [0.2]}, index=["A"])
    right = pd.DataFrame({"01": [0.3]}, index=["A"])
    with pytest.raises(RuntimeError, match="Internal error"):
        reconcile_categories(left, right, cats)


def test_row_annotation_deduplicated_and_reindexed():
    meta = pd.DataFrame(
        {
            "ptid": ["B", "A", "B", "C"],
            "group": ["g2", "g1", "dup", "g3"],
        }
    )
    ann = build_row_annotation(pd.Index(["A", "B", "D"]), meta, "ptid", ["group"])
    assert list(ann.index) == ["A", "B", "D"]
    assert ann.loc["B", "group"] == "g2"
    assert pd.isna(ann.loc["D", "group"])
    assert build_row_annotation(pd.Index(["A"]), meta, "ptid", None) is None


def test_unknown_annotation_column_raises(make_fit):
    fit = make_fit([[0.1]], ["A"], ["1"])
    with pytest.raises(KeyError, match="visit"):
        normalize_results(fit, fit, row_annotation=["visit"])
