from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from cytodiff.core.expressions import And, Name, Not, evaluate_mask, parse_expression
from cytodiff.core.rows import matching_individuals


def _markers() -> pd.DataFrame:
    return pd.DataFrame({"TNFa": [1, 1, 0, 0], "IFNg": [1, 0, 1, 0], "IL-2": [0, 1, 1, 0]})


def _meta() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "visit": ["V1", "V2", "V2", None],
            "age": [25.0, 40.0, np.nan, 33.0],
            "arm": ["A", "B", "C", "A"],
        }
    )


def test_conjunction_requires_both_markers():
    mask = evaluate_mask("TNFa & IFNg", _markers())
    assert mask.tolist() == [True, False, False, False]


def test_disjunction_negation_and_keywords():
    frame = _markers()
    assert evaluate_mask("TNFa | !IFNg", frame).tolist() == [True, True, False, True]
    assert evaluate_mask("not TNFa and IFNg", frame).tolist() == [False, False, True, False]
    assert evaluate_mask("(TNFa || IFNg) && !TNFa", frame).tolist() == [False, False, True, False]


def test_backquoted_names_and_numeric_comparison():
    frame = _markers()
    assert evaluate_mask("`IL-2` == 1 & TNFa", frame).tolist() == [False, True, False, False]


def test_metadata_comparisons_treat_missing_as_false():
    meta = _meta()
    assert evaluate_mask('visit == "V2"', meta).tolist() == [False, True, True, False]
    assert evaluate_mask('visit != "V2"', meta).tolist() == [True, False, False, False]
    assert evaluate_mask("age >= 33", meta).tolist() == [False, True, False, True]
    assert evaluate_mask('visit == "V2" & age > 30', meta).tolist() == [False, True, False, False]


def test_membership_in_r_and_python_spelling():
    meta = _meta()
    assert evaluate_mask('arm %in% c("A", "C")', meta).tolist() == [True, False, True, True]
    assert evaluate_mask("arm in ['B']", meta).tolist() == [False, True, False, False]
    assert evaluate_mask("!(arm %in% c('A'))", meta).tolist() == [False, True, True, False]


def test_boolean_literals():
    frame = _markers()
    assert evaluate_mask("TRUE", frame).all()
    assert not evaluate_mask("False | FALSE", frame).any()


def test_parsed_nodes_compose_with_operators():
    expr = Name("TNFa") & ~Name("IFNg")
    assert isinstance(expr, And)
    assert isinstance(expr.operands[1], Not)
    assert expr.names() == {"TNFa", "IFNg"}
    assert expr.mask(_markers()).tolist() == [False, True, False, False]
    assert parse_expression(expr) is expr


def test_unknown_name_raises_key_error():
    with pytest.raises(KeyError, match="CD154"):
        evaluate_mask("CD154 & TNFa", _markers())


@pytest.mark.parametrize(
    "text",
    ["TNFa &", "(TNFa | IFNg", "TNFa IFNg", "TNFa $ IFNg", "arm %in% c(visit)"],
)
def test_malformed_expressions_raise_value_error(text):
    with pytest.raises(ValueError, match="expression|position"):
        parse_expression(text)


def test_empty_expression_rejected():
    with pytest.raises(ValueError, match="empty"):
        parse_expression("   ")


def test_negation_keeps_missing_rows_unselected():
    meta = _meta()
    assert evaluate_mask('!(visit == "V2")', meta).tolist() == [True, False, False, False]
    assert evaluate_mask("!(age > 30)", meta).tolist() == [True, False, False, False]
    assert evaluate_mask("not not (age > 30)", meta).tolist() == [False, True, False, True]


def test_and_or_follow_three_valued_logic():
    meta = _meta()
    # A false operand decides `&`, a true operand decides `|`, even next to a missing one.
    assert evaluate_mask('!(age > 30 & arm == "A")', meta).tolist() == [True, True, True, False]
    assert evaluate_mask('!(visit == "V2" | arm == "C")', meta).tolist() == [True, False, False, False]
    assert evaluate_mask('!(visit == "V1" | arm == "A")', meta).tolist() == [False, True, True, False]


def test_row_subset_negation_drops_missing_individuals():
    meta = pd.DataFrame({"ptid": ["A", "B", "C"], "grp": ["x", None, "y"]})
    assert matching_individuals(meta, "ptid", '!(grp == "x")') == {"C"}
    assert matching_individuals(meta, "ptid", 'grp != "x"') == {"C"}
