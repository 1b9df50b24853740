"""Tests for the per-variable treatment factory."""
import logging

import numpy as np
import pandas as pd
import pytest

from variable_treatment.src.data.columns import ColumnKind, column_kind, make_name
from variable_treatment.src.evaluation.scoring import Outcome, OutcomeType
from variable_treatment.src.models.config import TreatmentConfig
from variable_treatment.src.models.factory import design_variable
from variable_treatment.src.models.treatments import TreatmentKind


def _numeric_outcome(n):
    return Outcome(kind=OutcomeType.NUMERIC, values=np.arange(n, dtype=float))


def test_one_na_in_seven_rows():
    """isBAD flags exactly the missing row; clean imputes the mean of the other six."""
    column = pd.Series([1.0, 2.0, 3.0, np.nan, 5.0, 6.0, 10.0])
    treatments = design_variable("x", column, _numeric_outcome(7), np.ones(7), TreatmentConfig())
    by_code = {t.code: t for t in treatments}
    assert set(by_code) == {"isBAD", "clean"}

    is_bad = by_code["isBAD"]
    assert is_bad.new_vars == ("x_isBAD",)
    np.testing.assert_array_equal(is_bad.transform(column)["x_isBAD"], [0, 0, 0, 1, 0, 0, 0])

    clean = by_code["clean"].transform(column)["x_clean"]
    assert clean.iloc[3] == pytest.approx(np.mean([1, 2, 3, 5, 6, 10]))
    np.testing.assert_array_equal(clean.drop(index=3), column.drop(index=3))


def test_numeric_without_missing_has_no_is_bad():
    column = pd.Series([1.0, 2.0, 3.0, 4.0])
    treatments = design_variable("x", column, _numeric_outcome(4), np.ones(4), TreatmentConfig())
    assert [t.code for t in treatments] == ["clean"]


@pytest.mark.parametrize(
    "values",
    [[np.nan] * 5, [2.0] * 5, ["k"] * 5],
)
def test_degenerate_columns_produce_nothing(values):
    column = pd.Series(values)
    assert design_variable("x", column, _numeric_outcome(5), np.ones(5), TreatmentConfig()) == []


def test_categorical_binary_outcome_codes():
    column = pd.Series(["a", "b", "a", "b", "c", "c", "a", "b"] * 5)
    y = (column == "a").to_numpy().astype(float)
    outcome = Outcome(kind=OutcomeType.BINARY, values=y, target=True)
    treatments = design_variable("x", column, outcome, np.ones(len(column)), TreatmentConfig())

    codes = [t.code for t in treatments]
    assert codes.count("lev") == 3
    assert "catB" in codes and "catP" in codes
    assert "catN" not in codes and "catD" not in codes

    impact = next(t for t in treatments if t.code == "catB")
    assert impact.needs_split
    assert impact.extra_model_degrees == 2
    assert impact.kind is TreatmentKind.IMPACT
    out = impact.transform(pd.Series(["a", "b", "zzz"]))["x_catB"]
    assert out.iloc[0] > 0 > out.iloc[1]
    assert out.iloc[2] == 0.0

    lev_names = [t.new_vars[0] for t in treatments if t.code == "lev"]
    assert lev_names == ["x_lev_x.a", "x_lev_x.b", "x_lev_x.c"]


def test_numeric_outcome_adds_deviation_code():
    column = pd.Series(["a", "b"] * 10)
    y = np.where(column == "a", 0.0, 10.0) + np.tile([0.0, 0.0, 1.0, 1.0], 5)
    outcome = Outcome(kind=OutcomeType.NUMERIC, values=y)
    treatments = design_variable("x", column, outcome, np.ones(20), TreatmentConfig())
    codes = [t.code for t in treatments]
    assert "catN" in codes and "catD" in codes
    cat_d = next(t for t in treatments if t.code == "catD")
    assert (cat_d.transform(column)["x_catD"] > 0).all()


def test_code_restriction_limits_output():
    column = pd.Series(["a", "b"] * 10)
    outcome = Outcome(kind=OutcomeType.NUMERIC, values=np.arange(20, dtype=float))
    config = TreatmentConfig(code_restriction=["catP"])
    treatments = design_variable("x", column, outcome, np.ones(20), config)
    assert [t.code for t in treatments] == ["catP"]


def test_rare_indicator_when_pooled_mass_is_large():
    """Pooled levels get their own indicator when together they are frequent enough."""
    column = pd.Series(["a"] * 10 + ["b"] * 10 + [f"r{i}" for i in range(6)])
    outcome = Outcome(kind=OutcomeType.NUMERIC, values=np.arange(26, dtype=float))
    treatments = design_variable("x", column, outcome, np.ones(26), TreatmentConfig(min_fraction=0.1))
    lev_names = [t.new_vars[0] for t in treatments if t.code == "lev"]
    assert lev_names == ["x_lev_x.a", "x_lev_x.b", "x_lev_rare"]


def test_custom_coder():
    def count_coder(var_name, levels, y, weights):
        return np.array([len(str(v)) for v in levels], dtype=float)

    def broken_coder(var_name, levels, y, weights):
        raise RuntimeError("boom")

    column = pd.Series(["a", "bb"] * 10)
    outcome = Outcome(kind=OutcomeType.NUMERIC, values=np.arange(20, dtype=float))
    config = TreatmentConfig(custom_coders={"n.len": count_coder, "n.broken": broken_coder, "c.len": count_coder})
    treatments = design_variable("x", column, outcome, np.ones(20), config)
    custom = [t for t in treatments if t.kind is TreatmentKind.CUSTOM]
    assert [t.code for t in custom] == ["len"]
    assert custom[0].needs_split
    np.testing.assert_array_equal(custom[0].transform(pd.Series(["a", "bb"]))["x_len"], [3.0, 4.0])


def test_failing_custom_coders_are_skipped_with_a_warning(caplog):
    """Coders that raise or return the wrong length are logged and skipped; built-ins survive."""
    def broken_coder(var_name, levels, y, weights):
        raise KeyError("missing lookup")

    def short_coder(var_name, levels, y, weights):
        return np.zeros(3)

    column = pd.Series(["a", "b"] * 10)
    outcome = Outcome(kind=OutcomeType.NUMERIC, values=np.arange(20, dtype=float))
    config = TreatmentConfig(custom_coders={"n.broken": broken_coder, "n.short": short_coder})
    with caplog.at_level(logging.WARNING, logger="variable_treatment.src.models.factory"):
        treatments = design_variable("x", column, outcome, np.ones(20), config)

    assert not [t for t in treatments if t.kind is TreatmentKind.CUSTOM]
    assert "catN" in [t.code for t in treatments]
    assert "Custom coder 'n.broken' failed on 'x'" in caplog.text
    assert "Custom coder 'n.short' returned 3 codes for 20 rows" in caplog.text


def test_unscored_design_has_no_scale_records():
    column = pd.Series([1.0, 2.0, np.nan, 4.0])
    treatments = design_variable("x", column, _numeric_outcome(4), np.ones(4), TreatmentConfig(), score=False)
    assert all(t.scales == () for t in treatments)


def test_column_kinds_and_names():
    assert column_kind(pd.Series([True, False])) is ColumnKind.NUMERIC
    assert column_kind(pd.Series(pd.to_datetime(["2020-01-01", "2020-02-01"]))) is ColumnKind.DATE
    assert column_kind(pd.Series(["a", None])) is ColumnKind.CATEGORICAL
    assert column_kind(pd.Series([1, "a"], dtype=object)) is ColumnKind.OTHER
    assert make_name("x", "lev_x a/b") == "x_lev_x.a.b"
    assert make_name("1st", "clean") == "X1st_clean"
