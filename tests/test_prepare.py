"""Tests for applying treatment plans."""
import dataclasses

import numpy as np
import pandas as pd
import pytest

from variable_treatment.src.models.config import TreatmentConfig, TreatmentConfigError
from variable_treatment.src.models.plan import design_treatments_c, design_treatments_n, design_treatments_z
from variable_treatment.src.models.prepare import prepare, useable_vars


@pytest.fixture
def binary_plan(binary_frame, config):
    return design_treatments_c(binary_frame, ["cat", "num", "noise"], "y", True, config=config)


def test_output_is_finite_and_aligned(binary_frame, binary_plan):
    frame = binary_frame.set_index(pd.Index([f"r{i}" for i in range(len(binary_frame))]))
    treated = prepare(binary_plan, frame)
    features = treated.drop(columns=["y"])
    assert np.isfinite(features.to_numpy()).all()
    assert treated.index.equals(frame.index)
    assert list(features.columns) == useable_vars(binary_plan)
    np.testing.assert_array_equal(treated["y"].to_numpy(), frame["y"].to_numpy())


def test_prepare_is_idempotent(binary_frame, binary_plan):
    first = prepare(binary_plan, binary_frame)
    second = prepare(binary_plan, binary_frame)
    pd.testing.assert_frame_equal(first, second)


def test_extreme_and_missing_values_stay_finite(binary_plan):
    frame = pd.DataFrame(
        {
            "cat": [None, "a", "zzz"],
            "num": [np.inf, -np.inf, np.nan],
            "noise": [1e300, np.nan, 0.0],
        }
    )
    treated = prepare(binary_plan, frame)
    assert np.isfinite(treated.to_numpy()).all()
    assert "y" not in treated.columns


def test_novel_level_uses_rare_encoding(binary_frame, binary_plan):
    frame = binary_frame.head(2).copy()
    frame["cat"] = ["never_seen", "a"]
    treated = prepare(binary_plan, frame)
    lev_cols = [c for c in treated.columns if c.startswith("cat_lev_")]
    assert (treated.loc[0, lev_cols] == 0).all()
    assert treated.loc[0, "cat_catB"] == 0.0
    assert treated.loc[1, "cat_lev_x.a"] == 1.0


def test_pruning_law(binary_frame, binary_plan):
    """Useable variables are exactly the moving ones with sig <= p, monotone in p."""
    score_frame = binary_plan.score_frame
    previous = set()
    for p in (1e-12, 1e-6, 1e-3, 0.05, 0.5, 1.0):
        expected = set(score_frame.loc[score_frame["var_moves"] & (score_frame["sig"] <= p), "var_name"])
        assert set(useable_vars(binary_plan, prune_sig=p)) == expected
        if expected:
            treated = prepare(binary_plan, binary_frame, prune_sig=p)
            assert set(treated.columns) - {"y"} == expected
        else:
            with pytest.raises(TreatmentConfigError):
                prepare(binary_plan, binary_frame, prune_sig=p)
        assert previous <= expected
        previous = expected


def test_no_outcome_plan_ignores_pruning(binary_frame, config):
    plan = design_treatments_z(binary_frame, ["cat", "num"], config=config)
    score_frame = plan.score_frame
    moving = score_frame.loc[score_frame["var_moves"], "var_name"].tolist()
    unpruned = prepare(plan, binary_frame.drop(columns=["y"]))
    pruned = prepare(plan, binary_frame.drop(columns=["y"]), prune_sig=0.0)
    assert list(unpruned.columns) == moving
    pd.testing.assert_frame_equal(unpruned, pruned)


def test_restrictions(binary_frame, binary_plan):
    treated = prepare(binary_plan, binary_frame, code_restriction=["clean"])
    assert set(treated.columns) == {"num_clean", "noise_clean", "y"}

    treated = prepare(binary_plan, binary_frame, var_restriction=["num_isBAD"])
    assert list(treated.columns) == ["num_isBAD", "y"]

    with pytest.raises(TreatmentConfigError, match="No useable"):
        prepare(binary_plan, binary_frame, var_restriction=["nope"])


def test_missing_source_column_and_empty_frame(binary_frame, binary_plan):
    with pytest.raises(TreatmentConfigError, match="not found"):
        prepare(binary_plan, binary_frame.drop(columns=["num"]))
    with pytest.raises(TreatmentConfigError):
        prepare(binary_plan, binary_frame.iloc[0:0])


def test_type_drift_warns(binary_frame, binary_plan):
    frame = binary_frame.copy()
    frame["num"] = frame["num"].astype(str)
    with pytest.warns(RuntimeWarning, match="'num'"):
        treated = prepare(binary_plan, frame)
    assert np.isfinite(treated["num_clean"]).all()


def test_stale_plan_warns(binary_frame, binary_plan):
    stale = dataclasses.replace(binary_plan, version="0.0.0")
    with pytest.warns(RuntimeWarning, match="version"):
        prepare(stale, binary_frame)


def test_scale_puts_columns_on_outcome_units(numeric_frame, config):
    plan = design_treatments_n(numeric_frame, ["cat", "num"], "y", config=config)
    treated = prepare(plan, numeric_frame, scale=True, var_restriction=["num_clean"])
    slope, intercept = np.polyfit(treated["num_clean"], numeric_frame["y"], 1)
    assert slope == pytest.approx(1.0, abs=1e-6)
    assert intercept == pytest.approx(0.0, abs=1e-6)


def test_scale_is_ignored_without_outcome(binary_frame, config):
    plan = design_treatments_z(binary_frame, ["num"], config=config)
    with pytest.warns(RuntimeWarning, match="scale"):
        scaled = prepare(plan, binary_frame, scale=True)
    pd.testing.assert_frame_equal(scaled, prepare(plan, binary_frame))


def test_collar_clips_to_design_bounds(numeric_frame):
    plan = design_treatments_n(numeric_frame, ["num"], "y", config=TreatmentConfig(collar_prob=0.1, random_state=0))
    lower, upper = plan.treatments_for("num")[1].params["collar"]
    frame = numeric_frame.copy()
    frame.loc[0, "num"] = 1e6
    collared = prepare(plan, frame, do_collar=True)
    assert collared["num_clean"].between(lower, upper).all()
    assert prepare(plan, frame)["num_clean"].iloc[0] == 1e6
