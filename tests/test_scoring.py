"""Tests for single-variable significance scoring."""
import numpy as np
import pytest

from variable_treatment.src.evaluation.scoring import (
    Outcome,
    OutcomeType,
    cat_score,
    lin_score,
    normalize_weights,
    score_variable,
    validate_weights,
)


def test_lin_score_perfect_fit():
    """A perfectly linear relation is maximally significant with the exact fit."""
    x = np.arange(10, dtype=float)
    y = 3.0 + 2.0 * x
    record = lin_score("x", x, y)
    assert record.sig < 1e-12
    assert record.effect_size == pytest.approx(1.0)
    assert record.slope == pytest.approx(2.0)
    assert record.center == pytest.approx(3.0)


def test_lin_score_noise_is_not_significant(rng):
    """Independent noise should not look significant."""
    x = rng.normal(size=500)
    y = rng.normal(size=500)
    record = lin_score("x", x, y)
    assert record.sig > 0.001
    assert 0.0 <= record.effect_size < 0.05


def test_degenerate_inputs_give_neutral_record():
    """Constant inputs never raise; they are reported as no effect."""
    x = np.ones(20)
    y = np.arange(20, dtype=float)
    for record in (lin_score("x", x, y), cat_score("x", x, (y > 10).astype(float))):
        assert record.sig == 1.0
        assert record.slope == 0.0
        assert record.center == 0.0


def test_extra_dof_reduces_significance(rng):
    """Degrees of freedom spent building x make the same fit less significant."""
    x = rng.normal(size=60)
    y = 0.3 * x + rng.normal(size=60)
    plain = lin_score("x", x, y)
    penalised = lin_score("x", x, y, extra_dof=5)
    assert penalised.sig > plain.sig


def test_cat_score_detects_signal(rng):
    """A strongly predictive column gets a small logistic significance."""
    x = rng.normal(size=400)
    y = (x + rng.normal(scale=0.5, size=400) > 0).astype(float)
    record = cat_score("x", x, y)
    assert record.sig < 1e-6
    assert record.slope > 0
    assert 0.0 < record.effect_size <= 1.0


def test_score_variable_dispatch(rng):
    """Binary outcomes take significance from the logistic test; no outcome is neutral."""
    x = rng.normal(size=200)
    y = (x > 0).astype(float)
    binary = Outcome(kind=OutcomeType.BINARY, values=y, target=True)

    linear_scaled = score_variable("x", x, binary)
    link_scaled = score_variable("x", x, binary, cat_scaling=True)
    assert linear_scaled.sig == pytest.approx(link_scaled.sig)
    assert linear_scaled.slope != pytest.approx(link_scaled.slope)

    none = Outcome(kind=OutcomeType.NONE, values=np.zeros(200))
    assert score_variable("x", x, none).sig == 1.0


def test_validate_weights():
    """Invalid weights raise ValueError; None means unit weights."""
    np.testing.assert_array_equal(validate_weights(None, 3), np.ones(3))
    with pytest.raises(ValueError, match="length"):
        validate_weights([1.0, 1.0], 3)
    with pytest.raises(ValueError, match="non-negative"):
        validate_weights([1.0, -1.0, 1.0], 3)
    with pytest.raises(ValueError, match="finite"):
        validate_weights([1.0, np.nan, 1.0], 3)
    with pytest.raises(ValueError, match="two strictly positive"):
        validate_weights([0.0, 0.0, 1.0], 3)


def test_normalize_weights_mean_one():
    w = normalize_weights(np.array([2.0, 4.0, 0.0, 6.0]))
    assert w[w > 0].mean() == pytest.approx(1.0)
    assert w[2] == 0.0
