"""Tests for rare-level pooling."""
import numpy as np
import pytest

from variable_treatment.src.data.columns import RARE_LEVEL
from variable_treatment.src.evaluation.scoring import Outcome, OutcomeType
from variable_treatment.src.models.pooling import apply_pooling, level_table, pool_levels


def _levels_and_outcome():
    """Two common levels with a weak outcome rate and one tiny level that always hits."""
    levels = np.array(["x a"] * 50 + ["x b"] * 48 + ["x c"] * 2, dtype=object)
    y = np.zeros(100)
    y[:10] = 1.0  # 20% of a
    y[50:60] = 1.0  # ~21% of b
    y[98:] = 1.0  # every c row
    outcome = Outcome(kind=OutcomeType.BINARY, values=y, target=True)
    return levels, outcome, np.ones(100)


def test_min_fraction_pools_infrequent_levels():
    levels, outcome, weights = _levels_and_outcome()
    pooling = pool_levels(levels, outcome, weights, min_fraction=0.05)
    assert pooling.kept_levels == frozenset({"x a", "x b"})
    pooled = apply_pooling(levels, pooling)
    assert set(pooled[98:]) == {RARE_LEVEL}


def test_kept_levels_respect_min_fraction(rng):
    """No kept level is below min_fraction unless it was rescued by rare_sig."""
    levels = rng.choice(["x p", "x q", "x r", "x s", "x t"], size=400, p=[0.5, 0.3, 0.15, 0.04, 0.01])
    outcome = Outcome(kind=OutcomeType.NUMERIC, values=rng.normal(size=400))
    for min_fraction in (0.0, 0.02, 0.1, 0.4):
        pooling = pool_levels(levels, outcome, np.ones(400), min_fraction=min_fraction)
        for level in pooling.kept_levels - pooling.rescued_levels:
            assert pooling.level_fractions[level] >= min_fraction


def test_rare_sig_retains_significant_level():
    """A strong infrequent signal survives pooling when rare_sig is set."""
    levels, outcome, weights = _levels_and_outcome()
    pooling = pool_levels(levels, outcome, weights, min_fraction=0.05, rare_sig=0.5)
    assert "x c" in pooling.kept_levels
    assert pooling.rescued_levels == frozenset({"x c"})


def test_rare_count_is_a_hard_floor_over_rare_sig():
    """rare_count pools regardless of rare_sig; rare_sig never removes a level."""
    levels, outcome, weights = _levels_and_outcome()

    floored = pool_levels(levels, outcome, weights, min_fraction=0.05, rare_count=2, rare_sig=0.5)
    assert "x c" not in floored.kept_levels

    without_sig = pool_levels(levels, outcome, weights, min_fraction=0.0)
    with_sig = pool_levels(levels, outcome, weights, min_fraction=0.0, rare_sig=1e-12)
    assert with_sig.kept_levels == without_sig.kept_levels == frozenset({"x a", "x b", "x c"})


def test_unseen_levels_map_to_rare():
    levels, outcome, weights = _levels_and_outcome()
    pooling = pool_levels(levels, outcome, weights, min_fraction=0.05)
    out = apply_pooling(np.array(["x a", "x zzz", "NA"], dtype=object), pooling)
    assert list(out) == ["x a", RARE_LEVEL, RARE_LEVEL]


def test_level_table_uses_weights():
    table = level_table(np.array(["x a", "x a", "x b"], dtype=object), np.array([1.0, 1.0, 2.0]))
    assert table.loc["x a", "count"] == 2
    assert table.loc["x b", "fraction"] == pytest.approx(0.5)
