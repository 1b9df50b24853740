"""Single-variable significance scoring.

Every derived column is judged by a one-variable model of the outcome:

- numeric outcome: weighted least squares ``y ~ x`` with an F-test;
- binary outcome: weighted logistic regression ``1[y == target] ~ x`` with a
  likelihood-ratio (deviance) chi-squared test;
- no outcome: nothing to test, the neutral record is returned.

The significance is corrected for ``extra_dof`` parameters already spent while
building ``x`` (e.g. one per categorical level for an impact code).

The result is a :class:`ScaleRecord`; its ``center``/``slope`` are the fitted
intercept/slope that ``prepare(..., scale=True)`` uses to move a variable to
outcome scale.

Robustness
----------
Degenerate inputs (constant ``x``, constant outcome, fewer than two positive
weights, no residual degrees of freedom) and numerical failures never raise:
they yield :func:`no_effect` (``sig=1``, zero scale). This keeps one bad column
from aborting a design pass, possibly running in a worker pool.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import numpy as np
from scipy import stats
from sklearn import metrics
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import LinearRegression, LogisticRegression

logger = logging.getLogger(__name__)

_PROB_EPS = 1e-6


class OutcomeType(str, Enum):
    BINARY = "Binary"
    NUMERIC = "Numeric"
    NONE = "None"


@dataclass(frozen=True)
class Outcome:
    """Outcome column as seen by the scorer.

    ``values`` holds the numeric outcome (NUMERIC) or the 0/1 target indicator
    (BINARY); it is all zeros for NONE.
    """

    kind: OutcomeType
    values: np.ndarray
    target: Any = None

    def subset(self, idx: np.ndarray) -> "Outcome":
        return Outcome(kind=self.kind, values=self.values[idx], target=self.target)

    @property
    def informative(self) -> bool:
        return self.kind is not OutcomeType.NONE


@dataclass(frozen=True)
class ScaleRecord:
    """Significance and outcome-scale fit of one derived variable."""

    var_name: str
    center: float
    slope: float
    sig: float
    effect_size: float
    dof: int = 1


def no_effect(name: str) -> ScaleRecord:
    """Neutral record used for degenerate or unscorable variables."""
    return ScaleRecord(var_name=name, center=0.0, slope=0.0, sig=1.0, effect_size=0.0, dof=0)


# ---------------------------------------------------------------------------
# Weight helpers
# ---------------------------------------------------------------------------


def validate_weights(weights: Optional[Any], n_rows: int) -> np.ndarray:
    """Return weights as a float array or raise ``ValueError``.

    ``None`` means unit weights. Weights must be finite, non-negative and have
    at least two strictly positive entries.
    """
    if weights is None:
        return np.ones(n_rows, dtype=float)
    w = np.asarray(weights, dtype=float).reshape(-1)
    if w.shape[0] != n_rows:
        raise ValueError(f"weights has length {w.shape[0]}, expected {n_rows}.")
    if not np.all(np.isfinite(w)):
        raise ValueError("weights must be finite.")
    if np.any(w < 0):
        raise ValueError("weights must be non-negative.")
    if int(np.sum(w > 0)) < 2:
        raise ValueError("weights must have at least two strictly positive entries.")
    return w


def normalize_weights(weights: np.ndarray) -> np.ndarray:
    """Rescale so positive weights average to 1 (weights then act as row counts)."""
    w = np.asarray(weights, dtype=float)
    positive = w > 0
    if not np.any(positive):
        return w
    return w * (float(np.sum(positive)) / float(np.sum(w[positive])))


def _prepare_inputs(x: Any, y: Any, weights: Optional[Any]):
    """Drop zero-weight rows; return ``None`` when the fit would be degenerate."""
    x = np.asarray(x, dtype=float).reshape(-1)
    y = np.asarray(y, dtype=float).reshape(-1)
    w = np.ones_like(x) if weights is None else np.asarray(weights, dtype=float).reshape(-1)
    keep = (w > 0) & np.isfinite(x) & np.isfinite(y) & np.isfinite(w)
    x, y, w = x[keep], y[keep], w[keep]
    if x.shape[0] < 2:
        return None
    if np.ptp(x) <= 0.0 or np.ptp(y) <= 0.0:
        return None
    return x, y, normalize_weights(w)


# ---------------------------------------------------------------------------
# Scorers
# ---------------------------------------------------------------------------


def lin_score(
    name: str,
    x: Any,
    y: Any,
    weights: Optional[Any] = None,
    extra_dof: int = 0,
) -> ScaleRecord:
    """Weighted linear regression of ``y`` on ``x`` with an F-test."""
    prepared = _prepare_inputs(x, y, weights)
    if prepared is None:
        return no_effect(name)
    xs, ys, ws = prepared

    n = xs.shape[0]
    df1 = 1 + int(extra_dof)
    df2 = n - 2 - int(extra_dof)
    if df2 <= 0:
        return no_effect(name)

    try:
        model = LinearRegression()
        model.fit(xs.reshape(-1, 1), ys, sample_weight=ws)
        pred = model.predict(xs.reshape(-1, 1))
        r2 = float(metrics.r2_score(ys, pred, sample_weight=ws))
    except (ValueError, FloatingPointError, np.linalg.LinAlgError) as exc:
        logger.warning("Linear scoring of '%s' failed (%s); treating as no effect.", name, exc)
        return no_effect(name)

    r2 = float(np.clip(r2, 0.0, 1.0))
    if r2 >= 1.0:
        sig = 0.0
    else:
        f_stat = (r2 / df1) / ((1.0 - r2) / df2)
        sig = float(stats.f.sf(f_stat, df1, df2))

    return ScaleRecord(
        var_name=name,
        center=float(model.intercept_),
        slope=float(model.coef_[0]),
        sig=_clean_sig(sig),
        effect_size=r2,
        dof=df1,
    )


def _binomial_deviance(y: np.ndarray, p: np.ndarray, w: np.ndarray) -> float:
    p = np.clip(p, _PROB_EPS, 1.0 - _PROB_EPS)
    return float(-2.0 * np.sum(w * (y * np.log(p) + (1.0 - y) * np.log(1.0 - p))))


def cat_score(
    name: str,
    x: Any,
    y_indicator: Any,
    weights: Optional[Any] = None,
    extra_dof: int = 0,
) -> ScaleRecord:
    """Weighted logistic regression of a 0/1 indicator on ``x`` with a deviance test."""
    prepared = _prepare_inputs(x, y_indicator, weights)
    if prepared is None:
        return no_effect(name)
    xs, ys, ws = prepared

    df = 1 + int(extra_dof)
    mu, sd = float(np.average(xs, weights=ws)), float(np.std(xs))
    if sd <= 0.0:
        return no_effect(name)
    z = ((xs - mu) / sd).reshape(-1, 1)

    try:
        model = LogisticRegression(C=1e6, max_iter=1000)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", category=ConvergenceWarning)
            model.fit(z, ys.astype(int), sample_weight=ws)
        p = model.predict_proba(z)[:, 1]
    except (ValueError, FloatingPointError, np.linalg.LinAlgError) as exc:
        logger.warning("Logistic scoring of '%s' failed (%s); treating as no effect.", name, exc)
        return no_effect(name)

    p0 = float(np.average(ys, weights=ws))
    null_dev = _binomial_deviance(ys, np.full_like(ys, p0), ws)
    dev = _binomial_deviance(ys, p, ws)
    if null_dev <= 0.0:
        return no_effect(name)
    chi_sq = max(null_dev - dev, 0.0)
    sig = float(stats.chi2.sf(chi_sq, df))

    # Undo the standardisation so the record is in the units of x.
    slope = float(model.coef_[0][0]) / sd
    center = float(model.intercept_[0]) - slope * mu
    return ScaleRecord(
        var_name=name,
        center=center,
        slope=slope,
        sig=_clean_sig(sig),
        effect_size=float(np.clip(1.0 - dev / null_dev, 0.0, 1.0)),
        dof=df,
    )


def _clean_sig(sig: float) -> float:
    if not np.isfinite(sig):
        return 1.0
    return float(np.clip(sig, 0.0, 1.0))


def score_variable(
    name: str,
    x: Any,
    outcome: Outcome,
    weights: Optional[Any] = None,
    extra_dof: int = 0,
    cat_scaling: bool = False,
) -> ScaleRecord:
    """Score one derived variable against the declared outcome.

    Parameters
    ----------
    name:
        Derived variable name (copied into the record).
    x:
        Derived numeric column.
    outcome:
        Outcome values and kind.
    weights:
        Optional non-negative row weights.
    extra_dof:
        Model degrees of freedom already consumed building ``x``.
    cat_scaling:
        Binary outcomes only: take ``center``/``slope`` from the logistic
        (link-space) fit instead of a linear fit of the 0/1 indicator.

    Returns
    -------
    ScaleRecord
        Significance always comes from the outcome-appropriate test.
    """
    if outcome.kind is OutcomeType.NONE:
        return no_effect(name)
    if outcome.kind is OutcomeType.NUMERIC:
        return lin_score(name, x, outcome.values, weights, extra_dof)

    logistic = cat_score(name, x, outcome.values, weights, extra_dof)
    if cat_scaling:
        return logistic
    linear = lin_score(name, x, outcome.values, weights, extra_dof)
    return ScaleRecord(
        var_name=name,
        center=linear.center,
        slope=linear.slope,
        sig=logistic.sig,
        effect_size=logistic.effect_size,
        dof=logistic.dof,
    )


__all__ = [
    "OutcomeType",
    "Outcome",
    "ScaleRecord",
    "no_effect",
    "validate_weights",
    "normalize_weights",
    "lin_score",
    "cat_score",
    "score_variable",
]
