"""Treatment factory: design all treatments for one (variable, outcome) pair.

Dispatch is on the column kind decided once by
:func:`~variable_treatment.src.data.columns.column_kind`:

Numeric columns
    - ``<var>_isBAD``: 1 where the value is missing/NaN/inf (only when some but
      not all values are bad).
    - ``<var>_clean``: the value with bad entries replaced by the weighted mean
      of the good ones; collar bounds are stored for ``do_collar``.

Categorical / date / other columns (after rare-level pooling)
    - ``<var>_lev_<level>``: 0/1 indicator per kept level (and the pooled
      ``rare`` level when it is frequent enough).
    - ``<var>_catB`` / ``<var>_catN``: smoothed impact code (binary/numeric
      outcome), relative to the global mean so unseen levels encode as 0.
    - ``<var>_catP``: level prevalence.
    - ``<var>_catD``: within-level outcome standard deviation (numeric outcome).
    - ``<var>_<code>``: caller-supplied custom coders.

Impact, indicator, deviation and custom codes have many fitted degrees of
freedom: they are flagged ``needs_split`` and their design-time significance is
later replaced by an out-of-fold estimate (see :mod:`.cross_frame`).
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from variable_treatment.src.data.columns import (
    ColumnKind,
    RARE_LEVEL,
    as_levels,
    as_numeric,
    bad_mask,
    column_kind,
    column_signature,
    is_categorical_kind,
    make_name,
)
from variable_treatment.src.evaluation.scoring import Outcome, OutcomeType, score_variable

from .config import TreatmentConfig
from .pooling import apply_pooling, pool_levels
from .treatments import (
    CODE_CAT_B,
    CODE_CAT_D,
    CODE_CAT_N,
    CODE_CAT_P,
    CODE_CLEAN,
    CODE_IS_BAD,
    CODE_LEV,
    Treatment,
    TreatmentKind,
)

logger = logging.getLogger(__name__)

_PROB_EPS = 1e-6


def _logit(p: np.ndarray) -> np.ndarray:
    p = np.clip(p, _PROB_EPS, 1.0 - _PROB_EPS)
    return np.log(p / (1.0 - p))


def _weighted_mean(values: np.ndarray, weights: np.ndarray) -> float:
    total = float(np.sum(weights))
    if total <= 0.0:
        return float(np.mean(values)) if len(values) else 0.0
    return float(np.sum(values * weights) / total)


# ---------------------------------------------------------------------------
# Numeric treatments
# ---------------------------------------------------------------------------


def _numeric_treatments(
    var_name: str,
    column: pd.Series,
    weights: np.ndarray,
    config: TreatmentConfig,
) -> List[Treatment]:
    x = as_numeric(column)
    bad = bad_mask(x)
    n_bad = int(bad.sum())
    if n_bad >= len(x):
        logger.debug("Column '%s' has no usable values; no treatments.", var_name)
        return []

    kind = column_kind(column)
    dtype = column_signature(column)
    out: List[Treatment] = []

    if n_bad > 0 and config.allows(CODE_IS_BAD):
        out.append(
            Treatment(
                orig_var=var_name,
                new_vars=(make_name(var_name, "isBAD"),),
                kind=TreatmentKind.IS_BAD,
                code=CODE_IS_BAD,
                params={},
                orig_kind=kind,
                orig_dtype=dtype,
            )
        )

    good = x[~bad]
    if np.ptp(good) > 0.0 and config.allows(CODE_CLEAN):
        good_w = weights[~bad]
        mean = _weighted_mean(good, good_w)
        lower, upper = np.quantile(good, [config.collar_prob, 1.0 - config.collar_prob])
        out.append(
            Treatment(
                orig_var=var_name,
                new_vars=(make_name(var_name, "clean"),),
                kind=TreatmentKind.CLEAN,
                code=CODE_CLEAN,
                params={"mean": mean, "collar": (float(lower), float(upper))},
                orig_kind=kind,
                orig_dtype=dtype,
            )
        )
    return out


# ---------------------------------------------------------------------------
# Categorical coders
# ---------------------------------------------------------------------------


def _grouped(pooled: np.ndarray, values: np.ndarray, weights: np.ndarray) -> pd.DataFrame:
    """Per pooled level: weight total and weighted outcome sum."""
    df = pd.DataFrame({"level": pooled, "w": weights, "wy": weights * values})
    return df.groupby("level", sort=True)[["w", "wy"]].sum()


def _impact_table(pooled: np.ndarray, outcome: Outcome, weights: np.ndarray, sm_factor: float) -> Dict[str, float]:
    y = outcome.values.astype(float)
    global_mean = _weighted_mean(y, weights)
    grouped = _grouped(pooled, y, weights)
    smoothed = (grouped["wy"] + sm_factor * global_mean) / (grouped["w"] + sm_factor)
    # levels carrying zero weight fall back to the global mean
    smoothed = smoothed.where(np.isfinite(smoothed), global_mean)
    if outcome.kind is OutcomeType.BINARY:
        codes = _logit(smoothed.to_numpy()) - _logit(np.array([global_mean]))[0]
    else:
        codes = smoothed.to_numpy() - global_mean
    return {str(lvl): float(c) for lvl, c in zip(smoothed.index, codes)}


def _deviation_table(pooled: np.ndarray, outcome: Outcome, weights: np.ndarray) -> Dict[str, float]:
    y = outcome.values.astype(float)
    table: Dict[str, float] = {}
    for level in np.unique(pooled):
        mask = pooled == level
        w = weights[mask]
        if float(np.sum(w)) <= 0.0 or int(mask.sum()) < 2:
            table[str(level)] = 0.0
            continue
        mu = _weighted_mean(y[mask], w)
        table[str(level)] = float(np.sqrt(_weighted_mean((y[mask] - mu) ** 2, w)))
    return table


def _prevalence_table(pooled: np.ndarray, weights: np.ndarray) -> Dict[str, float]:
    grouped = pd.DataFrame({"level": pooled, "w": weights}).groupby("level", sort=True)["w"].sum()
    total = float(grouped.sum())
    if total <= 0.0:
        return {}
    return {str(lvl): float(w) / total for lvl, w in grouped.items()}


def _custom_table(
    key: str,
    coder: Callable[..., object],
    var_name: str,
    pooled: np.ndarray,
    outcome: Outcome,
    weights: np.ndarray,
) -> Optional[Dict[str, float]]:
    """Run a custom coder and reduce its per-row codes to a level table."""
    try:
        codes = np.asarray(coder(var_name, pooled, outcome.values, weights), dtype=float).reshape(-1)
    except Exception as exc:
        logger.warning("Custom coder '%s' failed on '%s' (%s); skipped.", key, var_name, exc)
        return None
    if codes.shape[0] != pooled.shape[0]:
        logger.warning(
            "Custom coder '%s' returned %d codes for %d rows on '%s'; skipped.",
            key,
            codes.shape[0],
            pooled.shape[0],
            var_name,
        )
        return None
    codes = np.where(np.isfinite(codes), codes, 0.0)
    grouped = _grouped(pooled, codes, weights)
    means = (grouped["wy"] / grouped["w"]).where(grouped["w"] > 0, 0.0)
    return {str(lvl): float(v) for lvl, v in means.items()}


_CUSTOM_PREFIX = {OutcomeType.BINARY: "c", OutcomeType.NUMERIC: "n", OutcomeType.NONE: "z"}


def _categorical_treatments(
    var_name: str,
    column: pd.Series,
    outcome: Outcome,
    weights: np.ndarray,
    config: TreatmentConfig,
) -> List[Treatment]:
    levels = as_levels(column)
    pooling = pool_levels(
        levels,
        outcome,
        weights,
        min_fraction=config.min_fraction,
        rare_count=config.rare_count,
        rare_sig=config.rare_sig,
    )
    pooled = apply_pooling(levels, pooling)
    n_pooled_levels = len(np.unique(pooled))
    if n_pooled_levels <= 1:
        logger.debug("Column '%s' collapses to a single level; no treatments.", var_name)
        return []

    kind = column_kind(column)
    dtype = column_signature(column)
    extra = max(n_pooled_levels - 1, 0)
    out: List[Treatment] = []

    def _make(name_part: str, tkind: TreatmentKind, code: str, params, needs_split: bool, extra_dof: int = 0):
        return Treatment(
            orig_var=var_name,
            new_vars=(make_name(var_name, name_part),),
            kind=tkind,
            code=code,
            params=dict(params, pooling=pooling),
            orig_kind=kind,
            orig_dtype=dtype,
            needs_split=needs_split,
            extra_model_degrees=extra_dof,
        )

    if config.allows(CODE_LEV):
        indicator_levels = sorted(pooling.kept_levels)
        total = float(np.sum(weights))
        rare_mass = float(np.sum(weights[pooled == RARE_LEVEL])) / total if total > 0.0 else 0.0
        if RARE_LEVEL in set(pooled) and rare_mass >= config.min_fraction:
            indicator_levels.append(RARE_LEVEL)
        for level in indicator_levels:
            out.append(_make(f"lev_{level}", TreatmentKind.LEV, CODE_LEV, {"level": level}, True))

    if outcome.kind is not OutcomeType.NONE:
        impact_code = CODE_CAT_B if outcome.kind is OutcomeType.BINARY else CODE_CAT_N
        if config.allows(impact_code):
            table = _impact_table(pooled, outcome, weights, float(config.sm_factor))
            out.append(
                _make(impact_code, TreatmentKind.IMPACT, impact_code, {"table": table, "default": 0.0}, True, extra)
            )

    if config.allows(CODE_CAT_P):
        table = _prevalence_table(pooled, weights)
        out.append(_make(CODE_CAT_P, TreatmentKind.CAT_P, CODE_CAT_P, {"table": table, "default": 0.0}, False))

    if outcome.kind is OutcomeType.NUMERIC and config.allows(CODE_CAT_D):
        table = _deviation_table(pooled, outcome, weights)
        out.append(_make(CODE_CAT_D, TreatmentKind.CAT_D, CODE_CAT_D, {"table": table, "default": 0.0}, True, extra))

    prefix = _CUSTOM_PREFIX[outcome.kind]
    for key, coder in config.custom_coders.items():
        key_prefix, _, code = str(key).partition(".")
        if key_prefix != prefix or not config.allows(code):
            continue
        table = _custom_table(key, coder, var_name, pooled, outcome, weights)
        if table is None:
            continue
        out.append(
            _make(
                code,
                TreatmentKind.CUSTOM,
                code,
                {"table": table, "default": 0.0},
                outcome.kind is not OutcomeType.NONE,
                extra,
            )
        )
    return out


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def design_variable(
    var_name: str,
    column: pd.Series,
    outcome: Outcome,
    weights: np.ndarray,
    config: TreatmentConfig,
    *,
    score: bool = True,
) -> List[Treatment]:
    """Build (and by default score) every applicable treatment for one column.

    Parameters
    ----------
    var_name:
        Source column name.
    column:
        Training values of the column.
    outcome:
        Outcome aligned with ``column``.
    weights:
        Validated row weights aligned with ``column``.
    config:
        Design configuration.
    score:
        If True (default), attach a provisional :class:`ScaleRecord` computed on
        the training column. Fold-local designs in the cross-frame builder skip
        this.

    Returns
    -------
    list of Treatment
        Possibly empty (all-missing, constant or single-level columns).
    """
    kind = column_kind(column)
    if kind is ColumnKind.NUMERIC:
        treatments = _numeric_treatments(var_name, column, weights, config)
    elif is_categorical_kind(kind):
        treatments = _categorical_treatments(var_name, column, outcome, weights, config)
    else:  # pragma: no cover - the kind set is closed
        raise ValueError(f"Unhandled column kind {kind!r} for '{var_name}'.")

    if not score:
        return treatments

    scored: List[Treatment] = []
    for treatment in treatments:
        values = treatment.transform(column)
        records = tuple(
            score_variable(
                name,
                values[name].to_numpy(),
                outcome,
                weights,
                extra_dof=treatment.extra_model_degrees,
                cat_scaling=config.cat_scaling,
            )
            for name in treatment.new_vars
        )
        scored.append(treatment.with_scales(records))
    return scored


__all__ = ["design_variable"]
