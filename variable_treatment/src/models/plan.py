"""Treatment plans: design-time orchestration and the immutable plan record.

Entry points
------------
- :func:`design_treatments_c`: binary outcome (``frame[outcome] == target``).
- :func:`design_treatments_n`: numeric outcome.
- :func:`design_treatments_z`: no outcome (unsupervised cleaning only).
- :func:`mk_cross_frame_c_experiment` / :func:`mk_cross_frame_n_experiment`:
  the plan plus the cross frame itself, for training a downstream model on
  honestly encoded rows.

Design pass
-----------
1. validate the outcome, weights and configuration (fail fast);
2. run the treatment factory for every variable (one task per variable);
3. make produced names unique;
4. cross-score the ``needs_split`` columns (all columns with ``force_split``)
   on out-of-fold values, replacing their provisional scores;
5. record ``var_moves`` and build the score frame;
6. stamp the package version.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from variable_treatment.src import __version__
from variable_treatment.src.data.splits import FoldAssignment, SplitFunction, build_eval_sets
from variable_treatment.src.evaluation.scoring import Outcome, OutcomeType, score_variable, validate_weights
from variable_treatment.src.utils.parallel import TaskRunner, resolve_runner

from .config import TreatmentConfig, TreatmentConfigError
from .cross_frame import CrossFrameResult, build_cross_frame
from .factory import design_variable
from .treatments import Treatment, TreatmentKind

logger = logging.getLogger(__name__)

SCORE_FRAME_COLUMNS = [
    "var_name",
    "orig_var",
    "code",
    "sig",
    "effect_size",
    "var_moves",
    "needs_split",
    "extra_model_degrees",
]


@dataclass(frozen=True)
class TreatmentPlan:
    """Immutable result of a design call, consumed by :func:`~.prepare.prepare`."""

    outcome_name: str
    outcome_type: OutcomeType
    outcome_target: Any
    mean_y: float
    treatments: Tuple[Treatment, ...]
    _score_frame: pd.DataFrame = field(repr=False)
    version: str = __version__
    config: TreatmentConfig = field(default_factory=TreatmentConfig, repr=False)

    @property
    def score_frame(self) -> pd.DataFrame:
        """One row per produced variable (a copy; the plan itself is read-only)."""
        return self._score_frame.copy()

    @property
    def new_vars(self) -> List[str]:
        return [name for t in self.treatments for name in t.new_vars]

    @property
    def orig_vars(self) -> List[str]:
        seen: Dict[str, None] = {}
        for t in self.treatments:
            seen.setdefault(t.orig_var, None)
        return list(seen)

    def treatments_for(self, orig_var: str) -> List[Treatment]:
        return [t for t in self.treatments if t.orig_var == orig_var]

    def describe(self) -> List[str]:
        return [t.describe() for t in self.treatments]


@dataclass(frozen=True)
class CrossFrameExperiment:
    """Plan plus the cross frame built alongside it."""

    plan: TreatmentPlan
    cross_frame: pd.DataFrame
    cross_weights: np.ndarray
    eval_sets: FoldAssignment


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _check_frame(frame: pd.DataFrame, varlist: Sequence[str]) -> None:
    if not isinstance(frame, pd.DataFrame):
        raise TreatmentConfigError("frame must be a pandas DataFrame.")
    if frame.shape[0] < 1:
        raise TreatmentConfigError("frame must have at least one row.")
    missing = [v for v in varlist if v not in frame.columns]
    if missing:
        raise TreatmentConfigError(f"Variables not found in frame: {missing}")


def _check_outcome_column(frame: pd.DataFrame, outcome_name: str) -> pd.Series:
    if outcome_name not in frame.columns:
        raise TreatmentConfigError(f"Outcome column '{outcome_name}' is not a column of the frame.")
    y = frame[outcome_name]
    if y.isna().any():
        raise TreatmentConfigError(f"There are missing values in the outcome column '{outcome_name}'.")
    return y


def _binary_outcome(frame: pd.DataFrame, outcome_name: str, target: Any) -> Outcome:
    y = _check_outcome_column(frame, outcome_name)
    indicator = (y == target).to_numpy().astype(float)
    n_target = int(indicator.sum())
    n_other = int(indicator.shape[0] - n_target)
    if n_target < 2 or n_other < 2:
        raise TreatmentConfigError(
            f"frame['{outcome_name}'] == {target!r} must vary: need at least two target and two "
            f"non-target rows, got {n_target} and {n_other}."
        )
    return Outcome(kind=OutcomeType.BINARY, values=indicator, target=target)


def _numeric_outcome(frame: pd.DataFrame, outcome_name: str) -> Outcome:
    y = _check_outcome_column(frame, outcome_name)
    values = pd.to_numeric(y, errors="coerce").to_numpy(dtype=float)
    if not np.all(np.isfinite(values)):
        raise TreatmentConfigError(f"Outcome column '{outcome_name}' must hold only finite numbers.")
    ordered = np.sort(values)
    # need a cut with at least two rows strictly below and two at or above
    if ordered.shape[0] < 4 or not ordered[1] < ordered[-2]:
        raise TreatmentConfigError(
            f"frame['{outcome_name}'] must vary: need at least two rows on each side of some cut."
        )
    return Outcome(kind=OutcomeType.NUMERIC, values=values)


def _weights(weights: Optional[Any], n_rows: int) -> np.ndarray:
    try:
        return validate_weights(weights, n_rows)
    except ValueError as exc:
        raise TreatmentConfigError(f"Invalid weights: {exc}") from exc


def _resolve_config(config: Optional[TreatmentConfig]) -> TreatmentConfig:
    config = config or TreatmentConfig()
    if not isinstance(config, TreatmentConfig):
        raise TreatmentConfigError("config must be a TreatmentConfig.")
    return config.validate()


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def _design_one(
    var: str,
    *,
    frame: pd.DataFrame,
    outcome: Outcome,
    weights: np.ndarray,
    config: TreatmentConfig,
    verbose: bool,
) -> List[Treatment]:
    treatments = design_variable(var, frame[var], outcome, weights, config)
    log = logger.info if verbose else logger.debug
    log("Designed %d treatment(s) for '%s'.", len(treatments), var)
    return treatments


def _unique_names(treatments: List[Treatment]) -> Tuple[List[Treatment], Dict[Tuple, Dict[str, str]]]:
    """Suffix repeated produced names (``_2``, ``_3``, ...) in declaration order.

    The returned mapping is keyed by :attr:`Treatment.key`, so each renamed
    treatment can be matched again in fold-local designs.
    """
    used: set = set()
    renamed: List[Treatment] = []
    mapping: Dict[Tuple, Dict[str, str]] = {}
    for t in treatments:
        local: Dict[str, str] = {}
        for name in t.new_vars:
            candidate, k = name, 1
            while candidate in used:
                k += 1
                candidate = f"{name}_{k}"
            used.add(candidate)
            if candidate != name:
                local[name] = candidate
        if local:
            mapping[t.key] = local
            t = t.renamed(local)
        renamed.append(t)
    return renamed, mapping


def _moves(values: np.ndarray) -> bool:
    values = np.asarray(values, dtype=float)
    finite = values[np.isfinite(values)]
    return finite.shape[0] > 0 and float(np.max(finite)) > float(np.min(finite))


def _design_treatments_x(
    frame: pd.DataFrame,
    varlist: Sequence[str],
    outcome_name: str,
    outcome: Outcome,
    weights: np.ndarray,
    config: TreatmentConfig,
    *,
    split_function: Optional[SplitFunction],
    runner: Optional[TaskRunner],
    verbose: bool,
) -> Tuple[TreatmentPlan, Optional[CrossFrameResult]]:
    runner = resolve_runner(runner)
    varlist = [v for v in dict.fromkeys(varlist) if v != outcome_name]
    _check_frame(frame, varlist)

    log = logger.info if verbose else logger.debug
    log("Designing treatments for %d variable(s), outcome type %s.", len(varlist), outcome.kind.value)

    task = partial(_design_one, frame=frame, outcome=outcome, weights=weights, config=config, verbose=verbose)
    per_var = runner.map_reduce(task, varlist)
    treatments, rename = _unique_names([t for ts in per_var for t in ts])

    full_values: Dict[str, np.ndarray] = {}
    for t in treatments:
        out = t.transform(frame[t.orig_var])
        for name in t.new_vars:
            full_values[name] = out[name].to_numpy()
    moves = {name: _moves(col) for name, col in full_values.items()}

    cross: Optional[CrossFrameResult] = None
    if outcome.informative:
        split_vars = [
            name
            for t in treatments
            if t.needs_split or config.force_split
            for name in t.new_vars
            if moves[name]
        ]
        if split_vars:
            log("Cross-scoring %d variable(s) over %d folds.", len(split_vars), config.ncross)
            cross = build_cross_frame(
                frame,
                varlist,
                outcome,
                weights,
                config,
                treatments,
                split_vars,
                split_function=split_function,
                runner=runner,
                rename=rename,
            )
            wanted = set(split_vars)
            rescored: List[Treatment] = []
            for t in treatments:
                if not wanted.intersection(t.new_vars):
                    rescored.append(t)
                    continue
                records = []
                for name in t.new_vars:
                    if name not in wanted:
                        records.append(t.scale_for(name))
                        continue
                    cross_col = cross.cross_frame[name].to_numpy()
                    moves[name] = moves[name] and _moves(cross_col)
                    records.append(
                        score_variable(name, cross_col, outcome, weights, extra_dof=0, cat_scaling=config.cat_scaling)
                    )
                rescored.append(t.with_scales(tuple(records)))
            treatments = rescored

    rows = []
    for t in treatments:
        for name in t.new_vars:
            record = t.scale_for(name)
            rows.append(
                {
                    "var_name": name,
                    "orig_var": t.orig_var,
                    "code": t.code,
                    "sig": float(record.sig),
                    "effect_size": float(record.effect_size),
                    "var_moves": bool(moves[name]),
                    "needs_split": bool(t.needs_split),
                    "extra_model_degrees": int(t.extra_model_degrees),
                }
            )
    score_frame = pd.DataFrame(rows, columns=SCORE_FRAME_COLUMNS)

    if outcome.informative:
        mean_y = float(np.average(outcome.values, weights=weights))
    else:
        mean_y = float("nan")

    plan = TreatmentPlan(
        outcome_name=outcome_name,
        outcome_type=outcome.kind,
        outcome_target=outcome.target,
        mean_y=mean_y,
        treatments=tuple(treatments),
        _score_frame=score_frame,
        version=__version__,
        config=config,
    )
    log(
        "Plan has %d treatment(s), %d produced variable(s), %d moving.",
        len(treatments),
        score_frame.shape[0],
        int(score_frame["var_moves"].sum()),
    )
    return plan, cross


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def design_treatments_c(
    frame: pd.DataFrame,
    varlist: Sequence[str],
    outcome_name: str,
    outcome_target: Any,
    *,
    weights: Optional[Any] = None,
    config: Optional[TreatmentConfig] = None,
    split_function: Optional[SplitFunction] = None,
    runner: Optional[TaskRunner] = None,
    verbose: bool = False,
) -> TreatmentPlan:
    """Design treatments to predict ``frame[outcome_name] == outcome_target``.

    Parameters
    ----------
    frame:
        Training data (at least one row).
    varlist:
        Columns to treat; the outcome column is skipped if listed.
    outcome_name:
        Outcome column; must have no missing values and contain the target and
        another value at least twice each.
    outcome_target:
        Value of the outcome counted as "success".
    weights:
        Optional non-negative row weights.
    config:
        Design configuration (defaults to :class:`TreatmentConfig`).
    split_function:
        Optional fold split used for cross-scoring.
    runner:
        Optional task runner (one task per variable and per fold).
    verbose:
        Log progress at INFO instead of DEBUG.
    """
    config = _resolve_config(config)
    outcome = _binary_outcome(frame, outcome_name, outcome_target)
    w = _weights(weights, frame.shape[0])
    plan, _ = _design_treatments_x(
        frame, varlist, outcome_name, outcome, w, config,
        split_function=split_function, runner=runner, verbose=verbose,
    )
    return plan


def design_treatments_n(
    frame: pd.DataFrame,
    varlist: Sequence[str],
    outcome_name: str,
    *,
    weights: Optional[Any] = None,
    config: Optional[TreatmentConfig] = None,
    split_function: Optional[SplitFunction] = None,
    runner: Optional[TaskRunner] = None,
    verbose: bool = False,
) -> TreatmentPlan:
    """Design treatments to predict the numeric column ``outcome_name``.

    The outcome must be finite, non-missing and have at least two rows on each
    side of some cut. Other parameters as in :func:`design_treatments_c`.
    """
    config = _resolve_config(config)
    outcome = _numeric_outcome(frame, outcome_name)
    w = _weights(weights, frame.shape[0])
    plan, _ = _design_treatments_x(
        frame, varlist, outcome_name, outcome, w, config,
        split_function=split_function, runner=runner, verbose=verbose,
    )
    return plan


def design_treatments_z(
    frame: pd.DataFrame,
    varlist: Sequence[str],
    *,
    weights: Optional[Any] = None,
    config: Optional[TreatmentConfig] = None,
    runner: Optional[TaskRunner] = None,
    verbose: bool = False,
) -> TreatmentPlan:
    """Design outcome-free treatments (cleaning, indicators, prevalence codes).

    No significance is estimated: every score-frame ``sig`` is 1 and
    ``prepare`` ignores ``prune_sig`` for these plans.
    """
    config = _resolve_config(config)
    # a placeholder outcome name disjoint from every column
    taken = set(map(str, frame.columns)) | set(map(str, varlist))
    outcome_name = next(
        f"NO_OUTCOME_{i}" for i in range(1, len(taken) + 2) if f"NO_OUTCOME_{i}" not in taken
    )
    outcome = Outcome(kind=OutcomeType.NONE, values=np.zeros(frame.shape[0], dtype=float))
    w = _weights(weights, frame.shape[0])
    plan, _ = _design_treatments_x(
        frame, varlist, outcome_name, outcome, w, config,
        split_function=None, runner=runner, verbose=verbose,
    )
    return plan


def _experiment(plan: TreatmentPlan, cross: Optional[CrossFrameResult], frame: pd.DataFrame, weights: np.ndarray,
                split_function: Optional[SplitFunction], *, scale: bool, do_collar: bool) -> CrossFrameExperiment:
    if cross is None:
        # no split columns: the full-data treatments are used as-is
        values = [t.transform(frame[t.orig_var]) for t in plan.treatments]
        cross_frame = pd.concat(values, axis=1) if values else pd.DataFrame(index=frame.index)
        eval_sets = build_eval_sets(
            frame.shape[0], plan.config.ncross, split_function=split_function, random_state=plan.config.random_state
        )
        cross = CrossFrameResult(cross_frame=cross_frame, cross_weights=weights.copy(), eval_sets=eval_sets)

    score_frame = plan.score_frame
    good = score_frame.loc[score_frame["var_moves"], "var_name"].tolist()
    keep = [c for c in cross.cross_frame.columns if c in set(good)]
    cross_frame = cross.cross_frame[keep].copy()

    # same order as prepare: collar the cleaned values, then scale
    for t in plan.treatments:
        names = [name for name in t.new_vars if name in cross_frame.columns]
        if do_collar and t.kind is TreatmentKind.CLEAN:
            lower, upper = t.params["collar"]
            for name in names:
                cross_frame[name] = np.clip(cross_frame[name].to_numpy(), lower, upper)
        if scale:
            for name in names:
                record = t.scale_for(name)
                cross_frame[name] = record.center + record.slope * cross_frame[name].to_numpy()

    cross_frame[plan.outcome_name] = frame[plan.outcome_name].to_numpy()
    return CrossFrameExperiment(
        plan=plan,
        cross_frame=cross_frame,
        cross_weights=cross.cross_weights,
        eval_sets=cross.eval_sets,
    )


def mk_cross_frame_c_experiment(
    frame: pd.DataFrame,
    varlist: Sequence[str],
    outcome_name: str,
    outcome_target: Any,
    *,
    weights: Optional[Any] = None,
    config: Optional[TreatmentConfig] = None,
    split_function: Optional[SplitFunction] = None,
    runner: Optional[TaskRunner] = None,
    verbose: bool = False,
    scale: bool = False,
    do_collar: bool = False,
) -> CrossFrameExperiment:
    """Binary-outcome plan plus its cross frame.

    The cross frame holds the moving produced variables (split columns out of
    fold, the rest from the full-data plan) and the outcome column; train a
    downstream model on it and apply ``plan`` to new data with ``prepare``.

    ``scale`` and ``do_collar`` mean what they mean for ``prepare``; pass the
    same values to both so the model sees training and new rows on one scale.
    """
    config = _resolve_config(config)
    outcome = _binary_outcome(frame, outcome_name, outcome_target)
    w = _weights(weights, frame.shape[0])
    plan, cross = _design_treatments_x(
        frame, varlist, outcome_name, outcome, w, config,
        split_function=split_function, runner=runner, verbose=verbose,
    )
    return _experiment(plan, cross, frame, w, split_function, scale=scale, do_collar=do_collar)


def mk_cross_frame_n_experiment(
    frame: pd.DataFrame,
    varlist: Sequence[str],
    outcome_name: str,
    *,
    weights: Optional[Any] = None,
    config: Optional[TreatmentConfig] = None,
    split_function: Optional[SplitFunction] = None,
    runner: Optional[TaskRunner] = None,
    verbose: bool = False,
    scale: bool = False,
    do_collar: bool = False,
) -> CrossFrameExperiment:
    """Numeric-outcome plan plus its cross frame (see :func:`mk_cross_frame_c_experiment`)."""
    config = _resolve_config(config)
    outcome = _numeric_outcome(frame, outcome_name)
    w = _weights(weights, frame.shape[0])
    plan, cross = _design_treatments_x(
        frame, varlist, outcome_name, outcome, w, config,
        split_function=split_function, runner=runner, verbose=verbose,
    )
    return _experiment(plan, cross, frame, w, split_function, scale=scale, do_collar=do_collar)


__all__ = [
    "TreatmentPlan",
    "CrossFrameExperiment",
    "SCORE_FRAME_COLUMNS",
    "design_treatments_c",
    "design_treatments_n",
    "design_treatments_z",
    "mk_cross_frame_c_experiment",
    "mk_cross_frame_n_experiment",
]
