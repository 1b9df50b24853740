"""Apply a treatment plan to new data.

:func:`prepare` replays the stored treatments of a :class:`~.plan.TreatmentPlan`
on a frame: it never re-estimates anything from the frame it is given, so novel
levels, missing values and extreme values all land on encodings learned at
design time. The result is numeric, finite and aligned with the input index.
"""

from __future__ import annotations

import logging
import warnings
from functools import partial
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd

from variable_treatment.src import __version__
from variable_treatment.src.data.columns import column_kind
from variable_treatment.src.evaluation.scoring import OutcomeType
from variable_treatment.src.utils.parallel import TaskRunner, resolve_runner

from .config import TreatmentConfigError
from .plan import TreatmentPlan
from .treatments import Treatment

logger = logging.getLogger(__name__)


def useable_vars(
    plan: TreatmentPlan,
    *,
    prune_sig: Optional[float] = None,
    var_restriction: Optional[Iterable[str]] = None,
    code_restriction: Optional[Iterable[str]] = None,
) -> List[str]:
    """Produced variables that survive the apply-time filters, in plan order."""
    score_frame = plan.score_frame
    keep = score_frame["var_moves"].astype(bool)
    if prune_sig is not None and plan.outcome_type is not OutcomeType.NONE:
        keep &= score_frame["sig"] <= float(prune_sig)
    if var_restriction is not None:
        keep &= score_frame["var_name"].isin(set(var_restriction))
    if code_restriction is not None:
        keep &= score_frame["code"].isin(set(code_restriction))
    return score_frame.loc[keep, "var_name"].tolist()


def _check_drift(treatment: Treatment, column: pd.Series) -> None:
    kind = column_kind(column)
    dtype = str(column.dtype)
    if kind is not treatment.orig_kind or dtype != treatment.orig_dtype:
        warnings.warn(
            f"Variable '{treatment.orig_var}' was {treatment.orig_kind.value} ({treatment.orig_dtype}) "
            f"at design time and is {kind.value} ({dtype}) now; applying the stored treatment anyway.",
            RuntimeWarning,
        )


def _apply_one(
    treatment: Treatment,
    *,
    frame: pd.DataFrame,
    wanted: frozenset,
    scale: bool,
    do_collar: bool,
) -> pd.DataFrame:
    names = [v for v in treatment.new_vars if v in wanted]
    out = treatment.transform(frame[treatment.orig_var], do_collar=do_collar)[names]
    if scale:
        for name in names:
            record = treatment.scale_for(name)
            out[name] = record.center + record.slope * out[name]
    return out


def prepare(
    plan: TreatmentPlan,
    frame: pd.DataFrame,
    *,
    prune_sig: Optional[float] = None,
    scale: bool = False,
    do_collar: bool = False,
    var_restriction: Optional[Iterable[str]] = None,
    code_restriction: Optional[Iterable[str]] = None,
    runner: Optional[TaskRunner] = None,
) -> pd.DataFrame:
    """Produce the treated frame.

    Parameters
    ----------
    plan:
        Plan returned by one of the ``design_treatments_*`` functions.
    frame:
        Data to treat; must contain every source column the surviving
        treatments read.
    prune_sig:
        Keep only variables with score-frame ``sig <= prune_sig``. Ignored for
        plans without an outcome.
    scale:
        Replace each column ``x`` by ``center + slope * x`` from its stored
        one-variable fit (outcome units). Ignored, with a warning, for plans
        without an outcome.
    do_collar:
        Clip cleaned numeric columns to the collar bounds learned at design
        time.
    var_restriction:
        Optional produced variable names to keep.
    code_restriction:
        Optional treatment codes to keep.
    runner:
        Optional task runner; one task per treatment.

    Returns
    -------
    pandas.DataFrame
        Treated columns in plan order, followed by the outcome column when
        ``frame`` has it. The index is ``frame``'s index.

    Raises
    ------
    TreatmentConfigError
        Empty frame, no useable variables or a missing source column.
    """
    if not isinstance(frame, pd.DataFrame) or frame.shape[0] < 1:
        raise TreatmentConfigError("prepare needs a non-empty DataFrame.")
    if plan.version != __version__:
        warnings.warn(
            f"Treatment plan was built with version {plan.version}; running version is {__version__}.",
            RuntimeWarning,
        )
    if scale and plan.outcome_type is OutcomeType.NONE:
        warnings.warn("scale=True has no effect for a plan without an outcome.", RuntimeWarning)
        scale = False

    useable = useable_vars(
        plan,
        prune_sig=prune_sig,
        var_restriction=var_restriction,
        code_restriction=code_restriction,
    )
    if not useable:
        raise TreatmentConfigError("No useable variables after filtering.")

    wanted = frozenset(useable)
    treatments = [t for t in plan.treatments if wanted.intersection(t.new_vars)]
    missing = sorted({t.orig_var for t in treatments if t.orig_var not in frame.columns})
    if missing:
        raise TreatmentConfigError(f"Variables not found in frame: {missing}")

    checked = set()
    for treatment in treatments:
        if treatment.orig_var not in checked:
            checked.add(treatment.orig_var)
            _check_drift(treatment, frame[treatment.orig_var])

    task = partial(_apply_one, frame=frame, wanted=wanted, scale=scale, do_collar=do_collar)
    pieces = resolve_runner(runner).map_reduce(task, treatments)
    treated = pd.concat(pieces, axis=1)
    treated = treated.replace([np.inf, -np.inf], 0.0).fillna(0.0)

    if plan.outcome_name in frame.columns and plan.outcome_name not in treated.columns:
        treated[plan.outcome_name] = frame[plan.outcome_name].to_numpy()
    logger.debug("Prepared %d rows x %d treated columns.", treated.shape[0], len(useable))
    return treated


__all__ = ["prepare", "useable_vars"]
