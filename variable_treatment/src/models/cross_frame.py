"""Cross frames: out-of-fold values for high-capacity encodings.

Evaluating an impact code on the rows used to fit it is optimistic (nested
model bias). The cross frame fixes this by fitting, for each fold, treatments
on the *other* folds and applying them only to the fold's own rows. Every row
of a split column therefore comes from a treatment that never saw that row.

Workflow (per fold ``i``, one task on the runner)
-------------------------------------------------
1. design treatments (unscored) on the complement of fold ``i``;
2. apply them to fold ``i``'s rows;
3. return the split columns for those rows.

Columns the fold-local design did not produce (the level was pooled into
``rare`` or never appeared in the complement; the variable collapsed) are
filled with 0, the rare/neutral encoding. Different folds may therefore make
slightly different pooling decisions; that is expected.

Columns not in ``split_vars`` reuse the full-data treatments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from variable_treatment.src.data.splits import FoldAssignment, SplitFunction, build_eval_sets
from variable_treatment.src.evaluation.scoring import Outcome
from variable_treatment.src.utils.parallel import TaskRunner, resolve_runner

from .config import TreatmentConfig
from .factory import design_variable
from .treatments import Treatment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrossFrameResult:
    """Output of :func:`build_cross_frame`."""

    cross_frame: pd.DataFrame
    cross_weights: np.ndarray
    eval_sets: FoldAssignment


def _fold_task(
    fold: int,
    *,
    frame: pd.DataFrame,
    varlist: Sequence[str],
    outcome: Outcome,
    weights: np.ndarray,
    config: TreatmentConfig,
    eval_sets: FoldAssignment,
    split_vars: Sequence[str],
    rename: Dict[Tuple, Dict[str, str]],
) -> Tuple[np.ndarray, Dict[str, np.ndarray]]:
    """Design on the complement of ``fold``; return its rows' split-column values."""
    train_idx = eval_sets.train_indices(fold)
    app_idx = eval_sets.groups[fold]
    train = frame.iloc[train_idx]
    app = frame.iloc[app_idx]
    wanted = set(split_vars)

    values: Dict[str, np.ndarray] = {}
    for var in varlist:
        treatments = design_variable(
            var,
            train[var],
            outcome.subset(train_idx),
            weights[train_idx],
            config,
            score=False,
        )
        for treatment in treatments:
            treatment = treatment.renamed(rename.get(treatment.key, {}))
            needed = [v for v in treatment.new_vars if v in wanted]
            if not needed:
                continue
            out = treatment.transform(app[var])
            for name in needed:
                values[name] = out[name].to_numpy()
    return app_idx, values


def build_cross_frame(
    frame: pd.DataFrame,
    varlist: Sequence[str],
    outcome: Outcome,
    weights: np.ndarray,
    config: TreatmentConfig,
    full_treatments: Sequence[Treatment],
    split_vars: Sequence[str],
    *,
    split_function: Optional[SplitFunction] = None,
    runner: Optional[TaskRunner] = None,
    rename: Optional[Dict[Tuple, Dict[str, str]]] = None,
) -> CrossFrameResult:
    """Build a training-compatible frame with out-of-fold split columns.

    Parameters
    ----------
    frame:
        Training frame.
    varlist:
        Source variables that were treated.
    outcome:
        Outcome aligned with ``frame``.
    weights:
        Validated row weights.
    config:
        Design configuration (``ncross`` folds, ``random_state`` seed).
    full_treatments:
        Treatments designed on the full frame, in declaration order.
    split_vars:
        Produced variables whose values must come from out-of-fold designs.
    split_function:
        Optional caller-supplied split (see :mod:`variable_treatment.src.data.splits`).
    runner:
        Optional task runner; one task per fold.
    rename:
        Name mappings applied by the plan to keep produced names unique, keyed
        by :attr:`Treatment.key`; replayed on the matching fold-local treatments.

    Returns
    -------
    CrossFrameResult
        ``cross_frame`` has one column per produced variable (declaration
        order) and the frame's index.
    """
    n_rows = frame.shape[0]
    eval_sets = build_eval_sets(
        n_rows,
        config.ncross,
        outcome.values if outcome.informative else None,
        split_function=split_function,
        random_state=config.random_state,
    )
    split_vars = list(split_vars)
    split_origins = sorted({t.orig_var for t in full_treatments if set(t.new_vars) & set(split_vars)})

    columns: Dict[str, np.ndarray] = {name: np.zeros(n_rows, dtype=float) for name in split_vars}
    if split_vars:
        task = partial(
            _fold_task,
            frame=frame,
            varlist=split_origins,
            outcome=outcome,
            weights=weights,
            config=config,
            eval_sets=eval_sets,
            split_vars=split_vars,
            rename=rename or {},
        )
        results: List[Tuple[np.ndarray, Dict[str, np.ndarray]]] = resolve_runner(runner).map_reduce(
            task, list(range(eval_sets.ncross))
        )
        for fold, (app_idx, values) in enumerate(results):
            missing = [name for name in split_vars if name not in values]
            if missing:
                logger.debug("Fold %d did not produce %s; filled with 0.", fold, missing)
            for name, col in values.items():
                columns[name][app_idx] = col

    wanted = set(split_vars)
    pieces: List[pd.DataFrame] = []
    for treatment in full_treatments:
        if wanted.issuperset(treatment.new_vars):
            pieces.append(
                pd.DataFrame({name: columns[name] for name in treatment.new_vars}, index=frame.index)
            )
            continue
        full = treatment.transform(frame[treatment.orig_var])
        for name in treatment.new_vars:
            if name in wanted:
                full[name] = columns[name]
        pieces.append(full)

    cross_frame = pd.concat(pieces, axis=1) if pieces else pd.DataFrame(index=frame.index)
    return CrossFrameResult(
        cross_frame=cross_frame,
        cross_weights=np.asarray(weights, dtype=float).copy(),
        eval_sets=eval_sets,
    )


__all__ = ["CrossFrameResult", "build_cross_frame"]
