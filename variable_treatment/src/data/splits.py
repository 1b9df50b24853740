"""Fold assignment for cross frames.

A split function partitions the training rows into ``ncross`` disjoint groups
covering every row exactly once. The cross-frame builder fits treatments on
the complement of each group and applies them to the group itself.

Split-function contract
-----------------------
``split(n_rows, ncross, outcome_values) -> sequence of index groups``

- ``outcome_values`` is the numeric outcome or 0/1 target indicator (or
  ``None``);
- groups are arrays/lists of row positions in ``range(n_rows)``.

Caller-supplied splits are validated; an invalid split is replaced by the
default with a ``RuntimeWarning`` so a cross frame is never built from folds
that leak or drop rows.

The default (:func:`k_way_stratified_split`) is stratified:

- binary outcomes: rows are shuffled within each class and dealt round-robin,
  so every fold keeps the class balance;
- numeric outcomes: rows are ordered by outcome and each consecutive block of
  ``ncross`` rows is spread over the folds in random order;
- no outcome: shuffled round-robin.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from variable_treatment.src.utils.seed_utils import reproducible_numpy_rng

logger = logging.getLogger(__name__)

SplitFunction = Callable[[int, int, Optional[np.ndarray]], Sequence[Sequence[int]]]


@dataclass(frozen=True)
class FoldAssignment:
    """Disjoint row groups covering ``range(n_rows)`` exactly once."""

    groups: Tuple[np.ndarray, ...]
    n_rows: int
    method: str = "kwaycrossystratified"

    @property
    def ncross(self) -> int:
        return len(self.groups)

    def fold_ids(self) -> np.ndarray:
        """Fold number of every row."""
        ids = np.full(self.n_rows, -1, dtype=int)
        for i, group in enumerate(self.groups):
            ids[group] = i
        return ids

    def train_indices(self, fold: int) -> np.ndarray:
        """Rows outside ``fold`` (the rows a fold-local treatment may see)."""
        mask = np.ones(self.n_rows, dtype=bool)
        mask[self.groups[fold]] = False
        return np.flatnonzero(mask)


def _deal(order: np.ndarray, ncross: int) -> List[np.ndarray]:
    fold_of = np.arange(order.shape[0]) % ncross
    return [np.sort(order[fold_of == i]) for i in range(ncross)]


def k_way_stratified_split(
    n_rows: int,
    ncross: int,
    outcome_values: Optional[np.ndarray] = None,
    *,
    random_state: Optional[int] = None,
) -> List[np.ndarray]:
    """Default split: stratified random partition into ``ncross`` groups."""
    rng = reproducible_numpy_rng(random_state)
    ncross = int(min(ncross, n_rows))

    if outcome_values is None:
        return _deal(rng.permutation(n_rows), ncross)

    y = np.asarray(outcome_values, dtype=float).reshape(-1)
    classes = np.unique(y)
    if classes.shape[0] <= 2:
        # binary (or constant) outcome: shuffle within class, then deal
        parts = [rng.permutation(np.flatnonzero(y == c)) for c in rng.permutation(classes)]
        return _deal(np.concatenate(parts), ncross)

    # numeric outcome: random tie-break, order by y, spread each block over the folds
    shuffled = rng.permutation(n_rows)
    order = shuffled[np.argsort(y[shuffled], kind="stable")]
    fold_of = np.empty(n_rows, dtype=int)
    for start in range(0, n_rows, ncross):
        block = order[start : start + ncross]
        fold_of[block] = rng.permutation(ncross)[: block.shape[0]]
    return [np.flatnonzero(fold_of == i) for i in range(ncross)]


def validate_split(groups: Sequence[Sequence[int]], n_rows: int) -> bool:
    """True when ``groups`` are >= 2 non-empty, disjoint groups covering every row once."""
    try:
        arrays = [np.asarray(g, dtype=int).reshape(-1) for g in groups]
    except (TypeError, ValueError):
        return False
    if len(arrays) < 2 or any(a.shape[0] == 0 for a in arrays):
        return False
    allrows = np.concatenate(arrays)
    if allrows.shape[0] != n_rows:
        return False
    if np.any(allrows < 0) or np.any(allrows >= n_rows):
        return False
    return np.unique(allrows).shape[0] == n_rows


def build_eval_sets(
    n_rows: int,
    ncross: int = 3,
    outcome_values: Optional[np.ndarray] = None,
    *,
    split_function: Optional[SplitFunction] = None,
    random_state: Optional[int] = None,
) -> FoldAssignment:
    """Build the fold assignment used by the cross-frame builder.

    Parameters
    ----------
    n_rows:
        Number of training rows (>= 2).
    ncross:
        Requested number of folds (>= 2). With fewer rows than folds, each row
        becomes its own fold.
    outcome_values:
        Optional outcome (numeric or 0/1 indicator) used for stratification.
    split_function:
        Optional caller-supplied split; falls back to the default when invalid.
    random_state:
        Seed for the default split.
    """
    if n_rows < 2:
        raise ValueError(f"Need at least 2 rows to build folds; got {n_rows}.")
    if ncross < 2:
        raise ValueError(f"ncross must be >= 2; got {ncross}.")

    if split_function is not None:
        groups = split_function(n_rows, ncross, outcome_values)
        if groups is not None and validate_split(groups, n_rows):
            arrays = tuple(np.sort(np.asarray(g, dtype=int).reshape(-1)) for g in groups)
            return FoldAssignment(groups=arrays, n_rows=n_rows, method="userfunction")
        warnings.warn(
            "split_function did not return disjoint groups covering every row; "
            "using the default stratified split instead.",
            RuntimeWarning,
        )

    if n_rows < ncross:
        logger.info("Only %d rows for %d folds; using one fold per row.", n_rows, ncross)
    groups = k_way_stratified_split(n_rows, ncross, outcome_values, random_state=random_state)
    return FoldAssignment(groups=tuple(groups), n_rows=n_rows, method="kwaycrossystratified")


__all__ = [
    "FoldAssignment",
    "SplitFunction",
    "k_way_stratified_split",
    "validate_split",
    "build_eval_sets",
]
