"""Column handling, fold assignment and data loading.

This package holds the pieces that look at raw data before any treatment is
designed:

1) **Column kinds** (:mod:`.columns`)
   - one closed :class:`ColumnKind` tag per source column
   - level strings (``"x <value>"``, ``NA``, ``rare``) and safe column names

2) **Fold assignment** (:mod:`.splits`)
   - stratified default split and validation of caller-supplied splits

3) **Loading** (:func:`load_frame`)
   - CSV/TSV with delimiter auto-detection
"""

from __future__ import annotations

from .columns import (
    LEVEL_PREFIX,
    MISSING_LEVEL,
    RARE_LEVEL,
    ColumnKind,
    as_levels,
    as_numeric,
    bad_mask,
    column_kind,
    column_signature,
    is_categorical_kind,
    make_name,
)
from .load import load_frame
from .splits import (
    FoldAssignment,
    SplitFunction,
    build_eval_sets,
    k_way_stratified_split,
    validate_split,
)

__all__ = [
    # column kinds
    "ColumnKind",
    "column_kind",
    "column_signature",
    "is_categorical_kind",
    "as_numeric",
    "bad_mask",
    "as_levels",
    "make_name",
    "MISSING_LEVEL",
    "RARE_LEVEL",
    "LEVEL_PREFIX",
    # loading
    "load_frame",
    # folds
    "FoldAssignment",
    "SplitFunction",
    "build_eval_sets",
    "k_way_stratified_split",
    "validate_split",
]
