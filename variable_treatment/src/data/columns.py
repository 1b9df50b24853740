"""Column-kind dispatch and raw-value coercion.

Every source column is classified once, at design time, into a closed set of
kinds (:class:`ColumnKind`). The treatment factory branches on this tag; there
is no per-type class hierarchy.

- ``NUMERIC``: integer, float and boolean columns.
- ``CATEGORICAL``: strings, pandas categoricals and object columns of strings.
- ``DATE``: datetime-like columns, treated as categorical levels.
- ``OTHER``: any other atomic values (mixed objects, complex, ...), treated as
  categorical levels via ``str``.

Level encoding
--------------
Categorical values are rendered as level strings ``"x <value>"``; missing values
become the level ``NA`` and pooled infrequent levels the level ``rare``. The
prefix guarantees a literal value such as ``"rare"`` never collides with the
synthetic labels.
"""

from __future__ import annotations

import re
from enum import Enum

import numpy as np
import pandas as pd

MISSING_LEVEL = "NA"
RARE_LEVEL = "rare"
LEVEL_PREFIX = "x "


class ColumnKind(str, Enum):
    NUMERIC = "numeric"
    CATEGORICAL = "categorical"
    DATE = "date"
    OTHER = "other"


def column_kind(column: pd.Series) -> ColumnKind:
    """Classify a column into the closed :class:`ColumnKind` set."""
    dtype = column.dtype
    if pd.api.types.is_bool_dtype(dtype):
        return ColumnKind.NUMERIC
    if pd.api.types.is_datetime64_any_dtype(dtype) or isinstance(dtype, pd.PeriodDtype):
        return ColumnKind.DATE
    if isinstance(dtype, pd.CategoricalDtype):
        return ColumnKind.CATEGORICAL
    if pd.api.types.is_numeric_dtype(dtype) and not pd.api.types.is_complex_dtype(dtype):
        return ColumnKind.NUMERIC
    if pd.api.types.is_string_dtype(dtype):
        non_null = column.dropna()
        if non_null.map(lambda v: isinstance(v, str)).all():
            return ColumnKind.CATEGORICAL
    return ColumnKind.OTHER


def column_signature(column: pd.Series) -> str:
    """String form of a column's dtype, stored on treatments to detect drift."""
    return str(column.dtype)


def is_categorical_kind(kind: ColumnKind) -> bool:
    return kind in (ColumnKind.CATEGORICAL, ColumnKind.DATE, ColumnKind.OTHER)


def as_numeric(column: pd.Series) -> np.ndarray:
    """Float view of a column; unparseable entries become NaN."""
    if pd.api.types.is_bool_dtype(column.dtype):
        return column.astype(float).to_numpy()
    values = pd.to_numeric(column, errors="coerce")
    return np.asarray(values, dtype=float)


def bad_mask(values: np.ndarray) -> np.ndarray:
    """True where a numeric value is missing, NaN or infinite."""
    return ~np.isfinite(np.asarray(values, dtype=float))


def as_levels(column: pd.Series) -> np.ndarray:
    """Render any column as an array of level strings (``NA`` for missing)."""
    values = column.astype(object).to_numpy()
    missing = pd.isna(column).to_numpy()
    out = np.empty(len(values), dtype=object)
    for i, (value, is_missing) in enumerate(zip(values, missing)):
        out[i] = MISSING_LEVEL if is_missing else LEVEL_PREFIX + str(value)
    return out


_NAME_PATTERN = re.compile(r"[^0-9A-Za-z_.]")


def make_name(*parts: str) -> str:
    """Join parts with ``_`` into a column-name-safe identifier."""
    joined = "_".join(str(p) for p in parts)
    name = _NAME_PATTERN.sub(".", joined)
    if not name or name[0].isdigit():
        name = "X" + name
    return name


__all__ = [
    "ColumnKind",
    "MISSING_LEVEL",
    "RARE_LEVEL",
    "LEVEL_PREFIX",
    "column_kind",
    "column_signature",
    "is_categorical_kind",
    "as_numeric",
    "bad_mask",
    "as_levels",
    "make_name",
]
