"""Treatment records and their transform functions.

A :class:`Treatment` is one learned, immutable transform from a raw column to
one or more numeric columns. It carries everything needed to replay itself:

- the kind tag selecting a pure transform function from :data:`TRANSFORMS`;
- learned parameters (impute mean, collar bounds, level pooling, code tables);
- the source column's kind and dtype (to warn on drift at apply time);
- per-output :class:`~variable_treatment.src.evaluation.scoring.ScaleRecord`.

Transforms never look at statistics of the frame they are applied to; all
statistics come from ``params``. Their outputs are always finite.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Tuple

import numpy as np
import pandas as pd

from variable_treatment.src.data.columns import ColumnKind, as_levels, as_numeric, bad_mask
from variable_treatment.src.evaluation.scoring import ScaleRecord, no_effect

from .pooling import apply_pooling


class TreatmentKind(str, Enum):
    IS_BAD = "is_bad"
    CLEAN = "clean"
    LEV = "lev"
    IMPACT = "impact"
    CAT_P = "cat_p"
    CAT_D = "cat_d"
    CUSTOM = "custom"


# Score-frame codes of the built-in treatments
CODE_IS_BAD = "isBAD"
CODE_CLEAN = "clean"
CODE_LEV = "lev"
CODE_CAT_B = "catB"
CODE_CAT_N = "catN"
CODE_CAT_P = "catP"
CODE_CAT_D = "catD"


@dataclass(frozen=True)
class Treatment:
    """One learned transform (see module docstring)."""

    orig_var: str
    new_vars: Tuple[str, ...]
    kind: TreatmentKind
    code: str
    params: Mapping[str, Any]
    orig_kind: ColumnKind
    orig_dtype: str
    needs_split: bool = False
    extra_model_degrees: int = 0
    scales: Tuple[ScaleRecord, ...] = ()

    def transform(self, column: pd.Series, *, do_collar: bool = False) -> pd.DataFrame:
        """Replay the transform on ``column``; one output column per ``new_vars``."""
        fn = TRANSFORMS[self.kind]
        values = fn(column, self.params, do_collar)
        values = np.asarray(values, dtype=float).reshape(len(column), -1)
        return pd.DataFrame(values, columns=list(self.new_vars), index=column.index)

    def scale_for(self, var_name: str) -> ScaleRecord:
        for record in self.scales:
            if record.var_name == var_name:
                return record
        return no_effect(var_name)

    def with_scales(self, scales: Tuple[ScaleRecord, ...]) -> "Treatment":
        return replace(self, scales=tuple(scales))

    @property
    def key(self) -> Tuple[str, str, str, Any]:
        """Identity of the treatment within a design, independent of its output names.

        Two levels whose sanitised names collide still have distinct keys, so
        fold-local designs can replay a plan's renames treatment by treatment.
        """
        return (self.orig_var, self.kind.value, self.code, self.params.get("level"))

    def renamed(self, mapping: Mapping[str, str]) -> "Treatment":
        """Copy with produced names (and their scale records) renamed."""
        new_vars = tuple(mapping.get(v, v) for v in self.new_vars)
        scales = tuple(replace(s, var_name=mapping.get(s.var_name, s.var_name)) for s in self.scales)
        return replace(self, new_vars=new_vars, scales=scales)

    def describe(self) -> str:
        return (
            f"treatment '{self.code}'('{self.orig_var}'({self.orig_kind.value},{self.orig_dtype})"
            f"->'{','.join(self.new_vars)}')"
        )


# ---------------------------------------------------------------------------
# Transform functions: (column, params, do_collar) -> numeric array
# ---------------------------------------------------------------------------


def _is_bad_transform(column: pd.Series, params: Mapping[str, Any], do_collar: bool) -> np.ndarray:
    return bad_mask(as_numeric(column)).astype(float)


def _clean_transform(column: pd.Series, params: Mapping[str, Any], do_collar: bool) -> np.ndarray:
    x = as_numeric(column)
    x = np.where(bad_mask(x), float(params["mean"]), x)
    if do_collar:
        lower, upper = params["collar"]
        x = np.clip(x, lower, upper)
    return x


def _pooled_levels(column: pd.Series, params: Mapping[str, Any]) -> np.ndarray:
    return apply_pooling(as_levels(column), params["pooling"])


def _level_indicator_transform(column: pd.Series, params: Mapping[str, Any], do_collar: bool) -> np.ndarray:
    return (_pooled_levels(column, params) == params["level"]).astype(float)


def _table_transform(column: pd.Series, params: Mapping[str, Any], do_collar: bool) -> np.ndarray:
    table: Dict[str, float] = params["table"]
    default = float(params.get("default", 0.0))
    pooled = _pooled_levels(column, params)
    return np.fromiter((table.get(lvl, default) for lvl in pooled), dtype=float, count=len(pooled))


TRANSFORMS: Dict[TreatmentKind, Callable[[pd.Series, Mapping[str, Any], bool], np.ndarray]] = {
    TreatmentKind.IS_BAD: _is_bad_transform,
    TreatmentKind.CLEAN: _clean_transform,
    TreatmentKind.LEV: _level_indicator_transform,
    TreatmentKind.IMPACT: _table_transform,
    TreatmentKind.CAT_P: _table_transform,
    TreatmentKind.CAT_D: _table_transform,
    TreatmentKind.CUSTOM: _table_transform,
}


__all__ = [
    "TreatmentKind",
    "Treatment",
    "TRANSFORMS",
    "CODE_IS_BAD",
    "CODE_CLEAN",
    "CODE_LEV",
    "CODE_CAT_B",
    "CODE_CAT_N",
    "CODE_CAT_P",
    "CODE_CAT_D",
]
