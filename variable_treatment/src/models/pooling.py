"""Rare-level pooling for categorical columns.

A level is kept on its own when it is frequent enough; every other level is
merged into one synthetic level ``rare`` that downstream coders treat like any
observed category. Levels never seen at design time also map to ``rare`` at
apply time, so novel categories never create new columns or missing codes.

Keep rule
---------
For a level with weighted fraction ``f`` and raw count ``c``:

1. ``rare_count > 0`` and ``c <= rare_count``: pooled (hard floor).
2. ``f >= min_fraction``: kept.
3. otherwise, when ``rare_sig`` is set and the outcome is informative: kept if
   the level's own indicator has significance ``< rare_sig`` against the
   outcome (a strong rare signal is not erased).
4. otherwise pooled.

``rare_sig`` therefore only ever retains levels; it never removes one and
never overrides the ``rare_count`` floor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional

import numpy as np
import pandas as pd

from variable_treatment.src.data.columns import RARE_LEVEL
from variable_treatment.src.evaluation.scoring import Outcome, score_variable


@dataclass(frozen=True)
class LevelPooling:
    """Pooling decision for one categorical column.

    Attributes
    ----------
    kept_levels:
        Levels kept individually.
    rare_label:
        Synthetic label receiving every other level.
    level_fractions:
        Weighted training fraction of each observed (pre-pooling) level.
    rescued_levels:
        Kept levels that failed ``min_fraction`` but were retained by
        ``rare_sig``.
    """

    kept_levels: FrozenSet[str]
    rare_label: str = RARE_LEVEL
    level_fractions: Dict[str, float] = field(default_factory=dict)
    rescued_levels: FrozenSet[str] = frozenset()


def level_table(levels: np.ndarray, weights: np.ndarray) -> pd.DataFrame:
    """Weighted and raw counts per level, indexed by level."""
    df = pd.DataFrame({"level": np.asarray(levels, dtype=object), "w": np.asarray(weights, dtype=float)})
    table = df.groupby("level", sort=True)["w"].agg(["sum", "size"])
    table.columns = ["weight", "count"]
    total = float(table["weight"].sum())
    table["fraction"] = table["weight"] / total if total > 0 else 0.0
    return table


def pool_levels(
    levels: np.ndarray,
    outcome: Optional[Outcome],
    weights: np.ndarray,
    min_fraction: float,
    rare_count: int = 0,
    rare_sig: Optional[float] = None,
) -> LevelPooling:
    """Decide which levels of a categorical column are kept individually."""
    levels = np.asarray(levels, dtype=object)
    table = level_table(levels, weights)

    kept = set()
    rescued = set()
    for level, row in table.iterrows():
        if rare_count > 0 and row["count"] <= rare_count:
            continue
        if row["fraction"] >= min_fraction:
            kept.add(level)
            continue
        if rare_sig is not None and outcome is not None and outcome.informative:
            indicator = (levels == level).astype(float)
            record = score_variable(str(level), indicator, outcome, weights)
            if record.sig < rare_sig:
                kept.add(level)
                rescued.add(level)

    return LevelPooling(
        kept_levels=frozenset(kept),
        level_fractions={str(k): float(v) for k, v in table["fraction"].items()},
        rescued_levels=frozenset(rescued),
    )


def apply_pooling(levels: np.ndarray, pooling: LevelPooling) -> np.ndarray:
    """Map every level that is not kept (including unseen ones) to the rare label."""
    levels = np.asarray(levels, dtype=object)
    kept = np.fromiter((lvl in pooling.kept_levels for lvl in levels), dtype=bool, count=len(levels))
    return np.where(kept, levels, pooling.rare_label).astype(object)


__all__ = ["LevelPooling", "level_table", "pool_levels", "apply_pooling"]
