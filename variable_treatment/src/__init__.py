"""Source package for the variable treatment project.

Package layout
--------------
- data: column-kind dispatch, fold assignment (split functions), CSV loading
- models: treatment records, level pooling, treatment factory, cross frames,
  treatment plans and the ``prepare`` applier
- evaluation: single-variable significance scoring
- experiments: runnable scripts (design a plan / cross frame from a CSV)
- utils: logging, seeds, and the pluggable task runner

We intentionally keep this ``__init__`` lightweight to avoid importing heavy
third-party dependencies (e.g., scikit-learn) at import time. The version below
is stamped onto every treatment plan so ``prepare`` can warn on stale plans.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = [
    "data",
    "models",
    "evaluation",
    "experiments",
    "utils",
]
