"""Project-wide utilities (logging, seeds, task runners).

This directory is deliberately lightweight: nothing here imports pandas or
scikit-learn, so it can be used by scripts before the heavy modules load.
"""

from __future__ import annotations

from .logging_utils import DEFAULT_LOG_FORMAT, configure_logging
from .parallel import ExecutorRunner, SequentialRunner, TaskRunner, resolve_runner
from .seed_utils import reproducible_numpy_rng, set_global_seed

__all__ = [
    "configure_logging",
    "DEFAULT_LOG_FORMAT",
    "set_global_seed",
    "reproducible_numpy_rng",
    "TaskRunner",
    "SequentialRunner",
    "ExecutorRunner",
    "resolve_runner",
]
