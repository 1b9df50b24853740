"""Experiment entrypoints for the project.

Each module contains a CLI-friendly ``main`` function.
This package re-exports those entrypoints so they can be called
programmatically, e.g. from ``variable_treatment/run_treatment.py``.
"""

from __future__ import annotations

from .run_design import load_treatment_config
from .run_design import main as run_design

__all__ = [
    "run_design",
    "load_treatment_config",
]
