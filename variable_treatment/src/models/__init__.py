"""variable_treatment.src.models

Design and application of variable treatments:

- **Configuration**: :class:`~.config.TreatmentConfig` and
  :class:`~.config.TreatmentConfigError`.
- **Treatments**: immutable :class:`~.treatments.Treatment` records with a
  registry of pure transform functions.
- **Level pooling**: rare-level decisions for categorical columns.
- **Factory**: every applicable treatment for one (variable, outcome) pair.
- **Cross frames**: out-of-fold values for high-capacity encodings.
- **Plans**: ``design_treatments_c`` / ``_n`` / ``_z`` and the cross-frame
  experiments.
- **Applier**: :func:`~.prepare.prepare`.

All design entry points share the same call shape:
    - ``design_treatments_*(frame, varlist, [outcome_name, [target]], *, weights, config, runner)``
    - ``prepare(plan, frame, *, prune_sig, scale, do_collar, ...)``
"""

from __future__ import annotations

from .config import TreatmentConfig, TreatmentConfigError
from .cross_frame import CrossFrameResult, build_cross_frame
from .factory import design_variable
from .plan import (
    CrossFrameExperiment,
    TreatmentPlan,
    design_treatments_c,
    design_treatments_n,
    design_treatments_z,
    mk_cross_frame_c_experiment,
    mk_cross_frame_n_experiment,
)
from .pooling import LevelPooling, apply_pooling, pool_levels
from .prepare import prepare, useable_vars
from .treatments import Treatment, TreatmentKind

__all__ = [
    "TreatmentConfig",
    "TreatmentConfigError",
    "Treatment",
    "TreatmentKind",
    "LevelPooling",
    "pool_levels",
    "apply_pooling",
    "design_variable",
    "CrossFrameResult",
    "build_cross_frame",
    "TreatmentPlan",
    "CrossFrameExperiment",
    "design_treatments_c",
    "design_treatments_n",
    "design_treatments_z",
    "mk_cross_frame_c_experiment",
    "mk_cross_frame_n_experiment",
    "prepare",
    "useable_vars",
]
