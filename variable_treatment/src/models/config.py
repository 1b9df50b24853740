"""Immutable configuration for treatment design.

One :class:`TreatmentConfig` is passed by value to every design call (and
reused unchanged by the cross-frame builder for each fold). It replaces a wide
keyword-argument surface with a single validated record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Tuple

import numpy as np


class TreatmentConfigError(ValueError):
    """Raised for configuration errors that must stop a design/apply call.

    Examples: missing or non-varying outcome, invalid weights, an empty set of
    useable variables after filtering, ``collar_prob >= 0.5``.
    """


CUSTOM_CODER_PREFIXES = ("c", "n", "z")


@dataclass(frozen=True)
class TreatmentConfig:
    """Configuration for treatment design.

    Parameters
    ----------
    min_fraction:
        Minimum weighted frequency a categorical level must have to be kept as
        its own level (and to receive an indicator column).
    sm_factor:
        Smoothing strength for impact codes; each level's statistic is shrunk
        toward the global mean as if ``sm_factor`` extra rows at the mean had
        been observed.
    rare_count:
        Levels seen this many times or fewer are always pooled into ``rare``.
        ``0`` disables the count floor.
    rare_sig:
        Optional significance threshold; an infrequent level whose indicator is
        more significant than this is exempted from pooling.
    collar_prob:
        Tail probability used to compute collar bounds for numeric columns.
        Must be < 0.5.
    code_restriction:
        Optional tuple of codes (``"isBAD"``, ``"clean"``, ``"lev"``, ``"catB"``,
        ``"catN"``, ``"catP"``, ``"catD"`` or custom code names) to produce.
        ``None`` means no restriction.
    custom_coders:
        Mapping ``"<prefix>.<code>" -> coder`` with prefix ``c`` (binary
        outcome), ``n`` (numeric outcome) or ``z`` (no outcome). A coder is
        called as ``coder(var_name, levels, y, weights)`` and returns one
        numeric code per row.
    ncross:
        Number of folds (>= 2) used to cross-score complex variables.
    force_split:
        If True, cross-score every derived variable, not only the complex ones.
    cat_scaling:
        If True, binary-outcome scale records come from the logistic link
        space; otherwise from a linear fit of the 0/1 outcome indicator.
    random_state:
        Seed for the default fold assignment.
    """

    min_fraction: float = 0.02
    sm_factor: float = 0.0
    rare_count: int = 0
    rare_sig: Optional[float] = None
    collar_prob: float = 0.0
    code_restriction: Optional[Tuple[str, ...]] = None
    custom_coders: Mapping[str, Callable[..., Any]] = field(default_factory=dict)
    ncross: int = 3
    force_split: bool = False
    cat_scaling: bool = False
    random_state: Optional[int] = None

    def __post_init__(self) -> None:
        # list-like restrictions are stored as tuples
        if self.code_restriction is not None and not isinstance(self.code_restriction, tuple):
            object.__setattr__(self, "code_restriction", tuple(self.code_restriction))

    def validate(self) -> "TreatmentConfig":
        """Raise :class:`TreatmentConfigError` on invalid settings; return self."""
        if not (0.0 <= float(self.min_fraction) <= 1.0):
            raise TreatmentConfigError(
                f"min_fraction must be in [0, 1]; got {self.min_fraction}."
            )
        if float(self.sm_factor) < 0.0 or not np.isfinite(self.sm_factor):
            raise TreatmentConfigError(f"sm_factor must be finite and >= 0; got {self.sm_factor}.")
        if int(self.rare_count) < 0:
            raise TreatmentConfigError(f"rare_count must be >= 0; got {self.rare_count}.")
        if self.rare_sig is not None and not (0.0 <= float(self.rare_sig) <= 1.0):
            raise TreatmentConfigError(f"rare_sig must be in [0, 1]; got {self.rare_sig}.")
        if not (0.0 <= float(self.collar_prob) < 0.5):
            raise TreatmentConfigError(f"collar_prob must be in [0, 0.5); got {self.collar_prob}.")
        if int(self.ncross) < 2:
            raise TreatmentConfigError(f"ncross must be >= 2; got {self.ncross}.")
        for key, coder in self.custom_coders.items():
            prefix, _, code = str(key).partition(".")
            if prefix not in CUSTOM_CODER_PREFIXES or not code:
                raise TreatmentConfigError(
                    f"Custom coder key '{key}' must look like '<c|n|z>.<code>'."
                )
            if not callable(coder):
                raise TreatmentConfigError(f"Custom coder '{key}' is not callable.")
        return self

    def allows(self, code: str) -> bool:
        """Whether ``code`` passes the design-time code restriction."""
        return self.code_restriction is None or code in self.code_restriction


__all__ = ["TreatmentConfig", "TreatmentConfigError", "CUSTOM_CODER_PREFIXES"]
