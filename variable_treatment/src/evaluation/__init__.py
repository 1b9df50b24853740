"""Evaluation utilities.

Treatment design judges every derived column with a one-variable model of the
outcome:

- significance of a linear fit (F-test) for numeric outcomes;
- significance of a logistic fit (deviance chi-squared test) for binary
  outcomes;
- the fitted center/slope used to move columns to outcome scale.
"""

from __future__ import annotations

from .scoring import (
    Outcome,
    OutcomeType,
    ScaleRecord,
    cat_score,
    lin_score,
    no_effect,
    normalize_weights,
    score_variable,
    validate_weights,
)

__all__ = [
    "Outcome",
    "OutcomeType",
    "ScaleRecord",
    "no_effect",
    "validate_weights",
    "normalize_weights",
    "lin_score",
    "cat_score",
    "score_variable",
]
