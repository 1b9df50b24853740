"""
Pytest configuration and shared fixtures
"""

import numpy as np
import pandas as pd
import pytest

from variable_treatment.src.models.config import TreatmentConfig


LEVEL_RATES = {"a": 0.2, "b": 0.5, "c": 0.75, "d": 0.4}
LEVEL_SHIFTS = {"a": -2.0, "b": 0.0, "c": 1.5, "d": 3.0}


@pytest.fixture
def rng():
    return np.random.default_rng(2024)


@pytest.fixture
def config():
    """Deterministic default configuration."""
    return TreatmentConfig(random_state=11)


@pytest.fixture
def binary_frame(rng):
    """Categorical + numeric inputs with a boolean outcome driven by both."""
    n = 300
    cat = rng.choice(list(LEVEL_RATES), size=n, p=[0.4, 0.3, 0.2, 0.1])
    rate = pd.Series(cat).map(LEVEL_RATES).to_numpy()
    y = rng.random(n) < rate
    num = rng.normal(size=n) + 0.8 * y
    num[rng.random(n) < 0.1] = np.nan
    return pd.DataFrame(
        {
            "cat": cat,
            "num": num,
            "noise": rng.normal(size=n),
            "y": y,
        }
    )


@pytest.fixture
def numeric_frame(rng):
    """Categorical + numeric inputs with a numeric outcome driven by both."""
    n = 300
    cat = rng.choice(list(LEVEL_SHIFTS), size=n, p=[0.4, 0.3, 0.2, 0.1])
    num = rng.normal(size=n)
    y = pd.Series(cat).map(LEVEL_SHIFTS).to_numpy() + 2.0 * num + rng.normal(scale=0.5, size=n)
    num_with_na = num.copy()
    num_with_na[rng.random(n) < 0.1] = np.nan
    return pd.DataFrame({"cat": cat, "num": num_with_na, "y": y})
