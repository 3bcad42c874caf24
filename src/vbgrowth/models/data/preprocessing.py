"""
Preprocessing of site covariates.

This module contains:

- standardize: center and divide by twice the standard deviation
- standardize_covariates: apply ``standardize`` column-wise to a site table

Dividing by two standard deviations puts continuous covariates on the scale of
a binary predictor, which keeps a unit-scale slope prior interpretable.
"""

from typing import Sequence

import numpy as np
import pandas as pd
from beartype import beartype
from jaxtyping import ArrayLike


@beartype
def standardize(values: ArrayLike) -> np.ndarray:
    """Subtract the mean and divide by twice the sample standard deviation.

    Args:
        values: One covariate value per site

    Returns:
        Standardized values

    Raises:
        ValueError: If fewer than two finite values are given or the values are
            constant
    """
    values = np.asarray(values, dtype=float)
    if values.ndim != 1 or values.size < 2:
        raise ValueError("Standardization requires at least two values")
    if not np.all(np.isfinite(values)):
        raise ValueError("Covariate values must be finite")
    sd = values.std(ddof=1)
    if sd == 0.0:
        raise ValueError("Cannot standardize a constant covariate")
    return (values - values.mean()) / (2.0 * sd)


@beartype
def standardize_covariates(
    frame: pd.DataFrame,
    columns: Sequence[str],
) -> pd.DataFrame:
    """Return a copy of ``frame`` with ``columns`` standardized."""
    frame = frame.copy()
    for column in columns:
        frame[column] = standardize(frame[column].to_numpy())
    return frame
