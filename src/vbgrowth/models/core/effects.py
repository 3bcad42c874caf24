"""
Non-centered multivariate site random effects.

This module contains the hierarchical effect transform and the helpers around the
shared correlation structure, including:

- hierarchical_effects: correlated site deviations from raw standard normals
- correlation_from_cholesky: rebuild a correlation matrix from its Cholesky factor
- validate_cholesky_factor: input validation for a user supplied factor
- CorrelationStructure: validated, immutable container for the shared factor

The raw matrix ``z`` carries no parameters. Scale and correlation enter only
through the deterministic transform, so the sampler never sees the funnel that a
centered parameterization produces when the between-site scale shrinks to zero.
"""

from dataclasses import dataclass
from typing import Union

import jax.numpy as jnp
import numpy as np
from beartype import beartype
from jaxtyping import Array, ArrayLike, Float

from vbgrowth.models.core.utils import ensure_array

CHOLESKY_TOLERANCE = 1e-6


@beartype
def hierarchical_effects(
    z: Float[Array, "site param"],
    tau: Float[Array, "param"],
    l_corr: Float[Array, "param param"],
) -> Float[Array, "site param"]:
    """Correlated per-site deviations from independent standard normals.

    Computes ``((diag(tau) @ L) @ z.T).T`` so that each row has covariance
    ``diag(tau) @ L @ L.T @ diag(tau)``.

    Args:
        z: Raw standard-normal matrix, one row per site
        tau: Positive between-site scale of each growth parameter
        l_corr: Lower-triangular Cholesky factor of the correlation matrix

    Returns:
        Matrix of shape [site, param] of correlated deviations
    """
    scaled_cholesky = tau[:, jnp.newaxis] * l_corr
    return (scaled_cholesky @ z.T).T


@beartype
def correlation_from_cholesky(
    l_corr: Float[Array, "... param param"],
) -> Float[Array, "... param param"]:
    """Correlation matrix ``L @ L.T`` from its Cholesky factor."""
    return l_corr @ jnp.swapaxes(l_corr, -1, -2)


@beartype
def validate_cholesky_factor(
    l_corr: Union[ArrayLike, list, tuple],
    atol: float = CHOLESKY_TOLERANCE,
) -> None:
    """Check that ``l_corr`` is the Cholesky factor of a correlation matrix.

    Args:
        l_corr: Candidate factor of shape [param, param]
        atol: Absolute tolerance on the unit diagonal of ``L @ L.T``

    Raises:
        ValueError: If the factor is not square, not lower triangular, has a
            non-positive diagonal, or ``L @ L.T`` has a non-unit diagonal
    """
    factor = np.asarray(l_corr, dtype=float)
    if factor.ndim != 2 or factor.shape[0] != factor.shape[1]:
        raise ValueError(
            f"Correlation Cholesky factor must be square, got shape {factor.shape}"
        )
    if not np.all(np.isfinite(factor)):
        raise ValueError("Correlation Cholesky factor contains non-finite values")
    if not np.allclose(factor, np.tril(factor), atol=atol):
        raise ValueError("Correlation Cholesky factor must be lower triangular")
    if np.any(np.diag(factor) <= 0.0):
        raise ValueError(
            "Correlation Cholesky factor must have a positive diagonal"
        )
    diagonal = np.einsum("ij,ij->i", factor, factor)
    if not np.allclose(diagonal, 1.0, atol=atol):
        raise ValueError(
            "Correlation Cholesky factor does not produce a unit diagonal: "
            f"diag(L @ L.T) = {np.round(diagonal, 6).tolist()}"
        )


@dataclass(frozen=True)
class CorrelationStructure:
    """Shared correlation structure of the site random effects.

    Attributes:
        cholesky: Lower-triangular factor ``L`` with ``L @ L.T`` a correlation
            matrix; validated on construction
    """

    cholesky: jnp.ndarray

    def __post_init__(self):
        validate_cholesky_factor(self.cholesky)
        object.__setattr__(self, "cholesky", ensure_array(self.cholesky))

    @property
    def dim(self) -> int:
        return self.cholesky.shape[0]

    @property
    def correlation(self) -> jnp.ndarray:
        return correlation_from_cholesky(self.cholesky)

    @classmethod
    def identity(cls, dim: int) -> "CorrelationStructure":
        return cls(cholesky=jnp.eye(dim))

    @classmethod
    def from_correlation(cls, correlation: ArrayLike) -> "CorrelationStructure":
        """Build the structure from a full correlation matrix.

        Raises:
            ValueError: If the matrix is not positive definite or lacks a unit
                diagonal
        """
        matrix = np.asarray(correlation, dtype=float)
        try:
            factor = np.linalg.cholesky(matrix)
        except np.linalg.LinAlgError as e:
            raise ValueError("Correlation matrix is not positive definite") from e
        return cls(cholesky=jnp.asarray(factor))
