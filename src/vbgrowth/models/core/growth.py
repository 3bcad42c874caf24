"""
Von Bertalanffy growth curves.

This module contains the deterministic length functions shared by both data
sources, including:

- age_mean: expected length of an age class
- age_mean_matrix: expected length of every age class for every site
- increment_mean: expected length after a known time at liberty

Both evaluators are pure and broadcast over their arguments, so they can be used
inside ``jax.jit`` and ``jax.vmap`` without modification.
"""

import jax.numpy as jnp
from beartype import beartype
from jaxtyping import Array, ArrayLike, Float

DAYS_PER_YEAR = 365.0


@beartype
def age_mean(
    age: ArrayLike,
    l0: ArrayLike,
    linf: ArrayLike,
    k: ArrayLike,
) -> Float[Array, "..."]:
    """Expected length at age under the age-based von Bertalanffy curve.

    The curve is anchored at the first age class, so that::

        age_mean(1, L0, Linf, k) == L0

    and it rises monotonically toward ``Linf`` whenever ``Linf >= L0``.

    Args:
        age: Age class, valid for age >= 1
        l0: Length of age class 1
        linf: Asymptotic average length
        k: Growth-rate coefficient (per year)

    Returns:
        Expected length, broadcast over the inputs
    """
    age = jnp.asarray(age, dtype=jnp.result_type(float))
    return l0 + (linf - l0) * (-jnp.expm1(-k * (age - 1.0)))


@beartype
def age_mean_matrix(
    l0: Float[Array, "site"],
    linf: Float[Array, "site"],
    k: Float[Array, "site"],
    num_age_classes: int,
) -> Float[Array, "site age"]:
    """Expected length of every age class for every site.

    Args:
        l0: Per-site age-1 length
        linf: Per-site asymptotic length
        k: Per-site growth coefficient
        num_age_classes: Number of age classes A

    Returns:
        Array of shape [site, age] with column ``a`` holding age class ``a + 1``
    """
    ages = jnp.arange(1, num_age_classes + 1, dtype=l0.dtype)
    return age_mean(
        ages[jnp.newaxis, :],
        l0[:, jnp.newaxis],
        linf[:, jnp.newaxis],
        k[:, jnp.newaxis],
    )


@beartype
def increment_mean(
    initial_length: ArrayLike,
    linf: ArrayLike,
    k: ArrayLike,
    days: ArrayLike,
) -> Float[Array, "..."]:
    """Expected recapture length after ``days`` at liberty.

    A fish already at or above ``linf`` is predicted to shrink toward it. That is
    a misspecification signal for the site and is returned as computed.

    Args:
        initial_length: Length at first capture
        linf: Asymptotic average length
        k: Growth-rate coefficient (per year)
        days: Elapsed days between captures

    Returns:
        Expected recapture length, broadcast over the inputs
    """
    initial_length = jnp.asarray(initial_length, dtype=jnp.result_type(float))
    years = jnp.asarray(days, dtype=initial_length.dtype) / DAYS_PER_YEAR
    return initial_length + (linf - initial_length) * (-jnp.expm1(-k * years))
