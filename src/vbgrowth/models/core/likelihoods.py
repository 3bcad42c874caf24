"""
Likelihood models for census lengths and recapture increments.

This module contains the observation models of both data sources, including:

- lognormal_log_density: log density of a lognormal with log-scale location
- census_log_likelihood: age-class mixture likelihood of a census length
- recapture_log_likelihood: growth-increment likelihood of a recapture length
- sample_census_replicate: predictive replicate of a census length
- sample_recapture_replicate: predictive replicate of a recapture length

The latent age class of a census fish is summed out with a max-shifted
log-sum-exp. The naive ``log(sum(exp(...)))`` underflows to ``-inf`` as soon as
the age classes are well separated.
"""

import jax
import jax.numpy as jnp
import numpyro.distributions as dist
from beartype import beartype
from jax.scipy.special import logsumexp
from jaxtyping import Array, ArrayLike, Float

from vbgrowth.models.core.growth import increment_mean


@beartype
def lognormal_log_density(
    y: ArrayLike,
    log_mean: ArrayLike,
    sigma: ArrayLike,
) -> Float[Array, "..."]:
    """Log density of ``LogNormal(log_mean, sigma)`` evaluated at ``y``."""
    return dist.LogNormal(log_mean, sigma).log_prob(y)


@beartype
def census_log_likelihood(
    y: ArrayLike,
    mu: Float[Array, "... age"],
    theta: Float[Array, "... age"],
    sigma: ArrayLike,
) -> Float[Array, "..."]:
    """Mixture log-likelihood of a census length with unknown age class.

    Computes::

        logsumexp_a( log(theta[a]) + log LogNormal(y; log(mu[a]), sigma) )

    Args:
        y: Observed length(s), broadcast against the leading dims of ``mu``
        mu: Expected length of every age class at the fish's site
        theta: Age-class mixture weights of the fish's site
        sigma: Census observation noise on the log scale

    Returns:
        Log-likelihood with the age axis summed out
    """
    y = jnp.asarray(y)[..., jnp.newaxis]
    component = jnp.log(theta) + lognormal_log_density(y, jnp.log(mu), sigma)
    return logsumexp(component, axis=-1)


@beartype
def recapture_log_likelihood(
    recaptured_length: ArrayLike,
    initial_length: ArrayLike,
    days: ArrayLike,
    linf: ArrayLike,
    k: ArrayLike,
    sigma_cmr: ArrayLike,
) -> Float[Array, "..."]:
    """Log-likelihood of a recapture length given the initial length.

    Args:
        recaptured_length: Length at recapture
        initial_length: Length at first capture
        days: Days at liberty
        linf: Asymptotic length of the fish's site
        k: Growth coefficient of the fish's site
        sigma_cmr: Recapture observation noise on the log scale

    Returns:
        Log-likelihood, broadcast over the inputs
    """
    expected = increment_mean(initial_length, linf, k, days)
    return lognormal_log_density(recaptured_length, jnp.log(expected), sigma_cmr)


@beartype
def sample_census_replicate(
    key: jnp.ndarray,
    mu: Float[Array, "... age"],
    theta: Float[Array, "... age"],
    sigma: ArrayLike,
) -> Float[Array, "..."]:
    """Draw a replicate census length.

    An age class is drawn from ``theta`` first and the length is then drawn from
    the lognormal of that class. Used for predictive checks only.
    """
    key_age, key_length = jax.random.split(key)
    age_index = jax.random.categorical(key_age, jnp.log(theta), axis=-1)
    mu_age = jnp.take_along_axis(mu, age_index[..., jnp.newaxis], axis=-1)[..., 0]
    return dist.LogNormal(jnp.log(mu_age), sigma).sample(key_length)


@beartype
def sample_recapture_replicate(
    key: jnp.ndarray,
    initial_length: ArrayLike,
    days: ArrayLike,
    linf: ArrayLike,
    k: ArrayLike,
    sigma_cmr: ArrayLike,
) -> Float[Array, "..."]:
    """Draw a replicate recapture length from the increment model."""
    expected = increment_mean(initial_length, linf, k, days)
    return dist.LogNormal(jnp.log(expected), sigma_cmr).sample(key)
