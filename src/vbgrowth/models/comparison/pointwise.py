"""
Pointwise log-likelihood and predictive replicates over posterior draws.

Both functions evaluate every draw independently with ``jax.vmap`` and return a
[draw, observation] matrix. Observations are always ordered census rows first,
then recapture rows, matching ``GrowthData.observed``.
"""

import jax
import jax.numpy as jnp
from beartype import beartype
from jaxtyping import Array, Float

from vbgrowth.models.core.growth import age_mean_matrix
from vbgrowth.models.core.likelihoods import (
    sample_census_replicate,
    sample_recapture_replicate,
)
from vbgrowth.models.core.model import pointwise_log_likelihood_at, site_parameters
from vbgrowth.models.core.state import GrowthData, ModelConfig, PosteriorSampleSet


@beartype
def pointwise_log_likelihood(
    sample_set: PosteriorSampleSet,
    data: GrowthData,
    config: ModelConfig,
) -> Float[Array, "draw obs"]:
    """Log-likelihood of every observation under every draw.

    Args:
        sample_set: Posterior (or prior) draws
        data: Observed data
        config: Model configuration

    Returns:
        Matrix of shape [chain * draw, census + recapture]
    """
    return jax.vmap(lambda p: pointwise_log_likelihood_at(p, data, config))(
        sample_set.flatten()
    )


def _replicate_at(key, params, data: GrowthData, config: ModelConfig):
    sites = site_parameters(params, data, config)
    key_census, key_recapture = jax.random.split(key)
    parts = []
    if data.has_census:
        mu = age_mean_matrix(
            sites["L0"], sites["Linf"], sites["k"], config.num_age_classes
        )
        parts.append(
            sample_census_replicate(
                key_census,
                mu[data.census_site],
                params["theta"][data.census_site],
                params["sigma_census"],
            )
        )
    if data.has_recaptures:
        parts.append(
            sample_recapture_replicate(
                key_recapture,
                data.recapture_initial_length,
                data.recapture_days,
                sites["Linf"][data.recapture_site],
                sites["k"][data.recapture_site],
                params["sigma_cmr"],
            )
        )
    return jnp.concatenate(parts)


@beartype
def posterior_predictive_replicates(
    key: jnp.ndarray,
    sample_set: PosteriorSampleSet,
    data: GrowthData,
    config: ModelConfig,
) -> Float[Array, "draw obs"]:
    """One replicate dataset per draw.

    Census replicates draw an age class from the site's mixture weights before
    drawing a length; recapture replicates are conditioned on the observed
    initial length and days at liberty. Passing prior draws from
    ``sample_prior`` yields prior-predictive datasets.

    Args:
        key: JAX random key
        sample_set: Posterior (or prior) draws
        data: Observed data
        config: Model configuration

    Returns:
        Matrix of shape [chain * draw, census + recapture]
    """
    keys = jax.random.split(key, sample_set.num_total)
    return jax.vmap(lambda k, p: _replicate_at(k, p, data, config))(
        keys, sample_set.flatten()
    )
