"""
Prior distributions for the hierarchical growth model.

This module contains the prior specification of every sampled site, including:

- prior_distributions: NumPyro distribution of each sampled site
- prior_log_density: joint prior log density of a parameter assignment
- sample_prior: forward draws from the joint prior

The support of each distribution also defines the constraint of its site, which
the model composer uses to build the unconstrained space handed to the sampler.
"""

from typing import Dict

import jax
import jax.numpy as jnp
import numpyro.distributions as dist
from beartype import beartype

from vbgrowth.logging import configure_logging
from vbgrowth.models.core.state import (
    COVARIATE_TERMS,
    GROWTH_PARAMETERS,
    GrowthData,
    ModelConfig,
    PosteriorSampleSet,
)

logger = configure_logging(__name__)

# Covariate slopes act on the two trailing growth parameters, log(Linf) and log(k).
NUM_COVARIATE_TARGETS = 2


@beartype
def prior_distributions(
    data: GrowthData,
    config: ModelConfig,
) -> Dict[str, dist.Distribution]:
    """Prior distribution of every sampled site.

    Args:
        data: Observed data; fixes the number of sites and which sources exist
        config: Model configuration

    Returns:
        Dictionary mapping site names to distributions whose event shape equals
        the shape of the site

    Raises:
        ValueError: If covariates are requested but the data carries none
    """
    priors = config.priors
    names = data.parameter_names
    index = jnp.array([GROWTH_PARAMETERS.index(n) for n in names])
    num_params = len(names)
    num_sites = data.num_sites

    distributions = {
        "intercept": dist.Normal(
            jnp.asarray(priors.intercept_loc)[index],
            jnp.asarray(priors.intercept_scale)[index],
        ).to_event(1),
        "tau": dist.HalfNormal(priors.tau_scale * jnp.ones(num_params)).to_event(1),
        "L_corr": dist.LKJCholesky(num_params, concentration=config.lkj_concentration),
        "z": dist.Normal(jnp.zeros((num_sites, num_params)), 1.0).to_event(2),
    }

    if data.has_census:
        alpha = jnp.asarray(config.dirichlet_concentration)
        distributions["theta"] = dist.Dirichlet(
            jnp.broadcast_to(alpha, (num_sites, config.num_age_classes))
        ).to_event(1)
        distributions["sigma_census"] = dist.HalfNormal(priors.sigma_census_scale)

    if data.has_recaptures:
        distributions["sigma_cmr"] = dist.HalfNormal(priors.sigma_cmr_scale)

    if config.use_covariates:
        if data.covariates is None:
            raise ValueError("use_covariates=True requires site covariates in the data")
        distributions["beta_cov"] = dist.Normal(
            jnp.zeros((NUM_COVARIATE_TARGETS, len(COVARIATE_TERMS))),
            priors.slope_scale,
        ).to_event(2)

    return distributions


def prior_log_density(
    params: Dict[str, jnp.ndarray],
    distributions: Dict[str, dist.Distribution],
) -> jnp.ndarray:
    """Joint prior log density, summed over all sites."""
    return sum(
        jnp.sum(d.log_prob(params[name])) for name, d in distributions.items()
    )


@beartype
def sample_prior(
    key: jnp.ndarray,
    data: GrowthData,
    config: ModelConfig,
    num_draws: int = 1000,
) -> PosteriorSampleSet:
    """Forward draws from the joint prior.

    Combined with the predictive replicate generator this produces
    prior-predictive datasets for model validation.

    Args:
        key: JAX random key
        data: Observed data, used for its structure only
        config: Model configuration
        num_draws: Number of prior draws

    Returns:
        Single-chain sample set of prior draws
    """
    distributions = prior_distributions(data, config)
    keys = jax.random.split(key, len(distributions))
    samples = {
        name: d.sample(k, (num_draws,))
        for k, (name, d) in zip(keys, distributions.items())
    }
    logger.debug(f"Drew {num_draws} prior draws for {len(samples)} sites")
    return PosteriorSampleSet.from_flat(samples, num_chains=1)
