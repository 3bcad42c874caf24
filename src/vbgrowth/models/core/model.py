"""
Joint log-posterior density of the integrated growth model.

This module contains the model composer, including:

- site_parameters: per-site L0, Linf and k from the global parameters
- census_pointwise_log_likelihood: mixture log-likelihood of every census fish
- recapture_pointwise_log_likelihood: increment log-likelihood of every recapture
- pointwise_log_likelihood_at: both vectors concatenated in diagnostic order
- compose_log_density: the joint log density as a pure function of parameters
- compose_model: the joint log density plus the unconstrained potential that is
  handed to the sampler

The composed density owns no mutable state. It closes over the observed data and
the configuration, both of which are immutable, and can be re-evaluated at any
parameter point.

Example:
    >>> import jax
    >>> from vbgrowth.models.core.model import compose_model
    >>> from vbgrowth.models.core.state import GrowthData, ModelConfig
    >>> data = GrowthData(
    ...     site_ids=("a", "b"),
    ...     census_site=[0, 1, 1],
    ...     census_length=[30.0, 95.0, 160.0],
    ... )
    >>> model = compose_model(data, ModelConfig(num_age_classes=3))
    >>> u = model.init_params(jax.random.PRNGKey(0), num_chains=1)
    >>> bool(jax.numpy.isfinite(model.potential_fn(u)))
    True
"""

from dataclasses import dataclass
from typing import Callable, Dict

import jax
import jax.numpy as jnp
import numpyro.distributions as dist
from beartype import beartype
from numpyro.distributions.transforms import Transform, biject_to

from vbgrowth.logging import configure_logging
from vbgrowth.models.core.effects import hierarchical_effects
from vbgrowth.models.core.growth import age_mean_matrix
from vbgrowth.models.core.likelihoods import (
    census_log_likelihood,
    recapture_log_likelihood,
)
from vbgrowth.models.core.priors import prior_distributions, prior_log_density
from vbgrowth.models.core.state import GrowthData, ModelConfig

logger = configure_logging(__name__)

Params = Dict[str, jnp.ndarray]

# Constrained starting point of every chain before jitter.
INITIAL_TAU = 0.1
INITIAL_SIGMA = 0.2


def site_parameters(
    params: Params,
    data: GrowthData,
    config: ModelConfig,
) -> Dict[str, jnp.ndarray]:
    """Per-site growth parameters from one parameter assignment.

    Each log-scale parameter is its population intercept plus the site's
    correlated deviation, plus covariate terms on log(Linf) and log(k) when
    enabled. Positivity follows from the exponential link.

    Args:
        params: Constrained parameters of a single draw
        data: Observed data
        config: Model configuration

    Returns:
        Dictionary with one array of shape [site] per growth parameter
    """
    effects = hierarchical_effects(params["z"], params["tau"], params["L_corr"])
    log_params = params["intercept"][jnp.newaxis, :] + effects

    if config.use_covariates:
        shift = data.covariate_design() @ params["beta_cov"].T
        log_params = log_params.at[:, -2:].add(shift)

    return {
        name: jnp.exp(log_params[:, i])
        for i, name in enumerate(data.parameter_names)
    }


def census_pointwise_log_likelihood(
    params: Params,
    sites: Dict[str, jnp.ndarray],
    data: GrowthData,
    config: ModelConfig,
) -> jnp.ndarray:
    """Mixture log-likelihood of each census fish, shape [census]."""
    mu = age_mean_matrix(sites["L0"], sites["Linf"], sites["k"], config.num_age_classes)
    return census_log_likelihood(
        data.census_length,
        mu[data.census_site],
        params["theta"][data.census_site],
        params["sigma_census"],
    )


def recapture_pointwise_log_likelihood(
    params: Params,
    sites: Dict[str, jnp.ndarray],
    data: GrowthData,
) -> jnp.ndarray:
    """Increment log-likelihood of each recaptured fish, shape [recapture]."""
    return recapture_log_likelihood(
        data.recapture_length,
        data.recapture_initial_length,
        data.recapture_days,
        sites["Linf"][data.recapture_site],
        sites["k"][data.recapture_site],
        params["sigma_cmr"],
    )


def pointwise_log_likelihood_at(
    params: Params,
    data: GrowthData,
    config: ModelConfig,
) -> jnp.ndarray:
    """Log-likelihood of every observation: census rows, then recapture rows."""
    sites = site_parameters(params, data, config)
    parts = []
    if data.has_census:
        parts.append(census_pointwise_log_likelihood(params, sites, data, config))
    if data.has_recaptures:
        parts.append(recapture_pointwise_log_likelihood(params, sites, data))
    return jnp.concatenate(parts)


@beartype
def compose_log_density(
    data: GrowthData,
    config: ModelConfig,
) -> Callable[[Params], jnp.ndarray]:
    """Build the joint log density of all sampled parameters.

    The density is the sum of the prior log densities of every site, the census
    mixture log-likelihood and the recapture increment log-likelihood. With
    ``config.prior_only`` both likelihood sums are dropped.

    Args:
        data: Observed data
        config: Model configuration

    Returns:
        Function mapping constrained parameters to a scalar log density
    """
    distributions = prior_distributions(data, config)

    def log_density(params: Params) -> jnp.ndarray:
        log_prob = prior_log_density(params, distributions)
        if config.prior_only:
            return log_prob
        return log_prob + jnp.sum(pointwise_log_likelihood_at(params, data, config))

    return log_density


@dataclass(frozen=True)
class ComposedModel:
    """Joint log density together with the bijections of every sampled site.

    Attributes:
        data: Observed data
        config: Model configuration
        log_density: Joint log density of constrained parameters
        distributions: Prior distribution of every sampled site
        transforms: Bijection from unconstrained to constrained space per site
    """

    data: GrowthData
    config: ModelConfig
    log_density: Callable[[Params], jnp.ndarray]
    distributions: Dict[str, dist.Distribution]
    transforms: Dict[str, Transform]

    @property
    def site_names(self):
        return tuple(self.distributions)

    def constrain(self, unconstrained: Params) -> Params:
        return {name: t(unconstrained[name]) for name, t in self.transforms.items()}

    def unconstrain(self, params: Params) -> Params:
        return {name: t.inv(params[name]) for name, t in self.transforms.items()}

    def potential_fn(self, unconstrained: Params) -> jnp.ndarray:
        """Negative joint log density in unconstrained space.

        Includes the log absolute Jacobian determinant of every bijection. A
        non-finite density yields an infinite potential, which the sampler
        rejects.
        """
        log_prob = 0.0
        params = {}
        for name, t in self.transforms.items():
            value = t(unconstrained[name])
            params[name] = value
            log_prob = log_prob + jnp.sum(
                t.log_abs_det_jacobian(unconstrained[name], value)
            )
        log_prob = log_prob + self.log_density(params)
        return jnp.where(jnp.isfinite(log_prob), -log_prob, jnp.inf)

    def initial_values(self) -> Params:
        """Constrained starting point shared by all chains before jitter."""
        data, config = self.data, self.config
        num_params = len(data.parameter_names)
        values = {
            "intercept": self.distributions["intercept"].mean,
            "tau": jnp.full(num_params, INITIAL_TAU),
            "L_corr": jnp.eye(num_params),
            "z": jnp.zeros((data.num_sites, num_params)),
        }
        if "theta" in self.distributions:
            values["theta"] = jnp.full(
                (data.num_sites, config.num_age_classes), 1.0 / config.num_age_classes
            )
            values["sigma_census"] = jnp.asarray(INITIAL_SIGMA)
        if "sigma_cmr" in self.distributions:
            values["sigma_cmr"] = jnp.asarray(INITIAL_SIGMA)
        if "beta_cov" in self.distributions:
            values["beta_cov"] = jnp.zeros(self.distributions["beta_cov"].event_shape)
        return values

    def init_params(
        self,
        key: jnp.ndarray,
        num_chains: int = 1,
        jitter: float = 0.5,
    ) -> Params:
        """Unconstrained initial values, one jittered copy per chain.

        For a single chain the values carry no chain dimension, matching what
        NumPyro expects for ``init_params``.
        """
        base = self.unconstrain(self.initial_values())
        keys = jax.random.split(key, len(base))
        init = {
            name: value
            + jax.random.uniform(
                k, (num_chains,) + jnp.shape(value), minval=-jitter, maxval=jitter
            )
            for k, (name, value) in zip(keys, base.items())
        }
        if num_chains == 1:
            init = {name: value[0] for name, value in init.items()}
        return init


@beartype
def compose_model(
    data: GrowthData,
    config: ModelConfig,
) -> ComposedModel:
    """Compose the joint log density and its unconstrained potential.

    Args:
        data: Observed data
        config: Model configuration

    Returns:
        ComposedModel whose ``potential_fn`` is handed to the sampler
    """
    distributions = prior_distributions(data, config)
    transforms = {name: biject_to(d.support) for name, d in distributions.items()}
    logger.info(
        f"Composed growth model: {data.num_sites} sites, {data.num_census} census, "
        f"{data.num_recaptures} recaptures, parameters {data.parameter_names}, "
        f"prior_only={config.prior_only}, use_covariates={config.use_covariates}"
    )
    return ComposedModel(
        data=data,
        config=config,
        log_density=compose_log_density(data, config),
        distributions=distributions,
        transforms=transforms,
    )
