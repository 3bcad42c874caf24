"""
Posterior analysis utilities for the vbgrowth JAX/NumPyro implementation.

This module contains posterior analysis utilities, including:

- site_parameter_draws: per-site L0, Linf and k for every draw
- population_parameter_draws: population-level L0, Linf and k for every draw
- summarize_posterior: summary table of population and site parameters
- count_negative_increments: recapture rows predicted to shrink
- create_inference_data: ArviZ InferenceData from posterior draws
"""

from typing import Dict, Optional

import arviz as az
import jax
import jax.numpy as jnp
import numpy as np
import pandas as pd
from beartype import beartype

from vbgrowth.logging import configure_logging
from vbgrowth.models.core.growth import increment_mean
from vbgrowth.models.core.model import site_parameters
from vbgrowth.models.core.state import (
    GrowthData,
    ModelConfig,
    PosteriorSampleSet,
)
from vbgrowth.models.core.utils import to_numpy

logger = configure_logging(__name__)


@beartype
def site_parameter_draws(
    sample_set: PosteriorSampleSet,
    data: GrowthData,
    config: ModelConfig,
) -> Dict[str, jnp.ndarray]:
    """Per-site growth parameters for every draw.

    Returns:
        Dictionary of arrays of shape [draw, site], chains concatenated
    """
    return jax.vmap(lambda p: site_parameters(p, data, config))(sample_set.flatten())


@beartype
def population_parameter_draws(
    sample_set: PosteriorSampleSet,
    data: GrowthData,
) -> Dict[str, jnp.ndarray]:
    """Population growth parameters ``exp(intercept)`` for every draw.

    These are the site parameters of a site with zero random effect and zero
    standardized covariates.
    """
    intercept = sample_set.flatten()["intercept"]
    return {
        name: jnp.exp(intercept[:, i]) for i, name in enumerate(data.parameter_names)
    }


@beartype
def summarize_posterior(
    sample_set: PosteriorSampleSet,
    data: GrowthData,
    config: ModelConfig,
    prob: float = 0.9,
) -> pd.DataFrame:
    """Summary of population and per-site growth parameters.

    Args:
        sample_set: Posterior draws
        data: Observed data
        config: Model configuration
        prob: Central interval probability

    Returns:
        DataFrame with one row per (level, site, parameter) and columns mean,
        sd, lower and upper
    """
    lower_q, upper_q = (1.0 - prob) / 2.0, (1.0 + prob) / 2.0

    def _row(level, site, name, values):
        values = to_numpy(values)
        return {
            "level": level,
            "site": site,
            "parameter": name,
            "mean": float(values.mean()),
            "sd": float(values.std(ddof=1)) if values.size > 1 else 0.0,
            "lower": float(np.quantile(values, lower_q)),
            "upper": float(np.quantile(values, upper_q)),
        }

    rows = [
        _row("population", None, name, values)
        for name, values in population_parameter_draws(sample_set, data).items()
    ]
    sites = site_parameter_draws(sample_set, data, config)
    for name, values in sites.items():
        for i, site_id in enumerate(data.site_ids):
            rows.append(_row("site", site_id, name, values[:, i]))
    return pd.DataFrame(rows)


@beartype
def count_negative_increments(
    sample_set: PosteriorSampleSet,
    data: GrowthData,
    config: ModelConfig,
) -> int:
    """Number of recapture rows whose posterior-mean predicted increment is negative.

    A negative increment means the fish was first caught above its site's
    asymptotic length. The model propagates such predictions unchanged; this
    count only surfaces how often it happens.
    """
    if not data.has_recaptures:
        return 0
    sites = site_parameter_draws(sample_set, data, config)
    predicted = increment_mean(
        data.recapture_initial_length[jnp.newaxis, :],
        sites["Linf"][:, data.recapture_site],
        sites["k"][:, data.recapture_site],
        data.recapture_days[jnp.newaxis, :],
    )
    increment = predicted.mean(axis=0) - data.recapture_initial_length
    count = int(jnp.sum(increment < 0.0))
    if count:
        logger.info(
            f"{count} of {data.num_recaptures} recaptures have a negative "
            "predicted increment (initial length above site Linf)"
        )
    return count


def create_inference_data(
    sample_set: PosteriorSampleSet,
    log_likelihood: Optional[np.ndarray] = None,
    posterior_predictive: Optional[np.ndarray] = None,
    observed: Optional[np.ndarray] = None,
) -> az.InferenceData:
    """Create ArviZ InferenceData object from posterior draws.

    Observation-level arrays are given with a flattened draw axis in the same
    order as ``sample_set.flatten()`` and are regrouped by chain.

    Args:
        sample_set: Posterior draws grouped by chain
        log_likelihood: Optional pointwise log-likelihood [draw, observation]
        posterior_predictive: Optional predictive replicates [draw, observation]
        observed: Optional observed values [observation]

    Returns:
        ArviZ InferenceData object
    """
    shape = (sample_set.num_chains, sample_set.num_draws)
    inference_dict = {
        "posterior": {k: to_numpy(v) for k, v in sample_set.samples.items()}
    }
    if log_likelihood is not None:
        inference_dict["log_likelihood"] = {
            "length": np.asarray(log_likelihood).reshape(shape + (-1,))
        }
    if posterior_predictive is not None:
        inference_dict["posterior_predictive"] = {
            "length": np.asarray(posterior_predictive).reshape(shape + (-1,))
        }
    if observed is not None:
        inference_dict["observed_data"] = {"length": np.asarray(observed)}
    return az.from_dict(**inference_dict)
