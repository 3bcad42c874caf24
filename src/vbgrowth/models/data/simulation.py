"""
Synthetic census and recapture data from known growth parameters.

This module contains:

- simulate_site_parameters: per-site L0, Linf, k with correlated log deviations
- simulate_census: census lengths drawn from the age-class mixture
- simulate_recaptures: recapture lengths drawn from the increment model
- simulate_dataset: both tables for a synthetic population

Simulated tables have the same columns as the CSV inputs and can be passed to
``build_growth_data`` directly.
"""

from typing import Dict, Optional, Tuple

import jax
import jax.numpy as jnp
import numpy as np
import pandas as pd
from beartype import beartype

from vbgrowth.models.core.effects import CorrelationStructure, hierarchical_effects
from vbgrowth.models.core.growth import age_mean_matrix
from vbgrowth.models.core.likelihoods import (
    sample_census_replicate,
    sample_recapture_replicate,
)
from vbgrowth.models.core.state import GROWTH_PARAMETERS, MixtureWeights
from vbgrowth.models.data.loading import CENSUS_COLUMNS, RECAPTURE_COLUMNS

DEFAULT_DAYS_RANGE = (30, 730)


def site_labels(num_sites: int) -> Tuple[str, ...]:
    return tuple(f"site_{i:03d}" for i in range(num_sites))


@beartype
def simulate_site_parameters(
    key: jnp.ndarray,
    num_sites: int,
    l0: float = 25.0,
    linf: float = 250.0,
    k: float = 0.4,
    tau: Optional[Tuple[float, float, float]] = None,
    correlation: Optional[CorrelationStructure] = None,
) -> Dict[str, jnp.ndarray]:
    """Per-site growth parameters around population values.

    Args:
        key: JAX random key
        num_sites: Number of sites
        l0: Population age-1 length
        linf: Population asymptotic length
        k: Population growth coefficient
        tau: Between-site log-scale standard deviations of (L0, Linf, k);
            None gives identical sites
        correlation: Correlation of the log deviations; identity by default

    Returns:
        Dictionary with arrays of shape [site] for "L0", "Linf" and "k"
    """
    log_center = jnp.log(jnp.array([l0, linf, k]))
    if tau is None:
        log_params = jnp.broadcast_to(log_center, (num_sites, 3))
    else:
        if correlation is None:
            correlation = CorrelationStructure.identity(3)
        z = jax.random.normal(key, (num_sites, 3))
        log_params = log_center + hierarchical_effects(
            z, jnp.asarray(tau, dtype=z.dtype), correlation.cholesky.astype(z.dtype)
        )
    return {
        name: jnp.exp(log_params[:, i]) for i, name in enumerate(GROWTH_PARAMETERS)
    }


@beartype
def simulate_census(
    key: jnp.ndarray,
    site_params: Dict[str, jnp.ndarray],
    weights: MixtureWeights,
    sigma: float,
    num_fish: int,
    site_ids: Optional[Tuple[str, ...]] = None,
) -> pd.DataFrame:
    """Census lengths drawn from the age-class mixture of each site.

    Args:
        key: JAX random key
        site_params: Per-site "L0", "Linf" and "k"
        weights: Age-class weights, one row per site
        sigma: Census observation noise on the log scale
        num_fish: Number of census fish, assigned to sites uniformly at random
        site_ids: Site identifiers; generated labels by default

    Returns:
        Census table with columns ``CENSUS_COLUMNS``

    Raises:
        ValueError: If the weights do not have one row per site
    """
    num_sites = site_params["Linf"].shape[0]
    if weights.num_sites != num_sites:
        raise ValueError(
            f"weights has {weights.num_sites} rows but there are {num_sites} sites"
        )
    site_ids = site_ids or site_labels(num_sites)
    key_site, key_length = jax.random.split(key)
    site = jax.random.randint(key_site, (num_fish,), 0, num_sites)
    mu = age_mean_matrix(
        site_params["L0"], site_params["Linf"], site_params["k"], weights.num_age_classes
    )
    length = sample_census_replicate(key_length, mu[site], weights.values[site], sigma)
    return pd.DataFrame(
        dict(
            zip(
                CENSUS_COLUMNS,
                (np.asarray(site_ids, dtype=object)[np.asarray(site)], np.asarray(length)),
            )
        )
    )


@beartype
def simulate_recaptures(
    key: jnp.ndarray,
    site_params: Dict[str, jnp.ndarray],
    sigma_cmr: float,
    num_fish: int,
    days_range: Tuple[int, int] = DEFAULT_DAYS_RANGE,
    site_ids: Optional[Tuple[str, ...]] = None,
) -> pd.DataFrame:
    """Recapture lengths drawn from the increment model of each site.

    Initial lengths are uniform between the site's L0 and 90% of its Linf, and
    days at liberty are uniform integers within ``days_range``.

    Returns:
        Recapture table with columns ``RECAPTURE_COLUMNS``
    """
    num_sites = site_params["Linf"].shape[0]
    site_ids = site_ids or site_labels(num_sites)
    key_site, key_initial, key_days, key_length = jax.random.split(key, 4)
    site = jax.random.randint(key_site, (num_fish,), 0, num_sites)
    linf = site_params["Linf"][site]
    lower = site_params["L0"][site] if "L0" in site_params else 0.1 * linf
    initial = jax.random.uniform(
        key_initial, (num_fish,), minval=lower, maxval=0.9 * linf
    )
    days = jax.random.randint(key_days, (num_fish,), days_range[0], days_range[1] + 1)
    recaptured = sample_recapture_replicate(
        key_length, initial, days, linf, site_params["k"][site], sigma_cmr
    )
    return pd.DataFrame(
        dict(
            zip(
                RECAPTURE_COLUMNS,
                (
                    np.asarray(site_ids, dtype=object)[np.asarray(site)],
                    np.asarray(initial),
                    np.asarray(days, dtype=float),
                    np.asarray(recaptured),
                ),
            )
        )
    )


@beartype
def simulate_dataset(
    key: jnp.ndarray,
    num_sites: int = 30,
    num_census: int = 1000,
    num_recaptures: int = 0,
    l0: float = 25.0,
    linf: float = 250.0,
    k: float = 0.4,
    sigma: float = 0.15,
    sigma_cmr: float = 0.05,
    num_age_classes: int = 5,
    tau: Optional[Tuple[float, float, float]] = None,
    weights: Optional[MixtureWeights] = None,
) -> Tuple[Optional[pd.DataFrame], Optional[pd.DataFrame]]:
    """Census and recapture tables for a synthetic population.

    Returns:
        Tuple of (census, recaptures); a table is None when its count is zero
    """
    key_sites, key_census, key_recaptures = jax.random.split(key, 3)
    site_params = simulate_site_parameters(key_sites, num_sites, l0, linf, k, tau=tau)
    if weights is None:
        weights = MixtureWeights.uniform(num_sites, num_age_classes)
    census = None
    if num_census > 0:
        census = simulate_census(key_census, site_params, weights, sigma, num_census)
    recaptures = None
    if num_recaptures > 0:
        recaptures = simulate_recaptures(
            key_recaptures, site_params, sigma_cmr, num_recaptures
        )
    return census, recaptures
