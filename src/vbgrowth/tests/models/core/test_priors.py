"""Tests for the prior specification of the growth model."""

import jax.numpy as jnp
import numpy as np
import pytest

from vbgrowth.models.core.priors import (
    prior_distributions,
    prior_log_density,
    sample_prior,
)
from vbgrowth.models.core.state import GrowthData, ModelConfig, PosteriorSampleSet


def test_prior_distributions_census_and_recaptures(growth_data, model_config):
    distributions = prior_distributions(growth_data, model_config)

    assert set(distributions) == {
        "intercept",
        "tau",
        "L_corr",
        "z",
        "theta",
        "sigma_census",
        "sigma_cmr",
    }
    assert distributions["intercept"].event_shape == (3,)
    assert distributions["z"].event_shape == (growth_data.num_sites, 3)
    assert distributions["theta"].event_shape == (growth_data.num_sites, 3)
    assert distributions["L_corr"].event_shape == (3, 3)


def test_prior_distributions_recapture_only(recapture_data):
    distributions = prior_distributions(recapture_data, ModelConfig())

    assert "theta" not in distributions
    assert "sigma_census" not in distributions
    assert "sigma_cmr" in distributions
    assert distributions["intercept"].event_shape == (2,)
    assert distributions["L_corr"].event_shape == (2, 2)
    assert jnp.allclose(
        distributions["intercept"].base_dist.loc, jnp.log(jnp.array([250.0, 0.4]))
    )


def test_prior_distributions_covariates(growth_data, model_config):
    with pytest.raises(ValueError, match="covariates"):
        prior_distributions(growth_data, model_config.replace(use_covariates=True))

    data = GrowthData(
        site_ids=("a", "b"),
        census_site=[0, 1],
        census_length=[50.0, 60.0],
        covariates=[[0.5, -0.5], [-0.5, 0.5]],
    )
    distributions = prior_distributions(data, ModelConfig(use_covariates=True))
    assert distributions["beta_cov"].event_shape == (2, 3)


def test_prior_log_density_is_finite(composed_model):
    values = composed_model.initial_values()
    log_prob = prior_log_density(values, composed_model.distributions)

    assert log_prob.shape == ()
    assert jnp.isfinite(log_prob)


def test_sample_prior(jax_key, growth_data, model_config):
    prior = sample_prior(jax_key, growth_data, model_config, num_draws=50)

    assert isinstance(prior, PosteriorSampleSet)
    assert prior.num_chains == 1
    assert prior.num_draws == 50
    assert prior.samples["z"].shape == (1, 50, growth_data.num_sites, 3)
    assert prior.samples["theta"].shape == (1, 50, growth_data.num_sites, 3)
    assert np.allclose(np.asarray(prior.samples["theta"]).sum(axis=-1), 1.0)
    assert jnp.all(prior.samples["tau"] > 0.0)
    assert jnp.all(prior.samples["sigma_census"] > 0.0)
