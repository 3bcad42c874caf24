"""Tests for the joint log density and its unconstrained potential."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from vbgrowth.models.core.model import (
    ComposedModel,
    census_pointwise_log_likelihood,
    compose_log_density,
    compose_model,
    pointwise_log_likelihood_at,
    site_parameters,
)
from vbgrowth.models.core.priors import prior_log_density
from vbgrowth.models.core.state import GrowthData, ModelConfig


@pytest.fixture
def covariate_data():
    return GrowthData(
        site_ids=("a", "b", "c"),
        census_site=[0, 1, 2, 2],
        census_length=[40.0, 90.0, 150.0, 60.0],
        recapture_site=[0, 2],
        recapture_initial_length=[100.0, 80.0],
        recapture_days=[200.0, 300.0],
        recapture_length=[130.0, 120.0],
        covariates=[[0.5, -0.25], [0.0, 0.5], [-0.5, -0.25]],
    )


def test_site_parameters_without_effects(composed_model, growth_data, model_config):
    params = composed_model.initial_values()

    sites = site_parameters(params, growth_data, model_config)

    assert set(sites) == {"L0", "Linf", "k"}
    for i, name in enumerate(("L0", "Linf", "k")):
        assert sites[name].shape == (growth_data.num_sites,)
        assert jnp.allclose(sites[name], jnp.exp(params["intercept"][i]))


def test_site_parameters_are_positive(composed_model, growth_data, model_config):
    params = composed_model.initial_values()
    params["z"] = 50.0 * jnp.ones_like(params["z"])
    params["tau"] = jnp.full_like(params["tau"], -1.0)

    sites = site_parameters(params, growth_data, model_config)

    for values in sites.values():
        assert jnp.all(values > 0.0)


def test_site_parameters_covariates_shift_linf_and_k(covariate_data):
    config = ModelConfig(num_age_classes=3, use_covariates=True)
    model = compose_model(covariate_data, config)
    params = model.initial_values()
    params["beta_cov"] = jnp.array([[0.2, 0.0, 0.0], [0.0, -0.4, 1.0]])

    sites = site_parameters(params, covariate_data, config)

    base = jnp.exp(params["intercept"])
    temperature = covariate_data.covariates[:, 0]
    effort = covariate_data.covariates[:, 1]
    assert jnp.allclose(sites["L0"], base[0])
    assert jnp.allclose(sites["Linf"], base[1] * jnp.exp(0.2 * temperature))
    assert jnp.allclose(
        sites["k"],
        base[2] * jnp.exp(-0.4 * effort + temperature * effort),
    )


def test_pointwise_log_likelihood_order(composed_model, growth_data, model_config):
    params = composed_model.initial_values()

    pointwise = pointwise_log_likelihood_at(params, growth_data, model_config)

    assert pointwise.shape == (growth_data.num_observations,)
    sites = site_parameters(params, growth_data, model_config)
    census = census_pointwise_log_likelihood(params, sites, growth_data, model_config)
    assert jnp.allclose(pointwise[: growth_data.num_census], census)


def test_compose_log_density(composed_model, growth_data, model_config):
    params = composed_model.initial_values()

    full = compose_log_density(growth_data, model_config)(params)
    prior_only = compose_log_density(
        growth_data, model_config.replace(prior_only=True)
    )(params)

    prior = prior_log_density(params, composed_model.distributions)
    likelihood = jnp.sum(pointwise_log_likelihood_at(params, growth_data, model_config))
    assert jnp.allclose(prior_only, prior)
    assert jnp.allclose(full, prior + likelihood)


def test_log_density_is_pure(composed_model):
    params = composed_model.initial_values()
    first = composed_model.log_density(params)
    composed_model.log_density({k: v + 0.01 for k, v in params.items()})
    assert composed_model.log_density(params) == first


def test_compose_model(composed_model, growth_data):
    assert isinstance(composed_model, ComposedModel)
    assert set(composed_model.site_names) == set(composed_model.transforms)
    assert composed_model.data is growth_data


def test_constrain_unconstrain_round_trip(composed_model):
    values = composed_model.initial_values()

    restored = composed_model.constrain(composed_model.unconstrain(values))

    for name, value in values.items():
        assert jnp.allclose(restored[name], value, atol=1e-8), name


def test_potential_fn(composed_model):
    unconstrained = composed_model.init_params(jax.random.PRNGKey(0))

    potential = composed_model.potential_fn(unconstrained)
    gradient = jax.grad(composed_model.potential_fn)(unconstrained)

    assert jnp.isfinite(potential)
    for name, value in gradient.items():
        assert jnp.all(jnp.isfinite(value)), name


def test_potential_fn_non_finite_is_rejected(composed_model):
    unconstrained = composed_model.init_params(jax.random.PRNGKey(0))
    unconstrained["sigma_census"] = jnp.asarray(jnp.nan)

    assert composed_model.potential_fn(unconstrained) == jnp.inf


def test_init_params_shapes(composed_model, growth_data):
    single = composed_model.init_params(jax.random.PRNGKey(0), num_chains=1)
    multiple = composed_model.init_params(jax.random.PRNGKey(0), num_chains=3)

    assert single["z"].shape == (growth_data.num_sites, 3)
    assert multiple["z"].shape == (3, growth_data.num_sites, 3)
    # theta lives on the stick-breaking space of dimension A - 1
    assert multiple["theta"].shape == (3, growth_data.num_sites, 2)
    assert not np.allclose(multiple["intercept"][0], multiple["intercept"][1])
