"""Tests for the census mixture and recapture increment likelihoods."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest
from beartype.roar import BeartypeCallHintParamViolation

from vbgrowth.models.core.growth import increment_mean
from vbgrowth.models.core.likelihoods import (
    census_log_likelihood,
    lognormal_log_density,
    recapture_log_likelihood,
    sample_census_replicate,
    sample_recapture_replicate,
)


def _naive_mixture_log_likelihood(y, mu, theta, sigma):
    mu, theta = np.asarray(mu), np.asarray(theta)
    density = np.exp(-((np.log(y) - np.log(mu)) ** 2) / (2.0 * sigma**2)) / (
        y * sigma * np.sqrt(2.0 * np.pi)
    )
    return np.log(np.sum(theta * density))


def test_lognormal_log_density():
    y, mu, sigma = 82.0, 80.0, 0.15
    expected = (
        -np.log(y * sigma * np.sqrt(2.0 * np.pi))
        - (np.log(y) - np.log(mu)) ** 2 / (2.0 * sigma**2)
    )
    assert np.isclose(float(lognormal_log_density(y, np.log(mu), sigma)), expected)


def test_census_log_likelihood_matches_direct_sum():
    mu = jnp.array([25.0, 80.0, 180.0])
    theta = jnp.array([0.6, 0.3, 0.1])

    result = float(census_log_likelihood(82.0, mu, theta, 0.15))

    expected = _naive_mixture_log_likelihood(82.0, mu, theta, 0.15)
    assert abs(result - expected) < 1e-6


def test_census_log_likelihood_well_separated_classes():
    """The direct sum underflows where the log-sum-exp stays finite."""
    mu = jnp.array([25.0, 80.0, 180.0])
    theta = jnp.array([0.6, 0.3, 0.1])

    result = float(census_log_likelihood(400.0, mu, theta, 0.01))

    with np.errstate(divide="ignore"):
        assert _naive_mixture_log_likelihood(400.0, mu, theta, 0.01) == -np.inf
    dominant = np.log(0.1) + float(lognormal_log_density(400.0, np.log(180.0), 0.01))
    assert np.isfinite(result)
    assert np.isclose(result, dominant)


def test_census_log_likelihood_single_class():
    result = census_log_likelihood(
        jnp.array([50.0, 60.0]),
        jnp.array([[55.0], [55.0]]),
        jnp.array([[1.0], [1.0]]),
        0.2,
    )
    expected = lognormal_log_density(jnp.array([50.0, 60.0]), jnp.log(55.0), 0.2)
    assert jnp.allclose(result, expected)


def test_census_log_likelihood_broadcasts_over_fish():
    mu = jnp.tile(jnp.array([25.0, 80.0, 180.0]), (4, 1))
    theta = jnp.tile(jnp.array([0.2, 0.5, 0.3]), (4, 1))
    y = jnp.array([20.0, 75.0, 150.0, 200.0])

    result = census_log_likelihood(y, mu, theta, 0.15)

    assert result.shape == (4,)
    for i in range(4):
        assert np.isclose(
            float(result[i]),
            _naive_mixture_log_likelihood(float(y[i]), mu[i], theta[i], 0.15),
        )


def test_census_log_likelihood_type_checking():
    with pytest.raises(BeartypeCallHintParamViolation):
        census_log_likelihood(82.0, [25.0, 80.0], jnp.array([0.5, 0.5]), 0.15)


def test_recapture_log_likelihood():
    initial = jnp.array([100.0, 150.0])
    days = jnp.array([180.0, 365.0])
    recaptured = jnp.array([120.0, 170.0])

    result = recapture_log_likelihood(recaptured, initial, days, 250.0, 0.4, 0.05)

    expected = lognormal_log_density(
        recaptured, jnp.log(increment_mean(initial, 250.0, 0.4, days)), 0.05
    )
    assert result.shape == (2,)
    assert jnp.allclose(result, expected)


def test_recapture_log_likelihood_above_linf_is_finite():
    result = recapture_log_likelihood(290.0, 300.0, 365.0, 250.0, 0.4, 0.05)
    assert jnp.isfinite(result)


def test_sample_census_replicate_follows_age_class(jax_key):
    mu = jnp.tile(jnp.array([25.0, 80.0, 180.0]), (500, 1))
    theta = jnp.tile(jnp.array([0.0, 1.0, 0.0]), (500, 1))

    replicate = sample_census_replicate(jax_key, mu, theta, 1e-3)

    assert replicate.shape == (500,)
    assert jnp.allclose(replicate, 80.0, rtol=0.01)


def test_sample_census_replicate_class_frequencies(jax_key):
    n = 20000
    mu = jnp.tile(jnp.array([25.0, 80.0, 180.0]), (n, 1))
    theta = jnp.tile(jnp.array([0.6, 0.3, 0.1]), (n, 1))

    replicate = np.asarray(sample_census_replicate(jax_key, mu, theta, 0.05))

    below = np.mean(replicate < 45.0)
    above = np.mean(replicate > 130.0)
    assert abs(below - 0.6) < 0.02
    assert abs(above - 0.1) < 0.02


def test_sample_recapture_replicate(jax_key):
    n = 20000
    initial = jnp.full(n, 100.0)
    days = jnp.full(n, 365.0)

    replicate = sample_recapture_replicate(jax_key, initial, days, 250.0, 0.4, 0.05)

    expected = float(increment_mean(100.0, 250.0, 0.4, 365.0))
    assert replicate.shape == (n,)
    assert jnp.all(replicate > 0.0)
    assert np.isclose(float(jnp.mean(jnp.log(replicate))), np.log(expected), atol=0.005)
    assert np.isclose(float(jnp.std(jnp.log(replicate))), 0.05, atol=0.005)
