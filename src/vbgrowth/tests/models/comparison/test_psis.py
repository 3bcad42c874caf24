"""Tests for Pareto-smoothed importance sampling and LOO-PIT."""

import arviz as az
import numpy as np
import pytest
from scipy import stats
from scipy.special import logsumexp

from vbgrowth.models.comparison.psis import (
    ParetoShapeWarning,
    loo_pit,
    loo_pit_calibration,
    psis_loo,
    psis_smooth,
    relative_efficiency,
)
from vbgrowth.models.core.state import CalibrationResult, LooResult
from vbgrowth.models.core.utils import create_key

PRIOR_SD = 10.0


def _loo_data(log_likelihood, num_chains=1, posterior=None):
    num_obs = log_likelihood.shape[-1]
    groups = {
        "log_likelihood": {"length": log_likelihood.reshape(num_chains, -1, num_obs)}
    }
    if posterior is not None:
        groups["posterior"] = posterior
    return az.from_dict(**groups)


@pytest.fixture(scope="module")
def normal_mean_model():
    """Exact posterior draws of a normal mean with known unit noise."""
    rng = np.random.default_rng(0)
    n, num_draws = 30, 4000
    y = rng.normal(1.0, 1.0, n)

    post_var = 1.0 / (1.0 / PRIOR_SD**2 + n)
    post_mean = post_var * y.sum()
    mu = rng.normal(post_mean, np.sqrt(post_var), num_draws)

    log_likelihood = stats.norm.logpdf(y[None, :], mu[:, None], 1.0)
    replicates = rng.normal(mu[:, None], 1.0, (num_draws, n))

    loo_var = 1.0 / (1.0 / PRIOR_SD**2 + n - 1)
    loo_mean = loo_var * (y.sum() - y)
    exact = stats.norm.logpdf(y, loo_mean, np.sqrt(1.0 + loo_var))
    return y, log_likelihood, replicates, exact


def test_psis_smooth_normalizes():
    rng = np.random.default_rng(2)
    log_weights = rng.normal(0.0, 1.0, (1000, 3))

    smoothed, pareto_k = psis_smooth(log_weights)

    assert smoothed.shape == (1000, 3)
    assert pareto_k.shape == (3,)
    assert np.allclose(logsumexp(smoothed, axis=0), 0.0)
    assert np.all(np.isfinite(smoothed))


def test_psis_smooth_one_dimensional():
    rng = np.random.default_rng(3)

    smoothed, pareto_k = psis_smooth(rng.normal(size=500))

    assert smoothed.shape == (500,)
    assert pareto_k.shape == (1,)


def test_psis_smooth_shape_diagnostic():
    rng = np.random.default_rng(4)

    _, light = psis_smooth(rng.normal(0.0, 0.1, 4000))
    # Lomax draws have a generalized Pareto tail with shape 1 / a
    _, heavy = psis_smooth(np.log(rng.pareto(0.8, 10000)))

    assert light[0] < 0.5
    assert heavy[0] > 0.7


def test_psis_smooth_short_tail_is_infinite():
    rng = np.random.default_rng(5)

    _, pareto_k = psis_smooth(rng.normal(size=(10, 3)))

    assert np.all(np.isinf(pareto_k))


def test_psis_smooth_requires_two_draws():
    with pytest.raises(ValueError, match="at least 2 draws"):
        psis_smooth(np.zeros((1, 2)))
    with pytest.raises(ValueError, match="at least 2 draws"):
        psis_smooth(np.zeros(1))


def test_relative_efficiency():
    rng = np.random.default_rng(6)
    ll = np.zeros((2000, 2))

    independent = {"mu": rng.normal(size=(4, 500)), "fixed": np.ones((4, 500))}
    r_eff = relative_efficiency(_loo_data(ll, 4, independent))
    assert 0.7 < r_eff < 1.3

    rho, chain = 0.95, np.zeros(2000)
    for t in range(1, 2000):
        chain[t] = rho * chain[t - 1] + np.sqrt(1 - rho**2) * rng.normal()
    correlated = {"mu": chain.reshape(2, 1000)}
    assert relative_efficiency(_loo_data(ll, 2, correlated)) < 0.2


def test_relative_efficiency_without_chains():
    ll = np.zeros((100, 2))

    assert relative_efficiency(_loo_data(ll)) == 1.0
    single = {"mu": np.random.default_rng(7).normal(size=(1, 100))}
    assert relative_efficiency(_loo_data(ll, 1, single)) == 1.0


def test_psis_loo_matches_exact_leave_one_out(normal_mean_model):
    _, log_likelihood, _, exact = normal_mean_model

    loo = psis_loo(_loo_data(log_likelihood))

    assert isinstance(loo, LooResult)
    assert loo.elpd_loo == pytest.approx(exact.sum(), abs=0.1)
    assert np.allclose(loo.elpd_pointwise, exact, atol=0.02)
    assert np.mean(loo.pareto_k < 0.7) >= 0.95
    assert loo.num_flagged == 0
    assert 0.5 < loo.p_loo < 1.5
    assert loo.se == pytest.approx(
        np.sqrt(len(exact) * np.var(loo.elpd_pointwise))
    )
    assert loo.lppd > loo.elpd_loo
    assert loo.log_weights.shape == log_likelihood.shape
    assert np.allclose(logsumexp(loo.log_weights, axis=0), 0.0)


def test_psis_loo_flags_unreliable_observations():
    rng = np.random.default_rng(7)
    log_likelihood = rng.normal(size=(10, 3))

    with pytest.warns(ParetoShapeWarning):
        loo = psis_loo(_loo_data(log_likelihood))

    assert loo.num_flagged == 3
    assert np.all(np.isfinite(loo.elpd_pointwise))


def test_psis_loo_rejects_single_draw():
    with pytest.raises(ValueError, match="at least 2 draws"):
        psis_loo(_loo_data(np.zeros((1, 3))))


def test_psis_loo_requires_log_likelihood():
    idata = az.from_dict(posterior={"mu": np.zeros((1, 10))})

    with pytest.raises(ValueError, match="log_likelihood"):
        psis_loo(idata)


def test_loo_pit_weighting():
    replicates = np.tile(np.arange(10.0)[:, None], (1, 2))
    observed = np.array([4.5, 20.0])

    uniform = loo_pit(observed, replicates, np.zeros((10, 2)))
    assert np.allclose(uniform, [0.5, 1.0])

    single = np.full((10, 2), -1000.0)
    single[7] = 0.0
    assert np.allclose(loo_pit(observed, replicates, single), [0.0, 1.0])

    with pytest.raises(ValueError, match="Shape mismatch"):
        loo_pit(observed[:1], replicates, np.zeros((10, 2)))


def test_loo_pit_calibrated_model(normal_mean_model):
    y, log_likelihood, replicates, _ = normal_mean_model
    loo = psis_loo(_loo_data(log_likelihood))

    pit = loo_pit(y, replicates, loo.log_weights)
    calibration = loo_pit_calibration(pit, create_key(0), num_reference=200)

    assert np.all((pit >= 0.0) & (pit <= 1.0))
    assert calibration.ks_pvalue > 0.001


def test_loo_pit_calibration():
    rng = np.random.default_rng(8)

    calibrated = loo_pit_calibration(rng.uniform(size=200), create_key(1), 50)
    miscalibrated = loo_pit_calibration(np.full(200, 0.99), create_key(1), 50)

    assert isinstance(calibrated, CalibrationResult)
    assert calibrated.is_calibrated(alpha=0.001)
    assert not miscalibrated.is_calibrated()
    assert calibrated.uniform_reference.shape == (50, 200)
    assert np.all(np.diff(calibrated.uniform_reference, axis=1) >= 0.0)
    lower, upper = calibrated.envelope(0.9)
    assert lower.shape == upper.shape == (200,)
    assert np.all(lower <= upper)
