"""
Leave-one-out checks of the growth model on prior-predictive datasets.

Each dataset keeps the site layout, recapture initial lengths and days at
liberty of a simulated template and replaces every observed length with one
draw from the prior predictive of the same model that is then fitted.
"""

import dataclasses

import numpy as np
import pytest

from vbgrowth.models.comparison.diagnostics import PredictiveDiagnostics
from vbgrowth.models.comparison.pointwise import posterior_predictive_replicates
from vbgrowth.models.core.model import compose_model
from vbgrowth.models.core.priors import sample_prior
from vbgrowth.models.core.state import InferenceConfig, ModelConfig, PriorConfig
from vbgrowth.models.core.utils import create_key, split_key, to_numpy
from vbgrowth.models.data.loading import build_growth_data
from vbgrowth.models.data.simulation import simulate_dataset
from vbgrowth.models.inference.mcmc import run_mcmc_inference

CONFIG = ModelConfig(
    num_age_classes=3,
    priors=PriorConfig(
        intercept_scale=(0.2, 0.2, 0.2),
        tau_scale=0.2,
        sigma_census_scale=0.2,
        sigma_cmr_scale=0.1,
    ),
)


@pytest.fixture(scope="module")
def template():
    census, recaptures = simulate_dataset(
        create_key(11),
        num_sites=4,
        num_census=120,
        num_recaptures=40,
        num_age_classes=3,
    )
    return build_growth_data(census=census, recaptures=recaptures)


def prior_predictive_fit(template, seed):
    key_prior, key_replicate = split_key(create_key(seed))
    prior = sample_prior(key_prior, template, CONFIG, num_draws=1)
    lengths = to_numpy(
        posterior_predictive_replicates(key_replicate, prior, template, CONFIG)
    )[0]
    data = dataclasses.replace(
        template,
        census_length=lengths[: template.num_census],
        recapture_length=lengths[template.num_census :],
    )
    sample_set, _ = run_mcmc_inference(
        compose_model(data, CONFIG),
        InferenceConfig(num_samples=300, num_warmup=300, num_chains=2, seed=seed),
    )
    return PredictiveDiagnostics(sample_set, data, CONFIG, seed=seed)


@pytest.mark.slow
@pytest.mark.integration
def test_pareto_shape_on_prior_predictive_data(template):
    loo = prior_predictive_fit(template, seed=100).psis_loo()

    assert loo.pareto_k.shape == (template.num_observations,)
    assert np.mean(loo.pareto_k < 0.7) >= 0.95


@pytest.mark.slow
@pytest.mark.integration
def test_loo_pit_calibrated_across_simulations(template):
    num_simulations = 10

    passed = [
        prior_predictive_fit(template, seed=200 + i).loo_pit().is_calibrated(0.05)
        for i in range(num_simulations)
    ]

    assert np.mean(passed) >= 0.9
