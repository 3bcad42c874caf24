"""Common test fixtures for the vbgrowth JAX/NumPyro implementation."""

import jax.numpy as jnp
import pytest

from vbgrowth.models.core.model import compose_model
from vbgrowth.models.core.state import (
    GrowthData,
    InferenceConfig,
    ModelConfig,
    PosteriorSampleSet,
)
from vbgrowth.models.core.utils import create_key, enable_x64
from vbgrowth.models.data.loading import build_growth_data
from vbgrowth.models.data.simulation import simulate_dataset
from vbgrowth.models.inference.mcmc import run_mcmc_inference

enable_x64()


def _constant_sample_set(model, num_chains=2, num_draws=8):
    return PosteriorSampleSet(
        samples={
            name: jnp.broadcast_to(value, (num_chains, num_draws) + jnp.shape(value))
            for name, value in model.initial_values().items()
        }
    )


@pytest.fixture
def constant_sample_set():
    """Factory for sample sets whose draws all equal the initial values."""
    return _constant_sample_set


@pytest.fixture
def jax_key():
    """Fixture for JAX random key."""
    return create_key(42)


@pytest.fixture(scope="session")
def simulated_tables():
    """Census and recapture tables for three sites."""
    return simulate_dataset(
        create_key(0),
        num_sites=3,
        num_census=60,
        num_recaptures=24,
        num_age_classes=3,
    )


@pytest.fixture(scope="session")
def growth_data(simulated_tables):
    """Census and recapture data for three sites."""
    census, recaptures = simulated_tables
    return build_growth_data(census=census, recaptures=recaptures)


@pytest.fixture(scope="session")
def recapture_data():
    """Recapture-only data for two sites."""
    return GrowthData(
        site_ids=("a", "b"),
        recapture_site=[0, 0, 1, 1],
        recapture_initial_length=[100.0, 150.0, 120.0, 90.0],
        recapture_days=[180.0, 365.0, 90.0, 400.0],
        recapture_length=[125.0, 180.0, 128.0, 140.0],
    )


@pytest.fixture(scope="session")
def model_config():
    """Model configuration matching the simulated data."""
    return ModelConfig(num_age_classes=3)


@pytest.fixture(scope="session")
def composed_model(growth_data, model_config):
    """Composed model of the simulated data."""
    return compose_model(growth_data, model_config)


@pytest.fixture(scope="session")
def fitted(composed_model):
    """A short two-chain NUTS run on the simulated data."""
    config = InferenceConfig(num_samples=100, num_warmup=100, num_chains=2, seed=1)
    return run_mcmc_inference(composed_model, config)
