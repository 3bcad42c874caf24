"""
Inference utilities for the vbgrowth JAX/NumPyro implementation.

This module contains the NUTS sampler adapter and posterior analysis.
"""

from vbgrowth.models.inference.mcmc import (
    SamplingCancelledError,
    create_mcmc,
    extract_posterior_samples,
    mcmc_diagnostics,
    run_mcmc_inference,
)
from vbgrowth.models.inference.posterior import (
    count_negative_increments,
    create_inference_data,
    population_parameter_draws,
    site_parameter_draws,
    summarize_posterior,
)

__all__ = [
    # MCMC
    "SamplingCancelledError",
    "create_mcmc",
    "run_mcmc_inference",
    "mcmc_diagnostics",
    "extract_posterior_samples",
    # Posterior
    "site_parameter_draws",
    "population_parameter_draws",
    "summarize_posterior",
    "count_negative_increments",
    "create_inference_data",
]
