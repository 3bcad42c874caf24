"""
Data utilities for the vbgrowth JAX/NumPyro implementation.

This module contains CSV loading, covariate standardization, dataset assembly
and synthetic data simulation.
"""

from vbgrowth.models.data.loading import (
    build_growth_data,
    load_growth_data,
    read_census,
    read_covariates,
    read_recaptures,
)
from vbgrowth.models.data.preprocessing import standardize, standardize_covariates
from vbgrowth.models.data.simulation import (
    simulate_census,
    simulate_dataset,
    simulate_recaptures,
    simulate_site_parameters,
)

__all__ = [
    # Loading
    "read_census",
    "read_recaptures",
    "read_covariates",
    "build_growth_data",
    "load_growth_data",
    # Preprocessing
    "standardize",
    "standardize_covariates",
    # Simulation
    "simulate_site_parameters",
    "simulate_census",
    "simulate_recaptures",
    "simulate_dataset",
]
