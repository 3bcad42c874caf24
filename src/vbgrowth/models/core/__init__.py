"""
Core components of the vbgrowth JAX/NumPyro implementation.

This module contains the growth curves, hierarchical effects, likelihoods,
priors, the model composer, immutable state containers and utilities.
"""

from vbgrowth.models.core.effects import (
    CorrelationStructure,
    correlation_from_cholesky,
    hierarchical_effects,
    validate_cholesky_factor,
)
from vbgrowth.models.core.growth import (
    DAYS_PER_YEAR,
    age_mean,
    age_mean_matrix,
    increment_mean,
)
from vbgrowth.models.core.likelihoods import (
    census_log_likelihood,
    lognormal_log_density,
    recapture_log_likelihood,
    sample_census_replicate,
    sample_recapture_replicate,
)
from vbgrowth.models.core.model import (
    ComposedModel,
    compose_log_density,
    compose_model,
    pointwise_log_likelihood_at,
    site_parameters,
)
from vbgrowth.models.core.priors import (
    prior_distributions,
    prior_log_density,
    sample_prior,
)
from vbgrowth.models.core.state import (
    CalibrationResult,
    DiagnosticsResult,
    GrowthData,
    InferenceConfig,
    LooResult,
    MixtureWeights,
    ModelConfig,
    PosteriorSampleSet,
    PriorConfig,
    SamplerDiagnostics,
    validate_simplex,
)
from vbgrowth.models.core.utils import (
    create_key,
    enable_x64,
    ensure_array,
    split_key,
    to_numpy,
)

__all__ = [
    # Growth
    "DAYS_PER_YEAR",
    "age_mean",
    "age_mean_matrix",
    "increment_mean",
    # Effects
    "hierarchical_effects",
    "correlation_from_cholesky",
    "validate_cholesky_factor",
    "CorrelationStructure",
    # Likelihoods
    "lognormal_log_density",
    "census_log_likelihood",
    "recapture_log_likelihood",
    "sample_census_replicate",
    "sample_recapture_replicate",
    # Priors
    "prior_distributions",
    "prior_log_density",
    "sample_prior",
    # Model
    "site_parameters",
    "pointwise_log_likelihood_at",
    "compose_log_density",
    "compose_model",
    "ComposedModel",
    # State
    "validate_simplex",
    "MixtureWeights",
    "GrowthData",
    "PriorConfig",
    "ModelConfig",
    "InferenceConfig",
    "PosteriorSampleSet",
    "SamplerDiagnostics",
    "LooResult",
    "CalibrationResult",
    "DiagnosticsResult",
    # Utils
    "create_key",
    "split_key",
    "enable_x64",
    "ensure_array",
    "to_numpy",
]
