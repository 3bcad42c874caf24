"""
vbgrowth JAX/NumPyro implementation.

This module contains the hierarchical von Bertalanffy growth-mixture model,
its sampler adapter and the predictive diagnostics built on its draws.
"""

from vbgrowth.models.comparison import (
    DiagnosticsStage,
    ParetoShapeWarning,
    PredictiveDiagnostics,
    loo_pit,
    loo_pit_calibration,
    pointwise_log_likelihood,
    posterior_predictive_replicates,
    psis_loo,
    psis_smooth,
    relative_efficiency,
    run_predictive_diagnostics,
)
from vbgrowth.models.core import (
    CalibrationResult,
    ComposedModel,
    CorrelationStructure,
    DiagnosticsResult,
    GrowthData,
    InferenceConfig,
    LooResult,
    MixtureWeights,
    ModelConfig,
    PosteriorSampleSet,
    PriorConfig,
    SamplerDiagnostics,
    age_mean,
    census_log_likelihood,
    compose_log_density,
    compose_model,
    create_key,
    enable_x64,
    hierarchical_effects,
    increment_mean,
    recapture_log_likelihood,
    sample_prior,
    site_parameters,
    split_key,
)
from vbgrowth.models.data import (
    build_growth_data,
    load_growth_data,
    simulate_dataset,
    standardize_covariates,
)
from vbgrowth.models.inference import (
    SamplingCancelledError,
    count_negative_increments,
    create_inference_data,
    run_mcmc_inference,
    summarize_posterior,
)

__all__ = [
    # Core
    "age_mean",
    "increment_mean",
    "hierarchical_effects",
    "census_log_likelihood",
    "recapture_log_likelihood",
    "site_parameters",
    "compose_log_density",
    "compose_model",
    "sample_prior",
    "create_key",
    "split_key",
    "enable_x64",
    # State
    "GrowthData",
    "MixtureWeights",
    "CorrelationStructure",
    "ModelConfig",
    "PriorConfig",
    "InferenceConfig",
    "ComposedModel",
    "PosteriorSampleSet",
    "SamplerDiagnostics",
    "LooResult",
    "CalibrationResult",
    "DiagnosticsResult",
    # Data
    "build_growth_data",
    "load_growth_data",
    "standardize_covariates",
    "simulate_dataset",
    # Inference
    "SamplingCancelledError",
    "run_mcmc_inference",
    "summarize_posterior",
    "count_negative_increments",
    "create_inference_data",
    # Comparison
    "pointwise_log_likelihood",
    "posterior_predictive_replicates",
    "psis_smooth",
    "relative_efficiency",
    "psis_loo",
    "loo_pit",
    "loo_pit_calibration",
    "ParetoShapeWarning",
    "DiagnosticsStage",
    "PredictiveDiagnostics",
    "run_predictive_diagnostics",
]
