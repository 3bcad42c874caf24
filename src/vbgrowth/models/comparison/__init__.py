"""
Predictive diagnostics for the vbgrowth JAX/NumPyro implementation.
"""

from vbgrowth.models.comparison.diagnostics import (
    DiagnosticsStage,
    PredictiveDiagnostics,
    run_predictive_diagnostics,
)
from vbgrowth.models.comparison.pointwise import (
    pointwise_log_likelihood,
    posterior_predictive_replicates,
)
from vbgrowth.models.comparison.psis import (
    ParetoShapeWarning,
    loo_pit,
    loo_pit_calibration,
    psis_loo,
    psis_smooth,
    relative_efficiency,
)

__all__ = [
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
