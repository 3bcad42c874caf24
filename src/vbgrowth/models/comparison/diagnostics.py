"""
Predictive diagnostics over a fixed posterior sample set.

This module contains the PredictiveDiagnostics pipeline, which runs its stages
in a fixed order:

1. LOG_LIKELIHOOD: pointwise log-likelihood matrix [draw, observation]
2. REPLICATES: one posterior-predictive replicate per draw and observation
3. PSIS_LOO: Pareto-smoothed leave-one-out estimate with per-observation k
4. CALIBRATION: LOO-PIT values and their comparison against Uniform(0, 1)

Each stage computes its prerequisites on demand, so any stage can be requested
directly. Results are cached; the sample set is never modified.
"""

from enum import Enum
from typing import Optional

import arviz as az
import numpy as np
from beartype import beartype

from vbgrowth.logging import configure_logging
from vbgrowth.models.comparison.pointwise import (
    pointwise_log_likelihood,
    posterior_predictive_replicates,
)
from vbgrowth.models.comparison.psis import (
    loo_pit,
    loo_pit_calibration,
    psis_loo,
)
from vbgrowth.models.core.state import (
    CalibrationResult,
    DiagnosticsResult,
    GrowthData,
    LooResult,
    ModelConfig,
    PosteriorSampleSet,
)
from vbgrowth.models.core.utils import create_key, split_key, to_numpy
from vbgrowth.models.inference.posterior import (
    count_negative_increments,
    create_inference_data,
)

logger = configure_logging(__name__)


class DiagnosticsStage(Enum):
    """
    Enumeration of the diagnostic stages, in execution order.

    Attributes:
        PENDING: Nothing computed yet
        LOG_LIKELIHOOD: Pointwise log-likelihood extracted
        REPLICATES: Posterior-predictive replicates drawn
        PSIS_LOO: Leave-one-out estimate computed
        CALIBRATION: LOO-PIT calibration computed
    """

    PENDING = 0
    LOG_LIKELIHOOD = 1
    REPLICATES = 2
    PSIS_LOO = 3
    CALIBRATION = 4


class PredictiveDiagnostics:
    """Leave-one-out and calibration diagnostics of a fitted growth model.

    Args:
        sample_set: Posterior draws grouped by chain
        data: The data the draws were fitted to
        config: The model configuration of the fit
        seed: Seed for replicate and reference draws
        num_reference: Number of Uniform(0, 1) reference samples for LOO-PIT

    Example:
        >>> diagnostics = PredictiveDiagnostics(sample_set, data, config)
        >>> result = diagnostics.run()
        >>> result.loo.elpd_loo, result.loo.flagged_indices
    """

    @beartype
    def __init__(
        self,
        sample_set: PosteriorSampleSet,
        data: GrowthData,
        config: ModelConfig,
        seed: int = 0,
        num_reference: int = 1000,
    ):
        self.sample_set = sample_set
        self.data = data
        self.config = config
        self.num_reference = num_reference
        self._key_replicates, self._key_reference = split_key(create_key(seed))

        self.stage = DiagnosticsStage.PENDING
        self._log_likelihood: Optional[np.ndarray] = None
        self._replicates: Optional[np.ndarray] = None
        self._loo: Optional[LooResult] = None
        self._calibration: Optional[CalibrationResult] = None
        self._inference_data: Optional[az.InferenceData] = None

    def _advance(self, stage: DiagnosticsStage) -> None:
        if stage.value > self.stage.value:
            self.stage = stage
        logger.debug(f"Diagnostics stage {stage.name} complete")

    def extract_log_likelihood(self) -> np.ndarray:
        """Pointwise log-likelihood, shape [chain * draw, observation]."""
        if self._log_likelihood is None:
            ll = to_numpy(
                pointwise_log_likelihood(self.sample_set, self.data, self.config)
            )
            if not np.all(np.isfinite(ll)):
                raise ValueError(
                    f"{np.sum(~np.isfinite(ll))} pointwise log-likelihood values "
                    "are not finite"
                )
            self._log_likelihood = ll
            self._advance(DiagnosticsStage.LOG_LIKELIHOOD)
        return self._log_likelihood

    def replicate(self) -> np.ndarray:
        """Posterior-predictive replicates, shape [chain * draw, observation]."""
        if self._replicates is None:
            self.extract_log_likelihood()
            self._replicates = to_numpy(
                posterior_predictive_replicates(
                    self._key_replicates, self.sample_set, self.data, self.config
                )
            )
            self._advance(DiagnosticsStage.REPLICATES)
        return self._replicates

    def psis_loo(self) -> LooResult:
        """PSIS-LOO estimate with the relative efficiency of the posterior."""
        if self._loo is None:
            self._loo = psis_loo(self.to_inference_data())
            self._advance(DiagnosticsStage.PSIS_LOO)
        return self._loo

    def loo_pit(self) -> CalibrationResult:
        """LOO-PIT values weighted by the smoothed leave-one-out weights."""
        if self._calibration is None:
            loo = self.psis_loo()
            pit = loo_pit(
                to_numpy(self.data.observed()), self.replicate(), loo.log_weights
            )
            self._calibration = loo_pit_calibration(
                pit, self._key_reference, self.num_reference
            )
            self._advance(DiagnosticsStage.CALIBRATION)
        return self._calibration

    def run(self) -> DiagnosticsResult:
        """Run every stage and collect the results."""
        calibration = self.loo_pit()
        return DiagnosticsResult(
            log_likelihood=self.extract_log_likelihood(),
            replicates=self.replicate(),
            observed=to_numpy(self.data.observed()),
            observation_source=self.data.observation_sources(),
            observation_site=self.data.observation_sites(),
            loo=self.psis_loo(),
            calibration=calibration,
            negative_increments=count_negative_increments(
                self.sample_set, self.data, self.config
            ),
        )

    def to_inference_data(self) -> az.InferenceData:
        """ArviZ InferenceData with posterior, log-likelihood and predictive groups."""
        if self._inference_data is None:
            self._inference_data = create_inference_data(
                self.sample_set,
                log_likelihood=self.extract_log_likelihood(),
                posterior_predictive=self.replicate(),
                observed=to_numpy(self.data.observed()),
            )
        return self._inference_data


@beartype
def run_predictive_diagnostics(
    sample_set: PosteriorSampleSet,
    data: GrowthData,
    config: ModelConfig,
    seed: int = 0,
) -> DiagnosticsResult:
    """Convenience wrapper running all diagnostic stages."""
    return PredictiveDiagnostics(sample_set, data, config, seed=seed).run()
