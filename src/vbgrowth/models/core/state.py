"""
Immutable state containers for the vbgrowth JAX/NumPyro implementation.

This module contains immutable containers for observed data, configuration,
posterior draws and diagnostic results. Every container is written once per
pipeline run and read many times; none of them is mutated after construction.
"""

import dataclasses
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

import jax.numpy as jnp
import numpy as np
import pandas as pd
from beartype import beartype
from jaxtyping import ArrayLike

SIMPLEX_TOLERANCE = 1e-5

GROWTH_PARAMETERS = ("L0", "Linf", "k")
RECAPTURE_ONLY_PARAMETERS = ("Linf", "k")
COVARIATE_NAMES = ("temperature", "effort")
COVARIATE_TERMS = ("temperature", "effort", "temperature:effort")

CENSUS = "census"
RECAPTURE = "recapture"


@beartype
def validate_simplex(
    weights: Union[ArrayLike, list, tuple],
    atol: float = SIMPLEX_TOLERANCE,
) -> None:
    """Check that the last axis of ``weights`` lies on the probability simplex.

    Raises:
        ValueError: If any weight is negative or non-finite, or a row does not
            sum to one within ``atol``
    """
    values = np.asarray(weights, dtype=float)
    if values.ndim == 0 or values.shape[-1] == 0:
        raise ValueError("Mixture weights must have at least one component")
    if not np.all(np.isfinite(values)):
        raise ValueError("Mixture weights contain non-finite values")
    if np.any(values < 0.0):
        raise ValueError(
            f"Mixture weights must be non-negative, min = {values.min():.6g}"
        )
    totals = values.sum(axis=-1)
    if not np.allclose(totals, 1.0, atol=atol):
        raise ValueError(
            "Mixture weights must sum to 1, got sums in "
            f"[{totals.min():.6g}, {totals.max():.6g}]"
        )


@dataclass(frozen=True)
class MixtureWeights:
    """Per-site probability simplex over the age classes.

    Attributes:
        values: Array of shape [site, age] (or [age] for a single site) whose rows
            sum to one; validated on construction
    """

    values: jnp.ndarray

    def __post_init__(self):
        validate_simplex(self.values)
        object.__setattr__(
            self,
            "values",
            jnp.atleast_2d(jnp.asarray(self.values, dtype=jnp.result_type(float))),
        )

    @property
    def num_sites(self) -> int:
        return self.values.shape[0]

    @property
    def num_age_classes(self) -> int:
        return self.values.shape[1]

    @classmethod
    def uniform(cls, num_sites: int, num_age_classes: int) -> "MixtureWeights":
        return cls(
            values=jnp.full((num_sites, num_age_classes), 1.0 / num_age_classes)
        )


def _as_float(values) -> jnp.ndarray:
    return jnp.asarray(values, dtype=jnp.result_type(float)).reshape(-1)


def _as_index(values) -> jnp.ndarray:
    return jnp.asarray(values, dtype=jnp.int32).reshape(-1)


@dataclass(frozen=True)
class GrowthData:
    """Observed census and capture-mark-recapture data for one pipeline run.

    Sites are referenced by integer index into ``site_ids``. The latent age
    class of a census fish is never stored.

    Attributes:
        site_ids: Site identifiers, position is the site index
        census_site: Site index of each census fish
        census_length: Observed census length
        recapture_site: Site index of each recaptured fish
        recapture_initial_length: Length at first capture
        recapture_days: Days at liberty
        recapture_length: Length at recapture
        covariates: Optional standardized site covariates of shape [site, 2]
            (temperature, effort density)
    """

    site_ids: Tuple[str, ...]
    census_site: jnp.ndarray = field(default_factory=lambda: jnp.zeros(0, jnp.int32))
    census_length: jnp.ndarray = field(default_factory=lambda: jnp.zeros(0))
    recapture_site: jnp.ndarray = field(
        default_factory=lambda: jnp.zeros(0, jnp.int32)
    )
    recapture_initial_length: jnp.ndarray = field(
        default_factory=lambda: jnp.zeros(0)
    )
    recapture_days: jnp.ndarray = field(default_factory=lambda: jnp.zeros(0))
    recapture_length: jnp.ndarray = field(default_factory=lambda: jnp.zeros(0))
    covariates: Optional[jnp.ndarray] = None

    def __post_init__(self):
        object.__setattr__(self, "site_ids", tuple(str(s) for s in self.site_ids))
        for name in ("census_site", "recapture_site"):
            object.__setattr__(self, name, _as_index(getattr(self, name)))
        for name in (
            "census_length",
            "recapture_initial_length",
            "recapture_days",
            "recapture_length",
        ):
            object.__setattr__(self, name, _as_float(getattr(self, name)))
        if self.covariates is not None:
            object.__setattr__(
                self,
                "covariates",
                jnp.asarray(self.covariates, dtype=jnp.result_type(float)),
            )
        self.validate()

    def validate(self) -> None:
        """Validate the observations.

        Raises:
            ValueError: On empty site lists, mismatched column lengths, site
                indices out of range, non-positive lengths or days, or
                malformed covariates
        """
        num_sites = len(self.site_ids)
        if num_sites == 0:
            raise ValueError("At least one site is required")
        if len(set(self.site_ids)) != num_sites:
            raise ValueError("Site identifiers must be unique")
        if self.num_census == 0 and self.num_recaptures == 0:
            raise ValueError("At least one census or recapture observation is required")

        if self.census_site.shape != self.census_length.shape:
            raise ValueError(
                "census_site and census_length must have the same length, got "
                f"{self.census_site.shape[0]} and {self.census_length.shape[0]}"
            )
        recapture_shapes = {
            self.recapture_site.shape,
            self.recapture_initial_length.shape,
            self.recapture_days.shape,
            self.recapture_length.shape,
        }
        if len(recapture_shapes) != 1:
            raise ValueError("Recapture columns must all have the same length")

        for name in ("census_site", "recapture_site"):
            index = np.asarray(getattr(self, name))
            if index.size and (index.min() < 0 or index.max() >= num_sites):
                raise ValueError(f"{name} contains indices outside [0, {num_sites})")

        for name in ("census_length", "recapture_initial_length", "recapture_length"):
            values = np.asarray(getattr(self, name))
            if not np.all(np.isfinite(values)) or np.any(values <= 0.0):
                raise ValueError(f"{name} must contain finite, strictly positive lengths")
        days = np.asarray(self.recapture_days)
        if not np.all(np.isfinite(days)) or np.any(days <= 0.0):
            raise ValueError("recapture_days must contain finite, strictly positive values")

        if self.covariates is not None:
            if self.covariates.shape != (num_sites, len(COVARIATE_NAMES)):
                raise ValueError(
                    f"covariates must have shape ({num_sites}, {len(COVARIATE_NAMES)}), "
                    f"got {self.covariates.shape}"
                )
            if not np.all(np.isfinite(np.asarray(self.covariates))):
                raise ValueError("covariates contain non-finite values")

    @property
    def num_sites(self) -> int:
        return len(self.site_ids)

    @property
    def num_census(self) -> int:
        return int(self.census_length.shape[0])

    @property
    def num_recaptures(self) -> int:
        return int(self.recapture_length.shape[0])

    @property
    def num_observations(self) -> int:
        return self.num_census + self.num_recaptures

    @property
    def has_census(self) -> bool:
        return self.num_census > 0

    @property
    def has_recaptures(self) -> bool:
        return self.num_recaptures > 0

    @property
    def parameter_names(self) -> Tuple[str, ...]:
        """Growth parameters carried by the site random effects."""
        return GROWTH_PARAMETERS if self.has_census else RECAPTURE_ONLY_PARAMETERS

    def observed(self) -> jnp.ndarray:
        """Observed lengths in diagnostic order: census rows, then recapture rows."""
        return jnp.concatenate([self.census_length, self.recapture_length])

    def observation_sources(self) -> np.ndarray:
        return np.array([CENSUS] * self.num_census + [RECAPTURE] * self.num_recaptures)

    def observation_sites(self) -> np.ndarray:
        index = np.concatenate(
            [np.asarray(self.census_site), np.asarray(self.recapture_site)]
        )
        return np.asarray(self.site_ids, dtype=object)[index]

    def covariate_design(self) -> Optional[jnp.ndarray]:
        """Site design matrix with columns ``COVARIATE_TERMS``."""
        if self.covariates is None:
            return None
        temperature = self.covariates[:, 0]
        effort = self.covariates[:, 1]
        return jnp.stack([temperature, effort, temperature * effort], axis=-1)


@dataclass(frozen=True)
class PriorConfig:
    """Immutable container for prior hyperparameters.

    Attributes:
        intercept_loc: Normal prior means of log(L0), log(Linf), log(k)
        intercept_scale: Normal prior scales of the log intercepts
        slope_scale: Normal prior scale of covariate slopes
        tau_scale: Half-normal scale of the between-site standard deviations
        sigma_census_scale: Half-normal scale of the census observation noise
        sigma_cmr_scale: Half-normal scale of the recapture observation noise
    """

    intercept_loc: Tuple[float, float, float] = (
        math.log(25.0),
        math.log(250.0),
        math.log(0.4),
    )
    intercept_scale: Tuple[float, float, float] = (1.0, 1.0, 1.0)
    slope_scale: float = 0.5
    tau_scale: float = 0.5
    sigma_census_scale: float = 0.5
    sigma_cmr_scale: float = 0.5

    def __post_init__(self):
        if len(self.intercept_loc) != 3 or len(self.intercept_scale) != 3:
            raise ValueError("intercept_loc and intercept_scale need one entry per L0, Linf, k")
        scales = (
            *self.intercept_scale,
            self.slope_scale,
            self.tau_scale,
            self.sigma_census_scale,
            self.sigma_cmr_scale,
        )
        if any(s <= 0 for s in scales):
            raise ValueError("Prior scales must be strictly positive")

    def replace(self, **kwargs) -> "PriorConfig":
        return dataclasses.replace(self, **kwargs)


@dataclass(frozen=True)
class ModelConfig:
    """Immutable container for model configuration.

    Attributes:
        num_age_classes: Number of census age classes A
        dirichlet_concentration: Dirichlet concentration vector of length A;
            defaults to all ones
        lkj_concentration: Concentration eta of the LKJ correlation prior
        prior_only: Evaluate priors only, excluding both likelihood sums
        use_covariates: Add site covariate terms to log(Linf) and log(k)
        priors: Prior hyperparameters
    """

    num_age_classes: int = 5
    dirichlet_concentration: Optional[Tuple[float, ...]] = None
    lkj_concentration: float = 2.0
    prior_only: bool = False
    use_covariates: bool = False
    priors: PriorConfig = field(default_factory=PriorConfig)

    def __post_init__(self):
        if self.num_age_classes < 1:
            raise ValueError("num_age_classes must be at least 1")
        if self.dirichlet_concentration is None:
            object.__setattr__(
                self, "dirichlet_concentration", (1.0,) * self.num_age_classes
            )
        else:
            object.__setattr__(
                self,
                "dirichlet_concentration",
                tuple(float(a) for a in self.dirichlet_concentration),
            )
        if len(self.dirichlet_concentration) != self.num_age_classes:
            raise ValueError(
                "dirichlet_concentration must have num_age_classes="
                f"{self.num_age_classes} entries, got {len(self.dirichlet_concentration)}"
            )
        if any(a <= 0 for a in self.dirichlet_concentration):
            raise ValueError("dirichlet_concentration must be strictly positive")
        if self.lkj_concentration <= 0:
            raise ValueError("lkj_concentration must be strictly positive")

    def replace(self, **kwargs) -> "ModelConfig":
        """Create a new ModelConfig with updated values.

        Args:
            **kwargs: Keyword arguments with new values

        Returns:
            New ModelConfig with updated values
        """
        if "num_age_classes" in kwargs and "dirichlet_concentration" not in kwargs:
            kwargs["dirichlet_concentration"] = None
        return dataclasses.replace(self, **kwargs)


@dataclass(frozen=True)
class InferenceConfig:
    """Immutable container for sampler configuration.

    Attributes:
        num_samples: Post warm-up draws per chain
        num_warmup: Warm-up iterations per chain
        num_chains: Number of independent chains
        seed: Random seed of the sampler
        chain_method: "sequential", "parallel" or "vectorized"
        target_accept_prob: NUTS step size adaptation target
        max_tree_depth: NUTS maximum tree depth
        init_jitter: Half-width of the uniform jitter applied to initial
            unconstrained values of each chain
        progress_bar: Whether to show the sampler progress bar
    """

    num_samples: int = 1000
    num_warmup: int = 500
    num_chains: int = 4
    seed: int = 0
    chain_method: str = "sequential"
    target_accept_prob: float = 0.8
    max_tree_depth: int = 10
    init_jitter: float = 0.5
    progress_bar: bool = False

    def __post_init__(self):
        if self.num_samples < 1 or self.num_warmup < 0 or self.num_chains < 1:
            raise ValueError("num_samples and num_chains must be positive, num_warmup non-negative")
        if self.chain_method not in ("sequential", "parallel", "vectorized"):
            raise ValueError(f"Unknown chain method: {self.chain_method}")
        if not 0.0 < self.target_accept_prob < 1.0:
            raise ValueError("target_accept_prob must lie in (0, 1)")

    def replace(self, **kwargs) -> "InferenceConfig":
        return dataclasses.replace(self, **kwargs)


@dataclass(frozen=True)
class PosteriorSampleSet:
    """Ordered posterior draws, partitioned by chain.

    Attributes:
        samples: Dictionary of constrained parameter draws, each with leading
            dimensions [chain, draw]
    """

    samples: Dict[str, jnp.ndarray]

    def __post_init__(self):
        if not self.samples:
            raise ValueError("PosteriorSampleSet requires at least one parameter")
        leading = {tuple(v.shape[:2]) for v in self.samples.values()}
        if any(v.ndim < 2 for v in self.samples.values()) or len(leading) != 1:
            raise ValueError(
                "All parameters must share leading [chain, draw] dimensions"
            )
        if "theta" in self.samples:
            validate_simplex(self.samples["theta"])

    @property
    def num_chains(self) -> int:
        return next(iter(self.samples.values())).shape[0]

    @property
    def num_draws(self) -> int:
        return next(iter(self.samples.values())).shape[1]

    @property
    def num_total(self) -> int:
        return self.num_chains * self.num_draws

    def flatten(self) -> Dict[str, jnp.ndarray]:
        """Draws with the chain axis merged, shape [chain * draw, ...]."""
        return {
            k: v.reshape((self.num_total,) + v.shape[2:])
            for k, v in self.samples.items()
        }

    def draw(self, index: int) -> Dict[str, jnp.ndarray]:
        """A single draw addressed by its flattened index."""
        chain, draw = divmod(index, self.num_draws)
        return {k: v[chain, draw] for k, v in self.samples.items()}

    @classmethod
    def from_flat(
        cls, samples: Dict[str, jnp.ndarray], num_chains: int = 1
    ) -> "PosteriorSampleSet":
        """Split flat draws of shape [chain * draw, ...] into chains."""
        return cls(
            samples={
                k: jnp.asarray(v).reshape((num_chains, -1) + jnp.shape(v)[1:])
                for k, v in samples.items()
            }
        )


@dataclass(frozen=True)
class SamplerDiagnostics:
    """Convergence conditions reported by the external sampler, passed through.

    Attributes:
        divergences: Number of divergent transitions per chain
        accept_prob: Mean acceptance probability per chain
        r_hat: Split R-hat per sampled site
        ess: Effective sample size per sampled site
    """

    divergences: Tuple[int, ...]
    accept_prob: Tuple[float, ...]
    r_hat: Dict[str, np.ndarray] = field(default_factory=dict)
    ess: Dict[str, np.ndarray] = field(default_factory=dict)

    @property
    def total_divergences(self) -> int:
        return int(sum(self.divergences))

    @property
    def has_divergences(self) -> bool:
        return self.total_divergences > 0

    def max_r_hat(self) -> float:
        values = [np.nanmax(v) for v in self.r_hat.values() if np.size(v)]
        return float(max(values)) if values else float("nan")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "divergences": list(self.divergences),
            "total_divergences": self.total_divergences,
            "accept_prob": list(self.accept_prob),
            "max_r_hat": self.max_r_hat(),
            "min_ess": float(
                min((np.nanmin(v) for v in self.ess.values() if np.size(v)), default=np.nan)
            ),
        }


@dataclass(frozen=True)
class LooResult:
    """Pareto-smoothed importance sampling leave-one-out estimate.

    Attributes:
        elpd_loo: Expected log pointwise predictive density
        se: Standard error of ``elpd_loo``
        p_loo: Effective number of parameters
        lppd: In-sample log pointwise predictive density
        elpd_pointwise: Per-observation ``elpd_loo`` contributions
        pareto_k: Per-observation Pareto shape diagnostic
        log_weights: Smoothed, normalized log weights of shape [draw, observation]
        r_eff: Relative efficiency used for the tail length
        k_threshold: Pareto shape above which an observation is flagged
    """

    elpd_loo: float
    se: float
    p_loo: float
    lppd: float
    elpd_pointwise: np.ndarray
    pareto_k: np.ndarray
    log_weights: np.ndarray
    r_eff: np.ndarray
    k_threshold: float = 0.7

    @property
    def flagged(self) -> np.ndarray:
        return ~(self.pareto_k <= self.k_threshold)

    @property
    def flagged_indices(self) -> np.ndarray:
        return np.flatnonzero(self.flagged)

    @property
    def num_flagged(self) -> int:
        return int(self.flagged.sum())

    @property
    def looic(self) -> float:
        return -2.0 * self.elpd_loo


@dataclass(frozen=True)
class CalibrationResult:
    """LOO-PIT calibration against Uniform(0, 1).

    Attributes:
        pit: Leave-one-out probability integral transform values
        ks_statistic: Kolmogorov-Smirnov statistic against Uniform(0, 1)
        ks_pvalue: Kolmogorov-Smirnov p-value
        uniform_reference: Sorted Monte Carlo Uniform(0, 1) draws of shape
            [reference, observation]
    """

    pit: np.ndarray
    ks_statistic: float
    ks_pvalue: float
    uniform_reference: np.ndarray

    def is_calibrated(self, alpha: float = 0.05) -> bool:
        return self.ks_pvalue >= alpha

    def envelope(self, prob: float = 0.95) -> Tuple[np.ndarray, np.ndarray]:
        """Pointwise band of the sorted uniform reference draws."""
        lower = np.quantile(self.uniform_reference, (1.0 - prob) / 2.0, axis=0)
        upper = np.quantile(self.uniform_reference, (1.0 + prob) / 2.0, axis=0)
        return lower, upper


@dataclass(frozen=True)
class DiagnosticsResult:
    """Validation artifacts produced from one posterior sample set.

    Attributes:
        log_likelihood: Pointwise log-likelihood of shape [draw, observation]
        replicates: Predictive replicates of shape [draw, observation]
        observed: Observed lengths in the same observation order
        observation_source: "census" or "recapture" per observation
        observation_site: Site identifier per observation
        loo: PSIS-LOO result
        calibration: LOO-PIT calibration result
        negative_increments: Number of recapture rows with a negative
            posterior-mean predicted increment
    """

    log_likelihood: np.ndarray
    replicates: np.ndarray
    observed: np.ndarray
    observation_source: np.ndarray
    observation_site: np.ndarray
    loo: LooResult
    calibration: CalibrationResult
    negative_increments: int = 0

    def to_dataframe(self) -> pd.DataFrame:
        """Per-observation diagnostics table."""
        return pd.DataFrame(
            {
                "source": self.observation_source,
                "site": self.observation_site,
                "observed": self.observed,
                "elpd_loo": self.loo.elpd_pointwise,
                "pareto_k": self.loo.pareto_k,
                "flagged": self.loo.flagged,
                "loo_pit": self.calibration.pit,
                "replicate_mean": self.replicates.mean(axis=0),
            }
        )

    def summary(self) -> Dict[str, Any]:
        return {
            "num_observations": int(self.observed.shape[0]),
            "elpd_loo": self.loo.elpd_loo,
            "elpd_loo_se": self.loo.se,
            "p_loo": self.loo.p_loo,
            "looic": self.loo.looic,
            "num_flagged": self.loo.num_flagged,
            "flagged_indices": self.loo.flagged_indices.tolist(),
            "ks_statistic": self.calibration.ks_statistic,
            "ks_pvalue": self.calibration.ks_pvalue,
            "negative_increments": self.negative_increments,
        }
