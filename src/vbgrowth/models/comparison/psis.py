"""
Pareto-smoothed importance sampling for leave-one-out predictive checks.

This module contains:

- relative_efficiency: relative MCMC efficiency shared by every PSIS call
- psis_smooth: Pareto smoothing of importance log-weights with ``az.psislw``
- psis_loo: PSIS-LOO estimate of the expected log pointwise predictive density
- loo_pit: leave-one-out probability integral transform with ``az.loo_pit``
- loo_pit_calibration: Kolmogorov-Smirnov comparison of LOO-PIT against Uniform(0, 1)

ArviZ arrays keep the sample axis last; the functions here take and return
[draw, observation] matrices to match the pointwise log-likelihood.

References:
    Vehtari, Gelman & Gabry (2017), Practical Bayesian model evaluation using
    leave-one-out cross-validation and WAIC.
"""

import warnings
from typing import Tuple, Union

import arviz as az
import jax
import numpy as np
from beartype import beartype
from jaxtyping import ArrayLike
from scipy import stats
from scipy.special import logsumexp

from vbgrowth.logging import configure_logging
from vbgrowth.models.core.state import CalibrationResult, LooResult

logger = configure_logging(__name__)

PARETO_K_THRESHOLD = 0.7


class ParetoShapeWarning(UserWarning):
    """Some observations have an unreliable leave-one-out estimate."""


@beartype
def relative_efficiency(idata: az.InferenceData) -> float:
    """Relative efficiency of the posterior draws.

    Mean ``az.ess`` of the posterior variables divided by the number of draws.
    Constant variables (the fixed entries of a Cholesky factor) have no
    effective sample size and are skipped. Without a multi-chain posterior the
    draws are taken as independent.

    Args:
        idata: InferenceData with an optional posterior group

    Returns:
        Relative efficiency
    """
    if "posterior" not in idata.groups():
        return 1.0
    posterior = idata.posterior
    num_chains = posterior.sizes["chain"]
    if num_chains == 1:
        return 1.0
    num_samples = num_chains * posterior.sizes["draw"]

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        ess = az.ess(posterior, method="mean")
    values = np.concatenate([np.ravel(ess[name].values) for name in ess.data_vars])
    values = values[np.isfinite(values)]
    if values.size == 0:
        return 1.0
    return float(values.mean() / num_samples)


@beartype
def psis_smooth(
    log_weights: Union[ArrayLike, list],
    r_eff: float = 1.0,
) -> Tuple[np.ndarray, np.ndarray]:
    """Pareto-smooth importance log-weights.

    Args:
        log_weights: Raw log-weights of shape [draw] or [draw, observation]
        r_eff: Relative efficiency of the draws

    Returns:
        A tuple containing:
            - smoothed: Normalized smoothed log-weights, same shape as the input
            - pareto_k: Pareto shape estimate per observation; ``inf`` when the
              tail is too short to fit

    Raises:
        ValueError: With fewer than two draws
    """
    lw = np.array(log_weights, dtype=float)
    squeeze = lw.ndim == 1
    if squeeze:
        lw = lw[:, None]
    if lw.ndim != 2 or lw.shape[0] < 2:
        raise ValueError(
            f"Pareto smoothing needs at least 2 draws per observation, got shape {lw.shape}"
        )

    smoothed, pareto_k = az.psislw(lw.T, reff=r_eff)
    smoothed = np.asarray(smoothed).T
    pareto_k = np.atleast_1d(np.asarray(pareto_k, dtype=float))
    if squeeze:
        return smoothed[:, 0], pareto_k
    return smoothed, pareto_k


@beartype
def psis_loo(
    idata: az.InferenceData,
    var_name: str = "length",
    k_threshold: float = PARETO_K_THRESHOLD,
) -> LooResult:
    """Pareto-smoothed importance sampling leave-one-out estimate.

    The estimate itself comes from ``az.loo``; the smoothed weights are kept
    for LOO-PIT. Observations whose Pareto shape exceeds ``k_threshold`` are
    flagged in the result and reported with a ``ParetoShapeWarning``; they are
    never dropped.

    Args:
        idata: InferenceData with a log_likelihood group
        var_name: Log-likelihood variable
        k_threshold: Pareto shape above which an observation is flagged

    Returns:
        LooResult
    """
    if "log_likelihood" not in idata.groups():
        raise ValueError("InferenceData has no log_likelihood group")
    values = np.asarray(idata.log_likelihood[var_name].values, dtype=float)
    ll = values.reshape(values.shape[0] * values.shape[1], -1)
    num_obs = ll.shape[1]

    r_eff = relative_efficiency(idata)
    log_weights, _ = psis_smooth(-ll, r_eff)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UserWarning)
        elpd = az.loo(idata, pointwise=True, var_name=var_name, reff=r_eff, scale="log")

    result = LooResult(
        elpd_loo=float(elpd.elpd_loo),
        se=float(elpd.se),
        p_loo=float(elpd.p_loo),
        lppd=float(elpd.elpd_loo + elpd.p_loo),
        elpd_pointwise=np.asarray(elpd.loo_i, dtype=float).reshape(-1),
        pareto_k=np.asarray(elpd.pareto_k, dtype=float).reshape(-1),
        log_weights=log_weights,
        r_eff=np.full(num_obs, r_eff),
        k_threshold=k_threshold,
    )
    if result.num_flagged:
        message = (
            f"Estimated Pareto shape exceeds {k_threshold} for {result.num_flagged} "
            f"of {num_obs} observations; their LOO estimates are unreliable"
        )
        logger.warning(f"{message}: {result.flagged_indices.tolist()}")
        warnings.warn(message, ParetoShapeWarning, stacklevel=2)
    logger.info(
        f"elpd_loo = {result.elpd_loo:.2f} (se {result.se:.2f}), "
        f"p_loo = {result.p_loo:.2f}"
    )
    return result


@beartype
def loo_pit(
    observed: Union[ArrayLike, list],
    replicates: Union[ArrayLike, list],
    log_weights: Union[ArrayLike, list],
) -> np.ndarray:
    """Leave-one-out probability integral transform.

    ``pit_i = sum_s w_is * 1[yrep_is <= y_i]`` with the leave-one-out weights
    ``w``, normalized per observation.

    Args:
        observed: Observed values of shape [observation]
        replicates: Predictive replicates of shape [draw, observation]
        log_weights: Smoothed log-weights of shape [draw, observation]

    Returns:
        PIT values in [0, 1]
    """
    y = np.asarray(observed, dtype=float)
    yrep = np.asarray(replicates, dtype=float)
    lw = np.asarray(log_weights, dtype=float)
    if yrep.ndim != 2 or yrep.shape != lw.shape or yrep.shape[1:] != y.shape:
        raise ValueError(
            f"Shape mismatch: observed {y.shape}, replicates {yrep.shape}, "
            f"log_weights {lw.shape}"
        )
    lw = lw - logsumexp(lw, axis=0)
    pit = az.loo_pit(y=y, y_hat=yrep.T, log_weights=lw.T)
    return np.clip(np.asarray(pit, dtype=float), 0.0, 1.0)


@beartype
def loo_pit_calibration(
    pit: Union[ArrayLike, list],
    key: jax.Array,
    num_reference: int = 1000,
) -> CalibrationResult:
    """Compare LOO-PIT values against Uniform(0, 1).

    Args:
        pit: LOO-PIT values
        key: JAX random key for the reference draws
        num_reference: Number of Monte Carlo reference samples

    Returns:
        CalibrationResult with the Kolmogorov-Smirnov test and sorted
        Uniform(0, 1) reference samples of shape [num_reference, observation]
    """
    pit = np.asarray(pit, dtype=float)
    ks = stats.kstest(pit, "uniform")
    reference = np.sort(
        np.asarray(jax.random.uniform(key, (num_reference, pit.shape[0]))), axis=1
    )
    if ks.pvalue < 0.05:
        logger.warning(
            f"LOO-PIT departs from Uniform(0, 1): KS = {ks.statistic:.3f}, "
            f"p = {ks.pvalue:.3g}"
        )
    return CalibrationResult(
        pit=pit,
        ks_statistic=float(ks.statistic),
        ks_pvalue=float(ks.pvalue),
        uniform_reference=reference,
    )
