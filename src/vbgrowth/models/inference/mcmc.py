"""
MCMC utilities for the vbgrowth JAX/NumPyro implementation.

The sampler itself is NumPyro's NUTS, driven only through the potential function
of a composed model. This module contains:

- create_mcmc: Create an MCMC object around a potential function
- run_mcmc_inference: Run all chains and return constrained draws
- mcmc_diagnostics: Pass through divergences, acceptance, R-hat and ESS
- extract_posterior_samples: Merge the chain axis of a sample set
"""

from typing import Callable, Dict, Optional, Tuple

import jax
import jax.numpy as jnp
import numpy as np
from beartype import beartype
from numpyro.diagnostics import effective_sample_size, split_gelman_rubin
from numpyro.infer import MCMC, NUTS

from vbgrowth.logging import configure_logging
from vbgrowth.models.core.model import ComposedModel
from vbgrowth.models.core.state import (
    InferenceConfig,
    PosteriorSampleSet,
    SamplerDiagnostics,
)
from vbgrowth.models.core.utils import create_key, split_key

logger = configure_logging(__name__)

EXTRA_FIELDS = ("diverging", "accept_prob")


class SamplingCancelledError(RuntimeError):
    """Sampling was interrupted; partial chains were discarded."""


@beartype
def create_mcmc(
    potential_fn: Callable,
    config: Optional[InferenceConfig] = None,
) -> MCMC:
    """Create an MCMC object.

    Args:
        potential_fn: Negative log density in unconstrained space
        config: Inference configuration (default: default InferenceConfig)

    Returns:
        MCMC object
    """
    if config is None:
        config = InferenceConfig()

    kernel = NUTS(
        potential_fn=potential_fn,
        target_accept_prob=config.target_accept_prob,
        max_tree_depth=config.max_tree_depth,
    )
    return MCMC(
        kernel,
        num_warmup=config.num_warmup,
        num_samples=config.num_samples,
        num_chains=config.num_chains,
        chain_method=config.chain_method,
        progress_bar=config.progress_bar,
    )


@beartype
def run_mcmc_inference(
    model: ComposedModel,
    config: Optional[InferenceConfig] = None,
) -> Tuple[PosteriorSampleSet, SamplerDiagnostics]:
    """Run MCMC on a composed growth model.

    Chains are independent and only combined once all of them have finished.
    An interrupted run discards every chain.

    Args:
        model: Composed model providing the potential function
        config: Inference configuration (default: default InferenceConfig)

    Returns:
        A tuple containing:
            - sample_set: Constrained posterior draws grouped by chain
            - diagnostics: Sampler-reported convergence conditions

    Raises:
        SamplingCancelledError: If sampling is interrupted
    """
    if config is None:
        config = InferenceConfig()

    key_init, key_run = split_key(create_key(config.seed))
    init_params = model.init_params(key_init, config.num_chains, config.init_jitter)
    mcmc = create_mcmc(model.potential_fn, config)

    logger.info(
        f"Running NUTS: {config.num_chains} chains x {config.num_samples} draws "
        f"({config.num_warmup} warm-up), chain_method={config.chain_method}"
    )
    try:
        mcmc.run(key_run, init_params=init_params, extra_fields=EXTRA_FIELDS)
    except KeyboardInterrupt as e:
        logger.warning("Sampling interrupted, discarding partial chains")
        raise SamplingCancelledError("MCMC sampling was cancelled") from e

    unconstrained = mcmc.get_samples(group_by_chain=True)
    samples = jax.vmap(jax.vmap(model.constrain))(unconstrained)
    sample_set = PosteriorSampleSet(samples=samples)
    diagnostics = mcmc_diagnostics(mcmc, sample_set)
    return sample_set, diagnostics


@beartype
def mcmc_diagnostics(
    mcmc: MCMC,
    sample_set: PosteriorSampleSet,
) -> SamplerDiagnostics:
    """Collect sampler-reported convergence conditions.

    The values are reported as-is; nothing here attempts to recover from
    divergences or poor mixing.

    Args:
        mcmc: MCMC object after ``run``
        sample_set: Constrained draws of the same run

    Returns:
        SamplerDiagnostics
    """
    extra = mcmc.get_extra_fields(group_by_chain=True)
    diverging = np.asarray(extra["diverging"])
    accept_prob = np.asarray(extra["accept_prob"])

    r_hat: Dict[str, np.ndarray] = {}
    ess: Dict[str, np.ndarray] = {}
    if sample_set.num_draws >= 4:
        with np.errstate(divide="ignore", invalid="ignore"):
            for name, values in sample_set.samples.items():
                values = np.asarray(values)
                r_hat[name] = np.asarray(split_gelman_rubin(values))
                ess[name] = np.asarray(effective_sample_size(values))

    diagnostics = SamplerDiagnostics(
        divergences=tuple(int(d) for d in diverging.sum(axis=1)),
        accept_prob=tuple(float(a) for a in accept_prob.mean(axis=1)),
        r_hat=r_hat,
        ess=ess,
    )
    if diagnostics.has_divergences:
        logger.warning(
            f"Sampler reported {diagnostics.total_divergences} divergent "
            f"transitions (per chain: {list(diagnostics.divergences)})"
        )
    max_r_hat = diagnostics.max_r_hat()
    if np.isfinite(max_r_hat) and max_r_hat > 1.01:
        logger.warning(f"Maximum split R-hat is {max_r_hat:.3f}")
    return diagnostics


@beartype
def extract_posterior_samples(
    sample_set: PosteriorSampleSet,
) -> Dict[str, jnp.ndarray]:
    """Posterior draws with chains concatenated along the first axis."""
    return sample_set.flatten()
