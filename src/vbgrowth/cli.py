"""Command line interface for vbgrowth."""

import json
from pathlib import Path

import rich_click as click

from vbgrowth import __version__
from vbgrowth.logging import configure_logging
from vbgrowth.models.comparison.diagnostics import PredictiveDiagnostics
from vbgrowth.models.core.model import compose_model
from vbgrowth.models.core.state import InferenceConfig, ModelConfig
from vbgrowth.models.core.utils import create_key
from vbgrowth.models.data.loading import load_growth_data
from vbgrowth.models.data.simulation import simulate_dataset
from vbgrowth.models.inference.mcmc import (
    SamplingCancelledError,
    run_mcmc_inference,
)
from vbgrowth.models.inference.posterior import summarize_posterior

click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.USE_MARKDOWN = True

logger = configure_logging(__name__)


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx):
    """
    # vbgrowth

    Hierarchical von Bertalanffy growth from census lengths and
    capture-mark-recapture increments.

    - `fit` samples the posterior and writes leave-one-out diagnostics
    - `simulate` writes synthetic census and recapture tables
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command("fit")
@click.option(
    "--census",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Census CSV with columns `site`, `length`",
)
@click.option(
    "--recaptures",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Recapture CSV with columns `site`, `initial_length`, `days`, `recaptured_length`",
)
@click.option(
    "--covariates",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Site covariate CSV with columns `site`, `temperature`, `effort`",
)
@click.option("--age-classes", type=int, default=5, show_default=True)
@click.option("--lkj-concentration", type=float, default=2.0, show_default=True)
@click.option("--num-chains", type=int, default=4, show_default=True)
@click.option("--num-samples", type=int, default=1000, show_default=True)
@click.option("--num-warmup", type=int, default=500, show_default=True)
@click.option("--seed", type=int, default=0, show_default=True)
@click.option(
    "--prior-only",
    is_flag=True,
    default=False,
    help="Sample the prior only, excluding both likelihoods",
)
@click.option(
    "--use-covariates",
    is_flag=True,
    default=False,
    help="Add covariate terms to log(Linf) and log(k); requires --covariates",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("vbgrowth_output"),
    show_default=True,
)
def fit(
    census,
    recaptures,
    covariates,
    age_classes,
    lkj_concentration,
    num_chains,
    num_samples,
    num_warmup,
    seed,
    prior_only,
    use_covariates,
    output_dir,
):
    """
    Fit the growth model and write diagnostics.

    Writes `pointwise.csv` (per-observation LOO and PIT values),
    `posterior_summary.csv` and `summary.json` to the output directory.
    """
    if census is None and recaptures is None:
        raise click.UsageError("Provide --census, --recaptures or both")
    if use_covariates and covariates is None:
        raise click.UsageError("--use-covariates requires --covariates")

    try:
        data = load_growth_data(census, recaptures, covariates)
        model_config = ModelConfig(
            num_age_classes=age_classes,
            lkj_concentration=lkj_concentration,
            prior_only=prior_only,
            use_covariates=use_covariates,
        )
        inference_config = InferenceConfig(
            num_samples=num_samples,
            num_warmup=num_warmup,
            num_chains=num_chains,
            seed=seed,
        )
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    model = compose_model(data, model_config)
    try:
        sample_set, sampler_diagnostics = run_mcmc_inference(model, inference_config)
    except SamplingCancelledError as e:
        raise click.Abort() from e

    diagnostics = PredictiveDiagnostics(sample_set, data, model_config, seed=seed)
    try:
        result = diagnostics.run()
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    output_dir.mkdir(parents=True, exist_ok=True)
    result.to_dataframe().to_csv(output_dir / "pointwise.csv", index=False)
    summarize_posterior(sample_set, data, model_config).to_csv(
        output_dir / "posterior_summary.csv", index=False
    )
    summary = {
        "diagnostics": result.summary(),
        "sampler": sampler_diagnostics.to_dict(),
    }
    with open(output_dir / "summary.json", "w") as f:
        json.dump(summary, f, indent=2, default=float)

    logger.info(f"Wrote results to {output_dir}")
    click.echo(
        f"elpd_loo = {result.loo.elpd_loo:.2f} (se {result.loo.se:.2f}), "
        f"{result.loo.num_flagged} observations with Pareto k > "
        f"{result.loo.k_threshold}"
    )


@cli.command("simulate")
@click.option("--num-sites", type=int, default=30, show_default=True)
@click.option("--num-census", type=int, default=1000, show_default=True)
@click.option("--num-recaptures", type=int, default=0, show_default=True)
@click.option("--l0", type=float, default=25.0, show_default=True)
@click.option("--linf", type=float, default=250.0, show_default=True)
@click.option("--k", "k", type=float, default=0.4, show_default=True)
@click.option("--sigma", type=float, default=0.15, show_default=True)
@click.option("--sigma-cmr", type=float, default=0.05, show_default=True)
@click.option("--age-classes", type=int, default=5, show_default=True)
@click.option("--seed", type=int, default=0, show_default=True)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
)
def simulate(
    num_sites,
    num_census,
    num_recaptures,
    l0,
    linf,
    k,
    sigma,
    sigma_cmr,
    age_classes,
    seed,
    output_dir,
):
    """
    Write synthetic `census.csv` and `recaptures.csv` from known parameters.

    Sites share the population growth parameters and uniform age-class weights.
    """
    census, recaptures = simulate_dataset(
        create_key(seed),
        num_sites=num_sites,
        num_census=num_census,
        num_recaptures=num_recaptures,
        l0=l0,
        linf=linf,
        k=k,
        sigma=sigma,
        sigma_cmr=sigma_cmr,
        num_age_classes=age_classes,
    )
    output_dir.mkdir(parents=True, exist_ok=True)
    for name, table in (("census", census), ("recaptures", recaptures)):
        if table is not None:
            path = output_dir / f"{name}.csv"
            table.to_csv(path, index=False)
            click.echo(f"Wrote {len(table)} rows to {path}")
