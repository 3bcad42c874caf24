"""
Loading of census, recapture and site covariate tables.

This module contains:

- read_census: census table {site, length}
- read_recaptures: recapture table {site, initial_length, days, recaptured_length}
- read_covariates: site table {site, temperature, effort}
- build_growth_data: assemble validated ``GrowthData`` from data frames
- load_growth_data: ``build_growth_data`` from CSV paths

Site identifiers are read as strings and indexed in sorted order.
"""

import os
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd
from beartype import beartype

from vbgrowth.logging import configure_logging
from vbgrowth.models.core.state import COVARIATE_NAMES, GrowthData
from vbgrowth.models.data.preprocessing import standardize_covariates

logger = configure_logging(__name__)

PathLike = Union[str, os.PathLike]

SITE_COLUMN = "site"
CENSUS_COLUMNS = (SITE_COLUMN, "length")
RECAPTURE_COLUMNS = (SITE_COLUMN, "initial_length", "days", "recaptured_length")
COVARIATE_COLUMNS = (SITE_COLUMN,) + COVARIATE_NAMES


def _require_columns(
    frame: pd.DataFrame, columns: Sequence[str], table: str
) -> pd.DataFrame:
    missing = [c for c in columns if c not in frame.columns]
    if missing:
        raise ValueError(f"{table} table is missing required columns: {missing}")
    frame = frame.loc[:, list(columns)].copy()
    frame[SITE_COLUMN] = frame[SITE_COLUMN].astype(str)
    if frame.isna().any().any():
        raise ValueError(f"{table} table contains missing values")
    return frame


@beartype
def read_census(path: PathLike) -> pd.DataFrame:
    """Read a census CSV with columns ``CENSUS_COLUMNS``."""
    frame = pd.read_csv(path, dtype={SITE_COLUMN: str})
    return _require_columns(frame, CENSUS_COLUMNS, "census")


@beartype
def read_recaptures(path: PathLike) -> pd.DataFrame:
    """Read a recapture CSV with columns ``RECAPTURE_COLUMNS``."""
    frame = pd.read_csv(path, dtype={SITE_COLUMN: str})
    return _require_columns(frame, RECAPTURE_COLUMNS, "recapture")


@beartype
def read_covariates(path: PathLike) -> pd.DataFrame:
    """Read a site covariate CSV with columns ``COVARIATE_COLUMNS``."""
    frame = pd.read_csv(path, dtype={SITE_COLUMN: str})
    return _require_columns(frame, COVARIATE_COLUMNS, "covariate")


@beartype
def build_growth_data(
    census: Optional[pd.DataFrame] = None,
    recaptures: Optional[pd.DataFrame] = None,
    covariates: Optional[pd.DataFrame] = None,
    standardize: bool = True,
) -> GrowthData:
    """Assemble validated model data from observation tables.

    Args:
        census: Census table, or None for a recapture-only model
        recaptures: Recapture table, or None for a census-only model
        covariates: Optional site covariate table; must cover every observed site
        standardize: Standardize covariates across the observed sites

    Returns:
        GrowthData with sites indexed in sorted identifier order

    Raises:
        ValueError: On missing columns, missing values, sites without
            covariates, or any observation failing validation
    """
    if census is None and recaptures is None:
        raise ValueError("At least one of census or recaptures is required")
    census = (
        _require_columns(census, CENSUS_COLUMNS, "census")
        if census is not None
        else pd.DataFrame({c: [] for c in CENSUS_COLUMNS})
    )
    recaptures = (
        _require_columns(recaptures, RECAPTURE_COLUMNS, "recapture")
        if recaptures is not None
        else pd.DataFrame({c: [] for c in RECAPTURE_COLUMNS})
    )

    site_ids = tuple(
        sorted(
            set(census[SITE_COLUMN].astype(str))
            | set(recaptures[SITE_COLUMN].astype(str))
        )
    )
    site_index = {site: i for i, site in enumerate(site_ids)}

    site_covariates = None
    if covariates is not None:
        covariates = _require_columns(covariates, COVARIATE_COLUMNS, "covariate")
        if covariates[SITE_COLUMN].duplicated().any():
            raise ValueError("covariate table lists a site more than once")
        covariates = covariates.set_index(SITE_COLUMN)
        missing = [s for s in site_ids if s not in covariates.index]
        if missing:
            raise ValueError(f"Sites without covariates: {missing}")
        unused = sorted(set(covariates.index) - set(site_ids))
        if unused:
            logger.warning(f"Ignoring covariates of {len(unused)} unobserved sites")
        covariates = covariates.loc[list(site_ids), list(COVARIATE_NAMES)]
        if standardize:
            covariates = standardize_covariates(covariates, COVARIATE_NAMES)
        site_covariates = covariates.to_numpy(dtype=float)

    data = GrowthData(
        site_ids=site_ids,
        census_site=np.array(
            [site_index[s] for s in census[SITE_COLUMN].astype(str)], dtype=np.int32
        ),
        census_length=census["length"].to_numpy(dtype=float),
        recapture_site=np.array(
            [site_index[s] for s in recaptures[SITE_COLUMN].astype(str)],
            dtype=np.int32,
        ),
        recapture_initial_length=recaptures["initial_length"].to_numpy(dtype=float),
        recapture_days=recaptures["days"].to_numpy(dtype=float),
        recapture_length=recaptures["recaptured_length"].to_numpy(dtype=float),
        covariates=site_covariates,
    )
    logger.info(
        f"Loaded {data.num_census} census and {data.num_recaptures} recapture "
        f"observations across {data.num_sites} sites"
    )
    return data


@beartype
def load_growth_data(
    census_path: Optional[PathLike] = None,
    recaptures_path: Optional[PathLike] = None,
    covariates_path: Optional[PathLike] = None,
) -> GrowthData:
    """Read the CSV tables and assemble ``GrowthData``."""
    return build_growth_data(
        census=read_census(census_path) if census_path is not None else None,
        recaptures=(
            read_recaptures(recaptures_path) if recaptures_path is not None else None
        ),
        covariates=(
            read_covariates(covariates_path) if covariates_path is not None else None
        ),
    )
