"""
Profile filtering for 2D-TPP data.
"""

import logging
from typing import List, Tuple

import numpy as np
import pandas as pd

from .errors import ConfigurationError, SchemaError

logger = logging.getLogger(__name__)


REQUIRED_COLUMNS = [
    "clustername", "temperature", "experiment",
    "logConcentration", "log2Value", "nObs",
]


def check_columns(df: pd.DataFrame) -> None:
    """Raise SchemaError if any required column is absent."""
    missing: List[str] = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise SchemaError(
            f"Input is missing required column(s): {', '.join(missing)}"
        )


def min_obs_filter(df: pd.DataFrame, min_obs: int = 20) -> pd.DataFrame:
    """
    Drop protein groups with fewer than ``min_obs`` observations.

    Parameters
    ----------
    df : DataFrame with columns 'clustername' and 'nObs'
    min_obs : int
        Minimum value of 'nObs' a protein needs to be kept.

    Returns
    -------
    Filtered copy of df (groups at exactly ``min_obs`` are kept).
    """
    df2 = df.copy()
    return df2.loc[df2["nObs"] >= min_obs]


def independent_filter(df: pd.DataFrame, fc_threshold: float = 1.5) -> pd.DataFrame:
    """
    Drop protein groups that never reach the fold-change threshold.

    ``log2Value`` is taken to be normalised to the vehicle reference, so a
    profile is kept when any of its values shows a fold change of at least
    ``fc_threshold`` or at most ``1 / fc_threshold``.

    Parameters
    ----------
    df : DataFrame with columns 'clustername' and 'log2Value'
    fc_threshold : float
        Minimal fold change (> 1).

    Returns
    -------
    Filtered copy of df.
    """
    if fc_threshold <= 1:
        raise ConfigurationError(
            f"fc_threshold must be greater than 1, got {fc_threshold}"
        )
    df2 = df.copy()
    max_abs = df2["log2Value"].abs().groupby(df2["clustername"]).transform("max")
    return df2.loc[max_abs >= np.log2(fc_threshold)]


def concentration_limits(df: pd.DataFrame) -> Tuple[float, float]:
    """
    Minimum and maximum finite log-concentration over the whole dataset.

    Vehicle rows (log concentration of -inf) are ignored.
    """
    log_conc = df["logConcentration"].to_numpy(dtype=float)
    finite = log_conc[np.isfinite(log_conc)]
    if finite.size == 0:
        raise ValueError("No finite logConcentration values to derive limits from")
    return float(finite.min()), float(finite.max())


def order_profiles(df: pd.DataFrame) -> pd.DataFrame:
    """
    Add 'temp_i' and sort rows into the canonical per-protein order.

    'temp_i' is the dense 0-based rank of each temperature within its
    (clustername, nObs) group. Rows are sorted by clustername, nObs, temp_i,
    logConcentration and experiment; residual vectors produced downstream
    follow this order.
    """
    df2 = df.copy()
    df2["temp_i"] = (
        df2.groupby(["clustername", "nObs"])["temperature"]
        .rank(method="dense")
        .astype(int) - 1
    )
    return df2.sort_values(
        ["clustername", "nObs", "temp_i", "logConcentration", "experiment"],
        kind="mergesort",
    ).reset_index(drop=True)


def ensure_prepared(df: pd.DataFrame) -> pd.DataFrame:
    """Check columns and order profiles unless ``df`` already went through it."""
    check_columns(df)
    if "temp_i" in df.columns:
        return df
    return order_profiles(df)


def prepare_dataset(
    df: pd.DataFrame,
    min_obs: int = 20,
    independent_filtering: bool = False,
    fc_threshold: float = 1.5,
) -> pd.DataFrame:
    """
    Validate, filter and order a 2D-TPP dataset for model fitting.

    The column check runs once, before any filtering.
    """
    check_columns(df)

    n_before = df["clustername"].nunique()
    df_fil = min_obs_filter(df, min_obs=min_obs)
    n_after = df_fil["clustername"].nunique()
    logger.info(
        "Minimum observation filter (nObs >= %d): kept %d of %d proteins",
        min_obs, n_after, n_before,
    )

    if independent_filtering:
        df_fil = independent_filter(df_fil, fc_threshold=fc_threshold)
        logger.info(
            "Independent filtering (fold change %.2f): kept %d of %d proteins",
            fc_threshold, df_fil["clustername"].nunique(), n_after,
        )

    return order_profiles(df_fil)
