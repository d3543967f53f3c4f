"""
Empirical FDR from bootstrap null distributions, and hit calling.
"""

import logging

import numpy as np
import pandas as pd

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def _n_bootstrap_rounds(null: pd.DataFrame) -> int:
    tags = null["dataset"].astype(str)
    return tags.loc[tags.str.startswith("bootstrap_")].nunique()


def empirical_fdr(obs_f: np.ndarray, null_f: np.ndarray, B: int) -> np.ndarray:
    """
    FDR for every observed F statistic of one stratum.

    For an observed value f:

        FDR(f) = (#{null >= f} / B) / #{observed >= f}

    clipped to 1 and made monotone: going down the list of decreasing F
    the FDR never decreases (running minimum taken from the bottom).

    Parameters
    ----------
    obs_f : ndarray
        Observed F statistics (finite or +inf, no NaN).
    null_f : ndarray
        Null F statistics of the same stratum (no NaN).
    B : int
        Number of bootstrap rounds the null was pooled from.

    Returns
    -------
    ndarray aligned with ``obs_f``.
    """
    obs_f = np.asarray(obs_f, dtype=float)
    null_sorted = np.sort(np.asarray(null_f, dtype=float))
    obs_sorted = np.sort(obs_f)

    n_null_ge = null_sorted.size - np.searchsorted(null_sorted, obs_f, side="left")
    n_obs_ge = obs_sorted.size - np.searchsorted(obs_sorted, obs_f, side="left")
    fdr = np.minimum(1.0, (n_null_ge / B) / n_obs_ge)

    order = np.argsort(-obs_f, kind="mergesort")
    monotone = np.minimum.accumulate(fdr[order][::-1])[::-1]
    out = np.empty_like(fdr)
    out[order] = monotone
    return out


def get_fdr(
    observed: pd.DataFrame,
    null: pd.DataFrame,
    by_nobs: bool = True,
) -> pd.DataFrame:
    """
    Attach an empirical FDR to every observed F statistic.

    Parameters
    ----------
    observed : DataFrame
        Observed F-statistic table (``fstat.FSTAT_COLUMNS``).
    null : DataFrame
        Null table from one of the bootstrap schemes.
    by_nobs : bool
        Compare each protein only with null and observed statistics of the
        same nObs, since degrees of freedom depend on it.

    Returns
    -------
    Copy of ``observed`` with an 'FDR' column, sorted by decreasing F.
    Invalid observed rows are kept with FDR = NaN.
    """
    B = _n_bootstrap_rounds(null)
    if B == 0:
        raise ValueError("Null distribution contains no bootstrap rounds")

    out = observed.copy()
    out["FDR"] = np.nan
    obs_ok = out["valid"].astype(bool) & out["F_statistic"].notna()
    null_ok = null.loc[null["valid"].astype(bool) & null["F_statistic"].notna()]

    if by_nobs:
        strata = out.loc[obs_ok].groupby("nObs").groups.items()
    else:
        strata = [(None, out.index[obs_ok])]

    for n_obs, idx in strata:
        null_f = (null_ok["F_statistic"] if n_obs is None
                  else null_ok.loc[null_ok["nObs"] == n_obs, "F_statistic"])
        if null_f.empty:
            logger.warning("No null F statistics for nObs = %s; FDR left missing", n_obs)
            continue
        out.loc[idx, "FDR"] = empirical_fdr(
            out.loc[idx, "F_statistic"].to_numpy(dtype=float),
            null_f.to_numpy(dtype=float),
            B,
        )

    return out.sort_values(
        "F_statistic", ascending=False, na_position="last", kind="mergesort"
    ).reset_index(drop=True)


def find_hits(fdr_table: pd.DataFrame, alpha: float = 0.1) -> pd.DataFrame:
    """Rows of ``fdr_table`` with FDR at or below ``alpha``."""
    if not 0 < alpha <= 1:
        raise ConfigurationError(f"alpha must be in (0, 1], got {alpha}")
    hits = fdr_table.loc[fdr_table["FDR"] <= alpha]
    return hits.reset_index(drop=True)
