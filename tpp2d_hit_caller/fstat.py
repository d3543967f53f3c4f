"""
F statistics from nested H0/H1 fits.
"""

from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd

FSTAT_COLUMNS = [
    "clustername", "nObs", "rss_h0", "rss_h1",
    "df1", "df2", "F_statistic", "flag", "valid", "dataset",
]

# RSS of H1 at or below this fraction of max(RSS of H0, 1) counts as a perfect fit
DEGENERATE_RSS_TOL = 1e-12

# flags that still carry a usable statistic
_VALID_FLAGS = (None, "degenerate_fit")


def f_statistic(
    rss_h0: float,
    rss_h1: float,
    df_h0: int,
    df_h1: int,
) -> Tuple[float, int, int, Optional[str]]:
    """
    F statistic of the alternative over the null model.

        F = ((RSS0 - RSS1) / (df0 - df1)) / (RSS1 / df1)

    with df0, df1 the residual degrees of freedom of the two models.

    Returns
    -------
    (F, df1, df2, flag)
        ``df1`` is the numerator (df0 - df1), ``df2`` the denominator (df1)
        degrees of freedom. ``flag`` is None for a regular statistic,
        'invalid_nesting' or 'insufficient_observations' when no statistic
        can be formed (F is NaN), or 'degenerate_fit' when RSS1 is zero
        and F is +inf.
    """
    num_df = int(df_h0 - df_h1)
    den_df = int(df_h1)
    if num_df <= 0:
        return np.nan, num_df, den_df, "invalid_nesting"
    if den_df <= 0:
        return np.nan, num_df, den_df, "insufficient_observations"
    if not (np.isfinite(rss_h0) and np.isfinite(rss_h1)):
        return np.nan, num_df, den_df, "non_finite_rss"
    if rss_h1 <= DEGENERATE_RSS_TOL * max(rss_h0, 1.0):
        return np.inf, num_df, den_df, "degenerate_fit"
    f = ((rss_h0 - rss_h1) / num_df) / (rss_h1 / den_df)
    return float(f), num_df, den_df, None


def compute_fstat_from_params(records: Iterable, dataset: str = "observed") -> pd.DataFrame:
    """
    Build the F-statistic table for a sequence of ModelParams records.

    Records whose fit failed keep their row with a NaN statistic, the
    failure as ``flag`` and ``valid`` set to False.
    """
    rows = []
    for rec in records:
        if rec.failure is not None:
            f, num_df, den_df, flag = np.nan, rec.df_h0 - rec.df_h1, rec.df_h1, rec.failure
        else:
            f, num_df, den_df, flag = f_statistic(
                rec.rss_h0, rec.rss_h1, rec.df_h0, rec.df_h1
            )
        rows.append({
            "clustername": rec.clustername,
            "nObs": rec.nObs,
            "rss_h0": rec.rss_h0,
            "rss_h1": rec.rss_h1,
            "df1": num_df,
            "df2": den_df,
            "F_statistic": f,
            "flag": flag,
            "valid": flag in _VALID_FLAGS,
            "dataset": dataset,
        })
    return pd.DataFrame(rows, columns=FSTAT_COLUMNS)
