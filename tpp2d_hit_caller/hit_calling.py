"""
Main hit-calling pipeline for 2D thermal proteome profiling data.
"""

from __future__ import annotations

import logging
import warnings
from typing import Optional, Tuple

import pandas as pd

from .bootstrap import build_null_distribution
from .config import AnalysisConfig
from .errors import InsufficientBootstrapWarning
from .fdr import get_fdr
from .filtering import check_columns, concentration_limits, prepare_dataset
from .fitting import get_model_params, model_params_frame, representative_records
from .fstat import compute_fstat_from_params
from .models import ConstantNullModel, SigmoidAlternativeModel, TrimmedRefinement

logger = logging.getLogger(__name__)


def call_hits(
    df: pd.DataFrame,
    config: Optional[AnalysisConfig] = None,
    null_model=None,
    alternative_model=None,
    refinement=None,
) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """
    Full pipeline: filter → fit → F statistics → bootstrap null → FDR → hits.

    Parameters
    ----------
    df : DataFrame
        Tidy 2D-TPP data with columns 'clustername', 'temperature',
        'experiment', 'logConcentration', 'log2Value' and 'nObs'.
    config : AnalysisConfig or None
        Analysis options; defaults are used when None.
    null_model : strategy or None
        H0 strategy, default ConstantNullModel.
    alternative_model : strategy or None
        H1 strategy, default SigmoidAlternativeModel.
    refinement : strategy or None
        Second-stage H1 strategy. When None and ``config.use_refinement``
        is set, a TrimmedRefinement of the alternative model is used.

    Returns
    -------
    results : DataFrame
        One row per protein (its profile at maximal nObs), sorted by
        decreasing F.
        F-statistic columns plus 'FDR' and 'is_hit' (FDR <= alpha).
    null_df : DataFrame
        Bootstrap F statistics, 'dataset' = 'bootstrap_<round>'.
    params_df : DataFrame
        Scalar summary of the observed H0/H1 fits.
    """
    config = (config if config is not None else AnalysisConfig()).validate()
    null_model = null_model if null_model is not None else ConstantNullModel()
    alternative_model = (alternative_model if alternative_model is not None
                         else SigmoidAlternativeModel())
    if refinement is None and config.use_refinement:
        refinement = TrimmedRefinement(base=alternative_model,
                                       trim_fraction=config.trim_fraction)

    # --- 1. Schema check and midpoint bounds over the unfiltered data ---
    check_columns(df)
    limits = concentration_limits(df)

    # --- 2. Filter ---
    df_fil = prepare_dataset(
        df, min_obs=config.min_obs,
        independent_filtering=config.independent_filtering,
        fc_threshold=config.fc_threshold,
    )
    if df_fil.empty:
        raise ValueError("No protein passed filtering")

    fit_kwargs = dict(
        null_model=null_model,
        alternative_model=alternative_model,
        refinement=refinement,
        limits=limits,
        max_iterations=config.max_iterations,
        n_jobs=config.n_jobs,
        backend=config.backend,
    )

    # --- 3. Observed fits and F statistics ---
    # one record per protein, at its maximal nObs
    params = representative_records(get_model_params(df_fil, **fit_kwargs))
    observed = compute_fstat_from_params(params, dataset="observed")
    logger.info("Fitted %d protein profiles (%d valid F statistics)",
                len(observed), int(observed["valid"].sum()))

    # --- 4. Null distribution ---
    # B was already checked and warned about by config.validate()
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", InsufficientBootstrapWarning)
        null_df = build_null_distribution(
            config.strategy, df_fil, params=params,
            B=config.B, by_ms_exp=config.by_ms_exp,
            random_state=config.random_state, **fit_kwargs,
        )

    # --- 5. FDR and hit calls ---
    results = get_fdr(observed, null_df, by_nobs=config.by_nobs)
    results["is_hit"] = results["FDR"] <= config.alpha
    logger.info("%d hits at FDR <= %.3f", int(results["is_hit"].sum()), config.alpha)

    return results, null_df, model_params_frame(params)
