"""
Bootstrap null distributions of F statistics.

Three resampling schemes are provided. All of them build synthetic profiles
that follow H0 (fitted H0 values plus resampled residuals) and differ in
which residuals are resampled and how often models are refit:

``bootstrap_null``
    Fit H0 from scratch, resample its residuals, full H0/H1 refit per round.
``bootstrap_null_alternative_model``
    Reuse stored fits, resample H1 residuals onto the H0 prediction, full
    refit per round.
``bootstrap_null_alternative_model_fast``
    As above but with a single refit per protein; each round then resamples
    the residual vectors of that one reference fit and recomputes F
    analytically. This is an approximation of the full-refit schemes whose
    error is not quantified; it trades fidelity for a B-fold cut in fits.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import ConfigurationError, ConvergenceFailure, InsufficientBootstrapWarning
from .filtering import concentration_limits, ensure_prepared
from .fitting import ModelParams, fit_protein, profile_arrays, select_representative
from .fstat import FSTAT_COLUMNS, compute_fstat_from_params
from .models import ConstantNullModel
from .parallel import concat_frames, map_proteins

logger = logging.getLogger(__name__)

MIN_RECOMMENDED_B = 20

STRATEGIES = ("null_refit", "alternative", "fast")


def validate_bootstrap_rounds(B) -> None:
    """Reject non-positive B; warn when B is below the recommended minimum."""
    if isinstance(B, bool) or not isinstance(B, (int, np.integer)):
        raise ConfigurationError(f"B must be an integer, got {B!r}")
    if B <= 0:
        raise ConfigurationError(f"B must be a positive number of rounds, got {B}")
    if B < MIN_RECOMMENDED_B:
        warnings.warn(
            f"B = {B} bootstrap rounds requested; at least {MIN_RECOMMENDED_B} "
            "are recommended, FDR estimates may be unstable",
            InsufficientBootstrapWarning,
            stacklevel=3,
        )


def resample_residuals(
    residuals: np.ndarray,
    experiments: Optional[np.ndarray],
    rng: np.random.Generator,
    by_ms_exp: bool = True,
) -> np.ndarray:
    """
    Draw residuals with replacement, keeping the vector length.

    With ``by_ms_exp`` each experiment's rows receive draws from that
    experiment's own residuals only, so per-experiment counts and noise
    levels are preserved.
    """
    residuals = np.asarray(residuals, dtype=float)
    if not by_ms_exp:
        return rng.choice(residuals, size=residuals.size, replace=True)

    experiments = np.asarray(experiments)
    if experiments.shape != residuals.shape:
        raise ValueError("experiments and residuals must have the same length")
    out = np.empty_like(residuals)
    for exp in pd.unique(experiments):
        idx = np.flatnonzero(experiments == exp)
        out[idx] = rng.choice(residuals[idx], size=idx.size, replace=True)
    return out


def _protein_slices(df: pd.DataFrame) -> List[Tuple[str, pd.DataFrame]]:
    """One slice per protein, restricted to the rows at its maximal nObs."""
    slices = []
    for name, group in df.groupby("clustername", sort=True):
        slices.append((name, group.loc[group["nObs"] == group["nObs"].max()]))
    return slices


def _protein_seeds(n: int, random_state) -> np.ndarray:
    # one seed per protein in enumeration order, independent of scheduling
    rng_master = np.random.default_rng(random_state)
    return rng_master.integers(0, 2**31, size=n)


def _collect_rounds(frames: List[pd.DataFrame], clustername: str, B: int) -> pd.DataFrame:
    out = concat_frames(frames, FSTAT_COLUMNS)
    valid = out.loc[out["valid"].astype(bool)]
    n_failed = B - len(valid)
    if n_failed:
        logger.warning(
            "%s: %d of %d bootstrap rounds failed and were excluded",
            clustername, n_failed, B,
        )
    return valid.reset_index(drop=True)


def _usable_record(record: Optional[ModelParams], profile: pd.DataFrame, clustername: str) -> bool:
    if record is None:
        logger.warning("%s: no stored model parameters, protein skipped", clustername)
        return False
    if not record.valid:
        logger.warning("%s: stored fit is invalid (%s), protein skipped",
                       clustername, record.failure)
        return False
    if record.residuals_h1.size != len(profile):
        logger.warning(
            "%s: stored residuals (%d) do not match profile rows (%d), protein skipped",
            clustername, record.residuals_h1.size, len(profile),
        )
        return False
    return True


# ---------------------------------------------------------------------------
# Per-protein workers
# ---------------------------------------------------------------------------

def _null_refit_task(profile, seed, B, by_ms_exp, null_model, alternative_model,
                     refinement, limits, max_iterations):
    clustername = profile["clustername"].iloc[0]
    rng = np.random.default_rng(int(seed))
    x, y, temp_i, n_temperatures = profile_arrays(profile)
    experiments = profile["experiment"].to_numpy()
    try:
        h0 = ConstantNullModel().fit(x, y, temp_i, n_temperatures)
    except ConvergenceFailure as e:
        logger.warning("%s: null fit failed (%s), protein skipped", clustername, e)
        return None

    frames = []
    for b in range(1, B + 1):
        values = h0.predicted + resample_residuals(h0.residuals, experiments, rng, by_ms_exp)
        record = fit_protein(
            profile, null_model=null_model, alternative_model=alternative_model,
            limits=limits, refinement=refinement, max_iterations=max_iterations,
            values=values,
        )
        frames.append(compute_fstat_from_params([record], dataset=f"bootstrap_{b}"))
    return _collect_rounds(frames, clustername, B)


def _alternative_task(profile, record, seed, B, by_ms_exp, null_model,
                      alternative_model, refinement, limits, max_iterations):
    clustername = profile["clustername"].iloc[0]
    if not _usable_record(record, profile, clustername):
        return None
    rng = np.random.default_rng(int(seed))
    experiments = profile["experiment"].to_numpy()

    frames = []
    for b in range(1, B + 1):
        values = record.predicted_h0 + resample_residuals(
            record.residuals_h1, experiments, rng, by_ms_exp)
        boot_record = fit_protein(
            profile, null_model=null_model, alternative_model=alternative_model,
            limits=limits, refinement=refinement, max_iterations=max_iterations,
            values=values,
        )
        frames.append(compute_fstat_from_params([boot_record], dataset=f"bootstrap_{b}"))
    return _collect_rounds(frames, clustername, B)


def _fast_task(profile, record, seed, B, by_ms_exp, null_model,
               alternative_model, refinement, limits, max_iterations):
    clustername = profile["clustername"].iloc[0]
    if not _usable_record(record, profile, clustername):
        return None
    rng = np.random.default_rng(int(seed))
    experiments = profile["experiment"].to_numpy()

    values = record.predicted_h0 + resample_residuals(
        record.residuals_h1, experiments, rng, by_ms_exp)
    reference = fit_protein(
        profile, null_model=null_model, alternative_model=alternative_model,
        limits=limits, refinement=refinement, max_iterations=max_iterations,
        values=values,
    )
    if not reference.valid:
        logger.warning("%s: reference refit failed (%s), protein skipped",
                       clustername, reference.failure)
        return None

    n = reference.residuals_h0.size
    frames = []
    for b in range(1, B + 1):
        # every round starts from the reference residuals
        round_rng = np.random.default_rng([int(seed), b])
        ids = round_rng.integers(0, n, size=n)
        res_h0 = reference.residuals_h0[ids]
        res_h1 = reference.residuals_h1[ids]
        shuffled = replace(
            reference,
            residuals_h0=res_h0,
            residuals_h1=res_h1,
            rss_h0=float(np.sum(res_h0 ** 2)),
            rss_h1=float(np.sum(res_h1 ** 2)),
        )
        frames.append(compute_fstat_from_params([shuffled], dataset=f"bootstrap_{b}"))
    return _collect_rounds(frames, clustername, B)


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def _run(task, tasks, n_jobs, backend, **kwargs) -> pd.DataFrame:
    results = map_proteins(task, tasks, n_jobs=n_jobs, backend=backend, **kwargs)
    null_df = concat_frames(results, FSTAT_COLUMNS)
    logger.info("Null distribution: %d F statistics from %d proteins",
                len(null_df), null_df["clustername"].nunique())
    return null_df


def _representatives(slices, params: Sequence[ModelParams]) -> Dict[str, Optional[ModelParams]]:
    return {name: select_representative(params, name) for name, _ in slices}


def bootstrap_null(
    df: pd.DataFrame,
    B: int = 20,
    by_ms_exp: bool = True,
    null_model=None,
    alternative_model=None,
    refinement=None,
    limits: Optional[Tuple[float, float]] = None,
    max_iterations: int = 500,
    n_jobs: int = 1,
    backend: str = "loky",
    random_state: Optional[int] = None,
) -> pd.DataFrame:
    """
    Null distribution by resampling H0 residuals with a full refit per round.

    Parameters
    ----------
    df : DataFrame
        Filtered 2D-TPP data (see ``filtering.prepare_dataset``).
    B : int
        Bootstrap rounds per protein.
    by_ms_exp : bool
        Resample residuals within each experiment (recommended).
    null_model, alternative_model, refinement :
        Strategies used for every refit (see ``models``).
    limits : (float, float) or None
        Midpoint bounds; default to the concentration range of ``df``.
    max_iterations : int
        Optimizer iteration cap.
    n_jobs, backend :
        Worker pool size and joblib backend; one task per protein.
    random_state : int or None
        Seed for reproducible resampling.

    Returns
    -------
    F-statistic table of all successful rounds, ``dataset`` set to
    'bootstrap_<round>'.
    """
    validate_bootstrap_rounds(B)
    df = ensure_prepared(df)
    if limits is None:
        limits = concentration_limits(df)

    slices = _protein_slices(df)
    seeds = _protein_seeds(len(slices), random_state)
    tasks = [(profile, seed) for (_, profile), seed in zip(slices, seeds)]
    return _run(
        _null_refit_task, tasks, n_jobs, backend,
        B=B, by_ms_exp=by_ms_exp, null_model=null_model,
        alternative_model=alternative_model, refinement=refinement,
        limits=limits, max_iterations=max_iterations,
    )


def bootstrap_null_alternative_model(
    df: pd.DataFrame,
    params: Sequence[ModelParams],
    B: int = 20,
    by_ms_exp: bool = True,
    null_model=None,
    alternative_model=None,
    refinement=None,
    limits: Optional[Tuple[float, float]] = None,
    max_iterations: int = 500,
    n_jobs: int = 1,
    backend: str = "loky",
    random_state: Optional[int] = None,
) -> pd.DataFrame:
    """
    Null distribution by resampling stored H1 residuals onto the H0 fit.

    ``params`` are the observed fits (``fitting.get_model_params``); per
    protein the record at maximal nObs is used. Every round is refit in
    full. Other arguments as in ``bootstrap_null``.
    """
    validate_bootstrap_rounds(B)
    df = ensure_prepared(df)
    if limits is None:
        limits = concentration_limits(df)

    slices = _protein_slices(df)
    reps = _representatives(slices, params)
    seeds = _protein_seeds(len(slices), random_state)
    tasks = [(profile, reps[name], seed) for (name, profile), seed in zip(slices, seeds)]
    return _run(
        _alternative_task, tasks, n_jobs, backend,
        B=B, by_ms_exp=by_ms_exp, null_model=null_model,
        alternative_model=alternative_model, refinement=refinement,
        limits=limits, max_iterations=max_iterations,
    )


def bootstrap_null_alternative_model_fast(
    df: pd.DataFrame,
    params: Sequence[ModelParams],
    B: int = 20,
    by_ms_exp: bool = True,
    null_model=None,
    alternative_model=None,
    refinement=None,
    limits: Optional[Tuple[float, float]] = None,
    max_iterations: int = 500,
    n_jobs: int = 1,
    backend: str = "loky",
    random_state: Optional[int] = None,
) -> pd.DataFrame:
    """
    Null distribution from a single refit per protein.

    One synthetic profile (H0 fit plus resampled H1 residuals) is refit to
    obtain a reference record. Each of the ``B`` rounds then draws row
    indices with replacement, applies them to both reference residual
    vectors, and recomputes RSS and F without refitting. Each round has its
    own generator derived from the protein seed and the round index.
    Other arguments as in ``bootstrap_null_alternative_model``.
    """
    validate_bootstrap_rounds(B)
    df = ensure_prepared(df)
    if limits is None:
        limits = concentration_limits(df)

    slices = _protein_slices(df)
    reps = _representatives(slices, params)
    seeds = _protein_seeds(len(slices), random_state)
    tasks = [(profile, reps[name], seed) for (name, profile), seed in zip(slices, seeds)]
    return _run(
        _fast_task, tasks, n_jobs, backend,
        B=B, by_ms_exp=by_ms_exp, null_model=null_model,
        alternative_model=alternative_model, refinement=refinement,
        limits=limits, max_iterations=max_iterations,
    )


def build_null_distribution(
    strategy: str,
    df: pd.DataFrame,
    params: Optional[Sequence[ModelParams]] = None,
    **kwargs,
) -> pd.DataFrame:
    """
    Dispatch to one of the bootstrap schemes by name.

    ``strategy`` is 'null_refit', 'alternative' or 'fast'; the latter two
    need ``params``.
    """
    if strategy == "null_refit":
        return bootstrap_null(df, **kwargs)
    if strategy not in STRATEGIES:
        raise ConfigurationError(
            f"Unknown bootstrap strategy {strategy!r}, expected one of {STRATEGIES}"
        )
    if params is None:
        raise ConfigurationError(f"Strategy {strategy!r} needs observed model parameters")
    if strategy == "alternative":
        return bootstrap_null_alternative_model(df, params, **kwargs)
    return bootstrap_null_alternative_model_fast(df, params, **kwargs)
