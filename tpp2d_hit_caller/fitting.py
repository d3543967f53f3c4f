"""
Per-protein fitting of the null and alternative models.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import ConvergenceFailure
from .filtering import concentration_limits, ensure_prepared
from .fstat import compute_fstat_from_params
from .models import ConstantNullModel, SigmoidAlternativeModel
from .parallel import map_proteins

logger = logging.getLogger(__name__)


def _empty() -> np.ndarray:
    return np.array([], dtype=float)


@dataclass
class ModelParams:
    """
    H0 and H1 fit of one protein profile.

    Vectors are aligned with the protein's rows in canonical order (see
    ``filtering.order_profiles``). When ``failure`` is set the fit fields
    are empty / NaN.
    """

    clustername: str
    nObs: int
    n_rows: int
    n_temperatures: int
    n_params_h0: int
    n_params_h1: int
    predicted_h0: np.ndarray = field(default_factory=_empty)
    residuals_h0: np.ndarray = field(default_factory=_empty)
    rss_h0: float = np.nan
    predicted_h1: np.ndarray = field(default_factory=_empty)
    residuals_h1: np.ndarray = field(default_factory=_empty)
    rss_h1: float = np.nan
    params_h1: np.ndarray = field(default_factory=_empty)
    midpoint: float = np.nan
    slope: float = np.nan
    baselines: np.ndarray = field(default_factory=_empty)
    plateaus: np.ndarray = field(default_factory=_empty)
    failure: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.failure is None

    @property
    def df_h0(self) -> int:
        return self.n_rows - self.n_params_h0

    @property
    def df_h1(self) -> int:
        return self.n_rows - self.n_params_h1


def profile_arrays(
    profile: pd.DataFrame,
    values: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, int]:
    """
    Extract (x, y, temp_i, n_temperatures) from one ordered protein slice.

    ``values`` replaces the measured log2 values, e.g. with a resampled
    profile.
    """
    x = profile["logConcentration"].to_numpy(dtype=float)
    if values is None:
        y = profile["log2Value"].to_numpy(dtype=float)
    else:
        y = np.asarray(values, dtype=float)
        if y.size != x.size:
            raise ValueError(
                f"values has length {y.size}, profile has {x.size} rows"
            )
    temp_i = profile["temp_i"].to_numpy(dtype=int)
    n_temperatures = int(temp_i.max()) + 1 if temp_i.size else 0
    return x, y, temp_i, n_temperatures


def fit_protein(
    profile: pd.DataFrame,
    null_model=None,
    alternative_model=None,
    limits: Optional[Tuple[float, float]] = None,
    refinement=None,
    max_iterations: int = 500,
    values: Optional[np.ndarray] = None,
) -> ModelParams:
    """
    Fit H0 and H1 to a single protein profile.

    Parameters
    ----------
    profile : DataFrame
        Rows of one protein in canonical order (with 'temp_i').
    null_model, alternative_model : strategy objects
        See ``models``. Default to ConstantNullModel and
        SigmoidAlternativeModel.
    limits : (float, float)
        Bounds of the midpoint parameter; defaults to the profile's own
        concentration range.
    refinement : strategy or None
        Optional second stage started from the H1 parameters.
    max_iterations : int
        Optimizer iteration cap.
    values : array or None
        Replacement log2 values for the profile rows.

    Returns
    -------
    ModelParams. A convergence failure is recorded in ``failure`` instead
    of being raised.
    """
    null_model = null_model if null_model is not None else ConstantNullModel()
    alternative_model = (alternative_model if alternative_model is not None
                         else SigmoidAlternativeModel())
    if limits is None:
        limits = concentration_limits(profile)

    x, y, temp_i, n_temperatures = profile_arrays(profile, values)
    record = ModelParams(
        clustername=profile["clustername"].iloc[0],
        nObs=int(profile["nObs"].iloc[0]),
        n_rows=int(y.size),
        n_temperatures=n_temperatures,
        n_params_h0=null_model.n_params(n_temperatures),
        n_params_h1=alternative_model.n_params(n_temperatures),
    )

    try:
        h0 = null_model.fit(x, y, temp_i, n_temperatures, limits=limits,
                            max_iterations=max_iterations)
        h1 = alternative_model.fit(x, y, temp_i, n_temperatures, limits=limits,
                                   max_iterations=max_iterations)
        if refinement is not None:
            h1 = refinement.fit(x, y, temp_i, n_temperatures, limits=limits,
                                max_iterations=max_iterations, start=h1.params)
    except ConvergenceFailure as e:
        logger.debug("Fit of %s did not converge: %s", record.clustername, e)
        record.failure = "convergence_failure"
        return record

    params = np.asarray(h1.params, dtype=float)
    if alternative_model.uses_midpoint_slope:
        midpoint, slope, rest = params[0], params[1], params[2:]
    else:
        midpoint, slope, rest = params[0], np.nan, params[1:]

    record.predicted_h0 = h0.predicted
    record.residuals_h0 = h0.residuals
    record.rss_h0 = h0.rss
    record.predicted_h1 = h1.predicted
    record.residuals_h1 = h1.residuals
    record.rss_h1 = h1.rss
    record.params_h1 = params
    record.midpoint = float(midpoint)
    record.slope = float(slope)
    record.baselines = rest[:n_temperatures]
    record.plateaus = rest[n_temperatures:2 * n_temperatures]
    return record


def protein_groups(df: pd.DataFrame) -> Iterable[Tuple[Tuple[str, int], pd.DataFrame]]:
    """Yield ((clustername, nObs), rows) for every profile of a prepared table."""
    return df.groupby(["clustername", "nObs"], sort=False)


def _fit_task(profile, **kwargs):
    return fit_protein(profile, **kwargs)


def get_model_params(
    df: pd.DataFrame,
    null_model=None,
    alternative_model=None,
    refinement=None,
    limits: Optional[Tuple[float, float]] = None,
    max_iterations: int = 500,
    n_jobs: int = 1,
    backend: str = "loky",
) -> List[ModelParams]:
    """
    Fit H0 and H1 for every protein profile in ``df``.

    ``df`` should already be filtered (see ``filtering.prepare_dataset``);
    one record is returned per (clustername, nObs) group. ``limits``
    default to the concentration range of ``df``.
    """
    df = ensure_prepared(df)
    if limits is None:
        limits = concentration_limits(df)

    tasks = [(group,) for _, group in protein_groups(df)]
    records = map_proteins(
        _fit_task, tasks, n_jobs=n_jobs, backend=backend,
        null_model=null_model, alternative_model=alternative_model,
        refinement=refinement, limits=limits, max_iterations=max_iterations,
    )
    n_failed = sum(not r.valid for r in records)
    if n_failed:
        logger.warning("%d of %d protein fits did not converge", n_failed, len(records))
    return records


def select_representative(
    records: Sequence[ModelParams],
    clustername: str,
) -> Optional[ModelParams]:
    """
    The record of ``clustername`` with maximal nObs (first one on ties).
    """
    best = None
    for rec in records:
        if rec.clustername != clustername:
            continue
        if best is None or rec.nObs > best.nObs:
            best = rec
    return best


def representative_records(records: Sequence[ModelParams]) -> List[ModelParams]:
    """One record per clustername, the one at maximal nObs, in first-seen order."""
    names = list(dict.fromkeys(rec.clustername for rec in records))
    return [select_representative(records, name) for name in names]


def fit_and_eval_dataset(df: pd.DataFrame, dataset: str = "observed", **kwargs) -> pd.DataFrame:
    """
    Fit every protein in ``df`` and return its F-statistic table.

    Keyword arguments are passed on to ``get_model_params``.
    """
    return compute_fstat_from_params(get_model_params(df, **kwargs), dataset=dataset)


MODEL_PARAMS_COLUMNS = [
    "clustername", "nObs", "n_temperatures", "rss_h0", "rss_h1",
    "df_h0", "df_h1", "n_params_h0", "n_params_h1",
    "midpoint", "slope", "valid", "failure",
]


def model_params_frame(records: Iterable[ModelParams]) -> pd.DataFrame:
    """Flatten ModelParams records into a table of their scalar fields."""
    rows = [
        {
            "clustername": r.clustername,
            "nObs": r.nObs,
            "n_temperatures": r.n_temperatures,
            "rss_h0": r.rss_h0,
            "rss_h1": r.rss_h1,
            "df_h0": r.df_h0,
            "df_h1": r.df_h1,
            "n_params_h0": r.n_params_h0,
            "n_params_h1": r.n_params_h1,
            "midpoint": r.midpoint,
            "slope": r.slope,
            "valid": r.valid,
            "failure": r.failure,
        }
        for r in records
    ]
    return pd.DataFrame(rows, columns=MODEL_PARAMS_COLUMNS)
