"""
Per-protein fan-out over a joblib worker pool.
"""

import logging
from typing import Callable, Iterable, List, Sequence

import pandas as pd
from joblib import Parallel, delayed

logger = logging.getLogger(__name__)


def map_proteins(
    func: Callable,
    tasks: Iterable[tuple],
    n_jobs: int = 1,
    backend: str = "loky",
    **kwargs,
) -> List:
    """
    Run ``func(*task, **kwargs)`` once per protein task and wait for all.

    Parameters
    ----------
    func : callable
        Module-level function (must be picklable for process backends).
    tasks : iterable of tuples
        One tuple of positional arguments per protein.
    n_jobs : int
        Worker pool size (-1 for all CPUs).
    backend : str
        Any joblib backend: 'sequential', 'threading', 'loky',
        'multiprocessing', or a registered one such as 'dask'.
    **kwargs
        Shared keyword arguments passed to every call.

    Returns
    -------
    List of results in task order.
    """
    tasks = list(tasks)
    if not tasks:
        return []
    logger.debug("Dispatching %d protein tasks (n_jobs=%s, backend=%s)",
                 len(tasks), n_jobs, backend)
    return Parallel(n_jobs=n_jobs, backend=backend)(
        delayed(func)(*task, **kwargs) for task in tasks
    )


def concat_frames(frames: Iterable[pd.DataFrame], columns: Sequence[str]) -> pd.DataFrame:
    """Concatenate result frames; empty input gives an empty frame with ``columns``."""
    frames = [f for f in frames if f is not None and len(f) > 0]
    if not frames:
        return pd.DataFrame(columns=list(columns))
    return pd.concat(frames, ignore_index=True)[list(columns)]
