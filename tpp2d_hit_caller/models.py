"""
Null and alternative model strategies for 2D thermal profiles.

Every strategy exposes the same two calls:

``n_params(n_temperatures)``
    Number of free parameters for a profile spanning that many temperatures.
``fit(x, y, temp_i, n_temperatures, limits, max_iterations, start=None)``
    Fit the model to one protein profile and return a :class:`FitResult`.
    Raises :class:`ConvergenceFailure` if no stable optimum is found.

``x`` holds log10 concentrations (``-inf`` for vehicle), ``y`` the log2
responses and ``temp_i`` the 0-based temperature index of every observation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
from scipy import optimize
from scipy.special import expit

from .errors import ConvergenceFailure


@dataclass
class FitResult:
    params: np.ndarray
    predicted: np.ndarray
    residuals: np.ndarray
    rss: float


def _minimize(fun, x0, args, jac, bounds, method, max_iterations):
    res = optimize.minimize(
        fun, x0, args=args, jac=jac, method=method, bounds=bounds,
        options={"maxiter": max_iterations},
    )
    if not np.isfinite(res.fun) or not np.all(np.isfinite(res.x)):
        raise ConvergenceFailure(f"non-finite optimum ({res.message})")
    if not res.success and getattr(res, "nit", 0) >= max_iterations:
        raise ConvergenceFailure(
            f"iteration cap of {max_iterations} reached ({res.message})"
        )
    return res


def _sigmoid_terms(x: np.ndarray, midpoint: float, slope: float):
    """Centered concentrations and sigmoid weights; vehicle rows give 0."""
    finite = np.isfinite(x)
    dx = np.where(finite, x - midpoint, 0.0)
    s = np.where(finite, expit(slope * dx), 0.0)
    return dx, s


# ---------------------------------------------------------------------------
# Null model
# ---------------------------------------------------------------------------

class ConstantNullModel:
    """
    H0: the response at each temperature is a constant.

    The least-squares optimum is the per-temperature mean, so no iterative
    optimisation is needed.
    """

    name = "constant_null"

    def n_params(self, n_temperatures: int) -> int:
        return n_temperatures

    def fit(self, x, y, temp_i, n_temperatures, limits=None,
            max_iterations=500, start=None) -> FitResult:
        sums = np.bincount(temp_i, weights=y, minlength=n_temperatures)
        counts = np.bincount(temp_i, minlength=n_temperatures)
        if np.any(counts == 0):
            raise ConvergenceFailure("temperature without observations")
        means = sums / counts
        if not np.all(np.isfinite(means)):
            raise ConvergenceFailure("non-finite per-temperature mean")
        predicted = means[temp_i]
        residuals = y - predicted
        return FitResult(
            params=means,
            predicted=predicted,
            residuals=residuals,
            rss=float(np.sum(residuals ** 2)),
        )


# ---------------------------------------------------------------------------
# Alternative models
# ---------------------------------------------------------------------------

class _SigmoidModel:
    """
    H1: y = b_t + d_t * expit(h * (x - m)).

    Midpoint ``m`` and slope ``h`` are shared across temperatures, baseline
    ``b_t`` and plateau shift ``d_t`` are temperature specific. Subclasses
    decide whether ``h`` is a free parameter.
    """

    uses_midpoint_slope = True

    def __init__(
        self,
        method: str = "L-BFGS-B",
        use_gradient: bool = True,
        n_starts: int = 3,
    ):
        self.method = method
        self.use_gradient = use_gradient
        self.n_starts = n_starts

    # -- parameterization ---------------------------------------------------

    def _unpack(self, params, n_temperatures) -> Tuple[float, float, np.ndarray, np.ndarray]:
        raise NotImplementedError

    def _pack(self, midpoint, slope, baselines, plateaus) -> np.ndarray:
        raise NotImplementedError

    def _bounds(self, limits, n_temperatures) -> List[Tuple[Optional[float], Optional[float]]]:
        raise NotImplementedError

    def n_params(self, n_temperatures: int) -> int:
        return len(self._bounds((0.0, 1.0), n_temperatures))

    # -- objective ----------------------------------------------------------

    def predict(self, params, x, temp_i, n_temperatures):
        midpoint, slope, baselines, plateaus = self._unpack(params, n_temperatures)
        _, s = _sigmoid_terms(x, midpoint, slope)
        return baselines[temp_i] + plateaus[temp_i] * s

    def objective(self, params, x, y, temp_i, n_temperatures):
        r = y - self.predict(params, x, temp_i, n_temperatures)
        return float(np.sum(r ** 2))

    def _gradient_from_residuals(self, params, r, x, temp_i, n_temperatures):
        midpoint, slope, baselines, plateaus = self._unpack(params, n_temperatures)
        dx, s = _sigmoid_terms(x, midpoint, slope)
        ds = plateaus[temp_i] * s * (1.0 - s)
        g_midpoint = 2.0 * slope * np.sum(r * ds)
        g_slope = -2.0 * np.sum(r * ds * dx)
        g_baselines = -2.0 * np.bincount(temp_i, weights=r, minlength=n_temperatures)
        g_plateaus = -2.0 * np.bincount(temp_i, weights=r * s, minlength=n_temperatures)
        return self._pack(g_midpoint, g_slope, g_baselines, g_plateaus)

    def gradient(self, params, x, y, temp_i, n_temperatures):
        r = y - self.predict(params, x, temp_i, n_temperatures)
        return self._gradient_from_residuals(params, r, x, temp_i, n_temperatures)

    # -- fitting ------------------------------------------------------------

    def initial_values(self, x, y, temp_i, n_temperatures, limits) -> List[np.ndarray]:
        means = np.zeros(n_temperatures)
        baselines = np.zeros(n_temperatures)
        plateaus = np.zeros(n_temperatures)
        for t in range(n_temperatures):
            mask = temp_i == t
            xt, yt = x[mask], y[mask]
            means[t] = yt.mean()
            low = xt <= np.median(xt)
            baselines[t] = yt[low].mean()
            if np.any(~low):
                plateaus[t] = yt[~low].mean() - baselines[t]
        lower, upper = limits
        center = 0.5 * (lower + upper)
        # flat start at the H0 optimum keeps RSS1 <= RSS0
        starts = [self._pack(center, 1.0, means, np.zeros(n_temperatures))]
        for k in range(self.n_starts):
            midpoint = lower + (upper - lower) * (k + 1) / (self.n_starts + 1)
            starts.append(self._pack(midpoint, 1.0, baselines, plateaus))
        return starts

    def _starts(self, x, y, temp_i, n_temperatures, limits, start):
        if start is not None:
            return [np.asarray(start, dtype=float)]
        return self.initial_values(x, y, temp_i, n_temperatures, limits)

    def _clip_to_bounds(self, x0, bounds):
        lo = np.array([-np.inf if b[0] is None else b[0] for b in bounds])
        hi = np.array([np.inf if b[1] is None else b[1] for b in bounds])
        return np.clip(x0, lo, hi)

    def fit(self, x, y, temp_i, n_temperatures, limits,
            max_iterations=500, start=None) -> FitResult:
        bounds = self._bounds(limits, n_temperatures)
        jac = self.gradient if self.use_gradient else None
        args = (x, y, temp_i, n_temperatures)

        best = None
        failures = []
        for x0 in self._starts(x, y, temp_i, n_temperatures, limits, start):
            try:
                res = _minimize(
                    self.objective, self._clip_to_bounds(x0, bounds), args,
                    jac, bounds, self.method, max_iterations,
                )
            except ConvergenceFailure as e:
                failures.append(str(e))
                continue
            if best is None or res.fun < best.fun:
                best = res
        if best is None:
            raise ConvergenceFailure("; ".join(failures))

        predicted = self.predict(best.x, x, temp_i, n_temperatures)
        residuals = y - predicted
        return FitResult(
            params=best.x,
            predicted=predicted,
            residuals=residuals,
            rss=float(np.sum(residuals ** 2)),
        )


class SigmoidAlternativeModel(_SigmoidModel):
    """
    Shared midpoint and slope, parameter vector ``[m, h, b_1..b_T, d_1..d_T]``.
    """

    name = "sigmoid_midpoint_slope"
    uses_midpoint_slope = True

    def __init__(self, slope_bounds: Tuple[float, float] = (0.01, 10.0), **kwargs):
        super().__init__(**kwargs)
        self.slope_bounds = slope_bounds

    def _unpack(self, params, n_temperatures):
        return (
            params[0], params[1],
            params[2:2 + n_temperatures],
            params[2 + n_temperatures:2 + 2 * n_temperatures],
        )

    def _pack(self, midpoint, slope, baselines, plateaus):
        return np.concatenate([[midpoint, slope], baselines, plateaus])

    def _bounds(self, limits, n_temperatures):
        return ([tuple(limits), tuple(self.slope_bounds)]
                + [(None, None)] * (2 * n_temperatures))


class FixedSlopeAlternativeModel(_SigmoidModel):
    """
    Shared midpoint with a fixed slope, parameter vector ``[m, b.., d..]``.
    """

    name = "sigmoid_midpoint"
    uses_midpoint_slope = False

    def __init__(self, slope: float = 1.0, **kwargs):
        super().__init__(**kwargs)
        self.slope = slope

    def _unpack(self, params, n_temperatures):
        return (
            params[0], self.slope,
            params[1:1 + n_temperatures],
            params[1 + n_temperatures:1 + 2 * n_temperatures],
        )

    def _pack(self, midpoint, slope, baselines, plateaus):
        # slope is dropped: it is not a free parameter here
        return np.concatenate([[midpoint], baselines, plateaus])

    def _bounds(self, limits, n_temperatures):
        return [tuple(limits)] + [(None, None)] * (2 * n_temperatures)


class TrimmedRefinement:
    """
    Second-stage fit of an alternative model with a trimmed sum of squares.

    Starting from the stage-one parameters, the largest ``trim_fraction`` of
    squared residuals are left out of the objective so that single outlying
    observations cannot drive the curve. The returned ``rss`` is the plain
    sum of squares over all residuals, keeping it comparable to H0.
    """

    name = "trimmed_refinement"

    def __init__(self, base: Optional[_SigmoidModel] = None,
                 trim_fraction: float = 0.1, method: str = "L-BFGS-B",
                 use_gradient: bool = True):
        if not 0 <= trim_fraction < 1:
            raise ValueError(f"trim_fraction must be in [0, 1), got {trim_fraction}")
        self.base = base if base is not None else SigmoidAlternativeModel()
        self.trim_fraction = trim_fraction
        self.method = method
        self.use_gradient = use_gradient

    @property
    def uses_midpoint_slope(self) -> bool:
        return self.base.uses_midpoint_slope

    def n_params(self, n_temperatures: int) -> int:
        return self.base.n_params(n_temperatures)

    def _kept(self, r):
        n_keep = max(1, int(np.ceil((1.0 - self.trim_fraction) * r.size)))
        return np.argsort(r ** 2, kind="mergesort")[:n_keep]

    def objective(self, params, x, y, temp_i, n_temperatures):
        r = y - self.base.predict(params, x, temp_i, n_temperatures)
        kept = self._kept(r)
        return float(np.sum(r[kept] ** 2))

    def gradient(self, params, x, y, temp_i, n_temperatures):
        r = y - self.base.predict(params, x, temp_i, n_temperatures)
        r_kept = np.zeros_like(r)
        kept = self._kept(r)
        r_kept[kept] = r[kept]
        return self.base._gradient_from_residuals(params, r_kept, x, temp_i, n_temperatures)

    def fit(self, x, y, temp_i, n_temperatures, limits,
            max_iterations=500, start=None) -> FitResult:
        if start is None:
            start = self.base.fit(x, y, temp_i, n_temperatures, limits,
                                  max_iterations=max_iterations).params
        bounds = self.base._bounds(limits, n_temperatures)
        res = _minimize(
            self.objective, self.base._clip_to_bounds(np.asarray(start, dtype=float), bounds),
            (x, y, temp_i, n_temperatures),
            self.gradient if self.use_gradient else None,
            bounds, self.method, max_iterations,
        )
        predicted = self.base.predict(res.x, x, temp_i, n_temperatures)
        residuals = y - predicted
        return FitResult(
            params=res.x,
            predicted=predicted,
            residuals=residuals,
            rss=float(np.sum(residuals ** 2)),
        )
