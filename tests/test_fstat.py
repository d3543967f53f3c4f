"""
Unit tests for fstat.py.
"""

import numpy as np
import pytest

from tpp2d_hit_caller.fitting import ModelParams
from tpp2d_hit_caller.fstat import FSTAT_COLUMNS, compute_fstat_from_params, f_statistic


def _record(name="p1", n_rows=24, n_params_h0=4, n_params_h1=10,
            rss_h0=10.0, rss_h1=4.0, failure=None):
    return ModelParams(
        clustername=name, nObs=n_rows, n_rows=n_rows, n_temperatures=4,
        n_params_h0=n_params_h0, n_params_h1=n_params_h1,
        rss_h0=rss_h0, rss_h1=rss_h1, failure=failure,
    )


class TestFStatistic:

    def test_closed_form(self):
        """
        RSS0 = 10, RSS1 = 4, df0 = 20, df1 = 14
        F = ((10 - 4) / 6) / (4 / 14) = 3.5
        """
        f, df1, df2, flag = f_statistic(10.0, 4.0, 20, 14)
        assert f == pytest.approx(3.5, rel=1e-12)
        assert (df1, df2) == (6, 14)
        assert flag is None

    def test_deterministic(self):
        assert f_statistic(7.3, 2.1, 30, 21) == f_statistic(7.3, 2.1, 30, 21)

    @pytest.mark.parametrize("df_h0,df_h1", [(14, 14), (10, 14)])
    def test_invalid_nesting(self, df_h0, df_h1):
        f, _, _, flag = f_statistic(10.0, 4.0, df_h0, df_h1)
        assert np.isnan(f)
        assert flag == "invalid_nesting"

    def test_no_residual_degrees_of_freedom(self):
        f, _, _, flag = f_statistic(10.0, 4.0, 6, 0)
        assert np.isnan(f)
        assert flag == "insufficient_observations"

    def test_perfect_fit_is_infinite(self):
        f, _, _, flag = f_statistic(10.0, 0.0, 20, 14)
        assert f == np.inf
        assert flag == "degenerate_fit"


class TestComputeFStatFromParams:

    def test_columns_and_dataset_tag(self):
        out = compute_fstat_from_params([_record()], dataset="bootstrap_3")
        assert list(out.columns) == FSTAT_COLUMNS
        assert out.loc[0, "dataset"] == "bootstrap_3"
        assert out.loc[0, "F_statistic"] == pytest.approx(3.5)
        assert out.loc[0, "valid"]

    def test_invalid_nesting_flagged_not_raised(self):
        rec = _record(n_params_h1=4)
        out = compute_fstat_from_params([rec, _record(name="p2")])
        assert len(out) == 2
        bad = out.set_index("clustername").loc["p1"]
        assert not bad["valid"]
        assert bad["flag"] == "invalid_nesting"
        assert np.isnan(bad["F_statistic"])

    def test_failed_fit_keeps_row(self):
        rec = _record(rss_h0=np.nan, rss_h1=np.nan, failure="convergence_failure")
        out = compute_fstat_from_params([rec])
        assert len(out) == 1
        assert out.loc[0, "flag"] == "convergence_failure"
        assert not out.loc[0, "valid"]

    def test_degenerate_fit_stays_valid(self):
        out = compute_fstat_from_params([_record(rss_h1=0.0)])
        assert out.loc[0, "valid"]
        assert out.loc[0, "F_statistic"] == np.inf

    def test_valid_records_satisfy_nesting(self, screen_df):
        from tpp2d_hit_caller.filtering import prepare_dataset
        from tpp2d_hit_caller.fitting import get_model_params

        records = get_model_params(prepare_dataset(screen_df))
        for rec in records:
            assert rec.df_h0 > rec.df_h1
