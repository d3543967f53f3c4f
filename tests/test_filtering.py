"""
Unit tests for filtering.py.
"""

import numpy as np
import pandas as pd
import pytest

from tpp2d_hit_caller.errors import ConfigurationError, SchemaError
from tpp2d_hit_caller.filtering import (
    REQUIRED_COLUMNS,
    check_columns,
    concentration_limits,
    independent_filter,
    min_obs_filter,
    prepare_dataset,
)


def _make_df(groups):
    """Make a long DataFrame from {clustername: (nObs, [log2 values])}."""
    rows = []
    for name, (n_obs, values) in groups.items():
        for i, v in enumerate(values):
            rows.append({
                "clustername": name,
                "temperature": 40.0 + 2 * (i % 2),
                "experiment": "exp1",
                "logConcentration": -8.0 + i,
                "log2Value": v,
                "nObs": n_obs,
                "extra_col": "keep_me",
            })
    return pd.DataFrame(rows)


class TestCheckColumns:

    def test_complete_schema_passes(self):
        check_columns(_make_df({"a": (20, [0.0, 0.1])}))

    @pytest.mark.parametrize("column", REQUIRED_COLUMNS)
    def test_missing_column_raises(self, column):
        df = _make_df({"a": (20, [0.0, 0.1])}).drop(columns=column)
        with pytest.raises(SchemaError, match=column):
            check_columns(df)

    def test_prepare_dataset_checks_before_filtering(self):
        df = _make_df({"a": (5, [0.0])}).drop(columns="experiment")
        with pytest.raises(SchemaError):
            prepare_dataset(df, min_obs=20)


class TestMinObsFilter:

    def test_removes_sparse_group(self):
        df = _make_df({"dense": (25, [0.0] * 4), "sparse": (10, [0.0] * 4)})
        out = min_obs_filter(df, min_obs=20)
        assert set(out["clustername"]) == {"dense"}

    def test_keeps_group_exactly_at_threshold(self):
        df = _make_df({"a": (20, [0.0, 0.0])})
        out = min_obs_filter(df, min_obs=20)
        assert len(out) == 2

    def test_preserves_extra_columns(self):
        out = min_obs_filter(_make_df({"a": (20, [0.0])}))
        assert "extra_col" in out.columns

    def test_does_not_modify_input(self):
        df = _make_df({"a": (20, [0.0]), "b": (1, [0.0])})
        original_len = len(df)
        _ = min_obs_filter(df)
        assert len(df) == original_len


class TestIndependentFilter:

    def test_keeps_group_crossing_up(self):
        # log2(1.5) ~ 0.585
        df = _make_df({"up": (20, [0.0, 0.7]), "flat": (20, [0.1, -0.1])})
        out = independent_filter(df, fc_threshold=1.5)
        assert set(out["clustername"]) == {"up"}

    def test_keeps_group_crossing_down(self):
        df = _make_df({"down": (20, [0.0, -0.7])})
        out = independent_filter(df, fc_threshold=1.5)
        assert set(out["clustername"]) == {"down"}

    def test_whole_group_kept(self):
        """All rows of a passing group stay, not only the crossing ones."""
        df = _make_df({"up": (20, [0.0, 0.1, 2.0])})
        out = independent_filter(df, fc_threshold=1.5)
        assert len(out) == 3

    def test_threshold_at_or_below_one_rejected(self):
        with pytest.raises(ConfigurationError):
            independent_filter(_make_df({"a": (20, [0.0])}), fc_threshold=1.0)


class TestConcentrationLimits:

    def test_limits_ignore_vehicle(self):
        df = _make_df({"a": (20, [0.0, 0.0, 0.0])})
        df.loc[0, "logConcentration"] = -np.inf
        assert concentration_limits(df) == (-7.0, -6.0)

    def test_no_finite_concentration_raises(self):
        df = _make_df({"a": (20, [0.0])})
        df["logConcentration"] = -np.inf
        with pytest.raises(ValueError):
            concentration_limits(df)


class TestPrepareDataset:

    def test_adds_dense_temperature_index(self):
        df = _make_df({"a": (20, [0.0, 0.1, 0.2, 0.3])})
        out = prepare_dataset(df, min_obs=20)
        assert sorted(out["temp_i"].unique()) == [0, 1]

    def test_rows_sorted_by_temperature_then_concentration(self):
        df = _make_df({"a": (20, [0.0, 0.1, 0.2, 0.3])}).iloc[::-1]
        out = prepare_dataset(df, min_obs=20)
        assert list(out["temp_i"]) == [0, 0, 1, 1]
        assert list(out["logConcentration"]) == [-8.0, -6.0, -7.0, -5.0]

    def test_independent_filtering_optional(self):
        df = _make_df({"flat": (20, [0.0, 0.1])})
        assert len(prepare_dataset(df, min_obs=20)) == 2
        assert len(prepare_dataset(df, min_obs=20, independent_filtering=True)) == 0
