"""
Unit tests for parallel.py.
"""

import pandas as pd
import pytest

from tpp2d_hit_caller.parallel import concat_frames, map_proteins


def _scaled(name, value, factor=1):
    return name, value * factor


class TestMapProteins:

    @pytest.mark.parametrize("n_jobs,backend", [(1, "loky"), (2, "threading"), (1, "sequential")])
    def test_results_in_task_order(self, n_jobs, backend):
        tasks = [(f"p{i}", i) for i in range(10)]
        out = map_proteins(_scaled, tasks, n_jobs=n_jobs, backend=backend, factor=3)
        assert out == [(f"p{i}", 3 * i) for i in range(10)]

    def test_no_tasks(self):
        assert map_proteins(_scaled, []) == []

    def test_worker_errors_propagate(self):
        def _boom(name):
            raise RuntimeError(name)

        with pytest.raises(RuntimeError, match="p0"):
            map_proteins(_boom, [("p0",)], backend="threading")


class TestConcatFrames:

    def test_empty_input_keeps_columns(self):
        out = concat_frames([None, pd.DataFrame()], ["a", "b"])
        assert list(out.columns) == ["a", "b"]
        assert len(out) == 0

    def test_column_order_enforced(self):
        frames = [pd.DataFrame({"b": [1], "a": [2]}), pd.DataFrame({"a": [3], "b": [4]})]
        out = concat_frames(frames, ["a", "b"])
        assert list(out.columns) == ["a", "b"]
        assert list(out["a"]) == [2, 3]
