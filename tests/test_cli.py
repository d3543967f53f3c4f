"""
Tests for the command-line entry point.
"""

import pandas as pd
import pytest
import yaml

from tpp2d_hit_caller.cli import main


@pytest.fixture
def input_csv(tmp_path, screen_df):
    path = tmp_path / "screen.csv"
    screen_df.to_csv(path, index=False)
    return path


def test_writes_result_tables(tmp_path, input_csv, capsys):
    out_dir = tmp_path / "results"
    main([
        "--input", str(input_csv),
        "--output-dir", str(out_dir),
        "--strategy", "fast",
        "--B", "20",
        "--random-state", "0",
    ])

    for name in ("model_params.csv", "fstats.csv", "null_fstats.csv", "fdr.csv", "hits.csv"):
        assert (out_dir / name).exists()

    hits = pd.read_csv(out_dir / "hits.csv")
    assert list(hits["clustername"]) == ["hit1"]
    assert "FDR" not in pd.read_csv(out_dir / "fstats.csv").columns
    assert "Hits (FDR <= 0.1): 1" in capsys.readouterr().out


def test_config_file_with_override(tmp_path, input_csv):
    config = tmp_path / "config.yaml"
    config.write_text(yaml.safe_dump({"strategy": "fast", "B": 20, "random_state": 0,
                                      "alpha": 0.5}))
    out_dir = tmp_path / "results"
    main(["--input", str(input_csv), "--output-dir", str(out_dir),
          "--config", str(config), "--alpha", "0.1"])
    hits = pd.read_csv(out_dir / "hits.csv")
    assert list(hits["clustername"]) == ["hit1"]


def test_unknown_strategy_exits(input_csv):
    with pytest.raises(SystemExit):
        main(["--input", str(input_csv), "--strategy", "jackknife"])
