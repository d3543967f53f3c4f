"""
Unit tests for config.py.
"""

import json

import pytest
import yaml

from tpp2d_hit_caller.config import AnalysisConfig, load_config
from tpp2d_hit_caller.errors import ConfigurationError, InsufficientBootstrapWarning


class TestAnalysisConfig:

    def test_defaults(self):
        config = AnalysisConfig().validate()
        assert config.min_obs == 20
        assert config.B == 20
        assert config.alpha == 0.1
        assert config.strategy == "alternative"
        assert config.by_ms_exp is True

    @pytest.mark.parametrize("overrides", [
        {"B": 0},
        {"B": -5},
        {"alpha": 0.0},
        {"alpha": 2.0},
        {"fc_threshold": 1.0},
        {"min_obs": -1},
        {"max_iterations": 0},
        {"strategy": "permutation"},
        {"n_jobs": 0},
        {"trim_fraction": 1.0},
    ])
    def test_invalid_options_rejected(self, overrides):
        with pytest.raises(ConfigurationError):
            AnalysisConfig(**overrides).validate()

    def test_small_B_warns(self):
        with pytest.warns(InsufficientBootstrapWarning):
            AnalysisConfig(B=10).validate()

    def test_updated_skips_none(self):
        config = AnalysisConfig(B=50).updated(B=None, alpha=0.05)
        assert config.B == 50
        assert config.alpha == 0.05

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError, match="bootstraps"):
            AnalysisConfig.from_mapping({"bootstraps": 10})


class TestLoadConfig:

    def test_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"B": 40, "strategy": "fast", "random_state": 3}))
        config = load_config(path)
        assert config.B == 40
        assert config.strategy == "fast"
        assert config.random_state == 3

    def test_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"alpha": 0.05, "by_ms_exp": False}))
        config = load_config(path)
        assert config.alpha == 0.05
        assert config.by_ms_exp is False

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("")
        assert load_config(path) == AnalysisConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("B = 20")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigurationError):
            load_config(path)
