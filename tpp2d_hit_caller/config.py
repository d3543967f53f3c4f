"""
Analysis options and config-file loading.

Options can be given in a YAML or JSON file; keys match the field names of
``AnalysisConfig``.
"""

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .bootstrap import STRATEGIES, validate_bootstrap_rounds
from .errors import ConfigurationError


@dataclass
class AnalysisConfig:
    """Recognised options of the hit-calling pipeline."""
    min_obs: int = 20
    fc_threshold: float = 1.5
    independent_filtering: bool = False
    max_iterations: int = 500
    B: int = 20
    by_ms_exp: bool = True
    strategy: str = "alternative"
    n_jobs: int = 1
    backend: str = "loky"
    alpha: float = 0.1
    random_state: Optional[int] = None
    use_refinement: bool = False
    trim_fraction: float = 0.1
    by_nobs: bool = True

    def validate(self) -> "AnalysisConfig":
        """
        Check every option, raising ConfigurationError on the first bad one.

        A B below 20 passes with an InsufficientBootstrapWarning.
        """
        if self.min_obs < 0:
            raise ConfigurationError(f"min_obs must be >= 0, got {self.min_obs}")
        if self.fc_threshold <= 1:
            raise ConfigurationError(
                f"fc_threshold must be greater than 1, got {self.fc_threshold}"
            )
        if self.max_iterations <= 0:
            raise ConfigurationError(
                f"max_iterations must be positive, got {self.max_iterations}"
            )
        if self.strategy not in STRATEGIES:
            raise ConfigurationError(
                f"strategy must be one of {STRATEGIES}, got {self.strategy!r}"
            )
        if self.n_jobs == 0:
            raise ConfigurationError("n_jobs must be non-zero")
        if not 0 < self.alpha <= 1:
            raise ConfigurationError(f"alpha must be in (0, 1], got {self.alpha}")
        if not 0 <= self.trim_fraction < 1:
            raise ConfigurationError(
                f"trim_fraction must be in [0, 1), got {self.trim_fraction}"
            )
        validate_bootstrap_rounds(self.B)
        return self

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any]) -> "AnalysisConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise ConfigurationError(f"Unknown config option(s): {', '.join(unknown)}")
        return cls(**mapping)

    def updated(self, **overrides) -> "AnalysisConfig":
        """Copy with the non-None ``overrides`` applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_config(config_path: Path) -> AnalysisConfig:
    """
    Load an AnalysisConfig from a YAML (.yaml/.yml) or JSON file.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ConfigurationError
        If the format is unsupported, the content is not a mapping, or it
        holds unknown options.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()
    try:
        with open(config_path, "r") as f:
            if suffix in (".yaml", ".yml"):
                content = yaml.safe_load(f)
            elif suffix == ".json":
                content = json.load(f)
            else:
                raise ConfigurationError(
                    f"Unsupported config format: {suffix}. Use .yaml, .yml, or .json"
                )
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file: {e}")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in config file: {e}")

    if content is None:
        return AnalysisConfig()
    if not isinstance(content, dict):
        raise ConfigurationError("Config file must contain a mapping at top level")
    return AnalysisConfig.from_mapping(content)
