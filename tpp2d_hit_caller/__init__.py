"""
tpp2d_hit_caller: Bootstrap FDR hit calling for 2D thermal proteome profiling.

Public API
----------
call_hits(df, config=None, ...)
    Full pipeline: filter → fit → F statistics → bootstrap null → FDR.

prepare_dataset(df, min_obs=20, independent_filtering=False, fc_threshold=1.5)
    Schema check, minimum-observation and independent filtering.

get_model_params(df, ...) / fit_and_eval_dataset(df, ...)
    Per-protein H0/H1 fits and their F statistics.

bootstrap_null / bootstrap_null_alternative_model /
bootstrap_null_alternative_model_fast
    Bootstrap null distributions of F statistics.

get_fdr(observed, null) / find_hits(fdr_table, alpha=0.1)
    Empirical FDR and hit lists.
"""

from .bootstrap import (
    bootstrap_null,
    bootstrap_null_alternative_model,
    bootstrap_null_alternative_model_fast,
    build_null_distribution,
    resample_residuals,
)
from .config import AnalysisConfig, load_config
from .errors import (
    ConfigurationError,
    ConvergenceFailure,
    InsufficientBootstrapWarning,
    SchemaError,
)
from .fdr import find_hits, get_fdr
from .filtering import (
    concentration_limits,
    independent_filter,
    min_obs_filter,
    prepare_dataset,
)
from .fitting import (
    ModelParams,
    fit_and_eval_dataset,
    fit_protein,
    get_model_params,
    model_params_frame,
    representative_records,
    select_representative,
)
from .fstat import compute_fstat_from_params, f_statistic
from .hit_calling import call_hits
from .models import (
    ConstantNullModel,
    FixedSlopeAlternativeModel,
    SigmoidAlternativeModel,
    TrimmedRefinement,
)

__all__ = [
    "call_hits",
    "prepare_dataset",
    "min_obs_filter",
    "independent_filter",
    "concentration_limits",
    "ModelParams",
    "fit_protein",
    "get_model_params",
    "fit_and_eval_dataset",
    "model_params_frame",
    "representative_records",
    "select_representative",
    "f_statistic",
    "compute_fstat_from_params",
    "bootstrap_null",
    "bootstrap_null_alternative_model",
    "bootstrap_null_alternative_model_fast",
    "build_null_distribution",
    "resample_residuals",
    "get_fdr",
    "find_hits",
    "AnalysisConfig",
    "load_config",
    "ConstantNullModel",
    "SigmoidAlternativeModel",
    "FixedSlopeAlternativeModel",
    "TrimmedRefinement",
    "SchemaError",
    "ConfigurationError",
    "ConvergenceFailure",
    "InsufficientBootstrapWarning",
]

__version__ = "0.1.0"
