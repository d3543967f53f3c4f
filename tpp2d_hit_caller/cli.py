"""
Command-line interface for tpp2d_hit_caller.

Usage:
    tpp2d-hit-caller --input data.csv --output-dir results/ [options]
"""

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

import pandas as pd

from .config import AnalysisConfig, load_config
from .fdr import find_hits
from .hit_calling import call_hits


def _read_table(path: str) -> pd.DataFrame:
    sep = "\t" if path.endswith((".tsv", ".txt")) else ","
    return pd.read_csv(path, sep=sep)


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="tpp2d-hit-caller",
        description="Bootstrap FDR hit calling for 2D thermal proteome profiling data",
    )
    parser.add_argument("--input", required=True,
                        help="CSV/TSV with clustername, temperature, experiment, "
                             "logConcentration, log2Value and nObs columns")
    parser.add_argument("--output-dir", default="tpp2d_results",
                        help="Directory to write result tables (default: tpp2d_results)")
    parser.add_argument("--config", default=None,
                        help="YAML or JSON file with analysis options")
    parser.add_argument("--strategy", choices=["null_refit", "alternative", "fast"], default=None)
    parser.add_argument("--B", type=int, default=None, help="Bootstrap rounds (default: 20)")
    parser.add_argument("--min-obs", type=int, default=None)
    parser.add_argument("--fc-threshold", type=float, default=None)
    parser.add_argument("--independent-filtering", action="store_true", default=None)
    parser.add_argument("--max-iterations", type=int, default=None)
    parser.add_argument("--no-by-ms-exp", dest="by_ms_exp", action="store_false", default=None,
                        help="Resample residuals pooled over experiments")
    parser.add_argument("--refine", dest="use_refinement", action="store_true", default=None,
                        help="Refine H1 with a trimmed sum-of-squares fit")
    parser.add_argument("--n-jobs", type=int, default=None)
    parser.add_argument("--backend", default=None,
                        help="joblib backend (loky, threading, multiprocessing, ...)")
    parser.add_argument("--alpha", type=float, default=None, help="FDR cutoff for hits")
    parser.add_argument("--random-state", type=int, default=None)
    parser.add_argument("-v", "--verbose", action="store_true")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = load_config(Path(args.config)) if args.config else AnalysisConfig()
    config = config.updated(
        strategy=args.strategy,
        B=args.B,
        min_obs=args.min_obs,
        fc_threshold=args.fc_threshold,
        independent_filtering=args.independent_filtering,
        max_iterations=args.max_iterations,
        by_ms_exp=args.by_ms_exp,
        use_refinement=args.use_refinement,
        n_jobs=args.n_jobs,
        backend=args.backend,
        alpha=args.alpha,
        random_state=args.random_state,
    )

    df = _read_table(args.input)
    results, null_df, params_df = call_hits(df, config=config)
    hits = find_hits(results, alpha=config.alpha)

    os.makedirs(args.output_dir, exist_ok=True)
    params_df.to_csv(os.path.join(args.output_dir, "model_params.csv"), index=False)
    results.drop(columns=["FDR", "is_hit"]).to_csv(
        os.path.join(args.output_dir, "fstats.csv"), index=False)
    null_df.to_csv(os.path.join(args.output_dir, "null_fstats.csv"), index=False)
    results.to_csv(os.path.join(args.output_dir, "fdr.csv"), index=False)
    hits.to_csv(os.path.join(args.output_dir, "hits.csv"), index=False)

    print(f"Results saved to {args.output_dir}/")
    print(f"  Proteins tested:    {len(results)}")
    print(f"  Invalid fits:       {int((~results['valid'].astype(bool)).sum())}")
    print(f"  Null F statistics:  {len(null_df)}")
    print(f"  Hits (FDR <= {config.alpha}): {len(hits)}")


if __name__ == "__main__":
    main()
