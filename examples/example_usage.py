"""
Example usage of tpp2d_hit_caller on a simulated 2D-TPP screen.

This script demonstrates the full pipeline:
1. Simulate a screen of 200 proteins, 10 of which respond to the ligand
2. Run call_hits() with the fast bootstrap scheme
3. Compare the hit list with the simulated interactors
4. Save the result tables

Run from the repository root after installing:
    pip install -e ".[dev]"
    python examples/example_usage.py
"""

import os

import numpy as np
import pandas as pd
from scipy.special import expit

import tpp2d_hit_caller as tpp

OUTPUT_DIR = "tpp2d_example_output"

TEMPERATURES = [42.0, 44.1, 46.2, 48.1, 50.4, 51.9, 54.0, 56.1, 58.2, 60.1]
LOG_CONC = [-np.inf, -8.0, -7.3, -6.0, -5.0]
N_PROTEINS = 200
N_INTERACTORS = 10

# ---------------------------------------------------------------------------
# Simulate data
# ---------------------------------------------------------------------------
print("Simulating data...")
rng = np.random.default_rng(42)
rows = []
for p in range(N_PROTEINS):
    name = f"P{p:04d}"
    is_interactor = p < N_INTERACTORS
    midpoint = rng.uniform(-7.5, -5.5)
    for ti, temp in enumerate(TEMPERATURES):
        # two multiplexed runs of five temperatures each
        experiment = "run1" if ti < 5 else "run2"
        effect = rng.uniform(0.5, 1.5) if is_interactor and ti >= 4 else 0.0
        for conc in LOG_CONC:
            value = rng.normal(0.0, 0.15)
            if np.isfinite(conc):
                value += effect * expit(3.0 * (conc - midpoint))
            rows.append({
                "clustername": name,
                "temperature": temp,
                "experiment": experiment,
                "logConcentration": conc,
                "log2Value": value,
                "is_interactor": is_interactor,
            })

df = pd.DataFrame(rows)
df["nObs"] = df.groupby("clustername")["log2Value"].transform("size")
print(f"  Proteins: {df['clustername'].nunique()}")
print(f"  Rows:     {len(df)}")

# ---------------------------------------------------------------------------
# Run hit calling
# ---------------------------------------------------------------------------
config = tpp.AnalysisConfig(
    strategy="fast",
    B=20,
    alpha=0.1,
    n_jobs=-1,
    random_state=42,
)
print(f"\nRunning hit calling (strategy={config.strategy}, B={config.B})...")
results, null_df, params_df = tpp.call_hits(df, config=config)

print(f"  Proteins tested:   {len(results)}")
print(f"  Invalid fits:      {int((~results['valid']).sum())}")
print(f"  Null F statistics: {len(null_df)}")
print(f"  Hits:              {int(results['is_hit'].sum())}")

# ---------------------------------------------------------------------------
# Check simulated interactors
# ---------------------------------------------------------------------------
print("\nChecking simulated interactors...")
truth = df.groupby("clustername")["is_interactor"].first()
hits = set(tpp.find_hits(results, alpha=config.alpha)["clustername"])
true_pos = sum(truth[name] for name in hits)
print(f"  Recovered: {true_pos} of {N_INTERACTORS}")
print(f"  False hits: {len(hits) - true_pos}")

# ---------------------------------------------------------------------------
# Save results CSV
# ---------------------------------------------------------------------------
os.makedirs(OUTPUT_DIR, exist_ok=True)
results.to_csv(os.path.join(OUTPUT_DIR, "fdr.csv"), index=False)
params_df.to_csv(os.path.join(OUTPUT_DIR, "model_params.csv"), index=False)
print(f"\nResults saved to {OUTPUT_DIR}/")
