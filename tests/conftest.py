"""
Synthetic 2D-TPP profiles shared by the test modules.

Every protein is measured at 4 temperatures x 6 concentrations (24 rows);
temperatures 42/46 come from experiment 'exp1', 50/54 from 'exp2'.
"""

import numpy as np
import pandas as pd
import pytest
from scipy.special import expit

TEMPERATURES = [42.0, 46.0, 50.0, 54.0]
LOG_CONC = [-9.0, -8.0, -7.0, -6.0, -5.0, -4.0]
EXPERIMENT = {42.0: "exp1", 46.0: "exp1", 50.0: "exp2", 54.0: "exp2"}

# alternating pattern no monotone curve can follow
ZIGZAG = np.array([1.0, -1.0, 1.0, -1.0, 1.0, -1.0])


def make_protein(name, kind="null", seed=0, amplitude=0.2, shift=2.0,
                 midpoint=-6.5, slope=3.0):
    """
    One protein profile.

    kind='null'  flat profile with a zigzag of ``amplitude`` plus jitter
    kind='hit'   sigmoid of height ``shift`` at ``midpoint`` plus a small zigzag
    """
    rng = np.random.default_rng(seed)
    rows = []
    for ti, temp in enumerate(TEMPERATURES):
        for ci, conc in enumerate(LOG_CONC):
            value = 0.05 * ti + rng.normal(0.0, 0.01)
            if kind == "hit":
                value += shift * expit(slope * (conc - midpoint)) + 0.05 * ZIGZAG[ci]
            else:
                value += amplitude * ZIGZAG[ci]
            rows.append({
                "clustername": name,
                "representative": name.upper(),
                "temperature": temp,
                "experiment": EXPERIMENT[temp],
                "logConcentration": conc,
                "log2Value": value,
            })
    df = pd.DataFrame(rows)
    df["nObs"] = len(df)
    return df


@pytest.fixture
def null_protein():
    return make_protein("null1", kind="null", seed=1)


@pytest.fixture
def hit_protein():
    return make_protein("hit1", kind="hit", seed=4)


@pytest.fixture
def screen_df():
    """Three null proteins and one true interactor."""
    return pd.concat(
        [
            make_protein("null1", kind="null", seed=1),
            make_protein("null2", kind="null", seed=2),
            make_protein("null3", kind="null", seed=3),
            make_protein("hit1", kind="hit", seed=4),
        ],
        ignore_index=True,
    )
