"""Illustrative two-arm pre/post dataset.

Ten subjects, five per arm, each measured once before and once after. Values
are fixed so every run reproduces the same tables. Pre and post are positively
correlated within each arm, which keeps the random-intercept variance of the
mixed models away from zero; treatment subjects gain more on average (5.8
points against 1.4).
"""

import pandas as pd

from lmequiv.config import CONTROL_LABEL, GROUP_COL, ID_COL, POST_COL, PRE_COL, TREATMENT_LABEL

_ROWS = [
    (1, CONTROL_LABEL, 20.0, 22.0),
    (2, CONTROL_LABEL, 24.0, 25.0),
    (3, CONTROL_LABEL, 18.0, 21.0),
    (4, CONTROL_LABEL, 27.0, 27.0),
    (5, CONTROL_LABEL, 22.0, 23.0),
    (6, TREATMENT_LABEL, 21.0, 27.0),
    (7, TREATMENT_LABEL, 25.0, 30.0),
    (8, TREATMENT_LABEL, 19.0, 26.0),
    (9, TREATMENT_LABEL, 26.0, 29.0),
    (10, TREATMENT_LABEL, 23.0, 31.0),
]


def example_wide() -> pd.DataFrame:
    return pd.DataFrame(_ROWS, columns=[ID_COL, GROUP_COL, PRE_COL, POST_COL])
