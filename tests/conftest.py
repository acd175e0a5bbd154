import sys
from pathlib import Path

import pandas as pd
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from lmequiv.data.build import build_analysis_tables  # noqa: E402
from lmequiv.data.example import example_wide  # noqa: E402


@pytest.fixture
def tables():
    wide, long, _decisions = build_analysis_tables(example_wide())
    return wide, long


@pytest.fixture
def wide(tables):
    return tables[0]


@pytest.fixture
def long(tables):
    return tables[1]


@pytest.fixture
def boundary_raw():
    # Pre and post move in opposite directions within each arm, so the
    # subject-level covariance is negative and REML puts the subject variance
    # at zero. Change means are -1 (control) and 4 (treatment).
    rows = [
        (1, "control", 18.0, 23.0),
        (2, "control", 20.0, 22.0),
        (3, "control", 22.0, 21.0),
        (4, "control", 24.0, 20.0),
        (5, "control", 26.0, 19.0),
        (6, "treatment", 19.0, 29.0),
        (7, "treatment", 21.0, 28.0),
        (8, "treatment", 23.0, 27.0),
        (9, "treatment", 25.0, 26.0),
        (10, "treatment", 27.0, 25.0),
    ]
    return pd.DataFrame(rows, columns=["id", "group", "pre", "post"])
