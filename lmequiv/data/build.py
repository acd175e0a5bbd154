from __future__ import annotations

from typing import Tuple

import pandas as pd

from lmequiv.config import (
    CHANGE_COL,
    CONTROL_LABEL,
    GROUP_COL,
    ID_COL,
    MIN_GROUP_N,
    OCCASION_COL,
    POST_COL,
    PRE_COL,
    REQUIRED_WIDE_COLS,
    SCORE_COL,
    SUBJECT_MEAN_COL,
    TIME_COL,
    TIME_LEVELS,
    TREATED_COL,
)

from .coding import coerce_group, treatment_indicator
from .validate import assert_min_group_size, assert_required_columns, assert_two_groups, assert_unique_ids


def wide_to_long(wide: pd.DataFrame) -> pd.DataFrame:
    """Stack pre/post into one row per subject x occasion, sorted by id then time."""

    long = wide.melt(
        id_vars=[ID_COL, GROUP_COL, TREATED_COL],
        value_vars=TIME_LEVELS,
        var_name=TIME_COL,
        value_name=SCORE_COL,
    )
    long[TIME_COL] = pd.Categorical(long[TIME_COL], categories=TIME_LEVELS)
    long[OCCASION_COL] = (long[TIME_COL] == POST_COL).astype(int)
    long = long.sort_values([ID_COL, TIME_COL], kind="mergesort").reset_index(drop=True)
    return long[[ID_COL, GROUP_COL, TREATED_COL, TIME_COL, OCCASION_COL, SCORE_COL]]


def build_analysis_tables(df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame, dict]:
    assert_required_columns(df, REQUIRED_WIDE_COLS)
    assert_unique_ids(df, ID_COL)

    wide = df[REQUIRED_WIDE_COLS].copy()
    wide[GROUP_COL] = coerce_group(wide[GROUP_COL], control_label=CONTROL_LABEL)
    assert_two_groups(wide, GROUP_COL, CONTROL_LABEL)
    for col in (PRE_COL, POST_COL):
        wide[col] = pd.to_numeric(wide[col], errors="raise").astype(float)

    decisions: dict = {
        "columns": {
            "id": ID_COL,
            "group": GROUP_COL,
            "pre": PRE_COL,
            "post": POST_COL,
        },
        "group_levels": [str(c) for c in wide[GROUP_COL].cat.categories],
        "control_label": CONTROL_LABEL,
        "row_filters": [],
    }

    # Complete cases only: every repeated-measures model needs both occasions.
    n_before = len(wide)
    incomplete = wide[[GROUP_COL, PRE_COL, POST_COL]].isna().any(axis=1)
    dropped_ids = wide.loc[incomplete, ID_COL].tolist()
    wide = wide.loc[~incomplete].reset_index(drop=True)
    decisions["row_filters"].append(
        {
            "rule": "drop_incomplete_subjects",
            "columns": [GROUP_COL, PRE_COL, POST_COL],
            "dropped_rows": n_before - len(wide),
            "dropped_ids": [str(i) for i in dropped_ids],
        }
    )
    assert_min_group_size(wide, GROUP_COL, MIN_GROUP_N)

    wide[TREATED_COL] = treatment_indicator(wide[GROUP_COL], control_label=CONTROL_LABEL)
    wide[CHANGE_COL] = wide[POST_COL] - wide[PRE_COL]
    wide[SUBJECT_MEAN_COL] = (wide[PRE_COL] + wide[POST_COL]) / 2.0
    wide = wide.sort_values(ID_COL, kind="mergesort").reset_index(drop=True)

    long = wide_to_long(wide)

    counts = wide[GROUP_COL].value_counts(sort=False)
    decisions["group_sizes"] = {str(k): int(v) for k, v in counts.items()}
    decisions["balanced"] = bool(counts.nunique() == 1)
    return wide, long, decisions
