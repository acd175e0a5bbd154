from __future__ import annotations

import re
from typing import Dict

import numpy as np
import pandas as pd


_NORMALIZE_RE = re.compile(r"[^0-9a-zA-Z]+")


def _normalize_name(name: str) -> str:
    return _NORMALIZE_RE.sub("_", name).strip("_").lower()


def normalize_column_names(df: pd.DataFrame) -> Dict[str, str]:
    """Return a normalized-name -> exact-name mapping for df columns.

    Lets a user CSV with headers like "Group" or " PRE " resolve to the
    canonical lower-case names without renaming anything in place.
    """

    mapping: Dict[str, str] = {}
    collisions: Dict[str, list[str]] = {}

    for col in df.columns.astype(str).tolist():
        norm = _normalize_name(col)
        if norm in mapping and mapping[norm] != col:
            collisions.setdefault(norm, sorted({mapping[norm], col}))
        mapping[norm] = col

    if collisions:
        raise ValueError(f"Normalized column name collisions: {collisions}")

    return mapping


def coerce_group(series: pd.Series, *, control_label: str) -> pd.Series:
    """Convert group labels to an ordered-levels categorical with control first.

    Labels are stripped and lower-cased. Missing labels stay missing. The
    remaining level (there must be exactly one) becomes the second category, so
    treatment-coded contrasts compare it against control.
    """

    s = series.astype("string").str.strip().str.lower()
    levels = sorted(s.dropna().unique().tolist())
    if control_label not in levels:
        raise ValueError(f"Control label {control_label!r} not found among group labels {levels}.")
    others = [lvl for lvl in levels if lvl != control_label]
    return pd.Series(pd.Categorical(s, categories=[control_label] + others), index=series.index, name=series.name)


def treatment_indicator(group: pd.Series, *, control_label: str) -> pd.Series:
    return (group.astype("string") != control_label).astype(int)


def summarize_missingness(df: pd.DataFrame) -> pd.DataFrame:
    """Return per-column missingness summary in stable column order."""

    n = len(df)
    rows = []
    for col in df.columns.astype(str).tolist():
        n_missing = int(df[col].isna().sum())
        missing_rate = round(n_missing / n, 6) if n else np.nan
        rows.append({"column": col, "n": n, "n_missing": n_missing, "missing_rate": missing_rate})
    return pd.DataFrame(rows)
