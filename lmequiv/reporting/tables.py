from __future__ import annotations

from dataclasses import asdict, fields, is_dataclass
from pathlib import Path
from typing import Dict, Iterable

import pandas as pd

from lmequiv.config import ALPHA


def _scalar_fields(obj) -> dict:
    return {f.name: getattr(obj, f.name) for f in fields(obj) if not isinstance(getattr(obj, f.name), (pd.DataFrame, list))}


def results_frame(results: Dict[str, object], kinds: Iterable[type], alpha: float = ALPHA) -> pd.DataFrame:
    """Flatten fitted results of the given dataclass types into one table.

    Each row keeps its dictionary key as ``result``; columns are the union of
    the scalar fields, so t-tests and F-tests can share a table. Rows with a
    p-value get a ``significant`` flag at level ``alpha``.
    """

    kinds = tuple(kinds)
    rows = []
    for key, obj in results.items():
        if is_dataclass(obj) and isinstance(obj, kinds):
            rows.append({"result": key, **_scalar_fields(obj)})
    frame = pd.DataFrame(rows)
    if "p_value" in frame.columns:
        frame["significant"] = frame["p_value"] < alpha
    return frame


def summary_frame(obj) -> pd.DataFrame:
    row = asdict(obj)
    for name in dir(type(obj)):
        if isinstance(getattr(type(obj), name), property):
            row[name] = getattr(obj, name)
    return pd.DataFrame([row])


def write_table(df: pd.DataFrame, path: Path, index: bool = False) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=index)
