from pathlib import Path

import pandas as pd

from .coding import normalize_column_names


def load_wide_csv(path: Path) -> pd.DataFrame:
    """Read a one-row-per-subject CSV, lower-casing and trimming its headers."""
    df = pd.read_csv(path)
    mapping = normalize_column_names(df)
    return df.rename(columns={exact: norm for norm, exact in mapping.items()})
