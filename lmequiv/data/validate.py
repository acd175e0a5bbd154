from typing import Iterable


def assert_required_columns(df, required: Iterable[str]) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")


def assert_unique_ids(df, id_col: str) -> None:
    dup = df[id_col][df[id_col].duplicated()].unique().tolist()
    if dup:
        raise ValueError(f"Duplicated subject ids in {id_col}: {sorted(map(str, dup))}")


def assert_two_groups(df, group_col: str, control_label: str) -> None:
    levels = sorted(map(str, df[group_col].dropna().unique().tolist()))
    if len(levels) != 2:
        raise ValueError(f"Expected exactly two levels in {group_col} but observed: {levels}")
    if control_label not in levels:
        raise ValueError(f"Control label {control_label!r} not found in {group_col}; observed: {levels}")


def assert_min_group_size(df, group_col: str, min_n: int) -> None:
    counts = df[group_col].value_counts()
    small = {str(k): int(v) for k, v in counts.items() if v < min_n}
    if small:
        raise ValueError(f"Groups with fewer than {min_n} complete subjects: {small}")
