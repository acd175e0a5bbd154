import numpy as np
import pandas as pd
import pytest

from lmequiv.data.build import build_analysis_tables
from lmequiv.data.coding import summarize_missingness
from lmequiv.data.example import example_wide
from lmequiv.data.ingest import load_wide_csv


def test_example_tables_shape_and_columns(wide, long):
    assert len(wide) == 10
    assert wide.columns.tolist() == ["id", "group", "pre", "post", "treated", "change", "subject_mean"]
    assert list(wide["group"].cat.categories) == ["control", "treatment"]
    assert wide["treated"].tolist() == [0] * 5 + [1] * 5

    assert len(long) == 20
    assert long.columns.tolist() == ["id", "group", "treated", "time", "is_post", "score"]
    # Sorted by subject, pre before post.
    assert long["time"].astype(str).tolist()[:4] == ["pre", "post", "pre", "post"]
    assert long.groupby("id")["is_post"].sum().eq(1).all()


def test_derived_columns(wide):
    np.testing.assert_allclose(wide["change"], wide["post"] - wide["pre"])
    np.testing.assert_allclose(wide["subject_mean"], (wide["pre"] + wide["post"]) / 2)
    means = wide.groupby("treated")["change"].mean()
    assert means[0] == pytest.approx(1.4)
    assert means[1] == pytest.approx(5.8)


def test_incomplete_subjects_are_dropped_and_recorded():
    df = example_wide()
    df.loc[df["id"] == 3, "post"] = np.nan
    wide, long, decisions = build_analysis_tables(df)
    assert 3 not in wide["id"].tolist()
    assert len(long) == 18
    rule = decisions["row_filters"][0]
    assert rule["dropped_rows"] == 1
    assert rule["dropped_ids"] == ["3"]
    assert decisions["group_sizes"] == {"control": 4, "treatment": 5}
    assert decisions["balanced"] is False


def test_group_labels_are_normalised():
    df = example_wide()
    df["group"] = df["group"].str.upper().str.pad(12)
    wide, _long, decisions = build_analysis_tables(df)
    assert decisions["group_levels"] == ["control", "treatment"]
    assert wide["treated"].sum() == 5


@pytest.mark.parametrize(
    "mutate, message",
    [
        (lambda df: df.drop(columns=["pre"]), "Missing required columns"),
        (lambda df: df.assign(group=["control"] * 10), "exactly two levels"),
        (lambda df: df.assign(group=["a"] * 5 + ["b"] * 5), "Control label"),
        (lambda df: df.assign(id=[1] * 10), "Duplicated subject ids"),
        (lambda df: df.assign(group=["control"] + ["treatment"] * 9), "fewer than 2"),
    ],
)
def test_invalid_inputs_raise(mutate, message):
    with pytest.raises(ValueError, match=message):
        build_analysis_tables(mutate(example_wide()))


def test_load_wide_csv_normalises_headers(tmp_path):
    path = tmp_path / "wide.csv"
    df = example_wide().rename(columns={"id": "ID", "group": " Group ", "pre": "PRE", "post": "Post"})
    df.to_csv(path, index=False)
    loaded = load_wide_csv(path)
    assert loaded.columns.tolist() == ["id", "group", "pre", "post"]
    wide, _long, _decisions = build_analysis_tables(loaded)
    assert len(wide) == 10


def test_summarize_missingness():
    df = pd.DataFrame({"a": [1.0, np.nan, 3.0, np.nan], "b": ["x", "y", None, "z"]})
    out = summarize_missingness(df)
    assert out["column"].tolist() == ["a", "b"]
    assert out["n_missing"].tolist() == [2, 1]
    assert out["missing_rate"].tolist() == [0.5, 0.25]
