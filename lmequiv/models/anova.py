from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from scipy import stats
from statsmodels.stats.anova import AnovaRM, anova_lm

from lmequiv.config import GROUP_COL, ID_COL, OCCASION_COL, SCORE_COL, TIME_COL, TREATED_COL


@dataclass(frozen=True)
class FTestResult:
    label: str
    f: float
    df_num: float
    df_den: float
    p_value: float


@dataclass(frozen=True)
class CoefficientResult:
    label: str
    estimate: float
    se: float
    t: float
    p_value: float
    df_resid: float


@dataclass(frozen=True)
class MixedDesignAnova:
    table: pd.DataFrame
    group: FTestResult
    time: FTestResult
    interaction: FTestResult


def _row_f(table: pd.DataFrame, term: str, label: str) -> FTestResult:
    return FTestResult(
        label=label,
        f=float(table.loc[term, "F"]),
        df_num=float(table.loc[term, "df"]),
        df_den=float(table.loc["Residual", "df"]),
        p_value=float(table.loc[term, "PR(>F)"]),
    )


def one_way_anova(wide: pd.DataFrame, value_col: str) -> FTestResult:
    model = smf.ols(f"{value_col} ~ C({GROUP_COL})", data=wide).fit()
    table = anova_lm(model, typ=2)
    return _row_f(table, f"C({GROUP_COL})", f"one_way_anova[{value_col}]")


def group_regression(wide: pd.DataFrame, value_col: str) -> CoefficientResult:
    """OLS of ``value_col`` on the 0/1 treatment dummy.

    The slope is the treatment-minus-control mean difference and its t is
    Student's two-sample t.
    """

    model = smf.ols(f"{value_col} ~ {TREATED_COL}", data=wide).fit()
    return CoefficientResult(
        label=f"ols[{value_col} ~ {TREATED_COL}]",
        estimate=float(model.params[TREATED_COL]),
        se=float(model.bse[TREATED_COL]),
        t=float(model.tvalues[TREATED_COL]),
        p_value=float(model.pvalues[TREATED_COL]),
        df_resid=float(model.df_resid),
    )


def within_anova(long: pd.DataFrame) -> FTestResult:
    """One-factor repeated-measures ANOVA over occasions, ignoring group."""

    # AnovaRM groups on the raw columns; plain strings avoid empty categorical cells.
    data = long[[ID_COL, TIME_COL, SCORE_COL]].copy()
    data[TIME_COL] = data[TIME_COL].astype(str)
    res = AnovaRM(data=data, depvar=SCORE_COL, subject=ID_COL, within=[TIME_COL]).fit()
    row = res.anova_table.loc[TIME_COL]
    return FTestResult(
        label="rm_anova[time]",
        f=float(row["F Value"]),
        df_num=float(row["Num DF"]),
        df_den=float(row["Den DF"]),
        p_value=float(row["Pr > F"]),
    )


def _assert_balanced(long: pd.DataFrame) -> tuple[int, int, int]:
    per_subject = long.groupby(ID_COL)[TIME_COL].nunique()
    n_times = int(long[TIME_COL].astype(str).nunique())
    if (per_subject != n_times).any() or long.groupby(ID_COL).size().ne(n_times).any():
        incomplete = per_subject.index[per_subject != n_times].tolist()
        raise ValueError(f"Every subject needs exactly one score per occasion; incomplete ids: {incomplete}")

    sizes = long.drop_duplicates(ID_COL)[GROUP_COL].value_counts()
    sizes = sizes[sizes > 0]
    if sizes.nunique() != 1:
        raise ValueError(f"Mixed-design ANOVA needs equal group sizes; observed: {sizes.to_dict()}")
    return int(sizes.size), n_times, int(sizes.iloc[0])


def mixed_design_anova(long: pd.DataFrame) -> MixedDesignAnova:
    """Split-plot ANOVA: group between subjects, time within subjects.

    Sums of squares come straight from the cell, marginal and subject means of
    a balanced design. Group is tested against subjects-within-group; time and
    group x time are tested against the subject x time residual.
    """

    a, b, n = _assert_balanced(long)
    y = long[SCORE_COL].astype(float)
    gm = float(y.mean())

    subject_means = long.groupby(ID_COL)[SCORE_COL].mean()
    group_means = long.groupby(GROUP_COL, observed=True)[SCORE_COL].mean()
    time_means = long.groupby(TIME_COL, observed=True)[SCORE_COL].mean()
    cell_means = long.groupby([GROUP_COL, TIME_COL], observed=True)[SCORE_COL].mean()

    ss_total = float(((y - gm) ** 2).sum())
    ss_subjects = b * float(((subject_means - gm) ** 2).sum())
    ss_group = b * n * float(((group_means - gm) ** 2).sum())
    ss_subj_group = ss_subjects - ss_group
    ss_time = a * n * float(((time_means - gm) ** 2).sum())
    ss_cells = n * float(((cell_means - gm) ** 2).sum())
    ss_gxt = ss_cells - ss_group - ss_time
    ss_error = ss_total - ss_subjects - ss_time - ss_gxt

    df_group = a - 1
    df_subj_group = a * (n - 1)
    df_time = b - 1
    df_gxt = (a - 1) * (b - 1)
    df_error = a * (n - 1) * (b - 1)

    ms_subj_group = ss_subj_group / df_subj_group
    ms_error = ss_error / df_error

    def _ftest(label: str, ss: float, df: int, ms_den: float, df_den: int) -> FTestResult:
        f = (ss / df) / ms_den
        return FTestResult(label=label, f=f, df_num=float(df), df_den=float(df_den), p_value=float(stats.f.sf(f, df, df_den)))

    group = _ftest("rm_anova[group]", ss_group, df_group, ms_subj_group, df_subj_group)
    time = _ftest("rm_anova[time]", ss_time, df_time, ms_error, df_error)
    interaction = _ftest("rm_anova[group:time]", ss_gxt, df_gxt, ms_error, df_error)

    table = pd.DataFrame(
        [
            {"source": "group", "sum_sq": ss_group, "df": df_group, "F": group.f, "p_value": group.p_value},
            {"source": "subject(group)", "sum_sq": ss_subj_group, "df": df_subj_group, "F": np.nan, "p_value": np.nan},
            {"source": "time", "sum_sq": ss_time, "df": df_time, "F": time.f, "p_value": time.p_value},
            {"source": "group:time", "sum_sq": ss_gxt, "df": df_gxt, "F": interaction.f, "p_value": interaction.p_value},
            {"source": "residual", "sum_sq": ss_error, "df": df_error, "F": np.nan, "p_value": np.nan},
        ]
    )
    table["mean_sq"] = table["sum_sq"] / table["df"]
    table = table[["source", "sum_sq", "df", "mean_sq", "F", "p_value"]]
    return MixedDesignAnova(table=table, group=group, time=time, interaction=interaction)


def subject_fixed_anova(long: pd.DataFrame) -> FTestResult:
    """Group x time interaction with subjects entered as fixed blocks.

    Sequential sums of squares: subject, then occasion, then the
    occasion-by-treatment term. The residual is the subject x time
    interaction, the same error term the split-plot ANOVA uses.
    """

    term = f"{OCCASION_COL}:{TREATED_COL}"
    model = smf.ols(f"{SCORE_COL} ~ C({ID_COL}) + {OCCASION_COL} + {term}", data=long).fit()
    table = anova_lm(model, typ=1)
    return _row_f(table, term, "ols_subject_blocks[group:time]")
