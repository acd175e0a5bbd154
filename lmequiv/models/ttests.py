from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy import stats

from lmequiv.config import CHANGE_COL, POST_COL, PRE_COL, TREATED_COL


@dataclass(frozen=True)
class TTestResult:
    label: str
    t: float
    df: float
    p_value: float
    estimate: float
    se: float


def _split_arms(wide: pd.DataFrame, value_col: str):
    treated = wide.loc[wide[TREATED_COL] == 1, value_col].to_numpy(dtype=float)
    control = wide.loc[wide[TREATED_COL] == 0, value_col].to_numpy(dtype=float)
    if treated.size < 2 or control.size < 2:
        raise ValueError(f"Each arm needs at least two values of {value_col}; got {treated.size} and {control.size}.")
    return treated, control


def welch_df(s1: float, n1: int, s2: float, n2: int) -> float:
    v1, v2 = s1 * s1 / n1, s2 * s2 / n2
    return (v1 + v2) ** 2 / (v1 * v1 / (n1 - 1) + v2 * v2 / (n2 - 1))


def independent_t(wide: pd.DataFrame, value_col: str, equal_var: bool = True) -> TTestResult:
    """Two-sample t-test of treatment minus control on ``value_col``.

    With ``equal_var=True`` this is Student's pooled-variance test, the one that
    coincides with one-way ANOVA and with OLS on a treatment dummy. With
    ``equal_var=False`` it is Welch's test.
    """

    treated, control = _split_arms(wide, value_col)
    res = stats.ttest_ind(treated, control, equal_var=equal_var)
    n1, n2 = treated.size, control.size
    estimate = float(treated.mean() - control.mean())
    s1, s2 = float(treated.std(ddof=1)), float(control.std(ddof=1))
    if equal_var:
        df = float(n1 + n2 - 2)
        pooled = ((n1 - 1) * s1 * s1 + (n2 - 1) * s2 * s2) / df
        se = float(np.sqrt(pooled * (1.0 / n1 + 1.0 / n2)))
        label = f"student_t[{value_col}]"
    else:
        df = float(welch_df(s1, n1, s2, n2))
        se = float(np.sqrt(s1 * s1 / n1 + s2 * s2 / n2))
        label = f"welch_t[{value_col}]"
    return TTestResult(label=label, t=float(res.statistic), df=df, p_value=float(res.pvalue), estimate=estimate, se=se)


def paired_t(wide: pd.DataFrame) -> TTestResult:
    post = wide[POST_COL].to_numpy(dtype=float)
    pre = wide[PRE_COL].to_numpy(dtype=float)
    res = stats.ttest_rel(post, pre)
    d = post - pre
    return TTestResult(
        label="paired_t[post-pre]",
        t=float(res.statistic),
        df=float(d.size - 1),
        p_value=float(res.pvalue),
        estimate=float(d.mean()),
        se=float(d.std(ddof=1) / np.sqrt(d.size)),
    )


def one_sample_t(values, popmean: float = 0.0, label: str = "one_sample_t") -> TTestResult:
    x = np.asarray(values, dtype=float)
    if x.size < 2:
        raise ValueError("one_sample_t needs at least two values.")
    res = stats.ttest_1samp(x, popmean)
    return TTestResult(
        label=label,
        t=float(res.statistic),
        df=float(x.size - 1),
        p_value=float(res.pvalue),
        estimate=float(x.mean() - popmean),
        se=float(x.std(ddof=1) / np.sqrt(x.size)),
    )


def change_score_t(wide: pd.DataFrame) -> TTestResult:
    """Gain-score t-test: Student's t on post minus pre, treatment vs control."""
    return independent_t(wide, CHANGE_COL, equal_var=True)
