from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from sklearn.linear_model import LinearRegression
from statsmodels.stats.anova import anova_lm

from lmequiv.config import CHANGE_COL, POST_COL, PRE_COL, TREATED_COL

from .anova import CoefficientResult, FTestResult, group_regression
from .ttests import TTestResult, independent_t


@dataclass(frozen=True)
class AncovaResult:
    effect: CoefficientResult
    pre_slope: float
    f: float
    df_num: float
    df_den: float
    p_value: float
    table: pd.DataFrame


@dataclass(frozen=True)
class ResidualizedChange:
    slope: float
    intercept: float
    ttest: TTestResult


def ancova(wide: pd.DataFrame) -> AncovaResult:
    """ANCOVA of post on group, adjusting for pre.

    Fit as OLS ``post ~ pre + treated``; the treated coefficient is the
    baseline-adjusted difference and F(group) from the type II table equals
    its squared t.
    """

    model = smf.ols(f"{POST_COL} ~ {PRE_COL} + {TREATED_COL}", data=wide).fit()
    table = anova_lm(model, typ=2)
    effect = CoefficientResult(
        label=f"ancova[{POST_COL} ~ {PRE_COL} + {TREATED_COL}]",
        estimate=float(model.params[TREATED_COL]),
        se=float(model.bse[TREATED_COL]),
        t=float(model.tvalues[TREATED_COL]),
        p_value=float(model.pvalues[TREATED_COL]),
        df_resid=float(model.df_resid),
    )
    return AncovaResult(
        effect=effect,
        pre_slope=float(model.params[PRE_COL]),
        f=float(table.loc[TREATED_COL, "F"]),
        df_num=float(table.loc[TREATED_COL, "df"]),
        df_den=float(table.loc["Residual", "df"]),
        p_value=float(table.loc[TREATED_COL, "PR(>F)"]),
        table=table,
    )


def sequential_ancova(wide: pd.DataFrame) -> FTestResult:
    """Nested-model comparison: does adding group improve ``post ~ pre``?"""

    reduced = smf.ols(f"{POST_COL} ~ {PRE_COL}", data=wide).fit()
    full = smf.ols(f"{POST_COL} ~ {PRE_COL} + {TREATED_COL}", data=wide).fit()
    cmp = anova_lm(reduced, full)
    row = cmp.iloc[1]
    return FTestResult(
        label="nested[post~pre vs post~pre+treated]",
        f=float(row["F"]),
        df_num=float(row["df_diff"]),
        df_den=float(row["df_resid"]),
        p_value=float(row["Pr(>F)"]),
    )


def change_score_regression(wide: pd.DataFrame) -> CoefficientResult:
    return group_regression(wide, CHANGE_COL)


def residualized_change_t(wide: pd.DataFrame) -> ResidualizedChange:
    """Regress post on pre ignoring group, then t-test the residuals by group.

    This uses the total-sample slope rather than the pooled within-group slope
    ANCOVA estimates, and charges no degree of freedom for it, so it only
    approximates the ANCOVA test.
    """

    X = wide[[PRE_COL]].to_numpy(dtype=float)
    y = wide[POST_COL].to_numpy(dtype=float)
    reg = LinearRegression().fit(X, y)
    resid = y - reg.predict(X)
    frame = pd.DataFrame({"residual": resid, TREATED_COL: wide[TREATED_COL].to_numpy()})
    return ResidualizedChange(
        slope=float(np.ravel(reg.coef_)[0]),
        intercept=float(reg.intercept_),
        ttest=independent_t(frame, "residual", equal_var=True),
    )
