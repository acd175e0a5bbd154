"""Closed-form links between the gain-score t and the ANCOVA F.

For two groups measured before and after, both tests can be written in terms
of the group means and the pooled within-group (co)variances of pre and post
(Knapp & Schafer, 2009, "From gain score t to ANCOVA F (and vice versa)").

The gain-score t uses the variance of post minus pre:

    t = (dpost - dpre) / sqrt((s_pre^2 + s_post^2 - 2 cov) (1/n1 + 1/n2))

ANCOVA regresses post on pre with the pooled within-group slope
b = cov / s_pre^2, leaving a residual mean square

    MSE = (N - 2) s_post^2 (1 - r^2) / (N - 3)

and tests the adjusted difference dpost - b dpre with

    F = (dpost - b dpre)^2 / (MSE (1/n1 + 1/n2 + dpre^2 / ((N - 2) s_pre^2)))

When the groups start level (dpre = 0) the two collapse to

    F = t^2 (s_pre^2 + s_post^2 - 2 r s_pre s_post) / (s_post^2 (1 - r^2)) * (N - 3) / (N - 2)

which is the approximate conversion used when only t and the variances are
reported. ``d`` denotes treatment minus control throughout.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
import pandas as pd

from lmequiv.config import POST_COL, PRE_COL, TREATED_COL


@dataclass(frozen=True)
class PooledSummary:
    n_control: int
    n_treatment: int
    mean_pre_control: float
    mean_pre_treatment: float
    mean_post_control: float
    mean_post_treatment: float
    var_pre: float
    var_post: float
    cov: float

    @property
    def n_total(self) -> int:
        return self.n_control + self.n_treatment

    @property
    def r(self) -> float:
        if self.var_pre <= 0 or self.var_post <= 0:
            raise ValueError(f"Variances must be positive; got var_pre={self.var_pre}, var_post={self.var_post}.")
        return self.cov / math.sqrt(self.var_pre * self.var_post)

    @property
    def diff_pre(self) -> float:
        return self.mean_pre_treatment - self.mean_pre_control

    @property
    def diff_post(self) -> float:
        return self.mean_post_treatment - self.mean_post_control


def _check_inputs(var_pre: float, var_post: float, r: float, n_total: int) -> None:
    if var_pre <= 0 or var_post <= 0:
        raise ValueError(f"Variances must be positive; got var_pre={var_pre}, var_post={var_post}.")
    if not -1.0 < r < 1.0:
        raise ValueError(f"Correlation must lie strictly between -1 and 1; got r={r}.")
    if n_total <= 3:
        raise ValueError(f"ANCOVA with two groups and one covariate needs n_total > 3; got {n_total}.")


def pooled_summary(wide: pd.DataFrame) -> PooledSummary:
    """Group means and pooled within-group (co)variances, denominator N - 2."""

    arms = {}
    for flag in (0, 1):
        sub = wide.loc[wide[TREATED_COL] == flag, [PRE_COL, POST_COL]].to_numpy(dtype=float)
        if sub.shape[0] < 2:
            raise ValueError(f"Each arm needs at least two subjects; arm treated={flag} has {sub.shape[0]}.")
        arms[flag] = sub

    n_total = arms[0].shape[0] + arms[1].shape[0]
    # Within-group sums of squares and cross-products, pooled over both arms.
    sscp = np.zeros((2, 2))
    for sub in arms.values():
        centred = sub - sub.mean(axis=0)
        sscp += centred.T @ centred
    pooled = sscp / (n_total - 2)

    return PooledSummary(
        n_control=int(arms[0].shape[0]),
        n_treatment=int(arms[1].shape[0]),
        mean_pre_control=float(arms[0][:, 0].mean()),
        mean_pre_treatment=float(arms[1][:, 0].mean()),
        mean_post_control=float(arms[0][:, 1].mean()),
        mean_post_treatment=float(arms[1][:, 1].mean()),
        var_pre=float(pooled[0, 0]),
        var_post=float(pooled[1, 1]),
        cov=float(pooled[0, 1]),
    )


def gain_t_from_summary(s: PooledSummary) -> float:
    var_change = s.var_pre + s.var_post - 2.0 * s.cov
    if var_change <= 0:
        raise ValueError("Pooled variance of the change scores is not positive.")
    se = math.sqrt(var_change * (1.0 / s.n_control + 1.0 / s.n_treatment))
    return (s.diff_post - s.diff_pre) / se


def ancova_f_from_summary(s: PooledSummary) -> float:
    r = s.r
    _check_inputs(s.var_pre, s.var_post, r, s.n_total)
    n = s.n_total
    slope = s.cov / s.var_pre
    mse = (n - 2) * s.var_post * (1.0 - r * r) / (n - 3)
    adjusted = s.diff_post - slope * s.diff_pre
    var_adjusted = mse * (1.0 / s.n_control + 1.0 / s.n_treatment + s.diff_pre**2 / ((n - 2) * s.var_pre))
    return adjusted * adjusted / var_adjusted


def _variance_ratio(var_pre: float, var_post: float, r: float, n_total: int) -> float:
    _check_inputs(var_pre, var_post, r, n_total)
    var_change = var_pre + var_post - 2.0 * r * math.sqrt(var_pre * var_post)
    return var_change / (var_post * (1.0 - r * r)) * (n_total - 3) / (n_total - 2)


def gain_t_to_ancova_f(t: float, var_pre: float, var_post: float, r: float, n_total: int) -> float:
    """Approximate ANCOVA F from a gain-score t, assuming equal baseline means."""
    return t * t * _variance_ratio(var_pre, var_post, r, n_total)


def ancova_f_to_gain_t(f: float, var_pre: float, var_post: float, r: float, n_total: int) -> float:
    """Inverse of :func:`gain_t_to_ancova_f`; the sign of t is not recoverable from F."""
    if f < 0:
        raise ValueError(f"F must be non-negative; got {f}.")
    return math.sqrt(f / _variance_ratio(var_pre, var_post, r, n_total))
