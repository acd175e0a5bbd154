from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Tuple

import numpy as np
import pandas as pd

from lmequiv.config import (
    BOUNDARY_VAR_RATIO,
    CHANGE_COL,
    EQUIVALENCE_ATOL,
    EQUIVALENCE_RTOL,
    MIXED_RTOL,
    POST_COL,
    SUBJECT_MEAN_COL,
    USE_REML,
)
from lmequiv.evaluation.knapp_schafer import (
    ancova_f_from_summary,
    gain_t_from_summary,
    gain_t_to_ancova_f,
    pooled_summary,
)
from lmequiv.models.ancova import ancova, change_score_regression, residualized_change_t, sequential_ancova
from lmequiv.models.anova import group_regression, mixed_design_anova, one_way_anova, subject_fixed_anova, within_anova
from lmequiv.models.mixed import constrained_baseline_lmm, random_intercept_lmm
from lmequiv.models.ttests import change_score_t, independent_t, one_sample_t, paired_t


@dataclass(frozen=True)
class Equivalence:
    name: str
    left_label: str
    left: float
    right_label: str
    right: float
    abs_diff: float
    rel_diff: float
    holds: bool
    exact: bool
    note: str


def compare_statistics(
    name: str,
    left_label: str,
    left: float,
    right_label: str,
    right: float,
    *,
    rtol: float = EQUIVALENCE_RTOL,
    atol: float = EQUIVALENCE_ATOL,
    exact: bool = True,
    note: str = "",
) -> Equivalence:
    left = float(left)
    right = float(right)
    abs_diff = abs(left - right)
    scale = max(abs(left), abs(right))
    rel_diff = abs_diff / scale if scale > 0 else 0.0
    return Equivalence(
        name=name,
        left_label=left_label,
        left=left,
        right_label=right_label,
        right=right,
        abs_diff=abs_diff,
        rel_diff=rel_diff,
        holds=bool(np.isclose(left, right, rtol=rtol, atol=atol)),
        exact=exact,
        note=note,
    )


def run_equivalence_suite(
    wide: pd.DataFrame, long: pd.DataFrame, reml: bool = USE_REML
) -> Tuple[List[Equivalence], Dict[str, object]]:
    """Compute every identity on one dataset.

    Returns the comparisons plus the fitted results they were read from, keyed
    by short name, so callers can write the underlying tables too.
    """

    fits: Dict[str, object] = {}
    out: List[Equivalence] = []

    # Two groups, one occasion: t-test, one-way ANOVA, regression on a dummy.
    t_post = independent_t(wide, POST_COL)
    welch_post = independent_t(wide, POST_COL, equal_var=False)
    aov_post = one_way_anova(wide, POST_COL)
    reg_post = group_regression(wide, POST_COL)
    fits.update(t_post=t_post, welch_post=welch_post, aov_post=aov_post, reg_post=reg_post)
    out.append(compare_statistics("t_squared_equals_anova_f", "t^2 (Student, post)", t_post.t**2, "F one-way ANOVA (post)", aov_post.f))
    out.append(compare_statistics("t_p_equals_anova_p", "p t-test (post)", t_post.p_value, "p one-way ANOVA (post)", aov_post.p_value))
    out.append(compare_statistics("t_equals_dummy_regression_t", "t (Student, post)", t_post.t, "t OLS slope on treated", reg_post.t))
    out.append(
        compare_statistics(
            "mean_difference_equals_dummy_slope", "mean diff (post)", t_post.estimate, "OLS slope on treated", reg_post.estimate
        )
    )
    out.append(
        compare_statistics(
            "welch_t_vs_student_t",
            "t (Welch, post)",
            welch_post.t,
            "t (Student, post)",
            t_post.t,
            exact=False,
            note="Equal only when group sizes match; the degrees of freedom differ regardless.",
        )
    )

    # One group, two occasions: paired t, one-sample t on change, RM-ANOVA over time.
    t_paired = paired_t(wide)
    t_one = one_sample_t(wide[CHANGE_COL], label="one_sample_t[change]")
    rm_time = within_anova(long)
    fits.update(t_paired=t_paired, t_one_sample=t_one, rm_time=rm_time)
    out.append(compare_statistics("paired_t_equals_one_sample_change_t", "t paired", t_paired.t, "t one-sample on change", t_one.t))
    out.append(compare_statistics("paired_t_squared_equals_rm_time_f", "t^2 paired", t_paired.t**2, "F(time) AnovaRM", rm_time.f))

    # Two groups, two occasions: gain scores against the split-plot ANOVA.
    t_change = change_score_t(wide)
    t_means = independent_t(wide, SUBJECT_MEAN_COL)
    split = mixed_design_anova(long)
    blocks = subject_fixed_anova(long)
    reg_change = change_score_regression(wide)
    fits.update(t_change=t_change, t_subject_mean=t_means, mixed_design=split, subject_blocks=blocks, reg_change=reg_change)
    out.append(
        compare_statistics(
            "gain_t_squared_equals_interaction_f", "t^2 gain score", t_change.t**2, "F(group:time) RM-ANOVA", split.interaction.f
        )
    )
    out.append(
        compare_statistics(
            "interaction_f_equals_subject_block_f", "F(group:time) RM-ANOVA", split.interaction.f, "F OLS with subject blocks", blocks.f
        )
    )
    out.append(
        compare_statistics(
            "subject_mean_t_squared_equals_group_f", "t^2 on subject means", t_means.t**2, "F(group) RM-ANOVA", split.group.f
        )
    )
    out.append(
        compare_statistics(
            "rm_time_f_vs_split_plot_time_f",
            "F(time) AnovaRM",
            rm_time.f,
            "F(time) split-plot",
            split.time.f,
            exact=False,
            note="AnovaRM leaves group x time variation in its error term; equal only with no interaction.",
        )
    )
    out.append(compare_statistics("gain_t_equals_change_regression_t", "t gain score", t_change.t, "t OLS change ~ treated", reg_change.t))

    # ANCOVA: sequential regression and its relation to the gain score.
    anc = ancova(wide)
    seq = sequential_ancova(wide)
    resid = residualized_change_t(wide)
    fits.update(ancova=anc, sequential_ancova=seq, residualized_change=resid)
    out.append(compare_statistics("ancova_t_squared_equals_f", "t^2 ANCOVA treated", anc.effect.t**2, "F(group) ANCOVA type II", anc.f))
    out.append(compare_statistics("ancova_f_equals_nested_f", "F(group) ANCOVA", anc.f, "F nested model comparison", seq.f))
    out.append(
        compare_statistics(
            "residualized_change_vs_ancova",
            "t residualized change",
            resid.ttest.t,
            "t ANCOVA treated",
            anc.effect.t,
            exact=False,
            note="Uses the total rather than within-group slope; generally differs from ANCOVA.",
        )
    )

    # Knapp-Schafer closed forms from summary statistics.
    summary = pooled_summary(wide)
    fits["pooled_summary"] = summary
    out.append(compare_statistics("summary_gain_t_equals_gain_t", "t gain from summary", gain_t_from_summary(summary), "t gain score", t_change.t))
    out.append(compare_statistics("summary_ancova_f_equals_ancova_f", "F ANCOVA from summary", ancova_f_from_summary(summary), "F(group) ANCOVA", anc.f))
    approx_f = gain_t_to_ancova_f(t_change.t, summary.var_pre, summary.var_post, summary.r, summary.n_total)
    fits["approx_ancova_f"] = approx_f
    out.append(
        compare_statistics(
            "gain_t_converted_to_ancova_f",
            "F approx from gain t",
            approx_f,
            "F(group) ANCOVA",
            anc.f,
            exact=False,
            note=f"Exact only when baseline means are equal; baseline difference here is {summary.diff_pre:.4g}.",
        )
    )

    # Mixed models: iterative fits, compared at a looser tolerance.
    lmm = random_intercept_lmm(long, reml=reml)
    clda = constrained_baseline_lmm(long, reml=reml)
    fits.update(lmm=lmm, clda=clda)
    on_boundary = lmm.subject_var <= BOUNDARY_VAR_RATIO * lmm.residual_var
    lmm_exact = reml and not on_boundary
    if not reml:
        lmm_note = "ML underestimates the residual variance, so |z| exceeds |t|."
    elif on_boundary:
        lmm_note = (
            f"Subject variance estimated at the zero boundary ({lmm.subject_var:.3g}); "
            "the model collapses to OLS on the long table and pools both error strata."
        )
    else:
        lmm_note = ""
    out.append(
        compare_statistics(
            "lmm_interaction_equals_mean_change_difference",
            "LMM treated:is_post estimate",
            lmm.estimate,
            "mean change diff",
            t_change.estimate,
            rtol=MIXED_RTOL,
        )
    )
    out.append(
        compare_statistics(
            "lmm_interaction_z_equals_gain_t",
            "LMM treated:is_post z",
            lmm.z,
            "t gain score",
            t_change.t,
            rtol=MIXED_RTOL,
            exact=lmm_exact,
            note=lmm_note,
        )
    )
    out.append(
        compare_statistics(
            "constrained_baseline_lmm_vs_ancova",
            "cLDA is_post:treated estimate",
            clda.estimate,
            "ANCOVA treated estimate",
            anc.effect.estimate,
            rtol=MIXED_RTOL,
            exact=False,
            note="Shares the baseline mean across arms; close to, but not the same as, ANCOVA.",
        )
    )
    return out, fits


def equivalences_to_frame(items: Iterable[Equivalence]) -> pd.DataFrame:
    return pd.DataFrame([asdict(e) for e in items])


def failed_exact(items: Iterable[Equivalence]) -> List[Equivalence]:
    return [e for e in items if e.exact and not e.holds]
