from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf

from lmequiv.config import ID_COL, MIXED_OPTIMIZERS, OCCASION_COL, SCORE_COL, TREATED_COL, USE_REML


@dataclass(frozen=True)
class MixedFit:
    label: str
    term: str
    estimate: float
    se: float
    z: float
    p_value: float
    subject_var: float
    residual_var: float
    reml: bool
    optimizer: str
    llf: float
    fe_table: pd.DataFrame
    attempts: List[str] = field(default_factory=list)


def _fit_with_fallback(model, reml: bool, optimizers: Sequence[Tuple[str, dict]]):
    errors: List[str] = []
    for method, kw in optimizers:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                res = model.fit(reml=reml, method=method, **kw)
            except (np.linalg.LinAlgError, ValueError, RuntimeError) as e:
                errors.append(f"{method}: {e}")
                continue
        errors.extend(f"{method}: warning: {w.category.__name__}: {w.message}" for w in caught)
        if not getattr(res, "converged", True):
            errors.append(f"{method}: not converged")
            continue
        return res, method, errors
    tried = ", ".join(m for m, _ in optimizers)
    detail = " | ".join(errors)
    raise RuntimeError(f"MixedLM fit failed with all attempted optimizers ({tried}): {detail}")


def _fe_table(res) -> pd.DataFrame:
    names = list(res.fe_params.index)
    return pd.DataFrame(
        {
            "term": names,
            "estimate": res.fe_params.to_numpy(dtype=float),
            "se": res.bse_fe.to_numpy(dtype=float),
            "z": (res.fe_params / res.bse_fe).to_numpy(dtype=float),
            "p_value": res.pvalues.loc[names].to_numpy(dtype=float),
        }
    )


def _fit_random_intercept(
    long: pd.DataFrame,
    formula: str,
    term: str,
    label: str,
    reml: bool,
    optimizers: Optional[Sequence[Tuple[str, dict]]],
) -> MixedFit:
    model = smf.mixedlm(formula, data=long, groups=long[ID_COL])
    res, method, attempts = _fit_with_fallback(model, reml, optimizers or MIXED_OPTIMIZERS)
    estimate = float(res.fe_params[term])
    se = float(res.bse_fe[term])
    return MixedFit(
        label=label,
        term=term,
        estimate=estimate,
        se=se,
        z=estimate / se,
        p_value=float(res.pvalues[term]),
        subject_var=float(np.asarray(res.cov_re)[0, 0]),
        residual_var=float(res.scale),
        reml=reml,
        optimizer=method,
        llf=float(res.llf),
        fe_table=_fe_table(res),
        attempts=attempts,
    )


def random_intercept_lmm(
    long: pd.DataFrame,
    reml: bool = USE_REML,
    optimizers: Optional[Sequence[Tuple[str, dict]]] = None,
) -> MixedFit:
    """Random-intercept model ``score ~ treated * is_post`` grouped by subject.

    With two occasions and complete, balanced data the interaction estimate is
    the difference in mean change and its Wald z matches the gain-score t, as
    long as the subject variance is estimated above zero.
    """

    term = f"{TREATED_COL}:{OCCASION_COL}"
    return _fit_random_intercept(
        long,
        f"{SCORE_COL} ~ {TREATED_COL} * {OCCASION_COL}",
        term,
        "lmm_random_intercept[treated:is_post]",
        reml,
        optimizers,
    )


def constrained_baseline_lmm(
    long: pd.DataFrame,
    reml: bool = USE_REML,
    optimizers: Optional[Sequence[Tuple[str, dict]]] = None,
) -> MixedFit:
    """Random-intercept model with no group difference at baseline.

    Dropping the treated main effect forces both arms to share the pre mean, so
    the treatment term estimates a baseline-adjusted post difference much like
    ANCOVA does.
    """

    term = f"{OCCASION_COL}:{TREATED_COL}"
    return _fit_random_intercept(
        long,
        f"{SCORE_COL} ~ {OCCASION_COL} + {term}",
        term,
        "lmm_constrained_baseline[is_post:treated]",
        reml,
        optimizers,
    )
