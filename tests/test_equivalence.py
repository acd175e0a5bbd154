import pytest

from lmequiv.config import BOUNDARY_VAR_RATIO
from lmequiv.data.build import build_analysis_tables
from lmequiv.evaluation.equivalence import (
    compare_statistics,
    equivalences_to_frame,
    failed_exact,
    run_equivalence_suite,
)


def test_compare_statistics_fields():
    e = compare_statistics("x", "a", 2.0, "b", 2.0 + 1e-9)
    assert e.holds
    assert e.exact
    assert e.abs_diff == pytest.approx(1e-9)

    e = compare_statistics("y", "a", 1.0, "b", 1.1, exact=False, note="approx")
    assert not e.holds
    assert e.rel_diff == pytest.approx(0.1 / 1.1)
    assert failed_exact([e]) == []


def test_compare_statistics_zero_scale():
    e = compare_statistics("z", "a", 0.0, "b", 0.0)
    assert e.holds
    assert e.rel_diff == 0.0


def test_suite_on_example_holds(wide, long):
    items, fits = run_equivalence_suite(wide, long)
    assert failed_exact(items) == []

    frame = equivalences_to_frame(items)
    assert frame["name"].is_unique
    by_name = frame.set_index("name")
    for name in [
        "t_squared_equals_anova_f",
        "paired_t_squared_equals_rm_time_f",
        "gain_t_squared_equals_interaction_f",
        "ancova_f_equals_nested_f",
        "summary_ancova_f_equals_ancova_f",
        "lmm_interaction_z_equals_gain_t",
    ]:
        assert bool(by_name.loc[name, "exact"])
        assert bool(by_name.loc[name, "holds"])

    assert not bool(by_name.loc["gain_t_converted_to_ancova_f", "exact"])
    assert fits["lmm"].optimizer
    assert fits["approx_ancova_f"] > 0


def test_suite_under_ml_marks_z_as_approximate(wide, long):
    items, _fits = run_equivalence_suite(wide, long, reml=False)
    by_name = {e.name: e for e in items}
    z = by_name["lmm_interaction_z_equals_gain_t"]
    assert not z.exact
    assert not z.holds
    assert failed_exact(items) == []


def test_boundary_subject_variance_downgrades_z_identity(boundary_raw):
    wide, long, _decisions = build_analysis_tables(boundary_raw)
    items, fits = run_equivalence_suite(wide, long)
    assert fits["lmm"].subject_var <= BOUNDARY_VAR_RATIO * fits["lmm"].residual_var

    by_name = {e.name: e for e in items}
    z = by_name["lmm_interaction_z_equals_gain_t"]
    assert not z.exact
    assert not z.holds
    assert "boundary" in z.note
    assert z.right == pytest.approx(5.0 / 3.0)
    # With no subject variance the interaction SE pools both strata: sqrt(4 * 6.25 / 5).
    assert z.left == pytest.approx(5.0 / 5.0**0.5, rel=1e-3)
    assert by_name["lmm_interaction_equals_mean_change_difference"].holds
    assert failed_exact(items) == []


def test_failed_exact_reports_mismatched_identity():
    ok = compare_statistics("ok", "a", 1.0, "b", 1.0)
    bad = compare_statistics("bad", "a", 1.0, "b", 2.0)
    assert [e.name for e in failed_exact([ok, bad])] == ["bad"]
