from __future__ import annotations

import argparse
import os
import sys
import tempfile
from pathlib import Path

_mpl_cache_dir = Path(tempfile.gettempdir()) / "matplotlib"
_mpl_cache_dir.mkdir(parents=True, exist_ok=True)
os.environ.setdefault("MPLCONFIGDIR", str(_mpl_cache_dir))

import matplotlib  # noqa: E402

matplotlib.use("Agg")


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from lmequiv.config import (  # noqa: E402
    DATASET_VERSION,
    EQUIVALENCE_ATOL,
    EQUIVALENCE_RTOL,
    EXPERIMENT_NAMESPACE,
    FIGURES_DIR,
    LOGS_DIR,
    MIXED_RTOL,
    OUTPUTS_DIR,
    TABLES_DIR,
    USE_REML,
    WIDE_FILE,
)
from lmequiv.data.build import build_analysis_tables  # noqa: E402
from lmequiv.data.example import example_wide  # noqa: E402
from lmequiv.data.ingest import load_wide_csv  # noqa: E402
from lmequiv.evaluation.equivalence import (  # noqa: E402
    equivalences_to_frame,
    failed_exact,
    run_equivalence_suite,
)
from lmequiv.models.anova import CoefficientResult, FTestResult  # noqa: E402
from lmequiv.models.ttests import TTestResult  # noqa: E402
from lmequiv.reporting.figures import (  # noqa: E402
    plot_change_scores,
    plot_equivalences,
    plot_prepost_lines,
    save_figure,
)
from lmequiv.reporting.tables import results_frame, summary_frame, write_table  # noqa: E402
from lmequiv.utils.logging import run_metadata, sha256_df, write_json  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Fit t-tests, ANOVA, ANCOVA, RM-ANOVA and mixed models and compare their statistics."
    )
    parser.add_argument(
        "--input-csv",
        type=Path,
        default=WIDE_FILE,
        help="Wide table from scripts/01_build_dataset.py (falls back to the built-in example if absent).",
    )
    parser.add_argument("--outdir", type=Path, default=OUTPUTS_DIR, help="Output directory (default: outputs/).")
    parser.add_argument("--ml", action="store_true", help="Fit mixed models by ML instead of REML.")
    parser.add_argument("--no-figures", action="store_true", help="Skip figure rendering.")
    args = parser.parse_args()

    if args.input_csv.exists():
        df_raw = load_wide_csv(args.input_csv)
        source = str(args.input_csv)
    else:
        df_raw = example_wide()
        source = "builtin:example_wide"

    try:
        wide, long, decisions = build_analysis_tables(df_raw)
    except ValueError as e:
        raise SystemExit(f"Invalid input table ({source}): {e}")

    reml = USE_REML and not args.ml
    try:
        items, fits = run_equivalence_suite(wide, long, reml=reml)
    except RuntimeError as e:
        raise SystemExit(f"Model fitting failed: {e}")
    except ValueError as e:
        raise SystemExit(f"Design not supported: {e}")

    outdir = args.outdir
    tables_dir = outdir / TABLES_DIR.relative_to(OUTPUTS_DIR)
    figures_dir = outdir / FIGURES_DIR.relative_to(OUTPUTS_DIR)
    logs_dir = outdir / LOGS_DIR.relative_to(OUTPUTS_DIR)

    equiv = equivalences_to_frame(items)
    write_table(equiv, tables_dir / "equivalences.csv")
    write_table(results_frame(fits, [TTestResult]), tables_dir / "ttests.csv")
    write_table(results_frame(fits, [FTestResult]), tables_dir / "ftests.csv")
    write_table(results_frame(fits, [CoefficientResult]), tables_dir / "ols_coefficients.csv")
    write_table(fits["mixed_design"].table, tables_dir / "mixed_design_anova.csv")
    write_table(fits["ancova"].table.rename_axis("term").reset_index(), tables_dir / "ancova_type2.csv")
    write_table(fits["lmm"].fe_table, tables_dir / "lmm_random_intercept_fixed_effects.csv")
    write_table(fits["clda"].fe_table, tables_dir / "lmm_constrained_baseline_fixed_effects.csv")
    write_table(summary_frame(fits["pooled_summary"]), tables_dir / "pooled_summary.csv")

    if not args.no_figures:
        save_figure(plot_prepost_lines(long), figures_dir / "prepost_lines.png")
        save_figure(plot_change_scores(wide), figures_dir / "change_scores.png")
        save_figure(plot_equivalences(equiv), figures_dir / "equivalences.png")

    failures = failed_exact(items)
    meta = run_metadata(
        dataset_version=DATASET_VERSION,
        experiment_namespace=EXPERIMENT_NAMESPACE,
        source=source,
        content_hash_sha256=sha256_df(wide),
        decisions=decisions,
        reml=reml,
        tolerances={"rtol": EQUIVALENCE_RTOL, "atol": EQUIVALENCE_ATOL, "mixed_rtol": MIXED_RTOL},
        mixed_models={
            key: {
                "optimizer": fits[key].optimizer,
                "attempts": fits[key].attempts,
                "subject_var": fits[key].subject_var,
                "residual_var": fits[key].residual_var,
                "llf": fits[key].llf,
            }
            for key in ("lmm", "clda")
        },
        n_equivalences=len(items),
        n_exact_failed=len(failures),
        failed=[e.name for e in failures],
    )
    write_json(logs_dir / "equivalences_run_metadata.json", meta)

    for e in items:
        status = "ok" if e.holds else ("DIFFERS" if e.exact else "approx")
        print(f"[{status:>7}] {e.name}: {e.left_label}={e.left:.6g} vs {e.right_label}={e.right:.6g}")
    print(f"Wrote equivalence artifacts to {outdir}/")

    if failures:
        raise SystemExit(f"{len(failures)} exact identities did not hold: {[e.name for e in failures]}")


if __name__ == "__main__":
    main()
