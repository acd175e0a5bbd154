import sys
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import argparse  # noqa: E402

from lmequiv.config import DATASET_VERSION, LOGS_DIR, LONG_FILE, TABLES_DIR, WIDE_FILE  # noqa: E402
from lmequiv.data.build import build_analysis_tables  # noqa: E402
from lmequiv.data.coding import summarize_missingness  # noqa: E402
from lmequiv.data.example import example_wide  # noqa: E402
from lmequiv.data.ingest import load_wide_csv  # noqa: E402
from lmequiv.utils.logging import sha256_df, write_json  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Build wide and long pre/post analysis tables.")
    parser.add_argument(
        "--input-csv",
        type=Path,
        default=None,
        help="Optional wide CSV with id, group, pre, post columns (default: built-in example).",
    )
    parser.add_argument("--out-wide", type=Path, default=WIDE_FILE, help="Output wide CSV path.")
    parser.add_argument("--out-long", type=Path, default=LONG_FILE, help="Output long parquet path.")
    parser.add_argument(
        "--missingness-csv",
        type=Path,
        default=TABLES_DIR / "missingness_input.csv",
        help="Output missingness summary CSV path.",
    )
    parser.add_argument(
        "--decisions-json",
        type=Path,
        default=LOGS_DIR / "decisions.json",
        help="Output JSON file for coding/filter decisions.",
    )
    args = parser.parse_args()

    if args.input_csv is not None:
        if not args.input_csv.exists():
            raise SystemExit(f"Input file not found: {args.input_csv}")
        df_raw = load_wide_csv(args.input_csv)
        source = str(args.input_csv)
    else:
        df_raw = example_wide()
        source = "builtin:example_wide"

    args.missingness_csv.parent.mkdir(parents=True, exist_ok=True)
    summarize_missingness(df_raw).to_csv(args.missingness_csv, index=False)

    try:
        wide, long, decisions = build_analysis_tables(df_raw)
    except ValueError as e:
        raise SystemExit(f"Invalid input table: {e}")

    decisions_payload = {
        **decisions,
        "dataset_version": DATASET_VERSION,
        "source": source,
        "raw_rows": len(df_raw),
        "wide_rows": len(wide),
        "long_rows": len(long),
        "output_wide": str(args.out_wide),
        "output_long": str(args.out_long),
        "missingness_csv": str(args.missingness_csv),
        "content_hash_sha256": sha256_df(wide),
    }
    write_json(args.decisions_json, decisions_payload)

    args.out_wide.parent.mkdir(parents=True, exist_ok=True)
    wide.to_csv(args.out_wide, index=False)

    # Parquet keeps the categorical group/time levels in order.
    args.out_long.parent.mkdir(parents=True, exist_ok=True)
    long.to_parquet(args.out_long, index=False)

    print(f"Wrote {args.out_wide}")
    print(f"Wrote {args.out_long}")
    print(f"Wrote {args.missingness_csv}")
    print(f"Wrote {args.decisions_json}")


if __name__ == "__main__":
    main()
