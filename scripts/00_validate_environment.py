import sys

from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from lmequiv.config import LOGS_DIR, LONG_FILE, WIDE_FILE  # noqa: E402
from lmequiv.utils.logging import run_metadata, write_json  # noqa: E402


def main() -> None:
    info = run_metadata(
        wide_file_exists=WIDE_FILE.exists(),
        long_file_exists=LONG_FILE.exists(),
    )
    missing = sorted(pkg for pkg, version in info["packages"].items() if version is None)
    info["missing_packages"] = missing
    write_json(LOGS_DIR / "environment_check.json", info)
    print("Wrote outputs/logs/environment_check.json")
    if missing:
        raise SystemExit(f"Missing required packages: {missing}")


if __name__ == "__main__":
    main()
