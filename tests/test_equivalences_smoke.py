import importlib.util
import json
import subprocess
import sys
from pathlib import Path

import pandas as pd
import pytest

from lmequiv.data.example import example_wide
from lmequiv.evaluation.equivalence import compare_statistics, run_equivalence_suite


def test_equivalences_smoke(tmp_path: Path):
    repo_root = Path(__file__).resolve().parents[1]
    outdir = tmp_path / "outputs"

    cmd = [
        sys.executable,
        str(repo_root / "scripts" / "02_equivalences.py"),
        "--input-csv",
        str(tmp_path / "absent.csv"),
        "--outdir",
        str(outdir),
    ]
    subprocess.run(cmd, cwd=repo_root, check=True)

    required_paths = [
        "tables/equivalences.csv",
        "tables/ttests.csv",
        "tables/ftests.csv",
        "tables/ols_coefficients.csv",
        "tables/mixed_design_anova.csv",
        "tables/ancova_type2.csv",
        "tables/lmm_random_intercept_fixed_effects.csv",
        "tables/lmm_constrained_baseline_fixed_effects.csv",
        "tables/pooled_summary.csv",
        "figures/prepost_lines.png",
        "figures/change_scores.png",
        "figures/equivalences.png",
        "logs/equivalences_run_metadata.json",
    ]
    for rel in required_paths:
        assert (outdir / rel).exists(), f"Missing expected artifact: {rel}"

    equiv = pd.read_csv(outdir / "tables" / "equivalences.csv")
    exact = equiv.loc[equiv["exact"]]
    assert exact["holds"].all()

    meta = json.loads((outdir / "logs" / "equivalences_run_metadata.json").read_text(encoding="utf-8"))
    assert meta["source"] == "builtin:example_wide"
    assert meta["reml"] is True
    assert meta["n_exact_failed"] == 0
    assert set(meta["mixed_models"]) == {"lmm", "clda"}


def test_equivalences_reads_built_table(tmp_path: Path):
    repo_root = Path(__file__).resolve().parents[1]
    wide_csv = tmp_path / "wide.csv"
    build = [
        sys.executable,
        str(repo_root / "scripts" / "01_build_dataset.py"),
        "--out-wide",
        str(wide_csv),
        "--out-long",
        str(tmp_path / "long.parquet"),
        "--missingness-csv",
        str(tmp_path / "miss.csv"),
        "--decisions-json",
        str(tmp_path / "decisions.json"),
    ]
    subprocess.run(build, cwd=repo_root, check=True)

    cmd = [
        sys.executable,
        str(repo_root / "scripts" / "02_equivalences.py"),
        "--input-csv",
        str(wide_csv),
        "--outdir",
        str(tmp_path / "out"),
        "--no-figures",
    ]
    subprocess.run(cmd, cwd=repo_root, check=True)

    meta = json.loads((tmp_path / "out" / "logs" / "equivalences_run_metadata.json").read_text(encoding="utf-8"))
    assert meta["source"] == str(wide_csv)
    assert not (tmp_path / "out" / "figures").exists()


def _run_equivalences(repo_root: Path, tmp_path: Path, df: pd.DataFrame) -> subprocess.CompletedProcess:
    input_csv = tmp_path / "input.csv"
    df.to_csv(input_csv, index=False)
    cmd = [
        sys.executable,
        str(repo_root / "scripts" / "02_equivalences.py"),
        "--input-csv",
        str(input_csv),
        "--outdir",
        str(tmp_path / "out"),
        "--no-figures",
    ]
    return subprocess.run(cmd, cwd=repo_root, capture_output=True, text=True)


def test_equivalences_rejects_unbalanced_design(tmp_path: Path):
    repo_root = Path(__file__).resolve().parents[1]
    df = pd.concat(
        [example_wide(), pd.DataFrame([{"id": 11, "group": "control", "pre": 21.0, "post": 23.0}])],
        ignore_index=True,
    )
    proc = _run_equivalences(repo_root, tmp_path, df)
    assert proc.returncode != 0
    assert "Design not supported" in proc.stderr
    assert "equal group sizes" in proc.stderr
    assert "Traceback" not in proc.stderr


def test_equivalences_rejects_constant_baseline(tmp_path: Path):
    repo_root = Path(__file__).resolve().parents[1]
    proc = _run_equivalences(repo_root, tmp_path, example_wide().assign(pre=20.0))
    assert proc.returncode != 0
    assert "Variances must be positive" in proc.stderr
    assert "Traceback" not in proc.stderr


def test_equivalences_rejects_single_group(tmp_path: Path):
    repo_root = Path(__file__).resolve().parents[1]
    proc = _run_equivalences(repo_root, tmp_path, example_wide().assign(group="control"))
    assert proc.returncode != 0
    assert "Invalid input table" in proc.stderr
    assert "Traceback" not in proc.stderr


def test_equivalences_boundary_fit_exits_cleanly(tmp_path: Path, boundary_raw):
    repo_root = Path(__file__).resolve().parents[1]
    proc = _run_equivalences(repo_root, tmp_path, boundary_raw)
    assert proc.returncode == 0, proc.stderr

    equiv = pd.read_csv(tmp_path / "out" / "tables" / "equivalences.csv").set_index("name")
    assert not bool(equiv.loc["lmm_interaction_z_equals_gain_t", "exact"])
    meta = json.loads((tmp_path / "out" / "logs" / "equivalences_run_metadata.json").read_text(encoding="utf-8"))
    assert meta["n_exact_failed"] == 0


def _load_driver():
    path = Path(__file__).resolve().parents[1] / "scripts" / "02_equivalences.py"
    spec = importlib.util.spec_from_file_location("equivalences_driver", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_equivalences_exits_when_exact_identity_fails(tmp_path: Path, monkeypatch):
    driver = _load_driver()

    def suite_with_mismatch(wide, long, reml=True):
        items, fits = run_equivalence_suite(wide, long, reml=reml)
        return items + [compare_statistics("mismatch", "a", 1.0, "b", 2.0)], fits

    monkeypatch.setattr(driver, "run_equivalence_suite", suite_with_mismatch)
    monkeypatch.setattr(
        sys,
        "argv",
        ["02_equivalences.py", "--input-csv", str(tmp_path / "absent.csv"), "--outdir", str(tmp_path / "out"), "--no-figures"],
    )
    with pytest.raises(SystemExit, match=r"1 exact identities did not hold: \['mismatch'\]"):
        driver.main()

    meta = json.loads((tmp_path / "out" / "logs" / "equivalences_run_metadata.json").read_text(encoding="utf-8"))
    assert meta["failed"] == ["mismatch"]
