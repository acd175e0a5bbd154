from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DATA_DIR = PROJECT_ROOT / "data"
PROCESSED_DIR = DATA_DIR / "processed"

OUTPUTS_DIR = PROJECT_ROOT / "outputs"
TABLES_DIR = OUTPUTS_DIR / "tables"
FIGURES_DIR = OUTPUTS_DIR / "figures"
LOGS_DIR = OUTPUTS_DIR / "logs"

WIDE_FILE = PROCESSED_DIR / "prepost_wide.csv"
LONG_FILE = PROCESSED_DIR / "prepost_long.parquet"

# Dataset and experiment identifiers (used in outputs/ metadata)
DATASET_VERSION = "prepost_two_group_v1"
EXPERIMENT_NAMESPACE = "lm_equivalences_v1"

# Wide-format source columns (one row per subject)
ID_COL = "id"
GROUP_COL = "group"
PRE_COL = "pre"
POST_COL = "post"
REQUIRED_WIDE_COLS = [ID_COL, GROUP_COL, PRE_COL, POST_COL]

CONTROL_LABEL = "control"
TREATMENT_LABEL = "treatment"

# Derived analysis columns
CHANGE_COL = "change"
SUBJECT_MEAN_COL = "subject_mean"
TREATED_COL = "treated"

# Long-format columns (one row per subject x occasion)
TIME_COL = "time"
OCCASION_COL = "is_post"
SCORE_COL = "score"
TIME_LEVELS = [PRE_COL, POST_COL]

MIN_GROUP_N = 2

# Significance level for the `significant` flag in result tables
ALPHA = 0.05

# Comparison tolerances. Closed-form identities must match to float precision;
# mixed models are fit iteratively and get a looser bound.
EQUIVALENCE_RTOL = 1e-6
EQUIVALENCE_ATOL = 1e-9
MIXED_RTOL = 1e-3
# Subject variances below this fraction of the residual variance are treated as
# a fit on the zero boundary.
BOUNDARY_VAR_RATIO = 1e-4

# MixedLM optimizers tried in order until one converges.
MIXED_OPTIMIZERS = [
    ("lbfgs", {"maxiter": 2000}),
    ("bfgs", {"maxiter": 2000}),
    ("powell", {"maxiter": 4000}),
    ("nm", {"maxiter": 6000}),
]
USE_REML = True

FIGURE_DPI = 300
