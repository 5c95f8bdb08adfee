# utils/constants.py

import math

# --- Result Directories ---
CONFIG_DIR = "01_RunConfiguration"          # Run config, metadata, hash
TUNING_REPORT_DIR = "02_TuningReport"       # History table, best configuration

# --- Iteration Budget ---
# Used when neither the controller nor the strategy fixes the number of models.
DEFAULT_N_ITERATIONS = 10
# Budget for strategies whose supply is finite but not known in advance.
UNBOUNDED = math.inf

# --- Verbosity Thresholds ---
VERBOSITY_SILENT = -1     # Suppresses even the supply-exhaustion notice
VERBOSITY_PROGRESS = 1    # Progress bars and high-level notices
VERBOSITY_RESULTS = 2     # Per-event results
VERBOSITY_PARAMS = 3      # Per-event hyperparameters

# --- Concurrency Policies ---
POLICY_SEQUENTIAL = "sequential"
POLICY_PROCESSES = "processes"
POLICY_THREADS = "threads"
POLICIES = (POLICY_SEQUENTIAL, POLICY_PROCESSES, POLICY_THREADS)

# --- Progress Bar ---
PROGRESS_BAR_FORMAT = "{desc}{percentage:3.0f}%|{bar:25}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]"

# --- Resampling ---
DEFAULT_HOLDOUT_FRACTION = 0.7
DEFAULT_CV_FOLDS = 6
