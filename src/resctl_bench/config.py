"""
Shared defaults for the resctl-bench command line.

Every value can be overridden through an environment variable so that CI
jobs and campaign scripts do not need extra flags.
"""

import os
from pathlib import Path

# =============================================================================
# Configuration (can be overridden via environment variables)
# =============================================================================

RESULTS_DIR = Path(os.environ.get("RESCTL_BENCH_RESULTS_DIR", "results"))
TARGET = os.environ.get("RESCTL_BENCH_TARGET", "")
LOG_LEVEL = os.environ.get("RESCTL_BENCH_LOG_LEVEL", "INFO")

RESULT_FILENAME = "result.json"
CHECKPOINT_FILENAME = "checkpoint.json"
REPORT_FILENAME = "report.md"
PLOT_FILENAME = "rounds.png"


def get_run_dir(scenario_name: str, results_dir: Path = RESULTS_DIR) -> Path:
    """Directory holding the artifacts of one scenario."""
    return Path(results_dir) / scenario_name
