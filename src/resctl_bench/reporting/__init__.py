"""
Reporting for benchmark results.

Contains:
- artifacts: result and checkpoint files, scenario hash, environment
- reporter: Markdown reports and regression comparison
- plotting: per-round charts
"""

from .artifacts import (
    build_environment,
    calculate_scenario_hash,
    get_git_commit,
    read_checkpoint,
    read_result_json,
    write_checkpoint,
    write_result_json,
)
from .reporter import (
    DEFAULT_REGRESSION_THRESHOLDS,
    compare_results,
    format_comparison,
    generate_markdown_report,
    write_report,
)
