"""
Report generation for benchmark results.

Renders a BenchmarkResult as a Markdown report and compares two results
for regressions with PASS/FAIL verdicts.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from resctl_bench.models.result import BenchmarkResult
from resctl_bench.models.verdict import ConvergenceVerdict

# Default regression thresholds (configurable)
DEFAULT_REGRESSION_THRESHOLDS = {
    "parameter_pct": 5.0,   # Best parameter moving > 5% in the unfavorable direction
    "key_value_pct": 10.0,  # Key statistic worsening > 10% at the best parameter
}


def _search_settings(result: BenchmarkResult) -> Dict[str, Any]:
    return result.parameters.get("search", {}) or {}


def _tolerances(result: BenchmarkResult) -> Dict[str, Any]:
    return result.parameters.get("convergence", {}) or {}


def best_key_value(result: BenchmarkResult) -> Optional[float]:
    """Key statistic of the last converged round at the best parameter."""
    if result.best_parameter is None:
        return None
    for record in reversed(result.rounds):
        if record.parameter == result.best_parameter and record.verdict == ConvergenceVerdict.CONVERGED:
            return record.key_value
    return None


def _fmt(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    return f"{value:.6g}"


def generate_markdown_report(result: BenchmarkResult) -> str:
    """
    Generate a Markdown report for a benchmark result.

    Args:
        result: Result to render

    Returns:
        Markdown report as string
    """
    search = _search_settings(result)
    tolerances = _tolerances(result)
    knob = result.parameters.get("knob", "parameter")
    key = f"{tolerances.get('key_metric', 'latency')}.{tolerances.get('key_stat', 'p50')}"
    environment = result.environment
    host = environment.get("host", {})

    lines = [
        f"# Benchmark Report: {result.scenario}",
        "",
        f"**Generated:** {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M')} UTC  ",
        f"**Status:** {result.status.value}  ",
        f"**Final verdict:** {result.final_verdict.value}  ",
        f"**Best {knob}:** {_fmt(result.best_parameter)}",
        "",
        "---",
        "",
        "## Summary",
        "",
        "| Item | Value |",
        "|------|-------|",
        f"| Search strategy | {search.get('strategy', 'unknown')} |",
        f"| Parameters probed | {len(result.parameters_probed())} |",
        f"| Rounds | {result.round_count} |",
        f"| Duration | {result.duration:.1f} s |",
        f"| {key} at best | {_fmt(best_key_value(result))} |",
    ]
    if search.get("target") is not None:
        lines.append(f"| Target | {search.get('objective', 'below')} {_fmt(search['target'])} |")

    lines.extend([
        "",
        "## Rounds",
        "",
        f"| # | {knob} | Attempt | Verdict | {key} | Flags |",
        "|---|------|---------|---------|------|-------|",
    ])
    for record in result.rounds:
        flags = ", ".join(record.flags) if record.flags else ""
        lines.append(
            f"| {record.index} | {_fmt(record.parameter)} | {record.attempt} | "
            f"{record.verdict.value} | {_fmt(record.key_value)} | {flags} |"
        )

    lines.extend([
        "",
        "## Environment",
        "",
        f"- Target: {environment.get('target', 'unknown')}",
        f"- Framework version: {environment.get('framework_version', 'unknown')}",
        f"- Git commit: {environment.get('git_commit') or 'unknown'}",
    ])
    if host:
        lines.append(f"- Host: {host.get('hostname', '?')} ({host.get('kernel', '?')}, "
                     f"{host.get('cpu_count', '?')} CPUs)")

    if result.notes:
        lines.extend(["", "## Notes", ""])
        lines.extend(f"- {note}" for note in result.notes)

    lines.extend([
        "",
        "---",
        "",
        f"*Scenario hash: `{result.scenario_hash or 'n/a'}`, schema version {result.schema_version}*",
        "",
    ])
    return "\n".join(lines)


def write_report(result: BenchmarkResult, path: Path) -> Path:
    """Write the Markdown report for a result."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write(generate_markdown_report(result))
    return path


def _pct_change(baseline: float, current: float) -> float:
    delta = current - baseline
    return (delta / abs(baseline) * 100) if baseline != 0 else 0.0


def compare_results(
    baseline: BenchmarkResult,
    current: BenchmarkResult,
    thresholds: Optional[Dict[str, float]] = None,
) -> Dict[str, Any]:
    """
    Compare two results of the same scenario for regressions.

    A regression is any of:
    - the baseline found a good parameter and the current run did not
    - the best parameter moved against the favorable direction by more
      than parameter_pct
    - the key statistic at the best parameter worsened (per the search
      objective) by more than key_value_pct

    Args:
        baseline: Reference result
        current: Result to check
        thresholds: Optional overrides of DEFAULT_REGRESSION_THRESHOLDS

    Returns:
        Comparison results with PASS/FAIL verdict
    """
    config = DEFAULT_REGRESSION_THRESHOLDS.copy()
    if thresholds:
        config.update(thresholds)

    search = _search_settings(current)
    favorable = 1 if search.get("favorable", "high") == "high" else -1
    objective = 1 if search.get("objective", "below") == "above" else -1

    comparison: Dict[str, Any] = {
        "baseline": baseline.scenario,
        "current": current.scenario,
        "thresholds": config,
        "metrics": {},
        "regressions": [],
        "improvements": [],
        "verdict": "PASS",
    }

    if baseline.scenario_hash and current.scenario_hash and baseline.scenario_hash != current.scenario_hash:
        comparison["warning"] = "scenario configuration differs between results"

    if baseline.best_parameter is not None and current.best_parameter is None:
        comparison["regressions"].append({
            "metric": "best_parameter",
            "change": "no good parameter found",
            "threshold": "-",
        })

    checks = [
        ("best_parameter", "Best parameter", baseline.best_parameter, current.best_parameter,
         favorable, config["parameter_pct"]),
        ("key_value", "Key statistic at best", best_key_value(baseline), best_key_value(current),
         objective, config["key_value_pct"]),
    ]
    for name, label, val1, val2, direction, threshold in checks:
        if val1 is None or val2 is None:
            continue
        pct_change = _pct_change(val1, val2)
        # Positive means the change goes the preferred way
        signed = pct_change * direction
        is_regression = signed < -threshold
        is_improvement = signed > threshold

        comparison["metrics"][name] = {
            "label": label,
            "baseline": val1,
            "current": val2,
            "delta": val2 - val1,
            "percent_change": pct_change,
            "regression": is_regression,
            "improvement": is_improvement,
            "threshold": threshold,
        }
        if is_regression:
            comparison["regressions"].append({
                "metric": label,
                "change": f"{pct_change:+.1f}%",
                "threshold": f"{threshold}%",
            })
        elif is_improvement:
            comparison["improvements"].append({
                "metric": label,
                "change": f"{pct_change:+.1f}%",
            })

    if comparison["regressions"]:
        comparison["verdict"] = "FAIL"
    return comparison


def format_comparison(comparison: Dict[str, Any]) -> str:
    """Render a comparison as plain text for the terminal."""
    lines: List[str] = [
        f"Comparison: {comparison['baseline']} (baseline) vs {comparison['current']}",
        "",
    ]
    if "warning" in comparison:
        lines.append(f"Warning: {comparison['warning']}")
        lines.append("")
    for metric in comparison["metrics"].values():
        lines.append(
            f"  {metric['label']:<24} {_fmt(metric['baseline']):>12} -> "
            f"{_fmt(metric['current']):>12} ({metric['percent_change']:+.1f}%)"
        )
    for regression in comparison["regressions"]:
        lines.append(f"  ✗ {regression['metric']}: {regression['change']}")
    for improvement in comparison["improvements"]:
        lines.append(f"  ✓ {improvement['metric']}: {improvement['change']}")
    lines.append("")
    lines.append(f"Verdict: {comparison['verdict']}")
    return "\n".join(lines)
