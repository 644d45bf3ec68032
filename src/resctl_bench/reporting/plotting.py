"""
Plotting module for benchmark result visualizations.

Draws the key statistic of every round, coloured by its convergence
verdict, with the parameter value on a second axis.
"""

from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt

from resctl_bench.models.result import BenchmarkResult
from resctl_bench.models.verdict import ConvergenceVerdict

# Configure matplotlib for non-interactive backend
plt.switch_backend("Agg")

VERDICT_COLORS = {
    ConvergenceVerdict.TRANSIENT: "#95a5a6",
    ConvergenceVerdict.CONVERGED: "#2ecc71",
    ConvergenceVerdict.DIVERGED: "#e74c3c",
    ConvergenceVerdict.INCONCLUSIVE: "#f39c12",
}


def setup_plot_style():
    """Set up consistent plot styling."""
    plt.style.use("default")
    plt.rcParams.update(
        {
            "font.size": 10,
            "axes.titlesize": 12,
            "axes.labelsize": 10,
            "legend.fontsize": 9,
            "figure.dpi": 100,
            "savefig.dpi": 150,
            "savefig.bbox": "tight",
        }
    )


def plot_rounds(result: BenchmarkResult, output_path: Path) -> Optional[Path]:
    """
    Plot key statistic and parameter per round.

    Args:
        result: Result to plot
        output_path: Path to save the PNG

    Returns:
        Path to the plot, or None if no round has a key value
    """
    measured = [r for r in result.rounds if r.key_value is not None]
    if not measured:
        return None

    setup_plot_style()
    tolerances = result.parameters.get("convergence", {}) or {}
    key = f"{tolerances.get('key_metric', 'latency')}.{tolerances.get('key_stat', 'p50')}"
    knob = result.parameters.get("knob", "parameter")

    fig, ax = plt.subplots(figsize=(10, 5))
    for verdict, color in VERDICT_COLORS.items():
        points = [r for r in measured if r.verdict == verdict]
        if points:
            ax.scatter(
                [r.index for r in points],
                [r.key_value for r in points],
                color=color,
                label=verdict.value,
                zorder=3,
            )
    ax.set_xlabel("Round")
    ax.set_ylabel(key)
    ax.grid(True, alpha=0.3)

    target = (result.parameters.get("search", {}) or {}).get("target")
    if target is not None:
        ax.axhline(target, color="#34495e", linestyle="--", linewidth=1, label="target")

    ax2 = ax.twinx()
    ax2.step(
        [r.index for r in result.rounds],
        [r.parameter for r in result.rounds],
        where="mid",
        color="#3498db",
        alpha=0.5,
    )
    ax2.set_ylabel(knob)

    ax.legend(loc="upper left")
    ax.set_title(f"{result.scenario}: {result.final_verdict.value}")

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path)
    plt.close(fig)
    return output_path
