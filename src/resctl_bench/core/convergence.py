"""
Convergence detector.

Classifies the rounds measured at one parameter value as transient,
converged, diverged or inconclusive.

Evaluation order is fixed:
1. Diverged: the key metric's trend exceeds the divergence threshold in
   the same direction for `divergence_rounds` consecutive rounds.
2. Converged: the key statistic's relative spread over the last
   `stable_rounds` rounds is within `stability`.
3. Inconclusive: `max_rounds` rounds measured without 1. or 2.
4. Transient otherwise.

A history that is both noisy-but-stable and trending is therefore
reported as Diverged, which makes the orchestrator move on instead of
retrying.
"""

import math
from typing import Optional, Sequence

from resctl_bench.models.scenario import Tolerances
from resctl_bench.models.stats import AggregateStats
from resctl_bench.models.verdict import ConvergenceVerdict

# Means smaller than this are treated as zero when computing relative values
EPSILON = 1e-12


def relative_spread(values: Sequence[float]) -> float:
    """
    (max - min) / |mean| of a set of values.

    Returns 0.0 for identical values and inf when the mean is zero but the
    values differ.
    """
    if not values:
        return math.inf
    lo, hi = min(values), max(values)
    if hi == lo:
        return 0.0
    mean = sum(values) / len(values)
    if abs(mean) < EPSILON:
        return math.inf
    return (hi - lo) / abs(mean)


def relative_slope(stats: AggregateStats, metric: str) -> Optional[float]:
    """Trend of a metric as a fraction of its mean per second, None without a trend."""
    metric_stats = stats.metric(metric)
    if metric_stats is None or not metric_stats.has_trend:
        return None
    if abs(metric_stats.mean) < EPSILON:
        return math.inf if metric_stats.slope != 0 else 0.0
    return metric_stats.slope / abs(metric_stats.mean)


def is_diverging(history: Sequence[AggregateStats], tolerances: Tolerances) -> bool:
    """True if the last `divergence_rounds` rounds all trend past the threshold in one direction."""
    recent = list(history)[-tolerances.divergence_rounds:]
    if len(recent) < tolerances.divergence_rounds:
        return False

    signs = set()
    for stats in recent:
        slope = relative_slope(stats, tolerances.key_metric)
        if slope is None or abs(slope) <= tolerances.divergence_slope:
            return False
        signs.add(slope > 0)
    return len(signs) == 1


def is_stable(history: Sequence[AggregateStats], tolerances: Tolerances) -> bool:
    """True if the key statistic held within tolerance over the last `stable_rounds` rounds."""
    recent = list(history)[-tolerances.stable_rounds:]
    if len(recent) < tolerances.stable_rounds:
        return False

    values = []
    for stats in recent:
        value = stats.value(tolerances.key_metric, tolerances.key_stat)
        if value is None:
            return False
        values.append(value)
    return relative_spread(values) <= tolerances.stability


def classify(
    history: Sequence[AggregateStats],
    tolerances: Tolerances,
    round_count: Optional[int] = None,
) -> ConvergenceVerdict:
    """
    Classify the rounds measured at the current parameter.

    Args:
        history: Per-round statistics at this parameter, oldest first. May be
            a trailing window of the full history.
        tolerances: Convergence tolerances
        round_count: Rounds measured at this parameter so far; defaults to
            len(history) when the full history is passed

    Returns:
        ConvergenceVerdict for the latest round
    """
    if round_count is None:
        round_count = len(history)

    if is_diverging(history, tolerances):
        return ConvergenceVerdict.DIVERGED
    if is_stable(history, tolerances):
        return ConvergenceVerdict.CONVERGED
    if round_count >= tolerances.max_rounds:
        return ConvergenceVerdict.INCONCLUSIVE
    return ConvergenceVerdict.TRANSIENT


def key_value(stats: Optional[AggregateStats], tolerances: Tolerances) -> Optional[float]:
    """The statistic the detector compares across rounds."""
    if stats is None:
        return None
    return stats.value(tolerances.key_metric, tolerances.key_stat)
