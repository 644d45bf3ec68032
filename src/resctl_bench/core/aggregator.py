"""
Aggregator module for reducing measurement windows into summary statistics.

reduce() is a pure function of the window: the same window always yields
bit-identical AggregateStats, regardless of when it is computed.

Quantiles use linear interpolation between the two closest ranks
(numpy's "linear" method, Hyndman & Fan type 7) everywhere in the system
so that reports stay comparable.
"""

import math
from collections import deque
from typing import Dict, Iterator, List, Sequence, Tuple

import numpy as np

from resctl_bench.models.sample import MeasurementWindow, MetricSample
from resctl_bench.models.stats import (
    INSUFFICIENT_DATA,
    PERCENTILES,
    AggregateStats,
    MetricStats,
    Slope,
)

QUANTILE_METHOD = "linear"

# Trend lines need at least this many distinct timestamps
MIN_TREND_POINTS = 3


def calculate_percentiles(values: Sequence[float], percentiles: Sequence[int] = PERCENTILES) -> Dict[str, float]:
    """
    Calculate percentiles for a list of values.

    Args:
        values: List of numeric values
        percentiles: List of percentiles to calculate (e.g., [50, 90, 95, 99])

    Returns:
        Dictionary mapping "p<N>" to value
    """
    if len(values) == 0:
        return {f"p{p}": 0.0 for p in percentiles}

    sorted_values = np.sort(np.asarray(values, dtype=float))
    result = {}
    for p in percentiles:
        result[f"p{p}"] = float(np.percentile(sorted_values, p, method=QUANTILE_METHOD))
    return result


def ols_slope(timestamps: Sequence[float], values: Sequence[float]) -> Slope:
    """
    Ordinary least squares slope of values over time.

    Timestamps are shifted to start at zero before fitting to keep the
    computation well conditioned for epoch-based times.

    Args:
        timestamps: Sample timestamps in seconds
        values: Sample values

    Returns:
        Slope in value units per second, or INSUFFICIENT_DATA if fewer than
        three distinct timestamps are available
    """
    if len(set(timestamps)) < MIN_TREND_POINTS:
        return INSUFFICIENT_DATA

    x = np.asarray(timestamps, dtype=float)
    y = np.asarray(values, dtype=float)
    x = x - x[0]
    x_mean = x.mean()
    y_mean = y.mean()
    dx = x - x_mean
    denominator = float(np.dot(dx, dx))
    if denominator == 0.0:
        return INSUFFICIENT_DATA
    return float(np.dot(dx, y - y_mean)) / denominator


def summarize_series(points: List[Tuple[float, float]]) -> MetricStats:
    """
    Summarize one (timestamp, value) series.

    Args:
        points: Time-ordered (timestamp, value) pairs, at least one

    Returns:
        MetricStats for the series
    """
    timestamps = [t for t, _ in points]
    values = np.asarray([v for _, v in points], dtype=float)

    return MetricStats(
        count=len(values),
        mean=float(values.mean()),
        stdev=float(values.std(ddof=1)) if len(values) > 1 else 0.0,
        min=float(values.min()),
        max=float(values.max()),
        percentiles=calculate_percentiles(values),
        slope=ols_slope(timestamps, values),
    )


def _series(samples: Sequence[MetricSample]) -> Dict[str, List[Tuple[float, float]]]:
    """Group samples into named scalar series; vector samples become name[i]."""
    series: Dict[str, List[Tuple[float, float]]] = {}
    for sample in samples:
        if sample.is_vector:
            for i, component in enumerate(sample.value):
                series.setdefault(f"{sample.name}[{i}]", []).append((sample.timestamp, float(component)))
        else:
            series.setdefault(sample.name, []).append((sample.timestamp, float(sample.value)))
    return series


def reduce(window: MeasurementWindow) -> AggregateStats:
    """
    Reduce a measurement window into aggregate statistics.

    Non-finite values (NaN/inf reported by a collaborator) are left out of
    their series and flagged on the result.

    Args:
        window: Window produced by the sample collector

    Returns:
        AggregateStats with one MetricStats per metric name
    """
    flags = list(window.flags)
    metrics: Dict[str, MetricStats] = {}

    for name, points in _series(window.samples).items():
        finite = [(t, v) for t, v in points if math.isfinite(v)]
        if len(finite) != len(points):
            flags.append(f"non_finite:{name}")
        if finite:
            metrics[name] = summarize_series(finite)

    return AggregateStats(
        metrics=metrics,
        sample_count=len(window.samples),
        duration=window.duration,
        flags=tuple(flags),
    )


class RoundHistory:
    """
    Fixed-capacity trailing buffer of per-round statistics.

    Only the rounds the convergence detector compares are retained; older
    rounds fall off the front.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("RoundHistory capacity must be at least 1")
        self.capacity = capacity
        self._rounds: deque = deque(maxlen=capacity)
        self.total = 0  # Rounds appended since the last clear()

    def append(self, stats: AggregateStats) -> None:
        self._rounds.append(stats)
        self.total += 1

    def clear(self) -> None:
        self._rounds.clear()
        self.total = 0

    def latest(self, n: int) -> List[AggregateStats]:
        """Return up to the n most recent rounds, oldest first."""
        if n <= 0:
            return []
        return list(self._rounds)[-n:]

    def __len__(self) -> int:
        return len(self._rounds)

    def __iter__(self) -> Iterator[AggregateStats]:
        return iter(self._rounds)
