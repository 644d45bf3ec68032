"""
Unit tests for the statistics aggregator.
"""

import math
from pathlib import Path
import sys

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from resctl_bench.core.aggregator import (
    RoundHistory,
    calculate_percentiles,
    ols_slope,
    reduce,
)
from resctl_bench.models.sample import AGENT, WORKLOAD, MeasurementWindow, MetricSample
from resctl_bench.models.stats import INSUFFICIENT_DATA


def make_window(values, start=100.0, step=1.0, name="latency", source=WORKLOAD):
    samples = tuple(
        MetricSample(start + i * step, source, name, v) for i, v in enumerate(values)
    )
    end = start + max(len(values) - 1, 0) * step
    return MeasurementWindow(samples=samples, started_at=start, ended_at=end)


def test_percentiles_interpolate_linearly():
    result = calculate_percentiles([4.0, 1.0, 3.0, 2.0])

    assert result["p50"] == pytest.approx(2.5)
    assert result["p90"] == pytest.approx(3.7)
    assert result["p99"] == pytest.approx(3.97)


def test_percentiles_empty():
    assert calculate_percentiles([]) == {"p50": 0.0, "p90": 0.0, "p95": 0.0, "p99": 0.0}


def test_slope_of_linear_series():
    assert ols_slope([1000.0, 1001.0, 1002.0, 1003.0], [1.0, 3.0, 5.0, 7.0]) == pytest.approx(2.0)


def test_slope_needs_three_distinct_timestamps():
    assert ols_slope([1.0, 2.0], [1.0, 5.0]) == INSUFFICIENT_DATA
    assert ols_slope([1.0, 1.0, 2.0, 2.0], [1.0, 2.0, 3.0, 4.0]) == INSUFFICIENT_DATA
    assert ols_slope([1.0, 1.0, 2.0, 3.0], [1.0, 2.0, 3.0, 4.0]) != INSUFFICIENT_DATA


def test_reduce_is_deterministic():
    window = make_window([0.011, 0.013, 0.009, 0.012, 0.010, 0.014])

    first = reduce(window)
    second = reduce(window)

    assert first == second
    assert first.to_dict() == second.to_dict()


def test_reduce_summary_values():
    stats = reduce(make_window([1.0, 2.0, 3.0, 4.0, 5.0]))
    latency = stats.metric("latency")

    assert latency.count == 5
    assert latency.mean == pytest.approx(3.0)
    assert latency.min == 1.0
    assert latency.max == 5.0
    assert latency.stdev == pytest.approx(math.sqrt(2.5))
    assert latency.slope == pytest.approx(1.0)
    assert stats.value("latency", "p50") == pytest.approx(3.0)
    assert stats.value("rps", "p50") is None
    assert stats.sample_count == 5
    assert stats.duration == pytest.approx(4.0)


def test_reduce_short_window_has_no_trend():
    stats = reduce(make_window([1.0, 2.0]))

    assert stats.metric("latency").slope == INSUFFICIENT_DATA
    assert not stats.metric("latency").has_trend


def test_reduce_vector_samples_per_component():
    samples = tuple(
        MetricSample(10.0 + i, AGENT, "pressure", (0.1 * i, 0.2)) for i in range(4)
    )
    window = MeasurementWindow(samples=samples, started_at=10.0, ended_at=13.0)

    stats = reduce(window)

    assert set(stats.metrics) == {"pressure[0]", "pressure[1]"}
    assert stats.value("pressure[1]", "mean") == pytest.approx(0.2)
    assert stats.metric("pressure[0]").slope == pytest.approx(0.1)


def test_reduce_flags_non_finite_values():
    stats = reduce(make_window([1.0, float("nan"), 3.0, float("inf"), 5.0]))

    assert "non_finite:latency" in stats.flags
    assert stats.metric("latency").count == 3


def test_reduce_keeps_window_flags():
    window = MeasurementWindow(
        samples=make_window([1.0, 2.0, 3.0]).samples,
        started_at=100.0,
        ended_at=102.0,
        flags=("clock_skew:workload",),
    )

    assert reduce(window).flags == ("clock_skew:workload",)


def test_window_rejects_out_of_order_samples():
    samples = (
        MetricSample(2.0, WORKLOAD, "latency", 1.0),
        MetricSample(1.0, WORKLOAD, "latency", 1.0),
    )
    with pytest.raises(ValueError):
        MeasurementWindow(samples=samples, started_at=0.0, ended_at=3.0)


def test_window_rejects_short_duration():
    with pytest.raises(ValueError):
        MeasurementWindow(samples=(), started_at=0.0, ended_at=3.0, min_duration=4.0)


class TestRoundHistory:
    """Tests for the trailing round buffer."""

    def test_keeps_only_capacity(self):
        history = RoundHistory(2)
        rounds = [reduce(make_window([float(i)] * 4)) for i in range(1, 5)]
        for stats in rounds:
            history.append(stats)

        assert len(history) == 2
        assert history.total == 4
        assert list(history) == rounds[-2:]
        assert history.latest(1) == rounds[-1:]

    def test_clear_resets_total(self):
        history = RoundHistory(3)
        history.append(reduce(make_window([1.0] * 4)))
        history.clear()

        assert len(history) == 0
        assert history.total == 0

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            RoundHistory(0)
