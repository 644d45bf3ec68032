"""
Aggregate statistics computed once per measurement window.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

# Slope value for series with fewer than 3 distinct timestamps
INSUFFICIENT_DATA = "insufficient-data"

PERCENTILES = (50, 90, 95, 99)

SCALAR_STATS = ("count", "mean", "stdev", "min", "max")
STAT_NAMES = SCALAR_STATS + tuple(f"p{p}" for p in PERCENTILES)

Slope = Union[float, str]


@dataclass(frozen=True)
class MetricStats:
    """Summary of one metric series inside a window."""

    count: int
    mean: float
    stdev: float
    min: float
    max: float
    percentiles: Dict[str, float]  # "p50", "p90", "p95", "p99"
    slope: Slope = INSUFFICIENT_DATA  # Units per second, or INSUFFICIENT_DATA

    @property
    def has_trend(self) -> bool:
        return self.slope != INSUFFICIENT_DATA

    def get(self, stat: str) -> float:
        """Look up a statistic by name ("mean", "p95", "stdev", ...)."""
        if stat in self.percentiles:
            return self.percentiles[stat]
        if stat in ("mean", "stdev", "min", "max"):
            return getattr(self, stat)
        if stat == "count":
            return float(self.count)
        raise KeyError(f"Unknown statistic '{stat}'")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "mean": self.mean,
            "stdev": self.stdev,
            "min": self.min,
            "max": self.max,
            "percentiles": dict(self.percentiles),
            "slope": self.slope,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricStats":
        slope = data.get("slope", INSUFFICIENT_DATA)
        return cls(
            count=int(data["count"]),
            mean=float(data["mean"]),
            stdev=float(data["stdev"]),
            min=float(data["min"]),
            max=float(data["max"]),
            percentiles={k: float(v) for k, v in data.get("percentiles", {}).items()},
            slope=slope if slope == INSUFFICIENT_DATA else float(slope),
        )


@dataclass(frozen=True)
class AggregateStats:
    """Per-window summary keyed by metric name."""

    metrics: Dict[str, MetricStats]
    sample_count: int
    duration: float
    flags: Tuple[str, ...] = field(default_factory=tuple)

    def metric(self, name: str) -> Optional[MetricStats]:
        return self.metrics.get(name)

    def value(self, metric: str, stat: str) -> Optional[float]:
        """Return a statistic of a metric, or None if the metric was not sampled."""
        stats = self.metrics.get(metric)
        if stats is None:
            return None
        return stats.get(stat)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metrics": {name: stats.to_dict() for name, stats in self.metrics.items()},
            "sample_count": self.sample_count,
            "duration": self.duration,
            "flags": list(self.flags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AggregateStats":
        return cls(
            metrics={
                name: MetricStats.from_dict(stats)
                for name, stats in data.get("metrics", {}).items()
            },
            sample_count=int(data.get("sample_count", 0)),
            duration=float(data.get("duration", 0.0)),
            flags=tuple(data.get("flags", [])),
        )
