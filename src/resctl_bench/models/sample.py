"""
Sample and window models.

A MetricSample is one timestamped reading from a collaborator. A
MeasurementWindow is the ordered set of samples gathered for one round.
Both are immutable once built.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union

SampleValue = Union[float, Tuple[float, ...]]

WORKLOAD = "workload"
AGENT = "agent"


@dataclass(frozen=True)
class MetricSample:
    """A single reading emitted by the workload generator or the agent."""

    timestamp: float  # Seconds since the epoch, as reported by the source
    source: str  # "workload" or "agent"
    name: str  # Metric name, e.g. "latency", "rps", "mem_pressure"
    value: SampleValue

    @property
    def is_vector(self) -> bool:
        return isinstance(self.value, tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "source": self.source,
            "name": self.name,
            "value": list(self.value) if self.is_vector else self.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricSample":
        value = data["value"]
        if isinstance(value, list):
            value = tuple(float(v) for v in value)
        else:
            value = float(value)
        return cls(
            timestamp=float(data["timestamp"]),
            source=data["source"],
            name=data["name"],
            value=value,
        )


@dataclass(frozen=True)
class MeasurementWindow:
    """
    Ordered samples covering one measurement interval.

    Invariants checked on construction:
    - sample timestamps are non-decreasing
    - ended_at - started_at >= min_duration
    """

    samples: Tuple[MetricSample, ...]
    started_at: float
    ended_at: float
    min_duration: float = 0.0
    flags: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        for prev, cur in zip(self.samples, self.samples[1:]):
            if cur.timestamp < prev.timestamp:
                raise ValueError(
                    f"Window samples out of order: {cur.timestamp} < {prev.timestamp}"
                )
        if self.duration < self.min_duration:
            raise ValueError(
                f"Window duration {self.duration:.3f}s shorter than minimum {self.min_duration:.3f}s"
            )

    @property
    def duration(self) -> float:
        return self.ended_at - self.started_at

    def series(self, name: str) -> List[MetricSample]:
        return [s for s in self.samples if s.name == name]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "samples": [s.to_dict() for s in self.samples],
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "min_duration": self.min_duration,
            "flags": list(self.flags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MeasurementWindow":
        return cls(
            samples=tuple(MetricSample.from_dict(s) for s in data.get("samples", [])),
            started_at=float(data["started_at"]),
            ended_at=float(data["ended_at"]),
            min_duration=float(data.get("min_duration", 0.0)),
            flags=tuple(data.get("flags", [])),
        )
