"""
Result models for the benchmark engine.

A BenchmarkResult is the record handed to reporting and export. Its field
set is versioned through SCHEMA_VERSION; serialization formats build on
to_dict()/from_dict() and nothing else.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from resctl_bench.models.stats import AggregateStats
from resctl_bench.models.verdict import ConvergenceVerdict, RunStatus

SCHEMA_VERSION = 1


@dataclass(frozen=True)
class RoundRecord:
    """One measure-and-classify cycle at a fixed parameter value."""

    index: int  # Position in the run, starting at 0
    parameter: float
    attempt: int  # Round number at this parameter, starting at 1
    stats: Optional[AggregateStats]  # None when no window could be collected
    verdict: ConvergenceVerdict
    key_value: Optional[float] = None  # Key statistic used for convergence
    flags: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "parameter": self.parameter,
            "attempt": self.attempt,
            "stats": self.stats.to_dict() if self.stats else None,
            "verdict": self.verdict.value,
            "key_value": self.key_value,
            "flags": list(self.flags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoundRecord":
        return cls(
            index=int(data["index"]),
            parameter=float(data["parameter"]),
            attempt=int(data["attempt"]),
            stats=AggregateStats.from_dict(data["stats"]) if data.get("stats") else None,
            verdict=ConvergenceVerdict(data["verdict"]),
            key_value=data.get("key_value"),
            flags=tuple(data.get("flags", [])),
        )


@dataclass(frozen=True)
class BenchmarkResult:
    """Final, immutable record of a benchmark run."""

    scenario: str
    scenario_hash: str
    rounds: Tuple[RoundRecord, ...]
    final_verdict: ConvergenceVerdict
    status: RunStatus
    started_at: float
    ended_at: float
    best_parameter: Optional[float] = None
    parameters: Dict[str, Any] = field(default_factory=dict)  # Scenario as run
    environment: Dict[str, Any] = field(default_factory=dict)
    notes: Tuple[str, ...] = field(default_factory=tuple)
    schema_version: int = SCHEMA_VERSION

    @property
    def duration(self) -> float:
        return self.ended_at - self.started_at

    @property
    def round_count(self) -> int:
        return len(self.rounds)

    def parameters_probed(self) -> List[float]:
        """Distinct parameters in the order they were first measured."""
        probed: List[float] = []
        for record in self.rounds:
            if not probed or probed[-1] != record.parameter:
                probed.append(record.parameter)
        return probed

    def final_round(self) -> RoundRecord:
        return self.rounds[-1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "scenario": self.scenario,
            "scenario_hash": self.scenario_hash,
            "status": self.status.value,
            "final_verdict": self.final_verdict.value,
            "best_parameter": self.best_parameter,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "duration_s": self.duration,
            "parameters": self.parameters,
            "environment": self.environment,
            "notes": list(self.notes),
            "rounds": [r.to_dict() for r in self.rounds],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BenchmarkResult":
        version = data.get("schema_version", SCHEMA_VERSION)
        if version > SCHEMA_VERSION:
            raise ValueError(
                f"Result schema version {version} is newer than supported ({SCHEMA_VERSION})"
            )
        return cls(
            scenario=data["scenario"],
            scenario_hash=data.get("scenario_hash", ""),
            rounds=tuple(RoundRecord.from_dict(r) for r in data.get("rounds", [])),
            final_verdict=ConvergenceVerdict(data["final_verdict"]),
            status=RunStatus(data.get("status", RunStatus.COMPLETED.value)),
            started_at=float(data["started_at"]),
            ended_at=float(data["ended_at"]),
            best_parameter=data.get("best_parameter"),
            parameters=data.get("parameters", {}),
            environment=data.get("environment", {}),
            notes=tuple(data.get("notes", [])),
            schema_version=version,
        )
