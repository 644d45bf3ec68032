"""
Data models for the benchmark engine.

Contains:
- sample: MetricSample and MeasurementWindow
- stats: MetricStats and AggregateStats
- verdict: ConvergenceVerdict and RunStatus
- search_state: SearchState
- result: RoundRecord and BenchmarkResult
- scenario: ScenarioConfig and its sections
- checkpoint: Checkpoint for resuming interrupted runs
"""

from .sample import MetricSample, MeasurementWindow, WORKLOAD, AGENT
from .stats import AggregateStats, MetricStats, INSUFFICIENT_DATA
from .verdict import ConvergenceVerdict, RunStatus
from .search_state import SearchState
from .result import BenchmarkResult, RoundRecord, SCHEMA_VERSION
from .checkpoint import Checkpoint
from .scenario import (
    CollectorConfig,
    ConnectionConfig,
    ScenarioConfig,
    SearchConfig,
    Tolerances,
    load_scenario,
)
