"""
Core benchmark engine.

Contains:
- collector: SampleCollector polling both collaborators into windows
- aggregator: reduce() from windows to AggregateStats, RoundHistory
- convergence: classify() rounds as transient/converged/diverged/inconclusive
- search: bisection, sweep and adaptive parameter search strategies
- orchestrator: ScenarioOrchestrator driving a run
- result_builder: build_result() producing the BenchmarkResult
"""

from .collector import SampleCollector, validate_cadence
from .aggregator import QUANTILE_METHOD, RoundHistory, reduce
from .convergence import classify, key_value
from .search import (
    AdaptiveStepSearch,
    BisectionSearch,
    FixedSweepSearch,
    SearchStrategy,
    bisection_step_bound,
    create_search_strategy,
    is_good,
)
from .result_builder import build_result, final_verdict
from .orchestrator import ScenarioOrchestrator
