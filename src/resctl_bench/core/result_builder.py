"""
Result record builder.

Turns the round history of a finished (or cancelled) run into the
immutable BenchmarkResult handed to reporting.
"""

from typing import Any, Dict, Optional, Sequence

from resctl_bench.errors import EmptyRunError
from resctl_bench.models.result import BenchmarkResult, RoundRecord
from resctl_bench.models.scenario import ScenarioConfig
from resctl_bench.models.search_state import SearchState
from resctl_bench.models.verdict import ConvergenceVerdict, RunStatus


def final_verdict(rounds: Sequence[RoundRecord], search_state: Optional[SearchState]) -> ConvergenceVerdict:
    """
    Overall verdict of a run.

    Converged if the search found a good parameter, otherwise Diverged if
    any parameter diverged, otherwise Inconclusive.
    """
    if search_state is not None and search_state.best is not None:
        return ConvergenceVerdict.CONVERGED
    if any(r.verdict == ConvergenceVerdict.DIVERGED for r in rounds):
        return ConvergenceVerdict.DIVERGED
    return ConvergenceVerdict.INCONCLUSIVE


def build_result(
    scenario: ScenarioConfig,
    scenario_hash: str,
    rounds: Sequence[RoundRecord],
    search_state: Optional[SearchState],
    status: RunStatus,
    started_at: float,
    ended_at: float,
    environment: Optional[Dict[str, Any]] = None,
    notes: Sequence[str] = (),
) -> BenchmarkResult:
    """
    Build the final result record.

    Args:
        scenario: Scenario that was run
        scenario_hash: Hash identifying the scenario configuration
        rounds: Every round of the run, in order
        search_state: Search state after the last search step
        status: Whether the run completed or was cancelled
        started_at: Run start time
        ended_at: Run end time
        environment: Host and framework description
        notes: Free-form remarks (teardown problems, resume markers)

    Returns:
        BenchmarkResult

    Raises:
        EmptyRunError: If no round was recorded
    """
    if not rounds:
        raise EmptyRunError(f"Scenario '{scenario.name}' finished without recording a round")

    return BenchmarkResult(
        scenario=scenario.name,
        scenario_hash=scenario_hash,
        rounds=tuple(rounds),
        final_verdict=final_verdict(rounds, search_state),
        status=status,
        started_at=started_at,
        ended_at=ended_at,
        best_parameter=search_state.best if search_state is not None else None,
        parameters=scenario.to_dict(),
        environment=dict(environment or {}),
        notes=tuple(notes),
    )
