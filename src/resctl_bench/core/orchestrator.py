"""
Scenario orchestrator.

Drives one benchmark run through

    Setup -> {Warmup -> Measure -> Classify} -> Teardown -> Finalize

Setup applies the base configuration and the first parameter to both
collaborators. Every parameter is warmed up, then measured round after
round until the convergence detector returns a terminal verdict, which is
handed to the search strategy to pick the next parameter. Teardown resets
both collaborators exactly once on every exit path.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from resctl_bench.core.aggregator import RoundHistory, reduce
from resctl_bench.core.collector import SampleCollector
from resctl_bench.core.convergence import classify, key_value
from resctl_bench.core.result_builder import build_result
from resctl_bench.core.search import SearchStrategy, create_search_strategy
from resctl_bench.errors import BenchError, CollaboratorUnavailable, ConfigError, SetupError
from resctl_bench.infra.collaborators import ConfigureResult, ResourceAgent, WorkloadGenerator
from resctl_bench.models.checkpoint import Checkpoint
from resctl_bench.models.result import BenchmarkResult, RoundRecord
from resctl_bench.models.scenario import ScenarioConfig
from resctl_bench.models.search_state import SearchState
from resctl_bench.models.stats import AggregateStats
from resctl_bench.models.verdict import ConvergenceVerdict, RunStatus

LOGGER = logging.getLogger("resctl_bench.core.orchestrator")

CheckpointCallback = Callable[[Checkpoint], None]


class ScenarioOrchestrator:
    """Runs one scenario against a workload generator and a resource agent."""

    def __init__(
        self,
        scenario: ScenarioConfig,
        workload: WorkloadGenerator,
        agent: ResourceAgent,
        collector: Optional[SampleCollector] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        cancel_event: Optional[threading.Event] = None,
        checkpoint: Optional[CheckpointCallback] = None,
        scenario_hash: str = "",
        environment: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            scenario: Validated scenario to run
            workload: Workload generator collaborator
            agent: Resource-control agent collaborator
            collector: Sample collector; built from scenario.collector if omitted
            clock: Time source shared with the collector
            sleep: Sleep function used for warmup
            cancel_event: Set from outside to stop the run after the current round
            checkpoint: Called with a Checkpoint after every search step
            scenario_hash: Identifier of the scenario configuration
            environment: Host/framework description stored in the result

        Raises:
            ConfigError: If the scenario is invalid
        """
        scenario.validate()
        self.scenario = scenario
        self.workload = workload
        self.agent = agent
        self.clock = clock
        self.sleep = sleep
        self.cancel_event = cancel_event or threading.Event()
        self.checkpoint = checkpoint
        self.scenario_hash = scenario_hash
        self.environment = environment or {}

        self.collector = collector or SampleCollector.from_config(
            workload, agent, scenario.collector, clock=clock, sleep=sleep
        )
        self.strategy: SearchStrategy = create_search_strategy(scenario.search)

        tolerances = scenario.convergence
        self._history_size = max(tolerances.stable_rounds, tolerances.divergence_rounds)

    def cancel(self) -> None:
        """Request cancellation; observed after the round in progress."""
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def workload_params(self, parameter: float) -> Dict[str, Any]:
        params = dict(self.scenario.workload)
        if self.scenario.knob_target == "workload":
            params[self.scenario.knob] = parameter
        return params

    def agent_params(self, parameter: float) -> Dict[str, Any]:
        params = dict(self.scenario.agent)
        if self.scenario.knob_target == "agent":
            params[self.scenario.knob] = parameter
        return params

    def run(self, resume: Optional[Checkpoint] = None) -> BenchmarkResult:
        """
        Run the scenario to completion or cancellation.

        Args:
            resume: Checkpoint of an interrupted run of the same scenario

        Returns:
            BenchmarkResult with every round measured

        Raises:
            ConfigError: If the checkpoint belongs to a different scenario
            SetupError: If a collaborator rejects the initial configuration
        """
        rounds: List[RoundRecord] = []
        notes: List[str] = []
        if resume is not None:
            self._check_resume(resume)
            started_at = resume.started_at
            rounds.extend(resume.rounds)
            state = resume.search_state
            notes.append(f"resumed after {len(resume.rounds)} round(s)")
            LOGGER.info("Resuming '%s' at parameter %s", self.scenario.name, state.current)
        else:
            started_at = self.clock()
            state = self.strategy.initial_state()

        status = RunStatus.COMPLETED
        LOGGER.info(
            "Starting scenario '%s': %s search over '%s'",
            self.scenario.name, self.scenario.search.strategy, self.scenario.knob,
        )

        try:
            parameter = state.current
            if parameter is not None:
                self._setup(parameter)

            first = True
            while parameter is not None:
                verdict, value, interrupted = self._run_parameter(parameter, rounds, apply=not first)
                first = False
                if interrupted:
                    status = RunStatus.CANCELLED
                    break

                state, parameter = self.strategy.step(state, verdict, value)
                LOGGER.info(
                    "Parameter done: %s, next %s (best so far %s)",
                    verdict.value, parameter, state.best,
                )
                self._save_checkpoint(started_at, rounds, state)

                if parameter is not None and self.cancelled:
                    status = RunStatus.CANCELLED
                    break
        finally:
            notes.extend(self._teardown())

        if status == RunStatus.CANCELLED:
            LOGGER.warning("Scenario '%s' cancelled after %d round(s)", self.scenario.name, len(rounds))

        return build_result(
            self.scenario,
            self.scenario_hash,
            rounds,
            state,
            status,
            started_at,
            self.clock(),
            environment=self.environment,
            notes=notes,
        )

    def _check_resume(self, resume: Checkpoint) -> None:
        if resume.scenario != self.scenario.name:
            raise ConfigError(
                f"Checkpoint is for scenario '{resume.scenario}', not '{self.scenario.name}'"
            )
        if resume.scenario_hash and self.scenario_hash and resume.scenario_hash != self.scenario_hash:
            raise ConfigError(
                f"Scenario '{self.scenario.name}' changed since the checkpoint was written"
            )
        if resume.search_state.strategy != self.strategy.name:
            raise ConfigError(
                f"Checkpoint uses '{resume.search_state.strategy}' search, "
                f"scenario uses '{self.strategy.name}'"
            )

    def _setup(self, parameter: float) -> None:
        """Apply the base configuration and first parameter to both collaborators."""
        LOGGER.info("Setup: %s=%s", self.scenario.knob, parameter)
        steps = (
            (self.workload.name, lambda: self.workload.configure(self.workload_params(parameter))),
            (self.agent.name, lambda: self.agent.apply_limits(self.agent_params(parameter))),
        )
        for name, apply in steps:
            try:
                result = apply()
            except CollaboratorUnavailable as e:
                raise SetupError(name, str(e)) from e
            if not result.ok:
                raise SetupError(name, result.reason)

    def _apply(self, parameter: float) -> ConfigureResult:
        """Send a new parameter to the collaborator that owns the knob."""
        LOGGER.info("Applying %s=%s", self.scenario.knob, parameter)
        try:
            if self.scenario.knob_target == "agent":
                return self.agent.apply_limits(self.agent_params(parameter))
            return self.workload.configure(self.workload_params(parameter))
        except CollaboratorUnavailable as e:
            return ConfigureResult.rejected(str(e))

    def _warmup(self) -> None:
        if self.scenario.warmup > 0:
            LOGGER.debug("Warming up for %.1fs", self.scenario.warmup)
            self.sleep(self.scenario.warmup)
        self.collector.drain()

    def _run_parameter(
        self,
        parameter: float,
        rounds: List[RoundRecord],
        apply: bool = True,
    ) -> Tuple[ConvergenceVerdict, Optional[float], bool]:
        """
        Measure rounds at one parameter until a terminal verdict.

        Returns:
            Tuple of (verdict, key value of the last round, cancelled)
        """
        tolerances = self.scenario.convergence
        settings = self.scenario.collector

        if apply:
            result = self._apply(parameter)
            if not result.ok:
                LOGGER.warning("Parameter %s rejected: %s", parameter, result.reason)
                self._record(rounds, parameter, 1, None, ConvergenceVerdict.INCONCLUSIVE,
                             flags=(f"rejected:{result.reason}",))
                return ConvergenceVerdict.INCONCLUSIVE, None, False

        history = RoundHistory(self._history_size)
        attempt = 0
        while True:
            attempt += 1
            try:
                if attempt == 1:
                    self._warmup()
                window = self.collector.collect(settings.duration, settings.cadence)
            except CollaboratorUnavailable as e:
                LOGGER.warning("Round %d at %s inconclusive: %s", attempt, parameter, e)
                self._record(rounds, parameter, attempt, None, ConvergenceVerdict.INCONCLUSIVE,
                             flags=(f"unavailable:{e.source}",))
                return ConvergenceVerdict.INCONCLUSIVE, None, False

            stats = reduce(window)
            history.append(stats)
            verdict = classify(list(history), tolerances, round_count=history.total)
            value = key_value(stats, tolerances)
            self._record(rounds, parameter, attempt, stats, verdict, value, stats.flags)
            LOGGER.info(
                "Round %d at %s=%s: %s (%s.%s=%s)",
                attempt, self.scenario.knob, parameter, verdict.value,
                tolerances.key_metric, tolerances.key_stat, value,
            )

            if verdict.is_terminal:
                return verdict, value, False
            if self.cancelled:
                return verdict, value, True

    @staticmethod
    def _record(
        rounds: List[RoundRecord],
        parameter: float,
        attempt: int,
        stats: Optional[AggregateStats],
        verdict: ConvergenceVerdict,
        value: Optional[float] = None,
        flags: Sequence[str] = (),
    ) -> None:
        rounds.append(RoundRecord(
            index=len(rounds),
            parameter=parameter,
            attempt=attempt,
            stats=stats,
            verdict=verdict,
            key_value=value,
            flags=tuple(flags),
        ))

    def _save_checkpoint(self, started_at: float, rounds: List[RoundRecord], state: SearchState) -> None:
        if self.checkpoint is None:
            return
        self.checkpoint(Checkpoint(
            scenario=self.scenario.name,
            scenario_hash=self.scenario_hash,
            started_at=started_at,
            rounds=tuple(rounds),
            search_state=state,
        ))

    def _teardown(self) -> List[str]:
        """Reset both collaborators once; failures are logged and returned as notes."""
        notes = []
        for collaborator in (self.workload, self.agent):
            try:
                collaborator.reset()
            except (BenchError, OSError) as e:
                LOGGER.error("Teardown of %s failed: %s", collaborator.name, e)
                notes.append(f"teardown {collaborator.name} failed: {e}")
        LOGGER.info("Teardown complete")
        return notes
