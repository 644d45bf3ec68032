"""
Sample collector for gathering measurement windows.

Polls the workload generator and the resource-control agent at a fixed
cadence, in parallel, and turns their readings into a single ordered
MeasurementWindow. Transient unavailability is retried with exponential
backoff; samples whose timestamps go backwards are dropped and the window
is flagged instead of failing the round.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List

from resctl_bench.errors import CLOCK_SKEW, CollaboratorUnavailable, ConfigError
from resctl_bench.infra.collaborators import ResourceAgent, WorkloadGenerator
from resctl_bench.models.sample import AGENT, WORKLOAD, MeasurementWindow, MetricSample
from resctl_bench.models.scenario import CollectorConfig

LOGGER = logging.getLogger("resctl_bench.core.collector")

MIN_SAMPLES_PER_WINDOW = 4


def validate_cadence(duration: float, cadence: float) -> None:
    """
    Check that a window of `duration` seconds polled every `cadence`
    seconds yields at least MIN_SAMPLES_PER_WINDOW polls.

    Raises:
        ConfigError: If duration or cadence is invalid
    """
    if duration <= 0 or cadence <= 0:
        raise ConfigError(f"duration and cadence must be positive, got {duration}s / {cadence}s")
    if cadence > duration / MIN_SAMPLES_PER_WINDOW:
        raise ConfigError(
            f"cadence {cadence}s must be at most duration/{MIN_SAMPLES_PER_WINDOW} "
            f"({duration / MIN_SAMPLES_PER_WINDOW}s)"
        )


class SampleCollector:
    """
    Collects measurement windows from both collaborators.

    Every read runs on its own daemon thread so that both collaborators are
    read concurrently and a hung call only costs its own source the poll.
    A poll only counts once both have answered.
    """

    def __init__(
        self,
        workload: WorkloadGenerator,
        agent: ResourceAgent,
        timeout: float = 5.0,
        retries: int = 3,
        backoff: float = 0.5,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the collector.

        Args:
            workload: Workload generator to read metrics from
            agent: Resource-control agent to read control state from
            timeout: Per-call timeout in seconds
            retries: Retries per poll before giving up
            backoff: First retry delay in seconds, doubled on every retry
            clock: Time source (seconds)
            sleep: Sleep function matching the clock
        """
        self.workload = workload
        self.agent = agent
        self.timeout = timeout
        self.retries = retries
        self.backoff = backoff
        self.clock = clock
        self.sleep = sleep

    @classmethod
    def from_config(
        cls,
        workload: WorkloadGenerator,
        agent: ResourceAgent,
        config: CollectorConfig,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "SampleCollector":
        return cls(
            workload,
            agent,
            timeout=config.timeout,
            retries=config.retries,
            backoff=config.backoff,
            clock=clock,
            sleep=sleep,
        )

    def collect(self, duration: float, cadence: float) -> MeasurementWindow:
        """
        Gather one measurement window.

        Args:
            duration: Window length in seconds
            cadence: Poll interval in seconds (at most duration / 4)

        Returns:
            MeasurementWindow with samples of both collaborators

        Raises:
            ConfigError: If cadence is too coarse for the duration
            CollaboratorUnavailable: If a collaborator stays unreachable after all retries
        """
        validate_cadence(duration, cadence)

        started_at = self.clock()
        accepted: List[MetricSample] = []
        last_timestamp: Dict[str, float] = {}
        flags: List[str] = []
        polls = 0

        while True:
            readings = self._poll()
            polls += 1
            for source in (WORKLOAD, AGENT):
                for sample in readings.get(source, []):
                    if self._is_skewed(sample, last_timestamp):
                        flag = f"{CLOCK_SKEW}:{sample.source}"
                        if flag not in flags:
                            flags.append(flag)
                        LOGGER.warning(
                            "Dropping %s sample '%s' at %.3f: earlier than %.3f",
                            sample.source,
                            sample.name,
                            sample.timestamp,
                            last_timestamp[sample.source],
                        )
                        continue
                    last_timestamp[sample.source] = sample.timestamp
                    accepted.append(sample)

            now = self.clock()
            elapsed = now - started_at
            if elapsed >= duration:
                break
            self.sleep(min(cadence, duration - elapsed))

        # Stable sort keeps per-source order for equal timestamps
        accepted.sort(key=lambda s: s.timestamp)
        LOGGER.debug("Collected %d samples in %d polls over %.1fs", len(accepted), polls, elapsed)
        return MeasurementWindow(
            samples=tuple(accepted),
            started_at=started_at,
            ended_at=now,
            min_duration=duration,
            flags=tuple(flags),
        )

    def drain(self) -> None:
        """Read and discard everything both collaborators emitted so far."""
        self._poll()

    @staticmethod
    def _is_skewed(sample: MetricSample, last_timestamp: Dict[str, float]) -> bool:
        last = last_timestamp.get(sample.source)
        return last is not None and sample.timestamp < last

    def _poll(self) -> Dict[str, List[MetricSample]]:
        """
        Poll both collaborators, retrying only the ones that failed.

        Returns:
            Dictionary mapping source name to the samples it returned
        """
        pending: Dict[str, Callable[[], List[MetricSample]]] = {
            WORKLOAD: self.workload.read_metrics,
            AGENT: self.agent.read_state,
        }
        readings: Dict[str, List[MetricSample]] = {}

        for attempt in range(self.retries + 1):
            failures = self._poll_once(pending, readings)
            if not failures:
                return readings

            if attempt == self.retries:
                sources = ",".join(sorted(failures))
                cause = next(iter(failures.values()))
                raise CollaboratorUnavailable(sources, attempts=attempt + 1, cause=cause)

            delay = self.backoff * (2 ** attempt)
            LOGGER.warning(
                "%s unavailable (attempt %d/%d), retrying in %.2fs",
                ", ".join(sorted(failures)),
                attempt + 1,
                self.retries + 1,
                delay,
            )
            self.sleep(delay)
            pending = {source: pending[source] for source in failures}

        return readings

    def _poll_once(
        self,
        pending: Dict[str, Callable[[], List[MetricSample]]],
        readings: Dict[str, List[MetricSample]],
    ) -> Dict[str, Exception]:
        """Run one concurrent read of the pending sources; return failures by source."""
        outcomes: Dict[str, Any] = {}

        def read(source: str, fn: Callable[[], List[MetricSample]]) -> None:
            try:
                outcomes[source] = list(fn())
            except Exception as e:  # handed back to the polling thread
                outcomes[source] = e

        threads = []
        for source, fn in pending.items():
            thread = threading.Thread(
                target=read, args=(source, fn), name=f"collector-{source}", daemon=True
            )
            thread.start()
            threads.append(thread)

        # Deadline in real time; self.clock may be simulated
        deadline = time.monotonic() + self.timeout
        for thread in threads:
            thread.join(max(0.0, deadline - time.monotonic()))

        failures: Dict[str, Exception] = {}
        for source in pending:
            outcome = outcomes.get(source)
            if outcome is None:
                # The hung thread is abandoned; the next poll starts a fresh one
                failures[source] = TimeoutError(f"no answer within {self.timeout}s")
            elif isinstance(outcome, CollaboratorUnavailable):
                failures[source] = outcome
            elif isinstance(outcome, Exception):
                raise outcome
            else:
                readings[source] = outcome
        return failures

