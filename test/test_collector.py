"""
Unit tests for the sample collector.
"""

from pathlib import Path
import sys

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fakes import FakeAgent, FakeClock, FakeWorkload, HangingWorkload, ScriptedWorkload
from resctl_bench.core.collector import SampleCollector, validate_cadence
from resctl_bench.errors import CollaboratorUnavailable, ConfigError
from resctl_bench.models.sample import AGENT, WORKLOAD


@pytest.fixture
def clock():
    return FakeClock()


def make_collector(clock, workload=None, agent=None, **kwargs):
    workload = workload or FakeWorkload(clock)
    agent = agent or FakeAgent(clock)
    return SampleCollector(workload, agent, clock=clock.time, sleep=clock.sleep, **kwargs)


class TestCadence:

    @pytest.mark.parametrize("duration,cadence", [(10, 0), (10, -1), (0, 1), (10, 3)])
    def test_invalid_cadence(self, duration, cadence):
        with pytest.raises(ConfigError):
            validate_cadence(duration, cadence)

    def test_quarter_of_duration_is_accepted(self):
        validate_cadence(8, 2)

    def test_collect_rejects_coarse_cadence(self, clock):
        collector = make_collector(clock)
        with pytest.raises(ConfigError):
            collector.collect(duration=4, cadence=2)


def test_collect_window(clock):
    collector = make_collector(clock)
    window = collector.collect(duration=4, cadence=1)

    assert window.duration >= 4
    assert window.duration == pytest.approx(4)
    assert len(window.series("latency")) == 5
    assert len(window.series("mem_pressure")) == 5
    assert {s.source for s in window.samples} == {WORKLOAD, AGENT}
    timestamps = [s.timestamp for s in window.samples]
    assert timestamps == sorted(timestamps)
    assert window.flags == ()


def test_clock_skew_drops_sample_and_flags(clock):
    workload = ScriptedWorkload([(10.0, 1.0), (11.0, 2.0), (10.5, 9.0), (13.0, 4.0), (14.0, 5.0)])

    collector = make_collector(clock, workload=workload)
    window = collector.collect(duration=4, cadence=1)

    latency = window.series("latency")
    assert [s.timestamp for s in latency] == [10.0, 11.0, 13.0, 14.0]
    assert "clock_skew:workload" in window.flags


def test_retry_recovers_within_budget(clock):
    workload = FakeWorkload(clock, failures=2)
    agent = FakeAgent(clock)

    collector = make_collector(clock, workload, agent, retries=3, backoff=0.5)
    collector.drain()

    assert workload.read_calls == 3
    # Only the failing source is retried
    assert agent.read_calls == 1
    assert clock.sleeps == [0.5, 1.0]


def test_retry_exhaustion_raises_unavailable(clock):
    workload = FakeWorkload(clock, failures=100)
    agent = FakeAgent(clock)

    collector = make_collector(clock, workload, agent, retries=3, backoff=0.5)
    with pytest.raises(CollaboratorUnavailable) as excinfo:
        collector.collect(duration=4, cadence=1)

    assert workload.read_calls == 4
    assert excinfo.value.attempts == 4
    assert excinfo.value.source == WORKLOAD
    assert clock.sleeps == [0.5, 1.0, 2.0]


def test_from_config(clock):
    from resctl_bench.models.scenario import CollectorConfig

    config = CollectorConfig(timeout=2.0, retries=1, backoff=0.1)
    collector = SampleCollector.from_config(FakeWorkload(clock), FakeAgent(clock), config)

    assert collector.timeout == 2.0
    assert collector.retries == 1
    assert collector.backoff == 0.1


class TestTimeout:

    def test_hung_read_is_unavailable(self, clock):
        workload = HangingWorkload(clock, hangs=1)
        collector = make_collector(clock, workload, timeout=0.1, retries=0)
        try:
            with pytest.raises(CollaboratorUnavailable) as excinfo:
                collector.drain()
        finally:
            workload.release()

        assert excinfo.value.source == WORKLOAD
        assert isinstance(excinfo.value.cause, TimeoutError)

    def test_hung_reads_do_not_starve_later_polls(self, clock):
        workload = HangingWorkload(clock, hangs=2)
        agent = FakeAgent(clock)
        collector = make_collector(clock, workload, agent, timeout=0.1, retries=0)
        try:
            for _ in range(2):
                with pytest.raises(CollaboratorUnavailable) as excinfo:
                    collector.drain()
                # The responsive agent is never blamed
                assert excinfo.value.source == WORKLOAD

            window = collector.collect(duration=4, cadence=1)
        finally:
            workload.release()

        assert len(window.series("latency")) == 5
        assert len(window.series("mem_pressure")) == 5
        assert agent.read_calls == 2 + 5

    def test_hung_read_is_retried(self, clock):
        workload = HangingWorkload(clock, hangs=1)
        agent = FakeAgent(clock)
        collector = make_collector(clock, workload, agent, timeout=0.1, retries=1, backoff=0.5)
        try:
            collector.drain()
        finally:
            workload.release()

        assert clock.sleeps == [0.5]
        assert workload.read_calls == 1
        assert agent.read_calls == 1
