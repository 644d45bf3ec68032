"""
Deterministic collaborators and clock shared by the engine tests.
"""

import threading
from pathlib import Path
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from resctl_bench.errors import CollaboratorUnavailable
from resctl_bench.infra.collaborators import ConfigureResult, ResourceAgent, WorkloadGenerator
from resctl_bench.models.sample import AGENT, WORKLOAD, MetricSample


class FakeClock:
    """Manual clock; sleep() advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []
        self._lock = threading.Lock()

    def time(self) -> float:
        with self._lock:
            return self.now

    def sleep(self, seconds: float) -> None:
        with self._lock:
            self.sleeps.append(seconds)
            self.now += seconds


class FakeWorkload(WorkloadGenerator):
    """
    Workload whose latency is a function of the configured parameters.

    Args:
        clock: Clock stamping the samples
        latency: Callable taking the current params dict
        knob: Parameter name read by the default latency function
        reject: Callable returning a rejection reason (or None) for params
        failures: Number of upcoming read_metrics calls that fail
    """

    def __init__(self, clock, latency=None, knob="knob", reject=None, failures=0):
        self.clock = clock
        self.knob = knob
        self.latency = latency or (lambda params: 0.01)
        self.reject = reject
        self.params = {}
        self.configure_calls = []
        self.read_calls = 0
        self.failed_reads = 0
        self.pending_failures = failures
        self.reset_calls = 0

    def configure(self, params):
        self.configure_calls.append(dict(params))
        if self.reject is not None:
            reason = self.reject(params)
            if reason:
                return ConfigureResult.rejected(reason)
        self.params = dict(params)
        return ConfigureResult.accepted()

    def read_metrics(self):
        self.read_calls += 1
        if self.pending_failures > 0:
            self.pending_failures -= 1
            self.failed_reads += 1
            raise CollaboratorUnavailable(WORKLOAD)
        return [MetricSample(self.clock.time(), WORKLOAD, "latency", self.latency(self.params))]

    def reset(self):
        self.reset_calls += 1
        self.params = {}


class FakeAgent(ResourceAgent):
    """Agent reporting a constant memory pressure."""

    def __init__(self, clock, pressure=0.1, reject=None, reset_error=None):
        self.clock = clock
        self.pressure = pressure
        self.reject = reject
        self.reset_error = reset_error
        self.limits = {}
        self.apply_calls = []
        self.read_calls = 0
        self.reset_calls = 0

    def apply_limits(self, params):
        self.apply_calls.append(dict(params))
        if self.reject is not None:
            reason = self.reject(params)
            if reason:
                return ConfigureResult.rejected(reason)
        self.limits = dict(params)
        return ConfigureResult.accepted()

    def read_state(self):
        self.read_calls += 1
        return [MetricSample(self.clock.time(), AGENT, "mem_pressure", self.pressure)]

    def reset(self):
        self.reset_calls += 1
        if self.reset_error is not None:
            raise self.reset_error
        self.limits = {}


class ScriptedWorkload(WorkloadGenerator):
    """Workload replaying a fixed list of (timestamp, latency) readings, one per read."""

    def __init__(self, readings):
        self.readings = list(readings)
        self.read_calls = 0

    def configure(self, params):
        return ConfigureResult.accepted()

    def read_metrics(self):
        self.read_calls += 1
        if not self.readings:
            return []
        timestamp, value = self.readings.pop(0)
        return [MetricSample(timestamp, WORKLOAD, "latency", value)]

    def reset(self):
        pass


class HangingWorkload(FakeWorkload):
    """Workload whose first `hangs` reads block until release() is called."""

    def __init__(self, clock, hangs=1):
        super().__init__(clock)
        self.pending_hangs = hangs
        self._released = threading.Event()

    def read_metrics(self):
        if self.pending_hangs > 0:
            self.pending_hangs -= 1
            self._released.wait(timeout=10.0)
            return []
        return super().read_metrics()

    def release(self):
        self._released.set()
