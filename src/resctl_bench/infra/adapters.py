#!/usr/bin/env python3
"""
Adapters driving the real collaborators through their JSON control files.

- HashdWorkload: the rd-hashd latency-sensitive workload generator. The
  bench writes params.json and polls report.json.
- AgentControl: the resource-control agent. The bench writes cmd.json with
  per-slice limits and polls the agent's report.json for pressure metrics.

Both adapters only read and write files through a Communicator, so the same
code runs against the local machine or a remote host.
"""

import json
import logging
import re
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional

from resctl_bench.errors import CollaboratorUnavailable
from resctl_bench.infra.collaborators import ConfigureResult, ResourceAgent, WorkloadGenerator
from resctl_bench.infra.communicator import Communicator
from resctl_bench.models.sample import AGENT, WORKLOAD, MetricSample

LOGGER = logging.getLogger("resctl_bench.infra.adapters")

MSEC = 0.001


@dataclass
class PidParams:
    kp: float
    ki: float
    kd: float


@dataclass
class HashdParams:
    """
    rd-hashd runtime parameters.

    All durations are in seconds and memory in bytes. A _frac field must be
    within [0.0, 1.0]; a _ratio field may exceed 1.0. Concurrency is
    modulated by two PID controllers so that neither lat_target nor
    rps_target is exceeded.
    """
    control_period: float = 1.0
    concurrency_max: int = 65536
    lat_target_pct: float = 0.95
    lat_target: float = 75.0 * MSEC
    rps_target: int = 65536
    rps_max: int = 0
    mem_frac: float = 0.80
    chunk_pages: int = 25
    file_frac: float = 0.25
    file_size_mean: int = 1258291
    file_size_stdev_ratio: float = 0.45
    file_addr_stdev_ratio: float = 0.215
    file_addr_rps_base_frac: float = 0.5
    file_write_frac: float = 0.0
    anon_size_ratio: float = 2.3
    anon_size_stdev_ratio: float = 0.45
    anon_addr_stdev_ratio: float = 0.235
    anon_addr_rps_base_frac: float = 0.5
    anon_write_frac: float = 0.3
    sleep_mean: float = 20.0 * MSEC
    sleep_stdev_ratio: float = 0.33
    cpu_ratio: float = 0.93
    log_bps: int = 1100794
    fake_cpu_load: bool = False
    acc_dist_slots: int = 0
    lat_pid: PidParams = field(default_factory=lambda: PidParams(kp=0.1, ki=0.01, kd=0.01))
    rps_pid: PidParams = field(default_factory=lambda: PidParams(kp=0.25, ki=0.01, kd=0.01))
    anon_histogram: List[int] = field(default_factory=list)

    FILE_FRAC_MIN = 0.001

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HashdParams":
        """
        Build parameters on top of the defaults.

        Raises:
            ValueError: On unknown keys or out-of-range values
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"unknown hashd parameter(s): {', '.join(unknown)}")

        values = dict(data)
        for f in fields(cls):
            # Search knobs arrive as floats
            if f.type is int and isinstance(values.get(f.name), float):
                values[f.name] = int(round(values[f.name]))
        for pid in ("lat_pid", "rps_pid"):
            if isinstance(values.get(pid), dict):
                values[pid] = PidParams(**values[pid])
        params = cls(**values)
        params.validate()
        # Zero file_frac would leave no page cache footprint at all
        params.file_frac = max(params.file_frac, cls.FILE_FRAC_MIN)
        return params

    def validate(self) -> None:
        for f in fields(self):
            if f.name.endswith("_frac"):
                value = getattr(self, f.name)
                if not 0.0 <= value <= 1.0:
                    raise ValueError(f"{f.name} must be within [0.0, 1.0], got {value}")
        if not 0.0 < self.lat_target_pct < 1.0:
            raise ValueError(f"lat_target_pct must be within (0.0, 1.0), got {self.lat_target_pct}")
        if self.lat_target <= 0:
            raise ValueError(f"lat_target must be positive, got {self.lat_target}")
        if self.concurrency_max < 1:
            raise ValueError(f"concurrency_max must be at least 1, got {self.concurrency_max}")


def _load_report(communicator: Communicator, path: str, source: str, timeout: Optional[float]) -> Dict[str, Any]:
    """Read and parse a collaborator report file."""
    try:
        text = communicator.read_file(path, timeout=timeout)
    except OSError as e:
        raise CollaboratorUnavailable(source, cause=e) from e

    try:
        report = json.loads(text)
    except json.JSONDecodeError as e:
        # Usually a report caught mid-write; the collector retries
        raise CollaboratorUnavailable(source, cause=e) from e

    if not isinstance(report, dict) or "timestamp" not in report:
        raise CollaboratorUnavailable(source, cause=ValueError(f"malformed report in {path}"))
    return report


class HashdWorkload(WorkloadGenerator):
    """
    Workload adapter for rd-hashd.

    report.json is a snapshot rewritten by rd-hashd once per control
    period:

        {"timestamp": 1700000000.0, "rps": 812.5, "concurrency": 38.2,
         "lat": {"p50": 0.011, "p90": 0.03, "p95": 0.042, "p99": 0.071}}

    Each new snapshot becomes "latency" (latency at lat_target_pct),
    "rps" and "concurrency" samples.
    """

    def __init__(self, communicator: Communicator, workdir: str, timeout: Optional[float] = None):
        self.communicator = communicator
        self.params_path = f"{workdir}/params.json"
        self.report_path = f"{workdir}/report.json"
        self.timeout = timeout
        self.params = HashdParams()
        self._last_timestamp: Optional[float] = None

    def configure(self, params: Dict[str, Any]) -> ConfigureResult:
        try:
            hashd_params = HashdParams.from_dict(params)
        except (TypeError, ValueError) as e:
            return ConfigureResult.rejected(str(e))

        try:
            self._write_params(hashd_params)
        except OSError as e:
            return ConfigureResult.rejected(f"could not write {self.params_path}: {e}")

        self.params = hashd_params
        LOGGER.debug("hashd params written to %s", self.params_path)
        return ConfigureResult.accepted()

    def _write_params(self, params: HashdParams) -> None:
        content = json.dumps(params.to_dict(), indent=2, sort_keys=True)
        self.communicator.write_file(self.params_path, content + "\n", timeout=self.timeout)

    def read_metrics(self) -> List[MetricSample]:
        report = _load_report(self.communicator, self.report_path, WORKLOAD, self.timeout)
        try:
            return self._parse_report(report)
        except (AttributeError, TypeError, ValueError) as e:
            raise CollaboratorUnavailable(WORKLOAD, cause=e) from e

    def _parse_report(self, report: Dict[str, Any]) -> List[MetricSample]:
        timestamp = float(report["timestamp"])
        if self._last_timestamp is not None and timestamp == self._last_timestamp:
            return []

        samples = []
        latency = self._target_latency(report.get("lat", {}))
        if latency is not None:
            samples.append(MetricSample(timestamp, WORKLOAD, "latency", latency))
        for name in ("rps", "concurrency"):
            if name in report:
                samples.append(MetricSample(timestamp, WORKLOAD, name, float(report[name])))
        self._last_timestamp = timestamp
        return samples

    def _target_latency(self, lat: Dict[str, Any]) -> Optional[float]:
        key = f"p{int(round(self.params.lat_target_pct * 100))}"
        if key in lat:
            return float(lat[key])
        if "p95" in lat:
            return float(lat["p95"])
        return None

    def reset(self) -> None:
        defaults = HashdParams()
        self._write_params(defaults)
        self.params = defaults


_SIZE_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([KMGT]?)i?B?\s*$", re.IGNORECASE)
_SIZE_UNITS = {"": 1, "K": 1 << 10, "M": 1 << 20, "G": 1 << 30, "T": 1 << 40}

MEMORY_LIMIT_KEYS = ("memory_min", "memory_low", "memory_high", "memory_max")
WEIGHT_KEYS = ("cpu_weight", "io_weight")


def parse_size(value: Any) -> int:
    """
    Parse a memory size such as 8G, 512M or 1073741824 into bytes.

    Raises:
        ValueError: If the value is not a size
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid size: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"negative size: {value}")
        return int(value)
    match = _SIZE_RE.match(str(value))
    if not match:
        raise ValueError(f"invalid size: {value!r}")
    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[unit.upper()])


class AgentControl(ResourceAgent):
    """
    Resource-control agent adapter.

    cmd.json carries a sequence number and the limits of the workload
    slice; the agent applies a command whenever cmd_seq changes. The
    agent report looks like:

        {"timestamp": 1700000000.0,
         "pressure": {"mem": 0.12, "io": 0.4, "cpu": 0.0},
         "usage": {"mem_bytes": 8589934592}}
    """

    def __init__(self, communicator: Communicator, workdir: str, timeout: Optional[float] = None):
        self.communicator = communicator
        self.cmd_path = f"{workdir}/cmd.json"
        self.report_path = f"{workdir}/report.json"
        self.timeout = timeout
        self.cmd_seq = 0
        self._last_timestamp: Optional[float] = None

    def apply_limits(self, params: Dict[str, Any]) -> ConfigureResult:
        try:
            limits = self.normalize_limits(params)
        except ValueError as e:
            return ConfigureResult.rejected(str(e))

        try:
            self._write_cmd(limits)
        except OSError as e:
            return ConfigureResult.rejected(f"could not write {self.cmd_path}: {e}")
        return ConfigureResult.accepted()

    @staticmethod
    def normalize_limits(params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate limits and convert memory sizes to bytes.

        Raises:
            ValueError: On unknown keys or invalid values
        """
        limits: Dict[str, Any] = {}
        for key, value in params.items():
            if key in MEMORY_LIMIT_KEYS:
                limits[key] = parse_size(value)
            elif key in WEIGHT_KEYS:
                if not isinstance(value, (int, float)) or not 1 <= value <= 10000:
                    raise ValueError(f"{key} must be within [1, 10000], got {value!r}")
                limits[key] = int(value)
            elif key == "swappiness":
                if not isinstance(value, (int, float)) or not 0 <= value <= 200:
                    raise ValueError(f"swappiness must be within [0, 200], got {value!r}")
                limits[key] = int(value)
            else:
                raise ValueError(f"unknown limit '{key}'")

        low = limits.get("memory_low")
        high = limits.get("memory_high")
        if low is not None and high is not None and low > high:
            raise ValueError("memory_low must not exceed memory_high")
        return limits

    def _write_cmd(self, limits: Dict[str, Any]) -> None:
        self.cmd_seq += 1
        content = json.dumps({"cmd_seq": self.cmd_seq, "workload": limits}, indent=2, sort_keys=True)
        self.communicator.write_file(self.cmd_path, content + "\n", timeout=self.timeout)

    def read_state(self) -> List[MetricSample]:
        report = _load_report(self.communicator, self.report_path, AGENT, self.timeout)
        try:
            return self._parse_report(report)
        except (AttributeError, TypeError, ValueError) as e:
            raise CollaboratorUnavailable(AGENT, cause=e) from e

    def _parse_report(self, report: Dict[str, Any]) -> List[MetricSample]:
        timestamp = float(report["timestamp"])
        if self._last_timestamp is not None and timestamp == self._last_timestamp:
            return []

        samples = []
        for resource, value in sorted(report.get("pressure", {}).items()):
            samples.append(MetricSample(timestamp, AGENT, f"{resource}_pressure", float(value)))
        usage = report.get("usage", {})
        if "mem_bytes" in usage:
            samples.append(MetricSample(timestamp, AGENT, "mem_usage", float(usage["mem_bytes"])))
        self._last_timestamp = timestamp
        return samples

    def reset(self) -> None:
        self._write_cmd({})
