"""
Tests for the rd-hashd and agent adapters over a local communicator.
"""

import json
from pathlib import Path
import sys

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from resctl_bench.errors import CollaboratorUnavailable
from resctl_bench.infra.adapters import AgentControl, HashdParams, HashdWorkload, parse_size
from resctl_bench.infra.communicator import LocalCommunicator, SSHCommunicator, create_communicator
from resctl_bench.models.sample import AGENT, WORKLOAD


@pytest.fixture
def communicator():
    return LocalCommunicator()


def write_json(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))


class TestHashdParams:

    def test_defaults(self):
        params = HashdParams()

        assert params.lat_target_pct == 0.95
        assert params.lat_target == pytest.approx(0.075)
        assert params.mem_frac == 0.80

    def test_file_frac_is_clamped(self):
        assert HashdParams.from_dict({"file_frac": 0.0}).file_frac == HashdParams.FILE_FRAC_MIN

    def test_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            HashdParams.from_dict({"mem_frac": 1.5})

    def test_rejects_unknown(self):
        with pytest.raises(ValueError):
            HashdParams.from_dict({"turbo": True})

    def test_integer_fields_from_float_knob(self):
        params = HashdParams.from_dict({"rps_target": 1500.0})

        assert params.rps_target == 1500
        assert isinstance(params.rps_target, int)


class TestHashdWorkload:

    def test_configure_writes_params(self, communicator, tmp_path):
        workload = HashdWorkload(communicator, str(tmp_path))

        result = workload.configure({"mem_frac": 0.5, "lat_target": 0.05})

        assert result.ok
        written = json.loads((tmp_path / "params.json").read_text())
        assert written["mem_frac"] == 0.5
        assert written["lat_target"] == 0.05
        assert written["lat_pid"] == {"kp": 0.1, "ki": 0.01, "kd": 0.01}

    def test_configure_rejects_invalid(self, communicator, tmp_path):
        workload = HashdWorkload(communicator, str(tmp_path))

        result = workload.configure({"mem_frac": 2.0})

        assert not result.ok
        assert "mem_frac" in result.reason
        assert not (tmp_path / "params.json").exists()

    def test_read_metrics(self, communicator, tmp_path):
        workload = HashdWorkload(communicator, str(tmp_path))
        write_json(tmp_path / "report.json", {
            "timestamp": 100.0,
            "rps": 800.0,
            "concurrency": 12.5,
            "lat": {"p50": 0.01, "p95": 0.04, "p99": 0.07},
        })

        samples = workload.read_metrics()

        by_name = {s.name: s for s in samples}
        assert by_name["latency"].value == 0.04
        assert by_name["rps"].value == 800.0
        assert by_name["concurrency"].value == 12.5
        assert all(s.source == WORKLOAD and s.timestamp == 100.0 for s in samples)

        # An unchanged snapshot yields nothing new
        assert workload.read_metrics() == []

    def test_missing_report_is_unavailable(self, communicator, tmp_path):
        workload = HashdWorkload(communicator, str(tmp_path))

        with pytest.raises(CollaboratorUnavailable):
            workload.read_metrics()

    def test_malformed_report_is_unavailable(self, communicator, tmp_path):
        (tmp_path / "report.json").write_text("{not json")
        workload = HashdWorkload(communicator, str(tmp_path))

        with pytest.raises(CollaboratorUnavailable):
            workload.read_metrics()

    @pytest.mark.parametrize("report", [
        {"timestamp": 1.0, "rps": "n/a", "lat": {"p95": 0.04}},
        {"timestamp": "soon", "rps": 800.0},
        {"timestamp": 1.0, "lat": {"p95": None}},
        {"timestamp": 1.0, "lat": {"p95": [0.04]}},
    ])
    def test_non_numeric_report_is_unavailable(self, communicator, tmp_path, report):
        write_json(tmp_path / "report.json", report)
        workload = HashdWorkload(communicator, str(tmp_path))

        with pytest.raises(CollaboratorUnavailable) as excinfo:
            workload.read_metrics()

        assert excinfo.value.source == WORKLOAD

    def test_recovers_after_bad_snapshot(self, communicator, tmp_path):
        workload = HashdWorkload(communicator, str(tmp_path))
        write_json(tmp_path / "report.json", {"timestamp": 5.0, "rps": "n/a"})
        with pytest.raises(CollaboratorUnavailable):
            workload.read_metrics()

        # Same timestamp, now well formed
        write_json(tmp_path / "report.json", {"timestamp": 5.0, "rps": 700.0})

        assert [s.value for s in workload.read_metrics()] == [700.0]

    def test_reset_restores_defaults(self, communicator, tmp_path):
        workload = HashdWorkload(communicator, str(tmp_path))
        workload.configure({"mem_frac": 0.3})

        workload.reset()
        workload.reset()

        written = json.loads((tmp_path / "params.json").read_text())
        assert written == HashdParams().to_dict()


class TestAgentControl:

    def test_parse_size(self):
        assert parse_size("8G") == 8 << 30
        assert parse_size("512M") == 512 << 20
        assert parse_size("1.5KiB") == 1536
        assert parse_size(4096) == 4096
        with pytest.raises(ValueError):
            parse_size("lots")

    def test_apply_limits_writes_command(self, communicator, tmp_path):
        agent = AgentControl(communicator, str(tmp_path))

        assert agent.apply_limits({"memory_high": "8G", "io_weight": 100}).ok
        assert agent.apply_limits({"memory_high": "4G"}).ok

        command = json.loads((tmp_path / "cmd.json").read_text())
        assert command == {"cmd_seq": 2, "workload": {"memory_high": 4 << 30}}

    @pytest.mark.parametrize("limits", [
        {"cpu_weight": 0},
        {"swappiness": 300},
        {"memory_low": "8G", "memory_high": "4G"},
        {"oom_score": 1},
    ])
    def test_apply_limits_rejects_invalid(self, communicator, tmp_path, limits):
        agent = AgentControl(communicator, str(tmp_path))

        assert not agent.apply_limits(limits).ok

    def test_read_state(self, communicator, tmp_path):
        agent = AgentControl(communicator, str(tmp_path))
        write_json(tmp_path / "report.json", {
            "timestamp": 50.0,
            "pressure": {"mem": 0.2, "io": 0.1},
            "usage": {"mem_bytes": 1024},
        })

        samples = agent.read_state()

        assert [s.name for s in samples] == ["io_pressure", "mem_pressure", "mem_usage"]
        assert all(s.source == AGENT for s in samples)

    @pytest.mark.parametrize("report", [
        {"timestamp": 50.0, "pressure": {"mem": "high"}},
        {"timestamp": 50.0, "pressure": [0.2, 0.1]},
        {"timestamp": 50.0, "usage": {"mem_bytes": "8G"}},
    ])
    def test_non_numeric_state_is_unavailable(self, communicator, tmp_path, report):
        write_json(tmp_path / "report.json", report)
        agent = AgentControl(communicator, str(tmp_path))

        with pytest.raises(CollaboratorUnavailable) as excinfo:
            agent.read_state()

        assert excinfo.value.source == AGENT

    def test_reset_clears_limits(self, communicator, tmp_path):
        agent = AgentControl(communicator, str(tmp_path))
        agent.apply_limits({"memory_high": "8G"})

        agent.reset()

        command = json.loads((tmp_path / "cmd.json").read_text())
        assert command["workload"] == {}


def test_create_communicator():
    assert isinstance(create_communicator(""), LocalCommunicator)
    assert isinstance(create_communicator("localhost"), LocalCommunicator)
    assert isinstance(create_communicator("bench-host"), SSHCommunicator)
