"""
Tests for the resctl-bench command line.
"""

import json
from pathlib import Path
import sys

import pytest
import yaml

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from resctl_bench import frontend
from resctl_bench.models.verdict import RunStatus
from resctl_bench.reporting.artifacts import read_result_json


@pytest.fixture
def host(tmp_path):
    """Control directories of a local rd-hashd and agent with static reports."""
    workload_dir = tmp_path / "hashd"
    agent_dir = tmp_path / "agent"
    workload_dir.mkdir()
    agent_dir.mkdir()
    (workload_dir / "report.json").write_text(json.dumps({
        "timestamp": 1.0, "rps": 100.0, "lat": {"p95": 0.02},
    }))
    (agent_dir / "report.json").write_text(json.dumps({
        "timestamp": 1.0, "pressure": {"mem": 0.0},
    }))
    return tmp_path


def write_scenario(host, name="smoke", **overrides):
    data = {
        "name": name,
        "knob": "mem_frac",
        "warmup": 0,
        "collector": {"duration": 0.2, "cadence": 0.05, "timeout": 2, "retries": 0},
        "convergence": {"stable_rounds": 1, "max_rounds": 1},
        "search": {"strategy": "sweep", "values": [0.5]},
        "connection": {
            "workload_dir": str(host / "hashd"),
            "agent_dir": str(host / "agent"),
        },
    }
    data.update(overrides)
    path = host / f"{name}.yaml"
    with open(path, "w") as f:
        yaml.safe_dump(data, f)
    return path


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        frontend.create_argument_parser().parse_args([])


def test_run_writes_artifacts(host):
    scenario = write_scenario(host)
    results = host / "results"

    code = frontend.main(["run", str(scenario), "--results-dir", str(results)])

    assert code == 0
    result = read_result_json(results / "smoke" / "result.json")
    assert result.status == RunStatus.COMPLETED
    assert result.parameters_probed() == [0.5]
    assert (results / "smoke" / "report.md").exists()
    assert not (results / "smoke" / "checkpoint.json").exists()
    # Teardown restored rd-hashd defaults
    params = json.loads((host / "hashd" / "params.json").read_text())
    assert params["mem_frac"] == 0.80


def test_run_invalid_scenario_fails(host, capsys):
    scenario = write_scenario(host, name="broken", knob="")

    code = frontend.main(["run", str(scenario), "--results-dir", str(host / "results")])

    assert code == 1
    assert "Invalid scenario" in capsys.readouterr().err


def test_run_setup_rejection_fails(host, capsys):
    scenario = write_scenario(host, name="rejected", workload={"mem_frac": 3.0}, knob="file_frac")

    code = frontend.main(["run", str(scenario), "--results-dir", str(host / "results")])

    assert code == 1
    assert "Setup failed" in capsys.readouterr().err


def test_report_and_compare(host, capsys):
    scenario = write_scenario(host)
    results = host / "results"
    frontend.main(["run", str(scenario), "--results-dir", str(results)])
    result_path = results / "smoke" / "result.json"
    capsys.readouterr()

    assert frontend.main(["report", str(result_path)]) == 0
    assert "# Benchmark Report: smoke" in capsys.readouterr().out

    output = host / "out.md"
    assert frontend.main(["report", str(result_path), "-o", str(output)]) == 0
    assert output.exists()

    assert frontend.main(["compare", str(result_path), str(result_path)]) == 0
    assert "Verdict: PASS" in capsys.readouterr().out


def test_report_missing_file(host):
    assert frontend.main(["report", str(host / "missing.json")]) == 1
