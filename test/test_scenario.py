"""
Unit tests for scenario YAML loading and validation.
"""

from pathlib import Path
import sys

import pytest
import yaml

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from resctl_bench.errors import ConfigError
from resctl_bench.models.scenario import ScenarioConfig, load_scenario

VALID = {
    "knob": "mem_frac",
    "workload": {"lat_target": 0.075},
    "agent": {"memory_high": "8G"},
    "collector": {"duration": 20, "cadence": 1},
    "convergence": {"key_metric": "latency", "key_stat": "p95"},
    "search": {"strategy": "bisection", "low": 0.1, "high": 1.0, "resolution": 0.05, "target": 0.075},
}


def write_yaml(tmp_path, data, name="memory.yaml"):
    path = tmp_path / name
    with open(path, "w") as f:
        yaml.safe_dump(data, f)
    return path


def test_load_valid_scenario(tmp_path):
    scenario = load_scenario(write_yaml(tmp_path, VALID))

    assert scenario.name == "memory"
    assert scenario.knob == "mem_frac"
    assert scenario.collector.duration == 20
    assert scenario.collector.retries == 3
    assert scenario.convergence.key_stat == "p95"
    assert scenario.search.target == 0.075
    assert scenario.warmup > 0


def test_explicit_name_wins(tmp_path):
    scenario = load_scenario(write_yaml(tmp_path, dict(VALID, name="custom")))

    assert scenario.name == "custom"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_scenario(tmp_path / "missing.yaml")


def test_unparsable_yaml(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("knob: [unclosed\n")

    with pytest.raises(ConfigError):
        load_scenario(path)


@pytest.mark.parametrize("override", [
    {"knob": ""},
    {"knob_target": "kernel"},
    {"warmup": -1},
    {"collector": {"duration": 10, "cadence": 5}},
    {"collector": {"duration": 10, "cadence": 1, "retries": -1}},
    {"convergence": {"stable_rounds": 0}},
    {"convergence": {"stable_rounds": 4, "max_rounds": 2}},
    {"convergence": {"key_stat": "p75"}},
    {"convergence": {"key_stat": "median"}},
    {"search": {"strategy": "bisection", "low": 1.0, "high": 0.5}},
    {"search": {"strategy": "bisection", "low": 0, "high": 1, "resolution": 1}},
    {"search": {"strategy": "sweep", "values": []}},
    {"search": {"strategy": "adaptive", "low": 0, "high": 10, "seed": 20, "initial_step": 1}},
    {"search": {"strategy": "annealing"}},
    {"search": {"strategy": "sweep", "values": [1], "objective": "equal"}},
])
def test_invalid_values(tmp_path, override):
    with pytest.raises(ConfigError):
        load_scenario(write_yaml(tmp_path, dict(VALID, **override)))


def test_unknown_keys_rejected():
    with pytest.raises(ConfigError):
        ScenarioConfig.from_yaml(dict(VALID, surprise=True))
    with pytest.raises(ConfigError):
        ScenarioConfig.from_yaml(dict(VALID, collector={"duration": 10, "jitter": 1}))


def test_non_mapping_rejected():
    with pytest.raises(ConfigError):
        ScenarioConfig.from_yaml(["not", "a", "mapping"])


def test_to_dict_round_trip():
    scenario = ScenarioConfig.from_yaml(dict(VALID, name="rt"))

    assert ScenarioConfig.from_yaml(scenario.to_dict()) == scenario


@pytest.mark.parametrize(
    "path",
    sorted((Path(__file__).parent.parent / "scenarios").glob("*.yaml")),
    ids=lambda p: p.stem,
)
def test_bundled_scenarios_are_valid(path):
    scenario = load_scenario(path)

    assert scenario.name == path.stem
