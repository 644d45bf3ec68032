"""
Artifact management for benchmark runs.

Each scenario gets a directory under the results root holding:
- result.json (or result.json.gz): the BenchmarkResult
- checkpoint.json: rounds and search state after the last search step
- report.md / rounds.png: rendered by reporter and plotting
"""

import gzip
import hashlib
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import git

from resctl_bench import __version__
from resctl_bench.infra.sysinfo import collect_host_info
from resctl_bench.models.checkpoint import Checkpoint
from resctl_bench.models.result import BenchmarkResult


def get_git_commit() -> Optional[str]:
    """Get the current git commit hash, None outside a repository."""
    try:
        repo = git.Repo(search_parent_directories=True)
        return repo.head.commit.hexsha
    except (git.InvalidGitRepositoryError, git.NoSuchPathError, ValueError):
        return None


def calculate_scenario_hash(scenario_data: Dict[str, Any]) -> str:
    """Calculate SHA256 hash of the canonical JSON form of a scenario."""
    scenario_str = json.dumps(scenario_data, sort_keys=True)
    return hashlib.sha256(scenario_str.encode()).hexdigest()


def build_environment(target: str = "") -> Dict[str, Any]:
    """
    Describe where and with what a run was executed.

    Args:
        target: SSH target of the benchmarked host, empty for local runs

    Returns:
        Dictionary stored as BenchmarkResult.environment
    """
    return {
        "target": target or "localhost",
        "framework_version": __version__,
        "git_commit": get_git_commit(),
        "host": collect_host_info(),
    }


def _write_json(path: Path, data: Dict[str, Any]) -> Path:
    """Write JSON atomically; a .gz suffix selects gzip compression."""
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=2).encode()
    tmp_path = path.with_name(path.name + ".tmp")
    if path.suffix == ".gz":
        with gzip.open(tmp_path, "wb") as f:
            f.write(content)
    else:
        with open(tmp_path, "wb") as f:
            f.write(content)
    os.replace(tmp_path, path)
    return path


def _read_json(path: Path) -> Dict[str, Any]:
    if path.suffix == ".gz":
        with gzip.open(path, "rt") as f:
            return json.load(f)
    with open(path) as f:
        return json.load(f)


def write_result_json(result: BenchmarkResult, path: Path) -> Path:
    """
    Write a result record.

    Args:
        result: Result to write
        path: Destination, ending in .json or .json.gz

    Returns:
        Path to the written file
    """
    return _write_json(Path(path), result.to_dict())


def read_result_json(path: Path) -> BenchmarkResult:
    """
    Read a result record written by write_result_json.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a valid result
    """
    path = Path(path)
    try:
        data = _read_json(path)
    except json.JSONDecodeError as e:
        raise ValueError(f"{path} is not valid JSON: {e}") from e
    try:
        return BenchmarkResult.from_dict(data)
    except KeyError as e:
        raise ValueError(f"{path} is missing field {e}") from e


def write_checkpoint(checkpoint: Checkpoint, path: Path) -> Path:
    return _write_json(Path(path), checkpoint.to_dict())


def read_checkpoint(path: Path) -> Optional[Checkpoint]:
    """Read a checkpoint, None if there is none."""
    path = Path(path)
    if not path.exists():
        return None
    return Checkpoint.from_dict(_read_json(path))
