"""
Scenario configuration models.

A scenario YAML file is parsed into a ScenarioConfig that carries everything
the orchestrator needs: the knob being searched, the base configuration of
both collaborators, the measurement cadence, convergence tolerances and the
search strategy.

Example:

    name: memory-protection
    knob: mem_frac
    knob_target: workload
    workload:
      lat_target: 0.075
    agent:
      memory_high: "8G"
    warmup: 5
    collector:
      duration: 30
      cadence: 1
    convergence:
      key_metric: latency
      key_stat: p50
    search:
      strategy: bisection
      low: 0.1
      high: 1.0
      resolution: 0.05
      target: 0.075
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from resctl_bench.errors import ConfigError
from resctl_bench.models.stats import STAT_NAMES

SEARCH_STRATEGIES = ("bisection", "sweep", "adaptive")
KNOB_TARGETS = ("workload", "agent")
OBJECTIVES = ("below", "above")
FAVORABLE_DIRECTIONS = ("high", "low")


@dataclass
class CollectorConfig:
    """Measurement window settings."""
    duration: float = 30.0  # Window length in seconds
    cadence: float = 1.0  # Poll interval in seconds
    timeout: float = 5.0  # Per-call collaborator timeout in seconds
    retries: int = 3  # Retries per poll before the round is inconclusive
    backoff: float = 0.5  # First retry delay, doubled on every retry


@dataclass
class Tolerances:
    """Convergence detector tolerances."""
    key_metric: str = "latency"
    key_stat: str = "p50"
    stable_rounds: int = 2  # Rounds compared for stability
    stability: float = 0.05  # Max relative spread of the key statistic
    divergence_slope: float = 0.02  # Relative trend per second counted as divergence
    divergence_rounds: int = 2  # Consecutive diverging rounds required
    max_rounds: int = 8  # Rounds per parameter before giving up


@dataclass
class SearchConfig:
    """Parameter search settings."""
    strategy: str = "bisection"
    low: Optional[float] = None
    high: Optional[float] = None
    resolution: float = 1.0
    values: List[float] = field(default_factory=list)  # Fixed sweep values
    seed: Optional[float] = None  # Adaptive start value
    initial_step: Optional[float] = None  # Adaptive first step
    growth: float = 2.0  # Adaptive step multiplier while improving
    favorable: str = "high"  # Direction to move after a good round
    target: Optional[float] = None  # Key statistic target, None accepts any converged round
    objective: str = "below"  # Key statistic must stay below/above target
    max_steps: Optional[int] = None


@dataclass
class ConnectionConfig:
    """Where the collaborators run and where their control files live."""
    target: str = ""  # SSH alias or hostname, empty for the local machine
    workload_dir: str = "/var/lib/resctl-bench/hashd"
    agent_dir: str = "/var/lib/resctl-bench/agent"


@dataclass
class ScenarioConfig:
    """Complete description of one benchmark scenario."""
    name: str = ""
    description: str = ""
    knob: str = ""  # Parameter adjusted by the search
    knob_target: str = "workload"  # Collaborator that receives the knob
    workload: Dict[str, Any] = field(default_factory=dict)  # Base workload params
    agent: Dict[str, Any] = field(default_factory=dict)  # Base resource limits
    warmup: float = 5.0  # Unmeasured settle time after applying a parameter
    collector: CollectorConfig = field(default_factory=CollectorConfig)
    convergence: Tolerances = field(default_factory=Tolerances)
    search: SearchConfig = field(default_factory=SearchConfig)
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)

    @classmethod
    def from_yaml(cls, yaml_data: Dict[str, Any]) -> "ScenarioConfig":
        """
        Create a ScenarioConfig from parsed YAML data.

        Args:
            yaml_data: Dictionary containing the parsed YAML content

        Returns:
            ScenarioConfig (not yet validated)

        Raises:
            ConfigError: If a section contains unknown keys
        """
        if not isinstance(yaml_data, dict):
            raise ConfigError("Scenario must be a YAML mapping")

        data = dict(yaml_data)
        sections = {
            "collector": CollectorConfig,
            "convergence": Tolerances,
            "search": SearchConfig,
            "connection": ConnectionConfig,
        }
        kwargs: Dict[str, Any] = {}
        for key, section_cls in sections.items():
            section = data.pop(key, None) or {}
            try:
                kwargs[key] = section_cls(**section)
            except TypeError as e:
                raise ConfigError(f"Invalid '{key}' section: {e}") from e

        try:
            return cls(**data, **kwargs)
        except TypeError as e:
            raise ConfigError(f"Invalid scenario: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def validate(self) -> None:
        """
        Check the scenario for values the engine cannot run with.

        Raises:
            ConfigError: On the first invalid value found
        """
        if not self.name:
            raise ConfigError("Scenario name is required")
        if not self.knob:
            raise ConfigError("Scenario knob is required")
        if self.knob_target not in KNOB_TARGETS:
            raise ConfigError(
                f"Unknown knob_target '{self.knob_target}'. Supported: {', '.join(KNOB_TARGETS)}"
            )
        if self.warmup < 0:
            raise ConfigError(f"warmup must be non-negative, got {self.warmup}")

        validate_collector(self.collector)
        validate_tolerances(self.convergence)
        validate_search(self.search)


def validate_collector(config: CollectorConfig) -> None:
    """Validate measurement settings, including the 4-samples-per-window rule."""
    if config.duration <= 0:
        raise ConfigError(f"collector.duration must be positive, got {config.duration}")
    if config.cadence <= 0:
        raise ConfigError(f"collector.cadence must be positive, got {config.cadence}")
    if config.cadence > config.duration / 4:
        raise ConfigError(
            f"collector.cadence {config.cadence}s too coarse for a {config.duration}s window "
            f"(at most duration/4 = {config.duration / 4}s)"
        )
    if config.timeout <= 0:
        raise ConfigError(f"collector.timeout must be positive, got {config.timeout}")
    if config.retries < 0:
        raise ConfigError(f"collector.retries must be non-negative, got {config.retries}")
    if config.backoff < 0:
        raise ConfigError(f"collector.backoff must be non-negative, got {config.backoff}")


def validate_tolerances(tolerances: Tolerances) -> None:
    if tolerances.key_stat not in STAT_NAMES:
        raise ConfigError(
            f"Unknown convergence.key_stat '{tolerances.key_stat}'. Supported: {', '.join(STAT_NAMES)}"
        )
    if tolerances.stable_rounds < 1:
        raise ConfigError("convergence.stable_rounds must be at least 1")
    if tolerances.divergence_rounds < 1:
        raise ConfigError("convergence.divergence_rounds must be at least 1")
    if tolerances.stability < 0:
        raise ConfigError("convergence.stability must be non-negative")
    if tolerances.divergence_slope <= 0:
        raise ConfigError("convergence.divergence_slope must be positive")
    if tolerances.max_rounds < tolerances.stable_rounds:
        raise ConfigError(
            f"convergence.max_rounds ({tolerances.max_rounds}) must be at least "
            f"stable_rounds ({tolerances.stable_rounds})"
        )


def validate_search(search: SearchConfig) -> None:
    if search.strategy not in SEARCH_STRATEGIES:
        raise ConfigError(
            f"Unknown search strategy '{search.strategy}'. "
            f"Supported strategies: {', '.join(SEARCH_STRATEGIES)}"
        )
    if search.favorable not in FAVORABLE_DIRECTIONS:
        raise ConfigError(f"search.favorable must be 'high' or 'low', got '{search.favorable}'")
    if search.objective not in OBJECTIVES:
        raise ConfigError(f"search.objective must be 'below' or 'above', got '{search.objective}'")
    if search.max_steps is not None and search.max_steps < 1:
        raise ConfigError("search.max_steps must be at least 1")

    if search.strategy == "bisection":
        if search.low is None or search.high is None:
            raise ConfigError("bisection requires search.low and search.high")
        if search.low >= search.high:
            raise ConfigError(f"search.low ({search.low}) must be below search.high ({search.high})")
        if search.resolution <= 0:
            raise ConfigError("search.resolution must be positive")
        if search.high - search.low <= search.resolution:
            raise ConfigError("bisection range must be wider than search.resolution")
    elif search.strategy == "sweep":
        if not search.values:
            raise ConfigError("sweep requires a non-empty search.values list")
    elif search.strategy == "adaptive":
        if search.low is None or search.high is None or search.low >= search.high:
            raise ConfigError("adaptive search requires search.low < search.high as clamps")
        if search.seed is None or not search.low <= search.seed <= search.high:
            raise ConfigError("adaptive search requires a search.seed within [low, high]")
        if search.initial_step is None or search.initial_step <= 0:
            raise ConfigError("adaptive search requires a positive search.initial_step")
        if search.resolution <= 0:
            raise ConfigError("search.resolution must be positive")
        if search.growth <= 1:
            raise ConfigError("search.growth must be greater than 1")


def load_scenario(path) -> ScenarioConfig:
    """
    Load and validate a scenario YAML file.

    Args:
        path: Path to the YAML file (Path or str)

    Returns:
        Validated ScenarioConfig

    Raises:
        ConfigError: If the file is missing, unparsable or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Scenario file not found: {path}")

    try:
        with open(path, "r") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing {path}: {e}") from e

    scenario = ScenarioConfig.from_yaml(yaml_data or {})
    if not scenario.name:
        scenario.name = path.stem
    scenario.validate()
    return scenario
