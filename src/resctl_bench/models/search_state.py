"""
Search state model.

SearchState is the only input a search strategy carries from one step to
the next, so persisting it is enough to resume an interrupted search.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class SearchState:
    """Resumable state of a parameter search."""

    strategy: str  # "bisection", "sweep" or "adaptive"
    current: Optional[float]  # Parameter to measure next, None once done
    low: Optional[float] = None  # Bisection bounds / adaptive clamps
    high: Optional[float] = None
    resolution: float = 0.0
    step: Optional[float] = None  # Adaptive step size
    last_sign: int = 0  # Adaptive: +1 after a good step, -1 after a bad one
    reversals: int = 0  # Adaptive: direction changes so far
    index: int = 0  # Sweep position
    values: List[float] = field(default_factory=list)  # Sweep values
    best: Optional[float] = None  # Best known good parameter
    steps_taken: int = 0
    max_steps: Optional[int] = None
    done: bool = False

    @property
    def budget_exhausted(self) -> bool:
        return self.max_steps is not None and self.steps_taken >= self.max_steps

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchState":
        data = dict(data)
        data["values"] = [float(v) for v in data.get("values", [])]
        return cls(**data)
