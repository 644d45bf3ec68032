"""
Checkpoint model.

A checkpoint is written after every search step. It holds the rounds
measured so far and the SearchState for the next parameter, which is all
the orchestrator needs to continue an interrupted run.
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from resctl_bench.models.result import RoundRecord
from resctl_bench.models.search_state import SearchState


@dataclass(frozen=True)
class Checkpoint:
    scenario: str
    scenario_hash: str
    started_at: float
    rounds: Tuple[RoundRecord, ...]
    search_state: SearchState

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario,
            "scenario_hash": self.scenario_hash,
            "started_at": self.started_at,
            "rounds": [r.to_dict() for r in self.rounds],
            "search_state": self.search_state.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Checkpoint":
        return cls(
            scenario=data["scenario"],
            scenario_hash=data.get("scenario_hash", ""),
            started_at=float(data["started_at"]),
            rounds=tuple(RoundRecord.from_dict(r) for r in data.get("rounds", [])),
            search_state=SearchState.from_dict(data["search_state"]),
        )
