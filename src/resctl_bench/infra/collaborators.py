#!/usr/bin/env python3
"""
Collaborator interfaces for the benchmark engine.

The engine never talks to the workload generator or the resource-control
agent directly. It depends only on the two abstract classes below, which
thin adapters (see adapters.py) implement for real daemons and tests
implement with deterministic fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List

from resctl_bench.models.sample import MetricSample


@dataclass(frozen=True)
class ConfigureResult:
    """Outcome of a configuration request sent to a collaborator."""
    ok: bool
    reason: str = ""

    @classmethod
    def accepted(cls) -> "ConfigureResult":
        return cls(ok=True)

    @classmethod
    def rejected(cls, reason: str) -> "ConfigureResult":
        return cls(ok=False, reason=reason)

    def __str__(self) -> str:
        return "OK" if self.ok else f"REJECTED ({self.reason})"


class WorkloadGenerator(ABC):
    """
    Latency-sensitive load generator.

    Implementations must answer every call promptly; the collector enforces
    its own timeout on top and raises CollaboratorUnavailable on expiry.
    """

    name = "workload"

    @abstractmethod
    def configure(self, params: Dict[str, Any]) -> ConfigureResult:
        """
        Apply runtime parameters.

        Args:
            params: Complete parameter set (base scenario params plus the knob)

        Returns:
            ConfigureResult telling whether the generator accepted them
        """
        pass

    @abstractmethod
    def read_metrics(self) -> List[MetricSample]:
        """
        Return the samples emitted since the previous call.

        Raises:
            CollaboratorUnavailable: If the generator is not responding
        """
        pass

    @abstractmethod
    def reset(self) -> None:
        """Restore neutral configuration. Must be idempotent."""
        pass


class ResourceAgent(ABC):
    """Resource-control agent enforcing cgroup-level limits."""

    name = "agent"

    @abstractmethod
    def apply_limits(self, params: Dict[str, Any]) -> ConfigureResult:
        """
        Apply resource limits.

        Args:
            params: Complete limit set (base scenario limits plus the knob)

        Returns:
            ConfigureResult telling whether the agent accepted them
        """
        pass

    @abstractmethod
    def read_state(self) -> List[MetricSample]:
        """
        Return control-plane samples emitted since the previous call.

        Raises:
            CollaboratorUnavailable: If the agent is not responding
        """
        pass

    @abstractmethod
    def reset(self) -> None:
        """Restore neutral configuration. Must be idempotent."""
        pass
