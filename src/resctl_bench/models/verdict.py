"""
Round and run outcome enums.
"""

from enum import Enum


class ConvergenceVerdict(str, Enum):
    """Classification of a round, produced by the convergence detector."""

    TRANSIENT = "transient"
    CONVERGED = "converged"
    DIVERGED = "diverged"
    INCONCLUSIVE = "inconclusive"  # Round budget exhausted or collaborator unavailable

    @property
    def is_terminal(self) -> bool:
        """True when the orchestrator stops retrying the current parameter."""
        return self is not ConvergenceVerdict.TRANSIENT


class RunStatus(str, Enum):
    """How a run ended."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"
