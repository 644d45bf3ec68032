"""
Error taxonomy for the benchmark engine.

Only ConfigError and SetupError terminate a run. CollaboratorUnavailable is
absorbed by the collector/orchestrator and turned into an inconclusive
round. EmptyRunError signals an orchestrator bug, not a user condition.
"""

from typing import Optional


# Data-quality flag prefix recorded on a window when a sample is dropped
# because its timestamp went backwards.
CLOCK_SKEW = "clock_skew"


class BenchError(Exception):
    """Base class for all resctl-bench errors."""


class ConfigError(BenchError):
    """Invalid scenario or collector parameters, raised before the run starts."""


class SetupError(BenchError):
    """A collaborator rejected the initial configuration."""

    def __init__(self, collaborator: str, reason: str):
        super().__init__(f"{collaborator} rejected configuration: {reason}")
        self.collaborator = collaborator
        self.reason = reason


class CollaboratorUnavailable(BenchError):
    """A collaborator did not answer within its timeout."""

    def __init__(self, source: str, attempts: int = 1, cause: Optional[BaseException] = None):
        message = f"{source} unavailable after {attempts} attempt(s)"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
        self.source = source
        self.attempts = attempts
        self.cause = cause


class EmptyRunError(BenchError):
    """A result was requested for a run that recorded no rounds."""
