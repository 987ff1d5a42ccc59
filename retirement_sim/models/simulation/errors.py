"""
Simulation error types.

Configuration problems are fatal and raised before any path runs. Per-path
outcomes such as ruin or an unmet withdrawal need are recorded on the run
instead of being raised.
"""

from typing import List, Optional


class SimulationError(Exception):
    """Base exception for simulation engine errors."""


class ConfigurationError(SimulationError, ValueError):
    """Raised when the engine inputs cannot produce a valid simulation."""

    def __init__(self, message: str, problems: Optional[List[str]] = None):
        self.problems = problems or [message]
        super().__init__(message)
