"""
Protocol interfaces for simulation collaborators.

The path simulator depends on these seams rather than on concrete classes, so
a test or caller can substitute its own return source, withdrawal policy or
income schedule. Implementations must be safe to share across concurrent
paths: any per-path state arrives through the arguments.
"""

from typing import TYPE_CHECKING, Dict, List, Protocol

import numpy as np

if TYPE_CHECKING:
    from ..random_returns import ReturnSample
    from ..withdrawal_rules import RunState


class ReturnsSampler(Protocol):
    """
    Draws the return sequence experienced by one path.
    """

    def sample(self, horizon: int, rng: np.random.Generator) -> "ReturnSample":
        """
        Draw a return sequence.

        Args:
            horizon: Number of simulated years
            rng: The path's own random generator

        Returns:
            ReturnSample with returns of shape (horizon, num_assets)

        Raises:
            ConfigurationError: If horizon <= 0
        """
        ...

    def get_asset_names(self) -> List[str]:
        """Get names of assets in order."""
        ...


class WithdrawalPolicy(Protocol):
    """
    Determines the spending need for a retirement year.
    """

    def requested(self, year: int, state: "RunState") -> float:
        """Raw nominal need for the year, never negative."""
        ...

    def amount(self, year: int, state: "RunState") -> float:
        """Need clamped to the current balance."""
        ...


class IncomeProvider(Protocol):
    """
    Provides guaranteed income such as Social Security and pensions.
    """

    def income_for_year(
        self, age: int, years_into_retirement: int, inflation_index: float
    ) -> float:
        """
        Total guaranteed income for a simulated year.

        Args:
            age: Age during the simulated year
            years_into_retirement: 1 in the first retirement year, 0 before retirement
            inflation_index: Cumulative inflation factor for the year

        Returns:
            Income in nominal dollars
        """
        ...

    def income_breakdown(self, age: int, inflation_index: float) -> Dict[str, float]:
        """Per-source income for a simulated year."""
        ...
