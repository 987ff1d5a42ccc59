"""
Withdrawal rules module for Monte Carlo simulation.

This module provides the withdrawal strategies applied during retirement
years: the inflation-adjusted fixed real rule (the "4% rule"), a dynamic
percentage of the current balance, Guyton-Klinger style guardrails, an
RMD-like divisor rule and a fixed dollar amount.

Strategies hold no per-path state. Everything that changes from year to year
lives on the RunState passed in, so one strategy instance is shared by all
concurrent paths.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from pydantic import BaseModel, Field

from .simulation.config import WithdrawalConfig, WithdrawalStrategyType

# IRS Uniform Lifetime Table divisors for ages 72 through 115.
UNIFORM_LIFETIME_TABLE: Dict[int, float] = {
    72: 27.4, 73: 26.5, 74: 25.5, 75: 24.6, 76: 23.7, 77: 22.9, 78: 22.0,
    79: 21.1, 80: 20.2, 81: 19.4, 82: 18.5, 83: 17.7, 84: 16.8, 85: 16.0,
    86: 15.2, 87: 14.4, 88: 13.7, 89: 12.9, 90: 12.2, 91: 11.5, 92: 10.8,
    93: 10.1, 94: 9.5, 95: 8.9, 96: 8.4, 97: 7.8, 98: 7.3, 99: 6.8,
    100: 6.4, 101: 6.0, 102: 5.6, 103: 5.2, 104: 4.9, 105: 4.6, 106: 4.3,
    107: 4.1, 108: 3.9, 109: 3.7, 110: 3.5, 111: 3.4, 112: 3.3, 113: 3.1,
    114: 3.0, 115: 2.9,
}


class RunState(BaseModel):
    """Mutable per-path state visible to withdrawal strategies."""

    starting_balance: float = Field(
        ..., ge=0, description="Portfolio balance when retirement began"
    )
    current_balance: float = Field(
        ..., ge=0, description="Balance after this year's growth, before withdrawal"
    )
    inflation_index: float = Field(
        default=1.0, gt=0, description="Cumulative inflation since retirement began"
    )
    prior_inflation_index: float = Field(
        default=1.0, gt=0, description="Inflation index of the previous year"
    )
    prior_withdrawal: Optional[float] = Field(
        default=None, description="Previous year's requested withdrawal"
    )
    age: int = Field(..., ge=0, description="Age during the current year")


class WithdrawalStrategy(ABC):
    """Abstract base class for withdrawal strategies."""

    def __init__(self, config: WithdrawalConfig):
        """Initialize the withdrawal strategy.

        Args:
            config: Withdrawal configuration
        """
        self.config = config

    @property
    def base_rate(self) -> float:
        return self.config.base_rate

    @abstractmethod
    def requested(self, year: int, state: RunState) -> float:
        """
        Calculate the withdrawal the strategy asks for this year.

        Args:
            year: Retirement year (0-based)
            state: Current path state

        Returns:
            Requested nominal withdrawal, never negative
        """

    def amount(self, year: int, state: RunState) -> float:
        """Requested withdrawal clamped to what the portfolio holds."""
        need = max(0.0, self.requested(year, state))
        return min(need, max(0.0, state.current_balance))


class FixedRealWithdrawalStrategy(WithdrawalStrategy):
    """4% real withdrawal rule (initial percentage, then inflation-adjusted)."""

    def requested(self, year: int, state: RunState) -> float:
        """Initial withdrawal grown by cumulative inflation."""
        return state.starting_balance * self.base_rate * state.inflation_index


class DynamicPercentageWithdrawalStrategy(WithdrawalStrategy):
    """Fixed percentage of the current balance, optionally bounded."""

    def requested(self, year: int, state: RunState) -> float:
        """Withdrawal as a percentage of the current balance."""
        balance = max(0.0, state.current_balance)
        withdrawal = balance * self.base_rate

        if self.config.floor_rate is not None:
            floor = state.starting_balance * self.config.floor_rate * state.inflation_index
            withdrawal = max(withdrawal, floor)
        if self.config.ceiling_rate is not None:
            ceiling = (
                state.starting_balance * self.config.ceiling_rate * state.inflation_index
            )
            withdrawal = min(withdrawal, ceiling)

        return withdrawal


class GuardrailsWithdrawalStrategy(WithdrawalStrategy):
    """Guyton-Klinger style guardrails.

    The first retirement year withdraws ``base_rate`` of the starting balance.
    Each later year rolls the prior withdrawal forward by inflation, then
    compares the implied rate against the guardrail band around the base
    rate. Above the upper guardrail spending is cut by
    ``guardrail_adjustment``; below the lower guardrail it is raised by the
    same fraction.
    """

    def requested(self, year: int, state: RunState) -> float:
        if year == 0 or state.prior_withdrawal is None:
            return state.starting_balance * self.base_rate * state.inflation_index

        inflation_step = state.inflation_index / state.prior_inflation_index
        withdrawal = state.prior_withdrawal * inflation_step

        if state.current_balance <= 0:
            return withdrawal

        current_rate = withdrawal / state.current_balance
        upper = self.base_rate * (1 + self.config.upper_guardrail)
        lower = self.base_rate * (1 - self.config.lower_guardrail)

        if current_rate > upper:
            withdrawal *= 1 - self.config.guardrail_adjustment
        elif current_rate < lower:
            withdrawal *= 1 + self.config.guardrail_adjustment

        return withdrawal


class RMDWithdrawalStrategy(WithdrawalStrategy):
    """Required-minimum-distribution style rule: balance divided by an age divisor."""

    def __init__(self, config: WithdrawalConfig):
        super().__init__(config)
        self.table = dict(config.rmd_table or UNIFORM_LIFETIME_TABLE)
        self._min_age = min(self.table)
        self._max_age = max(self.table)

    def divisor(self, age: int) -> float:
        """Divisor for an age, clamped to the ends of the table."""
        if age <= self._min_age:
            return self.table[self._min_age]
        if age >= self._max_age:
            return self.table[self._max_age]
        if age in self.table:
            return self.table[age]
        # Sparse caller tables use the nearest lower age
        return self.table[max(a for a in self.table if a <= age)]

    def requested(self, year: int, state: RunState) -> float:
        return max(0.0, state.current_balance) / self.divisor(state.age)


class FixedDollarWithdrawalStrategy(WithdrawalStrategy):
    """Fixed annual dollar amount, optionally inflation-adjusted."""

    def requested(self, year: int, state: RunState) -> float:
        amount = self.config.annual_amount or 0.0
        if self.config.adjust_for_inflation:
            return amount * state.inflation_index
        return amount


_STRATEGIES = {
    WithdrawalStrategyType.FIXED_REAL: FixedRealWithdrawalStrategy,
    WithdrawalStrategyType.DYNAMIC_PERCENTAGE: DynamicPercentageWithdrawalStrategy,
    WithdrawalStrategyType.GUARDRAILS: GuardrailsWithdrawalStrategy,
    WithdrawalStrategyType.RMD: RMDWithdrawalStrategy,
    WithdrawalStrategyType.FIXED_DOLLAR: FixedDollarWithdrawalStrategy,
}


def build_strategy(config: WithdrawalConfig) -> WithdrawalStrategy:
    """
    Create the withdrawal strategy selected by a configuration.

    Args:
        config: Withdrawal configuration

    Returns:
        Strategy instance shared by every path of a run
    """
    return _STRATEGIES[config.strategy](config)
