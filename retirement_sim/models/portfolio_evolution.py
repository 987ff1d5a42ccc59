"""
Portfolio evolution module for Monte Carlo simulation.

This module evolves one simulation path year by year. Each year the
sub-balance of every asset class grows by its sampled return, then the path
either receives its annual contribution (accumulation years) or pays the
withdrawal strategy's need net of guaranteed income (retirement years). The
portfolio is rebalanced to target weights at year end while it is solvent.

A path is ruined the first year its balance reaches 0. From then on it stays
at 0: no growth, no withdrawals, and guaranteed income is still recorded.
"""

import logging
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from .asset_classes import Portfolio
from .simulation.config import SimulationParameters
from .simulation.protocols import IncomeProvider, ReturnsSampler, WithdrawalPolicy
from .simulation.result import SimulationRun
from .withdrawal_rules import RunState

logger = logging.getLogger(__name__)


class PathSimulator:
    """Simulates individual paths with annual rebalancing.

    The simulator holds only read-only inputs, so one instance is shared by
    every worker thread. All per-path state is local to ``simulate``.
    """

    def __init__(
        self,
        portfolio: Portfolio,
        parameters: SimulationParameters,
        sampler: ReturnsSampler,
        strategy: WithdrawalPolicy,
        income: IncomeProvider,
    ):
        """Initialize the path simulator.

        Args:
            portfolio: Starting valuation and target allocation
            parameters: Simulation parameters
            sampler: Return source, drawing assets in allocation order
            strategy: Withdrawal policy for retirement years
            income: Guaranteed income schedule
        """
        self.portfolio = portfolio
        self.parameters = parameters
        self.sampler = sampler
        self.strategy = strategy
        self.income = income

        self.target_weights = portfolio.allocation.weights_array()
        self.total_years = parameters.total_years
        self.retirement_start = parameters.years_until_retirement

        growth = 1 + parameters.inflation_rate
        # Cumulative inflation since the simulation started, per year
        self.inflation_factors: NDArray[np.float64] = growth ** np.arange(
            self.total_years, dtype=np.float64
        )

    def simulate(self, path_index: int, rng: np.random.Generator) -> SimulationRun:
        """
        Simulate one path.

        Args:
            path_index: Index of the path within the run
            rng: The path's own random generator

        Returns:
            SimulationRun with one entry per simulated year
        """
        years = self.total_years
        sample = self.sampler.sample(years, rng)

        balances = np.zeros(years)
        withdrawals = np.zeros(years)
        incomes = np.zeros(years)
        unmet = np.zeros(years)
        ruin_year: Optional[int] = None

        sub_balances = self.portfolio.total_value * self.target_weights
        state: Optional[RunState] = None

        for year in range(years):
            age = self.parameters.starting_age + year
            retired = year >= self.retirement_start
            years_into_retirement = year - self.retirement_start + 1 if retired else 0

            incomes[year] = self.income.income_for_year(
                age, years_into_retirement, float(self.inflation_factors[year])
            )

            if ruin_year is not None:
                continue

            opening_balance = float(np.sum(sub_balances))

            # Grow
            sub_balances = np.maximum(sub_balances * (1 + sample.returns[year]), 0.0)

            if not retired:
                # Contribute
                sub_balances = sub_balances + (
                    self.parameters.annual_contribution * self.target_weights
                )
            else:
                if state is None:
                    state = self._start_retirement(opening_balance, sub_balances, age)
                sub_balances, withdrawals[year], unmet[year] = self._withdraw(
                    year - self.retirement_start, state, sub_balances, incomes[year], age
                )

            balance = float(np.sum(sub_balances))

            # Ruin check
            if balance <= 0:
                ruin_year = year
                sub_balances = np.zeros_like(sub_balances)
                balance = 0.0
            elif self.parameters.rebalance:
                sub_balances = balance * self.target_weights

            balances[year] = balance

        if ruin_year is not None:
            logger.debug(f"Path {path_index} depleted in year {ruin_year}")

        return SimulationRun(
            path_index=path_index,
            yearly_balances=balances,
            yearly_withdrawals=withdrawals,
            yearly_income=incomes,
            yearly_unmet_need=unmet,
            ruin_year=ruin_year,
            start_index=sample.start_index,
            start_year=sample.start_year,
        )

    def _start_retirement(
        self, opening_balance: float, sub_balances: NDArray[np.float64], age: int
    ) -> RunState:
        """Create the withdrawal state from the balance entering the first retirement year."""
        return RunState(
            starting_balance=opening_balance,
            current_balance=float(np.sum(sub_balances)),
            age=age,
        )

    def _withdraw(
        self,
        retirement_year: int,
        state: RunState,
        sub_balances: NDArray[np.float64],
        income: float,
        age: int,
    ) -> Tuple[NDArray[np.float64], float, float]:
        """
        Take this year's withdrawal pro rata from the sub-balances.

        Returns:
            Tuple of (sub_balances, withdrawal_taken, unmet_need)
        """
        balance = float(np.sum(sub_balances))
        inflation_index = (1 + self.parameters.inflation_rate) ** retirement_year

        state.prior_inflation_index = state.inflation_index if retirement_year else 1.0
        state.inflation_index = inflation_index
        state.current_balance = balance
        state.age = age

        need = max(0.0, self.strategy.requested(retirement_year, state))
        # Guaranteed income covers part of the need; any surplus is not reinvested
        draw = max(0.0, need - income)
        taken = min(draw, balance)
        unmet_need = draw - taken

        if taken >= balance:
            sub_balances = np.zeros_like(sub_balances)
        elif taken > 0:
            sub_balances = sub_balances * (1 - taken / balance)

        state.prior_withdrawal = need
        return sub_balances, taken, unmet_need
