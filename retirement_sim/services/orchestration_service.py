"""
Orchestration service for running Monte Carlo retirement simulations.

This service validates the inputs once, fans the paths out over a thread pool
in fixed-size batches, and hands the collected runs to the ResultAggregator.
Between batches it reports progress, yields to other work and checks for
cancellation. A cancelled run returns ``Cancelled`` and discards every
collected path.
"""

import asyncio
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from retirement_sim.models.asset_classes import Portfolio
from retirement_sim.models.historical_data import HistoricalReturnSeries
from retirement_sim.models.income_engine import (
    IncomeScheduler,
    ScheduledIncome,
    validate_income_timing,
)
from retirement_sim.models.portfolio_evolution import PathSimulator
from retirement_sim.models.random_returns import ReturnSampler
from retirement_sim.models.simulation.config import SimulationParameters
from retirement_sim.models.simulation.errors import ConfigurationError
from retirement_sim.models.simulation.result import (
    Cancelled,
    SimulationResult,
    SimulationRun,
)
from retirement_sim.models.success_metrics import ResultAggregator
from retirement_sim.models.withdrawal_rules import build_strategy

if TYPE_CHECKING:
    from retirement_sim.config import Settings

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
SimulationOutcome = Union[SimulationResult, Cancelled]


class MonteCarloOrchestrator:
    """Runs many independent simulation paths and aggregates their results."""

    def __init__(
        self,
        series: Optional[HistoricalReturnSeries] = None,
        batch_size: int = 100,
        max_workers: Optional[int] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            series: Historical returns shared read-only by every path
            batch_size: Paths per batch between progress/cancellation checkpoints
            max_workers: Thread pool size (None lets the executor decide)
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be at least 1")

        self.series = series
        self.batch_size = batch_size
        self.max_workers = max_workers

    @classmethod
    def from_settings(
        cls, settings: "Settings", series: Optional[HistoricalReturnSeries] = None
    ) -> "MonteCarloOrchestrator":
        """Create an orchestrator sized by application settings."""
        return cls(
            series=series,
            batch_size=settings.simulation_batch_size,
            max_workers=settings.simulation_max_workers,
        )

    def validate_inputs(
        self,
        portfolio: Portfolio,
        parameters: SimulationParameters,
        incomes: Iterable[ScheduledIncome] = (),
    ) -> None:
        """
        Check that the inputs can produce a simulation.

        Income that falls entirely outside the simulated ages is logged as a
        warning, not rejected.

        Raises:
            ConfigurationError: Listing every problem found
        """
        problems: List[str] = []

        if parameters.horizon_years <= 0:
            problems.append("Horizon must be positive")
        if parameters.num_paths <= 0:
            problems.append("Number of paths must be positive")
        if parameters.withdrawal.base_rate <= 0:
            problems.append("Withdrawal rate must be positive")
        if portfolio.total_value <= 0:
            problems.append("Portfolio value must be positive")

        total_weight = float(np.sum(portfolio.allocation.weights_array()))
        if not np.isclose(total_weight, 1.0, atol=1e-6):
            problems.append(f"Allocation weights must sum to 1.0, got {total_weight}")

        if parameters.sampling_mode.is_bootstrap:
            if self.series is None or self.series.is_empty:
                problems.append("Historical return data is empty")
            else:
                missing = [
                    asset.value
                    for asset in portfolio.allocation.asset_classes
                    if not self.series.has_asset(asset)
                ]
                if missing:
                    problems.append(
                        f"Historical returns missing for asset classes: {', '.join(missing)}"
                    )

        if problems:
            raise ConfigurationError("; ".join(problems), problems=problems)

        final_age = parameters.starting_age + parameters.total_years - 1
        for warning in validate_income_timing(incomes, parameters.starting_age, final_age):
            logger.warning(warning)

    def run(
        self,
        portfolio: Portfolio,
        parameters: SimulationParameters,
        incomes: Iterable[ScheduledIncome] = (),
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> SimulationOutcome:
        """Run a Monte Carlo simulation.

        Args:
            portfolio: Starting valuation and target allocation
            parameters: Simulation parameters
            incomes: Guaranteed income sources
            cancel_event: Set to request cancellation between batches
            progress_callback: Called with (completed_paths, total_paths)
                after every batch

        Returns:
            Full SimulationResult (with runs), or Cancelled

        Raises:
            ConfigurationError: If the inputs are invalid; no path is started
        """
        simulator, seeds = self._prepare(portfolio, parameters, incomes)
        total = parameters.num_paths
        runs: List[SimulationRun] = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for batch in self._batches(total):
                if self._cancelled(cancel_event):
                    return self._cancel(total, len(runs))

                runs.extend(self._run_batch(executor, simulator, seeds, batch))
                self._checkpoint(len(runs), total, progress_callback)
                time.sleep(0)

            if self._cancelled(cancel_event):
                return self._cancel(total, len(runs))

        return self._finish(runs, parameters, portfolio)

    async def run_async(
        self,
        portfolio: Portfolio,
        parameters: SimulationParameters,
        incomes: Iterable[ScheduledIncome] = (),
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> SimulationOutcome:
        """Async variant of ``run``; batches execute off the event loop."""
        simulator, seeds = self._prepare(portfolio, parameters, incomes)
        total = parameters.num_paths
        runs: List[SimulationRun] = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for batch in self._batches(total):
                if self._cancelled(cancel_event):
                    return self._cancel(total, len(runs))

                batch_runs = await asyncio.to_thread(
                    self._run_batch, executor, simulator, seeds, batch
                )
                runs.extend(batch_runs)
                self._checkpoint(len(runs), total, progress_callback)
                await asyncio.sleep(0)

            if self._cancelled(cancel_event):
                return self._cancel(total, len(runs))

        return self._finish(runs, parameters, portfolio)

    def _prepare(
        self,
        portfolio: Portfolio,
        parameters: SimulationParameters,
        incomes: Iterable[ScheduledIncome],
    ) -> Tuple[PathSimulator, List[np.random.SeedSequence]]:
        """Validate inputs and build the shared simulator and per-path seeds."""
        incomes = list(incomes)
        self.validate_inputs(portfolio, parameters, incomes)

        sampler = ReturnSampler(
            self.series,
            portfolio.allocation.asset_classes,
            mode=parameters.sampling_mode,
            market_assumptions=parameters.market_assumptions,
            distribution=parameters.distribution,
        )
        simulator = PathSimulator(
            portfolio=portfolio,
            parameters=parameters,
            sampler=sampler,
            strategy=build_strategy(parameters.withdrawal),
            income=IncomeScheduler(incomes),
        )

        # One independent stream per path, so results do not depend on
        # worker count or completion order
        seeds = np.random.SeedSequence(parameters.seed).spawn(parameters.num_paths)

        logger.info(
            f"Starting simulation: {parameters.num_paths} paths x {parameters.total_years} years, "
            f"strategy={parameters.withdrawal.strategy.value}, "
            f"sampling={parameters.sampling_mode.value}, seed={parameters.seed}"
        )
        return simulator, seeds

    def _batches(self, total: int) -> List[range]:
        return [
            range(start, min(start + self.batch_size, total))
            for start in range(0, total, self.batch_size)
        ]

    @staticmethod
    def _run_batch(
        executor: ThreadPoolExecutor,
        simulator: PathSimulator,
        seeds: Sequence[np.random.SeedSequence],
        batch: range,
    ) -> List[SimulationRun]:
        """Simulate one batch of paths on the pool."""
        return list(
            executor.map(
                lambda i: simulator.simulate(i, np.random.default_rng(seeds[i])), batch
            )
        )

    @staticmethod
    def _cancelled(cancel_event: Optional[threading.Event]) -> bool:
        return cancel_event is not None and cancel_event.is_set()

    @staticmethod
    def _checkpoint(
        completed: int, total: int, progress_callback: Optional[ProgressCallback]
    ) -> None:
        logger.debug(f"Completed {completed}/{total} paths")
        if progress_callback is not None:
            progress_callback(completed, total)

    @staticmethod
    def _cancel(total: int, completed: int) -> Cancelled:
        logger.info(f"Simulation cancelled after {completed}/{total} paths")
        return Cancelled(requested_paths=total, completed_paths=completed)

    @staticmethod
    def _finish(
        runs: List[SimulationRun], parameters: SimulationParameters, portfolio: Portfolio
    ) -> SimulationResult:
        result = ResultAggregator(
            runs, parameters, initial_balance=portfolio.total_value
        ).full()
        logger.info(
            f"Simulation complete: {result.num_runs} paths, "
            f"success rate {result.success_rate:.1%}, "
            f"median final balance {result.median_final_balance:,.0f}"
        )
        return result
