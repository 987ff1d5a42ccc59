"""Data models for Monte Carlo retirement simulations."""

from .asset_classes import (
    Allocation,
    AssetClass,
    MarketAssumption,
    Portfolio,
    create_default_allocation,
)
from .historical_data import (
    HistoricalReturnSeries,
    load_historical_returns,
    series_from_dataframe,
)
from .random_returns import ReturnSample, ReturnSampler, SamplingMode
from .income_engine import IncomeKind, IncomeScheduler, ScheduledIncome
from .simulation.config import (
    SimulationParameters,
    WithdrawalConfig,
    WithdrawalStrategyType,
)
from .simulation.errors import ConfigurationError, SimulationError
from .simulation.result import Cancelled, SimulationResult, SimulationRun
from .withdrawal_rules import RunState, WithdrawalStrategy, build_strategy
from .portfolio_evolution import PathSimulator
from .success_metrics import ResultAggregator

__all__ = [
    "AssetClass",
    "Allocation",
    "MarketAssumption",
    "Portfolio",
    "create_default_allocation",
    "HistoricalReturnSeries",
    "load_historical_returns",
    "series_from_dataframe",
    "ReturnSample",
    "ReturnSampler",
    "SamplingMode",
    "IncomeKind",
    "IncomeScheduler",
    "ScheduledIncome",
    "SimulationParameters",
    "WithdrawalConfig",
    "WithdrawalStrategyType",
    "ConfigurationError",
    "SimulationError",
    "Cancelled",
    "SimulationResult",
    "SimulationRun",
    "RunState",
    "WithdrawalStrategy",
    "build_strategy",
    "PathSimulator",
    "ResultAggregator",
]
