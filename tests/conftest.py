"""
Pytest configuration and shared fixtures for the retirement simulation tests.
"""

import os
from unittest.mock import patch

import numpy as np
import pytest

from retirement_sim.config import Settings, reset_global_settings
from retirement_sim.models.asset_classes import (
    Allocation,
    AssetClass,
    MarketAssumption,
    Portfolio,
)
from retirement_sim.models.historical_data import HistoricalReturnSeries
from retirement_sim.models.random_returns import SamplingMode
from retirement_sim.models.simulation.config import (
    SimulationParameters,
    WithdrawalConfig,
)


@pytest.fixture
def stock_bond_allocation():
    """60/40 stock/bond allocation."""
    return Allocation(weights={AssetClass.STOCKS: 0.6, AssetClass.BONDS: 0.4})


@pytest.fixture
def million_portfolio(stock_bond_allocation):
    """$1M portfolio with a 60/40 allocation."""
    return Portfolio(total_value=1_000_000.0, allocation=stock_bond_allocation)


@pytest.fixture
def constant_series():
    """Ten years of constant 7% returns for stocks and bonds."""
    years = np.arange(2000, 2010)
    returns = np.full((10, 2), 0.07)
    return HistoricalReturnSeries(
        years=years,
        asset_classes=[AssetClass.STOCKS, AssetClass.BONDS],
        returns=returns,
        source="synthetic",
    )


@pytest.fixture
def labelled_series():
    """
    Series whose returns encode their row: stocks = year offset / 100,
    bonds = -(year offset / 100). Makes the drawn calendar year visible in
    every sampled return.
    """
    offsets = np.arange(12)
    returns = np.column_stack([offsets / 100.0, -offsets / 100.0])
    return HistoricalReturnSeries(
        years=1990 + offsets,
        asset_classes=[AssetClass.STOCKS, AssetClass.BONDS],
        returns=returns,
    )


@pytest.fixture
def crash_series():
    """Five years of -50% returns for stocks and bonds."""
    return HistoricalReturnSeries(
        years=np.arange(2001, 2006),
        asset_classes=[AssetClass.STOCKS, AssetClass.BONDS],
        returns=np.full((5, 2), -0.5),
    )


@pytest.fixture
def volatile_series():
    """Thirty years of pseudo-random returns with a fixed seed."""
    rng = np.random.default_rng(1234)
    returns = np.column_stack(
        [rng.normal(0.08, 0.18, 30), rng.normal(0.04, 0.06, 30)]
    )
    return HistoricalReturnSeries(
        years=np.arange(1970, 2000),
        asset_classes=[AssetClass.STOCKS, AssetClass.BONDS],
        returns=np.maximum(returns, -0.9),
    )


@pytest.fixture
def zero_volatility_assumptions():
    """Parametric assumptions with 7% returns and no volatility."""
    assumption = MarketAssumption(expected_return=0.07, volatility=0.0)
    return {AssetClass.STOCKS: assumption, AssetClass.BONDS: assumption}


@pytest.fixture
def thirty_year_parameters():
    """30-year 4% fixed real withdrawal with no inflation, block bootstrap."""
    return SimulationParameters(
        horizon_years=30,
        num_paths=50,
        withdrawal=WithdrawalConfig(base_rate=0.04),
        inflation_rate=0.0,
        starting_age=65,
        sampling_mode=SamplingMode.BLOCK_BOOTSTRAP,
        seed=42,
    )


@pytest.fixture
def app_settings():
    """Settings for the testing environment, ignoring any .env file."""
    with patch.dict(os.environ, {"SECRET_KEY": "test-secret-key-123"}, clear=True):
        yield Settings(_env_file=None, APP_ENV="testing")
    reset_global_settings()
