"""
Tests for asset classes, allocations and portfolios.
"""

import numpy as np
import pytest
from pydantic import ValidationError

from retirement_sim.models.asset_classes import (
    Allocation,
    AssetClass,
    MarketAssumption,
    Portfolio,
    create_default_allocation,
    create_three_asset_allocation,
)


class TestAssetClass:
    """Test AssetClass enum."""

    def test_defaults_available_for_every_member(self):
        """Test every asset class has default assumptions."""
        for asset in AssetClass:
            assert asset.default_volatility >= 0
            assert -1 < asset.default_return < 1

    def test_value_round_trip(self):
        """Test lookup by string value."""
        assert AssetClass("stocks") is AssetClass.STOCKS


class TestMarketAssumption:
    """Test MarketAssumption model."""

    def test_valid_assumption(self):
        assumption = MarketAssumption(expected_return=0.07, volatility=0.15)
        assert assumption.expected_return == 0.07

    def test_negative_volatility_rejected(self):
        with pytest.raises(ValidationError):
            MarketAssumption(expected_return=0.07, volatility=-0.1)


class TestAllocation:
    """Test Allocation model."""

    def test_default_allocation(self):
        """Test the default 60/40 allocation."""
        allocation = create_default_allocation()
        assert allocation.asset_classes == [AssetClass.STOCKS, AssetClass.BONDS]
        np.testing.assert_allclose(allocation.weights_array(), [0.6, 0.4])

    def test_three_asset_allocation(self):
        allocation = create_three_asset_allocation()
        assert len(allocation.asset_classes) == 3
        assert allocation.weights_array().sum() == pytest.approx(1.0)

    def test_weights_must_sum_to_one(self):
        """Test validation of the weight total."""
        with pytest.raises(ValueError, match="sum to 1.0"):
            Allocation(weights={AssetClass.STOCKS: 0.6, AssetClass.BONDS: 0.3})

    def test_weight_bounds(self):
        """Test that individual weights lie in [0, 1]."""
        with pytest.raises(ValueError):
            Allocation(weights={AssetClass.STOCKS: 1.2, AssetClass.BONDS: -0.2})

    def test_small_rounding_error_accepted(self):
        """Test that a total within 1e-6 of 1.0 is accepted."""
        allocation = Allocation(
            weights={AssetClass.STOCKS: 0.3333333, AssetClass.BONDS: 0.6666667}
        )
        assert len(allocation.weights) == 2

    def test_string_keys_accepted(self):
        """Test that JSON-style string keys are coerced to asset classes."""
        allocation = Allocation.model_validate({"weights": {"stocks": 0.5, "cash": 0.5}})
        assert allocation.asset_classes == [AssetClass.STOCKS, AssetClass.CASH]


class TestPortfolio:
    """Test Portfolio model."""

    def test_positive_value_required(self, stock_bond_allocation):
        with pytest.raises(ValidationError):
            Portfolio(total_value=0, allocation=stock_bond_allocation)

    def test_portfolio_is_frozen(self, million_portfolio):
        with pytest.raises(ValidationError):
            million_portfolio.total_value = 5.0
