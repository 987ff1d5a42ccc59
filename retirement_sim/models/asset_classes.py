"""
Asset classes, target allocations and portfolio valuation snapshots.
"""

from enum import Enum
from typing import Dict, List

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, field_validator


class AssetClass(str, Enum):
    """Asset categories with a historical-return column."""

    STOCKS = "stocks"
    SMALL_CAP = "small_cap"
    BONDS = "bonds"
    CORPORATE_BONDS = "corporate_bonds"
    REITS = "reits"
    REAL_ESTATE = "real_estate"
    PRECIOUS_METALS = "precious_metals"
    CRYPTO = "crypto"
    CASH = "cash"

    @property
    def default_return(self) -> float:
        """Default expected annual return (decimal)."""
        return _DEFAULT_ASSUMPTIONS[self][0]

    @property
    def default_volatility(self) -> float:
        """Default annual volatility (decimal)."""
        return _DEFAULT_ASSUMPTIONS[self][1]


_DEFAULT_ASSUMPTIONS: Dict[AssetClass, tuple] = {
    AssetClass.STOCKS: (0.10, 0.18),
    AssetClass.SMALL_CAP: (0.11, 0.25),
    AssetClass.BONDS: (0.045, 0.06),
    AssetClass.CORPORATE_BONDS: (0.055, 0.08),
    AssetClass.REITS: (0.09, 0.20),
    AssetClass.REAL_ESTATE: (0.08, 0.12),
    AssetClass.PRECIOUS_METALS: (0.05, 0.15),
    AssetClass.CRYPTO: (0.15, 0.60),
    AssetClass.CASH: (0.02, 0.01),
}


class MarketAssumption(BaseModel):
    """Expected return and volatility override for one asset class."""

    model_config = ConfigDict(frozen=True)

    expected_return: float = Field(
        ..., ge=-1, le=2, description="Expected annual return (decimal)"
    )
    volatility: float = Field(
        ..., ge=0, le=2, description="Annual volatility (decimal)"
    )


class Allocation(BaseModel):
    """Target weight per asset class. Weights must sum to 1.0."""

    model_config = ConfigDict(frozen=True)

    weights: Dict[AssetClass, float] = Field(
        ..., min_length=1, description="Target weight by asset class (0-1)"
    )

    @field_validator("weights")
    @classmethod
    def validate_weights(cls, v: Dict[AssetClass, float]) -> Dict[AssetClass, float]:
        """Validate individual weights and that they sum to approximately 1.0."""
        for asset, weight in v.items():
            if weight < 0 or weight > 1:
                raise ValueError(
                    f"Weight for {asset.value} must be between 0 and 1, got {weight}"
                )

        total_weight = sum(v.values())
        if not np.isclose(total_weight, 1.0, atol=1e-6):
            raise ValueError(f"Allocation weights must sum to 1.0, got {total_weight}")
        return v

    @property
    def asset_classes(self) -> List[AssetClass]:
        """Asset classes in allocation order."""
        return list(self.weights.keys())

    def weights_array(self) -> NDArray[np.float64]:
        """Target weights as an array in allocation order."""
        return np.array(list(self.weights.values()), dtype=np.float64)


class Portfolio(BaseModel):
    """Portfolio valuation snapshot handed to the engine."""

    model_config = ConfigDict(frozen=True)

    total_value: float = Field(..., gt=0, description="Current portfolio value")
    allocation: Allocation = Field(..., description="Target allocation")


def create_default_allocation() -> Allocation:
    """Create a default 60/40 stock/bond allocation."""
    return Allocation(weights={AssetClass.STOCKS: 0.6, AssetClass.BONDS: 0.4})


def create_three_asset_allocation() -> Allocation:
    """Create a three-asset allocation (stocks, bonds, REITs)."""
    return Allocation(
        weights={
            AssetClass.STOCKS: 0.5,
            AssetClass.BONDS: 0.3,
            AssetClass.REITS: 0.2,
        }
    )
