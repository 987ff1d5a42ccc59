"""
Simulation parameter models.

This module provides the Pydantic models that hold every input of a Monte
Carlo run other than the portfolio snapshot and the historical data:

1. Time horizon, path count and the pre-retirement accumulation phase
2. Withdrawal strategy selection and its tuning knobs
3. Return sampling mode and parametric market assumptions
4. Aggregation settings (percentiles, histogram buckets, ruin buckets)

Out-of-range fields raise pydantic's ValidationError at construction time.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..asset_classes import AssetClass, MarketAssumption
from ..random_returns import SamplingMode


class WithdrawalStrategyType(str, Enum):
    """Selectable withdrawal strategies."""

    FIXED_REAL = "fixed_real"
    DYNAMIC_PERCENTAGE = "dynamic_percentage"
    GUARDRAILS = "guardrails"
    RMD = "rmd"
    FIXED_DOLLAR = "fixed_dollar"


class WithdrawalConfig(BaseModel):
    """
    Withdrawal strategy selection and parameters.

    Example:
        ```python
        config = WithdrawalConfig(
            strategy=WithdrawalStrategyType.GUARDRAILS,
            base_rate=0.05,
            upper_guardrail=0.20,
            lower_guardrail=0.15,
        )
        ```
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    strategy: WithdrawalStrategyType = Field(
        default=WithdrawalStrategyType.FIXED_REAL, description="Withdrawal strategy"
    )
    base_rate: float = Field(
        default=0.04, gt=0, le=1, description="Withdrawal rate (decimal)"
    )

    # Guardrails (relative to the base rate)
    upper_guardrail: float = Field(
        default=0.20, ge=0, le=1, description="Cut spending above base_rate * (1 + upper)"
    )
    lower_guardrail: float = Field(
        default=0.15, ge=0, le=1, description="Raise spending below base_rate * (1 - lower)"
    )
    guardrail_adjustment: float = Field(
        default=0.10, ge=0, le=1, description="Spending change when a guardrail is hit"
    )

    # Dynamic percentage bounds
    floor_rate: Optional[float] = Field(
        default=None, ge=0, le=1, description="Minimum withdrawal rate"
    )
    ceiling_rate: Optional[float] = Field(
        default=None, gt=0, le=1, description="Maximum withdrawal rate"
    )

    # Fixed dollar
    annual_amount: Optional[float] = Field(
        default=None, gt=0, description="Annual withdrawal for the fixed dollar strategy"
    )
    adjust_for_inflation: bool = Field(
        default=True, description="Whether the fixed dollar amount rises with inflation"
    )

    # RMD
    rmd_table: Optional[Dict[int, float]] = Field(
        default=None, description="Age to divisor table (defaults to the IRS Uniform Lifetime table)"
    )

    @field_validator("rmd_table")
    @classmethod
    def validate_rmd_table(cls, v: Optional[Dict[int, float]]) -> Optional[Dict[int, float]]:
        if v is None:
            return v
        if not v:
            raise ValueError("rmd_table cannot be empty")
        for age, divisor in v.items():
            if divisor <= 0:
                raise ValueError(f"RMD divisor for age {age} must be positive, got {divisor}")
        return v

    @model_validator(mode="after")
    def validate_strategy_fields(self) -> "WithdrawalConfig":
        """Validate the fields the selected strategy depends on."""
        if (
            self.floor_rate is not None
            and self.ceiling_rate is not None
            and self.floor_rate > self.ceiling_rate
        ):
            raise ValueError("floor_rate cannot exceed ceiling_rate")

        if (
            self.strategy == WithdrawalStrategyType.FIXED_DOLLAR
            and self.annual_amount is None
        ):
            raise ValueError("annual_amount is required for the fixed_dollar strategy")

        return self


class SimulationParameters(BaseModel):
    """
    Parameters for a Monte Carlo retirement simulation.

    ``horizon_years`` counts retirement (withdrawal) years only. When
    ``retirement_age`` is later than ``starting_age`` the simulation first runs
    ``retirement_age - starting_age`` accumulation years in which
    ``annual_contribution`` is added instead of withdrawing.

    Example:
        ```python
        parameters = SimulationParameters(
            horizon_years=30,
            num_paths=10000,
            withdrawal=WithdrawalConfig(base_rate=0.04),
            inflation_rate=0.025,
            starting_age=65,
            seed=42,
        )
        ```
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    horizon_years: int = Field(
        ..., gt=0, le=100, description="Number of retirement years to simulate"
    )
    num_paths: int = Field(
        default=10000, ge=1, le=100000, description="Number of Monte Carlo paths"
    )
    withdrawal: WithdrawalConfig = Field(
        default_factory=WithdrawalConfig, description="Withdrawal strategy configuration"
    )
    inflation_rate: float = Field(
        default=0.025, ge=-0.05, le=0.15, description="Annual inflation rate"
    )

    starting_age: int = Field(default=65, ge=0, le=120, description="Age at the first simulated year")
    retirement_age: Optional[int] = Field(
        default=None, ge=0, le=120, description="Age withdrawals begin (defaults to starting_age)"
    )
    annual_contribution: float = Field(
        default=0.0, ge=0, description="Savings added each accumulation year"
    )

    rebalance: bool = Field(
        default=True, description="Rebalance to target weights at each year end"
    )

    sampling_mode: SamplingMode = Field(
        default=SamplingMode.BLOCK_BOOTSTRAP, description="How return sequences are drawn"
    )
    market_assumptions: Dict[AssetClass, MarketAssumption] = Field(
        default_factory=dict,
        description="Expected return/volatility overrides for parametric sampling",
    )
    distribution: Literal["normal", "lognormal"] = Field(
        default="normal", description="Distribution for parametric sampling"
    )
    seed: Optional[int] = Field(
        default=None, ge=0, description="Random seed for reproducible results"
    )

    percentiles: List[float] = Field(
        default_factory=lambda: [10.0, 25.0, 50.0, 75.0, 90.0],
        min_length=1,
        description="Percentiles reported for balances",
    )
    histogram_bins: int = Field(
        default=20, ge=1, le=200, description="Final balance histogram bucket count"
    )
    ruin_bucket_years: int = Field(
        default=5, ge=1, le=100, description="Width of ruin-year distribution buckets"
    )

    @field_validator("percentiles")
    @classmethod
    def validate_percentiles(cls, v: List[float]) -> List[float]:
        """Percentiles must lie in [0, 100]; they are stored sorted and unique."""
        for p in v:
            if p < 0 or p > 100:
                raise ValueError(f"Percentile must be between 0 and 100, got {p}")
        return sorted(set(v))

    @model_validator(mode="after")
    def validate_ages(self) -> "SimulationParameters":
        if self.retirement_age is not None and self.retirement_age < self.starting_age:
            raise ValueError("retirement_age must be >= starting_age")
        return self

    @property
    def effective_retirement_age(self) -> int:
        return self.starting_age if self.retirement_age is None else self.retirement_age

    @property
    def years_until_retirement(self) -> int:
        """Number of accumulation years before withdrawals begin."""
        return self.effective_retirement_age - self.starting_age

    @property
    def total_years(self) -> int:
        """Accumulation years plus retirement years."""
        return self.years_until_retirement + self.horizon_years

    def is_accumulation_year(self, year: int) -> bool:
        return year < self.years_until_retirement

    def create_simulation_summary(self) -> Dict[str, Any]:
        """Create a summary of the simulation parameters."""
        return {
            "total_years": self.total_years,
            "years_until_retirement": self.years_until_retirement,
            "horizon_years": self.horizon_years,
            "num_paths": self.num_paths,
            "strategy": self.withdrawal.strategy.value,
            "base_rate": self.withdrawal.base_rate,
            "inflation_rate": self.inflation_rate,
            "sampling_mode": self.sampling_mode.value,
            "rebalance": self.rebalance,
            "seed": self.seed,
        }
