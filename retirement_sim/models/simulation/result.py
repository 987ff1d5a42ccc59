"""
Simulation result models.

This module provides the read-only models produced by a Monte Carlo run:

1. SimulationRun - the year-by-year trajectory of one path
2. SimulationResult - aggregate statistics across all paths, with the
   individual runs either fully attached or stripped
3. Cancelled - the terminal outcome of a cancelled run

All models serialize to JSON through ``model_dump(mode="json")``. Arrays on
SimulationRun are emitted as plain lists.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

import numpy as np
from numpy.typing import NDArray
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    model_validator,
)

_RUN_ARRAYS = (
    "yearly_balances",
    "yearly_withdrawals",
    "yearly_income",
    "yearly_unmet_need",
)


class SimulationRun(BaseModel):
    """
    Trajectory of a single simulation path.

    All arrays have one entry per simulated year (accumulation years first,
    then retirement years). Balances are year-end values. Once ``ruin_year``
    is set every later balance is exactly 0.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path_index: int = Field(..., ge=0, description="Index of the path within the run")
    yearly_balances: NDArray[np.float64] = Field(
        ..., description="Year-end portfolio balance"
    )
    yearly_withdrawals: NDArray[np.float64] = Field(
        ..., description="Portfolio withdrawal actually taken each year"
    )
    yearly_income: NDArray[np.float64] = Field(
        ..., description="Guaranteed income received each year"
    )
    yearly_unmet_need: NDArray[np.float64] = Field(
        ..., description="Spending need the portfolio could not cover each year"
    )
    ruin_year: Optional[int] = Field(
        default=None, ge=0, description="Year index in which the portfolio was depleted"
    )
    start_index: Optional[int] = Field(
        default=None, description="Historical row index of the first sampled year"
    )
    start_year: Optional[int] = Field(
        default=None, description="Calendar year of the first sampled year"
    )

    @model_validator(mode="before")
    @classmethod
    def coerce_arrays(cls, data: Any) -> Any:
        """Store trajectories as read-only float arrays."""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        for name in _RUN_ARRAYS:
            if name in data:
                values = np.array(data[name], dtype=np.float64)
                if values.ndim != 1:
                    raise ValueError(f"{name} must be one-dimensional, got {values.ndim}D")
                values.setflags(write=False)
                data[name] = values
        return data

    @model_validator(mode="after")
    def validate_trajectory(self) -> "SimulationRun":
        """All sequences have equal length and balances stay 0 after ruin."""
        lengths = {len(getattr(self, name)) for name in _RUN_ARRAYS}
        if len(lengths) != 1:
            raise ValueError(f"Run sequences must have equal length, got {sorted(lengths)}")

        if self.ruin_year is not None:
            if self.ruin_year >= len(self.yearly_balances):
                raise ValueError(
                    f"ruin_year {self.ruin_year} outside of {len(self.yearly_balances)} simulated years"
                )
            if np.any(self.yearly_balances[self.ruin_year :] != 0.0):
                raise ValueError("Balances must be 0 from the ruin year onwards")

        return self

    @field_serializer(*_RUN_ARRAYS)
    def serialize_array(self, values: NDArray[np.float64]) -> List[float]:
        return values.tolist()

    @property
    def years(self) -> int:
        return len(self.yearly_balances)

    @property
    def ruined(self) -> bool:
        return self.ruin_year is not None

    @property
    def success(self) -> bool:
        return self.ruin_year is None

    @property
    def final_balance(self) -> float:
        return float(self.yearly_balances[-1]) if self.years else 0.0

    @property
    def total_withdrawn(self) -> float:
        return float(np.sum(self.yearly_withdrawals))

    @property
    def total_income(self) -> float:
        return float(np.sum(self.yearly_income))

    @property
    def total_unmet_need(self) -> float:
        return float(np.sum(self.yearly_unmet_need))

    @property
    def years_lasted(self) -> int:
        """Simulated years the portfolio funded, counting the ruin year."""
        return self.years if self.ruin_year is None else self.ruin_year + 1

    def max_drawdown(self, initial_balance: Optional[float] = None) -> float:
        """Largest peak-to-trough decline as a fraction of the peak."""
        balances = self.yearly_balances
        if initial_balance is not None:
            balances = np.concatenate(([initial_balance], balances))
        if len(balances) == 0:
            return 0.0

        peaks = np.maximum.accumulate(balances)
        safe_peaks = np.where(peaks > 0, peaks, 1.0)
        drawdowns = np.where(peaks > 0, (peaks - balances) / safe_peaks, 0.0)
        return float(np.max(drawdowns))


class PercentileBand(BaseModel):
    """Year-by-year balance at one percentile across all paths."""

    model_config = ConfigDict(frozen=True)

    percentile: float = Field(..., ge=0, le=100)
    values: List[float] = Field(..., description="Balance per simulated year")


class HistogramBucket(BaseModel):
    """Count of final balances falling in [lower, upper)."""

    model_config = ConfigDict(frozen=True)

    lower: float
    upper: float
    count: int = Field(..., ge=0)


class SequenceRiskBucket(BaseModel):
    """Outcomes grouped by the historical year a path's returns started in."""

    model_config = ConfigDict(frozen=True)

    start_year: int
    run_count: int = Field(..., ge=1)
    average_final_balance: float
    success_rate: float = Field(..., ge=0, le=1)


class RuinYearBucket(BaseModel):
    """Number of paths depleted within a span of simulated years."""

    model_config = ConfigDict(frozen=True)

    first_year: int = Field(..., ge=0, description="First year index in the bucket")
    last_year: int = Field(..., ge=0, description="Last year index in the bucket")
    count: int = Field(..., ge=0)


class SimulationResult(BaseModel):
    """
    Aggregate outcome of a Monte Carlo simulation.

    ``runs`` is either fully populated (one entry per path, in path order) or
    empty. ``without_run_detail`` produces the stripped form; every aggregate
    field is unchanged by stripping.

    Example:
        ```python
        result = orchestrator.run(portfolio, parameters)
        if isinstance(result, SimulationResult):
            print(result.success_rate, result.final_balance_percentiles["p50"])
            summary = result.without_run_detail()
        ```
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4, description="Result identifier")
    created_at: datetime = Field(
        default_factory=datetime.now, description="When the simulation was completed"
    )

    num_runs: int = Field(..., ge=1, description="Number of simulated paths")
    success_rate: float = Field(..., ge=0, le=1, description="Share of paths never ruined")
    probability_of_ruin: float = Field(..., ge=0, le=1, description="Share of paths ruined")

    final_balance_percentiles: Dict[str, float] = Field(
        ..., description="Final balance by percentile label (e.g. 'p10')"
    )
    mean_final_balance: float
    median_final_balance: float
    real_final_balance_percentiles: Dict[str, float] = Field(
        default_factory=dict, description="Final balance percentiles in today's dollars"
    )

    balance_percentiles: List[PercentileBand] = Field(
        ..., description="Per-year percentile bands of the portfolio balance"
    )
    median_withdrawals: List[float] = Field(
        ..., description="Per-year median portfolio withdrawal"
    )
    real_median_balances: List[float] = Field(
        ..., description="Per-year median balance deflated by cumulative inflation"
    )

    histogram: List[HistogramBucket] = Field(
        ..., description="Final balance distribution in equal-width buckets"
    )
    sequence_risk: List[SequenceRiskBucket] = Field(
        default_factory=list, description="Outcomes by starting historical year"
    )
    ruin_year_distribution: List[RuinYearBucket] = Field(
        default_factory=list, description="Ruined paths by depletion year"
    )

    median_total_withdrawn: float = Field(..., ge=0)
    average_annual_withdrawal: float = Field(..., ge=0)
    average_years_until_ruin: Optional[float] = Field(
        default=None, description="Mean years lasted by ruined paths (None when none ruined)"
    )
    max_drawdown: float = Field(..., ge=0, le=1, description="Largest peak-to-trough decline")
    unmet_need_rate: float = Field(
        ..., ge=0, le=1, description="Share of paths with any unmet spending need"
    )

    runs: List[SimulationRun] = Field(
        default_factory=list, description="Per-path trajectories (empty when stripped)"
    )

    @model_validator(mode="after")
    def validate_runs(self) -> "SimulationResult":
        """Runs are either all present or absent."""
        if self.runs and len(self.runs) != self.num_runs:
            raise ValueError(
                f"Result must carry all {self.num_runs} runs or none, got {len(self.runs)}"
            )
        return self

    @property
    def has_run_detail(self) -> bool:
        return len(self.runs) > 0

    @property
    def years(self) -> int:
        return len(self.median_withdrawals)

    def without_run_detail(self) -> "SimulationResult":
        """Copy of this result with the per-path runs removed."""
        return self.model_copy(update={"runs": []})

    def percentile_band(self, percentile: float) -> Optional[PercentileBand]:
        """Look up the balance band for a percentile, if it was computed."""
        for band in self.balance_percentiles:
            if band.percentile == percentile:
                return band
        return None

    def create_summary_report(self) -> Dict[str, Any]:
        """Create a compact summary of the headline statistics."""
        return {
            "num_runs": self.num_runs,
            "success_rate": self.success_rate,
            "probability_of_ruin": self.probability_of_ruin,
            "median_final_balance": self.median_final_balance,
            "mean_final_balance": self.mean_final_balance,
            "final_balance_percentiles": dict(self.final_balance_percentiles),
            "median_total_withdrawn": self.median_total_withdrawn,
            "average_years_until_ruin": self.average_years_until_ruin,
            "max_drawdown": self.max_drawdown,
        }


class Cancelled(BaseModel):
    """Terminal outcome of a cancelled simulation. Carries no partial statistics."""

    model_config = ConfigDict(frozen=True)

    requested_paths: int = Field(..., ge=1)
    completed_paths: int = Field(..., ge=0)
