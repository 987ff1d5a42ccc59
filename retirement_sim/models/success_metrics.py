"""
Success metrics module for Monte Carlo simulation.

This module turns the collected per-path runs into a SimulationResult:
success rate, final balance percentiles, per-year percentile bands, a
histogram of final balances, sequence-of-returns risk by starting historical
year, the ruin-year distribution and withdrawal statistics.

Runs are put in path order before any arithmetic, so the same set of runs
always aggregates to bit-identical statistics whatever order the workers
finished in.
"""

from typing import Dict, List, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from .simulation.config import SimulationParameters
from .simulation.result import (
    HistogramBucket,
    PercentileBand,
    RuinYearBucket,
    SequenceRiskBucket,
    SimulationResult,
    SimulationRun,
)


def percentile_label(percentile: float) -> str:
    """Key used for a percentile in result dictionaries, e.g. 10 -> 'p10'."""
    return f"p{percentile:g}"


class ResultAggregator:
    """Aggregates completed runs into a SimulationResult."""

    def __init__(
        self,
        runs: Sequence[SimulationRun],
        parameters: SimulationParameters,
        initial_balance: Optional[float] = None,
    ):
        """Initialize the aggregator.

        Args:
            runs: Completed runs, in any order
            parameters: Parameters the runs were simulated with
            initial_balance: Starting portfolio value, used as the first
                drawdown peak

        Raises:
            ValueError: If there are no runs, path indices repeat, or the runs
                have different lengths
        """
        if not runs:
            raise ValueError("Cannot aggregate an empty set of runs")

        self.runs: List[SimulationRun] = sorted(runs, key=lambda run: run.path_index)
        self.parameters = parameters
        self.initial_balance = initial_balance

        indices = [run.path_index for run in self.runs]
        if len(set(indices)) != len(indices):
            raise ValueError("Runs must have unique path indices")
        if len({run.years for run in self.runs}) != 1:
            raise ValueError("All runs must cover the same number of years")

        # (paths, years) matrices in path order
        self.balances = np.vstack([run.yearly_balances for run in self.runs])
        self.withdrawals = np.vstack([run.yearly_withdrawals for run in self.runs])
        self.unmet_need = np.vstack([run.yearly_unmet_need for run in self.runs])
        self.final_balances: NDArray[np.float64] = self.balances[:, -1]
        self._full: Optional[SimulationResult] = None

    @property
    def num_runs(self) -> int:
        return len(self.runs)

    @property
    def years(self) -> int:
        return int(self.balances.shape[1])

    def full(self) -> SimulationResult:
        """Aggregate result carrying every run, built once per aggregator."""
        if self._full is None:
            self._full = self._build()
        return self._full

    def stripped(self) -> SimulationResult:
        """The full result without per-path runs, sharing its id and timestamp."""
        return self.full().without_run_detail()

    def _build(self) -> SimulationResult:
        ruined = [run for run in self.runs if run.ruined]
        success_rate = 1.0 - len(ruined) / self.num_runs

        total_withdrawn = np.sum(self.withdrawals, axis=1)
        median_total_withdrawn = float(np.median(total_withdrawn))

        return SimulationResult(
            num_runs=self.num_runs,
            success_rate=success_rate,
            probability_of_ruin=len(ruined) / self.num_runs,
            final_balance_percentiles=self._final_percentiles(self.final_balances),
            mean_final_balance=float(np.mean(self.final_balances)),
            median_final_balance=float(np.median(self.final_balances)),
            real_final_balance_percentiles=self._final_percentiles(
                self.final_balances / self._deflator(self.years)
            ),
            balance_percentiles=self._balance_percentiles(),
            median_withdrawals=np.median(self.withdrawals, axis=0).tolist(),
            real_median_balances=self._real_median_balances(),
            histogram=self._histogram(),
            sequence_risk=self._sequence_risk(),
            ruin_year_distribution=self._ruin_year_distribution(),
            median_total_withdrawn=median_total_withdrawn,
            average_annual_withdrawal=median_total_withdrawn / self.parameters.horizon_years,
            average_years_until_ruin=(
                float(np.mean([run.years_lasted for run in ruined])) if ruined else None
            ),
            max_drawdown=max(run.max_drawdown(self.initial_balance) for run in self.runs),
            unmet_need_rate=float(np.mean(np.any(self.unmet_need > 0, axis=1))),
            runs=self.runs,
        )

    def _deflator(self, years_elapsed: int) -> float:
        return (1 + self.parameters.inflation_rate) ** years_elapsed

    def _final_percentiles(self, values: NDArray[np.float64]) -> Dict[str, float]:
        """Percentiles of final balances keyed by label."""
        levels = self.parameters.percentiles
        computed = np.percentile(values, levels)
        return {
            percentile_label(level): float(value)
            for level, value in zip(levels, computed)
        }

    def _balance_percentiles(self) -> List[PercentileBand]:
        """Per-year balance at each configured percentile."""
        levels = self.parameters.percentiles
        # (num_percentiles, years)
        bands = np.percentile(self.balances, levels, axis=0)
        return [
            PercentileBand(percentile=level, values=band.tolist())
            for level, band in zip(levels, bands)
        ]

    def _real_median_balances(self) -> List[float]:
        """Per-year median balance in today's dollars (year-end values)."""
        medians = np.median(self.balances, axis=0)
        deflators = (1 + self.parameters.inflation_rate) ** np.arange(1, self.years + 1)
        return (medians / deflators).tolist()

    def _histogram(self) -> List[HistogramBucket]:
        """Equal-width buckets over [0, max final balance]."""
        upper = max(float(np.max(self.final_balances)), 1.0)
        counts, edges = np.histogram(
            self.final_balances, bins=self.parameters.histogram_bins, range=(0.0, upper)
        )
        return [
            HistogramBucket(lower=float(edges[i]), upper=float(edges[i + 1]), count=int(count))
            for i, count in enumerate(counts)
        ]

    def _sequence_risk(self) -> List[SequenceRiskBucket]:
        """Outcomes grouped by the calendar year a path's returns started in."""
        groups: Dict[int, List[SimulationRun]] = {}
        for run in self.runs:
            if run.start_year is not None:
                groups.setdefault(run.start_year, []).append(run)

        buckets = []
        for start_year in sorted(groups):
            group = groups[start_year]
            buckets.append(
                SequenceRiskBucket(
                    start_year=start_year,
                    run_count=len(group),
                    average_final_balance=float(
                        np.mean([run.final_balance for run in group])
                    ),
                    success_rate=sum(run.success for run in group) / len(group),
                )
            )
        return buckets

    def _ruin_year_distribution(self) -> List[RuinYearBucket]:
        """Ruined paths counted in fixed-width spans of simulated years."""
        width = self.parameters.ruin_bucket_years
        ruin_years = np.array(
            [run.ruin_year for run in self.runs if run.ruin_year is not None], dtype=np.int64
        )

        buckets = []
        for first_year in range(0, self.years, width):
            last_year = min(first_year + width, self.years) - 1
            count = int(np.sum((ruin_years >= first_year) & (ruin_years <= last_year)))
            buckets.append(
                RuinYearBucket(first_year=first_year, last_year=last_year, count=count)
            )
        return buckets


def compare_success_metrics(results: Dict[str, SimulationResult]) -> Dict[str, Dict[str, float]]:
    """
    Compare headline metrics across several simulation results.

    Args:
        results: Mapping of label (e.g. strategy name) to result

    Returns:
        Dictionary containing comparison results
    """
    comparison = {}

    for label, result in results.items():
        comparison[label] = {
            "success_rate": result.success_rate,
            "median_final_balance": result.median_final_balance,
            "mean_final_balance": result.mean_final_balance,
            "median_total_withdrawn": result.median_total_withdrawn,
            "max_drawdown": result.max_drawdown,
            "unmet_need_rate": result.unmet_need_rate,
        }

    return comparison


def generate_success_report(result: SimulationResult, strategy_name: str = "Strategy") -> str:
    """
    Generate a human-readable success report.

    Args:
        result: Simulation result
        strategy_name: Name of the strategy

    Returns:
        Formatted success report string
    """
    percentile_lines = "\n".join(
        f"  {label.upper()}: ${value:,.0f}"
        for label, value in result.final_balance_percentiles.items()
    )
    years_until_ruin = (
        f"{result.average_years_until_ruin:.1f}"
        if result.average_years_until_ruin is not None
        else "n/a"
    )

    report = f"""
=== {strategy_name} Success Report ===

Success Rate: {result.success_rate:.1%}
Paths: {result.num_runs}

Final Balance Percentiles:
{percentile_lines}

Risk Metrics:
  Probability of Ruin: {result.probability_of_ruin:.1%}
  Average Years Until Ruin: {years_until_ruin}
  Max Drawdown: {result.max_drawdown:.1%}
  Unmet Need Rate: {result.unmet_need_rate:.1%}

Withdrawal Statistics:
  Median Total Withdrawn: ${result.median_total_withdrawn:,.0f}
  Avg Annual Withdrawal: ${result.average_annual_withdrawal:,.0f}
"""

    return report
