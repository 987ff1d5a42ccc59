"""
Guaranteed income engine for retirement simulations.

This module models defined-benefit income such as Social Security, pensions
and annuities. Each scheduled income is active between a start age and an
optional end age and is either inflation-adjusted (COLA) or fixed in nominal
dollars. The scheduler sums the active entries for a simulated year so the
path simulator can reduce the portfolio draw by that amount.
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class IncomeKind(str, Enum):
    """Type of guaranteed income source."""

    SOCIAL_SECURITY = "social_security"
    PENSION = "pension"
    ANNUITY = "annuity"
    OTHER = "other"

    @property
    def default_inflation_adjusted(self) -> bool:
        """Social Security carries a COLA by default; other plans do not."""
        return self is IncomeKind.SOCIAL_SECURITY


class ScheduledIncome(BaseModel):
    """A guaranteed income stream active over an age range."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4, description="Income identifier")
    name: str = Field(..., min_length=1, description="Income source name")
    kind: IncomeKind = Field(default=IncomeKind.OTHER, description="Income type")
    amount: float = Field(
        ..., ge=0, description="Annual amount in nominal dollars at the start age"
    )
    start_age: int = Field(..., ge=0, le=120, description="First age the income is paid")
    end_age: Optional[int] = Field(
        default=None, ge=0, le=120, description="Last age the income is paid (None = for life)"
    )
    inflation_adjusted: bool = Field(
        default=False, description="Whether payments rise with inflation (COLA)"
    )

    @field_validator("end_age")
    @classmethod
    def validate_end_age(cls, v: Optional[int], info: ValidationInfo) -> Optional[int]:
        if v is not None and "start_age" in info.data:
            if v < info.data["start_age"]:
                raise ValueError("End age must be >= start age")
        return v

    def is_active(self, age: int) -> bool:
        """Check if the income is paid at the given age."""
        if age < self.start_age:
            return False
        if self.end_age is not None and age > self.end_age:
            return False
        return True

    def nominal_amount(self, age: int, inflation_index: float) -> float:
        """
        Nominal payment for a simulated year.

        Args:
            age: Age during the simulated year
            inflation_index: Cumulative inflation factor applied to adjusted income

        Returns:
            Payment in nominal dollars (0 when inactive)
        """
        if not self.is_active(age):
            return 0.0
        if self.inflation_adjusted:
            return self.amount * inflation_index
        return self.amount

    def real_amount(self, years_into_retirement: int, inflation_rate: float) -> float:
        """Real (inflation-deflated) value of the payment.

        COLA income keeps its purchasing power; fixed nominal income erodes
        at the inflation rate, starting from the first year of retirement.
        ``years_into_retirement`` is 1 in the first retirement year and 0
        before retirement, when no erosion has happened yet.
        """
        if self.inflation_adjusted:
            return self.amount
        years_eroded = max(years_into_retirement - 1, 0)
        return self.amount / (1 + inflation_rate) ** years_eroded

    def present_value(
        self,
        current_age: int,
        discount_rate: float = 0.03,
        life_expectancy: int = 90,
    ) -> float:
        """Present value of the payments from ``current_age`` to ``life_expectancy``."""
        payments = [
            self.amount if self.is_active(age) else 0.0
            for age in range(current_age, life_expectancy + 1)
        ]
        return calculate_income_present_value(payments, discount_rate)


class IncomeScheduler:
    """Sums guaranteed income for each simulated year.

    The scheduler is immutable after construction and shared by every path.
    """

    def __init__(self, incomes: Iterable[ScheduledIncome] = ()):
        self.incomes: List[ScheduledIncome] = list(incomes)

    def __len__(self) -> int:
        return len(self.incomes)

    def income_for_year(
        self, age: int, years_into_retirement: int, inflation_index: float
    ) -> float:
        """
        Total guaranteed income for a simulated year.

        Args:
            age: Age during the simulated year
            years_into_retirement: 1 in the first retirement year, 0 before retirement
            inflation_index: Cumulative inflation factor for the year

        Returns:
            Sum of all active payments in nominal dollars
        """
        return sum(
            income.nominal_amount(age, inflation_index) for income in self.incomes
        )

    def income_breakdown(self, age: int, inflation_index: float) -> Dict[str, float]:
        """Per-source payments for a simulated year, omitting inactive sources."""
        breakdown: Dict[str, float] = {}
        for income in self.incomes:
            amount = income.nominal_amount(age, inflation_index)
            if amount > 0:
                breakdown[income.name] = breakdown.get(income.name, 0.0) + amount
        return breakdown

    def total_present_value(
        self, current_age: int, discount_rate: float = 0.03, life_expectancy: int = 90
    ) -> float:
        """Present value of all scheduled income."""
        return sum(
            income.present_value(current_age, discount_rate, life_expectancy)
            for income in self.incomes
        )


def validate_income_timing(
    incomes: Iterable[ScheduledIncome], starting_age: int, final_age: int
) -> List[str]:
    """
    Check scheduled income against the simulated age range.

    Args:
        incomes: Scheduled incomes
        starting_age: Age at the first simulated year
        final_age: Age at the last simulated year

    Returns:
        List of warnings (empty if every income falls inside the range)
    """
    warnings = []

    for income in incomes:
        if income.start_age > final_age:
            warnings.append(f"{income.name} starts after the simulation ends")
        if income.end_age is not None and income.end_age < starting_age:
            warnings.append(f"{income.name} ends before the simulation begins")

    return warnings


def calculate_income_present_value(
    income_series: List[float], discount_rate: float
) -> float:
    """
    Calculate the present value of an income stream.

    Args:
        income_series: List of annual income amounts, first entry undiscounted
        discount_rate: Annual discount rate

    Returns:
        Present value of the income stream
    """
    if not income_series:
        return 0.0

    present_value = 0.0
    for years_from_start, amount in enumerate(income_series):
        discount_factor = (1 + discount_rate) ** years_from_start
        present_value += amount / discount_factor

    return present_value
