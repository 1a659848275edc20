"""
Compound Projector
Deterministic multi-year, three-scenario wealth projection.

Pure functions for:
- Seeding a starting balance and annualizing contributions
- Compounding one investment under one scenario rate
- Building per-investment yearly series and the portfolio total
- Invested-amount series, milestones, and headline totals

No LLM, no I/O. Inputs are never mutated.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from wealth_forecast.config.constants import (
    MILESTONE_YEARS,
    MONEY_DECIMALS,
    MONTHS_PER_YEAR,
)
from wealth_forecast.exceptions import MissingAssumptionError
from wealth_forecast.schemas.forecast_output import (
    ForecastResult,
    InvestedAmount,
    InvestmentAssumption,
    InvestmentProjection,
    Milestone,
    YearlyProjection,
)
from wealth_forecast.schemas.portfolio import ForecastRequest, Investment

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Contributions
# ---------------------------------------------------------------------------

def annual_contribution(investment: Investment) -> float:
    """Recurring cash added at the end of each year."""
    if investment.contribution_frequency == "monthly":
        return investment.contribution_amount * MONTHS_PER_YEAR
    if investment.contribution_frequency == "yearly":
        return investment.contribution_amount
    return 0.0


def starting_balance(investment: Investment) -> float:
    """Initial amount, plus the contribution when it is a one-time lump sum."""
    seed = investment.contribution_amount if investment.contribution_frequency == "one_time" else 0.0
    return investment.initial_amount + seed


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------

def project_scenario(
    investment: Investment,
    annual_return_pct: float,
    years: int,
) -> list[float]:
    """
    Compound one investment at one rate.

    For each year: balance = balance × (1 + rate/100) + annual_contribution,
    recorded to cents. The next year starts from the recorded value.

    Returns:
        Year-end balances for years 1..years.
    """
    balance = starting_balance(investment)
    contribution = annual_contribution(investment)
    growth = 1 + annual_return_pct / 100.0

    values: list[float] = []
    for _ in range(years):
        balance = round(balance * growth + contribution, MONEY_DECIMALS)
        values.append(balance)
    return values


def build_investment_projection(
    investment: Investment,
    assumption: InvestmentAssumption,
    years: int,
) -> InvestmentProjection:
    """Run the three scenarios for one investment and zip them by year."""
    conservative = project_scenario(investment, assumption.conservative_annual_return_pct, years)
    expected = project_scenario(investment, assumption.expected_annual_return_pct, years)
    aggressive = project_scenario(investment, assumption.aggressive_annual_return_pct, years)

    yearly = [
        YearlyProjection(
            year=i + 1,
            conservative_value=conservative[i],
            expected_value=expected[i],
            aggressive_value=aggressive[i],
        )
        for i in range(years)
    ]
    return InvestmentProjection(
        investment_id=investment.id,
        investment_name=investment.name,
        yearly=yearly,
    )


def aggregate_totals(projections: Sequence[InvestmentProjection], years: int) -> list[YearlyProjection]:
    """Sum every investment's value per year and scenario, rounded after summing."""
    totals = []
    for i in range(years):
        conservative = sum(p.yearly[i].conservative_value for p in projections)
        expected = sum(p.yearly[i].expected_value for p in projections)
        aggressive = sum(p.yearly[i].aggressive_value for p in projections)
        totals.append(YearlyProjection(
            year=i + 1,
            conservative_value=round(conservative, MONEY_DECIMALS),
            expected_value=round(expected, MONEY_DECIMALS),
            aggressive_value=round(aggressive, MONEY_DECIMALS),
        ))
    return totals


# ---------------------------------------------------------------------------
# Supporting Series
# ---------------------------------------------------------------------------

def invested_series(investments: Iterable[Investment], years: int) -> list[InvestedAmount]:
    """Cumulative money put in by each year end, with no growth applied."""
    investments = list(investments)
    seed = sum(starting_balance(inv) for inv in investments)
    per_year = sum(annual_contribution(inv) for inv in investments)
    return [
        InvestedAmount(year=y, invested_value=round(seed + y * per_year, MONEY_DECIMALS))
        for y in range(1, years + 1)
    ]


def select_milestones(
    totals: Sequence[YearlyProjection],
    years: int,
    checkpoints: Sequence[int] = MILESTONE_YEARS,
) -> list[Milestone]:
    """
    Pick checkpoint rows from the portfolio total.

    Checkpoints beyond the horizon are skipped and the final year is always
    included. The last milestone is flagged is_final.
    """
    wanted = [y for y in checkpoints if y <= years]
    if years > 0 and years not in wanted:
        wanted.append(years)

    by_year = {row.year: row for row in totals}
    rows = [by_year[y] for y in wanted if y in by_year]
    return [
        Milestone(
            year=row.year,
            conservative_value=row.conservative_value,
            expected_value=row.expected_value,
            aggressive_value=row.aggressive_value,
            is_final=(i == len(rows) - 1),
        )
        for i, row in enumerate(rows)
    ]


def total_current_investment(investments: Iterable[Investment]) -> float:
    return round(sum(inv.initial_amount for inv in investments), MONEY_DECIMALS)


def total_yearly_contribution(investments: Iterable[Investment]) -> float:
    """Annualized recurring contributions; one-time amounts are excluded."""
    return round(sum(annual_contribution(inv) for inv in investments), MONEY_DECIMALS)


# ---------------------------------------------------------------------------
# Forecast
# ---------------------------------------------------------------------------

def match_assumptions(
    investments: Sequence[Investment],
    assumptions: Sequence[InvestmentAssumption],
) -> dict[str, InvestmentAssumption]:
    """
    Re-associate assumptions with investments by id.

    Raises:
        MissingAssumptionError: An investment has no assumption.
    """
    by_id = {a.investment_id: a for a in assumptions}
    for inv in investments:
        if inv.id not in by_id:
            raise MissingAssumptionError(inv.id)
    return by_id


def build_forecast(
    request: ForecastRequest,
    assumptions: Sequence[InvestmentAssumption],
    generated_at: Optional[datetime] = None,
) -> ForecastResult:
    """
    Turn a request and its assumptions into a ForecastResult.

    Args:
        request: Validated forecast request.
        assumptions: One assumption per investment, any order.
        generated_at: Timestamp to stamp on the result; defaults to now (UTC).

    Raises:
        MissingAssumptionError: Any investment lacks an assumption.
    """
    by_id = match_assumptions(request.investments, assumptions)
    years = request.years

    projections = [
        build_investment_projection(inv, by_id[inv.id], years)
        for inv in request.investments
    ]
    totals = aggregate_totals(projections, years)

    stamp = (generated_at or datetime.now(timezone.utc)).isoformat()
    result = ForecastResult(
        generated_at=stamp,
        currency=request.currency,
        assumptions=list(assumptions),
        projections=projections,
        total_projection=totals,
        invested_projection=invested_series(request.investments, years),
        milestones=select_milestones(totals, years),
        total_current_investment=total_current_investment(request.investments),
        total_yearly_contribution=total_yearly_contribution(request.investments),
    )

    final = result.final_total
    logger.info(
        f"[Projector] {len(projections)} investments over {years} years, "
        f"final expected {final.expected_value:,.2f} {request.currency}"
    )
    return result
