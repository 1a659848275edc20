"""
CrewAI tool wrappers for agentic mode.

Both tools delegate to the same pure functions the deterministic pipeline
uses, so an agent run and a pipeline run agree on the numbers.
Requires the `agents` extra (crewai).
"""

from __future__ import annotations

import json
from typing import Optional

from crewai.tools import BaseTool
from pydantic import BaseModel, Field

from wealth_forecast.config.constants import MAX_HORIZON_YEARS, MIN_HORIZON_YEARS
from wealth_forecast.schemas.forecast_output import ResearchPayload
from wealth_forecast.schemas.portfolio import ContributionFrequency, Investment
from wealth_forecast.tools.assumption_normalizer import (
    blend_expected_rate,
    compute_history_anchor,
    order_rates,
    sanitize_rate,
)
from wealth_forecast.tools.compound_projector import (
    annual_contribution,
    project_scenario,
    starting_balance,
)


# ---------------------------------------------------------------------------
# Compound Projection
# ---------------------------------------------------------------------------

class CompoundProjectionInput(BaseModel):
    initial_amount: float = Field(..., ge=0, description="Amount already invested")
    contribution_amount: float = Field(0.0, ge=0, description="Contribution per period")
    contribution_frequency: ContributionFrequency = Field(
        "monthly", description="monthly, yearly, or one_time",
    )
    annual_return_pct: float = Field(..., description="Annual nominal return %")
    years: int = Field(..., ge=MIN_HORIZON_YEARS, le=MAX_HORIZON_YEARS)


class CompoundProjectionTool(BaseTool):
    """Compound one investment at one annual rate over a horizon."""

    name: str = "compound_projection"
    description: str = (
        "Project year-end balances for one investment given its initial "
        "amount, contribution schedule, an annual return % and a horizon "
        "in years. Values are rounded to cents every year."
    )
    args_schema: type[BaseModel] = CompoundProjectionInput

    def _run(
        self,
        initial_amount: float,
        annual_return_pct: float,
        years: int,
        contribution_amount: float = 0.0,
        contribution_frequency: str = "monthly",
    ) -> str:
        investment = Investment(
            id="agent-projection",
            type="other",
            name="Agent projection",
            contribution_frequency=contribution_frequency,
            contribution_amount=contribution_amount,
            initial_amount=initial_amount,
        )
        values = project_scenario(investment, annual_return_pct, years)
        return json.dumps({
            "starting_balance": starting_balance(investment),
            "annual_contribution": annual_contribution(investment),
            "annual_return_pct": annual_return_pct,
            "yearly": [{"year": i + 1, "value": v} for i, v in enumerate(values)],
        })


# ---------------------------------------------------------------------------
# Assumption Normalizer
# ---------------------------------------------------------------------------

class AssumptionNormalizerInput(BaseModel):
    conservative_annual_return_pct: float
    expected_annual_return_pct: float
    aggressive_annual_return_pct: float
    one_year_return_pct: Optional[float] = None
    three_year_cagr_pct: Optional[float] = None
    five_year_cagr_pct: Optional[float] = None
    since_inception_cagr_pct: Optional[float] = None


class AssumptionNormalizerTool(BaseTool):
    """Clamp, history-blend and order a scenario rate triple."""

    name: str = "assumption_normalizer"
    description: str = (
        "Normalize conservative/expected/aggressive annual return % values: "
        "clamp to [-80, 120], blend the expected rate with any 1Y/3Y/5Y/"
        "inception history, and sort so conservative <= expected <= aggressive."
    )
    args_schema: type[BaseModel] = AssumptionNormalizerInput

    def _run(
        self,
        conservative_annual_return_pct: float,
        expected_annual_return_pct: float,
        aggressive_annual_return_pct: float,
        one_year_return_pct: Optional[float] = None,
        three_year_cagr_pct: Optional[float] = None,
        five_year_cagr_pct: Optional[float] = None,
        since_inception_cagr_pct: Optional[float] = None,
    ) -> str:
        payload = ResearchPayload(
            conservative_annual_return_pct=float(conservative_annual_return_pct),
            expected_annual_return_pct=float(expected_annual_return_pct),
            aggressive_annual_return_pct=float(aggressive_annual_return_pct),
            one_year_return_pct=one_year_return_pct,
            three_year_cagr_pct=three_year_cagr_pct,
            five_year_cagr_pct=five_year_cagr_pct,
            since_inception_cagr_pct=since_inception_cagr_pct,
            confidence="medium",
            rationale="",
        )
        anchor = compute_history_anchor(payload)
        expected = blend_expected_rate(sanitize_rate(payload.expected_annual_return_pct), anchor)
        low, mid, high = order_rates(
            sanitize_rate(payload.conservative_annual_return_pct),
            expected,
            sanitize_rate(payload.aggressive_annual_return_pct),
        )
        return json.dumps({
            "conservative_annual_return_pct": low,
            "expected_annual_return_pct": mid,
            "aggressive_annual_return_pct": high,
            "history_anchor": anchor,
        })
