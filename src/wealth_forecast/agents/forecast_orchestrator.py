"""
Forecast Orchestrator
Coordinates one full forecast run for a portfolio.

validate request → research every investment (fan-out) → collect (fan-in)
→ compound projection → ForecastResult

A single failed research call fails the whole run. Nothing is retried and
no partial forecast is ever returned.
"""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from datetime import datetime
from typing import Any, Optional, Union

try:
    from crewai import Agent, Task
    HAS_CREWAI = True
except ImportError:
    HAS_CREWAI = False

from pydantic import ValidationError as PydanticValidationError

from wealth_forecast.config.constants import DEFAULT_MAX_WORKERS
from wealth_forecast.exceptions import PortfolioValidationError, error_category
from wealth_forecast.schemas.forecast_output import ForecastResult, InvestmentAssumption
from wealth_forecast.schemas.portfolio import ForecastRequest
from wealth_forecast.tools.compound_projector import build_forecast
from wealth_forecast.tools.forecast_events import (
    ASSUMPTIONS_READY,
    CALCULATION_READY,
    FORECAST_FAILED,
    FORECAST_REQUEST_RECEIVED,
    EventCallback,
    log_event,
)
from wealth_forecast.tools.research_client import ResearchClient

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# CrewAI Agent Builder
# ---------------------------------------------------------------------------

def build_forecast_agent() -> "Agent":
    """Create the Wealth Forecast Agent. Requires crewai."""
    if not HAS_CREWAI:
        raise ImportError("crewai is required for agentic mode. pip install wealth-forecast[agents]")

    from wealth_forecast.agents.crew_tools import (
        AssumptionNormalizerTool,
        CompoundProjectionTool,
    )

    return Agent(
        role="Personal Wealth Forecast Specialist",
        goal=(
            "Turn researched annual return assumptions into a multi-year "
            "conservative/expected/aggressive projection for each investment "
            "and for the whole portfolio."
        ),
        backstory=(
            "You are a careful planner who sanity-checks return assumptions "
            "before compounding them. You never recommend products; you only "
            "normalize assumptions and project balances."
        ),
        tools=[
            AssumptionNormalizerTool(),
            CompoundProjectionTool(),
        ],
        verbose=True,
        allow_delegation=False,
        max_iter=10,
        temperature=0.2,
    )


def build_forecast_task(
    agent: "Agent",
    request_json: str = "",
    assumptions_json: str = "",
) -> "Task":
    """Create the forecast task. Requires crewai."""
    if not HAS_CREWAI:
        raise ImportError("crewai is required for agentic mode. pip install wealth-forecast[agents]")
    return Task(
        description=f"""Project the portfolio's wealth over its horizon.

STEPS:
1. For each investment, normalize its scenario rates with the assumption normalizer
2. Compound each investment under all three scenarios
3. Sum the yearly values across investments into a portfolio total
4. Report the total at years 5, 10, 15, 20, 25, 30 and the final year

Forecast request:
{request_json}

Research assumptions:
{assumptions_json}
""",
        expected_output=(
            "JSON with per-investment yearly projections, the portfolio "
            "total projection, and milestone rows."
        ),
        agent=agent,
    )


# ---------------------------------------------------------------------------
# Request Validation
# ---------------------------------------------------------------------------

def validate_request(data: Union[ForecastRequest, dict[str, Any]]) -> ForecastRequest:
    """
    Enforce the inbound request shape before any external call.

    Raises:
        PortfolioValidationError: The request is malformed, empty, or every
            investment has a zero amount.
    """
    if isinstance(data, ForecastRequest):
        return data
    try:
        return ForecastRequest.model_validate(data)
    except PydanticValidationError as e:
        raise PortfolioValidationError(f"Invalid forecast request: {e}") from e


# ---------------------------------------------------------------------------
# Fan-out / Fan-in
# ---------------------------------------------------------------------------

def gather_assumptions(
    request: ForecastRequest,
    research_client: ResearchClient,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> list[InvestmentAssumption]:
    """
    Research every investment and return assumptions in request order.

    Calls run concurrently on up to max_workers threads. On the first failure
    queued calls are cancelled and that failure is re-raised unchanged;
    calls already in flight are allowed to finish and their results dropped.
    """
    investments = request.investments
    workers = max(1, min(max_workers, len(investments)))

    if workers == 1:
        return [
            research_client.fetch_assumption(inv, request.currency)
            for inv in investments
        ]

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="research") as pool:
        futures = [
            pool.submit(research_client.fetch_assumption, inv, request.currency)
            for inv in investments
        ]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for f in pending:
            f.cancel()
        for f in futures:
            if f in done and f.exception() is not None:
                raise f.exception()

    return [f.result() for f in futures]


# ---------------------------------------------------------------------------
# Deterministic Pipeline
# ---------------------------------------------------------------------------

def run_forecast_pipeline(
    request: Union[ForecastRequest, dict[str, Any]],
    research_client: ResearchClient,
    on_event: EventCallback = log_event,
    max_workers: int = DEFAULT_MAX_WORKERS,
    generated_at: Optional[datetime] = None,
) -> ForecastResult:
    """
    Run one forecast end to end.

    Args:
        request: ForecastRequest or its camelCase wire dict.
        research_client: Assumption source, one call per investment.
        on_event: Checkpoint observer.
        max_workers: Upper bound on concurrent research calls.
        generated_at: Override for the result timestamp.

    Returns:
        Validated ForecastResult.

    Raises:
        PortfolioValidationError: Bad request; nothing was researched.
        ResearchResponseError, ResearchTransportError: A research call failed.
    """
    try:
        request = validate_request(request)
        logger.info(
            f"[Orchestrator] Forecast for {len(request.investments)} investments, "
            f"{request.years} years, {request.currency}"
        )
        on_event(FORECAST_REQUEST_RECEIVED, {
            "years": request.years,
            "currency": request.currency,
            "investmentCount": len(request.investments),
        })

        assumptions = gather_assumptions(request, research_client, max_workers)
        on_event(ASSUMPTIONS_READY, {"count": len(assumptions)})

        result = build_forecast(request, assumptions, generated_at=generated_at)
        final = result.final_total
        on_event(CALCULATION_READY, {
            "years": result.horizon_years,
            "finalConservative": final.conservative_value,
            "finalExpected": final.expected_value,
            "finalAggressive": final.aggressive_value,
        })
    except Exception as e:
        logger.error(f"[Orchestrator] Forecast failed: {e}")
        on_event(FORECAST_FAILED, {
            "error": str(e),
            "category": error_category(e),
        })
        raise

    return result
