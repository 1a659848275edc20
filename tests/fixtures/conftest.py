"""
Shared test builders for wealth forecast tests.
Investments, requests, provider payloads, and mock anthropic responses.
"""

from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any, Callable, Optional
from unittest.mock import MagicMock

from wealth_forecast.schemas.forecast_output import InvestmentAssumption
from wealth_forecast.schemas.portfolio import ForecastRequest, Investment


# ---------------------------------------------------------------------------
# Portfolio builders
# ---------------------------------------------------------------------------

def investment_wire(**overrides: Any) -> dict[str, Any]:
    """camelCase investment dict, as the inbound request carries it."""
    data = {
        "id": "inv-1",
        "type": "mutual_fund",
        "name": "Parag Parikh Flexi Cap",
        "contributionFrequency": "monthly",
        "contributionAmount": 10000,
        "initialAmount": 250000,
    }
    data.update(overrides)
    return data


def make_investment(**overrides: Any) -> Investment:
    return Investment.model_validate(investment_wire(**overrides))


# One-time lump sum: starting balance 1500
LUMP_SUM = {
    "id": "lump",
    "type": "fixed_deposit",
    "name": "SBI Fixed Deposit",
    "contributionFrequency": "one_time",
    "contributionAmount": 500,
    "initialAmount": 1000,
}

# Monthly SIP: 1200 per year, nothing up front
MONTHLY_SIP = {
    "id": "sip",
    "type": "mutual_fund",
    "name": "Nifty 50 Index Fund",
    "contributionFrequency": "monthly",
    "contributionAmount": 100,
    "initialAmount": 0,
}

YEARLY_PPF = {
    "id": "ppf",
    "type": "ppf",
    "name": "Public Provident Fund",
    "contributionFrequency": "yearly",
    "contributionAmount": 100,
    "initialAmount": 1000,
}


def request_wire(
    investments: Optional[list[dict[str, Any]]] = None,
    years: int = 2,
    currency: str = "INR",
) -> dict[str, Any]:
    return {
        "years": years,
        "currency": currency,
        "investments": investments if investments is not None else [LUMP_SUM, MONTHLY_SIP],
    }


def make_request(**kwargs: Any) -> ForecastRequest:
    return ForecastRequest.model_validate(request_wire(**kwargs))


# ---------------------------------------------------------------------------
# Assumptions and provider payloads
# ---------------------------------------------------------------------------

def make_assumption(
    investment_id: str,
    conservative: float = 6.0,
    expected: float = 10.0,
    aggressive: float = 14.0,
) -> InvestmentAssumption:
    return InvestmentAssumption(
        investment_id=investment_id,
        conservative_annual_return_pct=conservative,
        expected_annual_return_pct=expected,
        aggressive_annual_return_pct=aggressive,
        confidence="medium",
        rationale="Long-run equity returns in line with nominal GDP growth.",
    )


def make_payload(**overrides: Any) -> dict[str, Any]:
    """A well-formed provider payload with no historical signals."""
    data = {
        "expectedAnnualReturnPct": 10.0,
        "conservativeAnnualReturnPct": 6.0,
        "aggressiveAnnualReturnPct": 14.0,
        "ytdReturnPct": None,
        "oneYearReturnPct": None,
        "threeYearCagrPct": None,
        "fiveYearCagrPct": None,
        "sinceInceptionCagrPct": None,
        "historyAsOf": None,
        "confidence": "medium",
        "rationale": "Diversified equity exposure with a long track record.",
        "sources": [
            {"title": "AMFI", "uri": "https://www.amfiindia.com/nav-history"},
            "https://www.valueresearchonline.com/funds/",
        ],
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# Mock anthropic responses
# ---------------------------------------------------------------------------

def mock_response(
    text: str,
    input_tokens: int = 1200,
    output_tokens: int = 300,
    web_searches: int = 2,
) -> SimpleNamespace:
    """Shape of an anthropic Messages response with web search enabled."""
    return SimpleNamespace(
        content=[
            SimpleNamespace(type="server_tool_use", name="web_search"),
            SimpleNamespace(type="web_search_tool_result", content=[]),
            SimpleNamespace(type="text", text=text),
        ],
        usage=SimpleNamespace(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            server_tool_use=SimpleNamespace(web_search_requests=web_searches),
        ),
    )


def payload_response(**overrides: Any) -> SimpleNamespace:
    return mock_response(json.dumps(make_payload(**overrides)))


def mock_client(response: Any = None) -> MagicMock:
    """anthropic.Anthropic stand-in whose messages.create returns response."""
    client = MagicMock()
    client.messages.create.return_value = response if response is not None else payload_response()
    return client


def prompt_of(call_kwargs: dict[str, Any]) -> str:
    return call_kwargs["messages"][0]["content"]


def routing_client(handler: Callable[[str], Any]) -> MagicMock:
    """Client that answers each request with handler(prompt)."""
    client = MagicMock()
    client.messages.create.side_effect = lambda **kwargs: handler(prompt_of(kwargs))
    return client
