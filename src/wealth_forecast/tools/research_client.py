"""
Research Client
Obtain one investment's return assumption from the research provider
(an Anthropic model with the web search tool enabled).

Flow per investment:
    build prompt → messages.create → collect text → strip fences →
    json.loads → ResearchPayload schema → normalize_assumption

Any failure is fatal for that investment and is raised with the
investment's name in the message. No retries happen here: the SDK client is
built with max_retries=0 and the caller decides what a failure means.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

import anthropic

from wealth_forecast.config.constants import (
    DEFAULT_MAX_SEARCH_USES,
    DEFAULT_RESEARCH_MODEL,
    RATIONALE_MAX_CHARS,
    RAW_RESPONSE_LOG_CHARS,
    RESEARCH_MAX_TOKENS,
)
from wealth_forecast.config.settings import ForecastSettings
from wealth_forecast.exceptions import ResearchResponseError, ResearchTransportError
from wealth_forecast.schemas.forecast_output import InvestmentAssumption
from wealth_forecast.schemas.portfolio import Investment
from wealth_forecast.tools.assumption_normalizer import (
    compute_history_anchor,
    normalize_assumption,
    validate_payload,
)
from wealth_forecast.tools.forecast_events import (
    RESEARCH_PARSED,
    RESEARCH_RAW_RESPONSE,
    RESEARCH_REQUEST,
    EventCallback,
    log_event,
)
from wealth_forecast.tools.token_tracker import TokenTracker
from wealth_forecast.tools.token_tracker import tracker as default_tracker

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

_PAYLOAD_SCHEMA = (
    '{"expectedAnnualReturnPct":number,"conservativeAnnualReturnPct":number,'
    '"aggressiveAnnualReturnPct":number,"ytdReturnPct":number|null,'
    '"oneYearReturnPct":number|null,"threeYearCagrPct":number|null,'
    '"fiveYearCagrPct":number|null,"sinceInceptionCagrPct":number|null,'
    '"historyAsOf":string|null,"confidence":"low|medium|high","rationale":string,'
    '"sources":[{"title":string,"uri":string}]}'
)

_RESEARCH_PROMPT = """\
You are a financial research assistant.
Use web search to estimate forward-looking annualized return assumptions from historical trend context.
Respond ONLY with minified JSON. No markdown, no code fences, no extra text.
JSON schema:
{schema}
Investment type: {type}
Investment name: {name}
Currency: {currency}
Ticker: {ticker}
Institution: {institution}
Source URL: {source_url}
Guidelines:
0) If Source URL is provided, prioritize that URL for data extraction and cite it first when valid.
0.1) If Source URL is not provided, independently search the web and pick the most authoritative sources available.
1) Conservative <= Expected <= Aggressive.
2) Return percentages should be annual nominal rates.
3) For stocks and mutual funds, try to include YTD, 1Y, 3Y CAGR, 5Y CAGR and since inception CAGR.
4) Keep rationale under {rationale_chars} characters.
5) Provide 2-5 direct canonical sources and avoid redirect/tracking URLs.
"""


def build_research_prompt(investment: Investment, currency: str) -> str:
    """Render the research request for one investment."""
    return _RESEARCH_PROMPT.format(
        schema=_PAYLOAD_SCHEMA,
        type=investment.type,
        name=investment.name,
        currency=currency,
        ticker=investment.ticker or "n/a",
        institution=investment.institution or "n/a",
        source_url=investment.source_url or "n/a",
        rationale_chars=RATIONALE_MAX_CHARS,
    )


# ---------------------------------------------------------------------------
# Response Parsing
# ---------------------------------------------------------------------------

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")


def response_text(response: Any) -> str:
    """Concatenate every text block of a messages response.

    With web search enabled the content also carries tool-use and search
    result blocks; only text blocks hold the answer.
    """
    parts = []
    for block in getattr(response, "content", None) or []:
        text = getattr(block, "text", None)
        if isinstance(text, str):
            parts.append(text)
    return "".join(parts)


def clean_json_block(text: str) -> str:
    """Strip code fences and any prose around the outermost JSON object."""
    text = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text.strip())).strip()
    if text.startswith("{"):
        return text
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return text
    return text[start:end + 1]


def parse_research_response(text: str, investment: Investment) -> dict:
    """
    Decode the provider's text into a JSON object.

    Raises:
        ResearchResponseError: Text is empty, not JSON, or not an object.
    """
    raw = clean_json_block(text)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ResearchResponseError(
            f"Research provider returned invalid assumption payload for "
            f"{investment.name}: {e}",
            investment_id=investment.id,
            investment_name=investment.name,
        ) from e
    if not isinstance(data, dict):
        raise ResearchResponseError(
            f"Research provider returned invalid assumption payload for "
            f"{investment.name}: expected a JSON object, got {type(data).__name__}",
            investment_id=investment.id,
            investment_name=investment.name,
        )
    return data


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ResearchClient:
    """Requests and validates assumptions, one investment at a time.

    Safe to share across threads: it holds no per-request state.
    """

    def __init__(
        self,
        client: Any,
        model: str = DEFAULT_RESEARCH_MODEL,
        max_search_uses: int = DEFAULT_MAX_SEARCH_USES,
        on_event: EventCallback = log_event,
        token_tracker: Optional[TokenTracker] = None,
    ):
        self._client = client
        self.model = model
        self.max_search_uses = max_search_uses
        self._on_event = on_event
        self._tracker = token_tracker or default_tracker

    @classmethod
    def from_settings(
        cls,
        settings: ForecastSettings,
        on_event: EventCallback = log_event,
        token_tracker: Optional[TokenTracker] = None,
    ) -> "ResearchClient":
        """Build an Anthropic-backed client from explicit settings."""
        client = anthropic.Anthropic(
            api_key=settings.anthropic_api_key,
            timeout=settings.request_timeout_s,
            max_retries=0,
        )
        return cls(
            client,
            model=settings.research_model,
            max_search_uses=settings.max_search_uses,
            on_event=on_event,
            token_tracker=token_tracker,
        )

    def _web_search_tool(self) -> dict:
        return {
            "type": "web_search_20250305",
            "name": "web_search",
            "max_uses": self.max_search_uses,
        }

    def fetch_assumption(self, investment: Investment, currency: str) -> InvestmentAssumption:
        """
        Research one investment and return its validated assumption.

        Raises:
            ResearchTransportError: The provider call failed outright.
            ResearchResponseError: The answer was unparseable or off-schema.
        """
        self._on_event(RESEARCH_REQUEST, {
            "investmentId": investment.id,
            "type": investment.type,
            "hasSourceUrl": bool(investment.source_url),
            "ticker": investment.ticker or None,
        })

        prompt = build_research_prompt(investment, currency)
        try:
            response = self._client.messages.create(
                model=self.model,
                max_tokens=RESEARCH_MAX_TOKENS,
                messages=[{"role": "user", "content": prompt}],
                tools=[self._web_search_tool()],
            )
        except anthropic.APIError as e:
            logger.warning(f"[Research] {investment.id}: provider call failed: {e}")
            raise ResearchTransportError(
                f"Research request failed for {investment.name}: {e}",
                investment_id=investment.id,
                investment_name=investment.name,
            ) from e

        self._tracker.track(
            "fetch_assumption", response, model=self.model, investment_id=investment.id,
        )

        text = response_text(response)
        self._on_event(RESEARCH_RAW_RESPONSE, {
            "investmentId": investment.id,
            "raw": text[:RAW_RESPONSE_LOG_CHARS],
        })

        logger.debug(f"[Research] {investment.id}: {len(text)} chars of response text")
        data = parse_research_response(text, investment)
        payload = validate_payload(data, investment)
        assumption = normalize_assumption(investment, payload)

        self._on_event(RESEARCH_PARSED, {
            "investmentId": investment.id,
            "conservative": assumption.conservative_annual_return_pct,
            "expected": assumption.expected_annual_return_pct,
            "aggressive": assumption.aggressive_annual_return_pct,
            "historyAnchor": compute_history_anchor(payload),
            "sourceCount": len(assumption.sources),
        })
        return assumption
