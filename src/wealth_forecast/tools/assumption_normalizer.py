"""
Assumption Normalizer
Turn one investment's validated ResearchPayload into a trustworthy
InvestmentAssumption.

Pure functions for:
- Clamping and rounding scenario rates
- Computing the history anchor from trailing return signals
- Blending the provider's expected rate with that anchor
- Enforcing conservative <= expected <= aggressive by sorting
- Sanitizing, de-duplicating, and capping cited sources

No LLM, no network, no file I/O.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional
from urllib.parse import urlparse, urlunparse

from pydantic import ValidationError as PydanticValidationError

from wealth_forecast.config.constants import (
    HISTORY_ANCHOR_WEIGHT,
    MAX_ANNUAL_RETURN_PCT,
    MAX_SOURCES,
    MIN_ANNUAL_RETURN_PCT,
    MODEL_EXPECTED_WEIGHT,
    ONE_YEAR_SIGNAL_DISCOUNT,
    RATE_DECIMALS,
    REDIRECT_HOSTS,
    REDIRECT_MARKERS,
)
from wealth_forecast.exceptions import ResearchResponseError
from wealth_forecast.schemas.forecast_output import (
    InvestmentAssumption,
    ResearchPayload,
    SourceCitation,
)
from wealth_forecast.schemas.portfolio import Investment

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rates
# ---------------------------------------------------------------------------

def sanitize_rate(value: float) -> float:
    """Round to 2 decimals, then clamp into [-80, 120]."""
    return max(
        MIN_ANNUAL_RETURN_PCT,
        min(MAX_ANNUAL_RETURN_PCT, round(value, RATE_DECIMALS)),
    )


def compute_history_anchor(payload: ResearchPayload) -> Optional[float]:
    """
    Mean of the available historical signals.

    Signals: 3Y CAGR, 5Y CAGR, since-inception CAGR, and the trailing 1Y
    return scaled by ONE_YEAR_SIGNAL_DISCOUNT. YTD is not a signal.

    Returns:
        The anchor, or None when no signal is present.
    """
    signals = [
        payload.three_year_cagr_pct,
        payload.five_year_cagr_pct,
        payload.since_inception_cagr_pct,
        payload.one_year_return_pct * ONE_YEAR_SIGNAL_DISCOUNT
        if payload.one_year_return_pct is not None else None,
    ]
    present = [s for s in signals if s is not None]
    if not present:
        return None
    return sum(present) / len(present)


def blend_expected_rate(model_expected: float, history_anchor: Optional[float]) -> float:
    """
    Blend the sanitized model rate with the history anchor.

    Args:
        model_expected: Already-sanitized expected rate from the provider.
        history_anchor: Output of compute_history_anchor (may be None).

    Returns:
        Sanitized blended rate, or model_expected unchanged when there is
        no anchor.
    """
    if history_anchor is None:
        return model_expected
    return sanitize_rate(
        model_expected * MODEL_EXPECTED_WEIGHT + history_anchor * HISTORY_ANCHOR_WEIGHT
    )


def order_rates(conservative: float, expected: float, aggressive: float) -> tuple[float, float, float]:
    """Sort the three rates ascending and reassign them positionally."""
    low, mid, high = sorted((conservative, expected, aggressive))
    return low, mid, high


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

def normalize_url(value: str) -> Optional[str]:
    """
    Strip the fragment and drop grounding-redirect links.

    Returns:
        The normalized URL, or None if it cannot be parsed, is not an
        absolute http(s) URL, or points at a redirect host/path.
    """
    try:
        parsed = urlparse(value.strip())
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None

    host = (parsed.hostname or "").lower()
    if any(host == h or host.endswith("." + h) for h in REDIRECT_HOSTS):
        return None

    normalized = urlunparse(parsed._replace(path=parsed.path or "/", fragment=""))
    if any(marker in normalized for marker in REDIRECT_MARKERS):
        return None
    return normalized


def sanitize_sources(
    sources: Iterable[SourceCitation],
    primary_url: Optional[str] = None,
    limit: int = MAX_SOURCES,
) -> list[SourceCitation]:
    """
    Normalize, filter, de-duplicate, and cap citations.

    Args:
        sources: Citations reported by the provider, in order.
        primary_url: The investment's own source URL; placed first.
        limit: Maximum citations kept.

    Returns:
        At most `limit` citations, unique by normalized URI, in order of
        first appearance.
    """
    candidates: list[SourceCitation] = []
    if primary_url:
        candidates.append(SourceCitation.model_validate(primary_url))
    candidates.extend(sources)

    result: list[SourceCitation] = []
    seen: set[str] = set()
    for citation in candidates:
        uri = normalize_url(citation.uri)
        if uri is None or uri in seen:
            continue
        seen.add(uri)
        result.append(citation.model_copy(update={"uri": uri}))
        if len(result) >= limit:
            break
    return result


# ---------------------------------------------------------------------------
# Payload → Assumption
# ---------------------------------------------------------------------------

def validate_payload(data: object, investment: Investment) -> ResearchPayload:
    """
    Apply the payload schema once, at the provider boundary.

    Raises:
        ResearchResponseError: The structure is wrong anywhere. No partial repair.
    """
    try:
        return ResearchPayload.model_validate(data)
    except PydanticValidationError as e:
        raise ResearchResponseError(
            f"Research provider returned invalid assumption payload for "
            f"{investment.name}: {e}",
            investment_id=investment.id,
            investment_name=investment.name,
        ) from e


def normalize_assumption(
    investment: Investment,
    payload: ResearchPayload,
) -> InvestmentAssumption:
    """
    Build the final assumption for exactly this investment.

    Steps: clamp rates → anchor → blend expected → sort → clean sources →
    copy through confidence, rationale, and historical fields.
    """
    conservative = sanitize_rate(payload.conservative_annual_return_pct)
    expected_raw = sanitize_rate(payload.expected_annual_return_pct)
    aggressive = sanitize_rate(payload.aggressive_annual_return_pct)

    anchor = compute_history_anchor(payload)
    expected = blend_expected_rate(expected_raw, anchor)

    low, mid, high = order_rates(conservative, expected, aggressive)
    if (low, mid, high) != (conservative, expected, aggressive):
        logger.info(
            f"[Normalizer] {investment.id}: provider scenarios out of order "
            f"({conservative}/{expected}/{aggressive}), reassigned to {low}/{mid}/{high}"
        )

    sources = sanitize_sources(payload.sources, primary_url=investment.source_url)

    return InvestmentAssumption(
        investment_id=investment.id,
        conservative_annual_return_pct=low,
        expected_annual_return_pct=mid,
        aggressive_annual_return_pct=high,
        ytd_return_pct=payload.ytd_return_pct,
        one_year_return_pct=payload.one_year_return_pct,
        three_year_cagr_pct=payload.three_year_cagr_pct,
        five_year_cagr_pct=payload.five_year_cagr_pct,
        since_inception_cagr_pct=payload.since_inception_cagr_pct,
        history_as_of=payload.history_as_of,
        confidence=payload.confidence,
        rationale=payload.rationale,
        sources=sources,
    )
