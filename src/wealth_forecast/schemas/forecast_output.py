"""
Forecast Output Schemas

Two families of models live here:
- ResearchPayload: the untrusted JSON the research provider returns for one
  investment. Strictly typed; any mismatch rejects the whole payload.
- InvestmentAssumption / ForecastResult: the validated, sanitized values the
  rest of the pipeline consumes and hands to persistence and presentation.
"""

from __future__ import annotations

from typing import Literal, Optional
from urllib.parse import urlparse

from pydantic import Field, field_validator, model_validator

from wealth_forecast.config.constants import (
    MAX_ANNUAL_RETURN_PCT,
    MAX_SOURCES,
    MIN_ANNUAL_RETURN_PCT,
)
from wealth_forecast.schemas.portfolio import ForecastRequest, WireModel


Confidence = Literal["low", "medium", "high"]


# ---------------------------------------------------------------------------
# Source Citations
# ---------------------------------------------------------------------------

def _host_of(uri: str) -> str:
    host = urlparse(uri).netloc
    return host[4:] if host.startswith("www.") else host


class SourceCitation(WireModel):
    """A cited source: display label plus URL."""

    title: str
    uri: str

    @model_validator(mode="before")
    @classmethod
    def coerce_citation(cls, data):
        """
        Accept a bare URL string or a {title, uri} object.

        A bare string becomes {title: <host>, uri: <string>}. Objects may use
        "url" in place of "uri"; an empty or missing title falls back to the
        host. Anything else is rejected.
        """
        if isinstance(data, str):
            return {"title": _host_of(data) or data, "uri": data}
        if isinstance(data, dict):
            uri = data.get("uri", data.get("url"))
            if not isinstance(uri, str):
                raise ValueError("source object must carry a string 'uri'")
            title = data.get("title")
            if title is not None and not isinstance(title, str):
                raise ValueError("source 'title' must be a string")
            return {"title": (title or "").strip() or _host_of(uri) or uri, "uri": uri}
        if isinstance(data, SourceCitation):
            return data
        raise ValueError("source must be a URL string or a {title, uri} object")


# ---------------------------------------------------------------------------
# Raw Research Payload
# ---------------------------------------------------------------------------

class ResearchPayload(WireModel):
    """The provider's structured answer for one investment, before sanitizing."""

    expected_annual_return_pct: float = Field(..., strict=True, allow_inf_nan=False)
    conservative_annual_return_pct: float = Field(..., strict=True, allow_inf_nan=False)
    aggressive_annual_return_pct: float = Field(..., strict=True, allow_inf_nan=False)
    ytd_return_pct: Optional[float] = Field(None, strict=True, allow_inf_nan=False)
    one_year_return_pct: Optional[float] = Field(None, strict=True, allow_inf_nan=False)
    three_year_cagr_pct: Optional[float] = Field(None, strict=True, allow_inf_nan=False)
    five_year_cagr_pct: Optional[float] = Field(None, strict=True, allow_inf_nan=False)
    since_inception_cagr_pct: Optional[float] = Field(None, strict=True, allow_inf_nan=False)
    history_as_of: Optional[str] = Field(None, strict=True)
    confidence: Confidence
    rationale: str = Field(..., strict=True)
    sources: list[SourceCitation] = Field(default_factory=list)

    @field_validator("sources", mode="before")
    @classmethod
    def sources_default_on_null(cls, v):
        return [] if v is None else v


# ---------------------------------------------------------------------------
# Validated Assumption
# ---------------------------------------------------------------------------

class InvestmentAssumption(WireModel):
    """Sanitized scenario rates plus supporting research for one investment."""

    investment_id: str = Field(..., min_length=1)
    conservative_annual_return_pct: float = Field(
        ..., ge=MIN_ANNUAL_RETURN_PCT, le=MAX_ANNUAL_RETURN_PCT,
    )
    expected_annual_return_pct: float = Field(
        ..., ge=MIN_ANNUAL_RETURN_PCT, le=MAX_ANNUAL_RETURN_PCT,
    )
    aggressive_annual_return_pct: float = Field(
        ..., ge=MIN_ANNUAL_RETURN_PCT, le=MAX_ANNUAL_RETURN_PCT,
    )
    ytd_return_pct: Optional[float] = None
    one_year_return_pct: Optional[float] = None
    three_year_cagr_pct: Optional[float] = None
    five_year_cagr_pct: Optional[float] = None
    since_inception_cagr_pct: Optional[float] = None
    history_as_of: Optional[str] = None
    confidence: Confidence
    rationale: str
    sources: list[SourceCitation] = Field(default_factory=list, max_length=MAX_SOURCES)

    @model_validator(mode="after")
    def validate_scenario_order(self) -> "InvestmentAssumption":
        """conservative <= expected <= aggressive."""
        if not (
            self.conservative_annual_return_pct
            <= self.expected_annual_return_pct
            <= self.aggressive_annual_return_pct
        ):
            raise ValueError(
                f"Scenario rates out of order: "
                f"{self.conservative_annual_return_pct} / "
                f"{self.expected_annual_return_pct} / "
                f"{self.aggressive_annual_return_pct}"
            )
        return self

    @model_validator(mode="after")
    def validate_unique_sources(self) -> "InvestmentAssumption":
        uris = [s.uri for s in self.sources]
        if len(uris) != len(set(uris)):
            raise ValueError("Duplicate source URIs")
        return self


# ---------------------------------------------------------------------------
# Projections
# ---------------------------------------------------------------------------

class YearlyProjection(WireModel):
    """Value at the end of one year under each scenario."""

    year: int = Field(..., ge=1)
    conservative_value: float
    expected_value: float
    aggressive_value: float


class InvestmentProjection(WireModel):
    investment_id: str
    investment_name: str
    yearly: list[YearlyProjection]


class InvestedAmount(WireModel):
    """Cumulative money put in by the end of a year, without growth."""

    year: int = Field(..., ge=1)
    invested_value: float


class Milestone(WireModel):
    """Portfolio total at a checkpoint year."""

    year: int = Field(..., ge=1)
    conservative_value: float
    expected_value: float
    aggressive_value: float
    is_final: bool = False


class ForecastResult(WireModel):
    """Immutable snapshot of one forecast run."""

    generated_at: str = Field(..., description="ISO-8601 UTC timestamp")
    currency: str
    assumptions: list[InvestmentAssumption]
    projections: list[InvestmentProjection]
    total_projection: list[YearlyProjection]
    invested_projection: list[InvestedAmount] = Field(default_factory=list)
    milestones: list[Milestone] = Field(default_factory=list)
    total_current_investment: float = 0.0
    total_yearly_contribution: float = 0.0

    @model_validator(mode="after")
    def validate_series_lengths(self) -> "ForecastResult":
        """Every per-investment series spans the same horizon as the total."""
        horizon = len(self.total_projection)
        for p in self.projections:
            if len(p.yearly) != horizon:
                raise ValueError(
                    f"Projection for {p.investment_id} has {len(p.yearly)} years, "
                    f"expected {horizon}"
                )
        return self

    @property
    def horizon_years(self) -> int:
        return len(self.total_projection)

    @property
    def final_total(self) -> Optional[YearlyProjection]:
        return self.total_projection[-1] if self.total_projection else None


# ---------------------------------------------------------------------------
# Stored Run
# ---------------------------------------------------------------------------

class StoredForecastRun(WireModel):
    """The latest forecast run saved for a user, with the request that produced it."""

    run_id: str
    user_id: str
    created_at: str
    request: ForecastRequest
    result: ForecastResult
