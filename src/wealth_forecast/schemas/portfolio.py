"""
Portfolio Input Schemas
Investments, the forecast request, and stored portfolio settings.

Field names are snake_case in Python and camelCase on the wire
(sourceUrl, contributionFrequency, ...). Both spellings are accepted on input.
Request numbers are strict: "5" or true is rejected rather than coerced.
"""

from __future__ import annotations

from typing import Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from wealth_forecast.config.constants import (
    DEFAULT_CURRENCY,
    DEFAULT_HORIZON_YEARS,
    MAX_HORIZON_YEARS,
    MIN_HORIZON_YEARS,
    MIN_INVESTMENT_NAME_CHARS,
)


InvestmentType = Literal[
    "mutual_fund", "stock", "ppf", "nps", "fixed_deposit", "crypto", "other",
]
ContributionFrequency = Literal["monthly", "yearly", "one_time"]


class WireModel(BaseModel):
    """Base for models exchanged as camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict:
        """Dump with camelCase keys, JSON-safe values."""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Investment
# ---------------------------------------------------------------------------

class Investment(WireModel):
    """One holding the user tracks. Never mutated by the pipeline."""

    id: str = Field(..., min_length=1)
    type: InvestmentType
    name: str = Field(..., min_length=MIN_INVESTMENT_NAME_CHARS)
    contribution_frequency: ContributionFrequency
    contribution_amount: float = Field(..., ge=0, strict=True, allow_inf_nan=False)
    initial_amount: float = Field(..., ge=0, strict=True, allow_inf_nan=False)
    source_url: Optional[str] = None
    institution: Optional[str] = None
    ticker: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("source_url", mode="before")
    @classmethod
    def validate_source_url(cls, v):
        """Empty string means no URL; anything else must be an absolute URL."""
        if v is None:
            return None
        if not isinstance(v, str):
            raise ValueError("sourceUrl must be a string")
        v = v.strip()
        if not v:
            return None
        parsed = urlparse(v)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"sourceUrl is not a valid URL: {v!r}")
        return v

    @property
    def has_amount(self) -> bool:
        return self.initial_amount > 0 or self.contribution_amount > 0


# ---------------------------------------------------------------------------
# Forecast Request
# ---------------------------------------------------------------------------

class ForecastRequest(WireModel):
    """Inbound request for one forecast run."""

    years: int = Field(..., ge=MIN_HORIZON_YEARS, le=MAX_HORIZON_YEARS, strict=True)
    currency: str = Field(..., min_length=1)
    investments: list[Investment] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_has_positive_amount(self) -> "ForecastRequest":
        """At least one investment must put money somewhere."""
        if not any(inv.has_amount for inv in self.investments):
            raise ValueError("At least one investment must include a non-zero amount.")
        return self

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "ForecastRequest":
        """Assumptions are matched back by id, so ids must be unique."""
        seen: set[str] = set()
        for inv in self.investments:
            if inv.id in seen:
                raise ValueError(f"Duplicate investment id: {inv.id}")
            seen.add(inv.id)
        return self


# ---------------------------------------------------------------------------
# Stored Portfolio Settings
# ---------------------------------------------------------------------------

class PortfolioSettings(WireModel):
    """
    The user's saved portfolio plus the cached last forecast reference.

    Names are not length-checked here: the editor stores drafts, and only
    the forecast request enforces a runnable shape.
    """

    currency: str = DEFAULT_CURRENCY
    years: int = DEFAULT_HORIZON_YEARS
    investments: list[dict] = Field(default_factory=list)
    last_forecast_run_id: Optional[str] = None
    last_forecast_at: Optional[str] = None


def normalize_portfolio(data: Optional[dict] = None) -> PortfolioSettings:
    """
    Normalize a stored portfolio document.

    Currency is upper-cased and cut to 3 characters, years are clamped to
    the supported horizon, and missing investments become an empty list.
    """
    data = data or {}

    currency = str(data.get("currency") or DEFAULT_CURRENCY).upper()[:3]

    try:
        years = int(data.get("years") or DEFAULT_HORIZON_YEARS)
    except (TypeError, ValueError):
        years = DEFAULT_HORIZON_YEARS
    years = min(max(years, MIN_HORIZON_YEARS), MAX_HORIZON_YEARS)

    investments = data.get("investments")
    if not isinstance(investments, list):
        investments = []

    return PortfolioSettings(
        currency=currency,
        years=years,
        investments=investments,
        last_forecast_run_id=data.get("lastForecastRunId"),
        last_forecast_at=data.get("lastForecastAt"),
    )
