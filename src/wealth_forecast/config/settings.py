"""
Runtime settings for the research client and orchestrator.

Settings are built once at startup with ForecastSettings.from_env() and
handed to the collaborators that need them. Nothing in the package reads
os.environ on its own.
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field

from wealth_forecast.config.constants import (
    DEFAULT_MAX_SEARCH_USES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_REQUEST_TIMEOUT_S,
    DEFAULT_RESEARCH_MODEL,
)
from wealth_forecast.exceptions import EnvConfigError


class ForecastSettings(BaseModel):
    """Explicit configuration value for one process."""

    model_config = {"frozen": True}

    anthropic_api_key: str = Field(..., min_length=1, repr=False)
    research_model: str = Field(DEFAULT_RESEARCH_MODEL, min_length=1)
    request_timeout_s: float = Field(DEFAULT_REQUEST_TIMEOUT_S, gt=0)
    max_search_uses: int = Field(DEFAULT_MAX_SEARCH_USES, ge=1, le=20)
    max_concurrency: int = Field(DEFAULT_MAX_WORKERS, ge=1, le=32)
    debug_logs: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ForecastSettings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Returns:
            Validated ForecastSettings.

        Raises:
            EnvConfigError: ANTHROPIC_API_KEY is missing or a numeric
                variable cannot be parsed.
        """
        env = os.environ if environ is None else environ

        api_key = (env.get("ANTHROPIC_API_KEY") or "").strip()
        if not api_key:
            raise EnvConfigError("Missing required env var: ANTHROPIC_API_KEY")

        try:
            timeout = float(env.get("RESEARCH_TIMEOUT_S") or DEFAULT_REQUEST_TIMEOUT_S)
            searches = int(env.get("RESEARCH_MAX_SEARCHES") or DEFAULT_MAX_SEARCH_USES)
            workers = int(env.get("FORECAST_MAX_WORKERS") or DEFAULT_MAX_WORKERS)
            return cls(
                anthropic_api_key=api_key,
                research_model=env.get("RESEARCH_MODEL") or DEFAULT_RESEARCH_MODEL,
                request_timeout_s=timeout,
                max_search_uses=searches,
                max_concurrency=workers,
                debug_logs=env.get("DEBUG_LOGS") == "1",
            )
        except ValueError as e:
            # pydantic.ValidationError is a ValueError too
            raise EnvConfigError(f"Invalid forecast settings: {e}") from e
