"""
Forecast Store
Persistence adapter for portfolios and their latest forecast.

Two document collections, one JSON document per user:
- wealthForecasts/<user_id>.json: the latest StoredForecastRun. A new run
  fully replaces the previous one.
- portfolios/<user_id>.json: portfolio settings plus the cached last
  forecast (lastForecast, lastForecastRunId, lastForecastAt).

Single-writer use only; writes go through a temp file and an atomic rename.
"""

from __future__ import annotations

import json
import logging
import os
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol, Union

from wealth_forecast.exceptions import OutputWriteError, PipelineError, ValidationError
from wealth_forecast.schemas.forecast_output import ForecastResult, StoredForecastRun
from wealth_forecast.schemas.portfolio import (
    ForecastRequest,
    PortfolioSettings,
    normalize_portfolio,
)

logger = logging.getLogger(__name__)

FORECASTS_COLLECTION = "wealthForecasts"
PORTFOLIOS_COLLECTION = "portfolios"

_USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.@-]+$")


class ForecastStore(Protocol):
    """Read/write contract the forecast pipeline needs from storage."""

    def save_forecast_run(
        self, user_id: str, request: ForecastRequest, result: ForecastResult,
    ) -> str: ...

    def get_portfolio(self, user_id: str) -> Optional[PortfolioSettings]: ...

    def save_portfolio(self, user_id: str, settings: PortfolioSettings) -> None: ...

    def update_portfolio_forecast(
        self, user_id: str, run_id: str, result: ForecastResult,
    ) -> None: ...


class JsonFileForecastStore:
    """ForecastStore over a directory of JSON documents."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    # ------------------------------------------------------------------
    # Paths and raw I/O
    # ------------------------------------------------------------------

    def _path(self, collection: str, user_id: str) -> Path:
        if not user_id or not _USER_ID_PATTERN.match(user_id) or user_id in (".", ".."):
            raise ValidationError(f"Invalid user id: {user_id!r}")
        return self.root / collection / f"{user_id}.json"

    def _read(self, path: Path) -> Optional[dict[str, Any]]:
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise PipelineError(f"Corrupt store document {path}: {e}") from e
        if not isinstance(data, dict):
            raise PipelineError(f"Corrupt store document {path}: not a JSON object")
        return data

    def _write(self, path: Path, text: str) -> None:
        tmp = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(text, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise OutputWriteError(f"Failed to write {path}: {e}") from e

    # ------------------------------------------------------------------
    # Forecast runs
    # ------------------------------------------------------------------

    def save_forecast_run(
        self, user_id: str, request: ForecastRequest, result: ForecastResult,
    ) -> str:
        """Persist a run as the user's latest and return its new run id."""
        path = self._path(FORECASTS_COLLECTION, user_id)
        run = StoredForecastRun(
            run_id=uuid.uuid4().hex,
            user_id=user_id,
            created_at=datetime.now(timezone.utc).isoformat(),
            request=request,
            result=result,
        )
        self._write(path, run.model_dump_json(by_alias=True, indent=2))
        logger.info(f"[Store] Saved forecast run {run.run_id} for {user_id}")
        return run.run_id

    # ------------------------------------------------------------------
    # Portfolios
    # ------------------------------------------------------------------

    def get_portfolio(self, user_id: str) -> Optional[PortfolioSettings]:
        """Load and normalize the user's portfolio, or None if never saved."""
        data = self._read(self._path(PORTFOLIOS_COLLECTION, user_id))
        if data is None:
            return None
        return normalize_portfolio(data)

    def get_cached_forecast(self, user_id: str) -> Optional[ForecastResult]:
        data = self._read(self._path(PORTFOLIOS_COLLECTION, user_id))
        if not data or not data.get("lastForecast"):
            return None
        return ForecastResult.model_validate(data["lastForecast"])

    def save_portfolio(self, user_id: str, settings: PortfolioSettings) -> None:
        """Merge settings into the portfolio document, keeping the cached forecast."""
        path = self._path(PORTFOLIOS_COLLECTION, user_id)
        doc = self._read(path) or {}
        doc.update({
            "currency": settings.currency,
            "years": settings.years,
            "investments": settings.investments,
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        })
        self._write(path, json.dumps(doc, indent=2))

    def update_portfolio_forecast(
        self, user_id: str, run_id: str, result: ForecastResult,
    ) -> None:
        """Cache the latest forecast and its run id on the portfolio document."""
        path = self._path(PORTFOLIOS_COLLECTION, user_id)
        doc = self._read(path) or {}
        doc.update({
            "lastForecast": result.to_wire(),
            "lastForecastRunId": run_id,
            "lastForecastAt": result.generated_at,
        })
        self._write(path, json.dumps(doc, indent=2))
