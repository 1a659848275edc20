"""
Forecast event observer.

The pipeline reports progress through an injected callable
``on_event(kind, fields)`` instead of logging directly. The default,
log_event, forwards to the standard logger; tests and hosts can pass any
callable with the same signature.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

EventCallback = Callable[[str, dict[str, Any]], None]

# Checkpoint kinds
FORECAST_REQUEST_RECEIVED = "forecast.request.received"
RESEARCH_REQUEST = "research.request"
RESEARCH_RAW_RESPONSE = "research.raw_response"
RESEARCH_PARSED = "research.parsed"
ASSUMPTIONS_READY = "forecast.assumptions.ready"
CALCULATION_READY = "forecast.calculation.ready"
FORECAST_FAILED = "forecast.request.failed"

_DEBUG_KINDS = {RESEARCH_RAW_RESPONSE}
_ERROR_KINDS = {FORECAST_FAILED}


def log_event(kind: str, fields: dict[str, Any]) -> None:
    """Default observer: one log line per checkpoint."""
    if kind in _ERROR_KINDS:
        level = logging.ERROR
    elif kind in _DEBUG_KINDS:
        level = logging.DEBUG
    else:
        level = logging.INFO
    if not logger.isEnabledFor(level):
        return
    detail = ", ".join(f"{k}={v}" for k, v in fields.items())
    logger.log(level, f"[Forecast] {kind}: {detail}")


class EventRecorder:
    """Observer that keeps every event in memory, in call order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, kind: str, fields: dict[str, Any]) -> None:
        self.events.append((kind, dict(fields)))

    def kinds(self) -> list[str]:
        return [k for k, _ in self.events]

    def of_kind(self, kind: str) -> list[dict[str, Any]]:
        return [f for k, f in self.events if k == kind]
