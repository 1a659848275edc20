"""Token usage tracker for research provider calls.

Captures input/output token counts and web-search counts from anthropic SDK
responses and provides summaries by investment, by function, and overall
totals with cost estimates.
"""

from __future__ import annotations

import datetime
import threading
from typing import Any, Optional

# ---------------------------------------------------------------------------
# Pricing constants (USD per million tokens, Claude 4.5 family list prices)
# ---------------------------------------------------------------------------
HAIKU_4_5_INPUT_COST_PER_MTOK = 1.00
HAIKU_4_5_OUTPUT_COST_PER_MTOK = 5.00

SONNET_4_5_INPUT_COST_PER_MTOK = 3.00
SONNET_4_5_OUTPUT_COST_PER_MTOK = 15.00

WEB_SEARCH_COST_PER_1K = 10.00

MODEL_PRICING: dict[str, tuple[float, float]] = {
    "claude-haiku": (HAIKU_4_5_INPUT_COST_PER_MTOK, HAIKU_4_5_OUTPUT_COST_PER_MTOK),
    "claude-sonnet": (SONNET_4_5_INPUT_COST_PER_MTOK, SONNET_4_5_OUTPUT_COST_PER_MTOK),
}


def _pricing_for(model: str) -> tuple[float, float]:
    """Match a full model id (claude-sonnet-4-5, ...) to its price family."""
    for prefix, prices in MODEL_PRICING.items():
        if model.startswith(prefix):
            return prices
    return SONNET_4_5_INPUT_COST_PER_MTOK, SONNET_4_5_OUTPUT_COST_PER_MTOK


def _compute_cost(
    input_tokens: int,
    output_tokens: int,
    model: str = "claude-sonnet",
    web_searches: int = 0,
) -> float:
    """Compute cost in USD for a given token and search count."""
    input_cost_per_mtok, output_cost_per_mtok = _pricing_for(model)
    token_cost = (
        input_tokens * input_cost_per_mtok + output_tokens * output_cost_per_mtok
    ) / 1_000_000
    return token_cost + web_searches * WEB_SEARCH_COST_PER_1K / 1000


class TokenTracker:
    """Accumulates token usage records from research calls. Thread-safe."""

    def __init__(self) -> None:
        self._records: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def track(
        self,
        function_name: str,
        response: Any,
        model: str = "claude-sonnet",
        investment_id: Optional[str] = None,
    ) -> None:
        """Record token usage from an anthropic response.

        Responses without a usable ``usage`` block are ignored; tracking
        must never fail a forecast run.
        """
        usage = getattr(response, "usage", None)
        try:
            input_tokens = int(usage.input_tokens)
            output_tokens = int(usage.output_tokens)
        except (AttributeError, TypeError, ValueError):
            return

        server_tool_use = getattr(usage, "server_tool_use", None)
        try:
            web_searches = int(getattr(server_tool_use, "web_search_requests", 0) or 0)
        except (TypeError, ValueError):
            web_searches = 0

        record = {
            "function": function_name,
            "investment_id": investment_id or "unknown",
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "web_searches": web_searches,
            "model": model,
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }
        with self._lock:
            self._records.append(record)

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def _snapshot(self) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._records)

    def get_summary(self) -> dict[str, Any]:
        """Return overall totals and estimated cost."""
        records = self._snapshot()
        total_input = sum(r["input_tokens"] for r in records)
        total_output = sum(r["output_tokens"] for r in records)
        cost = sum(
            _compute_cost(r["input_tokens"], r["output_tokens"], r["model"], r["web_searches"])
            for r in records
        )
        return {
            "total_input_tokens": total_input,
            "total_output_tokens": total_output,
            "total_tokens": total_input + total_output,
            "total_web_searches": sum(r["web_searches"] for r in records),
            "estimated_cost_usd": round(cost, 4),
            "num_calls": len(records),
        }

    def _grouped(self, key: str) -> list[dict[str, Any]]:
        groups: dict[str, dict[str, Any]] = {}
        for r in self._snapshot():
            g = groups.setdefault(r[key], {
                key: r[key],
                "input_tokens": 0,
                "output_tokens": 0,
                "web_searches": 0,
                "cost_usd": 0.0,
                "calls": 0,
            })
            g["input_tokens"] += r["input_tokens"]
            g["output_tokens"] += r["output_tokens"]
            g["web_searches"] += r["web_searches"]
            g["cost_usd"] += _compute_cost(
                r["input_tokens"], r["output_tokens"], r["model"], r["web_searches"]
            )
            g["calls"] += 1

        result = []
        for g in sorted(groups.values(), key=lambda x: x[key]):
            g["total_tokens"] = g["input_tokens"] + g["output_tokens"]
            g["cost_usd"] = round(g["cost_usd"], 4)
            result.append(g)
        return result

    def get_by_investment(self) -> list[dict[str, Any]]:
        """Return per-investment grouped totals, sorted by investment id."""
        return self._grouped("investment_id")

    def get_by_function(self) -> list[dict[str, Any]]:
        """Return per-function breakdown, sorted by function name."""
        return self._grouped("function")

    @property
    def has_records(self) -> bool:
        return len(self._snapshot()) > 0

    def reset(self) -> None:
        """Clear all records (useful for testing)."""
        with self._lock:
            self._records.clear()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
tracker = TokenTracker()
