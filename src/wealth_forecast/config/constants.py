"""
Centralized configuration for the wealth forecast pipeline.

This module defines the numeric bounds, blend weights, and citation rules
used by the assumption normalizer and the compound projector. Centralizing
these values keeps the decision boundaries in one place.
"""

# ============================================================================
# RATE SANITIZATION (assumption normalizer)
# ============================================================================

MIN_ANNUAL_RETURN_PCT = -80.0
"""Lowest annual return % any scenario may carry after clamping"""

MAX_ANNUAL_RETURN_PCT = 120.0
"""Highest annual return % any scenario may carry after clamping"""

RATE_DECIMALS = 2
"""Rates are rounded to this many decimals before and after blending"""

# ============================================================================
# HISTORY-ANCHORED BLENDING
# ============================================================================
# expected = MODEL_WEIGHT × model_expected + HISTORY_WEIGHT × history_anchor

MODEL_EXPECTED_WEIGHT = 0.55
"""Weight of the provider's forward-looking expected rate"""

HISTORY_ANCHOR_WEIGHT = 0.45
"""Weight of the mean of available historical return signals"""

ONE_YEAR_SIGNAL_DISCOUNT = 0.6
"""Trailing 1-year return is scaled by this before entering the anchor"""

# ============================================================================
# SOURCE CITATIONS
# ============================================================================

MAX_SOURCES = 5
"""Cap on sanitized citations per assumption"""

REDIRECT_HOSTS: tuple[str, ...] = ("vertexaisearch.cloud.google.com",)
"""
Search-grounding redirect hosts; citations on these are dropped.

The anthropic web-search tool cites direct page URLs, but the model can still
quote Google grounding redirect links it met on search result pages. Those
links expire and never name the real source.
"""

REDIRECT_MARKERS: tuple[str, ...] = ("grounding-api-redirect",)
"""URL fragments that mark a redirect/tracking link"""

RATIONALE_MAX_CHARS = 220
"""Rationale length the research prompt asks for"""

# ============================================================================
# PORTFOLIO BOUNDS
# ============================================================================

MIN_HORIZON_YEARS = 1
MAX_HORIZON_YEARS = 50

DEFAULT_HORIZON_YEARS = 15
DEFAULT_CURRENCY = "INR"

MIN_INVESTMENT_NAME_CHARS = 2

MONTHS_PER_YEAR = 12

MONEY_DECIMALS = 2
"""Every recorded balance is rounded to cents"""

# ============================================================================
# MILESTONES
# ============================================================================

MILESTONE_YEARS: tuple[int, ...] = (5, 10, 15, 20, 25, 30)
"""Checkpoint years surfaced as milestones (final horizon year is appended)"""

# ============================================================================
# RESEARCH PROVIDER
# ============================================================================

DEFAULT_RESEARCH_MODEL = "claude-sonnet-4-5"
DEFAULT_REQUEST_TIMEOUT_S = 60.0
DEFAULT_MAX_SEARCH_USES = 5
DEFAULT_MAX_WORKERS = 4
RESEARCH_MAX_TOKENS = 2048

RAW_RESPONSE_LOG_CHARS = 900
"""Raw provider text is truncated to this length in debug events"""
