"""
Exception hierarchy for the wealth forecast pipeline.

Every failure the core can raise derives from WealthForecastException so
callers can catch framework errors in one place. Research failures carry the
investment they belong to, since N research calls run side by side and the
caller must be able to tell which one broke.
"""

from typing import Optional


# ============================================================================
# BASE EXCEPTION CLASSES
# ============================================================================

class WealthForecastException(Exception):
    """
    Base exception for all wealth forecast errors.

    Inheriting from this allows catching all framework errors:
        try:
            ...
        except WealthForecastException as e:
            ...
    """

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__


class ValidationError(WealthForecastException):
    """Base class for data validation failures."""
    pass


class ConfigurationError(WealthForecastException):
    """Base class for configuration/setup issues."""
    pass


class PipelineError(WealthForecastException):
    """Base class for forecast pipeline execution errors."""
    pass


# ============================================================================
# INPUT VALIDATION
# ============================================================================

class PortfolioValidationError(ValidationError):
    """
    Raised when the inbound forecast request is malformed, empty, or holds
    no investment with a non-zero amount. Raised before any research call.

    Example:
        raise PortfolioValidationError("At least one investment must include a non-zero amount.")
    """
    pass


# ============================================================================
# RESEARCH PROVIDER
# ============================================================================

class ResearchResponseError(ValidationError):
    """
    Raised when the research provider's text cannot be parsed into the
    expected payload, or the payload fails schema validation.

    Example:
        raise ResearchResponseError(
            "Research provider returned invalid assumption payload for HDFC Flexi Cap: ...",
            investment_id="inv-1",
            investment_name="HDFC Flexi Cap",
        )
    """

    def __init__(
        self,
        message: str,
        investment_id: Optional[str] = None,
        investment_name: Optional[str] = None,
    ):
        super().__init__(message)
        self.investment_id = investment_id
        self.investment_name = investment_name


class ResearchTransportError(PipelineError):
    """
    Raised when the call to the research provider fails outright
    (timeout, connection failure, non-success status).
    """

    def __init__(
        self,
        message: str,
        investment_id: Optional[str] = None,
        investment_name: Optional[str] = None,
    ):
        super().__init__(message)
        self.investment_id = investment_id
        self.investment_name = investment_name


# ============================================================================
# CALCULATION
# ============================================================================

class MissingAssumptionError(PipelineError):
    """
    Raised when the calculator is handed an investment with no matching
    assumption. Indicates a dropped research call upstream.

    Example:
        raise MissingAssumptionError("inv-3")
    """

    def __init__(self, investment_id: str):
        super().__init__(f"Missing assumption for investment: {investment_id}")
        self.investment_id = investment_id


# ============================================================================
# CONFIGURATION & OUTPUT
# ============================================================================

class EnvConfigError(ConfigurationError):
    """
    Raised when required environment variables are missing or malformed.

    Example:
        raise EnvConfigError("Missing required env var: ANTHROPIC_API_KEY")
    """
    pass


class OutputWriteError(PipelineError):
    """
    Raised when a forecast snapshot or Excel report cannot be written.

    Example:
        raise OutputWriteError("Cannot write forecast_2026-02-11.xlsx: Permission denied")
    """
    pass


# ============================================================================
# UTILITY FUNCTIONS FOR ERROR HANDLING
# ============================================================================

def error_category(exception: BaseException) -> str:
    """
    Map an exception to the coarse class a boundary reports.

    Request validation and auth errors are "bad_request". Everything else,
    including a research payload the provider got wrong, is "failure".
    """
    if isinstance(exception, PortfolioValidationError):
        return "bad_request"
    if "Unauthorized" in str(exception):
        return "bad_request"
    return "failure"
