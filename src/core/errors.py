"""Exception hierarchy for the dashboard services."""


class DashboardError(Exception):
    """Base exception for dashboard errors."""

    status_code = 500


class ValidationError(DashboardError):
    """Raised when a caller supplies a malformed or incomplete request."""

    status_code = 400


class NotFoundError(DashboardError):
    """Raised when a portfolio or broker account does not exist."""

    status_code = 404


class BrokerError(DashboardError):
    """Raised when a broker variant is unsupported or a broker call fails."""

    status_code = 502


class LLMError(DashboardError):
    """Raised inside the LLM scorer; always recovered by the keyword fallback."""
