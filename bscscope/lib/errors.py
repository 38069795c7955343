"""
Exception hierarchy for bscscope.

Validation errors are raised before any network call. Fetch errors carry the
upstream HTTP status and message. Rate limits are a distinct fetch error so
callers can apply their own backoff policy.
"""

from typing import Optional


class BscScopeError(Exception):
    """Base class for all bscscope errors."""

    pass


class ValidationError(BscScopeError):
    """Exception raised for malformed addresses, domains or parameters."""

    pass


class FetchError(BscScopeError):
    """Exception raised for upstream HTTP or application-level failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimited(FetchError):
    """Exception raised when an upstream provider rejects a request with a rate limit."""

    def __init__(self, message: str, status_code: Optional[int] = 429):
        super().__init__(message, status_code=status_code)


class ResultWindowExceeded(FetchError):
    """Exception raised when a paged explorer query asks past the result window."""

    pass


class TokenNotFound(BscScopeError):
    """Exception raised when token metadata lookup returns no such contract."""

    pass


class AggregationError(BscScopeError):
    """Exception raised when a required upstream step fails during aggregation."""

    pass
