"""
Shared HTTP transport for the upstream fetchers.

Every fetcher sends its requests through HttpClient._execute, which maps
transport failures, rate limits and non-2xx responses onto the bscscope
error taxonomy. Requests are never retried here; backoff policy belongs to
the caller (see backoff.call_with_backoff).
"""

import logging
from typing import Any, Callable, Optional

import requests

from .errors import FetchError, RateLimited

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0  # seconds per request

# Cap on how much of an upstream error body is copied into an exception
MAX_ERROR_BODY = 500


class HttpClient:
    """
    Base class for upstream API clients.

    Handles:
    - A shared requests.Session per client
    - Per-request timeout
    - Mapping of HTTP failures to FetchError / RateLimited
    - Redaction of API keys from error messages
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        secret: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            timeout: Request timeout in seconds
            secret: API key to redact from error messages
            session: Optional pre-configured requests session
        """
        self.timeout = timeout
        self.secret = secret
        self.session = session or requests.Session()

    def _sanitize_error_message(self, message: str) -> str:
        """Remove API key from error messages to prevent credential leakage."""
        if self.secret:
            return message.replace(self.secret, "[REDACTED]")
        return message

    def _upstream_text(self, response: requests.Response) -> str:
        text = (response.text or "").strip() or response.reason or ""
        return self._sanitize_error_message(text[:MAX_ERROR_BODY])

    def _execute(self, request_func: Callable[[], requests.Response]) -> Any:
        """
        Execute a single request and return its parsed JSON body.

        Args:
            request_func: A callable that returns a requests.Response

        Returns:
            The decoded JSON payload

        Raises:
            RateLimited: When the upstream responds with HTTP 429
            FetchError: For transport errors, non-2xx responses and non-JSON bodies
        """
        try:
            response = request_func()
        except requests.RequestException as e:
            sanitized_msg = self._sanitize_error_message(str(e))
            raise FetchError(f"Request failed: {sanitized_msg}") from e

        logger.debug(
            "%s %s -> %s",
            response.request.method if response.request is not None else "?",
            self._sanitize_error_message(response.url or ""),
            response.status_code,
        )

        if response.status_code == 429:
            raise RateLimited(
                f"Rate limit exceeded: {self._upstream_text(response)}",
                status_code=429,
            )

        if not response.ok:
            raise FetchError(
                f"HTTP {response.status_code}: {self._upstream_text(response)}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            content_type = response.headers.get("content-type", "unknown")
            raise FetchError(
                f"Expected JSON but got {content_type}: {self._upstream_text(response)}",
                status_code=response.status_code,
            ) from e

    def _get(self, url: str, params: Optional[dict] = None, headers: Optional[dict] = None) -> Any:
        return self._execute(
            lambda: self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        )

    def _post(self, url: str, payload: Any) -> Any:
        return self._execute(lambda: self.session.post(url, json=payload, timeout=self.timeout))
