"""
Unit tests for caller-side rate limit backoff.

Tests follow the Given/When/Then pattern for clarity.
"""

from unittest.mock import MagicMock

import pytest

from bscscope.lib.backoff import apply_jitter, call_with_backoff
from bscscope.lib.errors import FetchError, RateLimited


class TestCallWithBackoff:
    """Tests for call_with_backoff."""

    def test_retries_on_rate_limit_with_exponential_backoff(self):
        """
        Given an operation that is rate limited twice before succeeding
        When calling it with backoff
        Then it should be retried with doubling delays and its result returned
        """
        # Given
        func = MagicMock(side_effect=[RateLimited("slow down"), RateLimited("slow down"), "ok"])
        sleep = MagicMock()

        # When
        result = call_with_backoff(func, initial_delay=1.0, jitter=0, sleep=sleep)

        # Then
        assert result == "ok"
        assert func.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    def test_raises_after_max_retries(self):
        # Given
        func = MagicMock(side_effect=RateLimited("slow down"))
        sleep = MagicMock()

        # When / Then
        with pytest.raises(RateLimited):
            call_with_backoff(func, max_retries=2, jitter=0, sleep=sleep)

        assert func.call_count == 3
        assert sleep.call_count == 2

    def test_delay_is_capped(self):
        func = MagicMock(side_effect=[RateLimited("x")] * 4 + ["ok"])
        sleep = MagicMock()

        call_with_backoff(func, initial_delay=10.0, max_delay=16.0, jitter=0, sleep=sleep)

        assert [c.args[0] for c in sleep.call_args_list] == [10.0, 16.0, 16.0, 16.0]

    def test_other_errors_are_not_retried(self):
        """
        Given an operation failing with a non rate limit FetchError
        When calling it with backoff
        Then the error should propagate immediately
        """
        func = MagicMock(side_effect=FetchError("HTTP 500: boom"))
        sleep = MagicMock()

        with pytest.raises(FetchError, match="HTTP 500"):
            call_with_backoff(func, sleep=sleep)

        assert func.call_count == 1
        sleep.assert_not_called()


class TestApplyJitter:
    def test_stays_within_range(self):
        for _ in range(100):
            assert 0.9 <= apply_jitter(1.0, 0.1) <= 1.1

    def test_zero_jitter_is_identity(self):
        assert apply_jitter(2.0, 0) == 2.0
