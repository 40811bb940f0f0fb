"""Tests for the BackoffStrategy class."""

import unittest

from adaptive_crawler.backoff import BackoffStrategy


class TestBackoffStrategy(unittest.TestCase):
    """Verify exponential backoff produces correct sleep durations."""

    def test_first_attempt_returns_base(self):
        """First retry should sleep approximately the base duration."""
        backoff = BackoffStrategy(base_seconds=1.0, max_seconds=30.0)
        sleep = backoff.get_sleep(attempt=1)
        # base * 2^0 = 1.0, plus up to 10% jitter
        self.assertGreaterEqual(sleep, 1.0)
        self.assertLessEqual(sleep, 1.1)

    def test_exponential_growth(self):
        """Each subsequent attempt should roughly double the sleep time."""
        backoff = BackoffStrategy(base_seconds=0.5, max_seconds=100.0)
        sleep_1 = backoff.get_sleep(attempt=1)
        sleep_2 = backoff.get_sleep(attempt=2)
        sleep_3 = backoff.get_sleep(attempt=3)
        self.assertLess(sleep_1, sleep_2)
        self.assertLess(sleep_2, sleep_3)

    def test_respects_max_seconds(self):
        """Sleep duration should never exceed max_seconds (plus jitter)."""
        backoff = BackoffStrategy(base_seconds=1.0, max_seconds=5.0)
        sleep = backoff.get_sleep(attempt=20)
        self.assertLessEqual(sleep, 5.5)

    def test_rate_limited_starts_from_double_base(self):
        """HTTP 429 failures should back off from twice the base."""
        backoff = BackoffStrategy(base_seconds=1.0, max_seconds=30.0)
        sleep = backoff.get_sleep(attempt=1, error_type="HTTP_429")
        self.assertGreaterEqual(sleep, 2.0)
        self.assertLessEqual(sleep, 2.2)


class TestRetryable(unittest.TestCase):
    """Verify which failures are worth retrying."""

    def test_retryable_statuses(self):
        for status in (429, 500, 502, 503, 504):
            self.assertTrue(BackoffStrategy.is_retryable(status, f"HTTP_{status}"))

    def test_client_errors_are_not_retried(self):
        self.assertFalse(BackoffStrategy.is_retryable(404, "HTTP_404"))
        self.assertFalse(BackoffStrategy.is_retryable(403, "HTTP_403"))

    def test_transport_errors(self):
        """Timeouts and connection errors retry; unknown exceptions do not."""
        self.assertTrue(BackoffStrategy.is_retryable(None, "Timeout"))
        self.assertTrue(BackoffStrategy.is_retryable(None, "ConnectionError"))
        self.assertFalse(BackoffStrategy.is_retryable(None, "InvalidURL"))


if __name__ == "__main__":
    unittest.main()
