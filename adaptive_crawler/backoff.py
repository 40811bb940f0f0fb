from __future__ import annotations

import random
from typing import FrozenSet, Optional

RETRYABLE_STATUS_CODES: FrozenSet[int] = frozenset({429, 500, 502, 503, 504})
RETRYABLE_ERROR_TYPES: FrozenSet[str] = frozenset({"Timeout", "ConnectionError"})


class BackoffStrategy:
    """Exponential backoff with jitter between fetch retries.

    Sleep is base * 2^(attempt-1) plus up to 10% jitter, capped at
    ``max_seconds``. Rate-limited failures (HTTP 429) start from twice the
    base so the retry lands after the site's own throttle window."""

    def __init__(self, base_seconds: float = 0.5, max_seconds: float = 10.0) -> None:
        self._base = base_seconds
        self._max = max_seconds

    def get_sleep(self, attempt: int, error_type: Optional[str] = None) -> float:
        """Calculate the backoff sleep in seconds for a given retry attempt."""
        base = self._base * 2 if error_type == "HTTP_429" else self._base
        exp = min(self._max, base * (2 ** max(attempt - 1, 0)))
        jitter = random.uniform(0, exp * 0.1)
        return exp + jitter

    @staticmethod
    def is_retryable(status_code: Optional[int], error_type: Optional[str]) -> bool:
        """True for transport failures and statuses worth asking again."""
        if status_code is not None:
            return status_code in RETRYABLE_STATUS_CODES
        return error_type in RETRYABLE_ERROR_TYPES
