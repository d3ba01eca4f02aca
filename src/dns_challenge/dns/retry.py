"""Bounded retries with exponential backoff for remote provider steps."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from dns_challenge.errors import DnsChallengeError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_BACKOFF_CAP_SECONDS = 30.0


@dataclass(frozen=True)
class RetryPolicy:
    """Retry a call on retryable :class:`DnsChallengeError` failures.

    Attempt ``n`` (0-based) waits ``backoff_seconds * 2**n``, capped at 30s,
    before retrying. Non-retryable errors (authentication, validation, faults)
    propagate immediately.
    """

    max_retries: int = 3
    backoff_seconds: float = 1.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def call(self, step: str, fn: Callable[..., T], *args, **kwargs) -> T:
        attempt = 0
        while True:
            try:
                return fn(*args, **kwargs)
            except DnsChallengeError as exc:
                if not exc.retryable or attempt >= self.max_retries:
                    raise
                delay = min(self.backoff_seconds * (2**attempt), _BACKOFF_CAP_SECONDS)
                attempt += 1
                logger.warning(
                    "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                    step,
                    attempt,
                    self.max_retries,
                    delay,
                    exc.detail,
                )
                self.sleep(delay)


NO_RETRY = RetryPolicy(max_retries=0)
