"""Rate-limited execution of remote catalog calls.

Every outbound Unity Catalog call goes through a RateLimitedTransport, which
spaces requests out and retries calls rejected with HTTP 429 using capped
exponential backoff. Only rate limiting is retried: auth failures, missing
objects and server errors propagate on the first attempt.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, TypeVar

from databricks.sdk.errors import TooManyRequests
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_rate_limited(exc: BaseException | None) -> bool:
    """
    Return True if the exception is a remote rate-limit rejection.

    The SDK gives up on its own retries with a TimeoutError raised from the
    last API error, so the cause chain is inspected as well.
    """
    seen = set()
    while exc is not None and id(exc) not in seen:
        if isinstance(exc, TooManyRequests):
            return True
        if getattr(exc, "status_code", None) == 429:
            return True
        seen.add(id(exc))
        exc = exc.__cause__
    return False


class RateLimitedTransport:
    """
    Serialize and throttle calls to one remote API.

    Before each attempt the caller waits until `min_interval * (1 + errors)`
    seconds have passed since the previous attempt started, where `errors`
    counts consecutive rate-limit rejections. Slots are reserved under a
    lock, so spacing holds across threads sharing the transport.
    """

    def __init__(
        self,
        *,
        min_interval: float = 0.3,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 8.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.min_interval = min_interval
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_request: float | None = None
        self._consecutive_errors = 0

    @property
    def consecutive_errors(self) -> int:
        return self._consecutive_errors

    def reset(self) -> None:
        """Forget spacing and error history."""
        with self._lock:
            self._last_request = None
            self._consecutive_errors = 0

    def _wait_for_slot(self) -> None:
        with self._lock:
            now = self._clock()
            spacing = self.min_interval * (1 + self._consecutive_errors)
            start = now
            if self._last_request is not None:
                start = max(now, self._last_request + spacing)
            self._last_request = start
        if start > now:
            self._sleep(start - now)

    def _attempt(self, request_fn: Callable[[], T]) -> T:
        self._wait_for_slot()
        result = request_fn()
        with self._lock:
            self._consecutive_errors = 0
        return result

    def _count_rejection(self, retry_state: RetryCallState) -> None:
        with self._lock:
            self._consecutive_errors += 1
        if retry_state.attempt_number > self.max_retries:
            logger.warning(
                "Rate limit persisted after %d retries, giving up", self.max_retries
            )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        logger.info(
            "Rate limit hit, retrying in %.1fs (%d retries left)",
            retry_state.next_action.sleep,
            self.max_retries - retry_state.attempt_number + 1,
        )

    def _retrying(self) -> Retrying:
        return Retrying(
            retry=retry_if_exception(is_rate_limited),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay),
            sleep=self._sleep,
            after=self._count_rejection,
            before_sleep=self._log_retry,
            reraise=True,
        )

    def execute(self, request_fn: Callable[[], T]) -> T:
        """
        Run `request_fn` (one network call) under the spacing/backoff policy.

        Raises:
            The last rate-limit error once `max_retries` retries are spent,
            or any other error from `request_fn` immediately.
        """
        return self._retrying()(self._attempt, request_fn)
