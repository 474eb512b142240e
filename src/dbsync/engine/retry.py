# src/dbsync/engine/retry.py
"""Retry logic for the incremental loop, with tenacity integration.

The loop runs cycles until cancelled. Each cycle is retried on transient
errors; a fresh tenacity run starts after every successful cycle, so the
attempt count is effectively a consecutive-failure counter that any success
resets. Reaching the ceiling re-raises the last error.

Example:
    token = CancellationToken()
    loop = IncrementalLoop(
        manager.increment_once,
        token=token,
        is_retryable=ErrorHandler.is_transient,
        max_consecutive_failures=10,
    )
    loop.run()  # returns after token.cancel(), or raises
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

import structlog
from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt, wait_fixed

slog = structlog.get_logger(__name__)

# Consecutive transient failures tolerated before the loop gives up
MAX_CONSECUTIVE_FAILURES = 10


class CancellationToken:
    """Cooperative cancellation flag shared between the loop and its controller.

    Checked once per cycle boundary; an in-flight cycle is never interrupted.
    """

    def __init__(self) -> None:
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    def reset(self) -> None:
        self._cancelled.clear()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def running(self) -> bool:
        return not self._cancelled.is_set()


class IncrementalLoop:
    """Runs a cycle forever, retrying transient failures up to a ceiling."""

    def __init__(
        self,
        cycle: Callable[[], None],
        *,
        token: CancellationToken,
        is_retryable: Callable[[BaseException], bool],
        max_consecutive_failures: int = MAX_CONSECUTIVE_FAILURES,
        delay_seconds: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_consecutive_failures < 1:
            raise ValueError("max_consecutive_failures must be >= 1")
        self._cycle = cycle
        self._token = token
        self._is_retryable = is_retryable
        self._max_consecutive_failures = max_consecutive_failures
        self._delay_seconds = delay_seconds
        self._sleep = sleep

    def run(self) -> None:
        """Loop until the token is cancelled.

        Raises:
            Exception: The first non-retryable error, or the retryable error
                that reached the consecutive-failure ceiling.
        """
        while self._token.running:
            self._run_until_success()

    def _run_until_success(self) -> None:
        for attempt in Retrying(
            stop=stop_after_attempt(self._max_consecutive_failures),
            wait=wait_fixed(self._delay_seconds),
            retry=retry_if_exception(self._is_retryable),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        ):
            with attempt:
                # Retries re-check the guard like any other cycle boundary
                if self._token.cancelled:
                    return
                self._cycle()

    def _log_retry(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        slog.warning(
            "incremental_cycle_failed",
            consecutive_failures=retry_state.attempt_number,
            max_consecutive_failures=self._max_consecutive_failures,
            error_type=type(error).__name__,
            error=str(error),
        )
