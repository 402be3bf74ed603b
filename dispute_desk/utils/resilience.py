"""Resilience utilities for calls to slow or flaky collaborators."""

import functools
import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from threading import Lock
from typing import Callable, ParamSpec, TypeVar

from dispute_desk.utils.logging import get_logger

P = ParamSpec("P")
T = TypeVar("T")

logger = get_logger("resilience")

# Calls bounded by call_with_timeout run here so the waiting thread can give up
_timeout_pool = ThreadPoolExecutor(max_workers=8, thread_name_prefix="dispute-timeout")


class RetryError(Exception):
    """Raised when every attempt of a retried call failed."""
    pass


class CircuitBreakerOpen(Exception):
    """Raised instead of calling a dependency whose circuit is open."""
    pass


class RateLimitExceeded(Exception):
    """Raised when no rate limit slot frees up in time."""
    pass


class CallTimeout(Exception):
    """Raised when a bounded call does not finish in time."""
    pass


def with_retry(
    max_attempts: int = 3,
    backoff_base: float = 2.0,
    exceptions: tuple = (Exception,),
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Retry a function with exponential backoff.

    After the n-th failed attempt the wrapper sleeps ``backoff_base ** (n - 1)``
    seconds. Once ``max_attempts`` have failed it raises ``RetryError`` chained
    to the last failure.
    """
    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts:
                        logger.error(f"{func.__name__} failed after {max_attempts} attempts: {e}")
                        raise RetryError(
                            f"{func.__name__} failed after {max_attempts} attempts"
                        ) from e
                    delay = backoff_base ** (attempt - 1)
                    logger.warning(
                        f"{func.__name__} attempt {attempt}/{max_attempts} failed ({e}), "
                        f"retrying in {delay:.1f}s"
                    )
                    time.sleep(delay)
            raise RetryError(f"{func.__name__} was not attempted (max_attempts={max_attempts})")

        return wrapper
    return decorator


def call_with_timeout(func: Callable[..., T], timeout: float | None, *args, **kwargs) -> T:
    """Run ``func`` and wait at most ``timeout`` seconds for its result.

    Python threads cannot be cancelled, so on timeout the call keeps running
    in the pool and its eventual result is discarded.

    Raises:
        CallTimeout: If the call did not finish in time
    """
    if timeout is None:
        return func(*args, **kwargs)

    future = _timeout_pool.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        raise CallTimeout(
            f"{getattr(func, '__name__', repr(func))} did not finish within {timeout}s"
        ) from None


class RateLimiter:
    """Allows at most ``requests_per_minute`` calls in any 60 second window."""

    window = 60.0

    def __init__(self, requests_per_minute: int = 60):
        self.requests_per_minute = requests_per_minute
        self._calls: deque[float] = deque()
        self._lock = Lock()

    def _wait_time(self, now: float) -> float:
        while self._calls and now - self._calls[0] >= self.window:
            self._calls.popleft()
        if len(self._calls) < self.requests_per_minute:
            return 0.0
        return self._calls[0] + self.window - now

    def acquire(self, block: bool = True, timeout: float | None = None) -> bool:
        """Take a slot, waiting for one to free up if ``block`` is set.

        Raises:
            RateLimitExceeded: If no slot is free and ``block`` is False, or
                none frees up within ``timeout`` seconds
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            with self._lock:
                now = time.monotonic()
                wait = self._wait_time(now)
                if wait <= 0:
                    self._calls.append(now)
                    return True

            if not block:
                raise RateLimitExceeded(f"Rate limit of {self.requests_per_minute}/min reached")
            if deadline is not None:
                remaining = deadline - now
                if remaining <= 0:
                    raise RateLimitExceeded(f"No rate limit slot freed up within {timeout}s")
                wait = min(wait, remaining)
            time.sleep(wait)


class CircuitBreaker:
    """Stops calling a dependency that keeps failing.

    closed: calls go through and consecutive failures are counted.
    open: calls fail fast with ``CircuitBreakerOpen`` for ``recovery_timeout`` seconds.
    half-open: the next call is a trial; success closes the circuit, failure reopens it.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        name: str = "dependency",
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name

        self._state = "closed"
        self._failures = 0
        self._opened_at: float | None = None
        self._lock = Lock()

    @property
    def state(self) -> str:
        """Current state: closed, open or half-open."""
        with self._lock:
            return self._current_state()

    def _current_state(self) -> str:
        if self._state == "open" and time.monotonic() - self._opened_at >= self.recovery_timeout:
            self._state = "half-open"
            logger.info(f"{self.name} circuit half-open, allowing a trial call")
        return self._state

    def _open(self) -> None:
        self._state = "open"
        self._opened_at = time.monotonic()
        logger.warning(f"{self.name} circuit opened after {self._failures} failure(s)")

    def call(self, func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
        """Call ``func`` unless the circuit is open.

        Raises:
            CircuitBreakerOpen: If the circuit is open
        """
        with self._lock:
            if self._current_state() == "open":
                raise CircuitBreakerOpen(f"{self.name} circuit is open")

        try:
            result = func(*args, **kwargs)
        except Exception:
            with self._lock:
                self._failures += 1
                if self._state == "half-open" or self._failures >= self.failure_threshold:
                    self._open()
            raise

        with self._lock:
            if self._state == "half-open":
                logger.info(f"{self.name} circuit closed")
            self._state = "closed"
            self._failures = 0
        return result

    def reset(self) -> None:
        """Close the circuit and forget past failures."""
        with self._lock:
            self._state = "closed"
            self._failures = 0
            self._opened_at = None
