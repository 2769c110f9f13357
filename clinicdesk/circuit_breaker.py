"""Fail-fast guard for calls to the hosted clinic backend.

When the backend stops answering, every public page and booking would
otherwise wait out the full HTTP timeout (plus read retries). After
`failure_threshold` consecutive transport failures the breaker opens and
calls are refused immediately until `timeout` seconds have passed; then a
single trial call decides whether to close again.

Only exceptions listed in `trip_on` count as failures. An HTTP error status
is an answer from a live backend and never reaches the breaker.

States:
- CLOSED: calls go through
- OPEN: calls refused with CircuitBreakerOpen
- HALF_OPEN: one trial call allowed
"""
import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """Raised instead of calling a backend that is known to be down."""

    def __init__(self, name: str, retry_after: float):
        super().__init__(f"{name} unavailable. Retry after {retry_after:.1f}s")
        self.retry_after = retry_after


class CircuitBreaker:
    """Consecutive-failure breaker shared by every call to one backend."""

    def __init__(
        self,
        failure_threshold: int = 5,
        timeout: int = 60,
        name: str = "Backend",
        trip_on: Tuple[Type[BaseException], ...] = (Exception,),
    ):
        """
        Args:
            failure_threshold: Consecutive failures that open the circuit
            timeout: Seconds the circuit stays open before a trial call
            name: Backend label used in logs and errors
            trip_on: Exception types that count as backend failures
        """
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.name = name
        self.trip_on = trip_on
        self.failure_count = 0
        self.opened_at: Optional[float] = None
        self._state = CircuitState.CLOSED
        self._lock = threading.Lock()

    @property
    def state(self) -> str:
        return self._state.value

    @property
    def retry_after(self) -> float:
        """Seconds until an open circuit lets a trial call through."""
        if self.opened_at is None:
            return 0.0
        return max(0.0, self.timeout - (time.monotonic() - self.opened_at))

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """
        Run func unless the circuit is open.

        Raises:
            CircuitBreakerOpen: If the backend is still considered down
            Exception: Whatever func raises
        """
        self._before_call()
        try:
            result = func(*args, **kwargs)
        except self.trip_on:
            self._record_failure()
            raise
        self._record_success()
        return result

    def reset(self):
        """Close the circuit and forget past failures."""
        with self._lock:
            self.failure_count = 0
            self.opened_at = None
            self._state = CircuitState.CLOSED

    def _before_call(self):
        with self._lock:
            if self._state != CircuitState.OPEN:
                return
            wait = self.retry_after
            if wait > 0:
                raise CircuitBreakerOpen(self.name, wait)
            self._state = CircuitState.HALF_OPEN
            logger.info(f"{self.name}: trying one call after {self.timeout}s open")

    def _record_success(self):
        with self._lock:
            self.failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.CLOSED
                self.opened_at = None
                logger.info(f"{self.name} answered again, circuit closed")

    def _record_failure(self):
        with self._lock:
            self.failure_count += 1
            if self._state == CircuitState.HALF_OPEN:
                self._open()
                logger.warning(f"{self.name} still failing, circuit reopened")
            elif self.failure_count >= self.failure_threshold:
                self._open()
                logger.error(
                    f"{self.name} failed {self.failure_count} times in a row, "
                    f"refusing calls for {self.timeout}s"
                )

    def _open(self):
        self._state = CircuitState.OPEN
        self.opened_at = time.monotonic()
