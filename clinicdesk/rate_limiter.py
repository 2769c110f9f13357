"""Rate limiting for public booking requests by center."""
import threading
import time
from typing import Dict, List

from clinicdesk import config


class RateLimitExceeded(Exception):
    """Raised when rate limit is exceeded."""
    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


class RateLimiter:
    """
    In-memory rate limiter using sliding window algorithm.

    Pattern: Sliding window with per-center configuration.
    Good for: Development, single-server deployments.
    NOT for: Multi-server production (needs a shared store).

    Centers with no request inside their window are dropped from the log,
    so memory follows recent traffic rather than every id ever seen.
    """

    def __init__(
        self,
        default_requests: int = config.PUBLIC_BOOKING_LIMIT,
        default_window_seconds: int = config.PUBLIC_BOOKING_WINDOW_SECONDS,
        clock=time.monotonic,
    ):
        self.default_limit = {
            "requests": default_requests,
            "window_seconds": default_window_seconds
        }
        self.clock = clock

        # {center_id: {"requests": int, "window_seconds": int}}
        self.limits: Dict[str, Dict] = {}

        # {center_id: [timestamp1, timestamp2, ...]}, oldest first
        self.request_log: Dict[str, List[float]] = {}

        self.lock = threading.Lock()

    def set_limit(self, center_id: str, requests: int, window_seconds: int):
        """Configure rate limit for one center."""
        self.limits[center_id] = {
            "requests": requests,
            "window_seconds": window_seconds
        }

    def _window(self, center_id: str) -> int:
        return self.limits.get(center_id, self.default_limit)["window_seconds"]

    def _prune(self, center_id: str, window_seconds: int, now: float) -> List[float]:
        cutoff = now - window_seconds
        log = [ts for ts in self.request_log.get(center_id, []) if ts > cutoff]
        if log:
            self.request_log[center_id] = log
        else:
            self.request_log.pop(center_id, None)
        return log

    def _sweep(self, now: float):
        """Forget centers whose newest request has left their window."""
        stale = [
            center_id for center_id, log in self.request_log.items()
            if log[-1] <= now - self._window(center_id)
        ]
        for center_id in stale:
            del self.request_log[center_id]

    def check_rate_limit(self, center_id: str):
        """
        Count a request against the center's window.

        Raises:
            RateLimitExceeded: If limit exceeded
        """
        with self.lock:
            limit_config = self.limits.get(center_id, self.default_limit)
            max_requests = limit_config["requests"]
            window_seconds = limit_config["window_seconds"]

            now = self.clock()
            self._sweep(now)
            log = self._prune(center_id, window_seconds, now)

            if len(log) >= max_requests:
                oldest_request = min(log)
                retry_after = int(window_seconds - (now - oldest_request)) + 1

                raise RateLimitExceeded(
                    f"Rate limit exceeded for {center_id}: {max_requests} requests per {window_seconds}s",
                    retry_after=retry_after
                )

            log.append(now)
            self.request_log[center_id] = log

    def get_limit_info(self, center_id: str) -> Dict:
        """Get current rate limit status for a center."""
        with self.lock:
            limit_config = self.limits.get(center_id, self.default_limit)
            log = self._prune(center_id, limit_config["window_seconds"], self.clock())

            return {
                "limit": limit_config["requests"],
                "remaining": max(0, limit_config["requests"] - len(log)),
                "reset_in": limit_config["window_seconds"]
            }

    def reset(self, center_id: str = None):
        """Forget logged requests for one center, or for all of them."""
        with self.lock:
            if center_id is None:
                self.request_log.clear()
            else:
                self.request_log.pop(center_id, None)
