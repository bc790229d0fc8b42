import logging
import math
import threading
import time
from collections import deque
from time import perf_counter
from typing import Deque, Iterable, NamedTuple, Optional, Tuple

from constants import DEFAULT_RATE_LIMIT_WINDOWS, RETRY_SAFETY_MARGIN_SECONDS, RateLimitWindow

logger = logging.getLogger(__name__)


class Clock:
    """Monotonic time source and sleep primitive.

    Tests substitute a fake so window expiry and backoff need no real delays.
    """

    def now(self) -> float:
        return perf_counter()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class Admission(NamedTuple):
    admitted: bool
    retry_after: float


class _QuotaWindow:
    """Rolling-window log of admitted request times for a single ceiling."""

    def __init__(self, window_seconds: float, max_requests: int) -> None:
        if not math.isfinite(window_seconds) or window_seconds <= 0:
            raise ValueError(f"window_seconds must be a positive finite number, got {window_seconds}")
        if max_requests <= 0:
            raise ValueError(f"max_requests must be positive, got {max_requests}")
        self.window_seconds: float = window_seconds
        self.max_requests: int = max_requests
        self._timestamps: Deque[float] = deque()

    def __len__(self) -> int:
        return len(self._timestamps)

    def __repr__(self) -> str:
        return f"_QuotaWindow({self.max_requests} per {self.window_seconds}s)"

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def peek(self, now: float) -> Admission:
        """Checks whether a request may proceed at ``now`` without recording it."""
        self._prune(now)
        if len(self._timestamps) < self.max_requests:
            return Admission(True, 0.0)
        wait_time = max(0.0, self._timestamps[0] + self.window_seconds - now)
        return Admission(False, wait_time + RETRY_SAFETY_MARGIN_SECONDS)

    def record(self, now: float) -> None:
        self._timestamps.append(now)

    def try_admit(self, now: float) -> Admission:
        """Admits and records a request at ``now`` if the window has room.

        Returns:
            Admission with ``admitted`` set, or the seconds to wait before the
            oldest entry leaves the window.
        """
        admission = self.peek(now)
        if admission.admitted:
            self.record(now)
        return admission


class _RateLimiter:
    """Sliding-window rate limiter that enforces several ceilings at once.

    A request is admitted only when every window has room at the same
    instant, and then it is recorded in all of them. The check and the
    commit share one lock, so two threads can never both take the last slot.
    Waiting happens outside the lock.

    Args:
        windows: The ceilings to enforce, e.g. a burst and a sustained limit.
        clock: Time source; defaults to the real monotonic clock.
    """

    def __init__(self, windows: Iterable[RateLimitWindow], clock: Optional[Clock] = None) -> None:
        self._windows: Tuple[_QuotaWindow, ...] = tuple(
            _QuotaWindow(w.seconds, w.max_requests) for w in windows
        )
        if not self._windows:
            raise ValueError("At least one rate limit window is required")
        self.clock: Clock = clock or Clock()
        self._lock = threading.Lock()

    @property
    def windows(self) -> Tuple[_QuotaWindow, ...]:
        return self._windows

    def _try_acquire(self) -> Optional[float]:
        with self._lock:
            now = self.clock.now()
            verdicts = [window.peek(now) for window in self._windows]
            denied = [v.retry_after for v in verdicts if not v.admitted]
            if not denied:
                for window in self._windows:
                    window.record(now)
                return None
            return max(max(denied), RETRY_SAFETY_MARGIN_SECONDS)

    def acquire(self) -> float:
        """Blocks until every window admits the request.

        Returns:
            Total seconds spent waiting.
        """
        waited = 0.0
        while True:
            wait_time = self._try_acquire()
            if wait_time is None:
                return waited
            logger.debug(f"Rate limit reached. Waiting for {wait_time:.3f} seconds.")
            self.clock.sleep(wait_time)
            waited += wait_time


def create_trello_rate_limiter(
        windows: Iterable[RateLimitWindow] = DEFAULT_RATE_LIMIT_WINDOWS,
        clock: Optional[Clock] = None,
) -> _RateLimiter:
    """Builds the limiter for Trello's burst and sustained quotas."""
    limiter = _RateLimiter(windows, clock=clock)
    logger.info("Rate limiter initialized: %s", ", ".join(repr(w) for w in limiter.windows))
    return limiter
