"""
Rate Limiter - Control request frequency per client.

Fixed-window counter keyed by client IP. The window opens on a client's
first request and every request in it counts against the limit until it
closes. For multi-instance deployments, upgrade to a Redis-backed limiter.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Tuple
import threading

from rukh.core.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class _Window:
    started_at: datetime
    count: int = 0


class RateLimiter:
    """
    Fixed window rate limiter.

    Example:
        >>> limiter = RateLimiter(limit=50, period_seconds=3600)
        >>> limiter.is_allowed("203.0.113.7")  # (True, 49)
        >>> # ... 50 requests later ...
        >>> limiter.is_allowed("203.0.113.7")  # (False, 0)
    """

    def __init__(
        self,
        limit: int = 50,
        period_seconds: int = 3600,
        cleanup_interval_minutes: int = 5
    ):
        """
        Initialize the rate limiter.

        Args:
            limit: Maximum requests allowed per window
            period_seconds: Window length
            cleanup_interval_minutes: How often to drop closed windows
        """
        self.limit = limit
        self.window = timedelta(seconds=period_seconds)
        self.cleanup_interval = timedelta(minutes=cleanup_interval_minutes)

        self._windows: Dict[str, _Window] = {}
        self._lock = threading.RLock()
        self._last_cleanup = datetime.utcnow()

        logger.info(f"RateLimiter initialized: {limit} requests per {period_seconds}s")

    def is_allowed(self, identifier: str) -> Tuple[bool, int]:
        """
        Check if a request is allowed for the given identifier and count it.

        Args:
            identifier: Client IP address

        Returns:
            Tuple of (is_allowed, remaining_requests)
        """
        with self._lock:
            self._maybe_cleanup()

            now = datetime.utcnow()
            window = self._windows.get(identifier)
            if window is None or now >= window.started_at + self.window:
                window = _Window(started_at=now)
                self._windows[identifier] = window

            if window.count >= self.limit:
                logger.warning(f"Rate limit exceeded for: {identifier}")
                return False, 0

            window.count += 1
            return True, self.limit - window.count

    def get_reset_time(self, identifier: str) -> datetime:
        """
        Get when the current window of an identifier closes.

        Args:
            identifier: Client IP address

        Returns:
            Datetime when the window resets
        """
        with self._lock:
            window = self._windows.get(identifier)
            if window is None:
                return datetime.utcnow()
            return window.started_at + self.window

    def retry_after_seconds(self, identifier: str) -> int:
        remaining = (self.get_reset_time(identifier) - datetime.utcnow()).total_seconds()
        return max(1, int(remaining))

    def _maybe_cleanup(self) -> None:
        """Remove closed windows periodically."""
        now = datetime.utcnow()

        if now - self._last_cleanup < self.cleanup_interval:
            return

        for identifier in list(self._windows.keys()):
            if now >= self._windows[identifier].started_at + self.window:
                del self._windows[identifier]

        self._last_cleanup = now
        logger.debug(f"Rate limiter cleanup: {len(self._windows)} active clients")
