"""
Fixed-Window Rate Limiter

Per-key request counters for a single service instance. Each key
(``METHOD:endpoint``) gets its own window; a window resets wholesale once it
has elapsed.
"""

import time
from typing import Any, Callable, Dict, Optional

import structlog

from ..models.service_models import RateLimitConfig, RateLimitEntry

logger = structlog.get_logger(__name__)


class RateLimiter:
    """
    Per-key fixed-window rate limiter.

    ``check_rate_limit`` never waits: it answers immediately and counts the
    request when it is allowed. Denied requests are not counted.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.time,
        service_name: str = "api"
    ):
        """
        Initialize rate limiter.

        Args:
            config: Limit settings; None disables limiting entirely
            clock: Time source returning seconds
            service_name: Service name for logging
        """
        self.config = config
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}

        self.logger = logger.bind(service=service_name, component="RateLimiter")

        self.logger.debug(
            "Rate limiter initialized",
            enabled=config is not None,
            requests=config.requests if config else None,
            window=config.window if config else None
        )

    @property
    def enabled(self) -> bool:
        return self.config is not None

    def check_rate_limit(self, key: str) -> bool:
        """
        Check whether a request for ``key`` may proceed, counting it if so.

        Args:
            key: Rate-limit key, usually ``METHOD:endpoint``

        Returns:
            True if allowed, False if the window's quota is used up
        """
        if self.config is None:
            return True

        now = self._clock()
        entry = self._entries.get(key)

        if entry is None:
            self._entries[key] = RateLimitEntry(
                requests=1,
                window_start=now,
                window_size=self.config.window
            )
            return True

        if now - entry.window_start > entry.window_size:
            entry.requests = 1
            entry.window_start = now
            return True

        if entry.requests < self.config.requests:
            entry.requests += 1
            return True

        self.logger.warning(
            "Rate limit exceeded",
            key=key,
            requests=entry.requests,
            limit=self.config.requests,
            window_remaining=round(entry.window_start + entry.window_size - now, 3)
        )
        return False

    def get_entry(self, key: str) -> Optional[RateLimitEntry]:
        return self._entries.get(key)

    def get_current_usage(self) -> Dict[str, Any]:
        """
        Get current rate limit usage statistics.

        Returns:
            Dictionary with the limit settings and per-key usage
        """
        now = self._clock()
        usage: Dict[str, Any] = {
            "timestamp": now,
            "enabled": self.enabled,
            "tracked_keys": len(self._entries),
        }

        if self.config is not None:
            usage["requests_limit"] = self.config.requests
            usage["window"] = self.config.window
            usage["keys"] = {
                key: {
                    "requests": entry.requests,
                    "window_remaining": max(0.0, entry.window_start + entry.window_size - now),
                    "usage_percent": (entry.requests / self.config.requests) * 100,
                }
                for key, entry in self._entries.items()
            }

        return usage

    def reset(self) -> None:
        """Reset rate limiter state (useful for testing)."""
        self._entries.clear()
        self.logger.info("Rate limiter reset")
