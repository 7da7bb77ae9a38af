"""
Service Models for the AgriIntel Service Client Layer

Pydantic models for service configuration and the response envelope, plus
the small state records owned by each service instance.
"""

import asyncio
import os
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

T = TypeVar("T")

DEFAULT_BASE_URL = "http://localhost:3000/api"


def _default_base_url() -> str:
    """Resolve the default API base URL from the environment."""
    return os.getenv("NEXT_PUBLIC_API_URL") or DEFAULT_BASE_URL


class CacheConfig(BaseModel):
    """Response cache settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Whether GET responses are cached")
    ttl: float = Field(default=300.0, ge=0, description="Default time to live in seconds")
    max_size: int = Field(default=100, ge=0, description="Maximum number of cached entries")


class RateLimitConfig(BaseModel):
    """Fixed-window rate limit settings."""

    model_config = ConfigDict(frozen=True)

    requests: int = Field(default=100, ge=1, description="Requests allowed per window")
    window: float = Field(default=900.0, gt=0, description="Window length in seconds")


class ServiceConfig(BaseModel):
    """Immutable configuration of a single service instance."""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(default_factory=_default_base_url, description="Base URL of the API")
    timeout: float = Field(default=10.0, gt=0, description="Per-attempt timeout in seconds")
    retries: int = Field(default=3, ge=0, description="Retry attempts after the first try")
    retry_delay: float = Field(default=1.0, ge=0, description="Base backoff delay in seconds")
    cache: CacheConfig = Field(default_factory=CacheConfig)
    rate_limit: Optional[RateLimitConfig] = Field(
        default_factory=RateLimitConfig,
        description="Rate limit settings, None disables rate limiting"
    )

    def merged(self, *overrides: Optional[Dict[str, Any]]) -> "ServiceConfig":
        """
        Build a new config with partial overrides applied in order.

        Nested ``cache`` and ``rate_limit`` dicts are merged one level deep so
        an override can change a single cache field without restating the rest.

        Args:
            *overrides: Partial config dicts (None entries are skipped)

        Returns:
            New validated ServiceConfig
        """
        data = self.model_dump()
        for override in overrides:
            if not override:
                continue
            for key, value in override.items():
                if isinstance(value, BaseModel):
                    value = value.model_dump()
                current = data.get(key)
                if isinstance(value, dict) and isinstance(current, dict):
                    data[key] = {**current, **value}
                else:
                    data[key] = value
        return ServiceConfig.model_validate(data)


class ResponseMetadata(BaseModel):
    """Diagnostic metadata attached to every response envelope."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: str = Field(..., description="Identifier sent as X-Request-ID")
    duration: Optional[float] = Field(default=None, description="Elapsed seconds")
    cached: Optional[bool] = Field(default=None, description="Whether served from cache")
    cache_age: Optional[float] = Field(default=None, description="Age of the cached entry in seconds")


class ServiceResponse(BaseModel, Generic[T]):
    """
    Uniform envelope every service call resolves to.

    Callers branch on ``success`` only; retries, caching and timeouts stay
    hidden behind it.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    message: Optional[str] = None
    metadata: ResponseMetadata

    @model_validator(mode="after")
    def _check_envelope(self) -> "ServiceResponse":
        if not self.success and self.data is not None:
            raise ValueError("failed responses must not carry data")
        if self.success and self.error is not None:
            raise ValueError("successful responses must not carry an error")
        return self

    @classmethod
    def ok(
        cls,
        data: Any,
        request_id: str,
        *,
        duration: Optional[float] = None,
        cached: Optional[bool] = None,
        cache_age: Optional[float] = None,
        message: Optional[str] = None,
    ) -> "ServiceResponse":
        """Build a successful envelope."""
        return cls(
            success=True,
            data=data,
            message=message,
            metadata=ResponseMetadata(
                request_id=request_id,
                duration=duration,
                cached=cached,
                cache_age=cache_age,
            ),
        )

    @classmethod
    def fail(
        cls,
        error: str,
        request_id: str,
        *,
        duration: Optional[float] = None,
        message: Optional[str] = None,
    ) -> "ServiceResponse":
        """Build a failed envelope."""
        return cls(
            success=False,
            data=None,
            error=error,
            message=message,
            metadata=ResponseMetadata(request_id=request_id, duration=duration),
        )


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with its write time and expiry."""
    data: T
    timestamp: float
    expires_at: float
    access_count: int = 0


@dataclass
class RateLimitEntry:
    """Request counter for one rate-limit key."""
    requests: int
    window_start: float
    window_size: float


@dataclass
class PendingRequest:
    """An in-flight request shared by concurrent identical callers."""
    task: "asyncio.Task[Any]"
    timestamp: float


@dataclass
class ServiceHealth:
    """Aggregate request counters owned by one service instance."""
    request_count: int = 0
    error_count: int = 0
    total_response_time: float = 0.0
    start_time: float = field(default_factory=time.time)

    def record_success(self, duration: float) -> None:
        self.request_count += 1
        self.total_response_time += duration

    def record_failure(self, duration: float) -> None:
        self.request_count += 1
        self.error_count += 1
        self.total_response_time += duration

    @property
    def error_rate(self) -> float:
        return self.error_count / max(self.request_count, 1)

    @property
    def average_response_time(self) -> float:
        if self.request_count == 0:
            return 0.0
        return self.total_response_time / self.request_count

    def reset(self) -> None:
        self.request_count = 0
        self.error_count = 0
        self.total_response_time = 0.0
        self.start_time = time.time()
