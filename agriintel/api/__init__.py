"""
API Module

The request pipeline shared by every AgriIntel service: caching, rate
limiting, deduplication, retries and the error taxonomy.
"""

from .errors import (
    ErrorCode,
    RETRYABLE_CODES,
    ServiceError,
    NetworkError,
    ServiceTimeoutError,
    RateLimitError,
    AuthenticationError,
    error_from_response,
    normalize_error,
)
from .cache import MemoryCache, generate_cache_key
from .rate_limiter import RateLimiter
from .deduplicator import RequestDeduplicator
from .retry import RetryConfig, RetryExecutor
from .base_service import BaseService, HttpResult

__all__ = [
    # Errors
    "ErrorCode",
    "RETRYABLE_CODES",
    "ServiceError",
    "NetworkError",
    "ServiceTimeoutError",
    "RateLimitError",
    "AuthenticationError",
    "error_from_response",
    "normalize_error",

    # Pipeline components
    "MemoryCache",
    "generate_cache_key",
    "RateLimiter",
    "RequestDeduplicator",
    "RetryConfig",
    "RetryExecutor",
    "BaseService",
    "HttpResult",
]
