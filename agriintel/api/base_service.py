"""
Base Service

Unified request pipeline for every AgriIntel API family: response caching,
rate limiting, request deduplication, classified retries and a uniform
response envelope.
"""

import asyncio
import json
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

import aiohttp
import structlog
from structlog.contextvars import bound_contextvars

from ..models.service_models import ServiceConfig, ServiceHealth, ServiceResponse
from ..utils.logging_config import log_api_request, log_error, log_performance
from .cache import MemoryCache, generate_cache_key
from .deduplicator import RequestDeduplicator
from .errors import (
    ErrorCode,
    NetworkError,
    RateLimitError,
    ServiceError,
    ServiceTimeoutError,
    error_from_response,
    normalize_error,
)
from .rate_limiter import RateLimiter
from .retry import RetryConfig, RetryExecutor

logger = structlog.get_logger(__name__)


@dataclass
class HttpResult:
    """Raw outcome of one HTTP exchange."""
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    text: str = ""
    json_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class BaseService(ABC):
    """
    Base class for all AgriIntel API services.

    Domain services only supply endpoint paths, cache TTLs and payload
    shapes; everything between ``request()`` and the network lives here.
    ``request()`` never raises: every failure is returned as a
    ``ServiceResponse`` with ``success=False``.
    """

    HEALTH_ENDPOINT = "/health"
    HEALTH_TIMEOUT = 5.0

    # Per-family defaults layered over ServiceConfig() before caller overrides
    DEFAULT_CONFIG: Dict[str, Any] = {}

    def __init__(
        self,
        config: Union[ServiceConfig, Dict[str, Any], None] = None,
        service_name: str = "api",
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize base service.

        Args:
            config: Complete ServiceConfig, or partial overrides as a dict
            service_name: Service name for logging and identification
            clock: Time source for cache expiry and rate-limit windows
            sleep: Coroutine used for backoff waits
        """
        if isinstance(config, ServiceConfig):
            self.config = config
        else:
            self.config = ServiceConfig().merged(self.DEFAULT_CONFIG, config)

        self.service_name = service_name
        self._clock = clock
        self.session: Optional[aiohttp.ClientSession] = None

        self.cache: MemoryCache[Any] = MemoryCache(
            max_size=self.config.cache.max_size,
            clock=clock,
            service_name=service_name
        )
        self.rate_limiter = RateLimiter(self.config.rate_limit, clock=clock, service_name=service_name)
        self.deduplicator = RequestDeduplicator(service_name=service_name)
        self.retry_executor = RetryExecutor(
            RetryConfig(max_retries=self.config.retries, base_delay=self.config.retry_delay),
            sleep=sleep,
            service_name=service_name
        )
        self.health = ServiceHealth()

        self.logger = logger.bind(
            service=service_name,
            component="BaseService",
            base_url=self.config.base_url
        )

        self.logger.info(
            "Service initialized",
            timeout=self.config.timeout,
            retries=self.config.retries,
            cache_enabled=self.config.cache.enabled,
            rate_limited=self.config.rate_limit is not None
        )

    async def __aenter__(self):
        """Async context manager entry."""
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
            self.logger.debug("HTTP session started")
        return self.session

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self.session is not None and not self.session.closed:
            await self.session.close()
            self.logger.debug("HTTP session closed")
        self.session = None

    @abstractmethod
    def get_auth_headers(self) -> Dict[str, str]:
        """
        Headers identifying the caller to this API family.
        Must be implemented by subclasses.
        """
        pass

    def get_auth_params(self) -> Dict[str, Any]:
        """
        Query parameters carrying credentials.

        Added to the outgoing request only, so they never reach cache keys,
        dedupe keys or log records.
        """
        return {}

    def generate_request_id(self) -> str:
        return f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"

    def build_url(self, endpoint: str) -> str:
        base_url = self.config.base_url.rstrip("/")
        return f"{base_url}/{endpoint.lstrip('/')}" if endpoint else base_url

    @staticmethod
    def _encode_params(params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        encoded = {}
        for key, value in (params or {}).items():
            if value is None:
                continue
            if isinstance(value, bool):
                encoded[key] = "true" if value else "false"
            elif isinstance(value, (int, float, str)):
                encoded[key] = value
            else:
                encoded[key] = str(value)
        return encoded

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        cache_ttl: Optional[float] = None,
        use_cache: bool = True
    ) -> ServiceResponse:
        """
        Make a cached, rate-limited, deduplicated request with retries.

        Args:
            endpoint: API endpoint (relative to base_url)
            method: HTTP method (GET, POST, PUT, PATCH, DELETE)
            params: Query parameters
            body: JSON body for non-GET requests
            headers: Additional headers
            cache_ttl: Cache TTL in seconds for this endpoint (GET only)
            use_cache: Set False to bypass the cache for this call

        Returns:
            ServiceResponse envelope; never raises
        """
        method = method.upper()
        request_id = self.generate_request_id()
        start_time = time.perf_counter()

        with bound_contextvars(request_id=request_id):
            try:
                cache_key = generate_cache_key(method, endpoint, params)
                cacheable = method == "GET" and use_cache and self.config.cache.enabled

                if cacheable:
                    entry = self.cache.get_entry(cache_key)
                    if entry is not None:
                        return ServiceResponse.ok(
                            entry.data,
                            request_id,
                            duration=time.perf_counter() - start_time,
                            cached=True,
                            cache_age=max(0.0, self._clock() - entry.timestamp)
                        )

                rate_limit_key = f"{method}:{endpoint}"
                if not self.rate_limiter.check_rate_limit(rate_limit_key):
                    raise RateLimitError("Rate limit exceeded")

                async def network_stage() -> Any:
                    return await self.retry_executor.execute_with_retry(
                        lambda: self._attempt(method, endpoint, params, body, headers, request_id)
                    )

                if method == "GET":
                    data = await self.deduplicator.dedupe_request(cache_key, network_stage)
                else:
                    data = await network_stage()

                duration = time.perf_counter() - start_time
                self.health.record_success(duration)

                if cacheable:
                    ttl = cache_ttl if cache_ttl is not None else self.config.cache.ttl
                    self.cache.set(cache_key, data, ttl)

                log_performance("request", duration, service=self.service_name, method=method, endpoint=endpoint)

                return ServiceResponse.ok(data, request_id, duration=duration, cached=False)

            except Exception as e:
                error = normalize_error(e)
                duration = time.perf_counter() - start_time
                self.health.record_failure(duration)

                self.logger.error(
                    "Request failed",
                    method=method,
                    endpoint=endpoint,
                    error=error.message,
                    error_code=error.code.value,
                    status_code=error.status_code,
                    duration=round(duration, 4)
                )
                log_error(
                    error,
                    {"method": method, "endpoint": endpoint, "status_code": error.status_code},
                    request_id=request_id,
                    service=self.service_name
                )
                return ServiceResponse.fail(error.message, request_id, duration=duration)

    async def _attempt(
        self,
        method: str,
        endpoint: str,
        params: Optional[Mapping[str, Any]],
        body: Any,
        headers: Optional[Mapping[str, str]],
        request_id: str
    ) -> Any:
        """Perform one network attempt and classify its outcome."""
        url = self.build_url(endpoint)
        request_headers = {
            "Content-Type": "application/json",
            "X-Request-ID": request_id,
            **self.get_auth_headers(),
            **(headers or {}),
        }

        self.logger.debug("Making API request", method=method, endpoint=endpoint, url=url)

        start_time = time.perf_counter()
        result = await self._send(
            method,
            url,
            params=self._encode_params({**(params or {}), **self.get_auth_params()}),
            json_body=body if method != "GET" else None,
            headers=request_headers,
            timeout=self.config.timeout
        )
        duration = time.perf_counter() - start_time

        log_api_request(
            method=method,
            url=url,
            status_code=result.status,
            duration=duration,
            request_id=request_id,
            service=self.service_name
        )

        if not result.ok:
            raise error_from_response(result.status, result.headers, result.body)

        if result.json_error is not None:
            raise ServiceError(
                f"{self.service_name} returned invalid JSON",
                ErrorCode.UNKNOWN_ERROR,
                result.status
            )

        self.logger.debug(
            "API request successful",
            endpoint=endpoint,
            status=result.status,
            response_size=len(result.text)
        )
        return result.body

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: float
    ) -> HttpResult:
        """
        Send a single HTTP request. This is the only method touching the network.

        Raises:
            ServiceTimeoutError: If the request exceeds ``timeout`` seconds
            NetworkError: If no HTTP response could be obtained
        """
        session = await self._get_session()
        try:
            async with session.request(
                method=method,
                url=url,
                params=params or None,
                json=json_body,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout)
            ) as response:
                raw = await response.read()
                text = raw.decode("utf-8", errors="replace")
                return self._parse_result(response.status, dict(response.headers), text)

        except asyncio.TimeoutError as e:
            raise ServiceTimeoutError() from e
        except aiohttp.ClientError as e:
            raise NetworkError(str(e) or type(e).__name__, e) from e

    @staticmethod
    def _parse_result(status: int, headers: Dict[str, str], text: str) -> HttpResult:
        if not text.strip():
            return HttpResult(status=status, headers=headers, body=None, text=text)
        try:
            body = json.loads(text)
        except json.JSONDecodeError as e:
            return HttpResult(status=status, headers=headers, body=None, text=text, json_error=str(e))
        return HttpResult(status=status, headers=headers, body=body, text=text)

    async def gather_batch(
        self,
        keys: Sequence[str],
        fetch: Callable[[str], Awaitable[ServiceResponse]],
        item_name: str = "item"
    ) -> ServiceResponse:
        """
        Fetch several resources concurrently and combine their envelopes.

        If every fetch fails the result is a failure. Otherwise it is a
        success carrying the items that loaded, with any failures listed in
        ``message``.

        Args:
            keys: Resource identifiers, one fetch each
            fetch: Coroutine function returning the envelope for one key
            item_name: Noun used in failure descriptions

        Returns:
            Envelope whose data is the list of loaded items, in key order
        """
        request_id = self.generate_request_id()
        start_time = time.perf_counter()

        results = await asyncio.gather(*(fetch(key) for key in keys), return_exceptions=True)

        items: List[Any] = []
        errors: List[str] = []
        for key, result in zip(keys, results):
            if isinstance(result, BaseException):
                errors.append(f"Failed to fetch {item_name} {key}: {normalize_error(result).message}")
            elif result.success:
                items.append(result.data)
            else:
                errors.append(f"Failed to fetch {item_name} {key}: {result.error}")

        duration = time.perf_counter() - start_time
        if errors:
            self.logger.warning(
                "Batch request had failures",
                item_name=item_name,
                requested=len(keys),
                failed=len(errors)
            )

        if keys and not items:
            return ServiceResponse.fail("; ".join(errors), request_id, duration=duration)

        return ServiceResponse.ok(
            items,
            request_id,
            duration=duration,
            message="; ".join(errors) if errors else None
        )

    async def health_check(self) -> ServiceResponse:
        """
        Perform a lightweight connectivity check.

        Bypasses cache, rate limiting and retries.

        Returns:
            Envelope whose data is ``{"status", "services"}`` when the API
            answered with a 2xx status
        """
        request_id = self.generate_request_id()
        start_time = time.perf_counter()
        url = self.build_url(self.HEALTH_ENDPOINT)

        try:
            result = await self._send(
                "GET",
                url,
                headers={**self.get_auth_headers(), "X-Request-ID": request_id},
                timeout=self.HEALTH_TIMEOUT
            )
        except Exception as e:
            error = normalize_error(e)
            self.logger.warning("Health check failed", error=error.message)
            return ServiceResponse.fail(
                f"Health check failed: {error.message}",
                request_id,
                duration=time.perf_counter() - start_time
            )

        duration = time.perf_counter() - start_time
        if not result.ok:
            self.logger.warning("Health check failed", status=result.status)
            return ServiceResponse.fail(
                f"Health check failed: HTTP {result.status}",
                request_id,
                duration=duration
            )

        return ServiceResponse.ok(
            {"status": "healthy", "services": {"api": True}},
            request_id,
            duration=duration
        )

    def get_health_metrics(self) -> Dict[str, Any]:
        """
        Get request health metrics for monitoring.

        Returns:
            Status (healthy below a 10% error rate, otherwise degraded) and
            overall request counters
        """
        last_check = time.time()
        return {
            "status": "healthy" if self.health.error_rate < 0.1 else "degraded",
            "services": {
                "cache": {"status": "up", "last_check": last_check, **self.cache.get_stats()},
                "rate_limit": {"status": "up", "last_check": last_check, "enabled": self.rate_limiter.enabled},
            },
            "overall": {
                "uptime": time.time() - self.health.start_time,
                "total_requests": self.health.request_count,
                "failed_requests": self.health.error_count,
                "average_response_time": self.health.average_response_time,
            },
        }

    def get_config(self) -> ServiceConfig:
        return self.config

    def clear_cache(self) -> None:
        self.cache.clear()

    def invalidate(self, endpoint: str) -> int:
        """
        Drop cached GET responses for ``endpoint`` and everything below it.

        Returns:
            Number of cache entries removed
        """
        return self.cache.delete_prefix(f"GET:{endpoint}")

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()

    def reset(self) -> None:
        """Reset cache, rate limits and health counters (useful for testing)."""
        self.cache.clear()
        self.cache.reset_stats()
        self.rate_limiter.reset()
        self.health.reset()

    def get_service_info(self) -> Dict[str, Any]:
        """
        Get service information for dependency injection and monitoring.

        Returns:
            Service configuration and status information
        """
        return {
            "service_name": self.service_name,
            "base_url": self.config.base_url,
            "timeout": self.config.timeout,
            "retries": self.config.retries,
            "session_active": self.session is not None and not self.session.closed,
            "pending_requests": self.deduplicator.pending_count(),
            "component_type": type(self).__name__,
        }
