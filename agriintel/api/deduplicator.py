"""
Request Deduplicator

Collapses concurrent identical requests onto one in-flight task so a burst of
callers costs a single network round trip.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, TypeVar

import structlog

from ..models.service_models import PendingRequest

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RequestDeduplicator:
    """
    Registry of in-flight requests keyed by a dedupe key.

    The first caller for a key starts the work; later callers with the same key
    await the very same task and see the same result or exception. The key is
    released as soon as that task settles.
    """

    def __init__(self, service_name: str = "api"):
        self._pending: Dict[str, PendingRequest] = {}
        self.logger = logger.bind(service=service_name, component="RequestDeduplicator")

    async def dedupe_request(self, key: str, request_fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``request_fn`` once per concurrent burst of ``key``.

        Args:
            key: Dedupe key identifying the logical request
            request_fn: Zero-argument coroutine function performing the request

        Returns:
            The shared result

        Raises:
            Exception: Whatever the shared request raised
        """
        pending = self._pending.get(key)

        if pending is not None:
            self.logger.debug("Joining in-flight request", key=key)
        else:
            task = asyncio.ensure_future(self._run(key, request_fn))
            pending = PendingRequest(task=task, timestamp=time.time())
            self._pending[key] = pending

        # shield so one cancelled waiter does not cancel the work for the rest
        return await asyncio.shield(pending.task)

    async def _run(self, key: str, request_fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await request_fn()
        finally:
            self._pending.pop(key, None)

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def pending_count(self) -> int:
        return len(self._pending)
