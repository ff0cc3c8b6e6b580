from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

logger = logging.getLogger("storefront.rate_limit")


@dataclass(frozen=True)
class RateLimitRule:
    path: str
    max_requests: int
    window_seconds: int
    methods: frozenset[str] | None = None
    # match only ``path`` itself, not its sub-paths
    exact: bool = True

    def matches(self, path: str, method: str) -> bool:
        if self.methods and method not in self.methods:
            return False
        normalized = path.rstrip("/") or "/"
        if self.exact:
            return normalized == self.path
        return normalized.startswith(self.path)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window limiter kept in process memory, keyed by client ip and rule."""

    def __init__(self, app: ASGIApp, rules: Iterable[RateLimitRule]) -> None:
        super().__init__(app)
        self._rules = list(rules)
        self._hits: dict[str, Deque[float]] = {}
        self._lock = asyncio.Lock()

    async def dispatch(self, request: Request, call_next) -> Response:
        method = request.method.upper()
        rule = next((r for r in self._rules if r.matches(request.url.path, method)), None)
        if rule is None:
            return await call_next(request)

        key = f"{self._client_id(request)}:{method}:{rule.path}"
        allowed, retry_after = await self._hit(key, rule)
        if not allowed:
            logger.warning("Rate limit exceeded path=%s method=%s", rule.path, method)
            return JSONResponse(
                {"detail": "Too many requests"},
                status_code=429,
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)

    async def _hit(self, key: str, rule: RateLimitRule) -> tuple[bool, int]:
        now = time.monotonic()
        async with self._lock:
            bucket = self._hits.setdefault(key, deque())
            while bucket and bucket[0] <= now - rule.window_seconds:
                bucket.popleft()
            if len(bucket) >= rule.max_requests:
                return False, max(1, int(rule.window_seconds - (now - bucket[0])))
            bucket.append(now)
        return True, 0

    @staticmethod
    def _client_id(request: Request) -> str:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        if request.client and request.client.host:
            return request.client.host
        return "unknown"
