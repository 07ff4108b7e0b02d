"""Admission control: per-client request ceilings over sliding windows."""

import asyncio
import logging
import math
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from accounts_gate.core.config import settings
from accounts_gate.core.logging import log_security_event
from accounts_gate.core.request_utils import get_client_ip
from accounts_gate.services.errors import RateLimitedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LimiterConfig:
    """A named request ceiling.

    When count_successes is False only failed requests (final status >= 400)
    count against the ceiling; the hit is recorded up front and released once
    the handler has succeeded.
    """

    name: str
    window_seconds: int
    max_attempts: int
    count_successes: bool = True
    code: str = "RATE_LIMIT_EXCEEDED"
    message: str = "Too many requests, please try again later"


@dataclass(frozen=True)
class RouteLimit:
    """Applies a named limiter to a path (segment-boundary match) and optional method."""

    path: str
    limiter: str
    method: str | None = None

    def matches(self, method: str, path: str) -> bool:
        if self.method is not None and self.method.upper() != method.upper():
            return False
        prefix = self.path.rstrip("/")
        return path == prefix or path.startswith(prefix + "/")


@dataclass
class AdmissionTicket:
    """One recorded hit, returned by acquire() and settled by release()."""

    limiter: str
    client_id: str
    timestamp: float
    limit: int
    remaining: int
    reset_seconds: int


def default_limiters() -> list[LimiterConfig]:
    """The application's named limiters."""
    return [
        LimiterConfig(
            name="general",
            window_seconds=settings.rate_limit_window_seconds,
            max_attempts=settings.rate_limit_max_requests,
            message="Too many requests from this IP, please try again later",
        ),
        LimiterConfig(
            name="auth",
            window_seconds=15 * 60,
            max_attempts=5,
            code="AUTH_RATE_LIMIT",
            message="Too many authentication attempts, please try again later",
        ),
        LimiterConfig(
            name="login",
            window_seconds=15 * 60,
            max_attempts=5,
            count_successes=False,
            code="LOGIN_RATE_LIMIT",
            message="Too many login attempts, please try again later",
        ),
        LimiterConfig(
            name="password",
            window_seconds=60 * 60,
            max_attempts=3,
            code="PASSWORD_RATE_LIMIT",
            message="Too many password change attempts, please try again later",
        ),
        LimiterConfig(
            name="strict",
            window_seconds=15 * 60,
            max_attempts=3,
            count_successes=False,
            message="Too many attempts, please try again later",
        ),
    ]


# Routes of the accounting application guarded by a specific limiter, on top of "general"
DEFAULT_ROUTE_LIMITS: list[RouteLimit] = [
    RouteLimit("/api/auth/login", "login", "POST"),
    RouteLimit("/api/auth/register", "auth", "POST"),
    RouteLimit("/api/auth/forgot-password", "strict", "POST"),
    RouteLimit("/api/auth/reset-password", "strict", "POST"),
    RouteLimit("/api/auth/change-password", "password"),
    RouteLimit("/api/users/change-password", "password"),
]


@dataclass
class _Shard:
    """A slice of the hit windows with its own lock."""

    windows: dict[tuple[str, str], deque[float]] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    next_sweep: float = 0.0


class AdmissionController:
    """In-memory sliding-window admission controller.

    Hits are kept per (limiter, client) key in one of a fixed number of
    shards, so concurrent requests for unrelated clients rarely contend on the
    same lock. Each shard drops idle windows lazily once per window length.

    Designed for single-instance deployments.
    """

    _instance: Optional["AdmissionController"] = None
    _instance_lock: threading.Lock = threading.Lock()

    def __init__(
        self,
        limiters: Iterable[LimiterConfig] | None = None,
        *,
        shard_count: int = 16,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._limiters: dict[str, LimiterConfig] = {
            limiter.name: limiter for limiter in (limiters or default_limiters())
        }
        self._shards = [_Shard() for _ in range(max(1, shard_count))]
        self._clock = clock
        self._sweep_interval = min(
            (limiter.window_seconds for limiter in self._limiters.values()), default=60
        )

    @classmethod
    def get_instance(cls) -> "AdmissionController":
        """Get the singleton instance (thread-safe)."""
        if cls._instance is None:
            with cls._instance_lock:
                # Double-check locking pattern
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @property
    def limiters(self) -> dict[str, LimiterConfig]:
        return dict(self._limiters)

    def get_limiter(self, name: str) -> LimiterConfig:
        try:
            return self._limiters[name]
        except KeyError:
            raise KeyError(f"Unknown limiter: {name}") from None

    def configure(self, limiter: LimiterConfig) -> None:
        """Add or replace a named limiter."""
        self._limiters[limiter.name] = limiter
        self._sweep_interval = min(item.window_seconds for item in self._limiters.values())

    def _shard_for(self, key: tuple[str, str]) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    def _prune(self, key: tuple[str, str], hits: deque[float], now: float) -> None:
        config = self._limiters.get(key[0])
        window = config.window_seconds if config else self._sweep_interval
        cutoff = now - window
        while hits and hits[0] <= cutoff:
            hits.popleft()

    def _sweep_shard(self, shard: _Shard, now: float) -> int:
        removed = 0
        for key in list(shard.windows):
            hits = shard.windows[key]
            self._prune(key, hits, now)
            if not hits:
                del shard.windows[key]
                removed += 1
        shard.next_sweep = now + self._sweep_interval
        return removed

    async def acquire(self, limiter: str, client_id: str) -> AdmissionTicket:
        """Record a hit for ``client_id`` or raise RateLimitedError if over the ceiling."""
        config = self.get_limiter(limiter)
        key = (limiter, client_id)
        shard = self._shard_for(key)

        async with shard.lock:
            now = self._clock()
            if now >= shard.next_sweep:
                self._sweep_shard(shard, now)

            hits = shard.windows.get(key)
            if hits is None:
                hits = shard.windows[key] = deque()
            self._prune(key, hits, now)

            if len(hits) >= config.max_attempts:
                retry_after = max(1, math.ceil(hits[0] + config.window_seconds - now))
                raise RateLimitedError(
                    config.message,
                    code=config.code,
                    retry_after=retry_after,
                )

            hits.append(now)
            reset_seconds = max(1, math.ceil(hits[0] + config.window_seconds - now))
            return AdmissionTicket(
                limiter=limiter,
                client_id=client_id,
                timestamp=now,
                limit=config.max_attempts,
                remaining=config.max_attempts - len(hits),
                reset_seconds=reset_seconds,
            )

    async def release(self, ticket: AdmissionTicket, succeeded: bool) -> bool:
        """Settle a ticket once the request outcome is known.

        Returns True if the hit was withdrawn (successful request on a limiter
        that does not count successes).
        """
        config = self._limiters.get(ticket.limiter)
        if config is None or config.count_successes or not succeeded:
            return False

        key = (ticket.limiter, ticket.client_id)
        shard = self._shard_for(key)
        async with shard.lock:
            hits = shard.windows.get(key)
            if not hits or ticket.timestamp not in hits:
                return False
            hits.remove(ticket.timestamp)
            return True

    async def get_stats(self) -> dict[str, dict[str, int]]:
        """Current hit counts keyed by ``"<limiter>:<client>"``."""
        stats: dict[str, dict[str, int]] = {}
        for shard in self._shards:
            async with shard.lock:
                now = self._clock()
                for (limiter, client_id), hits in shard.windows.items():
                    self._prune((limiter, client_id), hits, now)
                    if hits:
                        config = self._limiters.get(limiter)
                        stats[f"{limiter}:{client_id}"] = {
                            "hits": len(hits),
                            "limit": config.max_attempts if config else 0,
                        }
        return stats

    async def reset(self, client_id: str | None = None) -> None:
        """Reset admission counters, for one client or for everyone."""
        for shard in self._shards:
            async with shard.lock:
                if client_id is None:
                    shard.windows.clear()
                else:
                    for key in [k for k in shard.windows if k[1] == client_id]:
                        del shard.windows[key]

    async def cleanup_expired_windows(self) -> int:
        """Drop windows with no hits left in range. Returns the number removed."""
        removed = 0
        for shard in self._shards:
            async with shard.lock:
                removed += self._sweep_shard(shard, self._clock())
        if removed:
            logger.info(f"Cleaned up {removed} expired admission windows")
        return removed


class AdmissionMiddleware(BaseHTTPMiddleware):
    """Applies the general limiter to every request plus any route-scoped limiters.

    Admission is finalized after the downstream handler returns: tickets on
    limiters that ignore successful requests are released when the response
    status is below 400.
    """

    def __init__(
        self,
        app: ASGIApp,
        controller: AdmissionController | None = None,
        route_limits: list[RouteLimit] | None = None,
        default_limiter: str | None = "general",
        exclude_paths: list[str] | None = None,
        enabled: bool = True,
    ) -> None:
        super().__init__(app)
        self.controller = controller or AdmissionController.get_instance()
        self.route_limits = DEFAULT_ROUTE_LIMITS if route_limits is None else route_limits
        self.default_limiter = default_limiter
        self.exclude_paths = exclude_paths or [
            "/health",
            "/docs",
            "/redoc",
            "/openapi.json",
        ]
        self.enabled = enabled

    def limiters_for(self, method: str, path: str) -> list[str]:
        names = [self.default_limiter] if self.default_limiter else []
        names.extend(rule.limiter for rule in self.route_limits if rule.matches(method, path))
        return names

    def _is_excluded(self, path: str) -> bool:
        return any(path == p or path.startswith(p.rstrip("/") + "/") for p in self.exclude_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.enabled or request.method == "OPTIONS":
            return await call_next(request)

        path = request.url.path
        if self._is_excluded(path):
            return await call_next(request)

        client_id = get_client_ip(request) or "unknown"
        tickets: list[AdmissionTicket] = []
        try:
            for name in self.limiters_for(request.method, path):
                tickets.append(await self.controller.acquire(name, client_id))
        except RateLimitedError as exc:
            logger.warning(f"Rate limit exceeded for {client_id} on {path} ({exc.code})")
            log_security_event("rate_limited", request, code=exc.code)
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content=exc.to_dict(),
                headers={"Retry-After": str(exc.retry_after)},
            )

        # An exception from the handler leaves every ticket counted
        response = await call_next(request)

        succeeded = response.status_code < 400
        for ticket in tickets:
            await self.controller.release(ticket, succeeded)

        if tickets:
            # Report the most specific limiter
            ticket = tickets[-1]
            response.headers["X-RateLimit-Limit"] = str(ticket.limit)
            response.headers["X-RateLimit-Remaining"] = str(max(0, ticket.remaining))
            response.headers["X-RateLimit-Reset"] = str(ticket.reset_seconds)

        return response


def get_admission_controller() -> AdmissionController:
    """Get the admission controller singleton for stats/management."""
    return AdmissionController.get_instance()
