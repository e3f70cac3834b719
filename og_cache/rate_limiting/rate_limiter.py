"""
Admission Controller

Decides whether a caller may proceed to the expensive render path.

Two strategies behind one contract, chosen once at startup:
- SlidingWindowRateLimiter: Redis sorted-set log per identity, shared by every
  instance; fails open when Redis is unavailable
- FixedWindowRateLimiter: in-process counter per identity, never touches I/O

Usage:
    controller = await create_admission_controller(settings)
    decision = await controller.decide(get_client_identity(request))
    if not decision.admitted:
        ...  # 429 with decision.retry_after
"""

import asyncio
import math
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

import redis.asyncio as redis
from fastapi import Request
from redis.exceptions import RedisError
from slowapi.util import get_remote_address
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from og_cache.core.config.constants import AdmissionBackend, Stage
from og_cache.core.config.settings import Settings
from og_cache.core.exceptions import AdmissionBackendError, ConfigurationError
from og_cache.core.logging.logger import get_logger, log_stage
from og_cache.infrastructure.monitoring.metrics_collector import get_metrics_collector

logger = get_logger(__name__)

# Startup connectivity probe
PING_ATTEMPTS = 3
PING_INITIAL_DELAY = 0.2
PING_MAX_DELAY = 2.0


@dataclass(frozen=True)
class AdmissionDecision:
    """
    Outcome of one admission check.

    Attributes:
        admitted: Whether the caller may proceed
        limit: Maximum requests per window
        remaining: Requests left in the current window
        reset_at: Epoch seconds at which capacity frees up
        retry_after: Whole seconds from the decision to ``reset_at``; at
            least 1 for a rejection
    """

    admitted: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int

    @classmethod
    def at(cls, now: float, admitted: bool, limit: int, remaining: int, reset_at: float) -> "AdmissionDecision":
        """Build a decision taken at ``now`` (epoch seconds of the limiter's clock)."""
        seconds = max(math.ceil(reset_at - now), 0)
        if not admitted:
            seconds = max(seconds, 1)
        return cls(admitted, limit, remaining, reset_at, seconds)


class AdmissionController(ABC):
    """Contract shared by the admission strategies."""

    backend: AdmissionBackend

    def __init__(self, window_ms: int, max_requests: int):
        self._window_ms = window_ms
        self._max_requests = max_requests

    @property
    def limit(self) -> int:
        return self._max_requests

    @property
    def window_ms(self) -> int:
        return self._window_ms

    @abstractmethod
    async def decide(self, identity: str) -> AdmissionDecision:
        """Admit or reject one request from ``identity``."""

    async def close(self) -> None:
        """Release backend resources."""

    def _observe(self, identity: str, decision: AdmissionDecision) -> AdmissionDecision:
        get_metrics_collector().record_admission(self.backend.value, decision.admitted)
        if not decision.admitted:
            log_stage(
                logger,
                Stage.ADMISSION,
                "Rate limit exceeded",
                level="warning",
                identity=identity,
                backend=self.backend.value,
                retry_after=decision.retry_after,
            )
        return decision


# =============================================================================
# IN-PROCESS FIXED WINDOW
# =============================================================================


class FixedWindowRateLimiter(AdmissionController):
    """
    Per-identity counter that resets once its window has passed.

    State is a plain dict mutated without awaiting, so two decisions under
    one event loop cannot interleave. Memory grows with distinct identities
    until ``reset()``.
    """

    backend = AdmissionBackend.FIXED_WINDOW

    def __init__(
        self,
        window_ms: int,
        max_requests: int,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(window_ms, max_requests)
        self._clock = clock
        self._windows: dict[str, dict[str, float]] = {}

    async def decide(self, identity: str) -> AdmissionDecision:
        now = self._clock()
        window = self._windows.get(identity)

        if window is None or now > window["reset_at"]:
            window = {"count": 1, "reset_at": now + self._window_ms / 1000}
            self._windows[identity] = window
            decision = AdmissionDecision.at(now, True, self._max_requests, self._max_requests - 1, window["reset_at"])
        elif window["count"] >= self._max_requests:
            decision = AdmissionDecision.at(now, False, self._max_requests, 0, window["reset_at"])
        else:
            window["count"] += 1
            decision = AdmissionDecision.at(
                now,
                True,
                self._max_requests,
                self._max_requests - int(window["count"]),
                window["reset_at"],
            )

        return self._observe(identity, decision)

    def reset(self) -> None:
        """Forget every identity."""
        self._windows.clear()


# =============================================================================
# DISTRIBUTED SLIDING WINDOW
# =============================================================================


class SlidingWindowRateLimiter(AdmissionController):
    """
    Sliding log of request timestamps in a Redis sorted set.

    One key per identity (``<prefix>:<identity>``), scored by milliseconds.
    Each decision runs a single MULTI/EXEC:

        ZREMRANGEBYSCORE  drop members older than the window
        ZADD              log this request
        ZCARD             count requests in the window
        ZRANGE 0 0        oldest surviving member (for reset_at)
        PEXPIRE           let idle identities expire

    If the count exceeds the limit the just-added member is removed again so
    rejected requests do not extend the caller's penalty.

    Any backend failure admits the caller (fail open).
    """

    backend = AdmissionBackend.SLIDING_WINDOW

    def __init__(
        self,
        client: redis.Redis,
        window_ms: int,
        max_requests: int,
        prefix: str,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(window_ms, max_requests)
        self._redis = client
        self._prefix = prefix
        self._clock = clock

    @property
    def client(self) -> redis.Redis:
        return self._redis

    def key_for(self, identity: str) -> str:
        return f"{self._prefix}:{identity}"

    async def decide(self, identity: str) -> AdmissionDecision:
        now_ms = int(self._clock() * 1000)
        try:
            decision = await self._check(identity, now_ms)
        except AdmissionBackendError as e:
            get_metrics_collector().record_admission_backend_error()
            log_stage(
                logger,
                Stage.ADMISSION,
                "Admission backend unavailable, admitting request",
                level="warning",
                identity=identity,
                error=e.message,
            )
            decision = AdmissionDecision.at(
                now_ms / 1000,
                True,
                self._max_requests,
                self._max_requests,
                (now_ms + self._window_ms) / 1000,
            )
        return self._observe(identity, decision)

    async def _check(self, identity: str, now_ms: int) -> AdmissionDecision:
        key = self.key_for(identity)
        member = f"{now_ms}-{uuid.uuid4().hex}"

        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(key, 0, now_ms - self._window_ms)
                pipe.zadd(key, {member: now_ms})
                pipe.zcard(key)
                pipe.zrange(key, 0, 0, withscores=True)
                pipe.pexpire(key, self._window_ms)
                _, _, count, oldest, _ = await pipe.execute()

            if count > self._max_requests:
                await self._redis.zrem(key, member)
                oldest = await self._redis.zrange(key, 0, 0, withscores=True)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            raise AdmissionBackendError.from_exception(e, key=key) from e

        oldest_ms = oldest[0][1] if oldest else now_ms
        reset_at = (oldest_ms + self._window_ms) / 1000

        if count > self._max_requests:
            return AdmissionDecision.at(now_ms / 1000, False, self._max_requests, 0, reset_at)
        return AdmissionDecision.at(now_ms / 1000, True, self._max_requests, self._max_requests - count, reset_at)

    async def ping(self) -> None:
        """Probe the backend, retrying with exponential backoff."""

        @retry(
            stop=stop_after_attempt(PING_ATTEMPTS),
            wait=wait_exponential_jitter(initial=PING_INITIAL_DELAY, max=PING_MAX_DELAY),
            retry=retry_if_exception_type((RedisError, OSError)),
            before_sleep=lambda retry_state: logger.info(
                "Admission backend ping retry",
                stage=Stage.ADMISSION.value,
                attempt=retry_state.attempt_number,
            ),
            reraise=True,
        )
        async def _ping():
            await self._redis.ping()

        await _ping()

    async def close(self) -> None:
        await self._redis.aclose()


# =============================================================================
# FACTORY & IDENTITY
# =============================================================================


async def create_admission_controller(settings: Settings) -> AdmissionController:
    """
    Select the admission backend from configuration.

    ``RATE_LIMIT_REDIS_URL`` set ⇒ sliding window, else fixed window. A URL
    the Redis client cannot parse raises ConfigurationError. An unreachable
    backend is only logged; its decisions then fail open.
    """
    rate_limit = settings.rate_limit

    if not rate_limit.RATE_LIMIT_REDIS_URL:
        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Using in-memory fixed window rate limiting",
            window_ms=rate_limit.RATE_LIMIT_WINDOW_MS,
            max_requests=rate_limit.RATE_LIMIT_MAX_REQUESTS,
        )
        return FixedWindowRateLimiter(
            window_ms=rate_limit.RATE_LIMIT_WINDOW_MS,
            max_requests=rate_limit.RATE_LIMIT_MAX_REQUESTS,
        )

    try:
        client = redis.from_url(
            rate_limit.RATE_LIMIT_REDIS_URL,
            socket_timeout=rate_limit.RATE_LIMIT_SOCKET_TIMEOUT,
            socket_connect_timeout=rate_limit.RATE_LIMIT_SOCKET_TIMEOUT,
            decode_responses=True,
        )
    except ValueError as e:
        raise ConfigurationError.from_exception(e, message="Invalid RATE_LIMIT_REDIS_URL") from e

    controller = SlidingWindowRateLimiter(
        client,
        window_ms=rate_limit.RATE_LIMIT_WINDOW_MS,
        max_requests=rate_limit.RATE_LIMIT_MAX_REQUESTS,
        prefix=rate_limit.RATE_LIMIT_PREFIX,
    )

    try:
        await controller.ping()
    except (RedisError, OSError) as e:
        logger.warning(
            "Admission backend unreachable at startup, requests will be admitted until it recovers",
            stage=Stage.INITIALIZATION.value,
            error=str(e),
        )
    else:
        log_stage(
            logger,
            Stage.INITIALIZATION,
            "Using Redis sliding window rate limiting",
            window_ms=rate_limit.RATE_LIMIT_WINDOW_MS,
            max_requests=rate_limit.RATE_LIMIT_MAX_REQUESTS,
            prefix=rate_limit.RATE_LIMIT_PREFIX,
        )

    return controller


def get_client_identity(request: Request) -> str:
    """
    Identity used for admission decisions.

    Priority: X-Forwarded-For (first hop) > X-Real-IP > socket peer > "unknown"
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return get_remote_address(request) or "unknown"
