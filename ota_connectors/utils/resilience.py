"""
Resilience primitives for partner calls
In-process token bucket rate limiting and a circuit breaker
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class RateLimitState(BaseModel):
    """Snapshot of a token bucket"""

    capacity: int
    remaining: int
    is_limited: bool


class TokenBucketRateLimiter:
    """
    Token bucket limiter shared by every connector talking to one partner account

    `acquire` waits for a token instead of failing, so bursts up to
    `capacity` go out immediately and the rest are spread at `refill_rate`.
    """

    def __init__(
        self,
        capacity: int,
        refill_rate: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if capacity < 1 or refill_rate <= 0:
            raise ValueError("capacity and refill_rate must be positive")
        self.capacity = capacity
        self.refill_rate = refill_rate
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._last_refill = clock()
        self._lock: Optional[asyncio.Lock] = None

    @classmethod
    def per_minute(cls, requests_per_minute: int, **kwargs) -> "TokenBucketRateLimiter":
        return cls(
            capacity=requests_per_minute, refill_rate=requests_per_minute / 60.0, **kwargs
        )

    def _refill(self):
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    async def acquire(self) -> float:
        """Take one token; returns the seconds spent waiting"""
        if self._lock is None:
            self._lock = asyncio.Lock()

        waited = 0.0
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1:
                    self._tokens -= 1
                    return waited
                delay = (1 - self._tokens) / self.refill_rate
                waited += delay
                await self._sleep(delay)

    def get_state(self) -> RateLimitState:
        self._refill()
        return RateLimitState(
            capacity=self.capacity,
            remaining=int(self._tokens),
            is_limited=self._tokens < 1,
        )

    def reset(self):
        self._tokens = float(self.capacity)
        self._last_refill = self._clock()


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration"""

    failure_threshold: int = 5
    recovery_timeout: float = 60.0  # seconds
    success_threshold: int = 1  # for half-open state
    counts_as_failure: Callable[[BaseException], bool] = lambda exc: True
    name: Optional[str] = None


class CircuitBreakerStats(BaseModel):
    """Circuit breaker statistics"""

    state: CircuitState
    failure_count: int
    success_count: int
    last_failure_time: Optional[datetime]
    last_success_time: Optional[datetime]
    total_requests: int
    total_failures: int
    total_successes: int
    next_attempt_time: Optional[datetime]


class CircuitBreakerOpenError(Exception):
    """Exception raised when circuit breaker is open"""

    def __init__(self, circuit_name: str, next_attempt_time: datetime):
        self.circuit_name = circuit_name
        self.next_attempt_time = next_attempt_time
        super().__init__(
            f"Circuit breaker '{circuit_name}' is open. Next attempt at {next_attempt_time.isoformat()}"
        )


class CircuitBreaker:
    """
    Circuit breaker for one partner

    Consecutive failures (as judged by `counts_as_failure`) open the
    circuit; after `recovery_timeout` one trial call is let through and
    `success_threshold` successes close it again. Exceptions that do not
    count as failures leave the state untouched.
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or CircuitBreakerConfig()
        self.name = self.config.name or f"circuit_{id(self)}"
        self._clock = clock
        self._reset_state()

    def _reset_state(self):
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: Optional[float] = None
        self._last_success_time: Optional[float] = None
        self._total_requests = 0
        self._total_failures = 0
        self._total_successes = 0

    @property
    def state(self) -> CircuitState:
        return self._state

    def _set_state(self, state: CircuitState):
        if state != self._state:
            self._state = state
            logger.info(f"Circuit breaker {self.name} is now {state.value}")

    def _should_attempt_reset(self) -> bool:
        if self._last_failure_time is None:
            return True
        return self._clock() - self._last_failure_time >= self.config.recovery_timeout

    def _next_attempt_time(self) -> datetime:
        return datetime.fromtimestamp(
            (self._last_failure_time or self._clock()) + self.config.recovery_timeout,
            tz=timezone.utc,
        )

    def _on_success(self):
        self._last_success_time = self._clock()
        self._total_successes += 1
        self._failure_count = 0
        self._success_count += 1
        if (
            self._state == CircuitState.HALF_OPEN
            and self._success_count >= self.config.success_threshold
        ):
            self._set_state(CircuitState.CLOSED)

    def _on_failure(self, exc: BaseException):
        self._last_failure_time = self._clock()
        self._total_failures += 1
        self._success_count = 0
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN:
            self._set_state(CircuitState.OPEN)
            logger.warning(f"Circuit breaker {self.name} reopened: {exc}")
        elif (
            self._state == CircuitState.CLOSED
            and self._failure_count >= self.config.failure_threshold
        ):
            self._set_state(CircuitState.OPEN)
            logger.warning(
                f"Circuit breaker {self.name} opened after "
                f"{self._failure_count} failures: {exc}"
            )

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Execute an awaitable call with circuit breaker protection"""
        self._total_requests += 1

        if self._state == CircuitState.OPEN:
            if not self._should_attempt_reset():
                raise CircuitBreakerOpenError(self.name, self._next_attempt_time())
            self._success_count = 0
            self._set_state(CircuitState.HALF_OPEN)

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            if self.config.counts_as_failure(e):
                self._on_failure(e)
            raise
        self._on_success()
        return result

    def get_stats(self) -> CircuitBreakerStats:
        def as_datetime(ts: Optional[float]) -> Optional[datetime]:
            return datetime.fromtimestamp(ts, tz=timezone.utc) if ts else None

        next_attempt_time = None
        if self._state == CircuitState.OPEN and self._last_failure_time:
            next_attempt_time = as_datetime(self._last_failure_time) + timedelta(
                seconds=self.config.recovery_timeout
            )

        return CircuitBreakerStats(
            state=self._state,
            failure_count=self._failure_count,
            success_count=self._success_count,
            last_failure_time=as_datetime(self._last_failure_time),
            last_success_time=as_datetime(self._last_success_time),
            total_requests=self._total_requests,
            total_failures=self._total_failures,
            total_successes=self._total_successes,
            next_attempt_time=next_attempt_time,
        )

    def reset(self):
        """Reset circuit breaker to closed state"""
        self._reset_state()
        logger.info(f"Circuit breaker {self.name} reset")
