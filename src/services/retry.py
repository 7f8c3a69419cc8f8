"""
Retry with exponential backoff for upstream calls

Only transient upstream failures are retried (429, 5xx, timeouts). Anything
else, including malformed model output, fails on the first attempt. A rate
limited attempt waits one backoff step longer than other transient failures.

Usage:
    from src.services.retry import RetryPolicy, execute_with_retry

    policy = RetryPolicy(max_attempts=3, base_delay=3.0, max_delay=50.0)
    text = await execute_with_retry(gemini.generate_json, prompt, policy=policy, service="gemini")
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from src.services.errors import UpstreamServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff: base, base*2, base*4 ... capped at max_delay"""

    max_attempts: int = 3
    base_delay: float = 3.0
    max_delay: float = 50.0
    jitter: float = 0.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)"""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay += delay * self.jitter * (random.random() * 2 - 1)
        return max(0.0, delay)


RATE_LIMIT_INDICATORS = (
    "429",
    "rate limit",
    "rate_limit",
    "too many requests",
    "quota exceeded",
    "resource exhausted",
    "resourceexhausted",
)

TRANSIENT_INDICATORS = RATE_LIMIT_INDICATORS + (
    "500",
    "502",
    "503",
    "504",
    "service unavailable",
    "deadline exceeded",
    "deadlineexceeded",
    "timed out",
    "timeout",
    "internal error",
)


def is_rate_limit_error(error: BaseException) -> bool:
    """Detect 429/rate limit errors from SDK exceptions"""
    if isinstance(error, UpstreamServiceError):
        return error.upstream_status == 429
    error_str = str(error).lower()
    error_type = type(error).__name__.lower()
    if "ratelimit" in error_type or "toomanyrequests" in error_type or "resourceexhausted" in error_type:
        return True
    return any(indicator in error_str for indicator in RATE_LIMIT_INDICATORS)


def is_transient_error(error: BaseException) -> bool:
    """True for errors worth another attempt"""
    if isinstance(error, UpstreamServiceError):
        return error.transient
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True
    error_type = type(error).__name__.lower()
    if any(name in error_type for name in ("serviceunavailable", "deadlineexceeded", "internalservererror")):
        return True
    error_str = f"{error_type} {error}".lower()
    return any(indicator in error_str for indicator in TRANSIENT_INDICATORS)


async def execute_with_retry(
    func: Callable[..., Awaitable[Any]],
    *args,
    policy: Optional[RetryPolicy] = None,
    service: str = "upstream",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs,
) -> Any:
    """
    Await `func(*args, **kwargs)`, retrying transient UpstreamServiceErrors.

    Args:
        func: Coroutine function to call
        policy: Backoff policy (defaults to RetryPolicy())
        service: Name used in log lines
        sleep: Awaitable sleep (replaced in tests)

    Returns:
        Whatever `func` returns

    Raises:
        UpstreamServiceError: the last error once attempts are exhausted,
            or immediately when the error is not transient
    """
    policy = policy or RetryPolicy()
    attempt = 0

    while True:
        attempt += 1
        try:
            return await func(*args, **kwargs)
        except UpstreamServiceError as e:
            if not e.transient or attempt >= policy.max_attempts:
                if e.transient:
                    logger.error(f"❌ {service}: giving up after {attempt} attempts: {e}")
                raise
            if is_rate_limit_error(e):
                # Rate limits back off one step further than other transient errors
                delay = policy.delay_for(attempt + 1)
                logger.warning(
                    f"⏳ {service}: Rate limited, retry {attempt}/{policy.max_attempts - 1} in {delay:.1f}s"
                )
            else:
                delay = policy.delay_for(attempt)
                logger.warning(
                    f"🔄 {service}: Retry {attempt}/{policy.max_attempts - 1} in {delay:.1f}s "
                    f"after transient error: {e}"
                )
            await sleep(delay)
