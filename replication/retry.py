"""
Retry executor for single remote calls.

Wraps one zero-argument coroutine factory with a bounded retry loop and
classifies every failure:

- 401 / 403           -> AuthError, raised immediately
- 404                 -> None is returned, the caller decides what absence means
- 429                 -> retried with the (longer) throttle back-off,
                         RateLimitedError once the ceiling is reached
- 5xx, other non-2xx,
  timeouts, transport -> retried with exponential back-off,
                         TransientNetworkError once the ceiling is reached

The executor holds no per-call state, so one instance can serve independent
keys concurrently.
"""

import asyncio
import httpx
from typing import Awaitable, Callable, Optional
from core.config import settings
from core.exceptions import (
    AuthError,
    RateLimitedError,
    TransientNetworkError,
)
import logging

logger = logging.getLogger(__name__)

RemoteCall = Callable[[], Awaitable[httpx.Response]]


class RetryExecutor:
    """
    Execute a remote call with error classification and back-off.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        base_delay: Initial delay for generic failures, doubled per attempt
        throttle_delay: Base delay after HTTP 429, grows linearly per attempt
        max_delay: Upper bound for the generic exponential delay
    """

    def __init__(
        self,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        throttle_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.max_retries = settings.MAX_RETRIES if max_retries is None else max_retries
        self.base_delay = settings.RETRY_BASE_DELAY if base_delay is None else base_delay
        self.throttle_delay = settings.THROTTLE_DELAY if throttle_delay is None else throttle_delay
        self.max_delay = settings.RETRY_MAX_DELAY if max_delay is None else max_delay
        self._sleep = sleep

        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    def compute_delay(
        self,
        attempt: int,
        throttled: bool = False,
        retry_after: Optional[float] = None,
        previous: float = 0.0
    ) -> float:
        """
        Delay before the retry that follows ``attempt`` (0-based).

        Throttle waits are linear in the attempt number, never shorter than a
        Retry-After hint and never shorter than the previous throttle wait.
        Generic waits are exponential and capped at max_delay.
        """
        if throttled:
            delay = self.throttle_delay * (attempt + 1)
            if retry_after is not None:
                delay = max(delay, retry_after)
            return max(delay, previous)

        return min(self.base_delay * (2 ** attempt), self.max_delay)

    async def execute(self, call: RemoteCall, description: str = "remote call") -> Optional[httpx.Response]:
        """
        Run ``call`` until it succeeds, is classified terminal, or the retry
        ceiling is reached.

        Returns:
            The successful response, or None when the remote answered 404.

        Raises:
            AuthError: Credentials rejected (no retry)
            RateLimitedError: Still throttled after every retry
            TransientNetworkError: Any other failure after every retry
        """
        attempts = self.max_retries + 1
        throttle_wait = 0.0
        last_status: Optional[int] = None
        last_exception: Optional[BaseException] = None
        last_retry_after: Optional[float] = None
        throttled = False

        for attempt in range(attempts):
            final = attempt == attempts - 1

            try:
                response = await call()
            except (httpx.TimeoutException, httpx.TransportError) as e:
                last_exception = e
                last_status = None
                throttled = False
                if final:
                    break
                delay = self.compute_delay(attempt)
                logger.warning(
                    f"{description}: {type(e).__name__} - retrying in {delay}s "
                    f"(attempt {attempt + 1}/{attempts})"
                )
                await self._sleep(delay)
                continue

            status = response.status_code
            last_status = status
            last_exception = None

            if status in (401, 403):
                raise AuthError(
                    f"Authentication failed for {description}",
                    context={
                        "status_code": status,
                        "url": str(response.request.url) if _has_request(response) else None,
                        "response_body": response.text[:500]
                    }
                )

            if status == 404:
                logger.debug(f"{description}: not found")
                return None

            if status < 400:
                return response

            if status == 429:
                throttled = True
                last_retry_after = _parse_retry_after(response)
                if final:
                    break
                throttle_wait = self.compute_delay(
                    attempt, throttled=True, retry_after=last_retry_after, previous=throttle_wait
                )
                logger.warning(
                    f"{description}: rate limited - waiting {throttle_wait}s "
                    f"before retry {attempt + 1}/{self.max_retries}"
                )
                await self._sleep(throttle_wait)
                continue

            throttled = False
            if final:
                break
            delay = self.compute_delay(attempt)
            logger.warning(
                f"{description}: HTTP {status} - retrying in {delay}s "
                f"(attempt {attempt + 1}/{attempts})"
            )
            await self._sleep(delay)

        context = {
            "description": description,
            "status_code": last_status,
        }

        if throttled:
            raise RateLimitedError(
                f"Still rate limited after {attempts} attempts: {description}",
                context=context,
                attempts=attempts,
                retry_after=last_retry_after
            )

        raise TransientNetworkError(
            f"Giving up after {attempts} attempts: {description}",
            context=context,
            original_exception=last_exception,
            attempts=attempts
        )


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    """Seconds from a numeric Retry-After header, if present"""
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def _has_request(response: httpx.Response) -> bool:
    try:
        response.request
    except RuntimeError:
        return False
    return True
