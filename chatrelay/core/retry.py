"""Retry engine with linear backoff for upstream LLM calls."""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from chatrelay.core.errors import NetworkUnreachableError, UpstreamHTTPError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryMatrix:
    """Retry policy for one error class."""

    def __init__(
        self,
        max_retries: int = 0,
        backoff: str = "linear",
        base_s: float = 1.0,
        max_s: float = 60.0,
    ):
        """
        Args:
            max_retries: Retries allowed after the first attempt
            backoff: Backoff strategy ("linear", "exp", "constant")
            base_s: Base delay in seconds
            max_s: Maximum delay in seconds
        """
        self.max_retries = max(0, int(max_retries))
        self.backoff = backoff
        self.base_s = base_s
        self.max_s = max_s

    def get_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Calculate delay before retry number ``attempt``.

        Args:
            attempt: Retry number (1-based)
            retry_after: Retry-After header value in seconds (if present)

        Returns:
            Delay in seconds
        """
        if retry_after is not None:
            return min(max(retry_after, 0.0), self.max_s)

        if self.backoff == "linear":
            delay = self.base_s * attempt
        elif self.backoff == "exp":
            delay = self.base_s * (2 ** (attempt - 1))
        else:
            delay = self.base_s

        return min(delay, self.max_s)


def classify_error(error: Exception, retry_on_429: bool = True) -> str:
    """Classify error for retry policy selection.

    Returns one of "5xx", "429", "net" or "no-retry". Timeouts and other 4xx
    are never retried: the caller's configuration is what needs fixing.
    """
    if isinstance(error, NetworkUnreachableError):
        return "net"
    if isinstance(error, UpstreamHTTPError):
        if error.status_code >= 500:
            return "5xx"
        if error.status_code == 429 and retry_on_429:
            return "429"
    return "no-retry"


class RetryEngine:
    """Sequential retry loop shared by single-shot and streaming calls."""

    def __init__(
        self,
        retry_attempts: int = 0,
        base_s: float = 1.0,
        max_s: float = 60.0,
        retry_on_429: bool = True,
        matrix: Optional[Dict[str, RetryMatrix]] = None,
    ):
        """
        Args:
            retry_attempts: Retry budget shared by every retryable error class
            base_s: Linear backoff step in seconds
            max_s: Delay cap in seconds
            retry_on_429: Whether rate-limit responses are retried
            matrix: Explicit policies keyed by error class ("5xx", "429", "net")
        """
        self.retry_on_429 = retry_on_429
        if matrix is None:
            policy = RetryMatrix(max_retries=retry_attempts, backoff="linear", base_s=base_s, max_s=max_s)
            matrix = {"5xx": policy, "429": policy, "net": policy}
        self.matrix = matrix

    async def execute(
        self,
        func: Callable[[], Awaitable[T]],
        on_retry: Optional[Callable[[int, str, Exception], Any]] = None,
    ) -> T:
        """
        Execute ``func`` until it succeeds or the budget is spent.

        Args:
            func: Async callable performing one attempt
            on_retry: Called with (retry_number, error_class, error) before sleeping

        Returns:
            Result from func

        Raises:
            The last error once it is not retryable or retries are exhausted
        """
        retries = 0
        while True:
            try:
                return await func()
            except Exception as e:
                error_class = classify_error(e, self.retry_on_429)
                policy = self.matrix.get(error_class)
                if policy is None or retries >= policy.max_retries:
                    raise

                retries += 1
                retry_after = getattr(e, "retry_after", None) if error_class == "429" else None
                delay = policy.get_delay(retries, retry_after=retry_after)
                logger.info(
                    f"Retrying API call (attempt {retries}/{policy.max_retries}) "
                    f"after {error_class} error, waiting {delay:.1f}s: {e}"
                )
                if on_retry is not None:
                    on_retry(retries, error_class, e)
                await asyncio.sleep(delay)
