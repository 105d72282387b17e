"""HTTP transport for LLM calls: timeout, retries, proxying and streaming."""
import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Optional, Union
from urllib.parse import quote

import httpx

from chatrelay.adapters.llm.base import BuiltRequest
from chatrelay.adapters.llm.factory import parse_chunk, parse_complete
from chatrelay.core.errors import NetworkUnreachableError, RequestTimeoutError, UpstreamHTTPError
from chatrelay.core.retry import RetryEngine
from chatrelay.core.sse import iter_sse_data
from chatrelay.metrics.prometheus import retries_total

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30000
DEFAULT_STREAM_TIMEOUT_MS = 60000

ChunkCallback = Callable[[str], Union[None, Awaitable[None]]]


@dataclass
class CallStats:
    """Per-call counters filled in by the transport for logging."""

    attempts: int = 0
    upstream_status: Optional[int] = None
    chunks: int = 0


def target_url(url: str, proxy_url: Optional[str] = None) -> str:
    """Final fetch target: the direct URL, or ``proxy_url?url=<encoded url>``."""
    if not proxy_url:
        return url
    return f"{proxy_url}?url={quote(url, safe='!*()~')}"


def extract_error_message(status_code: int, body_text: str) -> str:
    """Human-readable message from a provider error body."""
    default = f"API error ({status_code})"
    detail: Optional[str] = None
    try:
        data = json.loads(body_text)
    except ValueError:
        data = None

    if isinstance(data, dict):
        error = data.get("error")
        for candidate in (
            error.get("message") if isinstance(error, dict) else None,
            data.get("message"),
            data.get("detail"),
        ):
            if isinstance(candidate, str) and candidate.strip():
                detail = candidate.strip()
                break

    if detail is None and body_text and body_text.strip():
        detail = body_text.strip()[:500]

    return f"{default}: {detail}" if detail else default


def _retry_after_seconds(headers: Mapping[str, str]) -> Optional[float]:
    value = headers.get("Retry-After")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _decode_body(response: httpx.Response) -> Any:
    """JSON body when it parses, raw text otherwise."""
    try:
        return response.json()
    except ValueError:
        return response.text


class UpstreamHTTPClient:
    """HTTP client for provider endpoints with retries and SSE streaming."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        retry_base_s: float = 1.0,
        retry_max_s: float = 60.0,
        retry_on_429: bool = True,
    ):
        """
        Args:
            client: Shared httpx client; one with connection pooling is created when omitted
            retry_base_s: Linear backoff step in seconds
            retry_max_s: Maximum delay between attempts
            retry_on_429: Whether rate-limit responses are retried
        """
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
        )
        self.retry_base_s = retry_base_s
        self.retry_max_s = retry_max_s
        self.retry_on_429 = retry_on_429

    def _retry_engine(self, retry_attempts: int) -> RetryEngine:
        return RetryEngine(
            retry_attempts=retry_attempts,
            base_s=self.retry_base_s,
            max_s=self.retry_max_s,
            retry_on_429=self.retry_on_429,
        )

    @staticmethod
    def _count_retry(request: BuiltRequest) -> Callable[[int, str, Exception], None]:
        def _on_retry(attempt: int, error_class: str, error: Exception) -> None:
            retries_total.labels(format=request.format.value, error_class=error_class).inc()
        return _on_retry

    @staticmethod
    def _raise_for_status(response: httpx.Response, body_text: str) -> None:
        if response.is_success:
            return
        raise UpstreamHTTPError(
            response.status_code,
            extract_error_message(response.status_code, body_text),
            retry_after=_retry_after_seconds(response.headers),
        )

    async def send(
        self,
        request: BuiltRequest,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        retry_attempts: int = 0,
        proxy_url: Optional[str] = None,
        stats: Optional[CallStats] = None,
    ) -> str:
        """
        Perform a single-shot call and return the parsed text.

        Args:
            request: Built request
            timeout_ms: Per-attempt timeout in milliseconds
            retry_attempts: Retries allowed for 5xx, 429 and network failures
            proxy_url: Optional forwarding proxy
            stats: Filled with attempt count and last upstream status

        Returns:
            Assistant text (never None)

        Raises:
            RequestTimeoutError, NetworkUnreachableError, UpstreamHTTPError
        """
        url = target_url(request.url, proxy_url)
        timeout_s = timeout_ms / 1000
        stats = stats if stats is not None else CallStats()

        async def _attempt() -> str:
            stats.attempts += 1
            try:
                response = await asyncio.wait_for(
                    self.client.post(
                        url,
                        json=dict(request.body),
                        headers=dict(request.headers),
                        timeout=httpx.Timeout(timeout_s),
                    ),
                    timeout=timeout_s,
                )
            except (asyncio.TimeoutError, httpx.TimeoutException) as e:
                raise RequestTimeoutError(timeout_ms) from e
            except httpx.TransportError as e:
                logger.debug(f"Transport failure calling upstream: {e!r}")
                raise NetworkUnreachableError() from e

            stats.upstream_status = response.status_code
            self._raise_for_status(response, response.text)
            return parse_complete(_decode_body(response), request.format)

        return await self._retry_engine(retry_attempts).execute(
            _attempt, on_retry=self._count_retry(request)
        )

    async def _open_stream(
        self,
        request: BuiltRequest,
        url: str,
        timeout_ms: int,
        stats: CallStats,
    ) -> httpx.Response:
        """Send the request and return the response once headers are in."""
        stats.attempts += 1
        timeout_s = timeout_ms / 1000
        http_request = self.client.build_request(
            "POST",
            url,
            json=dict(request.body),
            headers=dict(request.headers),
            timeout=httpx.Timeout(timeout_s),
        )
        try:
            response = await asyncio.wait_for(
                self.client.send(http_request, stream=True),
                timeout=timeout_s,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError(timeout_ms) from e
        except httpx.TransportError as e:
            logger.debug(f"Transport failure opening stream: {e!r}")
            raise NetworkUnreachableError() from e

        stats.upstream_status = response.status_code
        if not response.is_success:
            try:
                await response.aread()
                body_text = response.text
            except httpx.HTTPError:
                body_text = ""
            finally:
                await response.aclose()
            self._raise_for_status(response, body_text)
        return response

    async def iter_text(
        self,
        request: BuiltRequest,
        timeout_ms: int = DEFAULT_STREAM_TIMEOUT_MS,
        retry_attempts: int = 0,
        proxy_url: Optional[str] = None,
        stats: Optional[CallStats] = None,
    ) -> AsyncIterator[str]:
        """
        Stream a call, yielding non-empty text chunks in arrival order.

        Retries only cover opening the stream; once the first byte of the
        body is read, failures propagate. Closing the iterator early aborts
        the underlying request.

        Args:
            request: Built request (with streaming enabled in its body)
            timeout_ms: Timeout for connecting and for each body read
            retry_attempts: Retries allowed before the stream is open
            proxy_url: Optional forwarding proxy
            stats: Filled with attempts, upstream status and chunk count

        Yields:
            Text chunks, never empty
        """
        url = target_url(request.url, proxy_url)
        stats = stats if stats is not None else CallStats()

        response = await self._retry_engine(retry_attempts).execute(
            lambda: self._open_stream(request, url, timeout_ms, stats),
            on_retry=self._count_retry(request),
        )

        try:
            async for payload in iter_sse_data(response.aiter_text()):
                try:
                    chunk = json.loads(payload)
                except ValueError:
                    logger.warning(f"Failed to parse stream chunk: {payload[:200]!r}")
                    continue
                text = parse_chunk(chunk, request.format)
                if text:
                    stats.chunks += 1
                    yield text
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(timeout_ms) from e
        except httpx.TransportError as e:
            raise NetworkUnreachableError(
                "Network error: connection lost while streaming the response."
            ) from e
        finally:
            await response.aclose()

    async def stream(
        self,
        request: BuiltRequest,
        on_chunk: ChunkCallback,
        timeout_ms: int = DEFAULT_STREAM_TIMEOUT_MS,
        retry_attempts: int = 0,
        proxy_url: Optional[str] = None,
        stats: Optional[CallStats] = None,
    ) -> None:
        """Stream a call, invoking ``on_chunk`` once per non-empty chunk.

        ``on_chunk`` may be a plain function or a coroutine function; it is
        awaited before the next chunk is read.
        """
        chunks = self.iter_text(
            request,
            timeout_ms=timeout_ms,
            retry_attempts=retry_attempts,
            proxy_url=proxy_url,
            stats=stats,
        )
        try:
            async for text in chunks:
                result = on_chunk(text)
                if inspect.isawaitable(result):
                    await result
        finally:
            await chunks.aclose()

    async def close(self):
        """Close HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "UpstreamHTTPClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
