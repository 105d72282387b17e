"""Caller-facing entry points: validate, build, send, parse, log."""
import inspect
import logging
import time
import uuid
from typing import Any, AsyncIterator, Iterable, Mapping, Optional, Sequence, Tuple

from chatrelay.adapters.llm.base import NO_RESPONSE, BuiltRequest
from chatrelay.adapters.llm.custom import UNPARSEABLE_RESPONSE
from chatrelay.adapters.llm.factory import build_request, resolve_format
from chatrelay.app.schemas import CallOptions, ConnectionTestResult
from chatrelay.config.presets import find_preset
from chatrelay.config.schema import ApiPreset, ClientSettings, ModelConfig
from chatrelay.core.errors import (
    NETWORK_STATUS_LABEL,
    TIMEOUT_STATUS_LABEL,
    ChatRelayError,
    ErrorCode,
    InputValidationError,
    UpstreamHTTPError,
    status_label,
)
from chatrelay.core.http_client import CallStats, ChunkCallback, UpstreamHTTPClient
from chatrelay.core.logging import structured_logger
from chatrelay.core.security import SecurityManager
from chatrelay.metrics.prometheus import (
    errors_total,
    parse_fallbacks_total,
    request_latency_ms,
    requests_total,
    stream_chunks_total,
)

logger = logging.getLogger(__name__)

CONNECTION_TEST_PROMPT = "test"


def validate_call_inputs(endpoint: Any, api_key: Any, messages: Optional[Sequence[Any]]) -> None:
    """Fail fast, before any I/O, on inputs no provider could accept.

    Raises:
        InputValidationError: With a message naming the bad input
    """
    valid, error = SecurityManager.validate_url(endpoint)
    if not valid:
        raise InputValidationError(f"Invalid API endpoint: {error}", ErrorCode.INVALID_ENDPOINT)

    valid, error = SecurityManager.validate_api_key(api_key)
    if not valid:
        raise InputValidationError(error, ErrorCode.MISSING_API_KEY)

    valid, error = SecurityManager.validate_messages(messages)
    if not valid:
        raise InputValidationError(error, ErrorCode.EMPTY_MESSAGES)


def prepare_call(
    endpoint: str,
    api_key: str,
    messages: Sequence[Any],
    options: Optional[Mapping[str, Any]] = None,
    stream: bool = False,
    presets: Optional[Iterable[ApiPreset]] = None,
) -> Tuple[BuiltRequest, CallOptions]:
    """Validate inputs, pick the wire format and build the request."""
    validate_call_inputs(endpoint, api_key, messages)
    endpoint = endpoint.strip()
    if presets is not None:
        presets = list(presets)
    call_options = CallOptions.from_raw(options)
    fmt = resolve_format(endpoint, call_options.format, find_preset(endpoint, presets))
    logger.debug(
        f"Preparing {fmt.value} call to {SecurityManager.redact_url(endpoint)} "
        f"with key {SecurityManager.mask_api_key(api_key)}"
    )
    built = build_request(
        endpoint,
        api_key,
        list(messages),
        fmt,
        options,
        stream=stream,
        presets=presets,
    )
    return built, call_options


def _record_call(
    request_id: str,
    built: BuiltRequest,
    stream: bool,
    stats: CallStats,
    started: float,
    outcome: str,
    error: Optional[ChatRelayError] = None,
) -> None:
    """Emit metrics and one structured log line for a finished call."""
    latency_ms = int((time.monotonic() - started) * 1000)
    fmt = built.format.value
    stream_str = "true" if stream else "false"

    requests_total.labels(format=fmt, stream=stream_str, outcome=outcome).inc()
    request_latency_ms.labels(format=fmt, stream=stream_str).observe(latency_ms)

    error_code = None
    if error is not None:
        error_code = error.code.value
        if error.code == ErrorCode.TIMEOUT:
            upstream_label = TIMEOUT_STATUS_LABEL
        elif error.code == ErrorCode.NETWORK_ERROR:
            upstream_label = NETWORK_STATUS_LABEL
        else:
            upstream_label = status_label(stats.upstream_status)
        errors_total.labels(format=fmt, error_code=error_code, upstream_status=upstream_label).inc()

    structured_logger.log_call(
        request_id=request_id,
        format=fmt,
        stream=stream,
        model=built.body.get("model"),
        endpoint=SecurityManager.redact_url(built.url),
        outcome=outcome,
        error_code=error_code,
        upstream_status=stats.upstream_status,
        latency_ms=latency_ms,
        attempts=stats.attempts,
        chunks=stats.chunks if stream else None,
        level="ERROR" if outcome == "error" else "INFO",
    )


def _resolve_client(
    http_client: Optional[UpstreamHTTPClient],
    settings: ClientSettings,
) -> Tuple[UpstreamHTTPClient, bool]:
    if http_client is not None:
        return http_client, False
    client = UpstreamHTTPClient(
        retry_base_s=settings.retry_base_s,
        retry_max_s=settings.retry_max_s,
        retry_on_429=settings.retry_on_429,
    )
    return client, True


async def _send(
    endpoint: str,
    api_key: str,
    messages: Sequence[Any],
    options: Optional[Mapping[str, Any]],
    http_client: Optional[UpstreamHTTPClient],
    settings: Optional[ClientSettings],
    presets: Optional[Iterable[ApiPreset]],
    request_id: Optional[str],
    stats: CallStats,
) -> str:
    settings = settings or ClientSettings()
    built, call_options = prepare_call(endpoint, api_key, messages, options, False, presets)
    request_id = request_id or str(uuid.uuid4())
    client, owns_client = _resolve_client(http_client, settings)
    started = time.monotonic()

    try:
        text = await client.send(
            built,
            timeout_ms=call_options.timeout_ms or settings.timeout_ms,
            retry_attempts=(
                settings.retry_attempts
                if call_options.retry_attempts is None else call_options.retry_attempts
            ),
            proxy_url=call_options.proxy_url or settings.proxy_url,
            stats=stats,
        )
    except ChatRelayError as e:
        _record_call(request_id, built, False, stats, started, "error", e)
        raise
    finally:
        if owns_client:
            await client.close()

    if text in (NO_RESPONSE, UNPARSEABLE_RESPONSE):
        parse_fallbacks_total.labels(format=built.format.value).inc()
    _record_call(request_id, built, False, stats, started, "success")
    return text


async def call_once(
    endpoint: str,
    api_key: str,
    messages: Sequence[Any],
    options: Optional[Mapping[str, Any]] = None,
    http_client: Optional[UpstreamHTTPClient] = None,
    settings: Optional[ClientSettings] = None,
    presets: Optional[Iterable[ApiPreset]] = None,
    request_id: Optional[str] = None,
) -> str:
    """
    Send a conversation and return the complete assistant reply.

    Args:
        endpoint: Provider endpoint URL (http/https)
        api_key: Provider credential
        messages: Conversation history (Message models or role/content dicts)
        options: Generation and transport options (snake_case or camelCase)
        http_client: Shared transport; a temporary one is used when omitted
        settings: Transport defaults
        presets: Presets matched against the endpoint for format, default model and headers
        request_id: Correlation id for logs

    Returns:
        Reply text; a placeholder text when the response had none

    Raises:
        InputValidationError, RequestTimeoutError, NetworkUnreachableError,
        UpstreamHTTPError
    """
    return await _send(
        endpoint, api_key, messages, options, http_client, settings, presets, request_id, CallStats()
    )


async def iter_stream(
    endpoint: str,
    api_key: str,
    messages: Sequence[Any],
    options: Optional[Mapping[str, Any]] = None,
    http_client: Optional[UpstreamHTTPClient] = None,
    settings: Optional[ClientSettings] = None,
    presets: Optional[Iterable[ApiPreset]] = None,
    request_id: Optional[str] = None,
) -> AsyncIterator[str]:
    """
    Stream a reply as a lazy, single-use sequence of non-empty text chunks.

    Input validation happens on the first iteration. Closing the iterator
    early aborts the request.
    """
    settings = settings or ClientSettings()
    built, call_options = prepare_call(endpoint, api_key, messages, options, True, presets)
    request_id = request_id or str(uuid.uuid4())
    client, owns_client = _resolve_client(http_client, settings)
    stats = CallStats()
    started = time.monotonic()
    outcome = "cancelled"
    error: Optional[ChatRelayError] = None

    chunks = client.iter_text(
        built,
        timeout_ms=call_options.timeout_ms or settings.stream_timeout_ms,
        retry_attempts=(
            settings.retry_attempts
            if call_options.retry_attempts is None else call_options.retry_attempts
        ),
        proxy_url=call_options.proxy_url or settings.proxy_url,
        stats=stats,
    )
    try:
        async for text in chunks:
            stream_chunks_total.labels(format=built.format.value).inc()
            yield text
        outcome = "success"
    except ChatRelayError as e:
        outcome = "error"
        error = e
        raise
    finally:
        await chunks.aclose()
        _record_call(request_id, built, True, stats, started, outcome, error)
        if owns_client:
            await client.close()


async def call_streaming(
    endpoint: str,
    api_key: str,
    messages: Sequence[Any],
    options: Optional[Mapping[str, Any]],
    on_chunk: ChunkCallback,
    http_client: Optional[UpstreamHTTPClient] = None,
    settings: Optional[ClientSettings] = None,
    presets: Optional[Iterable[ApiPreset]] = None,
    request_id: Optional[str] = None,
) -> None:
    """
    Stream a reply, calling ``on_chunk(text)`` once per non-empty chunk.

    ``on_chunk`` may be sync or async; chunks are delivered strictly in
    arrival order and the next read waits for the callback to finish.
    """
    if not callable(on_chunk):
        raise TypeError("on_chunk must be callable")

    chunks = iter_stream(
        endpoint,
        api_key,
        messages,
        options,
        http_client=http_client,
        settings=settings,
        presets=presets,
        request_id=request_id,
    )
    try:
        async for text in chunks:
            result = on_chunk(text)
            if inspect.isawaitable(result):
                await result
    finally:
        await chunks.aclose()


async def check_connection(
    model: ModelConfig,
    http_client: Optional[UpstreamHTTPClient] = None,
    settings: Optional[ClientSettings] = None,
) -> ConnectionTestResult:
    """Send a tiny request to a configured model. Never raises."""
    options = {"model": model.name, "max_tokens": 10}
    if model.format:
        options["format"] = model.format
    stats = CallStats()

    try:
        await _send(
            model.url,
            model.api_key,
            [{"role": "user", "content": CONNECTION_TEST_PROMPT}],
            options,
            http_client,
            settings,
            None,
            None,
            stats,
        )
    except UpstreamHTTPError as e:
        return ConnectionTestResult(success=False, status=e.status_code, message=f"Connection failed: {e.message}")
    except ChatRelayError as e:
        return ConnectionTestResult(success=False, status=0, message=f"Connection error: {e.message}")

    return ConnectionTestResult(
        success=True,
        status=stats.upstream_status or 200,
        message="Connection successful",
    )
