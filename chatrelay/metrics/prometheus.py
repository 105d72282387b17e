"""Prometheus metrics - minimal implementation."""
from prometheus_client import Counter, Histogram

# Calls as seen by the caller (one per call_once / call_streaming)
requests_total = Counter(
    "chatrelay_requests_total",
    "Total LLM calls",
    ["format", "stream", "outcome"],
)

# Call latency histogram
request_latency_ms = Histogram(
    "chatrelay_request_latency_ms",
    "Call latency in milliseconds",
    ["format", "stream"],
    buckets=[50, 100, 200, 500, 1000, 2000, 5000, 10000, 30000, 60000],
)

# Errors counter with normalized upstream status
errors_total = Counter(
    "chatrelay_errors_total",
    "Total errors surfaced to the caller",
    ["format", "error_code", "upstream_status"],
)

# Individual retries (not counting the first attempt)
retries_total = Counter(
    "chatrelay_retries_total",
    "Total retried attempts",
    ["format", "error_class"],
)

# Non-empty chunks delivered to stream consumers
stream_chunks_total = Counter(
    "chatrelay_stream_chunks_total",
    "Total streamed text chunks delivered",
    ["format"],
)

# Responses that fell back to a placeholder text
parse_fallbacks_total = Counter(
    "chatrelay_parse_fallbacks_total",
    "Total responses with no extractable text",
    ["format"],
)
