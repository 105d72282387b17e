"""Structured logging for chatrelay."""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_LEVELS = {"INFO": logging.INFO, "WARNING": logging.WARNING, "ERROR": logging.ERROR}


class StructuredLogger:
    """Writes one JSON line per finished LLM call."""

    def __init__(self, name: str = "chatrelay"):
        self.logger = logging.getLogger(name)

    def log_call(
        self,
        request_id: str,
        format: str,
        stream: bool,
        outcome: str,
        latency_ms: int,
        attempts: int,
        model: Optional[str] = None,
        endpoint: Optional[str] = None,
        error_code: Optional[str] = None,
        upstream_status: Optional[int] = None,
        chunks: Optional[int] = None,
        level: str = "INFO",
    ) -> None:
        """
        Args:
            request_id: Correlation id of the call
            format: Wire format used
            stream: Whether the reply was streamed
            outcome: "success", "error" or "cancelled"
            latency_ms: Wall time of the whole call, retries included
            attempts: Network attempts made
            model: Model id sent upstream
            endpoint: Target URL with the query string removed
            error_code: ErrorCode value when outcome is "error"
            upstream_status: Last HTTP status seen, if any
            chunks: Chunks delivered (streaming only)
            level: INFO, WARNING or ERROR
        """
        entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": level,
            "request_id": request_id,
            "format": format,
            "stream": stream,
            "outcome": outcome,
            "latency_ms": latency_ms,
            "attempts": attempts,
        }
        optional = {
            "model": model,
            "endpoint": endpoint,
            "chunks": chunks if stream else None,
            "error_code": error_code if outcome == "error" else None,
            "upstream_status": upstream_status if outcome == "error" else None,
        }
        entry.update({k: v for k, v in optional.items() if v is not None})

        self.logger.log(_LEVELS.get(level, logging.INFO), json.dumps(entry, ensure_ascii=False))


structured_logger = StructuredLogger()
