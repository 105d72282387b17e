"""Caller-facing schemas for chatrelay.

This module provides Pydantic models for:
- Conversation messages
- Per-call options accepted by call_once / call_streaming
- Connection test results
"""
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from chatrelay.core.params import normalize_option_keys, to_finite_number


class MessageRole(str, Enum):
    """LLM message roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """One conversation turn. Order in the history is significant."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole = Field(..., description="Message role: system, user, or assistant")
    content: str = Field(..., description="Message content")


class CallOptions(BaseModel):
    """Transport-level options for one call.

    Built leniently from the caller's raw option mapping: values that are
    missing or malformed fall back to the configured defaults instead of
    failing the call.
    """

    format: Optional[str] = Field(default=None, description="Explicit wire format override")
    proxy_url: Optional[str] = Field(default=None, description="Forwarding proxy URL")
    timeout_ms: Optional[int] = Field(default=None, description="Timeout in milliseconds")
    retry_attempts: Optional[int] = Field(default=None, description="Retries after the first attempt")

    @classmethod
    def from_raw(cls, raw: Optional[Mapping[str, Any]]) -> "CallOptions":
        options = normalize_option_keys(raw)

        proxy_url = options.get("proxy_url")
        if not isinstance(proxy_url, str) or not proxy_url.strip():
            proxy_url = None

        timeout = to_finite_number(options.get("timeout", options.get("timeout_ms")))
        retries = to_finite_number(options.get("retry_attempts"))

        fmt = options.get("format")
        return cls(
            format=fmt if isinstance(fmt, str) and fmt else None,
            proxy_url=proxy_url.strip() if proxy_url else None,
            timeout_ms=int(timeout) if timeout is not None and timeout > 0 else None,
            retry_attempts=int(retries) if retries is not None and retries >= 0 else None,
        )


class ConnectionTestResult(BaseModel):
    """Outcome of a connection test against a configured model."""

    success: bool = Field(..., description="Whether the endpoint answered successfully")
    status: int = Field(default=0, description="HTTP status, 0 when no response was received")
    message: str = Field(..., description="Human-readable outcome")
