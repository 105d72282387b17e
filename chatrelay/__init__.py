"""chatrelay - talk to any chat-completion endpoint, keep its API key safe.

Example:
    from chatrelay import call_once

    reply = await call_once(
        "https://api.openai.com/v1/chat/completions",
        "sk-...",
        [{"role": "user", "content": "Hi"}],
        {"model": "gpt-4o-mini", "temperature": 0.2},
    )
"""
from chatrelay.adapters.llm import WireFormat, build_request, detect_format
from chatrelay.app.services import call_once, call_streaming, check_connection, iter_stream
from chatrelay.core.errors import (
    ChatRelayError,
    DecryptionError,
    ErrorCode,
    InputValidationError,
    NetworkUnreachableError,
    RequestTimeoutError,
    UpstreamHTTPError,
)
from chatrelay.core.model_store import ModelStore
from chatrelay.core.secret_store import SecureStorage

__version__ = "1.0.0"

__all__ = [
    "WireFormat",
    "build_request",
    "detect_format",
    "call_once",
    "call_streaming",
    "iter_stream",
    "check_connection",
    "ChatRelayError",
    "DecryptionError",
    "ErrorCode",
    "InputValidationError",
    "NetworkUnreachableError",
    "RequestTimeoutError",
    "UpstreamHTTPError",
    "ModelStore",
    "SecureStorage",
]
