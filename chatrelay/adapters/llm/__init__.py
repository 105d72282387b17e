"""Wire-format adapters for chat-completion providers."""
from chatrelay.adapters.llm.base import BuiltRequest, LLMAdapter, WireFormat
from chatrelay.adapters.llm.factory import (
    build_request,
    detect_format,
    get_adapter,
    parse_chunk,
    parse_complete,
)

__all__ = [
    "BuiltRequest",
    "LLMAdapter",
    "WireFormat",
    "build_request",
    "detect_format",
    "get_adapter",
    "parse_chunk",
    "parse_complete",
]
