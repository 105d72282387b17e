"""Adapter for unrecognized endpoints.

Requests are sent OpenAI-compatible, carrying only the parameters the caller
actually set. Responses are resolved against prioritized field lists; the
order of each list is part of the public behavior and must not change.
"""
import logging
from typing import Any, Mapping, Optional, Sequence

from chatrelay.adapters.llm.base import BuiltRequest, LLMAdapter, WireFormat, dig, text_or_empty
from chatrelay.core.params import ValidatedOptions

logger = logging.getLogger(__name__)

UNPARSEABLE_RESPONSE = (
    "Sorry, the API response could not be parsed. Please check the API configuration."
)

# First hit wins; values are coerced to text.
PRIMARY_PATHS = (
    ("content",),
    ("message",),
    ("text",),
    ("choices", 0, "message", "content"),
    ("result",),
)

# Consulted only for plain string values, after the raw-string check.
SECONDARY_FIELDS = ("answer", "response", "reply", "output", "completion")

CHUNK_PATHS = (
    ("choices", 0, "delta", "content"),
    ("delta", "text"),
    ("text",),
    ("content",),
)

# body field name for each validated option
BODY_FIELDS = (
    ("temperature", "temperature"),
    ("max_tokens", "max_tokens"),
    ("top_p", "top_p"),
    ("top_k", "top_k"),
    ("frequency_penalty", "frequency_penalty"),
    ("presence_penalty", "presence_penalty"),
    ("seed", "seed"),
)


def _scalar_text(value: Any) -> str:
    """Coerce a truthy scalar to text; mappings resolve via content/text."""
    if isinstance(value, bool) or not value:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, Mapping):
        return text_or_empty(value.get("content")) or text_or_empty(value.get("text"))
    return ""


class CustomAdapter(LLMAdapter):
    """Best-effort OpenAI-compatible adapter."""

    format = WireFormat.CUSTOM

    def prepare_request(
        self,
        endpoint: str,
        api_key: str,
        messages: Sequence[Any],
        options: ValidatedOptions,
        model: Optional[str] = None,
        custom_headers: Optional[Mapping[str, str]] = None,
        stream: bool = False,
    ) -> BuiltRequest:
        headers = self.base_headers(custom_headers, {"Authorization": f"Bearer {api_key}"})

        payload = {"messages": self.with_system_prompt(messages, options.system_prompt)}
        if model:
            payload["model"] = model
        for attr, body_field in BODY_FIELDS:
            value = getattr(options, attr)
            if value is not None:
                payload[body_field] = value
        if stream:
            payload["stream"] = True

        return BuiltRequest(url=endpoint, headers=headers, body=payload, format=self.format)

    def parse_response(self, response: Any) -> str:
        for path in PRIMARY_PATHS:
            text = _scalar_text(dig(response, *path))
            if text:
                return text

        if isinstance(response, str) and response:
            return response

        if isinstance(response, Mapping):
            for field in SECONDARY_FIELDS:
                text = text_or_empty(response.get(field))
                if text:
                    return text

        if isinstance(response, list) and response and isinstance(response[0], str):
            return response[0]

        logger.warning(f"Unexpected API response format: {str(response)[:200]!r}")
        return UNPARSEABLE_RESPONSE

    def parse_chunk(self, chunk: Any) -> str:
        for path in CHUNK_PATHS:
            text = text_or_empty(dig(chunk, *path))
            if text:
                return text
        return ""
