"""Anthropic Claude messages adapter."""
from typing import Any, Mapping, Optional, Sequence

from chatrelay.adapters.llm.base import (
    NO_RESPONSE,
    BuiltRequest,
    LLMAdapter,
    WireFormat,
    dig,
    role_and_content,
    text_or_empty,
)
from chatrelay.core.params import PARAMETER_RANGES, ValidatedOptions

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(LLMAdapter):
    """Anthropic Claude API adapter.

    Seed and the frequency/presence penalties have no Anthropic equivalent
    and are dropped.
    """

    format = WireFormat.ANTHROPIC
    default_model = "claude-3-sonnet-20240229"

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
        """Prepare Anthropic request payload."""
        headers = self.base_headers(custom_headers, {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        })

        turns = []
        for message in messages:
            role, content = role_and_content(message)
            if role == "system":
                continue
            turns.append({
                "role": "user" if role == "user" else "assistant",
                "content": content,
            })

        payload = {
            "model": model or self.default_model,
            "messages": turns,
            "max_tokens": options.max_tokens or PARAMETER_RANGES["max_tokens"].default,
            "temperature": (
                PARAMETER_RANGES["temperature"].default
                if options.temperature is None else options.temperature
            ),
            "top_p": PARAMETER_RANGES["top_p"].default if options.top_p is None else options.top_p,
        }
        if options.system_prompt:
            payload["system"] = options.system_prompt
        if stream:
            payload["stream"] = True

        return BuiltRequest(url=endpoint, headers=headers, body=payload, format=self.format)

    def parse_response(self, response: Any) -> str:
        """content[0].text"""
        return text_or_empty(dig(response, "content", 0, "text")) or NO_RESPONSE

    def parse_chunk(self, chunk: Any) -> str:
        """Anthropic SSE events; only content_block_delta carries text.

        Other event types (message_start, content_block_start,
        message_delta, message_stop, ping) yield "".
        """
        if dig(chunk, "type") != "content_block_delta":
            return ""
        return text_or_empty(dig(chunk, "delta", "text"))
