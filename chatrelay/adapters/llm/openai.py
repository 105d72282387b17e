"""OpenAI chat-completions adapter."""
from typing import Any, Mapping, Optional, Sequence

from chatrelay.adapters.llm.base import (
    NO_RESPONSE,
    BuiltRequest,
    LLMAdapter,
    WireFormat,
    dig,
    text_or_empty,
)
from chatrelay.core.params import PARAMETER_RANGES, ValidatedOptions


def _or_default(value: Any, name: str) -> Any:
    return PARAMETER_RANGES[name].default if value is None else value


class OpenAIAdapter(LLMAdapter):
    """OpenAI API adapter."""

    format = WireFormat.OPENAI
    default_model = "gpt-3.5-turbo"

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
        """Prepare OpenAI request: bearer auth, system prompt as first message."""
        headers = self.base_headers(custom_headers, {"Authorization": f"Bearer {api_key}"})

        payload = {
            "model": model or self.default_model,
            "messages": self.with_system_prompt(messages, options.system_prompt),
            "stream": stream,
            "temperature": _or_default(options.temperature, "temperature"),
            "max_tokens": _or_default(options.max_tokens, "max_tokens"),
            "top_p": _or_default(options.top_p, "top_p"),
            "frequency_penalty": _or_default(options.frequency_penalty, "frequency_penalty"),
            "presence_penalty": _or_default(options.presence_penalty, "presence_penalty"),
        }
        if options.seed is not None:
            payload["seed"] = options.seed

        return BuiltRequest(url=endpoint, headers=headers, body=payload, format=self.format)

    def parse_response(self, response: Any) -> str:
        """choices[0].message.content"""
        return text_or_empty(dig(response, "choices", 0, "message", "content")) or NO_RESPONSE

    def parse_chunk(self, chunk: Any) -> str:
        """choices[0].delta.content"""
        return text_or_empty(dig(chunk, "choices", 0, "delta", "content"))
