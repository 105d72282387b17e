"""Google Gemini (generativelanguage.googleapis.com) adapter."""
from typing import Any, Mapping, Optional, Sequence

import httpx

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


def _or_default(value: Any, name: str) -> Any:
    return PARAMETER_RANGES[name].default if value is None else value


class GoogleAdapter(LLMAdapter):
    """Google generateContent adapter.

    The key travels as a ``key`` query parameter, the model as part of the
    URL path. Seed and penalties are not supported and are dropped.
    """

    format = WireFormat.GOOGLE
    default_model = "gemini-pro"

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
        """Prepare Gemini request payload and keyed URL."""
        url = httpx.URL(endpoint)
        if stream and url.path.endswith(":generateContent"):
            url = url.copy_with(path=url.path[: -len(":generateContent")] + ":streamGenerateContent")
            url = url.copy_merge_params({"alt": "sse"})
        url = url.copy_merge_params({"key": api_key})

        contents = []
        for message in messages:
            role, content = role_and_content(message)
            if role == "system":
                continue
            contents.append({
                "role": "user" if role == "user" else "model",
                "parts": [{"text": content}],
            })

        payload = {
            "contents": contents,
            "generationConfig": {
                "temperature": _or_default(options.temperature, "temperature"),
                "maxOutputTokens": _or_default(options.max_tokens, "max_tokens"),
                "topP": _or_default(options.top_p, "top_p"),
                "topK": _or_default(options.top_k, "top_k"),
                "candidateCount": 1,
            },
        }
        if options.system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": options.system_prompt}]}

        return BuiltRequest(
            url=str(url),
            headers=self.base_headers(custom_headers),
            body=payload,
            format=self.format,
        )

    def parse_response(self, response: Any) -> str:
        """candidates[0].content.parts[0].text"""
        text = dig(response, "candidates", 0, "content", "parts", 0, "text")
        return text_or_empty(text) or NO_RESPONSE

    def parse_chunk(self, chunk: Any) -> str:
        return text_or_empty(dig(chunk, "candidates", 0, "content", "parts", 0, "text"))
