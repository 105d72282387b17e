"""Base LLM adapter interface."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from chatrelay.core.params import ValidatedOptions

NO_RESPONSE = "No response"


class WireFormat(str, Enum):
    """Closed set of provider request/response shapes."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    CUSTOM = "custom"


@dataclass(frozen=True)
class BuiltRequest:
    """Transport-ready request produced by an adapter.

    Built once and consumed once by the transport.
    """

    url: str
    headers: Mapping[str, str]
    body: Mapping[str, Any]
    format: WireFormat = WireFormat.CUSTOM

    def __post_init__(self):
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        object.__setattr__(self, "body", MappingProxyType(dict(self.body)))


def dig(data: Any, *path: Any) -> Any:
    """Walk nested dicts/lists, returning None as soon as a step is missing.

    String steps index mappings, integer steps index lists.
    """
    current = data
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or not -len(current) <= step < len(current):
                return None
            current = current[step]
        else:
            if not isinstance(current, Mapping):
                return None
            current = current.get(step)
        if current is None:
            return None
    return current


def text_or_empty(value: Any) -> str:
    """Return value if it is a non-empty string, else ""."""
    if isinstance(value, str) and value:
        return value
    return ""


def set_header(headers: Dict[str, str], name: str, value: str) -> None:
    """Set a header, replacing any existing spelling of the same name."""
    for existing in [k for k in headers if k.lower() == name.lower()]:
        del headers[existing]
    headers[name] = value


def role_and_content(message: Any) -> Tuple[str, str]:
    """Extract (role, content) from a Message model or a plain dict."""
    if isinstance(message, Mapping):
        role = message.get("role")
        content = message.get("content")
    else:
        role = getattr(message, "role", None)
        content = getattr(message, "content", None)
    role = getattr(role, "value", role)
    return str(role or "user"), "" if content is None else str(content)


class LLMAdapter(ABC):
    """Base class for wire-format adapters.

    Adapters are pure: building never performs I/O and parsing never raises
    or returns anything but a string.
    """

    format: WireFormat
    default_model: str = ""

    def base_headers(
        self,
        custom_headers: Optional[Mapping[str, str]] = None,
        auth_headers: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, str]:
        """Content type, then caller-supplied headers, then auth headers.

        Header names are compared case-insensitively, so a caller header can
        never ride along next to the credential the adapter sets.
        """
        headers = {"Content-Type": "application/json"}
        for extra in (custom_headers, auth_headers):
            for name, value in (extra or {}).items():
                set_header(headers, str(name), str(value))
        return headers

    def with_system_prompt(
        self,
        messages: Sequence[Any],
        system_prompt: Optional[str],
    ) -> List[Dict[str, str]]:
        """OpenAI-style history: system prompt prepended as a system message."""
        history = []
        if system_prompt:
            history.append({"role": "system", "content": system_prompt})
        for message in messages:
            role, content = role_and_content(message)
            history.append({"role": role, "content": content})
        return history

    @abstractmethod
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
        """Build the provider-specific request.

        Args:
            endpoint: Direct endpoint URL (proxy rewriting is the transport's job)
            api_key: Provider credential
            messages: Ordered conversation history
            options: Validated generation parameters
            model: Model id already resolved against defaults
            custom_headers: Extra headers from the caller
            stream: Whether the request asks for incremental delivery
        """
        pass

    @abstractmethod
    def parse_response(self, response: Any) -> str:
        """Extract the assistant text from a complete response body."""
        pass

    @abstractmethod
    def parse_chunk(self, chunk: Any) -> str:
        """Extract incremental text from one streamed event, "" if none."""
        pass
