"""Factory for LLM adapters: format detection, request building, parsing."""
import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Union

from chatrelay.adapters.llm.anthropic import AnthropicAdapter
from chatrelay.adapters.llm.base import NO_RESPONSE, BuiltRequest, LLMAdapter, WireFormat, set_header
from chatrelay.adapters.llm.custom import UNPARSEABLE_RESPONSE, CustomAdapter
from chatrelay.adapters.llm.google import GoogleAdapter
from chatrelay.adapters.llm.openai import OpenAIAdapter
from chatrelay.config.presets import find_preset
from chatrelay.config.schema import ApiPreset
from chatrelay.core.params import ValidatedOptions, normalize_option_keys, validate_parameters

logger = logging.getLogger(__name__)

_ADAPTERS: Dict[WireFormat, LLMAdapter] = {
    WireFormat.OPENAI: OpenAIAdapter(),
    WireFormat.ANTHROPIC: AnthropicAdapter(),
    WireFormat.GOOGLE: GoogleAdapter(),
    WireFormat.CUSTOM: CustomAdapter(),
}

# Evaluated in order, first match wins.
FORMAT_RULES = (
    ("anthropic.com", WireFormat.ANTHROPIC),
    ("googleapis.com", WireFormat.GOOGLE),
    ("/chat/completions", WireFormat.OPENAI),
    ("/messages", WireFormat.ANTHROPIC),
)


def get_adapter(fmt: Union[WireFormat, str]) -> LLMAdapter:
    """Get adapter for a wire format; unknown names fall back to custom."""
    return _ADAPTERS[coerce_format(fmt) or WireFormat.CUSTOM]


def coerce_format(fmt: Any) -> Optional[WireFormat]:
    """Turn a format name into a WireFormat, or None if it is not one."""
    if isinstance(fmt, WireFormat):
        return fmt
    if isinstance(fmt, str):
        try:
            return WireFormat(fmt.strip().lower())
        except ValueError:
            return None
    return None


def detect_format(endpoint: Optional[str]) -> WireFormat:
    """Detect wire format from the endpoint URL."""
    if not endpoint:
        return WireFormat.CUSTOM
    for needle, fmt in FORMAT_RULES:
        if needle in endpoint:
            return fmt
    return WireFormat.CUSTOM


def resolve_format(
    endpoint: Optional[str],
    override: Any = None,
    preset: Optional[ApiPreset] = None,
) -> WireFormat:
    """Explicit override, else the preset's format, else URL detection.

    Overrides that do not name a known format are ignored.
    """
    fmt = coerce_format(override)
    if fmt is None and preset is not None:
        fmt = coerce_format(preset.format)
    return fmt or detect_format(endpoint)


def resolve_model(
    model: Optional[str],
    fmt: WireFormat,
    preset: Optional[ApiPreset] = None,
) -> Optional[str]:
    """Caller's model, else the preset's default, else the format default."""
    if model:
        return model
    if preset and preset.default_model:
        return preset.default_model
    return get_adapter(fmt).default_model or None


def merge_headers(
    preset: Optional[ApiPreset],
    custom_headers: Any,
) -> Optional[Dict[str, str]]:
    """Preset headers overlaid with the caller's; None-valued entries are skipped."""
    merged: Dict[str, str] = {}
    for source in (preset.headers if preset else None, custom_headers):
        if isinstance(source, Mapping):
            for name, value in source.items():
                if value is not None:
                    set_header(merged, str(name), str(value))
    return merged or None


def build_request(
    endpoint: str,
    api_key: str,
    messages: Sequence[Any],
    fmt: Union[WireFormat, str],
    options: Optional[Union[Mapping[str, Any], ValidatedOptions]] = None,
    stream: bool = False,
    presets: Optional[Iterable[ApiPreset]] = None,
) -> BuiltRequest:
    """Build a transport-ready request for the given wire format.

    Args:
        endpoint: Direct endpoint URL
        api_key: Provider credential
        messages: Conversation history (Message models or dicts)
        fmt: Wire format
        options: Raw caller options or already validated ones
        stream: Ask the provider for incremental delivery
        presets: Presets searched for one whose endpoint equals the URL; its
            default model and headers apply (built-in presets when None)

    Returns:
        BuiltRequest (url, headers, body, format)
    """
    wire_format = coerce_format(fmt) or WireFormat.CUSTOM
    if isinstance(options, ValidatedOptions):
        validated = options
        custom_headers = None
    else:
        raw = normalize_option_keys(options)
        validated = validate_parameters(raw)
        custom_headers = raw.get("custom_headers")

    preset = find_preset(endpoint, presets)
    adapter = get_adapter(wire_format)
    return adapter.prepare_request(
        endpoint,
        api_key,
        messages,
        validated,
        model=resolve_model(validated.model, wire_format, preset),
        custom_headers=merge_headers(preset, custom_headers),
        stream=stream,
    )


def parse_complete(response: Any, fmt: Union[WireFormat, str]) -> str:
    """Extract text from a complete response. Always returns a string."""
    wire_format = coerce_format(fmt) or WireFormat.CUSTOM
    try:
        text = get_adapter(wire_format).parse_response(response)
    except Exception as e:
        logger.warning(f"Error parsing {wire_format.value} response: {e}", exc_info=True)
        text = None
    if isinstance(text, str):
        return text
    return UNPARSEABLE_RESPONSE if wire_format == WireFormat.CUSTOM else NO_RESPONSE


def parse_chunk(chunk: Any, fmt: Union[WireFormat, str]) -> str:
    """Extract text from one streamed event. "" means nothing to append."""
    wire_format = coerce_format(fmt) or WireFormat.CUSTOM
    try:
        text = get_adapter(wire_format).parse_chunk(chunk)
    except Exception as e:
        logger.warning(f"Error parsing {wire_format.value} chunk: {e}", exc_info=True)
        return ""
    return text if isinstance(text, str) else ""
