"""Generation parameter validation and clamping.

Malformed client-side configuration must never block sending a message, so
nothing here raises: anything that cannot be turned into a legal value is
simply left out of the result.
"""
import math
import sys
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

from chatrelay.config.presets import get_template


@dataclass(frozen=True)
class ParameterRange:
    """Legal range and builder default for a numeric parameter."""

    min: float
    max: float
    default: float


PARAMETER_RANGES: Dict[str, ParameterRange] = {
    "temperature": ParameterRange(min=0, max=2, default=0.7),
    "max_tokens": ParameterRange(min=1, max=128000, default=1024),
    "top_p": ParameterRange(min=0, max=1, default=1),
    "top_k": ParameterRange(min=1, max=100, default=40),
    "frequency_penalty": ParameterRange(min=-2, max=2, default=0),
    "presence_penalty": ParameterRange(min=-2, max=2, default=0),
}

INTEGER_PARAMETERS = ("max_tokens", "top_k")

# camelCase spellings sent by the browser client
OPTION_ALIASES = {
    "maxTokens": "max_tokens",
    "topP": "top_p",
    "topK": "top_k",
    "frequencyPenalty": "frequency_penalty",
    "presencePenalty": "presence_penalty",
    "systemPrompt": "system_prompt",
    "customHeaders": "custom_headers",
    "proxyUrl": "proxy_url",
    "retryAttempts": "retry_attempts",
    "parameterTemplate": "template",
}


@dataclass(frozen=True)
class ValidatedOptions:
    """Generation parameters that survived validation. None means omitted."""

    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    seed: Optional[int] = None
    system_prompt: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return only the fields that are set."""
        return {k: v for k, v in asdict(self).items() if v is not None}


def normalize_option_keys(raw: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Map camelCase option names onto their snake_case equivalents.

    A snake_case key wins when both spellings are present.
    """
    if not isinstance(raw, Mapping):
        return {}
    normalized: Dict[str, Any] = {}
    for key, value in raw.items():
        target = OPTION_ALIASES.get(key, key)
        if target != key and target in raw:
            continue
        normalized[target] = value
    return normalized


def to_finite_number(value: Any) -> Optional[float]:
    """Coerce a number or numeric string to float, or None if impossible."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        try:
            number = float(value)
        except OverflowError:
            # Beyond float range; saturate so range clamping still applies.
            return sys.float_info.max if value > 0 else -sys.float_info.max
    elif isinstance(value, float):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def clamp(value: float, value_range: ParameterRange) -> float:
    return max(value_range.min, min(value_range.max, value))


def _text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def validate_parameters(raw: Optional[Mapping[str, Any]]) -> ValidatedOptions:
    """Clamp and normalize generation parameters into provider-legal ranges.

    Args:
        raw: Caller options (snake_case or camelCase keys). Unknown keys are
            ignored. A `template` key names a parameter template whose
            values fill in whatever the caller left unset.

    Returns:
        ValidatedOptions with every illegal or missing field left as None.
    """
    options = normalize_option_keys(raw)
    template = get_template(options.get("template"))
    if template is not None:
        merged: Dict[str, Any] = template.to_options()
        merged.update({k: v for k, v in options.items() if v is not None})
        options = merged
    validated: Dict[str, Any] = {}

    for name, value_range in PARAMETER_RANGES.items():
        number = to_finite_number(options.get(name))
        if number is None:
            continue
        number = clamp(number, value_range)
        if name in INTEGER_PARAMETERS:
            validated[name] = round_half_up(number)
        else:
            validated[name] = number

    seed = to_finite_number(options.get("seed"))
    if seed is not None and seed >= 0:
        validated["seed"] = round_half_up(seed)

    system_prompt = _text_or_none(options.get("system_prompt"))
    if system_prompt:
        validated["system_prompt"] = system_prompt

    model = _text_or_none(options.get("model"))
    if model:
        validated["model"] = model

    return ValidatedOptions(**validated)
